# src/minutebook/core/store/sequencer_ddl.py
"""PL/pgSQL source for the store-side folio assignment functions.

Every installed name gets the same body, so the preferred and the legacy
function are interchangeable during a rolling upgrade. The function:

1. takes a transaction-scoped advisory lock keyed on the owner, so two
   assigners for one owner serialize and different owners never block
   each other;
2. computes max(folio_serial) + 1 for that owner;
3. inserts the row built from the JSON payload and returns it.

The lock is released at commit/rollback. The padding width (4) must match
FolioSettings.width for deployments that use PostgreSQL.
"""

import re

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

_FUNCTION_TEMPLATE = """
CREATE OR REPLACE FUNCTION {name}(p_owner text, p_payload jsonb)
RETURNS SETOF records
LANGUAGE plpgsql
AS $fn$
DECLARE
    v_serial integer;
    v_row records;
BEGIN
    PERFORM pg_advisory_xact_lock(hashtextextended(coalesce(p_owner, ''), 0));

    SELECT coalesce(max(folio_serial), 0) + 1
      INTO v_serial
      FROM records
     WHERE user_id IS NOT DISTINCT FROM p_owner;

    v_row := jsonb_populate_record(NULL::records, p_payload);
    v_row.id := replace(gen_random_uuid()::text, '-', '');
    v_row.user_id := p_owner;
    v_row.folio_serial := v_serial;
    v_row.folio := lpad(v_serial::text, greatest({width}, length(v_serial::text)), '0');
    v_row.date := coalesce(v_row.date, current_date);
    v_row.created_at := now();
    v_row.is_protected := coalesce(v_row.is_protected, false);

    INSERT INTO records SELECT v_row.* RETURNING * INTO v_row;
    RETURN NEXT v_row;
END;
$fn$;
"""


def sequencer_function_ddl(name: str, *, width: int = 4) -> str:
    """CREATE OR REPLACE statement for one assignment function name.

    Raises:
        ValueError: If name is not a plain lowercase identifier
    """
    if not _IDENTIFIER.match(name):
        raise ValueError(f"invalid function name: {name!r}")
    return _FUNCTION_TEMPLATE.format(name=name, width=int(width))
