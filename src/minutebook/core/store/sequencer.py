# src/minutebook/core/store/sequencer.py
"""Sequencer: atomic per-owner folio assignment plus insert.

The gateway contract is a single call, invoke(function_name, owner_id,
payload), that inside ONE transaction:

1. takes an exclusive lock scoped to the owner,
2. computes max(folio_serial) + 1 for that owner,
3. inserts the record with its rendered folio,
4. commits and returns the stored row.

The function is addressed by name because deployments expose it under a
preferred and a legacy name; a name the store does not know fails with
FailureKind.FUNCTION_NOT_FOUND and the orchestrator moves on to the next
candidate. Every store error leaves here as a classified StoreFailure.

Two implementations:
- SqlSequencer runs the assignment from Python over SQLAlchemy Core. On
  SQLite the write transaction is BEGIN IMMEDIATE, which serializes all
  writers (SQLite has one write lock, so owners are not independent there).
- PostgresSequencer calls the stored PL/pgSQL functions installed from
  sequencer_ddl, which lock per owner with pg_advisory_xact_lock.
"""

import json
import re
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any, Protocol
from uuid import uuid4

from sqlalchemy import Column, Table, func, select, text
from sqlalchemy.exc import SQLAlchemyError

from minutebook.contracts.enums import FailureKind, OwnerColumn
from minutebook.contracts.records import Record
from minutebook.core.config import LEGACY_FUNCTION, PREFERRED_FUNCTION
from minutebook.core.folio import DEFAULT_FOLIO_WIDTH, format_folio
from minutebook.core.store.classify import StoreFailure

if TYPE_CHECKING:
    from minutebook.core.config import MinutebookSettings
    from minutebook.core.store.database import RecordStoreDB

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

_OWNER_KEYS: frozenset[str] = frozenset(c.value for c in OwnerColumn if c.column_name)


class SequencerGateway(Protocol):
    """Store-side folio assignment, addressed by function name."""

    def invoke(self, function_name: str, owner_id: str | None, payload: Mapping[str, Any]) -> Record:
        """Assign the next folio for owner_id and insert payload as one record.

        Raises:
            StoreFailure: On any store error, already classified
        """
        ...


def _function_not_found(function_name: str) -> StoreFailure:
    return StoreFailure(
        FailureKind.FUNCTION_NOT_FOUND,
        function_name,
        f"function {function_name}(text, jsonb) does not exist",
    )


def _owner_column(table: Table) -> Column[Any] | None:
    for candidate in (OwnerColumn.USER_ID, OwnerColumn.CREATED_BY):
        if candidate.value in table.c:
            return table.c[candidate.value]
    return None


class SqlSequencer:
    """Folio assignment over SQLAlchemy Core, for any backend.

    Writes exactly the columns the live table has (reflected once per
    RecordStoreDB); payload keys naming other columns are rejected the way
    an INSERT naming them would be.
    """

    def __init__(
        self,
        db: "RecordStoreDB",
        *,
        installed: tuple[str, ...] = (PREFERRED_FUNCTION, LEGACY_FUNCTION),
        folio_width: int = DEFAULT_FOLIO_WIDTH,
    ) -> None:
        """Initialize.

        Args:
            db: Record store
            installed: Function names this sequencer answers to. A rolling
                deployment that only has the legacy function is modelled by
                passing just that name.
            folio_width: Zero-padded folio width
        """
        self._db = db
        self._installed = frozenset(installed)
        self._folio_width = folio_width

    @property
    def installed(self) -> frozenset[str]:
        return self._installed

    def invoke(self, function_name: str, owner_id: str | None, payload: Mapping[str, Any]) -> Record:
        if function_name not in self._installed:
            raise _function_not_found(function_name)

        try:
            table = self._db.live_table()
        except SQLAlchemyError as exc:
            raise StoreFailure.from_exception(exc, function_name) from exc

        values = {key: value for key, value in payload.items() if key not in _OWNER_KEYS}
        unknown = sorted(key for key in values if key not in table.c)
        if unknown:
            raise StoreFailure(
                FailureKind.UNDEFINED_COLUMN,
                function_name,
                f"column(s) {', '.join(unknown)} of relation {table.name} do not exist",
            )
        if "date" in table.c:
            values["date"] = _coerce_payload_date(values.get("date"), function_name)

        owner_col = _owner_column(table)
        serial_query = select(func.coalesce(func.max(table.c.folio_serial), 0) + 1)
        if owner_col is not None:
            serial_query = serial_query.where(owner_col.is_(None) if owner_id is None else owner_col == owner_id)

        record_id = uuid4().hex
        try:
            with self._db.write_transaction() as conn:
                serial = int(conn.execute(serial_query).scalar_one())
                row = {
                    **values,
                    "id": record_id,
                    "folio_serial": serial,
                    "folio": format_folio(serial, self._folio_width),
                }
                if "created_at" in table.c:
                    row["created_at"] = datetime.now(UTC)
                if owner_col is not None:
                    row[owner_col.name] = owner_id
                conn.execute(table.insert().values(**row))
                stored = conn.execute(select(table).where(table.c.id == record_id)).mappings().one()
        except SQLAlchemyError as exc:
            raise StoreFailure.from_exception(exc, function_name) from exc

        return Record.from_mapping(stored)


def _coerce_payload_date(value: object, function_name: str) -> date:
    if value is None or value == "":
        return datetime.now(UTC).date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise StoreFailure(
            FailureKind.VALIDATION,
            function_name,
            f"invalid input syntax for type date: {value!r}",
        ) from None


def _json_default(value: object) -> str:
    if isinstance(value, date | datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class PostgresSequencer:
    """Calls the stored assignment functions on PostgreSQL.

    The function locks per owner (advisory transaction lock), so concurrent
    creations for different owners proceed in parallel.
    """

    def __init__(self, db: "RecordStoreDB") -> None:
        self._db = db

    def invoke(self, function_name: str, owner_id: str | None, payload: Mapping[str, Any]) -> Record:
        # The name is interpolated into SQL: only plain identifiers get that far
        if not _IDENTIFIER.match(function_name):
            raise ValueError(f"invalid function name: {function_name!r}")

        body = {key: value for key, value in payload.items() if key not in _OWNER_KEYS}
        stmt = text(f"SELECT * FROM {function_name}(:owner, CAST(:payload AS jsonb))")
        params = {"owner": owner_id, "payload": json.dumps(body, default=_json_default)}
        try:
            with self._db.connection() as conn:
                row = conn.execute(stmt, params).mappings().one()
        except SQLAlchemyError as exc:
            raise StoreFailure.from_exception(exc, function_name) from exc
        return Record.from_mapping(row)


def make_sequencer(db: "RecordStoreDB", settings: "MinutebookSettings") -> SequencerGateway:
    """Pick the sequencer implementation for the store's backend."""
    if db.dialect_name == "postgresql":
        return PostgresSequencer(db)
    return SqlSequencer(
        db,
        installed=settings.sequencer.installed_functions,
        folio_width=settings.folio.width,
    )
