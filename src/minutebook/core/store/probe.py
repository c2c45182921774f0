# src/minutebook/core/store/probe.py
"""Schema Tolerance Layer: memoized capability probes against the live schema.

Deployments of the records table differ: some lack optional columns, some
name the owner column created_by instead of user_id. Writers ask the probe
instead of assuming a shape. Each fact is probed at most once per probe
instance (one instance per process in production) and then served from
memory; reset() forgets everything, for tests and hot schema migrations.

Probes never raise for store errors. A column that cannot be read is
absent; a probe that failed for any reason other than "no such column" is
additionally logged as a warning.
"""

import re
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import column, select, table
from sqlalchemy.exc import SQLAlchemyError

from minutebook.contracts.enums import FailureKind, OwnerColumn
from minutebook.contracts.errors import SchemaProbeFailure
from minutebook.contracts.records import OPTIONAL_COLUMNS
from minutebook.core.logging import get_logger
from minutebook.core.store.classify import StoreFailure
from minutebook.core.store.schema import RECORDS_TABLE

if TYPE_CHECKING:
    from minutebook.core.store.database import RecordStoreDB

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SchemaProbeProtocol(Protocol):
    """What the orchestrator and repository need from a schema probe."""

    def has_optional_column(self, name: str) -> bool: ...

    def detect_owner_column(self) -> OwnerColumn: ...

    def reset(self) -> None: ...


@dataclass(frozen=True)
class SchemaFacts:
    """Snapshot of everything the probe knows."""

    owner_column: OwnerColumn
    optional_columns: Mapping[str, bool]


class SchemaProbe:
    """Memoized column-existence probes for the records table.

    Thread-safe: concurrent first calls may both probe, the first answer
    stored wins, and the cache is read-only after population.
    """

    def __init__(self, db: "RecordStoreDB", *, table_name: str = RECORDS_TABLE) -> None:
        self._db = db
        self._table_name = table_name
        self._lock = threading.Lock()
        self._columns: dict[str, bool] = {}
        self._owner: OwnerColumn | None = None
        self._failures: list[SchemaProbeFailure] = []

    @property
    def failures(self) -> tuple[SchemaProbeFailure, ...]:
        """Probe failures seen since construction or the last reset()."""
        with self._lock:
            return tuple(self._failures)

    def has_optional_column(self, name: str) -> bool:
        """Whether the live records table has column `name`. Never raises."""
        with self._lock:
            cached = self._columns.get(name)
        if cached is not None:
            return cached
        present = self._probe(name)
        with self._lock:
            return self._columns.setdefault(name, present)

    def detect_owner_column(self) -> OwnerColumn:
        """Owner column of the live schema, probing user_id then created_by.

        NONE when neither exists; creation then proceeds single-tenant.
        """
        with self._lock:
            if self._owner is not None:
                return self._owner
        detected = OwnerColumn.NONE
        for candidate in (OwnerColumn.USER_ID, OwnerColumn.CREATED_BY):
            if self.has_optional_column(candidate.value):
                detected = candidate
                break
        with self._lock:
            if self._owner is None:
                self._owner = detected
                logger.debug("owner_column_detected", owner_column=detected.value)
            return self._owner

    def facts(self) -> SchemaFacts:
        """Probe (or recall) every known fact."""
        owner = self.detect_owner_column()
        return SchemaFacts(
            owner_column=owner,
            optional_columns={name: self.has_optional_column(name) for name in OPTIONAL_COLUMNS},
        )

    def reset(self) -> None:
        """Forget all memoized facts; the next call re-probes."""
        with self._lock:
            self._columns.clear()
            self._owner = None
            self._failures.clear()

    def _probe(self, name: str) -> bool:
        """SELECT <name> FROM records LIMIT 1; True if the statement succeeds."""
        if not _IDENTIFIER.match(name):
            self._record_failure(SchemaProbeFailure(name, FailureKind.VALIDATION, "not a column identifier"))
            return False
        stmt = select(column(name)).select_from(table(self._table_name)).limit(1)
        try:
            with self._db.engine.connect() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            failure = StoreFailure.from_exception(exc, f"probe:{name}")
            if failure.kind is not FailureKind.UNDEFINED_COLUMN:
                self._record_failure(SchemaProbeFailure(name, failure.kind, failure.detail))
            return False
        return True

    def _record_failure(self, failure: SchemaProbeFailure) -> None:
        logger.warning(
            "schema_probe_failed",
            column=failure.column,
            kind=failure.kind.value,
            detail=failure.detail,
        )
        with self._lock:
            self._failures.append(failure)
