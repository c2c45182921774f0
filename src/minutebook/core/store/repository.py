# src/minutebook/core/store/repository.py
"""Read, patch, and start/stop access to existing records.

Records are created only by the orchestrator. After that, only business
fields may change: the folio, its serial and the owner are fixed for the
life of the record, and patches naming them are silently narrowed.

start_time and end_time are wall-clock times of day. start() and stop()
stamp them from the store host's local clock; a patch may also set or
clear them explicitly.
"""

from collections.abc import Callable, Mapping
from datetime import UTC, datetime, time
from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update

from minutebook.contracts.enums import FailureKind
from minutebook.contracts.errors import RecordNotFound, ValidationFailure
from minutebook.contracts.records import (
    OPTIONAL_COLUMNS,
    PROTECTED_COLUMNS,
    TIME_FIELDS,
    Record,
    coerce_date,
    coerce_time,
    empty_to_none,
    normalize_work_type,
)
from minutebook.core.logging import get_logger

if TYPE_CHECKING:
    from minutebook.core.store.database import RecordStoreDB
    from minutebook.core.store.probe import SchemaProbeProtocol

logger = get_logger(__name__)


class RecordRepository:
    """Record reads and business-field patches against the live schema."""

    def __init__(
        self,
        db: "RecordStoreDB",
        probe: "SchemaProbeProtocol",
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize.

        Args:
            db: Record store
            probe: Schema capability probe
            now: Local wall clock for start/stop stamps (injectable for testing)
        """
        self._db = db
        self._probe = probe
        self._now = now or datetime.now

    def get(self, record_id: str) -> Record | None:
        """Fetch one record by id, or None."""
        table = self._db.live_table()
        with self._db.connection() as conn:
            row = conn.execute(select(table).where(table.c.id == record_id)).mappings().first()
        return None if row is None else Record.from_mapping(row)

    def list_for_owner(self, owner_id: str | None) -> list[Record]:
        """Records for one owner, newest date first, then latest start time.

        Ties (or schemas without start_time) fall back to the highest folio.
        In single-tenant mode (no owner column) every record is listed.
        """
        table = self._db.live_table()
        order = [table.c.date.desc()]
        if "start_time" in table.c and self._probe.has_optional_column("start_time"):
            order.append(table.c.start_time.desc().nulls_last())
        order.append(table.c.folio_serial.desc())
        query = select(table).order_by(*order)
        owner_name = self._probe.detect_owner_column().column_name
        if owner_name is not None:
            owner_col = table.c[owner_name]
            query = query.where(owner_col.is_(None) if owner_id is None else owner_col == owner_id)
        with self._db.connection() as conn:
            rows = conn.execute(query).mappings().all()
        return [Record.from_mapping(row) for row in rows]

    def sanitize_patch(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Reduce a patch to the business fields the live schema can take.

        - protected keys (id, folio, folio_serial, created_at, owner) are dropped
        - optional columns the schema lacks are dropped
        - empty text becomes NULL; an empty date is ignored
        - work_type is normalized (unrecognised values become NULL)
        - start_time / end_time accept "HH:MM[:SS]"; empty clears them
        """
        table = self._db.live_table()
        clean: dict[str, Any] = {}
        for key, value in changes.items():
            if key in PROTECTED_COLUMNS or key not in table.c:
                continue
            if key in OPTIONAL_COLUMNS and not self._probe.has_optional_column(key):
                continue
            if key == "date":
                parsed = coerce_date(value)
                if parsed is not None:
                    clean[key] = parsed
            elif key == "work_type":
                work_type = normalize_work_type(value)
                clean[key] = None if work_type is None else work_type.value
            elif key in TIME_FIELDS:
                clean[key] = coerce_time(value)
            elif key == "is_protected":
                clean[key] = _as_flag(value)
            elif isinstance(value, str) or value is None:
                clean[key] = empty_to_none(value)
            else:
                clean[key] = value
        return clean

    def patch(self, record_id: str, changes: Mapping[str, Any]) -> Record:
        """Apply a business-field patch and return the updated record.

        Raises:
            RecordNotFound: If no record has this id
            ValidationFailure: If date or a time field is present but invalid
        """
        clean = self.sanitize_patch(changes)
        dropped = sorted(set(changes) - set(clean) - {"date"})
        if dropped:
            logger.debug("patch_keys_dropped", record_id=record_id, keys=dropped)

        table = self._db.live_table()
        if "updated_at" in table.c:
            clean["updated_at"] = datetime.now(UTC)

        with self._db.connection() as conn:
            if clean:
                result = conn.execute(update(table).where(table.c.id == record_id).values(**clean))
                if result.rowcount == 0:
                    raise RecordNotFound(record_id)
            row = conn.execute(select(table).where(table.c.id == record_id)).mappings().first()
        if row is None:
            raise RecordNotFound(record_id)
        return Record.from_mapping(row)

    def start(self, record_id: str) -> Record:
        """Stamp start_time with the current local time.

        Restarting overwrites the previous start and clears end_time.

        Raises:
            RecordNotFound: If no record has this id
            ValidationFailure: If the live schema has no start_time column
        """
        self._require_time_column("start_time")
        changes: dict[str, Any] = {"start_time": self._stamp()}
        if self._has_time_column("end_time"):
            changes["end_time"] = None
        return self._write_times(record_id, "start_time", changes)

    def stop(self, record_id: str) -> Record:
        """Stamp end_time with the current local time.

        Raises:
            RecordNotFound: If no record has this id
            ValidationFailure: If the record was never started, or the live
                schema has no end_time column
        """
        self._require_time_column("end_time")
        current = self.get(record_id)
        if current is None:
            raise RecordNotFound(record_id)
        if current.start_time is None:
            raise ValidationFailure(f"Record {record_id} has not been started")
        return self._write_times(record_id, "end_time", {"end_time": self._stamp()})

    def _stamp(self) -> time:
        return self._now().time().replace(microsecond=0)

    def _has_time_column(self, name: str) -> bool:
        return name in self._db.live_table().c and self._probe.has_optional_column(name)

    def _require_time_column(self, name: str) -> None:
        if not self._has_time_column(name):
            raise ValidationFailure(
                f"column {name} of relation records does not exist",
                kind=FailureKind.UNDEFINED_COLUMN,
            )

    def _write_times(self, record_id: str, column: str, changes: dict[str, Any]) -> Record:
        table = self._db.live_table()
        if "updated_at" in table.c:
            changes["updated_at"] = datetime.now(UTC)

        with self._db.connection() as conn:
            result = conn.execute(update(table).where(table.c.id == record_id).values(**changes))
            if result.rowcount == 0:
                raise RecordNotFound(record_id)
            row = conn.execute(select(table).where(table.c.id == record_id)).mappings().one()
        logger.info("record_timed", record_id=record_id, column=column, value=changes[column].isoformat())
        return Record.from_mapping(row)


_TRUE_TEXT = frozenset({"true", "1", "yes", "on", "si", "sí"})


def _as_flag(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TEXT
    return bool(value)
