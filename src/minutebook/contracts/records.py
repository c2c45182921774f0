"""Record and creation-request types.

Record is what the store hands back: immutable, built from a row mapping of
whatever shape the live schema has. RecordDraft is what callers hand in:
business fields only, normalized so empty strings never overwrite
server-computed defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from typing import Any

from minutebook.contracts.enums import OwnerColumn, WorkType
from minutebook.contracts.errors import ValidationFailure

# Business fields a caller may set at creation or patch time.
TEXT_FIELDS: tuple[str, ...] = ("description", "task_done", "notes", "created_by_name", "created_by_email")

# Columns that only exist on some deployments of the schema.
OPTIONAL_COLUMNS: tuple[str, ...] = (
    "description",
    "work_type",
    "is_protected",
    "created_by_name",
    "created_by_email",
    "start_time",
    "end_time",
)

# Time-of-day columns, stamped by start/stop rather than set at creation.
TIME_FIELDS: tuple[str, ...] = ("start_time", "end_time")

# Columns a patch must never touch.
PROTECTED_COLUMNS: frozenset[str] = frozenset({"id", "folio", "folio_serial", "created_at", *(c.value for c in OwnerColumn if c.column_name)})


def empty_to_none(value: object) -> str | None:
    """Trim a text value; empty or whitespace-only becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_work_type(value: object) -> WorkType | None:
    """Normalize free text to a WorkType, or None when unrecognised.

    "Gran Formato" and " gran_formato " both map to WorkType.GRAN_FORMATO.
    """
    text = empty_to_none(value)
    if text is None:
        return None
    key = "_".join(text.lower().split())
    try:
        return WorkType(key)
    except ValueError:
        return None


def coerce_date(value: object) -> date | None:
    """Accept a date, a datetime, or an ISO 'YYYY-MM-DD' string.

    Raises:
        ValidationFailure: If a non-empty string is not an ISO date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = empty_to_none(value)
    if text is None:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationFailure(f"Invalid date: {value!r}") from None


def coerce_time(value: object) -> time | None:
    """Accept a time, a datetime, or an ISO 'HH:MM[:SS]' string.

    Raises:
        ValidationFailure: If a non-empty string is not an ISO time
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, time):
        return value
    text = empty_to_none(value)
    if text is None:
        return None
    try:
        return time.fromisoformat(text)
    except ValueError:
        raise ValidationFailure(f"Invalid time: {value!r}") from None


def _stored_time(value: object) -> time | None:
    # Rows written by other tools may hold free text here
    try:
        return coerce_time(value)
    except ValidationFailure:
        return None


def _coerce_datetime(value: object) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class RecordDraft:
    """Business fields for a new record.

    Only populated fields reach the store. date defaults to today (UTC)
    because the column is NOT NULL.
    """

    date: date | str | None = None
    description: str | None = None
    task_done: str | None = None
    notes: str | None = None
    work_type: str | None = None
    is_protected: bool | None = None
    created_by_name: str | None = None
    created_by_email: str | None = None

    def to_fields(self, *, today: date | None = None) -> dict[str, Any]:
        """Return populated, normalized business fields."""
        fields: dict[str, Any] = {"date": coerce_date(self.date) or today or datetime.now(UTC).date()}
        for name in TEXT_FIELDS:
            value = empty_to_none(getattr(self, name))
            if value is not None:
                fields[name] = value
        work_type = normalize_work_type(self.work_type)
        if work_type is not None:
            fields["work_type"] = work_type.value
        if isinstance(self.is_protected, bool):
            fields["is_protected"] = self.is_protected
        return fields


@dataclass(frozen=True)
class Record:
    """A persisted minute.

    Invariants:
        - (owner_id, folio_serial) is unique
        - folio is the fixed-width rendering of folio_serial
    """

    id: str
    owner_id: str | None
    folio: str
    folio_serial: int
    date: date
    created_at: datetime | None = None
    description: str | None = None
    task_done: str | None = None
    notes: str | None = None
    work_type: WorkType | None = None
    is_protected: bool = False
    created_by_name: str | None = None
    created_by_email: str | None = None
    updated_at: datetime | None = None
    start_time: time | None = None
    end_time: time | None = None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> Record:
        """Build a Record from a row of any supported schema shape.

        The owner is read from user_id, else created_by, else None.
        Missing optional columns read as None/False. Stored work_type or
        time values outside what this code understands read as None.
        """
        owner: Any = None
        for candidate in OwnerColumn:
            name = candidate.column_name
            if name is not None and name in row:
                owner = row[name]
                break
        return cls(
            id=str(row["id"]),
            owner_id=None if owner is None else str(owner),
            folio=str(row["folio"]),
            folio_serial=int(row["folio_serial"]),
            date=coerce_date(row["date"]),  # type: ignore[arg-type]  # NOT NULL column
            created_at=_coerce_datetime(row.get("created_at")),
            description=row.get("description"),
            task_done=row.get("task_done"),
            notes=row.get("notes"),
            work_type=normalize_work_type(row.get("work_type")),
            is_protected=bool(row.get("is_protected") or False),
            created_by_name=row.get("created_by_name"),
            created_by_email=row.get("created_by_email"),
            updated_at=_coerce_datetime(row.get("updated_at")),
            start_time=_stored_time(row.get("start_time")),
            end_time=_stored_time(row.get("end_time")),
        )
