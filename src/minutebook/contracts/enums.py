"""All status codes, modes, and kinds used across subsystem boundaries.

FailureKind is a CLOSED set. Store errors are classified into exactly one
kind at the store-call boundary, and every later decision (retry, fall back,
surface) switches on the kind rather than re-reading driver messages.
"""

from enum import StrEnum


class FailureKind(StrEnum):
    """Classification of a failed store call.

    Produced once by classify_store_error() and carried by StoreFailure
    and CreationError.
    """

    UNIQUE_VIOLATION = "unique_violation"
    SERIALIZATION_FAILURE = "serialization_failure"
    FUNCTION_NOT_FOUND = "function_not_found"
    AMBIGUOUS_FUNCTION = "ambiguous_function"
    UNDEFINED_COLUMN = "undefined_column"
    VALIDATION = "validation"
    PERMISSION = "permission"
    UNKNOWN = "unknown"
    # Never produced by classification: the orchestrator's give-up tag
    RETRY_EXHAUSTED = "retry_exhausted"

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same call shortly after may succeed."""
        return self in _TRANSIENT_KINDS


_TRANSIENT_KINDS = frozenset({FailureKind.UNIQUE_VIOLATION, FailureKind.SERIALIZATION_FAILURE})


class OwnerColumn(StrEnum):
    """Name of the owner column in the live records table.

    Probed in declaration order; NONE means the schema has no owner column
    and records are created in single-tenant mode.
    """

    USER_ID = "user_id"
    CREATED_BY = "created_by"
    NONE = "none"

    @property
    def column_name(self) -> str | None:
        """Column name to write, or None in single-tenant mode."""
        if self is OwnerColumn.NONE:
            return None
        return self.value


class WorkType(StrEnum):
    """Category of work a minute records.

    Stored in the database (records.work_type), guarded by a CHECK constraint.
    """

    GRAN_FORMATO = "gran_formato"
    PUBLICOMERCIAL = "publicomercial"
    EDITORIAL = "editorial"
    EMPAQUES = "empaques"


class FolioSource(StrEnum):
    """Which attribute a displayed folio was derived from."""

    FOLIO = "folio"
    FOLIO_SERIAL = "folio_serial"
    ID = "id"
