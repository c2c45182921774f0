"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes are NOT re-exported here - import them from
minutebook.core.config.
"""

from minutebook.contracts.enums import FailureKind, FolioSource, OwnerColumn, WorkType
from minutebook.contracts.errors import (
    CreationError,
    MinutebookError,
    RecordNotFound,
    RetryExhausted,
    SchemaProbeFailure,
    SequencerRejected,
    SequencerUnavailable,
    TransientConflict,
    ValidationFailure,
)
from minutebook.contracts.records import (
    OPTIONAL_COLUMNS,
    PROTECTED_COLUMNS,
    TIME_FIELDS,
    Record,
    RecordDraft,
    coerce_time,
    empty_to_none,
    normalize_work_type,
)

__all__ = [
    "OPTIONAL_COLUMNS",
    "PROTECTED_COLUMNS",
    "TIME_FIELDS",
    "CreationError",
    "FailureKind",
    "FolioSource",
    "MinutebookError",
    "OwnerColumn",
    "Record",
    "RecordDraft",
    "RecordNotFound",
    "RetryExhausted",
    "SchemaProbeFailure",
    "SequencerRejected",
    "SequencerUnavailable",
    "TransientConflict",
    "ValidationFailure",
    "WorkType",
    "coerce_time",
    "empty_to_none",
    "normalize_work_type",
]
