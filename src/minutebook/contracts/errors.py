"""Typed failures that cross the creation boundary.

Hierarchy:

    MinutebookError
    ├── CreationError            (carries a FailureKind)
    │   ├── TransientConflict    absorbed by the orchestrator, never surfaced
    │   ├── RetryExhausted       transient conflicts outlasted the attempt ceiling
    │   ├── SequencerUnavailable no candidate assignment function resolved
    │   ├── ValidationFailure    payload rejected by the store
    │   └── SequencerRejected    permission, ambiguous overload, or unknown
    ├── SchemaProbeFailure       probe read failed for a reason other than "absent"
    └── RecordNotFound           patch/get addressed a record that does not exist

The core performs no user-facing formatting; messages here are for logs.
"""

from collections.abc import Sequence

from minutebook.contracts.enums import FailureKind


class MinutebookError(Exception):
    """Base error for all Minutebook errors."""


class CreationError(MinutebookError):
    """A record creation did not produce a record.

    Attributes:
        kind: Classified failure kind of the underlying store error
    """

    def __init__(self, message: str, *, kind: FailureKind) -> None:
        super().__init__(message)
        self.kind = kind


class TransientConflict(CreationError):
    """Unique-constraint violation or serialization failure from the sequencer.

    Retried by the orchestrator; only ever observed by callers as the
    last_error of a RetryExhausted.
    """

    def __init__(self, message: str, *, kind: FailureKind = FailureKind.UNIQUE_VIOLATION) -> None:
        if not kind.is_transient:
            raise ValueError(f"TransientConflict requires a transient kind, got {kind!r}")
        super().__init__(message, kind=kind)


class RetryExhausted(CreationError):
    """Transient conflicts persisted past the attempt ceiling.

    Distinct from TransientConflict so callers can tell that retries happened
    and the system gave up.

    Attributes:
        attempts: Total sequencer invocations made (including the first)
        last_error: The final TransientConflict; its kind is the underlying conflict
    """

    def __init__(self, attempts: int, last_error: TransientConflict) -> None:
        super().__init__(
            f"Folio assignment still conflicting after {attempts} attempts; try again later",
            kind=FailureKind.RETRY_EXHAUSTED,
        )
        self.attempts = attempts
        self.last_error = last_error


class SequencerUnavailable(CreationError):
    """Neither the preferred nor the fallback assignment function resolved.

    Indicates a deployment/migration mismatch, not a data problem.

    Attributes:
        tried: Function names attempted, in order
    """

    def __init__(self, tried: Sequence[str]) -> None:
        self.tried = tuple(tried)
        super().__init__(
            f"No folio assignment function available (tried: {', '.join(self.tried)})",
            kind=FailureKind.FUNCTION_NOT_FOUND,
        )


class ValidationFailure(CreationError):
    """The store rejected the payload for business-rule reasons."""

    def __init__(self, message: str, *, kind: FailureKind = FailureKind.VALIDATION) -> None:
        super().__init__(message, kind=kind)


class SequencerRejected(CreationError):
    """Terminal store failure that is neither validation nor a missing function.

    Covers permission errors, ambiguous function overloads, and anything the
    classifier could not place.
    """


class SchemaProbeFailure(MinutebookError):
    """A schema probe read errored for a reason other than "column absent".

    Never propagates out of SchemaProbe: it is logged as a warning and the
    column is treated as absent.

    Attributes:
        column: Column that was being probed
        kind: Classified failure kind of the probe error
    """

    def __init__(self, column: str, kind: FailureKind, detail: str) -> None:
        self.column = column
        self.kind = kind
        self.detail = detail
        super().__init__(f"Schema probe for column '{column}' failed ({kind}): {detail}")


class RecordNotFound(MinutebookError):
    """No record exists with the given id."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")
