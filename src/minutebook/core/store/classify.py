# src/minutebook/core/store/classify.py
"""Store error classification.

Every exception raised by a store call is classified exactly once, here,
into a closed FailureKind. Everything downstream switches on the kind.

PostgreSQL errors are classified by SQLSTATE (psycopg 3 exposes it as
``sqlstate``, psycopg2 as ``pgcode``). SQLite errors are classified by the
extended result code name (``sqlite_errorname``); SQLite reports a missing
column only as a generic SQLITE_ERROR, so that single case falls back to
the message text.
"""

from sqlalchemy.exc import DBAPIError

from minutebook.contracts.enums import FailureKind

_SQLSTATE_KINDS: dict[str, FailureKind] = {
    "23505": FailureKind.UNIQUE_VIOLATION,
    "40001": FailureKind.SERIALIZATION_FAILURE,
    "40P01": FailureKind.SERIALIZATION_FAILURE,  # deadlock_detected
    "55P03": FailureKind.SERIALIZATION_FAILURE,  # lock_not_available
    "42883": FailureKind.FUNCTION_NOT_FOUND,
    "42725": FailureKind.AMBIGUOUS_FUNCTION,
    "42703": FailureKind.UNDEFINED_COLUMN,
    "23502": FailureKind.VALIDATION,  # not_null_violation
    "23503": FailureKind.VALIDATION,  # foreign_key_violation
    "23514": FailureKind.VALIDATION,  # check_violation
    "42501": FailureKind.PERMISSION,
}

_SQLITE_KINDS: dict[str, FailureKind] = {
    "SQLITE_CONSTRAINT_UNIQUE": FailureKind.UNIQUE_VIOLATION,
    "SQLITE_CONSTRAINT_PRIMARYKEY": FailureKind.UNIQUE_VIOLATION,
    "SQLITE_CONSTRAINT_NOTNULL": FailureKind.VALIDATION,
    "SQLITE_CONSTRAINT_CHECK": FailureKind.VALIDATION,
    "SQLITE_CONSTRAINT_FOREIGNKEY": FailureKind.VALIDATION,
    "SQLITE_MISMATCH": FailureKind.VALIDATION,
    "SQLITE_TOOBIG": FailureKind.VALIDATION,
    "SQLITE_AUTH": FailureKind.PERMISSION,
    "SQLITE_PERM": FailureKind.PERMISSION,
}

_SQLITE_PREFIX_KINDS: tuple[tuple[str, FailureKind], ...] = (
    ("SQLITE_BUSY", FailureKind.SERIALIZATION_FAILURE),
    ("SQLITE_LOCKED", FailureKind.SERIALIZATION_FAILURE),
    ("SQLITE_READONLY", FailureKind.PERMISSION),
)


class StoreFailure(Exception):
    """A store call failed; the single exception type gateways raise.

    Attributes:
        kind: Classified failure kind
        operation: What was being attempted (function name, "probe:<column>", ...)
        detail: Driver message, for logs only
    """

    def __init__(self, kind: FailureKind, operation: str, detail: str) -> None:
        self.kind = kind
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed ({kind}): {detail}")

    @classmethod
    def from_exception(cls, exc: BaseException, operation: str) -> "StoreFailure":
        """Classify exc and wrap it."""
        detail = str(exc.orig) if isinstance(exc, DBAPIError) and exc.orig is not None else str(exc)
        return cls(classify_store_error(exc), operation, detail)


def _sqlstate(orig: BaseException) -> str | None:
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code if isinstance(code, str) else None


def _classify_sqlite(orig: BaseException, errorname: str) -> FailureKind:
    kind = _SQLITE_KINDS.get(errorname)
    if kind is not None:
        return kind
    for prefix, prefixed_kind in _SQLITE_PREFIX_KINDS:
        if errorname.startswith(prefix):
            return prefixed_kind
    if errorname == "SQLITE_ERROR" and "no such column" in str(orig).lower():
        return FailureKind.UNDEFINED_COLUMN
    return FailureKind.UNKNOWN


def classify_store_error(exc: BaseException) -> FailureKind:
    """Map a store exception to its FailureKind.

    Non-DBAPI exceptions, and DBAPI exceptions without a recognised code,
    are UNKNOWN (terminal).
    """
    if isinstance(exc, StoreFailure):
        return exc.kind
    if not isinstance(exc, DBAPIError) or exc.orig is None:
        return FailureKind.UNKNOWN
    orig = exc.orig

    sqlstate = _sqlstate(orig)
    if sqlstate is not None:
        kind = _SQLSTATE_KINDS.get(sqlstate)
        if kind is not None:
            return kind
        if sqlstate.startswith("22"):  # data_exception class
            return FailureKind.VALIDATION
        return FailureKind.UNKNOWN

    errorname = getattr(orig, "sqlite_errorname", None)
    if isinstance(errorname, str):
        return _classify_sqlite(orig, errorname)
    return FailureKind.UNKNOWN
