# src/minutebook/engine/orchestrator.py
"""CreationOrchestrator: the single entry point for creating records.

Flow for create_record(owner_id, draft):

1. Shape the payload against the live schema (SchemaProbe): keep populated
   business fields, drop optional columns the schema lacks, attach the
   owner under whichever owner column exists.
2. Invoke the sequencer under the first candidate function name.
3. FUNCTION_NOT_FOUND before any name has answered: move to the next
   candidate immediately. No backoff, no attempt consumed.
4. UNIQUE_VIOLATION / SERIALIZATION_FAILURE: back off and retry (RetryManager)
   under the resolved name, up to the attempt ceiling.
5. Anything else is terminal and raised at once as a typed CreationError.

The resolved name lives only as long as one create_record call. The next
call starts again from the preferred name, so a deployment that installs
the preferred function mid-flight is picked up without a restart.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from minutebook.contracts.enums import FailureKind
from minutebook.contracts.errors import (
    CreationError,
    RetryExhausted,
    SequencerRejected,
    SequencerUnavailable,
    TransientConflict,
    ValidationFailure,
)
from minutebook.contracts.records import OPTIONAL_COLUMNS, Record, RecordDraft
from minutebook.core.config import LEGACY_FUNCTION, PREFERRED_FUNCTION
from minutebook.core.logging import get_logger, log_context
from minutebook.core.store.classify import StoreFailure
from minutebook.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager

if TYPE_CHECKING:
    from collections.abc import Callable

    from minutebook.core.config import MinutebookSettings
    from minutebook.core.store.database import RecordStoreDB
    from minutebook.core.store.probe import SchemaProbeProtocol
    from minutebook.core.store.sequencer import SequencerGateway

logger = get_logger(__name__)

_VALIDATION_KINDS = frozenset({FailureKind.VALIDATION, FailureKind.UNDEFINED_COLUMN})


class _NameChain:
    """Candidate function names for one create_record call.

    Advances only while no name has answered. Once any call under a name
    returns something other than FUNCTION_NOT_FOUND, that name is resolved
    for the rest of the chain.
    """

    def __init__(self, names: Sequence[str]) -> None:
        self._names = tuple(names)
        self._index = 0
        self.resolved = False

    @property
    def current(self) -> str:
        return self._names[self._index]

    @property
    def tried(self) -> tuple[str, ...]:
        return self._names[: self._index + 1]

    def advance(self) -> str | None:
        """Move to the next candidate; None when the list is exhausted."""
        if self._index + 1 >= len(self._names):
            return None
        self._index += 1
        return self._names[self._index]


def to_creation_error(failure: StoreFailure) -> CreationError:
    """Map a classified store failure to the error callers see.

    FUNCTION_NOT_FOUND is handled by the name chain and never reaches here.
    """
    if failure.kind.is_transient:
        return TransientConflict(failure.detail, kind=failure.kind)
    if failure.kind in _VALIDATION_KINDS:
        return ValidationFailure(failure.detail, kind=failure.kind)
    return SequencerRejected(failure.detail, kind=failure.kind)


class CreationOrchestrator:
    """Creates records with per-owner folios, tolerating contention and schema drift.

    Stateless between calls apart from the probe's memo; safe to share
    across threads.

    Example:
        orchestrator = build_orchestrator(settings, db)
        record = orchestrator.create_record("U1", RecordDraft(task_done="Plotter calibration"))
        record.folio  # "0001"
    """

    def __init__(
        self,
        probe: "SchemaProbeProtocol",
        gateway: "SequencerGateway",
        retry_config: RetryConfig | None = None,
        *,
        function_names: Sequence[str] = (PREFERRED_FUNCTION, LEGACY_FUNCTION),
        sleep: "Callable[[float], None] | None" = None,
    ) -> None:
        """Initialize.

        Args:
            probe: Schema capability probe (shared, memoized)
            gateway: Sequencer to invoke
            retry_config: Backoff for transient conflicts (defaults: 5 attempts, 150ms base)
            function_names: Candidate sequencer names, preferred first
            sleep: Backoff sleep (injectable for testing)
        """
        if not function_names:
            raise ValueError("at least one sequencer function name is required")
        self._probe = probe
        self._gateway = gateway
        self._function_names = tuple(function_names)
        self._retry = RetryManager(retry_config or RetryConfig(), sleep=sleep)

    @property
    def function_names(self) -> tuple[str, ...]:
        return self._function_names

    def shape_payload(self, owner_id: str | None, draft: RecordDraft) -> tuple[str | None, dict[str, Any]]:
        """Build the sequencer payload for the live schema.

        Returns:
            (owner to pass to the sequencer, payload). The owner is None in
            single-tenant mode, whatever the caller supplied.

        Raises:
            ValidationFailure: If the draft's date is not a valid date
        """
        payload = {
            name: value
            for name, value in draft.to_fields().items()
            if name not in OPTIONAL_COLUMNS or self._probe.has_optional_column(name)
        }
        owner_column = self._probe.detect_owner_column().column_name
        if owner_column is None:
            return None, payload
        payload[owner_column] = owner_id
        return owner_id, payload

    def create_record(self, owner_id: str | None, draft: RecordDraft) -> Record:
        """Create one record and assign its folio.

        Raises:
            RetryExhausted: Transient conflicts outlasted the attempt ceiling
            SequencerUnavailable: No candidate function name exists
            ValidationFailure: The store rejected the payload
            SequencerRejected: Permission, ambiguous overload, or unclassified failure
        """
        owner, payload = self.shape_payload(owner_id, draft)
        with log_context(owner_id=owner):
            return self._create(owner, payload)

    def _create(self, owner: str | None, payload: dict[str, Any]) -> Record:
        chain = _NameChain(self._function_names)

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            logger.info(
                "creation_retry",
                function=chain.current,
                attempt=attempt,
                delay_seconds=round(delay, 3),
                kind=getattr(error, "kind", None),
            )

        try:
            record = self._retry.execute_with_retry(
                lambda: self._invoke(chain, owner, payload),
                is_retryable=lambda e: isinstance(e, TransientConflict),
                on_retry=on_retry,
            )
        except MaxRetriesExceeded as exc:
            last_error = exc.last_error
            assert isinstance(last_error, TransientConflict), "only TransientConflict is retried"
            logger.warning(
                "creation_retry_exhausted",
                function=chain.current,
                attempts=exc.attempts,
                kind=last_error.kind,
            )
            raise RetryExhausted(exc.attempts, last_error) from last_error

        logger.info(
            "record_created",
            record_id=record.id,
            folio=record.folio,
            function=chain.current,
        )
        return record

    def _invoke(self, chain: _NameChain, owner: str | None, payload: dict[str, Any]) -> Record:
        """One retry attempt: call the sequencer, walking the name chain if needed."""
        while True:
            name = chain.current
            try:
                record = self._gateway.invoke(name, owner, payload)
            except StoreFailure as failure:
                if failure.kind is not FailureKind.FUNCTION_NOT_FOUND:
                    chain.resolved = True
                    raise to_creation_error(failure) from failure
                if chain.resolved:
                    # The resolved function vanished mid-chain
                    raise SequencerUnavailable(chain.tried) from failure
                fallback = chain.advance()
                if fallback is None:
                    raise SequencerUnavailable(chain.tried) from failure
                logger.warning("sequencer_fallback", missing=name, fallback=fallback)
                continue
            chain.resolved = True
            return record


def build_orchestrator(
    settings: "MinutebookSettings",
    db: "RecordStoreDB",
    *,
    probe: "SchemaProbeProtocol | None" = None,
) -> CreationOrchestrator:
    """Wire an orchestrator from settings: probe, backend sequencer, retry config."""
    from minutebook.core.store.probe import SchemaProbe
    from minutebook.core.store.sequencer import make_sequencer

    return CreationOrchestrator(
        probe if probe is not None else SchemaProbe(db),
        make_sequencer(db, settings),
        RetryConfig.from_settings(settings.retry),
        function_names=settings.sequencer.function_names,
    )
