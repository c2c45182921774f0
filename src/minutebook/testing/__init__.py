# src/minutebook/testing/__init__.py
"""Test infrastructure for Minutebook.

Factories for constructing production types with sensible defaults, and
in-process doubles for the store-side collaborators of the orchestrator.
When a backbone type's constructor changes, update the factory here.

Usage:
    from minutebook.testing import InMemorySequencer, FixedSchemaProbe, make_orchestrator
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from minutebook.contracts.records import RecordDraft
from minutebook.engine.orchestrator import CreationOrchestrator
from minutebook.engine.retry import RetryConfig
from minutebook.testing.doubles import FixedSchemaProbe, InMemorySequencer, SequencerCall

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from minutebook.core.store.probe import SchemaProbeProtocol
    from minutebook.core.store.sequencer import SequencerGateway


def make_draft(**overrides: Any) -> RecordDraft:
    """RecordDraft with a task description filled in."""
    fields: dict[str, Any] = {"task_done": "Plotter calibration"}
    fields.update(overrides)
    return RecordDraft(**fields)


def fast_retry(max_attempts: int = 5) -> RetryConfig:
    """Retry config with millisecond delays, for tests that really sleep."""
    return RetryConfig(max_attempts=max_attempts, base_delay=0.001, max_delay=0.01, jitter=0.001)


def make_orchestrator(
    gateway: SequencerGateway | None = None,
    probe: SchemaProbeProtocol | None = None,
    *,
    retry_config: RetryConfig | None = None,
    function_names: Sequence[str] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> CreationOrchestrator:
    """CreationOrchestrator over in-memory doubles unless collaborators are given."""
    kwargs: dict[str, Any] = {"sleep": sleep}
    if function_names is not None:
        kwargs["function_names"] = function_names
    return CreationOrchestrator(
        probe if probe is not None else FixedSchemaProbe(),
        gateway if gateway is not None else InMemorySequencer(),
        retry_config if retry_config is not None else fast_retry(),
        **kwargs,
    )


__all__ = [
    "FixedSchemaProbe",
    "InMemorySequencer",
    "SequencerCall",
    "fast_retry",
    "make_draft",
    "make_orchestrator",
]
