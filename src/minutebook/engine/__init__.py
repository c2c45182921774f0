# src/minutebook/engine/__init__.py
"""Record creation engine.

Exports:
- CreationOrchestrator / build_orchestrator: create records with per-owner folios
- RetryManager, RetryConfig, MaxRetriesExceeded: bounded backoff for transient conflicts
"""

from minutebook.engine.orchestrator import CreationOrchestrator, build_orchestrator, to_creation_error
from minutebook.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager

__all__ = [
    "CreationOrchestrator",
    "MaxRetriesExceeded",
    "RetryConfig",
    "RetryManager",
    "build_orchestrator",
    "to_creation_error",
]
