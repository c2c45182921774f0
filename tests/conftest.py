# tests/conftest.py
"""Shared test fixtures.

Store fixtures:
- store_db: in-memory SQLite with the canonical schema (single-threaded tests)
- file_db: file-backed SQLite with the canonical schema (threaded tests;
  every pooled connection to ":memory:" would be a separate database)
- legacy_db: file-backed SQLite shaped like an older deployment: owner
  column named created_by, optional business columns missing
- tenantless_db: file-backed SQLite with no owner column at all

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import logging
import os
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from minutebook.core.store import RecordStoreDB
from minutebook.testing import InMemorySequencer


# =============================================================================
# Logging Cleanup Fixture
# =============================================================================


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo configure_logging() after each test.

    configure_logging() binds a handler to the sys.stderr of the moment,
    which under capsys is a capture stream that is closed after the test.
    Later tests logging through that handler would write to a closed file.
    """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


LEGACY_DDL = """
CREATE TABLE records (
    id VARCHAR(32) PRIMARY KEY,
    created_by VARCHAR(64),
    folio VARCHAR(16) NOT NULL,
    folio_serial INTEGER NOT NULL,
    date DATE NOT NULL,
    created_at TIMESTAMP,
    task_done TEXT,
    notes TEXT,
    UNIQUE (created_by, folio_serial)
)
"""

TENANTLESS_DDL = """
CREATE TABLE records (
    id VARCHAR(32) PRIMARY KEY,
    folio VARCHAR(16) NOT NULL,
    folio_serial INTEGER NOT NULL UNIQUE,
    date DATE NOT NULL,
    task_done TEXT,
    description TEXT
)
"""


def make_db_from_ddl(path: Path, ddl: str) -> RecordStoreDB:
    """File-backed store whose records table is created from raw DDL."""
    db = RecordStoreDB(f"sqlite:///{path}", create_tables=False)
    with db.connection() as conn:
        conn.exec_driver_sql(ddl)
    return db


@pytest.fixture
def store_db() -> Iterator[RecordStoreDB]:
    db = RecordStoreDB.in_memory()
    yield db
    db.close()


@pytest.fixture
def file_db(tmp_path: Path) -> Iterator[RecordStoreDB]:
    db = RecordStoreDB(f"sqlite:///{tmp_path / 'records.db'}")
    yield db
    db.close()


@pytest.fixture
def legacy_db(tmp_path: Path) -> Iterator[RecordStoreDB]:
    db = make_db_from_ddl(tmp_path / "legacy.db", LEGACY_DDL)
    yield db
    db.close()


@pytest.fixture
def tenantless_db(tmp_path: Path) -> Iterator[RecordStoreDB]:
    db = make_db_from_ddl(tmp_path / "tenantless.db", TENANTLESS_DDL)
    yield db
    db.close()


@pytest.fixture
def sequencer() -> InMemorySequencer:
    return InMemorySequencer()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
