# tests/core/store/test_sequencer.py
"""Tests for the SQL sequencer implementations."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Any

import pytest
from sqlalchemy import text

from minutebook.contracts import FailureKind, WorkType
from minutebook.core.config import LEGACY_FUNCTION, PREFERRED_FUNCTION, MinutebookSettings, SequencerSettings
from minutebook.core.store import PostgresSequencer, RecordStoreDB, SqlSequencer, StoreFailure, make_sequencer


class TestSqlSequencerAssignment:
    def test_serials_increase_per_owner(self, store_db: RecordStoreDB) -> None:
        sequencer = SqlSequencer(store_db)

        records = [sequencer.invoke(PREFERRED_FUNCTION, "U1", {"task_done": f"t{i}"}) for i in range(3)]

        assert [r.folio_serial for r in records] == [1, 2, 3]
        assert [r.folio for r in records] == ["0001", "0002", "0003"]
        assert all(r.owner_id == "U1" for r in records)
        assert len({r.id for r in records}) == 3

    def test_owners_have_independent_sequences(self, store_db: RecordStoreDB) -> None:
        sequencer = SqlSequencer(store_db)

        sequencer.invoke(PREFERRED_FUNCTION, "U1", {})
        sequencer.invoke(PREFERRED_FUNCTION, "U1", {})
        other = sequencer.invoke(PREFERRED_FUNCTION, "U2", {})

        assert other.folio_serial == 1

    def test_continues_after_existing_max(self, store_db: RecordStoreDB) -> None:
        with store_db.connection() as conn:
            conn.execute(
                text(
                    "INSERT INTO records (id, user_id, folio, folio_serial, date, created_at) "
                    "VALUES ('seed', 'U1', '0041', 41, '2026-01-01', '2026-01-01 00:00:00')"
                )
            )

        record = SqlSequencer(store_db).invoke(PREFERRED_FUNCTION, "U1", {})

        assert record.folio_serial == 42
        assert record.folio == "0042"

    def test_business_fields_persisted(self, store_db: RecordStoreDB) -> None:
        record = SqlSequencer(store_db).invoke(
            LEGACY_FUNCTION,
            "U1",
            {
                "date": date(2026, 2, 3),
                "task_done": "Plotter calibration",
                "work_type": "gran_formato",
                "is_protected": True,
                "created_by_name": "Ana",
            },
        )

        assert record.date == date(2026, 2, 3)
        assert record.task_done == "Plotter calibration"
        assert record.work_type is WorkType.GRAN_FORMATO
        assert record.is_protected is True
        assert record.created_by_name == "Ana"
        assert record.created_at is not None

    def test_date_defaults_and_iso_strings(self, store_db: RecordStoreDB) -> None:
        sequencer = SqlSequencer(store_db)

        assert sequencer.invoke(PREFERRED_FUNCTION, "U1", {"date": "2026-05-06"}).date == date(2026, 5, 6)
        assert isinstance(sequencer.invoke(PREFERRED_FUNCTION, "U1", {}).date, date)

    def test_owner_argument_wins_over_payload(self, store_db: RecordStoreDB) -> None:
        record = SqlSequencer(store_db).invoke(PREFERRED_FUNCTION, "U1", {"user_id": "someone-else"})
        assert record.owner_id == "U1"

    def test_custom_width(self, store_db: RecordStoreDB) -> None:
        record = SqlSequencer(store_db, folio_width=6).invoke(PREFERRED_FUNCTION, "U1", {})
        assert record.folio == "000001"


class TestSqlSequencerFailures:
    def test_uninstalled_name(self, store_db: RecordStoreDB) -> None:
        sequencer = SqlSequencer(store_db, installed=(LEGACY_FUNCTION,))

        with pytest.raises(StoreFailure) as exc_info:
            sequencer.invoke(PREFERRED_FUNCTION, "U1", {})

        assert exc_info.value.kind is FailureKind.FUNCTION_NOT_FOUND
        assert exc_info.value.operation == PREFERRED_FUNCTION

    def test_unknown_column(self, legacy_db: RecordStoreDB) -> None:
        with pytest.raises(StoreFailure) as exc_info:
            SqlSequencer(legacy_db).invoke(PREFERRED_FUNCTION, "U1", {"description": "not in this schema"})

        assert exc_info.value.kind is FailureKind.UNDEFINED_COLUMN
        assert "description" in exc_info.value.detail

    def test_invalid_date(self, store_db: RecordStoreDB) -> None:
        with pytest.raises(StoreFailure) as exc_info:
            SqlSequencer(store_db).invoke(PREFERRED_FUNCTION, "U1", {"date": "someday"})

        assert exc_info.value.kind is FailureKind.VALIDATION

    def test_check_constraint(self, store_db: RecordStoreDB) -> None:
        with pytest.raises(StoreFailure) as exc_info:
            SqlSequencer(store_db).invoke(PREFERRED_FUNCTION, "U1", {"work_type": "serigrafia"})

        assert exc_info.value.kind is FailureKind.VALIDATION

    def test_failed_insert_consumes_no_serial(self, store_db: RecordStoreDB) -> None:
        sequencer = SqlSequencer(store_db)
        with pytest.raises(StoreFailure):
            sequencer.invoke(PREFERRED_FUNCTION, "U1", {"work_type": "serigrafia"})

        assert sequencer.invoke(PREFERRED_FUNCTION, "U1", {}).folio_serial == 1


class TestSqlSequencerSchemaShapes:
    def test_legacy_owner_column(self, legacy_db: RecordStoreDB) -> None:
        sequencer = SqlSequencer(legacy_db)

        first = sequencer.invoke(LEGACY_FUNCTION, "U1", {"task_done": "a"})
        second = sequencer.invoke(LEGACY_FUNCTION, "U1", {"task_done": "b"})

        assert (first.folio_serial, second.folio_serial) == (1, 2)
        assert second.owner_id == "U1"
        with legacy_db.connection() as conn:
            owners = conn.execute(text("SELECT DISTINCT created_by FROM records")).scalars().all()
        assert owners == ["U1"]

    def test_tenantless_schema_ignores_owner(self, tenantless_db: RecordStoreDB) -> None:
        sequencer = SqlSequencer(tenantless_db)

        first = sequencer.invoke(PREFERRED_FUNCTION, None, {"description": "x"})
        second = sequencer.invoke(PREFERRED_FUNCTION, None, {})

        assert (first.folio_serial, second.folio_serial) == (1, 2)
        assert second.owner_id is None


class TestMakeSequencer:
    def test_sqlite_gets_sql_sequencer(self, store_db: RecordStoreDB) -> None:
        settings = MinutebookSettings(sequencer=SequencerSettings(installed_functions=(LEGACY_FUNCTION,)))

        sequencer = make_sequencer(store_db, settings)

        assert isinstance(sequencer, SqlSequencer)
        assert sequencer.installed == frozenset({LEGACY_FUNCTION})


class _RecordingConnection:
    def __init__(self, row: dict[str, Any]) -> None:
        self.row = row
        self.statements: list[tuple[str, dict[str, Any]]] = []

    def execute(self, statement: Any, params: dict[str, Any]) -> "_RecordingConnection":
        self.statements.append((str(statement), params))
        return self

    def mappings(self) -> "_RecordingConnection":
        return self

    def one(self) -> dict[str, Any]:
        return self.row


class _FakePostgresDB:
    def __init__(self, row: dict[str, Any]) -> None:
        self.conn = _RecordingConnection(row)

    @contextmanager
    def connection(self) -> Iterator[_RecordingConnection]:
        yield self.conn


class TestPostgresSequencer:
    ROW = {"id": "f00d", "user_id": "U1", "folio": "0001", "folio_serial": 1, "date": date(2026, 1, 2)}

    def test_calls_function_with_json_payload(self) -> None:
        db = _FakePostgresDB(self.ROW)

        record = PostgresSequencer(db).invoke(  # type: ignore[arg-type]
            PREFERRED_FUNCTION, "U1", {"user_id": "U1", "date": date(2026, 1, 2), "task_done": "x"}
        )

        statement, params = db.conn.statements[0]
        assert statement == "SELECT * FROM assign_and_insert(:owner, CAST(:payload AS jsonb))"
        assert params["owner"] == "U1"
        assert json.loads(params["payload"]) == {"date": "2026-01-02", "task_done": "x"}
        assert record.folio == "0001"

    def test_rejects_non_identifier_names(self) -> None:
        db = _FakePostgresDB(self.ROW)

        with pytest.raises(ValueError, match="invalid function name"):
            PostgresSequencer(db).invoke("x(); DROP TABLE records; --", "U1", {})  # type: ignore[arg-type]

        assert db.conn.statements == []
