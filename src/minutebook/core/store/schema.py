# src/minutebook/core/store/schema.py
"""SQLAlchemy table definitions for the record store.

Uses SQLAlchemy Core (not ORM) for explicit control over queries
and compatibility with multiple database backends.

This is the canonical schema that RecordStoreDB creates. Live deployments
may differ (an owner column named created_by, optional columns missing);
code that writes records must go through the SchemaProbe rather than
assume this shape.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Time,
    Table,
    Text,
    UniqueConstraint,
    false,
)

from minutebook.contracts.enums import WorkType

RECORDS_TABLE = "records"

# Shared metadata for all tables
metadata = MetaData()

_WORK_TYPES = ", ".join(f"'{w.value}'" for w in WorkType)

records_table = Table(
    RECORDS_TABLE,
    metadata,
    Column("id", String(32), primary_key=True),
    # Nullable: single-tenant deployments create records without an owner
    Column("user_id", String(64)),
    Column("folio", String(16), nullable=False),
    Column("folio_serial", Integer, nullable=False),
    Column("date", Date, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True)),
    Column("description", Text),
    Column("task_done", Text),
    Column("notes", Text),
    Column("work_type", String(32)),
    Column("is_protected", Boolean, nullable=False, server_default=false()),
    Column("created_by_name", String(256)),
    Column("created_by_email", String(256)),
    # Wall-clock times of day, stamped by start/stop
    Column("start_time", Time),
    Column("end_time", Time),
    # One serial per owner; the sequencer's lock makes collisions rare,
    # this constraint makes them impossible.
    UniqueConstraint("user_id", "folio_serial", name="uq_records_owner_folio_serial"),
    CheckConstraint("folio_serial >= 1", name="ck_records_folio_serial_positive"),
    CheckConstraint(f"work_type IS NULL OR work_type IN ({_WORK_TYPES})", name="ck_records_work_type"),
    Index("ix_records_owner_date", "user_id", "date"),
)
