"""Record store: connection management, schema, sequencer, and probes."""

from minutebook.core.store.classify import StoreFailure, classify_store_error
from minutebook.core.store.database import RecordStoreDB
from minutebook.core.store.probe import SchemaFacts, SchemaProbe, SchemaProbeProtocol
from minutebook.core.store.repository import RecordRepository
from minutebook.core.store.schema import RECORDS_TABLE, metadata, records_table
from minutebook.core.store.sequencer import (
    PostgresSequencer,
    SequencerGateway,
    SqlSequencer,
    make_sequencer,
)
from minutebook.core.store.sequencer_ddl import sequencer_function_ddl

__all__ = [
    "RECORDS_TABLE",
    "PostgresSequencer",
    "RecordRepository",
    "RecordStoreDB",
    "SchemaFacts",
    "SchemaProbe",
    "SchemaProbeProtocol",
    "SequencerGateway",
    "SqlSequencer",
    "StoreFailure",
    "classify_store_error",
    "make_sequencer",
    "metadata",
    "records_table",
    "sequencer_function_ddl",
]
