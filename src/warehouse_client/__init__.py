"""Client library for an asynchronous tabular-data warehouse service."""

from warehouse_client.backoff import Backoff
from warehouse_client.client import Client, Dataset, Table
from warehouse_client.codec import decode, encode_row
from warehouse_client.errors import (
    CancellationError,
    DecodeError,
    EncodeError,
    ErrorKind,
    ErrorProto,
    JobError,
    SchemaError,
    TransportError,
    WarehouseError,
)
from warehouse_client.inserter import NO_DEDUPE_ID, Inserter, RowInsertionError, StructSaver
from warehouse_client.iterator import RowIterator
from warehouse_client.jobs import Job, JobStatistics, JobState, JobStatus
from warehouse_client.operations import Copier, Extractor, Loader
from warehouse_client.protocols import Transport, ValueLoader, ValueSaver
from warehouse_client.query import Query, QueryParameter
from warehouse_client.schema import Column, infer_schema

__all__ = [
    "NO_DEDUPE_ID",
    "Backoff",
    "CancellationError",
    "Client",
    "Column",
    "Copier",
    "Dataset",
    "DecodeError",
    "EncodeError",
    "ErrorKind",
    "ErrorProto",
    "Extractor",
    "Inserter",
    "Job",
    "JobError",
    "JobState",
    "JobStatistics",
    "JobStatus",
    "Loader",
    "Query",
    "QueryParameter",
    "RowInsertionError",
    "RowIterator",
    "SchemaError",
    "StructSaver",
    "Table",
    "Transport",
    "TransportError",
    "ValueLoader",
    "ValueSaver",
    "WarehouseError",
    "decode",
    "encode_row",
    "infer_schema",
]
