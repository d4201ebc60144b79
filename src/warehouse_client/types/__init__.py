"""Data types shared across the client.

Values describe rows and schemas, params carry configuration, references
name service-side resources, and rpc describes calls handed to a transport.
"""

from warehouse_client.types.params import (
    BackoffParams,
    ClientParams,
    CopyOperation,
    CreateDisposition,
    JobKind,
    QueryPriority,
    SchemaUpdateOption,
    WriteDisposition,
)
from warehouse_client.types.references import (
    Compression,
    DataFormat,
    DatasetRef,
    GCSReference,
    JobRef,
    TableRef,
)
from warehouse_client.types.rpc import HttpMethod, RpcRequest
from warehouse_client.types.values import (
    NULL_TYPES,
    CivilDateTime,
    FieldSchema,
    FieldType,
    JsonValue,
    Mode,
    NullBool,
    NullDate,
    NullDateTime,
    NullFloat64,
    NullGeography,
    NullInt64,
    NullJSON,
    NullString,
    NullTime,
    NullTimestamp,
    NullValue,
    Schema,
    Value,
)

__all__ = [
    # Params (configuration)
    "BackoffParams",
    "ClientParams",
    "CopyOperation",
    "CreateDisposition",
    "JobKind",
    "QueryPriority",
    "SchemaUpdateOption",
    "WriteDisposition",
    # References
    "Compression",
    "DataFormat",
    "DatasetRef",
    "GCSReference",
    "JobRef",
    "TableRef",
    # RPC descriptors
    "HttpMethod",
    "RpcRequest",
    # Values
    "NULL_TYPES",
    "CivilDateTime",
    "FieldSchema",
    "FieldType",
    "JsonValue",
    "Mode",
    "NullBool",
    "NullDate",
    "NullDateTime",
    "NullFloat64",
    "NullGeography",
    "NullInt64",
    "NullJSON",
    "NullString",
    "NullTime",
    "NullTimestamp",
    "NullValue",
    "Schema",
    "Value",
]
