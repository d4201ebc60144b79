"""Streaming inserts with per-row failure reporting."""

import dataclasses
import logging
import secrets
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field

from warehouse_client.codec import encode_generic, encode_row
from warehouse_client.errors import EncodeError, ErrorKind, ErrorProto, SchemaError, WarehouseError
from warehouse_client.protocols import Transport, ValueSaver
from warehouse_client.schema import infer_schema, is_struct_type
from warehouse_client.types.params import ClientParams
from warehouse_client.types.references import TableRef
from warehouse_client.types.rpc import HttpMethod, RpcRequest
from warehouse_client.types.values import Schema

logger = logging.getLogger(__name__)

NO_DEDUPE_ID = "NoDedupeID"
"""Insert id that turns off the service's best-effort deduplication for a
row, trading possible duplicates for higher throughput."""


class StructSaver(BaseModel, frozen=True, arbitrary_types_allowed=True, populate_by_name=True):
    """A row-type instance paired with an explicit schema and insert id."""

    struct: Any
    """Dataclass instance, pydantic model or mapping holding the values."""

    schema_: Schema | None = Field(default=None, alias="schema")
    """Schema to encode against; inferred from the struct's type when None."""

    insert_id: str | None = None

    def save(self) -> tuple[Mapping[str, object], str | None]:
        schema = self.schema_
        if schema is None:
            schema = infer_schema(type(self.struct))
        return encode_row(schema, self.struct), self.insert_id


class RowInsertionError(BaseModel, frozen=True):
    """Why a single row of a `put` was rejected."""

    row_index: int
    """Position of the row in the sequence passed to `put`."""

    insert_id: str | None = None
    errors: tuple[ErrorProto, ...] = ()

    def __str__(self) -> str:
        detail = "; ".join(str(e) for e in self.errors) or "unknown error"
        return f"row {self.row_index}: {detail}"


class RowShape(StrEnum):
    """How a row passed to `put` is turned into its wire form."""

    SAVER = "saver"
    STRUCT_SAVER = "struct_saver"
    STRUCT = "struct"
    MAPPING = "mapping"


def row_shape(row: object) -> RowShape:
    if isinstance(row, StructSaver):
        return RowShape.STRUCT_SAVER
    if isinstance(row, ValueSaver):
        return RowShape.SAVER
    if is_struct_type(type(row)):
        return RowShape.STRUCT
    if isinstance(row, Mapping):
        return RowShape.MAPPING
    msg = f"cannot insert a row of type {type(row).__name__}"
    raise EncodeError(msg)


class _Prepared(NamedTuple):
    index: int
    insert_id: str | None
    json: Mapping[str, object]


def _encode(shape: RowShape, row: Any) -> tuple[Mapping[str, object], str | None]:
    match shape:
        case RowShape.SAVER:
            values, insert_id = row.save()
            return {str(k): encode_generic(v) for k, v in values.items()}, insert_id
        case RowShape.STRUCT_SAVER:
            return row.save()
        case RowShape.STRUCT:
            return encode_row(infer_schema(type(row)), row), None
        case RowShape.MAPPING:
            return {str(k): encode_generic(v) for k, v in row.items()}, None


def _single_row(rows: object) -> bool:
    return (
        isinstance(rows, (Mapping, BaseModel, ValueSaver))
        or (dataclasses.is_dataclass(rows) and not isinstance(rows, type))
        or not isinstance(rows, Sequence)
    )


def _batch_position(entry: Mapping[str, object], size: int) -> int:
    """Row index of an `insertErrors` entry, checked against the batch size."""
    raw = entry.get("index")
    try:
        position = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        msg = f"insert error entry has no usable row index: {raw!r}"
        raise WarehouseError(msg, kind=ErrorKind.DECODE, source=e) from e
    if not 0 <= position < size:
        msg = f"insert error for row index {position} outside a batch of {size} rows"
        raise WarehouseError(msg, kind=ErrorKind.DECODE)
    return position


class Inserter:
    """Streams rows into a table.

    Rows are sent in batches; a batch RPC failure fails the whole call, but
    rows the service (or local encoding) rejects are reported individually
    and do not stop the others.
    """

    def __init__(self, transport: Transport, params: ClientParams, table: TableRef) -> None:
        self._transport = transport
        self._params = params
        self.table = table
        # Insert the valid rows of a batch even if some rows are invalid.
        self.skip_invalid_rows = False
        # Drop values for columns the table lacks instead of rejecting the row.
        self.ignore_unknown_values = False
        # Insert into `<table><suffix>`, created on demand from this table.
        self.table_template_suffix = ""
        self.batch_size = params.insert_batch_size

    def _prepare(self, rows: Sequence[object]) -> tuple[list[_Prepared], list[RowInsertionError]]:
        prepared: list[_Prepared] = []
        failed: list[RowInsertionError] = []
        for index, row in enumerate(rows):
            try:
                json, insert_id = _encode(row_shape(row), row)
            except (EncodeError, SchemaError) as e:
                proto = ErrorProto(reason="invalid", message=e.message)
                failed.append(RowInsertionError(row_index=index, errors=(proto,)))
                continue
            if insert_id is None:
                insert_id = secrets.token_urlsafe(16)
            prepared.append(_Prepared(index, insert_id, json))
        return prepared, failed

    def _request(self, batch: Sequence[_Prepared]) -> RpcRequest:
        wire_rows: list[dict[str, object]] = []
        for p in batch:
            wire: dict[str, object] = {"json": dict(p.json)}
            if p.insert_id != NO_DEDUPE_ID:
                wire["insertId"] = p.insert_id
            wire_rows.append(wire)
        body: dict[str, object] = {
            "rows": wire_rows,
            "skipInvalidRows": self.skip_invalid_rows,
            "ignoreUnknownValues": self.ignore_unknown_values,
        }
        if self.table_template_suffix:
            body["templateSuffix"] = self.table_template_suffix
        t = self.table
        return RpcRequest(
            method=HttpMethod.POST,
            path=f"projects/{t.project_id}/datasets/{t.dataset_id}/tables/{t.table_id}/insertAll",
            body=body,
        )

    async def put(self, rows: object) -> list[RowInsertionError]:
        """Insert one row or a sequence of rows.

        Accepts `ValueSaver` implementations, `StructSaver`s, dataclass or
        pydantic instances (schema inferred) and plain mappings. Returns the
        rejected rows, ordered by position; an empty list means every row
        was accepted.
        """
        batch_rows: Sequence[object] = [rows] if _single_row(rows) else rows  # type: ignore[list-item]
        prepared, failed = self._prepare(batch_rows)
        for start in range(0, len(prepared), self.batch_size):
            batch = prepared[start : start + self.batch_size]
            request = self._request(batch)
            logger.debug("%s (%d rows)", request, len(batch))
            response = await self._transport.execute(request)
            for entry in response.get("insertErrors") or []:
                p = batch[_batch_position(entry, len(batch))]  # type: ignore[arg-type]
                failed.append(
                    RowInsertionError(
                        row_index=p.index,
                        insert_id=None if p.insert_id == NO_DEDUPE_ID else p.insert_id,
                        errors=tuple(ErrorProto.from_api(e) for e in entry.get("errors") or []),  # type: ignore[union-attr]
                    )
                )
        failed.sort(key=lambda e: e.row_index)
        return failed
