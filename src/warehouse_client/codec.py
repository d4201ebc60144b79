"""Conversion between native values and the service's wire values.

Decoding accepts result-page rows (`{"f": [{"v": ...}, ...]}`) as well as
plain column mappings, and produces one of three shapes: a list in schema
order, a dict keyed by column name, or an instance of a row type.
Encoding produces the JSON object sent for one row of a streaming insert.
"""

import base64
import binascii
import dataclasses
import datetime
import json
import math
import types
from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError

from warehouse_client.errors import DecodeError, EncodeError
from warehouse_client.protocols import ValueLoader
from warehouse_client.schema import infer_schema, is_struct_type, struct_fields
from warehouse_client.types.values import (
    CivilDateTime,
    FieldSchema,
    FieldType,
    Mode,
    NullValue,
    Schema,
    Value,
)

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.UTC)
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


# Decoding: wire -> positional values


def _is_page_row(row: object) -> bool:
    """Whether `row` is a result-page row: exactly `{"f": [{"v": ...}, ...]}`."""
    if not (isinstance(row, Mapping) and set(row) == {"f"} and isinstance(row["f"], list)):
        return False
    return all(isinstance(c, Mapping) and set(c) == {"v"} for c in row["f"])


def _cells(row: object, schema: Schema) -> list[object]:
    """Raw cell values of a row, in schema order."""
    if _is_page_row(row):
        cells = [c["v"] for c in row["f"]]  # type: ignore[index]
        if len(cells) != len(schema):
            msg = f"row has {len(cells)} cells, schema has {len(schema)} fields"
            raise DecodeError(msg)
        return cells
    if isinstance(row, Mapping):
        return [row.get(f.name) for f in schema.fields]
    if isinstance(row, Sequence) and not isinstance(row, (str, bytes)):
        if len(row) != len(schema):
            msg = f"row has {len(row)} values, schema has {len(schema)} fields"
            raise DecodeError(msg)
        return list(row)
    msg = f"cannot decode row of type {type(row).__name__}"
    raise DecodeError(msg)


def _unwrap(cell: object) -> object:
    if isinstance(cell, Mapping) and set(cell) == {"v"}:
        return cell["v"]
    return cell


def _parse_timestamp(raw: object) -> datetime.datetime:
    if isinstance(raw, datetime.datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=datetime.UTC)
    text = str(raw)
    if ":" in text or text[4:5] == "-":
        ts = datetime.datetime.fromisoformat(text.replace(" UTC", "+00:00"))
        return ts if ts.tzinfo else ts.replace(tzinfo=datetime.UTC)
    if text.lstrip("-").isdigit():
        micros = int(text)
    else:
        # Float seconds; go through Decimal so sub-second digits are kept.
        micros = int((Decimal(text) * 1_000_000).to_integral_value())
    return _EPOCH + datetime.timedelta(microseconds=micros)


def _parse_scalar(ftype: FieldType, raw: object) -> Value:  # noqa: PLR0911
    match ftype:
        case FieldType.STRING | FieldType.GEOGRAPHY:
            return str(raw)
        case FieldType.INTEGER:
            if isinstance(raw, bool):
                msg = f"expected an integer, got boolean {raw!r}"
                raise ValueError(msg)
            if isinstance(raw, float) and not raw.is_integer():
                msg = f"{raw!r} is not a whole number"
                raise ValueError(msg)
            if isinstance(raw, Decimal) and raw != raw.to_integral_value():
                msg = f"{raw!r} is not a whole number"
                raise ValueError(msg)
            value = int(raw)  # type: ignore[call-overload]
            if not _INT64_MIN <= value <= _INT64_MAX:
                msg = f"integer {value} out of 64-bit range"
                raise ValueError(msg)
            return value
        case FieldType.FLOAT:
            return float(raw)  # type: ignore[arg-type]
        case FieldType.BOOLEAN:
            if isinstance(raw, bool):
                return raw
            text = str(raw).lower()
            if text not in ("true", "false"):
                msg = f"invalid boolean {raw!r}"
                raise ValueError(msg)
            return text == "true"
        case FieldType.TIMESTAMP:
            return _parse_timestamp(raw)
        case FieldType.DATE:
            return datetime.date.fromisoformat(str(raw))
        case FieldType.TIME:
            return datetime.time.fromisoformat(str(raw))
        case FieldType.DATETIME:
            return datetime.datetime.fromisoformat(str(raw))
        case FieldType.BYTES:
            if isinstance(raw, bytes):
                return raw
            return base64.b64decode(str(raw), validate=True)
        case FieldType.NUMERIC:
            return Decimal(str(raw))
        case FieldType.JSON:
            return json.loads(raw) if isinstance(raw, str) else raw  # type: ignore[return-value]
        case _:
            msg = f"unsupported scalar type {ftype}"
            raise ValueError(msg)


def _decode_value(field: FieldSchema, raw: object) -> Value:
    if field.type is FieldType.RECORD:
        return decode_row(field.nested_schema, raw)  # type: ignore[return-value]
    try:
        return _parse_scalar(field.type, raw)
    except (ValueError, TypeError, OverflowError, InvalidOperation, binascii.Error) as e:
        msg = f"field {field.name!r}: cannot decode {raw!r} as {field.type}: {e}"
        raise DecodeError(msg, source=e) from e


def decode_cell(field: FieldSchema, cell: object) -> Value:
    """Decode one cell. NULL becomes None, or an empty list when repeated."""
    cell = _unwrap(cell)
    if field.repeated:
        if cell is None:
            return []
        if not isinstance(cell, list):
            msg = f"field {field.name!r}: expected a list for a repeated field, got {cell!r}"
            raise DecodeError(msg)
        return [_decode_value(field, _unwrap(elem)) for elem in cell]
    if cell is None:
        return None
    return _decode_value(field, cell)


def decode_row(schema: Schema, row: object) -> list[Value]:
    """Decode a wire row into values in schema order; records become lists."""
    return [decode_cell(f, c) for f, c in zip(schema.fields, _cells(row, schema), strict=True)]


# Decoding: positional values -> requested shape


def _as_dict(schema: Schema, values: list[Value]) -> dict[str, Value]:
    out: dict[str, Value] = {}
    for f, v in zip(schema.fields, values, strict=True):
        if f.type is FieldType.RECORD and v is not None:
            if f.repeated:
                v = [_as_dict(f.nested_schema, elem) for elem in v]  # type: ignore[union-attr, arg-type]
            else:
                v = _as_dict(f.nested_schema, v)  # type: ignore[arg-type]
        out[f.name] = v
    return out


def _strip_annotated(tp: Any) -> Any:
    return get_args(tp)[0] if get_origin(tp) is Annotated else tp


def _check_scalar(tp: Any, value: Value, column: str) -> Value:
    if tp is Any or tp is object or (not isinstance(tp, type) and tp is not CivilDateTime):
        return value
    if tp is CivilDateTime:
        tp = datetime.datetime
    if tp is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if tp is int and isinstance(value, bool):
        ok = False
    elif tp is datetime.date and isinstance(value, datetime.datetime):
        ok = False
    else:
        ok = isinstance(tp, type) and isinstance(value, tp)
    if not ok:
        msg = f"column {column!r}: cannot assign {type(value).__name__} to {tp!r}"
        raise DecodeError(msg)
    return value


def _to_native(tp: Any, field: FieldSchema, value: Value) -> object:  # noqa: PLR0911
    tp = _strip_annotated(tp)
    origin = get_origin(tp)

    if origin in (Union, types.UnionType):
        if value is None:
            return None
        inner = next(a for a in get_args(tp) if a is not type(None))
        return _to_native(inner, field, value)

    if isinstance(tp, type) and issubclass(tp, NullValue):
        if value is None:
            return tp()
        try:
            return tp.of(value)
        except ValidationError as e:
            msg = f"column {field.name!r}: {value!r} does not fit {tp.__name__}"
            raise DecodeError(msg, source=e) from e

    if origin in (list, tuple, Sequence):
        if value is None:
            value = []
        if not isinstance(value, list):
            msg = f"column {field.name!r}: cannot assign a single value to {tp!r}"
            raise DecodeError(msg)
        element = get_args(tp)[0] if get_args(tp) else Any
        single = field.model_copy(update={"mode": Mode.NULLABLE})
        items = [_to_native(element, single, v) for v in value]
        return tuple(items) if origin is tuple else items

    if value is None and tp in (bytes, bytearray):
        return tp()

    if value is None:
        msg = f"column {field.name!r}: NULL cannot be assigned to {tp!r}; use a Null* wrapper"
        raise DecodeError(msg)

    if is_struct_type(tp):
        if field.type is not FieldType.RECORD:
            msg = f"column {field.name!r}: cannot assign {field.type} to {tp.__name__}"
            raise DecodeError(msg)
        return to_struct(tp, field.nested_schema, value)  # type: ignore[arg-type]

    return _check_scalar(tp, value, field.name)


def to_struct[T](tp: type[T], schema: Schema, values: list[Value]) -> T:
    """Build a row-type instance from positional values.

    Columns are matched to attributes by wire name, exact first and then
    case-insensitively. Attributes with no matching column keep their
    defaults; columns with no matching attribute are dropped.
    """
    kwargs: dict[str, object] = {}
    for sf in struct_fields(tp):
        try:
            i = schema.index(sf.column)
        except KeyError:
            continue
        kwargs[sf.attr] = _to_native(sf.annotation, schema.fields[i], values[i])
    try:
        return tp(**kwargs)
    except (TypeError, ValidationError) as e:
        msg = f"cannot build {tp.__name__} from row: {e}"
        raise DecodeError(msg, source=e) from e


def decode(schema: Schema, row: object, into: Any = list) -> Any:
    """Decode a wire row into the requested shape.

    `into` is `list` (values in schema order), `dict` (column name to
    value), a dataclass or pydantic model type, or a `ValueLoader` class.
    """
    values = decode_row(schema, row)
    if into is list:
        return values
    if into is dict:
        return _as_dict(schema, values)
    if isinstance(into, type) and isinstance(into, ValueLoader):
        return into.load(values, schema)
    if is_struct_type(into):
        return to_struct(into, schema, values)
    msg = f"cannot decode rows into {into!r}"
    raise DecodeError(msg)


# Encoding: native -> insert JSON


def _encode_float(value: object) -> object:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"expected a number, got {value!r}"
        raise TypeError(msg)
    f = float(value)
    if math.isnan(f):
        return "NaN"
    if math.isinf(f):
        return "Infinity" if f > 0 else "-Infinity"
    return f


def _expect[T](value: object, tp: type[T]) -> T:
    if not isinstance(value, tp):
        msg = f"expected {tp.__name__}, got {type(value).__name__}"
        raise TypeError(msg)
    return value


def _encode_scalar(ftype: FieldType, value: object) -> object:  # noqa: PLR0911
    match ftype:
        case FieldType.STRING | FieldType.GEOGRAPHY:
            return _expect(value, str)
        case FieldType.INTEGER:
            if isinstance(value, bool):
                msg = "expected int, got bool"
                raise TypeError(msg)
            return _expect(value, int)
        case FieldType.FLOAT:
            return _encode_float(value)
        case FieldType.BOOLEAN:
            return _expect(value, bool)
        case FieldType.TIMESTAMP:
            ts = _expect(value, datetime.datetime)
            if ts.tzinfo is None:
                msg = "TIMESTAMP values need a time zone"
                raise TypeError(msg)
            return ts.astimezone(datetime.UTC).isoformat()
        case FieldType.DATE:
            if isinstance(value, datetime.datetime):
                msg = "expected date, got datetime"
                raise TypeError(msg)
            return _expect(value, datetime.date).isoformat()
        case FieldType.TIME:
            return _expect(value, datetime.time).isoformat()
        case FieldType.DATETIME:
            dt = _expect(value, datetime.datetime)
            if dt.tzinfo is not None:
                msg = "DATETIME values must not carry a time zone"
                raise TypeError(msg)
            return dt.isoformat()
        case FieldType.BYTES:
            if not isinstance(value, (bytes, bytearray)):
                msg = f"expected bytes, got {type(value).__name__}"
                raise TypeError(msg)
            return base64.b64encode(bytes(value)).decode("ascii")
        case FieldType.NUMERIC:
            if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
                msg = f"expected Decimal, got {type(value).__name__}"
                raise TypeError(msg)
            return str(value)
        case FieldType.JSON:
            return value if isinstance(value, str) else json.dumps(value, separators=(",", ":"))
        case _:
            msg = f"unsupported scalar type {ftype}"
            raise TypeError(msg)


def _lookup(obj: object, name: str) -> tuple[bool, object]:
    """Find the value for a column on a mapping or row-type instance."""
    if isinstance(obj, Mapping):
        if name in obj:
            return True, obj[name]
        lowered = name.lower()
        for key, value in obj.items():
            if isinstance(key, str) and key.lower() == lowered:
                return True, value
        return False, None
    if not is_struct_type(type(obj)):
        msg = f"cannot read columns from {type(obj).__name__}"
        raise EncodeError(msg)
    fields = struct_fields(type(obj))
    for sf in fields:
        if sf.column == name:
            return True, getattr(obj, sf.attr)
    lowered = name.lower()
    for sf in fields:
        if sf.column.lower() == lowered:
            return True, getattr(obj, sf.attr)
    return False, None


def _encode_one(field: FieldSchema, value: object) -> object:
    if isinstance(value, NullValue):
        value = value.value if value.valid else None
        if value is None:
            return None
    if field.type is FieldType.RECORD:
        if not (isinstance(value, Mapping) or is_struct_type(type(value))):
            msg = f"field {field.name!r}: expected a record, got {type(value).__name__}"
            raise EncodeError(msg)
        return encode_row(field.nested_schema, value)
    try:
        return _encode_scalar(field.type, value)
    except TypeError as e:
        msg = f"field {field.name!r} ({field.type}): {e}"
        raise EncodeError(msg, source=e) from e


def encode_value(field: FieldSchema, value: object) -> object:
    """Encode one column value; NULL encodes to None."""
    if isinstance(value, NullValue) and not value.valid:
        value = None
    if field.repeated:
        if value is None:
            return []
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence):
            msg = f"field {field.name!r}: repeated field needs a sequence, got {type(value).__name__}"
            raise EncodeError(msg)
        out = []
        for elem in value:
            if elem is None:
                msg = f"field {field.name!r}: repeated fields cannot contain NULL"
                raise EncodeError(msg)
            out.append(_encode_one(field, elem))
        return out
    if value is None:
        if field.required:
            msg = f"field {field.name!r}: NULL value for required field"
            raise EncodeError(msg)
        return None
    return _encode_one(field, value)


def encode_row(schema: Schema, obj: object) -> dict[str, object]:
    """Encode a row-type instance or mapping against a schema.

    Columns missing from `obj` are sent as NULL when nullable; a missing
    required column is an error.
    """
    out: dict[str, object] = {}
    for f in schema.fields:
        found, value = _lookup(obj, f.name)
        if not found and f.required:
            msg = f"missing required field {f.name!r}"
            raise EncodeError(msg)
        out[f.name] = encode_value(f, value)
    return out


def encode_generic(value: object) -> object:  # noqa: PLR0911
    """Best-effort JSON conversion for rows that come without a schema."""
    if isinstance(value, NullValue):
        return encode_generic(value.value) if value.valid else None
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return _encode_float(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, datetime.datetime):
        return _encode_scalar(FieldType.TIMESTAMP if value.tzinfo else FieldType.DATETIME, value)
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): encode_generic(v) for k, v in value.items()}
    if isinstance(value, BaseModel) or dataclasses.is_dataclass(value):
        return encode_row(infer_schema(type(value)), value)
    if isinstance(value, Sequence):
        return [encode_generic(v) for v in value]
    msg = f"cannot encode value of type {type(value).__name__}"
    raise EncodeError(msg)
