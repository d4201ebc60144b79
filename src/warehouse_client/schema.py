"""Schema inference from native row types.

Dataclasses and pydantic models are both accepted as row types. Column
names, exclusion and nullability can be adjusted per field with a `Column`
marker inside `Annotated`:

    @dataclass
    class Student:
        name: Annotated[str, Column(name="full_name")]
        grades: list[int]
        secret: Annotated[str, Column(ignore=True)]
        photo: Annotated[bytes | None, Column(nullable=True)]
"""

import dataclasses
import datetime
import functools
import types
from collections.abc import Sequence
from decimal import Decimal
from typing import Annotated, Any, NamedTuple, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from warehouse_client.errors import SchemaError
from warehouse_client.types.values import (
    CivilDateTime,
    FieldSchema,
    FieldType,
    Mode,
    NullValue,
    Schema,
)


class Column(BaseModel, frozen=True):
    """Per-field inference overrides."""

    name: str | None = None
    """Wire name to use instead of the attribute name."""

    ignore: bool = False
    """Leave the field out of the schema entirely."""

    nullable: bool = False
    """Force NULLABLE mode; required for optional structs, bytes and decimals."""

    description: str = ""


class StructField(NamedTuple):
    """A public attribute of a row type and the column it maps to."""

    attr: str
    column: str
    annotation: Any


_SEQUENCE_ORIGINS = (list, tuple, Sequence)

_SCALARS: dict[Any, FieldType] = {
    bool: FieldType.BOOLEAN,
    int: FieldType.INTEGER,
    float: FieldType.FLOAT,
    str: FieldType.STRING,
    Decimal: FieldType.NUMERIC,
    datetime.datetime: FieldType.TIMESTAMP,
    datetime.date: FieldType.DATE,
    datetime.time: FieldType.TIME,
    CivilDateTime: FieldType.DATETIME,
}


def is_struct_type(tp: object) -> bool:
    """Whether `tp` is a row type whose fields can be walked."""
    if not isinstance(tp, type):
        return False
    if issubclass(tp, NullValue):
        return False
    return dataclasses.is_dataclass(tp) or issubclass(tp, BaseModel)


def _column_marker(annotation: Any) -> tuple[Any, Column]:
    """Strip `Annotated` and return the bare type with its `Column` marker."""
    if get_origin(annotation) is Annotated:
        bare, *extras = get_args(annotation)
        for extra in extras:
            if isinstance(extra, Column):
                return bare, extra
        return bare, Column()
    return annotation, Column()


def _declared_names(tp: type) -> list[str]:
    if dataclasses.is_dataclass(tp):
        return [f.name for f in dataclasses.fields(tp)]
    return list(tp.model_fields)  # type: ignore[attr-defined]


@functools.cache
def struct_fields(tp: type) -> tuple[StructField, ...]:
    """Public fields of a row type in declaration order, with wire names.

    Ignored fields are omitted; `Annotated` wrappers are kept on the
    returned annotations so callers can re-read the markers.
    """
    try:
        hints = get_type_hints(tp, include_extras=True)
    except NameError as e:
        msg = f"cannot resolve field types of {tp.__name__}: {e}"
        raise SchemaError(msg, source=e) from e

    out: list[StructField] = []
    for attr in _declared_names(tp):
        if attr.startswith("_"):
            continue
        annotation = hints[attr]
        _, marker = _column_marker(annotation)
        if marker.ignore:
            continue
        out.append(StructField(attr, marker.name or attr, annotation))
    return tuple(out)


def _optional_inner(tp: Any) -> Any | None:
    """Return X for `X | None`, or None when `tp` is not optional."""
    if get_origin(tp) not in (Union, types.UnionType):
        return None
    args = [a for a in get_args(tp) if a is not type(None)]
    if len(args) != 1 or len(get_args(tp)) != 2:  # noqa: PLR2004
        msg = f"unsupported union type {tp!r}"
        raise SchemaError(msg)
    return args[0]


def _sequence_element(tp: Any) -> Any | None:
    """Return the element type of a homogeneous sequence annotation."""
    origin = get_origin(tp)
    if origin not in _SEQUENCE_ORIGINS:
        return None
    args = get_args(tp)
    if origin is tuple:
        if len(args) != 2 or args[1] is not Ellipsis:  # noqa: PLR2004
            msg = f"only variadic tuples (tuple[T, ...]) are supported, got {tp!r}"
            raise SchemaError(msg)
        return args[0]
    if not args:
        msg = f"sequence type {tp!r} has no element type"
        raise SchemaError(msg)
    return args[0]


class _Inferrer:
    def __init__(self) -> None:
        self._active: list[type] = []

    def schema(self, tp: type) -> Schema:
        if tp in self._active:
            chain = " -> ".join(t.__name__ for t in [*self._active, tp])
            msg = f"recursive type cannot be inferred: {chain}"
            raise SchemaError(msg)
        self._active.append(tp)
        try:
            fields = tuple(self.field(f.column, f.annotation) for f in struct_fields(tp))
        finally:
            self._active.pop()
        if not fields:
            msg = f"type {tp.__name__} has no public fields"
            raise SchemaError(msg)
        return Schema(fields=fields)

    def field(self, name: str, annotation: Any) -> FieldSchema:
        tp, marker = _column_marker(annotation)
        ftype, mode, nested = self._resolve(name, tp, marker)
        return FieldSchema(
            name=name,
            type=ftype,
            mode=mode,
            description=marker.description,
            fields=nested,
        )

    def _resolve(
        self, name: str, tp: Any, marker: Column
    ) -> tuple[FieldType, Mode, tuple[FieldSchema, ...]]:
        inner = _optional_inner(tp)
        if inner is not None:
            if not marker.nullable:
                msg = (
                    f"field {name!r}: optional types need Column(nullable=True); "
                    "use a Null* wrapper for optional scalars"
                )
                raise SchemaError(msg)
            ftype, mode, nested = self._resolve(name, inner, Column())
            if mode is Mode.REPEATED:
                msg = f"field {name!r}: repeated fields cannot be nullable"
                raise SchemaError(msg)
            return ftype, Mode.NULLABLE, nested

        if isinstance(tp, type) and issubclass(tp, NullValue):
            return tp.field_type, Mode.NULLABLE, ()

        if tp in (bytes, bytearray):
            return FieldType.BYTES, Mode.NULLABLE, ()

        element = _sequence_element(tp)
        if element is not None:
            if marker.nullable:
                msg = f"field {name!r}: repeated fields cannot be nullable"
                raise SchemaError(msg)
            ftype, mode, nested = self._resolve(name, _column_marker(element)[0], Column())
            if mode is Mode.REPEATED:
                msg = f"field {name!r}: nested repeated fields are not supported"
                raise SchemaError(msg)
            if mode is Mode.NULLABLE and ftype is not FieldType.BYTES:
                msg = f"field {name!r}: repeated elements cannot be nullable"
                raise SchemaError(msg)
            return ftype, Mode.REPEATED, nested

        mode = Mode.NULLABLE if marker.nullable else Mode.REQUIRED
        if tp in _SCALARS:
            return _SCALARS[tp], mode, ()

        if is_struct_type(tp):
            return FieldType.RECORD, mode, self.schema(tp).fields

        msg = f"field {name!r}: no column type for {tp!r}"
        raise SchemaError(msg)


@functools.cache
def infer_schema(tp: type) -> Schema:
    """Derive a schema from a dataclass or pydantic model type.

    Walks public fields in declaration order. Raises `SchemaError` for
    unmappable field types, recursive types and duplicate column names.
    """
    if not is_struct_type(tp):
        msg = f"cannot infer a schema from {tp!r}: expected a dataclass or pydantic model"
        raise SchemaError(msg)
    return _Inferrer().schema(tp)
