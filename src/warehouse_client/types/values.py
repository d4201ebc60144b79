"""Value model for the warehouse wire format.

These types describe what flows between the client and the service:
- `FieldType` and `Mode` enumerate column types and cardinalities
- `FieldSchema` and `Schema` describe a (possibly nested) row layout
- `Null*` wrappers express per-column nullability on native row types
"""

import datetime
from decimal import Decimal
from enum import StrEnum
from typing import ClassVar, NewType, Self

from pydantic import BaseModel, Field, model_validator

from warehouse_client.errors import SchemaError

# JSON-compatible value type, as carried by JSON columns.
type JsonValue = str | int | float | bool | None | list["JsonValue"] | dict[str, "JsonValue"]

# A decoded cell: scalar, repeated (list) or record (dict, or list in schema order).
type Value = (
    None
    | bool
    | int
    | float
    | str
    | bytes
    | Decimal
    | datetime.datetime
    | datetime.date
    | datetime.time
    | list["Value"]
    | dict[str, "Value"]
)

CivilDateTime = NewType("CivilDateTime", datetime.datetime)
"""A wall-clock date and time with no time zone (DATETIME column)."""


class FieldType(StrEnum):
    """Column types understood by the service."""

    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    TIMESTAMP = "TIMESTAMP"
    DATE = "DATE"
    TIME = "TIME"
    DATETIME = "DATETIME"
    BYTES = "BYTES"
    NUMERIC = "NUMERIC"
    GEOGRAPHY = "GEOGRAPHY"
    JSON = "JSON"
    RECORD = "RECORD"

    @classmethod
    def from_api(cls, name: str) -> "FieldType":
        """Resolve a type name, including the service's legacy aliases."""
        return cls(_TYPE_ALIASES.get(name.upper(), name.upper()))


_TYPE_ALIASES = {
    "INT64": "INTEGER",
    "FLOAT64": "FLOAT",
    "BOOL": "BOOLEAN",
    "STRUCT": "RECORD",
    "BIGNUMERIC": "NUMERIC",
}


class Mode(StrEnum):
    """Column cardinality."""

    NULLABLE = "NULLABLE"
    REQUIRED = "REQUIRED"
    REPEATED = "REPEATED"


def _check_unique(fields: tuple["FieldSchema", ...]) -> None:
    seen: dict[str, str] = {}
    for f in fields:
        key = f.name.lower()
        if key in seen:
            msg = f"duplicate field name {f.name!r} (conflicts with {seen[key]!r})"
            raise SchemaError(msg)
        seen[key] = f.name


class FieldSchema(BaseModel, frozen=True):
    """A single column description."""

    name: str
    """Column name."""

    type: FieldType
    """Wire type of the column (element type when repeated)."""

    mode: Mode = Mode.NULLABLE
    """Cardinality; the service treats an absent mode as NULLABLE."""

    description: str = ""
    """Free-form column description."""

    fields: tuple["FieldSchema", ...] = Field(default=())
    """Nested columns; only populated for RECORD columns."""

    @model_validator(mode="after")
    def _check_nesting(self) -> Self:
        if self.type is FieldType.RECORD and not self.fields:
            msg = f"RECORD field {self.name!r} must have nested fields"
            raise SchemaError(msg)
        if self.type is not FieldType.RECORD and self.fields:
            msg = f"{self.type} field {self.name!r} cannot have nested fields"
            raise SchemaError(msg)
        _check_unique(self.fields)
        return self

    @property
    def repeated(self) -> bool:
        return self.mode is Mode.REPEATED

    @property
    def required(self) -> bool:
        return self.mode is Mode.REQUIRED

    @property
    def nested_schema(self) -> "Schema":
        """Nested schema of a RECORD column."""
        return Schema(fields=self.fields)

    def to_api(self) -> dict[str, object]:
        out: dict[str, object] = {"name": self.name, "type": str(self.type), "mode": str(self.mode)}
        if self.description:
            out["description"] = self.description
        if self.fields:
            out["fields"] = [f.to_api() for f in self.fields]
        return out

    @classmethod
    def from_api(cls, payload: dict[str, object]) -> Self:
        nested = payload.get("fields") or []
        return cls(
            name=str(payload["name"]),
            type=FieldType.from_api(str(payload["type"])),
            mode=Mode(str(payload.get("mode") or Mode.NULLABLE).upper()),
            description=str(payload.get("description") or ""),
            fields=tuple(cls.from_api(f) for f in nested),  # type: ignore[arg-type]
        )


class Schema(BaseModel, frozen=True):
    """Ordered column layout of a table or result set.

    Field names are unique, compared case-insensitively.
    """

    fields: tuple[FieldSchema, ...] = ()

    @model_validator(mode="after")
    def _check_names(self) -> Self:
        _check_unique(self.fields)
        return self

    def __len__(self) -> int:
        return len(self.fields)

    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    def index(self, name: str) -> int:
        """Position of the named column; exact match first, then case-insensitive."""
        for i, f in enumerate(self.fields):
            if f.name == name:
                return i
        lowered = name.lower()
        for i, f in enumerate(self.fields):
            if f.name.lower() == lowered:
                return i
        raise KeyError(name)

    def field(self, name: str) -> FieldSchema:
        return self.fields[self.index(name)]

    def to_api(self) -> dict[str, object]:
        return {"fields": [f.to_api() for f in self.fields]}

    @classmethod
    def from_api(cls, payload: dict[str, object] | None) -> Self:
        if not payload:
            return cls()
        raw = payload.get("fields") or []
        return cls(fields=tuple(FieldSchema.from_api(f) for f in raw))  # type: ignore[union-attr]


class NullValue(BaseModel, frozen=True):
    """A scalar that may be NULL.

    `valid` is False for NULL, in which case `value` holds the type's zero
    value and is ignored on the wire.
    """

    field_type: ClassVar[FieldType]

    valid: bool = False
    """Whether the value is non-NULL."""

    value: object = None

    @classmethod
    def of(cls, value: object) -> Self:
        """Wrap a present value."""
        return cls(valid=True, value=value)

    @classmethod
    def null(cls) -> Self:
        return cls()

    def __str__(self) -> str:
        return str(self.value) if self.valid else "NULL"


class NullInt64(NullValue, frozen=True):
    """INTEGER that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.INTEGER
    value: int = 0


class NullFloat64(NullValue, frozen=True):
    """FLOAT that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.FLOAT
    value: float = 0.0


class NullBool(NullValue, frozen=True):
    """BOOLEAN that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.BOOLEAN
    value: bool = False


class NullString(NullValue, frozen=True):
    """STRING that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.STRING
    value: str = ""


class NullGeography(NullValue, frozen=True):
    """GEOGRAPHY (well-known text) that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.GEOGRAPHY
    value: str = ""


class NullJSON(NullValue, frozen=True):
    """JSON document that may be NULL (distinct from a JSON `null` literal)."""

    field_type: ClassVar[FieldType] = FieldType.JSON
    value: JsonValue = None


class NullTimestamp(NullValue, frozen=True):
    """TIMESTAMP that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.TIMESTAMP
    value: datetime.datetime | None = None


class NullDate(NullValue, frozen=True):
    """DATE that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.DATE
    value: datetime.date | None = None


class NullTime(NullValue, frozen=True):
    """TIME that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.TIME
    value: datetime.time | None = None


class NullDateTime(NullValue, frozen=True):
    """DATETIME (civil, no zone) that may be NULL."""

    field_type: ClassVar[FieldType] = FieldType.DATETIME
    value: datetime.datetime | None = None


NULL_TYPES: tuple[type[NullValue], ...] = (
    NullInt64,
    NullFloat64,
    NullBool,
    NullString,
    NullGeography,
    NullJSON,
    NullTimestamp,
    NullDate,
    NullTime,
    NullDateTime,
)
