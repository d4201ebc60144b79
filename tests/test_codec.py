"""Tests for row decoding and insert encoding."""

import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated

import pytest

from warehouse_client import Column, DecodeError, EncodeError, decode, encode_row, infer_schema
from warehouse_client.codec import decode_cell, encode_generic
from warehouse_client.types import (
    CivilDateTime,
    FieldSchema,
    FieldType,
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
    Schema,
)

GRADES = Schema(
    fields=(
        FieldSchema(name="name", type=FieldType.STRING, mode=Mode.REQUIRED),
        FieldSchema(name="grades", type=FieldType.INTEGER, mode=Mode.REPEATED),
    )
)


@dataclass
class Grades:
    name: str
    grades: list[int]


@dataclass
class Tagged:
    name: Annotated[str, Column(name="full_name")]
    count: NullInt64
    note: NullString


@dataclass
class Inner:
    x: int


@dataclass
class Outer:
    label: str
    inner: Inner
    inners: list[Inner]


@dataclass
class Price:
    amount: Decimal


class Pair:
    def __init__(self, a: object, b: object) -> None:
        self.a = a
        self.b = b

    @classmethod
    def load(cls, values, schema):
        return cls(*values)


def test_encode_then_decode_to_dict():
    row = {"name": "a", "grades": [1, 2, 3]}

    encoded = encode_row(GRADES, row)

    assert encoded == {"name": "a", "grades": [1, 2, 3]}
    assert decode(GRADES, encoded, dict) == row


def test_decode_result_page_row_shapes():
    row = {"f": [{"v": "a"}, {"v": [{"v": "1"}, {"v": "2"}]}]}

    assert decode(GRADES, row) == ["a", [1, 2]]
    assert decode(GRADES, row, dict) == {"name": "a", "grades": [1, 2]}
    assert decode(GRADES, row, Grades) == Grades(name="a", grades=[1, 2])


def test_decode_into_value_loader():
    schema = Schema(
        fields=(
            FieldSchema(name="a", type=FieldType.INTEGER),
            FieldSchema(name="b", type=FieldType.BOOLEAN),
        )
    )

    pair = decode(schema, {"f": [{"v": "7"}, {"v": "true"}]}, Pair)

    assert isinstance(pair, Pair)
    assert (pair.a, pair.b) == (7, True)


def test_null_cells():
    nullable = FieldSchema(name="n", type=FieldType.INTEGER)
    repeated = FieldSchema(name="r", type=FieldType.INTEGER, mode=Mode.REPEATED)

    assert decode_cell(nullable, {"v": None}) is None
    assert decode_cell(repeated, {"v": None}) == []


def test_null_into_wrapper_and_back():
    schema = infer_schema(Tagged)
    row = {"f": [{"v": "ann"}, {"v": None}, {"v": "hi"}]}

    tagged = decode(schema, row, Tagged)

    assert tagged.name == "ann"
    assert tagged.count == NullInt64()
    assert not tagged.count.valid
    assert tagged.note == NullString.of("hi")
    assert encode_row(schema, tagged) == {"full_name": "ann", "count": None, "note": "hi"}


def test_null_into_plain_field_is_rejected():
    with pytest.raises(DecodeError, match="NULL cannot be assigned"):
        decode(GRADES, {"f": [{"v": None}, {"v": []}]}, Grades)


def test_nested_records_decode():
    schema = infer_schema(Outer)
    row = {
        "f": [
            {"v": "top"},
            {"v": {"f": [{"v": "1"}]}},
            {"v": [{"v": {"f": [{"v": "2"}]}}, {"v": {"f": [{"v": "3"}]}}]},
        ]
    }

    assert decode(schema, row) == ["top", [1], [[2], [3]]]
    assert decode(schema, row, dict) == {"label": "top", "inner": {"x": 1}, "inners": [{"x": 2}, {"x": 3}]}
    assert decode(schema, row, Outer) == Outer(label="top", inner=Inner(1), inners=[Inner(2), Inner(3)])


def test_nested_records_encode():
    schema = infer_schema(Outer)
    value = Outer(label="top", inner=Inner(1), inners=[Inner(2)])

    assert encode_row(schema, value) == {"label": "top", "inner": {"x": 1}, "inners": [{"x": 2}]}


@pytest.mark.parametrize(
    "raw",
    ["1700000000000000", "1.7E9", "2023-11-14T22:13:20+00:00", "2023-11-14 22:13:20 UTC"],
)
def test_timestamp_forms(raw):
    field = FieldSchema(name="ts", type=FieldType.TIMESTAMP)

    value = decode_cell(field, raw)

    assert value == datetime.datetime(2023, 11, 14, 22, 13, 20, tzinfo=datetime.UTC)


def test_scalar_decoding():
    schema = Schema(
        fields=(
            FieldSchema(name="b", type=FieldType.BYTES),
            FieldSchema(name="n", type=FieldType.NUMERIC),
            FieldSchema(name="d", type=FieldType.DATE),
            FieldSchema(name="j", type=FieldType.JSON),
            FieldSchema(name="f", type=FieldType.FLOAT),
        )
    )
    row = {"f": [{"v": "aGk="}, {"v": "1.25"}, {"v": "2024-02-29"}, {"v": '{"a":[1]}'}, {"v": "NaN"}]}

    b, n, d, j, f = decode(schema, row)

    assert b == b"hi"
    assert n == Decimal("1.25")
    assert d == datetime.date(2024, 2, 29)
    assert j == {"a": [1]}
    assert f != f


def test_integer_out_of_range_is_rejected():
    field = FieldSchema(name="i", type=FieldType.INTEGER)

    with pytest.raises(DecodeError, match="out of 64-bit range"):
        decode_cell(field, str(2**63))


def test_cell_count_mismatch_is_rejected():
    with pytest.raises(DecodeError, match="row has 1 cells"):
        decode(GRADES, {"f": [{"v": "a"}]})


def test_numeric_keeps_precision():
    schema = infer_schema(Price)
    value = Price(amount=Decimal("12345678901234567890.123456789"))

    encoded = encode_row(schema, value)

    assert encoded == {"amount": "12345678901234567890.123456789"}
    assert decode(schema, encoded, Price) == value


def test_missing_required_field():
    with pytest.raises(EncodeError, match="missing required field 'name'"):
        encode_row(GRADES, {"grades": [1]})


def test_null_for_required_field():
    with pytest.raises(EncodeError, match="NULL value for required field"):
        encode_row(GRADES, {"name": None, "grades": []})


def test_null_inside_repeated_field():
    with pytest.raises(EncodeError, match="cannot contain NULL"):
        encode_row(GRADES, {"name": "a", "grades": [1, None]})


def test_wrong_scalar_type():
    with pytest.raises(EncodeError, match="expected int"):
        encode_row(GRADES, {"name": "a", "grades": ["x"]})


def test_missing_nullable_column_encodes_null():
    schema = Schema(
        fields=(
            FieldSchema(name="a", type=FieldType.STRING, mode=Mode.REQUIRED),
            FieldSchema(name="b", type=FieldType.INTEGER),
        )
    )

    assert encode_row(schema, {"A": "x"}) == {"a": "x", "b": None}


def test_encode_special_scalars():
    schema = Schema(
        fields=(
            FieldSchema(name="ts", type=FieldType.TIMESTAMP),
            FieldSchema(name="dt", type=FieldType.DATETIME),
            FieldSchema(name="raw", type=FieldType.BYTES),
            FieldSchema(name="f", type=FieldType.FLOAT),
            FieldSchema(name="j", type=FieldType.JSON),
        )
    )
    tz = datetime.timezone(datetime.timedelta(hours=2))
    row = {
        "ts": datetime.datetime(2024, 1, 1, 12, tzinfo=tz),
        "dt": datetime.datetime(2024, 1, 1, 12),
        "raw": b"hi",
        "f": float("inf"),
        "j": {"k": 1},
    }

    assert encode_row(schema, row) == {
        "ts": "2024-01-01T10:00:00+00:00",
        "dt": "2024-01-01T12:00:00",
        "raw": "aGk=",
        "f": "Infinity",
        "j": '{"k":1}',
    }


def test_datetime_with_zone_is_rejected():
    field = FieldSchema(name="dt", type=FieldType.DATETIME)
    schema = Schema(fields=(field,))

    with pytest.raises(EncodeError, match="time zone"):
        encode_row(schema, {"dt": datetime.datetime(2024, 1, 1, tzinfo=datetime.UTC)})


def test_encode_generic():
    value = {"a": Decimal("1.5"), "b": [b"hi", NullInt64()], "c": Inner(3)}

    assert encode_generic(value) == {"a": "1.5", "b": ["aGk=", None], "c": {"x": 3}}


@dataclass
class Stamped:
    at: datetime.datetime


@dataclass
class Blob:
    name: str
    raw: bytes


@dataclass
class Scalars:
    i: int
    f: float
    b: bool
    s: str
    ts: datetime.datetime
    d: datetime.date
    t: datetime.time
    dt: CivilDateTime
    n: Decimal
    raw: bytes


@dataclass
class Wrapped:
    i: NullInt64
    f: NullFloat64
    b: NullBool
    s: NullString
    g: NullGeography
    j: NullJSON
    ts: NullTimestamp
    d: NullDate
    t: NullTime
    dt: NullDateTime


@pytest.mark.parametrize(
    "value",
    [
        Scalars(
            i=-(2**62),
            f=2.5,
            b=False,
            s="héllo",
            ts=datetime.datetime(2024, 3, 1, 9, 30, 15, 250000, tzinfo=datetime.UTC),
            d=datetime.date(2024, 2, 29),
            t=datetime.time(23, 59, 59, 999999),
            dt=CivilDateTime(datetime.datetime(2024, 3, 1, 9, 30)),
            n=Decimal("-0.000000001"),
            raw=b"\x00\xff",
        ),
        Wrapped(
            i=NullInt64.of(7),
            f=NullFloat64.of(0.5),
            b=NullBool.of(False),
            s=NullString.of(""),
            g=NullGeography.of("POINT(1 2)"),
            j=NullJSON.of({"a": [1, None]}),
            ts=NullTimestamp.of(datetime.datetime(2024, 1, 1, tzinfo=datetime.UTC)),
            d=NullDate.of(datetime.date(2024, 1, 1)),
            t=NullTime.of(datetime.time(8, 15)),
            dt=NullDateTime.of(datetime.datetime(2024, 1, 1, 8, 15)),
        ),
        Wrapped(
            i=NullInt64(),
            f=NullFloat64(),
            b=NullBool(),
            s=NullString(),
            g=NullGeography(),
            j=NullJSON(),
            ts=NullTimestamp(),
            d=NullDate(),
            t=NullTime(),
            dt=NullDateTime(),
        ),
    ],
    ids=["scalars", "wrappers-set", "wrappers-unset"],
)
def test_encode_decode_round_trip(value):
    schema = infer_schema(type(value))

    assert decode(schema, encode_row(schema, value), type(value)) == value


def test_naive_timestamp_is_rejected():
    schema = infer_schema(Stamped)

    with pytest.raises(EncodeError, match="TIMESTAMP values need a time zone"):
        encode_row(schema, Stamped(at=datetime.datetime(2024, 1, 1, 12)))


def test_missing_bytes_decodes_to_empty():
    schema = infer_schema(Blob)

    encoded = encode_row(schema, {"name": "a"})

    assert encoded == {"name": "a", "raw": None}
    assert decode(schema, encoded, Blob) == Blob(name="a", raw=b"")


@pytest.mark.parametrize("raw", [1.9, True, Decimal("2.5"), float("inf")])
def test_integer_is_never_narrowed(raw):
    field = FieldSchema(name="i", type=FieldType.INTEGER)

    with pytest.raises(DecodeError, match="field 'i'"):
        decode_cell(field, raw)


@pytest.mark.parametrize("raw", [3, 3.0, Decimal("3"), "3"])
def test_whole_numbers_decode_as_integer(raw):
    field = FieldSchema(name="i", type=FieldType.INTEGER)

    assert decode_cell(field, raw) == 3


def test_column_named_f_is_not_taken_for_a_page_row():
    schema = Schema(fields=(FieldSchema(name="f", type=FieldType.INTEGER, mode=Mode.REPEATED),))

    encoded = encode_row(schema, {"f": [1, 2]})

    assert decode(schema, encoded, dict) == {"f": [1, 2]}
    assert decode(schema, {"f": [{"v": [{"v": "1"}, {"v": "2"}]}]}, dict) == {"f": [1, 2]}
