from __future__ import annotations

from decimal import Decimal

import pytest

from rotary_py.codec import canonical_number, decode_value, encode_item, encode_value, scalar_kind
from rotary_py.errors import ValidationError, ValueKindError


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("hello", {"S": "hello"}),
        ("", {"S": ""}),
        (42, {"N": "42"}),
        (-7, {"N": "-7"}),
        (Decimal("3.14"), {"N": "3.14"}),
        (b"\x00\x01", {"B": b"\x00\x01"}),
        (bytearray(b"ab"), {"B": b"ab"}),
    ],
)
def test_encode_scalars(value: object, expected: dict) -> None:
    assert encode_value(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1, "1"),
        (Decimal("1.00"), "1"),
        (Decimal("1.0"), "1"),
        (100, "100"),
        (Decimal("1E+2"), "100"),
        (Decimal("1.23"), "1.23"),
        (Decimal("-0.50"), "-0.5"),
        (0, "0"),
        (Decimal("-0.000"), "0"),
        (Decimal("0.1"), "0.1"),
    ],
)
def test_canonical_number(value: object, expected: str) -> None:
    assert canonical_number(value) == expected  # type: ignore[arg-type]


@pytest.mark.parametrize("value", [Decimal("Infinity"), Decimal("-Infinity"), Decimal("NaN")])
def test_canonical_number_rejects_non_finite(value: object) -> None:
    with pytest.raises(ValueKindError, match="finite"):
        canonical_number(value)  # type: ignore[arg-type]


def test_canonical_number_rejects_excess_precision() -> None:
    with pytest.raises(ValueKindError, match="precision"):
        canonical_number(Decimal("1." + "1" * 40))


def test_equal_numbers_encode_identically() -> None:
    assert encode_value(1) == encode_value(Decimal("1.0")) == encode_value(Decimal("1.000"))


def test_encode_sets_are_typed_and_sorted() -> None:
    assert encode_value({"b", "a", "c"}) == {"SS": ["a", "b", "c"]}
    assert encode_value({10, 2, Decimal("1.5")}) == {"NS": ["1.5", "2", "10"]}
    assert encode_value(frozenset({b"y", b"x"})) == {"BS": [b"x", b"y"]}


def test_encode_number_set_collapses_equal_values() -> None:
    assert encode_value({1, Decimal("1.0"), 2}) == {"NS": ["1", "2"]}


@pytest.mark.parametrize(
    ("value", "match"),
    [
        (set(), "empty set"),
        ({"a", 1}, "mixes element kinds"),
        ({"a", None}, "unsupported element types"),
        ({"k": "v"}, "unsupported value type: dict"),
        (["a"], "unsupported value type: list"),
        (True, "unsupported value type: bool"),
        (None, "unsupported value type: NoneType"),
        (1.5, "float values are not supported"),
        ({1.5, 2.5}, "float values are not supported"),
    ],
)
def test_encode_rejects_unsupported_values(value: object, match: str) -> None:
    with pytest.raises(ValueKindError, match=match):
        encode_value(value)


def test_value_kind_error_is_a_validation_error() -> None:
    with pytest.raises(ValidationError):
        encode_value(object())


def test_scalar_kind() -> None:
    assert scalar_kind("x") == "S"
    assert scalar_kind(1) == "N"
    assert scalar_kind(Decimal("1.5")) == "N"
    assert scalar_kind(1.5) is None
    assert scalar_kind(b"x") == "B"
    assert scalar_kind(False) is None
    assert scalar_kind([1]) is None


@pytest.mark.parametrize(
    "value",
    [
        "hello",
        "",
        b"\x01\x02",
        0,
        42,
        -7,
        10**37,
        Decimal("1.23"),
        Decimal("-0.5"),
        Decimal("1E-100"),
        {"a", "b"},
        {b"x", b"y"},
        {1, 2, Decimal("3.5")},
    ],
)
def test_decode_inverts_encode(value: object) -> None:
    assert decode_value(encode_value(value)) == value


def test_decode_numbers_as_decimal() -> None:
    assert decode_value(encode_value(42)) == Decimal(42)
    assert decode_value(encode_value({1, 2})) == {Decimal(1), Decimal(2)}

    decoded = decode_value(encode_value(Decimal("1.23")))
    assert isinstance(decoded, Decimal)
    assert decoded == Decimal("1.23")


def test_canonical_number_rejects_float() -> None:
    with pytest.raises(ValueKindError, match="use Decimal"):
        canonical_number(0.1)  # type: ignore[arg-type]


def test_decode_empty_is_none() -> None:
    assert decode_value(None) is None
    assert decode_value({}) is None


def test_decode_rejects_multiple_tags() -> None:
    with pytest.raises(ValueKindError, match="exactly one type tag"):
        decode_value({"S": "a", "N": "1"})


def test_decode_rejects_unknown_tag() -> None:
    with pytest.raises(ValueKindError, match="unsupported attribute value type: X"):
        decode_value({"X": "a"})


def test_decode_rejects_bad_number_text() -> None:
    with pytest.raises(ValueKindError, match="not a number"):
        decode_value({"N": "abc"})


def test_decode_rejects_bad_number_set_members() -> None:
    with pytest.raises(ValueKindError, match="NS value is not a set of numbers"):
        decode_value({"NS": ["1", "abc"]})
    with pytest.raises(ValueKindError, match="NS value is not a set of numbers"):
        decode_value({"NS": [None]})


def test_decode_reads_document_types_written_elsewhere() -> None:
    assert decode_value({"BOOL": True}) is True
    assert decode_value({"NULL": True}) is None
    assert decode_value({"L": [{"S": "a"}, {"N": "2"}]}) == ["a", Decimal(2)]
    assert decode_value({"M": {"x": {"S": "y"}}}) == {"x": "y"}


def test_encode_item_prefixes_errors_with_attribute_name() -> None:
    assert encode_item({"id": "a", "n": 3}) == {"id": {"S": "a"}, "n": {"N": "3"}}

    with pytest.raises(ValueKindError, match="^tags: cannot encode an empty set"):
        encode_item({"id": "a", "tags": set()})


def test_encode_item_rejects_non_mapping() -> None:
    with pytest.raises(ValueKindError, match="item must be a mapping"):
        encode_item([("id", "a")])  # type: ignore[arg-type]
