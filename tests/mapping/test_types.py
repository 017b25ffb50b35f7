from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest

from ledgerorm import MappingError
from ledgerorm.mapping import (
    BooleanType,
    DateTimeType,
    DecimalType,
    IntegerType,
    JsonType,
    StringType,
    UuidType,
)
from ledgerorm.mapping.types import DateType, Type, register_type, resolve_type


def test_resolve_type_by_name():
    assert isinstance(resolve_type("integer"), IntegerType)
    assert isinstance(resolve_type("bool"), BooleanType)
    assert resolve_type("text").max_length is None
    assert type(resolve_type(None)) is Type


def test_resolve_unknown_type_raises():
    with pytest.raises(MappingError):
        resolve_type("money")


def test_register_custom_type():
    class Upper(StringType):
        def to_database(self, value):
            return super().to_database(value).upper()

    register_type("upper", Upper)
    assert resolve_type("upper").to_database("abc") == "ABC"


def test_none_equals_only_none():
    integer = IntegerType()
    assert integer.equals(None, None)
    assert not integer.equals(None, 0)
    assert not integer.equals(0, None)


def test_boolean_conversion():
    boolean = BooleanType()
    assert boolean.to_python(0) is False
    assert boolean.to_python("t") is True
    assert boolean.to_database(True) == 1
    with pytest.raises(ValueError):
        boolean.to_python("maybe")


def test_string_max_length():
    with pytest.raises(ValueError):
        StringType(max_length=3).to_database("long")


def test_decimal_equality_is_numeric():
    decimal = DecimalType()
    assert decimal.equals(Decimal("1.10"), Decimal("1.1"))
    assert not decimal.equals(Decimal("1.10"), Decimal("1.11"))
    assert DecimalType(scale=2).to_database(Decimal("1.5")) == "1.50"
    assert decimal.to_python(0.1) == Decimal("0.1")


def test_datetime_equality_compares_instants():
    kind = DateTimeType()
    utc = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    shifted = utc.astimezone(timezone(timedelta(hours=2)))
    assert kind.equals(utc, shifted)
    assert kind.equals(utc, datetime(2024, 5, 1, 12, 0))
    assert kind.to_python(kind.to_database(shifted)) == shifted


def test_date_accepts_datetime():
    assert DateType().to_python(datetime(2024, 5, 1, 9, 30)) == date(2024, 5, 1)


def test_uuid_round_trip_through_text():
    value = uuid.uuid4()
    kind = UuidType()
    assert kind.to_database(value) == str(value)
    assert kind.to_python(str(value)) == value
    assert kind.equals(value, str(value))


def test_json_copy_detaches_nested_values():
    kind = JsonType()
    original = {"lines": [1, 2]}
    copied = kind.copy(original)
    original["lines"].append(3)
    assert copied == {"lines": [1, 2]}
    assert kind.to_database({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
