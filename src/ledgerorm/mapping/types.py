"""
Value types converting between Python values and database values.

Each type also defines the semantic equality used for dirty checking, so that
``Decimal("1.10")`` and ``Decimal("1.1")`` or two datetimes naming the same
instant are not reported as changes.
"""

from __future__ import annotations

import copy
import json
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict

from ..errors import MappingError


class Type:
    """
    Pass-through type; subclasses override conversion and equality.
    """

    name = "generic"

    def to_database(self, value: Any) -> Any:
        return value

    def to_python(self, value: Any) -> Any:
        return value

    def equals(self, left: Any, right: Any) -> bool:
        if left is None or right is None:
            return left is right
        return self._equals(left, right)

    def _equals(self, left: Any, right: Any) -> bool:
        return left == right

    def copy(self, value: Any) -> Any:
        return value

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class IntegerType(Type):
    name = "integer"

    def to_python(self, value: Any) -> int | None:
        if value is None:
            return value
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}'") from exc

    to_database = to_python


class FloatType(Type):
    name = "float"

    def to_python(self, value: Any) -> float | None:
        if value is None:
            return value
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}'") from exc

    to_database = to_python


class BooleanType(Type):
    name = "boolean"

    def to_python(self, value: Any) -> bool | None:
        if value is None:
            return value
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0"}:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")

    def to_database(self, value: Any) -> int | None:
        converted = self.to_python(value)
        return None if converted is None else int(converted)

    def _equals(self, left: Any, right: Any) -> bool:
        return self.to_python(left) == self.to_python(right)


class StringType(Type):
    name = "string"

    def __init__(self, max_length: int | None = 255) -> None:
        self.max_length = max_length

    def to_python(self, value: Any) -> str | None:
        if value is None:
            return value
        return str(value)

    def to_database(self, value: Any) -> str | None:
        result = self.to_python(value)
        if result is not None and self.max_length and len(result) > self.max_length:
            raise ValueError(f"Value exceeds max_length {self.max_length}")
        return result

    def __repr__(self) -> str:
        return f"StringType(max_length={self.max_length})"


class DecimalType(Type):
    """
    Exact decimal stored as text, compared by numeric value.
    """

    name = "decimal"

    def __init__(self, scale: int | None = None) -> None:
        self.scale = scale

    def to_python(self, value: Any) -> Decimal | None:
        if value is None:
            return value
        if isinstance(value, Decimal):
            return value
        try:
            # str() keeps float inputs from carrying binary noise
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal value '{value}'") from exc

    def to_database(self, value: Any) -> str | None:
        converted = self.to_python(value)
        if converted is None:
            return None
        if self.scale is not None:
            converted = converted.quantize(Decimal(1).scaleb(-self.scale))
        return str(converted)

    def _equals(self, left: Any, right: Any) -> bool:
        return self.to_python(left) == self.to_python(right)


class DateTimeType(Type):
    """
    Datetime stored as ISO-8601 text; equality compares instants.

    Naive values are interpreted as UTC when compared with aware ones.
    """

    name = "datetime"

    def to_python(self, value: Any) -> datetime | None:
        if value is None or isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"Invalid datetime value '{value}'") from exc
        raise ValueError(f"Expected datetime, received {value!r}")

    def to_database(self, value: Any) -> str | None:
        converted = self.to_python(value)
        return None if converted is None else converted.isoformat()

    def _equals(self, left: Any, right: Any) -> bool:
        return self._instant(self.to_python(left)) == self._instant(self.to_python(right))

    @staticmethod
    def _instant(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class DateType(Type):
    name = "date"

    def to_python(self, value: Any) -> date | None:
        if value is None:
            return value
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"Invalid date value '{value}'") from exc
        raise ValueError(f"Expected date, received {value!r}")

    def to_database(self, value: Any) -> str | None:
        converted = self.to_python(value)
        return None if converted is None else converted.isoformat()

    def _equals(self, left: Any, right: Any) -> bool:
        return self.to_python(left) == self.to_python(right)


class TimeType(Type):
    name = "time"

    def to_python(self, value: Any) -> time | None:
        if value is None or isinstance(value, time):
            return value
        if isinstance(value, str):
            try:
                return time.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"Invalid time value '{value}'") from exc
        raise ValueError(f"Expected time, received {value!r}")

    def to_database(self, value: Any) -> str | None:
        converted = self.to_python(value)
        return None if converted is None else converted.isoformat()

    def _equals(self, left: Any, right: Any) -> bool:
        return self.to_python(left) == self.to_python(right)


class UuidType(Type):
    name = "uuid"

    def to_python(self, value: Any) -> uuid.UUID | None:
        if value is None or isinstance(value, uuid.UUID):
            return value
        try:
            if isinstance(value, bytes) and len(value) == 16:
                return uuid.UUID(bytes=value)
            return uuid.UUID(str(value))
        except ValueError as exc:
            raise ValueError(f"Invalid UUID value '{value}'") from exc

    def to_database(self, value: Any) -> str | None:
        converted = self.to_python(value)
        return None if converted is None else str(converted)

    def _equals(self, left: Any, right: Any) -> bool:
        return self.to_python(left) == self.to_python(right)


class JsonType(Type):
    """
    JSON document stored as text. Snapshots deep-copy the value so in-place
    mutation of nested structures is detected.
    """

    name = "json"

    def to_python(self, value: Any) -> Any:
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value

    def to_database(self, value: Any) -> str | None:
        if value is None:
            return None
        return json.dumps(value, sort_keys=True)

    def copy(self, value: Any) -> Any:
        return copy.deepcopy(value)


_TYPE_FACTORIES: Dict[str, Callable[[], Type]] = {
    "generic": Type,
    "integer": IntegerType,
    "int": IntegerType,
    "float": FloatType,
    "boolean": BooleanType,
    "bool": BooleanType,
    "string": StringType,
    "text": lambda: StringType(max_length=None),
    "decimal": DecimalType,
    "datetime": DateTimeType,
    "date": DateType,
    "time": TimeType,
    "uuid": UuidType,
    "json": JsonType,
}


def register_type(name: str, factory: Callable[[], Type]) -> None:
    _TYPE_FACTORIES[name] = factory


def resolve_type(type_: Type | str | None) -> Type:
    """
    Return a :class:`Type` instance for a type object, a registered name or ``None``.
    """
    if type_ is None:
        return Type()
    if isinstance(type_, Type):
        return type_
    try:
        return _TYPE_FACTORIES[type_]()
    except KeyError:
        raise MappingError(f"Unknown type '{type_}'.") from None
