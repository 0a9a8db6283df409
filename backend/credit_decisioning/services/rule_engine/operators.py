"""Typed value coercion and comparison operators used by condition evaluation."""

from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from credit_decisioning.core.enums import DataType, Operator

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0"})
_ORDERED_TYPES = (DataType.NUMBER, DataType.DATE)


class OperatorError(ValueError):
    """Base class for comparisons that cannot be carried out."""


class CoercionError(OperatorError):
    """A value could not be coerced to the declared data type."""

    def __init__(self, value: Any, data_type: DataType):
        self.value = value
        self.data_type = data_type
        super().__init__(f"cannot coerce {value!r} to {data_type.value}")


class IncompatibleComparisonError(OperatorError):
    """The operator is not defined for the given data type or value shape."""


# ==================== Coercion ====================


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        raise CoercionError(value, DataType.NUMBER)
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            raise CoercionError(value, DataType.NUMBER) from None
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, str):
        try:
            return float(Decimal(value.strip()))
        except (InvalidOperation, ValueError):
            raise CoercionError(value, DataType.NUMBER) from None
    raise CoercionError(value, DataType.NUMBER)


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise CoercionError(value, DataType.STRING)


def _to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise CoercionError(value, DataType.BOOLEAN)


def _normalize_datetime(value: datetime) -> datetime:
    # Compare everything as naive UTC so aware and naive values mix safely.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _to_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return _normalize_datetime(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        raise CoercionError(value, DataType.DATE)
    if isinstance(value, (int, float)):
        try:
            return _normalize_datetime(datetime.fromtimestamp(value, tz=timezone.utc))
        except (ValueError, OverflowError, OSError):
            raise CoercionError(value, DataType.DATE) from None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _normalize_datetime(datetime.fromisoformat(text))
        except ValueError:
            raise CoercionError(value, DataType.DATE) from None
    raise CoercionError(value, DataType.DATE)


def _to_array(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    raise CoercionError(value, DataType.ARRAY)


_COERCERS: dict[DataType, Callable[[Any], Any]] = {
    DataType.NUMBER: _to_number,
    DataType.STRING: _to_string,
    DataType.BOOLEAN: _to_boolean,
    DataType.DATE: _to_date,
    DataType.ARRAY: _to_array,
}


def coerce(value: Any, data_type: DataType) -> Any:
    """
    Coerce a runtime value to the declared data type.

    Args:
        value: The raw value (from the record or the condition)
        data_type: Declared type of the comparison

    Returns:
        The coerced value (float, str, bool, naive-UTC datetime, or list)

    Raises:
        CoercionError: If the value cannot be represented as data_type
    """
    if value is None:
        raise CoercionError(value, data_type)
    return _COERCERS[data_type](value)


def _require_list(expected: Any, operator: Operator) -> list:
    if not isinstance(expected, (list, tuple)):
        raise IncompatibleComparisonError(
            f"{operator.value} expects a list comparison value, got {expected!r}"
        )
    return list(expected)


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


# ==================== Comparators ====================


def _equals(actual: Any, expected: Any, data_type: DataType) -> bool:
    return coerce(actual, data_type) == coerce(expected, data_type)


def _not_equals(actual: Any, expected: Any, data_type: DataType) -> bool:
    return not _equals(actual, expected, data_type)


def _ordered(operator: Operator) -> Callable[[Any, Any, DataType], bool]:
    compare = {
        Operator.GREATER_THAN: lambda a, b: a > b,
        Operator.GREATER_THAN_OR_EQUAL: lambda a, b: a >= b,
        Operator.LESS_THAN: lambda a, b: a < b,
        Operator.LESS_THAN_OR_EQUAL: lambda a, b: a <= b,
    }[operator]

    def comparator(actual: Any, expected: Any, data_type: DataType) -> bool:
        if data_type not in _ORDERED_TYPES:
            raise IncompatibleComparisonError(
                f"{operator.value} is not defined for {data_type.value} values"
            )
        return compare(coerce(actual, data_type), coerce(expected, data_type))

    return comparator


def _member_matches(item: Any, expected: Any, data_type: DataType) -> bool:
    if data_type == DataType.ARRAY:
        return item == expected
    try:
        return coerce(item, data_type) == coerce(expected, data_type)
    except CoercionError:
        return False


def _contains(actual: Any, expected: Any, data_type: DataType) -> bool:
    if _is_collection(actual):
        return any(_member_matches(item, expected, data_type) for item in actual)
    if isinstance(actual, str):
        return _to_string(expected).lower() in actual.lower()
    raise IncompatibleComparisonError(
        f"contains needs a text or list field value, got {actual!r}"
    )


def _not_contains(actual: Any, expected: Any, data_type: DataType) -> bool:
    return not _contains(actual, expected, data_type)


def _starts_with(actual: Any, expected: Any, data_type: DataType) -> bool:
    if not isinstance(actual, str):
        raise IncompatibleComparisonError(
            f"starts_with needs a text field value, got {actual!r}"
        )
    return actual.lower().startswith(_to_string(expected).lower())


def _ends_with(actual: Any, expected: Any, data_type: DataType) -> bool:
    if not isinstance(actual, str):
        raise IncompatibleComparisonError(
            f"ends_with needs a text field value, got {actual!r}"
        )
    return actual.lower().endswith(_to_string(expected).lower())


def _in(actual: Any, expected: Any, data_type: DataType) -> bool:
    members = [coerce(member, data_type) for member in _require_list(expected, Operator.IN)]
    return coerce(actual, data_type) in members


def _not_in(actual: Any, expected: Any, data_type: DataType) -> bool:
    members = [
        coerce(member, data_type)
        for member in _require_list(expected, Operator.NOT_IN)
    ]
    return coerce(actual, data_type) not in members


def _between(actual: Any, expected: Any, data_type: DataType) -> bool:
    bounds = _require_list(expected, Operator.BETWEEN)
    if len(bounds) != 2:
        raise IncompatibleComparisonError(
            f"between expects exactly two bounds, got {len(bounds)}"
        )
    if data_type not in _ORDERED_TYPES:
        raise IncompatibleComparisonError(
            f"between is not defined for {data_type.value} values"
        )
    low, high = (coerce(bound, data_type) for bound in bounds)
    if low > high:
        raise IncompatibleComparisonError(
            f"between bounds are out of order: {bounds[0]!r} > {bounds[1]!r}"
        )
    return low <= coerce(actual, data_type) <= high


COMPARATORS: dict[Operator, Callable[[Any, Any, DataType], bool]] = {
    Operator.EQUALS: _equals,
    Operator.NOT_EQUALS: _not_equals,
    Operator.GREATER_THAN: _ordered(Operator.GREATER_THAN),
    Operator.GREATER_THAN_OR_EQUAL: _ordered(Operator.GREATER_THAN_OR_EQUAL),
    Operator.LESS_THAN: _ordered(Operator.LESS_THAN),
    Operator.LESS_THAN_OR_EQUAL: _ordered(Operator.LESS_THAN_OR_EQUAL),
    Operator.CONTAINS: _contains,
    Operator.NOT_CONTAINS: _not_contains,
    Operator.STARTS_WITH: _starts_with,
    Operator.ENDS_WITH: _ends_with,
    Operator.IN: _in,
    Operator.NOT_IN: _not_in,
    Operator.BETWEEN: _between,
}


def compare(operator: Operator, actual: Any, expected: Any, data_type: DataType) -> bool:
    """
    Apply a value operator to a present, non-null field value.

    Null checks are handled by the condition evaluator, which knows whether
    the field was present at all.

    Raises:
        OperatorError: If either side cannot be coerced or the comparison is undefined
    """
    comparator = COMPARATORS.get(operator)
    if comparator is None:
        raise IncompatibleComparisonError(
            f"{operator.value} is a null check and takes no comparison value"
        )
    return comparator(actual, expected, data_type)
