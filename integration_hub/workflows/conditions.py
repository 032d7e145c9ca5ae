"""Condition evaluation and nested field lookup shared by transforms and steps.

Conditions are AND-combined; there is no OR support.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .errors import ConditionError
from .models import Condition, ConditionOperator


def get_nested_value(data: Any, path: Optional[str]) -> Any:
    """Resolve a dotted path (``customer.address.city``, ``items.0.sku``).

    Returns ``None`` for any missing link instead of raising.
    """
    if not path:
        return data

    current = data
    for key in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return None
        else:
            current = getattr(current, key, None)
    return current


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _coerce(condition: Union[Condition, Mapping]) -> Condition:
    if isinstance(condition, Condition):
        return condition
    try:
        return Condition.model_validate(condition)
    except PydanticValidationError as e:
        raise ConditionError(f"Invalid condition {dict(condition)!r}: {e}") from e


def evaluate_condition(condition: Union[Condition, Mapping], data: Any) -> bool:
    condition = _coerce(condition)
    field_value = get_nested_value(data, condition.field)
    operator = condition.operator

    if operator is ConditionOperator.EQUALS:
        return field_value == condition.value
    if operator is ConditionOperator.NOT_EQUALS:
        return field_value != condition.value
    if operator is ConditionOperator.CONTAINS:
        if field_value is None:
            return False
        return str(condition.value) in str(field_value)
    if operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        left, right = _to_number(field_value), _to_number(condition.value)
        if left is None or right is None:
            return False
        return left > right if operator is ConditionOperator.GREATER_THAN else left < right
    if operator is ConditionOperator.EXISTS:
        return field_value is not None

    raise ConditionError(f"Unknown condition operator: {operator}")


def evaluate_conditions(
    conditions: Optional[Iterable[Union[Condition, Mapping]]],
    data: Any
) -> bool:
    """True when every condition holds; an empty list is vacuously true."""
    return all(evaluate_condition(condition, data) for condition in conditions or [])
