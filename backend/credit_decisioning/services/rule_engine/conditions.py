"""Condition evaluation: dotted-path field lookup plus typed comparison."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from credit_decisioning.core.enums import Operator
from credit_decisioning.models.schemas.rule import Condition
from credit_decisioning.services.rule_engine.operators import (
    CoercionError,
    OperatorError,
    compare,
)

logger = logging.getLogger(__name__)


class _Missing:
    """Sentinel for a field path that does not resolve."""

    def __repr__(self) -> str:
        return "<missing>"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def resolve_field(record: Mapping[str, Any], path: str) -> Any:
    """
    Resolve a dotted field path against an applicant record.

    An exact key match wins, so flat records keyed by dotted names work
    (``{"applicationData.creditScore": 700}``). Otherwise each segment walks
    one level into a nested mapping, or indexes a list when the segment is
    an integer.

    Args:
        record: The applicant record
        path: Field path such as ``applicationData.creditScore``

    Returns:
        The resolved value, or MISSING if any segment is absent
    """
    if path in record:
        return record[path]

    current: Any = record
    for segment in path.split("."):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        elif (
            isinstance(current, (list, tuple))
            and segment.isdigit()
            and int(segment) < len(current)
        ):
            current = current[int(segment)]
        else:
            return MISSING
    return current


@dataclass(frozen=True)
class ConditionOutcome:
    """
    Result of evaluating a single condition.

    Attributes:
        matched: Whether the condition holds
        actual_value: The resolved field value (MISSING if absent)
        warning: Why the condition was forced to False, if it was
    """

    matched: bool
    actual_value: Any = None
    warning: Optional[str] = None


class ConditionEvaluator:
    """
    Evaluates one condition against a record.

    Evaluation is total: any record yields True or False. Missing fields,
    values that cannot be coerced to the declared data type and comparisons
    that make no sense for the type all evaluate to False and carry a
    warning instead of raising.
    """

    def evaluate(self, condition: Condition, record: Mapping[str, Any]) -> ConditionOutcome:
        if not condition.field:
            return ConditionOutcome(
                matched=False,
                actual_value=MISSING,
                warning=f"invalid_condition: condition '{condition.id}' has no field",
            )

        actual = resolve_field(record, condition.field)

        # Null checks depend only on presence and never read condition.value
        if condition.operator == Operator.IS_NULL:
            return ConditionOutcome(matched=actual is MISSING or actual is None, actual_value=actual)
        if condition.operator == Operator.IS_NOT_NULL:
            return ConditionOutcome(
                matched=actual is not MISSING and actual is not None,
                actual_value=actual,
            )

        if actual is MISSING:
            return ConditionOutcome(
                matched=False,
                actual_value=actual,
                warning=f"missing_field: '{condition.field}' not found for condition '{condition.id}'",
            )
        if actual is None:
            return ConditionOutcome(
                matched=False,
                actual_value=actual,
                warning=f"null_value: '{condition.field}' is null for condition '{condition.id}'",
            )

        try:
            matched = compare(condition.operator, actual, condition.value, condition.data_type)
        except CoercionError as e:
            return ConditionOutcome(
                matched=False,
                actual_value=actual,
                warning=f"unparsable_value: condition '{condition.id}' on '{condition.field}': {e}",
            )
        except (OperatorError, TypeError) as e:
            return ConditionOutcome(
                matched=False,
                actual_value=actual,
                warning=f"type_mismatch: condition '{condition.id}' on '{condition.field}': {e}",
            )

        logger.debug(
            f"Condition {condition.id}: {condition.field} {condition.operator.value} "
            f"{condition.value!r} -> {matched}"
        )
        return ConditionOutcome(matched=matched, actual_value=actual)


def evaluate_condition(condition: Condition, record: Mapping[str, Any]) -> bool:
    """Evaluate a condition and return only whether it matched."""
    return ConditionEvaluator().evaluate(condition, record).matched
