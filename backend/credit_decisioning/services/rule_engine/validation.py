"""Structural validation of rules and their conditions and actions."""

from credit_decisioning.core.enums import Operator
from credit_decisioning.models.schemas.rule import Action, Condition, Rule
from credit_decisioning.services.rule_engine.operators import OperatorError, coerce


def validate_condition(condition: Condition) -> list[str]:
    """Return the invariant violations of one condition."""
    errors: list[str] = []
    prefix = f"Condition '{condition.id}'"

    if not condition.field or not condition.field.strip():
        errors.append(f"{prefix}: field is required")

    operator = condition.operator
    if operator.is_null_check:
        return errors

    if condition.value is None:
        errors.append(f"{prefix}: operator {operator.value} requires a value")
        return errors

    if operator.expects_list:
        if not isinstance(condition.value, (list, tuple)):
            errors.append(f"{prefix}: operator {operator.value} requires a list value")
        elif operator == Operator.BETWEEN:
            if len(condition.value) != 2:
                errors.append(f"{prefix}: between requires exactly two bounds")
            else:
                try:
                    low, high = (coerce(bound, condition.data_type) for bound in condition.value)
                    if low > high:
                        errors.append(f"{prefix}: between bounds must be in ascending order")
                except (OperatorError, TypeError):
                    errors.append(
                        f"{prefix}: between bounds must be ordered {condition.data_type.value} values"
                    )
    return errors


def validate_action(action: Action, index: int) -> list[str]:
    """Return the invariant violations of one action."""
    errors: list[str] = []
    prefix = f"Action {index + 1} ({action.type.value})"
    if action.type.requires_value and action.value in (None, ""):
        errors.append(f"{prefix}: value is required")
    if action.type.requires_output_field and not action.output_field:
        errors.append(f"{prefix}: output_field is required")
    return errors


def validate_rule(rule: Rule) -> list[str]:
    """
    Validate a rule's structure.

    A rule with no conditions can never match and is rejected, as is any
    condition or action that violates its type's invariants.

    Args:
        rule: The rule to validate

    Returns:
        Human-readable error strings; empty when the rule is valid
    """
    errors: list[str] = []
    if not rule.id:
        errors.append("Rule id is required")
    if not rule.name or not rule.name.strip():
        errors.append(f"Rule '{rule.id}': name is required")
    if not rule.conditions:
        errors.append(f"Rule '{rule.id}': at least one condition is required")

    for condition in rule.conditions:
        errors.extend(f"Rule '{rule.id}': {error}" for error in validate_condition(condition))
    for index, action in enumerate(rule.actions):
        errors.extend(f"Rule '{rule.id}': {error}" for error in validate_action(action, index))

    condition_ids = [condition.id for condition in rule.conditions]
    if len(condition_ids) != len(set(condition_ids)):
        errors.append(f"Rule '{rule.id}': condition ids must be unique")
    return errors
