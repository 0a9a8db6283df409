"""Rule engine for evaluating applicant records against declarative rules."""

from .actions import DecisionAccumulator
from .conditions import MISSING, ConditionEvaluator, ConditionOutcome, evaluate_condition, resolve_field
from .engine import AppliedRules, RuleEngine, evaluate_rule, evaluate_rule_set, order_rules
from .templates import get_template, list_templates
from .validation import validate_condition, validate_rule

__all__ = [
    "MISSING",
    "AppliedRules",
    "ConditionEvaluator",
    "ConditionOutcome",
    "DecisionAccumulator",
    "RuleEngine",
    "evaluate_condition",
    "evaluate_rule",
    "evaluate_rule_set",
    "get_template",
    "list_templates",
    "order_rules",
    "resolve_field",
    "validate_condition",
    "validate_rule",
]
