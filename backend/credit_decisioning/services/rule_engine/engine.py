"""Rule engine for evaluating rules and rule sets against applicant records."""

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from credit_decisioning.core.enums import ActionType, ExecutionOrder, LogicalOperator
from credit_decisioning.models.schemas.decision import (
    ConditionResult,
    DecisionResult,
    RuleEvaluationResult,
)
from credit_decisioning.models.schemas.rule import Rule, RuleSet
from credit_decisioning.services.rule_engine.actions import DecisionAccumulator
from credit_decisioning.services.rule_engine.conditions import MISSING, ConditionEvaluator

logger = logging.getLogger(__name__)

RuleSource = Union[RuleSet, Sequence[Rule]]


@dataclass
class AppliedRules:
    """What happened during one pass over a group of rules."""

    matched_rule_ids: list[str] = field(default_factory=list)
    terminal_actions: list[ActionType] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return bool(self.matched_rule_ids)

    @property
    def produced_terminal(self) -> bool:
        return bool(self.terminal_actions)


def order_rules(
    rules: Sequence[Rule],
    execution_order: ExecutionOrder = ExecutionOrder.PRIORITY,
) -> list[Rule]:
    """
    Select enabled rules and put them in evaluation order.

    Priority order sorts by descending priority; the sort is stable, so rules
    with equal priority keep their declaration order. Sequential order keeps
    declaration order outright.
    """
    enabled = [rule for rule in rules if rule.enabled]
    if execution_order == ExecutionOrder.SEQUENTIAL:
        return enabled
    return sorted(enabled, key=lambda rule: -rule.priority)


class RuleEngine:
    """
    Rule engine orchestrator.

    This class:
    - Evaluates a rule's conditions and combines them with AND/OR
    - Orders rule sets by priority (stable on ties)
    - Applies matched actions cumulatively, first terminal decision wins
    - Defaults to review when no terminal action fires
    """

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None):
        """Initialize the rule engine with its condition evaluator."""
        self._conditions = condition_evaluator or ConditionEvaluator()

    def evaluate_rule(self, rule: Rule, record: Mapping[str, Any]) -> RuleEvaluationResult:
        """
        Evaluate a single rule against a record.

        Disabled rules are filtered out by the caller; this method evaluates
        whatever it is given.

        Args:
            rule: The rule to evaluate
            record: The applicant record (never mutated)

        Returns:
            RuleEvaluationResult with match flag, actions and condition trail
        """
        if not rule.conditions:
            return RuleEvaluationResult(
                rule_id=rule.id,
                rule_name=rule.name,
                matched=False,
                warnings=[f"invalid_rule: rule '{rule.id}' has no conditions and cannot match"],
            )

        condition_results: list[ConditionResult] = []
        warnings: list[str] = []
        for condition in rule.conditions:
            outcome = self._conditions.evaluate(condition, record)
            condition_results.append(
                ConditionResult(
                    condition_id=condition.id,
                    field=condition.field,
                    operator=condition.operator,
                    expected_value=condition.value,
                    actual_value=None if outcome.actual_value is MISSING else outcome.actual_value,
                    matched=outcome.matched,
                    warning=outcome.warning,
                )
            )
            if outcome.warning:
                warnings.append(outcome.warning)

        if rule.logical_operator == LogicalOperator.AND:
            matched = all(result.matched for result in condition_results)
        else:
            matched = any(result.matched for result in condition_results)

        return RuleEvaluationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            matched=matched,
            actions=list(rule.actions) if matched else [],
            conditions=condition_results,
            warnings=warnings,
        )

    def apply_rules(
        self,
        rules: Sequence[Rule],
        record: Mapping[str, Any],
        state: DecisionAccumulator,
        execution_order: ExecutionOrder = ExecutionOrder.PRIORITY,
    ) -> AppliedRules:
        """
        Evaluate rules in order and apply matched actions to running state.

        Conditions see the record overlaid with outputs written by earlier
        data actions in the same evaluation.

        Returns:
            AppliedRules describing what matched in this pass
        """
        applied = AppliedRules()
        for rule in order_rules(rules, execution_order):
            result = self.evaluate_rule(rule, state.view(record))
            state.executed_rules.append(rule.id)
            state.warnings.extend(result.warnings)
            if not result.matched:
                continue
            state.matched_rules.append(rule.id)
            applied.matched_rule_ids.append(rule.id)
            applied.terminal_actions.extend(
                action.type for action in result.actions if action.type.is_terminal
            )
            if state.apply_all(result.actions, record):
                logger.debug(f"Rule {rule.id} set decision {state.decision.value}")
        return applied

    def evaluate_rule_set(self, rules: RuleSource, record: Mapping[str, Any]) -> DecisionResult:
        """
        Evaluate a rule set (or plain list of rules) into a decision.

        Args:
            rules: A RuleSet or a sequence of rules
            record: The applicant record (never mutated)

        Returns:
            DecisionResult; decision defaults to review when no terminal action fired
        """
        started = time.perf_counter()
        if isinstance(rules, RuleSet):
            rule_list, execution_order = rules.rules, rules.execution_order
        else:
            rule_list, execution_order = list(rules), ExecutionOrder.PRIORITY

        state = DecisionAccumulator()
        self.apply_rules(rule_list, record, state, execution_order)
        elapsed_ms = (time.perf_counter() - started) * 1000
        return state.finalize(elapsed_ms)


def evaluate_rule(rule: Rule, record: Mapping[str, Any]) -> RuleEvaluationResult:
    """Evaluate one rule with a default engine."""
    return RuleEngine().evaluate_rule(rule, record)


def evaluate_rule_set(rules: RuleSource, record: Mapping[str, Any]) -> DecisionResult:
    """Evaluate a rule set with a default engine."""
    return RuleEngine().evaluate_rule_set(rules, record)
