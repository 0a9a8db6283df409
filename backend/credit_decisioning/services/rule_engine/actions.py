"""Running decision state and the semantics of each action type."""

import logging
from collections import ChainMap
from collections.abc import Mapping
from typing import Any, Optional

from credit_decisioning.core.enums import ActionType, DataType, Decision
from credit_decisioning.models.schemas.decision import DecisionResult
from credit_decisioning.models.schemas.rule import Action
from credit_decisioning.services.rule_engine.conditions import MISSING, resolve_field
from credit_decisioning.services.rule_engine.operators import CoercionError, coerce

logger = logging.getLogger(__name__)

CALCULATIONS = {
    "sum": lambda values: sum(values),
    "difference": lambda values: values[0] - sum(values[1:]),
    "product": lambda values: _product(values),
    "ratio": lambda values: values[0] / values[1],
    "min": lambda values: min(values),
    "max": lambda values: max(values),
}

TRANSFORMS = {
    "lower": lambda value: str(value).lower(),
    "upper": lambda value: str(value).upper(),
    "strip": lambda value: str(value).strip(),
    "abs": lambda value: abs(coerce(value, DataType.NUMBER)),
    "round": lambda value: round(coerce(value, DataType.NUMBER)),
    "int": lambda value: int(coerce(value, DataType.NUMBER)),
    "float": lambda value: coerce(value, DataType.NUMBER),
    "str": lambda value: str(value),
}


def _product(values: list[float]) -> float:
    result = 1.0
    for value in values:
        result *= value
    return result


def _payload_value(value: Any, key: str) -> Any:
    """Unwrap ``{"flag": "x"}`` / ``{"value": "x"}`` style action payloads."""
    if isinstance(value, Mapping):
        return value.get(key, value.get("value"))
    return value


class DecisionAccumulator:
    """
    Mutable running state for one evaluation.

    A fresh accumulator is created per evaluation and never shared, so the
    inputs (rules, workflow, record) stay untouched. The first terminal
    action (approve, decline, review) fixes the decision; later terminal
    actions are ignored while non-terminal actions keep accumulating.
    """

    def __init__(self) -> None:
        self.decision: Optional[Decision] = None
        self.score: Optional[float] = None
        self.flags: list[str] = []
        self.executed_rules: list[str] = []
        self.matched_rules: list[str] = []
        self.required_documents: list[str] = []
        self.messages: list[str] = []
        self.outputs: dict[str, Any] = {}
        self.execution_path: list[str] = []
        self.errors: list[str] = []
        self.warnings: list[str] = []

    @property
    def has_terminal_decision(self) -> bool:
        return self.decision is not None

    def view(self, record: Mapping[str, Any]) -> Mapping[str, Any]:
        """Record overlaid with values written by data actions."""
        return ChainMap(self.outputs, record)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def add_flag(self, flag: str) -> None:
        if flag and flag not in self.flags:
            self.flags.append(flag)

    def apply_all(self, actions: list[Action], record: Mapping[str, Any]) -> bool:
        """
        Apply actions in order.

        Returns:
            True if one of them set the terminal decision
        """
        produced_terminal = False
        for action in actions:
            if self.apply(action, record):
                produced_terminal = True
        return produced_terminal

    def apply(self, action: Action, record: Mapping[str, Any]) -> bool:
        """
        Apply one action to the running state.

        Args:
            action: The action to apply
            record: The applicant record (read only)

        Returns:
            True if this action set the terminal decision
        """
        action_type = action.type

        if action_type.is_terminal:
            return self._apply_terminal(action)

        if action_type == ActionType.SET_SCORE:
            self._apply_set_score(action)
        elif action_type == ActionType.ADD_FLAG:
            flag = _payload_value(action.value, "flag")
            if flag is None:
                self.warn("invalid_action: add_flag without a value")
            else:
                self.add_flag(str(flag))
        elif action_type == ActionType.REQUIRE_DOCUMENT:
            document = _payload_value(action.value, "document")
            if document is None:
                self.warn("invalid_action: require_document without a value")
            elif str(document) not in self.required_documents:
                self.required_documents.append(str(document))
        elif action_type == ActionType.SET_VALUE:
            if self._has_output_field(action):
                self.outputs[action.output_field] = action.value
        elif action_type == ActionType.CALCULATE:
            self._apply_calculate(action, record)
        elif action_type == ActionType.TRANSFORM:
            self._apply_transform(action, record)
        elif action_type == ActionType.VALIDATE:
            self._apply_validate(action, record)
        elif action_type in (ActionType.NOTIFY, ActionType.LOG):
            text = action.message or (str(action.value) if action.value is not None else "")
            if text:
                self.messages.append(text)
                logger.info(f"{action_type.value}: {text}")
        elif action_type == ActionType.ROUTE:
            # Routing is expressed by connections; the action only leaves a trail
            if action.message:
                self.messages.append(action.message)
        return False

    def _apply_terminal(self, action: Action) -> bool:
        if self.decision is not None:
            logger.debug(
                f"Ignoring {action.type.value}: decision already {self.decision.value}"
            )
            return False
        self.decision = Decision(action.type.value)
        if action.message:
            self.messages.append(action.message)
        return True

    def _apply_set_score(self, action: Action) -> None:
        raw = _payload_value(action.value, "score")
        try:
            score = coerce(raw, DataType.NUMBER)
        except CoercionError:
            self.warn(f"invalid_action: set_score value {raw!r} is not numeric")
            return
        # Highest offered score wins
        self.score = score if self.score is None else max(self.score, score)

    def _has_output_field(self, action: Action) -> bool:
        if not action.output_field:
            self.warn(f"invalid_action: {action.type.value} without an output_field")
            return False
        return True

    def _apply_calculate(self, action: Action, record: Mapping[str, Any]) -> None:
        if not self._has_output_field(action):
            return
        params = action.value if isinstance(action.value, Mapping) else {}
        operation = CALCULATIONS.get(str(params.get("operation", "")))
        fields = params.get("fields") or []
        if operation is None or not fields:
            self.warn(f"invalid_action: calculate for '{action.output_field}' needs an operation and fields")
            return

        view = self.view(record)
        operands: list[float] = []
        for field in fields:
            raw = resolve_field(view, field)
            if raw is MISSING or raw is None:
                self.warn(f"missing_field: '{field}' needed to calculate '{action.output_field}'")
                return
            try:
                operands.append(coerce(raw, DataType.NUMBER))
            except CoercionError:
                self.warn(f"unparsable_value: '{field}' value {raw!r} is not numeric")
                return

        try:
            result = operation(operands)
        except (ZeroDivisionError, IndexError, ValueError) as e:
            self.warn(f"calculation_failed: '{action.output_field}': {e}")
            return
        precision = params.get("precision")
        if isinstance(precision, int) and not isinstance(precision, bool):
            result = round(result, precision)
        self.outputs[action.output_field] = result

    def _apply_transform(self, action: Action, record: Mapping[str, Any]) -> None:
        if not self._has_output_field(action):
            return
        params = action.value if isinstance(action.value, Mapping) else {}
        function = TRANSFORMS.get(str(params.get("function", "")))
        source = params.get("field")
        if function is None or not source:
            self.warn(f"invalid_action: transform for '{action.output_field}' needs a field and function")
            return
        raw = resolve_field(self.view(record), source)
        if raw is MISSING or raw is None:
            self.warn(f"missing_field: '{source}' needed to transform '{action.output_field}'")
            return
        try:
            self.outputs[action.output_field] = function(raw)
        except (CoercionError, ValueError, TypeError) as e:
            self.warn(f"transform_failed: '{action.output_field}': {e}")

    def _apply_validate(self, action: Action, record: Mapping[str, Any]) -> None:
        fields = action.value if isinstance(action.value, (list, tuple)) else [action.value]
        view = self.view(record)
        for field in fields:
            if not field:
                continue
            value = resolve_field(view, str(field))
            if value is MISSING or value is None:
                self.warn(f"validation_failed: required field '{field}' is missing")
                self.add_flag(f"missing_{field}")

    def finalize(self, execution_time_ms: float, force_review: bool = False) -> DecisionResult:
        """
        Freeze the running state into a DecisionResult.

        Args:
            execution_time_ms: Wall-clock duration of the evaluation
            force_review: Override any decision with review (runtime failure)
        """
        decision = self.decision or Decision.REVIEW
        if force_review:
            decision = Decision.REVIEW
        return DecisionResult(
            decision=decision,
            score=self.score,
            flags=list(self.flags),
            executed_rules=list(self.executed_rules),
            matched_rules=list(self.matched_rules),
            required_documents=list(self.required_documents),
            messages=list(self.messages),
            outputs=dict(self.outputs),
            execution_path=list(self.execution_path),
            execution_time_ms=execution_time_ms,
            errors=list(self.errors),
            warnings=list(self.warnings),
        )
