"""Pydantic schemas for evaluation results and decision API bodies."""

from typing import Any, Optional

from pydantic import ConfigDict, Field

from credit_decisioning.core.enums import Decision, Operator
from credit_decisioning.models.schemas.base import CamelModel
from credit_decisioning.models.schemas.rule import Action, Rule, RuleSet


# ==================== Evaluation Trail Schemas ====================


class ConditionResult(CamelModel):
    """Outcome of one condition inside a rule evaluation."""

    condition_id: str
    field: str
    operator: Operator
    expected_value: Any = None
    actual_value: Any = None
    matched: bool
    warning: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class RuleEvaluationResult(CamelModel):
    """
    Result of evaluating a single rule against a record.

    Attributes:
        rule_id: ID of the evaluated rule
        rule_name: Name of the evaluated rule
        matched: Whether the rule's conditions matched
        actions: The rule's actions in declaration order when matched, else empty
        conditions: Per-condition trail
        warnings: Non-fatal evaluation warnings (missing fields, coercion failures)
    """

    rule_id: str
    rule_name: str
    matched: bool
    actions: list[Action] = Field(default_factory=list)
    conditions: list[ConditionResult] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class DecisionResult(CamelModel):
    """
    Immutable outcome of one evaluation (rule set or workflow).

    Attributes:
        decision: approve, decline or review
        score: Highest score set by a set_score action, if any
        flags: Flags added along the evaluation, in first-seen order
        executed_rules: IDs of every enabled rule that was evaluated
        matched_rules: IDs of the rules whose conditions matched
        required_documents: Documents requested by require_document actions
        messages: Messages from decision, notify and log actions
        outputs: Values written by set_value, calculate and transform actions
        execution_path: Node IDs visited by a workflow execution
        execution_time_ms: Wall-clock duration of the evaluation
        errors: Runtime error codes; non-empty means the decision was forced to review
        warnings: Non-fatal evaluation warnings
    """

    decision: Decision
    score: Optional[float] = None
    flags: list[str] = Field(default_factory=list)
    executed_rules: list[str] = Field(default_factory=list)
    matched_rules: list[str] = Field(default_factory=list)
    required_documents: list[str] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
    outputs: dict[str, Any] = Field(default_factory=dict)
    execution_path: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def without_timing(self) -> dict:
        """Dump everything except execution_time_ms, for equality checks."""
        return self.model_dump(exclude={"execution_time_ms"})


# ==================== API Schemas ====================


class EvaluateRulesRequest(CamelModel):
    """Schema for evaluating a rule list or rule set against a record."""

    rules: list[Rule] = Field(default_factory=list)
    rule_set: Optional[RuleSet] = None
    record: dict[str, Any] = Field(default_factory=dict)


class DecisionRequest(CamelModel):
    """Schema for evaluating a record against a stored, published workflow."""

    workflow_id: str
    version: Optional[str] = None
    record: dict[str, Any] = Field(default_factory=dict)


class BatchDecisionRequest(CamelModel):
    """Schema for evaluating many records against one stored workflow."""

    workflow_id: str
    version: Optional[str] = None
    records: list[dict[str, Any]] = Field(..., min_length=1, max_length=1000)


class BatchDecisionResponse(CamelModel):
    """Schema for batch decision response."""

    workflow_id: str
    version: str
    results: list[DecisionResult]
    approved: int
    declined: int
    review: int
