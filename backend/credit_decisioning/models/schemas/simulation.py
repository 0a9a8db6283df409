"""Pydantic schemas for simulation test cases and reports."""

from typing import Any, Optional

from pydantic import ConfigDict, Field, model_validator

from credit_decisioning.core.enums import DifferenceType, TestStatus
from credit_decisioning.models.schemas.base import CamelModel
from credit_decisioning.models.schemas.decision import DecisionResult
from credit_decisioning.models.schemas.rule import Rule, RuleSet
from credit_decisioning.models.schemas.workflow import WorkflowDefinition


# ==================== Test Case Schemas ====================


class TestCase(CamelModel):
    """
    A labeled applicant fixture with its expected outcome.

    ``expected_output`` must contain ``decision``; it may also pin
    ``score``, ``flags``, ``requiredDocuments``, ``executedRules``,
    ``matchedRules`` and ``outputs``.
    """

    __test__ = False

    id: str
    name: str = ""
    description: str = ""
    input_data: dict[str, Any] = Field(default_factory=dict)
    expected_output: dict[str, Any]
    expected_path: Optional[list[str]] = None
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _expects_decision(self) -> "TestCase":
        if "decision" not in self.expected_output:
            raise ValueError("expected_output must contain a 'decision'")
        return self


class TestDifference(CamelModel):
    """One field-level mismatch between expected and actual output."""

    __test__ = False

    field: str
    expected: Any = None
    actual: Any = None
    type: DifferenceType

    model_config = ConfigDict(frozen=True)


class TestExecutionResult(CamelModel):
    """Outcome of running one test case through the engine."""

    __test__ = False

    test_case_id: str
    status: TestStatus
    actual_output: Optional[DecisionResult] = None
    actual_path: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0
    differences: list[TestDifference] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class SimulationReport(CamelModel):
    """Aggregated statistics for a batch of test cases."""

    total: int
    passed: int
    failed: int
    errored: int
    skipped: int
    pass_rate: float
    average_execution_time_ms: float
    results: list[TestExecutionResult] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


# ==================== API Schemas ====================


class SimulationRequest(CamelModel):
    """Schema for running test cases against a workflow or rules."""

    test_cases: list[TestCase] = Field(..., min_length=1)
    workflow: Optional[WorkflowDefinition] = None
    rule_set: Optional[RuleSet] = None
    rules: list[Rule] = Field(default_factory=list)

    @model_validator(mode="after")
    def _has_target(self) -> "SimulationRequest":
        if self.workflow is None and self.rule_set is None and not self.rules:
            raise ValueError("Provide a workflow, a rule_set or rules to simulate")
        return self
