"""Pydantic schemas for API validation and serialization."""

from credit_decisioning.models.schemas.decision import (
    BatchDecisionRequest,
    BatchDecisionResponse,
    ConditionResult,
    DecisionRequest,
    DecisionResult,
    EvaluateRulesRequest,
    RuleEvaluationResult,
)
from credit_decisioning.models.schemas.rule import (
    Action,
    Condition,
    Rule,
    RuleMetadata,
    RuleSet,
    RuleValidationResponse,
)
from credit_decisioning.models.schemas.simulation import (
    SimulationReport,
    SimulationRequest,
    TestCase,
    TestDifference,
    TestExecutionResult,
)
from credit_decisioning.models.schemas.workflow import (
    DataRequirements,
    ExecuteWorkflowRequest,
    NodeData,
    Position,
    ValidationResult,
    WorkflowConnection,
    WorkflowCreate,
    WorkflowDefinition,
    WorkflowImportRequest,
    WorkflowListResponse,
    WorkflowMetadata,
    WorkflowNode,
    WorkflowSummaryResponse,
    WorkflowVersionCreate,
)

__all__ = [
    # Rule schemas
    "Condition",
    "Action",
    "RuleMetadata",
    "Rule",
    "RuleSet",
    "RuleValidationResponse",
    # Decision schemas
    "ConditionResult",
    "RuleEvaluationResult",
    "DecisionResult",
    "EvaluateRulesRequest",
    "DecisionRequest",
    "BatchDecisionRequest",
    "BatchDecisionResponse",
    # Workflow schemas
    "Position",
    "NodeData",
    "WorkflowNode",
    "WorkflowConnection",
    "DataRequirements",
    "WorkflowMetadata",
    "WorkflowDefinition",
    "ValidationResult",
    "WorkflowCreate",
    "WorkflowVersionCreate",
    "WorkflowSummaryResponse",
    "WorkflowListResponse",
    "ExecuteWorkflowRequest",
    "WorkflowImportRequest",
    # Simulation schemas
    "TestCase",
    "TestDifference",
    "TestExecutionResult",
    "SimulationReport",
    "SimulationRequest",
]
