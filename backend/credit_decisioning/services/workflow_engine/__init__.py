"""Workflow graph validation and execution."""

from .executor import (
    AMBIGUOUS_NEXT_NODE,
    CYCLE_LIMIT_EXCEEDED,
    MISSING_BRANCH_EDGE,
    MISSING_NEXT_NODE,
    NODE_EXECUTION_FAILED,
    WorkflowExecutor,
    execute_workflow,
)
from .validator import WorkflowValidator, validate_workflow

__all__ = [
    "AMBIGUOUS_NEXT_NODE",
    "CYCLE_LIMIT_EXCEEDED",
    "MISSING_BRANCH_EDGE",
    "MISSING_NEXT_NODE",
    "NODE_EXECUTION_FAILED",
    "WorkflowExecutor",
    "WorkflowValidator",
    "execute_workflow",
    "validate_workflow",
]
