"""Workflow executor: traverses a validated graph into a decision."""

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Optional

from credit_decisioning.config import settings
from credit_decisioning.core.enums import BranchLabel, ExecutionOrder, NodeType, WorkflowStatus
from credit_decisioning.core.exceptions import WorkflowNotPublishedError, WorkflowValidationError
from credit_decisioning.models.schemas.decision import DecisionResult
from credit_decisioning.models.schemas.workflow import (
    WorkflowConnection,
    WorkflowDefinition,
    WorkflowNode,
)
from credit_decisioning.services.rule_engine.actions import DecisionAccumulator
from credit_decisioning.services.rule_engine.conditions import MISSING, resolve_field
from credit_decisioning.services.rule_engine.engine import RuleEngine
from credit_decisioning.services.workflow_engine.validator import (
    WorkflowValidator,
    normalize_label,
    uses_pass_fail,
)

logger = logging.getLogger(__name__)

# Runtime error codes surfaced in DecisionResult.errors
CYCLE_LIMIT_EXCEEDED = "cycle_limit_exceeded"
MISSING_BRANCH_EDGE = "missing_branch_edge"
MISSING_NEXT_NODE = "missing_next_node"
AMBIGUOUS_NEXT_NODE = "ambiguous_next_node"
MISSING_START_NODE = "missing_start_node"
NODE_EXECUTION_FAILED = "node_execution_failed"

NodeHandler = Callable[
    [WorkflowNode, WorkflowDefinition, Mapping[str, Any], DecisionAccumulator],
    Optional[WorkflowConnection],
]


class ExecutionAborted(Exception):
    """Internal signal that traversal cannot continue safely."""

    def __init__(self, code: str, node_id: Optional[str], detail: str):
        self.code = code
        self.node_id = node_id
        super().__init__(f"{code} at node {node_id!r}: {detail}")


class WorkflowExecutor:
    """
    Decision engine that executes workflow graphs.

    This class:
    - Refuses definitions that fail validation (or are unpublished, unless allowed)
    - Walks the graph from the start node, one handler per node type
    - Accumulates flags, score, executed rules and the decision along the path
    - Bounds traversal with a step budget of multiplier x node count
    - Converts runtime failures into a review decision plus an error code
    """

    def __init__(
        self,
        rule_engine: Optional[RuleEngine] = None,
        validator: Optional[WorkflowValidator] = None,
        step_budget_multiplier: int = settings.STEP_BUDGET_MULTIPLIER,
    ):
        """Initialize the executor and its node handler registry."""
        self.rule_engine = rule_engine or RuleEngine()
        self.validator = validator or WorkflowValidator()
        self.step_budget_multiplier = step_budget_multiplier
        self._handlers: dict[NodeType, NodeHandler] = {}
        self._register_default_handlers()

    def _register_default_handlers(self) -> None:
        """Register a handler for every node type."""
        self._handlers[NodeType.START] = self._execute_passthrough
        self._handlers[NodeType.DATA_SOURCE] = self._execute_data_source
        self._handlers[NodeType.CONDITION] = self._execute_branch
        self._handlers[NodeType.DECISION] = self._execute_branch
        self._handlers[NodeType.RULE_SET] = self._execute_rule_set
        self._handlers[NodeType.ACTION] = self._execute_action
        self._handlers[NodeType.END] = self._execute_end

        unhandled = set(NodeType) - set(self._handlers)
        if unhandled:
            raise RuntimeError(f"No handler registered for node types: {sorted(unhandled)}")

    def step_budget(self, workflow: WorkflowDefinition) -> int:
        return self.step_budget_multiplier * len(workflow.nodes)

    def execute(
        self,
        workflow: WorkflowDefinition,
        record: Mapping[str, Any],
        *,
        allow_draft: bool = False,
        skip_validation: bool = False,
    ) -> DecisionResult:
        """
        Execute a workflow against an applicant record.

        Args:
            workflow: The definition to run (never mutated)
            record: The applicant record (never mutated)
            allow_draft: Permit non-published definitions (simulation use)
            skip_validation: Trust the caller to have validated the definition

        Returns:
            DecisionResult for the traversal

        Raises:
            WorkflowNotPublishedError: If the workflow is not published and drafts are not allowed
            WorkflowValidationError: If the workflow fails structural validation
        """
        if not allow_draft and workflow.status != WorkflowStatus.PUBLISHED:
            raise WorkflowNotPublishedError(workflow.id, workflow.status.value)

        if not skip_validation:
            validation = self.validator.validate(workflow)
            if not validation.is_valid:
                raise WorkflowValidationError(validation.errors, workflow_id=workflow.id)

        started = time.perf_counter()
        state = DecisionAccumulator()
        self._check_required_fields(workflow, record, state)

        force_review = False
        try:
            self._traverse(workflow, record, state)
        except ExecutionAborted as e:
            logger.warning(f"Workflow {workflow.id} aborted: {e}")
            state.errors.append(e.code)
            force_review = True
        except Exception as e:
            logger.error(f"Workflow {workflow.id} failed during execution: {e}", exc_info=True)
            state.errors.append(NODE_EXECUTION_FAILED)
            state.warn(f"{NODE_EXECUTION_FAILED}: {e}")
            force_review = True

        elapsed_ms = (time.perf_counter() - started) * 1000
        result = state.finalize(elapsed_ms, force_review=force_review)
        logger.debug(
            f"Workflow {workflow.id} v{workflow.version} -> {result.decision.value} "
            f"in {len(result.execution_path)} steps"
        )
        return result

    def _traverse(
        self,
        workflow: WorkflowDefinition,
        record: Mapping[str, Any],
        state: DecisionAccumulator,
    ) -> None:
        nodes = {node.id: node for node in workflow.nodes}
        current = next((node for node in workflow.nodes if node.type == NodeType.START), None)
        if current is None:
            raise ExecutionAborted(MISSING_START_NODE, None, "workflow has no start node")

        budget = self.step_budget(workflow)
        steps = 0
        while True:
            steps += 1
            if steps > budget:
                raise ExecutionAborted(
                    CYCLE_LIMIT_EXCEEDED, current.id, f"step budget of {budget} exhausted"
                )
            state.execution_path.append(current.id)

            connection = self._handlers[current.type](current, workflow, record, state)
            if connection is None:
                return

            next_node = nodes.get(connection.target)
            if next_node is None:
                raise ExecutionAborted(
                    MISSING_NEXT_NODE,
                    current.id,
                    f"connection {connection.id!r} targets unknown node {connection.target!r}",
                )
            current = next_node

    # ==================== Edge Selection ====================

    @staticmethod
    def _single_edge(node: WorkflowNode, workflow: WorkflowDefinition) -> WorkflowConnection:
        outgoing = workflow.outgoing(node.id)
        if not outgoing:
            raise ExecutionAborted(MISSING_NEXT_NODE, node.id, "node has no outgoing connection")
        if len(outgoing) > 1:
            raise ExecutionAborted(
                AMBIGUOUS_NEXT_NODE, node.id, f"{len(outgoing)} outgoing connections"
            )
        return outgoing[0]

    @staticmethod
    def _branch_edge(node: WorkflowNode, workflow: WorkflowDefinition, label: str) -> WorkflowConnection:
        for conn in workflow.outgoing(node.id):
            if normalize_label(conn.label) == label:
                return conn
        raise ExecutionAborted(MISSING_BRANCH_EDGE, node.id, f"no connection labeled {label!r}")

    # ==================== Node Handlers ====================

    def _execute_passthrough(self, node, workflow, record, state) -> WorkflowConnection:
        return self._single_edge(node, workflow)

    def _execute_data_source(self, node, workflow, record, state) -> WorkflowConnection:
        # Connectors merge source fields into the record before execution;
        # here we only note the ones that did not arrive.
        fields = node.data.config.get("fields", [])
        if not isinstance(fields, list):
            state.warn(f"invalid_config: data source '{node.id}' fields must be a list")
            return self._single_edge(node, workflow)

        view = state.view(record)
        for field in fields:
            if isinstance(field, str) and resolve_field(view, field) is MISSING:
                source = node.data.data_source or node.id
                state.warn(f"missing_source_field: '{field}' from data source '{source}'")
        return self._single_edge(node, workflow)

    def _execute_branch(self, node, workflow, record, state) -> WorkflowConnection:
        applied = self.rule_engine.apply_rules(node.data.rules, record, state)
        label = BranchLabel.TRUE.value if applied.matched else BranchLabel.FALSE.value
        return self._branch_edge(node, workflow, label)

    def _execute_rule_set(self, node, workflow, record, state) -> WorkflowConnection:
        execution_order = ExecutionOrder(node.data.config.get("executionOrder", ExecutionOrder.PRIORITY.value))
        applied = self.rule_engine.apply_rules(node.data.rules, record, state, execution_order)
        if uses_pass_fail(workflow.outgoing(node.id)):
            label = BranchLabel.PASS.value if applied.produced_terminal else BranchLabel.FAIL.value
            return self._branch_edge(node, workflow, label)
        return self._single_edge(node, workflow)

    def _execute_action(self, node, workflow, record, state) -> WorkflowConnection:
        state.apply_all(node.data.actions, record)
        return self._single_edge(node, workflow)

    def _execute_end(self, node, workflow, record, state) -> None:
        return None

    @staticmethod
    def _check_required_fields(
        workflow: WorkflowDefinition,
        record: Mapping[str, Any],
        state: DecisionAccumulator,
    ) -> None:
        for field in workflow.data_requirements.required:
            if resolve_field(record, field) is MISSING:
                state.warn(f"missing_required_field:{field}")


def execute_workflow(
    workflow: WorkflowDefinition,
    record: Mapping[str, Any],
    *,
    allow_draft: bool = False,
) -> DecisionResult:
    """Execute a workflow with a default executor."""
    return WorkflowExecutor().execute(workflow, record, allow_draft=allow_draft)
