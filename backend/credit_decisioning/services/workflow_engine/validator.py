"""Structural validation of workflow graphs before execution."""

import logging
import threading
from collections import Counter, OrderedDict, defaultdict, deque
from typing import Optional

from credit_decisioning.config import settings
from credit_decisioning.core.enums import BranchLabel, ExecutionOrder, NodeType
from credit_decisioning.models.schemas.workflow import (
    ValidationResult,
    WorkflowConnection,
    WorkflowDefinition,
    WorkflowNode,
)
from credit_decisioning.services.rule_engine.validation import validate_action, validate_rule

logger = logging.getLogger(__name__)

BOOLEAN_BRANCH_TYPES = frozenset({NodeType.CONDITION, NodeType.DECISION})
RULE_OWNING_TYPES = frozenset({NodeType.CONDITION, NodeType.DECISION, NodeType.RULE_SET})
BOOLEAN_LABELS = (BranchLabel.TRUE.value, BranchLabel.FALSE.value)
PASS_FAIL_LABELS = (BranchLabel.PASS.value, BranchLabel.FAIL.value)


def normalize_label(label: Optional[str]) -> Optional[str]:
    """Branch labels compare case-insensitively and ignore surrounding space."""
    if label is None:
        return None
    label = label.strip().lower()
    return label or None


def uses_pass_fail(connections: list[WorkflowConnection]) -> bool:
    return any(normalize_label(conn.label) in PASS_FAIL_LABELS for conn in connections)


class WorkflowValidator:
    """
    Validates workflow graphs.

    Checks performed (all must pass):
    - Exactly one start node, at least one end node
    - Connection endpoints exist, no self-loops, unique ids
    - Every non-end node reachable from start
    - Every non-start node has an incoming connection
    - Branch nodes have exactly one edge per required label
    - Non-branching nodes have exactly one outgoing edge; end nodes none
    - No duplicate (source, target) connections
    - Embedded rules and actions are well-formed
    - Rule set execution orders and data source field lists are well-formed

    Cycles are allowed and reported as a warning; the executor bounds them
    with its step budget. Results are cached by content hash.
    """

    def __init__(self, cache_size: int = settings.VALIDATION_CACHE_SIZE):
        self._cache_size = cache_size
        self._cache: OrderedDict[str, ValidationResult] = OrderedDict()
        self._lock = threading.Lock()

    def validate(self, workflow: WorkflowDefinition) -> ValidationResult:
        """
        Validate a workflow definition.

        Args:
            workflow: The definition to check (never mutated)

        Returns:
            ValidationResult with is_valid, errors and warnings
        """
        key = workflow.content_hash()
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                return cached

        result = self._validate(workflow)

        if self._cache_size > 0:
            with self._lock:
                self._cache[key] = result
                while len(self._cache) > self._cache_size:
                    self._cache.popitem(last=False)
        return result

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _validate(self, workflow: WorkflowDefinition) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if not workflow.name or not workflow.name.strip():
            errors.append("Workflow name is required")
        if not workflow.nodes:
            errors.append("Workflow must have at least one node")
            return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

        nodes = self._index_nodes(workflow.nodes, errors)
        start_nodes = [node for node in workflow.nodes if node.type == NodeType.START]
        end_nodes = [node for node in workflow.nodes if node.type == NodeType.END]

        if len(start_nodes) != 1:
            errors.append(f"Workflow must have exactly one start node (found {len(start_nodes)})")
        if not end_nodes:
            errors.append("Workflow must have at least one end node")

        connections = self._check_connections(workflow.connections, nodes, errors)
        outgoing: dict[str, list[WorkflowConnection]] = defaultdict(list)
        incoming: dict[str, list[WorkflowConnection]] = defaultdict(list)
        for conn in connections:
            outgoing[conn.source].append(conn)
            incoming[conn.target].append(conn)

        reachable: set[str] = set()
        if len(start_nodes) == 1:
            reachable = self._reachable_from(start_nodes[0].id, outgoing)

        for node in nodes.values():
            label = f"Node '{node.id}' ({node.type.value})"
            if node.id not in reachable and len(start_nodes) == 1:
                if node.type == NodeType.END:
                    warnings.append(f"{label} is not reachable from the start node")
                else:
                    errors.append(f"{label} is not reachable from the start node")
            if node.type != NodeType.START and not incoming[node.id]:
                errors.append(f"{label} has no incoming connection")
            self._check_outgoing(node, outgoing[node.id], errors, warnings)
            self._check_payload(node, errors)

        cycle_node = self._find_cycle(nodes, outgoing)
        if cycle_node is not None:
            warnings.append(
                f"Workflow contains a cycle through node '{cycle_node}'; "
                f"execution is bounded by the step budget"
            )

        is_valid = not errors
        if not is_valid:
            logger.info(f"Workflow {workflow.id} failed validation with {len(errors)} error(s)")
        return ValidationResult(is_valid=is_valid, errors=errors, warnings=warnings)

    def _index_nodes(self, nodes: list[WorkflowNode], errors: list[str]) -> dict[str, WorkflowNode]:
        indexed: dict[str, WorkflowNode] = {}
        for node in nodes:
            if not node.id:
                errors.append("Every node must have an id")
                continue
            if node.id in indexed:
                errors.append(f"Duplicate node id '{node.id}'")
                continue
            indexed[node.id] = node
        return indexed

    def _check_connections(
        self,
        connections: list[WorkflowConnection],
        nodes: dict[str, WorkflowNode],
        errors: list[str],
    ) -> list[WorkflowConnection]:
        """Check connection integrity and return the ones safe to traverse."""
        usable: list[WorkflowConnection] = []
        seen_ids: set[str] = set()
        seen_pairs: set[tuple[str, str]] = set()

        for conn in connections:
            label = f"Connection '{conn.id}'"
            if conn.id in seen_ids:
                errors.append(f"Duplicate connection id '{conn.id}'")
            seen_ids.add(conn.id)

            if conn.source == conn.target:
                errors.append(f"{label} connects node '{conn.source}' to itself")
                continue

            dangling = False
            if conn.source not in nodes:
                errors.append(f"{label} references unknown source node '{conn.source}'")
                dangling = True
            if conn.target not in nodes:
                errors.append(f"{label} references unknown target node '{conn.target}'")
                dangling = True
            if dangling:
                continue

            pair = (conn.source, conn.target)
            if pair in seen_pairs:
                errors.append(
                    f"Duplicate connection from '{conn.source}' to '{conn.target}'"
                )
                continue
            seen_pairs.add(pair)
            usable.append(conn)
        return usable

    def _check_outgoing(
        self,
        node: WorkflowNode,
        outgoing: list[WorkflowConnection],
        errors: list[str],
        warnings: list[str],
    ) -> None:
        label = f"Node '{node.id}' ({node.type.value})"

        if node.type == NodeType.END:
            if outgoing:
                errors.append(f"{label} is an end node and cannot have outgoing connections")
            return
        if not outgoing:
            errors.append(f"{label} has no outgoing connection (dead end)")
            return

        labels = Counter(normalize_label(conn.label) for conn in outgoing)
        for branch, count in labels.items():
            if branch is not None and count > 1:
                errors.append(f"{label} has {count} outgoing connections labeled '{branch}'")

        if node.type in BOOLEAN_BRANCH_TYPES:
            for branch in BOOLEAN_LABELS:
                if branch not in labels:
                    errors.append(f"{label} is missing its '{branch}' branch")
            extra = [branch for branch in labels if branch not in BOOLEAN_LABELS]
            if extra:
                warnings.append(f"{label} has connections that are never followed: {extra}")
        elif node.type == NodeType.RULE_SET and uses_pass_fail(outgoing):
            for branch in PASS_FAIL_LABELS:
                if branch not in labels:
                    errors.append(f"{label} is missing its '{branch}' branch")
            extra = [branch for branch in labels if branch not in PASS_FAIL_LABELS]
            if extra:
                warnings.append(f"{label} has connections that are never followed: {extra}")
        elif len(outgoing) > 1:
            errors.append(
                f"{label} has {len(outgoing)} outgoing connections but can only follow one"
            )

    def _check_payload(self, node: WorkflowNode, errors: list[str]) -> None:
        label = f"Node '{node.id}' ({node.type.value})"

        if node.type in RULE_OWNING_TYPES and not node.data.rules:
            errors.append(f"{label} must have at least one rule")
        for rule in node.data.rules:
            errors.extend(f"{label}: {error}" for error in validate_rule(rule))

        if node.type == NodeType.ACTION:
            if not node.data.actions:
                errors.append(f"{label} must have at least one action")
            for index, action in enumerate(node.data.actions):
                errors.extend(f"{label}: {error}" for error in validate_action(action, index))

        if node.type == NodeType.RULE_SET:
            order = node.data.config.get("executionOrder", ExecutionOrder.PRIORITY.value)
            if order not in [member.value for member in ExecutionOrder]:
                errors.append(
                    f"{label}: executionOrder must be one of "
                    f"{[member.value for member in ExecutionOrder]}, got {order!r}"
                )

        if node.type == NodeType.DATA_SOURCE:
            fields = node.data.config.get("fields", [])
            if not isinstance(fields, list) or not all(isinstance(field, str) for field in fields):
                errors.append(f"{label}: config fields must be a list of field paths")

    @staticmethod
    def _reachable_from(start_id: str, outgoing: dict[str, list[WorkflowConnection]]) -> set[str]:
        seen = {start_id}
        queue = deque([start_id])
        while queue:
            current = queue.popleft()
            for conn in outgoing.get(current, []):
                if conn.target not in seen:
                    seen.add(conn.target)
                    queue.append(conn.target)
        return seen

    @staticmethod
    def _find_cycle(
        nodes: dict[str, WorkflowNode],
        outgoing: dict[str, list[WorkflowConnection]],
    ) -> Optional[str]:
        """Return a node on some cycle, or None for an acyclic graph."""
        visiting, done = 1, 2
        state: dict[str, int] = {}
        for root in nodes:
            if root in state:
                continue
            stack = [(root, iter(outgoing.get(root, [])))]
            state[root] = visiting
            while stack:
                node_id, edges = stack[-1]
                conn = next(edges, None)
                if conn is None:
                    state[node_id] = done
                    stack.pop()
                    continue
                target_state = state.get(conn.target)
                if target_state == visiting:
                    return conn.target
                if target_state is None:
                    state[conn.target] = visiting
                    stack.append((conn.target, iter(outgoing.get(conn.target, []))))
        return None


def validate_workflow(workflow: WorkflowDefinition) -> ValidationResult:
    """Validate with a fresh, uncached validator."""
    return WorkflowValidator(cache_size=0).validate(workflow)
