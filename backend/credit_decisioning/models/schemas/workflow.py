"""Pydantic schemas for the workflow graph: nodes, connections, definitions."""

import hashlib
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ConfigDict, Field

from credit_decisioning.core.enums import NodeType, WorkflowStatus
from credit_decisioning.models.schemas.base import CamelModel
from credit_decisioning.models.schemas.rule import Action, Rule


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Node Schemas ====================


class Position(CamelModel):
    """Canvas position of a node. Layout only, never read by the engine."""

    x: float = 0.0
    y: float = 0.0


class NodeData(CamelModel):
    """Per-node payload; which fields matter depends on the node type."""

    label: str = ""
    rules: list[Rule] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    data_source: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)


class WorkflowNode(CamelModel):
    """A typed node in the workflow graph."""

    id: str
    type: NodeType
    position: Position = Field(default_factory=Position)
    data: NodeData = Field(default_factory=NodeData)


# ==================== Connection Schemas ====================


class WorkflowConnection(CamelModel):
    """A directed, optionally labeled edge between two nodes."""

    id: str
    source: str
    target: str
    label: Optional[str] = None
    condition: Optional[str] = None


# ==================== Definition Schemas ====================


class DataRequirements(CamelModel):
    """Fields the workflow expects data-source collaborators to supply."""

    required: list[str] = Field(default_factory=list)
    optional: list[str] = Field(default_factory=list)
    external: list[str] = Field(default_factory=list)


class WorkflowMetadata(CamelModel):
    """Authoring metadata for a workflow definition."""

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    created_by: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    parent_version: Optional[str] = None


class WorkflowDefinition(CamelModel):
    """A versioned graph of nodes and labeled connections."""

    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    nodes: list[WorkflowNode] = Field(default_factory=list)
    connections: list[WorkflowConnection] = Field(default_factory=list)
    data_requirements: DataRequirements = Field(default_factory=DataRequirements)
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)
    status: WorkflowStatus = WorkflowStatus.DRAFT

    def content_hash(self) -> str:
        """SHA-256 of the canonical JSON encoding of this definition."""
        payload = self.model_dump_json(by_alias=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing(self, node_id: str) -> list[WorkflowConnection]:
        return [conn for conn in self.connections if conn.source == node_id]

    def incoming(self, node_id: str) -> list[WorkflowConnection]:
        return [conn for conn in self.connections if conn.target == node_id]


class ValidationResult(CamelModel):
    """Outcome of structural validation of a workflow definition."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


# ==================== API Schemas ====================


class WorkflowCreate(CamelModel):
    """Schema for storing a new workflow definition (first version)."""

    definition: WorkflowDefinition


class WorkflowVersionCreate(CamelModel):
    """Schema for deriving a new version from the latest stored version."""

    bump: str = Field(default="minor", pattern="^(major|minor|patch)$")
    created_by: Optional[str] = None


class WorkflowSummaryResponse(CamelModel):
    """Schema for a stored workflow version without its graph."""

    workflow_id: str
    name: str
    version: str
    status: WorkflowStatus
    content_hash: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkflowListResponse(CamelModel):
    """Schema for paginated workflow list response."""

    items: list[WorkflowSummaryResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ExecuteWorkflowRequest(CamelModel):
    """Schema for executing a workflow definition supplied in the body."""

    workflow: WorkflowDefinition
    record: dict[str, Any] = Field(default_factory=dict)
    allow_draft: bool = False


class WorkflowImportRequest(CamelModel):
    """Schema for importing an exported workflow document."""

    content: str
    format: Optional[str] = Field(default=None, pattern="^(json|yaml)$")
    verify_checksum: bool = True
