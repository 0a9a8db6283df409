"""Stored workflow definition versions."""

from typing import Any, Optional

from sqlalchemy import JSON, Enum as SQLEnum, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from credit_decisioning.core.enums import WorkflowStatus
from credit_decisioning.db.base import BaseModel


class WorkflowRecord(BaseModel):
    """One version of a workflow definition; published rows are never rewritten."""

    __tablename__ = "workflow_definitions"
    __table_args__ = (
        UniqueConstraint("workflow_id", "version", name="uq_workflow_definitions_workflow_version"),
    )

    # Identification
    workflow_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Lifecycle
    status: Mapped[WorkflowStatus] = mapped_column(
        SQLEnum(WorkflowStatus, name="workflow_status", values_callable=lambda e: [m.value for m in e]),
        default=WorkflowStatus.DRAFT,
        nullable=False,
        index=True,
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Full definition in wire (camelCase) form
    definition: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<WorkflowRecord(workflow_id={self.workflow_id!r}, "
            f"version={self.version!r}, status={self.status.value!r})>"
        )
