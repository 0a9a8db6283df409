"""Repository for stored workflow definition versions."""

from typing import List, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from credit_decisioning.core.enums import WorkflowStatus
from credit_decisioning.core.exceptions import PublishedWorkflowImmutableError
from credit_decisioning.models.domain.workflow import WorkflowRecord
from credit_decisioning.models.schemas.workflow import WorkflowDefinition
from credit_decisioning.repositories.base import BaseRepository


class WorkflowRepository(BaseRepository[WorkflowRecord]):
    """
    Repository for WorkflowRecord.

    Every (workflow_id, version) pair is one row. Draft rows may be
    rewritten; published and archived rows only ever change status.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the workflow repository.

        Args:
            db: Async database session
        """
        super().__init__(WorkflowRecord, db)

    async def get_version(self, workflow_id: str, version: str) -> Optional[WorkflowRecord]:
        """Retrieve one stored version, or None."""
        return await self.find_one_by(workflow_id=workflow_id, version=version)

    async def list_versions(
        self,
        workflow_id: str,
        status: Optional[WorkflowStatus] = None,
    ) -> List[WorkflowRecord]:
        """
        Retrieve every stored version of a workflow in insertion order.

        Args:
            workflow_id: The workflow identifier
            status: Optional status filter

        Returns:
            List of records, oldest first
        """
        filters = {"workflow_id": workflow_id}
        if status is not None:
            filters["status"] = status
        return await self.find_by(order_by=WorkflowRecord.created_at, **filters)

    async def list_workflow_ids(self, skip: int = 0, limit: int = 100) -> List[str]:
        """Distinct workflow identifiers, alphabetically, paginated."""
        stmt = (
            select(distinct(WorkflowRecord.workflow_id))
            .order_by(WorkflowRecord.workflow_id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_workflows(self) -> int:
        stmt = select(func.count(distinct(WorkflowRecord.workflow_id)))
        result = await self.db.execute(stmt)
        return result.scalar_one()

    async def save_definition(self, definition: WorkflowDefinition) -> WorkflowRecord:
        """
        Insert a version, or rewrite it while it is still a draft.

        Args:
            definition: The definition to store under (id, version)

        Returns:
            The stored record

        Raises:
            PublishedWorkflowImmutableError: If the stored version is no longer a draft
        """
        fields = {
            "name": definition.name,
            "description": definition.description,
            "status": definition.status,
            "created_by": definition.metadata.created_by,
            "definition": definition.to_wire(),
            "content_hash": definition.content_hash(),
        }

        existing = await self.get_version(definition.id, definition.version)
        if existing is None:
            return await self.create(
                workflow_id=definition.id,
                version=definition.version,
                **fields,
            )
        if existing.status != WorkflowStatus.DRAFT:
            raise PublishedWorkflowImmutableError(definition.id, definition.version)
        return await self.update_instance(existing, **fields)

    async def set_status(
        self,
        record: WorkflowRecord,
        definition: WorkflowDefinition,
    ) -> WorkflowRecord:
        """Persist a lifecycle transition; the graph itself is left unchanged."""
        return await self.update_instance(
            record,
            status=definition.status,
            definition=definition.to_wire(),
            content_hash=definition.content_hash(),
        )
