"""Workflow versioning and the service that stores and runs versions."""

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from credit_decisioning.core.enums import Decision, WorkflowStatus
from credit_decisioning.core.exceptions import (
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from credit_decisioning.models.domain.workflow import WorkflowRecord
from credit_decisioning.models.schemas.decision import BatchDecisionResponse, DecisionResult
from credit_decisioning.models.schemas.workflow import WorkflowDefinition
from credit_decisioning.repositories.workflow_repository import WorkflowRepository
from credit_decisioning.services.workflow_engine.executor import WorkflowExecutor
from credit_decisioning.services.workflow_engine.validator import WorkflowValidator

logger = logging.getLogger(__name__)

VERSION_PARTS = ("major", "minor", "patch")


# ==================== Version Helpers ====================


def parse_version(version: str) -> tuple[int, int, int]:
    """
    Parse "X.Y.Z" into a sortable tuple. Missing parts count as zero.

    Raises:
        ValueError: If a part is not a non-negative integer
    """
    parts = version.strip().lstrip("vV").split(".")
    if not parts or len(parts) > 3:
        raise ValueError(f"Invalid version {version!r}; expected MAJOR.MINOR.PATCH")
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        raise ValueError(f"Invalid version {version!r}; expected MAJOR.MINOR.PATCH")
    if any(number < 0 for number in numbers):
        raise ValueError(f"Invalid version {version!r}; parts must be non-negative")
    numbers += [0] * (3 - len(numbers))
    return numbers[0], numbers[1], numbers[2]


def bump_version(version: str, part: str = "minor") -> str:
    """Increment one part of a semantic version and reset the lower parts."""
    if part not in VERSION_PARTS:
        raise ValueError(f"Unknown version part {part!r}; expected one of {VERSION_PARTS}")
    major, minor, patch = parse_version(version)
    if part == "major":
        return f"{major + 1}.0.0"
    if part == "minor":
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_new_version(
    definition: WorkflowDefinition,
    bump: str = "minor",
    created_by: Optional[str] = None,
) -> WorkflowDefinition:
    """
    Derive the next draft version of a workflow.

    The source definition is left untouched; the copy is independent of it.

    Args:
        definition: The version to branch from (any status)
        bump: Which part of the version to increment
        created_by: Author of the new version; defaults to the source's author

    Returns:
        A new draft definition whose metadata points back at its parent
    """
    now = _now()
    metadata = definition.metadata.model_copy(
        deep=True,
        update={
            "created_at": now,
            "updated_at": now,
            "created_by": created_by or definition.metadata.created_by,
            "parent_version": definition.version,
        },
    )
    return definition.model_copy(
        deep=True,
        update={
            "version": bump_version(definition.version, bump),
            "status": WorkflowStatus.DRAFT,
            "metadata": metadata,
        },
    )


def _with_status(definition: WorkflowDefinition, status: WorkflowStatus) -> WorkflowDefinition:
    metadata = definition.metadata.model_copy(update={"updated_at": _now()})
    return definition.model_copy(deep=True, update={"status": status, "metadata": metadata})


def publish(
    definition: WorkflowDefinition,
    validator: Optional[WorkflowValidator] = None,
) -> WorkflowDefinition:
    """
    Mark a definition as published after it passes validation.

    Raises:
        WorkflowValidationError: If the definition is structurally invalid
        ValueError: If the definition was archived
    """
    if definition.status == WorkflowStatus.ARCHIVED:
        raise ValueError(f"Workflow {definition.id!r} v{definition.version} is archived")
    if definition.status == WorkflowStatus.PUBLISHED:
        return definition

    result = (validator or WorkflowValidator()).validate(definition)
    if not result.is_valid:
        raise WorkflowValidationError(result.errors, workflow_id=definition.id)
    return _with_status(definition, WorkflowStatus.PUBLISHED)


def archive(definition: WorkflowDefinition) -> WorkflowDefinition:
    """Mark a definition as archived; it can no longer be executed in production."""
    if definition.status == WorkflowStatus.ARCHIVED:
        return definition
    return _with_status(definition, WorkflowStatus.ARCHIVED)


# ==================== Workflow Service ====================


class WorkflowService:
    """
    Service for storing workflow versions and running decisions against them.

    This service:
    - Stores drafts and derives new versions from the latest one
    - Publishes (after validation) and archives individual versions
    - Resolves the latest published version for production decisions
    - Runs single and batch decisions through the workflow executor
    """

    def __init__(self, db: AsyncSession, executor: Optional[WorkflowExecutor] = None):
        """
        Initialize the workflow service.

        Args:
            db: Async database session
            executor: Executor used for decisions; a default one when omitted
        """
        self.db = db
        self.repo = WorkflowRepository(db)
        self.executor = executor or WorkflowExecutor()

    @staticmethod
    def to_definition(record: WorkflowRecord) -> WorkflowDefinition:
        return WorkflowDefinition.model_validate(record.definition)

    async def save_workflow(self, definition: WorkflowDefinition) -> WorkflowRecord:
        """
        Store a definition as given.

        A definition that claims to be published is validated first.

        Raises:
            ValueError: If the version is not MAJOR.MINOR.PATCH
            WorkflowValidationError: If a published definition is invalid
            PublishedWorkflowImmutableError: If that version is already published
        """
        parse_version(definition.version)
        if definition.status == WorkflowStatus.PUBLISHED:
            result = self.executor.validator.validate(definition)
            if not result.is_valid:
                raise WorkflowValidationError(result.errors, workflow_id=definition.id)

        record = await self.repo.save_definition(definition)
        logger.info(
            f"Stored workflow {definition.id} v{definition.version} ({definition.status.value})"
        )
        return record

    async def list_versions(self, workflow_id: str) -> list[WorkflowRecord]:
        """
        All stored versions of a workflow, lowest version first.

        Raises:
            WorkflowNotFoundError: If nothing is stored under workflow_id
        """
        records = await self.repo.list_versions(workflow_id)
        if not records:
            raise WorkflowNotFoundError(workflow_id)
        return sorted(records, key=lambda record: parse_version(record.version))

    async def get_record(
        self,
        workflow_id: str,
        version: Optional[str] = None,
        published_only: bool = False,
    ) -> WorkflowRecord:
        """
        Resolve a stored version.

        Args:
            workflow_id: The workflow identifier
            version: Exact version; the highest version when omitted
            published_only: Only consider published versions

        Raises:
            WorkflowNotFoundError: If no matching version exists
        """
        if version is not None:
            record = await self.repo.get_version(workflow_id, version)
            if record is None or (published_only and record.status != WorkflowStatus.PUBLISHED):
                raise WorkflowNotFoundError(workflow_id, version)
            return record

        status = WorkflowStatus.PUBLISHED if published_only else None
        records = await self.repo.list_versions(workflow_id, status=status)
        if not records:
            raise WorkflowNotFoundError(workflow_id)
        return max(records, key=lambda record: parse_version(record.version))

    async def get_workflow(
        self,
        workflow_id: str,
        version: Optional[str] = None,
        published_only: bool = False,
    ) -> WorkflowDefinition:
        record = await self.get_record(workflow_id, version, published_only)
        return self.to_definition(record)

    async def list_workflows(self, page: int = 1, page_size: int = 20) -> tuple[list[WorkflowRecord], int]:
        """
        Latest version of each stored workflow, paginated by workflow id.

        Returns:
            Tuple of (records for the page, total number of workflows)
        """
        skip = (page - 1) * page_size
        workflow_ids = await self.repo.list_workflow_ids(skip=skip, limit=page_size)
        total = await self.repo.count_workflows()

        records = [await self.get_record(workflow_id) for workflow_id in workflow_ids]
        return records, total

    async def create_version(
        self,
        workflow_id: str,
        bump: str = "minor",
        created_by: Optional[str] = None,
    ) -> WorkflowRecord:
        """Store a new draft derived from the highest stored version."""
        latest = await self.get_workflow(workflow_id)
        draft = create_new_version(latest, bump=bump, created_by=created_by)
        return await self.save_workflow(draft)

    async def publish_version(self, workflow_id: str, version: Optional[str] = None) -> WorkflowRecord:
        """
        Publish one stored version (the highest one when version is omitted).

        Raises:
            WorkflowNotFoundError: If the version does not exist
            WorkflowValidationError: If the version fails validation
            ValueError: If the version was archived
        """
        record = await self.get_record(workflow_id, version)
        published = publish(self.to_definition(record), self.executor.validator)
        record = await self.repo.set_status(record, published)
        logger.info(f"Published workflow {workflow_id} v{record.version}")
        return record

    async def archive_version(self, workflow_id: str, version: Optional[str] = None) -> WorkflowRecord:
        """Archive one stored version (the highest one when version is omitted)."""
        record = await self.get_record(workflow_id, version)
        archived = archive(self.to_definition(record))
        record = await self.repo.set_status(record, archived)
        logger.info(f"Archived workflow {workflow_id} v{record.version}")
        return record

    async def evaluate(
        self,
        workflow_id: str,
        record: Mapping[str, Any],
        version: Optional[str] = None,
    ) -> DecisionResult:
        """
        Run one applicant record through a published workflow version.

        Raises:
            WorkflowNotFoundError: If no published version matches
        """
        definition = await self.get_workflow(workflow_id, version, published_only=True)
        return self.executor.execute(definition, record)

    async def evaluate_batch(
        self,
        workflow_id: str,
        records: Sequence[Mapping[str, Any]],
        version: Optional[str] = None,
    ) -> BatchDecisionResponse:
        """Run many records through the same published version."""
        definition = await self.get_workflow(workflow_id, version, published_only=True)
        results = [self.executor.execute(definition, record) for record in records]

        counts = {decision: 0 for decision in Decision}
        for result in results:
            counts[result.decision] += 1

        logger.info(
            f"Batch of {len(results)} decisions on {workflow_id} v{definition.version}: "
            f"{counts[Decision.APPROVE]} approved, {counts[Decision.DECLINE]} declined, "
            f"{counts[Decision.REVIEW]} for review"
        )
        return BatchDecisionResponse(
            workflow_id=workflow_id,
            version=definition.version,
            results=results,
            approved=counts[Decision.APPROVE],
            declined=counts[Decision.DECLINE],
            review=counts[Decision.REVIEW],
        )
