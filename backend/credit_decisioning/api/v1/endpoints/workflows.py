"""Workflow validation, execution, versioning and import/export endpoints."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from credit_decisioning.core.enums import ExportFormat, WorkflowStatus
from credit_decisioning.core.exceptions import (
    PublishedWorkflowImmutableError,
    WorkflowImportError,
    WorkflowNotFoundError,
    WorkflowNotPublishedError,
    WorkflowValidationError,
)
from credit_decisioning.deps import get_executor, get_session
from credit_decisioning.models.schemas.decision import DecisionResult
from credit_decisioning.models.schemas.workflow import (
    ExecuteWorkflowRequest,
    ValidationResult,
    WorkflowCreate,
    WorkflowDefinition,
    WorkflowImportRequest,
    WorkflowListResponse,
    WorkflowSummaryResponse,
    WorkflowVersionCreate,
)
from credit_decisioning.services.serialization import export_bundle, import_bundle
from credit_decisioning.services.workflow_engine.executor import WorkflowExecutor
from credit_decisioning.services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)

router = APIRouter()

MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.YAML: "application/x-yaml",
}


def _invalid_workflow(e: WorkflowValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": "Workflow failed validation", "errors": e.errors},
    )


# ==================== Stateless Endpoints ====================


@router.post(
    "/validate",
    response_model=ValidationResult,
    summary="Validate a workflow",
    description="Check the structure of a workflow definition without storing it",
)
async def validate_workflow_definition(
    workflow: WorkflowDefinition,
    executor: Annotated[WorkflowExecutor, Depends(get_executor)],
) -> ValidationResult:
    """
    Validate a workflow definition.

    Returns every structural error and warning; an invalid workflow is
    still a successful response.
    """
    return executor.validator.validate(workflow)


@router.post(
    "/execute",
    response_model=DecisionResult,
    summary="Execute a workflow",
    description="Run a workflow definition from the request body against one record",
)
async def execute_workflow_definition(
    request: ExecuteWorkflowRequest,
    executor: Annotated[WorkflowExecutor, Depends(get_executor)],
) -> DecisionResult:
    """
    Execute a workflow supplied in the body.

    Drafts are refused unless allowDraft is set.
    """
    try:
        return executor.execute(request.workflow, request.record, allow_draft=request.allow_draft)

    except WorkflowNotPublishedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except WorkflowValidationError as e:
        raise _invalid_workflow(e)
    except Exception as e:
        logger.error(f"Error executing workflow: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to execute workflow",
        )


# ==================== Stored Workflow Endpoints ====================


@router.post(
    "/",
    response_model=WorkflowSummaryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store a workflow version",
    description="Store a workflow definition under its id and version",
)
async def create_workflow(
    workflow_data: WorkflowCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
    executor: Annotated[WorkflowExecutor, Depends(get_executor)],
) -> WorkflowSummaryResponse:
    """
    Store a workflow definition.

    Drafts may be stored again under the same version; published versions
    are immutable.
    """
    try:
        service = WorkflowService(db, executor)
        record = await service.save_workflow(workflow_data.definition)
        return WorkflowSummaryResponse.model_validate(record)

    except PublishedWorkflowImmutableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except WorkflowValidationError as e:
        raise _invalid_workflow(e)
    except ValueError as e:
        logger.error(f"Validation error storing workflow: {str(e)}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error storing workflow: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store workflow",
        )


@router.get(
    "/",
    response_model=WorkflowListResponse,
    summary="List workflows",
    description="Get the latest stored version of each workflow with pagination",
)
async def list_workflows(
    db: Annotated[AsyncSession, Depends(get_session)],
    page: Annotated[int, Query(ge=1, description="Page number (1-indexed)")] = 1,
    page_size: Annotated[
        int, Query(ge=1, le=100, description="Number of items per page")
    ] = 20,
) -> WorkflowListResponse:
    """List the latest version of every stored workflow."""
    service = WorkflowService(db)
    records, total = await service.list_workflows(page=page, page_size=page_size)

    # Calculate total pages
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1

    return WorkflowListResponse(
        items=[WorkflowSummaryResponse.model_validate(record) for record in records],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.post(
    "/import",
    response_model=WorkflowSummaryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Import a workflow",
    description="Store a workflow from an exported JSON or YAML document as a draft",
)
async def import_workflow(
    import_data: WorkflowImportRequest,
    db: Annotated[AsyncSession, Depends(get_session)],
    executor: Annotated[WorkflowExecutor, Depends(get_executor)],
) -> WorkflowSummaryResponse:
    """
    Import an exported workflow document.

    The checksum is verified unless verifyChecksum is false. The imported
    version is stored as a draft and must be published again.
    """
    try:
        bundle = import_bundle(
            import_data.content,
            fmt=import_data.format,
            verify_checksum=import_data.verify_checksum,
            validate=False,
        )
        draft = bundle.workflow.model_copy(update={"status": WorkflowStatus.DRAFT})

        service = WorkflowService(db, executor)
        record = await service.save_workflow(draft)
        return WorkflowSummaryResponse.model_validate(record)

    except WorkflowImportError as e:
        logger.error(f"Error importing workflow document: {str(e)}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PublishedWorkflowImmutableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error importing workflow: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to import workflow",
        )


@router.get(
    "/{workflow_id}",
    response_model=WorkflowDefinition,
    summary="Get a workflow",
    description="Get a stored workflow definition (latest version unless one is given)",
)
async def get_workflow(
    workflow_id: str,
    db: Annotated[AsyncSession, Depends(get_session)],
    version: Annotated[Optional[str], Query(description="Exact version")] = None,
) -> WorkflowDefinition:
    """Get one stored workflow definition with its full graph."""
    try:
        return await WorkflowService(db).get_workflow(workflow_id, version)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/{workflow_id}/versions",
    response_model=list[WorkflowSummaryResponse],
    summary="List workflow versions",
    description="Get every stored version of a workflow, lowest first",
)
async def list_workflow_versions(
    workflow_id: str,
    db: Annotated[AsyncSession, Depends(get_session)],
) -> list[WorkflowSummaryResponse]:
    """List the stored versions of a workflow."""
    try:
        records = await WorkflowService(db).list_versions(workflow_id)
        return [WorkflowSummaryResponse.model_validate(record) for record in records]
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{workflow_id}/versions",
    response_model=WorkflowSummaryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new version",
    description="Derive a new draft version from the highest stored version",
)
async def create_workflow_version(
    workflow_id: str,
    version_data: WorkflowVersionCreate,
    db: Annotated[AsyncSession, Depends(get_session)],
) -> WorkflowSummaryResponse:
    """Create the next draft version of a workflow."""
    try:
        service = WorkflowService(db)
        record = await service.create_version(
            workflow_id,
            bump=version_data.bump,
            created_by=version_data.created_by,
        )
        return WorkflowSummaryResponse.model_validate(record)

    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PublishedWorkflowImmutableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/{workflow_id}/publish",
    response_model=WorkflowSummaryResponse,
    summary="Publish a workflow version",
    description="Validate and publish a stored version (the highest unless one is given)",
)
async def publish_workflow(
    workflow_id: str,
    db: Annotated[AsyncSession, Depends(get_session)],
    executor: Annotated[WorkflowExecutor, Depends(get_executor)],
    version: Annotated[Optional[str], Query(description="Exact version")] = None,
) -> WorkflowSummaryResponse:
    """
    Publish a stored version.

    Publishing runs validation first; a failing workflow stays a draft.
    """
    try:
        service = WorkflowService(db, executor)
        record = await service.publish_version(workflow_id, version)
        return WorkflowSummaryResponse.model_validate(record)

    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except WorkflowValidationError as e:
        raise _invalid_workflow(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post(
    "/{workflow_id}/archive",
    response_model=WorkflowSummaryResponse,
    summary="Archive a workflow version",
    description="Archive a stored version (the highest unless one is given)",
)
async def archive_workflow(
    workflow_id: str,
    db: Annotated[AsyncSession, Depends(get_session)],
    version: Annotated[Optional[str], Query(description="Exact version")] = None,
) -> WorkflowSummaryResponse:
    """Archive a stored version so it no longer serves decisions."""
    try:
        record = await WorkflowService(db).archive_version(workflow_id, version)
        return WorkflowSummaryResponse.model_validate(record)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get(
    "/{workflow_id}/export",
    response_class=PlainTextResponse,
    summary="Export a workflow",
    description="Export a stored version as a JSON or YAML document with a checksum",
)
async def export_workflow(
    workflow_id: str,
    db: Annotated[AsyncSession, Depends(get_session)],
    version: Annotated[Optional[str], Query(description="Exact version")] = None,
    export_format: Annotated[
        ExportFormat, Query(alias="format", description="Document format")
    ] = ExportFormat.JSON,
) -> PlainTextResponse:
    """Export one stored workflow version."""
    try:
        definition = await WorkflowService(db).get_workflow(workflow_id, version)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    document = export_bundle(definition, fmt=export_format)
    filename = f"{workflow_id}-{definition.version}.{export_format.value}"
    return PlainTextResponse(
        content=document,
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
