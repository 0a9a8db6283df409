"""Production decision endpoints backed by stored, published workflows."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from credit_decisioning.core.exceptions import WorkflowNotFoundError, WorkflowValidationError
from credit_decisioning.deps import get_executor, get_session
from credit_decisioning.models.schemas.decision import (
    BatchDecisionRequest,
    BatchDecisionResponse,
    DecisionRequest,
    DecisionResult,
)
from credit_decisioning.services.workflow_engine.executor import WorkflowExecutor
from credit_decisioning.services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/evaluate",
    response_model=DecisionResult,
    summary="Evaluate an applicant",
    description="Run one record through the latest published version of a workflow",
)
async def evaluate_decision(
    request: DecisionRequest,
    db: Annotated[AsyncSession, Depends(get_session)],
    executor: Annotated[WorkflowExecutor, Depends(get_executor)],
) -> DecisionResult:
    """
    Evaluate one applicant record.

    Only published versions are considered; pass version to pin one.
    """
    try:
        service = WorkflowService(db, executor)
        return await service.evaluate(request.workflow_id, request.record, request.version)

    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except WorkflowValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Workflow failed validation", "errors": e.errors},
        )
    except Exception as e:
        logger.error(f"Error evaluating decision: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to evaluate decision",
        )


@router.post(
    "/batch",
    response_model=BatchDecisionResponse,
    summary="Evaluate a batch of applicants",
    description="Run many records through the same published workflow version",
)
async def evaluate_batch(
    request: BatchDecisionRequest,
    db: Annotated[AsyncSession, Depends(get_session)],
    executor: Annotated[WorkflowExecutor, Depends(get_executor)],
) -> BatchDecisionResponse:
    """Evaluate a batch of applicant records and count the outcomes."""
    try:
        service = WorkflowService(db, executor)
        return await service.evaluate_batch(request.workflow_id, request.records, request.version)

    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except WorkflowValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Workflow failed validation", "errors": e.errors},
        )
    except Exception as e:
        logger.error(f"Error evaluating decision batch: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to evaluate decision batch",
        )
