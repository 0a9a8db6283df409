"""Simulation endpoint for running test cases before publishing."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from credit_decisioning.deps import get_harness
from credit_decisioning.models.schemas.simulation import SimulationReport, SimulationRequest
from credit_decisioning.services.simulation import SimulationHarness

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/run",
    response_model=SimulationReport,
    summary="Run a simulation",
    description="Run test cases against a workflow (drafts allowed), a rule set or rules",
)
def run_simulation(
    request: SimulationRequest,
    harness: Annotated[SimulationHarness, Depends(get_harness)],
) -> SimulationReport:
    """
    Run test cases and report pass/fail per case.

    The workflow wins over ruleSet, which wins over rules. A case that
    raises is reported with status error; the batch itself still succeeds.
    """
    if request.workflow is not None:
        target = request.workflow
    elif request.rule_set is not None:
        target = request.rule_set
    else:
        target = request.rules

    try:
        return harness.run_all(request.test_cases, target)
    except Exception as e:
        logger.error(f"Error running simulation: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run simulation",
        )
