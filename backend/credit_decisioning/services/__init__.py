"""Service layer for business logic."""

from credit_decisioning.services.simulation import SimulationHarness
from credit_decisioning.services.workflow_service import WorkflowService

__all__ = ["SimulationHarness", "WorkflowService"]
