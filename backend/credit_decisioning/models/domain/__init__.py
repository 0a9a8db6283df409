"""Domain models for the application."""

from credit_decisioning.models.domain.workflow import WorkflowRecord

__all__ = ["WorkflowRecord"]
