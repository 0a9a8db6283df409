"""Exception hierarchy raised by the decision engine and service layer."""

from typing import Optional


class DecisioningError(Exception):
    """Base class for all errors raised by credit_decisioning."""


class WorkflowValidationError(DecisioningError):
    """Raised when a workflow definition fails structural validation."""

    def __init__(self, errors: list[str], workflow_id: Optional[str] = None):
        self.errors = list(errors)
        self.workflow_id = workflow_id
        label = f"Workflow {workflow_id!r}" if workflow_id else "Workflow"
        super().__init__(f"{label} is invalid: {'; '.join(self.errors)}")


class WorkflowNotPublishedError(DecisioningError):
    """Raised when a production evaluation targets a non-published workflow."""

    def __init__(self, workflow_id: str, status: str):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(
            f"Workflow {workflow_id!r} has status {status!r}; only published "
            f"workflows can be executed"
        )


class WorkflowNotFoundError(DecisioningError):
    """Raised when a stored workflow (or version) does not exist."""

    def __init__(self, workflow_id: str, version: Optional[str] = None):
        self.workflow_id = workflow_id
        self.version = version
        if version:
            message = f"Workflow {workflow_id!r} version {version!r} not found"
        else:
            message = f"Workflow {workflow_id!r} not found"
        super().__init__(message)


class PublishedWorkflowImmutableError(DecisioningError):
    """Raised on an attempt to overwrite a published workflow version."""

    def __init__(self, workflow_id: str, version: str):
        self.workflow_id = workflow_id
        self.version = version
        super().__init__(
            f"Workflow {workflow_id!r} version {version!r} is published and "
            f"cannot be modified; create a new version instead"
        )


class WorkflowImportError(DecisioningError):
    """Raised when an exported workflow document cannot be imported."""
