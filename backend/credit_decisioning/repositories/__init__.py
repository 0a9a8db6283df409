from .base import BaseRepository
from .workflow_repository import WorkflowRepository

__all__ = [
    "BaseRepository",
    "WorkflowRepository",
]
