"""Dependency injection for FastAPI endpoints."""

from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from credit_decisioning.db.session import get_db
from credit_decisioning.services.rule_engine.engine import RuleEngine
from credit_decisioning.services.simulation import SimulationHarness
from credit_decisioning.services.workflow_engine.executor import WorkflowExecutor

__all__ = ["get_db", "get_session", "get_executor", "get_rule_engine", "get_harness"]


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session dependency.

    This is an alias for get_db for clarity in endpoint signatures.
    """
    async for session in get_db():
        yield session


@lru_cache
def get_executor() -> WorkflowExecutor:
    """Process-wide executor, so the validation cache is shared across requests."""
    return WorkflowExecutor()


def get_rule_engine() -> RuleEngine:
    return get_executor().rule_engine


def get_harness() -> SimulationHarness:
    """A harness per request; cancellation is scoped to one batch."""
    return SimulationHarness(executor=get_executor())
