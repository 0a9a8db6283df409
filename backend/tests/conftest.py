"""
Pytest fixtures and configuration for credit_decisioning tests.
Points the service at a throwaway SQLite database before anything imports settings.
"""

import os
import tempfile
import uuid
from pathlib import Path

_TEST_DB = Path(tempfile.gettempdir()) / f"credit_decisioning_test_{uuid.uuid4().hex}.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB}"
os.environ["ENVIRONMENT"] = "test"

import pytest

from builders import condition, edge, make_rule, make_workflow, node


@pytest.fixture
def credit_rules():
    """Approve on a good score (priority 90), decline on a high DTI (priority 80)."""
    return [
        make_rule(
            "approve-good-credit",
            [condition("creditScore", "greater_than_or_equal", 700)],
            [{"type": "approve", "message": "Good credit"}],
            priority=90,
        ),
        make_rule(
            "decline-high-dti",
            [condition("debtToIncomeRatio", "greater_than", 0.4)],
            [{"type": "decline", "message": "Debt-to-income too high"}],
            priority=80,
        ),
    ]


@pytest.fixture
def branching_workflow():
    """start -> check (creditScore >= 700) -> approve / decline action -> end."""
    return make_workflow(
        [
            node("start", "start"),
            node(
                "check",
                "condition",
                rules=[make_rule("score-gate", [condition("creditScore", "greater_than_or_equal", 700)], [])],
            ),
            node("approve", "action", actions=[{"type": "approve"}, {"type": "set_score", "value": 90}]),
            node("decline", "action", actions=[{"type": "decline"}, {"type": "add_flag", "value": "low_score"}]),
            node("end-approve", "end"),
            node("end-decline", "end"),
        ],
        [
            edge("start", "check"),
            edge("check", "approve", "true"),
            edge("check", "decline", "false"),
            edge("approve", "end-approve"),
            edge("decline", "end-decline"),
        ],
    )


@pytest.fixture
def looping_workflow():
    """check loops back through an action node whenever the score is low."""
    return make_workflow(
        [
            node("start", "start"),
            node(
                "check",
                "condition",
                rules=[make_rule("score-gate", [condition("creditScore", "greater_than_or_equal", 700)], [])],
            ),
            node("retry", "action", actions=[{"type": "add_flag", "value": "retried"}]),
            node("end", "end"),
        ],
        [
            edge("start", "check"),
            edge("check", "end", "true"),
            edge("check", "retry", "false"),
            edge("retry", "check"),
        ],
    )


@pytest.fixture
def unique_id():
    """Workflow ids unique per test; the test database is shared by the session."""
    return f"wf-{uuid.uuid4().hex[:12]}"


def pytest_sessionfinish(session, exitstatus):
    if _TEST_DB.exists():
        _TEST_DB.unlink()
