"""Tests for workflow graph execution."""

import copy

import pytest

from builders import condition, edge, make_rule, make_workflow, node
from credit_decisioning.core.enums import Decision
from credit_decisioning.core.exceptions import WorkflowNotPublishedError, WorkflowValidationError
from credit_decisioning.services.workflow_engine.executor import (
    CYCLE_LIMIT_EXCEEDED,
    MISSING_BRANCH_EDGE,
    WorkflowExecutor,
    execute_workflow,
)


@pytest.fixture
def executor():
    return WorkflowExecutor()


class TestTraversal:
    """Tests for the path taken through the graph."""

    def test_true_branch(self, executor, branching_workflow):
        result = executor.execute(branching_workflow, {"creditScore": 780})

        assert result.decision == Decision.APPROVE
        assert result.score == 90
        assert result.execution_path == ["start", "check", "approve", "end-approve"]
        assert result.executed_rules == ["score-gate"]
        assert result.matched_rules == ["score-gate"]
        assert result.errors == []

    def test_false_branch(self, executor, branching_workflow):
        result = executor.execute(branching_workflow, {"creditScore": 600})

        assert result.decision == Decision.DECLINE
        assert result.flags == ["low_score"]
        assert result.execution_path == ["start", "check", "decline", "end-decline"]
        assert result.matched_rules == []

    def test_missing_field_takes_false_branch(self, executor, branching_workflow):
        result = executor.execute(branching_workflow, {})

        assert result.execution_path[-1] == "end-decline"
        assert any(warning.startswith("missing_field") for warning in result.warnings)

    def test_end_without_decision_is_review(self, executor):
        workflow = make_workflow([node("start", "start"), node("end", "end")], [edge("start", "end")])
        result = executor.execute(workflow, {})

        assert result.decision == Decision.REVIEW
        assert result.execution_path == ["start", "end"]

    def test_decision_node_applies_matched_rule_actions(self, executor):
        approve_rule = make_rule(
            "auto-approve", [condition("creditScore", "greater_than_or_equal", 750)], [{"type": "approve"}]
        )
        workflow = make_workflow(
            [
                node("start", "start"),
                node("decide", "decision", rules=[approve_rule]),
                node("manual", "action", actions=[{"type": "review", "message": "Manual review"}]),
                node("end", "end"),
            ],
            [
                edge("start", "decide"),
                edge("decide", "end", "true"),
                edge("decide", "manual", "false"),
                edge("manual", "end"),
            ],
        )

        assert executor.execute(workflow, {"creditScore": 800}).decision == Decision.APPROVE
        result = executor.execute(workflow, {"creditScore": 700})
        assert result.decision == Decision.REVIEW
        assert result.messages == ["Manual review"]

    def test_rule_set_pass_fail(self, executor, credit_rules):
        workflow = make_workflow(
            [
                node("start", "start"),
                node("rules", "rule_set", rules=credit_rules),
                node("done", "end"),
                node("refer", "action", actions=[{"type": "add_flag", "value": "referred"}]),
                node("referred", "end"),
            ],
            [
                edge("start", "rules"),
                edge("rules", "done", "pass"),
                edge("rules", "refer", "fail"),
                edge("refer", "referred"),
            ],
        )

        passed = executor.execute(workflow, {"creditScore": 780, "debtToIncomeRatio": 0.2})
        assert passed.decision == Decision.APPROVE
        assert passed.execution_path[-1] == "done"

        failed = executor.execute(workflow, {"creditScore": 650, "debtToIncomeRatio": 0.2})
        assert failed.decision == Decision.REVIEW
        assert failed.flags == ["referred"]
        assert failed.execution_path[-1] == "referred"

    def test_calculated_output_drives_branch(self, executor):
        workflow = make_workflow(
            [
                node("start", "start"),
                node(
                    "compute",
                    "action",
                    actions=[
                        {
                            "type": "calculate",
                            "outputField": "debtToIncomeRatio",
                            "value": {"operation": "ratio", "fields": ["monthlyDebt", "monthlyIncome"]},
                        }
                    ],
                ),
                node(
                    "dti",
                    "condition",
                    rules=[make_rule("dti-gate", [condition("debtToIncomeRatio", "less_than_or_equal", 0.4)], [])],
                ),
                node("ok", "action", actions=[{"type": "approve"}]),
                node("high", "action", actions=[{"type": "decline"}]),
                node("end", "end"),
            ],
            [
                edge("start", "compute"),
                edge("compute", "dti"),
                edge("dti", "ok", "true"),
                edge("dti", "high", "false"),
                edge("ok", "end"),
                edge("high", "end"),
            ],
        )

        result = executor.execute(workflow, {"monthlyDebt": 1000, "monthlyIncome": 5000})
        assert result.decision == Decision.APPROVE
        assert result.outputs == {"debtToIncomeRatio": 0.2}

    def test_required_and_source_fields_are_reported(self, executor):
        workflow = make_workflow(
            [
                node("start", "start"),
                node("bureau", "data_source", data_source="credit_bureau", config={"fields": ["creditScore"]}),
                node("end", "end"),
            ],
            [edge("start", "bureau"), edge("bureau", "end")],
            data_requirements={"required": ["creditScore", "annualRevenue"]},
        )
        result = executor.execute(workflow, {"annualRevenue": 1_000_000})

        assert "missing_required_field:creditScore" in result.warnings
        assert "missing_required_field:annualRevenue" not in result.warnings
        assert any(warning.startswith("missing_source_field") for warning in result.warnings)

    def test_source_fields_that_are_not_a_list(self, executor):
        workflow = make_workflow(
            [
                node("start", "start"),
                node("bureau", "data_source", config={"fields": "creditScore"}),
                node("end", "end"),
            ],
            [edge("start", "bureau"), edge("bureau", "end")],
        )
        result = executor.execute(workflow, {}, skip_validation=True)

        assert result.errors == []
        assert result.execution_path == ["start", "bureau", "end"]
        assert not any(warning.startswith("missing_source_field") for warning in result.warnings)
        assert "invalid_config: data source 'bureau' fields must be a list" in result.warnings

    def test_date_condition_out_of_range_takes_false_branch(self, executor):
        workflow = make_workflow(
            [
                node("start", "start"),
                node(
                    "recent",
                    "condition",
                    rules=[make_rule("recent", [condition("appliedAt", "greater_than", "2024-01-01", data_type="date")], [])],
                ),
                node("approve", "action", actions=[{"type": "approve"}]),
                node("decline", "action", actions=[{"type": "decline"}]),
                node("end", "end"),
            ],
            [
                edge("start", "recent"),
                edge("recent", "approve", "true"),
                edge("recent", "decline", "false"),
                edge("approve", "end"),
                edge("decline", "end"),
            ],
        )
        result = executor.execute(workflow, {"appliedAt": 1700000000000})

        assert result.errors == []
        assert result.decision == Decision.DECLINE
        assert result.execution_path == ["start", "recent", "decline", "end"]


class TestFailSafes:
    """Tests for runtime failures that force a review decision."""

    def test_missing_branch_edge(self, executor):
        workflow = make_workflow(
            [
                node("start", "start"),
                node(
                    "check",
                    "condition",
                    rules=[make_rule("gate", [condition("creditScore", "greater_than", 700)], [])],
                ),
                node("approve", "action", actions=[{"type": "approve"}]),
                node("end", "end"),
            ],
            [edge("start", "check"), edge("check", "approve", "true"), edge("approve", "end")],
        )
        assert not executor.validator.validate(workflow).is_valid

        result = executor.execute(workflow, {"creditScore": 600}, skip_validation=True)

        assert result.decision == Decision.REVIEW
        assert result.errors == [MISSING_BRANCH_EDGE]
        assert result.execution_path == ["start", "check"]

    def test_cycle_limit(self, executor, looping_workflow):
        result = executor.execute(looping_workflow, {"creditScore": 500})
        budget = executor.step_budget(looping_workflow)

        assert budget == 16
        assert result.decision == Decision.REVIEW
        assert result.errors == [CYCLE_LIMIT_EXCEEDED]
        assert len(result.execution_path) == budget
        assert result.flags == ["retried"]

    def test_cycle_that_exits(self, executor, looping_workflow):
        result = executor.execute(looping_workflow, {"creditScore": 720})

        assert result.errors == []
        assert result.execution_path == ["start", "check", "end"]

    def test_terminal_decision_is_overridden_on_failure(self):
        workflow = make_workflow(
            [
                node("start", "start"),
                node("approve", "action", actions=[{"type": "approve"}]),
                node("check", "condition", rules=[make_rule("gate", [condition("x", "equals", 1)], [])]),
                node("end", "end"),
            ],
            [edge("start", "approve"), edge("approve", "check"), edge("check", "end", "true")],
        )
        result = WorkflowExecutor().execute(workflow, {"x": 2}, skip_validation=True)

        assert result.decision == Decision.REVIEW
        assert result.errors == [MISSING_BRANCH_EDGE]


class TestContracts:
    """Tests for preconditions and purity."""

    def test_draft_is_refused(self, executor, branching_workflow):
        draft = branching_workflow.model_copy(update={"status": "draft"})
        with pytest.raises(WorkflowNotPublishedError):
            executor.execute(draft, {"creditScore": 780})

        assert executor.execute(draft, {"creditScore": 780}, allow_draft=True).decision == Decision.APPROVE

    def test_invalid_workflow_is_refused(self, executor):
        workflow = make_workflow([node("start", "start")], [])
        with pytest.raises(WorkflowValidationError) as exc_info:
            executor.execute(workflow, {})

        assert exc_info.value.errors

    def test_inputs_are_not_mutated(self, executor, branching_workflow):
        record = {"creditScore": 780, "nested": {"values": [1, 2]}}
        record_before = copy.deepcopy(record)
        workflow_before = branching_workflow.model_copy(deep=True)

        executor.execute(branching_workflow, record)

        assert record == record_before
        assert branching_workflow == workflow_before

    def test_execution_is_idempotent(self, executor, branching_workflow):
        first = executor.execute(branching_workflow, {"creditScore": 600})
        second = executor.execute(branching_workflow, {"creditScore": 600})

        assert first.without_timing() == second.without_timing()

    def test_acyclic_path_is_bounded_by_node_count(self, executor, branching_workflow):
        for score in (500, 700, 900):
            result = executor.execute(branching_workflow, {"creditScore": score})
            assert len(result.execution_path) <= len(branching_workflow.nodes)

    def test_module_helper(self, branching_workflow):
        assert execute_workflow(branching_workflow, {"creditScore": 780}).decision == Decision.APPROVE
