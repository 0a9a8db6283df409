"""Simulation harness: runs labeled test cases through the engine."""

import logging
import math
import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Union

from pydantic.alias_generators import to_camel

from credit_decisioning.config import settings
from credit_decisioning.core.enums import DifferenceType, TestStatus
from credit_decisioning.models.schemas.decision import DecisionResult
from credit_decisioning.models.schemas.rule import Rule, RuleSet
from credit_decisioning.models.schemas.simulation import (
    SimulationReport,
    TestCase,
    TestDifference,
    TestExecutionResult,
)
from credit_decisioning.models.schemas.workflow import WorkflowDefinition
from credit_decisioning.services.rule_engine.engine import RuleEngine
from credit_decisioning.services.workflow_engine.executor import WorkflowExecutor

logger = logging.getLogger(__name__)

SimulationTarget = Union[WorkflowDefinition, RuleSet, Sequence[Rule]]

# Decision spellings used by older fixtures
DECISION_ALIASES = {
    "approved": "approve",
    "declined": "decline",
    "rejected": "decline",
    "pending_review": "review",
    "manual_review": "review",
}
UNORDERED_FIELDS = frozenset({"flags", "requiredDocuments"})


def _normalize_decision(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        return DECISION_ALIASES.get(lowered, lowered)
    return value


def _values_equal(expected: Any, actual: Any) -> bool:
    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        if isinstance(expected, bool) or isinstance(actual, bool):
            return expected == actual
        return math.isclose(expected, actual, rel_tol=1e-9, abs_tol=1e-9)
    return expected == actual


def compare_outputs(test_case: TestCase, actual: DecisionResult) -> list[TestDifference]:
    """
    Compare a test case's expectations with an actual result.

    Only fields named in ``expected_output`` (plus ``expected_path`` when
    given) are compared. Keys may be camelCase or snake_case.

    Returns:
        Field-level differences; empty when the case passes
    """
    actual_wire = actual.to_wire()
    differences: list[TestDifference] = []

    for key, expected in test_case.expected_output.items():
        field = to_camel(key) if "_" in key else key
        if field not in actual_wire:
            differences.append(
                TestDifference(field=key, expected=expected, actual=None, type=DifferenceType.MISSING)
            )
            continue
        actual_value = actual_wire[field]

        if field == "decision":
            if _normalize_decision(expected) != actual_value:
                differences.append(
                    TestDifference(
                        field=field, expected=expected, actual=actual_value, type=DifferenceType.DIFFERENT
                    )
                )
        elif field in UNORDERED_FIELDS and isinstance(expected, list):
            missing = [item for item in expected if item not in actual_value]
            extra = [item for item in actual_value if item not in expected]
            if missing:
                differences.append(
                    TestDifference(field=field, expected=missing, actual=actual_value, type=DifferenceType.MISSING)
                )
            if extra:
                differences.append(
                    TestDifference(field=field, expected=expected, actual=extra, type=DifferenceType.EXTRA)
                )
        elif field == "outputs" and isinstance(expected, dict):
            for output_key, output_expected in expected.items():
                if output_key not in actual_value:
                    differences.append(
                        TestDifference(
                            field=f"outputs.{output_key}",
                            expected=output_expected,
                            actual=None,
                            type=DifferenceType.MISSING,
                        )
                    )
                elif not _values_equal(output_expected, actual_value[output_key]):
                    differences.append(
                        TestDifference(
                            field=f"outputs.{output_key}",
                            expected=output_expected,
                            actual=actual_value[output_key],
                            type=DifferenceType.DIFFERENT,
                        )
                    )
        elif actual_value is None and expected is not None:
            differences.append(
                TestDifference(field=field, expected=expected, actual=None, type=DifferenceType.MISSING)
            )
        elif not _values_equal(expected, actual_value):
            differences.append(
                TestDifference(field=field, expected=expected, actual=actual_value, type=DifferenceType.DIFFERENT)
            )

    if test_case.expected_path is not None and test_case.expected_path != actual.execution_path:
        differences.append(
            TestDifference(
                field="executionPath",
                expected=test_case.expected_path,
                actual=actual.execution_path,
                type=DifferenceType.DIFFERENT,
            )
        )
    return differences


class SimulationHarness:
    """
    Runs test cases against a workflow, a rule set, or a list of rules.

    Each case runs independently with its own evaluation state; a batch may
    run in parallel and is only aggregated once every case has finished.
    Drafts are allowed, since simulation happens before publishing.
    """

    def __init__(
        self,
        executor: Optional[WorkflowExecutor] = None,
        rule_engine: Optional[RuleEngine] = None,
        max_workers: int = settings.SIMULATION_MAX_WORKERS,
    ):
        self.executor = executor or WorkflowExecutor()
        self.rule_engine = rule_engine or self.executor.rule_engine
        self.max_workers = max(1, max_workers)
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop starting new cases in the current batch; running cases finish."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _evaluate(self, test_case: TestCase, target: SimulationTarget) -> DecisionResult:
        if isinstance(target, WorkflowDefinition):
            return self.executor.execute(target, test_case.input_data, allow_draft=True)
        return self.rule_engine.evaluate_rule_set(target, test_case.input_data)

    def run_test_case(self, test_case: TestCase, target: SimulationTarget) -> TestExecutionResult:
        """
        Run one test case and compare the outcome with its expectations.

        Exceptions raised while evaluating are reported as status error with
        the exception message; they never propagate.

        Args:
            test_case: The fixture and its expected output
            target: A WorkflowDefinition, a RuleSet, or a sequence of rules

        Returns:
            TestExecutionResult with status, differences and timing
        """
        started = time.perf_counter()
        try:
            actual = self._evaluate(test_case, target)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.warning(f"Test case {test_case.id} errored: {e}")
            return TestExecutionResult(
                test_case_id=test_case.id,
                status=TestStatus.ERROR,
                execution_time_ms=elapsed_ms,
                errors=[str(e)],
            )

        differences = compare_outputs(test_case, actual)
        elapsed_ms = (time.perf_counter() - started) * 1000
        return TestExecutionResult(
            test_case_id=test_case.id,
            status=TestStatus.FAILED if differences else TestStatus.PASSED,
            actual_output=actual,
            actual_path=list(actual.execution_path),
            execution_time_ms=elapsed_ms,
            differences=differences,
            errors=list(actual.errors),
        )

    def _run_unless_cancelled(self, test_case: TestCase, target: SimulationTarget) -> TestExecutionResult:
        if self._cancelled.is_set():
            return TestExecutionResult(test_case_id=test_case.id, status=TestStatus.SKIPPED)
        return self.run_test_case(test_case, target)

    def run_all(self, test_cases: Sequence[TestCase], target: SimulationTarget) -> SimulationReport:
        """
        Run a batch of test cases and aggregate the outcome.

        Args:
            test_cases: Cases to run; results keep this order
            target: A WorkflowDefinition, a RuleSet, or a sequence of rules

        Returns:
            SimulationReport with counts, pass rate and average timing
        """
        self._cancelled.clear()
        if not isinstance(target, (WorkflowDefinition, RuleSet)):
            target = tuple(target)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._run_unless_cancelled, case, target) for case in test_cases]
            results = [future.result() for future in futures]

        report = summarize(results)
        logger.info(
            f"Simulation finished: {report.passed}/{report.total} passed, "
            f"{report.failed} failed, {report.errored} errored, {report.skipped} skipped"
        )
        return report


def summarize(results: Sequence[TestExecutionResult]) -> SimulationReport:
    """Reduce per-case results into a SimulationReport."""
    counts = {status: 0 for status in TestStatus}
    for result in results:
        counts[result.status] += 1

    ran = [result for result in results if result.status != TestStatus.SKIPPED]
    average_ms = sum(result.execution_time_ms for result in ran) / len(ran) if ran else 0.0
    return SimulationReport(
        total=len(results),
        passed=counts[TestStatus.PASSED],
        failed=counts[TestStatus.FAILED],
        errored=counts[TestStatus.ERROR],
        skipped=counts[TestStatus.SKIPPED],
        pass_rate=counts[TestStatus.PASSED] / len(ran) if ran else 0.0,
        average_execution_time_ms=average_ms,
        results=list(results),
    )
