"""Core enums for type safety across the decision engine."""

from enum import Enum


class DataType(str, Enum):
    """Declared data type of a condition's field and comparison value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"


class Operator(str, Enum):
    """Comparison operators available to conditions."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IN = "in"
    NOT_IN = "not_in"
    BETWEEN = "between"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"

    @property
    def is_null_check(self) -> bool:
        return self in (Operator.IS_NULL, Operator.IS_NOT_NULL)

    @property
    def expects_list(self) -> bool:
        return self in (Operator.IN, Operator.NOT_IN, Operator.BETWEEN)


class LogicalOperator(str, Enum):
    """How a rule combines its conditions."""

    AND = "AND"
    OR = "OR"


class ActionType(str, Enum):
    """Actions a matched rule or an action node can apply."""

    # Decision-terminal actions
    APPROVE = "approve"
    DECLINE = "decline"
    REVIEW = "review"

    # Decision trail actions
    SET_SCORE = "set_score"
    ADD_FLAG = "add_flag"
    REQUIRE_DOCUMENT = "require_document"

    # Data actions
    SET_VALUE = "set_value"
    CALCULATE = "calculate"
    VALIDATE = "validate"
    TRANSFORM = "transform"

    # Side-channel actions
    ROUTE = "route"
    NOTIFY = "notify"
    LOG = "log"

    @property
    def is_terminal(self) -> bool:
        return self in (ActionType.APPROVE, ActionType.DECLINE, ActionType.REVIEW)

    @property
    def requires_value(self) -> bool:
        return self in (
            ActionType.SET_SCORE,
            ActionType.ADD_FLAG,
            ActionType.REQUIRE_DOCUMENT,
        )

    @property
    def requires_output_field(self) -> bool:
        return self in (
            ActionType.SET_VALUE,
            ActionType.CALCULATE,
            ActionType.TRANSFORM,
        )


class Decision(str, Enum):
    """Terminal outcome of an evaluation."""

    APPROVE = "approve"
    DECLINE = "decline"
    REVIEW = "review"


class NodeType(str, Enum):
    """Workflow node kinds."""

    START = "start"
    CONDITION = "condition"
    RULE_SET = "rule_set"
    ACTION = "action"
    DATA_SOURCE = "data_source"
    DECISION = "decision"
    END = "end"


class BranchLabel(str, Enum):
    """Well-known connection labels used to select a branch."""

    TRUE = "true"
    FALSE = "false"
    PASS = "pass"
    FAIL = "fail"
    SUCCESS = "success"
    ERROR = "error"


class WorkflowStatus(str, Enum):
    """Workflow definition lifecycle states."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ExecutionOrder(str, Enum):
    """Order in which a rule set evaluates its rules."""

    PRIORITY = "priority"
    SEQUENTIAL = "sequential"


class TestStatus(str, Enum):
    """Outcome of a single simulated test case."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


class DifferenceType(str, Enum):
    """Kind of mismatch between expected and actual output."""

    MISSING = "missing"
    EXTRA = "extra"
    DIFFERENT = "different"


class ExportFormat(str, Enum):
    """Text encodings supported by workflow import/export."""

    JSON = "json"
    YAML = "yaml"
