"""Pydantic schemas for conditions, actions, rules and rule sets."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ConfigDict, Field

from credit_decisioning.core.enums import (
    ActionType,
    DataType,
    ExecutionOrder,
    LogicalOperator,
    Operator,
)
from credit_decisioning.models.schemas.base import CamelModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Condition Schemas ====================


class Condition(CamelModel):
    """
    A single field/operator/value comparison.

    The structural invariants (non-empty field, value present unless the
    operator is a null check, list-shaped value for in/not_in/between) are
    enforced by rule validation rather than at construction time, so an
    editor can hold an incomplete condition while it is being authored.
    """

    id: str
    field: str
    operator: Operator
    value: Any = None
    data_type: DataType
    description: Optional[str] = None


# ==================== Action Schemas ====================


class Action(CamelModel):
    """An effect applied when a rule matches or an action node runs."""

    type: ActionType
    value: Any = None
    output_field: Optional[str] = None
    message: Optional[str] = None


# ==================== Rule Schemas ====================


class RuleMetadata(CamelModel):
    """Authoring metadata carried by a rule."""

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    created_by: Optional[str] = None
    version: str = "1.0.0"


class Rule(CamelModel):
    """A named, prioritized combination of conditions plus resulting actions."""

    id: str
    name: str
    description: str = ""
    priority: int = Field(default=0, ge=0, le=100)
    enabled: bool = True
    conditions: list[Condition] = Field(default_factory=list)
    logical_operator: LogicalOperator = LogicalOperator.AND
    actions: list[Action] = Field(default_factory=list)
    metadata: RuleMetadata = Field(default_factory=RuleMetadata)


class RuleSet(CamelModel):
    """A named collection of rules evaluated together."""

    id: str
    name: str
    description: Optional[str] = None
    rules: list[Rule] = Field(default_factory=list)
    execution_order: ExecutionOrder = ExecutionOrder.PRIORITY


class RuleValidationResponse(CamelModel):
    """Validation outcome for a single rule."""

    rule_id: str
    is_valid: bool
    errors: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)
