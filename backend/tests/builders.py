"""Small builders for rules and workflows used across the test suite."""

from typing import Any, Optional

from credit_decisioning.models.schemas.rule import Condition, Rule
from credit_decisioning.models.schemas.workflow import WorkflowDefinition

_counter = {"condition": 0}


def condition(
    field: str,
    operator: str,
    value: Any = None,
    data_type: str = "number",
    id: Optional[str] = None,
) -> dict:
    if id is None:
        _counter["condition"] += 1
        id = f"cond-{_counter['condition']}"
    return {"id": id, "field": field, "operator": operator, "value": value, "dataType": data_type}


def make_condition(field: str, operator: str, value: Any = None, data_type: str = "number") -> Condition:
    return Condition.model_validate(condition(field, operator, value, data_type))


def make_rule(
    id: str,
    conditions: list[dict],
    actions: list[dict],
    priority: int = 0,
    **extra: Any,
) -> Rule:
    return Rule.model_validate(
        {
            "id": id,
            "name": id.replace("-", " ").title(),
            "priority": priority,
            "conditions": conditions,
            "actions": actions,
            **extra,
        }
    )


def node(id: str, type: str, rules: Optional[list[Rule]] = None, actions: Optional[list[dict]] = None, **data: Any) -> dict:
    payload: dict[str, Any] = {"label": id, **data}
    if rules:
        payload["rules"] = [rule.to_wire() for rule in rules]
    if actions:
        payload["actions"] = actions
    return {"id": id, "type": type, "data": payload}


def edge(source: str, target: str, label: Optional[str] = None) -> dict:
    return {"id": f"{source}->{target}", "source": source, "target": target, "label": label}


def make_workflow(
    nodes: list[dict],
    connections: list[dict],
    id: str = "credit-workflow",
    status: str = "published",
    **extra: Any,
) -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(
        {
            "id": id,
            "name": "Credit Workflow",
            "version": "1.0.0",
            "nodes": nodes,
            "connections": connections,
            "status": status,
            **extra,
        }
    )
