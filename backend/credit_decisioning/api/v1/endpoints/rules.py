"""Stateless rule evaluation and validation endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from credit_decisioning.deps import get_rule_engine
from credit_decisioning.models.schemas.decision import DecisionResult, EvaluateRulesRequest
from credit_decisioning.models.schemas.rule import Rule, RuleValidationResponse
from credit_decisioning.services.rule_engine.engine import RuleEngine
from credit_decisioning.services.rule_engine.templates import get_template, list_templates
from credit_decisioning.services.rule_engine.validation import validate_rule

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/evaluate",
    response_model=DecisionResult,
    summary="Evaluate rules",
    description="Evaluate a rule list or a rule set against one applicant record",
)
async def evaluate_rules(
    request: EvaluateRulesRequest,
    engine: Annotated[RuleEngine, Depends(get_rule_engine)],
) -> DecisionResult:
    """
    Evaluate rules against a record.

    When both ruleSet and rules are given, the rule set wins.
    """
    if request.rule_set is None and not request.rules:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide rules or a ruleSet to evaluate",
        )
    target = request.rule_set if request.rule_set is not None else request.rules
    return engine.evaluate_rule_set(target, request.record)


@router.post(
    "/validate",
    response_model=list[RuleValidationResponse],
    summary="Validate rules",
    description="Check rules for structural problems without evaluating them",
)
async def validate_rules(rules: list[Rule]) -> list[RuleValidationResponse]:
    """Validate each rule independently."""
    responses = []
    for rule in rules:
        errors = validate_rule(rule)
        responses.append(RuleValidationResponse(rule_id=rule.id, is_valid=not errors, errors=errors))
    return responses


@router.get(
    "/templates",
    response_model=list[str],
    summary="List rule templates",
)
async def get_rule_templates() -> list[str]:
    """Names of the predefined rule templates."""
    return list_templates()


@router.get(
    "/templates/{name}",
    response_model=Rule,
    summary="Get a rule template",
)
async def get_rule_template(name: str) -> Rule:
    """Get a fresh copy of one predefined rule."""
    try:
        return get_template(name)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Rule template {name!r} not found",
        )
