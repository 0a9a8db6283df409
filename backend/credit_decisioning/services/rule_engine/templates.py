"""Predefined rules for common underwriting scenarios."""

from credit_decisioning.models.schemas.rule import Rule

RULE_TEMPLATES: dict[str, dict] = {
    "high_credit_score": {
        "id": "high-credit-score",
        "name": "High Credit Score Auto-Approval",
        "description": "Automatically approve applications with credit scores of 750 or higher",
        "priority": 100,
        "conditions": [
            {
                "id": "credit-score-check",
                "field": "externalData.creditScore",
                "operator": "greater_than_or_equal",
                "value": 750,
                "dataType": "number",
                "description": "Credit score must be 750 or higher",
            }
        ],
        "actions": [
            {"type": "approve", "message": "Auto-approved due to excellent credit score"},
            {"type": "set_score", "value": 95},
        ],
    },
    "low_credit_score": {
        "id": "low-credit-score",
        "name": "Low Credit Score Decline",
        "description": "Decline applications with credit scores below 500",
        "priority": 90,
        "conditions": [
            {
                "id": "low-credit-check",
                "field": "externalData.creditScore",
                "operator": "less_than",
                "value": 500,
                "dataType": "number",
                "description": "Credit score below minimum threshold",
            }
        ],
        "actions": [
            {"type": "decline", "message": "Credit score below minimum requirements"},
            {"type": "add_flag", "value": "low_credit_score"},
        ],
    },
    "debt_to_income_ratio": {
        "id": "debt-to-income-ratio",
        "name": "Debt-to-Income Ratio Check",
        "description": "Review applications with high debt-to-income ratios",
        "priority": 80,
        "conditions": [
            {
                "id": "dti-ratio-check",
                "field": "calculatedFields.debtToIncomeRatio",
                "operator": "greater_than",
                "value": 0.4,
                "dataType": "number",
                "description": "Debt-to-income ratio above 40%",
            }
        ],
        "actions": [
            {"type": "review", "message": "High debt-to-income ratio requires manual review"},
            {"type": "require_document", "value": "income_verification"},
            {"type": "add_flag", "value": "high_dti"},
        ],
    },
    "application_velocity": {
        "id": "application-velocity",
        "name": "Application Velocity Check",
        "description": "Flag multiple applications from the same applicant in a short timeframe",
        "priority": 95,
        "conditions": [
            {
                "id": "velocity-check",
                "field": "externalData.applicationCount24h",
                "operator": "greater_than",
                "value": 3,
                "dataType": "number",
                "description": "More than 3 applications in 24 hours",
            }
        ],
        "actions": [
            {"type": "review", "message": "Multiple applications detected - potential fraud"},
            {"type": "add_flag", "value": "velocity_fraud"},
            {"type": "require_document", "value": "identity_verification"},
        ],
    },
}


def get_template(name: str) -> Rule:
    """
    Build a fresh Rule from a named template.

    Raises:
        KeyError: If no template has that name
    """
    return Rule.model_validate(RULE_TEMPLATES[name])


def list_templates() -> list[str]:
    return sorted(RULE_TEMPLATES)
