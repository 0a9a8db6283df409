"""Tests for rule validation and the predefined rule templates."""

import pytest

from builders import condition, make_rule
from credit_decisioning.services.rule_engine.engine import evaluate_rule_set
from credit_decisioning.services.rule_engine.templates import get_template, list_templates
from credit_decisioning.services.rule_engine.validation import validate_rule


class TestValidateRule:
    """Tests for validate_rule()."""

    def test_valid_rule(self, credit_rules):
        for rule in credit_rules:
            assert validate_rule(rule) == []

    def test_rule_needs_conditions(self):
        errors = validate_rule(make_rule("empty", [], [{"type": "approve"}]))
        assert any("at least one condition" in error for error in errors)

    def test_value_required_unless_null_check(self):
        assert validate_rule(make_rule("r", [condition("creditScore", "is_null")], [])) == []

        errors = validate_rule(make_rule("r", [condition("creditScore", "greater_than")], []))
        assert any("requires a value" in error for error in errors)

    def test_list_operators_need_lists(self):
        errors = validate_rule(make_rule("r", [condition("state", "in", "CA", "string")], []))
        assert any("requires a list value" in error for error in errors)

    def test_between_bounds(self):
        errors = validate_rule(make_rule("r", [condition("creditScore", "between", [700, 600])], []))
        assert any("ascending order" in error for error in errors)

        errors = validate_rule(make_rule("r", [condition("creditScore", "between", [600, 650, 700])], []))
        assert any("exactly two bounds" in error for error in errors)

    def test_action_requirements(self):
        rule = make_rule(
            "r",
            [condition("creditScore", "greater_than", 0)],
            [{"type": "set_score"}, {"type": "calculate", "value": {"operation": "sum", "fields": ["a"]}}],
        )
        errors = validate_rule(rule)

        assert any("set_score" in error and "value is required" in error for error in errors)
        assert any("calculate" in error and "output_field is required" in error for error in errors)

    def test_condition_ids_must_be_unique(self):
        rule = make_rule(
            "r",
            [
                condition("creditScore", "greater_than", 0, id="dup"),
                condition("debtToIncomeRatio", "less_than", 1, id="dup"),
            ],
            [],
        )
        assert any("unique" in error for error in validate_rule(rule))

    def test_priority_is_bounded(self):
        with pytest.raises(ValueError):
            make_rule("r", [condition("creditScore", "greater_than", 0)], [], priority=101)


class TestTemplates:
    """Tests for the predefined rule templates."""

    def test_list_templates(self):
        assert list_templates() == [
            "application_velocity",
            "debt_to_income_ratio",
            "high_credit_score",
            "low_credit_score",
        ]

    def test_every_template_is_valid(self):
        for name in list_templates():
            assert validate_rule(get_template(name)) == []

    def test_templates_are_fresh_copies(self):
        first = get_template("high_credit_score")
        first.conditions[0].value = 1
        assert get_template("high_credit_score").conditions[0].value == 750

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            get_template("no_such_template")

    def test_template_evaluates(self):
        result = evaluate_rule_set([get_template("high_credit_score")], {"externalData": {"creditScore": 780}})
        assert result.decision.value == "approve"
        assert result.score == 95
