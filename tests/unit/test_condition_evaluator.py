"""
Unit tests for workflow condition evaluation.
"""
import pytest

from backend.app.core.exceptions import ValidationError, WorkflowActionError
from backend.app.services.condition_evaluator import compare, evaluate_condition
from backend.app.services.variable_resolver import VariableResolver


def test_equals_compares_string_forms():
    assert compare("5", "equals", 5)
    assert compare(5.0, "equals", "5")
    assert compare(True, "equals", "true")
    assert compare("gold", "not_equals", "silver")


def test_numeric_operators():
    assert compare("150", "greater_than", 100)
    assert compare(3, "less_than", "3.5")
    assert not compare("abc", "greater_than", 1)
    assert not compare(None, "less_than", 1)


def test_contains_operators():
    assert compare("premium-monthly", "contains", "premium")
    assert compare("basic", "not_contains", "premium")


def test_unknown_operator_rejected():
    with pytest.raises(ValidationError):
        compare(1, "between", 2)


def test_structured_condition_resolves_placeholders():
    resolver = VariableResolver({"value": 150, "properties": {"tier": "gold"}}, {})
    outcome = evaluate_condition(resolver, "greater_than", "{event.value}", "100")
    assert outcome["passed"] is True
    assert outcome["left"] == 150
    assert outcome["condition"] == "150 greater_than 100"


def test_unresolved_operand_is_reported():
    resolver = VariableResolver({}, {})
    outcome = evaluate_condition(resolver, "equals", "{event.properties.plan}", "pro")
    assert outcome["passed"] is False
    assert outcome["left"] is None
    assert resolver.unresolved == ["event.properties.plan"]


def test_expression_condition():
    resolver = VariableResolver({"value": 120}, {"tier": "gold"})
    outcome = evaluate_condition(resolver, expression="event.value > 100 and workflow.tier == 'gold'")
    assert outcome == {"passed": True, "condition": "event.value > 100 and workflow.tier == 'gold'"}


def test_expression_with_unknown_name_fails():
    resolver = VariableResolver({}, {})
    with pytest.raises(WorkflowActionError):
        evaluate_condition(resolver, expression="customer.age > 18")
