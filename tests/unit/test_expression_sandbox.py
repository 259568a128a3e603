"""
Unit tests for the sandboxed expression evaluator used by script, transform
and expression conditions.
"""
import pytest

from backend.app.core.exceptions import WorkflowActionError
from backend.app.services.expression_sandbox import apply_transform, evaluate, run_script

ITEMS = [
    {"sku": "LATTE", "price": 4.5},
    {"sku": "MOCHA", "price": 5},
    {"sku": "TEA", "price": 2},
]


def test_arithmetic_and_names():
    assert evaluate("1 + 2 * 3") == 7
    assert evaluate("len(items)", {"items": ITEMS}) == 3
    assert evaluate("event.value * 2", {"event": {"value": 21}}) == 42


def test_script_sees_event_workflow_and_previous():
    result = run_script("event.value + workflow.bonus + previous.count", {"value": 1}, {"bonus": 2}, {"count": 3})
    assert result == 6


def test_unknown_name_raises():
    with pytest.raises(WorkflowActionError):
        evaluate("undefined_thing")


def test_builtins_outside_allowlist_are_unavailable():
    with pytest.raises(WorkflowActionError):
        evaluate("range(10)")


def test_dunder_access_is_blocked():
    with pytest.raises(WorkflowActionError):
        evaluate("''.__class__.__mro__")


def test_errors_surface_as_action_errors():
    with pytest.raises(WorkflowActionError) as exc:
        evaluate("1 / 0", action_type="transform")
    assert exc.value.action_type == "transform"


def test_transform_map_and_filter():
    assert apply_transform("map", ITEMS, "item.sku") == ["LATTE", "MOCHA", "TEA"]
    assert apply_transform("filter", ITEMS, "item.price > 3") == ITEMS[:2]


def test_transform_reduce():
    assert apply_transform("reduce", ITEMS, "acc + item.price", initial_value=0) == 11.5


def test_transform_sort():
    ascending = apply_transform("sort", ITEMS, "item.price")
    assert [i["sku"] for i in ascending] == ["TEA", "LATTE", "MOCHA"]
    descending = apply_transform("sort", ITEMS, "item.price", descending=True)
    assert [i["sku"] for i in descending] == ["MOCHA", "LATTE", "TEA"]


def test_transform_requires_a_list():
    with pytest.raises(WorkflowActionError):
        apply_transform("map", {"not": "a list"}, "item")


def test_dict_keys_shadow_dict_methods():
    workflow = {"items": [1, 2, 3], "values": "v"}
    assert evaluate("sum(workflow.items)", {"workflow": workflow}) == 6
    assert evaluate("workflow.values", {"workflow": workflow}) == "v"


def test_statements_are_rejected():
    with pytest.raises(WorkflowActionError):
        evaluate("import os")
