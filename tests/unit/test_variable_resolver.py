"""
Unit tests for placeholder resolution.
"""
import pytest

from backend.app.services.variable_resolver import (
    UNRESOLVED,
    VariableResolver,
    find_placeholders,
    lookup_path,
    stringify,
)


@pytest.fixture
def resolver():
    event = {
        "name": "add_to_cart",
        "userId": "u-1",
        "value": 25.0,
        "properties": {
            "cart": {"total": 99.5},
            "items": [{"sku": "LATTE"}, {"sku": "MOCHA"}],
        },
    }
    variables = {"promoCode": "SPRING-7", "promoCode_discountValue": 15}
    return VariableResolver(event, variables)


def test_render_event_and_workflow_placeholders(resolver):
    text = resolver.render("Hi {event.userId}, use {workflow.promoCode} for {workflow.promoCode_discountValue}% off")
    assert text == "Hi u-1, use SPRING-7 for 15% off"
    assert resolver.unresolved == []


def test_render_walks_nested_dicts_and_list_indexes(resolver):
    assert resolver.render("{event.properties.cart.total}") == "99.5"
    assert resolver.render("{event.properties.items.1.sku}") == "MOCHA"


def test_unknown_placeholder_left_verbatim_and_reported(resolver):
    text = resolver.render("Hello {event.properties.firstName}!")
    assert text == "Hello {event.properties.firstName}!"
    assert resolver.unresolved == ["event.properties.firstName"]


def test_resolution_is_single_pass():
    """A value that looks like a placeholder is not resolved again."""
    resolver = VariableResolver({"name": "secret"}, {"template": "{event.name}"})
    assert resolver.render("{workflow.template}") == "{event.name}"


def test_resolve_value_returns_raw_types(resolver):
    items = resolver.resolve_value("{event.properties.items}")
    assert isinstance(items, list) and len(items) == 2
    assert resolver.resolve_value("{event.value}") == 25.0
    assert resolver.resolve_value("{event.missing}") is UNRESOLVED
    # Mixed text still renders to a string
    assert resolver.resolve_value("total: {event.value}") == "total: 25"


def test_render_structure_touches_only_strings(resolver):
    rendered = resolver.render_structure({"to": "{event.userId}", "count": 3, "tags": ["{workflow.promoCode}", None]})
    assert rendered == {"to": "u-1", "count": 3, "tags": ["SPRING-7", None]}


def test_stringify_forms():
    assert stringify(None) == ""
    assert stringify(True) == "true"
    assert stringify(10.0) == "10"
    assert stringify(10.25) == "10.25"
    assert stringify({"a": 1}) == '{"a": 1}'


def test_lookup_path_misses():
    assert lookup_path({"a": [1, 2]}, "a.5") is UNRESOLVED
    assert lookup_path({"a": "text"}, "a.b") is UNRESOLVED
    assert not UNRESOLVED


def test_find_placeholders():
    assert find_placeholders("{event.name} and {workflow.code} and {other.x}") == ["event.name", "workflow.code"]
