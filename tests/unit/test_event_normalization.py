"""
Unit tests for tracking payload normalization.
"""
import math

from backend.app.core.security import CurrentUser
from backend.app.schemas.events import EventCreate
from backend.app.services.event_service import normalize_event, parse_value

USER = CurrentUser(id="dashboard-user", organization_id="org-1")


def test_parse_value():
    assert parse_value(12) == 12.0
    assert parse_value(" 4.5 ") == 4.5
    assert parse_value("abc") is None
    assert parse_value(True) is None
    assert parse_value(math.nan) is None
    assert parse_value(float("inf")) is None
    assert parse_value({"v": 1}) is None


def test_defaults_come_from_caller():
    event = normalize_event(EventCreate(name="page_view"), USER, ip_address="198.51.100.7")
    assert event.category == "engagement"
    assert event.user_id == "dashboard-user"
    assert event.organization_id == "org-1"
    assert event.ip_address == "198.51.100.7"
    assert event.properties == {}


def test_item_fields_fall_back_to_properties():
    data = EventCreate.model_validate({
        "name": "add_to_cart",
        "category": "ecommerce",
        "userId": "shopper-9",
        "properties": {"name": "Latte", "id": 42, "category": "drinks", "value": "4.5", "userPhone": "+966500000001"},
    })
    event = normalize_event(data, USER)
    assert event.user_id == "shopper-9"
    assert event.item_name == "Latte"
    assert event.item_id == "42"
    assert event.item_category == "drinks"
    assert event.value == 4.5
    assert event.user_phone == "+966500000001"


def test_explicit_fields_win_over_properties():
    data = EventCreate.model_validate({
        "name": "purchase",
        "itemName": "Annual plan",
        "value": 99,
        "properties": {"name": "ignored", "value": 1},
    })
    event = normalize_event(data, USER, referrer="https://ads.example.com")
    assert event.item_name == "Annual plan"
    assert event.value == 99.0
    assert event.referrer == "https://ads.example.com"
