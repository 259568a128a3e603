"""
Trigger / filter matching for workflows and webhooks.

A trigger matches when its eventType equals the event category and every
non-empty filter equals the corresponding event field exactly. No patterns,
no ranges.
"""

from typing import Any, Dict, Optional

# filter key -> event payload key
FILTER_FIELDS = {
    "eventName": "name",
    "filterItemName": "itemName",
    "filterItemCategory": "itemCategory",
    "filterItemId": "itemId",
}


def _is_wildcard(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _numbers_equal(expected: Any, actual: Any) -> bool:
    try:
        return float(expected) == float(actual)
    except (TypeError, ValueError):
        return False


def filters_match(filters: Optional[Dict[str, Any]], event: Dict[str, Any]) -> bool:
    for filter_key, event_key in FILTER_FIELDS.items():
        expected = (filters or {}).get(filter_key)
        if _is_wildcard(expected):
            continue
        if event.get(event_key) != expected:
            return False

    expected_value = (filters or {}).get("filterValue")
    if not _is_wildcard(expected_value) and not _numbers_equal(expected_value, event.get("value")):
        return False
    return True


def trigger_matches(trigger: Optional[Dict[str, Any]], event: Dict[str, Any]) -> bool:
    if not trigger or not trigger.get("eventType"):
        return False
    if trigger["eventType"] != event.get("category"):
        return False
    return filters_match(trigger.get("filters"), event)
