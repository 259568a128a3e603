"""
Unit tests for the segment SQL guard.
"""
import pytest

from backend.app.core.exceptions import UnsafeQueryError, ValidationError
from backend.app.services.segment_service import validate_segment_query

BASE = 'SELECT "userId" FROM "Event" WHERE category = \'conversion\''


def test_limit_appended_when_missing():
    assert validate_segment_query(BASE, max_results=500) == f"{BASE} LIMIT 500"


def test_existing_limit_kept():
    query = f"{BASE} LIMIT 10"
    assert validate_segment_query(query, max_results=500) == query


def test_trailing_semicolon_dropped():
    assert validate_segment_query(f"{BASE};", max_results=500) == f"{BASE} LIMIT 500"


@pytest.mark.parametrize("query", [
    'DROP TABLE "Event"',
    'SELECT "userId" FROM "Event"; DROP TABLE "Event"',
    'select "userId" from "Event" where 1=1 or delete',
    'UPDATE "Event" SET name = \'x\'',
    'INSERT INTO "Event" ("userId") VALUES (\'x\')',
    'TRUNCATE "Event"',
    'WITH x AS (SELECT 1) ALTER TABLE "Event" ADD "userId" TEXT',
])
def test_forbidden_keywords_rejected(query):
    with pytest.raises(UnsafeQueryError):
        validate_segment_query(query)


def test_keyword_inside_identifier_is_allowed():
    query = 'SELECT "userId", "updatedAt", "created_by" FROM "Event"'
    assert validate_segment_query(query, max_results=5).endswith("LIMIT 5")


def test_only_select_or_with():
    with pytest.raises(UnsafeQueryError):
        validate_segment_query('PRAGMA table_info("Event") -- userId')


def test_multiple_statements_rejected():
    with pytest.raises(UnsafeQueryError):
        validate_segment_query(f'{BASE}; SELECT "userId" FROM "Event"')


def test_user_id_column_required():
    with pytest.raises(UnsafeQueryError):
        validate_segment_query('SELECT name FROM "Event"')
    assert validate_segment_query("SELECT user_id FROM users", max_results=1)


def test_unsafe_query_is_a_validation_error():
    """Maps to HTTP 400 like any other validation failure."""
    assert issubclass(UnsafeQueryError, ValidationError)
    assert UnsafeQueryError.status_code == 400
