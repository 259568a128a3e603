"""
Segment query guard and executor.

Segments are defined by user-written SQL over the event store. Queries run
through a keyword/shape guard, get a LIMIT appended when missing, and execute
under a timeout with a row cap.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.exceptions import NotFoundError, UnsafeQueryError, ValidationError
from backend.app.core.security import CurrentUser
from backend.app.models.segment_orm import UserSegmentORM

logger = logging.getLogger(__name__)

DANGEROUS_KEYWORDS = ("DROP", "DELETE", "UPDATE", "INSERT", "CREATE", "ALTER", "TRUNCATE")
_DANGEROUS_PATTERN = re.compile(r"\b(" + "|".join(DANGEROUS_KEYWORDS) + r")\b", re.IGNORECASE)
_LIMIT_PATTERN = re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE)


def validate_segment_query(query: str, max_results: Optional[int] = None, require_user_id: bool = True) -> str:
    """
    Return the statement that will actually run, or raise UnsafeQueryError.

    - no DROP / DELETE / UPDATE / INSERT / CREATE / ALTER / TRUNCATE keyword
    - must start with SELECT or WITH (and a WITH must contain a SELECT)
    - a single statement only (one trailing ';' is dropped)
    - must reference userId when require_user_id is set
    - LIMIT <max_results> appended when there is no LIMIT
    """
    if max_results is None:
        max_results = get_settings().segment_max_results

    statement = (query or "").strip()
    if not statement:
        raise UnsafeQueryError("Query is required")

    match = _DANGEROUS_PATTERN.search(statement)
    if match:
        raise UnsafeQueryError(
            f"Query contains forbidden keyword: {match.group(1).upper()}",
            details={"keyword": match.group(1).upper()},
        )

    upper = statement.upper()
    if not (upper.startswith("SELECT") or upper.startswith("WITH")):
        raise UnsafeQueryError("Only SELECT queries are allowed")
    if upper.startswith("WITH") and not re.search(r"\bSELECT\b", upper):
        raise UnsafeQueryError("WITH queries must contain a SELECT")

    statement = statement.rstrip(";").rstrip()
    if ";" in statement:
        raise UnsafeQueryError("Multiple statements are not allowed")

    if require_user_id and "USERID" not in upper.replace("_", ""):
        raise UnsafeQueryError("Query must return a userId column")

    if not _LIMIT_PATTERN.search(statement):
        statement = f"{statement} LIMIT {max_results}"
    return statement


def extract_user_ids(rows) -> List[str]:
    """Distinct user ids in row order. Uses a userId/user_id column, else the first column."""
    seen = set()
    user_ids: List[str] = []
    for row in rows:
        mapping = row._mapping
        key = next((k for k in mapping.keys() if str(k).lower().replace("_", "") == "userid"), None)
        value = mapping[key] if key is not None else row[0]
        if value is None:
            continue
        value = str(value)
        if value not in seen:
            seen.add(value)
            user_ids.append(value)
    return user_ids


async def fetch_segment_rows(
    session: AsyncSession,
    query: str,
    require_user_id: bool = True,
) -> list:
    """Run a guarded segment query and return its rows, capped at segment_max_results."""
    settings = get_settings()
    statement = validate_segment_query(query, settings.segment_max_results, require_user_id)

    try:
        result = await asyncio.wait_for(
            session.execute(text(statement)),
            timeout=settings.segment_query_timeout_seconds,
        )
    except asyncio.TimeoutError:
        raise ValidationError(f"Query timed out after {settings.segment_query_timeout_seconds}s")

    return result.fetchmany(settings.segment_max_results)


async def execute_segment_query(
    session: AsyncSession,
    query: str,
    require_user_id: bool = True,
) -> List[str]:
    """Run a guarded segment query and return the distinct matching user ids."""
    return extract_user_ids(await fetch_segment_rows(session, query, require_user_id))


def _scope(stmt, user: CurrentUser):
    if user.organization_id:
        return stmt.where(UserSegmentORM.organization_id == user.organization_id)
    return stmt.where(UserSegmentORM.user_id == user.id)


async def list_segments(session: AsyncSession, user: CurrentUser) -> List[UserSegmentORM]:
    stmt = _scope(select(UserSegmentORM), user).order_by(UserSegmentORM.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_segment(session: AsyncSession, user: CurrentUser, segment_id: str) -> UserSegmentORM:
    stmt = _scope(select(UserSegmentORM).where(UserSegmentORM.id == segment_id), user)
    segment = (await session.execute(stmt)).scalar_one_or_none()
    if segment is None:
        raise NotFoundError("Segment not found")
    return segment


async def find_segment_by_name(session: AsyncSession, user: CurrentUser, name: str) -> Optional[UserSegmentORM]:
    stmt = _scope(select(UserSegmentORM).where(UserSegmentORM.name == name), user)
    return (await session.execute(stmt.limit(1))).scalar_one_or_none()


async def create_segment(
    session: AsyncSession,
    user: CurrentUser,
    name: str,
    query: str,
    description: Optional[str] = None,
    criteria: Optional[Dict[str, Any]] = None,
) -> UserSegmentORM:
    """
    Validate, count and store a segment.

    userCount is the row count the query returns right now. Unsafe queries
    are rejected; a query that passes the guard but fails to execute is
    stored with a count of 0.
    """
    validate_segment_query(query)

    user_count = 0
    try:
        async with session.begin_nested():
            user_count = len(await fetch_segment_rows(session, query))
    except UnsafeQueryError:
        raise
    except Exception as e:
        logger.warning(f"Segment query failed during creation of '{name}': {e}")

    segment = UserSegmentORM(
        name=name,
        description=description,
        query=query.strip(),
        user_count=user_count,
        criteria=criteria,
        user_id=user.id,
        organization_id=user.organization_id,
    )
    session.add(segment)
    await session.flush()
    logger.info(f"Segment '{name}' created with {user_count} users (id={segment.id})")
    return segment


async def segment_user_ids(session: AsyncSession, segment: UserSegmentORM) -> List[str]:
    """Live membership; unlike user_count this reflects current events."""
    return await execute_segment_query(session, segment.query)


async def preview_query(session: AsyncSession, query: str, sample_size: int = 20) -> Dict[str, Any]:
    user_ids = await execute_segment_query(session, query)
    return {
        "count": len(user_ids),
        "sample": user_ids[:sample_size],
        "query": validate_segment_query(query),
    }


async def delete_segment(session: AsyncSession, user: CurrentUser, segment_id: str) -> None:
    segment = await get_segment(session, user, segment_id)
    await session.delete(segment)
    await session.flush()
