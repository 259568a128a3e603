"""
Promo Code Service.

Batches of single-use codes and the claim operation shared by the
``/promocodes/get-code`` endpoint and the promo_code workflow action.

A claim picks a candidate code and marks it used with a conditional
``UPDATE ... WHERE is_used = false``. If another claimant won the row the
update touches nothing and a new candidate is picked.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import get_settings
from backend.app.core.exceptions import ConflictError, NotFoundError, ValidationError
from backend.app.core.security import CurrentUser
from backend.app.models.promo_orm import PromoCodeBatchORM, PromoCodeORM
from backend.app.schemas.promocodes import ClaimedPromoCode, PromoBatchCreate, PromoBatchUpdate, normalize_code

logger = logging.getLogger(__name__)


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _scope(stmt, user: CurrentUser):
    if user.organization_id:
        return stmt.where(PromoCodeBatchORM.organization_id == user.organization_id)
    return stmt.where(PromoCodeBatchORM.user_id == user.id)


async def _existing_codes(session: AsyncSession, codes: List[str]) -> List[str]:
    if not codes:
        return []
    result = await session.execute(select(PromoCodeORM.code).where(PromoCodeORM.code.in_(codes)))
    return sorted(result.scalars().all())


def _duplicates(codes: List[str]) -> List[str]:
    seen, dupes = set(), set()
    for code in codes:
        if code in seen:
            dupes.add(code)
        seen.add(code)
    return sorted(dupes)


async def create_batch(session: AsyncSession, user: CurrentUser, data: PromoBatchCreate) -> PromoCodeBatchORM:
    dupes = _duplicates(data.codes)
    if dupes:
        raise ConflictError("Duplicate codes in request", details={"duplicates": dupes})
    existing = await _existing_codes(session, data.codes)
    if existing:
        raise ConflictError("Some codes already exist", details={"duplicates": existing})

    batch = PromoCodeBatchORM(
        name=data.name,
        description=data.description,
        discount_type=data.discount_type,
        discount_value=data.discount_value,
        min_order_value=data.min_order_value,
        max_uses=data.max_uses,
        valid_from=data.valid_from or datetime.now(timezone.utc),
        valid_until=data.valid_until,
        is_active=True,
        total_codes=len(data.codes),
        used_codes=0,
        user_id=user.id,
        organization_id=user.organization_id,
    )
    session.add(batch)
    await session.flush()

    session.add_all(
        PromoCodeORM(code=code, batch_id=batch.id, position=i) for i, code in enumerate(data.codes)
    )
    await session.flush()
    logger.info(f"Promo batch '{batch.name}' created with {batch.total_codes} codes (id={batch.id})")
    return batch


async def list_batches(session: AsyncSession, user: CurrentUser) -> Tuple[List[PromoCodeBatchORM], Dict[str, int]]:
    stmt = _scope(select(PromoCodeBatchORM), user).order_by(PromoCodeBatchORM.created_at.desc())
    batches = list((await session.execute(stmt)).scalars().all())
    total_codes = sum(b.total_codes for b in batches)
    used_codes = sum(b.used_codes for b in batches)
    summary = {
        "total_batches": len(batches),
        "active_batches": sum(1 for b in batches if b.is_active),
        "total_codes": total_codes,
        "used_codes": used_codes,
        "available_codes": total_codes - used_codes,
    }
    return batches, summary


async def get_batch(session: AsyncSession, user: CurrentUser, batch_id: str) -> PromoCodeBatchORM:
    stmt = _scope(select(PromoCodeBatchORM).where(PromoCodeBatchORM.id == batch_id), user)
    batch = (await session.execute(stmt)).scalar_one_or_none()
    if batch is None:
        raise NotFoundError("Promo code batch not found")
    return batch


async def update_batch(
    session: AsyncSession, user: CurrentUser, batch_id: str, data: PromoBatchUpdate
) -> PromoCodeBatchORM:
    batch = await get_batch(session, user, batch_id)
    fields = data.model_dump(exclude_unset=True, exclude={"codes"})
    for key, value in fields.items():
        setattr(batch, key, value)

    if data.codes:
        dupes = _duplicates(data.codes)
        existing = await _existing_codes(session, data.codes)
        if dupes or existing:
            raise ConflictError("Some codes already exist", details={"duplicates": sorted(set(dupes) | set(existing))})
        start = batch.total_codes
        session.add_all(
            PromoCodeORM(code=code, batch_id=batch.id, position=start + i) for i, code in enumerate(data.codes)
        )
        batch.total_codes += len(data.codes)

    valid_from, valid_until = _aware(batch.valid_from), _aware(batch.valid_until)
    if valid_from and valid_until and valid_until <= valid_from:
        raise ValidationError("validUntil must be after validFrom")

    await session.flush()
    return batch


async def delete_batch(session: AsyncSession, user: CurrentUser, batch_id: str) -> None:
    batch = await get_batch(session, user, batch_id)
    await session.execute(delete(PromoCodeORM).where(PromoCodeORM.batch_id == batch.id))
    await session.delete(batch)
    await session.flush()


async def list_codes(
    session: AsyncSession,
    user: CurrentUser,
    batch_id: str,
    used: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[PromoCodeORM], int]:
    batch = await get_batch(session, user, batch_id)
    base = select(PromoCodeORM).where(PromoCodeORM.batch_id == batch.id)
    if used is not None:
        base = base.where(PromoCodeORM.is_used.is_(used))
    total = (await session.execute(select(func.count()).select_from(base.subquery()))).scalar_one()
    rows = await session.execute(base.order_by(PromoCodeORM.position).limit(limit).offset(offset))
    return list(rows.scalars().all()), total


async def _find_batch(
    session: AsyncSession,
    batch_id: Optional[str],
    batch_name: Optional[str],
    organization_id: Optional[str],
    owner_id: Optional[str],
) -> PromoCodeBatchORM:
    """The batch inside the caller's organization, or among its own batches when it has none."""
    stmt = select(PromoCodeBatchORM)
    if batch_id:
        stmt = stmt.where(PromoCodeBatchORM.id == batch_id)
    else:
        stmt = stmt.where(PromoCodeBatchORM.name == batch_name)
    if organization_id:
        stmt = stmt.where(PromoCodeBatchORM.organization_id == organization_id)
    elif owner_id:
        stmt = stmt.where(PromoCodeBatchORM.organization_id.is_(None), PromoCodeBatchORM.user_id == owner_id)
    else:
        raise NotFoundError("Promo code batch not found")
    batch = (await session.execute(stmt.order_by(PromoCodeBatchORM.created_at.desc()).limit(1))).scalar_one_or_none()
    if batch is None:
        raise NotFoundError("Promo code batch not found")
    return batch


def _candidate_query(batch_id: str, code_type: str, specific_code: Optional[str]):
    stmt = select(PromoCodeORM.id, PromoCodeORM.code).where(
        PromoCodeORM.batch_id == batch_id,
        PromoCodeORM.is_used.is_(False),
    )
    if code_type == "specific":
        stmt = stmt.where(PromoCodeORM.code == normalize_code(specific_code or ""))
    elif code_type == "sequential":
        stmt = stmt.order_by(PromoCodeORM.position, PromoCodeORM.created_at)
    else:
        stmt = stmt.order_by(func.random())
    return stmt.limit(1)


async def claim_code(
    session: AsyncSession,
    batch_id: Optional[str] = None,
    batch_name: Optional[str] = None,
    code_type: str = "random",
    specific_code: Optional[str] = None,
    claimed_by: Optional[str] = None,
    organization_id: Optional[str] = None,
    owner_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ClaimedPromoCode:
    """
    Claim one unused code from a batch and mark it used.

    Raises:
        NotFoundError: unknown batch, or no unused code left
        ValidationError: batch inactive or outside its validity window
        ConflictError: usage limit reached, or every attempt lost a race
    """
    now = now or datetime.now(timezone.utc)
    batch = await _find_batch(session, batch_id, batch_name, organization_id, owner_id)

    if not batch.is_active:
        raise ValidationError("Promo code batch is not active")
    if _aware(batch.valid_from) and now < _aware(batch.valid_from):
        raise ValidationError("Promo code batch is not yet valid")
    if batch.valid_until and now > _aware(batch.valid_until):
        raise ValidationError("Promo code batch has expired")
    if batch.max_uses is not None and batch.used_codes >= batch.max_uses:
        raise ConflictError("Promo code batch usage limit reached")

    attempts = max(1, get_settings().promo_claim_attempts)
    for attempt in range(attempts):
        candidate = (await session.execute(_candidate_query(batch.id, code_type, specific_code))).first()
        if candidate is None:
            if code_type == "specific":
                raise NotFoundError(f"Promo code {normalize_code(specific_code or '')} is not available")
            raise NotFoundError("No available promo codes in this batch")

        claimed = await session.execute(
            update(PromoCodeORM)
            .where(PromoCodeORM.id == candidate.id, PromoCodeORM.is_used.is_(False))
            .values(is_used=True, used_at=now, used_by=claimed_by)
        )
        if claimed.rowcount == 1:
            await session.execute(
                update(PromoCodeBatchORM)
                .where(PromoCodeBatchORM.id == batch.id)
                .values(used_codes=PromoCodeBatchORM.used_codes + 1)
            )
            await session.refresh(batch)
            logger.info(f"Promo code {candidate.code} claimed from batch '{batch.name}' by {claimed_by}")
            return ClaimedPromoCode(
                code=candidate.code,
                batch_id=batch.id,
                batch_name=batch.name,
                discount_type=batch.discount_type,
                discount_value=batch.discount_value,
                min_order_value=batch.min_order_value,
            )
        logger.debug(f"Promo code {candidate.code} taken concurrently, retrying ({attempt + 1}/{attempts})")

    raise ConflictError("Could not claim a promo code, please retry")
