"""
Promo code batches and the claim endpoint.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.schemas.common import DeleteResponse
from backend.app.schemas.promocodes import (
    ClaimedPromoCode,
    PromoBatchCreate,
    PromoBatchListResponse,
    PromoBatchResponse,
    PromoBatchUpdate,
    PromoClaimRequest,
    PromoCodeListResponse,
    PromoCodeResponse,
    PromoSummary,
)
from backend.app.services import promo_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=PromoBatchListResponse)
async def list_batches(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    batches, summary = await promo_service.list_batches(db, current_user)
    return PromoBatchListResponse(
        batches=[PromoBatchResponse.model_validate(b) for b in batches],
        summary=PromoSummary(**summary),
    )


@router.post("", response_model=PromoBatchResponse, status_code=201)
async def create_batch(
    payload: PromoBatchCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return PromoBatchResponse.model_validate(await promo_service.create_batch(db, current_user, payload))


@router.post("/get-code", response_model=ClaimedPromoCode)
async def get_code(
    payload: PromoClaimRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Claim one unused code; it is never handed out again."""
    return await promo_service.claim_code(
        db,
        batch_id=payload.batch_id,
        batch_name=payload.batch_name,
        code_type=payload.code_type,
        specific_code=payload.specific_code,
        claimed_by=payload.user_id or current_user.id,
        organization_id=current_user.organization_id,
        owner_id=current_user.id,
    )


@router.get("/{batch_id}", response_model=PromoBatchResponse)
async def get_batch(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return PromoBatchResponse.model_validate(await promo_service.get_batch(db, current_user, batch_id))


@router.put("/{batch_id}", response_model=PromoBatchResponse)
async def update_batch(
    batch_id: str,
    payload: PromoBatchUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return PromoBatchResponse.model_validate(await promo_service.update_batch(db, current_user, batch_id, payload))


@router.delete("/{batch_id}", response_model=DeleteResponse)
async def delete_batch(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await promo_service.delete_batch(db, current_user, batch_id)
    return DeleteResponse(id=batch_id)


@router.get("/{batch_id}/codes", response_model=PromoCodeListResponse)
async def list_codes(
    batch_id: str,
    used: Optional[bool] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    codes, total = await promo_service.list_codes(db, current_user, batch_id, used, limit, offset)
    return PromoCodeListResponse(
        codes=[PromoCodeResponse.model_validate(c) for c in codes],
        total=total,
        limit=limit,
        offset=offset,
    )
