"""
User segments defined by guarded read-only SQL over the event store.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.schemas.common import DeleteResponse
from backend.app.schemas.segments import (
    SegmentCreate,
    SegmentPreviewRequest,
    SegmentPreviewResponse,
    SegmentResponse,
    SegmentUsersResponse,
)
from backend.app.services import segment_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[SegmentResponse])
async def list_segments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return [SegmentResponse.model_validate(s) for s in await segment_service.list_segments(db, current_user)]


@router.post("", response_model=SegmentResponse, status_code=201)
async def create_segment(
    payload: SegmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """``userCount`` is counted once, here, and not refreshed later."""
    segment = await segment_service.create_segment(
        db, current_user, payload.name, payload.query, payload.description, payload.criteria
    )
    return SegmentResponse.model_validate(segment)


@router.post("/preview", response_model=SegmentPreviewResponse)
async def preview_segment(
    payload: SegmentPreviewRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return SegmentPreviewResponse(**await segment_service.preview_query(db, payload.query))


@router.get("/{segment_id}", response_model=SegmentResponse)
async def get_segment(
    segment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return SegmentResponse.model_validate(await segment_service.get_segment(db, current_user, segment_id))


@router.get("/{segment_id}/users", response_model=SegmentUsersResponse)
async def segment_users(
    segment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    segment = await segment_service.get_segment(db, current_user, segment_id)
    user_ids = await segment_service.segment_user_ids(db, segment)
    return SegmentUsersResponse(segment_id=segment.id, user_ids=user_ids, count=len(user_ids))


@router.delete("/{segment_id}", response_model=DeleteResponse)
async def delete_segment(
    segment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await segment_service.delete_segment(db, current_user, segment_id)
    return DeleteResponse(id=segment_id)
