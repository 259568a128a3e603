"""
Segment schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from backend.app.schemas.common import CamelModel


class SegmentCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    query: str = Field(..., min_length=1)
    criteria: Optional[Dict[str, Any]] = None


class SegmentResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    query: str
    user_count: int
    criteria: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class SegmentUsersResponse(CamelModel):
    segment_id: str
    user_ids: List[str]
    count: int


class SegmentPreviewRequest(CamelModel):
    query: str = Field(..., min_length=1)


class SegmentPreviewResponse(CamelModel):
    count: int
    sample: List[str]
    query: str
