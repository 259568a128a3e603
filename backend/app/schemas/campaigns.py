"""
Campaign and push subscription schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from backend.app.schemas.common import CamelModel


class CampaignCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    title: Optional[str] = None
    message: str = Field(..., min_length=1)
    target_segment: str = Field(..., min_length=1, description="'all' or a segment name")
    segment_id: Optional[str] = None
    offer_code: Optional[str] = None
    url: Optional[str] = None
    scheduled_at: Optional[datetime] = None


class CampaignUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    title: Optional[str] = None
    message: Optional[str] = Field(default=None, min_length=1)
    target_segment: Optional[str] = Field(default=None, min_length=1)
    segment_id: Optional[str] = None
    offer_code: Optional[str] = None
    url: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: Optional[Literal["draft", "scheduled"]] = None


class CampaignResponse(CamelModel):
    id: str
    name: str
    title: Optional[str] = None
    message: str
    target_segment: str
    segment_id: Optional[str] = None
    estimated_users: int
    sent_count: int
    offer_code: Optional[str] = None
    url: Optional[str] = None
    status: str
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CampaignExecuteResponse(CamelModel):
    success: bool
    campaign_id: str
    targeted_users: int
    sent: int
    failed: int
    errors: List[str] = Field(default_factory=list)


class CampaignAnalytics(CamelModel):
    campaign_id: str
    status: str
    total_deliveries: int
    by_status: Dict[str, int]
    click_rate: float
    close_rate: float


class DeliveryTrackRequest(CamelModel):
    campaign_id: str
    user_id: str


class PushKeys(CamelModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscribeRequest(CamelModel):
    endpoint: str = Field(..., min_length=1)
    keys: PushKeys
    user_id: Optional[str] = None


class PushUnsubscribeRequest(CamelModel):
    endpoint: str = Field(..., min_length=1)


class PushSubscriptionResponse(CamelModel):
    id: str
    endpoint: str
    user_id: str
    is_active: bool
    created_at: datetime


class PushTestRequest(CamelModel):
    title: str = "Test notification"
    body: str = "Push notifications are working"
    url: Optional[str] = None
    user_ids: Optional[List[str]] = None


class PushSendSummary(CamelModel):
    sent: int
    failed: int
    errors: List[str] = Field(default_factory=list)
    payload: Optional[Dict[str, Any]] = None
