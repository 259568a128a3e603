"""
Notification campaigns, per-user delivery records and push subscriptions.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from backend.app.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CampaignStatus(str, PyEnum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"
    COMPLETED = "completed"


class DeliveryStatus(str, PyEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CLICKED = "clicked"
    CLOSED = "closed"


class NotificationCampaignORM(Base):
    __tablename__ = "notification_campaigns"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    target_segment = Column(String(255), nullable=False)  # "all" or a segment name
    segment_id = Column(String(36), ForeignKey("user_segments.id", ondelete="SET NULL"), nullable=True)
    estimated_users = Column(Integer, nullable=False, default=0)
    sent_count = Column(Integer, nullable=False, default=0)
    offer_code = Column(String(64), nullable=True)
    url = Column(String(2048), nullable=True)
    status = Column(String(16), nullable=False, default=CampaignStatus.DRAFT.value)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    user_id = Column(String(255), nullable=False, index=True)
    organization_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    deliveries = relationship(
        "CampaignDeliveryORM",
        back_populates="campaign",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<NotificationCampaign {self.name} status={self.status}>"


class CampaignDeliveryORM(Base):
    __tablename__ = "campaign_deliveries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(
        String(36), ForeignKey("notification_campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(255), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=DeliveryStatus.PENDING.value)
    push_endpoint = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    clicked_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    campaign = relationship(NotificationCampaignORM, back_populates="deliveries")


class PushSubscriptionORM(Base):
    """Browser push subscription (Web Push endpoint + keys)."""
    __tablename__ = "push_subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    endpoint = Column(String(2048), nullable=False, unique=True)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)
    user_id = Column(String(255), nullable=False, index=True)
    organization_id = Column(String(255), nullable=True, index=True)
    user_agent = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<PushSubscription user={self.user_id} active={self.is_active}>"
