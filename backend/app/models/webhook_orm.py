"""
Outbound webhooks fired on tracked events.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Boolean, Float, DateTime, JSON

from backend.app.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class WebhookORM(Base):
    __tablename__ = "webhooks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    url = Column(String(2048), nullable=False)
    secret = Column(String(128), nullable=False)
    events = Column(JSON, nullable=False, default=list)  # ["event.created"]

    # Same semantics as workflow trigger filters: empty means wildcard
    event_name = Column(String(255), nullable=True)
    filter_item_name = Column(String(255), nullable=True)
    filter_item_category = Column(String(255), nullable=True)
    filter_item_id = Column(String(255), nullable=True)
    filter_value = Column(Float, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    failure_count = Column(Integer, nullable=False, default=0)
    last_triggered = Column(DateTime(timezone=True), nullable=True)

    user_id = Column(String(255), nullable=False, index=True)
    organization_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def filters(self) -> dict:
        return {
            "eventName": self.event_name,
            "filterItemName": self.filter_item_name,
            "filterItemCategory": self.filter_item_category,
            "filterItemId": self.filter_item_id,
            "filterValue": self.filter_value,
        }

    def __repr__(self):
        return f"<Webhook {self.url} active={self.is_active}>"
