"""
Tracked analytics events.

Column names are camelCase and the table is "Event" because segment queries
are written by dashboard users against these names, e.g.
``SELECT DISTINCT "userId" FROM "Event" WHERE category = 'conversion'``.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, DateTime, JSON, Text, Index

from backend.app.core.database import Base


class EventORM(Base):
    """Append-only event row. Never updated after insert."""
    __tablename__ = "Event"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, default="engagement")
    properties = Column(JSON, nullable=False, default=dict)

    user_id = Column("userId", String(255), nullable=True, index=True)
    organization_id = Column("organizationId", String(255), nullable=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)

    path = Column(String(2048), nullable=True)
    action = Column(String(255), nullable=True)
    value = Column(Float, nullable=True)
    item_name = Column("itemName", String(255), nullable=True)
    item_id = Column("itemId", String(255), nullable=True)
    item_category = Column("itemCategory", String(255), nullable=True)
    page_title = Column("pageTitle", String(512), nullable=True)
    plan_id = Column("planId", String(255), nullable=True)
    user_phone = Column("userPhone", String(64), nullable=True)

    ip_address = Column("ipAddress", String(64), nullable=True)
    user_agent = Column("userAgent", Text, nullable=True)
    referrer = Column(String(2048), nullable=True)

    __table_args__ = (
        Index("ix_event_org_category_name", "organizationId", "category", "name"),
    )

    def to_payload(self) -> dict:
        """Event as seen by workflows, webhooks and variable resolution."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "properties": self.properties or {},
            "userId": self.user_id,
            "organizationId": self.organization_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "path": self.path,
            "action": self.action,
            "value": self.value,
            "itemName": self.item_name,
            "itemId": self.item_id,
            "itemCategory": self.item_category,
            "pageTitle": self.page_title,
            "planId": self.plan_id,
            "userPhone": self.user_phone,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "referrer": self.referrer,
        }

    def __repr__(self):
        return f"<Event {self.category}/{self.name} user={self.user_id}>"
