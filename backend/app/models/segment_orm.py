"""
User segments defined by read-only SQL.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime, JSON, Text

from backend.app.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class UserSegmentORM(Base):
    __tablename__ = "user_segments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    query = Column(Text, nullable=False)
    # Snapshot taken at creation; not refreshed when new events arrive
    user_count = Column(Integer, nullable=False, default=0)
    criteria = Column(JSON, nullable=True)

    user_id = Column(String(255), nullable=False, index=True)
    organization_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<UserSegment {self.name} users={self.user_count}>"
