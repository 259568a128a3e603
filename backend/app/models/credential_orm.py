"""
Integration credentials (encrypted provider configs) and their operation log.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from backend.app.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class IntegrationCredentialORM(Base):
    """
    ``config`` is always ``{"encrypted": "<fernet token>"}``; the plaintext map
    only exists in memory after decrypt_config().
    """
    __tablename__ = "integration_credentials"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    organization_id = Column(String(255), nullable=True, index=True)
    provider = Column(String(32), nullable=False, index=True)  # slack, freshchat, twilio, unifonic
    name = Column(String(255), nullable=False)
    config = Column(JSON, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    logs = relationship(
        "IntegrationLogORM",
        back_populates="credential",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<IntegrationCredential {self.provider}:{self.name}>"


class IntegrationLogORM(Base):
    __tablename__ = "integration_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    credential_id = Column(
        String(36), ForeignKey("integration_credentials.id", ondelete="CASCADE"), nullable=True, index=True
    )
    operation = Column(String(32), nullable=False)  # create, update, delete, test, send
    status = Column(String(16), nullable=False)  # success, failed
    details = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    credential = relationship(IntegrationCredentialORM, back_populates="logs")
