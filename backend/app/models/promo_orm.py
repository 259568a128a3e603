"""
Promo code batches and their single-use codes.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, Boolean, Float, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from backend.app.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class PromoCodeBatchORM(Base):
    __tablename__ = "promo_code_batches"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    discount_type = Column(String(16), nullable=False)  # percentage, fixed
    discount_value = Column(Float, nullable=False)
    min_order_value = Column(Float, nullable=True)
    max_uses = Column(Integer, nullable=True)
    valid_from = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    total_codes = Column(Integer, nullable=False, default=0)
    used_codes = Column(Integer, nullable=False, default=0)

    user_id = Column(String(255), nullable=False, index=True)
    organization_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    codes = relationship(
        "PromoCodeORM",
        back_populates="batch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<PromoCodeBatch {self.name} {self.used_codes}/{self.total_codes}>"


class PromoCodeORM(Base):
    __tablename__ = "promo_codes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(64), nullable=False, unique=True)
    batch_id = Column(String(36), ForeignKey("promo_code_batches.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)  # order within the batch, used by sequential claims
    is_used = Column(Boolean, nullable=False, default=False, index=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    batch = relationship(PromoCodeBatchORM, back_populates="codes")

    def __repr__(self):
        return f"<PromoCode {self.code} used={self.is_used}>"
