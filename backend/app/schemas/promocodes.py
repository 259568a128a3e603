"""
Promo code schemas.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from backend.app.schemas.common import CamelModel


def normalize_code(code: str) -> str:
    return code.strip().upper()


class PromoBatchCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    discount_type: Literal["percentage", "fixed"]
    discount_value: float
    min_order_value: Optional[float] = Field(default=None, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    codes: List[str] = Field(..., min_length=1)

    @field_validator("codes")
    @classmethod
    def _normalize_codes(cls, codes: List[str]) -> List[str]:
        cleaned = [normalize_code(c) for c in codes if c and c.strip()]
        if not cleaned:
            raise ValueError("At least one code is required")
        return cleaned

    @model_validator(mode="after")
    def _check_discount(self):
        if self.discount_type == "percentage" and not (0 <= self.discount_value <= 100):
            raise ValueError("Percentage discount must be between 0 and 100")
        if self.discount_type == "fixed" and self.discount_value < 0:
            raise ValueError("Fixed discount must not be negative")
        if self.valid_from and self.valid_until and self.valid_until <= self.valid_from:
            raise ValueError("validUntil must be after validFrom")
        return self


class PromoBatchUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    min_order_value: Optional[float] = Field(default=None, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    codes: Optional[List[str]] = None

    @field_validator("codes")
    @classmethod
    def _normalize_codes(cls, codes: Optional[List[str]]) -> Optional[List[str]]:
        if codes is None:
            return None
        return [normalize_code(c) for c in codes if c and c.strip()]


class PromoBatchResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    min_order_value: Optional[float] = None
    max_uses: Optional[int] = None
    valid_from: datetime
    valid_until: Optional[datetime] = None
    is_active: bool
    total_codes: int
    used_codes: int
    created_at: datetime
    updated_at: datetime


class PromoSummary(CamelModel):
    total_batches: int
    active_batches: int
    total_codes: int
    used_codes: int
    available_codes: int


class PromoBatchListResponse(CamelModel):
    batches: List[PromoBatchResponse]
    summary: PromoSummary


class PromoCodeResponse(CamelModel):
    id: str
    code: str
    batch_id: str
    is_used: bool
    used_at: Optional[datetime] = None
    used_by: Optional[str] = None
    created_at: datetime


class PromoCodeListResponse(CamelModel):
    codes: List[PromoCodeResponse]
    total: int
    limit: int
    offset: int


class PromoClaimRequest(CamelModel):
    batch_id: Optional[str] = None
    batch_name: Optional[str] = None
    code_type: Literal["random", "sequential", "specific"] = "random"
    specific_code: Optional[str] = None
    user_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_target(self):
        if not self.batch_id and not self.batch_name:
            raise ValueError("batchId or batchName is required")
        if self.code_type == "specific" and not self.specific_code:
            raise ValueError("specificCode is required when codeType is 'specific'")
        return self


class ClaimedPromoCode(CamelModel):
    code: str
    batch_id: str
    batch_name: str
    discount_type: str
    discount_value: float
    min_order_value: Optional[float] = None
