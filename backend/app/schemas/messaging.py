"""
Provider adapter request/response shapes and the test-send endpoints.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from backend.app.schemas.common import CamelModel


class OutboundMessage(CamelModel):
    """Channel-neutral message handed to a provider adapter."""
    to: str
    text: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    template_name: Optional[str] = None
    namespace: Optional[str] = None
    language: Optional[str] = None
    params: List[str] = Field(default_factory=list)
    channel: Optional[str] = None


class SendResult(CamelModel):
    success: bool
    message_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    provider: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None


class ProviderTemplate(CamelModel):
    name: str
    language: Optional[str] = None
    status: Optional[str] = None
    body: Optional[str] = None


class WhatsAppTestRequest(CamelModel):
    to_phone: str = Field(..., min_length=3)
    template_name: str = Field(..., min_length=1)
    namespace: Optional[str] = None
    language: str = "ar"
    params: List[str] = Field(default_factory=list)
    credential_id: Optional[str] = None


class SmsTestRequest(CamelModel):
    to_phone: str = Field(..., min_length=3)
    message: str = Field(..., min_length=1)
    from_phone: Optional[str] = None
    credential_id: Optional[str] = None


class SlackTestRequest(CamelModel):
    credential_id: str
    channel: str
    text: str = "Test message"
