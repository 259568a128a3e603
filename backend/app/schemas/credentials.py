"""
Integration credential schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from backend.app.schemas.common import CamelModel

Provider = Literal["slack", "freshchat", "twilio", "unifonic"]


class CredentialCreate(CamelModel):
    provider: Provider
    name: str = Field(..., min_length=1, max_length=255)
    config: Dict[str, Any]
    is_active: bool = True


class CredentialUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class CredentialResponse(CamelModel):
    """Config values are masked; secrets never leave the service."""
    id: str
    provider: str
    name: str
    config: Dict[str, Any]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ConnectionTestResult(CamelModel):
    success: bool
    message: str
    details: Optional[Dict[str, Any]] = None


class IntegrationLogResponse(CamelModel):
    id: str
    credential_id: Optional[str] = None
    operation: str
    status: str
    details: Optional[Any] = None
    error_message: Optional[str] = None
    created_at: datetime


class SlackChannel(CamelModel):
    id: str
    name: str
    is_private: bool = False


class SlackChannelsResponse(CamelModel):
    channels: List[SlackChannel]
