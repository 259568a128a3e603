"""
Messaging Provider Adapters.

Thin async REST clients for the third-party providers a credential can point
at. Each adapter is built from a decrypted credential config and never
touches the database. All outbound calls go through a per-provider
circuit breaker.

    slack      -> chat.postMessage / auth.test / conversations.list
    freshchat  -> WhatsApp template messages
    twilio     -> SMS
    unifonic   -> SMS
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from backend.app.core.config import get_settings
from backend.app.core.exceptions import ProviderError, ValidationError
from backend.app.core.resilience import CircuitBreakerOpenException, get_circuit_breaker
from backend.app.schemas.credentials import ConnectionTestResult
from backend.app.schemas.messaging import OutboundMessage, ProviderTemplate, SendResult

logger = logging.getLogger(__name__)

# Channel -> providers that can serve it, in preference order
CHANNEL_PROVIDERS = {
    "whatsapp": ("freshchat",),
    "sms": ("twilio", "unifonic"),
    "slack": ("slack",),
}

REQUIRED_CONFIG = {
    "slack": ("botToken",),
    "freshchat": ("baseUrl", "bearerToken"),
    "twilio": ("accountSid", "authToken"),
    "unifonic": ("appSid",),
}


def get_provider_transport() -> Optional[httpx.AsyncBaseTransport]:
    """
    FastAPI dependency for the outbound HTTP transport.

    Returns None (real network). Tests override it with httpx.MockTransport.
    """
    return None


class ProviderAdapter(ABC):
    """Base class for provider adapters."""

    provider: str = ""

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None):
        missing = [k for k in REQUIRED_CONFIG.get(self.provider, ()) if not config.get(k)]
        if missing:
            raise ValidationError(
                f"{self.provider} credential is missing: {', '.join(missing)}",
                details={"missing": missing},
            )
        self.config = config
        self.transport = transport
        self.timeout = get_settings().provider_timeout_seconds

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout, **kwargs)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send one request through the provider's circuit breaker."""
        breaker = get_circuit_breaker(f"provider:{self.provider}")

        async def _send():
            async with self._client() as client:
                return await client.request(method, url, **kwargs)

        try:
            return await breaker.call(_send)
        except CircuitBreakerOpenException as e:
            raise ProviderError(str(e), provider=self.provider) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.provider} request failed: {e}", provider=self.provider) from e

    @abstractmethod
    async def test_connection(self) -> ConnectionTestResult:
        ...

    @abstractmethod
    async def send(self, message: OutboundMessage) -> SendResult:
        ...

    async def list_templates(self) -> List[ProviderTemplate]:
        return []


def _json(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"data": data}


class SlackAdapter(ProviderAdapter):
    """Slack Web API with a bot token."""

    provider = "slack"
    BASE_URL = "https://slack.com/api"

    FRIENDLY_ERRORS = {
        "channel_not_found": "Channel not found. Check the channel name or ID.",
        "not_in_channel": "The bot is not a member of this channel. Invite it first.",
        "invalid_auth": "Invalid Slack token.",
        "token_revoked": "The Slack token has been revoked.",
        "insufficient_scope": "The Slack token is missing a required scope.",
    }

    async def _call(self, endpoint: str, method: str = "POST", **kwargs) -> Dict[str, Any]:
        response = await self._request(
            method,
            f"{self.BASE_URL}/{endpoint}",
            headers={"Authorization": f"Bearer {self.config['botToken']}"},
            **kwargs,
        )
        return _json(response)

    def _error(self, data: Dict[str, Any]) -> str:
        code = data.get("error", "unknown_error")
        return self.FRIENDLY_ERRORS.get(code, f"Slack API error: {code}")

    async def test_connection(self) -> ConnectionTestResult:
        data = await self._call("auth.test")
        if not data.get("ok"):
            return ConnectionTestResult(success=False, message=self._error(data))
        return ConnectionTestResult(
            success=True,
            message=f"Connected to Slack workspace {data.get('team')}",
            details={"team": data.get("team"), "user": data.get("user"), "teamId": data.get("team_id")},
        )

    async def send(self, message: OutboundMessage) -> SendResult:
        channel = message.channel or message.to or self.config.get("defaultChannel")
        data = await self._call("chat.postMessage", json={"channel": channel, "text": message.text or ""})
        if not data.get("ok"):
            return SendResult(success=False, error=self._error(data), provider=self.provider)
        return SendResult(
            success=True,
            message_id=data.get("ts"),
            status="sent",
            provider=self.provider,
            raw={"channel": data.get("channel")},
        )

    async def list_channels(self) -> List[Dict[str, Any]]:
        data = await self._call(
            "conversations.list",
            method="GET",
            params={"types": "public_channel,private_channel", "exclude_archived": "true", "limit": 200},
        )
        if not data.get("ok"):
            raise ProviderError(self._error(data), provider=self.provider)
        return [
            {"id": c.get("id"), "name": c.get("name"), "is_private": bool(c.get("is_private"))}
            for c in data.get("channels", [])
        ]


class FreshchatWhatsAppAdapter(ProviderAdapter):
    """WhatsApp template messages through Freshchat's outbound API."""

    provider = "freshchat"

    @property
    def base_url(self) -> str:
        return self.config["baseUrl"].rstrip("/")

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config['bearerToken']}",
            "Content-Type": "application/json",
        }

    async def test_connection(self) -> ConnectionTestResult:
        response = await self._request("GET", f"{self.base_url}/accounts/configuration", headers=self.headers)
        if response.status_code >= 400:
            return ConnectionTestResult(
                success=False,
                message=f"Freshchat returned HTTP {response.status_code}",
                details=_json(response),
            )
        return ConnectionTestResult(success=True, message="Connected to Freshchat", details=_json(response))

    def build_payload(self, message: OutboundMessage) -> Dict[str, Any]:
        return {
            "from": {"phone_number": message.from_ or self.config.get("fromPhone", "")},
            "provider": "whatsapp",
            "to": [{"phone_number": message.to}],
            "data": {
                "message_template": {
                    "storage": "none",
                    "template_name": message.template_name,
                    "namespace": message.namespace or self.config.get("namespace", ""),
                    "language": {"policy": "deterministic", "code": message.language or "ar"},
                    "rich_template_data": {
                        "body": {"params": [{"data": p} for p in message.params]},
                    },
                }
            },
        }

    async def send(self, message: OutboundMessage) -> SendResult:
        if not message.template_name:
            raise ValidationError("WhatsApp messages require a template name")
        response = await self._request(
            "POST",
            f"{self.base_url}/outbound-messages/whatsapp",
            headers=self.headers,
            json=self.build_payload(message),
        )
        data = _json(response)
        if response.status_code >= 400:
            return SendResult(
                success=False,
                error=data.get("message") or data.get("error") or f"HTTP {response.status_code}",
                provider=self.provider,
                raw=data,
            )
        return SendResult(
            success=True,
            message_id=data.get("request_id") or data.get("message_id"),
            status=data.get("request_process_status") or data.get("status") or "accepted",
            provider=self.provider,
            raw=data,
        )

    async def list_templates(self) -> List[ProviderTemplate]:
        response = await self._request("GET", f"{self.base_url}/whatsapp/templates", headers=self.headers)
        if response.status_code >= 400:
            raise ProviderError(f"Freshchat returned HTTP {response.status_code}", provider=self.provider)
        data = _json(response)
        templates = []
        for t in data.get("templates", data.get("data", [])):
            language = t.get("language")
            if isinstance(language, dict):
                language = language.get("code")
            templates.append(ProviderTemplate(
                name=t.get("name") or t.get("template_name", ""),
                language=language,
                status=t.get("status"),
            ))
        return templates


class TwilioSMSAdapter(ProviderAdapter):
    provider = "twilio"
    BASE_URL = "https://api.twilio.com/2010-04-01"

    @property
    def auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.config["accountSid"], self.config["authToken"])

    async def test_connection(self) -> ConnectionTestResult:
        sid = self.config["accountSid"]
        response = await self._request("GET", f"{self.BASE_URL}/Accounts/{sid}.json", auth=self.auth)
        data = _json(response)
        if response.status_code >= 400:
            return ConnectionTestResult(success=False, message=data.get("message", f"HTTP {response.status_code}"))
        return ConnectionTestResult(
            success=True,
            message=f"Connected to Twilio account {data.get('friendly_name', sid)}",
            details={"status": data.get("status")},
        )

    async def send(self, message: OutboundMessage) -> SendResult:
        sid = self.config["accountSid"]
        sender = message.from_ or self.config.get("fromNumber")
        if not sender:
            raise ValidationError("Twilio SMS requires a sender number")
        response = await self._request(
            "POST",
            f"{self.BASE_URL}/Accounts/{sid}/Messages.json",
            auth=self.auth,
            data={"To": message.to, "From": sender, "Body": message.text or ""},
        )
        data = _json(response)
        if response.status_code >= 400:
            return SendResult(
                success=False,
                error=data.get("message", f"HTTP {response.status_code}"),
                provider=self.provider,
                raw=data,
            )
        return SendResult(success=True, message_id=data.get("sid"), status=data.get("status"), provider=self.provider)


class UnifonicSMSAdapter(ProviderAdapter):
    provider = "unifonic"
    BASE_URL = "https://el.cloud.unifonic.com/rest"

    async def test_connection(self) -> ConnectionTestResult:
        response = await self._request(
            "POST",
            f"{self.BASE_URL}/SMS/account/getBalance",
            data={"AppSid": self.config["appSid"]},
        )
        data = _json(response)
        if response.status_code >= 400 or str(data.get("success")).lower() != "true":
            return ConnectionTestResult(
                success=False,
                message=data.get("message") or f"Unifonic returned HTTP {response.status_code}",
            )
        return ConnectionTestResult(
            success=True,
            message="Connected to Unifonic",
            details={"balance": (data.get("data") or {}).get("Balance")},
        )

    async def send(self, message: OutboundMessage) -> SendResult:
        response = await self._request(
            "POST",
            f"{self.BASE_URL}/SMS/messages",
            data={
                "AppSid": self.config["appSid"],
                "Recipient": message.to.lstrip("+"),
                "Body": message.text or "",
                "SenderID": message.from_ or self.config.get("senderId", ""),
            },
        )
        data = _json(response)
        if response.status_code >= 400 or str(data.get("success")).lower() != "true":
            return SendResult(
                success=False,
                error=data.get("message") or f"HTTP {response.status_code}",
                provider=self.provider,
                raw=data,
            )
        payload = data.get("data") or {}
        return SendResult(
            success=True,
            message_id=str(payload.get("MessageID", "")) or None,
            status=payload.get("Status", "sent"),
            provider=self.provider,
        )


_ADAPTERS = {
    "slack": SlackAdapter,
    "freshchat": FreshchatWhatsAppAdapter,
    "twilio": TwilioSMSAdapter,
    "unifonic": UnifonicSMSAdapter,
}


def get_adapter(
    provider: str,
    config: Dict[str, Any],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderAdapter:
    """Factory: adapter instance for a provider name and decrypted config."""
    adapter_cls = _ADAPTERS.get(provider)
    if adapter_cls is None:
        raise ValidationError(f"Unknown provider: {provider}")
    return adapter_cls(config, transport=transport)
