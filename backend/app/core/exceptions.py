"""
Flowless exception hierarchy.

Every error the API reports deliberately derives from FlowlessError and
carries the HTTP status it maps to. Handlers in main.py turn them into
``{"error": ..., "details": ...}`` bodies.

Usage:
    from backend.app.core.exceptions import NotFoundError

    raise NotFoundError("Workflow not found")
"""

from typing import Any, Optional

from backend.app.core.logging import correlation_id_ctx


class FlowlessError(Exception):
    """Base exception for all Flowless application errors."""

    status_code: int = 500

    def __init__(self, message: str, *, details: Any = None, correlation_id: Optional[str] = None):
        self.message = message
        self.details = details
        self.correlation_id = correlation_id or correlation_id_ctx.get()
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(FlowlessError):
    """Input rejected beyond what Pydantic already checks."""

    status_code = 400


class UnsafeQueryError(ValidationError):
    """A segment query failed the read-only guard."""


class NotFoundError(FlowlessError):
    """Requested resource does not exist (or is not visible to the caller)."""

    status_code = 404


class ConflictError(FlowlessError):
    """Request conflicts with current state (duplicates, re-execution)."""

    status_code = 409


class ProviderError(FlowlessError):
    """An upstream provider (Slack, Freshchat, Twilio, ...) failed."""

    status_code = 502

    def __init__(self, message: str, *, provider: Optional[str] = None, **kwargs):
        self.provider = provider
        super().__init__(message, **kwargs)


class WorkflowActionError(FlowlessError):
    """A workflow action could not complete. Recorded on the step, never surfaced raw."""

    def __init__(self, message: str, *, action_type: Optional[str] = None, **kwargs):
        self.action_type = action_type
        super().__init__(message, **kwargs)
