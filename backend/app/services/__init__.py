"""Services package."""

from backend.app.services.messaging_service import MessagingService
from backend.app.services.workflow_engine import WorkflowEngine

__all__ = [
    "MessagingService",
    "WorkflowEngine",
]
