"""Models package."""

from backend.app.models.event_orm import EventORM
from backend.app.models.workflow_orm import (
    WorkflowORM,
    WorkflowExecutionORM,
    WorkflowStepORM,
    ExecutionStatus,
    StepStatus,
)
from backend.app.models.promo_orm import PromoCodeBatchORM, PromoCodeORM
from backend.app.models.credential_orm import IntegrationCredentialORM, IntegrationLogORM
from backend.app.models.segment_orm import UserSegmentORM
from backend.app.models.campaign_orm import (
    NotificationCampaignORM,
    CampaignDeliveryORM,
    PushSubscriptionORM,
    CampaignStatus,
    DeliveryStatus,
)
from backend.app.models.webhook_orm import WebhookORM

__all__ = [
    "EventORM",
    "WorkflowORM",
    "WorkflowExecutionORM",
    "WorkflowStepORM",
    "ExecutionStatus",
    "StepStatus",
    "PromoCodeBatchORM",
    "PromoCodeORM",
    "IntegrationCredentialORM",
    "IntegrationLogORM",
    "UserSegmentORM",
    "NotificationCampaignORM",
    "CampaignDeliveryORM",
    "PushSubscriptionORM",
    "CampaignStatus",
    "DeliveryStatus",
    "WebhookORM",
]
