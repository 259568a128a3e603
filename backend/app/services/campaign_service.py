"""
Notification campaigns.

A campaign targets either every push subscriber of the organization
(``targetSegment == "all"``) or the members of a saved segment. Executing it
creates one CampaignDelivery per subscription and sends the push; click and
close beacons update the delivery afterwards.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ConflictError, NotFoundError
from backend.app.core.security import CurrentUser
from backend.app.models.campaign_orm import (
    CampaignDeliveryORM,
    CampaignStatus,
    DeliveryStatus,
    NotificationCampaignORM,
    PushSubscriptionORM,
)
from backend.app.models.segment_orm import UserSegmentORM
from backend.app.schemas.campaigns import CampaignCreate, CampaignUpdate
from backend.app.services import push_service, segment_service

logger = logging.getLogger(__name__)

TARGET_ALL = "all"
_FINISHED = (CampaignStatus.SENT.value, CampaignStatus.COMPLETED.value)


def _scope(stmt, user: CurrentUser):
    if user.organization_id:
        return stmt.where(NotificationCampaignORM.organization_id == user.organization_id)
    return stmt.where(NotificationCampaignORM.user_id == user.id)


async def _resolve_segment(
    session: AsyncSession, user: CurrentUser, target_segment: str, segment_id: Optional[str]
) -> Optional[UserSegmentORM]:
    if segment_id:
        return await segment_service.get_segment(session, user, segment_id)
    if target_segment == TARGET_ALL:
        return None
    return await segment_service.find_segment_by_name(session, user, target_segment)


async def _estimate(session: AsyncSession, user: CurrentUser, segment: Optional[UserSegmentORM], target: str) -> int:
    if segment is not None:
        return segment.user_count
    if target != TARGET_ALL:
        return 0
    stmt = select(func.count(func.distinct(PushSubscriptionORM.user_id))).where(
        PushSubscriptionORM.is_active.is_(True),
        PushSubscriptionORM.organization_id == user.organization_id,
    )
    if not user.organization_id:
        stmt = stmt.where(PushSubscriptionORM.user_id == user.id)
    return (await session.execute(stmt)).scalar_one()


async def create_campaign(session: AsyncSession, user: CurrentUser, data: CampaignCreate) -> NotificationCampaignORM:
    segment = await _resolve_segment(session, user, data.target_segment, data.segment_id)
    campaign = NotificationCampaignORM(
        name=data.name,
        title=data.title,
        message=data.message,
        target_segment=data.target_segment,
        segment_id=segment.id if segment else None,
        estimated_users=await _estimate(session, user, segment, data.target_segment),
        offer_code=data.offer_code,
        url=data.url,
        status=CampaignStatus.SCHEDULED.value if data.scheduled_at else CampaignStatus.DRAFT.value,
        scheduled_at=data.scheduled_at,
        user_id=user.id,
        organization_id=user.organization_id,
    )
    session.add(campaign)
    await session.flush()
    logger.info(f"Campaign '{campaign.name}' created for '{campaign.target_segment}' (~{campaign.estimated_users} users)")
    return campaign


async def list_campaigns(session: AsyncSession, user: CurrentUser) -> List[NotificationCampaignORM]:
    stmt = _scope(select(NotificationCampaignORM), user).order_by(NotificationCampaignORM.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def get_campaign(session: AsyncSession, user: CurrentUser, campaign_id: str) -> NotificationCampaignORM:
    stmt = _scope(select(NotificationCampaignORM).where(NotificationCampaignORM.id == campaign_id), user)
    campaign = (await session.execute(stmt)).scalar_one_or_none()
    if campaign is None:
        raise NotFoundError("Campaign not found")
    return campaign


async def update_campaign(
    session: AsyncSession, user: CurrentUser, campaign_id: str, data: CampaignUpdate
) -> NotificationCampaignORM:
    campaign = await get_campaign(session, user, campaign_id)
    if campaign.status in _FINISHED:
        raise ConflictError(f"Campaign is already {campaign.status} and cannot be edited")

    fields = data.model_dump(exclude_unset=True)
    for key, value in fields.items():
        setattr(campaign, key, value)
    if "target_segment" in fields or "segment_id" in fields:
        segment = await _resolve_segment(session, user, campaign.target_segment, fields.get("segment_id"))
        campaign.segment_id = segment.id if segment else None
        campaign.estimated_users = await _estimate(session, user, segment, campaign.target_segment)
    await session.flush()
    return campaign


async def delete_campaign(session: AsyncSession, user: CurrentUser, campaign_id: str) -> None:
    campaign = await get_campaign(session, user, campaign_id)
    await session.execute(delete(CampaignDeliveryORM).where(CampaignDeliveryORM.campaign_id == campaign.id))
    await session.delete(campaign)
    await session.flush()


async def _target_subscriptions(
    session: AsyncSession, user: CurrentUser, campaign: NotificationCampaignORM
) -> List[PushSubscriptionORM]:
    if campaign.target_segment == TARGET_ALL and not campaign.segment_id:
        return await push_service.active_subscriptions(
            session, organization_id=campaign.organization_id, owner_id=campaign.user_id
        )
    segment = await _resolve_segment(session, user, campaign.target_segment, campaign.segment_id)
    if segment is None:
        raise NotFoundError(f"Segment '{campaign.target_segment}' not found")
    user_ids = await segment_service.segment_user_ids(session, segment)
    return await push_service.active_subscriptions(
        session, user_ids=user_ids, organization_id=campaign.organization_id, owner_id=campaign.user_id
    )


async def execute_campaign(
    session: AsyncSession,
    user: CurrentUser,
    campaign_id: str,
    sender: push_service.PushSender,
) -> Dict[str, Any]:
    campaign = await get_campaign(session, user, campaign_id)
    if campaign.status in _FINISHED:
        raise ConflictError(f"Campaign has already been {campaign.status}")

    subscriptions = await _target_subscriptions(session, user, campaign)
    payload = push_service.build_payload(
        title=campaign.title or campaign.name,
        body=campaign.message,
        url=campaign.url,
        campaignId=campaign.id,
        offerCode=campaign.offer_code,
    )
    summary = await push_service.send_to_subscriptions(sender, subscriptions, payload)

    now = datetime.now(timezone.utc)
    for subscription, error in summary["results"]:
        session.add(CampaignDeliveryORM(
            campaign_id=campaign.id,
            user_id=subscription.user_id,
            push_endpoint=subscription.endpoint,
            status=DeliveryStatus.FAILED.value if error else DeliveryStatus.SENT.value,
            error_message=error,
            sent_at=None if error else now,
        ))

    campaign.sent_count = summary["sent"]
    campaign.status = CampaignStatus.SENT.value
    campaign.sent_at = now
    await session.flush()

    logger.info(
        f"Campaign '{campaign.name}' executed: {summary['sent']} sent, {summary['failed']} failed",
        extra={"extra_data": {"campaign_id": campaign.id}},
    )
    return {
        "success": True,
        "campaign_id": campaign.id,
        "targeted_users": len({s.user_id for s in subscriptions}),
        "sent": summary["sent"],
        "failed": summary["failed"],
        "errors": summary["errors"],
    }


async def campaign_analytics(session: AsyncSession, user: CurrentUser, campaign_id: str) -> Dict[str, Any]:
    campaign = await get_campaign(session, user, campaign_id)
    rows = await session.execute(
        select(CampaignDeliveryORM.status, func.count())
        .where(CampaignDeliveryORM.campaign_id == campaign.id)
        .group_by(CampaignDeliveryORM.status)
    )
    by_status = {s.value: 0 for s in DeliveryStatus}
    by_status.update({status: count for status, count in rows.all()})

    clicks = (await session.execute(
        select(func.count()).where(
            CampaignDeliveryORM.campaign_id == campaign.id, CampaignDeliveryORM.clicked_at.is_not(None)
        )
    )).scalar_one()
    closes = (await session.execute(
        select(func.count()).where(
            CampaignDeliveryORM.campaign_id == campaign.id, CampaignDeliveryORM.closed_at.is_not(None)
        )
    )).scalar_one()

    delivered = by_status["sent"] + by_status["clicked"] + by_status["closed"]
    return {
        "campaign_id": campaign.id,
        "status": campaign.status,
        "total_deliveries": sum(by_status.values()),
        "by_status": by_status,
        "click_rate": round(clicks / delivered * 100, 2) if delivered else 0.0,
        "close_rate": round(closes / delivered * 100, 2) if delivered else 0.0,
    }


async def track_delivery(session: AsyncSession, campaign_id: str, user_id: str, action: str) -> CampaignDeliveryORM:
    """Record a click or close beacon on the user's delivery."""
    stmt = (
        select(CampaignDeliveryORM)
        .where(CampaignDeliveryORM.campaign_id == campaign_id, CampaignDeliveryORM.user_id == user_id)
        .order_by(CampaignDeliveryORM.created_at.desc())
        .limit(1)
    )
    delivery = (await session.execute(stmt)).scalar_one_or_none()
    if delivery is None:
        raise NotFoundError("Delivery not found")

    now = datetime.now(timezone.utc)
    if action == "click":
        delivery.clicked_at = delivery.clicked_at or now
        delivery.status = DeliveryStatus.CLICKED.value
    else:
        delivery.closed_at = delivery.closed_at or now
        if delivery.status != DeliveryStatus.CLICKED.value:
            delivery.status = DeliveryStatus.CLOSED.value
    await session.flush()
    return delivery
