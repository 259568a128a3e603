"""
Workflow action handlers.

One coroutine per action type, registered in ACTION_HANDLERS. A handler gets
the validated action config and the ActionContext, returns a JSON-safe
output dict, and raises a FlowlessError subclass when the action cannot
complete. The engine records either outcome on the step.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import WorkflowActionError
from backend.app.models.campaign_orm import PushSubscriptionORM
from backend.app.models.event_orm import EventORM
from backend.app.models.promo_orm import PromoCodeORM
from backend.app.schemas.messaging import OutboundMessage
from backend.app.services import promo_service, push_service
from backend.app.services.condition_evaluator import evaluate_condition
from backend.app.services.expression_sandbox import apply_transform, run_script
from backend.app.services.messaging_service import MessagingService
from backend.app.services.variable_resolver import PLACEHOLDER_PATTERN, UNRESOLVED, VariableResolver

logger = logging.getLogger(__name__)

ACTION_HANDLERS: Dict[str, Callable[..., Awaitable[Dict[str, Any]]]] = {}

# Actions that touch nothing outside the execution; safe for node tests
SIDE_EFFECT_FREE = ("condition", "transform", "delay", "script")


@dataclass
class ActionContext:
    """Everything an action may read or write while a workflow runs."""
    session: Optional[AsyncSession]
    event: Dict[str, Any]
    variables: Dict[str, Any] = field(default_factory=dict)
    organization_id: Optional[str] = None
    workflow_user_id: Optional[str] = None
    previous: Any = None
    transport: Optional[httpx.AsyncBaseTransport] = None
    push_sender: Optional[push_service.PushSender] = None
    resolver: VariableResolver = None

    def __post_init__(self):
        if self.resolver is None:
            self.resolver = VariableResolver(self.event, self.variables)

    def set_output(self, name: Optional[str], value: Any) -> None:
        if name:
            self.variables[name] = value

    def require_org(self, action_type: str) -> str:
        org_id = self.event.get("organizationId") or self.organization_id
        if not org_id:
            raise WorkflowActionError(
                "No organization id on the event or the workflow", action_type=action_type
            )
        return org_id


def action_handler(action_type: str):
    def _register(func):
        ACTION_HANDLERS[action_type] = func
        return func
    return _register


def _resolved_phone(ctx: ActionContext, template: str, action_type: str) -> str:
    phone = ctx.resolver.render(template or "").strip()
    if not phone or PLACEHOLDER_PATTERN.search(phone):
        raise WorkflowActionError(f"Recipient phone could not be resolved from '{template}'", action_type=action_type)
    return phone


@action_handler("push_notification")
async def push_notification(action, ctx: ActionContext) -> Dict[str, Any]:
    render = ctx.resolver.render
    payload = push_service.build_payload(
        title=render(action.title),
        body=render(action.body),
        url=render(action.url) if action.url else None,
        icon=render(action.icon) if action.icon else None,
    )

    if action.target_users == "all":
        user_ids = None
    elif action.target_users == "specific":
        user_ids = [render(u) for u in action.user_ids]
    else:
        user_id = ctx.event.get("userId")
        if not user_id:
            raise WorkflowActionError("Event has no userId to notify", action_type=action.type)
        user_ids = [user_id]
    subs = await push_service.active_subscriptions(
        ctx.session,
        user_ids=user_ids,
        organization_id=ctx.organization_id,
        owner_id=ctx.workflow_user_id,
    )

    sender = ctx.push_sender or push_service.get_push_sender()
    summary = await push_service.send_to_subscriptions(sender, subs, payload)
    return {
        "targetUsers": action.target_users,
        "subscriptions": len(subs),
        "sent": summary["sent"],
        "failed": summary["failed"],
        "errors": summary["errors"],
        "payload": payload,
    }


@action_handler("whatsapp_message")
async def whatsapp_message(action, ctx: ActionContext) -> Dict[str, Any]:
    org_id = ctx.require_org(action.type)
    message = OutboundMessage(
        to=_resolved_phone(ctx, action.to_phone, action.type),
        from_=ctx.resolver.render(action.from_phone) if action.from_phone else None,
        template_name=ctx.resolver.render(action.template_name),
        namespace=action.namespace,
        language=action.language,
        params=[ctx.resolver.render(p) for p in action.params],
    )
    result = await MessagingService(ctx.session, ctx.transport).send(org_id, "whatsapp", message)
    return {"to": message.to, "messageId": result.message_id, "status": result.status, "provider": result.provider}


@action_handler("sms_message")
async def sms_message(action, ctx: ActionContext) -> Dict[str, Any]:
    org_id = ctx.require_org(action.type)
    message = OutboundMessage(
        to=_resolved_phone(ctx, action.to_phone, action.type),
        text=ctx.resolver.render(action.message),
        from_=ctx.resolver.render(action.from_phone) if action.from_phone else None,
        template_name=action.template_name,
    )
    result = await MessagingService(ctx.session, ctx.transport).send(org_id, "sms", message)
    return {"to": message.to, "messageId": result.message_id, "status": result.status, "provider": result.provider}


@action_handler("slack_message")
async def slack_message(action, ctx: ActionContext) -> Dict[str, Any]:
    org_id = ctx.event.get("organizationId") or ctx.organization_id
    channel = ctx.resolver.render(action.channel)
    message = OutboundMessage(to=channel, channel=channel, text=ctx.resolver.render(action.text))
    result = await MessagingService(ctx.session, ctx.transport).send(
        org_id, "slack", message, credential_id=action.credential_id
    )
    return {"channel": channel, "messageId": result.message_id, "status": result.status}


@action_handler("promo_code")
async def promo_code(action, ctx: ActionContext) -> Dict[str, Any]:
    claimed = await promo_service.claim_code(
        ctx.session,
        batch_id=ctx.resolver.render(action.batch_id),
        code_type=action.code_type,
        specific_code=ctx.resolver.render(action.specific_code) if action.specific_code else None,
        claimed_by=ctx.event.get("userId"),
        organization_id=ctx.organization_id,
        owner_id=ctx.workflow_user_id,
    )
    name = action.output_variable
    ctx.set_output(name, claimed.code)
    ctx.set_output(f"{name}_discountValue", claimed.discount_value)
    ctx.set_output(f"{name}_discountType", claimed.discount_type)
    ctx.set_output(f"{name}_batchName", claimed.batch_name)
    ctx.set_output(f"{name}_minOrderValue", claimed.min_order_value)
    return claimed.model_dump(by_alias=True)


_UNIT_SECONDS = {"seconds": 1, "minutes": 60, "hours": 3600, "days": 86400}


@action_handler("delay")
async def delay(action, ctx: ActionContext) -> Dict[str, Any]:
    # Intent only; execution continues immediately
    seconds = action.duration * _UNIT_SECONDS[action.unit]
    return {"duration": action.duration, "unit": action.unit, "seconds": seconds, "scheduled": False}


# table name -> (model, allowed operations, organization column key)
DATABASE_TABLES = {
    "Event": (EventORM, ("select", "count", "insert"), "organizationId"),
    "PromoCode": (PromoCodeORM, ("select", "count"), None),
    "PushSubscription": (PushSubscriptionORM, ("select", "count"), "organization_id"),
}


def _row_to_dict(row) -> Dict[str, Any]:
    return {
        k: (v.isoformat() if isinstance(v, datetime) else v)
        for k, v in row._mapping.items()
    }


@action_handler("database")
async def database(action, ctx: ActionContext) -> Dict[str, Any]:
    entry = DATABASE_TABLES.get(action.table)
    if entry is None:
        raise WorkflowActionError(f"Table '{action.table}' is not allowed", action_type=action.type)
    model, operations, org_column = entry
    if action.operation not in operations:
        raise WorkflowActionError(
            f"Operation '{action.operation}' is not allowed on '{action.table}'", action_type=action.type
        )
    table = model.__table__

    def _column(name: str):
        if name not in table.c:
            raise WorkflowActionError(f"Unknown column '{name}' on '{action.table}'", action_type=action.type)
        return table.c[name]

    org_id = ctx.event.get("organizationId") or ctx.organization_id

    if action.operation == "insert":
        values = ctx.resolver.render_structure(action.data)
        if "id" in values:
            raise WorkflowActionError("Insert may not set 'id'", action_type=action.type)
        for key in values:
            _column(key)
        if not values.get("name"):
            raise WorkflowActionError("Insert into 'Event' requires a name", action_type=action.type)
        values.setdefault("id", str(uuid.uuid4()))
        values.setdefault("category", "workflow")
        values.setdefault("properties", {})
        values.setdefault("timestamp", datetime.now(timezone.utc))
        if org_column and org_id:
            values[org_column] = org_id
        await ctx.session.execute(insert(table).values(**values))
        result = {"inserted": values["id"], "table": action.table}
        ctx.set_output(action.output_variable, values["id"])
        return result

    conditions = [_column(k) == v for k, v in ctx.resolver.render_structure(action.filters).items()]
    if org_column and org_id:
        conditions.append(table.c[org_column] == org_id)

    if action.operation == "count":
        count = (await ctx.session.execute(select(func.count()).select_from(table).where(*conditions))).scalar_one()
        ctx.set_output(action.output_variable, count)
        return {"count": count, "table": action.table}

    rows = (await ctx.session.execute(select(table).where(*conditions).limit(action.limit))).all()
    records = [_row_to_dict(r) for r in rows]
    ctx.set_output(action.output_variable, records)
    return {"rows": records, "count": len(records), "table": action.table}


@action_handler("transform")
async def transform(action, ctx: ActionContext) -> Dict[str, Any]:
    items = ctx.resolver.resolve_value(action.input)
    if items is UNRESOLVED:
        raise WorkflowActionError(f"Transform input '{action.input}' could not be resolved", action_type=action.type)
    result = apply_transform(
        action.transform_type,
        items,
        action.expression,
        initial_value=action.initial_value,
        descending=action.descending,
        extra_names={"event": ctx.event, "workflow": ctx.variables},
    )
    ctx.set_output(action.output_variable, result)
    return {action.output_field or "result": result}


@action_handler("condition")
async def condition(action, ctx: ActionContext) -> Dict[str, Any]:
    outcome = evaluate_condition(
        ctx.resolver,
        condition_type=action.condition_type,
        left_operand=action.left_operand,
        right_operand=action.right_operand,
        expression=action.condition,
    )
    ctx.set_output(action.output_variable, outcome["passed"])
    return outcome


@action_handler("script")
async def script(action, ctx: ActionContext) -> Dict[str, Any]:
    result = run_script(action.script, ctx.event, ctx.variables, ctx.previous)
    ctx.set_output(action.output_variable, result)
    return {"result": result}


async def run_action(action, ctx: ActionContext) -> Dict[str, Any]:
    handler = ACTION_HANDLERS.get(action.type)
    if handler is None:
        raise WorkflowActionError(f"Unsupported action type: {action.type}", action_type=action.type)
    return await handler(action, ctx)
