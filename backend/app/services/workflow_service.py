"""
Workflow Definition Store plus execution history, cleanup and node tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.core.config import get_settings
from backend.app.core.exceptions import FlowlessError, NotFoundError, ValidationError
from backend.app.core.security import CurrentUser
from backend.app.models.workflow_orm import (
    ExecutionStatus,
    StepStatus,
    WorkflowExecutionORM,
    WorkflowORM,
    WorkflowStepORM,
)
from backend.app.schemas.workflows import NodeTestResponse, WorkflowCreate, WorkflowUpdate
from backend.app.services.push_service import PushSender
from backend.app.services.workflow_actions import SIDE_EFFECT_FREE, ActionContext, run_action
from backend.app.services.workflow_engine import WorkflowEngine, _json_safe

logger = logging.getLogger(__name__)

ORPHANED_STEP_MESSAGE = "Execution completed but step was left in running status"
STALE_EXECUTION_MESSAGE = "Execution timed out without completing"


def _scope(stmt, user: CurrentUser):
    if user.organization_id:
        return stmt.where(WorkflowORM.organization_id == user.organization_id)
    return stmt.where(WorkflowORM.user_id == user.id)


async def create_workflow(session: AsyncSession, user: CurrentUser, data: WorkflowCreate) -> WorkflowORM:
    workflow = WorkflowORM(
        name=data.name,
        description=data.description,
        trigger=data.trigger.model_dump(by_alias=True, exclude_none=True),
        actions=data.stored_actions(),
        is_active=data.is_active,
        user_id=user.id,
        organization_id=user.organization_id,
    )
    session.add(workflow)
    await session.flush()
    logger.info(f"Workflow '{workflow.name}' created with {len(workflow.actions)} action(s) (id={workflow.id})")
    return workflow


async def list_workflows(session: AsyncSession, user: CurrentUser) -> List[WorkflowORM]:
    stmt = _scope(select(WorkflowORM), user).order_by(WorkflowORM.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def get_workflow(session: AsyncSession, user: CurrentUser, workflow_id: str) -> WorkflowORM:
    stmt = _scope(select(WorkflowORM).where(WorkflowORM.id == workflow_id), user)
    workflow = (await session.execute(stmt)).scalar_one_or_none()
    if workflow is None:
        raise NotFoundError("Workflow not found")
    return workflow


async def update_workflow(
    session: AsyncSession, user: CurrentUser, workflow_id: str, data: WorkflowUpdate
) -> WorkflowORM:
    """Full replace of the definition."""
    workflow = await get_workflow(session, user, workflow_id)
    workflow.name = data.name
    workflow.description = data.description
    workflow.trigger = data.trigger.model_dump(by_alias=True, exclude_none=True)
    workflow.actions = data.stored_actions()
    workflow.is_active = data.is_active
    workflow.updated_at = datetime.now(timezone.utc)
    await session.flush()
    return workflow


async def delete_workflow(session: AsyncSession, user: CurrentUser, workflow_id: str) -> None:
    workflow = await get_workflow(session, user, workflow_id)
    execution_ids = select(WorkflowExecutionORM.id).where(WorkflowExecutionORM.workflow_id == workflow.id)
    await session.execute(delete(WorkflowStepORM).where(WorkflowStepORM.execution_id.in_(execution_ids)))
    await session.execute(delete(WorkflowExecutionORM).where(WorkflowExecutionORM.workflow_id == workflow.id))
    await session.delete(workflow)
    await session.flush()


async def load_execution(session: AsyncSession, execution_id: str) -> WorkflowExecutionORM:
    stmt = (
        select(WorkflowExecutionORM)
        .options(selectinload(WorkflowExecutionORM.steps))
        .where(WorkflowExecutionORM.id == execution_id)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one()


async def list_executions(
    session: AsyncSession,
    user: CurrentUser,
    workflow_id: str,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[List[WorkflowExecutionORM], int]:
    workflow = await get_workflow(session, user, workflow_id)
    total = (
        await session.execute(
            select(func.count()).select_from(WorkflowExecutionORM).where(WorkflowExecutionORM.workflow_id == workflow.id)
        )
    ).scalar_one()
    stmt = (
        select(WorkflowExecutionORM)
        .options(selectinload(WorkflowExecutionORM.steps))
        .where(WorkflowExecutionORM.workflow_id == workflow.id)
        .order_by(WorkflowExecutionORM.started_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list((await session.execute(stmt)).scalars().all()), total


async def run_workflow_test(
    session: AsyncSession,
    user: CurrentUser,
    workflow_id: str,
    test_data: Dict[str, Any],
    transport: Optional[httpx.AsyncBaseTransport] = None,
    push_sender: Optional[PushSender] = None,
) -> WorkflowExecutionORM:
    """
    Run one workflow against supplied event data, trigger match not required.
    Actions run for real.
    """
    workflow = await get_workflow(session, user, workflow_id)
    event = {
        "id": "test-event",
        "name": (workflow.trigger or {}).get("filters", {}).get("eventName") or "test",
        "category": (workflow.trigger or {}).get("eventType"),
        "properties": {},
        "userId": user.id,
        "organizationId": workflow.organization_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **(test_data or {}),
    }
    engine = WorkflowEngine(session, transport=transport, push_sender=push_sender)
    return await engine.execute_workflow(workflow, event)


async def cleanup_orphaned_steps(session: AsyncSession, stale_after_minutes: Optional[int] = None) -> Dict[str, int]:
    """
    Fail steps still ``running`` under a finished execution, and executions
    that have been ``running`` longer than the stale threshold.
    """
    if stale_after_minutes is None:
        stale_after_minutes = get_settings().execution_stale_after_minutes
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=stale_after_minutes)

    stale_ids = list((await session.execute(
        select(WorkflowExecutionORM.id).where(
            WorkflowExecutionORM.status == ExecutionStatus.RUNNING.value,
            WorkflowExecutionORM.started_at < cutoff,
        )
    )).scalars().all())
    if stale_ids:
        await session.execute(
            update(WorkflowExecutionORM)
            .where(WorkflowExecutionORM.id.in_(stale_ids))
            .values(status=ExecutionStatus.FAILED.value, error=STALE_EXECUTION_MESSAGE, completed_at=now)
            .execution_options(synchronize_session=False)
        )

    finished = select(WorkflowExecutionORM.id).where(
        WorkflowExecutionORM.status.in_([ExecutionStatus.COMPLETED.value, ExecutionStatus.FAILED.value])
    )
    orphan_ids = list((await session.execute(
        select(WorkflowStepORM.id).where(
            WorkflowStepORM.status == StepStatus.RUNNING.value,
            WorkflowStepORM.execution_id.in_(finished),
        )
    )).scalars().all())
    if orphan_ids:
        await session.execute(
            update(WorkflowStepORM)
            .where(WorkflowStepORM.id.in_(orphan_ids))
            .values(status=StepStatus.FAILED.value, error_message=ORPHANED_STEP_MESSAGE, ended_at=now)
            .execution_options(synchronize_session=False)
        )
    await session.flush()

    result = {"steps_cleaned": len(orphan_ids), "executions_failed": len(stale_ids)}
    if result["steps_cleaned"] or result["executions_failed"]:
        logger.info(f"Execution cleanup: {result}")
    return result


async def run_node_test(
    action,
    test_data: Optional[Dict[str, Any]] = None,
    variables: Optional[Dict[str, Any]] = None,
) -> NodeTestResponse:
    """Run a single side-effect-free action against sample data."""
    if action.type not in SIDE_EFFECT_FREE:
        raise ValidationError(
            f"Node test is only available for {', '.join(SIDE_EFFECT_FREE)} actions",
            details={"actionType": action.type},
        )
    ctx = ActionContext(session=None, event=dict(test_data or {}), variables=dict(variables or {}))
    try:
        output = await run_action(action, ctx)
    except FlowlessError as e:
        return NodeTestResponse(success=False, error=e.message, unresolved=list(ctx.resolver.unresolved))
    return NodeTestResponse(success=True, output=_json_safe(output), unresolved=list(ctx.resolver.unresolved))
