"""
Workflow Execution Engine.

Given a tracked event, finds the active workflows whose trigger matches it
and runs each one's actions in order. Every run leaves a WorkflowExecution
with one step row per action, whatever the outcome:

- an action that raises ends the execution as ``failed``; earlier side
  effects stay in place and the remaining actions are not attempted
- a condition that evaluates false marks the remaining actions ``skipped``
  and the execution ``completed``
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import FlowlessError
from backend.app.models.workflow_orm import (
    ExecutionStatus,
    StepStatus,
    WorkflowExecutionORM,
    WorkflowORM,
    WorkflowStepORM,
)
from backend.app.schemas.workflows import action_adapter
from backend.app.services.push_service import PushSender
from backend.app.services.trigger_matching import trigger_matches
from backend.app.services.workflow_actions import ActionContext, run_action

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _step_name(raw: Dict[str, Any], order: int) -> str:
    return raw.get("name") or f"{raw.get('type', 'action')} #{order + 1}"


class WorkflowEngine:
    """Runs workflows for one database session."""

    def __init__(
        self,
        session: AsyncSession,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        push_sender: Optional[PushSender] = None,
    ):
        self.session = session
        self.transport = transport
        self.push_sender = push_sender

    async def find_matching_workflows(self, event: Dict[str, Any]) -> List[WorkflowORM]:
        """
        Active workflows whose trigger matches: the event's organization, or
        for an event without one, the workflows its user owns outside any
        organization.
        """
        stmt = select(WorkflowORM).where(WorkflowORM.is_active.is_(True))
        org_id = event.get("organizationId")
        if org_id:
            stmt = stmt.where(WorkflowORM.organization_id == org_id)
        elif event.get("userId"):
            stmt = stmt.where(WorkflowORM.organization_id.is_(None), WorkflowORM.user_id == event["userId"])
        else:
            return []
        workflows = (await self.session.execute(stmt.order_by(WorkflowORM.created_at))).scalars().all()
        return [w for w in workflows if trigger_matches(w.trigger, event)]

    async def trigger_workflows(self, event: Dict[str, Any]) -> List[WorkflowExecutionORM]:
        """Execute every matching workflow sequentially."""
        workflows = await self.find_matching_workflows(event)
        if workflows:
            logger.info(
                f"Event {event.get('category')}/{event.get('name')} matched {len(workflows)} workflow(s)",
                extra={"extra_data": {"event_id": event.get("id"), "workflow_ids": [w.id for w in workflows]}},
            )
        executions = []
        for workflow in workflows:
            executions.append(await self.execute_workflow(workflow, event))
        return executions

    def _skip_remaining(self, execution: WorkflowExecutionORM, actions: List[Dict[str, Any]], start: int) -> None:
        now = datetime.now(timezone.utc)
        for order in range(start, len(actions)):
            raw = actions[order]
            execution.steps.append(WorkflowStepORM(
                step_order=order,
                step_type="action",
                step_name=_step_name(raw, order),
                action_type=raw.get("type"),
                status=StepStatus.SKIPPED.value,
                input_data=raw,
                output_data={"reason": "condition not met"},
                started_at=now,
                ended_at=now,
                duration_ms=0,
            ))

    async def execute_workflow(self, workflow: WorkflowORM, event: Dict[str, Any]) -> WorkflowExecutionORM:
        run_start = time.perf_counter()
        execution = WorkflowExecutionORM(
            workflow_id=workflow.id,
            status=ExecutionStatus.RUNNING.value,
            trigger_event=_json_safe(event),
            started_at=datetime.now(timezone.utc),
            steps=[],
        )
        self.session.add(execution)
        await self.session.flush()

        ctx = ActionContext(
            session=self.session,
            event=event,
            variables={},
            organization_id=workflow.organization_id,
            workflow_user_id=workflow.user_id,
            transport=self.transport,
            push_sender=self.push_sender,
        )
        actions = list(workflow.actions or [])
        step_results = []
        failed = None

        for order, raw in enumerate(actions):
            step = WorkflowStepORM(
                step_order=order,
                step_type="action",
                step_name=_step_name(raw, order),
                action_type=raw.get("type"),
                status=StepStatus.RUNNING.value,
                input_data=raw,
                started_at=datetime.now(timezone.utc),
            )
            execution.steps.append(step)
            await self.session.flush()

            ctx.resolver.unresolved = []
            step_start = time.perf_counter()
            try:
                action = action_adapter.validate_python(raw)
                # A failing action only undoes its own writes
                async with self.session.begin_nested():
                    output = await run_action(action, ctx)
            except PydanticValidationError as e:
                failed = f"Invalid action config: {e.errors()[0].get('msg')}"
            except FlowlessError as e:
                failed = e.message
            except Exception as e:
                logger.error(f"Workflow {workflow.id} step {order} raised: {e}", exc_info=True)
                failed = f"Unexpected {type(e).__name__} in {raw.get('type') or 'action'}"

            step.ended_at = datetime.now(timezone.utc)
            step.duration_ms = _elapsed_ms(step_start)

            if failed is not None:
                step.status = StepStatus.FAILED.value
                step.error_message = failed
                if ctx.resolver.unresolved:
                    step.output_data = {"unresolved": list(ctx.resolver.unresolved)}
                step_results.append({"step": order, "type": raw.get("type"), "status": step.status, "error": failed})
                execution.error = f"Step {order + 1} ({step.step_name}) failed: {failed}"
                break

            if ctx.resolver.unresolved:
                output = {**output, "unresolved": list(ctx.resolver.unresolved)}
            step.output_data = _json_safe(output)
            step.status = StepStatus.COMPLETED.value
            step_results.append({"step": order, "type": raw.get("type"), "status": step.status})
            ctx.previous = step.output_data

            if action.type == "condition" and not output.get("passed"):
                self._skip_remaining(execution, actions, order + 1)
                break

        execution.status = ExecutionStatus.FAILED.value if failed is not None else ExecutionStatus.COMPLETED.value
        execution.completed_at = datetime.now(timezone.utc)
        execution.total_duration_ms = _elapsed_ms(run_start)
        execution.results = _json_safe({"steps": step_results, "variables": ctx.variables})
        await self.session.flush()

        log = logger.warning if failed is not None else logger.info
        log(
            f"Workflow '{workflow.name}' {execution.status} in {execution.total_duration_ms}ms",
            extra={"extra_data": {"workflow_id": workflow.id, "execution_id": execution.id, "error": execution.error}},
        )
        return execution
