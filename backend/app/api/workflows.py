"""
Workflow API Router.

Definition CRUD, manual test runs, execution history and single-node tests.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.database import get_db
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.schemas.common import DeleteResponse
from backend.app.schemas.workflows import (
    CleanupResponse,
    ExecutionListResponse,
    NodeTestRequest,
    NodeTestResponse,
    WorkflowCreate,
    WorkflowExecutionResponse,
    WorkflowResponse,
    WorkflowTestRequest,
    WorkflowUpdate,
)
from backend.app.services import workflow_service
from backend.app.services.provider_adapters import get_provider_transport
from backend.app.services.push_service import PushSender, get_push_sender

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[WorkflowResponse])
async def list_workflows(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return [WorkflowResponse.model_validate(w) for w in await workflow_service.list_workflows(db, current_user)]


@router.post("", response_model=WorkflowResponse, status_code=201)
async def create_workflow(
    payload: WorkflowCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return WorkflowResponse.model_validate(await workflow_service.create_workflow(db, current_user, payload))


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_executions(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Fail orphaned ``running`` steps and stale executions."""
    return CleanupResponse(**await workflow_service.cleanup_orphaned_steps(db))


@router.post("/test-node", response_model=NodeTestResponse)
async def test_node(
    payload: NodeTestRequest,
    current_user: CurrentUser = Depends(get_current_user),
):
    """Run one condition / transform / delay / script action against sample data."""
    return await workflow_service.run_node_test(payload.action, payload.test_data, payload.variables)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return WorkflowResponse.model_validate(await workflow_service.get_workflow(db, current_user, workflow_id))


@router.put("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: str,
    payload: WorkflowUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    workflow = await workflow_service.update_workflow(db, current_user, workflow_id, payload)
    return WorkflowResponse.model_validate(workflow)


@router.delete("/{workflow_id}", response_model=DeleteResponse)
async def delete_workflow(
    workflow_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await workflow_service.delete_workflow(db, current_user, workflow_id)
    return DeleteResponse(id=workflow_id)


@router.post("/{workflow_id}/test", response_model=WorkflowExecutionResponse)
async def test_workflow(
    workflow_id: str,
    payload: WorkflowTestRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    transport=Depends(get_provider_transport),
    push_sender: PushSender = Depends(get_push_sender),
):
    """Execute the workflow once with ``testData`` as the triggering event."""
    execution = await workflow_service.run_workflow_test(
        db, current_user, workflow_id, payload.test_data, transport=transport, push_sender=push_sender
    )
    return WorkflowExecutionResponse.model_validate(execution)


@router.get("/{workflow_id}/executions", response_model=ExecutionListResponse)
async def list_executions(
    workflow_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    executions, total = await workflow_service.list_executions(db, current_user, workflow_id, limit, offset)
    return ExecutionListResponse(
        executions=[WorkflowExecutionResponse.model_validate(e) for e in executions],
        total=total,
        limit=limit,
        offset=offset,
    )
