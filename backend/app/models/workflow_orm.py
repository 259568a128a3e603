"""
Workflow definitions and their execution audit trail.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from backend.app.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class ExecutionStatus(str, PyEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(str, PyEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowORM(Base):
    """
    A trigger plus an ordered list of actions.

    ``trigger`` holds ``{"eventType": ..., "filters": {...}}`` and ``actions``
    the validated action configs in execution order. Edited only by full replace.
    """
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    trigger = Column(JSON, nullable=False)
    actions = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    user_id = Column(String(255), nullable=False, index=True)
    organization_id = Column(String(255), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    executions = relationship(
        "WorkflowExecutionORM",
        back_populates="workflow",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Workflow {self.name} active={self.is_active}>"


class WorkflowExecutionORM(Base):
    __tablename__ = "workflow_executions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    workflow_id = Column(String(36), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=ExecutionStatus.RUNNING.value)
    trigger_event = Column(JSON, nullable=True)
    results = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    total_duration_ms = Column(Integer, nullable=True)

    workflow = relationship(WorkflowORM, back_populates="executions")
    steps = relationship(
        "WorkflowStepORM",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="WorkflowStepORM.step_order",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<WorkflowExecution {self.id} status={self.status}>"


class WorkflowStepORM(Base):
    """One action's audit row. Not replayable."""
    __tablename__ = "workflow_steps"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    execution_id = Column(String(36), ForeignKey("workflow_executions.id", ondelete="CASCADE"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)
    step_type = Column(String(32), nullable=False, default="action")
    step_name = Column(String(255), nullable=False)
    action_type = Column(String(64), nullable=True)
    status = Column(String(16), nullable=False, default=StepStatus.RUNNING.value)
    input_data = Column(JSON, nullable=True)
    output_data = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)

    execution = relationship(WorkflowExecutionORM, back_populates="steps")

    def __repr__(self):
        return f"<WorkflowStep {self.step_order}:{self.action_type} status={self.status}>"
