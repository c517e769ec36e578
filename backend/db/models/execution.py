"""WorkflowExecution model for the lead automation engine."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import RunStatus
from db.base import BaseModel, UTCDateTime


class WorkflowExecution(BaseModel):
    """One persisted RunResult: a workflow run against a single lead.

    Attributes:
        id: Run id (UUID string)
        workflow_id: Foreign key to Workflow
        user_id: Actor who invoked the run
        lead_id: Lead the run acted upon
        lead_name: Lead name at run time
        workflow_name: Workflow name at run time
        status: Overall run status (success, failed, skipped)
        steps: Ordered step results (nodeId, nodeTitle, nodeType, status, message, durationMs)
        started_at: Run start timestamp
        completed_at: Run end timestamp
        error_message: Last failing step's message, if any
    """

    __tablename__ = "workflow_executions"

    workflow_id: Mapped[str] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(nullable=False, index=True)
    lead_id: Mapped[str] = mapped_column(nullable=False, index=True)
    lead_name: Mapped[str] = mapped_column(nullable=False, default="")
    workflow_name: Mapped[str] = mapped_column(nullable=False, default="")
    status: Mapped[str] = mapped_column(
        default=RunStatus.SUCCESS.value, index=True
    )
    steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    completed_at: Mapped[datetime] = mapped_column(UTCDateTime())
    error_message: Mapped[Optional[str]] = mapped_column(nullable=True)
