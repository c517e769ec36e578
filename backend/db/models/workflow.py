"""Workflow model for the lead automation engine."""

from typing import Optional

from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import WorkflowStatus
from db.base import BaseModel, SoftDeleteMixin


class Workflow(SoftDeleteMixin, BaseModel):
    """Workflow model representing a lead automation definition.

    Attributes:
        id: Unique identifier (UUID string)
        owner_id: User who owns the workflow
        team_id: Optional team sharing the workflow
        name: Workflow name
        description: Workflow description
        status: Lifecycle status (draft, active, paused)
        steps: Ordered step definitions (camelCase JSON as written by the editor)
        stats: Aggregate run statistics (leadsProcessed, conversionRate, ...)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "workflows"

    owner_id: Mapped[str] = mapped_column(nullable=False, index=True)
    team_id: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    name: Mapped[str] = mapped_column(nullable=False, index=True)
    description: Mapped[str] = mapped_column(nullable=False, default="")
    status: Mapped[str] = mapped_column(
        default=WorkflowStatus.DRAFT.value, index=True
    )
    steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    stats: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
