"""Workflow service — loads and stores workflow definitions."""

from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError
from db.models.workflow import Workflow as WorkflowRow
from services.base import BaseService
from workflow.models import Workflow, WorkflowStats

logger = structlog.get_logger(__name__)


def to_workflow(row: WorkflowRow) -> Workflow:
    """Decode a stored row into the typed model (raises WorkflowDefinitionError)."""
    return Workflow.from_definition({
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "status": row.status,
        "steps": row.steps or [],
        "createdAt": row.created_at,
        "stats": row.stats or {},
        "ownerId": row.owner_id,
        "teamId": row.team_id,
    })


class WorkflowService(BaseService[WorkflowRow]):
    """Workflows owned by one user."""

    def __init__(self, db: AsyncSession, owner_id: str):
        super().__init__(WorkflowRow, db, owner_id)

    async def create_workflow(
        self,
        name: str,
        steps: list[dict[str, Any]],
        description: str = "",
        status: str = "draft",
        stats: Optional[dict[str, Any]] = None,
        workflow_id: Optional[str] = None,
    ) -> Workflow:
        """Validate and store a workflow definition."""
        data = {
            "name": name,
            "description": description,
            "status": status,
            "steps": steps,
            "stats": stats or WorkflowStats().model_dump(by_alias=True),
        }
        if workflow_id:
            data["id"] = workflow_id
        Workflow.from_definition({**data, "id": workflow_id or "new"})

        row = await self.create(data)
        logger.info("Workflow created", workflow_id=row.id, steps=len(steps))
        return to_workflow(row)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        row = await self.get_by_id(workflow_id)
        if row is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return to_workflow(row)

    async def list_workflows(self, limit: int = 200) -> list[Workflow]:
        rows = await self.list(limit=limit, order_by="updated_at")
        return [to_workflow(row) for row in rows]
