"""Run store — Run Persistence and Execution Query over workflow_executions."""

from typing import Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import RunStatus
from core.exceptions import CollaboratorError, NotFoundError
from db.models.execution import WorkflowExecution
from db.models.workflow import Workflow as WorkflowRow
from integrations.base import ExecutionQuery, RunPersistence
from workflow.models import WorkflowStats
from workflow.results import RunResult, StepResult

logger = structlog.get_logger(__name__)


def to_run_result(row: WorkflowExecution) -> RunResult:
    return RunResult(
        run_id=row.id,
        workflow_id=row.workflow_id,
        workflow_name=row.workflow_name,
        lead_id=row.lead_id,
        lead_name=row.lead_name,
        status=RunStatus(row.status),
        steps=[StepResult.from_dict(step) for step in row.steps or []],
        started_at=row.started_at,
        completed_at=row.completed_at,
        error_message=row.error_message,
    )


class RunStore(RunPersistence, ExecutionQuery):
    """Persists RunResults for one actor and reads them back."""

    def __init__(self, db: AsyncSession, actor_id: str):
        self.db = db
        self.actor_id = actor_id

    async def save_run(self, workflow_id: str, record_id: str, run: RunResult) -> None:
        try:
            self.db.add(WorkflowExecution(
                id=run.run_id,
                workflow_id=workflow_id,
                user_id=self.actor_id,
                lead_id=record_id,
                lead_name=run.lead_name,
                workflow_name=run.workflow_name,
                status=run.status.value,
                steps=[step.to_dict() for step in run.steps],
                started_at=run.started_at,
                completed_at=run.completed_at,
                error_message=run.error_message,
            ))
            await self.db.flush()
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Saving run {run.run_id} failed: {e}") from e

    async def update_stats(
        self,
        workflow_id: str,
        updater: Callable[[WorkflowStats], WorkflowStats],
    ) -> WorkflowStats:
        """Read-modify-write of the workflow's stats under a row lock."""
        try:
            result = await self.db.execute(
                select(WorkflowRow).where(WorkflowRow.id == workflow_id).with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError(f"Workflow {workflow_id} not found")

            stats = updater(WorkflowStats.model_validate(row.stats or {}))
            row.stats = stats.model_dump(by_alias=True)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Stats update failed: {e}") from e

        logger.info(
            "Workflow stats updated",
            workflow_id=workflow_id,
            leads_processed=stats.leads_processed,
            conversion_rate=stats.conversion_rate,
        )
        return stats

    async def list_runs(
        self,
        actor_id: str,
        limit: int,
        workflow_id: Optional[str] = None,
    ) -> list[RunResult]:
        query = select(WorkflowExecution).where(WorkflowExecution.user_id == actor_id)
        if workflow_id:
            query = query.where(WorkflowExecution.workflow_id == workflow_id)
        query = query.order_by(WorkflowExecution.started_at.desc()).limit(limit)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Run query failed: {e}") from e
        return [to_run_result(row) for row in result.scalars().all()]
