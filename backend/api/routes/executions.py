"""Execution history endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.execution import ExecutionLogEntryResponse, ExecutionLogResponse
from app.config import get_settings
from app.dependencies import get_actor_id, get_db
from services.run_store import RunStore
from workflow.analytics import build_execution_log

router = APIRouter()


@router.get("/log", response_model=ExecutionLogResponse)
async def get_execution_log(
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Maximum number of step rows"),
    workflow_id: Optional[str] = Query(None, description="Only runs of this workflow"),
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> ExecutionLogResponse:
    """
    Flattened step log of the caller's most recent runs.

    Each recorded step becomes one row; rows from newer runs come first.
    """
    limit = limit or get_settings().EXECUTION_LOG_LIMIT
    runs = await RunStore(db, actor_id).list_runs(actor_id, limit, workflow_id=workflow_id)
    entries = build_execution_log(runs, limit)
    return ExecutionLogResponse(
        entries=[ExecutionLogEntryResponse.model_validate(e) for e in entries],
        total=len(entries),
    )
