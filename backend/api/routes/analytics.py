"""Analytics and reporting endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.analytics import (
    NodePerformanceResponse,
    TriggerAnalyticsResponse,
    WorkflowSummaryResponse,
)
from app.config import get_settings
from app.dependencies import get_actor_id, get_db
from services.run_store import RunStore
from services.workflow_service import WorkflowService
from workflow.analytics import node_performance, trigger_analytics, workflow_summary
from workflow.scheduling import local_timezone

router = APIRouter()

# Upper bound on runs folded into the summary endpoint.
SUMMARY_RUN_LIMIT = 5000


@router.get("/workflows/{workflow_id}/nodes", response_model=List[NodePerformanceResponse])
async def get_node_performance(
    workflow_id: str,
    window: Optional[int] = Query(None, ge=1, le=5000, description="Number of most recent runs"),
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> List[NodePerformanceResponse]:
    """
    Per-step metrics over the workflow's most recent runs.
    """
    await WorkflowService(db, actor_id).get_workflow(workflow_id)
    window = window or get_settings().NODE_ANALYTICS_WINDOW
    runs = await RunStore(db, actor_id).list_runs(actor_id, window, workflow_id=workflow_id)
    return [NodePerformanceResponse.model_validate(m) for m in node_performance(runs, window)]


@router.get("/workflows/{workflow_id}/triggers", response_model=TriggerAnalyticsResponse)
async def get_trigger_analytics(
    workflow_id: str,
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> TriggerAnalyticsResponse:
    """
    Trigger firing, conversion and time-of-day distribution for a workflow.

    Hour and day buckets use SCHEDULING_TIMEZONE.
    """
    settings = get_settings()
    workflow = await WorkflowService(db, actor_id).get_workflow(workflow_id)
    runs = await RunStore(db, actor_id).list_runs(
        actor_id, settings.NODE_ANALYTICS_WINDOW, workflow_id=workflow_id
    )
    analytics = trigger_analytics(workflow, runs, tz=local_timezone(settings))
    return TriggerAnalyticsResponse.model_validate(analytics)


@router.get("/summary", response_model=WorkflowSummaryResponse)
async def get_workflow_summary(
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
) -> WorkflowSummaryResponse:
    """
    Totals across all of the caller's workflows.
    """
    workflows = await WorkflowService(db, actor_id).list_workflows()
    runs = await RunStore(db, actor_id).list_runs(actor_id, SUMMARY_RUN_LIMIT)
    return WorkflowSummaryResponse.model_validate(workflow_summary(workflows, runs))
