"""Workflow execution endpoint."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.schemas.execution import (
    ErrorResponse,
    ExecuteWorkflowRequest,
    ExecuteWorkflowResponse,
    RunResultResponse,
)
from app.dependencies import get_actor_id, get_db, get_workflow_engine
from core.constants import RunStatus
from services.lead_service import LeadService
from services.workflow_service import WorkflowService
from workflow.engine import ExecutionContext, WorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{workflow_id}/execute",
    response_model=ExecuteWorkflowResponse,
    status_code=status.HTTP_200_OK,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def execute_workflow(
    workflow_id: str,
    request: ExecuteWorkflowRequest,
    actor_id: str = Depends(get_actor_id),
    db: AsyncSession = Depends(get_db),
    engine: WorkflowEngine = Depends(get_workflow_engine),
) -> ExecuteWorkflowResponse:
    """
    Run a workflow against a batch of leads.

    Leads are selected by ``lead_ids`` when given (in that order),
    otherwise by ``filter``. Leads that do not exist or belong to another
    user are silently dropped.
    """
    workflow = await WorkflowService(db, actor_id).get_workflow(workflow_id)

    if request.lead_ids is not None:
        lead_filter = {"ids": request.lead_ids, "limit": max(len(request.lead_ids), 1)}
    else:
        lead_filter = request.filter.model_dump(exclude_none=True)
    leads = await LeadService(db, actor_id).get_records(lead_filter)

    results = await engine.execute_workflow(
        workflow,
        leads,
        ExecutionContext(actor_id=actor_id, sender=request.sender),
    )

    succeeded = sum(1 for r in results if r.status == RunStatus.SUCCESS)
    logger.info(
        f"Workflow {workflow_id} executed by {actor_id}: "
        f"{succeeded}/{len(results)} lead(s) succeeded"
    )
    return ExecuteWorkflowResponse(
        workflow_id=workflow.id,
        total=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=[RunResultResponse.model_validate(r) for r in results],
    )
