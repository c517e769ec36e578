"""Workflow execution schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from workflow.models import SenderProfile


class ErrorResponse(BaseModel):
    """Body of every non-2xx response raised by the engine."""

    detail: str = Field(description="Human-readable error message")
    request_id: Optional[str] = Field(default=None, description="X-Request-ID of the failed request")


class LeadFilter(BaseModel):
    """Selects target leads when no explicit ids are given."""

    status: Optional[str] = Field(default=None, description="Only leads with this status")
    min_score: Optional[float] = Field(default=None, description="Only leads scoring at least this")
    limit: int = Field(default=500, ge=1, le=5000, description="Maximum number of leads")


class ExecuteWorkflowRequest(BaseModel):
    """Request to run a workflow against a batch of leads."""

    lead_ids: Optional[List[str]] = Field(
        default=None, description="Target lead IDs, processed in this order"
    )
    filter: LeadFilter = Field(default_factory=LeadFilter, description="Lead filter used when lead_ids is omitted")
    sender: SenderProfile = Field(
        default_factory=SenderProfile, description="Sender values available to personalization tags"
    )


class StepResultResponse(BaseModel):
    """Outcome of one step for one lead."""

    node_id: str = Field(description="Step ID")
    node_title: str = Field(description="Step title")
    node_type: str = Field(description="Step kind (trigger, condition, wait, action)")
    status: str = Field(description="Step verdict (pass, fail, skip)")
    message: str = Field(description="Human-readable outcome")
    duration_ms: int = Field(description="Step duration in milliseconds")

    class Config:
        from_attributes = True


class RunResultResponse(BaseModel):
    """One lead's complete outcome for one workflow invocation."""

    run_id: str = Field(description="Run ID")
    workflow_id: str = Field(description="Workflow ID")
    workflow_name: str = Field(description="Workflow name at execution time")
    lead_id: str = Field(description="Lead ID")
    lead_name: str = Field(description="Lead name at execution time")
    status: str = Field(description="Run status (success, failed)")
    steps: List[StepResultResponse] = Field(description="Per-step results in workflow order")
    started_at: datetime = Field(description="Run start timestamp")
    completed_at: datetime = Field(description="Run completion timestamp")
    duration_ms: int = Field(description="Run duration in milliseconds")
    error_message: Optional[str] = Field(default=None, description="Last failure message, if any")

    class Config:
        from_attributes = True


class ExecuteWorkflowResponse(BaseModel):
    """Results of a batch execution."""

    workflow_id: str = Field(description="Workflow ID")
    total: int = Field(description="Number of leads processed")
    succeeded: int = Field(description="Runs that finished with status success")
    failed: int = Field(description="Runs that finished with status failed")
    results: List[RunResultResponse] = Field(description="One result per lead, in input order")


class ExecutionLogEntryResponse(BaseModel):
    """One step row of the execution log."""

    id: str = Field(description="Entry ID (<run_id>-<node_id>)")
    timestamp: datetime = Field(description="Run start timestamp")
    workflow_name: str = Field(description="Workflow name")
    lead_name: str = Field(description="Lead name")
    step: str = Field(description="Step title")
    status: str = Field(description="success, failed or skipped")
    duration: float = Field(description="Step duration in seconds")

    class Config:
        from_attributes = True


class ExecutionLogResponse(BaseModel):
    """Most recent step rows, newest runs first."""

    entries: List[ExecutionLogEntryResponse] = Field(description="Log entries")
    total: int = Field(description="Number of entries returned")
