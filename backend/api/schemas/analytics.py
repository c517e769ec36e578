"""Analytics response schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List


class NodePerformanceResponse(BaseModel):
    """Aggregated metrics for one workflow step."""

    node_id: str = Field(description="Step ID")
    node_title: str = Field(description="Step title")
    node_type: str = Field(description="Step kind")
    executions: int = Field(description="Times the step was recorded")
    success_rate: int = Field(description="Percentage of pass verdicts")
    avg_duration: float = Field(description="Average duration in seconds")
    last_run: datetime = Field(description="Start of the most recent run containing the step")

    class Config:
        from_attributes = True


class TriggerTypeResponse(BaseModel):
    type: str
    label: str
    count: int = Field(description="Trigger steps of this type in the workflow")
    fired: int
    converted: int
    conversion_rate: int
    avg_response_time: float = Field(description="Average run duration in seconds")

    class Config:
        from_attributes = True


class HourBucketResponse(BaseModel):
    hour: int
    label: str
    triggers: int

    class Config:
        from_attributes = True


class DayBucketResponse(BaseModel):
    day: str
    date: str
    count: int

    class Config:
        from_attributes = True


class TriggerAnalyticsResponse(BaseModel):
    """Trigger-level view of one workflow's runs."""

    trigger_types: List[TriggerTypeResponse]
    hourly_distribution: List[HourBucketResponse]
    peak_hour: HourBucketResponse
    total_fired: int
    total_converted: int
    overall_conversion: int
    weekly_trend: List[DayBucketResponse]

    class Config:
        from_attributes = True


class WorkflowSummaryResponse(BaseModel):
    """Totals across the caller's workflows."""

    total_workflows: int
    active_workflows: int
    total_executions: int
    total_leads_processed: int
    success_rate: int = Field(description="Percentage of runs with status success")

    class Config:
        from_attributes = True
