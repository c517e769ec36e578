"""Read-side analytics over persisted runs.

Pure folds: every function takes RunResult lists already fetched through
the Execution Query and returns derived projections. Nothing here writes.
"""

from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from core.constants import RunStatus, StepKind, StepVerdict, TriggerType, WorkflowStatus
from workflow.models import TriggerStep, Workflow
from workflow.results import RunResult

LOG_STATUS = {
    StepVerdict.PASS: "success",
    StepVerdict.FAIL: "failed",
    StepVerdict.SKIP: "skipped",
}

TRIGGER_LABELS = {
    TriggerType.LEAD_CREATED: "Lead Created",
    TriggerType.SCORE_CHANGE: "Lead Score Changes",
    TriggerType.STATUS_CHANGE: "Lead Activity Occurs",
    TriggerType.TIME_ELAPSED: "Scheduled Time",
    TriggerType.TAG_ADDED: "Custom Trigger",
}


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def _hour_label(hour: int) -> str:
    if hour == 0:
        return "12a"
    if hour < 12:
        return f"{hour}a"
    if hour == 12:
        return "12p"
    return f"{hour - 12}p"


# ─── Execution log ────────────────────────────────────────────

@dataclass
class ExecutionLogEntry:
    id: str
    timestamp: datetime
    workflow_name: str
    lead_name: str
    step: str
    status: str
    duration: float

    def to_dict(self) -> dict:
        return asdict(self)


def build_execution_log(runs: Iterable[RunResult], limit: int) -> list[ExecutionLogEntry]:
    """One entry per recorded step, newest runs first, capped at ``limit``."""
    entries: list[ExecutionLogEntry] = []
    for run in sorted(runs, key=lambda r: r.started_at, reverse=True):
        for step in run.steps:
            entries.append(ExecutionLogEntry(
                id=f"{run.run_id}-{step.node_id}",
                timestamp=run.started_at,
                workflow_name=run.workflow_name or "Unknown Workflow",
                lead_name=run.lead_name or "Unknown Lead",
                step=step.node_title,
                status=LOG_STATUS[step.status],
                duration=step.duration_ms / 1000,
            ))
            if len(entries) >= limit:
                return entries
    return entries


# ─── Node performance ─────────────────────────────────────────

@dataclass
class NodePerformanceMetric:
    node_id: str
    node_title: str
    node_type: StepKind
    executions: int
    success_rate: int
    avg_duration: float
    last_run: datetime


@dataclass
class _NodeTotals:
    title: str
    kind: StepKind
    last_run: datetime
    executions: int = 0
    passes: int = 0
    total_ms: int = 0


def node_performance(runs: Iterable[RunResult], window: int) -> list[NodePerformanceMetric]:
    """Per-node metrics over the ``window`` most recent runs.

    Nodes are reported in first-seen order (newest run first).
    """
    recent = sorted(runs, key=lambda r: r.started_at, reverse=True)[:window]
    totals: "OrderedDict[str, _NodeTotals]" = OrderedDict()

    for run in recent:
        for step in run.steps:
            node = totals.get(step.node_id)
            if node is None:
                node = totals[step.node_id] = _NodeTotals(
                    title=step.node_title, kind=step.node_type, last_run=run.started_at
                )
            node.executions += 1
            if step.status == StepVerdict.PASS:
                node.passes += 1
            node.total_ms += step.duration_ms
            if run.started_at > node.last_run:
                node.last_run = run.started_at

    return [
        NodePerformanceMetric(
            node_id=node_id,
            node_title=node.title,
            node_type=node.kind,
            executions=node.executions,
            success_rate=_percent(node.passes, node.executions),
            avg_duration=round(node.total_ms / node.executions / 1000, 1),
            last_run=node.last_run,
        )
        for node_id, node in totals.items()
    ]


# ─── Trigger analytics ────────────────────────────────────────

@dataclass
class TriggerTypeMetric:
    type: TriggerType
    label: str
    count: int
    fired: int
    converted: int
    conversion_rate: int
    avg_response_time: float


@dataclass
class HourBucket:
    hour: int
    label: str
    triggers: int


@dataclass
class DayBucket:
    day: str
    date: str
    count: int


@dataclass
class TriggerAnalytics:
    trigger_types: list[TriggerTypeMetric]
    hourly_distribution: list[HourBucket]
    peak_hour: HourBucket
    total_fired: int
    total_converted: int
    overall_conversion: int
    weekly_trend: list[DayBucket] = field(default_factory=list)


def trigger_analytics(
    workflow: Workflow,
    runs: Iterable[RunResult],
    tz: Optional[tzinfo] = None,
    now: Optional[datetime] = None,
) -> TriggerAnalytics:
    """Trigger-level view of a workflow's runs.

    A trigger type "fires" once per run when the workflow declares at least
    one trigger step of that type; a run that ended in ``success`` counts
    as converted. Hourly and daily buckets use ``tz`` (UTC by default).
    """
    tz = tz or timezone.utc
    now = (now or datetime.now(tz)).astimezone(tz)
    runs = [run for run in runs if run.workflow_id == workflow.id]

    declared: dict[str, int] = {}
    for step in workflow.steps:
        if isinstance(step, TriggerStep):
            declared[step.config.trigger_type] = declared.get(step.config.trigger_type, 0) + 1

    successes = sum(1 for run in runs if run.status == RunStatus.SUCCESS)
    avg_response = (
        round(sum(run.duration_ms for run in runs) / len(runs) / 1000, 1) if runs else 0.0
    )

    trigger_types = []
    for trigger_type in TriggerType:
        count = declared.get(trigger_type.value, 0)
        fired = len(runs) if count else 0
        converted = successes if count else 0
        trigger_types.append(TriggerTypeMetric(
            type=trigger_type,
            label=TRIGGER_LABELS[trigger_type],
            count=count,
            fired=fired,
            converted=converted,
            conversion_rate=_percent(converted, fired),
            avg_response_time=avg_response,
        ))

    per_hour = [0] * 24
    for run in runs:
        per_hour[run.started_at.astimezone(tz).hour] += 1
    hourly = [HourBucket(hour=h, label=_hour_label(h), triggers=per_hour[h]) for h in range(24)]
    peak = hourly[0]
    for bucket in hourly:
        if bucket.triggers > peak.triggers:
            peak = bucket

    weekly = []
    for offset in range(6, -1, -1):
        day = (now - timedelta(days=offset)).date()
        weekly.append(DayBucket(
            day=day.strftime("%a"),
            date=day.isoformat(),
            count=sum(1 for run in runs if run.started_at.astimezone(tz).date() == day),
        ))

    total_fired = sum(t.fired for t in trigger_types)
    total_converted = sum(t.converted for t in trigger_types)
    return TriggerAnalytics(
        trigger_types=trigger_types,
        hourly_distribution=hourly,
        peak_hour=peak,
        total_fired=total_fired,
        total_converted=total_converted,
        overall_conversion=_percent(total_converted, total_fired),
        weekly_trend=weekly,
    )


# ─── Workflow summary ─────────────────────────────────────────

@dataclass
class WorkflowSummary:
    total_workflows: int
    active_workflows: int
    total_executions: int
    total_leads_processed: int
    success_rate: int


def workflow_summary(workflows: Iterable[Workflow], runs: Iterable[RunResult]) -> WorkflowSummary:
    workflows = list(workflows)
    runs = list(runs)
    successes = sum(1 for run in runs if run.status == RunStatus.SUCCESS)
    return WorkflowSummary(
        total_workflows=len(workflows),
        active_workflows=sum(1 for wf in workflows if wf.status == WorkflowStatus.ACTIVE),
        total_executions=len(runs),
        total_leads_processed=sum(wf.stats.leads_processed for wf in workflows),
        success_rate=_percent(successes, len(runs)),
    )
