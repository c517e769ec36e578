"""Workflow Execution Engine — linear per-lead workflow runner.

Takes a typed workflow (an ordered list of steps) and a batch of leads and
runs every step, in order, for each lead:

- Steps are dispatched to the step task registered for their kind
- A condition that yields ``skip`` latches the lead: every later step is
  recorded as skipped without running
- A failed step marks the lead's run as failed but later steps still run
- Each step is bounded by STEP_TIMEOUT_SECONDS and by what remains of the
  BATCH_TIMEOUT_SECONDS budget

Leads are processed sequentially. After the loop the engine persists one
RunResult per completed lead, folds the batch into the workflow stats and
writes a single audit summary. Leads cut off by the batch deadline are
returned as failed but never persisted.
"""

import asyncio
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

import structlog

from app.config import Settings, get_settings
from core.constants import AuditAction, RunStatus, StepKind, StepVerdict
from integrations.base import Collaborators
from tasks.base_task import StepContext, StepOutcome
from tasks.registry import StepTaskRegistry, get_step_registry
from workflow.models import Lead, SenderProfile, Workflow, WorkflowStats
from workflow.results import RunResult, StepResult

logger = structlog.get_logger(__name__)

SKIPPED_UPSTREAM = "Skipped — upstream condition not met"
BATCH_DEADLINE_MESSAGE = "Batch deadline exceeded"


@dataclass
class ExecutionContext:
    """Caller-supplied context for one batch invocation."""
    actor_id: str
    sender: SenderProfile = field(default_factory=SenderProfile)


@dataclass(frozen=True)
class RecordState:
    """Per-lead state threaded through the step loop by value."""
    latched: bool = False
    failed: bool = False
    error_message: Optional[str] = None

    def after(self, kind: StepKind, outcome: StepOutcome) -> "RecordState":
        state = self
        if outcome.status == StepVerdict.FAIL:
            state = replace(state, failed=True, error_message=outcome.message)
        if outcome.status == StepVerdict.SKIP and kind == StepKind.CONDITION:
            state = replace(state, latched=True)
        return state

    @property
    def run_status(self) -> RunStatus:
        return RunStatus.FAILED if self.failed else RunStatus.SUCCESS


class BatchDeadlineExceeded(Exception):
    """The batch budget ran out while a lead was being processed."""


def accumulate_stats(
    previous: WorkflowStats,
    runs: list[RunResult],
    time_saved_per_record: float,
) -> WorkflowStats:
    """Fold a batch of persisted runs into the workflow's running stats.

    Conversion rate is a weighted running average kept as a percentage
    (1 decimal); time saved accrues a fixed estimate per lead, rounded to
    whole hours. ROI is carried forward unchanged.
    """
    if not runs:
        return previous

    processed = previous.leads_processed + len(runs)
    successes = sum(1 for run in runs if run.status == RunStatus.SUCCESS)
    converted = previous.leads_processed * (previous.conversion_rate / 100) + successes

    return WorkflowStats(
        leads_processed=processed,
        conversion_rate=round(converted / processed * 100, 1),
        time_saved_hrs=round(previous.time_saved_hrs + len(runs) * time_saved_per_record),
        roi=previous.roi,
    )


class WorkflowEngine:
    """Runs workflows against batches of leads.

    Collaborators are injected; the engine itself holds no per-run state,
    so one instance may serve concurrent batches.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        settings: Optional[Settings] = None,
        task_registry: Optional[StepTaskRegistry] = None,
    ):
        self._collaborators = collaborators
        self._settings = settings or get_settings()
        self._registry = task_registry or get_step_registry()

    async def execute_workflow(
        self,
        workflow: Workflow,
        leads: list[Lead],
        context: ExecutionContext,
    ) -> list[RunResult]:
        """Execute ``workflow`` for every lead in ``leads``.

        Args:
            workflow: Decoded workflow definition
            leads: Target leads, processed in order
            context: Actor identity and sender profile

        Returns:
            One RunResult per lead, in input order. An empty lead list
            returns ``[]`` without touching any collaborator.
        """
        if not leads:
            return []

        with structlog.contextvars.bound_contextvars(workflow_id=workflow.id):
            return await self._execute_batch(workflow, leads, context)

    async def _execute_batch(
        self,
        workflow: Workflow,
        leads: list[Lead],
        context: ExecutionContext,
    ) -> list[RunResult]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settings.BATCH_TIMEOUT_SECONDS
        step_context = StepContext(
            actor_id=context.actor_id,
            collaborators=self._collaborators,
            settings=self._settings,
            sender=context.sender,
        )

        logger.info(
            "Workflow batch started",
            leads=len(leads),
            steps=len(workflow.steps),
        )

        results: list[RunResult] = []
        completed: list[RunResult] = []
        for index, lead in enumerate(leads):
            if deadline - loop.time() <= 0:
                results.extend(self._truncated(workflow, rest) for rest in leads[index:])
                break
            try:
                run = await self._run_lead(workflow, lead, step_context, deadline)
            except BatchDeadlineExceeded:
                logger.warning(
                    "Batch deadline exceeded",
                    lead_id=lead.id,
                    remaining_leads=len(leads) - index - 1,
                )
                results.extend(self._truncated(workflow, rest) for rest in leads[index:])
                break
            results.append(run)
            completed.append(run)

        persisted = await self._persist_runs(workflow, completed)
        await self._update_stats(workflow, persisted)
        await self._write_audit(workflow, results, context.actor_id)

        logger.info(
            "Workflow batch finished",
            leads=len(results),
            succeeded=sum(1 for r in results if r.status == RunStatus.SUCCESS),
            persisted=len(persisted),
        )
        return results

    async def _run_lead(
        self,
        workflow: Workflow,
        lead: Lead,
        context: StepContext,
        deadline: float,
    ) -> RunResult:
        loop = asyncio.get_running_loop()
        started_at = datetime.now(timezone.utc)
        state = RecordState()
        steps: list[StepResult] = []

        for step in workflow.steps:
            if state.latched:
                steps.append(StepResult(
                    node_id=step.id,
                    node_title=step.title,
                    node_type=step.kind,
                    status=StepVerdict.SKIP,
                    message=SKIPPED_UPSTREAM,
                ))
                continue

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise BatchDeadlineExceeded()
            step_timeout = self._settings.STEP_TIMEOUT_SECONDS
            # The batch budget, not the step limit, bounds this step.
            budget_bound = remaining < step_timeout
            task = self._registry.get_task(step.kind)

            step_start = time.monotonic()
            try:
                outcome = await asyncio.wait_for(
                    task.run(step, lead, context), timeout=min(step_timeout, remaining)
                )
            except asyncio.TimeoutError:
                if budget_bound:
                    raise BatchDeadlineExceeded()
                outcome = StepOutcome.failed(f"Step timed out after {step_timeout:g}s")
            except Exception as e:
                # BaseStepTask.run already converts faults; this covers custom tasks.
                logger.error("Step fault", step_id=step.id, lead_id=lead.id, error=str(e))
                outcome = StepOutcome.failed(str(e) or type(e).__name__)

            steps.append(StepResult(
                node_id=step.id,
                node_title=step.title,
                node_type=step.kind,
                status=outcome.status,
                message=outcome.message,
                duration_ms=int((time.monotonic() - step_start) * 1000),
            ))
            state = state.after(step.kind, outcome)

        return RunResult(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            lead_id=lead.id,
            lead_name=lead.name,
            status=state.run_status,
            steps=steps,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            error_message=state.error_message,
        )

    def _truncated(self, workflow: Workflow, lead: Lead) -> RunResult:
        now = datetime.now(timezone.utc)
        return RunResult(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            lead_id=lead.id,
            lead_name=lead.name,
            status=RunStatus.FAILED,
            steps=[],
            started_at=now,
            completed_at=now,
            error_message=BATCH_DEADLINE_MESSAGE,
        )

    async def _persist_runs(self, workflow: Workflow, runs: list[RunResult]) -> list[RunResult]:
        persisted = []
        for run in runs:
            try:
                await self._collaborators.runs.save_run(workflow.id, run.lead_id, run)
            except Exception as e:
                logger.error(
                    "Failed to persist run",
                    lead_id=run.lead_id,
                    run_id=run.run_id,
                    error=str(e),
                )
                continue
            persisted.append(run)
        return persisted

    async def _update_stats(self, workflow: Workflow, runs: list[RunResult]) -> None:
        if not runs:
            return
        per_record = self._settings.TIME_SAVED_PER_RECORD_HRS
        try:
            stats = await self._collaborators.runs.update_stats(
                workflow.id,
                lambda previous: accumulate_stats(previous, runs, per_record),
            )
        except Exception as e:
            logger.error("Failed to update workflow stats", error=str(e))
            return
        workflow.stats = stats

    async def _write_audit(self, workflow: Workflow, results: list[RunResult], actor_id: str) -> None:
        succeeded = sum(1 for r in results if r.status == RunStatus.SUCCESS)
        details = (
            f'Workflow "{workflow.name}" executed on {len(results)} lead(s): '
            f"{succeeded} succeeded, {len(results) - succeeded} failed"
        )
        try:
            await self._collaborators.audit_log.append(
                actor_id, AuditAction.AUTOMATION_EXECUTED.value, details
            )
        except Exception as e:
            logger.error("Failed to write audit summary", error=str(e))
