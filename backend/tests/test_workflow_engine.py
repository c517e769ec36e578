"""Tests for the workflow execution engine."""

import asyncio

import pytest

from conftest import ACTOR_ID, make_lead, make_run, make_workflow, utc
from core.constants import AuditAction, RunStatus, StepKind, StepVerdict
from integrations.base import SendResult
from tasks.base_task import BaseStepTask, StepOutcome
from tasks.registry import StepTaskRegistry
from workflow.engine import (
    BATCH_DEADLINE_MESSAGE,
    SKIPPED_UPSTREAM,
    ExecutionContext,
    RecordState,
    WorkflowEngine,
    accumulate_stats,
)
from workflow.models import WorkflowStats

TRIGGER = {"id": "t1", "type": "trigger", "title": "New lead", "config": {"triggerType": "lead_created"}}
HOT = {"id": "c1", "type": "condition", "title": "Hot lead",
       "config": {"field": "score", "operator": "gt", "value": 50}}
EMAIL = {"id": "a1", "type": "action", "title": "Send intro email", "config": {"actionType": "send_email"}}
TAG = {"id": "a2", "type": "action", "title": "Add tag", "config": {"tag": "Hot"}}


@pytest.fixture
def context() -> ExecutionContext:
    return ExecutionContext(actor_id=ACTOR_ID)


def verdicts(run):
    return [step.status for step in run.steps]


@pytest.mark.unit
class TestConditionLatch:

    async def test_hot_and_cold_leads(self, workflow_engine, collaborators, context):
        workflow = make_workflow([TRIGGER, HOT, EMAIL])
        hot = make_lead(id="hot", score=85, email="hot@x.com")
        cold = make_lead(id="cold", score=40, email="cold@x.com")

        results = await workflow_engine.execute_workflow(workflow, [hot, cold], context)

        assert [r.lead_id for r in results] == ["hot", "cold"]
        assert verdicts(results[0]) == [StepVerdict.PASS] * 3
        assert verdicts(results[1]) == [StepVerdict.PASS, StepVerdict.SKIP, StepVerdict.SKIP]
        assert results[1].steps[2].message == SKIPPED_UPSTREAM
        assert results[1].status == RunStatus.SUCCESS
        assert [m["to"] for m in collaborators.transport.sent] == ["hot@x.com"]

    async def test_latched_steps_are_not_executed(self, workflow_engine, collaborators, context):
        workflow = make_workflow([HOT, TAG, EMAIL])
        results = await workflow_engine.execute_workflow(workflow, [make_lead(score=10)], context)

        assert verdicts(results[0]) == [StepVerdict.SKIP] * 3
        assert all(s.duration_ms == 0 for s in results[0].steps[1:])
        assert collaborators.record_store.updates == []
        assert collaborators.transport.sent == []

    async def test_trigger_skip_does_not_latch(self, workflow_engine, collaborators, context):
        trigger = {"id": "t1", "type": "trigger", "config": {"triggerType": "score_change", "threshold": 90}}
        workflow = make_workflow([trigger, EMAIL])
        results = await workflow_engine.execute_workflow(workflow, [make_lead(score=60)], context)

        assert verdicts(results[0]) == [StepVerdict.SKIP, StepVerdict.PASS]
        assert len(collaborators.transport.sent) == 1

    async def test_step_results_follow_workflow_order(self, workflow_engine, context):
        workflow = make_workflow([TRIGGER, HOT, TAG, EMAIL])
        results = await workflow_engine.execute_workflow(workflow, [make_lead()], context)

        run = results[0]
        assert [s.node_id for s in run.steps] == ["t1", "c1", "a2", "a1"]
        assert [s.node_type for s in run.steps] == [
            StepKind.TRIGGER, StepKind.CONDITION, StepKind.ACTION, StepKind.ACTION,
        ]
        assert run.steps[2].node_title == "Add tag"


@pytest.mark.unit
class TestFailures:

    async def test_failed_step_does_not_stop_later_steps(self, workflow_engine, collaborators, context):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        workflow = make_workflow([TRIGGER, EMAIL, TAG])
        results = await workflow_engine.execute_workflow(workflow, [make_lead()], context)

        run = results[0]
        assert verdicts(run) == [StepVerdict.PASS, StepVerdict.FAIL, StepVerdict.PASS]
        assert run.status == RunStatus.FAILED
        assert run.error_message == "Email failed: SMTP 550"
        assert len(collaborators.record_store.updates) == 1

    async def test_error_message_is_last_failure(self, workflow_engine, collaborators, context):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        collaborators.record_store.error = RuntimeError("locked")
        workflow = make_workflow([EMAIL, TAG])
        results = await workflow_engine.execute_workflow(workflow, [make_lead()], context)
        assert results[0].error_message == "Tag add failed: locked"

    async def test_missing_email_fails_lead(self, workflow_engine, context):
        workflow = make_workflow([TRIGGER, EMAIL])
        results = await workflow_engine.execute_workflow(workflow, [make_lead(email="")], context)
        assert results[0].status == RunStatus.FAILED
        assert results[0].error_message == "No email address for this lead"


@pytest.mark.unit
class TestEmailFallbackOutcome:

    @staticmethod
    def email(**config):
        return {**EMAIL, "config": {**EMAIL["config"], **config}}

    async def test_skip_fallback_keeps_lead_successful(self, workflow_engine, collaborators, context):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        workflow = make_workflow([TRIGGER, self.email(fallbackEnabled=True, fallbackAction="skip")])

        run = (await workflow_engine.execute_workflow(workflow, [make_lead()], context))[0]

        assert verdicts(run) == [StepVerdict.PASS, StepVerdict.PASS]
        assert run.status == RunStatus.SUCCESS
        assert run.error_message is None

    async def test_disabled_fallback_fails_lead(self, workflow_engine, collaborators, context):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        workflow = make_workflow([TRIGGER, self.email(fallbackEnabled=False, fallbackAction="skip")])

        run = (await workflow_engine.execute_workflow(workflow, [make_lead()], context))[0]

        assert verdicts(run) == [StepVerdict.PASS, StepVerdict.FAIL]
        assert run.status == RunStatus.FAILED
        assert run.error_message == "Email failed: SMTP 550"


@pytest.mark.unit
class TestRepeatRuns:

    async def test_same_inputs_give_same_step_outcomes(self, workflow_engine, context):
        workflow = make_workflow([TRIGGER, HOT, TAG, EMAIL])
        leads = [
            make_lead(id="hot", score=85, email="hot@x.com"),
            make_lead(id="cold", score=40, email="cold@x.com"),
            make_lead(id="silent", score=95, email=""),
        ]

        first = await workflow_engine.execute_workflow(workflow, leads, context)
        second = await workflow_engine.execute_workflow(workflow, leads, context)

        def outcomes(runs):
            return [(r.lead_id, r.status, [(s.status, s.message) for s in r.steps]) for r in runs]

        assert outcomes(first) == outcomes(second)
        assert [r.run_id for r in first] != [r.run_id for r in second]

    async def test_step_timeout_becomes_failure(self, collaborators, settings, context):
        collaborators.transport.delay = 1.0
        engine = WorkflowEngine(
            collaborators, settings=settings.model_copy(update={"STEP_TIMEOUT_SECONDS": 0.05})
        )
        results = await engine.execute_workflow(make_workflow([EMAIL, TAG]), [make_lead()], context)

        run = results[0]
        assert run.steps[0].status == StepVerdict.FAIL
        assert run.steps[0].message == "Step timed out after 0.05s"
        assert run.steps[1].status == StepVerdict.PASS


class SlowTask(BaseStepTask):
    step_kind = StepKind.WAIT
    display_name = "Slow wait"

    async def execute(self, step, lead, context):
        await asyncio.sleep(0.2)
        return StepOutcome.passed("done")


@pytest.mark.unit
class TestBatchDeadline:

    async def test_deadline_truncates_remaining_leads(self, collaborators, settings, context):
        registry = StepTaskRegistry()
        registry._tasks[StepKind.WAIT] = SlowTask()
        engine = WorkflowEngine(
            collaborators,
            settings=settings.model_copy(update={"BATCH_TIMEOUT_SECONDS": 0.3}),
            task_registry=registry,
        )
        workflow = make_workflow([{"id": "w1", "type": "wait"}])
        leads = [make_lead(id=f"lead-{i}") for i in range(4)]

        results = await engine.execute_workflow(workflow, leads, context)

        assert [r.lead_id for r in results] == ["lead-0", "lead-1", "lead-2", "lead-3"]
        assert results[0].status == RunStatus.SUCCESS
        truncated = [r for r in results if r.error_message == BATCH_DEADLINE_MESSAGE]
        assert truncated and all(r.status == RunStatus.FAILED and r.steps == [] for r in truncated)
        saved_ids = {r.lead_id for r in collaborators.runs.saved}
        assert saved_ids.isdisjoint(r.lead_id for r in truncated)
        assert collaborators.runs.stats["wf-1"].leads_processed == len(saved_ids)


@pytest.mark.unit
class TestBatchBookkeeping:

    async def test_empty_batch_touches_nothing(self, workflow_engine, collaborators, context):
        results = await workflow_engine.execute_workflow(make_workflow([TRIGGER]), [], context)
        assert results == []
        assert collaborators.runs.saved == []
        assert collaborators.runs.stats == {}
        assert collaborators.audit_log.entries == []

    async def test_runs_persisted_stats_and_audit(self, workflow_engine, collaborators, context):
        workflow = make_workflow([TRIGGER, HOT, EMAIL])
        leads = [make_lead(id="a", score=85), make_lead(id="b", score=10, email="")]

        results = await workflow_engine.execute_workflow(workflow, leads, context)

        assert [r.lead_id for r in collaborators.runs.saved] == ["a", "b"]
        assert all(r.workflow_name == "Nurture" for r in collaborators.runs.saved)
        stats = collaborators.runs.stats["wf-1"]
        assert stats.leads_processed == 2
        assert stats.conversion_rate == 100.0
        assert workflow.stats == stats
        assert collaborators.audit_log.entries == [(
            ACTOR_ID,
            AuditAction.AUTOMATION_EXECUTED.value,
            'Workflow "Nurture" executed on 2 lead(s): 2 succeeded, 0 failed',
        )]
        assert all(r.status == RunStatus.SUCCESS for r in results)

    async def test_persistence_failure_does_not_abort_batch(self, workflow_engine, collaborators, context):
        collaborators.runs.fail_for = {"a"}
        leads = [make_lead(id="a"), make_lead(id="b")]
        results = await workflow_engine.execute_workflow(make_workflow([TRIGGER]), leads, context)

        assert len(results) == 2
        assert [r.lead_id for r in collaborators.runs.saved] == ["b"]
        assert collaborators.runs.stats["wf-1"].leads_processed == 1

    async def test_stats_failure_still_audits(self, workflow_engine, collaborators, context):
        collaborators.runs.stats_error = RuntimeError("locked")
        results = await workflow_engine.execute_workflow(make_workflow([TRIGGER]), [make_lead()], context)
        assert len(results) == 1
        assert collaborators.audit_log.actions() == [AuditAction.AUTOMATION_EXECUTED.value]

    async def test_audit_failure_is_not_raised(self, workflow_engine, collaborators, context):
        collaborators.audit_log.error = RuntimeError("audit down")
        results = await workflow_engine.execute_workflow(make_workflow([TRIGGER]), [make_lead()], context)
        assert results[0].status == RunStatus.SUCCESS


@pytest.mark.unit
class TestAccumulateStats:

    def test_weighted_running_average(self):
        previous = WorkflowStats(leads_processed=10, conversion_rate=50.0, time_saved_hrs=22, roi=3.5)
        runs = [make_run(utc(2026, 1, 1), "success"), make_run(utc(2026, 1, 1), "failed")]

        stats = accumulate_stats(previous, runs, 2.2)

        assert stats.leads_processed == 12
        assert stats.conversion_rate == 50.0
        assert stats.time_saved_hrs == 26
        assert stats.roi == 3.5

    def test_rounding(self):
        runs = [make_run(utc(2026, 1, 1), s) for s in ("success", "failed", "failed")]
        stats = accumulate_stats(WorkflowStats(), runs, 2.2)
        assert stats.conversion_rate == 33.3
        assert stats.time_saved_hrs == 7

    def test_no_runs_returns_previous(self):
        previous = WorkflowStats(leads_processed=3)
        assert accumulate_stats(previous, [], 2.2) is previous


@pytest.mark.unit
class TestRecordState:

    def test_condition_skip_latches(self):
        state = RecordState().after(StepKind.CONDITION, StepOutcome.skipped("no"))
        assert state.latched

    def test_trigger_skip_does_not_latch(self):
        state = RecordState().after(StepKind.TRIGGER, StepOutcome.skipped("no"))
        assert not state.latched
        assert state.run_status == RunStatus.SUCCESS

    def test_failure_recorded(self):
        state = RecordState().after(StepKind.ACTION, StepOutcome.failed("boom"))
        assert state.run_status == RunStatus.FAILED
        assert state.error_message == "boom"
