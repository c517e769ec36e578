"""Tests for the send_email action and its fallback policy."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeContentGenerator, make_lead
from core.constants import AuditAction, StepVerdict
from core.exceptions import CollaboratorError
from integrations.base import MessageContent, SendResult
from tasks.base_task import StepOutcome
from tasks.implementations.email_task import SendEmailAction
from workflow.models import ActionStep


def email_step(**config) -> ActionStep:
    return ActionStep(id="a1", title="Send intro email", config={"actionType": "send_email", **config})


@pytest.fixture
def action() -> SendEmailAction:
    return SendEmailAction()


@pytest.mark.unit
class TestComposeAndSend:

    async def test_sends_template_with_resolved_tags(self, action, step_context, collaborators):
        outcome = await action.execute(email_step(template="welcome"), make_lead(), step_context)

        assert outcome == StepOutcome.passed("Email sent to jane@globex.com (template: welcome)")
        sent = collaborators.transport.sent[0]
        assert sent["to"] == "jane@globex.com"
        assert sent["subject"] == "Hi Jane"
        assert sent["body"] == "Hello Jane at Globex, Sam Seller here."
        assert sent["lead_id"] == "lead-1"

    async def test_default_template_used_when_unset(self, action, step_context, collaborators):
        outcome = await action.execute(email_step(), make_lead(), step_context)
        assert outcome.status == StepVerdict.PASS
        assert collaborators.templates.lookups == ["welcome"]

    async def test_custom_content(self, action, step_context, collaborators):
        step = email_step(template="__custom__", customSubject="Quick q, {{first_name}}",
                          customBody="{{company}} + {{sender_company}}")
        outcome = await action.execute(step, make_lead(), step_context)

        assert outcome.message == "Email sent to jane@globex.com (template: __custom__)"
        assert collaborators.transport.sent[0]["subject"] == "Quick q, Jane"
        assert collaborators.transport.sent[0]["body"] == "Globex + Acme"
        assert collaborators.templates.lookups == []

    async def test_custom_without_content_fails(self, action, step_context, collaborators):
        outcome = await action.execute(email_step(template="__custom__"), make_lead(), step_context)
        assert outcome == StepOutcome.failed("Custom email has no subject or body")
        assert collaborators.transport.sent == []

    async def test_missing_email_fails_without_send(self, action, step_context, collaborators):
        outcome = await action.execute(email_step(fallbackEnabled=True), make_lead(email=""), step_context)
        assert outcome == StepOutcome.failed("No email address for this lead")
        assert collaborators.transport.sent == []
        assert collaborators.templates.lookups == []

    async def test_missing_template_fails(self, action, step_context):
        outcome = await action.execute(email_step(template="nope"), make_lead(), step_context)
        assert outcome == StepOutcome.failed('Email template "nope" not found')

    async def test_template_lookup_error_fails(self, action, step_context, collaborators):
        collaborators.templates.error = CollaboratorError("timeout")
        outcome = await action.execute(email_step(), make_lead(), step_context)
        assert outcome == StepOutcome.failed("Template lookup failed: timeout")


@pytest.mark.unit
class TestAIPersonalization:

    async def test_generated_content_replaces_template(self, action, step_context, collaborators):
        collaborators.content_generator = FakeContentGenerator()
        outcome = await action.execute(email_step(aiPersonalization=True), make_lead(), step_context)

        assert outcome.message == "Email sent to jane@globex.com (template: welcome) (AI-enhanced)"
        assert collaborators.transport.sent[0]["subject"] == "AI subject"
        call = collaborators.content_generator.calls[0]
        assert call["subject"] == "Hi Jane"
        assert call["sender"]["sender_name"] == "Sam Seller"

    async def test_generator_error_degrades_silently(self, action, step_context, collaborators):
        collaborators.content_generator = FakeContentGenerator()
        collaborators.content_generator.error = RuntimeError("model overloaded")
        outcome = await action.execute(email_step(aiPersonalization=True), make_lead(), step_context)

        assert outcome == StepOutcome.passed("Email sent to jane@globex.com (template: welcome)")
        assert collaborators.transport.sent[0]["subject"] == "Hi Jane"

    async def test_missing_generator_degrades_silently(self, action, step_context, collaborators):
        outcome = await action.execute(email_step(aiPersonalization=True), make_lead(), step_context)
        assert outcome.status == StepVerdict.PASS
        assert "(AI-enhanced)" not in outcome.message

    async def test_empty_generation_degrades(self, action, step_context, collaborators):
        collaborators.content_generator = FakeContentGenerator(MessageContent(subject="", body=""))
        generated = await action.personalize(
            email_step(), make_lead(), step_context, MessageContent("s", "b")
        )
        assert generated.degraded
        assert generated.value == MessageContent("s", "b")

    async def test_generator_not_called_without_flag(self, action, step_context, collaborators):
        collaborators.content_generator = FakeContentGenerator()
        await action.execute(email_step(), make_lead(), step_context)
        assert collaborators.content_generator.calls == []


@pytest.mark.unit
class TestScheduledSend:

    async def test_timed_send_goes_to_scheduler(self, action, step_context, collaborators):
        before = datetime.now(timezone.utc)
        outcome = await action.execute(email_step(timing="morning"), make_lead(), step_context)

        assert collaborators.transport.sent == []
        scheduled = collaborators.scheduler.scheduled[0]
        at = scheduled["scheduled_at"]
        assert at > before
        assert (at.hour, at.minute) == (9, 0)
        assert scheduled["content"].subject == "Hi Jane"
        assert outcome == StepOutcome.passed(
            f"Email scheduled for {at.isoformat()} (timing: morning, template: welcome)"
        )

    async def test_schedule_failure_without_fallback(self, action, step_context, collaborators):
        collaborators.scheduler.failures = ["Jane Doe: mailbox full"]
        outcome = await action.execute(email_step(timing="optimal"), make_lead(), step_context)
        assert outcome == StepOutcome.failed("Email failed: Jane Doe: mailbox full")


@pytest.mark.unit
class TestFallbacks:

    async def test_no_fallback_fails(self, action, step_context, collaborators):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        outcome = await action.execute(email_step(), make_lead(), step_context)
        assert outcome == StepOutcome.failed("Email failed: SMTP 550")

    async def test_transport_exception_uses_fallback(self, action, step_context, collaborators):
        collaborators.transport.error = CollaboratorError("connection reset")
        outcome = await action.execute(
            email_step(fallbackEnabled=True, fallbackAction="skip"), make_lead(), step_context
        )
        assert outcome == StepOutcome.passed("Email failed (connection reset) - skipping per fallback")

    async def test_default_fallback_creates_task(self, action, step_context, collaborators):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        outcome = await action.execute(email_step(fallbackEnabled=True), make_lead(), step_context)
        assert outcome == StepOutcome.passed(
            "Email failed (SMTP 550) - follow-up task created for manual send"
        )

    async def test_alert_fallback(self, action, step_context, collaborators):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        outcome = await action.execute(
            email_step(fallbackEnabled=True, fallbackAction="create_alert"), make_lead(), step_context
        )

        assert outcome == StepOutcome.passed("Email failed (SMTP 550) - fallback alert created")
        _, action_name, details = collaborators.audit_log.entries[0]
        assert action_name == AuditAction.AUTOMATION_FALLBACK_ALERT.value
        assert "SMTP 550" in details

    async def test_alert_fallback_failure_fails(self, action, step_context, collaborators):
        collaborators.transport.result = SendResult(success=False, error="SMTP 550")
        collaborators.audit_log.error = CollaboratorError("audit down")
        outcome = await action.execute(
            email_step(fallbackEnabled=True, fallbackAction="create_alert"), make_lead(), step_context
        )
        assert outcome.status == StepVerdict.FAIL
        assert "fallback alert failed: audit down" in outcome.message

    async def test_retry_fallback_schedules_one_attempt(self, action, step_context, collaborators):
        collaborators.transport.result = SendResult(success=False, error="SMTP 451")
        before = datetime.now(timezone.utc)
        outcome = await action.execute(
            email_step(fallbackEnabled=True, fallbackAction="retry"), make_lead(), step_context
        )

        assert outcome.status == StepVerdict.PASS
        assert len(collaborators.scheduler.scheduled) == 1
        scheduled = collaborators.scheduler.scheduled[0]
        retry_at = scheduled["scheduled_at"]
        assert before + timedelta(seconds=3600) <= retry_at <= datetime.now(timezone.utc) + timedelta(seconds=3600)
        assert scheduled["content"].subject == "Hi Jane"
        assert outcome.message == f"Email failed (SMTP 451) - retry scheduled for {retry_at.isoformat()}"

    async def test_retry_fallback_failure(self, action, step_context, collaborators):
        collaborators.transport.result = SendResult(success=False, error="SMTP 451")
        collaborators.scheduler.error = CollaboratorError("queue unavailable")
        outcome = await action.execute(
            email_step(fallbackEnabled=True, fallbackAction="retry"), make_lead(), step_context
        )
        assert outcome == StepOutcome.failed(
            "Email failed: SMTP 451; retry scheduling failed: queue unavailable"
        )

    async def test_fallback_not_applied_to_configuration_errors(self, action, step_context):
        outcome = await action.execute(
            email_step(template="nope", fallbackEnabled=True, fallbackAction="skip"),
            make_lead(),
            step_context,
        )
        assert outcome.status == StepVerdict.FAIL
