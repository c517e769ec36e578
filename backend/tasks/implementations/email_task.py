"""
send_email action.

Pipeline per lead:
1. Require a contact address.
2. Build subject/body from a stored template or the step's custom content.
3. Resolve personalization tags.
4. Optionally replace the content with an AI-personalized variant. Generation
   failures degrade to the tag-resolved content.
5. Send now, or schedule for the configured timing.
6. On delivery failure, hand over to the fallback policy.
"""

from typing import Optional, Union

import structlog

from core.constants import CUSTOM_TEMPLATE_ID, ActionType, SendTiming
from integrations.base import MessageContent, TrackingFlags
from tasks.base_task import BaseAction, StepContext, StepOutcome, collaborator_error
from workflow.fallback import apply_fallback
from workflow.models import ActionStep, Lead
from workflow.personalization import resolve
from workflow.results import SoftError, SoftResult
from workflow.scheduling import local_timezone, schedule_for

logger = structlog.get_logger(__name__)

AI_SUFFIX = " (AI-enhanced)"


class SendEmailAction(BaseAction):
    action_type = ActionType.SEND_EMAIL.value
    display_name = "Send Email"

    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        if not lead.email:
            return StepOutcome.failed("No email address for this lead")

        config = step.config
        template_id = config.template or context.settings.DEFAULT_TEMPLATE_ID

        composed = await self.compose(step, lead, context, template_id)
        if isinstance(composed, StepOutcome):
            return composed

        content = composed
        ai_used = False
        if config.ai_personalization:
            generated = await self.personalize(step, lead, context, content)
            if generated.degraded:
                logger.warning(
                    "AI personalization unavailable, using tag-resolved content",
                    step_id=step.id,
                    lead_id=lead.id,
                    reason=generated.soft_error.message,
                )
            else:
                content = generated.value
                ai_used = True

        suffix = AI_SUFFIX if ai_used else ""
        if config.timing != SendTiming.IMMEDIATE:
            return await self._schedule(step, lead, context, content, template_id, suffix)
        return await self._send(step, lead, context, content, template_id, suffix)

    async def compose(
        self,
        step: ActionStep,
        lead: Lead,
        context: StepContext,
        template_id: str,
    ) -> Union[MessageContent, StepOutcome]:
        """Tag-resolved content, or a ``fail`` outcome for configuration gaps."""
        config = step.config
        if template_id == CUSTOM_TEMPLATE_ID:
            subject_template = config.custom_subject or ""
            body_template = config.custom_body or ""
            if not subject_template and not body_template:
                return StepOutcome.failed("Custom email has no subject or body")
        else:
            try:
                template = await context.call_storage(
                    context.collaborators.templates.get_template, template_id
                )
            except Exception as e:
                return StepOutcome.failed(f"Template lookup failed: {collaborator_error(e)}")
            if template is None:
                return StepOutcome.failed(f'Email template "{template_id}" not found')
            subject_template = template.subject_template
            body_template = template.body_template

        return MessageContent(
            subject=resolve(subject_template, lead, sender=context.sender),
            body=resolve(body_template, lead, sender=context.sender),
        )

    async def personalize(
        self,
        step: ActionStep,
        lead: Lead,
        context: StepContext,
        content: MessageContent,
    ) -> SoftResult[MessageContent]:
        generator = context.collaborators.content_generator
        if generator is None:
            return SoftResult(content, SoftError("content_generator", "not configured"))

        try:
            generated = await generator.generate_personalized(
                lead,
                {
                    "step_title": step.title,
                    "subject": content.subject,
                    "body": content.body,
                    "sender": context.sender.model_dump(),
                },
            )
        except Exception as e:
            return SoftResult(content, SoftError("content_generator", collaborator_error(e)))

        if not generated.subject and not generated.body:
            return SoftResult(content, SoftError("content_generator", "empty content"))
        return SoftResult(
            MessageContent(
                subject=generated.subject or content.subject,
                body=generated.body or content.body,
            )
        )

    async def _send(
        self,
        step: ActionStep,
        lead: Lead,
        context: StepContext,
        content: MessageContent,
        template_id: str,
        suffix: str,
    ) -> StepOutcome:
        error: Optional[str] = None
        try:
            result = await context.collaborators.transport.send_message(
                lead.email,
                content.subject,
                content.body,
                TrackingFlags(opens=True, clicks=True),
                lead_id=lead.id,
            )
        except Exception as e:
            error = collaborator_error(e)
        else:
            if result.success:
                return StepOutcome.passed(
                    f"Email sent to {lead.email} (template: {template_id}){suffix}"
                )
            error = collaborator_error(result.error)

        return await apply_fallback(step, lead, context, error, content)

    async def _schedule(
        self,
        step: ActionStep,
        lead: Lead,
        context: StepContext,
        content: MessageContent,
        template_id: str,
        suffix: str,
    ) -> StepOutcome:
        timing = step.config.timing
        scheduled_at = schedule_for(timing, tz=local_timezone(context.settings))
        error: Optional[str] = None
        try:
            result = await context.collaborators.scheduler.schedule_message(
                [lead], content, scheduled_at
            )
        except Exception as e:
            error = collaborator_error(e)
        else:
            if result.success:
                return StepOutcome.passed(
                    f"Email scheduled for {scheduled_at.isoformat()} "
                    f"(timing: {timing.value}, template: {template_id}){suffix}"
                )
            error = "; ".join(result.failures) or "nothing scheduled"

        return await apply_fallback(step, lead, context, error, content)


EMAIL_ACTION_TYPES = {
    ActionType.SEND_EMAIL.value: SendEmailAction,
}
