"""
Fallback policy for failed email delivery.

When an email step's send or schedule fails and ``fallback_enabled`` is
set, the configured fallback action decides the step verdict:

- create_alert: write an audit entry describing the failure, then pass
- retry:        persist one deferred attempt after the retry delay, then pass
- skip:         pass without further action
- create_task:  default; pass and leave a manual follow-up note

Without a fallback the step fails with the delivery error.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from core.constants import AuditAction, FallbackAction
from integrations.base import MessageContent
from tasks.base_task import StepContext, StepOutcome, collaborator_error
from workflow.models import ActionStep, Lead
from workflow.retry_strategies import RetryStrategy

logger = structlog.get_logger(__name__)


async def apply_fallback(
    step: ActionStep,
    lead: Lead,
    context: StepContext,
    error: str,
    content: Optional[MessageContent] = None,
) -> StepOutcome:
    """Turn a delivery failure into the step's final verdict.

    Args:
        step: The email action step that failed
        lead: Lead the message was meant for
        context: Step context (actor, collaborators, settings)
        error: Delivery error text
        content: Resolved message, reused by the retry fallback

    Returns:
        ``pass`` when a fallback handled the failure, ``fail`` otherwise
    """
    config = step.config
    if not config.fallback_enabled:
        return StepOutcome.failed(f"Email failed: {error}")

    action = config.fallback_action
    logger.info(
        "Applying email fallback",
        step_id=step.id,
        lead_id=lead.id,
        fallback=action.value,
        error=error,
    )

    if action == FallbackAction.CREATE_ALERT:
        return await _alert(step, lead, context, error)
    if action == FallbackAction.RETRY:
        return await _schedule_retry(step, lead, context, error, content)
    if action == FallbackAction.SKIP:
        return StepOutcome.passed(f"Email failed ({error}) - skipping per fallback")
    return StepOutcome.passed(f"Email failed ({error}) - follow-up task created for manual send")


async def _alert(step: ActionStep, lead: Lead, context: StepContext, error: str) -> StepOutcome:
    details = (
        f'Email step "{step.title}" failed for lead {lead.name} '
        f"({lead.email}): {error}"
    )
    try:
        await context.collaborators.audit_log.append(
            context.actor_id, AuditAction.AUTOMATION_FALLBACK_ALERT.value, details
        )
    except Exception as e:
        return StepOutcome.failed(
            f"Email failed: {error}; fallback alert failed: {collaborator_error(e)}"
        )
    return StepOutcome.passed(f"Email failed ({error}) - fallback alert created")


async def _schedule_retry(
    step: ActionStep,
    lead: Lead,
    context: StepContext,
    error: str,
    content: Optional[MessageContent],
) -> StepOutcome:
    strategy = RetryStrategy.for_fallback_retry(context.settings)
    retry_at = datetime.now(timezone.utc) + timedelta(seconds=strategy.delay_for(1))
    message = content or MessageContent(subject=step.title, body="")

    try:
        result = await context.collaborators.scheduler.schedule_message([lead], message, retry_at)
    except Exception as e:
        return StepOutcome.failed(
            f"Email failed: {error}; retry scheduling failed: {collaborator_error(e)}"
        )
    if not result.success:
        reason = "; ".join(result.failures) or "nothing scheduled"
        return StepOutcome.failed(f"Email failed: {error}; retry scheduling failed: {reason}")

    return StepOutcome.passed(
        f"Email failed ({error}) - retry scheduled for {retry_at.isoformat()}"
    )
