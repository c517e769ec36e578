"""
Action step task and the non-email action kinds.

ActionTask dispatches on the decoded ``action_type`` to a BaseAction
strategy. Record mutations go through the Record Store, alerts through the
Audit Log; any storage error fails the step directly (fallback policy only
covers email delivery).
"""

from typing import Any, Mapping

import structlog

from core.constants import ActionType, AuditAction, StepKind
from integrations.base import MutationResult
from tasks.base_task import (
    BaseAction,
    BaseStepTask,
    StepContext,
    StepOutcome,
    collaborator_error,
)
from workflow.models import ActionStep, Lead

logger = structlog.get_logger(__name__)


async def _update_lead(context: StepContext, lead: Lead, patch: dict[str, Any]) -> MutationResult:
    store = context.collaborators.record_store
    try:
        return await context.call_storage(store.update_record, lead.id, patch)
    except Exception as e:
        logger.warning("Lead update failed", lead_id=lead.id, error=str(e))
        return MutationResult(success=False, error=collaborator_error(e))


class UpdateStatusAction(BaseAction):
    action_type = ActionType.UPDATE_STATUS.value
    display_name = "Update Status"

    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        new_status = step.config.new_status or context.settings.DEFAULT_NEW_STATUS
        result = await _update_lead(context, lead, {"status": new_status})
        if not result.success:
            return StepOutcome.failed(f"Status update failed: {collaborator_error(result.error)}")
        return StepOutcome.passed(f'Lead status updated to "{new_status}"')


class AddTagAction(BaseAction):
    """Tags are stored as ``[tag:name]`` markers in the lead's extra notes."""

    action_type = ActionType.ADD_TAG.value
    display_name = "Add Tag"

    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        tag = step.config.tag or context.settings.DEFAULT_TAG
        knowledge_base = dict(lead.knowledge_base)
        notes = knowledge_base.get("extraNotes") or ""
        marker = f"[tag:{tag}]"
        if marker not in notes:
            knowledge_base["extraNotes"] = f"{notes} {marker}" if notes else marker

        result = await _update_lead(context, lead, {"knowledge_base": knowledge_base})
        if not result.success:
            return StepOutcome.failed(f"Tag add failed: {collaborator_error(result.error)}")
        return StepOutcome.passed(f'Tag "{tag}" added to lead')


class AssignUserAction(BaseAction):
    action_type = ActionType.ASSIGN_USER.value
    display_name = "Assign User"

    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        assignee = step.config.assignee or ""
        knowledge_base = {**lead.knowledge_base, "assignedTo": assignee}
        result = await _update_lead(context, lead, {"knowledge_base": knowledge_base})
        if not result.success:
            return StepOutcome.failed(f"Assignment failed: {collaborator_error(result.error)}")
        return StepOutcome.passed(f'Lead assigned to "{assignee}"')


class CreateAlertAction(BaseAction):
    action_type = ActionType.CREATE_ALERT.value
    display_name = "Create Alert"

    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        details = f'Alert from workflow node "{step.title}" for lead {lead.name} ({lead.company})'
        try:
            await context.collaborators.audit_log.append(
                context.actor_id, AuditAction.AUTOMATION_ALERT.value, details
            )
        except Exception as e:
            logger.warning("Alert write failed", lead_id=lead.id, error=str(e))
            return StepOutcome.failed(f"Alert creation failed: {collaborator_error(e)}")
        return StepOutcome.passed(f'Alert created for "{lead.name}"')


class GenericAction(BaseAction):
    """Permissive default for action kinds without a handler."""

    action_type = ActionType.GENERIC.value
    display_name = "Generic Action"

    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        return StepOutcome.passed(
            f'Action "{step.title}" executed (type: {step.config.action_type})'
        )


class ActionTask(BaseStepTask):
    """Dispatches an action step to the strategy for its action type."""

    step_kind = StepKind.ACTION
    display_name = "Action"

    def __init__(self, actions: Mapping[str, BaseAction], default: BaseAction):
        self._actions = actions
        self._default = default

    def resolve(self, action_type: str) -> BaseAction:
        return self._actions.get(action_type, self._default)

    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        action = self.resolve(step.config.action_type or ActionType.GENERIC.value)
        return await action.execute(step, lead, context)


ACTION_TYPES = {
    ActionType.UPDATE_STATUS.value: UpdateStatusAction,
    ActionType.ADD_TAG.value: AddTagAction,
    ActionType.ASSIGN_USER.value: AssignUserAction,
    ActionType.CREATE_ALERT.value: CreateAlertAction,
    ActionType.GENERIC.value: GenericAction,
}
