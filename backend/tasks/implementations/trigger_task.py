"""
Trigger step task.

Triggers document why a lead entered the workflow. Matching already
happened upstream of a run, so every trigger kind passes except
``score_change``, which re-checks the lead's score against its threshold.
"""

from core.constants import StepKind, TriggerType
from tasks.base_task import BaseStepTask, StepContext, StepOutcome
from workflow.models import Lead, TriggerStep
from workflow.personalization import format_value


class TriggerTask(BaseStepTask):
    step_kind = StepKind.TRIGGER
    display_name = "Trigger"

    async def execute(self, step: TriggerStep, lead: Lead, context: StepContext) -> StepOutcome:
        trigger_type = step.config.trigger_type

        if trigger_type == TriggerType.LEAD_CREATED:
            return StepOutcome.passed(f'Trigger matched - lead "{lead.name}" exists in pipeline')

        if trigger_type == TriggerType.SCORE_CHANGE:
            threshold = format_value(step.config.threshold)
            score = format_value(lead.score)
            if lead.score >= step.config.threshold:
                return StepOutcome.passed(f"Lead score {score} meets threshold {threshold}")
            return StepOutcome.skipped(f"Lead score {score} below threshold {threshold}")

        if trigger_type == TriggerType.STATUS_CHANGE:
            return StepOutcome.passed(f'Trigger matched - lead status is "{lead.status}"')

        if trigger_type == TriggerType.TIME_ELAPSED:
            return StepOutcome.passed("Scheduled trigger - proceeding")

        if trigger_type == TriggerType.TAG_ADDED:
            return StepOutcome.passed("Custom trigger - proceeding")

        return StepOutcome.passed(f'Trigger "{trigger_type}" matched')
