"""Wait step task. Acknowledged, never blocks a run."""

from core.constants import StepKind
from tasks.base_task import BaseStepTask, StepContext, StepOutcome
from workflow.models import Lead, WaitStep
from workflow.personalization import format_value


class WaitTask(BaseStepTask):
    step_kind = StepKind.WAIT
    display_name = "Wait"

    async def execute(self, step: WaitStep, lead: Lead, context: StepContext) -> StepOutcome:
        days = format_value(step.config.days)
        return StepOutcome.passed(
            f"Wait {days} day(s) - noted for execution (continuing immediately in manual run)"
        )
