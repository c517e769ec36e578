"""
Condition step task.

A condition compares one lead field against a configured value. ``gt`` and
``lt`` compare numerically, ``eq`` compares the rendered strings. A miss
returns ``skip``, which latches the rest of the lead's run.
"""

import math
from typing import Any

from core.constants import ConditionOperator, StepKind
from tasks.base_task import BaseStepTask, StepContext, StepOutcome
from workflow.models import ConditionStep, Lead
from workflow.personalization import format_value


def as_number(value: Any) -> float:
    """Numeric coercion for comparisons. Empty values count as 0, anything
    unparseable as NaN (which never satisfies gt/lt)."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return math.nan


def evaluate(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    if operator == ConditionOperator.GT:
        return as_number(actual) > as_number(expected)
    if operator == ConditionOperator.LT:
        return as_number(actual) < as_number(expected)
    return format_value(actual) == format_value(expected)


class ConditionTask(BaseStepTask):
    step_kind = StepKind.CONDITION
    display_name = "Condition"

    async def execute(self, step: ConditionStep, lead: Lead, context: StepContext) -> StepOutcome:
        config = step.config
        actual = lead.field_value(config.field)
        summary = (
            f"{config.field} ({format_value(actual)}) "
            f"{config.operator.value} {format_value(config.value)}"
        )

        if evaluate(config.operator, actual, config.value):
            return StepOutcome.passed(f"Condition met: {summary}")
        return StepOutcome.skipped(f"Condition not met: {summary} - skipping downstream nodes")
