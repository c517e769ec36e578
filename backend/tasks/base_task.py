"""
Base interfaces for workflow step tasks.

Every step kind (trigger, condition, wait, action) is handled by a
BaseStepTask subclass; every action kind (send_email, update_status, ...)
by a BaseAction subclass. Tasks receive the typed step, the lead and a
StepContext, and return a StepOutcome verdict. All I/O goes through the
collaborators carried by the context.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import structlog

from app.config import Settings, get_settings
from core.constants import StepKind, StepVerdict
from integrations.base import Collaborators
from workflow.models import ActionStep, Lead, SenderProfile
from workflow.retry_strategies import RetryStrategy, execute_with_retry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StepOutcome:
    """Verdict produced by a step task."""

    status: StepVerdict
    message: str

    @classmethod
    def passed(cls, message: str) -> "StepOutcome":
        return cls(StepVerdict.PASS, message)

    @classmethod
    def failed(cls, message: str) -> "StepOutcome":
        return cls(StepVerdict.FAIL, message)

    @classmethod
    def skipped(cls, message: str) -> "StepOutcome":
        return cls(StepVerdict.SKIP, message)


@dataclass
class StepContext:
    """Everything a step task may use besides the step and the lead."""

    actor_id: str
    collaborators: Collaborators
    settings: Settings = field(default_factory=get_settings)
    sender: SenderProfile = field(default_factory=SenderProfile)

    @property
    def storage_retry(self) -> RetryStrategy:
        return RetryStrategy.for_storage(self.settings)

    async def call_storage(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run an idempotent storage call under the storage retry strategy."""
        return await execute_with_retry(func, self.storage_retry, *args, **kwargs)


class BaseStepTask(ABC):
    """
    Abstract base class for step-kind handlers.

    Subclasses must implement:
    - execute(step, lead, context) -> StepOutcome
    - step_kind (class attribute)
    """

    step_kind: StepKind
    display_name: str = "Base Step"

    @abstractmethod
    async def execute(self, step: Any, lead: Lead, context: StepContext) -> StepOutcome:
        """
        Execute the step for one lead.

        Args:
            step: Typed step model matching ``step_kind``
            lead: Lead the step acts upon
            context: Actor, collaborators and settings

        Returns:
            StepOutcome with a pass/fail/skip verdict and a message
        """

    async def run(self, step: Any, lead: Lead, context: StepContext) -> StepOutcome:
        """
        Run the step with timing and fault handling.

        This is the entry point called by the workflow engine. Unexpected
        exceptions become a ``fail`` outcome carrying the exception message.
        """
        start = time.monotonic()
        try:
            outcome = await self.execute(step, lead, context)
        except Exception as e:
            logger.error(
                "Step raised",
                step_kind=self.step_kind.value,
                step_id=step.id,
                lead_id=lead.id,
                error=str(e),
                exc_info=True,
            )
            return StepOutcome.failed(str(e) or type(e).__name__)

        logger.debug(
            "Step completed",
            step_kind=self.step_kind.value,
            step_id=step.id,
            lead_id=lead.id,
            verdict=outcome.status.value,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return outcome


class BaseAction(ABC):
    """One action kind, selected by ``ActionConfig.action_type``."""

    action_type: str = "base"
    display_name: str = "Base Action"

    @abstractmethod
    async def execute(self, step: ActionStep, lead: Lead, context: StepContext) -> StepOutcome:
        ...


def collaborator_error(error: Optional[Exception | str]) -> str:
    """Readable text for a failed collaborator call."""
    if error is None:
        return "unknown error"
    if isinstance(error, Exception):
        return getattr(error, "message", None) or str(error) or type(error).__name__
    return error
