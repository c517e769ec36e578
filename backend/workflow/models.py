"""Typed workflow, step and lead models.

Workflow definitions are stored as camelCase JSON (the shape the editor
writes). They are decoded once into these models before execution, so the
engine never re-interprets loose config dicts per access.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from core.constants import (
    ActionType,
    ConditionOperator,
    FallbackAction,
    SendTiming,
    StepKind,
    WorkflowStatus,
)
from core.exceptions import WorkflowDefinitionError


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ─── Leads ────────────────────────────────────────────────────

class Lead(_CamelModel):
    """A lead the workflow acts upon. Read-mostly input for the engine."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str
    name: str = ""
    company: str = ""
    email: str = ""
    score: Union[int, float] = 0
    status: str = "New"
    insights: str = ""
    last_activity: str = ""
    knowledge_base: dict[str, Any] = Field(default_factory=dict)

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        return " ".join(self.name.split()[1:])

    def knowledge(self, key: str) -> Any:
        """Look up a knowledge-base field by snake_case or camelCase key."""
        if key in self.knowledge_base:
            return self.knowledge_base[key]
        return self.knowledge_base.get(to_camel(key))

    def field_value(self, field: str) -> Any:
        """Resolve a named field for condition evaluation."""
        if field in ("score", "status", "company", "name", "email", "insights"):
            return getattr(self, field)
        value = self.knowledge(field)
        if value is not None:
            return value
        extra = self.model_extra or {}
        return extra.get(field, extra.get(to_camel(field)))


class SenderProfile(_CamelModel):
    """Sender-side values available to personalization."""

    sender_name: str = ""
    company_name: str = ""
    value_prop: str = ""
    products_services: str = ""
    target_audience: str = ""


# ─── Step configuration payloads ──────────────────────────────

class TriggerConfig(_CamelModel):
    trigger_type: str = "lead_created"
    threshold: float = 50


class ConditionConfig(_CamelModel):
    field: str = "score"
    operator: ConditionOperator = ConditionOperator.GT
    value: Any = 0


class WaitConfig(_CamelModel):
    days: float = 1


class ActionConfig(_CamelModel):
    """Action step configuration.

    ``action_type`` stays a plain string so unmapped kinds survive decoding
    and execute through the generic action.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    action_type: Optional[str] = None
    template: Optional[str] = None
    custom_subject: Optional[str] = None
    custom_body: Optional[str] = None
    ai_personalization: bool = False
    timing: SendTiming = SendTiming.IMMEDIATE
    fallback_enabled: bool = False
    fallback_action: FallbackAction = FallbackAction.CREATE_TASK
    new_status: Optional[str] = None
    tag: Optional[str] = None
    assignee: Optional[str] = None

    @field_validator("fallback_action", mode="before")
    @classmethod
    def _default_fallback(cls, value: Any) -> Any:
        known = {f.value for f in FallbackAction}
        if isinstance(value, FallbackAction) or value in known:
            return value
        return FallbackAction.CREATE_TASK

    @field_validator("timing", mode="before")
    @classmethod
    def _default_timing(cls, value: Any) -> Any:
        return value or SendTiming.IMMEDIATE


# ─── Steps ────────────────────────────────────────────────────

class _StepBase(_CamelModel):
    id: str
    title: str = ""
    description: str = ""

    @property
    def kind(self) -> StepKind:
        return StepKind(self.type)


class TriggerStep(_StepBase):
    type: Literal["trigger"] = "trigger"
    config: TriggerConfig = Field(default_factory=TriggerConfig)


class ConditionStep(_StepBase):
    type: Literal["condition"] = "condition"
    config: ConditionConfig = Field(default_factory=ConditionConfig)


class WaitStep(_StepBase):
    type: Literal["wait"] = "wait"
    config: WaitConfig = Field(default_factory=WaitConfig)


def infer_action_type(title: str) -> str:
    """Guess the action kind from a step title when none is configured."""
    title = title.lower()
    if "email" in title or "send" in title:
        return ActionType.SEND_EMAIL.value
    if "status" in title or "update" in title:
        return ActionType.UPDATE_STATUS.value
    if "tag" in title:
        return ActionType.ADD_TAG.value
    if "alert" in title or "notify" in title:
        return ActionType.CREATE_ALERT.value
    if "assign" in title:
        return ActionType.ASSIGN_USER.value
    return ActionType.GENERIC.value


class ActionStep(_StepBase):
    type: Literal["action"] = "action"
    config: ActionConfig = Field(default_factory=ActionConfig)

    @model_validator(mode="after")
    def _resolve_action_type(self) -> "ActionStep":
        if not self.config.action_type:
            self.config.action_type = infer_action_type(self.title)
        return self


Step = Annotated[
    Union[TriggerStep, ConditionStep, WaitStep, ActionStep],
    Field(discriminator="type"),
]


# ─── Workflow ─────────────────────────────────────────────────

class WorkflowStats(_CamelModel):
    """Aggregate run statistics. ``conversion_rate`` is a percentage."""

    leads_processed: int = 0
    conversion_rate: float = 0.0
    time_saved_hrs: float = 0.0
    roi: float = 0.0


class Workflow(_CamelModel):
    id: str
    name: str
    description: str = ""
    status: WorkflowStatus = WorkflowStatus.DRAFT
    steps: list[Step] = Field(
        default_factory=list,
        validation_alias=AliasChoices("steps", "nodes"),
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    stats: WorkflowStats = Field(default_factory=WorkflowStats)
    owner_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ownerId", "owner_id", "userId")
    )
    team_id: Optional[str] = None

    @classmethod
    def from_definition(cls, data: dict) -> "Workflow":
        """Decode a stored workflow dict, raising WorkflowDefinitionError."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise WorkflowDefinitionError(
                f"Workflow {data.get('id', '?')} is invalid: {e.error_count()} error(s): "
                + "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                )
            ) from e

    def steps_definition(self) -> list[dict]:
        """Serialize steps back to the stored camelCase shape."""
        return [step.model_dump(mode="json", by_alias=True) for step in self.steps]
