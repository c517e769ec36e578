"""Execution result types.

``StepResult`` and ``RunResult`` are the append-only history the engine
produces. ``SoftResult`` carries graceful degradation explicitly: a usable
value plus the soft error that forced the fallback value, if any.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, TypeVar
from uuid import uuid4

from core.constants import RunStatus, StepKind, StepVerdict

T = TypeVar("T")


@dataclass(frozen=True)
class StepResult:
    """Result of executing a single step for one lead."""
    node_id: str
    node_title: str
    node_type: StepKind
    status: StepVerdict
    message: str
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "nodeId": self.node_id,
            "nodeTitle": self.node_title,
            "nodeType": self.node_type.value,
            "status": self.status.value,
            "message": self.message,
            "durationMs": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StepResult":
        return cls(
            node_id=data["nodeId"],
            node_title=data.get("nodeTitle", ""),
            node_type=StepKind(data.get("nodeType", StepKind.ACTION.value)),
            status=StepVerdict(data["status"]),
            message=data.get("message", ""),
            duration_ms=int(data.get("durationMs", 0)),
        )


@dataclass
class RunResult:
    """One lead's complete outcome for one workflow invocation."""
    workflow_id: str
    lead_id: str
    lead_name: str
    status: RunStatus
    steps: list[StepResult]
    started_at: datetime
    completed_at: datetime
    workflow_name: str = ""
    error_message: Optional[str] = None
    run_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def duration_ms(self) -> int:
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict:
        return {
            "runId": self.run_id,
            "workflowId": self.workflow_id,
            "workflowName": self.workflow_name,
            "leadId": self.lead_id,
            "leadName": self.lead_name,
            "status": self.status.value,
            "steps": [s.to_dict() for s in self.steps],
            "startedAt": self.started_at.isoformat(),
            "completedAt": self.completed_at.isoformat(),
            "errorMessage": self.error_message,
        }


@dataclass(frozen=True)
class SoftError:
    """A failure that must degrade silently instead of failing the step."""
    source: str
    message: str


@dataclass(frozen=True)
class SoftResult(Generic[T]):
    value: T
    soft_error: Optional[SoftError] = None

    @property
    def degraded(self) -> bool:
        return self.soft_error is not None
