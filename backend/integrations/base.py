"""Collaborator interfaces consumed by the execution engine.

The engine never talks to storage, email providers or the content model
directly. It receives implementations of these interfaces (SQLAlchemy
services, HTTP clients, or in-memory fakes in tests) through
``Collaborators``.

Implementations signal hard failures by raising (``CollaboratorError`` for
expected backend failures) or by returning an unsuccessful result object.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from workflow.models import Lead, WorkflowStats
from workflow.results import RunResult


# ─── Result objects ───────────────────────────────────────────

@dataclass(frozen=True)
class TrackingFlags:
    opens: bool = True
    clicks: bool = True


@dataclass(frozen=True)
class MessageContent:
    subject: str
    body: str


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ScheduleResult:
    scheduled_count: int
    failures: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.scheduled_count > 0 and not self.failures


@dataclass
class MutationResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class EmailTemplate:
    id: str
    subject_template: str
    body_template: str
    name: str = ""


# ─── Interfaces ───────────────────────────────────────────────

class RecordStore(ABC):
    """Lead storage."""

    @abstractmethod
    async def get_records(self, filter: dict[str, Any]) -> list[Lead]:
        """Return leads matching ``filter`` (e.g. ``{"ids": [...]}``)."""

    @abstractmethod
    async def update_record(self, record_id: str, patch: dict[str, Any]) -> MutationResult:
        """Apply a partial update to one lead."""


class MessageTransport(ABC):
    """Synchronous email delivery."""

    @abstractmethod
    async def send_message(
        self,
        to: str,
        subject: str,
        body: str,
        tracking: TrackingFlags,
        lead_id: Optional[str] = None,
    ) -> SendResult:
        ...


class MessageScheduler(ABC):
    """Deferred email delivery."""

    @abstractmethod
    async def schedule_message(
        self,
        records: list[Lead],
        content: MessageContent,
        scheduled_at: datetime,
    ) -> ScheduleResult:
        ...


class TemplateProvider(ABC):
    @abstractmethod
    async def get_template(self, template_id: str) -> Optional[EmailTemplate]:
        """Return the template, or None when it does not exist."""


class ContentGenerator(ABC):
    """AI personalization. Any exception is treated as a soft failure."""

    @abstractmethod
    async def generate_personalized(self, record: Lead, context: dict[str, Any]) -> MessageContent:
        ...


class AuditLog(ABC):
    @abstractmethod
    async def append(self, actor_id: str, action: str, details: str) -> None:
        ...


class RunPersistence(ABC):
    @abstractmethod
    async def save_run(self, workflow_id: str, record_id: str, run: RunResult) -> None:
        ...

    @abstractmethod
    async def update_stats(
        self,
        workflow_id: str,
        updater: Callable[[WorkflowStats], WorkflowStats],
    ) -> WorkflowStats:
        """Atomically read the workflow's stats, apply ``updater``, write back."""


class ExecutionQuery(ABC):
    @abstractmethod
    async def list_runs(
        self,
        actor_id: str,
        limit: int,
        workflow_id: Optional[str] = None,
    ) -> list[RunResult]:
        """Most recent runs first."""


@dataclass
class Collaborators:
    """Everything the engine may call out to."""

    record_store: RecordStore
    transport: MessageTransport
    scheduler: MessageScheduler
    templates: TemplateProvider
    audit_log: AuditLog
    runs: RunPersistence
    content_generator: Optional[ContentGenerator] = None
