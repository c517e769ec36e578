"""Shared pytest fixtures for the lead automation engine test suite.

Provides:
- In-memory fake collaborators that record every call
- Step context / workflow engine wired to the fakes
- File-backed async SQLite database per test (no server needed)
- FastAPI test client (httpx.AsyncClient over ASGITransport)
"""

import asyncio
import os
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Override settings BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("STORAGE_RETRY_ATTEMPTS", "0")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("EMAIL_API_URL", "")

from app.config import Settings  # noqa: E402
from db.base import Base  # noqa: E402
from db.database import create_db_engine, create_session_factory  # noqa: E402
from integrations.base import (  # noqa: E402
    AuditLog,
    Collaborators,
    ContentGenerator,
    EmailTemplate,
    ExecutionQuery,
    MessageContent,
    MessageScheduler,
    MessageTransport,
    MutationResult,
    RecordStore,
    RunPersistence,
    ScheduleResult,
    SendResult,
    TemplateProvider,
    TrackingFlags,
)
from tasks.base_task import StepContext  # noqa: E402
from workflow.engine import WorkflowEngine  # noqa: E402
from workflow.models import Lead, SenderProfile, Workflow, WorkflowStats  # noqa: E402
from workflow.results import RunResult  # noqa: E402

ACTOR_ID = "user-1"


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------

class FakeRecordStore(RecordStore):
    def __init__(self, leads: Optional[list[Lead]] = None):
        self.leads = {lead.id: lead for lead in leads or []}
        self.updates: list[tuple[str, dict]] = []
        self.error: Optional[Exception] = None
        self.result: Optional[MutationResult] = None

    async def get_records(self, filter: dict[str, Any]) -> list[Lead]:
        ids = filter.get("ids")
        if ids is None:
            return list(self.leads.values())
        return [self.leads[i] for i in ids if i in self.leads]

    async def update_record(self, record_id: str, patch: dict[str, Any]) -> MutationResult:
        if self.error:
            raise self.error
        self.updates.append((record_id, patch))
        if self.result is not None:
            return self.result
        return MutationResult(success=True)


class FakeTransport(MessageTransport):
    def __init__(self):
        self.sent: list[dict] = []
        self.result = SendResult(success=True, message_id="msg-1")
        self.error: Optional[Exception] = None
        self.delay: float = 0.0

    async def send_message(
        self,
        to: str,
        subject: str,
        body: str,
        tracking: TrackingFlags,
        lead_id: Optional[str] = None,
    ) -> SendResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "body": body, "lead_id": lead_id})
        return self.result


class FakeScheduler(MessageScheduler):
    def __init__(self):
        self.scheduled: list[dict] = []
        self.error: Optional[Exception] = None
        self.failures: list[str] = []

    async def schedule_message(
        self,
        records: list[Lead],
        content: MessageContent,
        scheduled_at: datetime,
    ) -> ScheduleResult:
        if self.error:
            raise self.error
        if self.failures:
            return ScheduleResult(scheduled_count=0, failures=list(self.failures))
        self.scheduled.append({"records": records, "content": content, "scheduled_at": scheduled_at})
        return ScheduleResult(scheduled_count=len(records))


class FakeTemplates(TemplateProvider):
    def __init__(self):
        self.templates = {
            "welcome": EmailTemplate(
                id="welcome",
                name="Welcome",
                subject_template="Hi {{first_name}}",
                body_template="Hello {{first_name}} at {{company}}, {{your_name}} here.",
            ),
        }
        self.error: Optional[Exception] = None
        self.lookups: list[str] = []

    async def get_template(self, template_id: str) -> Optional[EmailTemplate]:
        self.lookups.append(template_id)
        if self.error:
            raise self.error
        return self.templates.get(template_id)


class FakeAuditLog(AuditLog):
    def __init__(self):
        self.entries: list[tuple[str, str, str]] = []
        self.error: Optional[Exception] = None

    async def append(self, actor_id: str, action: str, details: str) -> None:
        if self.error:
            raise self.error
        self.entries.append((actor_id, action, details))

    def actions(self) -> list[str]:
        return [action for _, action, _ in self.entries]


class FakeRuns(RunPersistence, ExecutionQuery):
    def __init__(self):
        self.saved: list[RunResult] = []
        self.stats: dict[str, WorkflowStats] = {}
        self.fail_for: set[str] = set()
        self.stats_error: Optional[Exception] = None

    async def save_run(self, workflow_id: str, record_id: str, run: RunResult) -> None:
        if record_id in self.fail_for:
            raise RuntimeError(f"disk full for {record_id}")
        self.saved.append(run)

    async def update_stats(
        self,
        workflow_id: str,
        updater: Callable[[WorkflowStats], WorkflowStats],
    ) -> WorkflowStats:
        if self.stats_error:
            raise self.stats_error
        stats = updater(self.stats.get(workflow_id, WorkflowStats()))
        self.stats[workflow_id] = stats
        return stats

    async def list_runs(
        self,
        actor_id: str,
        limit: int,
        workflow_id: Optional[str] = None,
    ) -> list[RunResult]:
        runs = [r for r in self.saved if workflow_id is None or r.workflow_id == workflow_id]
        return sorted(runs, key=lambda r: r.started_at, reverse=True)[:limit]


class FakeContentGenerator(ContentGenerator):
    def __init__(self, content: Optional[MessageContent] = None):
        self.content = content or MessageContent(subject="AI subject", body="AI body")
        self.error: Optional[Exception] = None
        self.calls: list[dict] = []

    async def generate_personalized(self, record: Lead, context: dict[str, Any]) -> MessageContent:
        self.calls.append(context)
        if self.error:
            raise self.error
        return self.content


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_lead(**overrides) -> Lead:
    data = {
        "id": "lead-1",
        "name": "Jane Doe",
        "company": "Globex",
        "email": "jane@globex.com",
        "score": 85,
        "status": "New",
        "knowledge_base": {"industry": "Logistics", "title": "VP Operations"},
    }
    data.update(overrides)
    return Lead(**data)


def make_workflow(steps: list[dict], **overrides) -> Workflow:
    data = {"id": "wf-1", "name": "Nurture", "status": "active", "steps": steps}
    data.update(overrides)
    return Workflow.from_definition(data)


def make_run(
    started_at: datetime,
    status: str = "success",
    steps: Optional[list] = None,
    workflow_id: str = "wf-1",
    **overrides,
) -> RunResult:
    from core.constants import RunStatus

    data = dict(
        workflow_id=workflow_id,
        workflow_name="Nurture",
        lead_id="lead-1",
        lead_name="Jane Doe",
        status=RunStatus(status),
        steps=steps or [],
        started_at=started_at,
        completed_at=started_at,
    )
    data.update(overrides)
    return RunResult(**data)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    """Settings with storage retries disabled so failures surface immediately."""
    return Settings(
        _env_file=None,
        STORAGE_RETRY_ATTEMPTS=0,
        SCHEDULING_TIMEZONE="UTC",
        FALLBACK_RETRY_DELAY_SECONDS=3600.0,
    )


@pytest.fixture
def collaborators() -> Collaborators:
    return Collaborators(
        record_store=FakeRecordStore([make_lead()]),
        transport=FakeTransport(),
        scheduler=FakeScheduler(),
        templates=FakeTemplates(),
        audit_log=FakeAuditLog(),
        runs=FakeRuns(),
        content_generator=None,
    )


@pytest.fixture
def step_context(collaborators, settings) -> StepContext:
    return StepContext(
        actor_id=ACTOR_ID,
        collaborators=collaborators,
        settings=settings,
        sender=SenderProfile(sender_name="Sam Seller", company_name="Acme"),
    )


@pytest.fixture
def workflow_engine(collaborators, settings) -> WorkflowEngine:
    return WorkflowEngine(collaborators, settings=settings)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Async engine on a throwaway SQLite file, tables created."""
    engine = create_db_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    # Import all models so Base.metadata knows about them
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a DB session; tests commit explicitly before hitting the app."""
    session_factory = create_session_factory(db_engine)
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest_asyncio.fixture
async def app(db_engine, fake_transport):
    """Create a FastAPI app instance wired to the test database."""
    import db.database as db_mod
    from app.dependencies import get_content_generator, get_email_transport
    from app.main import create_app

    original_engine = db_mod.engine
    original_session = db_mod.AsyncSessionLocal
    db_mod.engine = db_engine
    db_mod.AsyncSessionLocal = create_session_factory(db_engine)

    test_app = create_app()
    test_app.dependency_overrides[get_email_transport] = lambda: fake_transport
    test_app.dependency_overrides[get_content_generator] = lambda: None

    yield test_app

    db_mod.engine = original_engine
    db_mod.AsyncSessionLocal = original_session


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac


@pytest.fixture
def actor_headers() -> dict:
    return {"X-Actor-Id": ACTOR_ID}
