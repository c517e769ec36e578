"""FastAPI dependency injection functions."""

import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from core.exceptions import ActorRequiredError
from db import database
from integrations.base import Collaborators, ContentGenerator, MessageTransport
from integrations.claude_client import ClaudeContentGenerator, get_claude_client
from integrations.email_transport import HttpEmailTransport
from services.audit_service import AuditService
from services.lead_service import LeadService
from services.run_store import RunStore
from services.scheduler_service import MessageSchedulerService
from services.template_service import TemplateService
from workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)


async def get_db() -> AsyncSession:
    """
    Provide a database session for API endpoints.

    Yields an async SQLAlchemy session that is automatically
    committed on success or rolled back on error.
    """
    async with database.AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Database error: {str(e)}")
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> str:
    """
    Identify the calling user.

    Authentication happens upstream; the gateway forwards the verified
    user id in the X-Actor-Id header.
    """
    if not x_actor_id:
        raise ActorRequiredError()
    return x_actor_id


_email_transport: Optional[HttpEmailTransport] = None


def get_email_transport() -> MessageTransport:
    """Shared HTTP email transport."""
    global _email_transport
    if _email_transport is None:
        _email_transport = HttpEmailTransport()
    return _email_transport


async def close_email_transport():
    global _email_transport
    if _email_transport is not None:
        await _email_transport.close()
        _email_transport = None


def get_content_generator() -> Optional[ContentGenerator]:
    """Claude-backed generator, or None when no API key is configured."""
    client = get_claude_client()
    return ClaudeContentGenerator(client) if client else None


async def get_collaborators(
    db: AsyncSession = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    transport: MessageTransport = Depends(get_email_transport),
    content_generator: Optional[ContentGenerator] = Depends(get_content_generator),
) -> Collaborators:
    """SQL-backed collaborators scoped to the calling user."""
    return Collaborators(
        record_store=LeadService(db, actor_id),
        transport=transport,
        scheduler=MessageSchedulerService(db, actor_id),
        templates=TemplateService(db, actor_id),
        audit_log=AuditService(db),
        runs=RunStore(db, actor_id),
        content_generator=content_generator,
    )


async def get_workflow_engine(
    collaborators: Collaborators = Depends(get_collaborators),
) -> WorkflowEngine:
    return WorkflowEngine(collaborators, settings=get_settings())
