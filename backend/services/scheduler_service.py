"""Message scheduler service — writes deferred emails to scheduled_messages."""

from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import ScheduledMessageStatus
from core.exceptions import CollaboratorError
from db.models.scheduled_message import ScheduledMessage
from integrations.base import MessageContent, MessageScheduler, ScheduleResult
from workflow.models import Lead

logger = structlog.get_logger(__name__)


class MessageSchedulerService(MessageScheduler):
    def __init__(self, db: AsyncSession, owner_id: str):
        self.db = db
        self.owner_id = owner_id

    async def schedule_message(
        self,
        records: list[Lead],
        content: MessageContent,
        scheduled_at: datetime,
    ) -> ScheduleResult:
        """Queue one message per lead.

        ``content`` is stored as given; callers resolve personalization
        first. Leads without an address are reported as failures.
        """
        failures: list[str] = []
        rows = []
        for lead in records:
            if not lead.email:
                failures.append(f"{lead.name or lead.id}: no email address")
                continue
            rows.append(ScheduledMessage(
                owner_id=self.owner_id,
                lead_id=lead.id,
                to_email=lead.email,
                subject=content.subject,
                body=content.body,
                scheduled_at=scheduled_at,
                status=ScheduledMessageStatus.PENDING.value,
            ))

        if rows:
            try:
                self.db.add_all(rows)
                await self.db.flush()
            except SQLAlchemyError as e:
                raise CollaboratorError(f"Scheduling failed: {e}") from e

        logger.info(
            "Messages scheduled",
            scheduled=len(rows),
            failed=len(failures),
            scheduled_at=scheduled_at.isoformat(),
        )
        return ScheduleResult(scheduled_count=len(rows), failures=failures)
