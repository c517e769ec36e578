"""ScheduledMessage model for the lead automation engine."""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column

from core.constants import ScheduledMessageStatus
from db.base import BaseModel, UTCDateTime


class ScheduledMessage(BaseModel):
    """An email queued for delivery at ``scheduled_at``.

    Written by deferred email steps and by the retry fallback; a separate
    sender process delivers pending rows when they come due.
    """

    __tablename__ = "scheduled_messages"

    owner_id: Mapped[str] = mapped_column(nullable=False, index=True)
    lead_id: Mapped[str] = mapped_column(nullable=False, index=True)
    to_email: Mapped[str] = mapped_column(nullable=False)
    subject: Mapped[str] = mapped_column(nullable=False, default="")
    body: Mapped[str] = mapped_column(nullable=False, default="")
    scheduled_at: Mapped[datetime] = mapped_column(UTCDateTime(), index=True)
    status: Mapped[str] = mapped_column(
        default=ScheduledMessageStatus.PENDING.value, index=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(nullable=True)
