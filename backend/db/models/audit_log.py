"""AuditLog model for the lead automation engine."""

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import AuditAction
from db.base import BaseModel


class AuditLog(BaseModel):
    """Append-only record of automation activity.

    Attributes:
        id: Unique identifier (UUID string)
        user_id: Actor the entry is attributed to
        action: AUTOMATION_EXECUTED, AUTOMATION_ALERT, AUTOMATION_FALLBACK_ALERT
        details: Human-readable description
        created_at: Creation timestamp
    """

    __tablename__ = "audit_logs"

    user_id: Mapped[str] = mapped_column(nullable=False, index=True)
    action: Mapped[str] = mapped_column(
        default=AuditAction.AUTOMATION_EXECUTED.value, index=True
    )
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
