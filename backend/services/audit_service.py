"""Audit service — append-only audit log."""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import CollaboratorError
from db.models.audit_log import AuditLog as AuditRow
from integrations.base import AuditLog


class AuditService(AuditLog):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, actor_id: str, action: str, details: str) -> None:
        try:
            self.db.add(AuditRow(user_id=actor_id, action=action, details=details))
            await self.db.flush()
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Audit write failed: {e}") from e

    async def recent(self, actor_id: str, limit: int = 50) -> list[AuditRow]:
        result = await self.db.execute(
            select(AuditRow)
            .where(AuditRow.user_id == actor_id)
            .order_by(AuditRow.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
