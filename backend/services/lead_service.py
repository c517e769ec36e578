"""Lead service — Record Store backed by the leads table."""

from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import CollaboratorError
from db.models.lead import Lead as LeadRow
from integrations.base import MutationResult, RecordStore
from services.base import BaseService
from workflow.models import Lead

logger = structlog.get_logger(__name__)

# Patch keys the engine may send, mapped to columns.
_PATCHABLE = {
    "status": "status",
    "score": "score",
    "knowledge_base": "knowledge_base",
    "knowledgeBase": "knowledge_base",
    "insights": "insights",
    "last_activity": "last_activity",
    "lastActivity": "last_activity",
}


def to_lead(row: LeadRow) -> Lead:
    return Lead(
        id=row.id,
        name=row.name,
        company=row.company,
        email=row.email,
        score=row.score,
        status=row.status,
        insights=row.insights,
        last_activity=row.last_activity or "",
        knowledge_base=dict(row.knowledge_base or {}),
    )


class LeadService(BaseService[LeadRow], RecordStore):
    """Leads owned by one user."""

    def __init__(self, db: AsyncSession, owner_id: str):
        super().__init__(LeadRow, db, owner_id)

    async def get_records(self, filter: dict[str, Any]) -> list[Lead]:
        """Leads matching ``filter``.

        Supported keys: ``ids`` (list), ``status``, ``min_score``, ``limit``.
        With ``ids`` the result keeps the requested order.
        """
        filters: dict[str, Any] = {}
        if filter.get("ids") is not None:
            filters["id"] = list(filter["ids"])
        if filter.get("status"):
            filters["status"] = filter["status"]
        criteria = []
        if filter.get("min_score") is not None:
            criteria.append(LeadRow.score >= float(filter["min_score"]))

        try:
            rows = await self.list(
                limit=int(filter.get("limit", 500)), filters=filters, criteria=criteria
            )
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Lead query failed: {e}") from e

        leads = [to_lead(row) for row in rows]
        if filter.get("ids") is not None:
            order = {lead_id: i for i, lead_id in enumerate(filter["ids"])}
            leads.sort(key=lambda lead: order.get(lead.id, len(order)))
        return leads

    async def update_record(self, record_id: str, patch: dict[str, Any]) -> MutationResult:
        data = {_PATCHABLE[key]: value for key, value in patch.items() if key in _PATCHABLE}
        if not data:
            return MutationResult(success=False, error="Nothing to update")

        try:
            row = await self.update(record_id, data)
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Lead update failed: {e}") from e

        if row is None:
            return MutationResult(success=False, error=f"Lead {record_id} not found")
        logger.info("Lead updated", lead_id=record_id, fields=sorted(data))
        return MutationResult(success=True)
