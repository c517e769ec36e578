"""Template service — Template Provider backed by the email_templates table."""

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import CollaboratorError
from db.models.email_template import EmailTemplate as TemplateRow
from integrations.base import EmailTemplate, TemplateProvider


class TemplateService(TemplateProvider):
    """Looks templates up by id or category.

    The owner's own template wins over a shared default (``owner_id``
    NULL) with the same category.
    """

    def __init__(self, db: AsyncSession, owner_id: str):
        self.db = db
        self.owner_id = owner_id

    async def get_template(self, template_id: str) -> Optional[EmailTemplate]:
        query = (
            select(TemplateRow)
            .where(
                or_(TemplateRow.id == template_id, TemplateRow.category == template_id),
                or_(TemplateRow.owner_id == self.owner_id, TemplateRow.owner_id.is_(None)),
            )
            .order_by(TemplateRow.owner_id.is_(None), TemplateRow.is_default.desc())
            .limit(1)
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise CollaboratorError(f"Template lookup failed: {e}") from e

        row = result.scalar_one_or_none()
        if row is None:
            return None
        return EmailTemplate(
            id=row.id,
            name=row.name,
            subject_template=row.subject_template,
            body_template=row.body_template,
        )
