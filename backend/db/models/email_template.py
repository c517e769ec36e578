"""EmailTemplate model for the lead automation engine."""

from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column

from db.base import BaseModel


class EmailTemplate(BaseModel):
    """Reusable email template with personalization tags.

    Rows with ``owner_id`` NULL are shared defaults; a user's own template
    wins over a default with the same category.
    """

    __tablename__ = "email_templates"

    owner_id: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    name: Mapped[str] = mapped_column(nullable=False)
    category: Mapped[str] = mapped_column(nullable=False, index=True)
    subject_template: Mapped[str] = mapped_column(nullable=False, default="")
    body_template: Mapped[str] = mapped_column(nullable=False, default="")
    is_default: Mapped[bool] = mapped_column(default=False)
