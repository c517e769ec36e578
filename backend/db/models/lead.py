"""Lead model for the lead automation engine."""

from typing import Optional

from sqlalchemy import JSON, Float
from sqlalchemy.orm import Mapped, mapped_column

from db.base import BaseModel, SoftDeleteMixin


class Lead(SoftDeleteMixin, BaseModel):
    """Lead model representing a prospect workflows act upon.

    Attributes:
        id: Unique identifier (UUID string)
        owner_id: User who owns the lead
        name: Full name
        company: Company name
        email: Contact address (may be empty)
        score: Lead score (0-100)
        status: Pipeline status (New, Contacted, Qualified, ...)
        insights: Free-text AI insight
        last_activity: Free-text description of the latest activity
        knowledge_base: Arbitrary research fields (industry, title, notes, ...)
    """

    __tablename__ = "leads"

    owner_id: Mapped[str] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(nullable=False, default="")
    company: Mapped[str] = mapped_column(nullable=False, default="")
    email: Mapped[str] = mapped_column(nullable=False, default="", index=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    status: Mapped[str] = mapped_column(nullable=False, default="New", index=True)
    insights: Mapped[str] = mapped_column(nullable=False, default="")
    last_activity: Mapped[Optional[str]] = mapped_column(nullable=True)
    knowledge_base: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
