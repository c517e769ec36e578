"""Database models for the lead automation engine.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.workflow import Workflow
from db.models.lead import Lead
from db.models.email_template import EmailTemplate
from db.models.execution import WorkflowExecution
from db.models.scheduled_message import ScheduledMessage
from db.models.audit_log import AuditLog

__all__ = [
    "Workflow",
    "Lead",
    "EmailTemplate",
    "WorkflowExecution",
    "ScheduledMessage",
    "AuditLog",
]
