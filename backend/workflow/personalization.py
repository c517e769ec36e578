"""Personalization tag resolution.

Replaces ``{{tag}}`` placeholders in subjects and bodies with lead, knowledge
base and sender values. Matching is case-insensitive and done in a single
pass; any tag without a value is stripped so raw placeholders never reach a
recipient.
"""

import re
from typing import Any, Callable, Optional

from workflow.models import Lead, SenderProfile

TAG_PATTERN = re.compile(r"\{\{\s*([a-z0-9_]+)\s*\}\}", re.IGNORECASE)


def format_value(value: Any) -> str:
    """Render a field value the way it should appear in copy."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return format_value(value[0]) if value else ""
    return str(value)


def _kb(key: str) -> Callable[[Lead, SenderProfile], Any]:
    return lambda lead, sender: lead.knowledge(key)


def _insight(lead: Lead, sender: SenderProfile) -> str:
    return lead.insights


# Tag name -> resolver. Aliases point at the same source.
_RESOLVERS: dict[str, Callable[[Lead, SenderProfile], Any]] = {
    # Lead identity
    "first_name": lambda lead, sender: lead.first_name,
    "last_name": lambda lead, sender: lead.last_name,
    "full_name": lambda lead, sender: lead.name,
    "name": lambda lead, sender: lead.name,
    "lead_name": lambda lead, sender: lead.name,
    "company": lambda lead, sender: lead.company,
    "email": lambda lead, sender: lead.email,
    # Knowledge base
    "title": _kb("title"),
    "job_title": _kb("title"),
    "industry": _kb("industry"),
    "location": _kb("location"),
    "company_overview": _kb("company_overview"),
    "talking_point": _kb("talking_points"),
    "outreach_angle": _kb("outreach_angle"),
    "mentioned_on_website": _kb("mentioned_on_website"),
    "company_size": _kb("employee_count"),
    "employee_count": _kb("employee_count"),
    # AI insights
    "ai_insight": _insight,
    "insights": _insight,
    "insight_1": _insight,
    "recent_activity": lambda lead, sender: lead.last_activity or lead.insights,
    # Lead metadata
    "score": lambda lead, sender: lead.score,
    # Sender
    "your_name": lambda lead, sender: sender.sender_name,
    "sender_name": lambda lead, sender: sender.sender_name,
    "sender_company": lambda lead, sender: sender.company_name,
    "value_prop": lambda lead, sender: sender.value_prop,
    "value_proposition": lambda lead, sender: sender.value_prop,
    "products_services": lambda lead, sender: sender.products_services,
    "target_audience": lambda lead, sender: sender.target_audience,
}


def resolve_tag(tag: str, lead: Lead, sender: Optional[SenderProfile] = None) -> str:
    """Resolve one tag name. Unknown tags fall back to a knowledge-base
    field of the same name, then to the empty string."""
    sender = sender or SenderProfile()
    key = tag.lower()
    resolver = _RESOLVERS.get(key)
    if resolver is not None:
        return format_value(resolver(lead, sender))
    return format_value(lead.knowledge(key))


def resolve(
    template: str,
    lead: Lead,
    sender_name: Optional[str] = None,
    sender: Optional[SenderProfile] = None,
) -> str:
    """Substitute every ``{{tag}}`` in ``template`` for ``lead``.

    Args:
        template: Subject or body text containing placeholders
        lead: Lead supplying the values
        sender_name: Overrides ``{{your_name}}`` / ``{{sender_name}}``
        sender: Optional sender profile for sender-side tags

    Returns:
        Text with all placeholders replaced; unresolvable tags become ""
    """
    if not template:
        return ""
    profile = sender or SenderProfile()
    if sender_name:
        profile = profile.model_copy(update={"sender_name": sender_name})
    return TAG_PATTERN.sub(lambda m: resolve_tag(m.group(1), lead, profile), template)
