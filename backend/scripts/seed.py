"""Database seed script — creates the shared email templates and, optionally,
a demo workflow with a handful of leads for one user.

Run: python -m scripts.seed
     SEED_OWNER_ID=user-1 python -m scripts.seed   # also seed demo data
"""

import asyncio
import sys
import os

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def _body(*paragraphs: str) -> str:
    return "\n".join(f"<p>{p}</p>" for p in paragraphs)


DEFAULT_TEMPLATES = [
    {
        "name": "Welcome Email",
        "category": "welcome",
        "subject_template": "Welcome to {{sender_company}}, {{first_name}}!",
        "body_template": _body(
            "Hi {{first_name}},",
            "Thanks for connecting with us. {{company}} is doing impressive work{{ai_insight}}.",
            "Would you be open to a quick 15-minute call this week?",
            "Best,<br/>{{your_name}}<br/>{{sender_company}}",
        ),
    },
    {
        "name": "Follow-Up",
        "category": "follow_up",
        "subject_template": "Quick follow-up, {{first_name}}",
        "body_template": _body(
            "Hi {{first_name}},",
            "Circling back on my last note. We help {{industry}} teams scale outreach "
            "without losing the personal touch.",
            "Does a 10-minute intro call make sense?",
            "Cheers,<br/>{{your_name}}",
        ),
    },
    {
        "name": "Case Study Share",
        "category": "case_study",
        "subject_template": "{{first_name}}, how a team like yours grew pipeline 3x",
        "body_template": _body(
            "Hi {{first_name}},",
            "A {{industry}} team recently tripled qualified pipeline in 90 days with us. "
            "Happy to walk you through how they did it.",
            "Best,<br/>{{your_name}}<br/>{{sender_company}}",
        ),
    },
    {
        "name": "Demo Invitation",
        "category": "demo_invite",
        "subject_template": "{{first_name}}, see {{sender_company}} live",
        "body_template": _body(
            "Hi {{first_name}},",
            "I'd like to show you a 20-minute demo tailored to {{company}}.",
            "Can I book a slot on your calendar this week?",
            "Talk soon,<br/>{{your_name}}",
        ),
    },
    {
        "name": "Nurture Content",
        "category": "nurture",
        "subject_template": "Quick read for you, {{first_name}}",
        "body_template": _body(
            "Hi {{first_name}},",
            "No ask today. Here is a short piece on how {{industry}} leaders are "
            "rethinking go-to-market this year.",
            "Have a great week,<br/>{{your_name}}",
        ),
    },
]

DEMO_LEADS = [
    {"name": "Ann Lee", "company": "Initech", "email": "ann@initech.example", "score": 88,
     "status": "New", "knowledge_base": {"industry": "SaaS", "title": "VP Sales"}},
    {"name": "Bob Roe", "company": "Umbrella", "email": "bob@umbrella.example", "score": 42,
     "status": "Contacted", "knowledge_base": {"industry": "Biotech"}},
    {"name": "Cara Diaz", "company": "Globex", "email": "", "score": 71,
     "status": "New", "knowledge_base": {"industry": "Logistics"}},
]

DEMO_STEPS = [
    {"id": "t1", "type": "trigger", "title": "New lead added", "config": {"triggerType": "lead_created"}},
    {"id": "c1", "type": "condition", "title": "Score above 50",
     "config": {"field": "score", "operator": "gt", "value": 50}},
    {"id": "a1", "type": "action", "title": "Send welcome email",
     "config": {"actionType": "send_email", "template": "welcome",
                "fallbackEnabled": True, "fallbackAction": "create_task"}},
    {"id": "a2", "type": "action", "title": "Update status", "config": {"newStatus": "Contacted"}},
]


async def seed():
    """Seed the database with default data."""
    from db.database import init_db
    from db.database import AsyncSessionLocal
    from db.models.email_template import EmailTemplate
    from db.models.lead import Lead
    from services.workflow_service import WorkflowService
    from sqlalchemy import select

    # Initialize DB tables
    await init_db()

    async with AsyncSessionLocal() as db:
        # 1. Shared default templates (owner_id NULL)
        created = 0
        for template in DEFAULT_TEMPLATES:
            result = await db.execute(
                select(EmailTemplate).where(
                    EmailTemplate.category == template["category"],
                    EmailTemplate.owner_id.is_(None),
                )
            )
            if result.scalar_one_or_none():
                continue
            db.add(EmailTemplate(owner_id=None, is_default=True, **template))
            created += 1

        await db.flush()
        print(f"[seed] {created} default templates created ({len(DEFAULT_TEMPLATES)} total)")

        # 2. Demo workflow and leads
        owner_id = os.environ.get("SEED_OWNER_ID")
        if owner_id:
            result = await db.execute(select(Lead).where(Lead.owner_id == owner_id).limit(1))
            if result.scalar_one_or_none():
                print(f"[seed] Demo data exists for {owner_id}")
            else:
                for lead in DEMO_LEADS:
                    db.add(Lead(owner_id=owner_id, **lead))
                workflow = await WorkflowService(db, owner_id).create_workflow(
                    "New lead nurture", DEMO_STEPS, status="active"
                )
                print(f"[seed] Created demo workflow {workflow.id} and {len(DEMO_LEADS)} leads for {owner_id}")

        await db.commit()
        print("[seed] Database seeded successfully!")


if __name__ == "__main__":
    asyncio.run(seed())
