from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List

from ..schemas.email import EmailCreate
from .mailbox import MailboxStore
from .ingest import ingest_email

SAMPLE_EMAILS: List[Dict[str, Any]] = [
    {
        "message_id": "sample-1",
        "from_email": "john.smith@company.com",
        "from_name": "John Smith",
        "subject": "Quarterly Sales Report - Action Required",
        "text_content": "Hi there, I've attached the quarterly sales report that we discussed in yesterday's meeting. Please review the numbers in section 3 and let me know your thoughts on the projected growth for Q4. The deadline for feedback is Friday. Thanks!",
        "attachments": ["Q3_Sales_Report.pdf"],
        "is_read": False,
        "is_important": True,
    },
    {
        "message_id": "sample-2",
        "from_email": "sarah.johnson@techcorp.com",
        "from_name": "Sarah Johnson",
        "subject": "Meeting Reminder: Project Kickoff Tomorrow",
        "text_content": "Just a quick reminder about our project kickoff meeting tomorrow at 2 PM. We'll be discussing the new AI initiative and your role in the development phase. Please bring any questions you might have about the technical requirements.",
        "attachments": [],
        "is_read": False,
        "is_important": False,
    },
    {
        "message_id": "sample-3",
        "from_email": "marketing@newsletter.com",
        "from_name": "Tech Weekly",
        "subject": "This Week in AI: Voice Technology Breakthroughs",
        "text_content": "Welcome to this week's edition of Tech Weekly! This week we're covering the latest breakthroughs in voice technology, including new AI models that can understand context better than ever before.",
        "attachments": [],
        "is_read": True,
        "is_important": False,
    },
    {
        "message_id": "sample-4",
        "from_email": "support@cloudservice.com",
        "from_name": "Cloud Service Support",
        "subject": "Your Monthly Usage Report",
        "text_content": "Your monthly usage report for November is ready. You've used 45% of your allocated storage and 32% of your compute resources. All systems are running optimally.",
        "attachments": ["November_Usage_Report.pdf"],
        "is_read": True,
        "is_important": False,
    },
    {
        "message_id": "sample-5",
        "from_email": "team@startup.io",
        "from_name": "Innovation Team",
        "subject": "Urgent: API Key Rotation Required",
        "text_content": "URGENT: We need to rotate all API keys by end of day due to a security audit requirement. Please update your applications with the new keys that will be provided in a separate secure email.",
        "attachments": [],
        "is_read": False,
        "is_important": True,
    },
]


def seed_sample_emails(store: MailboxStore, to_email: str = "user@voicemail.app") -> Dict[str, Any]:
    """Insert the sample mailbox when it is empty. Safe to call repeatedly."""
    if store.count() > 0:
        return {"seeded": False, "inserted": 0}
    now = datetime.now(timezone.utc)
    inserted = 0
    for i, row in enumerate(SAMPLE_EMAILS):
        # spread out so "most recent" is deterministic: sample-1 newest
        payload = EmailCreate(to_email=to_email, received_at=now - timedelta(hours=i), **row)
        _, created = ingest_email(store, payload)
        inserted += int(created)
    return {"seeded": True, "inserted": inserted}
