from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON
from ..db.database import Base
from datetime import datetime, timezone

class Email(Base):
    __tablename__ = 'emails'
    id = Column(Integer, primary_key=True, index=True)
    # provider-assigned id; duplicate ingestion of the same value is a no-op
    message_id = Column(String, unique=True, nullable=False, index=True)
    from_email = Column(String, nullable=False, index=True)
    from_name = Column(String, nullable=True)
    to_email = Column(String, nullable=False)
    subject = Column(String, nullable=False, index=True)
    text_content = Column(Text, nullable=True)
    html_content = Column(Text, nullable=True)
    received_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    is_important = Column(Boolean, default=False, nullable=False, index=True)
    # archived, not removed
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    attachments = Column(JSON, default=list)
    is_forwarded = Column(Boolean, default=False, nullable=False)
    original_from = Column(String, nullable=True)
    original_from_name = Column(String, nullable=True)
    original_to = Column(String, nullable=True)
    # kept as the display string from the forwarded block, never parsed
    original_date = Column(String, nullable=True)
    original_subject = Column(String, nullable=True)
    actual_sender_email = Column(String, nullable=True)
    actual_sender_name = Column(String, nullable=True)


class VoiceCommand(Base):
    __tablename__ = 'voice_commands'
    id = Column(Integer, primary_key=True, index=True)
    transcript = Column(Text, nullable=False)
    intent = Column(String, nullable=False, index=True)
    confidence = Column(Integer, nullable=False)  # 0..100
    executed_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    success = Column(Boolean, default=True, nullable=False)
