from datetime import datetime
from enum import Enum
from pydantic import Field
from typing import Optional, List, Literal

from .email import CamelModel, EmailOut


class Action(str, Enum):
    READ_EMAILS = 'read_emails'
    GET_UNREAD = 'get_unread'
    GET_READ = 'get_read'
    SEARCH_EMAILS = 'search_emails'
    MARK_AS_READ = 'mark_as_read'
    MARK_UNREAD = 'mark_unread'
    DELETE_EMAILS = 'delete_emails'
    MARK_IMPORTANT = 'mark_important'
    REMOVE_IMPORTANT = 'remove_important'
    ARCHIVE_EMAILS = 'archive_emails'
    RESTORE_EMAILS = 'restore_emails'
    UNARCHIVE_EMAILS = 'unarchive_emails'
    GET_IMPORTANT = 'get_important'
    GET_RECENT = 'get_recent'
    GET_ARCHIVED = 'get_archived'
    PERMANENTLY_DELETE = 'permanently_delete'
    COMPOSE_EMAIL = 'compose_email'
    REPLY_EMAIL = 'reply_email'
    FORWARD_EMAIL = 'forward_email'
    SWITCH_TAB = 'switch_tab'
    UNKNOWN = 'unknown'


Tab = Literal['all', 'unread', 'read', 'important', 'archived']
TABS = ('all', 'unread', 'read', 'important', 'archived')


class IntentParameters(CamelModel):
    query: Optional[str] = None
    email_id: Optional[int] = None
    sender: Optional[str] = None
    subject: Optional[str] = None
    all: Optional[bool] = None
    recipient: Optional[str] = None
    message: Optional[str] = None
    timeframe: Optional[str] = None
    tab: Optional[Tab] = None


class Intent(CamelModel):
    action: Action = Action.UNKNOWN
    parameters: IntentParameters = Field(default_factory=IntentParameters)
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class CommandResult(CamelModel):
    intent: Intent
    emails: Optional[List[EmailOut]] = None
    summary: Optional[str] = None
    switch_tab: Optional[str] = None


class VoiceSettings(CamelModel):
    voice_id: str = '21m00Tcm4TlvDq8ikWAM'  # Rachel
    stability: float = 0.5
    similarity_boost: float = 0.75
    style: float = 0.0
    use_speaker_boost: bool = True


class QuotaInfo(CamelModel):
    characters_used: int
    characters_limit: int
    characters_remaining: int
    last_checked: datetime
