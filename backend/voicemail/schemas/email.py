from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ForwardingInfo(CamelModel):
    original_from: Optional[str] = None
    original_from_name: Optional[str] = None
    original_to: Optional[str] = None
    original_date: Optional[str] = None
    original_subject: Optional[str] = None


class EmailBase(CamelModel):
    message_id: str
    from_email: str
    from_name: Optional[str] = None
    to_email: str
    subject: str
    text_content: Optional[str] = None
    html_content: Optional[str] = None
    attachments: List[str] = []
    is_forwarded: bool = False
    original_from: Optional[str] = None
    original_from_name: Optional[str] = None
    original_to: Optional[str] = None
    original_date: Optional[str] = None
    original_subject: Optional[str] = None
    actual_sender_email: Optional[str] = None
    actual_sender_name: Optional[str] = None

    @field_validator('attachments', mode='before')
    @classmethod
    def _none_as_empty(cls, v):
        return [] if v is None else v


class EmailCreate(EmailBase):
    received_at: Optional[datetime] = None
    is_read: bool = False
    is_important: bool = False
    is_deleted: bool = False


class EmailOut(EmailBase):
    id: int
    received_at: datetime
    is_read: bool
    is_important: bool
    is_deleted: bool


class EmailUpdate(CamelModel):
    is_read: Optional[bool] = None
    is_important: Optional[bool] = None
    is_deleted: Optional[bool] = None
    subject: Optional[str] = None
    from_name: Optional[str] = None


class EmailAudioRequest(CamelModel):
    email_id: Optional[int] = None
    content: str
    subject: Optional[str] = None
    sender: Optional[str] = None


class PostmarkAttachment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(alias='Name')
    content_type: Optional[str] = Field(None, alias='ContentType')
    content_length: Optional[int] = Field(None, alias='ContentLength')


class PostmarkHeader(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    name: str = Field(alias='Name')
    value: str = Field(alias='Value')


class PostmarkInbound(BaseModel):
    """Inbound webhook payload as posted by Postmark (PascalCase keys)."""
    model_config = ConfigDict(populate_by_name=True)
    message_id: str = Field(alias='MessageID', min_length=1)
    from_email: str = Field(alias='From', min_length=1)
    from_name: Optional[str] = Field(None, alias='FromName')
    to: str = Field(alias='To')
    subject: str = Field(alias='Subject')
    text_body: Optional[str] = Field(None, alias='TextBody')
    html_body: Optional[str] = Field(None, alias='HtmlBody')
    date: str = Field(alias='Date')
    cc: Optional[str] = Field(None, alias='Cc')
    reply_to: Optional[str] = Field(None, alias='ReplyTo')
    attachments: List[PostmarkAttachment] = Field(default_factory=list, alias='Attachments')
    headers: List[PostmarkHeader] = Field(default_factory=list, alias='Headers')

    @field_validator('attachments', 'headers', mode='before')
    @classmethod
    def _none_as_empty(cls, v):
        return [] if v is None else v


class SimulatedEmail(CamelModel):
    from_: EmailStr = Field(alias='from')
    from_name: Optional[str] = None
    subject: str = Field(min_length=1)
    text_body: Optional[str] = None
    html_body: Optional[str] = None


class VoiceCommandOut(CamelModel):
    id: int
    transcript: str
    intent: str
    confidence: int
    executed_at: datetime
    success: bool
