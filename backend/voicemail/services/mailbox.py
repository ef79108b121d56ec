import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from fastapi import Depends

from ..db.database import get_db
from ..models.email_model import Email, VoiceCommand
from ..schemas.email import EmailCreate

log = logging.getLogger(__name__)


class MailboxStoreError(RuntimeError):
    """Raised when the underlying database rejects or fails an operation."""


class DuplicateMessageError(MailboxStoreError):
    pass


def _is_unique_violation(e: IntegrityError) -> bool:
    # sqlite: "UNIQUE constraint failed", postgres: "duplicate key value violates unique constraint"
    msg = str(e.orig).lower()
    return 'unique' in msg or 'duplicate' in msg


def _as_utc(dt: datetime) -> datetime:
    """Naive UTC for storage. SQLite DateTime columns drop the offset, keeping only wall-clock time."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _like_pattern(term: str) -> str:
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


class MailboxStore:
    """Email and voice command persistence on top of a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, what: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_unique_violation(e):
                raise DuplicateMessageError(f"{what}: {e.orig}") from e
            log.error("mailbox_constraint_failed", exc_info=e, extra={"component": "mailbox"})
            raise MailboxStoreError(f"{what} violated a constraint: {e.orig}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("mailbox_commit_failed", exc_info=e, extra={"component": "mailbox"})
            raise MailboxStoreError(f"{what} failed") from e

    def get_emails(
        self,
        is_read: Optional[bool] = None,
        is_important: Optional[bool] = None,
        is_deleted: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Email]:
        """Filtered read, newest first. A filter left as None is not applied."""
        try:
            q = self.db.query(Email)
            if is_read is not None:
                q = q.filter(Email.is_read == is_read)
            if is_important is not None:
                q = q.filter(Email.is_important == is_important)
            if is_deleted is not None:
                q = q.filter(Email.is_deleted == is_deleted)
            q = q.order_by(Email.received_at.desc(), Email.id.desc())
            if offset:
                q = q.offset(offset)
            if limit:
                q = q.limit(limit)
            return q.all()
        except SQLAlchemyError as e:
            raise MailboxStoreError("get_emails failed") from e

    def get_email(self, email_id: int) -> Optional[Email]:
        try:
            return self.db.query(Email).filter(Email.id == email_id).first()
        except SQLAlchemyError as e:
            raise MailboxStoreError("get_email failed") from e

    def get_email_by_message_id(self, message_id: str) -> Optional[Email]:
        try:
            return self.db.query(Email).filter(Email.message_id == message_id).first()
        except SQLAlchemyError as e:
            raise MailboxStoreError("get_email_by_message_id failed") from e

    def create_email(self, payload: EmailCreate) -> Email:
        data = payload.model_dump()
        data['received_at'] = _as_utc(data.get('received_at') or datetime.now(timezone.utc))
        email = Email(**data)
        self.db.add(email)
        self._commit("create_email")
        self.db.refresh(email)
        return email

    def update_email(self, email_id: int, **changes) -> Optional[Email]:
        email = self.get_email(email_id)
        if not email:
            return None
        for k, v in changes.items():
            setattr(email, k, v)
        self._commit("update_email")
        self.db.refresh(email)
        return email

    def delete_email(self, email_id: int) -> bool:
        """Physically remove the row. Archiving is update_email(is_deleted=True)."""
        email = self.get_email(email_id)
        if not email:
            return False
        self.db.delete(email)
        self._commit("delete_email")
        return True

    def search_emails(self, query: str) -> List[Email]:
        """Case-insensitive containment over subject, sender and body of non-archived emails."""
        like = _like_pattern(query)
        try:
            return (
                self.db.query(Email)
                .filter(Email.is_deleted == False)  # noqa: E712
                .filter(or_(
                    Email.subject.ilike(like, escape='\\'),
                    Email.from_email.ilike(like, escape='\\'),
                    Email.from_name.ilike(like, escape='\\'),
                    Email.text_content.ilike(like, escape='\\'),
                ))
                .order_by(Email.received_at.desc(), Email.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise MailboxStoreError("search_emails failed") from e

    def unread_count(self) -> int:
        try:
            return self.db.query(Email).filter(Email.is_read == False, Email.is_deleted == False).count()  # noqa: E712
        except SQLAlchemyError as e:
            raise MailboxStoreError("unread_count failed") from e

    def count(self) -> int:
        return self.db.query(Email).count()

    def create_voice_command(self, transcript: str, intent: str, confidence: int, success: bool) -> VoiceCommand:
        cmd = VoiceCommand(transcript=transcript, intent=intent, confidence=confidence, success=success)
        self.db.add(cmd)
        self._commit("create_voice_command")
        self.db.refresh(cmd)
        return cmd

    def get_voice_commands(self, limit: int = 50) -> List[VoiceCommand]:
        return (
            self.db.query(VoiceCommand)
            .order_by(VoiceCommand.executed_at.desc(), VoiceCommand.id.desc())
            .limit(limit)
            .all()
        )


def get_store(db: Session = Depends(get_db)) -> MailboxStore:
    return MailboxStore(db)
