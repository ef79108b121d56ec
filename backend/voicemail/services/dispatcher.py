"""Execute a resolved Intent against the mailbox.

Every Action has exactly one handler registered with ``@handles``; the module
refuses to import if one is missing. Handlers follow the same targeting order:
``all`` first, then an explicit target (``emailId``, ``sender`` or ``query``),
then either the documented fallback or a clarifying question with no mutation.

Bulk changes are applied one email at a time. A MailboxStoreError stops the
loop and the summary reports how many emails were actually changed.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from ..models.email_model import Email
from ..schemas.email import EmailOut
from ..schemas.voice import Action, CommandResult, Intent
from .mailbox import MailboxStore, MailboxStoreError
from .summarizer import generate_email_summary

log = logging.getLogger(__name__)

Summarize = Callable[[List[Email]], str]
Handler = Callable[["ActionDispatcher", Intent], CommandResult]

HANDLERS: Dict[Action, Handler] = {}

READ_LIMIT = 5
RECENT_LIMIT = 10

CAPABILITIES = (
    "I can help you read emails, search, mark as read/unread/important, archive/restore emails, "
    "switch tabs, or permanently delete them. What would you like me to do?"
)


def handles(*actions: Action):
    def register(fn: Handler) -> Handler:
        for a in actions:
            HANDLERS[a] = fn
        return fn
    return register


def _count(n: int, noun: str = "email") -> str:
    return f"{n} {noun}" if n == 1 else f"{n} {noun}s"


def _contains(value: Optional[str], term: str) -> bool:
    return bool(value) and term.casefold() in value.casefold()


@dataclass
class BulkOutcome:
    total: int
    done: int = 0
    failed: bool = False

    def note(self) -> str:
        if not self.failed:
            return ""
        left = self.total - self.done
        return f" I stopped after {self.done} of {self.total} because the mailbox ran into a problem; the other {left} were left unchanged."


@dataclass
class ActionDispatcher:
    store: MailboxStore
    summarize: Summarize = field(default=generate_email_summary)

    def execute(self, intent: Intent) -> CommandResult:
        handler = HANDLERS.get(intent.action, HANDLERS[Action.UNKNOWN])
        log.info("dispatch", extra={"component": "dispatcher", "action": intent.action.value})
        return handler(self, intent)

    def update_each(self, emails: Iterable[Email], **changes) -> BulkOutcome:
        ids = [e.id for e in emails]
        outcome = BulkOutcome(total=len(ids))
        for email_id in ids:
            try:
                updated = self.store.update_email(email_id, **changes)
            except MailboxStoreError as e:
                log.error("bulk_update_aborted", exc_info=e, extra={"component": "dispatcher", "email_id": email_id, "count": outcome.done})
                outcome.failed = True
                break
            if updated is not None:
                outcome.done += 1
        return outcome

    def delete_each(self, emails: Iterable[Email]) -> BulkOutcome:
        ids = [e.id for e in emails]
        outcome = BulkOutcome(total=len(ids))
        for email_id in ids:
            try:
                removed = self.store.delete_email(email_id)
            except MailboxStoreError as e:
                log.error("bulk_delete_aborted", exc_info=e, extra={"component": "dispatcher", "email_id": email_id, "count": outcome.done})
                outcome.failed = True
                break
            if removed:
                outcome.done += 1
        return outcome

    def digest(self, emails: List[Email]) -> str:
        return self.summarize(emails)


def _result(intent: Intent, summary: str, emails: Optional[List[Email]] = None, switch_tab: Optional[str] = None) -> CommandResult:
    return CommandResult(
        intent=intent,
        summary=summary,
        emails=[EmailOut.model_validate(e) for e in emails] if emails is not None else None,
        switch_tab=switch_tab,
    )


# ---- reading ---------------------------------------------------------------

READ_FILTERS = {
    Action.GET_UNREAD: False,
    Action.GET_READ: True,
    Action.READ_EMAILS: None,
}

NOTHING_TO_READ = {
    Action.GET_UNREAD: "Great news! You're all caught up - no unread emails in your inbox.",
    Action.GET_READ: "You don't have any read emails in your inbox.",
    Action.READ_EMAILS: "Your inbox is empty right now.",
}


@handles(Action.READ_EMAILS, Action.GET_UNREAD, Action.GET_READ)
def read_emails(d: ActionDispatcher, intent: Intent) -> CommandResult:
    emails = d.store.get_emails(is_read=READ_FILTERS[intent.action], is_deleted=False, limit=READ_LIMIT)
    if not emails:
        return _result(intent, NOTHING_TO_READ[intent.action])
    return _result(intent, d.digest(emails), emails)


@handles(Action.SEARCH_EMAILS)
def search_emails(d: ActionDispatcher, intent: Intent) -> CommandResult:
    p = intent.parameters
    if p.sender:
        found = d.store.search_emails(p.sender)
        if not found:
            return _result(intent, f"I couldn't find any emails from {p.sender}. Double-check the name or try searching for something else.", found)
        return _result(intent, f"I found {_count(len(found))} from {p.sender}. {d.digest(found)}", found)
    if p.query:
        found = d.store.search_emails(p.query)
        if not found:
            return _result(intent, f"No emails found for \"{p.query}\". Try different keywords or check the spelling.", found)
        return _result(intent, f"I found {_count(len(found))} matching \"{p.query}\". {d.digest(found)}", found)
    return _result(intent, "What would you like me to search for? You can say something like 'find emails from Sarah' or 'search for meeting emails'.")


@handles(Action.GET_IMPORTANT)
def get_important(d: ActionDispatcher, intent: Intent) -> CommandResult:
    emails = d.store.get_emails(is_important=True, is_deleted=False)
    if not emails:
        return _result(intent, "You don't have any emails marked as important right now.", emails)
    return _result(intent, f"You have {_count(len(emails), 'important email')}. {d.digest(emails)}", emails)


@handles(Action.GET_RECENT)
def get_recent(d: ActionDispatcher, intent: Intent) -> CommandResult:
    # timeframe only changes the wording; the window is always the latest ten
    timeframe = intent.parameters.timeframe or 'recent'
    emails = d.store.get_emails(is_deleted=False, limit=RECENT_LIMIT)
    if not emails:
        return _result(intent, "No recent emails found.", emails)
    return _result(intent, f"Here are your {timeframe} emails. {d.digest(emails)}", emails)


@handles(Action.GET_ARCHIVED)
def get_archived(d: ActionDispatcher, intent: Intent) -> CommandResult:
    emails = d.store.get_emails(is_deleted=True)
    if not emails:
        return _result(intent, "You don't have any archived emails.", emails)
    return _result(intent, f"You have {_count(len(emails), 'archived email')}. {d.digest(emails)}", emails)


# ---- flags -----------------------------------------------------------------

@dataclass(frozen=True)
class FlagRule:
    flag: str
    value: bool
    # emails whose flag would actually change under "all"
    pending: Dict[str, bool]
    # where the implicit single target is picked from
    fallback: Dict[str, bool]
    noun: str
    all_done: str
    all_none: str
    one_done: str
    recent_done: str
    recent_none: str


FLAG_RULES = {
    Action.MARK_AS_READ: FlagRule(
        'is_read', True,
        pending={'is_read': False, 'is_deleted': False},
        fallback={'is_deleted': False},
        noun="unread email",
        all_done="Perfect! I've marked {count} as read.",
        all_none="You're already all caught up - no unread emails to mark!",
        one_done="Done! Marked that email as read.",
        recent_done="Most recent email marked as read.",
        recent_none="No emails found to mark as read.",
    ),
    Action.MARK_UNREAD: FlagRule(
        'is_read', False,
        pending={'is_read': True, 'is_deleted': False},
        fallback={'is_deleted': False},
        noun="read email",
        all_done="Marked {count} as unread.",
        all_none="There are no read emails to mark as unread.",
        one_done="Email marked as unread.",
        recent_done="Most recent email marked as unread.",
        recent_none="No emails found to mark as unread.",
    ),
    Action.MARK_IMPORTANT: FlagRule(
        'is_important', True,
        pending={'is_important': False, 'is_deleted': False},
        fallback={'is_deleted': False},
        noun="email",
        all_done="Marked {count} as important.",
        all_none="Every email in your inbox is already marked as important.",
        one_done="Email marked as important.",
        recent_done="Most recent email marked as important.",
        recent_none="No emails found to mark as important.",
    ),
    Action.REMOVE_IMPORTANT: FlagRule(
        'is_important', False,
        pending={'is_important': True, 'is_deleted': False},
        fallback={'is_important': True, 'is_deleted': False},
        noun="important email",
        all_done="Removed the important flag from {count}.",
        all_none="No important emails found to modify.",
        one_done="Removed important flag from email.",
        recent_done="Removed important flag from most recent important email.",
        recent_none="No important emails found to modify.",
    ),
}


@handles(*FLAG_RULES)
def set_flag(d: ActionDispatcher, intent: Intent) -> CommandResult:
    rule = FLAG_RULES[intent.action]
    p = intent.parameters
    if p.all:
        targets = d.store.get_emails(**rule.pending)
        if not targets:
            return _result(intent, rule.all_none)
        outcome = d.update_each(targets, **{rule.flag: rule.value})
        return _result(intent, rule.all_done.format(count=_count(outcome.done, rule.noun)) + outcome.note())
    if p.email_id is not None:
        updated = d.store.update_email(p.email_id, **{rule.flag: rule.value})
        if updated is None:
            return _result(intent, f"I couldn't find email number {p.email_id}.")
        return _result(intent, rule.one_done, [updated])
    # no target given: act on the latest email rather than asking
    latest = d.store.get_emails(limit=1, **rule.fallback)
    if not latest:
        return _result(intent, rule.recent_none)
    updated = d.store.update_email(latest[0].id, **{rule.flag: rule.value})
    return _result(intent, rule.recent_done, [updated] if updated else None)


# ---- archive / restore / delete --------------------------------------------

@handles(Action.DELETE_EMAILS, Action.ARCHIVE_EMAILS)
def archive_emails(d: ActionDispatcher, intent: Intent) -> CommandResult:
    p = intent.parameters
    if p.all:
        targets = d.store.get_emails(is_deleted=False)
        if not targets:
            return _result(intent, "Your inbox is already empty - nothing to archive.")
        outcome = d.update_each(targets, is_deleted=True)
        return _result(intent, f"Archived {_count(outcome.done)}." + (outcome.note() or " Your inbox is now clean."))
    if p.email_id is not None:
        updated = d.store.update_email(p.email_id, is_deleted=True)
        if updated is None:
            return _result(intent, f"I couldn't find email number {p.email_id}.")
        return _result(intent, "Email moved to the archive. You can restore it any time.", [updated])
    term = p.query or p.sender
    if term:
        targets = d.store.search_emails(term)
        if not targets:
            return _result(intent, f"No emails matched \"{term}\", so nothing was archived.")
        outcome = d.update_each(targets, is_deleted=True)
        return _result(intent, f"Archived {_count(outcome.done)} matching \"{term}\"." + outcome.note())
    return _result(intent, "Which emails would you like to archive? You can say 'archive all emails' or 'archive emails about the newsletter'.")


def _archived_from(emails: List[Email], sender: str) -> List[Email]:
    return [e for e in emails if _contains(e.from_email, sender) or _contains(e.from_name, sender)]


def _archived_matching(emails: List[Email], term: str) -> List[Email]:
    return [
        e for e in emails
        if _contains(e.subject, term) or _contains(e.from_email, term)
        or _contains(e.from_name, term) or _contains(e.text_content, term)
    ]


@handles(Action.RESTORE_EMAILS, Action.UNARCHIVE_EMAILS)
def restore_emails(d: ActionDispatcher, intent: Intent) -> CommandResult:
    p = intent.parameters
    if p.all:
        targets = d.store.get_emails(is_deleted=True)
        if not targets:
            return _result(intent, "You don't have any archived emails to restore.")
        outcome = d.update_each(targets, is_deleted=False)
        return _result(intent, f"Restored {_count(outcome.done)} from archive back to your inbox." + outcome.note())
    if p.email_id is not None:
        email = d.store.get_email(p.email_id)
        if email is None or not email.is_deleted:
            return _result(intent, f"Email number {p.email_id} isn't in your archive.")
        updated = d.store.update_email(p.email_id, is_deleted=False)
        return _result(intent, "Restored that email to your inbox.", [updated] if updated else None)
    if p.sender or p.query:
        # search only sees the inbox, so match against the archive directly
        archived = d.store.get_emails(is_deleted=True)
        if p.sender:
            targets, label = _archived_from(archived, p.sender), f"from {p.sender}"
        else:
            targets, label = _archived_matching(archived, p.query), f"matching \"{p.query}\""
        if not targets:
            return _result(intent, f"I couldn't find any archived emails {label}.")
        outcome = d.update_each(targets, is_deleted=False)
        return _result(intent, f"Restored {_count(outcome.done)} {label} back to your inbox." + outcome.note())
    return _result(intent, "Which archived emails would you like to restore? You can say 'restore all archived emails' or 'restore emails from Sarah'.")


@handles(Action.PERMANENTLY_DELETE)
def permanently_delete(d: ActionDispatcher, intent: Intent) -> CommandResult:
    p = intent.parameters
    if p.all:
        targets = d.store.get_emails(is_deleted=True)
        if not targets:
            return _result(intent, "There are no archived emails to permanently delete.")
        outcome = d.delete_each(targets)
        return _result(intent, f"Permanently deleted {_count(outcome.done, 'archived email')}. This action cannot be undone." + outcome.note())
    if p.query:
        archived = d.store.get_emails(is_deleted=True)
        targets = [e for e in archived if _contains(e.subject, p.query) or _contains(e.text_content, p.query)]
        if not targets:
            return _result(intent, f"No archived emails match \"{p.query}\", so nothing was deleted.")
        outcome = d.delete_each(targets)
        return _result(intent, f"Permanently deleted {_count(outcome.done)} matching \"{p.query}\". This action cannot be undone." + outcome.note())
    return _result(intent, "Which emails would you like to permanently delete? You can say 'permanently delete all archived emails' or specify a search term.")


# ---- not yet available -----------------------------------------------------

@handles(Action.COMPOSE_EMAIL)
def compose_email(d: ActionDispatcher, intent: Intent) -> CommandResult:
    recipient = intent.parameters.recipient or 'someone'
    return _result(intent, f"I'd love to help you compose an email to {recipient}. Email composition is not yet available. For now, you can manage your existing emails.")


@handles(Action.REPLY_EMAIL)
def reply_email(d: ActionDispatcher, intent: Intent) -> CommandResult:
    return _result(intent, "Email replies are not yet available. I can help you read, search, and organize your current emails.")


@handles(Action.FORWARD_EMAIL)
def forward_email(d: ActionDispatcher, intent: Intent) -> CommandResult:
    recipient = intent.parameters.recipient or 'someone'
    return _result(intent, f"Forwarding to {recipient} is not yet available. I can help you manage your current inbox.")


# ---- navigation / fallback -------------------------------------------------

@handles(Action.SWITCH_TAB)
def switch_tab(d: ActionDispatcher, intent: Intent) -> CommandResult:
    tab = intent.parameters.tab or 'all'
    return _result(intent, f"Switched to {tab} tab. You can now see your {tab} emails.", switch_tab=tab)


@handles(Action.UNKNOWN)
def unknown(d: ActionDispatcher, intent: Intent) -> CommandResult:
    return _result(intent, CAPABILITIES)


_missing = set(Action) - set(HANDLERS)
if _missing:  # pragma: no cover
    raise RuntimeError(f"no dispatcher handler for: {sorted(a.value for a in _missing)}")
