"""Recover the original sender, recipient, date and subject from a forwarded email body.

Mail clients wrap the forwarded message differently; the delimiters below cover
Gmail, Outlook, Apple Mail and the plain "=====" style used by several webmail
clients. Only the block after the first delimiter is inspected, so a body that
repeats the marker (or nests several forwards) resolves to the outermost one.
"""
import re
from typing import Optional

from ..schemas.email import ForwardingInfo

FORWARD_DELIMITERS = [
    re.compile(r"^[ \t>]*={3,}\s*Forwarded message\s*={3,}[ \t]*$", re.I | re.M),
    re.compile(r"^[ \t>]*-{3,}\s*Forwarded message\s*-{3,}[ \t]*$", re.I | re.M),
    re.compile(r"^[ \t>]*-{3,}\s*Original Message\s*-{3,}[ \t]*$", re.I | re.M),
    re.compile(r"^[ \t>]*Begin forwarded message:", re.I | re.M),
]

FROM_RE = re.compile(r"^[ \t>]*From:[ \t]*(.+?)[ \t]*$", re.I | re.M)
TO_RE = re.compile(r"^[ \t>]*To:[ \t]*(.+?)[ \t]*$", re.I | re.M)
DATE_RE = re.compile(r"^[ \t>]*Date:[ \t]*(.+?)[ \t]*$", re.I | re.M)
SUBJECT_RE = re.compile(r"^[ \t>]*Subject:[ \t]*(.+?)[ \t]*$", re.I | re.M)

ANGLE_RE = re.compile(r"^(.*?)\s*<([^<>\s]+)>$")
BARE_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
QUOTES = "\"'"


def _first_delimiter_end(body: str) -> Optional[int]:
    found = [m for m in (p.search(body) for p in FORWARD_DELIMITERS) if m]
    if not found:
        return None
    # earliest marker wins; its end is where the forwarded headers start
    return min(found, key=lambda m: m.start()).end()


def _parse_from(line: str, info: dict):
    angle = ANGLE_RE.match(line)
    if angle:
        name = angle.group(1).strip().strip(QUOTES).strip()
        if name:
            info['original_from_name'] = name
        info['original_from'] = angle.group(2).strip()
        return
    bare = BARE_EMAIL_RE.search(line)
    if bare:
        info['original_from'] = bare.group(0)
        name = line.replace(bare.group(0), '').strip().strip(QUOTES).strip()
        if name:
            info['original_from_name'] = name
        return
    info['original_from_name'] = line.strip(QUOTES).strip()


def _parse_to(line: str) -> str:
    angle = re.search(r"<([^<>\s]+)>", line)
    if angle:
        return angle.group(1).strip()
    return line.strip().strip(QUOTES)


def parse_forwarding(body: Optional[str]) -> Optional[ForwardingInfo]:
    """Return the forwarded headers found in ``body``, or None when it is not a forward.

    ``original_date`` is copied verbatim: sender clients use too many date formats
    and timezones for a reliable conversion.
    """
    if not body:
        return None
    start = _first_delimiter_end(body)
    if start is None:
        return None
    block = body[start:]

    info: dict = {}
    m = FROM_RE.search(block)
    if m:
        _parse_from(m.group(1), info)
    m = TO_RE.search(block)
    if m:
        to = _parse_to(m.group(1))
        if to:
            info['original_to'] = to
    m = DATE_RE.search(block)
    if m:
        info['original_date'] = m.group(1)
    m = SUBJECT_RE.search(block)
    if m:
        info['original_subject'] = m.group(1)

    info = {k: v for k, v in info.items() if v}
    if not info:
        return None
    return ForwardingInfo(**info)
