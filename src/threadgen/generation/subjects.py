"""Subject prefixes, quoting and threading headers.

Functions:
    add_reply_prefix, add_forward_prefix: Idempotent subject prefixes.
    clean_subject: Strip any stack of RE:/FW:/Fwd: prefixes.
    resolve_subject: Subject for a slot from the thread subject and intent.
    quote_text, format_quoted_reply, format_forwarded_content: Quoted parts.
    format_display_date: "Mon, Mar 4, 2024 at 9:05 AM" style dates.
    build_message_id, apply_threading_headers: Message-ID/In-Reply-To/References.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from src.threadgen.domain.models import Character, EmailMessage
from src.threadgen.planning.models import ThreadEmailIntent

_REPLY_PREFIXES = ("re:",)
_FORWARD_PREFIXES = ("fw:", "fwd:")

FORWARD_MARKER = "---------- Forwarded message ---------"


def add_reply_prefix(subject: str) -> str:
    if subject.lower().startswith(_REPLY_PREFIXES):
        return subject
    return f"RE: {subject}"


def add_forward_prefix(subject: str) -> str:
    if subject.lower().startswith(_FORWARD_PREFIXES):
        return subject
    return f"FW: {subject}"


def clean_subject(subject: str) -> str:
    """Remove every leading RE:/FW:/Fwd: prefix."""
    cleaned = subject
    while True:
        trimmed = cleaned.lstrip()
        lowered = trimmed.lower()
        if lowered.startswith(("re:", "fw:")):
            cleaned = trimmed[3:]
        elif lowered.startswith("fwd:"):
            cleaned = trimmed[4:]
        else:
            break
    return cleaned.strip()


def resolve_subject(base_subject: str, intent: ThreadEmailIntent, index: int) -> str:
    """Subject for a slot: forwards get FW:, later replies get RE:."""
    if intent == ThreadEmailIntent.FORWARD:
        return add_forward_prefix(base_subject)
    if intent == ThreadEmailIntent.REPLY and index > 0:
        return add_reply_prefix(base_subject)
    return base_subject


# =============================================================================
# Quoting
# =============================================================================


def format_display_date(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    meridiem = "AM" if dt.hour < 12 else "PM"
    return f"{dt:%a}, {dt:%b} {dt.day}, {dt.year} at {hour}:{dt.minute:02d} {meridiem}"


def _address(character: Character) -> str:
    return f"{character.full_name} <{character.email}>"


def _require_committed(original: EmailMessage) -> None:
    if original.sender is None or original.sent_date is None:
        raise ValueError(f"Email {original.id} has no sender or sent date to quote")


def quote_text(text: str) -> str:
    if not text:
        return "> "
    return "\n".join(f"> {line}" for line in text.replace("\r\n", "\n").split("\n"))


def format_quoted_reply(original: EmailMessage) -> str:
    """Quoted block appended to a reply."""
    _require_committed(original)
    header = (
        f"On {format_display_date(original.sent_date)}, "
        f"{_address(original.sender)} wrote:"
    )
    return f"\n\n{header}\n{quote_text(original.body_plain)}"


def format_forwarded_content(original: EmailMessage) -> str:
    """Forwarded-message block appended to a forward."""
    _require_committed(original)
    to_list = "; ".join(_address(c) for c in original.to)
    cc_line = (
        f"\nCc: {'; '.join(_address(c) for c in original.cc)}" if original.cc else ""
    )
    header = (
        f"\n\n{FORWARD_MARKER}\n"
        f"From: {_address(original.sender)}\n"
        f"Date: {format_display_date(original.sent_date)}\n"
        f"Subject: {original.subject}\n"
        f"To: {to_list}{cc_line}\n\n"
    )
    return header + original.body_plain


# =============================================================================
# Threading Headers
# =============================================================================


def build_message_id(email_id: uuid.UUID, domain: str) -> str:
    return f"<{email_id.hex}@{domain}>"


def apply_threading_headers(email: EmailMessage, parent: EmailMessage | None) -> None:
    """Set Message-ID, In-Reply-To and References from the parent.

    References follow the parent chain, so each branch keeps its own history.
    """
    domain = email.sender.domain if email.sender is not None else "example.com"
    email.message_id = build_message_id(email.id, domain)
    if parent is None or not parent.message_id:
        email.in_reply_to = None
        email.references = []
        return
    email.in_reply_to = parent.message_id
    email.references = [*parent.references, parent.message_id]
