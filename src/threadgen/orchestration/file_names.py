"""Attachment file names.

Every name is derived from the email, the planned description and the
deterministic token helpers, so reruns with the same seed produce the same
names.
"""

from __future__ import annotations

import re
from datetime import datetime

from src.threadgen.core.seeding import (
    SCOPE_CALENDAR_INVITE,
    SCOPE_IMAGE_FILE,
    create_short_token,
)
from src.threadgen.domain.models import AttachmentType, EmailMessage, EmailThread
from src.threadgen.generation.subjects import clean_subject

MAX_ATTACHMENT_FILE_NAME_LENGTH = 160
UNNAMED = "unnamed"

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_UNDERSCORES = re.compile(r"_+")
_RESERVED_NAMES = frozenset({"CON", "PRN", "AUX", "NUL"})
_RESERVED_NUMBERED = re.compile(r"^(COM|LPT)[1-9]$", re.IGNORECASE)

_DOCUMENT_TYPE_NAMES = {
    AttachmentType.WORD: "Document",
    AttachmentType.EXCEL: "Spreadsheet",
    AttachmentType.POWERPOINT: "Presentation",
}


def sanitize_for_file_name(value: str | None) -> str:
    """Make ``value`` safe as a file name component.

    Returns ``"unnamed"`` when nothing usable remains.

    Example:
        >>> sanitize_for_file_name("Q3 budget: draft?")
        'Q3_budget_draft'
    """
    if not value or not value.strip():
        return UNNAMED
    sanitized = _INVALID_CHARS.sub("", value).replace(" ", "_")
    sanitized = _UNDERSCORES.sub("_", sanitized).strip("_").strip(" .")
    if not sanitized:
        return UNNAMED
    base = sanitized.split(".", 1)[0]
    if base.upper() in _RESERVED_NAMES or _RESERVED_NUMBERED.match(base):
        sanitized = f"_{sanitized}"
    return sanitized


def _truncate_subject(subject: str, max_length: int) -> str:
    cleaned = clean_subject(subject)
    if not cleaned.strip():
        return "NoSubject"
    return cleaned[:max_length]


def _sent_date(email: EmailMessage) -> datetime:
    return email.sent_date or datetime.min


def build_document_file_name(email: EmailMessage, doc_type: AttachmentType) -> str:
    subject = sanitize_for_file_name(_truncate_subject(email.subject, 25))
    date = _sent_date(email).strftime("%Y%m%d")
    return f"{subject}_{_DOCUMENT_TYPE_NAMES[doc_type]}_{date}{doc_type.extension}"


def build_versioned_file_name(base_title: str, version_label: str, extension: str) -> str:
    """File name for one version of a document chain.

    The base is truncated so the whole name fits in
    ``MAX_ATTACHMENT_FILE_NAME_LENGTH`` characters.
    """
    safe_base = sanitize_for_file_name(base_title)
    if safe_base == UNNAMED:
        safe_base = "document"
    safe_version = sanitize_for_file_name(version_label)
    if safe_version == UNNAMED:
        safe_version = "v1"

    max_base = max(
        1, MAX_ATTACHMENT_FILE_NAME_LENGTH - len(safe_version) - len(extension) - 1
    )
    return f"{safe_base[:max_base]}_{safe_version}{extension}"


def build_image_file_name(email: EmailMessage, description: str, content_id: str) -> str:
    token = create_short_token(
        SCOPE_IMAGE_FILE, 6, email.id.hex, description, content_id
    )
    return f"image_{_sent_date(email).strftime('%Y%m%d')}_{token}.png"


def build_calendar_invite_file_name(
    email: EmailMessage,
    start: datetime,
    title: str | None,
    organizer_email: str | None,
) -> str:
    token = create_short_token(
        SCOPE_CALENDAR_INVITE,
        6,
        email.id.hex,
        start.isoformat(),
        title or "",
        organizer_email or "",
    )
    return f"invite_{start.strftime('%Y%m%d')}_{token}.ics"


def build_voicemail_file_name(last_name: str, sent_date: datetime) -> str:
    """``voicemail_<lastname>_<YYYYMMDD_HHMM>.mp3``, capped in length."""
    safe_last_name = sanitize_for_file_name(last_name)
    if safe_last_name == UNNAMED:
        safe_last_name = "sender"

    prefix = "voicemail_"
    suffix = f"_{sent_date.strftime('%Y%m%d_%H%M')}.mp3"
    max_length = max(1, MAX_ATTACHMENT_FILE_NAME_LENGTH - len(prefix) - len(suffix))
    return f"{prefix}{safe_last_name[:max_length]}{suffix}"


def build_thread_folder_name(thread: EmailThread) -> str:
    """``<subject>_<thread id prefix>``, unique per thread."""
    subject = sanitize_for_file_name(_truncate_subject(thread.display_subject, 40))
    return f"{subject}_{thread.id.hex[:8]}"


def build_eml_file_name(email: EmailMessage) -> str:
    """``<index>_<YYYYMMDD_HHMM>_<subject>.eml``; sorts in thread order."""
    subject = sanitize_for_file_name(_truncate_subject(email.subject, 40))
    stamp = _sent_date(email).strftime("%Y%m%d_%H%M")
    return f"{email.sequence_index:03d}_{stamp}_{subject}.eml"
