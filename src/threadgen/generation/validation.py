"""Structural validation of drafted email bodies.

The checks are lexical: a body "references" an attachment when it contains
one of a handful of words for that attachment kind. They catch drafts that
forget an attachment entirely, not drafts that describe it wrongly.
"""

from __future__ import annotations

from src.threadgen.domain.models import EmailMessage
from src.threadgen.generation.models import AttachmentRequirement
from src.threadgen.planning.models import ThreadEmailIntent, ThreadEmailSlotPlan

ATTACHMENT_VOCABULARY: dict[str, tuple[str, ...]] = {
    "document": ("attach", "attachment", "document", "spreadsheet", "report"),
    "image": ("screenshot", "photo", "image", "attached"),
    "voicemail": ("voicemail", "voice message", "left you a message"),
}

ERROR_BODY_REQUIRED = "Email body is required."
ERROR_PARENT_MISSING = "Parent email is missing for reply/forward slot."
ERROR_NO_BODY_RETURNED = "LLM returned no email body."


def missing_reference_error(kind: str) -> str:
    return f"Email body must reference the {kind} attachment."


def mentions_attachment(body: str | None, kind: str) -> bool:
    """Whether ``body`` contains vocabulary referencing an attachment kind.

    Unknown kinds fall back to a check for "attach".
    """
    if not body or not body.strip():
        return False
    lowered = body.lower()
    return any(word in lowered for word in ATTACHMENT_VOCABULARY.get(kind, ("attach",)))


def validate_email_body(
    body: str | None,
    slot: ThreadEmailSlotPlan,
    parent: EmailMessage | None,
    requirement: AttachmentRequirement,
) -> list[str]:
    """Return the validation errors for a drafted body; empty means valid.

    A Reply or Forward without a committed parent is always invalid; it is
    never downgraded to a new email.
    """
    errors: list[str] = []
    if not body or not body.strip():
        errors.append(ERROR_BODY_REQUIRED)

    if slot.intent != ThreadEmailIntent.NEW and parent is None:
        errors.append(ERROR_PARENT_MISSING)

    if requirement.requires_document and not mentions_attachment(body, "document"):
        errors.append(missing_reference_error("document"))
    if requirement.requires_image and not mentions_attachment(body, "image"):
        errors.append(missing_reference_error("image"))
    if requirement.requires_voicemail and not mentions_attachment(body, "voicemail"):
        errors.append(missing_reference_error("voicemail"))
    return errors
