"""Domain records for storylines, threads and messages."""

from src.threadgen.domain.loader import (
    StorylineFileNotFoundError,
    StorylineValidationError,
    load_storylines,
)
from src.threadgen.domain.models import (
    Attachment,
    AttachmentKind,
    AttachmentType,
    Character,
    EmailMessage,
    EmailThread,
    Organization,
    PlannedAttachments,
    PlannedDocument,
    PlannedImage,
    PlannedVoicemail,
    StoryBeat,
    Storyline,
    ThreadRelevance,
)

__all__ = [
    "Attachment",
    "AttachmentKind",
    "AttachmentType",
    "Character",
    "EmailMessage",
    "EmailThread",
    "Organization",
    "PlannedAttachments",
    "PlannedDocument",
    "PlannedImage",
    "PlannedVoicemail",
    "StoryBeat",
    "Storyline",
    "StorylineFileNotFoundError",
    "StorylineValidationError",
    "ThreadRelevance",
    "load_storylines",
]
