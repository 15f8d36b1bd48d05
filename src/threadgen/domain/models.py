"""Domain records shared by planning, generation and orchestration.

These records are produced upstream (storylines, beats, characters,
organizations, thread placeholders) and populated in place by the engine
(messages). They are plain dataclasses: the engine mutates messages exactly
once at commit time and never resizes a thread's message list.

Classes:
    ThreadRelevance: Responsive/non-responsive label for a thread.
    AttachmentType: Document types the engine can plan.
    Organization, Character: Participants and their employers.
    PlannedDocument, PlannedImage, PlannedVoicemail, PlannedAttachments:
        Attachment descriptors attached to a message before rendering.
    Attachment: A rendered attachment.
    EmailMessage, EmailThread: The generated output.
    StoryBeat, Storyline: Upstream narrative containers.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

AttachmentKind = Literal["document", "image", "voicemail", "calendar"]


class ThreadRelevance(str, Enum):
    """Whether a thread belongs to the storyline's responsive set."""

    RESPONSIVE = "responsive"
    NON_RESPONSIVE = "non_responsive"


class AttachmentType(str, Enum):
    """Document types that can be planned for an email."""

    WORD = "word"
    EXCEL = "excel"
    POWERPOINT = "powerpoint"

    @property
    def extension(self) -> str:
        return {
            AttachmentType.WORD: ".docx",
            AttachmentType.EXCEL: ".xlsx",
            AttachmentType.POWERPOINT: ".pptx",
        }[self]

    @property
    def content_type(self) -> str:
        return {
            AttachmentType.WORD: (
                "application/vnd.openxmlformats-officedocument"
                ".wordprocessingml.document"
            ),
            AttachmentType.EXCEL: (
                "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
            ),
            AttachmentType.POWERPOINT: (
                "application/vnd.openxmlformats-officedocument"
                ".presentationml.presentation"
            ),
        }[self]


# =============================================================================
# Participants
# =============================================================================


@dataclass
class Organization:
    """An organization participants belong to."""

    id: uuid.UUID
    name: str
    domain: str
    industry: str = ""
    is_internal: bool = True


@dataclass
class Character:
    """A thread participant.

    Attributes:
        id: Stable identifier.
        first_name: Given name, used in greetings and fact summaries.
        last_name: Family name, used in voicemail file names.
        email: Email address. Characters without one never participate.
        organization_id: Employer, used to tell internal from external audiences.
        role: Job title, matched against the topic catalog's role table.
        department: Department, matched against the department table.
        signature_block: Text the character signs emails with.
        personality: Free-text voice notes passed to prompts.
    """

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    organization_id: uuid.UUID | None = None
    role: str = ""
    department: str = ""
    signature_block: str = ""
    personality: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def domain(self) -> str:
        return self.email.rpartition("@")[2] or "example.com"


# =============================================================================
# Attachments
# =============================================================================


@dataclass
class PlannedDocument:
    type: AttachmentType
    description: str


@dataclass
class PlannedImage:
    description: str
    is_inline: bool = True


@dataclass
class PlannedVoicemail:
    description: str


@dataclass
class PlannedAttachments:
    """Attachment descriptors committed with a message.

    Lists rather than single slots, so a final email can carry every
    obligation still outstanding for its thread.
    """

    documents: list[PlannedDocument] = field(default_factory=list)
    images: list[PlannedImage] = field(default_factory=list)
    voicemails: list[PlannedVoicemail] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.documents) + len(self.images) + len(self.voicemails)

    def clear(self) -> None:
        self.documents.clear()
        self.images.clear()
        self.voicemails.clear()


@dataclass
class Attachment:
    """A rendered attachment ready for the message-file sink."""

    id: uuid.UUID
    kind: AttachmentKind
    file_name: str
    content: bytes
    content_type: str
    description: str = ""
    content_id: str | None = None
    is_inline: bool = False
    document_type: AttachmentType | None = None
    document_chain_id: str | None = None
    version_label: str | None = None


# =============================================================================
# Messages and Threads
# =============================================================================


@dataclass
class EmailMessage:
    """One email in a thread.

    Placeholders arrive with only ``id``, ``thread_id`` and ``sequence_index``
    set; the engine fills in everything else when the slot commits.
    """

    id: uuid.UUID
    thread_id: uuid.UUID
    sequence_index: int = 0
    parent_email_id: uuid.UUID | None = None
    root_email_id: uuid.UUID | None = None
    branch_id: uuid.UUID | None = None
    sender: Character | None = None
    to: list[Character] = field(default_factory=list)
    cc: list[Character] = field(default_factory=list)
    subject: str = ""
    body_plain: str = ""
    body_html: str = ""
    sent_date: datetime | None = None
    planned: PlannedAttachments = field(default_factory=PlannedAttachments)
    attachments: list[Attachment] = field(default_factory=list)
    message_id: str = ""
    in_reply_to: str | None = None
    references: list[str] = field(default_factory=list)
    generation_failed: bool = False
    generation_failure_reason: str | None = None


@dataclass
class EmailThread:
    """A thread of emails generated for one story beat."""

    id: uuid.UUID
    story_beat_id: uuid.UUID
    storyline_id: uuid.UUID
    relevance: ThreadRelevance = ThreadRelevance.RESPONSIVE
    is_hot: bool = False
    topic: str = ""
    subject: str = ""
    participants: list[Character] = field(default_factory=list)
    messages: list[EmailMessage] = field(default_factory=list)

    @property
    def is_responsive(self) -> bool:
        """Hot threads are always treated as responsive."""
        return self.relevance == ThreadRelevance.RESPONSIVE or self.is_hot

    @property
    def display_subject(self) -> str:
        """Subject for logs and error messages."""
        if self.subject:
            return self.subject
        if self.messages and self.messages[0].subject:
            return self.messages[0].subject
        return str(self.id)

    def find_message(self, email_id: uuid.UUID | None) -> EmailMessage | None:
        if email_id is None:
            return None
        return next((m for m in self.messages if m.id == email_id), None)


# =============================================================================
# Narrative Containers
# =============================================================================


@dataclass
class StoryBeat:
    """A segment of a storyline with its own date window and email budget."""

    id: uuid.UUID
    storyline_id: uuid.UUID
    name: str
    plot: str
    start_date: datetime
    end_date: datetime
    email_count: int
    threads: list[EmailThread] = field(default_factory=list)
    character_ids: list[uuid.UUID] = field(default_factory=list)


@dataclass
class Storyline:
    """A storyline with its cast and ordered beats."""

    id: uuid.UUID
    title: str
    summary: str
    beats: list[StoryBeat] = field(default_factory=list)
    characters: list[Character] = field(default_factory=list)
    organizations: list[Organization] = field(default_factory=list)

    def organization_for(self, character: Character) -> Organization | None:
        return next(
            (o for o in self.organizations if o.id == character.organization_id),
            None,
        )
