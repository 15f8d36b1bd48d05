"""Data models for the asset stage and the run result.

Classes:
    DocumentSpec, ImageSpec, VoicemailSpec, CalendarInviteSpec: Content
        specs handed to the attachment renderers.
    MeetingDetectionResponse, VoicemailScriptResponse: Structured completion
        responses requested during the asset stage.
    GenerationResult: Aggregate outcome of a generation run.

Design Notes:
    - Content specs are frozen dataclasses; renderers must not mutate them
    - Completion responses are pydantic models with explicit defaults, so a
      provider that omits a field still yields a usable instance
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from src.threadgen.domain.models import AttachmentType, EmailThread


# =============================================================================
# Renderer Content Specs
# =============================================================================


@dataclass(frozen=True)
class DocumentSpec:
    """What a document renderer should produce.

    Attributes:
        type: Word, Excel or PowerPoint.
        title: Document title, also the base of its file name.
        context: Email subject, planned purpose and body preview. Revisions
            carry an extra paragraph naming the chain title and version.
        chain_id: Document chain this rendering belongs to, if any.
        version_number: Reserved chain version, if any.
    """

    type: AttachmentType
    title: str
    context: str
    chain_id: str | None = None
    version_number: int | None = None

    @property
    def is_revision(self) -> bool:
        return self.chain_id is not None and (self.version_number or 1) > 1


@dataclass(frozen=True)
class ImageSpec:
    prompt: str
    description: str


@dataclass(frozen=True)
class VoicemailSpec:
    """A voicemail script and the speaker who reads it."""

    script: str
    speaker_name: str
    speaker_email: str


@dataclass(frozen=True)
class CalendarInviteSpec:
    """A single meeting for an iCalendar renderer."""

    title: str
    description: str
    start: datetime
    end: datetime
    location: str
    organizer_name: str
    organizer_email: str
    attendees: tuple[tuple[str, str], ...] = ()


# =============================================================================
# Structured Completion Responses
# =============================================================================


class MeetingDetectionResponse(BaseModel):
    """Whether an email schedules a meeting, and its details when it does."""

    model_config = ConfigDict(extra="ignore")

    kind: ClassVar[str] = "meeting-detection"

    has_meeting: bool = Field(
        default=False,
        description="True only when the email names a concrete meeting date and time",
    )
    meeting_title: str | None = Field(default=None, description="Invite title")
    meeting_description: str | None = Field(
        default=None, description="Brief description of the meeting"
    )
    location: str | None = Field(
        default=None, description="Meeting location, 'Virtual' or 'TBD'"
    )
    suggested_date: str | None = Field(
        default=None, description="Meeting date as YYYY-MM-DD"
    )
    suggested_start_time: str | None = Field(
        default=None, description="Start time as HH:MM, 24-hour"
    )
    duration_minutes: int = Field(default=0, description="Meeting length in minutes")


class VoicemailScriptResponse(BaseModel):
    """A short spoken voicemail transcript."""

    model_config = ConfigDict(extra="ignore")

    kind: ClassVar[str] = "voicemail-script"

    voicemail_script: str | None = Field(
        default=None, description="The voicemail transcript, 40 to 80 words"
    )


# =============================================================================
# Run Result
# =============================================================================


@dataclass
class GenerationResult:
    """Outcome of a generation run.

    A run always returns a result, including after cancellation or a
    thread-level failure; ``errors`` enumerates what went wrong.

    Attributes:
        output_folder: Folder passed to the message-file sink.
        planned_threads: Threads across every storyline.
        planned_emails: Email slots across every storyline.
        planned_attachments: Planned attachments plus calendar checks.
        succeeded_threads: Threads with no failed email.
        failed_threads: Threads that failed a stage or contain a failed email.
        succeeded_emails: Slots committed with a valid draft.
        failed_emails: Slots committed as failure placeholders.
        word_documents, excel_documents, powerpoint_documents: Rendered
            documents by type.
        images: Rendered images.
        calendar_invites: Rendered calendar invites.
        voicemails: Rendered voicemails.
        undelivered_attachments: Obligations no slot delivered.
        errors: Every recorded error, in recording order.
        was_cancelled: Whether the run stopped on its cancel event.
        elapsed_seconds: Wall-clock duration of the run.
        threads: Generated threads, in plan order.
    """

    output_folder: str = ""
    planned_threads: int = 0
    planned_emails: int = 0
    planned_attachments: int = 0
    succeeded_threads: int = 0
    failed_threads: int = 0
    succeeded_emails: int = 0
    failed_emails: int = 0
    word_documents: int = 0
    excel_documents: int = 0
    powerpoint_documents: int = 0
    images: int = 0
    calendar_invites: int = 0
    voicemails: int = 0
    undelivered_attachments: int = 0
    errors: list[str] = field(default_factory=list)
    was_cancelled: bool = False
    elapsed_seconds: float = 0.0
    threads: list[EmailThread] = field(default_factory=list)

    @property
    def total_emails(self) -> int:
        return self.succeeded_emails + self.failed_emails

    @property
    def total_documents(self) -> int:
        return self.word_documents + self.excel_documents + self.powerpoint_documents

    def record_document(self, doc_type: AttachmentType) -> None:
        if doc_type == AttachmentType.WORD:
            self.word_documents += 1
        elif doc_type == AttachmentType.EXCEL:
            self.excel_documents += 1
        else:
            self.powerpoint_documents += 1
