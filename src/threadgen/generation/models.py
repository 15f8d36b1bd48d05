"""Records used by the per-slot generation loop.

Internal context objects are dataclasses. The structured responses requested
from the completion capability are pydantic models, one per prompt kind, so
the provider can be asked for exactly the fields each prompt needs.

Classes:
    AttachmentRequirement: What one slot's body must reference.
    AttachmentPlanDetails: Human-readable descriptions for the prompt.
    ResolvedParticipants: Sender, To and Cc for a slot.
    SlotState: Lifecycle of a slot.
    DraftResult: Outcome of the draft/validate/repair loop.
    NonResponsiveArchetypeSelection: Topic chosen for a non-responsive thread.
    SingleEmailResponse, EmailSubjectResponse, NonResponsiveSubjectResponse:
        Structured completion responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from src.threadgen.domain.models import AttachmentType, Character
from src.threadgen.topics.schema import TopicArchetype


# =============================================================================
# Slot Context
# =============================================================================


@dataclass(frozen=True)
class AttachmentRequirement:
    """Attachments one slot must deliver.

    ``*_from_pending`` marks a requirement that satisfies an obligation a
    failed earlier slot left behind rather than the slot's own plan. The
    ``forced_*`` fields are only populated on the final slot and hold every
    obligation still outstanding beyond the primary requirement.
    """

    requires_document: bool = False
    document_type: AttachmentType | None = None
    document_from_pending: bool = False
    requires_image: bool = False
    image_from_pending: bool = False
    is_image_inline: bool = False
    requires_voicemail: bool = False
    voicemail_from_pending: bool = False
    is_final_slot: bool = False
    forced_documents: tuple[AttachmentType, ...] = ()
    forced_images: int = 0
    forced_voicemails: int = 0

    @property
    def has_forced_extras(self) -> bool:
        return bool(self.forced_documents or self.forced_images or self.forced_voicemails)


@dataclass(frozen=True)
class AttachmentPlanDetails:
    """Descriptions used in prompts and recorded on the committed email."""

    document_description: str | None = None
    image_description: str | None = None
    voicemail_context: str | None = None


@dataclass(frozen=True)
class ResolvedParticipants:
    """Addressing for one slot."""

    sender: Character
    to: tuple[Character, ...]
    cc: tuple[Character, ...] = ()

    @property
    def everyone(self) -> tuple[Character, ...]:
        return (self.sender, *self.to, *self.cc)


class SlotState(str, Enum):
    """Lifecycle of a slot. COMMITTED and FAILURE_COMMITTED are terminal."""

    PENDING = "pending"
    DRAFTING = "drafting"
    VALIDATING = "validating"
    REPAIRING = "repairing"
    COMMITTED = "committed"
    FAILURE_COMMITTED = "failure_committed"

    @property
    def is_terminal(self) -> bool:
        return self in (SlotState.COMMITTED, SlotState.FAILURE_COMMITTED)


@dataclass
class DraftResult:
    """Outcome of the draft/validate/repair loop."""

    success: bool
    body: str | None = None
    errors: list[str] = field(default_factory=list)
    attempts: int = 0


@dataclass(frozen=True)
class NonResponsiveArchetypeSelection:
    """Topic selected for a non-responsive thread, with its filled entities."""

    archetype: TopicArchetype
    subject: str
    entity_values: dict[str, str]


# =============================================================================
# Structured Completion Responses
# =============================================================================


class SingleEmailResponse(BaseModel):
    """A drafted email body."""

    model_config = ConfigDict(extra="ignore")

    kind: ClassVar[str] = "email-body"

    body_plain: str | None = Field(
        default=None,
        description=(
            "Plain-text email body including greeting and signature. Do not "
            "include quoted prior emails."
        ),
    )


class EmailSubjectResponse(BaseModel):
    """A thread subject line."""

    model_config = ConfigDict(extra="ignore")

    kind: ClassVar[str] = "thread-subject"

    subject: str | None = Field(
        default=None,
        description="Subject for the first email, without Re: or Fwd: prefixes",
    )


class NonResponsiveSubjectResponse(BaseModel):
    """A non-responsive subject plus the entity values it mentions."""

    model_config = ConfigDict(extra="ignore")

    kind: ClassVar[str] = "non-responsive-subject"

    subject: str | None = Field(
        default=None,
        description="Subject of 4 to 12 words, without Re: or Fwd: prefixes",
    )
    entity_values: dict[str, str] | None = Field(
        default=None,
        description="Concrete value for each requested entity key",
    )
