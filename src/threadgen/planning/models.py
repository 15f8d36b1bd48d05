"""Planning records for thread structure and per-thread context.

Classes:
    ThreadEmailIntent: How a slot relates to its parent.
    AttachmentSkeleton: Attachments a slot was planned to carry.
    ThreadEmailSlotPlan: One planned email.
    ThreadStructurePlan: All slots of a thread, validated as a forest.
    AttachmentTotals: Per-thread attachment counts from the configuration.
    ThreadPlan: Everything the slot loop needs about one thread.
    PlannedTotals: Run-wide planned counts.

All records are frozen; a plan never changes after it is built.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.threadgen.domain.models import (
    AttachmentType,
    Character,
    EmailThread,
    StoryBeat,
    Storyline,
)


class ThreadEmailIntent(str, Enum):
    """How a planned email relates to its parent."""

    NEW = "new"
    REPLY = "reply"
    FORWARD = "forward"


@dataclass(frozen=True)
class AttachmentSkeleton:
    """Attachments a slot was planned to carry before any carryover."""

    has_document: bool = False
    document_type: AttachmentType | None = None
    has_image: bool = False
    is_image_inline: bool = False
    has_voicemail: bool = False

    @property
    def count(self) -> int:
        return int(self.has_document) + int(self.has_image) + int(self.has_voicemail)


@dataclass(frozen=True)
class ThreadEmailSlotPlan:
    """One planned email.

    Attributes:
        index: Position in the thread, 0-based.
        email_id: Id of the placeholder message this slot fills.
        parent_index: Index of the parent slot, or None for the root.
        parent_email_id: Id of the parent message, or None for the root.
        root_email_id: Id of slot 0.
        branch_id: Sub-conversation the slot belongs to.
        intent: New, Reply or Forward.
        sent_date: Planned send time.
        narrative_phase: Phase label passed to prompts.
        attachments: Planned attachments before carryover.
    """

    index: int
    email_id: uuid.UUID
    parent_index: int | None
    parent_email_id: uuid.UUID | None
    root_email_id: uuid.UUID
    branch_id: uuid.UUID
    intent: ThreadEmailIntent
    sent_date: datetime
    narrative_phase: str
    attachments: AttachmentSkeleton = field(default_factory=AttachmentSkeleton)


@dataclass(frozen=True)
class ThreadStructurePlan:
    """All slots of one thread.

    Raises:
        ValueError: If indices are not exactly ``0..n-1``, if slot 0 is not a
            parentless New, or if any parent is not an earlier slot.
    """

    thread_id: uuid.UUID
    root_email_id: uuid.UUID
    slots: tuple[ThreadEmailSlotPlan, ...]

    def __post_init__(self) -> None:
        if not self.slots:
            raise ValueError("A thread structure plan needs at least one slot")
        for position, slot in enumerate(self.slots):
            if slot.index != position:
                raise ValueError(
                    f"Slot at position {position} has index {slot.index}"
                )
        root = self.slots[0]
        if root.parent_index is not None or root.intent != ThreadEmailIntent.NEW:
            raise ValueError("Slot 0 must be a New email without a parent")
        for slot in self.slots[1:]:
            if slot.parent_index is None or not 0 <= slot.parent_index < slot.index:
                raise ValueError(
                    f"Slot {slot.index} must reference an earlier parent, "
                    f"got {slot.parent_index}"
                )
            if slot.parent_email_id != self.slots[slot.parent_index].email_id:
                raise ValueError(f"Slot {slot.index} parent id does not match its index")

    def __len__(self) -> int:
        return len(self.slots)

    @property
    def branch_count(self) -> int:
        """Slots whose parent is not the immediately preceding slot."""
        return sum(
            1
            for slot in self.slots[1:]
            if slot.parent_index is not None and slot.parent_index != slot.index - 1
        )

    @property
    def chronological_order(self) -> list[uuid.UUID]:
        ordered = sorted(self.slots, key=lambda s: (s.sent_date, s.index))
        return [slot.email_id for slot in ordered]

    def slot_for(self, email_id: uuid.UUID) -> ThreadEmailSlotPlan | None:
        return next((s for s in self.slots if s.email_id == email_id), None)


@dataclass(frozen=True)
class AttachmentTotals:
    """Attachment counts planned for one thread."""

    documents: int = 0
    images: int = 0
    voicemails: int = 0

    @property
    def total(self) -> int:
        return self.documents + self.images + self.voicemails


@dataclass(frozen=True)
class ThreadPlan:
    """Per-thread context built before generation starts.

    Attributes:
        index: Position of the plan within its storyline.
        thread: The thread whose placeholders will be filled.
        storyline: Owning storyline.
        beat: Owning story beat.
        email_count: Number of slots.
        start_date: Start of the thread's share of the beat window.
        end_date: End of the thread's share of the beat window.
        participants: Characters with email addresses, de-duplicated.
        structure: Slot plan.
        seed: Seed for the slot loop's random generator.
    """

    index: int
    thread: EmailThread
    storyline: Storyline
    beat: StoryBeat
    email_count: int
    start_date: datetime
    end_date: datetime
    participants: tuple[Character, ...]
    structure: ThreadStructurePlan
    seed: int

    def participant_by_email(self, email: str) -> Character | None:
        folded = email.casefold()
        return next((p for p in self.participants if p.email.casefold() == folded), None)


@dataclass(frozen=True)
class PlannedTotals:
    """Planned counts across every storyline in a run.

    ``attachments`` includes calendar-invite checks, matching what the
    progress counters count as attachment work.
    """

    threads: int = 0
    emails: int = 0
    attachments: int = 0
    images: int = 0
