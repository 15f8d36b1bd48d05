"""Thread structure planning.

Builds the slot plan for one thread: send dates, parent links and branches,
reply/forward intent, narrative phase, and which slots carry which planned
attachments. Every choice comes from a generator seeded with the run seed and
the thread id, so the same input always yields the same plan.

Functions:
    build_plan: Build a ThreadStructurePlan for a thread.
    calculate_attachment_totals: Per-thread attachment counts.
    calculate_calendar_checks: Per-thread meeting-detection count.
    pick_attachment_slots: Choose which slots carry an attachment kind.
    get_narrative_phase: Phase label for a slot position.

Example:
    >>> plan = build_plan(thread, 6, start, end, config, run_seed=1234)
    >>> plan.slots[0].intent
    <ThreadEmailIntent.NEW: 'new'>
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from src.threadgen.core.config import GenerationConfig
from src.threadgen.core.seeding import (
    SCOPE_EMAIL_BRANCH,
    SCOPE_EMAIL_MESSAGE,
    SCOPE_THREAD_PLAN,
    create_deterministic_id,
    create_rng,
)
from src.threadgen.domain.models import AttachmentType, EmailThread
from src.threadgen.planning.dates import distribute_dates_for_thread
from src.threadgen.planning.models import (
    AttachmentSkeleton,
    AttachmentTotals,
    ThreadEmailIntent,
    ThreadEmailSlotPlan,
    ThreadStructurePlan,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PHASE_SINGLE = "SINGLE - Introduce the conflict and leave open questions."
PHASE_BEGINNING = "BEGINNING - Set up the conflict and stakes."
PHASE_MIDDLE = "MIDDLE - Escalate tension and develop the conflict."
PHASE_LATE = "LATE - Escalate consequences without full resolution."

INLINE_IMAGE_PROBABILITY = 0.7
FORWARD_PROBABILITY_BRANCH = 0.45
FORWARD_PROBABILITY_SEQUENTIAL = 0.12


# =============================================================================
# Totals
# =============================================================================


def calculate_attachment_totals(config: GenerationConfig, email_count: int) -> AttachmentTotals:
    """Attachment counts for a thread of ``email_count`` emails.

    Each count is rounded half-to-even and capped at the email count. Images
    get at least one when enabled with a positive percentage.
    """
    if email_count <= 0:
        return AttachmentTotals()

    documents = 0
    if config.attachment_percentage > 0 and config.enabled_attachment_types:
        documents = round(email_count * config.attachment_percentage / 100)

    images = 0
    if config.include_images and config.image_percentage > 0:
        images = max(1, round(email_count * config.image_percentage / 100))

    voicemails = 0
    if config.include_voicemails:
        voicemails = round(email_count * config.voicemail_percentage / 100)

    return AttachmentTotals(
        documents=min(documents, email_count),
        images=min(images, email_count),
        voicemails=min(voicemails, email_count),
    )


def calculate_calendar_checks(config: GenerationConfig, email_count: int) -> int:
    """Number of emails in a thread to run meeting detection on."""
    if (
        not config.include_calendar_invites
        or config.calendar_invite_percentage <= 0
        or email_count <= 0
    ):
        return 0
    return max(1, round(email_count * config.calendar_invite_percentage / 100))


# =============================================================================
# Slot Selection
# =============================================================================


def pick_attachment_slots(
    email_count: int,
    total_attachments: int,
    rng: random.Random,
) -> set[int]:
    """Choose which slot indices carry one attachment kind.

    Early slots are likely (0.75 for the first, 0.35 for the second) and the
    probability then grows toward the end of the thread. Each miss adds a
    boost that resets on a hit. A slot is forced when the remaining slots
    exactly match the remaining attachments, and any shortfall is back-filled
    from the end.
    """
    slots: set[int] = set()
    if total_attachments <= 0:
        return slots

    remaining = min(total_attachments, email_count)
    boost = 0.0
    for i in range(email_count):
        if remaining <= 0:
            break
        if email_count - i == remaining:
            slots.add(i)
            remaining -= 1
            continue

        if i == 0:
            base = 0.75
        elif i == 1:
            base = 0.35
        else:
            base = 0.18 + 0.6 * i / max(1, email_count - 1)

        if rng.random() < min(0.95, base + boost):
            slots.add(i)
            remaining -= 1
            boost = 0.0
        else:
            boost = min(0.45, boost + 0.15)

    for i in range(email_count - 1, -1, -1):
        if remaining <= 0:
            break
        if i not in slots:
            slots.add(i)
            remaining -= 1

    return slots


@dataclass
class _AttachmentAssignments:
    doc_slots: set[int] = field(default_factory=set)
    doc_types: dict[int, AttachmentType] = field(default_factory=dict)
    image_slots: set[int] = field(default_factory=set)
    inline_images: set[int] = field(default_factory=set)
    voicemail_slots: set[int] = field(default_factory=set)


def _build_attachment_assignments(
    email_count: int,
    config: GenerationConfig,
    rng: random.Random,
) -> _AttachmentAssignments:
    totals = calculate_attachment_totals(config, email_count)
    assignments = _AttachmentAssignments()

    assignments.doc_slots = pick_attachment_slots(email_count, totals.documents, rng)
    if config.include_images:
        assignments.image_slots = pick_attachment_slots(email_count, totals.images, rng)
    if config.include_voicemails:
        assignments.voicemail_slots = pick_attachment_slots(
            email_count, totals.voicemails, rng
        )

    enabled = config.enabled_attachment_types
    if enabled:
        # Sorted so the draw order does not depend on set iteration order
        for slot in sorted(assignments.doc_slots):
            assignments.doc_types[slot] = enabled[rng.randrange(len(enabled))]

    for slot in sorted(assignments.image_slots):
        if rng.random() < INLINE_IMAGE_PROBABILITY:
            assignments.inline_images.add(slot)

    return assignments


# =============================================================================
# Parents and Intent
# =============================================================================


def resolve_branch_count(email_count: int, rng: random.Random) -> int:
    if email_count < 5:
        return 0
    if email_count < 8:
        return 1 if rng.random() < 0.6 else 0
    if email_count < 12:
        return 1 if rng.random() < 0.7 else 2
    return 1 if rng.random() < 0.4 else 2


def build_parent_plan(email_count: int, rng: random.Random) -> list[int]:
    """Parent index per slot; -1 for the root.

    Every slot replies to its predecessor except up to two branch children,
    which attach to an earlier slot to open a side conversation.
    """
    parents = [i - 1 for i in range(email_count)]
    branch_count = resolve_branch_count(email_count, rng)

    used_children: set[int] = set()
    for _ in range(branch_count):
        if email_count < 3:
            break
        child = rng.randrange(2, email_count)
        if child in used_children:
            continue
        used_children.add(child)

        parent = rng.randrange(0, child - 1)
        if parent == child - 1:
            parent = max(0, parent - 1)
        parents[child] = parent

    return parents


def resolve_intent(index: int, parent_index: int, rng: random.Random) -> ThreadEmailIntent:
    if index == 0 or parent_index < 0:
        return ThreadEmailIntent.NEW
    threshold = (
        FORWARD_PROBABILITY_BRANCH
        if parent_index != index - 1
        else FORWARD_PROBABILITY_SEQUENTIAL
    )
    return ThreadEmailIntent.FORWARD if rng.random() < threshold else ThreadEmailIntent.REPLY


def get_narrative_phase(index: int, total: int) -> str:
    if total <= 1:
        return PHASE_SINGLE
    fraction = index / max(1, total - 1)
    if fraction < 0.34:
        return PHASE_BEGINNING
    if fraction > 0.66:
        return PHASE_LATE
    return PHASE_MIDDLE


# =============================================================================
# Plan Builder
# =============================================================================


def build_plan(
    thread: EmailThread,
    email_count: int,
    start: datetime,
    end: datetime,
    config: GenerationConfig,
    run_seed: int,
) -> ThreadStructurePlan:
    """Build the slot plan for a thread.

    Args:
        thread: Thread whose placeholders the plan targets. When it holds
            exactly ``email_count`` placeholders their ids are used; otherwise
            deterministic ids are derived.
        email_count: Number of slots. Must be positive.
        start: Window start.
        end: Window end.
        config: Run configuration (attachment percentages and toggles).
        run_seed: Run seed.

    Returns:
        The validated structure plan.

    Raises:
        ValueError: If ``email_count`` is not positive.
    """
    if email_count <= 0:
        raise ValueError("Thread email count must be positive.")

    thread_key = thread.id.hex
    rng = create_rng(SCOPE_THREAD_PLAN, run_seed, thread_key)

    dates = distribute_dates_for_thread(email_count, start, end, rng)
    while len(dates) < email_count:
        dates.append(end)

    parents = build_parent_plan(email_count, rng)
    assignments = _build_attachment_assignments(email_count, config, rng)

    if len(thread.messages) == email_count:
        email_ids = [message.id for message in thread.messages]
    else:
        email_ids = [
            create_deterministic_id(SCOPE_EMAIL_MESSAGE, thread_key, i)
            for i in range(email_count)
        ]

    root_email_id = email_ids[0]
    branch_ids: list[uuid.UUID] = [
        create_deterministic_id(SCOPE_EMAIL_BRANCH, thread_key, "root")
    ]

    slots: list[ThreadEmailSlotPlan] = []
    for i in range(email_count):
        parent_index = parents[i]
        if i > 0:
            if parent_index == i - 1:
                branch_ids.append(branch_ids[parent_index])
            else:
                branch_ids.append(
                    create_deterministic_id(SCOPE_EMAIL_BRANCH, thread_key, parent_index, i)
                )

        intent = resolve_intent(i, parent_index, rng)
        has_document = i in assignments.doc_slots
        has_image = config.include_images and i in assignments.image_slots
        skeleton = AttachmentSkeleton(
            has_document=has_document,
            document_type=assignments.doc_types.get(i) if has_document else None,
            has_image=has_image,
            is_image_inline=has_image and i in assignments.inline_images,
            has_voicemail=config.include_voicemails and i in assignments.voicemail_slots,
        )

        slots.append(
            ThreadEmailSlotPlan(
                index=i,
                email_id=email_ids[i],
                parent_index=parent_index if parent_index >= 0 else None,
                parent_email_id=email_ids[parent_index] if parent_index >= 0 else None,
                root_email_id=root_email_id,
                branch_id=branch_ids[i],
                intent=intent,
                sent_date=dates[i],
                narrative_phase=get_narrative_phase(i, email_count),
                attachments=skeleton,
            )
        )

    plan = ThreadStructurePlan(
        thread_id=thread.id,
        root_email_id=root_email_id,
        slots=tuple(slots),
    )
    logger.debug(
        f"Planned thread {thread.id}: {email_count} emails, "
        f"{plan.branch_count} branches"
    )
    return plan
