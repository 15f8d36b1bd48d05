"""Per-thread plans for a storyline.

Walks a storyline's beats and threads, checks the planning contract, gives
each thread its share of the beat's date window, resolves its participants,
and builds its structure plan.

Key Classes:
    ThreadPlanContractError: Raised when upstream input breaks the contract.

Functions:
    build_thread_plans: Build ThreadPlans for every thread of a storyline.
    calculate_planned_totals: Planned counts across storylines.
    resolve_thread_participants: Participants for one thread.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from src.threadgen.core.config import GenerationConfig
from src.threadgen.core.seeding import SCOPE_THREAD_GEN, create_seed
from src.threadgen.domain.models import Character, EmailThread, StoryBeat, Storyline
from src.threadgen.planning.dates import interpolate_date_in_range
from src.threadgen.planning.models import PlannedTotals, ThreadPlan
from src.threadgen.planning.structure_planner import (
    build_plan,
    calculate_attachment_totals,
    calculate_calendar_checks,
)

logger = logging.getLogger(__name__)


class ThreadPlanContractError(ValueError):
    """Raised when beats and threads violate the planning contract.

    These are fatal: they mean the upstream story data is inconsistent and
    retrying generation cannot help.

    Attributes:
        beat_name: Name of the offending beat, when known.
    """

    def __init__(self, message: str, beat_name: str | None = None) -> None:
        super().__init__(message)
        self.beat_name = beat_name


# =============================================================================
# Contract Checks
# =============================================================================


def _beat_needs_planning(beat: StoryBeat) -> bool:
    if beat.email_count <= 0:
        if beat.threads:
            raise ThreadPlanContractError(
                f"Story beat '{beat.name}' has threads but zero planned emails.",
                beat.name,
            )
        return False
    if not beat.threads:
        raise ThreadPlanContractError(
            f"Story beat '{beat.name}' has no planned threads. Regenerate story beats.",
            beat.name,
        )
    return True


def _check_thread_for_beat(thread: EmailThread, beat: StoryBeat, storyline: Storyline) -> None:
    if not thread.messages:
        raise ThreadPlanContractError(
            f"Story beat '{beat.name}' has a thread with no planned emails.", beat.name
        )
    if thread.story_beat_id != beat.id:
        raise ThreadPlanContractError(
            f"Story beat '{beat.name}' has a thread with an unexpected story beat id.",
            beat.name,
        )
    if thread.storyline_id != beat.storyline_id or thread.storyline_id != storyline.id:
        raise ThreadPlanContractError(
            f"Story beat '{beat.name}' has a thread with an unexpected storyline id.",
            beat.name,
        )


# =============================================================================
# Participants
# =============================================================================


def _with_email(characters: Sequence[Character]) -> list[Character]:
    seen = set()
    result = []
    for character in characters:
        if not character.email.strip() or character.id in seen:
            continue
        seen.add(character.id)
        result.append(character)
    return result


def resolve_thread_participants(
    thread: EmailThread,
    beat: StoryBeat,
    storyline: Storyline,
) -> list[Character]:
    """Participants for a thread.

    Uses the thread's own participants, then the beat's cast, then every
    storyline character. Characters without an email address are dropped.
    """
    participants = _with_email(thread.participants)
    if not participants and beat.character_ids:
        cast = set(beat.character_ids)
        participants = _with_email([c for c in storyline.characters if c.id in cast])
    if not participants:
        participants = _with_email(storyline.characters)
    return participants


# =============================================================================
# Plan Building
# =============================================================================


def build_thread_plans(
    storyline: Storyline,
    config: GenerationConfig,
    run_seed: int,
) -> list[ThreadPlan]:
    """Build a plan for every thread in a storyline.

    Each thread gets the slice of its beat's window proportional to the
    emails planned before and including it.

    Raises:
        ThreadPlanContractError: On any contract violation, including a beat
            whose thread email counts do not sum to its target.
    """
    plans: list[ThreadPlan] = []
    for beat in storyline.beats:
        if not _beat_needs_planning(beat):
            continue

        assigned = 0
        for thread in beat.threads:
            _check_thread_for_beat(thread, beat, storyline)

            count = len(thread.messages)
            start = interpolate_date_in_range(
                beat.start_date, beat.end_date, assigned / beat.email_count
            )
            end = interpolate_date_in_range(
                beat.start_date, beat.end_date, (assigned + count) / beat.email_count
            )

            participants = resolve_thread_participants(thread, beat, storyline)
            if not participants:
                raise ThreadPlanContractError(
                    f"Story beat '{beat.name}' has a thread with no participants "
                    "that have email addresses.",
                    beat.name,
                )
            if not thread.participants:
                thread.participants = list(participants)

            structure = build_plan(thread, count, start, end, config, run_seed)
            logger.debug(
                f"Created structure plan for thread {thread.id}: "
                f"{count} emails, {structure.branch_count} branches"
            )

            plans.append(
                ThreadPlan(
                    index=len(plans),
                    thread=thread,
                    storyline=storyline,
                    beat=beat,
                    email_count=count,
                    start_date=start,
                    end_date=end,
                    participants=tuple(participants),
                    structure=structure,
                    seed=create_seed(SCOPE_THREAD_GEN, run_seed, thread.id.hex),
                )
            )
            assigned += count

        if assigned != beat.email_count:
            raise ThreadPlanContractError(
                f"Story beat '{beat.name}' planned emails ({assigned}) do not match "
                f"beat email count ({beat.email_count}).",
                beat.name,
            )

    return plans


def calculate_planned_totals(
    storylines: Sequence[Storyline],
    config: GenerationConfig,
) -> PlannedTotals:
    """Planned threads, emails, attachments and images across storylines."""
    threads = emails = attachments = images = 0
    for storyline in storylines:
        for beat in storyline.beats:
            for thread in beat.threads:
                count = len(thread.messages)
                threads += 1
                emails += count
                if count <= 0:
                    continue
                totals = calculate_attachment_totals(config, count)
                attachments += totals.total + calculate_calendar_checks(config, count)
                images += totals.images
    return PlannedTotals(
        threads=threads, emails=emails, attachments=attachments, images=images
    )
