"""Sender and recipient resolution for a slot.

Addressing follows the shape of the thread: a reply comes from someone the
parent was addressed to and goes back to the parent's sender, a forward pulls
in someone the parent never reached. All randomness comes from the thread's
own RNG, so the same seed resolves the same addressing.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence

from src.threadgen.domain.models import Character, EmailMessage
from src.threadgen.generation.models import ResolvedParticipants
from src.threadgen.planning.models import ThreadEmailIntent, ThreadEmailSlotPlan

logger = logging.getLogger(__name__)

NEW_CC_PROBABILITY = 0.25
REPLY_CC_PROBABILITY = 0.4
FORWARD_CC_PROBABILITY = 0.2


class ParticipantResolutionError(ValueError):
    """Raised when a thread has nobody to address.

    Attributes:
        thread_id: Thread being generated, when known.
    """

    def __init__(self, message: str, thread_id: object | None = None) -> None:
        self.thread_id = thread_id
        super().__init__(message)


def _distinct(characters: Iterable[Character]) -> list[Character]:
    seen: set = set()
    result: list[Character] = []
    for character in characters:
        if character.id in seen:
            continue
        seen.add(character.id)
        result.append(character)
    return result


def _excluding(participants: Sequence[Character], *excluded: Character) -> list[Character]:
    ids = {c.id for c in excluded}
    return [c for c in participants if c.id not in ids]


def _first_other(participants: Sequence[Character], sender: Character) -> Character:
    return next((c for c in participants if c.id != sender.id), sender)


def resolve_participants(
    slot: ThreadEmailSlotPlan,
    participants: Sequence[Character],
    parent: EmailMessage | None,
    rng: random.Random,
) -> ResolvedParticipants:
    """Pick From, To and Cc for a slot.

    Args:
        slot: Slot being generated.
        participants: Thread participants, in plan order.
        parent: Committed parent email, or None for the root.
        rng: The thread's generation RNG.

    Raises:
        ParticipantResolutionError: If ``participants`` is empty.
    """
    if not participants:
        raise ParticipantResolutionError("No participants available for thread.")

    participants = list(participants)
    to: list[Character] = []
    cc: list[Character] = []

    if slot.intent == ThreadEmailIntent.NEW or parent is None or parent.sender is None:
        sender = participants[rng.randrange(len(participants))]
        to_pool = _excluding(participants, sender) or participants
        to.append(to_pool[rng.randrange(len(to_pool))])

        if len(participants) > 2 and rng.random() < NEW_CC_PROBABILITY:
            cc_pool = _excluding(participants, sender, to[0])
            if cc_pool:
                cc.append(cc_pool[rng.randrange(len(cc_pool))])

    elif slot.intent == ThreadEmailIntent.REPLY:
        from_pool = _distinct([*parent.to, *parent.cc]) or participants
        sender = from_pool[rng.randrange(len(from_pool))]

        if parent.sender.id == sender.id:
            reply_to = _first_other(participants, sender)
        else:
            reply_to = parent.sender
        to.append(reply_to)

        if rng.random() < REPLY_CC_PROBABILITY:
            cc_pool = _excluding(_distinct([*parent.to, *parent.cc]), sender, reply_to)
            if not cc_pool:
                cc_pool = _excluding(participants, sender, reply_to)
            cc.extend(cc_pool)

    else:
        from_pool = _distinct([*parent.to, *parent.cc]) or participants
        sender = from_pool[rng.randrange(len(from_pool))]

        to_pool = _excluding(participants, *parent.to, *parent.cc, parent.sender, sender)
        if not to_pool:
            to_pool = _excluding(participants, sender) or participants
        to.append(to_pool[rng.randrange(len(to_pool))])

        if len(participants) > 2 and rng.random() < FORWARD_CC_PROBABILITY:
            cc_pool = _excluding(participants, sender, to[0])
            if cc_pool:
                cc.append(cc_pool[rng.randrange(len(cc_pool))])

    if not to:
        to.append(_first_other(participants, sender))

    logger.debug(
        f"Slot {slot.index} ({slot.intent.value}): {sender.email} -> "
        f"{[c.email for c in to]} cc {[c.email for c in cc]}"
    )
    return ResolvedParticipants(sender=sender, to=tuple(to), cc=tuple(cc))
