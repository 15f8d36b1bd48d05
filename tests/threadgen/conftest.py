"""Shared story fixtures for threadgen tests.

Builds small storylines with placeholder threads the way the upstream story
stage hands them to the engine: messages carry only ids and sequence
indices, and beat email counts match the thread sizes.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from datetime import datetime

import pytest

from src.threadgen.domain.models import (
    Character,
    EmailMessage,
    EmailThread,
    Organization,
    StoryBeat,
    Storyline,
    ThreadRelevance,
)

BEAT_START = datetime(2026, 1, 5, 9, 0)
BEAT_END = datetime(2026, 1, 16, 17, 0)


@pytest.fixture
def organization() -> Organization:
    return Organization(
        id=uuid.uuid4(), name="Acme Corp", domain="acme.com", industry="Technology"
    )


@pytest.fixture
def partner_organization() -> Organization:
    return Organization(
        id=uuid.uuid4(),
        name="Globex Partners",
        domain="globex.com",
        industry="Finance",
        is_internal=False,
    )


@pytest.fixture
def characters(organization: Organization) -> list[Character]:
    """Three colleagues at the same organization."""
    return [
        Character(
            id=uuid.uuid4(),
            first_name="Alice",
            last_name="Nguyen",
            email="alice.nguyen@acme.com",
            organization_id=organization.id,
            role="Finance Manager",
            department="Finance",
            signature_block="Alice Nguyen\nFinance Manager\nAcme Corp",
        ),
        Character(
            id=uuid.uuid4(),
            first_name="Bob",
            last_name="Okafor",
            email="bob.okafor@acme.com",
            organization_id=organization.id,
            role="Software Engineer",
            department="Engineering",
            signature_block="Bob Okafor\nSoftware Engineer",
        ),
        Character(
            id=uuid.uuid4(),
            first_name="Carla",
            last_name="Reyes",
            email="carla.reyes@acme.com",
            organization_id=organization.id,
            role="General Counsel",
            department="Legal",
            signature_block="Carla Reyes\nGeneral Counsel",
        ),
    ]


def build_thread(
    storyline_id: uuid.UUID,
    beat_id: uuid.UUID,
    size: int,
    relevance: ThreadRelevance = ThreadRelevance.RESPONSIVE,
) -> EmailThread:
    thread = EmailThread(
        id=uuid.uuid4(),
        story_beat_id=beat_id,
        storyline_id=storyline_id,
        relevance=relevance,
        topic="Vendor invoice dispute",
    )
    thread.messages = [
        EmailMessage(id=uuid.uuid4(), thread_id=thread.id, sequence_index=i)
        for i in range(size)
    ]
    return thread


StorylineFactory = Callable[..., Storyline]


@pytest.fixture
def make_storyline(
    characters: list[Character], organization: Organization
) -> StorylineFactory:
    """Factory for a one-beat storyline with placeholder threads.

    Args:
        thread_sizes: Placeholder count per thread.
        relevance: Relevance label for every thread.
        cast: Characters for the storyline, defaulting to ``characters``.
    """

    def factory(
        thread_sizes: Sequence[int] = (4,),
        relevance: ThreadRelevance = ThreadRelevance.RESPONSIVE,
        cast: Sequence[Character] | None = None,
    ) -> Storyline:
        storyline = Storyline(
            id=uuid.uuid4(),
            title="The Vendor Audit",
            summary="Finance discovers duplicate invoices from a key vendor.",
            characters=list(characters if cast is None else cast),
            organizations=[organization],
        )
        beat = StoryBeat(
            id=uuid.uuid4(),
            storyline_id=storyline.id,
            name="Discovery",
            plot="Alice notices invoice totals that do not reconcile.",
            start_date=BEAT_START,
            end_date=BEAT_END,
            email_count=sum(thread_sizes),
        )
        beat.threads = [
            build_thread(storyline.id, beat.id, size, relevance) for size in thread_sizes
        ]
        storyline.beats = [beat]
        return storyline

    return factory
