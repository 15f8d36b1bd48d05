"""Tests for the lock-guarded progress tracker.

Tests cover:
- Initial totals and snapshots
- Operation, email and attachment counters
- Email counter capped at the planned total
- Every change forwarded to the update sink
"""

from __future__ import annotations

import asyncio

import pytest

from src.threadgen.core.updates import GenerationProgress, UpdateEmitter
from src.threadgen.orchestration.progress import ProgressTracker
from src.threadgen.planning.models import PlannedTotals


@pytest.fixture
def updates() -> list:
    return []


@pytest.fixture
def tracker(updates: list) -> ProgressTracker:
    totals = PlannedTotals(threads=2, emails=3, attachments=4, images=1)
    return ProgressTracker(totals, UpdateEmitter(updates.append))


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def test_initial_snapshot(self, tracker) -> None:
        snapshot = tracker.snapshot()
        assert isinstance(snapshot, GenerationProgress)
        assert snapshot.total_emails == 3
        assert snapshot.total_attachments == 4
        assert snapshot.total_images == 1
        assert snapshot.completed_emails == 0

    @pytest.mark.asyncio
    async def test_set_operation(self, tracker, updates) -> None:
        snapshot = await tracker.set_operation("Processing storyline: Audit", storyline="Audit")
        assert snapshot.current_operation == "Processing storyline: Audit"
        assert snapshot.current_storyline == "Audit"

        snapshot = await tracker.set_operation("Saving EML files...")
        assert snapshot.current_storyline == "Audit"
        assert updates == [
            GenerationProgress(
                total_emails=3,
                total_attachments=4,
                total_images=1,
                current_storyline="Audit",
                current_operation="Processing storyline: Audit",
            ),
            snapshot,
        ]

    @pytest.mark.asyncio
    async def test_email_counter_is_capped(self, tracker) -> None:
        for _ in range(5):
            snapshot = await tracker.email_completed("Generated email: Hello")
        assert snapshot.completed_emails == 3
        assert snapshot.current_operation == "Generated email: Hello"

    @pytest.mark.asyncio
    async def test_attachment_counters(self, tracker) -> None:
        await tracker.attachment_completed()
        snapshot = await tracker.attachment_completed(is_image=True)
        assert snapshot.completed_attachments == 2
        assert snapshot.completed_images == 1

    @pytest.mark.asyncio
    async def test_snapshots_are_independent(self, tracker) -> None:
        first = await tracker.email_completed("one")
        await tracker.email_completed("two")
        assert first.completed_emails == 1
        assert tracker.completed_emails == 2

    @pytest.mark.asyncio
    async def test_concurrent_updates(self, tracker, updates) -> None:
        await asyncio.gather(
            *(tracker.attachment_completed(is_image=i % 2 == 0) for i in range(10))
        )
        assert tracker.completed_attachments == 10
        assert tracker.completed_images == 5
        assert len(updates) == 10
        assert max(u.completed_attachments for u in updates) == 10
