"""Lock-guarded progress counters.

Workers mutate the counters under an ``asyncio.Lock`` and take a frozen
``GenerationProgress`` snapshot before releasing it. The snapshot is handed
to the update emitter after the lock is released, so a slow consumer never
blocks other workers and snapshots may arrive out of order.
"""

from __future__ import annotations

import asyncio

from src.threadgen.core.updates import GenerationProgress, UpdateEmitter
from src.threadgen.planning.models import PlannedTotals


class ProgressTracker:
    """Aggregate progress of one run.

    Attributes:
        emitter: Receives every snapshot.
        total_emails, total_attachments, total_images: Planned totals.
        completed_emails, completed_attachments, completed_images: Work done.
        current_storyline: Title of the storyline being processed.
        current_operation: Label of the last step reported.
    """

    def __init__(self, totals: PlannedTotals, emitter: UpdateEmitter) -> None:
        self.emitter = emitter
        self.total_emails = totals.emails
        self.total_attachments = totals.attachments
        self.total_images = totals.images
        self.completed_emails = 0
        self.completed_attachments = 0
        self.completed_images = 0
        self.current_storyline = ""
        self.current_operation = ""
        self._lock = asyncio.Lock()

    def snapshot(self) -> GenerationProgress:
        """Frozen copy of the counters. Call while holding the lock."""
        return GenerationProgress(
            total_emails=self.total_emails,
            completed_emails=self.completed_emails,
            total_attachments=self.total_attachments,
            completed_attachments=self.completed_attachments,
            total_images=self.total_images,
            completed_images=self.completed_images,
            current_storyline=self.current_storyline,
            current_operation=self.current_operation,
        )

    async def set_operation(
        self, operation: str, storyline: str | None = None
    ) -> GenerationProgress:
        async with self._lock:
            self.current_operation = operation
            if storyline is not None:
                self.current_storyline = storyline
            snapshot = self.snapshot()
        self.emitter.progress(snapshot)
        return snapshot

    async def email_completed(self, operation: str) -> GenerationProgress:
        """Count one committed slot, never past the planned total."""
        async with self._lock:
            self.completed_emails = min(self.total_emails, self.completed_emails + 1)
            self.current_operation = operation
            snapshot = self.snapshot()
        self.emitter.progress(snapshot)
        return snapshot

    async def attachment_completed(self, is_image: bool = False) -> GenerationProgress:
        async with self._lock:
            self.completed_attachments += 1
            if is_image:
                self.completed_images += 1
            snapshot = self.snapshot()
        self.emitter.progress(snapshot)
        return snapshot
