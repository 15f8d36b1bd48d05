"""Run-level orchestration of thread generation.

The orchestrator walks every storyline, plans its threads, and runs each
thread through three stages on a bounded worker pool:

1. ``thread-generation``: the slot loop fills every placeholder email.
2. ``attachment-generation``: planned assets are rendered and attached.
3. ``save-eml``: the thread is handed to the message-file sink.

Storylines are processed one after another; the threads of one storyline
run concurrently, at most ``parallel_threads`` at a time. Slots within a
thread are always sequential.

Classes:
    ThreadSaveError: Raised when the message-file sink fails for a thread.
    GenerationOrchestrator: Entry point for a generation run.

Example:
    >>> orchestrator = GenerationOrchestrator(
    ...     completion=LangChainCompletionClient(llm),
    ...     config=GenerationConfig(seed=42, parallel_threads=4),
    ...     selector=ArchetypeSelector(load_topic_catalog()),
    ...     sink=my_eml_writer,
    ... )
    >>> result = await orchestrator.generate(storylines)
    >>> result.succeeded_threads, result.errors

Design Notes:
    - Shared state has one lock per structure: progress counters (in the
      tracker), the result counters and error list, and the document-chain
      registry
    - Saving is serialized behind a single semaphore, and each thread is
      saved at most once
    - Cancellation is cooperative through an ``asyncio.Event``; a set event
      ends the run with ``was_cancelled=True``. Cancellation of the calling
      task itself is never swallowed
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Sequence

from src.threadgen.core.completion import CompletionClient
from src.threadgen.core.config import GenerationConfig
from src.threadgen.core.seeding import SCOPE_THREAD_ASSETS, create_rng
from src.threadgen.core.updates import UpdateEmitter, UpdateSink
from src.threadgen.domain.models import (
    Attachment,
    AttachmentKind,
    EmailMessage,
    EmailThread,
    Storyline,
)
from src.threadgen.generation.slot_generator import ThreadEmailGenerator
from src.threadgen.orchestration.assets import AttachmentAssetGenerator
from src.threadgen.orchestration.document_chains import DocumentChainRegistry
from src.threadgen.orchestration.interfaces import (
    CalendarInviteRenderer,
    DocumentRenderer,
    ImageRenderer,
    MessageFileSink,
    SpeechRenderer,
)
from src.threadgen.orchestration.models import GenerationResult
from src.threadgen.orchestration.progress import ProgressTracker
from src.threadgen.planning.models import ThreadPlan
from src.threadgen.planning.thread_plans import (
    build_thread_plans,
    calculate_planned_totals,
)
from src.threadgen.topics.selector import ArchetypeSelector

logger = logging.getLogger(__name__)

STAGE_THREAD_GENERATION = "thread-generation"
STAGE_ATTACHMENT_GENERATION = "attachment-generation"
STAGE_SAVE_EML = "save-eml"

NO_STORYLINE_ERROR = "No storyline available for email generation."


class ThreadSaveError(Exception):
    """Raised when the message-file sink fails for a thread.

    Attributes:
        thread_id: The thread that could not be saved.
    """

    def __init__(self, message: str, thread_id: uuid.UUID) -> None:
        super().__init__(message)
        self.thread_id = thread_id


# =============================================================================
# Run State
# =============================================================================


@dataclass
class _RunContext:
    """Mutable state shared by every worker of one run."""

    result: GenerationResult
    progress: ProgressTracker
    chains: DocumentChainRegistry
    cancel_event: asyncio.Event | None
    semaphore: asyncio.Semaphore
    save_semaphore: asyncio.Semaphore = field(default_factory=lambda: asyncio.Semaphore(1))
    result_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    saved_thread_ids: set[uuid.UUID] = field(default_factory=set)
    generated_thread_ids: set[uuid.UUID] = field(default_factory=set)

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


# =============================================================================
# Orchestrator
# =============================================================================


class GenerationOrchestrator:
    """Generates every thread of a set of storylines.

    Attributes:
        completion: Completion capability shared by every stage.
        config: Run configuration.
        selector: Archetype selector for non-responsive threads.
        sink: Message-file sink; saving is skipped when None.
        document_renderer, image_renderer, speech_renderer,
        calendar_renderer: Optional asset renderers.
        emitter: Builds and forwards lifecycle and progress updates.
    """

    def __init__(
        self,
        completion: CompletionClient,
        config: GenerationConfig,
        selector: ArchetypeSelector,
        sink: MessageFileSink | None = None,
        document_renderer: DocumentRenderer | None = None,
        image_renderer: ImageRenderer | None = None,
        speech_renderer: SpeechRenderer | None = None,
        calendar_renderer: CalendarInviteRenderer | None = None,
        update_sink: UpdateSink | None = None,
    ) -> None:
        self.completion = completion
        self.config = config
        self.selector = selector
        self.sink = sink
        self.document_renderer = document_renderer
        self.image_renderer = image_renderer
        self.speech_renderer = speech_renderer
        self.calendar_renderer = calendar_renderer
        self.emitter = UpdateEmitter(update_sink)

    async def generate(
        self,
        storylines: Sequence[Storyline],
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Run a full generation over ``storylines``.

        Threads are mutated in place and also returned in the result.

        Args:
            storylines: Storylines with beats and placeholder threads.
            cancel_event: Set it to stop the run between threads and slots.

        Returns:
            The run result. Errors are collected rather than raised.

        Raises:
            asyncio.CancelledError: If the calling task is cancelled.
        """
        started = time.monotonic()
        totals = calculate_planned_totals(storylines, self.config)
        result = GenerationResult(
            output_folder=self.config.output_folder,
            planned_threads=totals.threads,
            planned_emails=totals.emails,
            planned_attachments=totals.attachments,
        )
        run = _RunContext(
            result=result,
            progress=ProgressTracker(totals, self.emitter),
            chains=DocumentChainRegistry(self.config.enable_attachment_chains),
            cancel_event=cancel_event,
            semaphore=asyncio.Semaphore(max(1, self.config.parallel_threads)),
        )

        logger.info(
            f"Starting generation: {len(storylines)} storylines, {totals.threads} threads, "
            f"{totals.emails} emails, {totals.attachments} attachments (seed {self.config.seed})"
        )
        self.emitter.generation_started(
            storyline_count=len(storylines),
            planned_threads=totals.threads,
            planned_emails=totals.emails,
            planned_attachments=totals.attachments,
            seed=self.config.seed,
        )
        await run.progress.set_operation("Initializing...")

        try:
            if not storylines:
                raise ValueError(NO_STORYLINE_ERROR)

            for storyline in storylines:
                await self.process_storyline(storyline, run)

            await self.save_remaining_threads(run)
            await run.progress.set_operation("Complete!")
            logger.info(
                f"Generation completed: {result.succeeded_threads} threads, "
                f"{result.succeeded_emails} emails in {time.monotonic() - started:.1f}s"
            )
        except asyncio.CancelledError:
            if not run.cancel_requested:
                raise
            result.was_cancelled = True
            logger.info(f"Generation cancelled after {time.monotonic() - started:.1f}s")
        except Exception as e:
            logger.error(f"Email generation failed: {e}", exc_info=True)
            await self._record_error(run, f"Email generation failed ({type(e).__name__}): {e}")

        result.elapsed_seconds = time.monotonic() - started
        self.emitter.generation_completed(
            succeeded_emails=result.succeeded_emails,
            failed_emails=result.failed_emails,
            succeeded_threads=result.succeeded_threads,
            failed_threads=result.failed_threads,
            error_count=len(result.errors),
            was_cancelled=result.was_cancelled,
            elapsed_seconds=result.elapsed_seconds,
        )
        return result

    # =========================================================================
    # Storylines
    # =========================================================================

    async def process_storyline(self, storyline: Storyline, run: _RunContext) -> None:
        """Plan and generate every thread of one storyline.

        Planning errors, including contract violations, abort the storyline
        before any of its threads run and are recorded as storyline errors.
        """
        self._raise_if_cancelled(run)
        await run.progress.set_operation(
            f"Processing storyline: {storyline.title}", storyline=storyline.title
        )

        try:
            plans = build_thread_plans(storyline, self.config, self.config.seed)
            logger.info(f"Storyline '{storyline.title}': {len(plans)} threads planned")

            await self._run_threads(plans, run)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Storyline '{storyline.title}' failed: {e}", exc_info=True)
            await self._record_error(
                run, f"Storyline '{storyline.title}' failed during email generation: {e}"
            )
            return

        run.result.threads.extend(
            plan.thread for plan in plans if plan.thread.id in run.generated_thread_ids
        )

    async def _run_threads(self, plans: list[ThreadPlan], run: _RunContext) -> None:
        generator = self._build_thread_generator(run)
        assets = self._build_asset_generator(run)
        tasks = [
            asyncio.create_task(self.process_thread(plan, generator, assets, run))
            for plan in plans
        ]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    # =========================================================================
    # Threads
    # =========================================================================

    async def process_thread(
        self,
        plan: ThreadPlan,
        generator: ThreadEmailGenerator,
        assets: AttachmentAssetGenerator,
        run: _RunContext,
    ) -> None:
        """Run one thread through every stage.

        Any exception other than cancellation is recorded as a thread-level
        failure naming the stage it happened in.
        """
        async with run.semaphore:
            self._raise_if_cancelled(run)
            thread = plan.thread
            stage = STAGE_THREAD_GENERATION
            try:
                state = await generator.generate_thread(plan, run.cancel_event)
                async with run.result_lock:
                    run.generated_thread_ids.add(thread.id)
                    run.result.undelivered_attachments += state.carryover.ledger.total_undelivered

                stage = STAGE_ATTACHMENT_GENERATION
                rng = create_rng(SCOPE_THREAD_ASSETS, self.config.seed, thread.id.hex)
                await assets.generate_thread_assets(thread, rng)

                stage = STAGE_SAVE_EML
                await self.save_thread(thread, run)

                succeeded = all(not message.generation_failed for message in thread.messages)
                await self._record_thread_completion(thread, succeeded, state.failed_emails, run)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await self._record_thread_failure(thread, stage, e, run)

    async def save_thread(self, thread: EmailThread, run: _RunContext) -> None:
        """Hand a thread to the sink once, serialized with every other save.

        Raises:
            ThreadSaveError: If the sink raises.
        """
        if self.sink is None:
            return
        async with run.save_semaphore:
            if thread.id in run.saved_thread_ids:
                return
            try:
                await self.sink.save_thread(thread, self.config.output_folder)
            except Exception as e:
                raise ThreadSaveError(
                    f"Failed to save EML files for thread '{thread.display_subject}': {e}",
                    thread.id,
                ) from e
            run.saved_thread_ids.add(thread.id)
        logger.debug(f"Saved thread {thread.id} to {self.config.output_folder}")

    async def save_remaining_threads(self, run: _RunContext) -> None:
        """Save generated threads that were not saved during their own run."""
        if self.sink is None:
            return
        unsaved = [t for t in run.result.threads if t.id not in run.saved_thread_ids]
        if not unsaved:
            return

        logger.info(f"Saving {len(unsaved)} remaining threads")
        await run.progress.set_operation("Saving EML files...")
        for thread in unsaved:
            self._raise_if_cancelled(run)
            try:
                await self.save_thread(thread, run)
            except ThreadSaveError as e:
                logger.error(str(e))
                await self._record_error(run, f"Failed to save remaining EML files: {e}")

    # =========================================================================
    # Callbacks and Recording
    # =========================================================================

    def _build_thread_generator(self, run: _RunContext) -> ThreadEmailGenerator:
        async def on_email(plan: ThreadPlan, email: EmailMessage) -> None:
            async with run.result_lock:
                if email.generation_failed:
                    run.result.failed_emails += 1
                else:
                    run.result.succeeded_emails += 1
            label = "Failed email" if email.generation_failed else "Generated email"
            await run.progress.email_completed(f"{label}: {email.subject}")
            self.emitter.email_completed(
                thread_id=plan.thread.id,
                email_id=email.id,
                subject=email.subject,
                generation_failed=email.generation_failed,
            )

        async def on_error(message: str) -> None:
            await self._record_error(run, message)

        return ThreadEmailGenerator(
            self.completion,
            self.config,
            self.selector,
            on_email=on_email,
            on_error=on_error,
        )

    def _build_asset_generator(self, run: _RunContext) -> AttachmentAssetGenerator:
        async def on_operation(label: str) -> None:
            await run.progress.set_operation(label)

        async def on_asset(kind: AttachmentKind, attachment: Attachment | None) -> None:
            async with run.result_lock:
                if attachment is not None:
                    self._count_attachment(run.result, kind, attachment)
            await run.progress.attachment_completed(is_image=kind == "image")

        return AttachmentAssetGenerator(
            self.completion,
            self.config,
            run.chains,
            document_renderer=self.document_renderer,
            image_renderer=self.image_renderer,
            speech_renderer=self.speech_renderer,
            calendar_renderer=self.calendar_renderer,
            on_operation=on_operation,
            on_asset=on_asset,
        )

    @staticmethod
    def _count_attachment(
        result: GenerationResult, kind: AttachmentKind, attachment: Attachment
    ) -> None:
        if kind == "document" and attachment.document_type is not None:
            result.record_document(attachment.document_type)
        elif kind == "image":
            result.images += 1
        elif kind == "calendar":
            result.calendar_invites += 1
        elif kind == "voicemail":
            result.voicemails += 1

    async def _record_error(self, run: _RunContext, message: str) -> None:
        async with run.result_lock:
            run.result.errors.append(message)
        self.emitter.error_recorded(message)

    async def _record_thread_completion(
        self,
        thread: EmailThread,
        succeeded: bool,
        failed_emails: int,
        run: _RunContext,
    ) -> None:
        async with run.result_lock:
            if succeeded:
                run.result.succeeded_threads += 1
            else:
                run.result.failed_threads += 1
        logger.info(
            f"Thread '{thread.display_subject}' completed "
            f"({'ok' if succeeded else f'{failed_emails} failed emails'})"
        )
        self.emitter.thread_completed(
            thread_id=thread.id,
            subject=thread.display_subject,
            succeeded=succeeded,
            failed_emails=failed_emails,
        )

    async def _record_thread_failure(
        self,
        thread: EmailThread,
        stage: str,
        error: Exception,
        run: _RunContext,
    ) -> None:
        subject = thread.display_subject
        message = f"Thread '{subject}' (ThreadId {thread.id}) failed during {stage}: {error}"
        logger.error(message, exc_info=True)
        async with run.result_lock:
            run.result.failed_threads += 1
            run.result.errors.append(message)
        self.emitter.error_recorded(message)
        await run.progress.set_operation(f"Failed thread: {subject}")
        self.emitter.thread_completed(
            thread_id=thread.id,
            subject=subject,
            succeeded=False,
            failed_emails=sum(1 for m in thread.messages if m.generation_failed),
        )

    @staticmethod
    def _raise_if_cancelled(run: _RunContext) -> None:
        if run.cancel_requested:
            raise asyncio.CancelledError()
