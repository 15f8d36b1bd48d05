"""Per-thread slot generation loop.

For each slot of a thread's structure plan, in index order, the generator
resolves addressing, settles the thread subject (first slot only), merges the
slot's attachment plan with obligations carried over from failed slots, then
drafts, validates and repairs the body within the configured repair budget.
A slot either commits a validated email or commits a failure placeholder;
neither outcome stops the thread.

Classes:
    ThreadExecutionState: Mutable state of one thread's generation.
    ThreadEmailGenerator: Runs the slot loop for a thread plan.

Example:
    >>> generator = ThreadEmailGenerator(completion, config, selector)
    >>> state = await generator.generate_thread(plan)
    >>> state.failed_emails
    0

Design Notes:
    - All randomness comes from ``random.Random(plan.seed)``, so a seed and
      a plan reproduce the same addressing, archetypes and fallback values.
    - Completion errors are logged and consume one attempt of the repair
      budget; ``asyncio.CancelledError`` is never caught.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from src.threadgen.core.completion import CompletionClient
from src.threadgen.core.config import GenerationConfig
from src.threadgen.core.seeding import SCOPE_THREAD_ENTITIES, create_rng
from src.threadgen.domain.models import (
    AttachmentType,
    Character,
    EmailMessage,
    PlannedAttachments,
    PlannedDocument,
    PlannedImage,
    PlannedVoicemail,
)
from src.threadgen.generation.carryover import AttachmentCarryoverState
from src.threadgen.generation.entities import (
    DEFAULT_SUBJECT,
    humanize_identifier,
    normalize_entity_values,
    normalize_non_responsive_subject,
    normalize_subject,
)
from src.threadgen.generation.facts import ThreadFactTable
from src.threadgen.generation.formatting import convert_to_html
from src.threadgen.generation.models import (
    AttachmentPlanDetails,
    AttachmentRequirement,
    DraftResult,
    EmailSubjectResponse,
    NonResponsiveArchetypeSelection,
    NonResponsiveSubjectResponse,
    ResolvedParticipants,
    SingleEmailResponse,
    SlotState,
)
from src.threadgen.generation.participants import resolve_participants
from src.threadgen.generation.prompts import (
    EMAIL_SYSTEM_PROMPT,
    SUBJECT_SYSTEM_PROMPT,
    SlotPromptContext,
    build_non_responsive_body_prompt,
    build_non_responsive_subject_prompt,
    build_repair_prompt,
    build_single_email_prompt,
    build_thread_subject_prompt,
    is_external_audience,
)
from src.threadgen.generation.signatures import correct_signature
from src.threadgen.generation.subjects import (
    add_forward_prefix,
    add_reply_prefix,
    apply_threading_headers,
    clean_subject,
    format_forwarded_content,
    format_quoted_reply,
    resolve_subject,
)
from src.threadgen.generation.validation import ERROR_NO_BODY_RETURNED, validate_email_body
from src.threadgen.planning.models import ThreadEmailIntent, ThreadEmailSlotPlan, ThreadPlan
from src.threadgen.topics.schema import TopicArchetype
from src.threadgen.topics.selector import ArchetypeSelector

logger = logging.getLogger(__name__)

EmailCallback = Callable[[ThreadPlan, EmailMessage], Awaitable[None]]
ErrorCallback = Callable[[str], Awaitable[None]]

UNTITLED_SUBJECT = "Untitled thread"
UNKNOWN_FAILURE = "Unknown email generation failure."
FAILURE_BODY = "Hi {first_name},\n\nThis email could not be generated due to an internal error.\n\n{signature}"


# =============================================================================
# Execution State
# =============================================================================


@dataclass
class ThreadExecutionState:
    """Mutable state of one thread's generation.

    Attributes:
        plan: Plan being executed.
        rng: Thread generation RNG seeded from the plan.
        entity_rng: Draws fallback entity values. Kept apart from ``rng`` so
            missing entities in a response never shift participant choices.
        fact_table: Rolling facts fed into later prompts.
        carryover: Pending attachment obligations.
        generated: Committed emails by id.
        chronological: Committed emails in slot order.
        slot_states: Lifecycle state per slot index.
        thread_topic: Topic used in prompts and attachment descriptions.
        thread_subject: Base subject, without RE:/FW: prefixes.
        subject_generated: Whether the first-slot subject request ran.
        non_responsive_selection: Archetype chosen for a non-responsive thread.
        errors: Errors recorded while generating this thread.
        failed_emails: Slots that committed a failure placeholder.
    """

    plan: ThreadPlan
    rng: random.Random
    fact_table: ThreadFactTable
    carryover: AttachmentCarryoverState
    entity_rng: random.Random
    generated: dict[uuid.UUID, EmailMessage] = field(default_factory=dict)
    chronological: list[EmailMessage] = field(default_factory=list)
    slot_states: dict[int, SlotState] = field(default_factory=dict)
    thread_topic: str = ""
    thread_subject: str = ""
    subject_generated: bool = False
    non_responsive_selection: NonResponsiveArchetypeSelection | None = None
    errors: list[str] = field(default_factory=list)
    failed_emails: int = 0

    @classmethod
    def for_plan(cls, plan: ThreadPlan) -> ThreadExecutionState:
        state = cls(
            plan=plan,
            rng=random.Random(plan.seed),
            fact_table=ThreadFactTable.for_participants(plan.participants),
            carryover=AttachmentCarryoverState(plan.thread.id),
            entity_rng=create_rng(SCOPE_THREAD_ENTITIES, plan.seed, plan.thread.id),
        )
        state.slot_states = {slot.index: SlotState.PENDING for slot in plan.structure.slots}
        state.thread_topic = plan.thread.topic
        state.thread_subject = clean_subject(plan.thread.subject)
        return state

    @property
    def is_responsive(self) -> bool:
        return self.plan.thread.is_responsive


# =============================================================================
# Generator
# =============================================================================


class ThreadEmailGenerator:
    """Runs the draft/validate/repair loop over every slot of a thread.

    Attributes:
        completion: Completion capability for subjects and bodies.
        config: Run configuration.
        selector: Archetype selector for non-responsive threads.
        on_email: Awaited after every slot commits, success or failure.
        on_error: Awaited with each error message recorded for a slot.
    """

    def __init__(
        self,
        completion: CompletionClient,
        config: GenerationConfig,
        selector: ArchetypeSelector,
        on_email: EmailCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.completion = completion
        self.config = config
        self.selector = selector
        self.on_email = on_email
        self.on_error = on_error

    async def generate_thread(
        self,
        plan: ThreadPlan,
        cancel_event: asyncio.Event | None = None,
    ) -> ThreadExecutionState:
        """Generate every email of a planned thread in place.

        Args:
            plan: Thread plan. Its thread must hold one placeholder per slot.
            cancel_event: Checked before each slot; when set, generation stops
                with ``asyncio.CancelledError``.

        Returns:
            The final execution state, including the carryover ledger.

        Raises:
            asyncio.CancelledError: If ``cancel_event`` is set.
            ValueError: If a slot has no matching placeholder email.
        """
        state = ThreadExecutionState.for_plan(plan)
        self._initialize_thread_metadata(state)

        logger.info(f"Generating thread {plan.thread.id} with {plan.email_count} emails")
        for slot in plan.structure.slots:
            if cancel_event is not None and cancel_event.is_set():
                raise asyncio.CancelledError()
            await self.generate_slot(slot, state)

        state.carryover.finalize()
        if state.thread_subject:
            plan.thread.subject = state.thread_subject
        return state

    # =========================================================================
    # Slot Processing
    # =========================================================================

    async def generate_slot(self, slot: ThreadEmailSlotPlan, state: ThreadExecutionState) -> None:
        """Generate and commit one slot."""
        plan = state.plan
        thread = plan.thread
        target = thread.find_message(slot.email_id)
        if target is None:
            raise ValueError(
                f"Missing email placeholder for slot {slot.index} in thread {thread.id}."
            )

        parent = state.generated.get(slot.parent_email_id) if slot.parent_email_id else None
        requirement = state.carryover.build_requirement(
            slot, is_final_slot=slot.index == plan.email_count - 1
        )
        participants = resolve_participants(slot, plan.participants, parent, state.rng)
        await self.ensure_thread_subject(slot, participants, state)
        details = self.build_attachment_plan_details(requirement, state, slot)

        result = await self.draft_email(slot, parent, requirement, details, participants, state)

        if result.success and result.body is not None:
            own_text = self.apply_draft(
                result.body, target, state, slot, requirement, details, parent, participants
            )
            state.slot_states[slot.index] = SlotState.COMMITTED
            state.generated[target.id] = target
            state.chronological.append(target)
            state.fact_table.record(target, own_text)
            state.carryover.record_success(requirement)
        else:
            reason = "; ".join(result.errors) if result.errors else UNKNOWN_FAILURE
            self.populate_failure_email(target, state, slot, parent, participants, reason)
            state.slot_states[slot.index] = SlotState.FAILURE_COMMITTED
            state.generated[target.id] = target
            state.chronological.append(target)
            state.failed_emails += 1
            state.carryover.record_failure(requirement)

            message = f"Email slot {slot.index + 1} failed for thread {thread.id}: {reason}"
            logger.warning(message)
            state.errors.append(message)
            if self.on_error is not None:
                await self.on_error(message)

        if self.on_email is not None:
            await self.on_email(plan, target)

        if requirement.is_final_slot and state.carryover.has_pending:
            logger.info(
                f"Thread {thread.id} final slot done with pending attachments: "
                f"{len(state.carryover.pending_documents)} documents, "
                f"{state.carryover.pending_images} images, "
                f"{state.carryover.pending_voicemails} voicemails"
            )

    async def draft_email(
        self,
        slot: ThreadEmailSlotPlan,
        parent: EmailMessage | None,
        requirement: AttachmentRequirement,
        details: AttachmentPlanDetails,
        participants: ResolvedParticipants,
        state: ThreadExecutionState,
    ) -> DraftResult:
        """Draft, validate and repair a body within the repair budget.

        Attempt 0 is the first draft; attempts 1..N are repairs that carry the
        previous draft and its errors.
        """
        thread_id = state.plan.thread.id
        max_repairs = max(0, self.config.max_email_repair_attempts)
        is_non_responsive_first = not state.is_responsive and slot.index == 0
        errors: list[str] = []
        last_body: str | None = None

        for attempt in range(max_repairs + 1):
            context = SlotPromptContext(
                plan=state.plan,
                slot=slot,
                parent=parent,
                requirement=requirement,
                details=details,
                participants=participants,
                subject=state.thread_subject,
                topic=state.thread_topic,
            )
            if attempt == 0:
                state.slot_states[slot.index] = SlotState.DRAFTING
                if is_non_responsive_first:
                    selection = self._ensure_non_responsive_selection(slot, participants, state)
                    prompt = build_non_responsive_body_prompt(context, selection)
                    operation = f"Non-responsive Email Generation (thread {thread_id}, slot {slot.index + 1})"
                else:
                    prompt = build_single_email_prompt(context, state.chronological, state.fact_table)
                    operation = f"Email Generation (thread {thread_id}, slot {slot.index + 1})"
            else:
                state.slot_states[slot.index] = SlotState.REPAIRING
                prompt = build_repair_prompt(context, last_body, errors)
                operation = f"Email Repair (thread {thread_id}, slot {slot.index + 1}, attempt {attempt})"

            try:
                response = await self.completion.complete(
                    EMAIL_SYSTEM_PROMPT, prompt, SingleEmailResponse, operation
                )
            except Exception as e:
                logger.warning(f"{operation} failed: {e}")
                errors = [f"Completion request failed: {e}"]
                continue

            if response is None or not response.body_plain or not response.body_plain.strip():
                errors = [ERROR_NO_BODY_RETURNED]
                continue

            last_body = response.body_plain
            state.slot_states[slot.index] = SlotState.VALIDATING
            errors = validate_email_body(last_body, slot, parent, requirement)
            if not errors:
                return DraftResult(success=True, body=last_body, attempts=attempt + 1)
            logger.debug(f"{operation} failed validation: {errors}")

        return DraftResult(success=False, body=last_body, errors=errors, attempts=max_repairs + 1)

    # =========================================================================
    # Subject Resolution
    # =========================================================================

    def _initialize_thread_metadata(self, state: ThreadExecutionState) -> None:
        if not state.is_responsive:
            return
        if not state.thread_topic.strip():
            state.thread_topic = self._resolve_responsive_topic(state)
        if not state.thread_subject:
            state.thread_subject = normalize_subject(state.thread_topic, DEFAULT_SUBJECT)
        if not state.plan.thread.topic:
            state.plan.thread.topic = state.thread_topic

    @staticmethod
    def _resolve_responsive_topic(state: ThreadExecutionState) -> str:
        plan = state.plan
        if plan.thread.topic.strip():
            return plan.thread.topic
        if plan.beat.name.strip():
            return plan.beat.name
        if plan.storyline.title.strip():
            return plan.storyline.title
        return DEFAULT_SUBJECT

    async def ensure_thread_subject(
        self,
        slot: ThreadEmailSlotPlan,
        participants: ResolvedParticipants,
        state: ThreadExecutionState,
    ) -> None:
        """Request the thread subject once, on the first slot.

        Failures fall back to the topic-derived subject (responsive) or the
        archetype fallback subject (non-responsive).
        """
        if state.subject_generated or slot.index != 0:
            return
        state.subject_generated = True
        thread_id = state.plan.thread.id

        if state.is_responsive:
            fallback = state.thread_subject or normalize_subject(state.thread_topic, DEFAULT_SUBJECT)
            try:
                response = await self.completion.complete(
                    SUBJECT_SYSTEM_PROMPT,
                    build_thread_subject_prompt(state.plan, participants, state.thread_topic),
                    EmailSubjectResponse,
                    f"Email Subject (thread {thread_id})",
                )
                state.thread_subject = normalize_subject(
                    response.subject if response is not None else None, fallback
                )
            except Exception as e:
                logger.warning(f"Failed to generate subject for thread {thread_id}: {e}")
                state.thread_subject = normalize_subject(state.thread_subject, fallback)
            return

        audience = "external" if is_external_audience(participants) else "internal"
        logger.debug(f"Generating non-responsive subject for thread {thread_id} ({audience})")
        fallback = state.thread_subject or DEFAULT_SUBJECT

        archetype = self._select_archetype(slot, participants, state)
        try:
            response = await self.completion.complete(
                SUBJECT_SYSTEM_PROMPT,
                build_non_responsive_subject_prompt(state.plan, participants, archetype),
                NonResponsiveSubjectResponse,
                f"Non-responsive Subject (thread {thread_id})",
            )
            raw_subject = response.subject if response is not None else None
            raw_entities = response.entity_values if response is not None else None
        except Exception as e:
            logger.warning(f"Failed to generate subject for thread {thread_id}: {e}")
            raw_subject = state.thread_subject
            raw_entities = None

        entity_values = normalize_entity_values(
            archetype, raw_entities, state.entity_rng, slot.sent_date, participants
        )
        subject = normalize_non_responsive_subject(raw_subject, fallback, archetype)
        state.thread_subject = subject
        state.non_responsive_selection = NonResponsiveArchetypeSelection(
            archetype=archetype, subject=subject, entity_values=entity_values
        )
        if not state.thread_topic.strip():
            state.thread_topic = humanize_identifier(archetype.id)
        logger.info(
            f"Non-responsive thread {thread_id} uses archetype '{archetype.id}': {subject}"
        )

    def _select_archetype(
        self,
        slot: ThreadEmailSlotPlan,
        participants: ResolvedParticipants,
        state: ThreadExecutionState,
    ) -> TopicArchetype:
        return self.selector.select_or_default(
            participants.sender,
            participants.to,
            participants.cc,
            state.plan.storyline.organizations,
            state.rng,
            slot.sent_date,
        )

    def _ensure_non_responsive_selection(
        self,
        slot: ThreadEmailSlotPlan,
        participants: ResolvedParticipants,
        state: ThreadExecutionState,
    ) -> NonResponsiveArchetypeSelection:
        if state.non_responsive_selection is not None:
            return state.non_responsive_selection

        archetype = self._select_archetype(slot, participants, state)
        entity_values = normalize_entity_values(
            archetype, None, state.entity_rng, slot.sent_date, participants
        )
        selection = NonResponsiveArchetypeSelection(
            archetype=archetype,
            subject=normalize_non_responsive_subject(
                state.thread_subject, DEFAULT_SUBJECT, archetype
            ),
            entity_values=entity_values,
        )
        state.non_responsive_selection = selection
        state.thread_subject = selection.subject
        return selection

    # =========================================================================
    # Attachments
    # =========================================================================

    def resolve_document_type(self, requirement: AttachmentRequirement) -> AttachmentType:
        if requirement.document_type is not None:
            return requirement.document_type
        enabled = self.config.enabled_attachment_types
        return enabled[0] if enabled else AttachmentType.WORD

    @staticmethod
    def describe_document(doc_type: AttachmentType, topic: str, phase: str) -> str:
        if doc_type == AttachmentType.EXCEL:
            return f"{topic} tracker ({phase})"
        if doc_type == AttachmentType.POWERPOINT:
            return f"{topic} slides ({phase})"
        return f"{topic} summary ({phase})"

    @staticmethod
    def _topic_and_phase(state: ThreadExecutionState, slot: ThreadEmailSlotPlan) -> tuple[str, str]:
        topic = state.thread_topic.strip() or DEFAULT_SUBJECT
        phase = slot.narrative_phase.strip().lower() or "update"
        return topic, phase

    def build_attachment_plan_details(
        self,
        requirement: AttachmentRequirement,
        state: ThreadExecutionState,
        slot: ThreadEmailSlotPlan,
    ) -> AttachmentPlanDetails:
        topic, phase = self._topic_and_phase(state, slot)
        document = None
        if requirement.requires_document:
            document = self.describe_document(self.resolve_document_type(requirement), topic, phase)
        return AttachmentPlanDetails(
            document_description=document,
            image_description=(
                f"Screenshot related to {topic} ({phase})" if requirement.requires_image else None
            ),
            voicemail_context=(
                f"Follow-up on {topic} ({phase})" if requirement.requires_voicemail else None
            ),
        )

    def build_planned_attachments(
        self,
        requirement: AttachmentRequirement,
        details: AttachmentPlanDetails,
        state: ThreadExecutionState,
        slot: ThreadEmailSlotPlan,
    ) -> PlannedAttachments:
        """Attachment descriptors for a committed email, forced extras included."""
        topic, phase = self._topic_and_phase(state, slot)
        planned = PlannedAttachments()
        if requirement.requires_document:
            planned.documents.append(
                PlannedDocument(
                    type=self.resolve_document_type(requirement),
                    description=details.document_description or "",
                )
            )
        for doc_type in requirement.forced_documents:
            planned.documents.append(
                PlannedDocument(type=doc_type, description=self.describe_document(doc_type, topic, phase))
            )

        if requirement.requires_image:
            planned.images.append(
                PlannedImage(
                    description=details.image_description or "",
                    is_inline=requirement.is_image_inline,
                )
            )
        for _ in range(requirement.forced_images):
            planned.images.append(
                PlannedImage(description=f"Screenshot related to {topic} ({phase})", is_inline=True)
            )

        if requirement.requires_voicemail:
            planned.voicemails.append(PlannedVoicemail(description=details.voicemail_context or ""))
        for _ in range(requirement.forced_voicemails):
            planned.voicemails.append(PlannedVoicemail(description=f"Follow-up on {topic} ({phase})"))
        return planned

    # =========================================================================
    # Commit
    # =========================================================================

    def apply_draft(
        self,
        body: str,
        target: EmailMessage,
        state: ThreadExecutionState,
        slot: ThreadEmailSlotPlan,
        requirement: AttachmentRequirement,
        details: AttachmentPlanDetails,
        parent: EmailMessage | None,
        participants: ResolvedParticipants,
    ) -> str:
        """Commit a validated draft onto its placeholder.

        Returns:
            The signature-corrected draft, before parent content is appended.
        """
        corrected = correct_signature(body, participants.sender, state.plan.participants)
        if parent is not None and slot.intent == ThreadEmailIntent.FORWARD:
            full_body = corrected + format_forwarded_content(parent)
        elif parent is not None:
            full_body = corrected + format_quoted_reply(parent)
        else:
            full_body = corrected

        self._fill_common_fields(target, state, slot, participants.sender, participants.to, participants.cc)
        target.subject = resolve_subject(state.thread_subject, slot.intent, slot.index)
        target.body_plain = full_body
        target.body_html = convert_to_html(full_body)
        target.planned = self.build_planned_attachments(requirement, details, state, slot)
        target.generation_failed = False
        target.generation_failure_reason = None
        apply_threading_headers(target, parent)
        return corrected

    def populate_failure_email(
        self,
        target: EmailMessage,
        state: ThreadExecutionState,
        slot: ThreadEmailSlotPlan,
        parent: EmailMessage | None,
        participants: ResolvedParticipants,
        reason: str,
    ) -> None:
        """Commit a placeholder body for a slot whose drafts all failed."""
        sender = participants.sender
        recipient = participants.to[0] if participants.to else sender
        base = state.thread_subject or UNTITLED_SUBJECT
        if slot.intent == ThreadEmailIntent.FORWARD:
            subject = add_forward_prefix(base)
        elif slot.intent == ThreadEmailIntent.REPLY:
            subject = add_reply_prefix(base)
        else:
            subject = base

        body = FAILURE_BODY.format(
            first_name=recipient.first_name, signature=sender.signature_block
        )
        self._fill_common_fields(target, state, slot, sender, (recipient,), ())
        target.subject = subject
        target.body_plain = body
        target.body_html = convert_to_html(body)
        target.planned = PlannedAttachments()
        target.generation_failed = True
        target.generation_failure_reason = reason
        apply_threading_headers(target, parent)

    @staticmethod
    def _fill_common_fields(
        target: EmailMessage,
        state: ThreadExecutionState,
        slot: ThreadEmailSlotPlan,
        sender: Character,
        to: Sequence[Character],
        cc: Sequence[Character],
    ) -> None:
        target.thread_id = state.plan.thread.id
        target.sequence_index = slot.index
        target.parent_email_id = slot.parent_email_id
        target.root_email_id = slot.root_email_id
        target.branch_id = slot.branch_id
        target.sender = sender
        target.to = list(to)
        target.cc = list(cc)
        target.sent_date = slot.sent_date
