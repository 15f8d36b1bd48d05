"""Attachment asset stage.

Runs after every slot of a thread has committed. Planned attachment
descriptors on each message are turned into rendered attachments, in a fixed
order: documents, images, calendar invites, then voicemails. Each unit of
work reports to the orchestrator through two callbacks, one before it starts
and one when it finishes.

Classes:
    AssetGenerationError: Raised when a planned asset cannot be produced.
    AttachmentAssetGenerator: Renders every planned asset of one thread.

Design Notes:
    - All sampling uses the thread's "thread-assets" RNG, passed in by the
      caller
    - A renderer that raises or returns no bytes fails the whole asset
      stage of its thread; nothing is retried here
    - A kind whose renderer was not supplied is skipped with a warning; its
      planned descriptors stay on the message
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from src.threadgen.core.completion import CompletionClient
from src.threadgen.core.config import GenerationConfig
from src.threadgen.core.seeding import (
    SCOPE_ATTACHMENT,
    SCOPE_INLINE_IMAGE,
    create_deterministic_id,
    create_short_token,
)
from src.threadgen.domain.models import (
    Attachment,
    AttachmentKind,
    AttachmentType,
    EmailMessage,
    EmailThread,
    PlannedDocument,
    PlannedImage,
    PlannedVoicemail,
)
from src.threadgen.generation.formatting import insert_inline_image
from src.threadgen.generation.subjects import clean_subject
from src.threadgen.orchestration.document_chains import DocumentChainRegistry
from src.threadgen.orchestration.file_names import (
    build_calendar_invite_file_name,
    build_document_file_name,
    build_image_file_name,
    build_versioned_file_name,
    build_voicemail_file_name,
)
from src.threadgen.orchestration.interfaces import (
    CalendarInviteRenderer,
    DocumentRenderer,
    ImageRenderer,
    SpeechRenderer,
)
from src.threadgen.orchestration.models import (
    CalendarInviteSpec,
    DocumentSpec,
    ImageSpec,
    MeetingDetectionResponse,
    VoicemailScriptResponse,
    VoicemailSpec,
)
from src.threadgen.orchestration.prompts import (
    MEETING_DETECTION_SYSTEM_PROMPT,
    VOICEMAIL_SYSTEM_PROMPT,
    build_document_context,
    build_image_prompt,
    build_meeting_detection_prompt,
    build_voicemail_prompt,
)
from src.threadgen.planning.structure_planner import calculate_calendar_checks

logger = logging.getLogger(__name__)

OperationCallback = Callable[[str], Awaitable[None]]
AssetCallback = Callable[[AttachmentKind, Attachment | None], Awaitable[None]]

DEFAULT_ASSET_TOPIC = "Project update"
DEFAULT_MEETING_TITLE = "Meeting Invite"
DEFAULT_MEETING_HOUR = 10
DEFAULT_MEETING_MINUTES = 60
INLINE_IMAGE_TOKEN_LENGTH = 32

CONTENT_TYPE_PNG = "image/png"
CONTENT_TYPE_CALENDAR = "text/calendar"
CONTENT_TYPE_MP3 = "audio/mpeg"


class AssetGenerationError(Exception):
    """Raised when a planned asset cannot be produced.

    Attributes:
        kind: Attachment kind being produced.
        email_subject: Subject of the email the asset belongs to.
    """

    def __init__(self, message: str, kind: str, email_subject: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.email_subject = email_subject


def _subject_label(email: EmailMessage) -> str:
    return email.subject or "Untitled"


def resolve_asset_topic(thread: EmailThread) -> str:
    """Topic for image and voicemail prompts.

    The thread topic, else the first message's subject without prefixes,
    else a generic default.
    """
    if thread.topic.strip():
        return thread.topic
    if thread.messages:
        subject = clean_subject(thread.messages[0].subject)
        if subject:
            return subject
    return DEFAULT_ASSET_TOPIC


def parse_meeting_start(response: MeetingDetectionResponse, sent_date: datetime) -> datetime:
    """Meeting start from the suggested date and time.

    An unparseable date falls back to the day after the email was sent; an
    unparseable time falls back to 10:00.
    """
    try:
        day = datetime.strptime((response.suggested_date or "").strip(), "%Y-%m-%d")
    except ValueError:
        day = sent_date + timedelta(days=1)

    hour, _, minute = (response.suggested_start_time or "").strip().partition(":")
    try:
        hour_value = int(hour)
    except ValueError:
        hour_value = DEFAULT_MEETING_HOUR
    try:
        minute_value = int(minute) if minute else 0
    except ValueError:
        minute_value = 0

    if not 0 <= hour_value <= 23:
        hour_value = DEFAULT_MEETING_HOUR
    if not 0 <= minute_value <= 59:
        minute_value = 0
    return datetime(day.year, day.month, day.day, hour_value, minute_value)


class AttachmentAssetGenerator:
    """Renders the planned assets of one thread at a time.

    Attributes:
        completion: Used for meeting detection and voicemail scripts.
        config: Run configuration.
        chains: Registry shared by every thread of the run.
        document_renderer, image_renderer, speech_renderer,
        calendar_renderer: Optional renderers, one per asset kind.
        on_operation: Awaited with a label before each unit of work.
        on_asset: Awaited after each unit of work with the attachment it
            produced, or None when it produced nothing.
    """

    def __init__(
        self,
        completion: CompletionClient,
        config: GenerationConfig,
        chains: DocumentChainRegistry,
        document_renderer: DocumentRenderer | None = None,
        image_renderer: ImageRenderer | None = None,
        speech_renderer: SpeechRenderer | None = None,
        calendar_renderer: CalendarInviteRenderer | None = None,
        on_operation: OperationCallback | None = None,
        on_asset: AssetCallback | None = None,
    ) -> None:
        self.completion = completion
        self.config = config
        self.chains = chains
        self.document_renderer = document_renderer
        self.image_renderer = image_renderer
        self.speech_renderer = speech_renderer
        self.calendar_renderer = calendar_renderer
        self.on_operation = on_operation
        self.on_asset = on_asset

    async def generate_thread_assets(self, thread: EmailThread, rng: random.Random) -> None:
        """Render every planned asset of ``thread`` in place.

        Raises:
            AssetGenerationError: If a planned asset cannot be produced.
            CompletionError: If a meeting or voicemail request raises.
        """
        topic = resolve_asset_topic(thread)
        await self.generate_documents(thread.messages, rng)
        await self.generate_images(thread.messages, topic)
        await self.generate_calendar_invites(thread.messages, rng)
        await self.generate_voicemails(thread.messages, topic)

    async def _operation(self, label: str) -> None:
        if self.on_operation is not None:
            await self.on_operation(label)

    async def _finished(self, kind: AttachmentKind, attachment: Attachment | None) -> None:
        if self.on_asset is not None:
            await self.on_asset(kind, attachment)

    # =========================================================================
    # Documents
    # =========================================================================

    async def generate_documents(self, emails: list[EmailMessage], rng: random.Random) -> None:
        pending = [e for e in emails if e.planned.documents]
        if not pending:
            return
        if self.document_renderer is None:
            logger.warning(
                f"No document renderer configured; skipping {len(pending)} planned documents"
            )
            return

        for email in pending:
            for planned in email.planned.documents:
                await self._operation(f"Creating attachment for: {email.subject}")
                attachment = await self.generate_document(email, planned, rng)
                await self._finished("document", attachment)

    def resolve_document_type(self, planned_type: AttachmentType) -> AttachmentType:
        """The planned type if enabled, else the first enabled type.

        Raises:
            AssetGenerationError: If no document type is enabled.
        """
        enabled = self.config.enabled_attachment_types
        if planned_type in enabled:
            return planned_type
        if not enabled:
            raise AssetGenerationError(
                f"Planned document attachment type '{planned_type.value}' is not "
                "available (no attachment types are enabled).",
                "document",
            )
        return enabled[0]

    async def generate_document(
        self,
        email: EmailMessage,
        planned: PlannedDocument,
        rng: random.Random,
    ) -> Attachment:
        if self.document_renderer is None:
            raise AssetGenerationError("No document renderer configured.", "document")

        doc_type = self.resolve_document_type(planned.type)
        title = planned.description or f"{doc_type.value.title()} document"
        context = build_document_context(email, planned.description)

        reservation = await self.chains.reserve(doc_type, rng)
        if reservation is not None:
            context += reservation.revision_context()

        spec = DocumentSpec(
            type=doc_type,
            title=reservation.chain.base_title if reservation else title,
            context=context,
            chain_id=reservation.chain.chain_id if reservation else None,
            version_number=reservation.version_number if reservation else None,
        )
        content = await self.document_renderer.render_document(spec)
        if not content:
            raise AssetGenerationError(
                f"Planned {doc_type.value} attachment generation failed for email "
                f"'{_subject_label(email)}'.",
                "document",
                email.subject,
            )

        chain_id: str | None = None
        version_label: str | None = None
        if reservation is not None:
            chain_id = reservation.chain.chain_id
            version_label = reservation.version_label
            file_name = build_versioned_file_name(
                reservation.chain.base_title, version_label, doc_type.extension
            )
        else:
            file_name = build_document_file_name(email, doc_type)
            chain = await self.chains.maybe_start_chain(email, title, doc_type, rng)
            if chain is not None:
                chain_id = chain.chain_id
                version_label = "v1"

        return self.attach(
            email,
            kind="document",
            file_name=file_name,
            content=content,
            content_type=doc_type.content_type,
            description=spec.title,
            document_type=doc_type,
            document_chain_id=chain_id,
            version_label=version_label,
        )

    # =========================================================================
    # Images
    # =========================================================================

    async def generate_images(self, emails: list[EmailMessage], topic: str) -> None:
        if not self.config.include_images:
            return
        pending = [e for e in emails if e.planned.images]
        if not pending:
            return
        if self.image_renderer is None:
            logger.warning(
                f"No image renderer configured; skipping {len(pending)} planned images"
            )
            return

        for email in pending:
            for planned in email.planned.images:
                await self._operation(f"Generating image for: {email.subject}")
                attachment = await self.generate_image(email, planned, topic)
                await self._finished("image", attachment)

    async def generate_image(
        self, email: EmailMessage, planned: PlannedImage, topic: str
    ) -> Attachment:
        if self.image_renderer is None:
            raise AssetGenerationError("No image renderer configured.", "image")
        if not planned.description.strip():
            raise AssetGenerationError(
                f"Planned image description is missing for email '{_subject_label(email)}'.",
                "image",
                email.subject,
            )

        spec = ImageSpec(
            prompt=build_image_prompt(topic, planned.description),
            description=planned.description,
        )
        content = await self.image_renderer.render_image(spec)
        if not content:
            raise AssetGenerationError(
                f"Planned image generation failed for email '{_subject_label(email)}'.",
                "image",
                email.subject,
            )

        sent = email.sent_date.isoformat() if email.sent_date else ""
        token = create_short_token(
            SCOPE_INLINE_IMAGE,
            INLINE_IMAGE_TOKEN_LENGTH,
            email.id.hex,
            planned.description,
            sent,
        )
        content_id = f"img_{token}"
        attachment = self.attach(
            email,
            kind="image",
            file_name=build_image_file_name(email, planned.description, content_id),
            content=content,
            content_type=CONTENT_TYPE_PNG,
            description=planned.description,
            content_id=content_id,
            is_inline=planned.is_inline,
        )
        if planned.is_inline:
            email.body_html = insert_inline_image(
                email.body_html, content_id, planned.description
            )
        return attachment

    # =========================================================================
    # Calendar Invites
    # =========================================================================

    def select_calendar_candidates(
        self, emails: list[EmailMessage], rng: random.Random
    ) -> list[EmailMessage]:
        """Sample the emails checked for meetings with a seeded shuffle."""
        count = calculate_calendar_checks(self.config, len(emails))
        if count == 0:
            return []
        keyed = [(rng.random(), index) for index in range(len(emails))]
        keyed.sort()
        return [emails[index] for _, index in keyed[:count]]

    async def generate_calendar_invites(
        self, emails: list[EmailMessage], rng: random.Random
    ) -> None:
        candidates = self.select_calendar_candidates(emails, rng)
        if not candidates:
            return
        if self.calendar_renderer is None:
            logger.warning(
                f"No calendar renderer configured; skipping {len(candidates)} meeting checks"
            )
            return

        for email in candidates:
            await self._operation(f"Checking calendar invite for: {email.subject}")
            attachment = None
            if not email.generation_failed:
                attachment = await self.detect_and_add_calendar_invite(email)
            await self._finished("calendar", attachment)

    async def detect_and_add_calendar_invite(self, email: EmailMessage) -> Attachment | None:
        """Attach an invite when the email schedules a meeting.

        Returns None when no meeting is detected.
        """
        if self.calendar_renderer is None:
            raise AssetGenerationError("No calendar renderer configured.", "calendar")

        response = await self.completion.complete(
            MEETING_DETECTION_SYSTEM_PROMPT,
            build_meeting_detection_prompt(email),
            MeetingDetectionResponse,
            MeetingDetectionResponse.kind,
        )
        if response is None:
            raise AssetGenerationError(
                f"Meeting detection failed for email '{_subject_label(email)}'.",
                "calendar",
                email.subject,
            )
        if not response.has_meeting:
            return None

        sent_date = email.sent_date or datetime.now()
        start = parse_meeting_start(response, sent_date)
        minutes = response.duration_minutes if response.duration_minutes > 0 else DEFAULT_MEETING_MINUTES
        sender = email.sender
        organizer_email = sender.email if sender else ""
        attendees = tuple(
            (c.full_name, c.email)
            for c in [*email.to, *email.cc]
            if c.email.casefold() != organizer_email.casefold()
        )
        title = response.meeting_title or email.subject
        spec = CalendarInviteSpec(
            title=title,
            description=response.meeting_description or "",
            start=start,
            end=start + timedelta(minutes=minutes),
            location=response.location or "TBD",
            organizer_name=sender.full_name if sender else "",
            organizer_email=organizer_email,
            attendees=attendees,
        )
        content = await self.calendar_renderer.render_invite(spec)
        if not content:
            raise AssetGenerationError(
                f"Calendar invite rendering failed for email '{_subject_label(email)}'.",
                "calendar",
                email.subject,
            )

        logger.debug(f"Detected meeting '{title}' at {start.isoformat()} in '{email.subject}'")
        return self.attach(
            email,
            kind="calendar",
            file_name=build_calendar_invite_file_name(
                email, start, response.meeting_title, organizer_email
            ),
            content=content,
            content_type=CONTENT_TYPE_CALENDAR,
            description=response.meeting_title or DEFAULT_MEETING_TITLE,
        )

    # =========================================================================
    # Voicemails
    # =========================================================================

    async def generate_voicemails(self, emails: list[EmailMessage], topic: str) -> None:
        pending = [e for e in emails if e.planned.voicemails]
        if not pending:
            return
        if self.speech_renderer is None:
            logger.warning(
                f"No speech renderer configured; skipping {len(pending)} planned voicemails"
            )
            return

        for email in pending:
            for planned in email.planned.voicemails:
                await self._operation(f"Generating voicemail for: {email.subject}")
                attachment = await self.generate_voicemail(email, planned, topic)
                await self._finished("voicemail", attachment)

    async def generate_voicemail(
        self, email: EmailMessage, planned: PlannedVoicemail, topic: str
    ) -> Attachment:
        if self.speech_renderer is None:
            raise AssetGenerationError("No speech renderer configured.", "voicemail")
        sender = email.sender
        if sender is None:
            raise AssetGenerationError(
                f"Voicemail sender is missing for email '{_subject_label(email)}'.",
                "voicemail",
                email.subject,
            )

        response = await self.completion.complete(
            VOICEMAIL_SYSTEM_PROMPT,
            build_voicemail_prompt(email, planned.description, topic),
            VoicemailScriptResponse,
            VoicemailScriptResponse.kind,
        )
        if response is None or not (response.voicemail_script or "").strip():
            raise AssetGenerationError(
                f"Voicemail script generation failed for email '{_subject_label(email)}'.",
                "voicemail",
                email.subject,
            )

        content = await self.speech_renderer.render_speech(
            VoicemailSpec(
                script=response.voicemail_script,
                speaker_name=sender.full_name,
                speaker_email=sender.email,
            )
        )
        if not content:
            raise AssetGenerationError(
                f"Voicemail audio generation failed for email '{_subject_label(email)}'.",
                "voicemail",
                email.subject,
            )

        return self.attach(
            email,
            kind="voicemail",
            file_name=build_voicemail_file_name(
                sender.last_name, email.sent_date or datetime.now()
            ),
            content=content,
            content_type=CONTENT_TYPE_MP3,
            description=f"Voicemail from {sender.full_name}",
        )

    # =========================================================================
    # Attachment Records
    # =========================================================================

    @staticmethod
    def attach(
        email: EmailMessage,
        kind: AttachmentKind,
        file_name: str,
        content: bytes,
        content_type: str,
        description: str = "",
        content_id: str | None = None,
        is_inline: bool = False,
        document_type: AttachmentType | None = None,
        document_chain_id: str | None = None,
        version_label: str | None = None,
    ) -> Attachment:
        """Append an attachment with a deterministic id to ``email``."""
        attachment = Attachment(
            id=create_deterministic_id(
                SCOPE_ATTACHMENT,
                email.id.hex,
                len(email.attachments),
                kind,
                file_name,
                description,
                content_id or "",
            ),
            kind=kind,
            file_name=file_name,
            content=content,
            content_type=content_type,
            description=description,
            content_id=content_id,
            is_inline=is_inline,
            document_type=document_type,
            document_chain_id=document_chain_id,
            version_label=version_label,
        )
        email.attachments.append(attachment)
        return attachment
