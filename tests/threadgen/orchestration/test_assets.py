"""Tests for the attachment asset stage.

Tests cover:
- Asset topic and meeting start fallbacks
- Document rendering, type fallback and chain revisions
- Inline images and the image toggle
- Meeting detection and calendar invites
- Voicemail scripts and audio
- Operation and asset callbacks, in stage order
- Missing renderers and empty renderer output
"""

from __future__ import annotations

import random
import uuid
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.threadgen.core.config import GenerationConfig
from src.threadgen.domain.models import (
    AttachmentType,
    EmailMessage,
    EmailThread,
    PlannedAttachments,
    PlannedDocument,
    PlannedImage,
    PlannedVoicemail,
)
from src.threadgen.orchestration.assets import (
    DEFAULT_ASSET_TOPIC,
    AssetGenerationError,
    AttachmentAssetGenerator,
    parse_meeting_start,
    resolve_asset_topic,
)
from src.threadgen.orchestration.document_chains import DocumentChainRegistry
from src.threadgen.orchestration.models import (
    MeetingDetectionResponse,
    VoicemailScriptResponse,
)

SENT = datetime(2026, 1, 5, 9, 30)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def make_email(characters):
    """Factory for a committed email from Alice to Bob, cc Carla."""
    alice, bob, carla = characters

    def _make(index: int = 1, subject: str = "Invoice reconciliation", **planned) -> EmailMessage:
        return EmailMessage(
            id=uuid.UUID(int=index),
            thread_id=uuid.UUID(int=99),
            sequence_index=index,
            sender=alice,
            to=[bob],
            cc=[carla],
            subject=subject,
            body_plain="Please see the attached report.",
            body_html='<html><body><p>Please see the attached report.</p><div class="signature">Alice</div></body></html>',
            sent_date=SENT,
            planned=PlannedAttachments(**planned),
        )

    return _make


def make_generator(config: GenerationConfig | None = None, completion=None, **kwargs) -> AttachmentAssetGenerator:
    return AttachmentAssetGenerator(
        completion or MagicMock(),
        config or GenerationConfig(),
        kwargs.pop("chains", DocumentChainRegistry(enabled=False)),
        **kwargs,
    )


def renderer(method: str, content: bytes = b"bytes") -> MagicMock:
    mock = MagicMock()
    setattr(mock, method, AsyncMock(return_value=content))
    return mock


def completion_returning(response) -> MagicMock:
    completion = MagicMock()
    completion.complete = AsyncMock(return_value=response)
    return completion


# =============================================================================
# Helper Tests
# =============================================================================


class TestHelpers:
    """Tests for topic and meeting start resolution."""

    def test_asset_topic(self, make_email) -> None:
        thread = EmailThread(id=uuid.uuid4(), story_beat_id=uuid.uuid4(), storyline_id=uuid.uuid4())
        assert resolve_asset_topic(thread) == DEFAULT_ASSET_TOPIC
        thread.messages = [make_email(subject="RE: Budget review")]
        assert resolve_asset_topic(thread) == "Budget review"
        thread.topic = "Vendor invoice dispute"
        assert resolve_asset_topic(thread) == "Vendor invoice dispute"

    @pytest.mark.parametrize(
        "date,time,expected",
        [
            ("2026-01-08", "14:30", datetime(2026, 1, 8, 14, 30)),
            ("2026-01-08", "14", datetime(2026, 1, 8, 14, 0)),
            ("next week", "14:30", datetime(2026, 1, 6, 14, 30)),
            ("2026-01-08", "afternoon", datetime(2026, 1, 8, 10, 0)),
            ("2026-01-08", "25:00", datetime(2026, 1, 8, 10, 0)),
            ("2026-01-08", "9:75", datetime(2026, 1, 8, 9, 0)),
            (None, None, datetime(2026, 1, 6, 10, 0)),
        ],
    )
    def test_meeting_start(self, date, time, expected: datetime) -> None:
        response = MeetingDetectionResponse(
            has_meeting=True, suggested_date=date, suggested_start_time=time
        )
        assert parse_meeting_start(response, SENT) == expected


# =============================================================================
# Document Tests
# =============================================================================


class TestDocuments:
    """Tests for document rendering."""

    @pytest.mark.asyncio
    async def test_renders_planned_document(self, make_email) -> None:
        docs = renderer("render_document", b"docx-bytes")
        generator = make_generator(document_renderer=docs)
        email = make_email(documents=[PlannedDocument(AttachmentType.EXCEL, "Invoice tracker (discovery)")])

        await generator.generate_documents([email], random.Random(1))

        spec = docs.render_document.await_args.args[0]
        assert spec.type == AttachmentType.EXCEL
        assert spec.title == "Invoice tracker (discovery)"
        assert "Email subject: Invoice reconciliation" in spec.context
        assert not spec.is_revision
        attachment = email.attachments[0]
        assert attachment.kind == "document"
        assert attachment.content == b"docx-bytes"
        assert attachment.file_name == "Invoice_reconciliation_Spreadsheet_20260105.xlsx"
        assert attachment.document_type == AttachmentType.EXCEL
        assert attachment.document_chain_id is None

    def test_disabled_type_falls_back(self) -> None:
        generator = make_generator(GenerationConfig(include_excel=False))
        assert generator.resolve_document_type(AttachmentType.EXCEL) == AttachmentType.WORD
        assert generator.resolve_document_type(AttachmentType.POWERPOINT) == AttachmentType.POWERPOINT

    def test_no_enabled_type_raises(self) -> None:
        generator = make_generator(
            GenerationConfig(include_word=False, include_excel=False, include_powerpoint=False)
        )
        with pytest.raises(AssetGenerationError, match="is not available") as exc_info:
            generator.resolve_document_type(AttachmentType.WORD)
        assert exc_info.value.kind == "document"

    @pytest.mark.asyncio
    async def test_revision_uses_chain(self, make_email) -> None:
        chains = DocumentChainRegistry()
        seed_rng = MagicMock(spec=random.Random)
        seed_rng.randrange.return_value = 0
        chain = await chains.maybe_start_chain(make_email(5), "Vendor memo", AttachmentType.WORD, seed_rng)
        docs = renderer("render_document")
        generator = make_generator(document_renderer=docs, chains=chains)
        email = make_email(documents=[PlannedDocument(AttachmentType.WORD, "Memo (resolution)")])

        attachment = await generator.generate_document(email, email.planned.documents[0], seed_rng)

        spec = docs.render_document.await_args.args[0]
        assert spec.is_revision
        assert spec.title == "Vendor memo"
        assert "REVISION" in spec.context
        assert attachment.file_name == "Vendor_memo_v2.docx"
        assert attachment.version_label == "v2"
        assert attachment.document_chain_id == chain.chain_id

    @pytest.mark.asyncio
    async def test_new_word_document_may_start_chain(self, make_email) -> None:
        rng = MagicMock(spec=random.Random)
        rng.randrange.return_value = 0
        chains = DocumentChainRegistry()
        generator = make_generator(document_renderer=renderer("render_document"), chains=chains)
        email = make_email(documents=[PlannedDocument(AttachmentType.WORD, "Memo (discovery)")])

        attachment = await generator.generate_document(email, email.planned.documents[0], rng)

        assert attachment.version_label == "v1"
        assert chains.get(attachment.document_chain_id).base_title == "Memo (discovery)"

    @pytest.mark.asyncio
    async def test_empty_render_fails(self, make_email) -> None:
        generator = make_generator(document_renderer=renderer("render_document", b""))
        email = make_email(documents=[PlannedDocument(AttachmentType.WORD, "Memo")])
        with pytest.raises(AssetGenerationError, match="Planned word attachment generation failed"):
            await generator.generate_documents([email], random.Random(1))

    @pytest.mark.asyncio
    async def test_missing_renderer_skips(self, make_email) -> None:
        generator = make_generator()
        email = make_email(documents=[PlannedDocument(AttachmentType.WORD, "Memo")])
        await generator.generate_documents([email], random.Random(1))
        assert email.attachments == []
        assert len(email.planned.documents) == 1


# =============================================================================
# Image Tests
# =============================================================================


class TestImages:
    """Tests for image rendering."""

    @pytest.mark.asyncio
    async def test_inline_image(self, make_email) -> None:
        images = renderer("render_image", b"png")
        generator = make_generator(GenerationConfig(include_images=True), image_renderer=images)
        email = make_email(images=[PlannedImage("Dashboard screenshot", is_inline=True)])

        await generator.generate_images([email], "Vendor invoices")

        spec = images.render_image.await_args.args[0]
        assert "Vendor invoices" in spec.prompt
        attachment = email.attachments[0]
        assert attachment.is_inline
        assert attachment.content_type == "image/png"
        assert attachment.content_id.startswith("img_")
        assert len(attachment.content_id) == 36
        html = email.body_html
        assert html.index(f"cid:{attachment.content_id}") < html.index('<div class="signature">')

    @pytest.mark.asyncio
    async def test_images_disabled(self, make_email) -> None:
        images = renderer("render_image")
        generator = make_generator(GenerationConfig(include_images=False), image_renderer=images)
        email = make_email(images=[PlannedImage("Dashboard screenshot")])
        await generator.generate_images([email], "topic")
        images.render_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_description_fails(self, make_email) -> None:
        generator = make_generator(
            GenerationConfig(include_images=True), image_renderer=renderer("render_image")
        )
        email = make_email(images=[PlannedImage("  ")])
        with pytest.raises(AssetGenerationError, match="description is missing"):
            await generator.generate_images([email], "topic")


# =============================================================================
# Calendar Tests
# =============================================================================


class TestCalendarInvites:
    """Tests for meeting detection and invites."""

    @pytest.mark.asyncio
    async def test_meeting_becomes_invite(self, make_email, characters) -> None:
        completion = completion_returning(
            MeetingDetectionResponse(
                has_meeting=True,
                meeting_title="Budget review",
                suggested_date="2026-01-08",
                suggested_start_time="14:30",
                duration_minutes=30,
            )
        )
        invites = renderer("render_invite", b"BEGIN:VCALENDAR")
        generator = make_generator(completion=completion, calendar_renderer=invites)
        email = make_email()
        email.to.append(characters[0])

        attachment = await generator.detect_and_add_calendar_invite(email)

        spec = invites.render_invite.await_args.args[0]
        assert spec.start == datetime(2026, 1, 8, 14, 30)
        assert spec.end == datetime(2026, 1, 8, 15, 0)
        assert spec.location == "TBD"
        assert spec.organizer_email == "alice.nguyen@acme.com"
        assert [a[1] for a in spec.attendees] == ["bob.okafor@acme.com", "carla.reyes@acme.com"]
        assert attachment.kind == "calendar"
        assert attachment.description == "Budget review"
        assert attachment.file_name.startswith("invite_20260108_")

    @pytest.mark.asyncio
    async def test_no_meeting(self, make_email) -> None:
        invites = renderer("render_invite")
        generator = make_generator(
            completion=completion_returning(MeetingDetectionResponse(has_meeting=False)),
            calendar_renderer=invites,
        )
        email = make_email()
        assert await generator.detect_and_add_calendar_invite(email) is None
        assert email.attachments == []
        invites.render_invite.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_detection_without_response_fails(self, make_email) -> None:
        generator = make_generator(
            completion=completion_returning(None), calendar_renderer=renderer("render_invite")
        )
        with pytest.raises(AssetGenerationError, match="Meeting detection failed"):
            await generator.detect_and_add_calendar_invite(make_email())

    @pytest.mark.asyncio
    async def test_failed_emails_are_counted_not_checked(self, make_email) -> None:
        completion = completion_returning(MeetingDetectionResponse(has_meeting=False))
        on_asset = AsyncMock()
        generator = make_generator(
            GenerationConfig(calendar_invite_percentage=100),
            completion=completion,
            calendar_renderer=renderer("render_invite"),
            on_asset=on_asset,
        )
        ok, failed = make_email(1), make_email(2)
        failed.generation_failed = True

        await generator.generate_calendar_invites([ok, failed], random.Random(3))

        assert completion.complete.await_count == 1
        assert on_asset.await_count == 2
        assert all(call.args == ("calendar", None) for call in on_asset.await_args_list)

    def test_candidate_sampling(self, make_email) -> None:
        generator = make_generator(GenerationConfig(calendar_invite_percentage=50))
        emails = [make_email(i) for i in range(4)]
        first = generator.select_calendar_candidates(emails, random.Random(8))
        assert len(first) == 2
        assert len({e.id for e in first}) == 2
        assert first == generator.select_calendar_candidates(emails, random.Random(8))

    def test_calendar_disabled(self, make_email) -> None:
        generator = make_generator(GenerationConfig(include_calendar_invites=False))
        assert generator.select_calendar_candidates([make_email()], random.Random(1)) == []


# =============================================================================
# Voicemail Tests
# =============================================================================


class TestVoicemails:
    """Tests for voicemail rendering."""

    @pytest.mark.asyncio
    async def test_voicemail(self, make_email) -> None:
        speech = renderer("render_speech", b"mp3")
        generator = make_generator(
            completion=completion_returning(
                VoicemailScriptResponse(voicemail_script="Hi Bob, calling about the invoice.")
            ),
            speech_renderer=speech,
        )
        email = make_email(voicemails=[PlannedVoicemail("Follow-up on invoices (discovery)")])

        await generator.generate_voicemails([email], "Vendor invoices")

        spec = speech.render_speech.await_args.args[0]
        assert spec.script == "Hi Bob, calling about the invoice."
        assert spec.speaker_email == "alice.nguyen@acme.com"
        attachment = email.attachments[0]
        assert attachment.file_name == "voicemail_Nguyen_20260105_0930.mp3"
        assert attachment.description == "Voicemail from Alice Nguyen"
        assert attachment.content_type == "audio/mpeg"

    @pytest.mark.asyncio
    async def test_blank_script_fails(self, make_email) -> None:
        generator = make_generator(
            completion=completion_returning(VoicemailScriptResponse(voicemail_script=" ")),
            speech_renderer=renderer("render_speech"),
        )
        email = make_email(voicemails=[PlannedVoicemail("Follow-up")])
        with pytest.raises(AssetGenerationError, match="Voicemail script generation failed"):
            await generator.generate_voicemails([email], "topic")


# =============================================================================
# Stage Tests
# =============================================================================


class TestAssetStage:
    """Tests for the whole per-thread stage."""

    @pytest.mark.asyncio
    async def test_stage_order_and_callbacks(self, make_email) -> None:
        on_operation = AsyncMock()
        on_asset = AsyncMock()
        generator = make_generator(
            GenerationConfig(include_calendar_invites=False),
            completion=completion_returning(VoicemailScriptResponse(voicemail_script="Call me back.")),
            document_renderer=renderer("render_document"),
            speech_renderer=renderer("render_speech"),
            on_operation=on_operation,
            on_asset=on_asset,
        )
        email = make_email(
            documents=[PlannedDocument(AttachmentType.WORD, "Memo")],
            voicemails=[PlannedVoicemail("Follow-up")],
        )
        thread = EmailThread(
            id=uuid.UUID(int=99),
            story_beat_id=uuid.uuid4(),
            storyline_id=uuid.uuid4(),
            messages=[email],
        )

        await generator.generate_thread_assets(thread, random.Random(2))

        assert [c.args[0] for c in on_operation.await_args_list] == [
            "Creating attachment for: Invoice reconciliation",
            "Generating voicemail for: Invoice reconciliation",
        ]
        assert [c.args[0] for c in on_asset.await_args_list] == ["document", "voicemail"]
        assert [a.kind for a in email.attachments] == ["document", "voicemail"]

    def test_attachment_ids_are_deterministic(self, make_email) -> None:
        first, second = make_email(3), make_email(3)
        a = AttachmentAssetGenerator.attach(first, "document", "a.docx", b"x", "application/x")
        b = AttachmentAssetGenerator.attach(second, "document", "a.docx", b"x", "application/x")
        c = AttachmentAssetGenerator.attach(first, "document", "a.docx", b"x", "application/x")
        assert a.id == b.id
        assert c.id != a.id
