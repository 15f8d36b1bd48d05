"""Tests for attachment carryover.

Tests cover:
- Requirements built from a slot's own plan
- Obligations carried from failed slots in FIFO order
- Final-slot forcing of every outstanding obligation
- Ledger balance after finalize, including undelivered obligations
- Counter underflow errors
"""

from __future__ import annotations

import uuid
from datetime import datetime

import pytest

from src.threadgen.domain.models import AttachmentType
from src.threadgen.generation.carryover import (
    AttachmentCarryoverState,
    CarryoverStateError,
)
from src.threadgen.generation.models import AttachmentRequirement
from src.threadgen.planning.models import (
    AttachmentSkeleton,
    ThreadEmailIntent,
    ThreadEmailSlotPlan,
)

ROOT_ID = uuid.uuid4()


def make_slot(index: int, **skeleton: object) -> ThreadEmailSlotPlan:
    return ThreadEmailSlotPlan(
        index=index,
        email_id=ROOT_ID if index == 0 else uuid.uuid4(),
        parent_index=None if index == 0 else index - 1,
        parent_email_id=None,
        root_email_id=ROOT_ID,
        branch_id=ROOT_ID,
        intent=ThreadEmailIntent.NEW if index == 0 else ThreadEmailIntent.REPLY,
        sent_date=datetime(2026, 1, 5, 9 + index),
        narrative_phase="MIDDLE",
        attachments=AttachmentSkeleton(**skeleton),
    )


class TestBuildRequirement:
    """Tests for AttachmentCarryoverState.build_requirement()."""

    def test_own_plan(self) -> None:
        state = AttachmentCarryoverState()
        slot = make_slot(
            0,
            has_document=True,
            document_type=AttachmentType.EXCEL,
            has_image=True,
            is_image_inline=False,
        )

        requirement = state.build_requirement(slot, is_final_slot=False)

        assert requirement.requires_document
        assert requirement.document_type == AttachmentType.EXCEL
        assert not requirement.document_from_pending
        assert requirement.requires_image
        assert not requirement.is_image_inline
        assert not requirement.requires_voicemail
        assert not requirement.has_forced_extras

    def test_pending_document_taken_by_next_slot(self) -> None:
        state = AttachmentCarryoverState()
        first = state.build_requirement(
            make_slot(0, has_document=True, document_type=AttachmentType.WORD), False
        )
        state.record_failure(first)

        second = state.build_requirement(make_slot(1), False)

        assert second.requires_document
        assert second.document_from_pending
        assert second.document_type == AttachmentType.WORD

    def test_own_requirement_leaves_queue_alone(self) -> None:
        state = AttachmentCarryoverState()
        state.pending_documents.append(AttachmentType.WORD)

        requirement = state.build_requirement(
            make_slot(1, has_document=True, document_type=AttachmentType.POWERPOINT), False
        )
        state.record_success(requirement)

        assert requirement.document_type == AttachmentType.POWERPOINT
        assert not requirement.document_from_pending
        assert list(state.pending_documents) == [AttachmentType.WORD]

    def test_carried_image_is_inline(self) -> None:
        state = AttachmentCarryoverState()
        state.record_failure(
            state.build_requirement(make_slot(0, has_image=True, is_image_inline=False), False)
        )

        requirement = state.build_requirement(make_slot(1), False)

        assert requirement.requires_image
        assert requirement.image_from_pending
        assert requirement.is_image_inline

    def test_final_slot_forces_everything(self) -> None:
        state = AttachmentCarryoverState()
        for index, doc_type in enumerate((AttachmentType.WORD, AttachmentType.EXCEL)):
            state.record_failure(
                state.build_requirement(
                    make_slot(index, has_document=True, document_type=doc_type, has_voicemail=True),
                    False,
                )
            )

        final = state.build_requirement(make_slot(2), is_final_slot=True)

        assert final.document_type == AttachmentType.WORD
        assert final.document_from_pending
        assert final.forced_documents == (AttachmentType.EXCEL,)
        assert final.voicemail_from_pending
        assert final.forced_voicemails == 1
        assert final.has_forced_extras


class TestResolution:
    """Tests for record_success(), record_failure() and finalize()."""

    def test_carryover_delivered_balances(self) -> None:
        state = AttachmentCarryoverState()
        state.record_failure(
            state.build_requirement(
                make_slot(0, has_document=True, document_type=AttachmentType.WORD), False
            )
        )
        state.record_success(state.build_requirement(make_slot(1), True))

        assert state.finalize() == 0
        assert not state.has_pending
        assert state.ledger.delivered["document"] == 1
        assert state.ledger.is_balanced

    def test_forced_extras_delivered(self) -> None:
        state = AttachmentCarryoverState()
        for index in range(2):
            state.record_failure(
                state.build_requirement(
                    make_slot(index, has_document=True, document_type=AttachmentType.WORD),
                    False,
                )
            )
        state.record_success(state.build_requirement(make_slot(2), True))

        assert state.finalize() == 0
        assert state.ledger.planned["document"] == 2
        assert state.ledger.delivered["document"] == 2
        assert state.ledger.is_balanced

    def test_failed_final_slot_leaves_undelivered(self) -> None:
        state = AttachmentCarryoverState(thread_id=uuid.uuid4())
        state.record_failure(state.build_requirement(make_slot(0, has_image=True), False))
        final = state.build_requirement(make_slot(1, has_voicemail=True), True)
        state.record_failure(final)

        assert state.finalize() == 2
        assert state.ledger.undelivered == {"document": 0, "image": 1, "voicemail": 1}
        assert state.ledger.is_balanced

    def test_pending_obligation_not_duplicated_on_second_failure(self) -> None:
        state = AttachmentCarryoverState()
        state.record_failure(
            state.build_requirement(
                make_slot(0, has_document=True, document_type=AttachmentType.WORD), False
            )
        )
        state.record_failure(state.build_requirement(make_slot(1), False))

        assert list(state.pending_documents) == [AttachmentType.WORD]

    def test_finalize_is_idempotent(self) -> None:
        state = AttachmentCarryoverState()
        state.record_failure(state.build_requirement(make_slot(0, has_voicemail=True), True))
        assert state.finalize() == 1
        assert state.finalize() == 1
        assert state.ledger.undelivered["voicemail"] == 1

    def test_underflow_raises(self) -> None:
        state = AttachmentCarryoverState()
        requirement = AttachmentRequirement(
            requires_document=True,
            document_type=AttachmentType.WORD,
            document_from_pending=True,
        )
        with pytest.raises(CarryoverStateError) as exc_info:
            state.record_success(requirement)
        assert exc_info.value.kind == "document"

    def test_image_underflow_raises(self) -> None:
        state = AttachmentCarryoverState()
        with pytest.raises(CarryoverStateError, match="image"):
            state.record_success(AttachmentRequirement(forced_images=1))
