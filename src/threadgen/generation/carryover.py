"""Attachment carryover across the slots of one thread.

When an email that was planned to carry an attachment fails, the obligation
does not disappear: it is queued and offered to later slots. The final slot
takes every obligation still outstanding. Whatever the final slot cannot
deliver is logged and counted as undelivered, so at the end of a thread

    delivered + undelivered == planned

for every attachment kind.

Classes:
    CarryoverStateError: Raised on an impossible counter update.
    CarryoverLedger: Planned/delivered/undelivered counts.
    AttachmentCarryoverState: Per-thread pending queue and counters.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from dataclasses import dataclass, field

from src.threadgen.domain.models import AttachmentType
from src.threadgen.generation.models import AttachmentRequirement
from src.threadgen.planning.models import ThreadEmailSlotPlan

logger = logging.getLogger(__name__)


class CarryoverStateError(Exception):
    """Raised when a pending counter would go negative.

    Attributes:
        kind: Attachment kind whose counter was updated.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"No pending {kind} obligation to resolve")


@dataclass
class CarryoverLedger:
    """Resolution counts per attachment kind."""

    planned: dict[str, int] = field(
        default_factory=lambda: {"document": 0, "image": 0, "voicemail": 0}
    )
    delivered: dict[str, int] = field(
        default_factory=lambda: {"document": 0, "image": 0, "voicemail": 0}
    )
    undelivered: dict[str, int] = field(
        default_factory=lambda: {"document": 0, "image": 0, "voicemail": 0}
    )

    @property
    def is_balanced(self) -> bool:
        return all(
            self.delivered[kind] + self.undelivered[kind] == self.planned[kind]
            for kind in self.planned
        )

    @property
    def total_undelivered(self) -> int:
        return sum(self.undelivered.values())


class AttachmentCarryoverState:
    """Pending attachment obligations for one thread.

    Documents are queued by type in FIFO order. Images and voicemails are
    plain counters. Carried images are always inline.

    Attributes:
        thread_id: Owning thread, for log messages.
        pending_documents: Queue of document types still owed.
        pending_images: Images still owed.
        pending_voicemails: Voicemails still owed.
        ledger: Resolution counts.
    """

    def __init__(self, thread_id: uuid.UUID | None = None) -> None:
        self.thread_id = thread_id
        self.pending_documents: deque[AttachmentType] = deque()
        self.pending_images = 0
        self.pending_voicemails = 0
        self.ledger = CarryoverLedger()
        self._finalized = False

    @property
    def has_pending(self) -> bool:
        return bool(self.pending_documents or self.pending_images or self.pending_voicemails)

    # =========================================================================
    # Requirement Building
    # =========================================================================

    def build_requirement(
        self,
        slot: ThreadEmailSlotPlan,
        is_final_slot: bool,
    ) -> AttachmentRequirement:
        """Merge a slot's own plan with pending obligations.

        A slot with its own requirement of a kind leaves the pending queue for
        that kind untouched; otherwise it takes the oldest pending obligation.
        On the final slot every remaining obligation is added as a forced
        extra.
        """
        skeleton = slot.attachments
        self.ledger.planned["document"] += int(skeleton.has_document)
        self.ledger.planned["image"] += int(skeleton.has_image)
        self.ledger.planned["voicemail"] += int(skeleton.has_voicemail)

        requires_document = skeleton.has_document
        document_type = skeleton.document_type
        document_from_pending = False
        if not requires_document and self.pending_documents:
            requires_document = True
            document_from_pending = True
            document_type = self.pending_documents[0]

        requires_image = skeleton.has_image
        is_inline = skeleton.is_image_inline
        image_from_pending = False
        if not requires_image and self.pending_images > 0:
            requires_image = True
            image_from_pending = True
            is_inline = True

        requires_voicemail = skeleton.has_voicemail
        voicemail_from_pending = False
        if not requires_voicemail and self.pending_voicemails > 0:
            requires_voicemail = True
            voicemail_from_pending = True

        forced_documents: tuple[AttachmentType, ...] = ()
        forced_images = 0
        forced_voicemails = 0
        if is_final_slot:
            skip = 1 if document_from_pending else 0
            forced_documents = tuple(list(self.pending_documents)[skip:])
            forced_images = self.pending_images - int(image_from_pending)
            forced_voicemails = self.pending_voicemails - int(voicemail_from_pending)
            if forced_documents or forced_images or forced_voicemails:
                logger.debug(
                    f"Final slot of thread {self.thread_id} force-attaches "
                    f"{len(forced_documents)} documents, {forced_images} images, "
                    f"{forced_voicemails} voicemails"
                )

        return AttachmentRequirement(
            requires_document=requires_document,
            document_type=document_type,
            document_from_pending=document_from_pending,
            requires_image=requires_image,
            image_from_pending=image_from_pending,
            is_image_inline=is_inline,
            requires_voicemail=requires_voicemail,
            voicemail_from_pending=voicemail_from_pending,
            is_final_slot=is_final_slot,
            forced_documents=forced_documents,
            forced_images=forced_images,
            forced_voicemails=forced_voicemails,
        )

    # =========================================================================
    # Resolution
    # =========================================================================

    def record_success(self, requirement: AttachmentRequirement) -> None:
        """Resolve the obligations a committed email delivered."""
        if requirement.requires_document:
            if requirement.document_from_pending:
                self._pop_document()
            self.ledger.delivered["document"] += 1
        if requirement.requires_image:
            if requirement.image_from_pending:
                self._decrement("image")
            self.ledger.delivered["image"] += 1
        if requirement.requires_voicemail:
            if requirement.voicemail_from_pending:
                self._decrement("voicemail")
            self.ledger.delivered["voicemail"] += 1

        for _ in requirement.forced_documents:
            self._pop_document()
            self.ledger.delivered["document"] += 1
        for _ in range(requirement.forced_images):
            self._decrement("image")
            self.ledger.delivered["image"] += 1
        for _ in range(requirement.forced_voicemails):
            self._decrement("voicemail")
            self.ledger.delivered["voicemail"] += 1

    def record_failure(self, requirement: AttachmentRequirement) -> None:
        """Queue a failed slot's own obligations for a later slot.

        Obligations taken from the queue stay queued exactly once.
        """
        if (
            requirement.requires_document
            and not requirement.document_from_pending
            and requirement.document_type is not None
        ):
            self.pending_documents.append(requirement.document_type)
        if requirement.requires_image and not requirement.image_from_pending:
            self.pending_images += 1
        if requirement.requires_voicemail and not requirement.voicemail_from_pending:
            self.pending_voicemails += 1

    def finalize(self) -> int:
        """Record whatever is still pending as undelivered.

        Called once after the final slot. Returns the number of undelivered
        obligations and logs a warning when it is non-zero.
        """
        if self._finalized:
            return self.ledger.total_undelivered
        self._finalized = True

        self.ledger.undelivered["document"] += len(self.pending_documents)
        self.ledger.undelivered["image"] += self.pending_images
        self.ledger.undelivered["voicemail"] += self.pending_voicemails
        if self.has_pending:
            logger.warning(
                f"Thread {self.thread_id} completed with undelivered attachments: "
                f"{len(self.pending_documents)} documents, {self.pending_images} "
                f"images, {self.pending_voicemails} voicemails"
            )
        return self.ledger.total_undelivered

    def _pop_document(self) -> AttachmentType:
        if not self.pending_documents:
            raise CarryoverStateError("document")
        return self.pending_documents.popleft()

    def _decrement(self, kind: str) -> None:
        if kind == "image":
            if self.pending_images <= 0:
                raise CarryoverStateError(kind)
            self.pending_images -= 1
        else:
            if self.pending_voicemails <= 0:
                raise CarryoverStateError(kind)
            self.pending_voicemails -= 1
