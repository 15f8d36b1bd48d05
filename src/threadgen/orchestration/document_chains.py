"""Cross-thread document version chains.

A chain is a document that keeps coming back in new versions across
threads: a Word memo first sent as ``v1`` reappears later as
``v3_revised`` or ``v5_FINAL``. The registry is shared by every thread in a
run and guarded by one ``asyncio.Lock``; version numbers are reserved under
that lock, so two threads revising the same chain concurrently never get the
same version.

Classes:
    DocumentChain: One chain and its latest reserved version.
    ChainReservation: A version reserved for one rendering.
    DocumentChainRegistry: The shared, lock-guarded registry.

Functions:
    get_version_label: Human-looking label for a version number.

Example:
    >>> registry = DocumentChainRegistry(enabled=True)
    >>> chain = await registry.maybe_start_chain(email, "Vendor memo", AttachmentType.WORD, rng)
    >>> reservation = await registry.reserve(AttachmentType.WORD, rng)
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass

from src.threadgen.core.seeding import SCOPE_DOC_CHAIN, create_short_token
from src.threadgen.domain.models import AttachmentType, EmailMessage

logger = logging.getLogger(__name__)

REUSE_PERCENT = 30
START_CHAIN_PERCENT = 50
CHAIN_TOKEN_LENGTH = 8

_VERSION_LABELS = {
    1: "v1",
    2: "v2",
    3: "v3_revised",
    4: "v4_final",
    5: "v5_FINAL",
    6: "v6_FINAL_v2",
    7: "v7_FINAL_FINAL",
    8: "v8_USE_THIS_ONE",
}


def get_version_label(version: int) -> str:
    """Label for a chain version.

    Example:
        >>> get_version_label(5)
        'v5_FINAL'
        >>> get_version_label(11)
        'v11_latest'
    """
    return _VERSION_LABELS.get(version, f"v{version}_latest")


@dataclass
class DocumentChain:
    chain_id: str
    base_title: str
    type: AttachmentType
    version_number: int = 1


@dataclass(frozen=True)
class ChainReservation:
    chain: DocumentChain
    version_number: int

    @property
    def version_label(self) -> str:
        return get_version_label(self.version_number)

    def revision_context(self) -> str:
        """Paragraph appended to a document's context for a revision."""
        return (
            f"\n\nIMPORTANT: This is a REVISION of a document titled "
            f"'{self.chain.base_title}'. This is version {self.version_number}. "
            "Make changes/updates to reflect edits, feedback, or revisions."
        )


class DocumentChainRegistry:
    """Document chains shared by every thread of a run.

    Attributes:
        enabled: Whether chains are used at all. A disabled registry never
            draws from the RNG.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._chains: dict[str, DocumentChain] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._chains)

    def get(self, chain_id: str) -> DocumentChain | None:
        return self._chains.get(chain_id)

    async def reserve(
        self, doc_type: AttachmentType, rng: random.Random
    ) -> ChainReservation | None:
        """Maybe reserve the next version of an existing chain.

        With probability 30%, picks a chain of the same type and increments
        its version atomically. Returns None when no chain is reused.
        """
        if not self.enabled or not self._chains or rng.randrange(100) >= REUSE_PERCENT:
            return None

        async with self._lock:
            matching = [c for c in self._chains.values() if c.type == doc_type]
            if not matching:
                return None
            chain = matching[rng.randrange(len(matching))]
            chain.version_number += 1
            reservation = ChainReservation(chain=chain, version_number=chain.version_number)

        logger.debug(
            f"Reserved version {reservation.version_number} of document chain "
            f"{chain.chain_id} ('{chain.base_title}')"
        )
        return reservation

    async def maybe_start_chain(
        self,
        email: EmailMessage,
        title: str,
        doc_type: AttachmentType,
        rng: random.Random,
    ) -> DocumentChain | None:
        """Start a new chain for a freshly rendered Word document, half the time."""
        if (
            not self.enabled
            or doc_type != AttachmentType.WORD
            or rng.randrange(100) >= START_CHAIN_PERCENT
        ):
            return None

        chain_id = create_short_token(
            SCOPE_DOC_CHAIN, CHAIN_TOKEN_LENGTH, email.id.hex, title, doc_type.value
        )
        async with self._lock:
            chain = self._chains.setdefault(
                chain_id, DocumentChain(chain_id=chain_id, base_title=title, type=doc_type)
            )
        logger.debug(f"Started document chain {chain_id} ('{title}')")
        return chain
