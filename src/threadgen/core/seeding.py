"""Deterministic seed and identifier derivation.

Every random choice the engine makes flows from a ``random.Random`` seeded by
hashing the run seed together with a scope name and the identity of the thing
being generated. Two runs with the same run seed and the same upstream input
therefore make identical structural choices, independent of thread scheduling.

Functions:
    create_seed: Derive a 31-bit integer seed from a scope and parts.
    create_rng: Build a ``random.Random`` for a scope and parts.
    create_deterministic_id: Derive a UUID from a scope and parts.
    create_short_token: Derive a lowercase hex token of a given length.

Example:
    >>> rng = create_rng("thread-plan", 42, thread_id.hex)
    >>> len(create_short_token("doc-chain", 8, "abc"))
    8

Design Notes:
    Parts are joined with ``|`` after ``str()`` conversion, so callers should
    pass stable representations (hex ids, ISO dates) rather than objects with
    identity-based reprs.
"""

from __future__ import annotations

import hashlib
import random
import uuid
from typing import Any

_NAMESPACE = "TG-ID-v1"

# Scope names shared across the engine
SCOPE_THREAD_PLAN = "thread-plan"
SCOPE_THREAD_GEN = "thread-gen"
SCOPE_THREAD_ASSETS = "thread-assets"
SCOPE_THREAD_ENTITIES = "thread-entities"
SCOPE_EMAIL_MESSAGE = "email-message"
SCOPE_EMAIL_BRANCH = "email-branch"
SCOPE_DOC_CHAIN = "doc-chain"
SCOPE_INLINE_IMAGE = "inline-image"
SCOPE_ATTACHMENT = "attachment"
SCOPE_IMAGE_FILE = "image-file"
SCOPE_CALENDAR_INVITE = "calendar-invite"


def _digest(scope: str, parts: tuple[Any, ...]) -> bytes:
    payload = "|".join([_NAMESPACE, scope, *(str(part) for part in parts)])
    return hashlib.sha256(payload.encode("utf-8")).digest()


def create_seed(scope: str, *parts: Any) -> int:
    """Derive a non-negative 31-bit seed.

    Args:
        scope: Name of the generation scope (e.g. ``"thread-plan"``).
        *parts: Identity parts mixed into the hash.

    Returns:
        An integer in ``[0, 2**31)``.
    """
    value = int.from_bytes(_digest(scope, parts)[:4], "little", signed=True)
    return abs(value) & 0x7FFFFFFF


def create_rng(scope: str, *parts: Any) -> random.Random:
    """Build a seeded random generator for a scope."""
    return random.Random(create_seed(scope, *parts))


def create_deterministic_id(scope: str, *parts: Any) -> uuid.UUID:
    """Derive a stable UUID from the first 16 digest bytes."""
    return uuid.UUID(bytes=_digest(scope, parts)[:16])


def create_short_token(scope: str, length: int, *parts: Any) -> str:
    """Derive a lowercase hex token of ``length`` characters.

    Raises:
        ValueError: If ``length`` is not between 1 and 64.
    """
    if not 1 <= length <= 64:
        raise ValueError(f"Token length must be between 1 and 64, got {length}")
    return _digest(scope, parts).hex()[:length]
