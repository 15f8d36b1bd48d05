"""Subject and entity-value normalization.

Completion responses are untrusted: subjects may be missing, prefixed or the
wrong length, and entity values may be missing or blank. These helpers turn
whatever came back into usable values, filling gaps with deterministic
synthetic fallbacks drawn from the thread RNG.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from src.threadgen.generation.models import ResolvedParticipants
from src.threadgen.generation.subjects import clean_subject
from src.threadgen.topics.schema import TopicArchetype

DEFAULT_SUBJECT = "Project update"

MIN_SUBJECT_WORDS = 4
MAX_SUBJECT_WORDS = 12

_PERSON_KEYS = ("person", "employee", "manager", "contact")
_DATE_KEYS = ("date", "deadline", "time")
_LIST_KEYS = ("list", "systems", "assets", "items")
_TICKET_KEYS = ("ticket", "case", "id")
_SUMMARY_KEYS = ("summary", "description", "reason")


def normalize_subject(subject: str | None, fallback: str) -> str:
    """Clean a subject, falling back to ``fallback`` then the default."""
    resolved = clean_subject(subject or "")
    if not resolved:
        resolved = clean_subject(fallback or "")
    return resolved or DEFAULT_SUBJECT


def humanize_identifier(value: str) -> str:
    """``vendor_invoice-question`` -> ``Vendor Invoice Question``."""
    cleaned = (value or "").replace("_", " ").replace("-", " ").strip()
    if not cleaned:
        return "update"
    return " ".join(word[:1].upper() + word[1:].lower() for word in cleaned.split())


def build_fallback_subject(archetype: TopicArchetype) -> str:
    humanized = humanize_identifier(archetype.id)
    subject = f"Action needed: {humanized}"
    if len(subject.split()) < MIN_SUBJECT_WORDS:
        subject = f"Action needed: {humanized} update"
    return subject


def normalize_non_responsive_subject(
    subject: str | None,
    fallback: str,
    archetype: TopicArchetype,
) -> str:
    """Clean a non-responsive subject and force it to 4-12 words.

    Too-short subjects are replaced by the archetype fallback; long ones are
    truncated to the first twelve words.
    """
    resolved = clean_subject(subject or "")
    if not resolved:
        resolved = clean_subject(fallback or "")
    if not resolved:
        resolved = build_fallback_subject(archetype)

    words = resolved.split()
    if len(words) < MIN_SUBJECT_WORDS:
        resolved = build_fallback_subject(archetype)
        words = resolved.split()

    if len(words) > MAX_SUBJECT_WORDS:
        resolved = " ".join(words[:MAX_SUBJECT_WORDS])
    elif len(words) < MIN_SUBJECT_WORDS:
        resolved = f"{resolved} update"
    return resolved.strip()


def build_fallback_entity_value(
    entity_key: str,
    rng: random.Random,
    sent_date: datetime,
    participants: ResolvedParticipants,
) -> str:
    """Synthesize a plausible value for a missing entity, keyed on its name."""
    lowered = entity_key.lower()
    if any(key in lowered for key in _PERSON_KEYS):
        person = participants.to[0] if participants.to else participants.sender
        return person.full_name
    if any(key in lowered for key in _DATE_KEYS):
        return (sent_date + timedelta(days=rng.randint(2, 9))).strftime("%Y-%m-%d")
    if any(key in lowered for key in _LIST_KEYS):
        return "Item A, Item B"
    if any(key in lowered for key in _TICKET_KEYS):
        return f"TKT-{rng.randint(1000, 9998)}"
    if "link" in lowered:
        return "https://intranet.local/request"
    if any(key in lowered for key in _SUMMARY_KEYS):
        return "brief summary"
    return "details needed"


def normalize_entity_values(
    archetype: TopicArchetype,
    raw_values: dict[str, str] | None,
    rng: random.Random,
    sent_date: datetime,
    participants: ResolvedParticipants,
) -> dict[str, str]:
    """Keep every required entity (synthesizing missing ones) and any
    optional entity the response supplied.

    Keys are matched case-insensitively; blank keys and values are ignored.
    """
    lookup: dict[str, str] = {}
    for key, value in (raw_values or {}).items():
        if not key or not key.strip() or value is None or not str(value).strip():
            continue
        lookup[key.strip().casefold()] = str(value).strip()

    normalized: dict[str, str] = {}
    for required in archetype.entities_required:
        value = lookup.get(required.casefold())
        if value is None:
            value = build_fallback_entity_value(required, rng, sent_date, participants)
        normalized[required] = value

    for optional in archetype.entities_optional:
        value = lookup.get(optional.casefold())
        if value is not None:
            normalized[optional] = value

    return normalized
