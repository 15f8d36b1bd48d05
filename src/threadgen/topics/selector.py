"""Weighted archetype selection for non-responsive threads.

Each participant gets a tag-presence profile built from the catalog's role
and department tables, scaled by their employer's industry and squashed
through a logistic curve. Archetypes are gated against the sender, recipient
and cc profiles, scored, tempered by a per-selection temperature, and drawn
by roulette wheel.

Classes:
    ParticipantScoringProfile: Tag presence for one participant.
    ArchetypeSelector: Gating, scoring and sampling over a catalog.

Functions:
    sigmoid, gate_any, mean_presence, average_top_two, sample_temperature:
        Pure scoring helpers.

Example:
    >>> selector = ArchetypeSelector(load_default_catalog())
    >>> archetype = selector.select(sender, to, cc, organizations, rng, sent_date)

Design Notes:
    The temperature is drawn once per selection, before any archetype is
    scored, so the number of random draws does not depend on how many
    archetypes survive gating.
"""

from __future__ import annotations

import logging
import math
import random
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from src.threadgen.domain.models import Character, Organization
from src.threadgen.topics.schema import TopicArchetype, TopicGenerationModel

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

RELATIONSHIP_INTERNAL_INTERNAL = "internal_internal"
RELATIONSHIP_INTERNAL_EXTERNAL = "internal_external"
DEFAULT_INDUSTRY = "Other"

TAG_PRESENCE_THRESHOLD = 0.35
TAG_PRESENCE_SHARPNESS = 8.0
MIN_SENDER_GATE = 0.12
MIN_RECIPIENT_GATE_MAX = 0.12
COVERAGE_BASE = 0.80
COVERAGE_SPAN = 0.40
ALPHA_SENDER = 0.8
BETA_RECIPIENT = 1.0
GAMMA_SENDER = 1.0
GAMMA_RECIPIENT = 1.0
TEMPERATURE_MEAN = 1.05
TEMPERATURE_SIGMA = 0.10


# =============================================================================
# Scoring Helpers
# =============================================================================


def sigmoid(value: float) -> float:
    return 1.0 / (1.0 + math.exp(-value))


def gate_any(tag_presence: dict[str, float], tags: Sequence[str] | None) -> float:
    """Probability that at least one of ``tags`` is present.

    Computed as ``1 - prod(1 - presence)``. An empty tag list passes with 1.0.
    """
    if not tags:
        return 1.0
    product = 1.0
    for tag in tags:
        product *= 1.0 - tag_presence.get(tag, 0.0)
    return 1.0 - product


def mean_presence(tag_presence: dict[str, float], tags: Sequence[str] | None) -> float:
    if not tags:
        return 0.0
    return sum(tag_presence.get(tag, 0.0) for tag in tags) / len(tags)


def average_top_two(values: Sequence[float]) -> float:
    """Average of the two largest values; 1.0 for an empty sequence."""
    if not values:
        return 1.0
    if len(values) == 1:
        return values[0]
    top = sorted(values, reverse=True)
    return (top[0] + top[1]) / 2.0


def sample_standard_normal(rng: random.Random) -> float:
    """Box-Muller draw consuming exactly two uniforms."""
    u1 = 1.0 - rng.random()
    u2 = 1.0 - rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def sample_temperature(rng: random.Random) -> float:
    """Log-normal sampling temperature centred on TEMPERATURE_MEAN."""
    return TEMPERATURE_MEAN * math.exp(sample_standard_normal(rng) * TEMPERATURE_SIGMA)


def sample_weighted(
    candidates: Sequence[tuple[TopicArchetype, float]],
    rng: random.Random,
) -> TopicArchetype:
    """Roulette-wheel draw over (archetype, weight) pairs.

    Falls back to the first candidate when the total weight is unusable.
    """
    total = sum(weight for _, weight in candidates)
    if not math.isfinite(total) or total <= 0:
        return candidates[0][0]

    roll = rng.random() * total
    cumulative = 0.0
    for archetype, weight in candidates:
        cumulative += weight
        if roll <= cumulative:
            return archetype
    return candidates[-1][0]


# =============================================================================
# Participant Profiles
# =============================================================================


@dataclass(frozen=True)
class ParticipantScoringProfile:
    """Tag presence of one participant.

    Attributes:
        character: The participant.
        industry_key: Employer industry used for industry multipliers.
        tag_presence: Presence in [0, 1] for every catalog tag.
    """

    character: Character
    industry_key: str
    tag_presence: dict[str, float]


def _lookup(table: dict[str, dict[str, float]], key: str) -> dict[str, float] | None:
    if not key.strip():
        return None
    if key in table:
        return table[key]
    folded = key.strip().casefold()
    return next((v for k, v in table.items() if k.casefold() == folded), None)


def build_tag_presence(
    catalog: TopicGenerationModel,
    department: str,
    role: str,
    industry: str,
) -> dict[str, float]:
    """Build the presence map for a role/department/industry combination."""
    dept_weights = _lookup(catalog.department_default_tag_multipliers, department)
    role_weights = _lookup(catalog.role_default_tag_multipliers, role)
    industry_entry = catalog.industry_multipliers.get(industry)
    industry_weights = industry_entry.tag_multipliers if industry_entry else {}

    presence: dict[str, float] = {}
    for tag_id in catalog.tag_ids:
        base = max(
            (role_weights or {}).get(tag_id, 0.0),
            (dept_weights or {}).get(tag_id, 0.0),
        )
        weight = base * industry_weights.get(tag_id, 1.0)
        presence[tag_id] = sigmoid(
            TAG_PRESENCE_SHARPNESS * (weight - TAG_PRESENCE_THRESHOLD)
        )
    return presence


# =============================================================================
# Archetype Selector
# =============================================================================


class ArchetypeSelector:
    """Selects a topic archetype for a set of resolved participants.

    Attributes:
        catalog: The topic catalog to select from.
    """

    def __init__(self, catalog: TopicGenerationModel) -> None:
        self.catalog = catalog

    def build_profile(
        self,
        character: Character,
        organizations: dict[uuid.UUID, Organization],
    ) -> ParticipantScoringProfile:
        organization = organizations.get(character.organization_id)
        industry = (
            organization.industry
            if organization is not None and organization.industry
            else DEFAULT_INDUSTRY
        )
        return ParticipantScoringProfile(
            character=character,
            industry_key=industry,
            tag_presence=build_tag_presence(
                self.catalog, character.department, character.role, industry
            ),
        )

    def industry_factor(self, industry_key: str, archetype: TopicArchetype) -> float:
        multipliers = self.catalog.industry_multipliers.get(industry_key)
        if multipliers is None:
            return 1.0
        return (
            multipliers.category_multipliers.get(archetype.category, 1.0)
            * multipliers.intent_multipliers.get(archetype.intent, 1.0)
            * multipliers.archetype_id_overrides.get(archetype.id, 1.0)
        )

    @staticmethod
    def season_factor(archetype: TopicArchetype, sent_date: datetime) -> float:
        if archetype.seasonality is None:
            return 1.0
        return archetype.seasonality.months_boost.get(str(sent_date.month), 1.0)

    @staticmethod
    def relationship_type(
        sender: Character,
        recipients: Iterable[Character],
    ) -> str:
        """Audience type: external when any recipient works elsewhere."""
        for recipient in recipients:
            if recipient.organization_id != sender.organization_id:
                return RELATIONSHIP_INTERNAL_EXTERNAL
        return RELATIONSHIP_INTERNAL_INTERNAL

    def score(
        self,
        archetype: TopicArchetype,
        sender: ParticipantScoringProfile,
        recipients: Sequence[ParticipantScoringProfile],
        ccs: Sequence[ParticipantScoringProfile],
        relationship_type: str,
        sent_date: datetime,
    ) -> float:
        """Score one archetype. Returns 0.0 when any gate rejects it."""
        constraints = archetype.constraints

        rel = constraints.relationship_modifiers.get(relationship_type, 0.0)
        if rel <= 0:
            return 0.0

        sender_gate = gate_any(sender.tag_presence, constraints.sender_tags_any)
        if sender_gate < MIN_SENDER_GATE:
            return 0.0

        rec_gates = [
            gate_any(r.tag_presence, constraints.recipient_tags_any) for r in recipients
        ]
        rec_gate_max = max(rec_gates) if rec_gates else 1.0
        rec_gate_avg = sum(rec_gates) / len(rec_gates) if rec_gates else 1.0
        if rec_gate_max < MIN_RECIPIENT_GATE_MAX:
            return 0.0

        if constraints.cc_tags_any and ccs:
            cc_gate_max = max(
                gate_any(c.tag_presence, constraints.cc_tags_any) for c in ccs
            )
            if cc_gate_max < MIN_RECIPIENT_GATE_MAX:
                return 0.0

        tags = archetype.archetype_tags
        coverage = (
            sum(gate_any(r.tag_presence, tags) for r in recipients) / len(recipients)
            if recipients
            else 1.0
        )
        coverage_factor = COVERAGE_BASE + COVERAGE_SPAN * coverage

        sender_affinity = mean_presence(sender.tag_presence, tags)
        recipient_affinity = (
            max(mean_presence(r.tag_presence, tags) for r in recipients)
            if recipients
            else 0.0
        )
        affinity_factor = (1 + ALPHA_SENDER * sender_affinity) * (
            1 + BETA_RECIPIENT * recipient_affinity
        )

        recipient_industry = average_top_two(
            [self.industry_factor(r.industry_key, archetype) for r in recipients]
        )

        return (
            archetype.base_weight
            * rel
            * self.season_factor(archetype, sent_date)
            * self.industry_factor(sender.industry_key, archetype)
            * recipient_industry
            * sender_gate**GAMMA_SENDER
            * (0.7 * rec_gate_max + 0.3 * rec_gate_avg) ** GAMMA_RECIPIENT
            * affinity_factor
            * coverage_factor
        )

    def select(
        self,
        sender: Character,
        to: Sequence[Character],
        cc: Sequence[Character],
        organizations: Iterable[Organization],
        rng: random.Random,
        sent_date: datetime,
    ) -> TopicArchetype | None:
        """Select an archetype, or None when nothing survives gating.

        Args:
            sender: Email sender.
            to: Primary recipients.
            cc: Carbon-copied recipients.
            organizations: Organizations participants may belong to.
            rng: Thread generator; consumes two draws for the temperature and
                one for the roulette wheel.
            sent_date: Planned sent date, used for seasonality.
        """
        if not self.catalog.archetypes:
            return None

        org_lookup = {o.id: o for o in organizations}
        sender_profile = self.build_profile(sender, org_lookup)
        recipient_profiles = [self.build_profile(p, org_lookup) for p in to]
        cc_profiles = [self.build_profile(p, org_lookup) for p in cc]
        relationship = self.relationship_type(sender, [*to, *cc])

        temperature = sample_temperature(rng)
        candidates: list[tuple[TopicArchetype, float]] = []
        for archetype in self.catalog.archetypes:
            score = self.score(
                archetype,
                sender_profile,
                recipient_profiles,
                cc_profiles,
                relationship,
                sent_date,
            )
            if not math.isfinite(score) or score <= 0:
                continue
            weight = score ** (1.0 / temperature)
            if not math.isfinite(weight) or weight <= 0:
                continue
            candidates.append((archetype, weight))

        logger.debug(
            f"Archetype selection ({relationship}, T={temperature:.3f}): "
            f"{len(candidates)} of {len(self.catalog.archetypes)} candidates"
        )
        if not candidates:
            return None
        return sample_weighted(candidates, rng)

    def select_or_default(
        self,
        sender: Character,
        to: Sequence[Character],
        cc: Sequence[Character],
        organizations: Iterable[Organization],
        rng: random.Random,
        sent_date: datetime,
    ) -> TopicArchetype:
        """Select an archetype, falling back to the catalog's first entry."""
        selected = self.select(sender, to, cc, organizations, rng, sent_date)
        if selected is None:
            logger.debug("No archetype survived gating; using catalog default")
            return self.catalog.archetypes[0]
        return selected
