"""Tests for weighted archetype selection.

Tests cover:
- Pure scoring helpers (sigmoid, gate_any, mean_presence, average_top_two)
- Roulette-wheel sampling and its fallbacks
- Participant profiles from role/department tables
- Relationship, industry and season factors
- Gating to zero and the selection fallbacks
- Deterministic draws from a seeded generator
"""

from __future__ import annotations

import math
import random
import uuid
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from src.threadgen.domain.models import Character
from src.threadgen.topics.loader import load_default_catalog
from src.threadgen.topics.schema import (
    ArchetypeSeasonality,
    TopicArchetype,
    TopicGenerationModel,
)
from src.threadgen.topics.selector import (
    DEFAULT_INDUSTRY,
    RELATIONSHIP_INTERNAL_EXTERNAL,
    RELATIONSHIP_INTERNAL_INTERNAL,
    ArchetypeSelector,
    average_top_two,
    build_tag_presence,
    gate_any,
    mean_presence,
    sample_temperature,
    sample_weighted,
    sigmoid,
)

SENT = datetime(2026, 1, 7, 10, 0)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def catalog() -> TopicGenerationModel:
    """Three archetypes: finance senders, IT senders, external audiences only."""
    return TopicGenerationModel.model_validate(
        {
            "tags": [
                {"id": "finance_ops"},
                {"id": "it_support"},
                {"id": "general_staff"},
            ],
            "department_default_tag_multipliers": {
                "Finance": {"finance_ops": 1.0, "general_staff": 0.6},
                "Engineering": {"it_support": 1.0, "general_staff": 0.6},
                "Legal": {"general_staff": 0.6},
            },
            "industry_multipliers": {
                "Technology": {
                    "category_multipliers": {"finance": 2.0},
                    "intent_multipliers": {"request": 0.5},
                    "archetype_id_overrides": {"vendor_invoice": 3.0},
                }
            },
            "archetypes": [
                {
                    "id": "vendor_invoice",
                    "category": "finance",
                    "intent": "request",
                    "archetype_tags": ["finance_ops"],
                    "constraints": {
                        "sender_tags_any": ["finance_ops"],
                        "relationship_modifiers": {
                            "internal_internal": 1.0,
                            "internal_external": 1.5,
                        },
                    },
                },
                {
                    "id": "password_reset",
                    "category": "it",
                    "archetype_tags": ["it_support"],
                    "constraints": {
                        "sender_tags_any": ["it_support"],
                        "relationship_modifiers": {"internal_internal": 1.0},
                    },
                },
                {
                    "id": "partner_intro",
                    "category": "sales",
                    "constraints": {
                        "relationship_modifiers": {"internal_external": 1.0},
                    },
                },
            ],
        }
    )


@pytest.fixture
def selector(catalog) -> ArchetypeSelector:
    return ArchetypeSelector(catalog)


@pytest.fixture
def partner(partner_organization) -> Character:
    return Character(
        id=uuid.uuid4(),
        first_name="Dana",
        last_name="Fox",
        email="dana.fox@globex.com",
        organization_id=partner_organization.id,
        role="Account Director",
        department="Sales",
    )


# =============================================================================
# Helper Tests
# =============================================================================


class TestScoringHelpers:
    """Tests for the pure scoring helpers."""

    def test_sigmoid(self) -> None:
        assert sigmoid(0.0) == 0.5
        assert sigmoid(10.0) > 0.99
        assert sigmoid(-10.0) < 0.01

    def test_gate_any(self) -> None:
        presence = {"a": 0.5, "b": 0.5}
        assert gate_any(presence, ["a", "b"]) == pytest.approx(0.75)
        assert gate_any(presence, ["missing"]) == 0.0
        assert gate_any(presence, []) == 1.0
        assert gate_any(presence, None) == 1.0

    def test_mean_presence(self) -> None:
        presence = {"a": 0.2, "b": 0.6}
        assert mean_presence(presence, ["a", "b"]) == pytest.approx(0.4)
        assert mean_presence(presence, []) == 0.0

    def test_average_top_two(self) -> None:
        assert average_top_two([]) == 1.0
        assert average_top_two([0.4]) == 0.4
        assert average_top_two([0.2, 0.8, 0.6]) == pytest.approx(0.7)

    def test_sample_temperature_is_deterministic(self) -> None:
        first = sample_temperature(random.Random(3))
        assert first == sample_temperature(random.Random(3))
        assert 0.5 < first < 2.0


class TestSampleWeighted:
    """Tests for roulette-wheel sampling."""

    def test_roll_picks_bucket(self, catalog) -> None:
        first, second = catalog.archetypes[:2]
        rng = MagicMock(spec=random.Random)
        rng.random.return_value = 0.75
        assert sample_weighted([(first, 1.0), (second, 1.0)], rng) is second
        rng.random.return_value = 0.25
        assert sample_weighted([(first, 1.0), (second, 1.0)], rng) is first

    @pytest.mark.parametrize("weight", [0.0, math.inf, math.nan])
    def test_unusable_total_returns_first(self, catalog, weight: float) -> None:
        first, second = catalog.archetypes[:2]
        rng = MagicMock(spec=random.Random)
        assert sample_weighted([(first, weight), (second, 0.0)], rng) is first
        rng.random.assert_not_called()


# =============================================================================
# Profile And Factor Tests
# =============================================================================


class TestProfiles:
    """Tests for participant tag presence."""

    def test_department_lookup_is_case_insensitive(self, catalog) -> None:
        exact = build_tag_presence(catalog, "Finance", "", "Technology")
        folded = build_tag_presence(catalog, "finance", "", "Technology")
        assert exact == folded
        assert exact["finance_ops"] > 0.99
        assert exact["it_support"] < 0.12

    def test_unknown_department_is_uniformly_low(self, catalog) -> None:
        presence = build_tag_presence(catalog, "Facilities", "Janitor", DEFAULT_INDUSTRY)
        assert set(presence) == {"finance_ops", "it_support", "general_staff"}
        assert len(set(presence.values())) == 1

    def test_profile_industry(self, selector, characters, organization) -> None:
        profile = selector.build_profile(characters[0], {organization.id: organization})
        assert profile.industry_key == "Technology"
        assert selector.build_profile(characters[0], {}).industry_key == DEFAULT_INDUSTRY


class TestFactors:
    """Tests for relationship, industry and season factors."""

    def test_relationship_type(self, selector, characters, partner) -> None:
        alice, bob, _ = characters
        assert selector.relationship_type(alice, [bob]) == RELATIONSHIP_INTERNAL_INTERNAL
        assert selector.relationship_type(alice, [bob, partner]) == RELATIONSHIP_INTERNAL_EXTERNAL
        assert selector.relationship_type(alice, []) == RELATIONSHIP_INTERNAL_INTERNAL

    def test_industry_factor(self, selector, catalog) -> None:
        invoice, reset, _ = catalog.archetypes
        assert selector.industry_factor("Technology", invoice) == pytest.approx(3.0)
        assert selector.industry_factor("Technology", reset) == 1.0
        assert selector.industry_factor("Unknown", invoice) == 1.0

    def test_season_factor(self, catalog) -> None:
        plain = catalog.archetypes[0]
        boosted = plain.model_copy(
            update={"seasonality": ArchetypeSeasonality(months_boost={"12": 2.0})}
        )
        assert ArchetypeSelector.season_factor(plain, SENT) == 1.0
        assert ArchetypeSelector.season_factor(boosted, SENT) == 1.0
        assert ArchetypeSelector.season_factor(boosted, datetime(2026, 12, 1)) == 2.0

    def test_seasonality_scales_score(self, selector, catalog, characters, organization) -> None:
        orgs = {organization.id: organization}
        sender = selector.build_profile(characters[0], orgs)
        recipients = [selector.build_profile(characters[1], orgs)]
        plain = catalog.archetypes[0]
        boosted = plain.model_copy(
            update={"seasonality": ArchetypeSeasonality(months_boost={"12": 2.0})}
        )
        december = datetime(2026, 12, 3)

        base = selector.score(plain, sender, recipients, [], RELATIONSHIP_INTERNAL_INTERNAL, december)
        scaled = selector.score(boosted, sender, recipients, [], RELATIONSHIP_INTERNAL_INTERNAL, december)
        assert base > 0
        assert scaled == pytest.approx(2 * base)


# =============================================================================
# Selection Tests
# =============================================================================


class TestSelection:
    """Tests for gating and selection."""

    def test_sender_gate(self, selector, catalog, characters, organization) -> None:
        orgs = {organization.id: organization}
        alice, bob, _ = (selector.build_profile(c, orgs) for c in characters)
        invoice, reset, partner_intro = catalog.archetypes

        assert selector.score(invoice, alice, [bob], [], RELATIONSHIP_INTERNAL_INTERNAL, SENT) > 0
        assert selector.score(reset, alice, [bob], [], RELATIONSHIP_INTERNAL_INTERNAL, SENT) == 0.0
        assert selector.score(reset, bob, [alice], [], RELATIONSHIP_INTERNAL_INTERNAL, SENT) > 0

    def test_relationship_modifier_gate(self, selector, catalog, characters, organization) -> None:
        orgs = {organization.id: organization}
        alice, bob, _ = (selector.build_profile(c, orgs) for c in characters)
        partner_intro = catalog.archetypes[2]
        assert selector.score(partner_intro, alice, [bob], [], RELATIONSHIP_INTERNAL_INTERNAL, SENT) == 0.0
        assert selector.score(partner_intro, alice, [bob], [], RELATIONSHIP_INTERNAL_EXTERNAL, SENT) > 0

    def test_cc_gate(self, catalog, characters, organization) -> None:
        gated = catalog.model_copy(
            update={
                "archetypes": [
                    catalog.archetypes[0].model_copy(
                        update={
                            "constraints": catalog.archetypes[0].constraints.model_copy(
                                update={"cc_tags_any": ["it_support"]}
                            )
                        }
                    )
                ]
            }
        )
        selector = ArchetypeSelector(gated)
        orgs = {organization.id: organization}
        alice, bob, carla = (selector.build_profile(c, orgs) for c in characters)
        archetype = gated.archetypes[0]
        assert selector.score(archetype, alice, [carla], [carla], RELATIONSHIP_INTERNAL_INTERNAL, SENT) == 0.0
        assert selector.score(archetype, alice, [carla], [bob], RELATIONSHIP_INTERNAL_INTERNAL, SENT) > 0
        assert selector.score(archetype, alice, [carla], [], RELATIONSHIP_INTERNAL_INTERNAL, SENT) > 0

    def test_select_only_survivor(self, selector, characters, organization) -> None:
        alice, bob, _ = characters
        for seed in range(10):
            selected = selector.select(alice, [bob], [], [organization], random.Random(seed), SENT)
            assert selected.id == "vendor_invoice"

    def test_select_external_audience(self, selector, characters, organization, partner_organization, partner) -> None:
        alice = characters[0]
        seen = {
            selector.select(
                alice, [partner], [], [organization, partner_organization], random.Random(seed), SENT
            ).id
            for seed in range(100)
        }
        assert seen == {"vendor_invoice", "partner_intro"}

    def test_select_none_when_everything_gated(self, selector, characters, organization) -> None:
        _, bob, carla = characters
        assert selector.select(carla, [bob], [], [organization], random.Random(1), SENT) is None

    def test_select_or_default(self, selector, catalog, characters, organization) -> None:
        _, bob, carla = characters
        chosen = selector.select_or_default(carla, [bob], [], [organization], random.Random(1), SENT)
        assert chosen is catalog.archetypes[0]

    def test_draw_count_is_fixed(self, selector, characters, organization) -> None:
        alice, bob, carla = characters
        rng = random.Random(9)
        selector.select(alice, [bob], [], [organization], rng, SENT)
        expected = random.Random(9)
        for _ in range(3):
            expected.random()
        assert rng.getstate() == expected.getstate()

        rng = random.Random(9)
        selector.select(carla, [bob], [], [organization], rng, SENT)
        expected = random.Random(9)
        for _ in range(2):
            expected.random()
        assert rng.getstate() == expected.getstate()

    def test_default_catalog_is_deterministic(self, characters, organization) -> None:
        selector = ArchetypeSelector(load_default_catalog())
        alice, bob, carla = characters
        picks = [
            selector.select_or_default(alice, [bob], [carla], [organization], random.Random(seed), SENT).id
            for seed in (1, 1, 2)
        ]
        assert picks[0] == picks[1]
        assert all(load_default_catalog().get_archetype(p) for p in picks)

    def test_empty_archetype_list(self, selector, characters, organization) -> None:
        alice, bob, _ = characters
        selector.catalog = MagicMock(archetypes=[])
        assert selector.select(alice, [bob], [], [organization], random.Random(1), SENT) is None
