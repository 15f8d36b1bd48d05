"""Topic catalog schema definitions.

The topic catalog describes the mundane business topics that non-responsive
threads are about (password resets, PTO requests, vendor invoices...). Each
archetype carries gating constraints against participant tags, scoring
weights, the entity slots its subject needs, and the prompt instructions used
to write its subject and body.

Models:
    TopicTag: A tag that participants and archetypes are described with
    ArchetypeConstraints: Sender/recipient/cc gates and relationship modifiers
    ArchetypeSeasonality: Month-based weight boosts
    TopicArchetype: One selectable topic
    IndustryMultipliers: Per-industry weight adjustments
    TopicGenerationModel: The complete catalog

Design Note:
    The catalog is read-only after loading. Tag weights use the JSON field
    names of the catalog file, so the file can be edited without touching
    code. Unknown keys are ignored.

Example:
    >>> catalog = TopicGenerationModel.model_validate(json_data)
    >>> catalog.archetypes[0].id
    'password_reset_request'
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RelationshipType = Literal["internal_internal", "internal_external"]


class _CatalogModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class TopicTag(_CatalogModel):
    """A tag participants and archetypes are described with."""

    id: str = Field(..., min_length=1)
    category: str = ""
    description: str = ""


class ArchetypeConstraints(_CatalogModel):
    """Gating rules for an archetype.

    Attributes:
        sender_tags_any: Sender must plausibly carry one of these tags.
        recipient_tags_any: At least one recipient must carry one of these.
        cc_tags_any: When set and ccs exist, one cc must carry one of these.
        relationship_modifiers: Weight per audience type. Zero or a missing
            key rejects the archetype for that audience.
    """

    sender_tags_any: list[str] = Field(default_factory=list)
    recipient_tags_any: list[str] = Field(default_factory=list)
    cc_tags_any: list[str] = Field(default_factory=list)
    relationship_modifiers: dict[str, float] = Field(default_factory=dict)


class ArchetypeSeasonality(_CatalogModel):
    """Per-month boosts keyed by month number as a string ("1".."12")."""

    months_boost: dict[str, float] = Field(default_factory=dict)

    @field_validator("months_boost")
    @classmethod
    def validate_months(cls, v: dict[str, float]) -> dict[str, float]:
        """Reject keys outside 1..12."""
        for key in v:
            if not key.isdigit() or not 1 <= int(key) <= 12:
                raise ValueError(f"Invalid month key in months_boost: '{key}'")
        return v


class TopicArchetype(_CatalogModel):
    """A selectable non-responsive topic.

    Attributes:
        id: Unique snake_case identifier.
        category: Broad category (e.g. "it", "hr", "finance").
        intent: Communicative intent (e.g. "request", "notification").
        base_weight: Prior weight before gating and scoring.
        archetype_tags: Tags the topic is about, used for coverage.
        constraints: Gating rules.
        entities_required: Entity slots the subject/body must fill.
        entities_optional: Entity slots kept only when the model supplies them.
        seasonality: Optional month boosts.
        archetype_subject_prompt: Instruction for writing the subject.
        archetype_body_prompt: Instruction for writing the body.
    """

    id: str = Field(..., min_length=1)
    category: str = ""
    intent: str = ""
    base_weight: float = Field(default=1.0, ge=0.0)
    archetype_tags: list[str] = Field(default_factory=list)
    constraints: ArchetypeConstraints = Field(default_factory=ArchetypeConstraints)
    entities_required: list[str] = Field(default_factory=list)
    entities_optional: list[str] = Field(default_factory=list)
    seasonality: ArchetypeSeasonality | None = None
    archetype_subject_prompt: str = ""
    archetype_body_prompt: str = ""


class IndustryMultipliers(_CatalogModel):
    """Weight adjustments applied when a participant's employer is in an industry."""

    tag_multipliers: dict[str, float] = Field(default_factory=dict)
    category_multipliers: dict[str, float] = Field(default_factory=dict)
    intent_multipliers: dict[str, float] = Field(default_factory=dict)
    archetype_id_overrides: dict[str, float] = Field(default_factory=dict)


class TopicGenerationModel(_CatalogModel):
    """The complete topic catalog."""

    tags: list[TopicTag] = Field(default_factory=list)
    department_default_tag_multipliers: dict[str, dict[str, float]] = Field(
        default_factory=dict
    )
    role_default_tag_multipliers: dict[str, dict[str, float]] = Field(
        default_factory=dict
    )
    industry_multipliers: dict[str, IndustryMultipliers] = Field(default_factory=dict)
    archetypes: list[TopicArchetype] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_unique_archetype_ids(self) -> TopicGenerationModel:
        """Ensure archetype ids are unique."""
        seen: set[str] = set()
        for archetype in self.archetypes:
            if archetype.id in seen:
                raise ValueError(f"Duplicate archetype id: '{archetype.id}'")
            seen.add(archetype.id)
        return self

    @property
    def tag_ids(self) -> list[str]:
        return [tag.id for tag in self.tags]

    def get_archetype(self, archetype_id: str) -> TopicArchetype | None:
        return next((a for a in self.archetypes if a.id == archetype_id), None)
