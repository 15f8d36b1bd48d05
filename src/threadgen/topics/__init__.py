"""Topic catalog and archetype selection for non-responsive threads."""

from src.threadgen.topics.loader import (
    TopicCatalogLoader,
    TopicCatalogNotFoundError,
    TopicCatalogValidationError,
    load_default_catalog,
)
from src.threadgen.topics.schema import TopicArchetype, TopicGenerationModel
from src.threadgen.topics.selector import ArchetypeSelector

__all__ = [
    "ArchetypeSelector",
    "TopicArchetype",
    "TopicCatalogLoader",
    "TopicCatalogNotFoundError",
    "TopicCatalogValidationError",
    "TopicGenerationModel",
    "load_default_catalog",
]
