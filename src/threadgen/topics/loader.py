"""Topic catalog loading.

The catalog ships as package data (``data/topic_generation_model.json``) and
can be replaced by pointing the loader at another file. The default catalog
is parsed once per process and cached.

Key Classes:
    TopicCatalogNotFoundError: Raised when the catalog file is missing.
    TopicCatalogValidationError: Raised when the catalog fails validation.
    TopicCatalogLoader: Loads and validates a catalog file.

Example:
    >>> catalog = load_default_catalog()
    >>> len(catalog.archetypes) > 0
    True
    >>> custom = TopicCatalogLoader(Path("my_topics.json")).load()
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from src.threadgen.topics.schema import TopicGenerationModel

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "topic_generation_model.json"


# =============================================================================
# Exceptions
# =============================================================================


class TopicCatalogNotFoundError(Exception):
    """Raised when a topic catalog file cannot be found.

    Attributes:
        path: The path that was searched.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Topic catalog not found: {path}")


class TopicCatalogValidationError(Exception):
    """Raised when a topic catalog fails validation.

    Attributes:
        path: The catalog file.
        errors: Validation error messages.
    """

    def __init__(self, path: Path, errors: list[str]) -> None:
        self.path = path
        self.errors = errors
        errors_str = "\n  - ".join([""] + errors)
        super().__init__(f"Topic catalog '{path}' failed validation:{errors_str}")


# =============================================================================
# Catalog Loader
# =============================================================================


class TopicCatalogLoader:
    """Loads a topic catalog from a JSON file.

    Attributes:
        path: Path to the catalog file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> TopicGenerationModel:
        """Load and validate the catalog.

        Raises:
            TopicCatalogNotFoundError: If the file doesn't exist.
            TopicCatalogValidationError: If the JSON is malformed or does not
                match the schema.
        """
        if not self.path.exists():
            raise TopicCatalogNotFoundError(self.path)

        logger.debug(f"Loading topic catalog from {self.path}")
        data = self._load_json()
        try:
            catalog = TopicGenerationModel.model_validate(data)
        except ValidationError as e:
            raise TopicCatalogValidationError(
                self.path,
                [
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in e.errors()
                ],
            ) from e

        self._warn_unknown_tags(catalog)
        logger.info(
            "Loaded topic catalog with %d archetypes and %d tags",
            len(catalog.archetypes),
            len(catalog.tags),
        )
        return catalog

    def _load_json(self) -> dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise TopicCatalogValidationError(self.path, [str(e)]) from e

    def _warn_unknown_tags(self, catalog: TopicGenerationModel) -> None:
        # Unknown tags never gate anything in; flag them so catalog typos surface
        known = set(catalog.tag_ids)
        for archetype in catalog.archetypes:
            referenced = {
                *archetype.archetype_tags,
                *archetype.constraints.sender_tags_any,
                *archetype.constraints.recipient_tags_any,
                *archetype.constraints.cc_tags_any,
            }
            unknown = sorted(referenced - known)
            if unknown:
                logger.warning(
                    "Archetype '%s' references unknown tags: %s",
                    archetype.id,
                    ", ".join(unknown),
                )


@lru_cache(maxsize=1)
def load_default_catalog() -> TopicGenerationModel:
    """Load the packaged catalog once per process."""
    return TopicCatalogLoader(DEFAULT_CATALOG_PATH).load()
