"""Storyline input loading.

Storylines are produced upstream and handed to the command line as a JSON
document: a top-level list of storylines, each with its cast, organizations
and beats, every beat carrying its placeholder threads and messages.

Key Classes:
    StorylineFileNotFoundError: Raised when the input file is missing.
    StorylineValidationError: Raised when the input fails validation.

Example:
    >>> storylines = load_storylines(Path("storylines.json"))
    >>> storylines[0].beats[0].threads[0].messages[0].sequence_index
    0
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from src.threadgen.domain.models import Storyline

logger = logging.getLogger(__name__)

_STORYLINES_ADAPTER = TypeAdapter(list[Storyline])


class StorylineFileNotFoundError(Exception):
    """Raised when a storyline file cannot be found.

    Attributes:
        path: The path that was searched.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Storyline file not found: {path}")


class StorylineValidationError(Exception):
    """Raised when a storyline file is malformed or fails validation.

    Attributes:
        path: The storyline file.
        errors: Validation error messages, each prefixed with its location.
    """

    def __init__(self, path: Path, errors: list[str]) -> None:
        self.path = path
        self.errors = errors
        errors_str = "\n  - ".join([""] + errors)
        super().__init__(f"Storyline file '{path}' failed validation:{errors_str}")


def load_storylines(path: Path) -> list[Storyline]:
    """Read and validate the storylines in ``path``.

    Raises:
        StorylineFileNotFoundError: If the file doesn't exist.
        StorylineValidationError: If the JSON is malformed or a record is
            missing required fields.
    """
    if not path.exists():
        raise StorylineFileNotFoundError(path)

    logger.debug(f"Loading storylines from {path}")
    try:
        storylines = _STORYLINES_ADAPTER.validate_json(path.read_bytes())
    except ValidationError as e:
        raise StorylineValidationError(
            path,
            [
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            ],
        ) from e

    logger.info(
        f"Loaded {len(storylines)} storylines with "
        f"{sum(len(s.beats) for s in storylines)} beats from {path}"
    )
    return storylines
