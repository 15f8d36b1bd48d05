"""Command-line entry point for a generation run.

Usage::

    threadgen --storylines-file storylines.json --output-folder out --seed 7
    python -m src.threadgen --model claude-3-5-sonnet-latest --parallel-threads 4

Every ``GenerationConfig`` field can also be set through ``THREADGEN_``
environment variables. The run reads storylines from JSON, generates every
thread with the configured completion model and writes ``.eml`` files.
Attachment renderers are host-provided, so planned assets are left as
descriptors on the messages when the command line runs.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from src.threadgen.core.completion import LangChainCompletionClient
from src.threadgen.core.config import GenerationConfig, validate_config
from src.threadgen.core.llm_config import LLMFactory
from src.threadgen.core.logging_config import configure_logging
from src.threadgen.core.updates import GenerationProgress, GenerationUpdate
from src.threadgen.domain.loader import (
    StorylineFileNotFoundError,
    StorylineValidationError,
    load_storylines,
)
from src.threadgen.orchestration.eml_sink import EmlFileSink
from src.threadgen.orchestration.models import GenerationResult
from src.threadgen.orchestration.orchestrator import GenerationOrchestrator
from src.threadgen.topics.loader import load_default_catalog
from src.threadgen.topics.selector import ArchetypeSelector

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RUN_ERRORS = 1
EXIT_BAD_INPUT = 2


def log_update(update: GenerationUpdate) -> None:
    if isinstance(update, GenerationProgress):
        logger.debug(
            f"Progress: {update.completed_emails}/{update.total_emails} emails, "
            f"{update.completed_attachments}/{update.total_attachments} attachments "
            f"({update.current_operation})"
        )


def build_orchestrator(config: GenerationConfig) -> GenerationOrchestrator:
    """Wire the completion model, packaged topic catalog and EML sink."""
    completion = LangChainCompletionClient(LLMFactory.from_generation_config(config))
    return GenerationOrchestrator(
        completion,
        config,
        ArchetypeSelector(load_default_catalog()),
        sink=EmlFileSink(config.organize_by_sender),
        update_sink=log_update,
    )


def summarize(result: GenerationResult) -> None:
    logger.info(
        f"Generated {result.succeeded_threads}/{result.planned_threads} threads and "
        f"{result.succeeded_emails}/{result.planned_emails} emails into "
        f"{result.output_folder} in {result.elapsed_seconds:.1f}s"
    )
    for error in result.errors:
        logger.error(error)


def main(argv: Sequence[str] | None = None) -> int:
    """Parse config, load storylines and run the generation.

    Returns:
        0 on a clean run, 1 if the run recorded errors or was cancelled,
        2 if the storyline file could not be loaded.
    """
    config = GenerationConfig.from_cli_args(argv)
    configure_logging(config.log_level)

    for warning in validate_config(config):
        logger.warning(warning)

    try:
        storylines = load_storylines(Path(config.storylines_file))
    except (StorylineFileNotFoundError, StorylineValidationError) as e:
        logger.error(str(e))
        return EXIT_BAD_INPUT

    orchestrator = build_orchestrator(config)
    result = asyncio.run(orchestrator.generate(storylines))
    summarize(result)
    if result.errors or result.was_cancelled:
        return EXIT_RUN_ERRORS
    return EXIT_OK
