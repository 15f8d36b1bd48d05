"""Seeded email thread generation engine.

Turns storylines (beats, characters, organizations and placeholder threads)
into fully populated email threads with realistic branching, consistent
participants, rolling fact continuity and planned attachments.

Subpackages:
    core: Configuration, completion capability, seeding, logging and updates
    domain: Storyline, thread, message and attachment records
    topics: Topic catalog and archetype selection for non-responsive threads
    planning: Thread structure planning and per-thread plans
    generation: Per-slot drafting, validation, repair and commit
    orchestration: Worker pool, asset stage, persistence and progress

Example:
    >>> from src.threadgen import GenerationConfig, GenerationOrchestrator
    >>> orchestrator = GenerationOrchestrator(completion, GenerationConfig(seed=7), selector)
    >>> result = await orchestrator.generate(storylines)
"""

from src.threadgen.core import (
    CompletionClient,
    GenerationConfig,
    LangChainCompletionClient,
    LLMFactory,
    configure_logging,
)
from src.threadgen.orchestration import (
    GenerationOrchestrator,
    GenerationResult,
    MessageFileSink,
)
from src.threadgen.topics import ArchetypeSelector, load_default_catalog

__all__ = [
    "ArchetypeSelector",
    "CompletionClient",
    "GenerationConfig",
    "GenerationOrchestrator",
    "GenerationResult",
    "LangChainCompletionClient",
    "LLMFactory",
    "MessageFileSink",
    "configure_logging",
    "load_default_catalog",
]
