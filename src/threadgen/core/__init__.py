"""Core infrastructure for the generation engine.

Modules:
    config: Run configuration (pydantic-settings, CLI, environment)
    completion: Completion capability protocol and LangChain adapter
    llm_config: Factory for LangChain chat models
    logging_config: Root logging setup
    seeding: Deterministic seeds, ids and tokens
    updates: Progress and lifecycle update models
"""

from src.threadgen.core.completion import (
    CompletionClient,
    CompletionError,
    LangChainCompletionClient,
)
from src.threadgen.core.config import GenerationConfig, merge_configs, validate_config
from src.threadgen.core.llm_config import (
    LLMConfig,
    LLMFactory,
    LLMProvider,
    UnsupportedModelError,
)
from src.threadgen.core.logging_config import configure_logging
from src.threadgen.core.seeding import (
    create_deterministic_id,
    create_rng,
    create_seed,
    create_short_token,
)
from src.threadgen.core.updates import (
    GenerationProgress,
    UpdateEmitter,
    parse_update,
)

__all__ = [
    # Completion
    "CompletionClient",
    "CompletionError",
    "LangChainCompletionClient",
    # Configuration
    "GenerationConfig",
    "merge_configs",
    "validate_config",
    "configure_logging",
    # LLM factory
    "LLMConfig",
    "LLMFactory",
    "LLMProvider",
    "UnsupportedModelError",
    # Seeding
    "create_deterministic_id",
    "create_rng",
    "create_seed",
    "create_short_token",
    # Updates
    "GenerationProgress",
    "UpdateEmitter",
    "parse_update",
]
