"""Chat model construction for the completion capability.

The engine asks one chat model for every subject, body, meeting check and
voicemail script of a run. This module turns the run's ``completion_model``
identifier into that LangChain model. Each provider is described by a
``ProviderProfile`` row: the identifier prefixes that select it, the LangChain
class that implements it, and which optional settings it accepts.

Key Classes:
    LLMProvider: Enum of supported providers.
    ProviderProfile: Prefixes and accepted settings for one provider.
    LLMConfig: Immutable settings for a chat model.
    LLMFactory: Builds chat models from identifiers, configs or a run config.
    UnsupportedModelError: Raised for unrecognized model identifiers.

Example:
    >>> llm = LLMFactory.create("gpt-4o", temperature=0.7, seed=42)
    >>> llm = LLMFactory.from_generation_config(GenerationConfig(seed=7))
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI

if TYPE_CHECKING:
    from src.threadgen.core.config import GenerationConfig

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
OLLAMA_PREFIX = "ollama/"

# o1/o3 models reject a temperature argument
REASONING_MODEL_FAMILIES = ("o1", "o1-mini", "o1-preview", "o3", "o3-mini")


class LLMProvider(Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class ProviderProfile:
    """What one provider accepts.

    Attributes:
        provider: The provider.
        prefixes: Lowercase identifier prefixes, matched in order.
        exact_names: Lowercase identifiers matched whole.
        accepts_seed: Whether the constructor takes ``seed``.
        accepts_base_url: Whether the constructor takes ``base_url``.
    """

    provider: LLMProvider
    prefixes: tuple[str, ...]
    exact_names: tuple[str, ...] = ()
    accepts_seed: bool = False
    accepts_base_url: bool = True


PROVIDER_PROFILES: tuple[ProviderProfile, ...] = (
    ProviderProfile(
        LLMProvider.OPENAI,
        prefixes=("gpt-", "o1-", "o3-", "chatgpt-"),
        exact_names=("o1", "o3"),
        accepts_seed=True,
    ),
    ProviderProfile(LLMProvider.ANTHROPIC, prefixes=("claude-",)),
    ProviderProfile(LLMProvider.GOOGLE, prefixes=("gemini-",), accepts_base_url=False),
    ProviderProfile(LLMProvider.OLLAMA, prefixes=(OLLAMA_PREFIX,)),
)


def _wildcards() -> list[str]:
    return [f"{p[:-1]}/*" if p.endswith("/") else f"{p}*" for pr in PROVIDER_PROFILES for p in pr.prefixes]


class UnsupportedModelError(Exception):
    """Raised when no provider matches a model identifier.

    Attributes:
        model: The identifier that was rejected.
        supported_prefixes: Wildcard patterns quoted in the message.
    """

    def __init__(self, model: str, supported_prefixes: list[str] | None = None) -> None:
        self.model = model
        self.supported_prefixes = supported_prefixes or _wildcards()
        super().__init__(
            f"Unsupported model identifier: '{model}'. "
            f"Supported prefixes: {', '.join(self.supported_prefixes)}"
        )


def _is_reasoning_model(model: str) -> bool:
    return model in REASONING_MODEL_FAMILIES or any(
        model.startswith(f"{family}-") for family in REASONING_MODEL_FAMILIES
    )


@dataclass(frozen=True)
class LLMConfig:
    """Settings for the completion model of a run.

    Attributes:
        model: Model identifier, e.g. "gpt-4o" or "ollama/llama3.2".
        temperature: Sampling temperature. Dropped for reasoning models.
        seed: Provider seed, forwarded only where the provider accepts one.
            Structural choices in the engine never depend on it.
        base_url: API endpoint override.
        extra_kwargs: Passed through to the LangChain constructor.
    """

    model: str
    temperature: float = DEFAULT_TEMPERATURE
    seed: int | None = None
    base_url: str | None = None
    extra_kwargs: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.model:
            raise ValueError("Model identifier cannot be empty")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(
                f"Temperature must be between 0.0 and 2.0, got {self.temperature}"
            )


class LLMFactory:
    """Builds the chat model behind ``LangChainCompletionClient``."""

    @classmethod
    def profile_for(cls, model: str) -> ProviderProfile:
        """Profile whose exact names, then prefixes, match ``model``.

        Raises:
            UnsupportedModelError: If nothing matches.
        """
        lowered = (model or "").lower()
        if lowered:
            for profile in PROVIDER_PROFILES:
                if lowered in profile.exact_names:
                    return profile
            for profile in PROVIDER_PROFILES:
                if lowered.startswith(profile.prefixes):
                    return profile
        raise UnsupportedModelError(model)

    @classmethod
    def detect_provider(cls, model: str) -> LLMProvider:
        return cls.profile_for(model).provider

    @staticmethod
    def model_class(provider: LLMProvider) -> type[BaseChatModel]:
        """LangChain class for ``provider``, resolved from module globals per call."""
        classes: dict[LLMProvider, type[BaseChatModel]] = {
            LLMProvider.OPENAI: ChatOpenAI,
            LLMProvider.ANTHROPIC: ChatAnthropic,
            LLMProvider.GOOGLE: ChatGoogleGenerativeAI,
            LLMProvider.OLLAMA: ChatOllama,
        }
        return classes[provider]

    @classmethod
    def create(
        cls,
        model: str,
        temperature: float = DEFAULT_TEMPERATURE,
        seed: int | None = None,
        base_url: str | None = None,
        **extra_kwargs: Any,
    ) -> BaseChatModel:
        return cls.create_from_config(
            LLMConfig(
                model=model,
                temperature=temperature,
                seed=seed,
                base_url=base_url,
                extra_kwargs=extra_kwargs,
            )
        )

    @classmethod
    def from_generation_config(cls, config: GenerationConfig) -> BaseChatModel:
        """Chat model for a run, seeded with the run seed where supported."""
        return cls.create(
            config.completion_model,
            temperature=config.completion_temperature,
            seed=config.seed,
        )

    @classmethod
    def create_from_config(cls, config: LLMConfig) -> BaseChatModel:
        """Instantiate the provider's LangChain class with accepted settings.

        Raises:
            UnsupportedModelError: If the model identifier is not recognized.
        """
        profile = cls.profile_for(config.model)
        kwargs = cls.build_kwargs(profile, config)
        logger.debug(f"Creating {profile.provider.value} completion model: {kwargs['model']}")
        return cls.model_class(profile.provider)(**kwargs)

    @staticmethod
    def build_kwargs(profile: ProviderProfile, config: LLMConfig) -> dict[str, Any]:
        """Constructor arguments for ``config`` under ``profile``."""
        model = config.model
        if profile.provider == LLMProvider.OLLAMA and model.lower().startswith(OLLAMA_PREFIX):
            model = model[len(OLLAMA_PREFIX):]
        kwargs: dict[str, Any] = {"model": model, **config.extra_kwargs}

        if profile.provider == LLMProvider.OPENAI and _is_reasoning_model(config.model):
            if config.temperature != DEFAULT_TEMPERATURE:
                warnings.warn(
                    f"Model '{config.model}' is a reasoning model that does not "
                    f"support temperature; {config.temperature} will be ignored.",
                    UserWarning,
                    stacklevel=5,
                )
        else:
            kwargs["temperature"] = config.temperature

        if config.seed is not None:
            if profile.accepts_seed:
                kwargs["seed"] = config.seed
            else:
                logger.debug(f"Seed {config.seed} not forwarded to '{config.model}'")
        if config.base_url is not None:
            if profile.accepts_base_url:
                kwargs["base_url"] = config.base_url
            else:
                logger.debug(f"Base URL not forwarded to '{config.model}'")
        return kwargs

    @classmethod
    def get_supported_prefixes(cls) -> list[str]:
        return [prefix for profile in PROVIDER_PROFILES for prefix in profile.prefixes]
