"""Tests for the chat model factory.

Tests cover:
- LLMConfig validation
- Provider detection from model identifiers
- Provider-specific construction (OpenAI, Anthropic, Google, Ollama)
- Temperature warning for reasoning models
- Construction from a GenerationConfig
"""

from __future__ import annotations

import warnings
from unittest.mock import MagicMock, patch

import pytest

from src.threadgen.core.config import GenerationConfig
from src.threadgen.core.llm_config import (
    LLMConfig,
    LLMFactory,
    LLMProvider,
    UnsupportedModelError,
    _is_reasoning_model,
)


class TestLLMConfig:
    """Tests for the LLMConfig dataclass."""

    def test_defaults(self) -> None:
        config = LLMConfig(model="gpt-4o")
        assert config.temperature == 0.7
        assert config.seed is None
        assert config.base_url is None
        assert config.extra_kwargs == {}

    def test_empty_model_rejected(self) -> None:
        with pytest.raises(ValueError, match="cannot be empty"):
            LLMConfig(model="")

    @pytest.mark.parametrize("temperature", [-0.1, 2.5])
    def test_temperature_out_of_range(self, temperature: float) -> None:
        with pytest.raises(ValueError, match="Temperature"):
            LLMConfig(model="gpt-4o", temperature=temperature)


class TestDetectProvider:
    """Tests for LLMFactory.detect_provider()."""

    @pytest.mark.parametrize(
        ("model", "expected"),
        [
            ("gpt-4o", LLMProvider.OPENAI),
            ("o1", LLMProvider.OPENAI),
            ("o3-mini", LLMProvider.OPENAI),
            ("chatgpt-4o-latest", LLMProvider.OPENAI),
            ("claude-3-5-sonnet", LLMProvider.ANTHROPIC),
            ("gemini-1.5-pro", LLMProvider.GOOGLE),
            ("ollama/llama3.2", LLMProvider.OLLAMA),
            ("GPT-4O", LLMProvider.OPENAI),
        ],
    )
    def test_detect_provider(self, model: str, expected: LLMProvider) -> None:
        assert LLMFactory.detect_provider(model) == expected

    def test_unknown_model(self) -> None:
        with pytest.raises(UnsupportedModelError) as exc_info:
            LLMFactory.detect_provider("mystery-model")
        assert exc_info.value.model == "mystery-model"
        assert "gpt-*" in str(exc_info.value)

    def test_empty_model(self) -> None:
        with pytest.raises(UnsupportedModelError):
            LLMFactory.detect_provider("")


class TestIsReasoningModel:
    """Tests for the reasoning model check."""

    @pytest.mark.parametrize("model", ["o1", "o3-mini", "o1-2024-12-17"])
    def test_reasoning(self, model: str) -> None:
        assert _is_reasoning_model(model) is True

    @pytest.mark.parametrize("model", ["gpt-4o", "o2-mini", "foo-o1-bar"])
    def test_not_reasoning(self, model: str) -> None:
        assert _is_reasoning_model(model) is False


class TestFactoryCreate:
    """Tests for provider-specific construction."""

    @patch("src.threadgen.core.llm_config.ChatOpenAI")
    def test_openai(self, mock_openai: MagicMock) -> None:
        result = LLMFactory.create("gpt-4o", temperature=0.3, seed=9)

        mock_openai.assert_called_once_with(model="gpt-4o", temperature=0.3, seed=9)
        assert result is mock_openai.return_value

    @patch("src.threadgen.core.llm_config.ChatOpenAI")
    def test_reasoning_model_drops_temperature(self, mock_openai: MagicMock) -> None:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            LLMFactory.create("o1-mini", temperature=0.2)

        mock_openai.assert_called_once_with(model="o1-mini")
        assert any("does not support temperature" in str(w.message) for w in caught)

    @patch("src.threadgen.core.llm_config.ChatAnthropic")
    def test_anthropic_ignores_seed(self, mock_anthropic: MagicMock) -> None:
        LLMFactory.create("claude-3-opus", seed=5, base_url="https://proxy")

        mock_anthropic.assert_called_once_with(
            model="claude-3-opus", temperature=0.7, base_url="https://proxy"
        )

    @patch("src.threadgen.core.llm_config.ChatGoogleGenerativeAI")
    def test_google(self, mock_google: MagicMock) -> None:
        LLMFactory.create("gemini-1.5-flash", temperature=0.1)

        mock_google.assert_called_once_with(model="gemini-1.5-flash", temperature=0.1)

    @patch("src.threadgen.core.llm_config.ChatOllama")
    def test_ollama_strips_prefix(self, mock_ollama: MagicMock) -> None:
        LLMFactory.create("ollama/llama3.2")

        mock_ollama.assert_called_once_with(model="llama3.2", temperature=0.7)

    @patch("src.threadgen.core.llm_config.ChatOpenAI")
    def test_from_generation_config(self, mock_openai: MagicMock) -> None:
        config = GenerationConfig(
            completion_model="gpt-4o-mini", completion_temperature=0.4, seed=77
        )

        LLMFactory.from_generation_config(config)

        mock_openai.assert_called_once_with(
            model="gpt-4o-mini", temperature=0.4, seed=77
        )

    @pytest.mark.parametrize(
        ("class_name", "provider"),
        [
            ("ChatOpenAI", LLMProvider.OPENAI),
            ("ChatAnthropic", LLMProvider.ANTHROPIC),
            ("ChatGoogleGenerativeAI", LLMProvider.GOOGLE),
            ("ChatOllama", LLMProvider.OLLAMA),
        ],
    )
    def test_model_class_follows_patched_module_name(
        self, class_name: str, provider: LLMProvider
    ) -> None:
        with patch(f"src.threadgen.core.llm_config.{class_name}") as mock_class:
            assert LLMFactory.model_class(provider) is mock_class

    def test_supported_prefixes(self) -> None:
        prefixes = LLMFactory.get_supported_prefixes()
        assert "claude-" in prefixes
        assert "ollama/" in prefixes
