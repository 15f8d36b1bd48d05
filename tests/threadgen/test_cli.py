"""Tests for the command-line entry point.

Tests cover:
- Logging configured from the parsed log level
- Exit codes for bad input, clean runs and runs with errors
- Orchestrator wiring: completion model, EML sink and config
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import TypeAdapter

from src.threadgen.cli import (
    EXIT_BAD_INPUT,
    EXIT_OK,
    EXIT_RUN_ERRORS,
    build_orchestrator,
    main,
)
from src.threadgen.core.completion import LangChainCompletionClient
from src.threadgen.core.config import GenerationConfig
from src.threadgen.domain.models import Storyline
from src.threadgen.orchestration.eml_sink import EmlFileSink
from src.threadgen.orchestration.models import GenerationResult


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def storylines_path(tmp_path: Path, make_storyline) -> Path:
    path = tmp_path / "storylines.json"
    path.write_bytes(TypeAdapter(list[Storyline]).dump_json([make_storyline()]))
    return path


def make_orchestrator(result: GenerationResult) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.generate = AsyncMock(return_value=result)
    return orchestrator


# =============================================================================
# Tests
# =============================================================================


class TestMain:
    """Tests for main()."""

    @patch("src.threadgen.cli.build_orchestrator")
    @patch("src.threadgen.cli.configure_logging")
    def test_clean_run(
        self, mock_logging: MagicMock, mock_build: MagicMock, storylines_path: Path
    ) -> None:
        orchestrator = make_orchestrator(GenerationResult(output_folder="out"))
        mock_build.return_value = orchestrator

        code = main(
            ["--storylines-file", str(storylines_path), "--log-level", "DEBUG", "--seed", "7"]
        )

        assert code == EXIT_OK
        mock_logging.assert_called_once_with("DEBUG")
        config = mock_build.call_args.args[0]
        assert config.seed == 7
        storylines = orchestrator.generate.await_args.args[0]
        assert len(storylines) == 1
        assert storylines[0].title == "The Vendor Audit"

    @patch("src.threadgen.cli.build_orchestrator")
    @patch("src.threadgen.cli.configure_logging")
    def test_run_with_errors(
        self, mock_logging: MagicMock, mock_build: MagicMock, storylines_path: Path
    ) -> None:
        mock_build.return_value = make_orchestrator(
            GenerationResult(errors=["Thread 'x' failed during save-eml: disk full"])
        )

        assert main(["--storylines-file", str(storylines_path)]) == EXIT_RUN_ERRORS

    @patch("src.threadgen.cli.build_orchestrator")
    @patch("src.threadgen.cli.configure_logging")
    def test_missing_storylines_file(
        self, mock_logging: MagicMock, mock_build: MagicMock, tmp_path: Path
    ) -> None:
        code = main(["--storylines-file", str(tmp_path / "absent.json")])

        assert code == EXIT_BAD_INPUT
        mock_logging.assert_called_once_with("INFO")
        mock_build.assert_not_called()

    @patch("src.threadgen.cli.build_orchestrator")
    @patch("src.threadgen.cli.configure_logging")
    def test_invalid_storylines_file(
        self, mock_logging: MagicMock, mock_build: MagicMock, tmp_path: Path
    ) -> None:
        path = tmp_path / "bad.json"
        path.write_text('{"storylines": 3}')

        assert main(["--storylines-file", str(path)]) == EXIT_BAD_INPUT
        mock_build.assert_not_called()


class TestBuildOrchestrator:
    """Tests for build_orchestrator()."""

    @patch("src.threadgen.cli.LLMFactory")
    def test_wiring(self, mock_factory: MagicMock) -> None:
        config = GenerationConfig(organize_by_sender=True, completion_model="claude-3-5-sonnet")

        orchestrator = build_orchestrator(config)

        mock_factory.from_generation_config.assert_called_once_with(config)
        assert isinstance(orchestrator.completion, LangChainCompletionClient)
        assert orchestrator.completion.llm is mock_factory.from_generation_config.return_value
        assert isinstance(orchestrator.sink, EmlFileSink)
        assert orchestrator.sink.organize_by_sender is True
        assert orchestrator.config is config
        assert orchestrator.selector.catalog.archetypes
