"""Tests for run logging setup."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

from src.threadgen.core.logging_config import LOG_FORMAT, configure_logging


class TestConfigureLogging:
    """Tests for configure_logging()."""

    @patch("src.threadgen.core.logging_config.logging.basicConfig")
    def test_level_name_is_case_insensitive(self, mock_basic: MagicMock) -> None:
        configure_logging("debug")
        mock_basic.assert_called_once_with(level=logging.DEBUG, format=LOG_FORMAT)

    @patch("src.threadgen.core.logging_config.logging.basicConfig")
    def test_default_level(self, mock_basic: MagicMock) -> None:
        configure_logging()
        mock_basic.assert_called_once_with(level=logging.INFO, format=LOG_FORMAT)
