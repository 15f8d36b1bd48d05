"""Generation run configuration.

This module provides the Pydantic-settings model that controls a generation
run: the run seed and date window, attachment percentages and toggles,
parallelism, the repair budget, and the completion model.

Configuration Sources (in order of precedence, highest first):
    1. Explicit constructor arguments
    2. CLI arguments (via from_cli_args)
    3. Environment variables (automatic via pydantic-settings)
    4. Default values

Environment Variables:
    Variables are prefixed with "THREADGEN_" and named after the fields in
    SCREAMING_SNAKE_CASE.

    Examples:
        THREADGEN_SEED=1234
        THREADGEN_ATTACHMENT_PERCENTAGE=35
        THREADGEN_PARALLEL_THREADS=4
        THREADGEN_INCLUDE_IMAGES=true

Example:
    >>> config = GenerationConfig.from_cli_args(["--parallel-threads", "3"])
    >>> config.parallel_threads
    3
    >>> config.enabled_attachment_types
    [<AttachmentType.WORD: 'word'>, <AttachmentType.EXCEL: 'excel'>, <AttachmentType.POWERPOINT: 'powerpoint'>]
"""

from __future__ import annotations

import argparse
from datetime import datetime
from typing import Any, Literal, Self, Sequence

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.threadgen.domain.models import AttachmentType


# =============================================================================
# Generation Configuration
# =============================================================================


class GenerationConfig(BaseSettings):
    """Configuration for a single email generation run.

    Attributes:
        seed: Run seed mixed into every per-thread random generator.
        start_date: Start of the overall date window (informational; beats
            carry their own windows).
        end_date: End of the overall date window.
        attachment_percentage: Percentage of emails carrying a document.
        include_word: Whether Word documents may be planned.
        include_excel: Whether Excel workbooks may be planned.
        include_powerpoint: Whether PowerPoint decks may be planned.
        include_images: Whether images may be planned.
        image_percentage: Percentage of emails carrying an image.
        include_calendar_invites: Whether meeting detection runs per thread.
        calendar_invite_percentage: Percentage of emails checked for meetings.
        enable_attachment_chains: Whether documents may be versioned across
            threads.
        include_voicemails: Whether voicemails may be planned.
        voicemail_percentage: Percentage of emails carrying a voicemail.
        parallel_threads: Maximum number of threads generated concurrently.
        max_email_repair_attempts: Repair requests allowed after the first
            draft of each email.
        storylines_file: JSON file the command line reads storylines from.
        output_folder: Folder handed to the message-file sink.
        organize_by_sender: Whether the sink groups files by sender.
        completion_model: Model identifier passed to the LLM factory.
        completion_temperature: Sampling temperature for completion requests.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_prefix="THREADGEN_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    seed: int = Field(
        default=0,
        ge=0,
        description="Run seed mixed into every per-thread random generator",
    )
    start_date: datetime | None = Field(
        default=None,
        description="Start of the overall date window",
    )
    end_date: datetime | None = Field(
        default=None,
        description="End of the overall date window",
    )
    attachment_percentage: int = Field(
        default=20,
        ge=0,
        le=100,
        description="Percentage of emails carrying a document attachment",
    )
    include_word: bool = Field(default=True, description="Plan Word documents")
    include_excel: bool = Field(default=True, description="Plan Excel workbooks")
    include_powerpoint: bool = Field(
        default=True, description="Plan PowerPoint decks"
    )
    include_images: bool = Field(default=False, description="Plan images")
    image_percentage: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Percentage of emails carrying an image",
    )
    include_calendar_invites: bool = Field(
        default=True,
        description="Detect meetings and attach calendar invites",
    )
    calendar_invite_percentage: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Percentage of emails checked for meetings",
    )
    enable_attachment_chains: bool = Field(
        default=True,
        description="Version documents across threads",
    )
    include_voicemails: bool = Field(default=False, description="Plan voicemails")
    voicemail_percentage: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Percentage of emails carrying a voicemail",
    )
    parallel_threads: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Maximum number of threads generated concurrently",
    )
    max_email_repair_attempts: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Repair requests allowed after the first draft",
    )
    storylines_file: str = Field(
        default="storylines.json",
        description="JSON file of storylines read by the command line",
    )
    output_folder: str = Field(
        default="output",
        description="Folder handed to the message-file sink",
    )
    organize_by_sender: bool = Field(
        default=False,
        description="Group saved message files by sender",
    )
    completion_model: str = Field(
        default="gpt-4o",
        description="LLM model used for email, subject and meeting requests",
    )
    completion_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for completion requests",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @model_validator(mode="after")
    def check_date_window(self) -> Self:
        """Reject a window whose end precedes its start."""
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.end_date < self.start_date
        ):
            raise ValueError("end_date must not be earlier than start_date")
        return self

    @property
    def enabled_attachment_types(self) -> list[AttachmentType]:
        """Document types that may be planned, in a stable order."""
        types: list[AttachmentType] = []
        if self.include_word:
            types.append(AttachmentType.WORD)
        if self.include_excel:
            types.append(AttachmentType.EXCEL)
        if self.include_powerpoint:
            types.append(AttachmentType.POWERPOINT)
        return types

    @classmethod
    def from_cli_args(
        cls,
        args: Sequence[str] | None = None,
        **overrides: Any,
    ) -> Self:
        """Create configuration from CLI arguments.

        Parses command-line arguments and combines them with environment
        variables and defaults. Explicit overrides take highest precedence.

        Args:
            args: Command-line arguments to parse. If None, uses sys.argv[1:].
            **overrides: Keyword arguments that override all other sources.

        Returns:
            A new configuration instance.
        """
        parser = cls._create_argument_parser()
        parsed, _ = parser.parse_known_args(args)
        cli_values = {k: v for k, v in vars(parsed).items() if v is not None}
        return cls(**{**cli_values, **overrides})

    @classmethod
    def _create_argument_parser(cls) -> argparse.ArgumentParser:
        """Create the argument parser for generation runs."""
        parser = argparse.ArgumentParser(
            description="Email thread generation",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        )
        parser.add_argument("--seed", type=int, default=None, help="Run seed")
        for name, help_text in (
            ("attachment-percentage", "Percentage of emails with a document"),
            ("image-percentage", "Percentage of emails with an image"),
            ("voicemail-percentage", "Percentage of emails with a voicemail"),
            ("calendar-invite-percentage", "Percentage of emails checked for meetings"),
            ("parallel-threads", "Threads generated concurrently"),
            ("max-email-repair-attempts", "Repair requests per email"),
        ):
            parser.add_argument(
                f"--{name}",
                type=int,
                default=None,
                dest=name.replace("-", "_"),
                help=help_text,
            )
        for name, help_text in (
            ("word", "Word documents"),
            ("excel", "Excel workbooks"),
            ("powerpoint", "PowerPoint decks"),
            ("images", "images"),
            ("voicemails", "voicemails"),
            ("calendar-invites", "calendar invites"),
        ):
            dest = f"include_{name.replace('-', '_')}"
            parser.add_argument(
                f"--include-{name}",
                action="store_true",
                default=None,
                dest=dest,
                help=f"Plan {help_text}",
            )
            parser.add_argument(
                f"--no-{name}",
                action="store_false",
                dest=dest,
                help=f"Do not plan {help_text}",
            )
        parser.add_argument(
            "--attachment-chains",
            action="store_true",
            default=None,
            dest="enable_attachment_chains",
            help="Version documents across threads",
        )
        parser.add_argument(
            "--no-attachment-chains",
            action="store_false",
            dest="enable_attachment_chains",
            help="Keep every document independent",
        )
        parser.add_argument(
            "--storylines-file",
            type=str,
            default=None,
            dest="storylines_file",
            help="JSON file of storylines to generate",
        )
        parser.add_argument(
            "--output-folder",
            type=str,
            default=None,
            dest="output_folder",
            help="Folder for saved message files",
        )
        parser.add_argument(
            "--organize-by-sender",
            action="store_true",
            default=None,
            dest="organize_by_sender",
            help="Group saved message files by sender",
        )
        parser.add_argument(
            "--model",
            type=str,
            default=None,
            dest="completion_model",
            help="LLM model for completion requests",
        )
        parser.add_argument(
            "--temperature",
            type=float,
            default=None,
            dest="completion_temperature",
            help="LLM temperature (0.0-2.0)",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            default=None,
            dest="log_level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Logging level",
        )
        return parser


# =============================================================================
# Configuration Utilities
# =============================================================================


def merge_configs(
    base: GenerationConfig,
    overrides: dict[str, Any],
) -> GenerationConfig:
    """Create a new configuration with overrides applied.

    The base configuration is not modified.

    Example:
        >>> base = GenerationConfig(parallel_threads=1)
        >>> merge_configs(base, {"parallel_threads": 4}).parallel_threads
        4
    """
    merged = {**base.model_dump(), **overrides}
    return type(base)(**merged)


def validate_config(config: GenerationConfig) -> list[str]:
    """Validate a configuration and return any warnings.

    Checks for settings that are legal but will likely produce a thin or
    surprising dataset.

    Args:
        config: The configuration to validate.

    Returns:
        A list of warning messages. Empty if no issues found.
    """
    warnings: list[str] = []

    if config.attachment_percentage > 0 and not config.enabled_attachment_types:
        warnings.append(
            f"attachment_percentage={config.attachment_percentage} has no effect "
            "because no document types are enabled"
        )
    if config.include_images and config.image_percentage == 0:
        warnings.append("Images are enabled but image_percentage is 0")
    if config.include_voicemails and config.voicemail_percentage == 0:
        warnings.append("Voicemails are enabled but voicemail_percentage is 0")
    if config.parallel_threads > 8:
        warnings.append(
            f"parallel_threads={config.parallel_threads} is high and may hit "
            "provider rate limits"
        )
    if config.max_email_repair_attempts == 0:
        warnings.append(
            "max_email_repair_attempts=0 disables repair; any invalid draft "
            "becomes a failed email"
        )
    if config.completion_temperature > 1.5:
        warnings.append(
            f"Temperature {config.completion_temperature} is quite high and may "
            "produce drafts that fail validation"
        )

    return warnings
