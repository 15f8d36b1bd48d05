"""Progress and lifecycle update models.

The orchestrator reports progress as frozen, self-contained update models so
that consumers can render them in any order without reading shared state.

Update Types:
    - GenerationStartedUpdate: A run has begun and its totals are planned
    - GenerationProgress: Snapshot of aggregate counters
    - EmailCompletedUpdate: One email slot committed (success or failure)
    - ThreadCompletedUpdate: One thread finished all stages
    - ErrorRecordedUpdate: An error was added to the run's error list
    - GenerationCompletedUpdate: A run has ended

Design Note:
    All update models include a ``message_type`` field with a fixed literal
    string value (prefixed with "update_") so serialized updates can be parsed
    back with ``parse_update``.

Example:
    >>> emitter = UpdateEmitter(sink=print)
    >>> emitter.error_recorded("Thread 'Budget' failed during save-eml: disk full")
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class GenerationUpdateType(str, Enum):
    """Types of generation updates.

    These correspond to the ``message_type`` values in update models.
    """

    GENERATION_STARTED = "update_generation_started"
    PROGRESS = "update_progress"
    EMAIL_COMPLETED = "update_email_completed"
    THREAD_COMPLETED = "update_thread_completed"
    ERROR_RECORDED = "update_error_recorded"
    GENERATION_COMPLETED = "update_generation_completed"


# =============================================================================
# Update Models
# =============================================================================


class GenerationStartedUpdate(BaseModel):
    """Update emitted once the run's totals are planned."""

    model_config = ConfigDict(frozen=True)

    message_type: Literal["update_generation_started"] = "update_generation_started"
    storyline_count: int = Field(..., ge=0, description="Storylines in the run")
    planned_threads: int = Field(..., ge=0, description="Threads planned")
    planned_emails: int = Field(..., ge=0, description="Emails planned")
    planned_attachments: int = Field(..., ge=0, description="Attachments planned")
    seed: int = Field(..., description="Run seed")


class GenerationProgress(BaseModel):
    """Snapshot of the run's aggregate counters.

    Snapshots are taken under the orchestrator's progress lock and delivered
    after it is released, so two snapshots may arrive out of order. Each one
    is complete on its own.

    Attributes:
        total_emails: Emails planned for the run.
        completed_emails: Email slots committed so far.
        total_attachments: Attachments planned for the run.
        completed_attachments: Attachments rendered so far.
        total_images: Images planned for the run.
        completed_images: Images rendered so far.
        current_storyline: Title of the storyline being generated.
        current_operation: Human-readable description of the last step.
    """

    model_config = ConfigDict(frozen=True)

    message_type: Literal["update_progress"] = "update_progress"
    total_emails: int = Field(default=0, ge=0)
    completed_emails: int = Field(default=0, ge=0)
    total_attachments: int = Field(default=0, ge=0)
    completed_attachments: int = Field(default=0, ge=0)
    total_images: int = Field(default=0, ge=0)
    completed_images: int = Field(default=0, ge=0)
    current_storyline: str = ""
    current_operation: str = ""

    @property
    def email_fraction(self) -> float:
        """Fraction of planned emails committed, in [0, 1]."""
        if self.total_emails == 0:
            return 0.0
        return min(1.0, self.completed_emails / self.total_emails)


class EmailCompletedUpdate(BaseModel):
    """Update emitted when an email slot commits."""

    model_config = ConfigDict(frozen=True)

    message_type: Literal["update_email_completed"] = "update_email_completed"
    thread_id: uuid.UUID = Field(..., description="Owning thread")
    email_id: uuid.UUID = Field(..., description="Committed email")
    subject: str = Field(..., description="Email subject")
    generation_failed: bool = Field(
        default=False, description="Whether the slot committed a failure email"
    )


class ThreadCompletedUpdate(BaseModel):
    """Update emitted when a thread finishes every stage."""

    model_config = ConfigDict(frozen=True)

    message_type: Literal["update_thread_completed"] = "update_thread_completed"
    thread_id: uuid.UUID = Field(..., description="Finished thread")
    subject: str = Field(..., description="Thread subject")
    succeeded: bool = Field(..., description="True if no email in it failed")
    failed_emails: int = Field(default=0, ge=0, description="Failed email count")


class ErrorRecordedUpdate(BaseModel):
    """Update emitted when an error is added to the run's error list."""

    model_config = ConfigDict(frozen=True)

    message_type: Literal["update_error_recorded"] = "update_error_recorded"
    message: str = Field(..., description="Error message as recorded")


class GenerationCompletedUpdate(BaseModel):
    """Update emitted when a run ends, including after cancellation."""

    model_config = ConfigDict(frozen=True)

    message_type: Literal["update_generation_completed"] = (
        "update_generation_completed"
    )
    succeeded_emails: int = Field(..., ge=0)
    failed_emails: int = Field(..., ge=0)
    succeeded_threads: int = Field(..., ge=0)
    failed_threads: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    was_cancelled: bool = False
    elapsed_seconds: float = Field(..., ge=0.0)


# =============================================================================
# Update Parsing
# =============================================================================

GenerationUpdate = Union[
    GenerationStartedUpdate,
    GenerationProgress,
    EmailCompletedUpdate,
    ThreadCompletedUpdate,
    ErrorRecordedUpdate,
    GenerationCompletedUpdate,
]

UPDATE_TYPE_REGISTRY: dict[str, type[BaseModel]] = {
    "update_generation_started": GenerationStartedUpdate,
    "update_progress": GenerationProgress,
    "update_email_completed": EmailCompletedUpdate,
    "update_thread_completed": ThreadCompletedUpdate,
    "update_error_recorded": ErrorRecordedUpdate,
    "update_generation_completed": GenerationCompletedUpdate,
}


def parse_update(data: dict[str, Any]) -> GenerationUpdate:
    """Parse a dictionary into the matching update model.

    Raises:
        ValueError: If ``message_type`` is missing or unrecognized.

    Example:
        >>> update = parse_update({"message_type": "update_error_recorded",
        ...                        "message": "boom"})
        >>> isinstance(update, ErrorRecordedUpdate)
        True
    """
    message_type = data.get("message_type")
    if message_type is None:
        raise ValueError("Update data must include 'message_type' field")

    model_class = UPDATE_TYPE_REGISTRY.get(message_type)
    if model_class is None:
        valid_types = ", ".join(sorted(UPDATE_TYPE_REGISTRY.keys()))
        raise ValueError(
            f"Unknown message_type '{message_type}'. Valid types: {valid_types}"
        )

    return model_class.model_validate(data)


# =============================================================================
# Update Emitter
# =============================================================================


UpdateSink = Callable[[GenerationUpdate], None]


class UpdateEmitter:
    """Builds update models and hands them to an optional sink.

    With no sink the emitter only builds and returns the models, which keeps
    call sites unconditional.

    Attributes:
        sink: Callable receiving every update, or None.
    """

    def __init__(self, sink: UpdateSink | None = None) -> None:
        self.sink = sink

    def emit(self, update: GenerationUpdate) -> GenerationUpdate:
        if self.sink is not None:
            self.sink(update)
        return update

    def generation_started(
        self,
        storyline_count: int,
        planned_threads: int,
        planned_emails: int,
        planned_attachments: int,
        seed: int,
    ) -> GenerationUpdate:
        return self.emit(
            GenerationStartedUpdate(
                storyline_count=storyline_count,
                planned_threads=planned_threads,
                planned_emails=planned_emails,
                planned_attachments=planned_attachments,
                seed=seed,
            )
        )

    def progress(self, snapshot: GenerationProgress) -> GenerationUpdate:
        return self.emit(snapshot)

    def email_completed(
        self,
        thread_id: uuid.UUID,
        email_id: uuid.UUID,
        subject: str,
        generation_failed: bool,
    ) -> GenerationUpdate:
        return self.emit(
            EmailCompletedUpdate(
                thread_id=thread_id,
                email_id=email_id,
                subject=subject,
                generation_failed=generation_failed,
            )
        )

    def thread_completed(
        self,
        thread_id: uuid.UUID,
        subject: str,
        succeeded: bool,
        failed_emails: int,
    ) -> GenerationUpdate:
        return self.emit(
            ThreadCompletedUpdate(
                thread_id=thread_id,
                subject=subject,
                succeeded=succeeded,
                failed_emails=failed_emails,
            )
        )

    def error_recorded(self, message: str) -> GenerationUpdate:
        return self.emit(ErrorRecordedUpdate(message=message))

    def generation_completed(
        self,
        succeeded_emails: int,
        failed_emails: int,
        succeeded_threads: int,
        failed_threads: int,
        error_count: int,
        was_cancelled: bool,
        elapsed_seconds: float,
    ) -> GenerationUpdate:
        return self.emit(
            GenerationCompletedUpdate(
                succeeded_emails=succeeded_emails,
                failed_emails=failed_emails,
                succeeded_threads=succeeded_threads,
                failed_threads=failed_threads,
                error_count=error_count,
                was_cancelled=was_cancelled,
                elapsed_seconds=elapsed_seconds,
            )
        )
