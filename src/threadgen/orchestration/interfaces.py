"""Capabilities the orchestrator depends on but does not implement.

The engine generates text and decides what to attach; turning a spec into
bytes and writing message files belongs to the host application. Each
capability is a ``typing.Protocol``, so any object with matching async
methods can be passed in.

Classes:
    MessageFileSink: Persists a finished thread.
    DocumentRenderer: Renders Word, Excel and PowerPoint documents.
    ImageRenderer: Renders images from a prompt.
    SpeechRenderer: Renders a voicemail script to audio.
    CalendarInviteRenderer: Renders an iCalendar invite.

Design Notes:
    Renderers return bytes or raise. An empty result is treated the same as
    a raised error: the thread's asset stage fails and the error is recorded
    at thread level. Renderers are not retried.
"""

from __future__ import annotations

from typing import Protocol

from src.threadgen.domain.models import EmailThread
from src.threadgen.orchestration.models import (
    CalendarInviteSpec,
    DocumentSpec,
    ImageSpec,
    VoicemailSpec,
)


class MessageFileSink(Protocol):
    """Writes every message of a thread to ``output_folder``.

    Called at most once per thread per run.
    """

    async def save_thread(self, thread: EmailThread, output_folder: str) -> None: ...


class DocumentRenderer(Protocol):
    async def render_document(self, spec: DocumentSpec) -> bytes: ...


class ImageRenderer(Protocol):
    async def render_image(self, spec: ImageSpec) -> bytes: ...


class SpeechRenderer(Protocol):
    async def render_speech(self, spec: VoicemailSpec) -> bytes: ...


class CalendarInviteRenderer(Protocol):
    async def render_invite(self, spec: CalendarInviteSpec) -> bytes: ...
