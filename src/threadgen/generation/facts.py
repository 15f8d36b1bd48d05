"""Rolling fact table for one thread.

After each committed email the table records who wrote to whom, whether the
body mentions a decision or a concern, and any questions it asks. The summary
is fed into the next slot's prompt so later emails stay consistent with
earlier ones without resending the whole thread.

The keyword checks are lexical approximations; they do not understand the
text.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from src.threadgen.domain.models import Character, EmailMessage
from src.threadgen.generation.subjects import clean_subject

MAX_EVENTS = 20
MAX_DECISIONS = 10
MAX_CONFLICTS = 10
MAX_OPEN_QUESTIONS = 5
QUESTIONS_PER_EMAIL = 2

_DECISION_KEYWORDS = ("approved", "decision")
_CONFLICT_KEYWORDS = ("concern", "problem", "issue", "disagree")


def _append_bounded(items: list[str], value: str, limit: int) -> None:
    items.append(value)
    if len(items) > limit:
        del items[: len(items) - limit]


@dataclass
class ThreadFactTable:
    """Events, decisions, conflicts and open questions of a thread."""

    participants: set[str] = field(default_factory=set)
    events: list[str] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    open_questions: list[str] = field(default_factory=list)

    @classmethod
    def for_participants(cls, participants: list[Character] | tuple[Character, ...]) -> ThreadFactTable:
        return cls(participants={p.email.casefold() for p in participants})

    def record(self, email: EmailMessage, own_text: str | None = None) -> None:
        """Add the facts of a committed email.

        Args:
            email: The committed email.
            own_text: The sender's own text, without quoted or forwarded
                parent content. Defaults to ``email.body_plain``.
        """
        if email.sender is None:
            return
        subject = clean_subject(email.subject)
        first = email.sender.first_name
        recipients = ", ".join(c.first_name for c in email.to) or "recipients"
        _append_bounded(
            self.events, f"{first} emailed {recipients} about {subject}.", MAX_EVENTS
        )

        body = (email.body_plain if own_text is None else own_text) or ""
        lowered = body.lower()
        if any(keyword in lowered for keyword in _DECISION_KEYWORDS):
            _append_bounded(
                self.decisions,
                f"{first} referenced a decision in '{subject}'.",
                MAX_DECISIONS,
            )
        if any(keyword in lowered for keyword in _CONFLICT_KEYWORDS):
            _append_bounded(
                self.conflicts,
                f"{first} flagged a concern in '{subject}'.",
                MAX_CONFLICTS,
            )

        questions = [
            line.strip()
            for line in body.split("\n")
            if "?" in line and len(line.strip()) > 3
        ][:QUESTIONS_PER_EMAIL]
        for question in questions:
            if len(self.open_questions) >= MAX_OPEN_QUESTIONS:
                break
            self.open_questions.append(question)

        for character in (email.sender, *email.to, *email.cc):
            self.participants.add(character.email.casefold())

    def summary(self) -> str:
        """Prompt-ready summary of the most recent facts."""
        lines: list[str] = []
        for title, items, count in (
            ("Recent events:", self.events, 3),
            ("Decisions:", self.decisions, 2),
            ("Conflicts:", self.conflicts, 2),
            ("Open questions:", self.open_questions, 2),
        ):
            if items:
                lines.append(title)
                lines.extend(f"  - {item}" for item in items[-count:])
        return "\n".join(lines) if lines else "No prior facts recorded."
