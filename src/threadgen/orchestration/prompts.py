"""Prompts used during the asset stage.

Meeting detection decides whether a committed email deserves a calendar
invite; the voicemail prompt writes a short spoken script for the speech
renderer. Both reuse the prompt scaffolding of the generation package.
"""

from __future__ import annotations

from src.threadgen.domain.models import EmailMessage
from src.threadgen.generation.prompts import (
    JSON_ONLY_INSTRUCTION,
    join_sections,
    json_schema_section,
)

MEETING_BODY_PREVIEW_CHARS = 800
DOCUMENT_BODY_PREVIEW_CHARS = 300

MEETING_DETECTION_SYSTEM_PROMPT = """You analyze emails to detect if they are scheduling or confirming a meeting/event that should have a calendar invite attached.

Look for:
- Specific dates and times mentioned ('tomorrow at 3pm', 'Friday at noon', 'next week Monday')
- Meeting requests or confirmations
- Event invitations
- Scheduled calls or gatherings

If there is no clear meeting date/time, set has_meeting to false.

""" + JSON_ONLY_INSTRUCTION

MEETING_DETECTION_SCHEMA = """{
  "has_meeting": boolean,
  "meeting_title": "string (title for the calendar invite)",
  "meeting_description": "string (brief description)",
  "location": "string (meeting location or 'Virtual' or 'TBD')",
  "suggested_date": "YYYY-MM-DD (the date of the meeting, based on context)",
  "suggested_start_time": "HH:MM (24-hour format)",
  "duration_minutes": number (30, 60, 90, 120, etc.)
}"""

MEETING_DETECTION_USER_PROMPT = """Email subject: {subject}
Email body: {body}
Email sent date: {sent_date}

Does this email mention a specific meeting, event, or call that should have a calendar invite?
If details are vague or missing, set has_meeting to false."""

VOICEMAIL_SYSTEM_PROMPT = """You are creating a voicemail message that relates to a fictional corporate email.
The voicemail should sound natural and conversational, as if someone called and left a message.
Keep the voicemail BRIEF - 15-30 seconds when spoken (about 40-80 words).
Do not use real company names or real people.

""" + JSON_ONLY_INSTRUCTION

VOICEMAIL_SCHEMA = """{
  "voicemail_script": "string (the voicemail transcript)"
}"""

VOICEMAIL_USER_PROMPT = """Email subject: {subject}
Sender: {sender_name}
Voicemail context: {context}
Narrative topic: {topic}

Create a voicemail that {first_name} might leave related to this email.
The voicemail should:
- Sound natural and conversational (include 'um', 'uh', pauses indicated by '...')
- Reference the email topic with appropriate urgency
- Start with a greeting ('Hey, it's [name]...' or 'Hi, this is [name] calling about...')
- End naturally ('...call me back when you get this' or 'talk soon')
- Be 40-80 words total
- Keep all names and organizations fictional"""

DEFAULT_VOICEMAIL_CONTEXT = "A follow-up or urgent message related to the email"
DEFAULT_DOCUMENT_PURPOSE = "Supporting document for this email"


def build_meeting_detection_prompt(email: EmailMessage) -> str:
    sent_date = email.sent_date.strftime("%Y-%m-%d") if email.sent_date else "unknown"
    return join_sections(
        MEETING_DETECTION_USER_PROMPT.format(
            subject=email.subject,
            body=email.body_plain[:MEETING_BODY_PREVIEW_CHARS],
            sent_date=sent_date,
        ),
        json_schema_section(MEETING_DETECTION_SCHEMA),
    )


def build_voicemail_prompt(email: EmailMessage, context: str | None, topic: str) -> str:
    sender = email.sender
    return join_sections(
        VOICEMAIL_USER_PROMPT.format(
            subject=email.subject,
            sender_name=sender.full_name if sender else "Unknown",
            context=context or DEFAULT_VOICEMAIL_CONTEXT,
            topic=topic,
            first_name=sender.first_name if sender else "The sender",
        ),
        json_schema_section(VOICEMAIL_SCHEMA),
    )


def build_image_prompt(topic: str, description: str) -> str:
    """Prompt for the image renderer.

    Example:
        >>> build_image_prompt("Vendor audit", "a whiteboard of invoice totals")
        'A vivid, realistic image in the style/universe of Vendor audit: a whiteboard of invoice totals. High quality, detailed.'
    """
    return (
        f"A vivid, realistic image in the style/universe of {topic}: "
        f"{description}. High quality, detailed."
    )


def build_document_context(email: EmailMessage, purpose: str | None) -> str:
    return (
        f"Email subject: {email.subject}\n"
        f"Document purpose (from email): {purpose or DEFAULT_DOCUMENT_PURPOSE}\n"
        f"Email body preview: {email.body_plain[:DOCUMENT_BODY_PREVIEW_CHARS]}..."
    )
