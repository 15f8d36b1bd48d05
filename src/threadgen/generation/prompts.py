"""Prompt templates and builders for email generation.

Templates are string constants formatted with context-specific values; the
builder functions assemble the context sections (addressing, history, facts,
attachment instructions) that the templates reference.

Template Categories:
    - System prompts: Email body and subject generation roles
    - Subject prompts: Responsive and non-responsive thread subjects
    - Body prompts: First draft for responsive and non-responsive slots
    - Repair prompt: Fix a draft that failed validation
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from src.threadgen.domain.models import Character, EmailMessage, Storyline
from src.threadgen.generation.facts import ThreadFactTable
from src.threadgen.generation.models import (
    AttachmentPlanDetails,
    AttachmentRequirement,
    NonResponsiveArchetypeSelection,
    ResolvedParticipants,
)
from src.threadgen.planning.models import ThreadEmailIntent, ThreadEmailSlotPlan, ThreadPlan
from src.threadgen.topics.schema import TopicArchetype

JSON_ONLY_INSTRUCTION = (
    "Return ONLY valid JSON. No markdown, no commentary, no extra keys, no "
    "trailing commas. Use double quotes for all JSON strings and property names."
)

HISTORY_CHAR_LIMIT = 3500
HISTORY_PREVIEW_CHARS = 120
PARENT_PREVIEW_CHARS = 160

NON_RESPONSIVE_TOPIC_HINTS = (
    "meeting scheduling or rescheduling",
    "budget approvals or expense reports",
    "vendor onboarding or procurement updates",
    "routine project status updates",
    "IT support tickets or access requests",
    "HR training or policy reminders",
    "facilities or office logistics",
    "travel planning or reimbursement",
    "invoice questions or billing clarifications",
    "internal documentation clean-up",
)


# =============================================================================
# System Prompts
# =============================================================================

EMAIL_SYSTEM_PROMPT = """You are generating realistic corporate email BODY content for a fictional eDiscovery dataset.
These should read like authentic workplace communications between the provided characters.

CORE RULES (NON-NEGOTIABLE)
- Entirely fictional: do NOT use real company names, real people, real domains, or identifiable real-world incidents.
- Use only the provided characters and their organizations/domains.
- Workplace realism: allow minor typos, shorthand (FYI/pls), and imperfect memory.
- No explicit sexual content, graphic violence, hate/harassment/slurs, or self-harm. Keep HR/retaliation professional and non-explicit.

EMOTIONAL AUTHENTICITY:
- People in conflict should show it (passive-aggressive, curt, defensive, frustrated).
- Allies share context and vent; rivals clash.
- Keep it workplace-appropriate, not abusive.

COMMUNICATION STYLE:
1. Vary email length with the character's communication style (short replies, longer explanations, occasional rants).
2. Use realistic formatting (bullets, numbered lists, action items, emphasis with *asterisks*).
3. Match tone to role, relationship, and communication style.
4. Use each character's personality notes to shape their voice.

ATTACHMENTS - INTEGRATE NATURALLY INTO EMAIL CONTENT:
When the user prompt says an email has an attachment, the body MUST reference it naturally:
- Documents: "Attached is the Q2 forecast" or "See the attached spreadsheet for..."
- Images: "Attached photo from the site walk" or "Screenshot of the error dialog"
- Voicemails: "I left you a voicemail about..."
- INLINE images: mention what is shown in the body copy

TECHNICAL RULES:
1. Each email must logically follow the previous one.
2. Reference previous emails naturally in replies (the system adds quoted text).
3. ALWAYS include the sender's signature block at the end of each email body.
4. Signature blocks must be used EXACTLY as provided.
5. DO NOT include quoted previous emails in body_plain.
6. DO NOT include any header lines (Subject/To/From/Cc) in body_plain.
7. The sender named in the prompt is the author; the greeting, body text, and signature MUST all match that person.

THREAD STRUCTURE:
- The parent email and threading intent are provided in the user prompt. Follow them exactly.
- Do NOT invent new branching or change the parent relationship.

OUTPUT:
- Return JSON only, matching the schema provided in the user prompt (body_plain only).

""" + JSON_ONLY_INSTRUCTION

SUBJECT_SYSTEM_PROMPT = """You are generating a realistic corporate email SUBJECT line for a fictional eDiscovery dataset.

OUTPUT:
- Return JSON only, matching the schema provided in the user prompt.

""" + JSON_ONLY_INSTRUCTION


# =============================================================================
# Schemas and Rules
# =============================================================================

SINGLE_EMAIL_SCHEMA = """{
  "body_plain": "string (full email body including greeting and signature)"
}"""

EMAIL_SUBJECT_SCHEMA = """{
  "subject": "string (concise, realistic email subject line)"
}"""

NON_RESPONSIVE_SUBJECT_SCHEMA = """{
  "subject": "string (4-12 words)",
  "entity_values": {
    "entity_name": "string value"
  }
}"""

BODY_FORMATTING_RULES = """- Use the fixed From/To/Cc values exactly as provided
{threading_rule}
- Do NOT include any header lines (Subject/To/From/Cc) in body_plain
- DO NOT include quoted previous emails in body_plain
- The signature MUST match the From address"""

_THREADING_RULES = {
    ThreadEmailIntent.NEW: "- This is the first email (no reply/forward).",
    ThreadEmailIntent.FORWARD: "- This email MUST be a forward to the parent email.",
    ThreadEmailIntent.REPLY: "- This email MUST be a reply to the parent email.",
}


# =============================================================================
# Subject Prompts
# =============================================================================

RESPONSIVE_SUBJECT_GUIDANCE = """Guidance:
- Generate a realistic subject for the FIRST email in this thread (no Re:/Fwd:).
- Use the responsive topic plus some context from the current story beat and participants.
- It is OK if the subject is only loosely related to the topic or storyline.
- Avoid story-like or dramatic phrasing; it should read like a normal workplace email.
- Keep it concise (roughly 3-10 words)."""

THREAD_SUBJECT_USER_PROMPT = """Thread type: RESPONSIVE (related to the storyline).
Audience: {audience}
Topic: {topic}

Storyline: {storyline_title}
Summary: {storyline_summary}
{beat_context}

Participants:
{participant_summary}

Available Characters:
{available_characters}

{guidance}"""


# =============================================================================
# Body Prompts
# =============================================================================

SINGLE_EMAIL_USER_PROMPT = """{storyline_header}

Subject: {subject}
{addressing}
{sender_profile}

NARRATIVE PHASE: {narrative_label}

Available Characters:
{available_characters}

Date Range: {start_date} to {end_date}
Planned Sent Time: {sent_time}

{story_context}

{parent_context}

{history}

FACT SUMMARY:
{facts}

CONTENT REQUIREMENTS:
- Keep tone workplace-appropriate.

{attachment_instructions}"""

EMAIL_REPAIR_USER_PROMPT = """You MUST fix the following issues in the prior draft (do not rewrite the whole thread):
{error_list}

Subject: {subject}
{addressing}
{sender_profile}

Available Characters:
{available_characters}

{parent_context}

Planned Sent Time: {sent_time}

Attachment Requirements:
{attachment_instructions}

BODY FORMAT RULES:
{body_rules}

Previous Draft (for reference):
{previous_draft}"""

REPAIR_CLOSING = "Return a corrected JSON response following the schema."

ALIGNMENT_REQUIREMENT = (
    "The body MUST align with the provided subject and use all required entity values."
)


# =============================================================================
# Scaffolding
# =============================================================================


def section(title: str, content: str | None) -> str:
    """A titled prompt section; empty content yields an empty section."""
    if not content or not content.strip():
        return ""
    if not title.strip():
        return content.rstrip()
    return f"{title.rstrip()}\n{content.rstrip()}"


def json_schema_section(schema: str) -> str:
    return section("OUTPUT JSON SCHEMA (EXACT)", schema)


def join_sections(*sections: str) -> str:
    return "\n\n".join(s.rstrip() for s in sections if s and s.strip())


@dataclass(frozen=True)
class SlotPromptContext:
    """Everything a body or repair prompt needs for one slot.

    Attributes:
        plan: Thread plan being executed.
        slot: Slot being drafted.
        parent: Committed parent email, if any.
        requirement: Attachments the body must reference.
        details: Human-readable attachment descriptions.
        participants: Resolved addressing.
        subject: Current thread subject.
        topic: Current thread topic; may be empty for non-responsive threads.
    """

    plan: ThreadPlan
    slot: ThreadEmailSlotPlan
    parent: EmailMessage | None
    requirement: AttachmentRequirement
    details: AttachmentPlanDetails
    participants: ResolvedParticipants
    subject: str
    topic: str

    @property
    def is_responsive(self) -> bool:
        return self.plan.thread.is_responsive


# =============================================================================
# Section Builders
# =============================================================================


def _address(character: Character) -> str:
    return f"{character.full_name} <{character.email}>"


def _preview(text: str | None, limit: int) -> str:
    value = text or ""
    if len(value) > limit:
        value = value[:limit] + "..."
    return value.replace("\n", " ").strip()


def build_body_formatting_rules(intent: ThreadEmailIntent) -> str:
    return BODY_FORMATTING_RULES.format(threading_rule=_THREADING_RULES[intent])


def build_addressing_section(participants: ResolvedParticipants) -> str:
    to_list = ", ".join(_address(p) for p in participants.to)
    cc_list = ", ".join(_address(p) for p in participants.cc) if participants.cc else "None"
    return f"From: {_address(participants.sender)}\nTo: {to_list}\nCc: {cc_list}"


def build_role_line(character: Character, storyline: Storyline) -> str:
    organization = storyline.organization_for(character)
    if not character.role and not character.department and organization is None:
        return "Role: Unknown"
    org_name = organization.name if organization is not None else "Unknown"
    return (
        f"Role: {character.role or 'Unknown'}, "
        f"{character.department or 'Unknown'} @ {org_name}"
    )


def build_participant_list(participants: Sequence[Character], storyline: Storyline) -> str:
    """Participant listing shown as the available characters."""
    return "\n\n".join(
        f"- {c.full_name} ({c.email})\n  {build_role_line(c, storyline)}" for c in participants
    )


def build_sender_profile(sender: Character, storyline: Storyline) -> str:
    signature = "\n".join(
        f"  {line}" for line in sender.signature_block.strip().splitlines()
    ) or "  (none)"
    return (
        "SENDER PROFILE:\n"
        f'This email is being written by "{sender.full_name}" with the '
        f'personality "{sender.personality}".\n'
        f"{build_role_line(sender, storyline)}\n"
        f"Email: {sender.email}\n"
        f"Signature:\n{signature}"
    )


def build_participant_descriptor(character: Character, storyline: Storyline) -> str:
    organization = storyline.organization_for(character)
    org_name = organization.name if organization is not None else "Unknown"
    industry = organization.industry if organization is not None and organization.industry else "Unknown"
    return (
        f"Name: {_address(character)} | Org: {org_name} | Industry: {industry} | "
        f"Department: {character.department or 'Unknown'} | Role: {character.role or 'Unknown'}"
    )


def is_external_audience(participants: ResolvedParticipants) -> bool:
    sender_org = participants.sender.organization_id
    return any(p.organization_id != sender_org for p in (*participants.to, *participants.cc))


def build_parent_summary(parent: EmailMessage) -> str:
    name = parent.sender.full_name if parent.sender is not None else "Unknown"
    sent = f"{parent.sent_date:%Y-%m-%d %H:%M}" if parent.sent_date is not None else "unknown date"
    return f"{name} on {sent}: {_preview(parent.body_plain, PARENT_PREVIEW_CHARS)}"


def build_parent_context(parent: EmailMessage | None) -> str:
    if parent is None:
        return "This is the first email in the thread."
    return f"Parent email: {build_parent_summary(parent)}"


def export_email_for_prompt(email: EmailMessage) -> str:
    lines = [f"Subject: {email.subject}"]
    if email.sender is not None:
        lines.append(f"From: {_address(email.sender)}")
    if email.to:
        lines.append(f"To: {'; '.join(_address(c) for c in email.to)}")
    if email.cc:
        lines.append(f"Cc: {'; '.join(_address(c) for c in email.cc)}")
    if email.sent_date is not None:
        lines.append(f"Date: {email.sent_date:%Y-%m-%d %H:%M}")
    if email.attachments:
        lines.append("Attachments:")
        for attachment in email.attachments:
            description = f" - {attachment.description}" if attachment.description else ""
            lines.append(f"- {attachment.kind} {attachment.file_name}{description}")
    lines.append("")
    lines.append(email.body_plain or "")
    return "\n".join(lines)


def build_thread_history(history: Sequence[EmailMessage]) -> str:
    """Prior emails in full, or an ordered summary once they grow too long."""
    if not history:
        return "No prior emails in this thread yet."

    combined = "\n\n---\n\n".join(export_email_for_prompt(m) for m in history)
    if len(combined) <= HISTORY_CHAR_LIMIT:
        return f"THREAD HISTORY:\n{combined}"

    lines = []
    for i, message in enumerate(history):
        sender = message.sender.first_name if message.sender is not None else "Unknown"
        recipients = ", ".join(c.first_name for c in message.to)
        lines.append(
            f"{i + 1}. {sender} to {recipients}: "
            f"{_preview(message.body_plain, HISTORY_PREVIEW_CHARS)}"
        )
    return "THREAD HISTORY (summary):\n" + "\n".join(lines)


def build_story_beat_context(storyline: Storyline, start: datetime, end: datetime) -> str:
    """Ordered story beats overlapping the thread's date window."""
    beats = storyline.beats
    if not beats:
        return ""
    relevant = [
        b for b in beats if b.start_date.date() <= end.date() and b.end_date.date() >= start.date()
    ] or list(beats)

    lines = ["Story Beats (ordered):"]
    for i, beat in enumerate(relevant):
        lines.append(f"{i + 1}. {beat.name} ({beat.start_date:%Y-%m-%d} to {beat.end_date:%Y-%m-%d})")
        lines.append(beat.plot)
    return "\n".join(lines)


def build_subject_beat_context(plan: ThreadPlan) -> str:
    beat = plan.beat
    if beat.name:
        plot = f" - {beat.plot}" if beat.plot else ""
        return f"Current story beat: {beat.name}{plot}"
    return "Current story beat: (unknown)"


def build_non_responsive_context(topic: str | None) -> str:
    if topic and topic.strip():
        return f"NON-RESPONSIVE TOPIC: Use this topic and stick to it: {topic}."
    hints = "; ".join(NON_RESPONSIVE_TOPIC_HINTS)
    return (
        "NON-RESPONSIVE TOPIC GUIDANCE: Pick ONE mundane corporate topic from "
        f"these examples and stick to it: {hints}."
    )


def build_attachment_instructions(
    requirement: AttachmentRequirement,
    details: AttachmentPlanDetails,
    is_responsive: bool,
) -> str:
    relevance = "storyline" if is_responsive else "thread topic"
    instructions: list[str] = []

    if requirement.requires_document:
        doc_type = requirement.document_type.value if requirement.document_type else "document"
        instructions.append(
            f"DOCUMENT REQUIRED:\n- Include a {doc_type} attachment relevant to the "
            f"{relevance}\n- The body MUST reference the attachment"
        )
        if details.document_description:
            instructions.append(f"- Planned document description: {details.document_description}")
    else:
        instructions.append("No document attachment for this email (do not mention a document).")

    if requirement.requires_image:
        label = "inline image" if requirement.is_image_inline else "image attachment"
        instructions.append(
            f"IMAGE REQUIRED:\n- Include an {label} relevant to the {relevance}\n"
            "- The body MUST reference the image"
        )
        if details.image_description:
            instructions.append(f"- Planned image description: {details.image_description}")
    else:
        instructions.append("No image attachment for this email (do not mention an image).")

    if requirement.requires_voicemail:
        instructions.append(
            f"VOICEMAIL REQUIRED:\n- Include a voicemail attachment related to the "
            f"{relevance}\n- The body MUST reference the voicemail"
        )
        if details.voicemail_context:
            instructions.append(f"- Planned voicemail context: {details.voicemail_context}")
    else:
        instructions.append("No voicemail attachment for this email (do not mention a voicemail).")

    extras = len(requirement.forced_documents) + requirement.forced_images + requirement.forced_voicemails
    if extras:
        instructions.append(
            f"ADDITIONAL ATTACHMENTS: This final email also carries {extras} "
            "attachment(s) that earlier emails could not deliver; mention them briefly."
        )
    return "\n".join(instructions)


def _format_entity_list(entities: Sequence[str]) -> str:
    return ", ".join(entities) if entities else "None"


def _archetype_metadata(archetype: TopicArchetype) -> str:
    return (
        f"Id: {archetype.id}\n"
        f"Category: {archetype.category}\n"
        f"Intent: {archetype.intent}\n"
        f"Archetype tags: {', '.join(archetype.archetype_tags)}"
    )


# =============================================================================
# Prompt Builders
# =============================================================================


def build_thread_subject_prompt(
    plan: ThreadPlan,
    participants: ResolvedParticipants,
    topic: str,
) -> str:
    storyline = plan.storyline

    def describe(character: Character) -> str:
        organization = storyline.organization_for(character)
        if organization is None and not character.role:
            return character.full_name
        org_name = organization.name if organization is not None else "Unknown"
        return f"{character.full_name} ({character.role}, {character.department} @ {org_name})"

    to_list = "; ".join(describe(c) for c in participants.to) or "None"
    cc_list = "; ".join(describe(c) for c in participants.cc) or "None"
    prompt = THREAD_SUBJECT_USER_PROMPT.format(
        audience=(
            "External (cross-organization)"
            if is_external_audience(participants)
            else "Internal (same organization)"
        ),
        topic=topic or "Project update",
        storyline_title=storyline.title,
        storyline_summary=storyline.summary,
        beat_context=build_subject_beat_context(plan),
        participant_summary=f"From: {describe(participants.sender)}\nTo: {to_list}\nCc: {cc_list}",
        available_characters=build_participant_list(plan.participants, storyline),
        guidance=RESPONSIVE_SUBJECT_GUIDANCE,
    )
    return join_sections(prompt, json_schema_section(EMAIL_SUBJECT_SCHEMA))


def build_non_responsive_subject_prompt(
    plan: ThreadPlan,
    participants: ResolvedParticipants,
    archetype: TopicArchetype,
) -> str:
    storyline = plan.storyline
    recipients = "\n".join(
        build_participant_descriptor(p, storyline) for p in participants.to
    ) or "None"
    entities = (
        f"Required entities: {_format_entity_list(archetype.entities_required)}\n"
        f"Optional entities: {_format_entity_list(archetype.entities_optional)}\n"
        "Entity values MUST include all required entities. Use strings for all values."
    )
    return join_sections(
        section("PRIMARY INSTRUCTION", archetype.archetype_subject_prompt),
        section("SENDER", build_participant_descriptor(participants.sender, storyline)),
        section("RECIPIENTS (To)", recipients),
        section("ARCHETYPE METADATA", _archetype_metadata(archetype)),
        section("ENTITIES", entities),
        json_schema_section(NON_RESPONSIVE_SUBJECT_SCHEMA),
    )


def build_single_email_prompt(
    context: SlotPromptContext,
    history: Sequence[EmailMessage],
    facts: ThreadFactTable,
) -> str:
    plan = context.plan
    storyline = plan.storyline
    slot = context.slot
    if context.is_responsive:
        storyline_header = f"Storyline: {storyline.title}\nSummary: {storyline.summary}"
        story_context = build_story_beat_context(storyline, plan.start_date, plan.end_date)
        narrative_label = slot.narrative_phase
    else:
        storyline_header = "Thread Intent: NON-RESPONSIVE (generic corporate thread)."
        story_context = build_non_responsive_context(context.topic)
        narrative_label = f"NON-RESPONSIVE THREAD - {slot.narrative_phase}"

    prompt = SINGLE_EMAIL_USER_PROMPT.format(
        storyline_header=storyline_header,
        subject=context.subject,
        addressing=build_addressing_section(context.participants),
        sender_profile=build_sender_profile(context.participants.sender, storyline),
        narrative_label=narrative_label,
        available_characters=build_participant_list(plan.participants, storyline),
        start_date=f"{plan.start_date:%Y-%m-%d}",
        end_date=f"{plan.end_date:%Y-%m-%d}",
        sent_time=slot.sent_date.isoformat(),
        story_context=story_context,
        parent_context=build_parent_context(context.parent),
        history=build_thread_history(history),
        facts=facts.summary(),
        attachment_instructions=build_attachment_instructions(
            context.requirement, context.details, context.is_responsive
        ),
    )
    return join_sections(
        prompt,
        json_schema_section(SINGLE_EMAIL_SCHEMA),
        "CRITICAL RULES:\n" + build_body_formatting_rules(slot.intent),
    )


def build_non_responsive_body_prompt(
    context: SlotPromptContext,
    selection: NonResponsiveArchetypeSelection,
) -> str:
    plan = context.plan
    storyline = plan.storyline
    participants = context.participants
    archetype = selection.archetype

    to_lines = "\n".join(build_participant_descriptor(p, storyline) for p in participants.to) or "None"
    cc_lines = "\n".join(build_participant_descriptor(p, storyline) for p in participants.cc) or "None"
    participant_context = (
        f"Sender: {build_participant_descriptor(participants.sender, storyline)}\n"
        f"Recipients (To):\n{to_lines}\nCc:\n{cc_lines}"
    )
    metadata = (
        f"{_archetype_metadata(archetype)}\n"
        f"Required entities: {_format_entity_list(archetype.entities_required)}\n"
        f"Optional entities: {_format_entity_list(archetype.entities_optional)}"
    )
    topic_line = (
        f"Thread topic (for attachment relevance only): {context.topic}" if context.topic else ""
    )

    return join_sections(
        section("PRIMARY INSTRUCTION", archetype.archetype_body_prompt),
        section("SUBJECT", selection.subject),
        topic_line,
        build_addressing_section(participants),
        section("PARTICIPANT CONTEXT", participant_context),
        build_sender_profile(participants.sender, storyline),
        f"Available Characters:\n{build_participant_list(plan.participants, storyline)}",
        f"Planned Sent Time: {context.slot.sent_date.isoformat()}",
        section("ARCHETYPE METADATA", metadata),
        section("ENTITY VALUES (JSON)", json.dumps(selection.entity_values, indent=2)),
        section("ALIGNMENT REQUIREMENT", ALIGNMENT_REQUIREMENT),
        build_parent_context(context.parent),
        section(
            "ATTACHMENT REQUIREMENTS",
            build_attachment_instructions(context.requirement, context.details, False),
        ),
        json_schema_section(SINGLE_EMAIL_SCHEMA),
        "CRITICAL RULES:\n" + build_body_formatting_rules(context.slot.intent),
    )


def build_repair_prompt(
    context: SlotPromptContext,
    previous_draft: str | None,
    errors: Sequence[str],
) -> str:
    storyline = context.plan.storyline
    prompt = EMAIL_REPAIR_USER_PROMPT.format(
        error_list="\n".join(f"- {e}" for e in errors),
        subject=context.subject,
        addressing=build_addressing_section(context.participants),
        sender_profile=build_sender_profile(context.participants.sender, storyline),
        available_characters=build_participant_list(context.plan.participants, storyline),
        parent_context=build_parent_context(context.parent),
        sent_time=context.slot.sent_date.isoformat(),
        attachment_instructions=build_attachment_instructions(
            context.requirement, context.details, context.is_responsive
        ),
        body_rules=build_body_formatting_rules(context.slot.intent),
        previous_draft=previous_draft or "",
    )
    return join_sections(prompt, json_schema_section(SINGLE_EMAIL_SCHEMA), REPAIR_CLOSING)
