"""Per-slot email generation: addressing, drafting, validation and commit."""

from src.threadgen.generation.carryover import (
    AttachmentCarryoverState,
    CarryoverLedger,
    CarryoverStateError,
)
from src.threadgen.generation.facts import ThreadFactTable
from src.threadgen.generation.models import (
    AttachmentPlanDetails,
    AttachmentRequirement,
    DraftResult,
    EmailSubjectResponse,
    NonResponsiveArchetypeSelection,
    NonResponsiveSubjectResponse,
    ResolvedParticipants,
    SingleEmailResponse,
    SlotState,
)
from src.threadgen.generation.participants import (
    ParticipantResolutionError,
    resolve_participants,
)
from src.threadgen.generation.signatures import correct_signature
from src.threadgen.generation.slot_generator import (
    ThreadEmailGenerator,
    ThreadExecutionState,
)
from src.threadgen.generation.validation import mentions_attachment, validate_email_body

__all__ = [
    "AttachmentCarryoverState",
    "CarryoverLedger",
    "CarryoverStateError",
    "ThreadFactTable",
    "AttachmentPlanDetails",
    "AttachmentRequirement",
    "DraftResult",
    "EmailSubjectResponse",
    "NonResponsiveArchetypeSelection",
    "NonResponsiveSubjectResponse",
    "ResolvedParticipants",
    "SingleEmailResponse",
    "SlotState",
    "ParticipantResolutionError",
    "resolve_participants",
    "correct_signature",
    "ThreadEmailGenerator",
    "ThreadExecutionState",
    "mentions_attachment",
    "validate_email_body",
]
