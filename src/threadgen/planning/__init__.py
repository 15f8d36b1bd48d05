"""Thread structure and per-thread planning."""

from src.threadgen.planning.models import (
    AttachmentSkeleton,
    AttachmentTotals,
    PlannedTotals,
    ThreadEmailIntent,
    ThreadEmailSlotPlan,
    ThreadPlan,
    ThreadStructurePlan,
)
from src.threadgen.planning.structure_planner import (
    build_plan,
    calculate_attachment_totals,
    calculate_calendar_checks,
)
from src.threadgen.planning.thread_plans import (
    ThreadPlanContractError,
    build_thread_plans,
    calculate_planned_totals,
)

__all__ = [
    "AttachmentSkeleton",
    "AttachmentTotals",
    "PlannedTotals",
    "ThreadEmailIntent",
    "ThreadEmailSlotPlan",
    "ThreadPlan",
    "ThreadStructurePlan",
    "ThreadPlanContractError",
    "build_plan",
    "build_thread_plans",
    "calculate_attachment_totals",
    "calculate_calendar_checks",
    "calculate_planned_totals",
]
