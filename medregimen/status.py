"""
Status and progress evaluation over a timeline and an explicit "now".

Design Principles:
- Pure functions of (timeline, now); nothing here reads the system clock
- Phase activity is derived, never stored on the phase
- Progress is monotonic non-decreasing in "now" and clamped to [0, 100]
- The "unknown" status is a visible fallback, never an exception

Phase window policy (inclusive start):
    A phase is active while start <= now <= end and completed once now > end.
    Where phase n ends exactly when phase n+1 starts, that instant belongs to
    phase n+1: phase n counts as completed and phase n+1 as active. The last
    phase keeps its inclusive end, so "now == end of treatment" is still active.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import logging
import math

import numpy as np

from medregimen.entities import Phase
from medregimen.extraction import DateLike, align_tz, as_datetime
from medregimen.output_schema import StatusSnapshot, Timeline, TreatmentStatus

logger = logging.getLogger(__name__)


SHORT_DATE_FORMAT = "%a, %b {day}"
LONG_DATE_FORMAT = "%A, %B {day}, %Y"

ONE_DAY = timedelta(days=1)


def format_date(value: DateLike, fmt: str = SHORT_DATE_FORMAT) -> str:
    """
    Render a date for status messages: "Mon, Jan 1".

    "{day}" in fmt is replaced by the unpadded day of month.
    """
    return value.strftime(fmt.replace("{day}", str(value.day)))


def format_date_long(value: DateLike) -> str:
    """Render a date as "Monday, January 1, 2024"."""
    return format_date(value, LONG_DATE_FORMAT)


def _now_for(phase: Phase, now: DateLike) -> datetime:
    return align_tz(as_datetime(now), phase.start_date)


def is_phase_active(phase: Phase, now: DateLike, final: bool = True) -> bool:
    """
    True if now falls inside the phase window.

    Args:
        phase: Phase to test
        now: Evaluation instant
        final: Whether the phase is the last of its timeline; non-final
               phases hand their end instant over to the next phase
    """
    current = _now_for(phase, now)
    if current < phase.start_date:
        return False
    if final:
        return current <= phase.end_date
    return current < phase.end_date


def is_phase_completed(phase: Phase, now: DateLike, final: bool = True) -> bool:
    current = _now_for(phase, now)
    if final:
        return current > phase.end_date
    return current >= phase.end_date


def days_remaining(phase: Phase, now: DateLike) -> int:
    """Whole days until the phase ends, rounded up, never negative."""
    remaining = phase.end_date - _now_for(phase, now)
    return max(0, math.ceil(remaining.total_seconds() / ONE_DAY.total_seconds()))


def elapsed_days(phase: Phase, now: DateLike) -> int:
    """Whole days since the phase started, clamped to the phase length."""
    elapsed = (_now_for(phase, now) - phase.start_date) // ONE_DAY
    return min(max(elapsed, 0), phase.duration_days)


def phase_states(timeline: Timeline, now: DateLike) -> List[Tuple[Phase, bool, bool]]:
    """(phase, is_active, is_completed) for every phase, in order."""
    last = len(timeline.phases) - 1
    return [
        (
            phase,
            is_phase_active(phase, now, final=position == last),
            is_phase_completed(phase, now, final=position == last)
        )
        for position, phase in enumerate(timeline.phases)
    ]


def active_phase(timeline: Timeline, now: DateLike) -> Optional[Phase]:
    """The single active phase, or None if zero or several are active."""
    active = [phase for phase, is_active, _ in phase_states(timeline, now) if is_active]
    return active[0] if len(active) == 1 else None


def current_phase_index(timeline: Timeline, now: DateLike) -> int:
    """
    1-based index of the phase in effect at now.

    Returns:
        index of the active phase;
        len(phases) + 1 once every phase is completed;
        1 before treatment starts;
        0 for timelines without phases
    """
    states = phase_states(timeline, now)
    if not states:
        return 0

    for phase, is_active, _ in states:
        if is_active:
            return phase.index

    if all(completed for _, _, completed in states):
        return len(states) + 1
    return 1


def overall_progress(timeline: Timeline, now: DateLike) -> int:
    """
    Percent of the total treatment days behind us at now.

    (days of completed phases + whole elapsed days of the active phase)
    divided by total days, rounded half up and clamped to [0, 100].
    """
    states = phase_states(timeline, now)
    total_days = sum(phase.duration_days for phase, _, _ in states)
    if total_days == 0:
        return 0

    done_days = 0
    for phase, is_active, is_completed in states:
        if is_completed:
            done_days += phase.duration_days
        elif is_active:
            done_days += elapsed_days(phase, now)

    percent = np.floor(done_days / total_days * 100 + 0.5)
    return int(np.clip(percent, 0, 100))


def evaluate_status(
    timeline: Timeline,
    now: DateLike,
    date_format: str = SHORT_DATE_FORMAT
) -> StatusSnapshot:
    """
    Plain-language status of a timeline at now.

    Args:
        timeline: Output of the timeline builder
        now: Evaluation instant (never sampled internally)
        date_format: Format for the "Starts ..." message

    Returns:
        StatusSnapshot; never raises
    """
    if not timeline.has_schedule or not timeline.phases:
        # Ongoing regimen without an end: in progress, nothing to count down.
        # Having no phases does not make it "completed".
        return StatusSnapshot(
            status=TreatmentStatus.ACTIVE,
            human_message=timeline.message or "Continue as prescribed"
        )

    states = phase_states(timeline, now)
    active = [phase for phase, is_active, _ in states if is_active]

    if len(active) == 1:
        phase = active[0]
        return StatusSnapshot(
            status=TreatmentStatus.ACTIVE,
            human_message=f"Phase {phase.index}: {phase.instruction_text}",
            current_phase=phase,
            days_remaining=days_remaining(phase, now)
        )

    if all(completed for _, _, completed in states):
        return StatusSnapshot(
            status=TreatmentStatus.COMPLETED,
            human_message="Treatment completed"
        )

    first = timeline.phases[0]
    if _now_for(first, now) < first.start_date:
        return StatusSnapshot(
            status=TreatmentStatus.NOT_STARTED,
            human_message=f"Starts {format_date(first.start_date, date_format)}",
            next_phase=first
        )

    logger.warning(
        f"Timeline for '{timeline.medication_name}' has no single active phase at "
        f"{as_datetime(now).isoformat()} (contiguous={timeline.is_contiguous()})"
    )
    return StatusSnapshot(
        status=TreatmentStatus.UNKNOWN,
        human_message="Status unavailable"
    )
