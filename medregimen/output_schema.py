"""
Output value objects produced by the regimen interpreter.

Design Principles:
- Pure structured data (no UI logic, no clock reads)
- Every output is re-derived on demand and never persisted
- Safely copyable: frozen dataclasses, tuples instead of lists
- JSON-ready via to_dict() for presentation and reminder collaborators

Key Guarantee: Outputs are a deterministic function of (record, reference time).
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from medregimen.classifier import RegimenType
from medregimen.entities import Phase


class TreatmentStatus(Enum):
    """Lifecycle position of a regimen relative to "now"."""

    NOT_STARTED = "not-started"
    ACTIVE = "active"
    COMPLETED = "completed"
    UNKNOWN = "unknown"
    # Only reachable for hand-built timelines that violate phase contiguity


@dataclass(frozen=True)
class Timeline:
    """
    Ordered dosing phases plus aggregate progress for one medication.

    Invariants (guaranteed by the timeline builder):
    - phases are 1-indexed and contiguous: phases[i].end_date == phases[i+1].start_date
    - has_schedule is False exactly when the regimen is chronic (phases empty)
    - message is populated only when has_schedule is False

    current_phase_index and overall_progress_percent are snapshots taken at
    the reference date used to build (or refresh) the timeline.
    """
    medication_name: str
    start_date: datetime
    phases: Tuple[Phase, ...]
    total_duration_days: int
    current_phase_index: int
    overall_progress_percent: int
    has_schedule: bool
    regimen_type: RegimenType
    message: Optional[str] = None
    classification_reason: Optional[str] = None

    @property
    def end_date(self) -> Optional[datetime]:
        return self.phases[-1].end_date if self.phases else None

    def get_phase(self, index: int) -> Optional[Phase]:
        """Get phase by its 1-based index."""
        for phase in self.phases:
            if phase.index == index:
                return phase
        return None

    def is_contiguous(self) -> bool:
        """True if every phase starts exactly where the previous one ends."""
        return all(
            earlier.end_date == later.start_date
            for earlier, later in zip(self.phases, self.phases[1:])
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {
            "medication_name": self.medication_name,
            "start_date": self.start_date.isoformat(),
            "phases": [phase.to_dict() for phase in self.phases],
            "total_duration_days": self.total_duration_days,
            "current_phase_index": self.current_phase_index,
            "overall_progress_percent": self.overall_progress_percent,
            "has_schedule": self.has_schedule,
            "regimen_type": self.regimen_type.value,
            "message": self.message,
            "classification_reason": self.classification_reason
        }


@dataclass(frozen=True)
class StatusSnapshot:
    """
    Plain-language status of a regimen at one instant.

    Computed fresh on every query; never persisted.
    """
    status: TreatmentStatus
    human_message: str
    current_phase: Optional[Phase] = None
    days_remaining: Optional[int] = None
    next_phase: Optional[Phase] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {
            "status": self.status.value,
            "human_message": self.human_message,
            "current_phase": self.current_phase.to_dict() if self.current_phase else None,
            "days_remaining": self.days_remaining,
            "next_phase": self.next_phase.to_dict() if self.next_phase else None
        }


@dataclass(frozen=True)
class DailyScheduleItem:
    """One dose event on one calendar day."""
    clock_time: time
    label: str  # "8:00 AM"
    dose_count: int
    instruction_text: str
    scheduled_datetime: datetime
    taken: bool = False  # adherence is tracked by the storage collaborator

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {
            "clock_time": self.clock_time.strftime("%H:%M"),
            "label": self.label,
            "dose_count": self.dose_count,
            "instruction_text": self.instruction_text,
            "scheduled_datetime": self.scheduled_datetime.isoformat(),
            "taken": self.taken
        }


@dataclass(frozen=True)
class DailySchedule:
    """All dose events for one calendar day within one phase."""
    date: date
    phase: Phase
    items: Tuple[DailyScheduleItem, ...] = field(default_factory=tuple)

    @property
    def total_doses(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {
            "date": self.date.isoformat(),
            "phase": self.phase.to_dict(),
            "items": [item.to_dict() for item in self.items],
            "total_doses": self.total_doses
        }


@dataclass(frozen=True)
class ReminderSlot:
    """
    Repeating time of day handed to the reminder-scheduling collaborator.

    This package computes slots only; it never schedules or delivers
    notifications.
    """
    hour: int
    minute: int
    label: str

    @property
    def clock_time(self) -> time:
        return time(self.hour, self.minute)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {"hour": self.hour, "minute": self.minute, "label": self.label}
