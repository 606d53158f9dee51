"""
Core entity models for the medication-regimen interpreter.

Design principles:
- Entities are immutable after creation (frozen dataclasses)
- Entities never read the clock; "now" is always supplied by the caller
- No interpretation logic inside entities (pure data holders)
- Validation fails loudly on programmer error (invalid phases)
- Records from storage are accepted as-is: missing fields are never an error

Inputs vs derived values:
- MedicationRecord: owned by the storage collaborator, only read here
- Phase: computed by the timeline builder, re-derived on every call
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from medregimen.extraction import MAX_TIMES_PER_DAY, parse_datetime


@dataclass(frozen=True)
class MedicationRecord:
    """
    A prescribed medication as stored by the record-keeping layer.

    Free-text fields:
    - full_instructions: The clinician's instruction string (may be empty)

    Structured fields (all optional, strings as entered):
    - frequency: Doses per day, normally numeric ("3")
    - duration: Course length, numeric days ("7") or descriptive ("2 weeks")
    - timing: Time-of-day keyword ("morning", "at bedtime", ...)
    - dosage, route, laterality: Display-only details

    Temporal fields:
    - start_date: Explicit start chosen by the user
    - created_at: When the record was created (fallback start reference)

    Rationale:
    - The interpreter never mutates a record; it re-derives schedules from
      these fields on every call, so the record is the single source of truth
    - Optional fields default to None rather than "" so that "not recorded"
      and "recorded as empty" collapse to the same meaning
    """
    name: str
    full_instructions: str = ""
    frequency: Optional[str] = None
    duration: Optional[str] = None
    start_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    is_active: Optional[bool] = True
    dosage: Optional[str] = None
    timing: Optional[str] = None
    route: Optional[str] = None
    laterality: Optional[str] = None
    medication_id: Optional[str] = None

    @property
    def instructions(self) -> str:
        """Instruction text with None treated as empty."""
        return self.full_instructions or ""

    @property
    def has_structured_schedule(self) -> bool:
        """True if either structured frequency or duration was recorded."""
        return bool((self.frequency or "").strip() or (self.duration or "").strip())

    @property
    def is_currently_active(self) -> bool:
        """Records without an explicit flag are considered active."""
        return True if self.is_active is None else bool(self.is_active)

    @property
    def display_name(self) -> str:
        return self.name.title()

    @property
    def formatted_instructions(self) -> str:
        """One-line summary: dosage, name, frequency, then optional details."""
        parts = [self.dosage or "", self.name, self.frequency or ""]
        for detail in (self.timing, self.route, self.laterality):
            if detail:
                parts.append(detail)
        if self.duration:
            parts.append(f"for {self.duration}")
        return " ".join(part for part in parts if part)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {
            "type": "MedicationRecord",
            "medication_id": self.medication_id,
            "name": self.name,
            "full_instructions": self.full_instructions,
            "frequency": self.frequency,
            "duration": self.duration,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "is_active": self.is_active,
            "dosage": self.dosage,
            "timing": self.timing,
            "route": self.route,
            "laterality": self.laterality
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "MedicationRecord":
        """
        Build a record from a storage document.

        Accepts both camelCase keys (as written by the mobile client) and
        snake_case keys (as produced by to_dict). Unparseable timestamps
        become None instead of raising.
        """
        def pick(*keys):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        def text(*keys) -> Optional[str]:
            value = pick(*keys)
            return None if value is None else str(value)

        return MedicationRecord(
            name=str(pick("name") or ""),
            full_instructions=str(pick("full_instructions", "fullInstructions") or ""),
            frequency=text("frequency"),
            duration=text("duration"),
            start_date=parse_datetime(pick("start_date", "startDate")),
            created_at=parse_datetime(pick("created_at", "createdAt")),
            is_active=pick("is_active", "isActive"),
            dosage=text("dosage"),
            timing=text("timing"),
            route=text("route"),
            laterality=text("laterality"),
            medication_id=text("medication_id", "id")
        )


@dataclass(frozen=True)
class Phase:
    """
    One contiguous stretch of a regimen with constant frequency and dosage.

    Deterministic fields:
    - index: 1-based position within its timeline
    - start_date / end_date: Absolute bounds of the phase
    - times_per_day: Doses per day (1 to MAX_TIMES_PER_DAY)
    - dosage_units: Units per dose, e.g. drops (>= 1)
    - instruction_text: Human-readable phase instruction
    - timing: Optional time-of-day keyword carried from the record

    Not stored:
    - is_active / is_completed depend on "now" and on the phase's neighbours;
      see medregimen.status
    """
    index: int
    start_date: datetime
    end_date: datetime
    times_per_day: int
    dosage_units: int = 1
    instruction_text: str = ""
    timing: Optional[str] = None

    def __post_init__(self):
        """Validate fields at construction time (fail fast)."""
        if self.index < 1:
            raise ValueError(f"index must be >= 1, got {self.index}")

        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date.isoformat()} precedes "
                f"start_date {self.start_date.isoformat()}"
            )

        if not 1 <= self.times_per_day <= MAX_TIMES_PER_DAY:
            raise ValueError(
                f"times_per_day must be in [1, {MAX_TIMES_PER_DAY}], got {self.times_per_day}"
            )

        if self.dosage_units < 1:
            raise ValueError(f"dosage_units must be >= 1, got {self.dosage_units}")

    @property
    def duration_days(self) -> int:
        """Whole days between start and end."""
        return (self.end_date - self.start_date).days

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON export."""
        return {
            "type": "Phase",
            "index": self.index,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "times_per_day": self.times_per_day,
            "dosage_units": self.dosage_units,
            "instruction_text": self.instruction_text,
            "timing": self.timing,
            "duration_days": self.duration_days
        }
