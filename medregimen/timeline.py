"""
Timeline construction: classification + record -> dated dosing phases.

Design Principles:
- Pure function: same record, classification and reference date -> identical Timeline
- Phase patterns are data (ordered table), not control flow
- The first pattern class with any match is used for every phase of a string;
  classes are never mixed within one timeline
- Phases are contiguous by construction: phase n+1 starts where phase n ends
- Malformed numbers fall back to documented defaults, never raise

Time-dependent aggregates (current phase, overall progress) are computed
against the supplied reference date through medregimen.status, so a stored
Timeline can be brought up to date with refresh_timeline() without
re-parsing the instructions.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Pattern, Tuple
import logging
import re

from medregimen.classifier import (
    RegimenClassification,
    RegimenType,
    classify_record
)
from medregimen.entities import MedicationRecord, Phase
from medregimen.extraction import (
    DEFAULT_DOSAGE,
    DEFAULT_DURATION_DAYS,
    DAYS_PER_WEEK,
    DateLike,
    add_days,
    as_datetime,
    count_to_days,
    extract_duration_days,
    extract_frequency,
    resolve_start_date,
    safe_frequency,
    safe_int
)
from medregimen.output_schema import Timeline
from medregimen import status

logger = logging.getLogger(__name__)


CHRONIC_MESSAGE = "Continue as prescribed — no specific end date"


@dataclass(frozen=True)
class PhasePattern:
    """
    One entry of the tapering phase-extraction table.

    Named groups:
    - times: doses per day (required)
    - count: duration count in units of unit_days (required)
    - dosage: units per dose (optional; DEFAULT_DOSAGE when absent)
    """
    name: str
    pattern: Pattern
    unit_days: int

    def find_all(self, text: str) -> List["re.Match"]:
        return list(self.pattern.finditer(text))


PHASE_PATTERNS: Tuple[PhasePattern, ...] = (
    PhasePattern(
        name="frequency_weeks",
        pattern=re.compile(
            r"(?<!\d)(?P<times>\d+)x?\s*(?:times?\s*)?(?:daily|per\s*day|a\s*day)\s*for\s*"
            r"(?P<count>\d+)\s*(?:week|wk)s?",
            re.IGNORECASE
        ),
        unit_days=DAYS_PER_WEEK
    ),
    PhasePattern(
        name="drops_frequency_weeks",
        pattern=re.compile(
            r"(?<!\d)(?P<dosage>\d+)\s*drops?\s*(?P<times>\d+)\s*times?\s*daily\s*for\s*"
            r"(?P<count>\d+)\s*(?:week|wk)s?",
            re.IGNORECASE
        ),
        unit_days=DAYS_PER_WEEK
    ),
    PhasePattern(
        name="x_daily_x_weeks",
        pattern=re.compile(
            r"(?:apply\s*)?(?<!\d)(?P<times>\d+)x\s*daily\s*x\s*(?P<count>\d+)\s*(?:week|wk)s?",
            re.IGNORECASE
        ),
        unit_days=DAYS_PER_WEEK
    ),
    PhasePattern(
        name="times_per_day_days",
        pattern=re.compile(
            r"(?<!\d)(?P<times>\d+)\s*times?\s*per\s*day\s*for\s*(?P<count>\d+)\s*days?",
            re.IGNORECASE
        ),
        unit_days=1
    ),
    PhasePattern(
        name="times_daily_days",
        pattern=re.compile(
            r"(?<!\d)(?P<times>\d+)x?\s*(?:times?\s*)?(?:daily|a\s*day)\s*for\s*(?P<count>\d+)\s*days?",
            re.IGNORECASE
        ),
        unit_days=1
    ),
)


def phase_instruction(times_per_day: int, dosage_units: int) -> str:
    """Synthesized phase text: '4 times daily', '2 drops 3 times daily'."""
    prefix = f"{dosage_units} drops " if dosage_units > 1 else ""
    return f"{prefix}{times_per_day} times daily"


def _first_matching_pattern(text: str) -> Optional[Tuple[PhasePattern, List["re.Match"]]]:
    for phase_pattern in PHASE_PATTERNS:
        matches = phase_pattern.find_all(text)
        if matches:
            return phase_pattern, matches
    return None


def _tapering_phases(
    start: datetime,
    phase_pattern: PhasePattern,
    matches: List["re.Match"],
    timing: Optional[str]
) -> List[Phase]:
    """One phase per match, each starting where the previous one ends."""
    phases = []
    phase_start = start
    for position, match in enumerate(matches, start=1):
        groups = match.groupdict()
        times_per_day = safe_frequency(groups.get("times"))
        dosage_units = safe_int(groups.get("dosage"), DEFAULT_DOSAGE)
        duration_days = count_to_days(groups.get("count"), phase_pattern.unit_days)

        phase_end = add_days(phase_start, duration_days)
        phases.append(Phase(
            index=position,
            start_date=phase_start,
            end_date=phase_end,
            times_per_day=times_per_day,
            dosage_units=dosage_units,
            instruction_text=phase_instruction(times_per_day, dosage_units),
            timing=timing
        ))
        phase_start = phase_end

    return phases


def _structured_frequency(record: MedicationRecord) -> int:
    """Doses per day: structured field first, then the instruction text."""
    value = (record.frequency or "").strip()
    if value:
        if value.isdigit():
            return safe_frequency(value)
        return extract_frequency(value)
    return extract_frequency(record.instructions)


def _structured_duration(record: MedicationRecord) -> int:
    """Course length in days: structured field first, then the instruction text."""
    value = (record.duration or "").strip()
    if value:
        if value.isdigit():
            return count_to_days(value, 1)
        days = extract_duration_days(value)
        return days if days is not None else DEFAULT_DURATION_DAYS

    days = extract_duration_days(record.instructions)
    return days if days is not None else DEFAULT_DURATION_DAYS


def _single_phase(record: MedicationRecord, start: datetime) -> Phase:
    times_per_day = _structured_frequency(record)
    duration_days = _structured_duration(record)
    text = record.instructions.strip()
    return Phase(
        index=1,
        start_date=start,
        end_date=add_days(start, duration_days),
        times_per_day=times_per_day,
        dosage_units=DEFAULT_DOSAGE,
        instruction_text=text or phase_instruction(times_per_day, DEFAULT_DOSAGE),
        timing=record.timing
    )


def _scheduled_timeline(
    record: MedicationRecord,
    classification: RegimenClassification,
    regimen_type: RegimenType,
    start: datetime,
    phases: List[Phase],
    reference: datetime
) -> Timeline:
    total_days = sum(phase.duration_days for phase in phases)
    timeline = Timeline(
        medication_name=record.name,
        start_date=start,
        phases=tuple(phases),
        total_duration_days=total_days,
        current_phase_index=0,
        overall_progress_percent=0,
        has_schedule=True,
        regimen_type=regimen_type,
        message=None,
        classification_reason=classification.reason
    )
    return refresh_timeline(timeline, reference)


def build_timeline(
    record: MedicationRecord,
    classification: RegimenClassification,
    reference_date: DateLike
) -> Timeline:
    """
    Lay out a classified medication on the calendar.

    Args:
        record: Medication as stored (only read)
        classification: Output of classify() / classify_record()
        reference_date: "Now" for start-date resolution and progress

    Returns:
        Timeline; chronic regimens yield an empty timeline with a message
    """
    reference = as_datetime(reference_date)
    text = record.instructions
    start = resolve_start_date(text, reference, record.start_date, record.created_at)

    if classification.regimen_type is RegimenType.CHRONIC:
        return Timeline(
            medication_name=record.name,
            start_date=start,
            phases=(),
            total_duration_days=0,
            current_phase_index=0,
            overall_progress_percent=0,
            has_schedule=False,
            regimen_type=RegimenType.CHRONIC,
            message=CHRONIC_MESSAGE,
            classification_reason=classification.reason
        )

    if classification.regimen_type is RegimenType.TAPERING:
        found = _first_matching_pattern(text)
        if found is not None:
            phase_pattern, matches = found
            logger.debug(
                f"Tapering '{record.name}': {len(matches)} phases via pattern '{phase_pattern.name}'"
            )
            phases = _tapering_phases(start, phase_pattern, matches, record.timing)
            return _scheduled_timeline(
                record, classification, RegimenType.TAPERING, start, phases, reference
            )
        logger.debug(
            f"Tapering '{record.name}' has no phase pattern, using a single phase"
        )

    phase = _single_phase(record, start)
    return _scheduled_timeline(
        record, classification, RegimenType.SHORT_TERM, start, [phase], reference
    )


def refresh_timeline(timeline: Timeline, now: DateLike) -> Timeline:
    """Recompute the now-dependent aggregates of a timeline."""
    return replace(
        timeline,
        current_phase_index=status.current_phase_index(timeline, now),
        overall_progress_percent=status.overall_progress(timeline, now)
    )


def interpret(record: MedicationRecord, reference_date: DateLike) -> Timeline:
    """Classify a record and build its timeline in one step."""
    return build_timeline(record, classify_record(record), reference_date)
