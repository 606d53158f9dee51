"""
Medication scheduler: the single entry point used by collaborators.

Orchestrates:
- Classification of the record's instructions
- Timeline construction against a reference date
- Status evaluation and daily schedules against an explicit "now"
- Reminder slots for the reminder-scheduling collaborator

Design:
- Holds only immutable configuration; no per-call state is kept
- Instances can be shared freely between threads
- Every call recomputes from its inputs (nothing is cached or persisted)
"""

from datetime import datetime
from typing import List, Optional
import logging

from medregimen.classifier import RegimenClassification, classify, classify_record
from medregimen.config import RegimenConfig
from medregimen.daily_schedule import daily_schedule_for_timeline, reminder_slots
from medregimen.entities import MedicationRecord
from medregimen.extraction import DateLike, extract_frequency, safe_frequency
from medregimen.output_schema import DailySchedule, ReminderSlot, StatusSnapshot, Timeline
from medregimen.status import active_phase, evaluate_status, format_date
from medregimen.timeline import build_timeline

logger = logging.getLogger(__name__)


class MedicationScheduler:
    """
    Facade over the classifier, timeline builder, status evaluator and
    daily schedule generator.

    Example:
        scheduler = MedicationScheduler(load_config())
        timeline = scheduler.process_medication(record, reference_date=now)
        snapshot = scheduler.medication_status(timeline, now)
        today = scheduler.daily_schedule(timeline, now.date())
    """

    def __init__(self, config: Optional[RegimenConfig] = None):
        """
        Args:
            config: Timing preferences and display formats.
                    If None, built-in defaults are used (no environment access).
        """
        self.config = config or RegimenConfig()

    def classify(self, instructions: str) -> RegimenClassification:
        return classify(instructions)

    def process_medication(self, record: MedicationRecord, reference_date: DateLike) -> Timeline:
        """
        Classify a record and lay it out on the calendar.

        Args:
            record: Medication as stored
            reference_date: "Now" for start-date resolution and progress

        Returns:
            Timeline (empty with a message for chronic regimens)
        """
        classification = classify_record(record)
        timeline = build_timeline(record, classification, reference_date)
        logger.debug(
            f"Processed '{record.name}': {timeline.regimen_type.value}, "
            f"{len(timeline.phases)} phases, {timeline.overall_progress_percent}% complete"
        )
        return timeline

    def medication_status(self, timeline: Timeline, now: DateLike) -> StatusSnapshot:
        return evaluate_status(timeline, now, self.config.short_date_format)

    def daily_schedule(self, timeline: Timeline, day: DateLike) -> Optional[DailySchedule]:
        """Dose events for day, or None if no phase covers it."""
        return daily_schedule_for_timeline(timeline, day, self.config.timing)

    def reminder_slots(self, record: MedicationRecord, now: DateLike) -> List[ReminderSlot]:
        """
        Reminder times for a record at now.

        Uses the phase in effect when the regimen has a timeline, else the
        record's structured frequency (or the frequency found in its text).
        """
        if not record.is_currently_active:
            return []

        timeline = self.process_medication(record, now)
        phase = active_phase(timeline, now)
        if phase is not None:
            return reminder_slots(phase.times_per_day, phase.timing, self.config.timing)

        frequency = (record.frequency or "").strip()
        if frequency:
            times_per_day = safe_frequency(frequency)
        else:
            times_per_day = extract_frequency(record.instructions)
        return reminder_slots(times_per_day, record.timing, self.config.timing)

    def format_date(self, value: datetime, long: bool = False) -> str:
        fmt = self.config.long_date_format if long else self.config.short_date_format
        return format_date(value, fmt)
