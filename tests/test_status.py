"""
Tests for status and progress evaluation.

Verifies:
- Phase window policy (inclusive start, boundary handed to the next phase)
- Status transitions: not-started -> active -> completed
- Progress is monotonic and clamped
- The unknown status only appears for hand-built timelines with gaps
"""

import pytest
from datetime import date, datetime, timedelta
from medregimen.classifier import RegimenType, classify
from medregimen.entities import MedicationRecord, Phase
from medregimen.output_schema import Timeline, TreatmentStatus
from medregimen.status import (
    active_phase,
    current_phase_index,
    days_remaining,
    elapsed_days,
    evaluate_status,
    format_date,
    format_date_long,
    is_phase_active,
    is_phase_completed,
    overall_progress
)
from medregimen.timeline import build_timeline


TAPER = "4 times daily for 1 week, then 3 times daily for 1 week"


@pytest.fixture
def taper_timeline():
    record = MedicationRecord(name="Prednisolone drops", full_instructions=TAPER)
    return build_timeline(record, classify(TAPER), datetime(2024, 1, 1))


def make_phase(index, start, end, times_per_day=2):
    return Phase(
        index=index,
        start_date=start,
        end_date=end,
        times_per_day=times_per_day,
        instruction_text=f"{times_per_day} times daily"
    )


def make_timeline(phases):
    return Timeline(
        medication_name="Hand built",
        start_date=phases[0].start_date,
        phases=tuple(phases),
        total_duration_days=sum(p.duration_days for p in phases),
        current_phase_index=1,
        overall_progress_percent=0,
        has_schedule=True,
        regimen_type=RegimenType.TAPERING
    )


class TestPhaseWindow:
    """Active and completed are derived from now."""

    def setup_method(self):
        self.phase = make_phase(1, datetime(2024, 1, 1), datetime(2024, 1, 8))

    def test_before_start(self):
        now = datetime(2023, 12, 31)
        assert not is_phase_active(self.phase, now)
        assert not is_phase_completed(self.phase, now)

    def test_start_is_inclusive(self):
        assert is_phase_active(self.phase, datetime(2024, 1, 1))

    def test_final_phase_end_is_inclusive(self):
        now = datetime(2024, 1, 8)
        assert is_phase_active(self.phase, now, final=True)
        assert not is_phase_completed(self.phase, now, final=True)

    def test_non_final_phase_hands_over_at_end(self):
        now = datetime(2024, 1, 8)
        assert not is_phase_active(self.phase, now, final=False)
        assert is_phase_completed(self.phase, now, final=False)

    def test_after_end(self):
        now = datetime(2024, 1, 8, 0, 0, 1)
        assert not is_phase_active(self.phase, now)
        assert is_phase_completed(self.phase, now)

    def test_days_remaining_rounds_up(self):
        assert days_remaining(self.phase, datetime(2024, 1, 1)) == 7
        assert days_remaining(self.phase, datetime(2024, 1, 6, 12)) == 2
        assert days_remaining(self.phase, datetime(2024, 2, 1)) == 0

    def test_elapsed_days_clamped(self):
        assert elapsed_days(self.phase, datetime(2023, 12, 1)) == 0
        assert elapsed_days(self.phase, datetime(2024, 1, 3, 23)) == 2
        assert elapsed_days(self.phase, datetime(2024, 3, 1)) == 7


class TestEvaluateStatus:
    """Status transitions over a two-phase taper."""

    def test_not_started(self, taper_timeline):
        snapshot = evaluate_status(taper_timeline, datetime(2023, 12, 25))
        assert snapshot.status is TreatmentStatus.NOT_STARTED
        assert snapshot.human_message == "Starts Mon, Jan 1"
        assert snapshot.next_phase == taper_timeline.phases[0]
        assert snapshot.current_phase is None

    def test_active_first_phase(self, taper_timeline):
        snapshot = evaluate_status(taper_timeline, datetime(2024, 1, 3))
        assert snapshot.status is TreatmentStatus.ACTIVE
        assert snapshot.human_message == "Phase 1: 4 times daily"
        assert snapshot.current_phase.index == 1
        assert snapshot.days_remaining == 5

    def test_boundary_belongs_to_second_phase(self, taper_timeline):
        boundary = datetime(2024, 1, 8)
        first, second = taper_timeline.phases
        assert first.end_date == second.start_date == boundary

        snapshot = evaluate_status(taper_timeline, boundary)
        assert snapshot.status is TreatmentStatus.ACTIVE
        assert snapshot.current_phase == second
        assert snapshot.human_message == "Phase 2: 3 times daily"
        assert snapshot.days_remaining == 7

    def test_last_instant_still_active(self, taper_timeline):
        snapshot = evaluate_status(taper_timeline, datetime(2024, 1, 15))
        assert snapshot.status is TreatmentStatus.ACTIVE
        assert snapshot.days_remaining == 0

    def test_completed(self, taper_timeline):
        snapshot = evaluate_status(taper_timeline, datetime(2024, 1, 16))
        assert snapshot.status is TreatmentStatus.COMPLETED
        assert snapshot.human_message == "Treatment completed"

    def test_chronic_is_ongoing(self):
        record = MedicationRecord(name="Levothyroxine", full_instructions="")
        timeline = build_timeline(record, classify(""), datetime(2024, 1, 1))
        snapshot = evaluate_status(timeline, datetime(2024, 6, 1))
        assert snapshot.status is TreatmentStatus.ACTIVE
        assert snapshot.human_message == "Continue as prescribed — no specific end date"
        assert snapshot.current_phase is None

    def test_gap_yields_unknown(self, caplog):
        timeline = make_timeline([
            make_phase(1, datetime(2024, 1, 1), datetime(2024, 1, 8)),
            make_phase(2, datetime(2024, 1, 10), datetime(2024, 1, 17)),
        ])
        assert not timeline.is_contiguous()

        snapshot = evaluate_status(timeline, datetime(2024, 1, 9))
        assert snapshot.status is TreatmentStatus.UNKNOWN
        assert snapshot.human_message == "Status unavailable"
        assert "no single active phase" in caplog.text

    def test_custom_date_format(self, taper_timeline):
        snapshot = evaluate_status(taper_timeline, datetime(2023, 12, 25), "%d/%m/%Y")
        assert snapshot.human_message == "Starts 01/01/2024"

    def test_snapshot_serializes(self, taper_timeline):
        data = evaluate_status(taper_timeline, datetime(2024, 1, 3)).to_dict()
        assert data["status"] == "active"
        assert data["current_phase"]["index"] == 1


class TestProgress:
    """overall_progress is monotonic and clamped."""

    def test_progress_points(self, taper_timeline):
        assert overall_progress(taper_timeline, datetime(2023, 12, 1)) == 0
        assert overall_progress(taper_timeline, datetime(2024, 1, 1)) == 0
        assert overall_progress(taper_timeline, datetime(2024, 1, 4)) == 21
        assert overall_progress(taper_timeline, datetime(2024, 1, 8)) == 50
        assert overall_progress(taper_timeline, datetime(2024, 1, 15)) == 100
        assert overall_progress(taper_timeline, datetime(2025, 1, 1)) == 100

    def test_monotonic_over_hours(self, taper_timeline):
        now = datetime(2023, 12, 29)
        previous = -1
        while now < datetime(2024, 1, 18):
            progress = overall_progress(taper_timeline, now)
            assert 0 <= progress <= 100
            assert progress >= previous
            previous = progress
            now += timedelta(hours=5)

    def test_zero_duration_timeline(self):
        phase = make_phase(1, datetime(2024, 1, 1), datetime(2024, 1, 1))
        assert overall_progress(make_timeline([phase]), datetime(2024, 1, 1)) == 0

    def test_empty_timeline(self):
        timeline = Timeline(
            medication_name="None",
            start_date=datetime(2024, 1, 1),
            phases=(),
            total_duration_days=0,
            current_phase_index=0,
            overall_progress_percent=0,
            has_schedule=False,
            regimen_type=RegimenType.CHRONIC,
            message="Continue as prescribed — no specific end date"
        )
        assert overall_progress(timeline, datetime(2024, 1, 5)) == 0
        assert current_phase_index(timeline, datetime(2024, 1, 5)) == 0


class TestCurrentPhaseIndex:

    def test_index_over_time(self, taper_timeline):
        assert current_phase_index(taper_timeline, datetime(2023, 12, 1)) == 1
        assert current_phase_index(taper_timeline, datetime(2024, 1, 2)) == 1
        assert current_phase_index(taper_timeline, datetime(2024, 1, 8)) == 2
        assert current_phase_index(taper_timeline, datetime(2024, 2, 1)) == 3

    def test_active_phase_lookup(self, taper_timeline):
        assert active_phase(taper_timeline, datetime(2024, 1, 9)).index == 2
        assert active_phase(taper_timeline, datetime(2024, 3, 1)) is None

    def test_date_now_accepted(self, taper_timeline):
        assert current_phase_index(taper_timeline, date(2024, 1, 9)) == 2


class TestFormatting:

    def test_short_format(self):
        assert format_date(datetime(2024, 1, 1)) == "Mon, Jan 1"
        assert format_date(datetime(2024, 3, 15)) == "Fri, Mar 15"

    def test_long_format(self):
        assert format_date_long(datetime(2024, 1, 1)) == "Monday, January 1, 2024"
