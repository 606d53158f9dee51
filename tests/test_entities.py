"""
Tests for core entity models.

Verifies:
- Phase validation fails loudly on programmer error
- MedicationRecord accepts storage documents as-is
- Derived display helpers
"""

import pytest
from datetime import datetime, timezone
from medregimen.entities import MedicationRecord, Phase
from medregimen.extraction import MAX_TIMES_PER_DAY


class TestPhaseValidation:
    """Test Phase entity validation."""

    def test_valid_phase(self):
        phase = Phase(
            index=2,
            start_date=datetime(2024, 1, 8),
            end_date=datetime(2024, 1, 15),
            times_per_day=3,
            dosage_units=2,
            instruction_text="2 drops 3 times daily"
        )
        assert phase.duration_days == 7
        assert phase.timing is None

    def test_zero_length_phase_allowed(self):
        phase = Phase(
            index=1,
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 1, 1),
            times_per_day=1
        )
        assert phase.duration_days == 0

    def test_index_must_be_positive(self):
        with pytest.raises(ValueError, match="index"):
            Phase(index=0, start_date=datetime(2024, 1, 1),
                  end_date=datetime(2024, 1, 2), times_per_day=1)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError, match="precedes"):
            Phase(index=1, start_date=datetime(2024, 1, 5),
                  end_date=datetime(2024, 1, 2), times_per_day=1)

    def test_times_per_day_must_be_positive(self):
        with pytest.raises(ValueError, match="times_per_day"):
            Phase(index=1, start_date=datetime(2024, 1, 1),
                  end_date=datetime(2024, 1, 2), times_per_day=0)

    def test_times_per_day_capped_at_hourly(self):
        with pytest.raises(ValueError, match="times_per_day"):
            Phase(index=1, start_date=datetime(2024, 1, 1),
                  end_date=datetime(2024, 1, 2), times_per_day=MAX_TIMES_PER_DAY + 1)

    def test_hourly_dosing_allowed(self):
        phase = Phase(index=1, start_date=datetime(2024, 1, 1),
                      end_date=datetime(2024, 1, 2), times_per_day=MAX_TIMES_PER_DAY)
        assert phase.times_per_day == 24

    def test_dosage_units_must_be_positive(self):
        with pytest.raises(ValueError, match="dosage_units"):
            Phase(index=1, start_date=datetime(2024, 1, 1),
                  end_date=datetime(2024, 1, 2), times_per_day=1, dosage_units=0)

    def test_to_dict(self):
        phase = Phase(index=1, start_date=datetime(2024, 1, 1),
                      end_date=datetime(2024, 1, 8), times_per_day=4,
                      instruction_text="4 times daily", timing="morning")
        data = phase.to_dict()
        assert data["type"] == "Phase"
        assert data["start_date"] == "2024-01-01T00:00:00"
        assert data["duration_days"] == 7
        assert data["timing"] == "morning"


class TestMedicationRecord:
    """Records are read, never validated into failure."""

    def test_minimal_record(self):
        record = MedicationRecord(name="Lisinopril")
        assert record.instructions == ""
        assert record.has_structured_schedule is False
        assert record.is_currently_active is True

    def test_none_instructions_read_as_empty(self):
        record = MedicationRecord(name="Lisinopril", full_instructions=None)
        assert record.instructions == ""

    def test_unset_active_flag_means_active(self):
        assert MedicationRecord(name="A", is_active=None).is_currently_active is True
        assert MedicationRecord(name="A", is_active=False).is_currently_active is False

    def test_blank_structured_fields_do_not_count(self):
        record = MedicationRecord(name="A", frequency="  ", duration="")
        assert record.has_structured_schedule is False

    def test_display_name(self):
        assert MedicationRecord(name="prednisolone acetate").display_name == "Prednisolone Acetate"

    def test_formatted_instructions(self):
        record = MedicationRecord(
            name="Prednisolone",
            dosage="1 drop",
            frequency="4 times daily",
            timing="morning",
            route="ophthalmic",
            laterality="left eye",
            duration="7 days"
        )
        assert record.formatted_instructions == (
            "1 drop Prednisolone 4 times daily morning ophthalmic left eye for 7 days"
        )

    def test_formatted_instructions_skips_missing(self):
        assert MedicationRecord(name="Aspirin").formatted_instructions == "Aspirin"


class TestFromDict:
    """Storage documents in either key style."""

    def test_camel_case_document(self):
        record = MedicationRecord.from_dict({
            "id": "med-1",
            "name": "Amoxicillin",
            "fullInstructions": "take 3 times per day for 7 days",
            "frequency": 3,
            "duration": "7",
            "startDate": "2024-01-05T08:00:00Z",
            "createdAt": "2024-01-04T12:00:00",
            "isActive": True,
        })
        assert record.medication_id == "med-1"
        assert record.full_instructions == "take 3 times per day for 7 days"
        assert record.frequency == "3"
        assert record.start_date == datetime(2024, 1, 5, 8, 0, tzinfo=timezone.utc)
        assert record.created_at == datetime(2024, 1, 4, 12, 0)
        assert record.is_active is True

    def test_unparseable_dates_become_none(self):
        record = MedicationRecord.from_dict({
            "name": "Amoxicillin",
            "startDate": "next tuesday",
            "createdAt": {"seconds": 12},
        })
        assert record.start_date is None
        assert record.created_at is None

    def test_missing_fields(self):
        record = MedicationRecord.from_dict({})
        assert record.name == ""
        assert record.full_instructions == ""
        assert record.is_active is None
        assert record.is_currently_active is True

    def test_snake_case_round_trip(self):
        original = MedicationRecord(
            name="Prednisolone",
            full_instructions="4 times daily for 1 week, then 3 times daily for 1 week",
            start_date=datetime(2024, 1, 1),
            timing="at bedtime",
            medication_id="med-2"
        )
        assert MedicationRecord.from_dict(original.to_dict()) == original
