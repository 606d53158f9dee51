"""
Daily dosing schedule generation.

Design Principles:
- Pure: a phase, a calendar day and timing preferences fully determine the output
- Timing preferences are passed in explicitly; there is no global settings object
- Adherence ("taken") is not tracked here; every item starts untaken

Clock-time policy, in priority order:
1. Timing keyword on the phase (bedtime, morning, afternoon, evening):
   one dose at the preferred time for that part of the day
2. Fixed table for 1-4 doses per day
3. More than 4 doses: evenly spaced from 08:00, spacing = floor(24h / n)
   minutes, wrapped modulo 24h; n is at most MAX_TIMES_PER_DAY (hourly)
"""

from datetime import datetime, time
from typing import Dict, List, Optional, Tuple

import numpy as np

from medregimen.config import TimingPreferences
from medregimen.entities import Phase
from medregimen.extraction import MAX_TIMES_PER_DAY, DateLike, as_date
from medregimen.output_schema import DailySchedule, DailyScheduleItem, ReminderSlot, Timeline

MINUTES_PER_DAY = 24 * 60

FIRST_DOSE_TIME = time(8, 0)

FIXED_DOSE_TIMES: Dict[int, Tuple[time, ...]] = {
    1: (time(8, 0),),
    2: (time(8, 0), time(20, 0)),
    3: (time(8, 0), time(14, 0), time(20, 0)),
    4: (time(8, 0), time(12, 0), time(18, 0), time(22, 0)),
}

# Checked in this order; "morning and bedtime" resolves to bedtime
TIMING_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("bedtime", "Bedtime"),
    ("morning", "Morning"),
    ("afternoon", "Afternoon"),
    ("evening", "Evening"),
)


def clock_label(value: time) -> str:
    """12-hour label without a leading zero: "8:00 AM", "12:00 PM"."""
    hour = value.hour % 12 or 12
    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{hour}:{value.minute:02d} {suffix}"


def timing_keyword(timing: Optional[str]) -> Optional[str]:
    """First known time-of-day keyword contained in timing, if any."""
    text = (timing or "").lower()
    for keyword, _ in TIMING_KEYWORDS:
        if keyword in text:
            return keyword
    return None


def evenly_spaced_times(times_per_day: int, first: time = FIRST_DOSE_TIME) -> Tuple[time, ...]:
    """
    times_per_day clock times from first, floor(24h / n) minutes apart.

    n is capped at MAX_TIMES_PER_DAY so the spacing never collapses to zero.
    """
    if times_per_day < 1:
        return ()
    times_per_day = min(times_per_day, MAX_TIMES_PER_DAY)
    start = first.hour * 60 + first.minute
    spacing = MINUTES_PER_DAY // times_per_day
    minutes = (start + np.arange(times_per_day) * spacing) % MINUTES_PER_DAY
    return tuple(time(int(m) // 60, int(m) % 60) for m in minutes)


def suggested_times(
    times_per_day: int,
    timing: Optional[str] = None,
    preferences: Optional[TimingPreferences] = None
) -> Tuple[time, ...]:
    """Clock times of the doses of one day."""
    preferences = preferences or TimingPreferences()

    keyword = timing_keyword(timing)
    if keyword is not None:
        return (getattr(preferences, keyword),)

    if times_per_day in FIXED_DOSE_TIMES:
        return FIXED_DOSE_TIMES[times_per_day]

    return evenly_spaced_times(times_per_day)


def phase_covers(phase: Phase, day: DateLike) -> bool:
    """True if the calendar day lies within [start day, end day]."""
    target = as_date(day)
    return phase.start_date.date() <= target <= phase.end_date.date()


def generate_daily_schedule(
    phase: Phase,
    day: DateLike,
    preferences: Optional[TimingPreferences] = None
) -> List[DailyScheduleItem]:
    """
    Dose events for one day of a phase.

    Args:
        phase: Phase whose frequency/dosage/timing drive the schedule
        day: Calendar day (a datetime is reduced to its date)
        preferences: Clock times for timing keywords (defaults if None)

    Returns:
        Items in suggested order; empty if day is outside the phase
    """
    if not phase_covers(phase, day):
        return []

    target = as_date(day)
    tzinfo = phase.start_date.tzinfo
    return [
        DailyScheduleItem(
            clock_time=clock_time,
            label=clock_label(clock_time),
            dose_count=phase.dosage_units,
            instruction_text=phase.instruction_text,
            scheduled_datetime=datetime.combine(target, clock_time, tzinfo=tzinfo)
        )
        for clock_time in suggested_times(phase.times_per_day, phase.timing, preferences)
    ]


def daily_schedule_for_timeline(
    timeline: Timeline,
    day: DateLike,
    preferences: Optional[TimingPreferences] = None
) -> Optional[DailySchedule]:
    """
    Schedule for the phase covering day.

    On a boundary day shared by two phases the later phase wins, matching
    the inclusive-start policy of the status evaluator.
    """
    for phase in reversed(timeline.phases):
        if phase_covers(phase, day):
            items = generate_daily_schedule(phase, day, preferences)
            return DailySchedule(date=as_date(day), phase=phase, items=tuple(items))
    return None


def reminder_slots(
    times_per_day: int,
    timing: Optional[str] = None,
    preferences: Optional[TimingPreferences] = None
) -> List[ReminderSlot]:
    """
    Labelled repeating reminder times for the reminder collaborator.

    Unlike the daily schedule, the 1-4 dose cases follow the user's
    preferred times (Morning / Afternoon / Evening / Bedtime, with a fixed
    Noon slot for four doses a day).
    """
    preferences = preferences or TimingPreferences()

    keyword = timing_keyword(timing)
    if keyword is not None:
        label = dict(TIMING_KEYWORDS)[keyword]
        return [_slot(getattr(preferences, keyword), label)]

    named = {
        1: [(preferences.morning, "Morning")],
        2: [(preferences.morning, "Morning"), (preferences.evening, "Evening")],
        3: [
            (preferences.morning, "Morning"),
            (preferences.afternoon, "Afternoon"),
            (preferences.evening, "Evening"),
        ],
        4: [
            (preferences.morning, "Morning"),
            (time(12, 0), "Noon"),
            (preferences.evening, "Evening"),
            (preferences.bedtime, "Bedtime"),
        ],
    }
    if times_per_day in named:
        return [_slot(clock_time, label) for clock_time, label in named[times_per_day]]

    return [
        _slot(clock_time, clock_label(clock_time))
        for clock_time in evenly_spaced_times(times_per_day, preferences.morning)
    ]


def reminder_slots_for_phase(
    phase: Phase,
    preferences: Optional[TimingPreferences] = None
) -> List[ReminderSlot]:
    return reminder_slots(phase.times_per_day, phase.timing, preferences)


def _slot(clock_time: time, label: str) -> ReminderSlot:
    return ReminderSlot(hour=clock_time.hour, minute=clock_time.minute, label=label)
