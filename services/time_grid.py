"""Time grid construction: turns an event configuration into ordered time slots."""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from models.entities import Break, EventConfig, TimeSlot

logger = logging.getLogger(__name__)


def parse_time_of_day(value: str) -> time:
    """Parse an HH:MM string into a time."""
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")


def get_date_range(start_date: date, end_date: date) -> list[date]:
    """All dates from start to end, inclusive."""
    days = []
    current_date = start_date
    while current_date <= end_date:
        days.append(current_date)
        current_date += timedelta(days=1)
    return days


def group_slots_by_date(slots: list[TimeSlot], include_breaks: bool = False) -> dict[date, list[TimeSlot]]:
    """Slots grouped per date, keeping grid order within each date."""
    grouped: dict[date, list[TimeSlot]] = defaultdict(list)
    for slot in slots:
        if slot.is_break and not include_breaks:
            continue
        grouped[slot.date].append(slot)
    return dict(grouped)


class TimeGridBuilder:
    """
    Builds the slot grid for an event.

    Each day runs a cursor from the daily start time. A break is emitted as
    its own slot whenever the cursor sits inside it or a full-length meeting
    would cross its start; the meeting slot before it is shortened to end at
    the break. The final slot of the day is clipped to the daily end time.
    Overlapping breaks are not resolved and must be avoided by the caller.
    """

    def __init__(self, config: EventConfig, default_timezone: str = "UTC"):
        problems = config.validate()
        if problems:
            raise ValueError("Invalid event configuration: " + "; ".join(problems))

        tz_name = config.timezone or default_timezone
        try:
            self.tz = pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone {tz_name!r}")

        self.config = config
        self.duration = timedelta(minutes=config.meeting_duration)
        self.day_start = parse_time_of_day(config.start_time)
        self.day_end = parse_time_of_day(config.end_time)
        self.breaks = sorted(config.breaks, key=lambda brk: parse_time_of_day(brk.start_time))

    def build(self) -> list[TimeSlot]:
        """Slots for every event date, in ascending date order."""
        slots = []
        for day in get_date_range(self.config.start_date, self.config.end_date):
            slots.extend(self.build_day(day))
        return slots

    def build_day(self, day: date) -> list[TimeSlot]:
        day_start = datetime.combine(day, self.day_start)
        day_end = datetime.combine(day, self.day_end)
        windows = self._break_windows(day, day_end)

        slots = []
        cursor = day_start
        while cursor < day_end:
            blocking = self._find_blocking_break(cursor, windows)
            if blocking is not None:
                brk, break_start, break_end = blocking
                if cursor < break_start:
                    slots.append(self._make_slot(day, cursor, min(break_start, day_end)))
                shown_start = max(break_start, cursor)
                shown_end = min(break_end, day_end)
                if shown_start < shown_end:
                    slots.append(self._make_slot(day, shown_start, shown_end, brk))
                cursor = break_end
            else:
                slot_end = min(cursor + self.duration, day_end)
                slots.append(self._make_slot(day, cursor, slot_end))
                cursor = slot_end

        return slots

    def _break_windows(self, day: date, day_end: datetime) -> list[tuple[Break, datetime, datetime]]:
        windows = []
        for brk in self.breaks:
            break_start = datetime.combine(day, parse_time_of_day(brk.start_time))
            break_end = datetime.combine(day, parse_time_of_day(brk.end_time))
            if break_end <= break_start:
                logger.warning("Skipping break %r: end %s is not after start %s",
                               brk.name, brk.end_time, brk.start_time)
                continue
            if break_start >= day_end:
                # After hours; must not shorten the last meeting slot
                continue
            windows.append((brk, break_start, break_end))
        return windows

    def _find_blocking_break(
        self,
        cursor: datetime,
        windows: list[tuple[Break, datetime, datetime]]
    ) -> Optional[tuple[Break, datetime, datetime]]:
        for window in windows:
            _, break_start, break_end = window
            within_break = break_start <= cursor < break_end
            would_overlap = cursor < break_start < cursor + self.duration
            if within_break or would_overlap:
                return window
        return None

    def _make_slot(self, day: date, start: datetime, end: datetime, brk: Optional[Break] = None) -> TimeSlot:
        slot_id = f"{day.isoformat()}T{start:%H%M}"
        if brk is not None:
            slot_id += "B"
        return TimeSlot(
            id=slot_id,
            date=day,
            start=self.tz.localize(start),
            end=self.tz.localize(end),
            is_break=brk is not None,
            break_name=(brk.name or None) if brk is not None else None,
        )


def generate_time_slots(config: EventConfig, default_timezone: str = "UTC") -> list[TimeSlot]:
    """Build the full slot grid for an event configuration."""
    return TimeGridBuilder(config, default_timezone=default_timezone).build()
