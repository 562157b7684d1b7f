"""Schedule aggregate: meetings, time slots and unscheduled pairs with lookup indexes."""

from collections import defaultdict
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from models.entities import Meeting, ScheduleSnapshot, TimeSlot, UnscheduledPair


class Schedule:
    """
    Mutable schedule state for one event.

    Meetings are only changed through the methods here so the supplier/slot
    and buyer/slot indexes stay in step. Indexes cover active meetings only
    and are rebuilt lazily on the first lookup after a change.
    """

    def __init__(
        self,
        meetings: Optional[Iterable[Meeting]] = None,
        time_slots: Optional[Iterable[TimeSlot]] = None,
        unscheduled_pairs: Optional[Iterable[UnscheduledPair]] = None
    ):
        self.meetings: list[Meeting] = list(meetings or [])
        self.time_slots: list[TimeSlot] = list(time_slots or [])
        self.unscheduled_pairs: list[UnscheduledPair] = list(unscheduled_pairs or [])
        self._dirty = True
        self._meeting_map: dict[str, Meeting] = {}
        self._slot_map: dict[str, TimeSlot] = {}
        self._slot_position: dict[str, int] = {}
        self._supplier_index: dict[tuple[str, str], list[Meeting]] = {}
        self._buyer_index: dict[tuple[str, str], list[Meeting]] = {}

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    def _ensure_index(self):
        if not self._dirty:
            return
        supplier_index = defaultdict(list)
        buyer_index = defaultdict(list)
        for meeting in self.meetings:
            if not meeting.is_active:
                continue
            supplier_index[(meeting.supplier_id, meeting.time_slot_id)].append(meeting)
            buyer_index[(meeting.buyer_id, meeting.time_slot_id)].append(meeting)
        self._supplier_index = dict(supplier_index)
        self._buyer_index = dict(buyer_index)
        self._meeting_map = {m.id: m for m in self.meetings}
        self._slot_map = {s.id: s for s in self.time_slots}
        self._slot_position = {s.id: i for i, s in enumerate(self.time_slots)}
        self._dirty = False

    def touch(self):
        """Invalidate the indexes after an in-place change."""
        self._dirty = True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        self._ensure_index()
        return self._meeting_map.get(meeting_id)

    def get_slot(self, slot_id: str) -> Optional[TimeSlot]:
        self._ensure_index()
        return self._slot_map.get(slot_id)

    def slot_position(self, slot_id: str) -> Optional[int]:
        """Index of a slot in grid order, or None if unknown."""
        self._ensure_index()
        return self._slot_position.get(slot_id)

    @property
    def meeting_slots(self) -> list[TimeSlot]:
        return [s for s in self.time_slots if not s.is_break]

    @property
    def event_dates(self) -> list[date]:
        return sorted({s.date for s in self.time_slots})

    def slots_for_date(self, on_date: date, include_breaks: bool = False) -> list[TimeSlot]:
        return [
            s for s in self.time_slots
            if s.date == on_date and (include_breaks or not s.is_break)
        ]

    def active_meetings(self) -> list[Meeting]:
        return [m for m in self.meetings if m.is_active]

    def supplier_meetings_at(
        self,
        supplier_id: str,
        slot_id: str,
        exclude_meeting_ids: Iterable[str] = ()
    ) -> list[Meeting]:
        """Active meetings the supplier holds in a slot."""
        self._ensure_index()
        excluded = set(exclude_meeting_ids)
        return [
            m for m in self._supplier_index.get((supplier_id, slot_id), [])
            if m.id not in excluded
        ]

    def buyer_meetings_at(
        self,
        buyer_id: str,
        slot_id: str,
        exclude_meeting_ids: Iterable[str] = ()
    ) -> list[Meeting]:
        """Active meetings the buyer holds in a slot."""
        self._ensure_index()
        excluded = set(exclude_meeting_ids)
        return [
            m for m in self._buyer_index.get((buyer_id, slot_id), [])
            if m.id not in excluded
        ]

    def is_supplier_free(self, supplier_id: str, slot_id: str, exclude_meeting_ids: Iterable[str] = ()) -> bool:
        return not self.supplier_meetings_at(supplier_id, slot_id, exclude_meeting_ids)

    def is_buyer_free(self, buyer_id: str, slot_id: str, exclude_meeting_ids: Iterable[str] = ()) -> bool:
        return not self.buyer_meetings_at(buyer_id, slot_id, exclude_meeting_ids)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_meeting(self, meeting: Meeting):
        self.meetings.append(meeting)
        self.touch()

    def update_meeting(self, meeting_id: str, **changes) -> Optional[Meeting]:
        """Apply field changes to a meeting in place; its identity is kept."""
        meeting = self.get_meeting(meeting_id)
        if meeting is None:
            return None
        for name, value in changes.items():
            if not hasattr(meeting, name):
                raise AttributeError(f"Meeting has no field {name!r}")
            setattr(meeting, name, value)
        self.touch()
        return meeting

    def remove_meetings_where(self, predicate) -> list[Meeting]:
        """Drop meetings matching predicate; returns the removed meetings."""
        removed = [m for m in self.meetings if predicate(m)]
        if removed:
            self.meetings = [m for m in self.meetings if not predicate(m)]
            self.touch()
        return removed

    def replace_all(
        self,
        meetings: Iterable[Meeting],
        time_slots: Iterable[TimeSlot],
        unscheduled_pairs: Iterable[UnscheduledPair]
    ):
        self.meetings = list(meetings)
        self.time_slots = list(time_slots)
        self.unscheduled_pairs = list(unscheduled_pairs)
        self.touch()

    def clear(self):
        self.replace_all([], [], [])

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> ScheduleSnapshot:
        """Copy the current state; later in-place edits do not leak into it."""
        return ScheduleSnapshot(
            meetings=tuple(replace(m) for m in self.meetings),
            time_slots=tuple(self.time_slots),
            unscheduled_pairs=tuple(self.unscheduled_pairs),
        )

    def restore(self, snapshot: ScheduleSnapshot):
        self.replace_all(
            [replace(m) for m in snapshot.meetings],
            snapshot.time_slots,
            snapshot.unscheduled_pairs,
        )
