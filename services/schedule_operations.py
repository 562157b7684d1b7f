"""Operator-facing schedule operations with undo/redo."""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

import pytz

from models.entities import (
    Buyer,
    EventConfig,
    Meeting,
    MeetingStatus,
    OperationResult,
    ScheduleResult,
    ScheduleSnapshot,
    StatusSummary,
    Supplier,
    TimeSlot,
    generate_id,
)
from models.schedule import Schedule
from services.activity_log import ActivityLog, ActivityType
from services.config import SchedulerSettings, get_settings
from services.conflict_detection import ConflictEngine
from services.history import HistoryTracker
from services.participant_registry import ParticipantRegistry
from services.preferences import permitted_buyers
from services.scheduling_engine import SchedulingEngine

logger = logging.getLogger(__name__)

# Allowed manual status changes. Bumping has its own operation and
# nothing leaves a terminal status.
STATUS_TRANSITIONS = {
    MeetingStatus.SCHEDULED: {
        MeetingStatus.IN_PROGRESS, MeetingStatus.DELAYED, MeetingStatus.CANCELLED, MeetingStatus.SCHEDULED,
    },
    MeetingStatus.IN_PROGRESS: {
        MeetingStatus.COMPLETED, MeetingStatus.RUNNING_LATE, MeetingStatus.CANCELLED, MeetingStatus.SCHEDULED,
    },
    MeetingStatus.DELAYED: {
        MeetingStatus.DELAYED, MeetingStatus.IN_PROGRESS, MeetingStatus.CANCELLED, MeetingStatus.SCHEDULED,
    },
    MeetingStatus.RUNNING_LATE: {
        MeetingStatus.DELAYED, MeetingStatus.COMPLETED, MeetingStatus.CANCELLED, MeetingStatus.SCHEDULED,
    },
    MeetingStatus.COMPLETED: {MeetingStatus.CANCELLED, MeetingStatus.SCHEDULED},
    MeetingStatus.BUMPED: set(),
    MeetingStatus.CANCELLED: set(),
}

BUMPABLE_STATUSES = (MeetingStatus.SCHEDULED, MeetingStatus.DELAYED, MeetingStatus.RUNNING_LATE)

_STATUS_ACTIVITY = {
    MeetingStatus.IN_PROGRESS: ActivityType.STARTED,
    MeetingStatus.COMPLETED: ActivityType.COMPLETED,
    MeetingStatus.DELAYED: ActivityType.DELAYED,
    MeetingStatus.RUNNING_LATE: ActivityType.RUNNING_LATE,
    MeetingStatus.SCHEDULED: ActivityType.RESET,
}


def _utcnow() -> datetime:
    return datetime.now(pytz.UTC)


class ScheduleManager:
    """
    Owns one event session: configuration, participants, schedule and history.

    Every mutating operation returns an OperationResult. Expected failures
    (unknown ids, refused transitions, supplier double-booking) come back
    as success=False and leave the schedule untouched. A snapshot is pushed
    to history right before each change, under the same lock as the change.
    """

    def __init__(
        self,
        config: Optional[EventConfig] = None,
        suppliers: Optional[list[Supplier]] = None,
        buyers: Optional[list[Buyer]] = None,
        settings: Optional[SchedulerSettings] = None,
        id_factory: Callable[[], str] = generate_id
    ):
        self.settings = settings or get_settings()
        self.config = config
        self.registry = ParticipantRegistry(suppliers, buyers)
        self.schedule = Schedule()
        self.history: HistoryTracker[ScheduleSnapshot] = HistoryTracker(self.settings.history_depth)
        self.activity = ActivityLog(max_entries=self.settings.activity_log_size)
        self.engine = SchedulingEngine(self.settings, id_factory=id_factory)
        self.conflicts = ConflictEngine(self.schedule, self.registry)
        self.id_factory = id_factory
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(self, message: str, meeting_id: Optional[str] = None) -> OperationResult:
        logger.warning(message)
        return OperationResult(success=False, message=message, meeting_id=meeting_id)

    def _checkpoint(self, label: str):
        self.history.push(self.schedule.snapshot(), label)

    def _names(self, meeting: Meeting) -> tuple[str, str]:
        supplier = self.registry.get_supplier_by_id(meeting.supplier_id)
        buyer = self.registry.get_buyer_by_id(meeting.buyer_id)
        return (supplier.name if supplier else "Unknown", buyer.name if buyer else "Unknown")

    def _log_activity(self, activity_type: ActivityType, meeting: Meeting, reason: Optional[str] = None):
        supplier_name, buyer_name = self._names(meeting)
        self.activity.record(activity_type, meeting.id, supplier_name, buyer_name, reason)
        logger.debug("%s meeting %s (%s / %s)", activity_type.value, meeting.id, supplier_name, buyer_name)

    def _slot_label(self, slot: TimeSlot) -> str:
        return f"{slot.date.isoformat()} {slot.start:%H:%M}"

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def load_project(self, config: EventConfig, suppliers: list[Supplier], buyers: list[Buyer]) -> OperationResult:
        """Switch to another event. Schedule, history and activity are discarded."""
        problems = config.validate()
        if problems:
            return self._fail("Invalid event configuration: " + "; ".join(problems))
        try:
            registry = ParticipantRegistry(suppliers, buyers)
        except ValueError as e:
            return self._fail(str(e))

        with self._lock:
            self.config = config
            self.registry = registry
            self.conflicts = ConflictEngine(self.schedule, self.registry)
            self._reset_session()

        logger.info("Loaded event %r with %d suppliers and %d buyers",
                    config.name, len(suppliers), len(buyers))
        return OperationResult(True, f"Loaded {config.name}")

    def set_event_config(self, config: EventConfig) -> OperationResult:
        problems = config.validate()
        if problems:
            return self._fail("Invalid event configuration: " + "; ".join(problems))

        with self._lock:
            self.config = config
            self._reset_session()

        logger.info("Event configuration set to %r", config.name)
        return OperationResult(True, f"Event configuration updated: {config.name}")

    def _reset_session(self):
        self.schedule.clear()
        self.history.clear()
        self.activity.clear()

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate_schedule(self) -> OperationResult:
        """Run the assignment engine for the loaded event and commit the result."""
        if self.config is None:
            return self._fail("No event configuration loaded")
        try:
            result = self.engine.generate_schedule(
                self.config, self.registry.list_suppliers(), self.registry.list_buyers()
            )
        except ValueError as e:
            return self._fail(str(e))
        return self.apply_schedule_result(result)

    def apply_schedule_result(self, result: ScheduleResult) -> OperationResult:
        """Replace the schedule with a generated result, e.g. from the worker."""
        with self._lock:
            self._checkpoint("Generate schedule")
            self.schedule.replace_all(result.meetings, result.time_slots, result.unscheduled_pairs)

        message = f"Scheduled {len(result.meetings)} meetings"
        if result.unscheduled_pairs:
            message += f", {len(result.unscheduled_pairs)} could not be placed"
        logger.info(message)
        return OperationResult(True, message, meeting_ids=[m.id for m in result.meetings])

    def clear_schedule(self) -> OperationResult:
        with self._lock:
            if not self.schedule.meetings and not self.schedule.time_slots:
                return OperationResult(True, "Schedule already empty")
            self._checkpoint("Clear schedule")
            self.schedule.clear()
        logger.info("Schedule cleared")
        return OperationResult(True, "Schedule cleared")

    # ------------------------------------------------------------------
    # Manual edits
    # ------------------------------------------------------------------

    def add_meeting(self, supplier_id: str, buyer_id: str, slot_id: str) -> OperationResult:
        """
        Place a new meeting by hand.

        Only a supplier double-booking is refused. Buyer double-bookings and
        preference violations are allowed; inspect them beforehand with
        conflicts.check_add.
        """
        with self._lock:
            supplier = self.registry.get_supplier_by_id(supplier_id)
            if supplier is None:
                return self._fail(f"Supplier {supplier_id} not found")
            buyer = self.registry.get_buyer_by_id(buyer_id)
            if buyer is None:
                return self._fail(f"Buyer {buyer_id} not found")
            slot = self.schedule.get_slot(slot_id)
            if slot is None:
                return self._fail(f"Time slot {slot_id} not found")
            if slot.is_break:
                return self._fail(f"Cannot schedule a meeting during {slot.break_name or 'a break'}")

            busy = self.schedule.supplier_meetings_at(supplier_id, slot_id)
            if busy:
                _, other_buyer = self._names(busy[0])
                return self._fail(
                    f"{supplier.name} already has a meeting at {self._slot_label(slot)} with {other_buyer}"
                )

            warnings = self.conflicts.check_add(supplier_id, buyer_id, slot_id).conflicts
            meeting = Meeting(
                id=self.id_factory(),
                supplier_id=supplier_id,
                buyer_id=buyer_id,
                time_slot_id=slot_id,
            )
            self._checkpoint(f"Add meeting {supplier.name} / {buyer.name}")
            self.schedule.add_meeting(meeting)
            self._log_activity(ActivityType.ADDED, meeting)

        message = f"Meeting added: {supplier.name} with {buyer.name} at {self._slot_label(slot)}"
        if warnings:
            message += f" ({len(warnings)} warning{'s' if len(warnings) != 1 else ''})"
        return OperationResult(True, message, meeting_id=meeting.id, new_slot_id=slot_id)

    def move_meeting(self, meeting_id: str, new_slot_id: str) -> OperationResult:
        """Move a meeting to another slot; refused only if the supplier is busy there."""
        with self._lock:
            meeting = self.schedule.get_meeting(meeting_id)
            if meeting is None:
                return self._fail(f"Meeting {meeting_id} not found")
            if not meeting.is_active:
                return self._fail(f"Cannot move a {meeting.status.value} meeting", meeting_id)
            slot = self.schedule.get_slot(new_slot_id)
            if slot is None:
                return self._fail(f"Time slot {new_slot_id} not found", meeting_id)
            if slot.is_break:
                return self._fail(f"Cannot move a meeting into {slot.break_name or 'a break'}", meeting_id)
            if meeting.time_slot_id == new_slot_id:
                return OperationResult(True, "Meeting is already in that slot",
                                       meeting_id=meeting_id, new_slot_id=new_slot_id)
            if not self.schedule.is_supplier_free(meeting.supplier_id, new_slot_id, (meeting.id,)):
                supplier_name, _ = self._names(meeting)
                return self._fail(
                    f"{supplier_name} already has a meeting at {self._slot_label(slot)}", meeting_id
                )

            self._checkpoint("Move meeting")
            self.schedule.update_meeting(meeting_id, time_slot_id=new_slot_id)
            self._log_activity(ActivityType.MOVED, meeting)

        return OperationResult(True, f"Meeting moved to {self._slot_label(slot)}",
                               meeting_id=meeting_id, new_slot_id=new_slot_id)

    def swap_meetings(self, meeting_id_1: str, meeting_id_2: str) -> OperationResult:
        """Exchange the slots of two active meetings."""
        with self._lock:
            first = self.schedule.get_meeting(meeting_id_1)
            second = self.schedule.get_meeting(meeting_id_2)
            if first is None or second is None:
                missing = meeting_id_1 if first is None else meeting_id_2
                return self._fail(f"Meeting {missing} not found")
            if meeting_id_1 == meeting_id_2:
                return self._fail("Cannot swap a meeting with itself", meeting_id_1)
            if not first.is_active or not second.is_active:
                return self._fail("Only active meetings can be swapped")

            slot_1, slot_2 = first.time_slot_id, second.time_slot_id
            if slot_1 == slot_2:
                return OperationResult(True, "Meetings already share a slot",
                                       meeting_ids=[meeting_id_1, meeting_id_2])

            both = (first.id, second.id)
            if (not self.schedule.is_supplier_free(first.supplier_id, slot_2, both)
                    or not self.schedule.is_supplier_free(second.supplier_id, slot_1, both)):
                return self._fail("Swap would double-book a supplier")

            self._checkpoint("Swap meetings")
            self.schedule.update_meeting(first.id, time_slot_id=slot_2)
            self.schedule.update_meeting(second.id, time_slot_id=slot_1)
            self._log_activity(ActivityType.SWAPPED, first)
            self._log_activity(ActivityType.SWAPPED, second)

        return OperationResult(True, "Meetings swapped", meeting_ids=[meeting_id_1, meeting_id_2])

    def cancel_meeting(self, meeting_id: str) -> OperationResult:
        with self._lock:
            meeting = self.schedule.get_meeting(meeting_id)
            if meeting is None:
                return self._fail(f"Meeting {meeting_id} not found")
            if meeting.status == MeetingStatus.CANCELLED:
                return OperationResult(True, "Meeting already cancelled", meeting_id=meeting_id)
            if meeting.status == MeetingStatus.BUMPED:
                return self._fail("A bumped meeting cannot be cancelled", meeting_id)

            self._checkpoint("Cancel meeting")
            self.schedule.update_meeting(meeting_id, status=MeetingStatus.CANCELLED)
            self._log_activity(ActivityType.CANCELLED, meeting)

        return OperationResult(True, "Meeting cancelled", meeting_id=meeting_id)

    def find_next_available_slot(self, meeting_id: str) -> Optional[TimeSlot]:
        """Where bump_meeting would move the meeting, without changing anything."""
        meeting = self.schedule.get_meeting(meeting_id)
        if meeting is None:
            return None
        current = self.schedule.get_slot(meeting.time_slot_id)
        if current is None:
            return None

        current_position = self.schedule.slot_position(current.id)
        for slot in self.schedule.slots_for_date(current.date):
            if self.schedule.slot_position(slot.id) <= current_position:
                continue
            if (self.schedule.is_supplier_free(meeting.supplier_id, slot.id, (meeting.id,))
                    and self.schedule.is_buyer_free(meeting.buyer_id, slot.id, (meeting.id,))):
                return slot
        return None

    def bump_meeting(self, meeting_id: str) -> OperationResult:
        """
        Push a meeting to the next free slot later the same day.

        The original is kept as a bumped record and a linked scheduled
        meeting is created in the new slot. Nothing changes when no later
        slot is free for both parties.
        """
        with self._lock:
            meeting = self.schedule.get_meeting(meeting_id)
            if meeting is None:
                return self._fail(f"Meeting {meeting_id} not found")
            if meeting.status not in BUMPABLE_STATUSES:
                return self._fail(f"Cannot bump a {meeting.status.value} meeting", meeting_id)

            slot = self.find_next_available_slot(meeting_id)
            if slot is None:
                return self._fail("No available slot later today for both participants", meeting_id)

            new_meeting = Meeting(
                id=self.id_factory(),
                supplier_id=meeting.supplier_id,
                buyer_id=meeting.buyer_id,
                time_slot_id=slot.id,
                status=MeetingStatus.SCHEDULED,
                original_time_slot_id=meeting.time_slot_id,
                bumped_from=meeting.id,
            )
            self._checkpoint("Bump meeting")
            self.schedule.update_meeting(meeting_id, status=MeetingStatus.BUMPED, delayed_at=_utcnow())
            self.schedule.add_meeting(new_meeting)
            self._log_activity(ActivityType.BUMPED, meeting)

        return OperationResult(True, f"Meeting bumped to {self._slot_label(slot)}",
                               meeting_id=new_meeting.id, new_slot_id=slot.id)

    def auto_fill_gaps(self) -> OperationResult:
        """
        Reuse cancelled meetings for buyers the supplier still could meet.

        For each cancelled meeting the first registered buyer who is allowed
        by the supplier's preferences, free in that slot, and not already
        meeting that supplier takes it over. The buyer whose meeting was
        cancelled is not a candidate. A second run finds nothing new.
        """
        filled = []
        with self._lock:
            cancelled = [m for m in self.schedule.meetings if m.status == MeetingStatus.CANCELLED]
            for meeting in cancelled:
                slot = self.schedule.get_slot(meeting.time_slot_id)
                if slot is None or slot.is_break:
                    continue
                supplier = self.registry.get_supplier_by_id(meeting.supplier_id)
                if supplier is None:
                    continue
                if not self.schedule.is_supplier_free(supplier.id, slot.id):
                    continue

                # The cancelled buyer is never offered its own slot back
                excluded = {
                    m.buyer_id for m in self.schedule.active_meetings() if m.supplier_id == supplier.id
                }
                excluded.add(meeting.buyer_id)
                buyer = next(
                    (b for b in permitted_buyers(supplier, self.registry.list_buyers())
                     if b.id not in excluded and self.schedule.is_buyer_free(b.id, slot.id)),
                    None,
                )
                if buyer is None:
                    continue

                if not filled:
                    self._checkpoint("Auto-fill gaps")
                self.schedule.update_meeting(
                    meeting.id,
                    buyer_id=buyer.id,
                    status=MeetingStatus.SCHEDULED,
                    delay_reason=None,
                    delayed_at=None,
                )
                self._log_activity(ActivityType.FILLED, meeting)
                filled.append(meeting.id)

        if filled:
            logger.info("Auto-fill reused %d cancelled slots", len(filled))
            return OperationResult(True, f"Filled {len(filled)} cancelled slot(s)", meeting_ids=filled)
        return OperationResult(True, "No cancelled slots could be filled")

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def update_meeting_status(
        self,
        meeting_id: str,
        status: MeetingStatus,
        reason: Optional[str] = None
    ) -> OperationResult:
        """Apply a manual status change if the transition table allows it."""
        try:
            status = MeetingStatus(status)
        except ValueError:
            return self._fail(f"Unknown meeting status {status!r}", meeting_id)

        if status == MeetingStatus.CANCELLED:
            return self.cancel_meeting(meeting_id)
        if status == MeetingStatus.BUMPED:
            return self._fail("Use bump_meeting to bump a meeting", meeting_id)

        with self._lock:
            meeting = self.schedule.get_meeting(meeting_id)
            if meeting is None:
                return self._fail(f"Meeting {meeting_id} not found")
            current = meeting.status
            if status not in STATUS_TRANSITIONS[current]:
                return self._fail(
                    f"Cannot change meeting from {current.value} to {status.value}", meeting_id
                )
            if status == current and status != MeetingStatus.DELAYED:
                return OperationResult(True, f"Meeting already {status.value}", meeting_id=meeting_id)

            changes = {"status": status}
            if status == MeetingStatus.DELAYED:
                changes.update(delay_reason=reason, delayed_at=_utcnow())
            elif status == MeetingStatus.SCHEDULED:
                changes.update(delay_reason=None, delayed_at=None)

            self._checkpoint(f"Mark meeting {status.value}")
            self.schedule.update_meeting(meeting_id, **changes)
            self._log_activity(_STATUS_ACTIVITY[status], meeting, reason)

        return OperationResult(True, f"Meeting marked {status.value}", meeting_id=meeting_id)

    def start_meeting(self, meeting_id: str) -> OperationResult:
        return self.update_meeting_status(meeting_id, MeetingStatus.IN_PROGRESS)

    def complete_meeting(self, meeting_id: str) -> OperationResult:
        return self.update_meeting_status(meeting_id, MeetingStatus.COMPLETED)

    def mark_meeting_delayed(self, meeting_id: str, reason: Optional[str] = None) -> OperationResult:
        return self.update_meeting_status(meeting_id, MeetingStatus.DELAYED, reason)

    def mark_meeting_running_late(self, meeting_id: str) -> OperationResult:
        return self.update_meeting_status(meeting_id, MeetingStatus.RUNNING_LATE)

    def reset_meeting_status(self, meeting_id: str) -> OperationResult:
        return self.update_meeting_status(meeting_id, MeetingStatus.SCHEDULED)

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def add_supplier(self, supplier: Supplier) -> OperationResult:
        with self._lock:
            try:
                self.registry.add_supplier(supplier)
            except ValueError as e:
                return self._fail(str(e))
        return OperationResult(True, f"Supplier {supplier.name} added")

    def add_buyer(self, buyer: Buyer) -> OperationResult:
        with self._lock:
            try:
                self.registry.add_buyer(buyer)
            except ValueError as e:
                return self._fail(str(e))
        return OperationResult(True, f"Buyer {buyer.name} added")

    def update_supplier(self, supplier_id: str, **changes) -> OperationResult:
        """Edit supplier fields. Existing meetings are kept as they are."""
        with self._lock:
            try:
                supplier = self.registry.update_supplier(supplier_id, **changes)
            except (TypeError, ValueError) as e:
                return self._fail(f"Invalid supplier update: {e}")
        if supplier is None:
            return self._fail(f"Supplier {supplier_id} not found")
        return OperationResult(True, f"Supplier {supplier.name} updated")

    def update_buyer(self, buyer_id: str, **changes) -> OperationResult:
        with self._lock:
            try:
                buyer = self.registry.update_buyer(buyer_id, **changes)
            except TypeError as e:
                return self._fail(f"Invalid buyer update: {e}")
        if buyer is None:
            return self._fail(f"Buyer {buyer_id} not found")
        return OperationResult(True, f"Buyer {buyer.name} updated")

    def remove_supplier(self, supplier_id: str) -> OperationResult:
        """Remove a supplier together with all of its meetings."""
        with self._lock:
            if self.registry.get_supplier_by_id(supplier_id) is None:
                return self._fail(f"Supplier {supplier_id} not found")
            removed = self._remove_meetings(lambda m: m.supplier_id == supplier_id, "Remove supplier")
            self.registry.remove_supplier(supplier_id)
        return OperationResult(True, f"Supplier removed with {len(removed)} meetings", meeting_ids=removed)

    def remove_buyer(self, buyer_id: str) -> OperationResult:
        """Remove a buyer, its meetings, and its entries in supplier preference lists."""
        with self._lock:
            if self.registry.get_buyer_by_id(buyer_id) is None:
                return self._fail(f"Buyer {buyer_id} not found")
            removed = self._remove_meetings(lambda m: m.buyer_id == buyer_id, "Remove buyer")
            self.registry.remove_buyer(buyer_id)
        return OperationResult(True, f"Buyer removed with {len(removed)} meetings", meeting_ids=removed)

    def _remove_meetings(self, predicate, label: str) -> list[str]:
        if not any(predicate(m) for m in self.schedule.meetings):
            return []
        self._checkpoint(label)
        return [m.id for m in self.schedule.remove_meetings_where(predicate)]

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    def undo(self) -> OperationResult:
        with self._lock:
            label = self.history.last_action
            previous = self.history.undo(self.schedule.snapshot())
            if previous is None:
                return OperationResult(False, "Nothing to undo")
            self.schedule.restore(previous)
        logger.debug("Undid %s", label)
        return OperationResult(True, f"Undid: {label}" if label else "Undone")

    def redo(self) -> OperationResult:
        with self._lock:
            following = self.history.redo(self.schedule.snapshot())
            if following is None:
                return OperationResult(False, "Nothing to redo")
            self.schedule.restore(following)
        logger.debug("Redid %s", self.history.last_action)
        return OperationResult(True, "Redone")

    # ------------------------------------------------------------------
    # Status overview
    # ------------------------------------------------------------------

    def get_status_summary(self) -> StatusSummary:
        summary = StatusSummary()
        for meeting in self.schedule.meetings:
            status = meeting.status
            if status == MeetingStatus.CANCELLED:
                summary.cancelled += 1
                continue
            if status == MeetingStatus.BUMPED:
                summary.bumped += 1
                continue
            summary.total += 1
            if status == MeetingStatus.SCHEDULED:
                summary.scheduled += 1
            elif status == MeetingStatus.IN_PROGRESS:
                summary.in_progress += 1
            elif status == MeetingStatus.COMPLETED:
                summary.completed += 1
            elif status == MeetingStatus.RUNNING_LATE:
                summary.running_late += 1
                summary.attention_needed.append(meeting.id)
            elif status == MeetingStatus.DELAYED:
                summary.delayed += 1
                summary.attention_needed.append(meeting.id)
        return summary

    def get_upcoming_meetings(
        self,
        now: Optional[datetime] = None,
        slot_count: int = 3,
        limit: int = 5
    ) -> list[tuple[Meeting, TimeSlot]]:
        """
        Scheduled meetings in the current slot and the next few.

        Args:
            now: Reference instant; naive values are taken as UTC
            slot_count: How many meeting slots to look at, current one included
            limit: Maximum number of meetings returned

        Returns:
            (meeting, slot) pairs in slot order
        """
        if now is None:
            now = _utcnow()
        elif now.tzinfo is None:
            now = pytz.UTC.localize(now)

        slots = self.schedule.meeting_slots
        start_index = next((i for i, s in enumerate(slots) if s.start <= now < s.end), None)
        if start_index is None:
            start_index = next((i for i, s in enumerate(slots) if s.start > now), None)
        if start_index is None:
            return []

        upcoming = []
        for slot in slots[start_index:start_index + slot_count]:
            for meeting in self.schedule.meetings:
                if meeting.time_slot_id == slot.id and meeting.status == MeetingStatus.SCHEDULED:
                    upcoming.append((meeting, slot))
        return upcoming[:limit]
