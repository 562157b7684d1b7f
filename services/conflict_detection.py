"""Conflict detection for manual schedule edits."""

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from models.entities import (
    BuyerAvailability,
    BuyerDoubleBooking,
    ConflictCheckResult,
    ConflictInfo,
    ConflictSeverity,
    ConflictSummary,
    ConflictType,
    Meeting,
    PreferenceViolation,
    Supplier,
)
from models.schedule import Schedule
from services.participant_registry import ParticipantRegistry
from services.preferences import can_supplier_meet_buyer

logger = logging.getLogger(__name__)

SLOT_FREE = "free"
SLOT_WARNING = "warning"
SLOT_BLOCKED = "blocked"


# Linear-scan lookups over a plain meeting list. The engine below uses the
# schedule indexes instead; these stay as the reference behaviour.

def get_conflicting_buyer_meeting(
    buyer_id: str,
    slot_id: str,
    meetings: Iterable[Meeting],
    exclude_meeting_id: Optional[str] = None
) -> Optional[Meeting]:
    for m in meetings:
        if (m.buyer_id == buyer_id and m.time_slot_id == slot_id
                and m.is_active and m.id != exclude_meeting_id):
            return m
    return None


def get_conflicting_supplier_meeting(
    supplier_id: str,
    slot_id: str,
    meetings: Iterable[Meeting],
    exclude_meeting_id: Optional[str] = None
) -> Optional[Meeting]:
    for m in meetings:
        if (m.supplier_id == supplier_id and m.time_slot_id == slot_id
                and m.is_active and m.id != exclude_meeting_id):
            return m
    return None


def is_buyer_available_at_slot(
    buyer_id: str,
    slot_id: str,
    meetings: Iterable[Meeting],
    exclude_meeting_id: Optional[str] = None
) -> bool:
    return get_conflicting_buyer_meeting(buyer_id, slot_id, meetings, exclude_meeting_id) is None


def is_supplier_available_at_slot(
    supplier_id: str,
    slot_id: str,
    meetings: Iterable[Meeting],
    exclude_meeting_id: Optional[str] = None
) -> bool:
    return get_conflicting_supplier_meeting(supplier_id, slot_id, meetings, exclude_meeting_id) is None


def check_preference_violation(supplier: Supplier, buyer_id: str) -> bool:
    """True when the supplier's preferences rule the buyer out."""
    return not can_supplier_meet_buyer(supplier, buyer_id)


class ConflictEngine:
    """
    Classifies prospective and existing placements.

    Supplier double-booking is an error; buyer double-booking and
    preference violations are warnings the operator may accept.
    """

    def __init__(self, schedule: Schedule, registry: ParticipantRegistry):
        self.schedule = schedule
        self.registry = registry

    def _supplier_name(self, supplier_id: str, fallback: str = "another supplier") -> str:
        supplier = self.registry.get_supplier_by_id(supplier_id)
        return supplier.name if supplier else fallback

    def _buyer_name(self, buyer_id: str, fallback: str = "another buyer") -> str:
        buyer = self.registry.get_buyer_by_id(buyer_id)
        return buyer.name if buyer else fallback

    def _placement_conflicts(
        self,
        supplier: Supplier,
        buyer_id: str,
        buyer_name: str,
        slot_id: str,
        exclude_ids: tuple[str, ...] = ()
    ) -> list[ConflictInfo]:
        conflicts = []

        for other in self.schedule.supplier_meetings_at(supplier.id, slot_id, exclude_ids):
            conflicts.append(ConflictInfo(
                type=ConflictType.SUPPLIER_BUSY,
                severity=ConflictSeverity.ERROR,
                description=(f"{supplier.name} already has a meeting at this time with "
                             f"{self._buyer_name(other.buyer_id)}"),
                affected_party_name=supplier.name,
                affected_meeting_id=other.id,
            ))

        for other in self.schedule.buyer_meetings_at(buyer_id, slot_id, exclude_ids):
            conflicts.append(self._buyer_busy_conflict(buyer_name, other))

        return conflicts

    def _buyer_busy_conflict(self, buyer_name: str, other: Meeting) -> ConflictInfo:
        return ConflictInfo(
            type=ConflictType.BUYER_BUSY,
            severity=ConflictSeverity.WARNING,
            description=(f"{buyer_name} already has a meeting at this time with "
                         f"{self._supplier_name(other.supplier_id)}"),
            affected_party_name=buyer_name,
            affected_meeting_id=other.id,
        )

    def _preference_conflict(self, supplier: Supplier, buyer_name: str) -> ConflictInfo:
        return ConflictInfo(
            type=ConflictType.PREFERENCE_VIOLATION,
            severity=ConflictSeverity.WARNING,
            description=f"This meeting violates {supplier.name}'s preference settings for {buyer_name}",
            affected_party_name=supplier.name,
        )

    def check_add(self, supplier_id: str, buyer_id: str, slot_id: str) -> ConflictCheckResult:
        """Every conflict a new meeting in slot_id would cause."""
        supplier = self.registry.get_supplier_by_id(supplier_id)
        buyer = self.registry.get_buyer_by_id(buyer_id)
        if supplier is None or buyer is None or self.schedule.get_slot(slot_id) is None:
            logger.warning("check_add with unknown supplier %r, buyer %r or slot %r",
                           supplier_id, buyer_id, slot_id)
            return ConflictCheckResult()

        conflicts = self._placement_conflicts(supplier, buyer.id, buyer.name, slot_id)
        if check_preference_violation(supplier, buyer.id):
            conflicts.append(self._preference_conflict(supplier, buyer.name))
        return ConflictCheckResult(conflicts)

    def check_move(self, meeting_id: str, target_slot_id: str) -> ConflictCheckResult:
        """Conflicts caused by moving a meeting; the meeting itself is ignored."""
        meeting = self.schedule.get_meeting(meeting_id)
        if meeting is None or self.schedule.get_slot(target_slot_id) is None:
            logger.warning("check_move with unknown meeting %r or slot %r", meeting_id, target_slot_id)
            return ConflictCheckResult()

        supplier = self.registry.get_supplier_by_id(meeting.supplier_id)
        buyer = self.registry.get_buyer_by_id(meeting.buyer_id)
        if supplier is None or buyer is None:
            logger.warning("Meeting %s references an unknown participant", meeting_id)
            return ConflictCheckResult()

        return ConflictCheckResult(self._placement_conflicts(
            supplier, buyer.id, buyer.name, target_slot_id, exclude_ids=(meeting.id,)
        ))

    def get_conflicts_for_meeting(self, meeting_id: str) -> list[ConflictInfo]:
        """Warnings attached to a placed meeting; inactive meetings have none."""
        meeting = self.schedule.get_meeting(meeting_id)
        if meeting is None:
            logger.warning("Conflicts requested for unknown meeting %r", meeting_id)
            return []
        if not meeting.is_active:
            return []

        supplier = self.registry.get_supplier_by_id(meeting.supplier_id)
        buyer = self.registry.get_buyer_by_id(meeting.buyer_id)
        if supplier is None or buyer is None:
            return []

        conflicts = [
            self._buyer_busy_conflict(buyer.name, other)
            for other in self.schedule.buyer_meetings_at(buyer.id, meeting.time_slot_id, (meeting.id,))
        ]
        if check_preference_violation(supplier, buyer.id):
            conflicts.append(self._preference_conflict(supplier, buyer.name))
        return conflicts

    def get_meetings_with_conflicts(self) -> dict[str, list[ConflictInfo]]:
        """Map of meeting id to its conflicts, for active meetings that have any."""
        conflict_map = {}
        for meeting in self.schedule.active_meetings():
            conflicts = self.get_conflicts_for_meeting(meeting.id)
            if conflicts:
                conflict_map[meeting.id] = conflicts
        return conflict_map

    def summarize(self, meetings: Optional[Iterable[Meeting]] = None) -> ConflictSummary:
        """
        Collect every existing conflict in the schedule.

        Args:
            meetings: Meetings to inspect; defaults to the whole schedule.

        Returns:
            Buyer double-bookings grouped per buyer and slot, plus every
            preference violation.
        """
        if meetings is None:
            meetings = self.schedule.meetings

        summary = ConflictSummary()
        by_buyer_slot: dict[tuple[str, str], list[Meeting]] = defaultdict(list)

        for meeting in meetings:
            if not meeting.is_active:
                continue
            supplier = self.registry.get_supplier_by_id(meeting.supplier_id)
            buyer = self.registry.get_buyer_by_id(meeting.buyer_id)
            if supplier and buyer and check_preference_violation(supplier, buyer.id):
                summary.preference_violations.append(PreferenceViolation(
                    meeting_id=meeting.id,
                    supplier_id=supplier.id,
                    supplier_name=supplier.name,
                    buyer_id=buyer.id,
                    buyer_name=buyer.name,
                ))
            by_buyer_slot[(meeting.buyer_id, meeting.time_slot_id)].append(meeting)

        for (buyer_id, slot_id), slot_meetings in by_buyer_slot.items():
            if len(slot_meetings) < 2:
                continue
            buyer = self.registry.get_buyer_by_id(buyer_id)
            if buyer is None:
                continue
            slot = self.schedule.get_slot(slot_id)
            summary.buyer_double_bookings.append(BuyerDoubleBooking(
                buyer_id=buyer_id,
                buyer_name=buyer.name,
                slot_id=slot_id,
                slot_start=slot.start if slot else None,
                meeting_ids=tuple(m.id for m in slot_meetings),
                supplier_names=tuple(self._supplier_name(m.supplier_id, "Unknown") for m in slot_meetings),
            ))

        return summary

    def get_buyer_availability_for_slot(self, buyer_id: str, supplier_id: str, slot_id: str) -> BuyerAvailability:
        """Whether a buyer can be offered for the supplier's slot, and why not."""
        supplier = self.registry.get_supplier_by_id(supplier_id)
        buyer = self.registry.get_buyer_by_id(buyer_id)
        if supplier is None or buyer is None:
            return BuyerAvailability(False, "busy", "Invalid supplier or buyer")

        busy_with = self.schedule.buyer_meetings_at(buyer_id, slot_id)
        if busy_with:
            name = self._supplier_name(busy_with[0].supplier_id)
            return BuyerAvailability(False, "busy", f"Already meeting with {name}")

        if check_preference_violation(supplier, buyer_id):
            # Still selectable, the operator just gets a warning
            return BuyerAvailability(True, "preference", f"Violates {supplier.name}'s preferences")

        return BuyerAvailability(True, "none")

    def get_move_slot_statuses(self, meeting_id: str, on_date: Optional[date] = None) -> dict[str, str]:
        """
        Classify every meeting slot as a move target for a meeting.

        A slot is "blocked" when the supplier is busy there, "warning" when
        only the buyer is, and "free" otherwise. Restrict to one day with
        on_date.
        """
        meeting = self.schedule.get_meeting(meeting_id)
        if meeting is None:
            logger.warning("Move targets requested for unknown meeting %r", meeting_id)
            return {}

        if on_date is None:
            slots = self.schedule.meeting_slots
        else:
            slots = self.schedule.slots_for_date(on_date)

        exclude = (meeting.id,)
        statuses = {}
        for slot in slots:
            if not self.schedule.is_supplier_free(meeting.supplier_id, slot.id, exclude):
                statuses[slot.id] = SLOT_BLOCKED
            elif not self.schedule.is_buyer_free(meeting.buyer_id, slot.id, exclude):
                statuses[slot.id] = SLOT_WARNING
            else:
                statuses[slot.id] = SLOT_FREE
        return statuses
