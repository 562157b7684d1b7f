"""Core scheduling algorithm."""

import logging
import math
import random
from collections import Counter, defaultdict
from datetime import date
from typing import Callable, Optional

from models.entities import (
    Buyer,
    DesiredMeeting,
    EventConfig,
    Meeting,
    MeetingStatus,
    ScheduleResult,
    SchedulingStrategy,
    Supplier,
    TimeSlot,
    UnscheduledPair,
    generate_id,
)
from models.schedule import Schedule
from services.config import SchedulerSettings, get_settings
from services.preferences import can_supplier_meet_buyer, preference_priority
from services.time_grid import generate_time_slots, get_date_range, group_slots_by_date

logger = logging.getLogger(__name__)


class SchedulingEngine:
    """Engine for turning supplier preferences into an initial schedule."""

    def __init__(
        self,
        settings: Optional[SchedulerSettings] = None,
        id_factory: Callable[[], str] = generate_id
    ):
        """Initialize scheduling engine."""
        self.settings = settings or get_settings()
        self.id_factory = id_factory

    def build_desired_meetings(
        self,
        suppliers: list[Supplier],
        buyers: list[Buyer]
    ) -> list[DesiredMeeting]:
        """
        List every permitted supplier/buyer pair, highest priority first.

        Include-list pairs come first, then meet-all pairs, then
        exclude-list pairs. Within a priority, pairs are ordered by supplier
        id then buyer id unless tie randomization is enabled.
        """
        desired = [
            DesiredMeeting(supplier.id, buyer.id, preference_priority(supplier))
            for supplier in suppliers
            for buyer in buyers
            if can_supplier_meet_buyer(supplier, buyer.id)
        ]

        if self.settings.randomize_ties:
            rng = random.Random(self.settings.random_seed)
            rng.shuffle(desired)
            # Stable sort keeps the shuffled order inside each priority
            desired.sort(key=lambda d: -d.priority)
        else:
            desired.sort(key=lambda d: (-d.priority, d.supplier_id, d.buyer_id))

        return desired

    def generate_schedule(
        self,
        config: EventConfig,
        suppliers: list[Supplier],
        buyers: list[Buyer]
    ) -> ScheduleResult:
        """
        Build the time grid and place every desired meeting greedily.

        Args:
            config: Event configuration (dates, hours, breaks, strategy)
            suppliers: Suppliers with their preferences
            buyers: Buyers to be matched

        Returns:
            Meetings, the slot grid, and the pairs that found no free slot

        Raises:
            ValueError: If the event configuration cannot produce a grid
        """
        time_slots = generate_time_slots(config, default_timezone=self.settings.default_timezone)
        desired = self.build_desired_meetings(suppliers, buyers)
        strategy = config.scheduling_strategy or self.settings.default_strategy

        if strategy == SchedulingStrategy.SPACED:
            meetings, unscheduled = self._generate_spaced(config, time_slots, desired)
        else:
            meetings, unscheduled = self._generate_efficient(time_slots, desired)

        logger.info(
            "Generated %d meetings over %d slots using %s strategy",
            len(meetings), len(time_slots), strategy.value,
        )
        if unscheduled:
            logger.warning("%d desired meetings could not be scheduled", len(unscheduled))

        return ScheduleResult(meetings=meetings, time_slots=time_slots, unscheduled_pairs=unscheduled)

    def _generate_efficient(
        self,
        time_slots: list[TimeSlot],
        desired: list[DesiredMeeting]
    ) -> tuple[list[Meeting], list[UnscheduledPair]]:
        """Pack meetings at the start: first slot where both parties are free."""
        meetings = []
        unscheduled = []
        meeting_slots = [slot for slot in time_slots if not slot.is_break]

        supplier_used: dict[str, set[str]] = defaultdict(set)
        buyer_used: dict[str, set[str]] = defaultdict(set)

        for pair in desired:
            taken_by_supplier = supplier_used[pair.supplier_id]
            taken_by_buyer = buyer_used[pair.buyer_id]
            slot = next(
                (s for s in meeting_slots if s.id not in taken_by_supplier and s.id not in taken_by_buyer),
                None,
            )
            if slot is None:
                unscheduled.append(UnscheduledPair(pair.supplier_id, pair.buyer_id))
                continue

            meetings.append(self._make_meeting(pair, slot))
            taken_by_supplier.add(slot.id)
            taken_by_buyer.add(slot.id)

        return meetings, unscheduled

    def _generate_spaced(
        self,
        config: EventConfig,
        time_slots: list[TimeSlot],
        desired: list[DesiredMeeting]
    ) -> tuple[list[Meeting], list[UnscheduledPair]]:
        """
        Spread each supplier's meetings evenly across event days.

        The per-day target is the supplier's desired count divided by the
        number of days, rounded up. Each pair goes to the day where the
        supplier has the fewest meetings so far (earlier day on ties), taking
        the first mutually free slot of that day. Days at or above target are
        only considered while no other day has offered a slot.
        """
        meetings = []
        unscheduled = []
        dates = get_date_range(config.start_date, config.end_date)
        num_days = len(dates)
        slots_by_date = group_slots_by_date(time_slots)

        supplier_used: dict[str, set[str]] = defaultdict(set)
        buyer_used: dict[str, set[str]] = defaultdict(set)
        day_counts: dict[str, dict[date, int]] = defaultdict(lambda: {d: 0 for d in dates})
        totals = Counter(pair.supplier_id for pair in desired)

        for pair in desired:
            taken_by_supplier = supplier_used[pair.supplier_id]
            taken_by_buyer = buyer_used[pair.buyer_id]
            counts = day_counts[pair.supplier_id]
            target_per_day = math.ceil(totals[pair.supplier_id] / num_days)

            best_slot = None
            best_count = None
            for day in dates:
                current_count = counts[day]
                if current_count >= target_per_day and best_slot is not None:
                    continue

                slot = next(
                    (s for s in slots_by_date.get(day, [])
                     if s.id not in taken_by_supplier and s.id not in taken_by_buyer),
                    None,
                )
                if slot is not None and (best_count is None or current_count < best_count):
                    best_slot = slot
                    best_count = current_count

            if best_slot is None:
                unscheduled.append(UnscheduledPair(pair.supplier_id, pair.buyer_id))
                continue

            meetings.append(self._make_meeting(pair, best_slot))
            taken_by_supplier.add(best_slot.id)
            taken_by_buyer.add(best_slot.id)
            counts[best_slot.date] += 1

        return meetings, unscheduled

    def _make_meeting(self, pair: DesiredMeeting, slot: TimeSlot) -> Meeting:
        return Meeting(
            id=self.id_factory(),
            supplier_id=pair.supplier_id,
            buyer_id=pair.buyer_id,
            time_slot_id=slot.id,
            status=MeetingStatus.SCHEDULED,
        )


def find_available_slot(
    supplier_id: str,
    buyer_id: str,
    schedule: Schedule,
    exclude_slot_id: Optional[str] = None
) -> Optional[TimeSlot]:
    """First non-break slot where both parties are free, skipping exclude_slot_id."""
    for slot in schedule.meeting_slots:
        if slot.id == exclude_slot_id:
            continue
        if schedule.is_supplier_free(supplier_id, slot.id) and schedule.is_buyer_free(buyer_id, slot.id):
            return slot
    return None
