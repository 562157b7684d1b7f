"""Domain models for the meeting scheduler."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


def generate_id() -> str:
    """Generate a short random identifier for meetings and participants."""
    return uuid.uuid4().hex[:9]


class PreferenceType(str, Enum):
    """How a supplier's preference list is interpreted."""
    ALL = "all"
    INCLUDE = "include"
    EXCLUDE = "exclude"


class SchedulingStrategy(str, Enum):
    """Slot search strategy used by the assignment engine."""
    EFFICIENT = "efficient"
    SPACED = "spaced"


class MeetingStatus(str, Enum):
    """Lifecycle states of a meeting."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    RUNNING_LATE = "running_late"
    BUMPED = "bumped"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (MeetingStatus.BUMPED, MeetingStatus.CANCELLED)


class ConflictType(str, Enum):
    SUPPLIER_BUSY = "supplier_busy"
    BUYER_BUSY = "buyer_busy"
    PREFERENCE_VIOLATION = "preference_violation"


class ConflictSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Supplier:
    """A party that meets many buyers; subject to preference constraints."""
    id: str
    name: str
    organization: str = ""
    meeting_duration: int = 30  # minutes
    preference: PreferenceType = PreferenceType.ALL
    preference_list: list[str] = field(default_factory=list)  # buyer ids
    email: Optional[str] = None
    phone: Optional[str] = None
    table_number: Optional[int] = None

    def __post_init__(self):
        self.preference = PreferenceType(self.preference)
        self.preference_list = list(self.preference_list)


@dataclass
class Buyer:
    """The counterpart party. Carries display attributes only."""
    id: str
    name: str
    organization: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class Break:
    """A named pause in the day, times in HH:MM."""
    name: str
    start_time: str
    end_time: str


@dataclass
class EventConfig:
    """Event-wide settings the time grid is built from."""
    name: str
    start_date: date
    end_date: date
    start_time: str  # HH:MM
    end_time: str    # HH:MM
    meeting_duration: int = 30  # minutes
    breaks: list[Break] = field(default_factory=list)
    scheduling_strategy: Optional[SchedulingStrategy] = None  # None -> settings default
    timezone: Optional[str] = None  # None -> settings default
    id: str = field(default_factory=generate_id)

    def __post_init__(self):
        if isinstance(self.start_date, str):
            self.start_date = date.fromisoformat(self.start_date)
        if isinstance(self.end_date, str):
            self.end_date = date.fromisoformat(self.end_date)
        if self.scheduling_strategy is not None:
            self.scheduling_strategy = SchedulingStrategy(self.scheduling_strategy)
        self.breaks = list(self.breaks)

    def validate(self) -> list[str]:
        """
        Check the configuration for problems that prevent building a grid.

        Returns:
            List of human-readable problems; empty when the config is usable.
        """
        problems = []
        if self.meeting_duration <= 0:
            problems.append(f"Meeting duration must be positive (got {self.meeting_duration})")
        if self.end_date < self.start_date:
            problems.append(f"End date {self.end_date} is before start date {self.start_date}")

        start = _parse_hhmm(self.start_time)
        end = _parse_hhmm(self.end_time)
        if start is None:
            problems.append(f"Invalid start time: {self.start_time!r}")
        if end is None:
            problems.append(f"Invalid end time: {self.end_time!r}")
        if start is not None and end is not None and end <= start:
            problems.append(f"Daily end time {self.end_time} must be after start time {self.start_time}")

        for brk in self.breaks:
            if _parse_hhmm(brk.start_time) is None or _parse_hhmm(brk.end_time) is None:
                problems.append(f"Break {brk.name!r} has an invalid time")
        return problems


def _parse_hhmm(value: str) -> Optional[int]:
    """Minutes since midnight for an HH:MM string, or None if malformed."""
    try:
        hours, minutes = str(value).split(":")
        hours, minutes = int(hours), int(minutes)
    except ValueError:
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


@dataclass(frozen=True)
class TimeSlot:
    """A fixed interval of the grid: either a meeting slot or a break."""
    id: str
    date: date
    start: datetime
    end: datetime
    is_break: bool = False
    break_name: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass
class Meeting:
    """A supplier/buyer pairing placed in a time slot."""
    id: str
    supplier_id: str
    buyer_id: str
    time_slot_id: str
    status: MeetingStatus = MeetingStatus.SCHEDULED
    original_time_slot_id: Optional[str] = None  # slot held before a bump
    bumped_from: Optional[str] = None            # meeting id this one replaced
    delay_reason: Optional[str] = None
    delayed_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = MeetingStatus(self.status)

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal


@dataclass(frozen=True)
class UnscheduledPair:
    """A desired meeting the assignment engine could not place."""
    supplier_id: str
    buyer_id: str


@dataclass(frozen=True)
class DesiredMeeting:
    """A permitted pairing with its placement priority (higher goes first)."""
    supplier_id: str
    buyer_id: str
    priority: int


@dataclass(frozen=True)
class ConflictInfo:
    """A single conflict found for a prospective or existing placement."""
    type: ConflictType
    severity: ConflictSeverity
    description: str
    affected_party_name: str
    affected_meeting_id: Optional[str] = None


@dataclass
class ConflictCheckResult:
    """Outcome of checking an add or a move."""
    conflicts: list[ConflictInfo] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    @property
    def has_errors(self) -> bool:
        return any(c.severity == ConflictSeverity.ERROR for c in self.conflicts)

    @property
    def has_warnings(self) -> bool:
        return any(c.severity == ConflictSeverity.WARNING for c in self.conflicts)


@dataclass(frozen=True)
class BuyerDoubleBooking:
    buyer_id: str
    buyer_name: str
    slot_id: str
    slot_start: Optional[datetime]
    meeting_ids: tuple[str, ...]
    supplier_names: tuple[str, ...]


@dataclass(frozen=True)
class PreferenceViolation:
    meeting_id: str
    supplier_id: str
    supplier_name: str
    buyer_id: str
    buyer_name: str


@dataclass
class ConflictSummary:
    """All existing conflicts in a schedule, for display."""
    buyer_double_bookings: list[BuyerDoubleBooking] = field(default_factory=list)
    preference_violations: list[PreferenceViolation] = field(default_factory=list)

    @property
    def total_conflicts(self) -> int:
        return len(self.buyer_double_bookings) + len(self.preference_violations)


@dataclass
class BuyerAvailability:
    """Whether a buyer can be offered for a supplier's slot."""
    available: bool
    conflict_type: str  # "none", "busy" or "preference"
    conflict_description: Optional[str] = None


@dataclass
class ScheduleResult:
    """Output of the assignment engine."""
    meetings: list[Meeting]
    time_slots: list[TimeSlot]
    unscheduled_pairs: list[UnscheduledPair]


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Immutable copy of the mutable schedule state, used by undo/redo."""
    meetings: tuple[Meeting, ...]
    time_slots: tuple[TimeSlot, ...]
    unscheduled_pairs: tuple[UnscheduledPair, ...]


@dataclass
class OperationResult:
    """Structured outcome of an operator-facing action."""
    success: bool
    message: str
    meeting_id: Optional[str] = None
    new_slot_id: Optional[str] = None
    meeting_ids: list[str] = field(default_factory=list)


@dataclass
class StatusSummary:
    """Live counts of meetings per status."""
    total: int = 0  # active meetings
    scheduled: int = 0
    in_progress: int = 0
    completed: int = 0
    running_late: int = 0
    delayed: int = 0
    cancelled: int = 0
    bumped: int = 0
    attention_needed: list[str] = field(default_factory=list)

    @property
    def progress_percent(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed / self.total * 100)
