"""In-memory feed of operator actions on meetings."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

import pytz


class ActivityType(str, Enum):
    ADDED = "added"
    MOVED = "moved"
    SWAPPED = "swapped"
    STARTED = "started"
    COMPLETED = "completed"
    DELAYED = "delayed"
    RUNNING_LATE = "running_late"
    BUMPED = "bumped"
    CANCELLED = "cancelled"
    RESET = "reset"
    FILLED = "filled"


@dataclass(frozen=True)
class ActivityEntry:
    type: ActivityType
    timestamp: datetime
    meeting_id: str
    supplier_name: str
    buyer_name: str
    reason: Optional[str] = None


class ActivityLog:
    """Records activity entries instead of pushing notifications anywhere."""

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self.entries: list[ActivityEntry] = []

    def record(
        self,
        activity_type: ActivityType,
        meeting_id: str,
        supplier_name: str,
        buyer_name: str,
        reason: Optional[str] = None
    ) -> ActivityEntry:
        entry = ActivityEntry(
            type=ActivityType(activity_type),
            timestamp=datetime.now(pytz.UTC),
            meeting_id=meeting_id,
            supplier_name=supplier_name,
            buyer_name=buyer_name,
            reason=reason,
        )
        self.entries.append(entry)
        if self.max_entries is not None and len(self.entries) > self.max_entries:
            del self.entries[0]
        return entry

    def recent(self, limit: int = 10) -> list[ActivityEntry]:
        """Newest entries first."""
        if limit <= 0:
            return []
        return list(reversed(self.entries[-limit:]))

    def clear(self):
        self.entries.clear()
