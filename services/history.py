"""Bounded undo/redo history of state snapshots."""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class HistoryEntry(Generic[T]):
    state: T
    label: Optional[str] = None


class HistoryTracker(Generic[T]):
    """
    Two stacks of snapshots: past states for undo, future states for redo.

    The tracker knows nothing about what it stores. The caller pushes the
    state as it was immediately before a change, and passes the current
    state to undo/redo so it can be put on the opposite stack.
    """

    def __init__(self, max_history: int = 20):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self._past: list[HistoryEntry[T]] = []
        self._future: list[HistoryEntry[T]] = []

    def push(self, snapshot: T, label: Optional[str] = None):
        """Record a pre-change state. Any redo history is discarded."""
        self._past.append(HistoryEntry(snapshot, label))
        if len(self._past) > self.max_history:
            del self._past[0]
        self._future.clear()

    def undo(self, current: T) -> Optional[T]:
        """Step back: returns the previous state, or None if there is none."""
        if not self._past:
            return None
        entry = self._past.pop()
        self._future.append(HistoryEntry(current, entry.label))
        return entry.state

    def redo(self, current: T) -> Optional[T]:
        if not self._future:
            return None
        entry = self._future.pop()
        self._past.append(HistoryEntry(current, entry.label))
        return entry.state

    def clear(self):
        self._past.clear()
        self._future.clear()

    @property
    def can_undo(self) -> bool:
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    @property
    def history_length(self) -> int:
        return len(self._past)

    @property
    def future_length(self) -> int:
        return len(self._future)

    @property
    def last_action(self) -> Optional[str]:
        """Label of the change the next undo would revert."""
        return self._past[-1].label if self._past else None
