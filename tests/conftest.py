from datetime import date

import pytest

from models.entities import Break, Buyer, EventConfig, PreferenceType, Supplier
from services.config import SchedulerSettings
from services.schedule_operations import ScheduleManager

EVENT_DAY = date(2024, 5, 1)


@pytest.fixture
def settings():
    return SchedulerSettings()


@pytest.fixture
def make_config():
    """Factory for single-day event configs; keyword overrides win."""
    def _make(**overrides):
        values = dict(
            name="Trade Expo",
            start_date=EVENT_DAY,
            end_date=EVENT_DAY,
            start_time="09:00",
            end_time="10:00",
            meeting_duration=30,
            breaks=[],
        )
        values.update(overrides)
        return EventConfig(**values)
    return _make


@pytest.fixture
def suppliers():
    return [Supplier("s1", "Acme Corp"), Supplier("s2", "Globex")]


@pytest.fixture
def buyers():
    return [Buyer("b1", "Alice"), Buyer("b2", "Bob")]


@pytest.fixture
def manager(make_config, suppliers, buyers, settings):
    """Manager for a 2x2 event on 09:00-10:00 with a generated schedule."""
    mgr = ScheduleManager(make_config(), suppliers, buyers, settings=settings)
    assert mgr.generate_schedule().success
    return mgr


@pytest.fixture
def excluding_supplier():
    return Supplier("s1", "Acme Corp", preference=PreferenceType.EXCLUDE, preference_list=["b1"])


@pytest.fixture
def coffee_break():
    return Break("Coffee", "10:15", "10:45")


@pytest.fixture
def meeting_for():
    """Lookup of the active meeting between two parties, or None."""
    def _find(mgr, supplier_id, buyer_id):
        for m in mgr.schedule.active_meetings():
            if m.supplier_id == supplier_id and m.buyer_id == buyer_id:
                return m
        return None
    return _find
