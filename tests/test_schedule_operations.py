from datetime import date, datetime, timedelta

import pytz

from models.entities import Buyer, MeetingStatus, PreferenceType, Supplier
from services.activity_log import ActivityType
from services.config import SchedulerSettings
from services.schedule_operations import ScheduleManager

SLOT_0900 = "2024-05-01T0900"
SLOT_0930 = "2024-05-01T0930"
SLOT_1000 = "2024-05-01T1000"


def test_generate_places_all_four_meetings(manager) -> None:
    assert len(manager.schedule.meetings) == 4
    assert manager.schedule.unscheduled_pairs == []
    assert manager.history.last_action == "Generate schedule"


def test_generate_without_config_fails(suppliers, buyers, settings) -> None:
    mgr = ScheduleManager(None, suppliers, buyers, settings=settings)
    result = mgr.generate_schedule()
    assert not result.success
    assert not mgr.can_undo


def test_undo_and_redo_three_cancels(manager) -> None:
    ids = [m.id for m in manager.schedule.meetings[:3]]
    for meeting_id in ids[:2]:
        assert manager.cancel_meeting(meeting_id).success
    before_third = manager.schedule.snapshot()
    assert manager.cancel_meeting(ids[2]).success
    after_third = manager.schedule.snapshot()

    assert manager.undo().success
    assert manager.schedule.snapshot() == before_third
    assert manager.schedule.get_meeting(ids[2]).status == MeetingStatus.SCHEDULED

    assert manager.redo().success
    assert manager.schedule.snapshot() == after_third
    assert manager.schedule.get_meeting(ids[2]).status == MeetingStatus.CANCELLED


def test_undo_on_empty_history(make_config, suppliers, buyers, settings) -> None:
    mgr = ScheduleManager(make_config(), suppliers, buyers, settings=settings)
    assert not mgr.undo().success
    assert not mgr.redo().success


def test_new_change_clears_redo(manager, meeting_for) -> None:
    manager.cancel_meeting(meeting_for(manager, "s1", "b1").id)
    manager.undo()
    assert manager.can_redo

    manager.cancel_meeting(meeting_for(manager, "s2", "b2").id)
    assert not manager.can_redo


def test_history_depth_comes_from_settings(make_config, suppliers, buyers) -> None:
    mgr = ScheduleManager(make_config(), suppliers, buyers, settings=SchedulerSettings(history_depth=2))
    mgr.generate_schedule()
    for meeting in list(mgr.schedule.meetings):
        mgr.cancel_meeting(meeting.id)

    assert mgr.history.history_length == 2
    mgr.undo()
    mgr.undo()
    assert not mgr.undo().success


def test_activity_log_size_comes_from_settings(make_config, suppliers, buyers) -> None:
    mgr = ScheduleManager(make_config(), suppliers, buyers, settings=SchedulerSettings(activity_log_size=3))
    mgr.generate_schedule()
    ids = [m.id for m in mgr.schedule.meetings]
    for meeting_id in ids:
        mgr.cancel_meeting(meeting_id)

    recent = mgr.activity.recent(10)
    assert len(recent) == 3
    assert [e.meeting_id for e in recent] == list(reversed(ids[1:]))


def test_add_meeting_refuses_supplier_double_booking(manager) -> None:
    before = manager.schedule.snapshot()
    result = manager.add_meeting("s1", "b2", SLOT_0900)

    assert not result.success
    assert "Acme Corp" in result.message
    assert manager.schedule.snapshot() == before


def test_add_meeting_allows_buyer_double_booking(make_config, suppliers, buyers, settings) -> None:
    mgr = ScheduleManager(make_config(end_time="10:30"), suppliers, buyers, settings=settings)
    mgr.generate_schedule()

    result = mgr.add_meeting("s1", "b2", SLOT_1000)
    assert result.success
    assert mgr.add_meeting("s2", "b2", SLOT_1000).success
    assert mgr.conflicts.summarize().total_conflicts == 1


def test_add_meeting_rejects_unknown_and_break_slots(make_config, suppliers, buyers, coffee_break, settings) -> None:
    mgr = ScheduleManager(make_config(end_time="12:00", breaks=[coffee_break]), suppliers, buyers,
                          settings=settings)
    mgr.generate_schedule()

    assert not mgr.add_meeting("nobody", "b1", SLOT_0900).success
    assert not mgr.add_meeting("s1", "nobody", SLOT_0900).success
    assert not mgr.add_meeting("s1", "b1", "2030-01-01T0900").success
    result = mgr.add_meeting("s1", "b1", "2024-05-01T1015B")
    assert not result.success
    assert "Coffee" in result.message


def test_move_meeting_changes_slot_in_place(make_config, suppliers, buyers, settings, meeting_for) -> None:
    mgr = ScheduleManager(make_config(end_time="10:30"), suppliers, buyers, settings=settings)
    mgr.generate_schedule()
    meeting = meeting_for(mgr, "s1", "b1")

    result = mgr.move_meeting(meeting.id, SLOT_1000)

    assert result.success and result.new_slot_id == SLOT_1000
    assert mgr.schedule.get_meeting(meeting.id).time_slot_id == SLOT_1000
    assert not mgr.schedule.is_supplier_free("s1", SLOT_1000)
    assert mgr.schedule.is_supplier_free("s1", SLOT_0900)


def test_move_refuses_cancelled_and_unknown(manager, meeting_for) -> None:
    meeting = meeting_for(manager, "s1", "b1")
    manager.cancel_meeting(meeting.id)

    assert not manager.move_meeting(meeting.id, SLOT_0930).success
    assert not manager.move_meeting("missing", SLOT_0930).success


def test_swap_exchanges_slots(manager, meeting_for) -> None:
    first = meeting_for(manager, "s1", "b1")
    second = meeting_for(manager, "s1", "b2")
    slot_1, slot_2 = first.time_slot_id, second.time_slot_id

    assert manager.swap_meetings(first.id, second.id).success
    assert manager.schedule.get_meeting(first.id).time_slot_id == slot_2
    assert manager.schedule.get_meeting(second.id).time_slot_id == slot_1


def test_swap_refuses_supplier_double_booking(manager, meeting_for) -> None:
    # Acme at 09:00 with Alice; Globex at 09:30 with Alice. Acme is busy at 09:30.
    acme = meeting_for(manager, "s1", "b1")
    globex = meeting_for(manager, "s2", "b1")
    before = manager.schedule.snapshot()

    result = manager.swap_meetings(acme.id, globex.id)

    assert not result.success
    assert manager.schedule.snapshot() == before


def test_cancel_is_idempotent_and_bumped_cannot_be_cancelled(make_config, suppliers, buyers, settings,
                                                              meeting_for) -> None:
    mgr = ScheduleManager(make_config(end_time="10:30"), suppliers, buyers, settings=settings)
    mgr.generate_schedule()
    meeting = meeting_for(mgr, "s1", "b1")

    assert mgr.cancel_meeting(meeting.id).success
    depth = mgr.history.history_length
    again = mgr.cancel_meeting(meeting.id)
    assert again.success
    assert mgr.history.history_length == depth

    other = meeting_for(mgr, "s1", "b2")
    assert mgr.bump_meeting(other.id).success
    assert not mgr.cancel_meeting(other.id).success


def test_bump_round_trip(make_config, settings) -> None:
    mgr = ScheduleManager(make_config(end_time="10:30"), [Supplier("s1", "Acme Corp")], [Buyer("b1", "Alice")],
                          settings=settings)
    mgr.generate_schedule()
    original = mgr.schedule.meetings[0]
    assert original.time_slot_id == SLOT_0900

    preview = mgr.find_next_available_slot(original.id)
    result = mgr.bump_meeting(original.id)

    assert result.success
    assert preview.id == result.new_slot_id == SLOT_0930
    bumped = mgr.schedule.get_meeting(original.id)
    replacement = mgr.schedule.get_meeting(result.meeting_id)
    assert bumped.status == MeetingStatus.BUMPED
    assert bumped.delayed_at is not None
    assert replacement.status == MeetingStatus.SCHEDULED
    assert replacement.original_time_slot_id == SLOT_0900
    assert replacement.bumped_from == original.id
    assert mgr.schedule.is_supplier_free("s1", SLOT_0900)

    mgr.undo()
    assert mgr.schedule.get_meeting(original.id).status == MeetingStatus.SCHEDULED
    assert mgr.schedule.get_meeting(result.meeting_id) is None


def test_bump_skips_busy_slots_and_fails_cleanly(manager, meeting_for) -> None:
    # Acme/Alice at 09:00; 09:30 is taken by Acme/Bob, and it is the last slot.
    meeting = meeting_for(manager, "s1", "b1")
    before = manager.schedule.snapshot()
    depth = manager.history.history_length

    assert manager.find_next_available_slot(meeting.id) is None
    assert not manager.bump_meeting(meeting.id).success
    assert manager.schedule.snapshot() == before
    assert manager.history.history_length == depth


def test_bump_stays_on_same_day(make_config, settings) -> None:
    config = make_config(end_date=date(2024, 5, 2), end_time="09:30")
    mgr = ScheduleManager(config, [Supplier("s1", "Acme Corp")], [Buyer("b1", "Alice")], settings=settings)
    mgr.generate_schedule()

    assert not mgr.bump_meeting(mgr.schedule.meetings[0].id).success


def test_bump_requires_bumpable_status(make_config, suppliers, buyers, settings, meeting_for) -> None:
    mgr = ScheduleManager(make_config(end_time="10:30"), suppliers, buyers, settings=settings)
    mgr.generate_schedule()
    meeting = meeting_for(mgr, "s1", "b1")
    mgr.start_meeting(meeting.id)

    assert not mgr.bump_meeting(meeting.id).success

    mgr.mark_meeting_running_late(meeting.id)
    assert mgr.bump_meeting(meeting.id).success


def test_auto_fill_reuses_cancelled_slot_once(make_config, settings) -> None:
    suppliers = [Supplier("s1", "Acme Corp", preference=PreferenceType.EXCLUDE, preference_list=["b2"])]
    buyers = [Buyer("b1", "Alice"), Buyer("b2", "Bob"), Buyer("b3", "Cleo"), Buyer("b4", "Dan")]
    mgr = ScheduleManager(make_config(), suppliers, buyers, settings=settings)
    mgr.generate_schedule()
    # Acme meets Alice at 09:00 and Cleo at 09:30; Dan could not be placed
    assert {(m.buyer_id, m.time_slot_id) for m in mgr.schedule.meetings} == {("b1", SLOT_0900), ("b3", SLOT_0930)}

    alice = next(m for m in mgr.schedule.meetings if m.buyer_id == "b1")
    mgr.cancel_meeting(alice.id)
    mgr.mark_meeting_delayed(next(m.id for m in mgr.schedule.meetings if m.buyer_id == "b3"))

    first = mgr.auto_fill_gaps()
    assert first.success and first.meeting_ids == [alice.id]
    filled = mgr.schedule.get_meeting(alice.id)
    assert filled.status == MeetingStatus.SCHEDULED
    # Dan is the only candidate left once Alice gives the slot up
    assert filled.buyer_id == "b4"
    assert mgr.activity.recent(1)[0].buyer_name == "Dan"

    depth = mgr.history.history_length
    state = mgr.schedule.snapshot()
    second = mgr.auto_fill_gaps()
    assert second.meeting_ids == []
    assert mgr.schedule.snapshot() == state
    assert mgr.history.history_length == depth


def test_auto_fill_respects_preferences_and_existing_pairs(make_config, settings) -> None:
    suppliers = [Supplier("s1", "Acme Corp", preference=PreferenceType.INCLUDE, preference_list=["b1", "b2"])]
    buyers = [Buyer("b1", "Alice"), Buyer("b2", "Bob"), Buyer("b3", "Cleo")]
    mgr = ScheduleManager(make_config(end_time="10:30"), suppliers, buyers, settings=settings)
    mgr.generate_schedule()
    alice = next(m for m in mgr.schedule.meetings if m.buyer_id == "b1")
    mgr.cancel_meeting(alice.id)
    # Alice is now busy elsewhere at 09:00, so the slot can only go to a permitted buyer
    mgr.add_supplier(Supplier("s2", "Globex"))
    mgr.add_meeting("s2", "b1", alice.time_slot_id)

    result = mgr.auto_fill_gaps()

    # Bob already meets Acme and Cleo is not on the include list
    assert result.meeting_ids == []
    assert mgr.schedule.get_meeting(alice.id).status == MeetingStatus.CANCELLED


def test_auto_fill_gives_slot_to_another_buyer(make_config, suppliers, settings) -> None:
    buyers = [Buyer("b1", "Alice"), Buyer("b2", "Bob"), Buyer("b3", "Cleo")]
    mgr = ScheduleManager(make_config(), suppliers[:1], buyers, settings=settings)
    mgr.generate_schedule()
    assert [(p.supplier_id, p.buyer_id) for p in mgr.schedule.unscheduled_pairs] == [("s1", "b3")]

    cancelled = next(m.id for m in mgr.schedule.meetings if m.buyer_id == "b1")
    mgr.cancel_meeting(cancelled)
    result = mgr.auto_fill_gaps()

    assert result.meeting_ids == [cancelled]
    assert mgr.schedule.get_meeting(cancelled).buyer_id == "b3"
    assert not any(m.buyer_id == "b1" for m in mgr.schedule.active_meetings())


def test_status_happy_path_and_activity(manager, meeting_for) -> None:
    meeting = meeting_for(manager, "s1", "b1")

    assert manager.start_meeting(meeting.id).success
    assert manager.complete_meeting(meeting.id).success
    assert manager.schedule.get_meeting(meeting.id).status == MeetingStatus.COMPLETED

    recent = manager.activity.recent(2)
    assert [e.type for e in recent] == [ActivityType.COMPLETED, ActivityType.STARTED]
    assert recent[0].supplier_name == "Acme Corp" and recent[0].buyer_name == "Alice"


def test_delay_records_reason_and_reset_clears_it(manager, meeting_for) -> None:
    meeting = meeting_for(manager, "s1", "b1")

    assert manager.mark_meeting_delayed(meeting.id, "Stuck in traffic").success
    delayed = manager.schedule.get_meeting(meeting.id)
    assert delayed.status == MeetingStatus.DELAYED
    assert delayed.delay_reason == "Stuck in traffic"
    assert delayed.delayed_at.tzinfo is not None
    assert manager.activity.recent(1)[0].reason == "Stuck in traffic"

    assert manager.reset_meeting_status(meeting.id).success
    reset = manager.schedule.get_meeting(meeting.id)
    assert reset.status == MeetingStatus.SCHEDULED
    assert reset.delay_reason is None and reset.delayed_at is None


def test_refused_transitions(manager, meeting_for) -> None:
    meeting = meeting_for(manager, "s1", "b1")

    assert not manager.complete_meeting(meeting.id).success
    assert not manager.mark_meeting_running_late(meeting.id).success
    assert not manager.update_meeting_status(meeting.id, MeetingStatus.BUMPED).success
    assert not manager.update_meeting_status(meeting.id, "finished").success

    manager.cancel_meeting(meeting.id)
    for verb in (manager.start_meeting, manager.reset_meeting_status, manager.mark_meeting_delayed):
        assert not verb(meeting.id).success


def test_late_meeting_can_still_finish(manager, meeting_for) -> None:
    meeting = meeting_for(manager, "s1", "b1")
    manager.start_meeting(meeting.id)
    manager.mark_meeting_running_late(meeting.id)

    assert manager.complete_meeting(meeting.id).success


def test_remove_supplier_deletes_meetings(manager) -> None:
    result = manager.remove_supplier("s1")

    assert result.success and len(result.meeting_ids) == 2
    assert all(m.supplier_id != "s1" for m in manager.schedule.meetings)
    assert manager.registry.get_supplier_by_id("s1") is None

    manager.undo()
    assert len(manager.schedule.meetings) == 4


def test_remove_buyer_strips_preference_lists(make_config, settings) -> None:
    suppliers = [Supplier("s1", "Acme Corp", preference=PreferenceType.INCLUDE, preference_list=["b1", "b2"])]
    mgr = ScheduleManager(make_config(), suppliers, [Buyer("b1", "Alice"), Buyer("b2", "Bob")], settings=settings)
    mgr.generate_schedule()

    result = mgr.remove_buyer("b1")

    assert result.success and len(result.meeting_ids) == 1
    assert mgr.registry.get_supplier_by_id("s1").preference_list == ["b2"]
    assert not mgr.remove_buyer("b1").success


def test_participant_updates(manager) -> None:
    assert manager.update_supplier("s1", name="Acme Industries").success
    assert manager.registry.get_supplier_by_id("s1").name == "Acme Industries"
    assert not manager.update_supplier("s1", preference="sometimes").success
    assert not manager.update_buyer("nobody", name="X").success
    assert not manager.add_buyer(Buyer("b1", "Duplicate")).success


def test_load_project_resets_session(manager, make_config, suppliers) -> None:
    manager.cancel_meeting(manager.schedule.meetings[0].id)

    result = manager.load_project(make_config(name="Second Expo"), suppliers, [Buyer("b9", "Zed")])

    assert result.success
    assert manager.schedule.meetings == []
    assert not manager.can_undo and not manager.can_redo
    assert manager.activity.recent() == []
    assert manager.registry.get_buyer_by_id("b1") is None


def test_set_event_config_validates(manager, make_config) -> None:
    assert not manager.set_event_config(make_config(meeting_duration=0)).success
    assert len(manager.schedule.meetings) == 4

    assert manager.set_event_config(make_config(end_time="11:00")).success
    assert manager.schedule.time_slots == []
    assert manager.generate_schedule().success
    assert len(manager.schedule.time_slots) == 4


def test_status_summary(manager, meeting_for) -> None:
    manager.start_meeting(meeting_for(manager, "s1", "b1").id)
    manager.complete_meeting(meeting_for(manager, "s1", "b1").id)
    manager.mark_meeting_delayed(meeting_for(manager, "s2", "b2").id)
    manager.cancel_meeting(meeting_for(manager, "s1", "b2").id)

    summary = manager.get_status_summary()

    assert summary.total == 3
    assert summary.completed == 1
    assert summary.delayed == 1
    assert summary.cancelled == 1
    assert summary.scheduled == 1
    assert summary.progress_percent == 33
    assert summary.attention_needed == [meeting_for(manager, "s2", "b2").id]


def test_upcoming_meetings(manager) -> None:
    during_first = pytz.UTC.localize(datetime(2024, 5, 1, 9, 10))
    upcoming = manager.get_upcoming_meetings(during_first)
    assert len(upcoming) == 4
    assert [slot.id for _, slot in upcoming] == [SLOT_0900, SLOT_0900, SLOT_0930, SLOT_0930]

    assert len(manager.get_upcoming_meetings(during_first, slot_count=1)) == 2
    assert manager.get_upcoming_meetings(during_first + timedelta(hours=2)) == []
    # Naive instants are read as UTC
    assert len(manager.get_upcoming_meetings(datetime(2024, 5, 1, 8, 0))) == 4
