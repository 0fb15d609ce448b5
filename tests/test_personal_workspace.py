from datetime import date, datetime, timedelta

import pytest

from services.app_state import load_app_state
from services.errors import InvalidInputError
from services.personal_workspace import (
    add_activity,
    add_habit,
    cancel_activity,
    complete_activity,
    complete_habit_for_today,
    delete_activity,
    habit_overview,
    is_bad_habit_success_today,
    is_habit_completed_today,
    log_bad_habit_success,
    relapse_bad_habit,
    start_activity,
    today_summary,
    update_activity,
)


def test_activity_lifecycle(store, state, now):
    activity = add_activity(store, state, {"title": "Gym", "category": "exercise", "duration": 45}, now)
    assert activity.status == "pending"

    started = start_activity(store, state, activity.id)
    assert started.status == "in_progress"

    done = complete_activity(store, state, activity.id, now)
    assert done.completed_at == now
    assert store.activities.get(activity.id).status == "completed"

    with pytest.raises(InvalidInputError):
        cancel_activity(store, state, activity.id)


def test_activity_requires_title(store, state, now):
    with pytest.raises(InvalidInputError, match="Please enter an activity title"):
        add_activity(store, state, {"title": "  "}, now)


def test_delete_activity(store, state, now):
    activity = add_activity(store, state, {"title": "Call mum"}, now)
    delete_activity(store, state, activity.id)
    assert state.activities == []


def test_good_habit_completion_persists_dates(store, state, now):
    habit = add_habit(store, state, {"title": "Read"}, now)

    complete_habit_for_today(store, state, habit.id, now - timedelta(days=1))
    done = complete_habit_for_today(store, state, habit.id, now)
    again = complete_habit_for_today(store, state, habit.id, now)

    assert done.current_streak == 2
    assert again == done
    assert is_habit_completed_today(state, habit.id, now)

    reloaded = load_app_state(store, "user-1").habits[0]
    assert reloaded.completed_dates == [date(2026, 3, 14), date(2026, 3, 15)]
    assert reloaded.longest_streak == 2


def test_bad_habit_success_and_relapse(store, state, now):
    habit = add_habit(store, state, {"title": "Soda", "type": "bad"}, now - timedelta(days=10))

    log_bad_habit_success(store, state, habit.id, now)
    assert is_bad_habit_success_today(state, habit.id, now)

    relapsed = relapse_bad_habit(store, state, habit.id, now)
    assert relapsed.total_relapses == 1
    assert relapsed.current_streak == 0
    assert store.habits.get(habit.id).last_relapsed_date == date(2026, 3, 15)


def test_relapse_on_good_habit_is_noop(store, state, now):
    habit = add_habit(store, state, {"title": "Read"}, now)
    assert relapse_bad_habit(store, state, habit.id, now) == habit


def test_today_summary_and_overview(store, state, now):
    gym = add_activity(store, state, {"title": "Gym", "category": "exercise", "duration": 60, "date": now}, now)
    add_activity(store, state, {"title": "Read", "category": "learning", "duration": 30, "date": now}, now)
    complete_activity(store, state, gym.id, now)
    habit = add_habit(store, state, {"title": "Walk"}, now)
    complete_habit_for_today(store, state, habit.id, now)

    summary = today_summary(state, now)
    assert summary.total_activities == 2
    assert summary.completed_activities == 1
    assert summary.productivity_score == 70

    overview = habit_overview(state, now)
    assert overview.good_completion_rate == 100
    assert overview.total_good_streak == 1


def test_unknown_enum_values_are_rejected_before_writing(store, state, now):
    with pytest.raises(InvalidInputError, match="type"):
        add_habit(store, state, {"title": "Soda", "type": "ugly"}, now)
    with pytest.raises(InvalidInputError, match="category"):
        add_activity(store, state, {"title": "Gym", "category": "sports"}, now)

    reloaded = load_app_state(store, "user-1")
    assert reloaded.habits == []
    assert reloaded.activities == []


def test_activity_accepts_iso_date_string(store, state, now):
    activity = add_activity(store, state, {"title": "Dentist", "date": "2026-03-18T14:30:00"}, now)

    assert activity.date == datetime(2026, 3, 18, 14, 30)


def test_invalid_activity_update_is_rejected(store, state, now):
    activity = add_activity(store, state, {"title": "Gym"}, now)

    with pytest.raises(InvalidInputError, match="priority"):
        update_activity(store, state, activity.id, {"priority": "urgent"})

    assert state.activities == [activity]
    assert store.activities.get(activity.id).priority == "medium"
