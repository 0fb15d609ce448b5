from __future__ import annotations

from datetime import datetime
import logging

from schemas.domain import Activity, DailySummary, Habit, HabitStats
from services.activities import daily_summary, transition
from services.app_state import (
    AppState,
    apply_update,
    find_item,
    record_fields,
    remove_item,
    replace_item,
    store_write,
    validate_record,
)
from services.errors import InvalidInputError
from services.habits import (
    complete_habit,
    habit_stats,
    is_completed_on,
    is_success_on,
    log_habit_success,
    relapse_habit,
)

logger = logging.getLogger(__name__)

HABIT_STREAK_FIELDS = ("completed_dates", "success_dates", "current_streak", "longest_streak")


def _require_title(fields: dict, message: str) -> str:
    title = (fields.get("title") or "").strip()
    if not title:
        raise InvalidInputError(message)
    return title


# Activities


def add_activity(store, state: AppState, fields: dict, now: datetime | None = None) -> Activity:
    now = now or datetime.now()
    record = validate_record(
        Activity,
        {
            "status": "pending",
            **fields,
            "title": _require_title(fields, "Please enter an activity title"),
            "date": fields.get("date") or now,
            "created_at": now,
        },
    )
    with store_write(store, "add activity"):
        activity = store.activities.create({**record_fields(record), "user_id": state.user_id})
    state.activities = [activity, *state.activities]
    return activity


def update_activity(store, state: AppState, activity_id: int, updates: dict) -> Activity:
    activity = find_item(state.activities, activity_id)
    if activity is None:
        raise InvalidInputError(f"Activity {activity_id} not found")
    updated, changed = apply_update(activity, updates)
    with store_write(store, "update activity"):
        store.activities.update(activity_id, changed)
    state.activities = replace_item(state.activities, updated)
    return updated


def delete_activity(store, state: AppState, activity_id: int) -> None:
    with store_write(store, "delete activity"):
        store.activities.delete(activity_id)
    state.activities = remove_item(state.activities, activity_id)


def _move_activity(store, state: AppState, activity_id: int, status: str, now: datetime | None) -> Activity:
    activity = find_item(state.activities, activity_id)
    if activity is None:
        raise InvalidInputError(f"Activity {activity_id} not found")
    moved = transition(activity, status, now)
    return update_activity(store, state, activity_id, {"status": moved.status, "completed_at": moved.completed_at})


def start_activity(store, state: AppState, activity_id: int) -> Activity:
    return _move_activity(store, state, activity_id, "in_progress", None)


def complete_activity(store, state: AppState, activity_id: int, now: datetime | None = None) -> Activity:
    return _move_activity(store, state, activity_id, "completed", now)


def cancel_activity(store, state: AppState, activity_id: int) -> Activity:
    return _move_activity(store, state, activity_id, "cancelled", None)


# Habits


def add_habit(store, state: AppState, fields: dict, now: datetime | None = None) -> Habit:
    record = validate_record(
        Habit,
        {
            **fields,
            "title": _require_title(fields, "Please enter a habit title"),
            "current_streak": 0,
            "longest_streak": 0,
            "completed_dates": [],
            "success_dates": [],
            "days_clean": 0,
            "total_relapses": 0,
            "created_at": now or datetime.now(),
        },
    )
    with store_write(store, "add habit"):
        habit = store.habits.create({**record_fields(record), "user_id": state.user_id})
    state.habits = [*state.habits, habit]
    return habit


def update_habit(store, state: AppState, habit_id: int, updates: dict) -> Habit:
    habit = find_item(state.habits, habit_id)
    if habit is None:
        raise InvalidInputError(f"Habit {habit_id} not found")
    updated, changed = apply_update(habit, updates)
    with store_write(store, "update habit"):
        store.habits.update(habit_id, changed)
    state.habits = replace_item(state.habits, updated)
    return updated


def delete_habit(store, state: AppState, habit_id: int) -> None:
    with store_write(store, "delete habit"):
        store.habits.delete(habit_id)
    state.habits = remove_item(state.habits, habit_id)


def _apply_habit_change(store, state: AppState, habit_id: int, change, fields: tuple[str, ...], now: datetime | None) -> Habit:
    habit = find_item(state.habits, habit_id)
    if habit is None:
        raise InvalidInputError(f"Habit {habit_id} not found")
    changed = change(habit, (now or datetime.now()).date())
    if changed is habit:
        return habit
    return update_habit(store, state, habit_id, {f: getattr(changed, f) for f in fields})


def complete_habit_for_today(store, state: AppState, habit_id: int, now: datetime | None = None) -> Habit:
    return _apply_habit_change(store, state, habit_id, complete_habit, HABIT_STREAK_FIELDS, now)


def log_bad_habit_success(store, state: AppState, habit_id: int, now: datetime | None = None) -> Habit:
    return _apply_habit_change(store, state, habit_id, log_habit_success, HABIT_STREAK_FIELDS, now)


def relapse_bad_habit(store, state: AppState, habit_id: int, now: datetime | None = None) -> Habit:
    habit = _apply_habit_change(
        store,
        state,
        habit_id,
        relapse_habit,
        ("last_relapsed_date", "total_relapses", "days_clean", "current_streak"),
        now,
    )
    if habit.type == "bad":
        logger.info("Relapse logged for '%s' (total %d)", habit.title, habit.total_relapses)
    return habit


# Derived views


def is_habit_completed_today(state: AppState, habit_id: int, now: datetime | None = None) -> bool:
    habit = find_item(state.habits, habit_id)
    return habit is not None and is_completed_on(habit, (now or datetime.now()).date())


def is_bad_habit_success_today(state: AppState, habit_id: int, now: datetime | None = None) -> bool:
    habit = find_item(state.habits, habit_id)
    return habit is not None and is_success_on(habit, (now or datetime.now()).date())


def today_summary(state: AppState, now: datetime | None = None) -> DailySummary:
    return daily_summary(state.activities, state.habits, now)


def habit_overview(state: AppState, now: datetime | None = None) -> HabitStats:
    return habit_stats(state.habits, now)
