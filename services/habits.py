from __future__ import annotations

from datetime import date, datetime

from schemas.domain import Habit, HabitStats


def consecutive_run(dates: list[date]) -> int:
    """Length of the run of consecutive days starting at the most recent date.

    Walks the dates newest first and stops at the first gap.
    """
    ordered = sorted(set(dates), reverse=True)
    if not ordered:
        return 0
    streak = 1
    for current, previous in zip(ordered, ordered[1:]):
        if (current - previous).days != 1:
            break
        streak += 1
    return streak


def live_streak(habit: Habit, today: date) -> int:
    """Stored streak, or 0 once the chain has lapsed (no qualifying day since yesterday)."""
    dates = habit.success_dates if habit.type == "bad" else habit.completed_dates
    if not dates or (today - max(dates)).days > 1:
        return 0
    return habit.current_streak


def _with_new_date(habit: Habit, field: str, today: date) -> Habit:
    dates = getattr(habit, field)
    if today in dates:
        return habit
    updated_dates = sorted([*dates, today])
    streak = consecutive_run(updated_dates)
    return habit.model_copy(
        update={
            field: updated_dates,
            "current_streak": streak,
            "longest_streak": max(habit.longest_streak, streak),
        }
    )


def complete_habit(habit: Habit, today: date | None = None) -> Habit:
    today = today or date.today()
    return _with_new_date(habit, "completed_dates", today)


def log_habit_success(habit: Habit, today: date | None = None) -> Habit:
    if habit.type != "bad":
        return habit
    today = today or date.today()
    return _with_new_date(habit, "success_dates", today)


def relapse_habit(habit: Habit, today: date | None = None) -> Habit:
    if habit.type != "bad":
        return habit
    today = today or date.today()
    return habit.model_copy(
        update={
            "last_relapsed_date": today,
            "total_relapses": habit.total_relapses + 1,
            "days_clean": 0,
            "current_streak": 0,
        }
    )


def days_clean(habit: Habit, today: date | None = None) -> int:
    if habit.type != "bad":
        return 0
    today = today or date.today()
    start = habit.created_at.date()
    if habit.last_relapsed_date and habit.last_relapsed_date > start:
        start = habit.last_relapsed_date
    return max(0, (today - start).days)


def is_completed_on(habit: Habit, day: date) -> bool:
    return day in habit.completed_dates


def is_success_on(habit: Habit, day: date) -> bool:
    return habit.type == "bad" and day in habit.success_dates


def good_habits(habits: list[Habit], today: date | None = None) -> list[Habit]:
    today = today or date.today()
    return [
        h.model_copy(update={"current_streak": live_streak(h, today)})
        for h in habits
        if h.is_active and h.type == "good"
    ]


def bad_habits(habits: list[Habit], today: date | None = None) -> list[Habit]:
    today = today or date.today()
    return [
        h.model_copy(update={"days_clean": days_clean(h, today), "current_streak": live_streak(h, today)})
        for h in habits
        if h.is_active and h.type == "bad"
    ]


def habit_stats(habits: list[Habit], now: datetime | None = None) -> HabitStats:
    today = (now or datetime.now()).date()
    good = good_habits(habits, today)
    bad = bad_habits(habits, today)

    completed_today = sum(1 for h in good if is_completed_on(h, today))
    completion_rate = round(completed_today / len(good) * 100) if good else 0

    return HabitStats(
        good_completion_rate=completion_rate,
        total_good_streak=sum(h.current_streak for h in good),
        longest_good_streak=max((h.longest_streak for h in good), default=0),
        total_days_clean=sum(h.days_clean for h in bad),
        longest_clean_streak=max((h.days_clean for h in bad), default=0),
    )
