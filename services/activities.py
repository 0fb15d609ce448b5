from __future__ import annotations

from datetime import date, datetime

from schemas.domain import Activity, CategoryBreakdown, DailySummary, Habit
from services.errors import InvalidInputError

TERMINAL_STATUSES = ("completed", "cancelled")
UPCOMING_LIMIT = 5

ACTIVITY_WEIGHT = 0.6
HABIT_WEIGHT = 0.4


def transition(activity: Activity, status: str, now: datetime | None = None) -> Activity:
    """Move an activity to ``status``; completed and cancelled are terminal."""
    if activity.status in TERMINAL_STATUSES:
        raise InvalidInputError(f"Activity '{activity.title}' is already {activity.status}")
    if status == activity.status:
        return activity

    update: dict = {"status": status}
    if status == "completed":
        update["completed_at"] = now or datetime.now()
    return activity.model_copy(update=update)


def activities_for_date(activities: list[Activity], day: date) -> list[Activity]:
    return [a for a in activities if a.date.date() == day]


def upcoming_activities(activities: list[Activity], now: datetime | None = None, limit: int = UPCOMING_LIMIT) -> list[Activity]:
    now = now or datetime.now()
    pending = [a for a in activities if a.date >= now and a.status not in TERMINAL_STATUSES]
    return sorted(pending, key=lambda a: a.date)[:limit]


def daily_summary(activities: list[Activity], habits: list[Habit], now: datetime | None = None) -> DailySummary:
    today = (now or datetime.now()).date()
    todays = activities_for_date(activities, today)
    completed = [a for a in todays if a.status == "completed"]

    breakdown: dict[str, CategoryBreakdown] = {}
    for a in todays:
        row = breakdown.setdefault(a.category, CategoryBreakdown(category=a.category, count=0, duration=0))
        row.count += 1
        row.duration += a.duration or 0

    completion_rate = len(completed) / len(todays) * 100 if todays else 0.0
    habits_done = sum(1 for h in habits if today in h.completed_dates)
    habit_rate = habits_done / len(habits) * 100 if habits else 0.0

    return DailySummary(
        date=today,
        total_activities=len(todays),
        completed_activities=len(completed),
        total_duration=sum(a.duration or 0 for a in todays),
        productivity_score=round(completion_rate * ACTIVITY_WEIGHT + habit_rate * HABIT_WEIGHT),
        category_breakdown=list(breakdown.values()),
    )
