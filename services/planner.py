from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from schemas.domain import PlannedTransaction, ProjectedBalance

UPCOMING_WINDOW_DAYS = 30
PLANNED_NOTE_PREFIX = "[Planned]"
PLANNED_DEFAULT_NOTE = "[Planned Transaction]"

# relativedelta clamps the day of month, so Jan 31 + 1 month lands on Feb 28/29.
RECURRENCE_STEPS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(days=7),
    "biweekly": relativedelta(days=14),
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}


def next_occurrence(when: datetime, recurrence: str) -> datetime:
    step = RECURRENCE_STEPS.get(recurrence)
    if step is None:
        return when
    return when + step


def materialize_planned_transaction(planned: PlannedTransaction, now: datetime | None = None) -> dict:
    """Fields of the real transaction created when a planned one is processed.

    The transaction is dated at processing time, not at the scheduled date.
    """
    now = now or datetime.now()
    return {
        "type": planned.type,
        "category": planned.category,
        "amount": planned.amount,
        "description": planned.description,
        "date": now,
        "notes": f"{PLANNED_NOTE_PREFIX} {planned.notes}" if planned.notes else PLANNED_DEFAULT_NOTE,
    }


def advance_planned_transaction(planned: PlannedTransaction, now: datetime | None = None) -> dict:
    now = now or datetime.now()
    if planned.recurrence == "once":
        return {"is_active": False, "last_processed_date": now}
    return {
        "scheduled_date": next_occurrence(planned.scheduled_date, planned.recurrence),
        "last_processed_date": now,
    }


def upcoming_planned_transactions(
    planned: list[PlannedTransaction],
    now: datetime | None = None,
    days: int = UPCOMING_WINDOW_DAYS,
) -> list[PlannedTransaction]:
    now = now or datetime.now()
    horizon = now + timedelta(days=days)
    upcoming = [p for p in planned if p.is_active and now <= p.scheduled_date <= horizon]
    return sorted(upcoming, key=lambda p: p.scheduled_date)


def due_planned_transactions(planned: list[PlannedTransaction], now: datetime | None = None) -> list[PlannedTransaction]:
    now = now or datetime.now()
    due = [p for p in planned if p.is_active and p.scheduled_date <= now]
    return sorted(due, key=lambda p: p.scheduled_date)


def projected_balance(current_balance: float, upcoming: list[PlannedTransaction]) -> ProjectedBalance:
    projected_income = sum(p.amount for p in upcoming if p.type == "income")
    projected_expenses = sum(p.amount for p in upcoming if p.type != "income")
    return ProjectedBalance(
        current_balance=current_balance,
        projected_income=projected_income,
        projected_expenses=projected_expenses,
        projected_balance=current_balance + projected_income - projected_expenses,
    )
