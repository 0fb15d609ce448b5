from datetime import datetime

from schemas.domain import PlannedTransaction
from services.planner import (
    advance_planned_transaction,
    due_planned_transactions,
    materialize_planned_transaction,
    next_occurrence,
    projected_balance,
    upcoming_planned_transactions,
)

NOW = datetime(2026, 3, 15, 12, 0)


def plan(when, recurrence="once", type="expense", amount=50, **extra):
    return PlannedTransaction(
        type=type,
        category="bills",
        amount=amount,
        description="Rent",
        scheduled_date=when,
        recurrence=recurrence,
        **extra,
    )


def test_next_occurrence_steps():
    start = datetime(2026, 3, 10, 9, 0)
    assert next_occurrence(start, "daily") == datetime(2026, 3, 11, 9, 0)
    assert next_occurrence(start, "weekly") == datetime(2026, 3, 17, 9, 0)
    assert next_occurrence(start, "biweekly") == datetime(2026, 3, 24, 9, 0)
    assert next_occurrence(start, "monthly") == datetime(2026, 4, 10, 9, 0)
    assert next_occurrence(start, "yearly") == datetime(2027, 3, 10, 9, 0)


def test_month_end_is_clamped():
    assert next_occurrence(datetime(2026, 1, 31), "monthly") == datetime(2026, 2, 28)
    assert next_occurrence(datetime(2028, 1, 31), "monthly") == datetime(2028, 2, 29)
    assert next_occurrence(datetime(2028, 2, 29), "yearly") == datetime(2029, 2, 28)


def test_once_plan_is_deactivated():
    update = advance_planned_transaction(plan(NOW), NOW)
    assert update == {"is_active": False, "last_processed_date": NOW}


def test_monthly_plan_moves_forward():
    update = advance_planned_transaction(plan(datetime(2026, 3, 1), "monthly"), NOW)
    assert update["scheduled_date"] == datetime(2026, 4, 1)
    assert update["last_processed_date"] == NOW
    assert "is_active" not in update


def test_materialized_transaction_is_dated_now_and_tagged():
    fields = materialize_planned_transaction(plan(datetime(2026, 3, 1), notes="landlord"), NOW)
    assert fields["date"] == NOW
    assert fields["notes"] == "[Planned] landlord"
    assert fields["amount"] == 50

    bare = materialize_planned_transaction(plan(datetime(2026, 3, 1)), NOW)
    assert bare["notes"] == "[Planned Transaction]"


def test_upcoming_window_is_thirty_days_and_sorted():
    plans = [
        plan(datetime(2026, 4, 10)),
        plan(datetime(2026, 3, 20)),
        plan(datetime(2026, 4, 20)),
        plan(datetime(2026, 3, 1)),
        plan(datetime(2026, 3, 18), is_active=False),
    ]
    upcoming = upcoming_planned_transactions(plans, NOW)
    assert [p.scheduled_date for p in upcoming] == [datetime(2026, 3, 20), datetime(2026, 4, 10)]


def test_due_plans_are_active_and_not_in_future():
    plans = [plan(datetime(2026, 3, 1)), plan(datetime(2026, 3, 16)), plan(NOW), plan(NOW, is_active=False)]
    assert [p.scheduled_date for p in due_planned_transactions(plans, NOW)] == [datetime(2026, 3, 1), NOW]


def test_projected_balance():
    upcoming = [plan(NOW, type="income", amount=1000), plan(NOW, amount=300), plan(NOW, amount=200)]
    projection = projected_balance(500, upcoming)
    assert projection.projected_income == 1000
    assert projection.projected_expenses == 500
    assert projection.projected_balance == 1000
