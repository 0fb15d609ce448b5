from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from services.app_state import load_app_state
from services.errors import (
    BlockedByRuleError,
    ConfirmationRequiredError,
    InvalidInputError,
    PersistenceError,
)
from services.finance_workspace import (
    add_budget,
    add_budget_rule,
    add_goal,
    add_goal_contribution,
    add_planned_transaction,
    add_transaction,
    award_budget_rewards,
    balance_projection,
    budget_statuses,
    delete_transaction,
    preview_transaction,
    process_due_planned_transactions,
    process_planned_transaction,
    refresh_budget_spent,
    update_budget,
    update_budget_rule,
    update_planned_transaction,
)


def food(amount, **extra):
    return {"type": "expense", "category": "food", "amount": amount, "description": "Groceries", **extra}


def seed_groceries(store, state, now, limit=100):
    return add_budget(store, state, {"category": "groceries", "name": "Groceries", "limit": limit}, now)


def failing(*args, **kwargs):
    raise SQLAlchemyError("database is locked")


def test_plain_transaction_is_persisted_and_prepended(store, state, now):
    add_transaction(store, state, {"type": "income", "category": "income", "amount": 900, "description": "Salary"}, now=now)
    created = add_transaction(store, state, food(20), now=now)

    assert state.transactions[0] == created
    assert created.id is not None
    assert created.date == now
    assert len(store.transactions.list_for_user("user-1")) == 2


@pytest.mark.parametrize(
    "fields, message",
    [
        (food(0), "Please enter a valid amount"),
        (food(-5), "Please enter a valid amount"),
        (food("abc"), "Please enter a valid amount"),
        (food(10, description="   "), "Please enter a description"),
    ],
)
def test_invalid_input_is_rejected_before_writing(store, state, now, fields, message):
    with pytest.raises(InvalidInputError, match=message):
        add_transaction(store, state, fields, now=now)
    assert state.transactions == []
    assert store.transactions.list_for_user("user-1") == []


def test_strict_rule_blocks_even_when_confirmed(store, state, now):
    seed_groceries(store, state, now, limit=500)
    add_budget_rule(store, state, {"name": "Cap", "max_amount": 100, "strictness": "strict"}, now)

    with pytest.raises(BlockedByRuleError) as exc:
        add_transaction(store, state, food(100.01), confirmed=True, now=now)

    assert exc.value.violations[0].rule.name == "Cap"
    assert state.transactions == []


def test_amount_at_threshold_passes_strict_rule(store, state, now):
    seed_groceries(store, state, now, limit=500)
    add_budget_rule(store, state, {"name": "Cap", "max_amount": 100, "strictness": "strict"}, now)

    created = add_transaction(store, state, food(100.00), now=now)
    assert created.amount == 100


def test_advisory_violation_needs_confirmation(store, state, now):
    seed_groceries(store, state, now, limit=500)
    add_budget_rule(store, state, {"name": "Gentle", "max_amount": 50, "strictness": "flexible"}, now)

    with pytest.raises(ConfirmationRequiredError) as exc:
        add_transaction(store, state, food(60), now=now)
    assert [v.rule.name for v in exc.value.violations] == ["Gentle"]
    assert state.transactions == []

    created = add_transaction(store, state, food(60), confirmed=True, now=now)
    assert state.transactions == [created]


def test_danger_impact_needs_confirmation_without_rules(store, state, now):
    seed_groceries(store, state, now, limit=100)

    with pytest.raises(ConfirmationRequiredError) as exc:
        add_transaction(store, state, food(95), now=now)
    assert exc.value.impact.status == "danger"
    assert exc.value.violations == []


def test_preview_does_not_write(store, state, now):
    seed_groceries(store, state, now, limit=100)
    add_transaction(store, state, food(50), now=now)

    impact, violations = preview_transaction(state, food(60), now)

    assert impact.current_spent == 50
    assert impact.new_spent == 110
    assert impact.will_exceed
    assert violations == []
    assert len(state.transactions) == 1


def test_budget_status_after_two_expenses(store, state, now):
    seed_groceries(store, state, now, limit=100)
    add_transaction(store, state, food(50), now=now)
    add_transaction(store, state, food(60), confirmed=True, now=now)

    status = budget_statuses(state, now)[0]
    assert status.budget.spent == 110
    assert status.status == "exceeded"
    assert status.remaining == 0


def test_failed_write_leaves_state_unchanged(store, state, now, monkeypatch):
    monkeypatch.setattr(store.transactions, "create", failing)

    with pytest.raises(PersistenceError):
        add_transaction(store, state, food(10), now=now)

    assert state.transactions == []


def test_delete_transaction(store, state, now):
    created = add_transaction(store, state, food(10), now=now)
    delete_transaction(store, state, created.id)
    assert state.transactions == []
    assert store.transactions.get(created.id) is None


def test_state_reloads_newest_first(store, state, now):
    add_transaction(store, state, food(10, date=now - timedelta(days=2)), now=now)
    add_transaction(store, state, food(20, date=now), now=now)

    reloaded = load_app_state(store, "user-1")
    assert [t.amount for t in reloaded.transactions] == [20, 10]


def test_goal_contribution_completes_goal(store, state):
    goal = add_goal(store, state, {"title": "Trip", "target_amount": 1000, "current_amount": 900})

    updated, completed = add_goal_contribution(store, state, goal.id, 100)

    assert updated.current_amount == 1000
    assert completed
    assert store.goals.get(goal.id).current_amount == 1000


def test_goal_contribution_cannot_overshoot(store, state):
    goal = add_goal(store, state, {"title": "Trip", "target_amount": 1000, "current_amount": 900})

    with pytest.raises(InvalidInputError, match="Maximum contribution: 100.00"):
        add_goal_contribution(store, state, goal.id, 150)


def test_goal_validation():
    with pytest.raises(InvalidInputError):
        add_goal(None, None, {"title": "Trip", "target_amount": 100, "current_amount": 150})


def test_inactive_rule_is_ignored(store, state, now):
    seed_groceries(store, state, now, limit=500)
    rule = add_budget_rule(store, state, {"name": "Cap", "max_amount": 10, "strictness": "strict"}, now)
    update_budget_rule(store, state, rule.id, {"is_active": False})

    assert add_transaction(store, state, food(20), now=now).amount == 20


def test_refresh_budget_spent_writes_live_value(store, state, now):
    budget = seed_groceries(store, state, now, limit=500)
    add_transaction(store, state, food(42.5), now=now)

    assert refresh_budget_spent(store, state, now) == {budget.id: 42.5}
    assert store.budgets.get(budget.id).spent == 42.5
    assert refresh_budget_spent(store, state, now) == {}


def test_rewards_awarded_once_per_month(store, state, now):
    seed_groceries(store, state, now, limit=500)
    add_transaction(store, state, food(100), now=now)

    earned = award_budget_rewards(store, state, now)
    assert [(r.tier, r.points) for r in earned] == [("platinum", 100)]
    assert award_budget_rewards(store, state, now) == []
    assert len(store.budget_rewards.list_for_user("user-1")) == 1


def test_planned_transaction_requires_date(store, state, now):
    with pytest.raises(InvalidInputError, match="Please select a scheduled date"):
        add_planned_transaction(store, state, food(10), now)


def test_process_monthly_plan(store, state, now):
    planned = add_planned_transaction(
        store,
        state,
        food(30, scheduled_date=datetime(2026, 1, 31, 9, 0), recurrence="monthly", notes="weekly shop"),
        now,
    )

    created, updated = process_planned_transaction(store, state, planned.id, now)

    assert created.date == now
    assert created.notes == "[Planned] weekly shop"
    assert updated.scheduled_date == datetime(2026, 2, 28, 9, 0)
    assert updated.last_processed_date == now
    assert updated.is_active
    assert store.planned_transactions.get(planned.id).scheduled_date == datetime(2026, 2, 28, 9, 0)


def test_process_once_plan_then_reject_second_run(store, state, now):
    planned = add_planned_transaction(store, state, food(30, scheduled_date=now - timedelta(hours=1)), now)

    _, updated = process_planned_transaction(store, state, planned.id, now)
    assert not updated.is_active
    assert updated.scheduled_date == planned.scheduled_date

    with pytest.raises(InvalidInputError):
        process_planned_transaction(store, state, planned.id, now)


def test_processing_bypasses_rule_gate(store, state, now):
    seed_groceries(store, state, now, limit=50)
    add_budget_rule(store, state, {"name": "Cap", "max_amount": 10, "strictness": "strict"}, now)
    add_planned_transaction(store, state, food(200, scheduled_date=now - timedelta(days=1)), now)

    created = process_due_planned_transactions(store, state, now)

    assert [t.amount for t in created] == [200]


def test_balance_projection_uses_upcoming_plans(store, state, now):
    add_transaction(store, state, {"type": "income", "category": "income", "amount": 1000, "description": "Salary"}, now=now)
    add_planned_transaction(store, state, food(300, scheduled_date=now + timedelta(days=3)), now)
    add_planned_transaction(store, state, food(999, scheduled_date=now + timedelta(days=40)), now)

    projection = balance_projection(state, now)

    assert projection.current_balance == 1000
    assert projection.projected_expenses == 300
    assert projection.projected_balance == 700


def test_unknown_recurrence_is_rejected_before_writing(store, state, now):
    with pytest.raises(InvalidInputError, match="recurrence"):
        add_planned_transaction(store, state, food(30, scheduled_date=now, recurrence="quarterly"), now)

    assert state.planned_transactions == []
    assert store.planned_transactions.list_for_user("user-1") == []
    assert load_app_state(store, "user-1").planned_transactions == []


def test_unknown_budget_category_is_rejected_before_writing(store, state, now):
    with pytest.raises(InvalidInputError, match="category"):
        add_budget(store, state, {"category": "travel", "name": "Trips", "limit": 300}, now)

    assert store.budgets.list_for_user("user-1") == []
    assert load_app_state(store, "user-1").budgets == []


def test_unknown_rule_strictness_and_transaction_type_are_rejected(store, state, now):
    with pytest.raises(InvalidInputError):
        add_budget_rule(store, state, {"name": "Cap", "max_amount": 10, "strictness": "harsh"}, now)
    with pytest.raises(InvalidInputError):
        add_transaction(store, state, food(10, type="refund"), now=now)

    assert store.budget_rules.list_for_user("user-1") == []
    assert store.transactions.list_for_user("user-1") == []


def test_iso_date_strings_are_stored_as_datetimes(store, state, now):
    created = add_transaction(store, state, food(12, date="2026-03-14T09:00:00"), now=now)
    planned = add_planned_transaction(store, state, food(30, scheduled_date="2026-03-20T08:00:00"), now)
    goal = add_goal(store, state, {"title": "Trip", "target_amount": 500, "deadline": "2026-12-31"})

    assert created.date == datetime(2026, 3, 14, 9, 0)
    assert planned.scheduled_date == datetime(2026, 3, 20, 8, 0)
    assert goal.deadline == date(2026, 12, 31)
    assert load_app_state(store, "user-1").transactions[0].date == datetime(2026, 3, 14, 9, 0)


def test_invalid_update_leaves_store_and_state_unchanged(store, state, now):
    budget = seed_groceries(store, state, now, limit=100)

    with pytest.raises(InvalidInputError, match="period"):
        update_budget(store, state, budget.id, {"period": "daily"})

    assert state.budgets == [budget]
    assert store.budgets.get(budget.id).period == "monthly"
    assert load_app_state(store, "user-1").budgets[0].period == "monthly"


def test_update_accepts_iso_date_strings(store, state, now):
    planned = add_planned_transaction(store, state, food(30, scheduled_date=now), now)

    updated = update_planned_transaction(store, state, planned.id, {"scheduled_date": "2026-04-01T10:00:00"})

    assert updated.scheduled_date == datetime(2026, 4, 1, 10, 0)
    assert store.planned_transactions.get(planned.id).scheduled_date == datetime(2026, 4, 1, 10, 0)
