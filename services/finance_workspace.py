from __future__ import annotations

from datetime import datetime
import logging

from schemas.domain import (
    Budget,
    BudgetImpact,
    BudgetReward,
    BudgetRule,
    PlannedTransaction,
    ProjectedBalance,
    RuleViolation,
    SavingsGoal,
    Transaction,
)
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
from services.budgets import (
    compute_budget_statuses,
    evaluate_budget_impact,
    evaluate_budget_rewards,
    stale_spent_snapshots,
)
from services.errors import BlockedByRuleError, ConfirmationRequiredError, InvalidInputError
from services.financial_summary import build_financial_summary
from services.planner import (
    advance_planned_transaction,
    due_planned_transactions,
    materialize_planned_transaction,
    projected_balance,
    upcoming_planned_transactions,
)
from services.rules_engine import blocking_violations, check_rule_violations

logger = logging.getLogger(__name__)


# Validation


def _require_positive(value, message: str) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(message) from None
    if amount <= 0:
        raise InvalidInputError(message)
    return amount


def _require_text(value, message: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(message)
    return text


def validate_transaction_fields(fields: dict) -> dict:
    cleaned = dict(fields)
    cleaned["amount"] = _require_positive(fields.get("amount"), "Please enter a valid amount")
    cleaned["description"] = _require_text(fields.get("description"), "Please enter a description")
    if fields.get("notes") is not None:
        cleaned["notes"] = fields["notes"].strip() or None
    return cleaned


def validate_planned_fields(fields: dict) -> dict:
    cleaned = validate_transaction_fields(fields)
    if not fields.get("scheduled_date"):
        raise InvalidInputError("Please select a scheduled date")
    return cleaned


def validate_goal_fields(fields: dict) -> dict:
    cleaned = dict(fields)
    cleaned["title"] = _require_text(fields.get("title"), "Please enter a goal title")
    cleaned["target_amount"] = _require_positive(fields.get("target_amount"), "Please enter a valid target amount")
    current = float(fields.get("current_amount") or 0)
    if current < 0:
        raise InvalidInputError("Current amount cannot be negative")
    if current > cleaned["target_amount"]:
        raise InvalidInputError("Current amount cannot exceed target amount")
    cleaned["current_amount"] = current
    return cleaned


# Transactions


def _candidate(fields: dict, now: datetime) -> Transaction:
    return validate_record(Transaction, {**fields, "date": fields.get("date") or now})


def _evaluate(state: AppState, candidate: Transaction, now: datetime) -> tuple[BudgetImpact | None, list[RuleViolation]]:
    statuses = compute_budget_statuses(state.transactions, state.budgets, now)
    violations = check_rule_violations(candidate, state.budget_rules, state.budgets, statuses)
    impact = evaluate_budget_impact(candidate, statuses, state.budget_rules, state.budgets)
    return impact, violations


def preview_transaction(state: AppState, fields: dict, now: datetime | None = None) -> tuple[BudgetImpact | None, list[RuleViolation]]:
    """What-if view of a transaction the user is still editing; nothing is written."""
    now = now or datetime.now()
    return _evaluate(state, _candidate(fields, now), now)


def _insert_transaction(store, state: AppState, transaction: Transaction) -> Transaction:
    with store_write(store, "add transaction"):
        created = store.transactions.create({**record_fields(transaction), "user_id": state.user_id})
    state.transactions = [created, *state.transactions]
    logger.info("Added %s %s %.2f (%s)", created.type, created.category, created.amount, created.description)
    return created


def add_transaction(store, state: AppState, fields: dict, confirmed: bool = False, now: datetime | None = None) -> Transaction:
    """Validate, gate on budget rules, then persist a new transaction.

    Strict rule violations raise ``BlockedByRuleError`` even when ``confirmed`` is set.
    Advisory violations and budget warnings raise ``ConfirmationRequiredError`` until the
    caller resubmits with ``confirmed=True``.
    """
    now = now or datetime.now()
    candidate = _candidate(validate_transaction_fields(fields), now)
    impact, violations = _evaluate(state, candidate, now)

    blocking = blocking_violations(violations)
    if blocking:
        logger.warning("Transaction '%s' blocked by %d strict rule violation(s)", candidate.description, len(blocking))
        raise BlockedByRuleError(blocking)

    has_warnings = bool(violations) or (impact is not None and (impact.will_exceed or impact.status == "danger"))
    if has_warnings and not confirmed:
        raise ConfirmationRequiredError(violations, impact)

    return _insert_transaction(store, state, candidate)


def delete_transaction(store, state: AppState, transaction_id: int) -> None:
    with store_write(store, "delete transaction"):
        store.transactions.delete(transaction_id)
    state.transactions = remove_item(state.transactions, transaction_id)


# Goals


def add_goal(store, state: AppState, fields: dict) -> SavingsGoal:
    record = validate_record(SavingsGoal, validate_goal_fields(fields))
    with store_write(store, "create goal"):
        goal = store.goals.create({**record_fields(record), "user_id": state.user_id})
    state.goals = [*state.goals, goal]
    return goal


def update_goal(store, state: AppState, goal_id: int, updates: dict) -> SavingsGoal:
    goal = find_item(state.goals, goal_id)
    if goal is None:
        raise InvalidInputError(f"Goal {goal_id} not found")
    updated, changed = apply_update(goal, updates)
    with store_write(store, "update goal"):
        store.goals.update(goal_id, changed)
    state.goals = replace_item(state.goals, updated)
    return updated


def delete_goal(store, state: AppState, goal_id: int) -> None:
    with store_write(store, "delete goal"):
        store.goals.delete(goal_id)
    state.goals = remove_item(state.goals, goal_id)


def add_goal_contribution(store, state: AppState, goal_id: int, amount) -> tuple[SavingsGoal, bool]:
    """Add money to a goal; returns the goal and whether it is now complete."""
    goal = find_item(state.goals, goal_id)
    if goal is None:
        raise InvalidInputError(f"Goal {goal_id} not found")
    contribution = _require_positive(amount, "Please enter a valid contribution amount")
    new_amount = goal.current_amount + contribution
    if new_amount > goal.target_amount:
        raise InvalidInputError(
            f"This contribution would exceed your goal. Maximum contribution: {goal.target_amount - goal.current_amount:.2f}"
        )
    updated = update_goal(store, state, goal_id, {"current_amount": new_amount})
    return updated, updated.target_amount - updated.current_amount == 0


# Budgets and rules


def add_budget(store, state: AppState, fields: dict, now: datetime | None = None):
    name = _require_text(fields.get("name"), "Please enter a budget name")
    limit = _require_positive(fields.get("limit"), "Please enter a valid budget limit")
    record = validate_record(
        Budget,
        {
            **fields,
            "name": name,
            "limit": limit,
            "spent": 0,
            "start_date": fields.get("start_date") or now or datetime.now(),
        },
    )
    with store_write(store, "create budget"):
        budget = store.budgets.create({**record_fields(record), "user_id": state.user_id})
    state.budgets = [*state.budgets, budget]
    logger.info("Budget added: %s (%s, limit %.2f)", budget.name, budget.category, budget.limit)
    return budget


def update_budget(store, state: AppState, budget_id: int, updates: dict):
    budget = find_item(state.budgets, budget_id)
    if budget is None:
        raise InvalidInputError(f"Budget {budget_id} not found")
    if "limit" in updates:
        updates = {**updates, "limit": _require_positive(updates["limit"], "Please enter a valid budget limit")}
    updated, changed = apply_update(budget, updates)
    with store_write(store, "update budget"):
        store.budgets.update(budget_id, changed)
    state.budgets = replace_item(state.budgets, updated)
    return updated


def delete_budget(store, state: AppState, budget_id: int) -> None:
    with store_write(store, "delete budget"):
        store.budgets.delete(budget_id)
    state.budgets = remove_item(state.budgets, budget_id)


def refresh_budget_spent(store, state: AppState, now: datetime | None = None) -> dict[int, float]:
    """Write the live spend back into the cached ``spent`` column where it drifted."""
    statuses = compute_budget_statuses(state.transactions, state.budgets, now)
    stale = stale_spent_snapshots(statuses, state.budgets)
    for budget_id, spent in stale.items():
        update_budget(store, state, budget_id, {"spent": spent})
    return stale


def add_budget_rule(store, state: AppState, fields: dict, now: datetime | None = None):
    name = _require_text(fields.get("name"), "Please enter a rule name")
    record = validate_record(
        BudgetRule,
        {
            "is_active": True,
            **fields,
            "name": name,
            "description": (fields.get("description") or "").strip(),
            "created_at": now or datetime.now(),
        },
    )
    with store_write(store, "create budget rule"):
        rule = store.budget_rules.create({**record_fields(record), "user_id": state.user_id})
    state.budget_rules = [*state.budget_rules, rule]
    logger.info("Budget rule added: %s (%s)", rule.name, rule.strictness)
    return rule


def update_budget_rule(store, state: AppState, rule_id: int, updates: dict):
    rule = find_item(state.budget_rules, rule_id)
    if rule is None:
        raise InvalidInputError(f"Rule {rule_id} not found")
    updated, changed = apply_update(rule, updates)
    with store_write(store, "update budget rule"):
        store.budget_rules.update(rule_id, changed)
    state.budget_rules = replace_item(state.budget_rules, updated)
    return updated


def delete_budget_rule(store, state: AppState, rule_id: int) -> None:
    with store_write(store, "delete budget rule"):
        store.budget_rules.delete(rule_id)
    state.budget_rules = remove_item(state.budget_rules, rule_id)


def award_budget_rewards(store, state: AppState, now: datetime | None = None) -> list[BudgetReward]:
    now = now or datetime.now()
    statuses = compute_budget_statuses(state.transactions, state.budgets, now)
    earned = []
    for reward in evaluate_budget_rewards(statuses, state.budget_rewards, now):
        with store_write(store, "save budget reward"):
            saved = store.budget_rewards.create({**reward.model_dump(exclude={"id"}), "user_id": state.user_id})
        state.budget_rewards = [*state.budget_rewards, saved]
        earned.append(saved)
        logger.info("Reward earned: %s %s (%d pts)", saved.budget_name, saved.tier, saved.points)
    return earned


# Planned transactions


def add_planned_transaction(store, state: AppState, fields: dict, now: datetime | None = None) -> PlannedTransaction:
    record = validate_record(
        PlannedTransaction,
        {
            "recurrence": "once",
            **validate_planned_fields(fields),
            "is_active": True,
            "created_at": now or datetime.now(),
        },
    )
    with store_write(store, "add planned transaction"):
        planned = store.planned_transactions.create({**record_fields(record), "user_id": state.user_id})
    state.planned_transactions = [*state.planned_transactions, planned]
    logger.info("Planned transaction added: %s (%s)", planned.description, planned.recurrence)
    return planned


def update_planned_transaction(store, state: AppState, planned_id: int, updates: dict) -> PlannedTransaction:
    planned = find_item(state.planned_transactions, planned_id)
    if planned is None:
        raise InvalidInputError(f"Planned transaction {planned_id} not found")
    updated, changed = apply_update(planned, updates)
    with store_write(store, "update planned transaction"):
        store.planned_transactions.update(planned_id, changed)
    state.planned_transactions = replace_item(state.planned_transactions, updated)
    return updated


def delete_planned_transaction(store, state: AppState, planned_id: int) -> None:
    with store_write(store, "delete planned transaction"):
        store.planned_transactions.delete(planned_id)
    state.planned_transactions = remove_item(state.planned_transactions, planned_id)


def process_planned_transaction(
    store,
    state: AppState,
    planned_id: int,
    now: datetime | None = None,
) -> tuple[Transaction, PlannedTransaction]:
    """Materialize a planned transaction and move it to its next cycle.

    The materialized transaction does not go through the rule gate.
    """
    now = now or datetime.now()
    planned = find_item(state.planned_transactions, planned_id)
    if planned is None:
        raise InvalidInputError(f"Planned transaction {planned_id} not found")
    if not planned.is_active:
        raise InvalidInputError(f"Planned transaction '{planned.description}' is no longer active")

    created = _insert_transaction(store, state, validate_record(Transaction, materialize_planned_transaction(planned, now)))
    updated = update_planned_transaction(store, state, planned_id, advance_planned_transaction(planned, now))
    logger.info("Processed planned transaction: %s", planned.description)
    return created, updated


def process_due_planned_transactions(store, state: AppState, now: datetime | None = None) -> list[Transaction]:
    now = now or datetime.now()
    created = []
    for planned in due_planned_transactions(state.planned_transactions, now):
        transaction, _ = process_planned_transaction(store, state, planned.id, now)
        created.append(transaction)
    return created


# Derived views


def financial_summary(state: AppState):
    return build_financial_summary(state.transactions, state.goals)


def budget_statuses(state: AppState, now: datetime | None = None):
    return compute_budget_statuses(state.transactions, state.budgets, now)


def upcoming_planned(state: AppState, now: datetime | None = None) -> list[PlannedTransaction]:
    return upcoming_planned_transactions(state.planned_transactions, now)


def balance_projection(state: AppState, now: datetime | None = None) -> ProjectedBalance:
    summary = financial_summary(state)
    return projected_balance(summary.balance, upcoming_planned(state, now))
