from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from schemas.domain import (
    Activity,
    Budget,
    BudgetReward,
    BudgetRule,
    Habit,
    OptimizationSuggestion,
    PlannedTransaction,
    SavingsGoal,
    Transaction,
    UserProfile,
)
from services.errors import InvalidInputError, PersistenceError
from services.user_settings import get_or_create_user_profile

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """In-memory snapshot of one user's collections, owned by the composition root.

    Collections are only replaced after the store accepted the matching write.
    """

    user_id: str
    profile: UserProfile | None = None
    transactions: list[Transaction] = field(default_factory=list)
    goals: list[SavingsGoal] = field(default_factory=list)
    budgets: list[Budget] = field(default_factory=list)
    budget_rules: list[BudgetRule] = field(default_factory=list)
    budget_rewards: list[BudgetReward] = field(default_factory=list)
    planned_transactions: list[PlannedTransaction] = field(default_factory=list)
    habits: list[Habit] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)
    optimizations: list[OptimizationSuggestion] = field(default_factory=list)
    is_optimizing: bool = False


def load_app_state(store, user_id: str) -> AppState:
    state = AppState(
        user_id=user_id,
        profile=get_or_create_user_profile(store.session, user_id),
        transactions=store.transactions.list_for_user(user_id),
        goals=store.goals.list_for_user(user_id),
        budgets=store.budgets.list_for_user(user_id),
        budget_rules=store.budget_rules.list_for_user(user_id),
        budget_rewards=store.budget_rewards.list_for_user(user_id),
        planned_transactions=store.planned_transactions.list_for_user(user_id),
        habits=store.habits.list_for_user(user_id),
        activities=store.activities.list_for_user(user_id),
        optimizations=store.optimizations.list_for_user(user_id),
    )
    # Newest first, as the transaction list is shown.
    state.transactions.sort(key=lambda t: t.date, reverse=True)
    logger.info(
        "Loaded state for %s: %d transactions, %d budgets, %d habits",
        user_id,
        len(state.transactions),
        len(state.budgets),
        len(state.habits),
    )
    return state


@contextmanager
def store_write(store, action: str):
    """Wrap one store call; failures are logged, rolled back and re-raised."""
    try:
        yield
    except (SQLAlchemyError, LookupError) as exc:
        logger.exception("Store write failed during %s", action)
        store.rollback()
        raise PersistenceError(f"Failed to {action}. Please try again.") from exc


def replace_item(items: list, item) -> list:
    return [item if existing.id == item.id else existing for existing in items]


def remove_item(items: list, entity_id) -> list:
    return [existing for existing in items if existing.id != entity_id]


def find_item(items: list, entity_id):
    return next((existing for existing in items if existing.id == entity_id), None)


def validate_record(schema, payload: dict):
    """Build a domain record from caller input; schema violations become ``InvalidInputError``."""
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or schema.__name__
        raise InvalidInputError(f"Invalid {field}: {error['msg']}") from None


def record_fields(record) -> dict:
    return record.model_dump(exclude={"id"})


def apply_update(record, updates: dict):
    """Validate ``updates`` against ``record``; returns the new record and the fields to write."""
    schema = type(record)
    updated = validate_record(schema, {**record.model_dump(), **updates})
    changed = {k: getattr(updated, k) for k in updates if k in schema.model_fields and k != "id"}
    return updated, changed
