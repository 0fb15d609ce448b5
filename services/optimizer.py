from __future__ import annotations

from datetime import datetime
import logging
import uuid

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from schemas.domain import (
    Difficulty,
    OptimizationPriority,
    OptimizationReport,
    OptimizationSuggestion,
    OptimizationType,
    TransactionCategory,
)
from services.app_state import AppState, find_item, replace_item, store_write
from services.errors import InvalidInputError
from services.financial_summary import build_financial_summary, transactions_frame

logger = logging.getLogger(__name__)

SAMPLE_TRANSACTIONS_PER_CATEGORY = 5


class SuggestionPayload(BaseModel):
    """One suggestion as returned by the generator, before an id is attached."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: OptimizationType
    priority: OptimizationPriority
    title: str
    description: str
    potential_savings: float | None = None
    potential_income: float | None = None
    category: TransactionCategory | None = None
    implementation_difficulty: Difficulty
    timeframe: str
    action_items: list[str] = Field(default_factory=list)


def spending_by_category(state: AppState) -> list[dict]:
    df = transactions_frame(state.transactions)
    expenses = df[df["type"] == "expense"].sort_values("date", ascending=False)
    if expenses.empty:
        return []

    total = float(expenses["amount"].sum())
    rows = []
    for category, group in expenses.groupby("category", sort=False):
        amount = float(group["amount"].sum())
        rows.append(
            {
                "category": category,
                "amount": round(amount, 2),
                "percentage": round(amount / total * 100, 2) if total > 0 else 0.0,
                "count": int(len(group)),
                "avgTransaction": round(amount / len(group), 2),
                "transactions": [
                    {"description": r.description, "amount": float(r.amount), "date": r.date.isoformat()}
                    for r in group.head(SAMPLE_TRANSACTIONS_PER_CATEGORY).itertuples()
                ],
            }
        )
    return rows


def build_optimization_context(state: AppState, now: datetime | None = None) -> dict:
    now = now or datetime.now()
    summary = build_financial_summary(state.transactions, state.goals)
    profile = state.profile
    month_ago = now - relativedelta(months=1)
    raw_rate = (summary.balance / summary.total_income) * 100 if summary.total_income > 0 else 0.0

    return {
        "user": {
            "name": profile.name if profile else None,
            "monthlyIncome": profile.monthly_income if profile else None,
            "householdSize": profile.household_size if profile else None,
            "primaryGoals": profile.primary_goals if profile else [],
            "riskTolerance": profile.risk_tolerance if profile else None,
            "currency": profile.currency if profile else None,
        },
        "financial": {
            "totalIncome": summary.total_income,
            "totalExpenses": summary.total_expenses,
            "balance": summary.balance,
            "savingsRate": raw_rate,
            "healthScore": summary.health_score,
        },
        "spending": spending_by_category(state),
        "goals": [
            {
                "title": g.title,
                "target": g.target_amount,
                "current": g.current_amount,
                "progress": (g.current_amount / g.target_amount) * 100 if g.target_amount > 0 else 0.0,
            }
            for g in state.goals
        ],
        "transactionCount": {
            "total": len(state.transactions),
            "lastMonth": sum(1 for t in state.transactions if t.date >= month_ago),
        },
    }


def parse_suggestions(response) -> list[OptimizationSuggestion]:
    """Validate a generator response and attach ids.

    Accepts either a bare list of suggestions or ``{"suggestions": [...]}``.
    """
    items = response.get("suggestions", []) if isinstance(response, dict) else list(response or [])
    suggestions = []
    for item in items:
        payload = SuggestionPayload.model_validate(item)
        suggestions.append(
            OptimizationSuggestion(id=uuid.uuid4().hex, implemented=False, **payload.model_dump())
        )
    return suggestions


def build_report(suggestions: list[OptimizationSuggestion], now: datetime | None = None) -> OptimizationReport:
    return OptimizationReport(
        total_potential_savings=sum(s.potential_savings or 0 for s in suggestions),
        total_potential_income=sum(s.potential_income or 0 for s in suggestions),
        suggestions=suggestions,
        generated_at=now or datetime.now(),
    )


def generate_optimizations(store, state: AppState, generator, now: datetime | None = None) -> OptimizationReport | None:
    """Ask ``generator`` for suggestions and replace the stored ones.

    ``generator`` is a callable taking the context dict and returning the raw
    suggestions. Returns ``None`` when a request is already running.
    """
    if state.is_optimizing:
        logger.warning("Optimization already in progress for %s; skipping", state.user_id)
        return None

    state.is_optimizing = True
    try:
        context = build_optimization_context(state, now)
        logger.info("Requesting suggestions (%d spending categories)", len(context["spending"]))
        suggestions = parse_suggestions(generator(context))

        with store_write(store, "save optimizations"):
            for old in state.optimizations:
                store.optimizations.delete(old.id)
            saved = [
                store.optimizations.create({**s.model_dump(), "user_id": state.user_id})
                for s in suggestions
            ]
        state.optimizations = saved
        report = build_report(saved, now)
        logger.info("Optimization complete: %d suggestions", len(saved))
        return report
    finally:
        state.is_optimizing = False


def mark_optimization_implemented(store, state: AppState, suggestion_id: str) -> OptimizationSuggestion:
    suggestion = find_item(state.optimizations, suggestion_id)
    if suggestion is None:
        raise InvalidInputError(f"Suggestion {suggestion_id} not found")
    with store_write(store, "mark optimization implemented"):
        store.optimizations.update(suggestion_id, {"implemented": True})
    updated = suggestion.model_copy(update={"implemented": True})
    state.optimizations = replace_item(state.optimizations, updated)
    return updated


def clear_optimizations(store, state: AppState) -> None:
    with store_write(store, "clear optimizations"):
        for suggestion in state.optimizations:
            store.optimizations.delete(suggestion.id)
    state.optimizations = []
