from __future__ import annotations

from datetime import datetime, timedelta
import calendar

import pandas as pd

from schemas.domain import Budget, BudgetImpact, BudgetReward, BudgetRule, BudgetStatus, Transaction
from services.categories import budget_category_for
from services.rules_engine import check_rule_violations

WARNING_PCT = 70
DANGER_PCT = 90
WEEKLY_WINDOW_DAYS = 7

REWARD_TIERS = (
    # (max percentage used, tier, points)
    (50, "platinum", 100),
    (75, "gold", 75),
    (90, "silver", 50),
)


def percentage_of(spent: float, limit: float) -> float:
    return (spent / limit) * 100 if limit > 0 else 0.0


def status_tier(spent: float, limit: float) -> str:
    pct = percentage_of(spent, limit)
    if spent > limit:
        return "exceeded"
    if pct >= DANGER_PCT:
        return "danger"
    if pct >= WARNING_PCT:
        return "warning"
    return "safe"


def period_window(period: str, now: datetime) -> tuple[datetime, datetime]:
    if period == "monthly":
        return datetime(now.year, now.month, 1), now
    return now - timedelta(days=WEEKLY_WINDOW_DAYS), now


def budget_spent(transactions: list[Transaction], budget: Budget, now: datetime) -> float:
    start, end = period_window(budget.period, now)
    return sum(
        t.amount
        for t in transactions
        if t.type == "expense"
        and budget_category_for(t.category) == budget.category
        and start <= t.date <= end
    )


def compute_budget_statuses(
    transactions: list[Transaction],
    budgets: list[Budget],
    now: datetime | None = None,
) -> list[BudgetStatus]:
    """Derive the live spend and status tier of every budget.

    Spend is always recomputed from the transactions; the ``spent`` value stored on a
    budget is ignored. ``days_remaining`` and ``projected_end`` refer to the calendar
    month regardless of the budget period and are informational only.
    """
    now = now or datetime.now()
    _, days_in_month = calendar.monthrange(now.year, now.month)
    days_passed = now.day
    days_remaining = days_in_month - days_passed

    statuses = []
    for budget in budgets:
        spent = budget_spent(transactions, budget, now)
        daily_rate = spent / max(1, days_passed)
        statuses.append(
            BudgetStatus(
                budget=budget.model_copy(update={"spent": spent}),
                percentage_used=percentage_of(spent, budget.limit),
                remaining=max(0.0, budget.limit - spent),
                status=status_tier(spent, budget.limit),
                days_remaining=days_remaining,
                projected_end=daily_rate * days_in_month,
            )
        )
    return statuses


def find_status(statuses: list[BudgetStatus], budget_category: str | None) -> BudgetStatus | None:
    if not budget_category:
        return None
    return next((s for s in statuses if s.budget.category == budget_category), None)


def evaluate_budget_impact(
    candidate: Transaction,
    statuses: list[BudgetStatus],
    rules: list[BudgetRule],
    budgets: list[Budget],
) -> BudgetImpact | None:
    if candidate.type != "expense":
        return None

    current = find_status(statuses, budget_category_for(candidate.category))
    if current is None:
        return None

    limit = current.budget.limit
    current_spent = current.budget.spent
    new_spent = current_spent + candidate.amount

    return BudgetImpact(
        budget=current.budget,
        current_spent=current_spent,
        new_spent=new_spent,
        current_percentage=current.percentage_used,
        new_percentage=percentage_of(new_spent, limit),
        remaining=max(0.0, limit - new_spent),
        status=status_tier(new_spent, limit),
        will_exceed=new_spent > limit,
        rule_violations=check_rule_violations(candidate, rules, budgets, statuses),
    )


def stale_spent_snapshots(statuses: list[BudgetStatus], budgets: list[Budget]) -> dict[int, float]:
    """Budgets whose cached ``spent`` no longer matches the live figure."""
    live = {s.budget.id: s.budget.spent for s in statuses}
    return {
        b.id: round(live[b.id], 2)
        for b in budgets
        if b.id in live and round(b.spent, 2) != round(live[b.id], 2)
    }


def _reward_for(status: BudgetStatus) -> tuple[str, int, str]:
    budget = status.budget
    pct = status.percentage_used
    savings = budget.limit - budget.spent
    for max_pct, tier, points in REWARD_TIERS:
        if pct <= max_pct:
            break
    else:
        tier, points = "bronze", 25

    if tier == "platinum":
        message = f"Outstanding! You only used {pct:.0f}% of your {budget.name} budget!"
    elif tier == "gold":
        message = f"Excellent! You saved {savings:.0f} on {budget.name}!"
    elif tier == "silver":
        message = f"Great job staying under your {budget.name} budget!"
    else:
        message = f"You stayed within your {budget.name} budget!"
    return tier, points, message


def evaluate_budget_rewards(
    statuses: list[BudgetStatus],
    rewards: list[BudgetReward],
    now: datetime | None = None,
) -> list[BudgetReward]:
    """New rewards for budgets kept within their limit this month.

    At most one reward per budget and month; budgets already rewarded for the current
    period are skipped.
    """
    now = now or datetime.now()
    period = now.strftime("%Y-%m")
    awarded = {(r.budget_id, r.period) for r in rewards}

    earned = []
    for status in statuses:
        budget = status.budget
        if (budget.id, period) in awarded or budget.spent > budget.limit:
            continue
        tier, points, message = _reward_for(status)
        earned.append(
            BudgetReward(
                budget_id=budget.id,
                budget_name=budget.name,
                tier=tier,
                points=points,
                earned_at=now,
                period=period,
                savings_amount=budget.limit - budget.spent,
                message=message,
            )
        )
    return earned


def total_reward_points(rewards: list[BudgetReward]) -> int:
    return sum(r.points for r in rewards)


def budget_status_frame(statuses: list[BudgetStatus]) -> pd.DataFrame:
    if not statuses:
        return pd.DataFrame(columns=["budget", "category", "period", "limit", "spent", "remaining", "percentage_used", "status", "projected_end"])

    return pd.DataFrame(
        [
            {
                "budget": s.budget.name,
                "category": s.budget.category,
                "period": s.budget.period,
                "limit": s.budget.limit,
                "spent": round(s.budget.spent, 2),
                "remaining": round(s.remaining, 2),
                "percentage_used": round(s.percentage_used, 1),
                "status": s.status,
                "projected_end": round(s.projected_end, 2),
            }
            for s in statuses
        ]
    ).sort_values("percentage_used", ascending=False, ignore_index=True)
