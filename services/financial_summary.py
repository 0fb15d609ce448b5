from __future__ import annotations

import pandas as pd

from schemas.domain import CategorySpending, FinancialSummary, SavingsGoal, Transaction

# Transactions per day are measured against a fixed 30 day month.
FREQUENCY_WINDOW_DAYS = 30

SAVINGS_RATE_POINTS = ((20, 40), (10, 25), (0, 15))
BALANCE_POINTS = ((1000, 30), (500, 20), (0, 10))
FREQUENCY_POINTS = ((5, 20), (10, 15))
FREQUENCY_FLOOR_POINTS = 10
GOAL_POINTS = 10


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _tier_points(value: float, tiers) -> int:
    for threshold, points in tiers:
        if value > threshold:
            return points
    return 0


def goal_progress(goals: list[SavingsGoal]) -> float:
    if not goals:
        return 0.0
    fractions = [g.current_amount / g.target_amount if g.target_amount > 0 else 0.0 for g in goals]
    return sum(fractions) / len(fractions)


def health_score(savings_rate: float, balance: float, transaction_count: int, goals: list[SavingsGoal]) -> float:
    score = _tier_points(savings_rate, SAVINGS_RATE_POINTS)
    score += _tier_points(balance, BALANCE_POINTS)

    per_day = transaction_count / FREQUENCY_WINDOW_DAYS
    frequency = next((points for limit, points in FREQUENCY_POINTS if per_day < limit), FREQUENCY_FLOOR_POINTS)
    score += frequency

    score += goal_progress(goals) * GOAL_POINTS
    return _clamp(score)


def build_financial_summary(transactions: list[Transaction], goals: list[SavingsGoal]) -> FinancialSummary:
    total_income = sum(t.amount for t in transactions if t.type == "income")
    total_expenses = sum(t.amount for t in transactions if t.type == "expense")
    balance = total_income - total_expenses
    raw_rate = (balance / total_income) * 100 if total_income > 0 else 0.0

    return FinancialSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        balance=balance,
        savings_rate=_clamp(raw_rate),
        health_score=health_score(raw_rate, balance, len(transactions), goals),
    )


def transactions_frame(transactions: list[Transaction]) -> pd.DataFrame:
    columns = ["id", "type", "category", "amount", "description", "date"]
    if not transactions:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame([t.model_dump(include=set(columns)) for t in transactions], columns=columns)
    df["date"] = pd.to_datetime(df["date"])
    return df


def category_spending(transactions: list[Transaction]) -> list[CategorySpending]:
    df = transactions_frame(transactions)
    expenses = df[df["type"] == "expense"]
    if expenses.empty:
        return []

    total = float(expenses["amount"].sum())
    grouped = (
        expenses.groupby("category")["amount"]
        .agg(["sum", "count"])
        .sort_values("sum", ascending=False)
    )
    return [
        CategorySpending(
            category=category,
            amount=float(row["sum"]),
            percentage=(float(row["sum"]) / total) * 100 if total > 0 else 0.0,
            transactions=int(row["count"]),
        )
        for category, row in grouped.iterrows()
    ]
