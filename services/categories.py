from __future__ import annotations

CATEGORY_TO_BUDGET: dict[str, str | None] = {
    "food": "groceries",
    "transport": "transport",
    "entertainment": "entertainment",
    "shopping": "personal",
    "bills": "utilities",
    "healthcare": "personal",
    "education": "personal",
    "investment": None,
    "savings": None,
    "income": None,
    "other": "other",
}

# Used to prefill a transaction's category when the user picks a budget.
BUDGET_TO_TRANSACTION_CATEGORY: dict[str, str] = {
    "groceries": "food",
    "dining": "food",
    "transport": "transport",
    "entertainment": "entertainment",
    "personal": "shopping",
    "utilities": "bills",
    "household": "other",
    "other": "other",
}


def budget_category_for(transaction_category: str) -> str | None:
    return CATEGORY_TO_BUDGET.get(transaction_category)


def transaction_category_for(budget_category: str) -> str:
    return BUDGET_TO_TRANSACTION_CATEGORY.get(budget_category, "other")
