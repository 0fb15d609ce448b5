from __future__ import annotations

from schemas.domain import Budget, BudgetRule, BudgetStatus, RuleViolation, Transaction
from services.categories import budget_category_for


def sort_rules(rules: list[BudgetRule]) -> list[BudgetRule]:
    strictness_rank = {"strict": 0, "moderate": 1, "flexible": 2}
    return sorted(rules, key=lambda r: (strictness_rank.get(r.strictness, 3), r.created_at, r.id or 0))


def rule_applies(rule: BudgetRule, budget_category: str) -> bool:
    if not rule.is_active:
        return False
    return rule.category is None or rule.category == budget_category


def _current_spent(statuses: list[BudgetStatus], budget: Budget) -> float:
    status = next((s for s in statuses if s.budget.id == budget.id), None)
    return status.budget.spent if status else 0.0


def check_max_amount(rule: BudgetRule, candidate: Transaction) -> tuple[bool, str]:
    # A zero or missing threshold means the rule does not cap single amounts.
    if not rule.max_amount:
        return False, "no amount cap"
    violated = candidate.amount > rule.max_amount
    return violated, f'Exceeds rule "{rule.name}" (max: {rule.max_amount:g})'


def check_max_percentage(
    rule: BudgetRule,
    candidate: Transaction,
    budget: Budget | None,
    statuses: list[BudgetStatus],
) -> tuple[bool, str]:
    if not rule.max_percentage or budget is None:
        return False, "no percentage cap"
    would_be_spent = _current_spent(statuses, budget) + candidate.amount
    would_be_pct = (would_be_spent / budget.limit) * 100 if budget.limit > 0 else 0.0
    violated = would_be_pct > rule.max_percentage
    return violated, f"Would exceed {rule.max_percentage:g}% of {budget.name} budget"


def check_rule_violations(
    candidate: Transaction,
    rules: list[BudgetRule],
    budgets: list[Budget],
    statuses: list[BudgetStatus],
) -> list[RuleViolation]:
    """Evaluate a not yet committed transaction against every active budget rule.

    Only expenses in a category that maps to a budget category are checked. Each rule
    can contribute one violation per configured threshold. Violations of ``strict``
    rules are blocking; the rest are advisory.
    """
    if candidate.type != "expense":
        return []

    budget_category = budget_category_for(candidate.category)
    if not budget_category:
        return []

    budget = next((b for b in budgets if b.category == budget_category), None)
    violations = []
    for rule in sort_rules(rules):
        if not rule_applies(rule, budget_category):
            continue
        is_blocking = rule.strictness == "strict"

        violated, message = check_max_amount(rule, candidate)
        if violated:
            violations.append(RuleViolation(rule=rule, type="max_amount", message=message, is_blocking=is_blocking))

        violated, message = check_max_percentage(rule, candidate, budget, statuses)
        if violated:
            violations.append(RuleViolation(rule=rule, type="max_percentage", message=message, is_blocking=is_blocking))

    return violations


def blocking_violations(violations: list[RuleViolation]) -> list[RuleViolation]:
    return [v for v in violations if v.is_blocking]


def has_blocking_violation(violations: list[RuleViolation]) -> bool:
    return any(v.is_blocking for v in violations)
