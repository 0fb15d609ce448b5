from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TransactionType = Literal["income", "expense"]
TransactionCategory = Literal[
    "food",
    "transport",
    "entertainment",
    "shopping",
    "bills",
    "healthcare",
    "education",
    "investment",
    "savings",
    "income",
    "other",
]
BudgetCategory = Literal["household", "groceries", "utilities", "entertainment", "dining", "transport", "personal", "other"]
BudgetPeriod = Literal["weekly", "monthly"]
BudgetStatusTier = Literal["safe", "warning", "danger", "exceeded"]
RuleStrictness = Literal["flexible", "moderate", "strict"]
ViolationKind = Literal["max_amount", "max_percentage"]
RecurrenceType = Literal["once", "daily", "weekly", "biweekly", "monthly", "yearly"]
RewardTier = Literal["bronze", "silver", "gold", "platinum"]
RiskTolerance = Literal["conservative", "moderate", "aggressive"]

ActivityCategory = Literal["work", "exercise", "leisure", "social", "health", "learning", "chores", "personal", "travel", "other"]
ActivityPriority = Literal["high", "medium", "low"]
ActivityStatus = Literal["pending", "in_progress", "completed", "cancelled"]
HabitType = Literal["good", "bad"]
HabitFrequency = Literal["daily", "weekly", "monthly"]

OptimizationType = Literal["expense_reduction", "income_increase", "savings_boost", "investment_opportunity"]
OptimizationPriority = Literal["high", "medium", "low"]
Difficulty = Literal["easy", "moderate", "hard"]


class DomainModel(BaseModel):
    """Base for records shared with the presentation layer.

    Attributes stay snake_case in Python; ``model_dump(by_alias=True)`` produces the
    camelCase keys the presentation layer consumes.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Transaction(DomainModel):
    id: int | None = None
    type: TransactionType
    category: TransactionCategory
    amount: float
    description: str
    date: datetime
    notes: str | None = None


class SavingsGoal(DomainModel):
    id: int | None = None
    title: str
    target_amount: float
    current_amount: float = 0
    deadline: date | None = None
    category: str = "general"
    color: str = "#3B82F6"


class Budget(DomainModel):
    id: int | None = None
    category: BudgetCategory
    name: str
    limit: float
    spent: float = 0
    period: BudgetPeriod = "monthly"
    start_date: datetime = Field(default_factory=datetime.now)
    color: str = "#3B82F6"
    rules: list[str] = Field(default_factory=list)


class BudgetRule(DomainModel):
    id: int | None = None
    name: str
    description: str = ""
    category: BudgetCategory | None = None
    max_amount: float | None = None
    max_percentage: float | None = None
    strictness: RuleStrictness = "moderate"
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)


class BudgetReward(DomainModel):
    id: int | None = None
    budget_id: int
    budget_name: str
    tier: RewardTier
    points: int
    earned_at: datetime
    period: str
    savings_amount: float
    message: str


class PlannedTransaction(DomainModel):
    id: int | None = None
    type: TransactionType
    category: TransactionCategory
    amount: float
    description: str
    scheduled_date: datetime
    recurrence: RecurrenceType = "once"
    notes: str | None = None
    is_active: bool = True
    last_processed_date: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class Habit(DomainModel):
    id: int | None = None
    title: str
    description: str | None = None
    category: ActivityCategory = "other"
    type: HabitType = "good"
    frequency: HabitFrequency = "daily"
    target_count: int = 1
    current_streak: int = 0
    longest_streak: int = 0
    completed_dates: list[date] = Field(default_factory=list)
    success_dates: list[date] = Field(default_factory=list)
    last_relapsed_date: date | None = None
    total_relapses: int = 0
    days_clean: int = 0
    color: str = "#10B981"
    icon: str = "Star"
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)


class Activity(DomainModel):
    id: int | None = None
    title: str
    description: str | None = None
    category: ActivityCategory = "other"
    priority: ActivityPriority = "medium"
    status: ActivityStatus = "pending"
    date: datetime
    duration: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    is_all_day: bool = False
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None


class UserProfile(DomainModel):
    id: int | None = None
    name: str = "Personal User"
    email: str = ""
    monthly_income: float = 0
    household_size: int = 1
    primary_goals: list[str] = Field(default_factory=list)
    risk_tolerance: RiskTolerance = "moderate"
    currency: str = "JD"
    has_completed_onboarding: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


class OptimizationSuggestion(DomainModel):
    id: str
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
    implemented: bool = False


# Derived records


class BudgetStatus(DomainModel):
    budget: Budget
    percentage_used: float
    remaining: float
    status: BudgetStatusTier
    days_remaining: int
    projected_end: float


class RuleViolation(DomainModel):
    rule: BudgetRule
    type: ViolationKind
    message: str
    is_blocking: bool


class BudgetImpact(DomainModel):
    budget: Budget
    current_spent: float
    new_spent: float
    current_percentage: float
    new_percentage: float
    remaining: float
    status: BudgetStatusTier
    will_exceed: bool
    rule_violations: list[RuleViolation] = Field(default_factory=list)


class FinancialSummary(DomainModel):
    total_income: float
    total_expenses: float
    balance: float
    savings_rate: float
    health_score: float


class CategorySpending(DomainModel):
    category: TransactionCategory
    amount: float
    percentage: float
    transactions: int


class ProjectedBalance(DomainModel):
    current_balance: float
    projected_income: float
    projected_expenses: float
    projected_balance: float


class HabitStats(DomainModel):
    good_completion_rate: int
    total_good_streak: int
    longest_good_streak: int
    total_days_clean: int
    longest_clean_streak: int


class CategoryBreakdown(DomainModel):
    category: ActivityCategory
    count: int
    duration: int


class DailySummary(DomainModel):
    date: date
    total_activities: int
    completed_activities: int
    total_duration: int
    productivity_score: int
    category_breakdown: list[CategoryBreakdown] = Field(default_factory=list)


class OptimizationReport(DomainModel):
    total_potential_savings: float
    total_potential_income: float
    suggestions: list[OptimizationSuggestion]
    generated_at: datetime
