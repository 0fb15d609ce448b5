from __future__ import annotations

from datetime import date, datetime
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from db.engine import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True)
    name: Mapped[str] = mapped_column(String(120), default="Personal User")
    email: Mapped[str] = mapped_column(String(200), default="")
    monthly_income: Mapped[float] = mapped_column(Float, default=0)
    household_size: Mapped[int] = mapped_column(Integer, default=1)
    primary_goals: Mapped[list] = mapped_column(JSON, default=list)
    risk_tolerance: Mapped[str] = mapped_column(String(20), default="moderate")
    currency: Mapped[str] = mapped_column(String(8), default="JD")
    has_completed_onboarding: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class Transaction(Base):
    __tablename__ = "transactions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(16))
    category: Mapped[str] = mapped_column(String(32))
    amount: Mapped[float] = mapped_column(Float)
    description: Mapped[str] = mapped_column(String(255))
    date: Mapped[datetime] = mapped_column(DateTime)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class SavingsGoal(Base):
    __tablename__ = "savings_goals"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(160))
    target_amount: Mapped[float] = mapped_column(Float)
    current_amount: Mapped[float] = mapped_column(Float, default=0)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    category: Mapped[str] = mapped_column(String(60), default="general")
    color: Mapped[str] = mapped_column(String(16), default="#3B82F6")


class Budget(Base):
    __tablename__ = "budgets"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    category: Mapped[str] = mapped_column(String(32))
    name: Mapped[str] = mapped_column(String(160))
    budget_limit: Mapped[float] = mapped_column(Float)
    spent: Mapped[float] = mapped_column(Float, default=0)
    period: Mapped[str] = mapped_column(String(16), default="monthly")
    start_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    color: Mapped[str] = mapped_column(String(16), default="#3B82F6")
    rules: Mapped[list] = mapped_column(JSON, default=list)


class BudgetRule(Base):
    __tablename__ = "budget_rules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    max_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    strictness: Mapped[str] = mapped_column(String(16), default="moderate")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class BudgetReward(Base):
    __tablename__ = "budget_rewards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    budget_id: Mapped[int] = mapped_column(Integer)
    budget_name: Mapped[str] = mapped_column(String(160))
    tier: Mapped[str] = mapped_column(String(16))
    points: Mapped[int] = mapped_column(Integer)
    earned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    period: Mapped[str] = mapped_column(String(7))
    savings_amount: Mapped[float] = mapped_column(Float, default=0)
    message: Mapped[str] = mapped_column(Text, default="")
    __table_args__ = (UniqueConstraint("budget_id", "period", name="uq_reward_budget_period"),)


class PlannedTransaction(Base):
    __tablename__ = "planned_transactions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(16))
    category: Mapped[str] = mapped_column(String(32))
    amount: Mapped[float] = mapped_column(Float)
    description: Mapped[str] = mapped_column(String(255))
    scheduled_date: Mapped[datetime] = mapped_column(DateTime)
    recurrence: Mapped[str] = mapped_column(String(16), default="once")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_processed_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class Habit(Base):
    __tablename__ = "habits"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), default="other")
    type: Mapped[str] = mapped_column(String(8), default="good")
    frequency: Mapped[str] = mapped_column(String(16), default="daily")
    target_count: Mapped[int] = mapped_column(Integer, default=1)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    completed_dates: Mapped[list] = mapped_column(JSON, default=list)
    success_dates: Mapped[list] = mapped_column(JSON, default=list)
    last_relapsed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_relapses: Mapped[int] = mapped_column(Integer, default=0)
    days_clean: Mapped[int] = mapped_column(Integer, default=0)
    color: Mapped[str] = mapped_column(String(16), default="#10B981")
    icon: Mapped[str] = mapped_column(String(40), default="Star")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class Activity(Base):
    __tablename__ = "activities"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), default="other")
    priority: Mapped[str] = mapped_column(String(8), default="medium")
    status: Mapped[str] = mapped_column(String(16), default="pending")
    date: Mapped[datetime] = mapped_column(DateTime)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class OptimizationSuggestion(Base):
    __tablename__ = "optimization_suggestions"
    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    type: Mapped[str] = mapped_column(String(32))
    priority: Mapped[str] = mapped_column(String(8))
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    potential_savings: Mapped[float | None] = mapped_column(Float, nullable=True)
    potential_income: Mapped[float | None] = mapped_column(Float, nullable=True)
    category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    implementation_difficulty: Mapped[str] = mapped_column(String(16))
    timeframe: Mapped[str] = mapped_column(String(80))
    action_items: Mapped[list] = mapped_column(JSON, default=list)
    implemented: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
