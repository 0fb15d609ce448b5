from __future__ import annotations

from datetime import date

from sqlalchemy import select

from db import models
from schemas import domain


def _wire_value(value):
    if isinstance(value, list):
        return [v.isoformat() if isinstance(v, date) else v for v in value]
    return value


class Repository:
    """CRUD access to one entity table, speaking domain records.

    ``field_map`` renames domain fields to wire columns where they differ; every other
    field keeps its name. Rows are validated into ``schema`` on read, which coerces
    numeric and date values into their domain types.
    """

    def __init__(self, session, model, schema, field_map: dict[str, str] | None = None):
        self.session = session
        self.model = model
        self.schema = schema
        self.field_map = field_map or {}
        self._reverse_map = {v: k for k, v in self.field_map.items()}

    def to_wire(self, fields: dict) -> dict:
        return {self.field_map.get(k, k): _wire_value(v) for k, v in fields.items()}

    def to_domain(self, row):
        payload = {
            self._reverse_map.get(column.key, column.key): getattr(row, column.key)
            for column in self.model.__table__.columns
        }
        return self.schema.model_validate(payload)

    def list_for_user(self, user_id: str) -> list:
        rows = self.session.scalars(
            select(self.model).where(self.model.user_id == user_id).order_by(self.model.id)
        ).all()
        return [self.to_domain(r) for r in rows]

    def get(self, entity_id):
        row = self.session.get(self.model, entity_id)
        return self.to_domain(row) if row else None

    def create(self, fields: dict):
        entity = self.model(**self.to_wire(fields))
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return self.to_domain(entity)

    def update(self, entity_id, fields: dict) -> None:
        entity = self.session.get(self.model, entity_id)
        if entity is None:
            raise LookupError(f"{self.model.__tablename__} {entity_id} not found")
        for k, v in self.to_wire(fields).items():
            setattr(entity, k, v)
        self.session.commit()

    def delete(self, entity_id) -> None:
        entity = self.session.get(self.model, entity_id)
        if entity is None:
            return
        self.session.delete(entity)
        self.session.commit()


class Store:
    """The persistence collaborator: one repository per entity over a shared session."""

    def __init__(self, session):
        self.session = session
        self.transactions = Repository(session, models.Transaction, domain.Transaction)
        self.goals = Repository(session, models.SavingsGoal, domain.SavingsGoal)
        self.budgets = Repository(session, models.Budget, domain.Budget, field_map={"limit": "budget_limit"})
        self.budget_rules = Repository(session, models.BudgetRule, domain.BudgetRule)
        self.budget_rewards = Repository(session, models.BudgetReward, domain.BudgetReward)
        self.planned_transactions = Repository(session, models.PlannedTransaction, domain.PlannedTransaction)
        self.habits = Repository(session, models.Habit, domain.Habit)
        self.activities = Repository(session, models.Activity, domain.Activity)
        self.optimizations = Repository(session, models.OptimizationSuggestion, domain.OptimizationSuggestion)

    def rollback(self) -> None:
        self.session.rollback()
