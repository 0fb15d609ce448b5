from __future__ import annotations

from sqlalchemy import select

from db import models
from schemas.domain import UserProfile

RISK_TOLERANCES = ("conservative", "moderate", "aggressive")
DEFAULT_CURRENCY = "JD"


def _to_profile(row: models.UserProfile) -> UserProfile:
    return UserProfile.model_validate({c.key: getattr(row, c.key) for c in models.UserProfile.__table__.columns})


def _get_row(session, user_id: str) -> models.UserProfile:
    row = session.scalar(select(models.UserProfile).where(models.UserProfile.user_id == user_id))
    if row:
        return row

    row = models.UserProfile(user_id=user_id, name="Personal User", currency=DEFAULT_CURRENCY)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def get_or_create_user_profile(session, user_id: str) -> UserProfile:
    return _to_profile(_get_row(session, user_id))


def save_user_profile(
    session,
    user_id: str,
    name: str,
    email: str | None = None,
    monthly_income: float | None = None,
    household_size: int | None = None,
    primary_goals: list[str] | None = None,
    risk_tolerance: str | None = None,
    currency: str | None = None,
    has_completed_onboarding: bool | None = None,
) -> UserProfile:
    row = _get_row(session, user_id)
    row.name = (name or "Personal User").strip() or "Personal User"

    if email is not None:
        row.email = email.strip().lower()

    if monthly_income is not None:
        row.monthly_income = float(max(0.0, monthly_income))

    if household_size is not None:
        row.household_size = max(1, int(household_size))

    if primary_goals is not None:
        row.primary_goals = [g.strip() for g in primary_goals if g and g.strip()]

    if risk_tolerance is not None:
        rt = (risk_tolerance or "moderate").strip().lower()
        row.risk_tolerance = rt if rt in RISK_TOLERANCES else "moderate"

    if currency is not None:
        row.currency = (currency or DEFAULT_CURRENCY).strip().upper() or DEFAULT_CURRENCY

    if has_completed_onboarding is not None:
        row.has_completed_onboarding = bool(has_completed_onboarding)

    session.commit()
    session.refresh(row)
    return _to_profile(row)
