from services.user_settings import get_or_create_user_profile, save_user_profile


def test_profile_is_created_with_defaults(session):
    profile = get_or_create_user_profile(session, "user-1")

    assert profile.name == "Personal User"
    assert profile.currency == "JD"
    assert profile.risk_tolerance == "moderate"
    assert not profile.has_completed_onboarding
    assert get_or_create_user_profile(session, "user-1").id == profile.id


def test_save_user_profile_normalizes_values(session):
    profile = save_user_profile(
        session,
        "user-1",
        name="  Lina  ",
        email=" Lina@Example.COM ",
        monthly_income=-50,
        household_size=0,
        primary_goals=["save", " ", "travel "],
        risk_tolerance="YOLO",
        currency=" usd ",
        has_completed_onboarding=True,
    )

    assert profile.name == "Lina"
    assert profile.email == "lina@example.com"
    assert profile.monthly_income == 0
    assert profile.household_size == 1
    assert profile.primary_goals == ["save", "travel"]
    assert profile.risk_tolerance == "moderate"
    assert profile.currency == "USD"
    assert profile.has_completed_onboarding


def test_profiles_are_per_user(session):
    save_user_profile(session, "user-1", name="One", risk_tolerance="aggressive")

    assert get_or_create_user_profile(session, "user-2").name == "Personal User"
    assert get_or_create_user_profile(session, "user-1").risk_tolerance == "aggressive"
