from datetime import datetime, timezone

from config import get_settings_for_testing
from models import AuthEvent, AuthUser, LoginForm, LoginResult, LoginState, Profile, ThemeMode


def test_unknown_auth_event_maps_to_unknown():
    assert AuthEvent("SIGNED_IN") is AuthEvent.SIGNED_IN
    assert AuthEvent("SOMETHING_NEW") is AuthEvent.UNKNOWN


def test_email_confirmation():
    assert AuthUser(id="u1").is_email_confirmed is False
    assert AuthUser(id="u1", email_confirmed_at=datetime.now(timezone.utc)).is_email_confirmed


def test_display_name_precedence():
    both = AuthUser(id="u1", user_metadata={"full_name": "Asha Rao", "name": "Asha"})
    name_only = AuthUser(id="u1", user_metadata={"name": "Asha"})
    empty = AuthUser(id="u1", user_metadata={"full_name": ""})

    assert both.display_name() == "Asha Rao"
    assert name_only.display_name() == "Asha"
    assert AuthUser(id="u1").display_name("Friend") == "Friend"
    assert empty.display_name() == ""


def test_profile_for_new_user_uses_configured_defaults():
    settings = get_settings_for_testing(
        default_currency="USD",
        default_theme_mode="dark",
        default_plan="trial",
        fallback_display_name="Member",
    )

    profile = Profile.for_new_user(AuthUser(id="u1", email="u1@x.com"), settings)

    assert profile.to_row() == {
        "id": "u1",
        "name": "Member",
        "email": "u1@x.com",
        "currency": "USD",
        "theme_mode": "dark",
        "plan": "trial",
    }


def test_profile_row_validation():
    profile = Profile.model_validate({"id": "u1", "name": "Asha", "theme_mode": "light"})

    assert profile.theme_mode == ThemeMode.LIGHT
    assert profile.currency == "INR"
    assert profile.plan == "free"


def test_login_form():
    form = LoginForm(email=" a@x.com ", password="pw ")

    assert form.credentials() == ("a@x.com", "pw")
    assert form.toggle_password_visibility() is False
    assert form.obscure_password is False


def test_login_result_succeeded():
    assert LoginResult(state=LoginState.AUTHENTICATED, user_id="u1").succeeded
    assert not LoginResult(state=LoginState.FAILED, message="nope").succeeded
