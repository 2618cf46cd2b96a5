"""Supabase adapters exercised against a stand-in for `supabase.AsyncClient`."""

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID

import pytest

from auth_provider import SupabaseAuthProvider, create_auth_provider
from config import get_settings_for_testing
from models import AuthEvent, Profile, ThemeMode
from profile_store import SupabaseProfileStore, create_profile_store
from exceptions import AuthProviderError, ProfileInsertError, ProfileLookupError


class FakeApiError(Exception):
    def __init__(self, message, status):
        super().__init__(message)
        self.status = status


class FakeSubscription:
    def __init__(self):
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True


class FakeAuthClient:
    def __init__(self):
        self.user = None
        self.session = None
        self.fail_with = None
        self.calls = []
        self.callbacks = []
        self.subscription = FakeSubscription()

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if self.fail_with is not None:
            raise self.fail_with

    async def sign_in_with_password(self, credentials):
        self._record("sign_in_with_password", credentials)
        return SimpleNamespace(user=self.user, session=self.session)

    async def sign_in_with_oauth(self, credentials):
        self._record("sign_in_with_oauth", credentials)
        return SimpleNamespace(provider=credentials["provider"], url="https://p.supabase.co/auth/v1/authorize")

    async def exchange_code_for_session(self, params):
        self._record("exchange_code_for_session", params)
        return SimpleNamespace(user=self.user, session=self.session)

    async def sign_out(self):
        self._record("sign_out")

    async def get_session(self):
        self._record("get_session")
        return self.session

    def on_auth_state_change(self, callback):
        self.callbacks.append(callback)
        return self.subscription


class FakeQuery:
    def __init__(self, table, rows, fail_with):
        self.table = table
        self.rows = rows
        self.fail_with = fail_with
        self.steps = []

    def select(self, columns):
        self.steps.append(("select", columns))
        return self

    def eq(self, column, value):
        self.steps.append(("eq", column, value))
        return self

    def limit(self, count):
        self.steps.append(("limit", count))
        return self

    def insert(self, row):
        self.steps.append(("insert", row))
        return self

    async def execute(self):
        if self.fail_with is not None:
            raise self.fail_with
        return SimpleNamespace(data=self.rows)


class FakeClient:
    def __init__(self):
        self.auth = FakeAuthClient()
        self.rows = []
        self.fail_with = None
        self.queries = []

    def table(self, name):
        query = FakeQuery(name, self.rows, self.fail_with)
        self.queries.append(query)
        return query


def sdk_user(confirmed=True, **metadata):
    return SimpleNamespace(
        id=UUID("8d0fb6a2-3c1e-4f4e-9d35-1a2b3c4d5e6f"),
        email="a@x.com",
        email_confirmed_at=datetime(2024, 5, 1, tzinfo=timezone.utc) if confirmed else None,
        user_metadata=metadata,
    )


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def provider(client):
    return SupabaseAuthProvider(client)


async def test_sign_in_converts_sdk_user(client, provider):
    client.auth.user = sdk_user(full_name="Asha Rao")

    session = await provider.sign_in_with_password("a@x.com", "pw")

    assert client.auth.calls == [("sign_in_with_password", {"email": "a@x.com", "password": "pw"})]
    assert session.user.id == "8d0fb6a2-3c1e-4f4e-9d35-1a2b3c4d5e6f"
    assert session.user.email == "a@x.com"
    assert session.user.is_email_confirmed
    assert session.user.display_name() == "Asha Rao"


async def test_unconfirmed_sdk_user(client, provider):
    client.auth.user = sdk_user(confirmed=False)

    session = await provider.sign_in_with_password("a@x.com", "pw")

    assert session.user.is_email_confirmed is False


async def test_sdk_error_message_is_kept_verbatim(client, provider):
    client.auth.fail_with = FakeApiError("Invalid login credentials", 400)

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.sign_in_with_password("a@x.com", "nope")

    assert exc_info.value.message == "Invalid login credentials"
    assert exc_info.value.details == {"operation": "sign_in_with_password", "status": 400}
    assert isinstance(exc_info.value.__cause__, FakeApiError)


async def test_error_without_status(client, provider):
    client.auth.fail_with = ConnectionError("Name or service not known")

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.sign_out()

    assert exc_info.value.message == "Name or service not known"
    assert exc_info.value.details["status"] is None


async def test_oauth_passes_redirect_and_returns_url(client, provider):
    url = await provider.sign_in_with_oauth("google", "io.supabase.flutter://login-callback")

    assert url == "https://p.supabase.co/auth/v1/authorize"
    assert client.auth.calls == [(
        "sign_in_with_oauth",
        {"provider": "google", "options": {"redirect_to": "io.supabase.flutter://login-callback"}},
    )]


async def test_code_exchange(client, provider):
    client.auth.user = sdk_user(name="Gita")

    session = await provider.exchange_code_for_session("code-123")

    assert client.auth.calls == [("exchange_code_for_session", {"auth_code": "code-123"})]
    assert session.user.display_name() == "Gita"


async def test_code_exchange_failure(client, provider):
    client.auth.fail_with = FakeApiError("invalid flow state, no valid flow state found", 404)

    with pytest.raises(AuthProviderError) as exc_info:
        await provider.exchange_code_for_session("stale")

    assert exc_info.value.details["operation"] == "exchange_code_for_session"


async def test_current_user_from_session(client, provider):
    assert await provider.get_current_user() is None

    client.auth.session = SimpleNamespace(user=sdk_user())
    user = await provider.get_current_user()

    assert user.email == "a@x.com"


def test_auth_state_callback_maps_sdk_events(client, provider):
    seen = []
    subscription = provider.on_auth_state_change(seen.append)
    callback = client.auth.callbacks[0]

    callback("SIGNED_IN", SimpleNamespace(user=sdk_user()))
    callback("PASSWORD_RECOVERY", SimpleNamespace(user=None))
    callback("SIGNED_OUT", None)
    callback("SOMETHING_NEW", None)

    assert [change.event for change in seen] == [
        AuthEvent.SIGNED_IN,
        AuthEvent.PASSWORD_RECOVERY,
        AuthEvent.SIGNED_OUT,
        AuthEvent.UNKNOWN,
    ]
    assert seen[0].user.email == "a@x.com"
    assert seen[1].user is None
    assert seen[2].session is None

    subscription.unsubscribe()
    assert client.auth.subscription.unsubscribed is True


def test_create_auth_provider(client):
    assert isinstance(create_auth_provider(client), SupabaseAuthProvider)
    with pytest.raises(ValueError):
        create_auth_provider(None)


async def test_find_returns_profile(client, settings):
    client.rows.append({
        "id": "u1",
        "name": "Asha",
        "email": "a@x.com",
        "currency": "USD",
        "theme_mode": "dark",
        "plan": "free",
    })
    store = SupabaseProfileStore(client, settings)

    profile = await store.find("u1")

    assert profile.currency == "USD"
    assert profile.theme_mode == ThemeMode.DARK
    query = client.queries[0]
    assert query.table == "profiles"
    assert query.steps == [("select", "*"), ("eq", "id", "u1"), ("limit", 1)]


async def test_find_without_rows_returns_none(client, settings):
    store = SupabaseProfileStore(client, settings)

    assert await store.find("u1") is None


async def test_find_failure_is_wrapped(client, settings):
    client.fail_with = FakeApiError('relation "public.profiles" does not exist', 404)
    store = SupabaseProfileStore(client, settings)

    with pytest.raises(ProfileLookupError) as exc_info:
        await store.find("u1")

    assert exc_info.value.details["reason"] == 'relation "public.profiles" does not exist'


async def test_insert_sends_row(client, settings):
    store = SupabaseProfileStore(client, settings)

    await store.insert(Profile(id="u1", name="Asha", email="a@x.com"))

    assert client.queries[0].steps == [("insert", {
        "id": "u1",
        "name": "Asha",
        "email": "a@x.com",
        "currency": "INR",
        "theme_mode": "system",
        "plan": "free",
    })]


async def test_insert_failure_is_wrapped(client, settings):
    client.fail_with = FakeApiError('duplicate key value violates unique constraint "profiles_pkey"', 409)
    store = SupabaseProfileStore(client, settings)

    with pytest.raises(ProfileInsertError) as exc_info:
        await store.insert(Profile(id="u1", name="Asha"))

    assert "profiles_pkey" in exc_info.value.message


def test_profiles_table_is_configurable(client):
    store = create_profile_store(client, settings=get_settings_for_testing(profiles_table="user_profiles"))

    assert store.table == "user_profiles"
