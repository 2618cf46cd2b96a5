"""
Auth Provider Adapters for SubTrack Auth
========================================

This module wraps the backend-as-a-service authentication client behind a
small Protocol so the login flow never touches the SDK directly.

Architecture Pattern: Protocol-based Service
--------------------------------------------
`AuthProviderProtocol` is what the controller depends on. Two
implementations ship here:

1. `SupabaseAuthProvider` - the real thing, over `supabase.AsyncClient`
2. `MockAuthProvider` - in-memory, emits the same auth-state events,
   used by tests and local demos

Password hashing, token issuance, session persistence and the OAuth
handshake all stay inside the provider client.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlencode

from supabase import AsyncClient, AsyncClientOptions, acreate_client

from config import Settings, get_settings
from models import AuthEvent, AuthSession, AuthStateChange, AuthUser
from exceptions import AuthProviderError


# Set up module logger
logger = logging.getLogger(__name__)


AuthStateListener = Callable[[AuthStateChange], None]


class AuthSubscription(Protocol):
    """Handle returned by `on_auth_state_change`; cancel with `unsubscribe()`."""

    def unsubscribe(self) -> None:
        ...


class AuthProviderProtocol(Protocol):
    """
    Protocol defining the auth operations the login flow needs.

    Any error raised by an implementation should be an `AuthProviderError`
    whose message is the provider's own wording; the login screen shows it
    verbatim.
    """

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        Raises:
            AuthProviderError: Invalid credentials, rate limits, network...
        """
        ...

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        """Start an OAuth flow and return the authorisation URL to open."""
        ...

    async def exchange_code_for_session(self, code: str) -> AuthSession:
        """Finish an OAuth flow with the code delivered to the redirect URL."""
        ...

    async def sign_out(self) -> None:
        ...

    async def get_current_user(self) -> Optional[AuthUser]:
        ...

    def on_auth_state_change(self, listener: AuthStateListener) -> AuthSubscription:
        """
        Register a listener for auth-state changes.

        The listener is called synchronously by the provider and must not
        block; the controller only enqueues from it.
        """
        ...


# =============================================================================
# SDK conversion helpers
# =============================================================================

def _to_auth_user(sdk_user: Any) -> Optional[AuthUser]:
    if sdk_user is None:
        return None
    return AuthUser(
        id=str(sdk_user.id),
        email=getattr(sdk_user, "email", None),
        email_confirmed_at=getattr(sdk_user, "email_confirmed_at", None),
        user_metadata=getattr(sdk_user, "user_metadata", None) or {},
    )


def _to_auth_session(sdk_session: Any) -> Optional[AuthSession]:
    if sdk_session is None:
        return None
    return AuthSession(user=_to_auth_user(getattr(sdk_session, "user", None)))


class _SupabaseSubscription:
    """Adapts the SDK subscription to `AuthSubscription`."""

    def __init__(self, sdk_subscription: Any):
        self._sdk_subscription = sdk_subscription

    def unsubscribe(self) -> None:
        self._sdk_subscription.unsubscribe()


class SupabaseAuthProvider:
    """
    Auth provider backed by Supabase Auth.

    The client must be created with the PKCE flow (see
    `create_supabase_client`) so OAuth redirects carry a `code` that
    `exchange_code_for_session` can redeem from this same process.
    """

    def __init__(self, client: AsyncClient):
        self._client = client
        logger.info("SupabaseAuthProvider initialized")

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = await self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            raise AuthProviderError(
                "sign_in_with_password", str(e), getattr(e, "status", None)
            ) from e

        # The response carries user and session separately; the user is the
        # authoritative one for email confirmation.
        return AuthSession(user=_to_auth_user(response.user))

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        try:
            response = await self._client.auth.sign_in_with_oauth(
                {"provider": provider, "options": {"redirect_to": redirect_to}}
            )
        except Exception as e:
            raise AuthProviderError(
                "sign_in_with_oauth", str(e), getattr(e, "status", None)
            ) from e
        return response.url

    async def exchange_code_for_session(self, code: str) -> AuthSession:
        try:
            response = await self._client.auth.exchange_code_for_session(
                {"auth_code": code}
            )
        except Exception as e:
            raise AuthProviderError(
                "exchange_code_for_session", str(e), getattr(e, "status", None)
            ) from e
        return AuthSession(user=_to_auth_user(response.user))

    async def sign_out(self) -> None:
        try:
            await self._client.auth.sign_out()
        except Exception as e:
            raise AuthProviderError("sign_out", str(e), getattr(e, "status", None)) from e

    async def get_current_user(self) -> Optional[AuthUser]:
        try:
            session = await self._client.auth.get_session()
        except Exception as e:
            raise AuthProviderError("get_session", str(e), getattr(e, "status", None)) from e
        return _to_auth_user(session.user) if session else None

    def on_auth_state_change(self, listener: AuthStateListener) -> AuthSubscription:
        def callback(event: str, session: Any) -> None:
            listener(AuthStateChange(
                event=AuthEvent(event),
                session=_to_auth_session(session),
            ))

        return _SupabaseSubscription(self._client.auth.on_auth_state_change(callback))


class _MockSubscription:
    def __init__(self, provider: "MockAuthProvider", listener: AuthStateListener):
        self._provider = provider
        self._listener = listener

    def unsubscribe(self) -> None:
        self._provider.remove_listener(self._listener)


class MockAuthProvider:
    """
    In-memory auth provider for testing.

    Mirrors the provider's observable behaviour: a successful password
    sign-in or code exchange emits SIGNED_IN to every listener *before*
    returning, and sign-out emits SIGNED_OUT. Every call is recorded in
    `calls` so tests can assert on what happened.

    Usage in tests:
        auth = MockAuthProvider()
        auth.register_user("a@x.com", "pw", user_id="u1", confirmed=False)
        session = await auth.sign_in_with_password("a@x.com", "pw")
    """

    def __init__(self):
        self._accounts: dict[str, tuple[str, AuthUser]] = {}
        self._oauth_codes: dict[str, AuthUser] = {}
        self._listeners: list[AuthStateListener] = []
        self.current_user: Optional[AuthUser] = None
        self.calls: list[str] = []
        self.fail_with: Optional[Exception] = None

    def register_user(
        self,
        email: str,
        password: str,
        user_id: str,
        confirmed: bool = True,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuthUser:
        user = AuthUser(
            id=user_id,
            email=email,
            email_confirmed_at=datetime.now(timezone.utc) if confirmed else None,
            user_metadata=metadata or {},
        )
        self._accounts[email] = (password, user)
        return user

    def register_oauth_code(self, code: str, user: AuthUser) -> None:
        self._oauth_codes[code] = user

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def remove_listener(self, listener: AuthStateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: AuthEvent, user: Optional[AuthUser] = None) -> None:
        """Deliver an auth-state change to every listener."""
        session = AuthSession(user=user) if user else None
        change = AuthStateChange(event=event, session=session)
        for listener in list(self._listeners):
            listener(change)

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        self.calls.append("sign_in_with_password")
        self._maybe_fail()
        account = self._accounts.get(email)
        if account is None or account[0] != password:
            raise AuthProviderError("sign_in_with_password", "Invalid login credentials", 400)
        user = account[1]
        self.current_user = user
        self.emit(AuthEvent.SIGNED_IN, user)
        return AuthSession(user=user)

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        self.calls.append("sign_in_with_oauth")
        self._maybe_fail()
        query = urlencode({"provider": provider, "redirect_to": redirect_to})
        return f"https://auth.mock.invalid/authorize?{query}"

    async def exchange_code_for_session(self, code: str) -> AuthSession:
        self.calls.append("exchange_code_for_session")
        self._maybe_fail()
        user = self._oauth_codes.pop(code, None)
        if user is None:
            raise AuthProviderError("exchange_code_for_session", "invalid flow state, no valid flow state found", 404)
        self.current_user = user
        self.emit(AuthEvent.SIGNED_IN, user)
        return AuthSession(user=user)

    async def sign_out(self) -> None:
        self.calls.append("sign_out")
        self.current_user = None
        self.emit(AuthEvent.SIGNED_OUT)

    async def get_current_user(self) -> Optional[AuthUser]:
        return self.current_user

    def on_auth_state_change(self, listener: AuthStateListener) -> AuthSubscription:
        self._listeners.append(listener)
        return _MockSubscription(self, listener)


# =============================================================================
# Factory Functions
# =============================================================================

async def create_supabase_client(settings: Optional[Settings] = None) -> AsyncClient:
    """
    Create the async Supabase client shared by the auth and profile adapters.

    Raises:
        ConfigurationError: If the project URL or key is missing
    """
    settings = settings or get_settings()
    url, key = settings.require_supabase()
    logger.info(f"Connecting to Supabase project at {url}")
    return await acreate_client(url, key, options=AsyncClientOptions(flow_type="pkce"))


def create_auth_provider(
    client: Optional[AsyncClient] = None,
    use_mock: bool = False,
) -> AuthProviderProtocol:
    """
    Factory function to create the appropriate auth provider.

    Args:
        client: Supabase client (required unless use_mock)
        use_mock: If True, returns an in-memory provider

    Returns:
        An auth provider instance
    """
    if use_mock:
        logger.info("Creating mock auth provider")
        return MockAuthProvider()

    if client is None:
        raise ValueError("A Supabase client is required for the real auth provider")

    logger.info("Creating Supabase auth provider")
    return SupabaseAuthProvider(client)
