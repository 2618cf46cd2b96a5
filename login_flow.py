"""
Login Flow Controller for SubTrack Auth
=======================================

This module is the login screen without the pixels: it owns the form
state, talks to the auth provider, listens to the auth-state stream and
decides where the user goes next.

Flow
----
    submit_email_login ──> provider sign-in ──> SIGNED_IN event
                                                    │
                     auth-state consumer task <─────┘
                                │
             provision profile + preferences ──> replace(HOME)

Only the auth-state listener navigates to the home screen; the submit path
reports success or failure and stops. That gives one place where "signed
in" turns into navigation, and it runs at most once per controller.

The view is injected as two tiny ports, `NavigatorProtocol` and
`NotifierProtocol`. The terminal CLI implements them; tests record calls.
"""

import asyncio
import logging
from typing import Optional, Protocol

from auth_provider import AuthProviderProtocol, AuthSubscription
from config import Settings, get_settings
from models import (
    AuthEvent,
    AuthStateChange,
    AuthUser,
    LoginForm,
    LoginResult,
    LoginState,
    Screen,
)
from preferences import (
    CurrencyService,
    CurrencyServiceProtocol,
    ThemeService,
    ThemeServiceProtocol,
)
from profile_store import ProfileStoreProtocol
from provisioning import ProfileProvisioner
from exceptions import EmailNotConfirmedError, SubTrackError


# Set up module logger
logger = logging.getLogger(__name__)


class NavigatorProtocol(Protocol):
    """Screen navigation port."""

    def push(self, screen: Screen) -> None:
        """Open `screen` on top of the login screen."""
        ...

    def replace(self, screen: Screen) -> None:
        """Replace the login screen with `screen`."""
        ...


class NotifierProtocol(Protocol):
    """Transient user-facing messages (a snackbar on mobile)."""

    def show_message(self, message: str) -> None:
        ...


class LoginFlowController:
    """
    Drives the login screen.

    Lifecycle:
        controller = LoginFlowController(auth, profiles, navigator, notifier)
        await controller.start()      # subscribe to auth-state changes
        await controller.submit_email_login("a@x.com", "secret")
        ...
        await controller.close()      # unsubscribe, stop handling events

    or use it as an async context manager. After `close()` the controller
    never touches the navigator or notifier again, even for work that was
    already in flight.
    """

    def __init__(
        self,
        auth_provider: AuthProviderProtocol,
        profile_store: ProfileStoreProtocol,
        navigator: NavigatorProtocol,
        notifier: NotifierProtocol,
        theme_service: Optional[ThemeServiceProtocol] = None,
        currency_service: Optional[CurrencyServiceProtocol] = None,
        settings: Optional[Settings] = None,
        provisioner: Optional[ProfileProvisioner] = None,
    ):
        self.settings = settings or get_settings()
        self.auth_provider = auth_provider
        self.profile_store = profile_store
        self.navigator = navigator
        self.notifier = notifier

        self.theme_service = theme_service or ThemeService(
            auth_provider, profile_store, settings=self.settings
        )
        self.currency_service = currency_service or CurrencyService(
            auth_provider, profile_store, settings=self.settings
        )
        self.provisioner = provisioner or ProfileProvisioner(
            profile_store,
            self.theme_service,
            self.currency_service,
            settings=self.settings,
        )

        self.form = LoginForm()
        self.state = LoginState.UNAUTHENTICATED

        self._mounted = False
        self._subscription: Optional[AuthSubscription] = None
        self._events: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._home_navigation_started = False
        # Users the password path signed out for an unconfirmed email
        self._rejected_user_ids: set[str] = set()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def mounted(self) -> bool:
        """True between start() and close()."""
        return self._mounted

    async def start(self) -> None:
        """Subscribe to auth-state changes and start the consumer task."""
        if self._consumer is not None:
            return

        self._mounted = True
        self._events = asyncio.Queue()
        self._subscription = self.auth_provider.on_auth_state_change(self._enqueue)
        self._consumer = asyncio.create_task(
            self._consume_auth_events(), name="auth-state-consumer"
        )
        logger.debug("Login flow started")

    async def close(self) -> None:
        """
        Tear down: stop handling events and release the subscription.

        Safe to call more than once.
        """
        self._mounted = False

        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        logger.debug("Login flow closed")

    async def __aenter__(self) -> "LoginFlowController":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def wait_until_idle(self) -> None:
        """Wait until every auth-state event received so far is handled."""
        if self._events is not None and self._consumer is not None:
            await self._events.join()

    # =========================================================================
    # Form actions
    # =========================================================================

    async def submit_email_login(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> LoginResult:
        """
        Sign in with the form's email and password.

        Whitespace around both values is trimmed. A provider success for an
        account without a confirmed email counts as a rejection: the user is
        signed out again and asked to verify. Any other error is shown with
        the provider's message as-is. The loading flag is cleared however
        the attempt ends.

        A call made while a submission is already in flight is ignored.

        Args:
            email: Replaces the form's email text when given
            password: Replaces the form's password text when given

        Returns:
            LoginResult describing the outcome
        """
        if email is not None:
            self.form.email = email
        if password is not None:
            self.form.password = password

        if self.form.is_loading:
            logger.debug("Submission ignored, one is already in flight")
            return LoginResult(state=self.state)

        self.form.is_loading = True
        self.state = LoginState.SUBMITTING
        email, password = self.form.credentials()

        try:
            session = await self.auth_provider.sign_in_with_password(email, password)
            user = session.user

            if user is not None and not user.is_email_confirmed:
                self._rejected_user_ids.add(user.id)
                await self.auth_provider.sign_out()
                raise EmailNotConfirmedError(user.email, self.settings.unverified_email_message)

            # The listener may already have moved past AUTHENTICATED
            if self.state == LoginState.SUBMITTING:
                self.state = LoginState.AUTHENTICATED
            result = LoginResult(
                state=LoginState.AUTHENTICATED,
                user_id=user.id if user else None,
            )
            logger.info(f"Signed in {email}")

        except EmailNotConfirmedError as e:
            self.state = LoginState.UNAUTHENTICATED
            result = LoginResult(state=self.state, message=e.message)
            logger.info(f"Rejected login for unconfirmed email {email}")

        except SubTrackError as e:
            self.state = LoginState.FAILED
            result = LoginResult(state=self.state, message=e.message)
            logger.warning(f"Login failed for {email}: {e.message}")

        except Exception as e:
            self.state = LoginState.FAILED
            result = LoginResult(state=self.state, message=str(e))
            logger.exception(f"Unexpected login error for {email}")

        finally:
            self.form.is_loading = False

        if result.message:
            self._show_message(result.message)

        return result

    async def start_oauth_login(self) -> Optional[str]:
        """
        Start the OAuth redirect flow.

        The sign-in itself arrives later as a SIGNED_IN event once the
        redirect is handled, so the only thing returned here is the URL the
        view should open. Returns None (and shows the error) on failure.
        """
        try:
            url = await self.auth_provider.sign_in_with_oauth(
                self.settings.oauth_provider,
                self.settings.oauth_redirect_url,
            )
        except SubTrackError as e:
            logger.error(f"Could not start {self.settings.oauth_provider} sign-in: {e.message}")
            self._show_message(e.message)
            return None

        logger.info(
            f"Started {self.settings.oauth_provider} sign-in, "
            f"redirecting to {self.settings.oauth_redirect_url}"
        )
        return url

    def toggle_password_visibility(self) -> bool:
        return self.form.toggle_password_visibility()

    def open_forgot_password(self) -> None:
        self._push(Screen.FORGOT_PASSWORD)

    def open_signup(self) -> None:
        self._push(Screen.SIGNUP)

    # =========================================================================
    # Auth-state stream
    # =========================================================================

    def _enqueue(self, change: AuthStateChange) -> None:
        # Called synchronously by the provider; never block here.
        if not self._mounted or self._events is None:
            return
        self._events.put_nowait(change)

    async def _consume_auth_events(self) -> None:
        while True:
            change = await self._events.get()
            try:
                await self.on_auth_state_changed(change)
            except Exception:
                logger.exception(f"Failed to handle auth event {change.event.value}")
            finally:
                self._events.task_done()

    async def on_auth_state_changed(self, change: AuthStateChange) -> None:
        """
        React to one auth-state change.

        PASSWORD_RECOVERY opens the reset-password screen, SIGNED_IN
        provisions the profile and goes home, everything else is ignored.
        """
        if not self._mounted:
            return

        if change.event == AuthEvent.PASSWORD_RECOVERY:
            # Once home replaces the login screen, recovery belongs to home
            if self._home_navigation_started:
                logger.debug("Ignoring PASSWORD_RECOVERY after navigating home")
                return
            self._push(Screen.RESET_PASSWORD)
            return

        if change.event == AuthEvent.SIGNED_IN:
            await self._handle_signed_in(change)
            return

        logger.debug(f"Ignoring auth event {change.event.value}")

    async def _handle_signed_in(self, change: AuthStateChange) -> None:
        if self._home_navigation_started:
            logger.debug("Already heading home, ignoring SIGNED_IN")
            return

        user = change.user or await self._current_user()
        if user is None:
            return

        if self._belongs_to_rejected_submission(user):
            logger.info(f"Ignoring SIGNED_IN for unconfirmed password login {user.id}")
            return

        self._home_navigation_started = True
        self.state = LoginState.AUTHENTICATED

        # Home is reached even when provisioning fails; preferences then
        # stay at their defaults until the next sign-in.
        await self.provisioner.provision(user)
        self.state = LoginState.PROFILE_CHECKED

        if not self._mounted:
            return

        self.navigator.replace(Screen.HOME)
        self.state = LoginState.NAVIGATED
        logger.info(f"User {user.id} navigated to {Screen.HOME.value}")

    def _belongs_to_rejected_submission(self, user: AuthUser) -> bool:
        """
        True for the SIGNED_IN emitted by a password sign-in that the submit
        path rejects for an unconfirmed email.

        While a submission is in flight an unconfirmed user can only be the
        one it is about to sign out. Each rejection consumes one event, so a
        later OAuth sign-in by the same identity goes through.
        """
        if user.is_email_confirmed:
            return False
        if user.id in self._rejected_user_ids:
            self._rejected_user_ids.discard(user.id)
            return True
        return self.form.is_loading

    async def _current_user(self) -> Optional[AuthUser]:
        try:
            return await self.auth_provider.get_current_user()
        except SubTrackError as e:
            logger.error(f"Could not read current user: {e.message}")
            return None

    # =========================================================================
    # View helpers (liveness-checked)
    # =========================================================================

    def _push(self, screen: Screen) -> None:
        if self._mounted:
            self.navigator.push(screen)

    def _show_message(self, message: str) -> None:
        if self._mounted:
            self.notifier.show_message(message)
