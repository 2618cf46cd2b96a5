"""
Domain Models for SubTrack Auth
===============================

This module defines the core data structures used throughout the login flow.
We use Pydantic for validation and for easy conversion to/from the rows and
payloads the auth provider hands us.

Design Principle: These models are "pure" - they have no dependencies on
the provider SDK, the terminal, or the web framework. Adapters translate
SDK objects into these models at the edge.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field

from config import Settings


class AuthEvent(str, Enum):
    """
    Auth state transitions emitted by the provider.

    Values match the provider's event strings so adapters can convert with
    `AuthEvent(raw)`. Anything we don't know maps to UNKNOWN instead of
    failing, since the provider adds events over time.
    """
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    MFA_CHALLENGE_VERIFIED = "MFA_CHALLENGE_VERIFIED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value: object) -> "AuthEvent":
        return cls.UNKNOWN


class Screen(str, Enum):
    """Screens the login flow can navigate to."""
    HOME = "home"
    RESET_PASSWORD = "reset_password"
    FORGOT_PASSWORD = "forgot_password"
    SIGNUP = "signup"


class LoginState(str, Enum):
    """
    Where the login flow currently is.

        unauthenticated -> submitting -> authenticated | failed
        authenticated -> profile_checked -> navigated

    An unconfirmed email drops back to unauthenticated (signed out again).
    """
    UNAUTHENTICATED = "unauthenticated"
    SUBMITTING = "submitting"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"
    PROFILE_CHECKED = "profile_checked"
    NAVIGATED = "navigated"


class ThemeMode(str, Enum):
    """App theme preference stored on the profile."""
    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"


class AuthUser(BaseModel):
    """
    The authenticated identity as reported by the provider.

    Attributes:
        id: Provider user id (UUID string)
        email: Email address, if the identity has one
        email_confirmed_at: When the email was confirmed; None if never
        user_metadata: Free-form metadata (OAuth providers fill in names)
    """
    id: str = Field(..., description="Provider user id")
    email: Optional[str] = Field(default=None, description="Email address")
    email_confirmed_at: Optional[datetime] = Field(
        default=None,
        description="Email confirmation timestamp, None when unconfirmed"
    )
    user_metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider metadata such as full_name or name"
    )

    @property
    def is_email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None

    def display_name(self, fallback: str = "User") -> str:
        """
        Name to store on a new profile.

        Prefers `full_name`, then `name`, then the fallback. Only missing
        (None) values fall through; an explicit empty string is kept.
        """
        for key in ("full_name", "name"):
            value = self.user_metadata.get(key)
            if value is not None:
                return str(value)
        return fallback

    class Config:
        from_attributes = True


class AuthSession(BaseModel):
    """
    Opaque provider session. Only the user is modelled locally; tokens stay
    inside the provider client.
    """
    user: Optional[AuthUser] = Field(default=None, description="Signed-in user")

    class Config:
        from_attributes = True


class AuthStateChange(BaseModel):
    """One item of the provider's auth-state stream."""
    event: AuthEvent = Field(..., description="What happened")
    session: Optional[AuthSession] = Field(
        default=None,
        description="Session after the change (None on sign-out)"
    )

    @property
    def user(self) -> Optional[AuthUser]:
        return self.session.user if self.session else None


class Profile(BaseModel):
    """
    Application-level user record, one per auth user.

    Field names match the columns of the `profiles` table so rows can be
    validated and dumped directly.
    """
    id: str = Field(..., description="Same id as the auth user")
    name: str = Field(..., description="Display name")
    email: Optional[str] = Field(default=None, description="Contact email")
    currency: str = Field(default="INR", description="ISO currency code")
    theme_mode: ThemeMode = Field(default=ThemeMode.SYSTEM, description="Theme preference")
    plan: str = Field(default="free", description="Plan tier")

    @classmethod
    def for_new_user(cls, user: AuthUser, settings: Settings) -> "Profile":
        """Build the first profile for a user with the configured defaults."""
        return cls(
            id=user.id,
            name=user.display_name(settings.fallback_display_name),
            email=user.email,
            currency=settings.default_currency,
            theme_mode=ThemeMode(settings.default_theme_mode),
            plan=settings.default_plan,
        )

    def to_row(self) -> dict[str, Any]:
        """Row payload for the profiles table."""
        return self.model_dump(mode="json")

    class Config:
        from_attributes = True


class LoginForm(BaseModel):
    """
    Transient state of the login form.

    Lives exactly as long as the controller that owns it; nothing here is
    persisted.
    """
    email: str = Field(default="", description="Email text as typed")
    password: str = Field(default="", description="Password text as typed")
    obscure_password: bool = Field(default=True, description="Hide password characters")
    is_loading: bool = Field(default=False, description="A submission is in flight")

    def toggle_password_visibility(self) -> bool:
        """Flip password visibility and return the new `obscure_password`."""
        self.obscure_password = not self.obscure_password
        return self.obscure_password

    def credentials(self) -> tuple[str, str]:
        """Email and password with surrounding whitespace removed."""
        return self.email.strip(), self.password.strip()


class LoginResult(BaseModel):
    """
    Outcome of one email/password submission.

    `message` is what the user was shown (None on a clean success).
    Navigation is not part of the result: it happens later, driven by
    the auth-state stream.
    """
    state: LoginState = Field(..., description="State the submission ended in")
    message: Optional[str] = Field(default=None, description="User-facing message")
    user_id: Optional[str] = Field(default=None, description="Signed-in user id")

    @property
    def succeeded(self) -> bool:
        return self.state == LoginState.AUTHENTICATED
