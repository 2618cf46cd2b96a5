"""
Configuration for SubTrack Auth
===============================

Everything the login flow needs to know about its environment: the Supabase
project, where OAuth redirects land and the defaults for a new profile.

Values come from SUBTRACK_* environment variables or a .env file. Only the
Supabase URL and key have no usable default; `Settings.require_supabase()`
is called when a real client is built so a missing value fails at startup
rather than on the first sign-in.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field

from exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with SUBTRACK_ to avoid conflicts.
    Example: SUBTRACK_SUPABASE_URL=https://xyz.supabase.co

    Priority order (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values defined here
    """

    # =================================================================
    # Supabase Configuration
    # =================================================================
    supabase_url: Optional[str] = Field(
        default=None,
        description="Project URL, e.g. https://<project>.supabase.co"
    )

    supabase_key: Optional[str] = Field(
        default=None,
        description="""
        Public anon key of the project.

        Never use the service-role key here: the login flow acts on behalf
        of the signed-in user and relies on row level security.
        """
    )

    # =================================================================
    # OAuth Configuration
    # =================================================================
    oauth_provider: str = Field(
        default="google",
        description="OAuth provider passed to sign_in_with_oauth"
    )

    oauth_redirect_url: str = Field(
        default="io.supabase.flutter://login-callback",
        description="""
        Callback URL the provider redirects to after consent.

        Must be listed under Auth > URL Configuration in the Supabase
        dashboard. When signing in from the terminal, point it at the
        local callback server, e.g. http://127.0.0.1:8765/auth/callback
        """
    )

    callback_host: str = Field(
        default="127.0.0.1",
        description="Host the OAuth callback server binds to"
    )

    callback_port: int = Field(
        default=8765,
        description="Port the OAuth callback server listens on"
    )

    api_debug: bool = Field(
        default=False,
        description="Include raw error details in callback API responses"
    )

    # =================================================================
    # Profile Defaults
    # =================================================================
    profiles_table: str = Field(
        default="profiles",
        description="Table holding one profile row per auth user"
    )

    default_currency: str = Field(
        default="INR",
        description="Currency assigned to newly provisioned profiles"
    )

    default_theme_mode: str = Field(
        default="system",
        description="Theme mode for new profiles: 'system', 'light' or 'dark'"
    )

    default_plan: str = Field(
        default="free",
        description="Plan tier for new profiles"
    )

    fallback_display_name: str = Field(
        default="User",
        description="Profile name used when the provider has no name metadata"
    )

    # =================================================================
    # Login Flow
    # =================================================================
    unverified_email_message: str = Field(
        default="Please verify your email before logging in.",
        description="Shown when the provider signs in an unconfirmed account"
    )

    auth_event_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="""
        How long the CLI waits for the auth-state stream to navigate
        after a submission (OAuth consent can take a while).
        """
    )

    # =================================================================
    # Logging Configuration
    # =================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Python logging format string"
    )

    class Config:
        """Pydantic configuration for Settings."""
        env_prefix = "SUBTRACK_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def callback_url(self) -> str:
        """URL of the local OAuth callback endpoint."""
        return f"http://{self.callback_host}:{self.callback_port}/auth/callback"

    def require_supabase(self) -> tuple[str, str]:
        """
        Return (url, key), failing fast when either is missing.

        Raises:
            ConfigurationError: If SUBTRACK_SUPABASE_URL or
                SUBTRACK_SUPABASE_KEY is not set
        """
        if not self.supabase_url:
            raise ConfigurationError("supabase_url", "SUBTRACK_SUPABASE_URL is not set")
        if not self.supabase_key:
            raise ConfigurationError("supabase_key", "SUBTRACK_SUPABASE_KEY is not set")
        return self.supabase_url, self.supabase_key


@lru_cache()
def get_settings() -> Settings:
    """
    Settings shared by the CLI, the callback app and the login flow.

    Read once per process. Clear with:
        get_settings.cache_clear()

    Returns:
        The cached Settings
    """
    return Settings()


def get_settings_for_testing(**overrides) -> Settings:
    """
    Build uncached settings with explicit overrides (env still applies to the rest).

    Example:
        settings = get_settings_for_testing(default_currency="USD")

    Args:
        **overrides: Setting values to override

    Returns:
        A fresh Settings
    """
    return Settings(**overrides)
