"""
User Preference Services
========================

Theme and currency preferences live on the user's profile. After sign-in
the login flow asks both services to load them so the home screen opens
with the user's choices; until then (or if loading fails) the configured
defaults apply.
"""

import logging
from typing import Optional, Protocol

from auth_provider import AuthProviderProtocol
from config import Settings, get_settings
from models import Profile, ThemeMode
from profile_store import ProfileStoreProtocol
from exceptions import PreferenceLoadError, ProfileError


logger = logging.getLogger(__name__)


class ThemeServiceProtocol(Protocol):
    async def load_user_theme(self) -> None:
        ...


class CurrencyServiceProtocol(Protocol):
    async def load_user_currency(self) -> None:
        ...


class _ProfilePreference:
    """Shared lookup of the current user's profile."""

    preference = "profile"

    def __init__(
        self,
        auth_provider: AuthProviderProtocol,
        profile_store: ProfileStoreProtocol,
        settings: Optional[Settings] = None,
    ):
        self.auth_provider = auth_provider
        self.profile_store = profile_store
        self.settings = settings or get_settings()
        self.load_count = 0

    async def _current_profile(self) -> Optional[Profile]:
        self.load_count += 1
        user = await self.auth_provider.get_current_user()
        if user is None:
            logger.debug(f"No signed-in user, keeping default {self.preference}")
            return None
        try:
            return await self.profile_store.find(user.id)
        except ProfileError as e:
            raise PreferenceLoadError(self.preference, e.message) from e


class ThemeService(_ProfilePreference):
    """Holds the active theme mode."""

    preference = "theme"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.theme_mode = ThemeMode(self.settings.default_theme_mode)

    async def load_user_theme(self) -> None:
        profile = await self._current_profile()
        if profile is not None:
            self.theme_mode = profile.theme_mode
            logger.info(f"Theme mode set to {self.theme_mode.value}")


class CurrencyService(_ProfilePreference):
    """Holds the active currency code."""

    preference = "currency"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.currency = self.settings.default_currency

    async def load_user_currency(self) -> None:
        profile = await self._current_profile()
        if profile is not None:
            self.currency = profile.currency
            logger.info(f"Currency set to {self.currency}")
