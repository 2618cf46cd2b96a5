"""
Profile Provisioning
====================

Runs once per sign-in: make sure the user has exactly one profile row,
then load their theme and currency preferences.

Failures never propagate. A user whose profile could not be checked still
gets into the app; they just see default preferences until the next
sign-in. Nothing is retried.
"""

import asyncio
import logging
from typing import Optional

from config import Settings, get_settings
from models import AuthUser, Profile
from preferences import CurrencyServiceProtocol, ThemeServiceProtocol
from profile_store import ProfileStoreProtocol
from exceptions import SubTrackError


logger = logging.getLogger(__name__)


class ProfileProvisioner:
    """
    Creates missing profiles and loads preferences after sign-in.

    Idempotent per user id: the existence check and the insert run under a
    per-user lock, so two concurrent sign-in events for the same user can
    never both insert.
    """

    def __init__(
        self,
        profile_store: ProfileStoreProtocol,
        theme_service: ThemeServiceProtocol,
        currency_service: CurrencyServiceProtocol,
        settings: Optional[Settings] = None,
    ):
        self.profile_store = profile_store
        self.theme_service = theme_service
        self.currency_service = currency_service
        self.settings = settings or get_settings()
        self._locks: dict[str, asyncio.Lock] = {}
        # Callers holding or waiting on each lock; the lock is dropped at zero
        self._lock_holders: dict[str, int] = {}

    async def ensure_profile(self, user: AuthUser) -> bool:
        """
        Insert a default profile for `user` unless one exists.

        Returns:
            True if a profile was created, False if one was already there

        Raises:
            ProfileLookupError: If the existence check fails
            ProfileInsertError: If the insert fails
        """
        lock = self._locks.setdefault(user.id, asyncio.Lock())
        self._lock_holders[user.id] = self._lock_holders.get(user.id, 0) + 1
        try:
            async with lock:
                return await self._create_if_missing(user)
        finally:
            self._lock_holders[user.id] -= 1
            if not self._lock_holders[user.id]:
                del self._lock_holders[user.id]
                del self._locks[user.id]

    async def _create_if_missing(self, user: AuthUser) -> bool:
        existing = await self.profile_store.find(user.id)
        if existing is not None:
            logger.debug(f"Profile {user.id} already exists")
            return False

        profile = Profile.for_new_user(user, self.settings)
        await self.profile_store.insert(profile)
        logger.info(
            f"Created profile {user.id} "
            f"(currency={profile.currency}, theme={profile.theme_mode.value}, plan={profile.plan})"
        )
        return True

    async def provision(self, user: AuthUser) -> bool:
        """
        Ensure the profile exists and load preferences.

        Returns:
            True if every step succeeded, False if anything failed (already logged)
        """
        try:
            await self.ensure_profile(user)
            await self.theme_service.load_user_theme()
            await self.currency_service.load_user_currency()

        except SubTrackError as e:
            logger.error(f"Login setup error for {user.id}: {e.message}")
            return False

        except Exception:
            logger.exception(f"Unexpected login setup error for {user.id}")
            return False

        return True
