"""
Profile Store for SubTrack Auth
===============================

Reads and creates rows in the `profiles` table. The login flow only ever
needs two operations: look a profile up by user id, and insert one.
"""

import logging
from typing import Optional, Protocol

from supabase import AsyncClient

from config import Settings, get_settings
from models import Profile
from exceptions import ProfileInsertError, ProfileLookupError


# Set up module logger
logger = logging.getLogger(__name__)


class ProfileStoreProtocol(Protocol):
    """Protocol for profile persistence."""

    async def find(self, user_id: str) -> Optional[Profile]:
        """
        Return the profile for `user_id`, or None when there is none.

        Raises:
            ProfileLookupError: If the store cannot be read
        """
        ...

    async def insert(self, profile: Profile) -> None:
        """
        Create a profile.

        Raises:
            ProfileInsertError: If the row cannot be written (e.g. the id exists)
        """
        ...


class SupabaseProfileStore:
    """Profile store over a Supabase (PostgREST) table."""

    def __init__(self, client: AsyncClient, settings: Optional[Settings] = None):
        self._client = client
        self.settings = settings or get_settings()
        self.table = self.settings.profiles_table

    async def find(self, user_id: str) -> Optional[Profile]:
        try:
            response = await (
                self._client.table(self.table)
                .select("*")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
            rows = response.data or []
            return Profile.model_validate(rows[0]) if rows else None
        except Exception as e:
            raise ProfileLookupError(user_id, str(e)) from e

    async def insert(self, profile: Profile) -> None:
        try:
            await self._client.table(self.table).insert(profile.to_row()).execute()
        except Exception as e:
            raise ProfileInsertError(profile.id, str(e)) from e
        logger.info(f"Inserted profile {profile.id} into {self.table}")


class InMemoryProfileStore:
    """
    Dict-backed profile store for tests.

    Behaves like a table with a primary key on `id`: inserting an existing
    id raises `ProfileInsertError`.
    """

    def __init__(self, profiles: Optional[list[Profile]] = None):
        self.profiles: dict[str, Profile] = {p.id: p for p in profiles or []}
        self.find_calls: list[str] = []
        self.insert_calls: list[Profile] = []
        self.fail_lookup: Optional[Exception] = None

    async def find(self, user_id: str) -> Optional[Profile]:
        self.find_calls.append(user_id)
        if self.fail_lookup is not None:
            raise ProfileLookupError(user_id, str(self.fail_lookup))
        return self.profiles.get(user_id)

    async def insert(self, profile: Profile) -> None:
        self.insert_calls.append(profile)
        if profile.id in self.profiles:
            raise ProfileInsertError(
                profile.id,
                'duplicate key value violates unique constraint "profiles_pkey"'
            )
        self.profiles[profile.id] = profile


def create_profile_store(
    client: Optional[AsyncClient] = None,
    settings: Optional[Settings] = None,
    use_mock: bool = False,
) -> ProfileStoreProtocol:
    """Factory function to create the appropriate profile store."""
    if use_mock:
        logger.info("Creating in-memory profile store")
        return InMemoryProfileStore()

    if client is None:
        raise ValueError("A Supabase client is required for the real profile store")

    return SupabaseProfileStore(client, settings=settings)
