"""Shared fixtures for the SubTrack auth tests."""

import asyncio

import pytest

from auth_provider import MockAuthProvider
from config import get_settings_for_testing
from login_flow import LoginFlowController
from models import Screen
from profile_store import InMemoryProfileStore


class RecordingNavigator:
    def __init__(self):
        self.pushed: list[Screen] = []
        self.replaced: list[Screen] = []

    def push(self, screen: Screen) -> None:
        self.pushed.append(screen)

    def replace(self, screen: Screen) -> None:
        self.replaced.append(screen)


class RecordingNotifier:
    def __init__(self):
        self.messages: list[str] = []

    def show_message(self, message: str) -> None:
        self.messages.append(message)


class GatedProfileStore(InMemoryProfileStore):
    """Profile store whose lookups block until `gate` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.lookup_started = asyncio.Event()

    async def find(self, user_id: str):
        self.lookup_started.set()
        await self.gate.wait()
        return await super().find(user_id)


@pytest.fixture
def settings():
    return get_settings_for_testing(supabase_url=None, supabase_key=None)


@pytest.fixture
def auth():
    return MockAuthProvider()


@pytest.fixture
def profiles():
    return InMemoryProfileStore()


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def controller(auth, profiles, navigator, notifier, settings):
    flow = LoginFlowController(auth, profiles, navigator, notifier, settings=settings)
    await flow.start()
    yield flow
    await flow.close()


@pytest.fixture
def gated_profiles():
    return GatedProfileStore()
