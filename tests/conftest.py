"""Shared fixtures: settings, a frozen clock, a fresh store and an engine over them."""

from datetime import datetime, timezone

import pytest

from roster.models import RosterSettings
from roster.repositories.subscription_store import SubscriptionStore
from roster.services.clock import Clock
from roster.services.lifecycle_engine import LifecycleEngine

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    """Settings with roles and notifications pointing at test IDs."""
    return RosterSettings(
        default_role_id="role-default",
        guild_id="guild-1",
        notification_channel_id="channel-1",
    )


@pytest.fixture
def clock():
    """Clock frozen at T0."""
    return Clock(frozen_at=T0)


@pytest.fixture
def store():
    """Create a fresh SubscriptionStore instance for testing."""
    store = SubscriptionStore()
    yield store
    store.clear()


@pytest.fixture
def engine(store, clock, settings):
    return LifecycleEngine(store, clock, settings)


@pytest.fixture
def t0():
    """The instant the clock fixture is frozen at."""
    return T0
