"""
Web Client Detector - Test Fixtures
===================================

Shared fixtures for all tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from config_store import Config, ConfigStore
from action_queue import RateLimitedActionQueue
from restriction import RestrictionStateManager
from fakes import (
    LOG_CHANNEL_ID,
    SUS_CHAT_CHANNEL_ID,
    SUS_ROLE_ID,
    VERIFY_CHANNEL_ID,
    FakeClock,
    FakeRole,
    make_channel,
    make_guild,
)

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config_store(tmp_path):
    store = ConfigStore(tmp_path / "config.json", defaults=Config(periodic_mention_delete_seconds=0))
    store.load()
    store.config.sus_role_id = SUS_ROLE_ID
    return store


@pytest.fixture
def audit():
    sink = MagicMock()
    sink.append = AsyncMock()
    sink.channel_id = LOG_CHANNEL_ID
    return sink


@pytest.fixture
def sus_role():
    return FakeRole(SUS_ROLE_ID)


@pytest.fixture
def verify_channel():
    return make_channel(VERIFY_CHANNEL_ID)


@pytest.fixture
def guild(sus_role, verify_channel):
    return make_guild(roles=[sus_role], channels=[verify_channel])


@pytest.fixture
def queue():
    return RateLimitedActionQueue(interval=0)


@pytest.fixture
def restrictions(config_store, queue, audit, clock):
    return RestrictionStateManager(
        config_store,
        queue,
        audit,
        verify_channel_id=VERIFY_CHANNEL_ID,
        sus_chat_channel_id=SUS_CHAT_CHANNEL_ID,
        clock=clock,
    )
