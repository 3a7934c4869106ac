"""
Shared pytest fixtures for Smart Bridge contract tests.

Contract tests use test doubles (fakes, stubs) to avoid real dependencies.
No network, threads, wall-clock timing or real files outside tmp_path.
"""

import pytest

from smartbridge.app.adaptive_player import AdaptivePlaybackService
from smartbridge.app.config import SmartBridgeConfig
from smartbridge.broadcast_core.state_machine import PlaybackStateMachine
from smartbridge.state.collection_store import CollectionStore
from smartbridge.state.now_playing_state import NowPlayingScheduler
from smartbridge.tests.contracts.test_doubles import (
    FakeDevice,
    FakeScheduler,
    FixedRng,
    ManualResolver,
    create_catalog,
)


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def fake_device():
    return FakeDevice()


@pytest.fixture
def resolver():
    """Resolver that settles every key immediately."""
    return ManualResolver()


@pytest.fixture
def catalog_123():
    """Three songs, fully connected."""
    return create_catalog((1, 2, 3))


@pytest.fixture
def now_playing(fake_scheduler):
    return NowPlayingScheduler(fake_scheduler, rng=FixedRng(uniforms=[7.0, 12.0] * 50))


@pytest.fixture
def machine(fake_device, resolver, fake_scheduler, now_playing):
    return PlaybackStateMachine(fake_device, resolver, fake_scheduler, now_playing=now_playing)


@pytest.fixture
def collection(tmp_path):
    return CollectionStore(str(tmp_path / "collection.json"))


@pytest.fixture
def service(fake_device, resolver, fake_scheduler, collection):
    """Service with identity route order and fixed bridge delays."""
    return AdaptivePlaybackService(
        fake_device,
        resolver,
        fake_scheduler,
        config=SmartBridgeConfig(),
        rng=FixedRng(uniforms=[7.0, 12.0] * 50),
        collection=collection,
    )
