"""Unit tests for gateway command handlers."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.callwatch.gateway.commands import CommandService, CooldownRegistry, format_status
from src.callwatch.monitor.models import Document, PersistedState, Snapshot
from src.callwatch.persistence.db import DatabaseManager, set_db_manager
from src.callwatch.persistence.state import load_state, save_state
from src.callwatch.persistence.subscribers import SubscriberRegistry
from src.callwatch.sources.base import SnapshotFetchError

ADMIN = "1000"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
async def setup_database(tmp_path):
    db_manager = DatabaseManager(tmp_path / "test.db")
    await db_manager.init_db()
    set_db_manager(db_manager)
    yield db_manager
    await db_manager.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    source = AsyncMock()
    source.fetch = AsyncMock(return_value=Snapshot(found=True, has_marker=True, summary_text="CALL"))
    return source


@pytest.fixture
async def service(setup_database, source, clock):
    registry = SubscriberRegistry(ADMIN)
    await registry.load()
    return CommandService(
        source=source,
        registry=registry,
        cooldown=CooldownRegistry(60, clock=clock),
    )


# Cooldown

class TestCooldownRegistry:

    def test_first_request_allowed(self, clock):
        cooldown = CooldownRegistry(60, clock=clock)
        assert cooldown.acquire("1") == 0.0

    def test_request_inside_window_rejected(self, clock):
        cooldown = CooldownRegistry(60, clock=clock)
        cooldown.acquire("1")
        clock.now += 20
        assert cooldown.acquire("1") == pytest.approx(40)

    def test_rejection_does_not_extend_window(self, clock):
        cooldown = CooldownRegistry(60, clock=clock)
        cooldown.acquire("1")
        clock.now += 30
        cooldown.acquire("1")
        clock.now += 30
        assert cooldown.acquire("1") == 0.0

    def test_window_is_per_recipient(self, clock):
        cooldown = CooldownRegistry(60, clock=clock)
        cooldown.acquire("1")
        assert cooldown.acquire("2") == 0.0


# Status

@pytest.mark.asyncio
async def test_status_reports_live_marker(service, source):
    response = await service.handle_status("5")

    source.fetch.assert_awaited_once()
    assert "IS active" in response


@pytest.mark.asyncio
async def test_status_cooldown_sequence(service, source, clock):
    """Second query inside the window performs no fetch; a later one does."""
    await service.handle_status("5")

    clock.now += 10
    rejected = await service.handle_status("5")
    assert "50s" in rejected
    assert source.fetch.await_count == 1

    clock.now += 50
    await service.handle_status("5")
    assert source.fetch.await_count == 2


@pytest.mark.asyncio
async def test_status_acknowledged_only_when_admitted(service, clock):
    acknowledged = AsyncMock()

    await service.handle_status("5", on_accepted=acknowledged)
    clock.now += 10
    await service.handle_status("5", on_accepted=acknowledged)

    acknowledged.assert_awaited_once()


@pytest.mark.asyncio
async def test_status_remaining_wait_rounds_up(service, clock):
    await service.handle_status("5")
    clock.now += 0.5
    assert "60s" in await service.handle_status("5")


@pytest.mark.asyncio
async def test_status_does_not_touch_persisted_state(service):
    before = PersistedState(summary_text="stored", last_check=datetime(2025, 1, 1, tzinfo=timezone.utc))
    await save_state(before)

    await service.handle_status("5")

    assert await load_state() == before


@pytest.mark.asyncio
async def test_status_fetch_error(service, source):
    source.fetch.side_effect = SnapshotFetchError("net::ERR_NAME_NOT_RESOLVED")
    assert "Error" in await service.handle_status("5")


@pytest.mark.asyncio
async def test_status_fetch_timeout(service, source):
    async def hang():
        await asyncio.sleep(10)

    source.fetch.side_effect = hang
    service.fetch_timeout_seconds = 0.05

    assert "Error" in await service.handle_status("5")


@pytest.mark.asyncio
async def test_status_not_found(service, source):
    source.fetch.return_value = Snapshot(found=False)
    assert "not on the listing" in await service.handle_status("5")


def test_format_status_lists_documents():
    snapshot = Snapshot(
        found=True,
        has_marker=False,
        documents=[Document(section="Bases", name="Call <2025>", url="https://x/a.pdf", date="01/01/2025")],
    )

    text = format_status(snapshot)

    assert "No update marker" in text
    assert "Documents (1)" in text
    assert "Call &lt;2025&gt;" in text
    assert "01/01/2025" in text


# Subscriptions

@pytest.mark.asyncio
async def test_subscribe_reports_already_subscribed(service):
    assert "Subscribed" in await service.handle_subscribe("5")
    assert "already" in await service.handle_subscribe("5")


@pytest.mark.asyncio
async def test_unsubscribe(service):
    await service.handle_subscribe("5")
    assert "Unsubscribed" in await service.handle_unsubscribe("5")
    assert "not subscribed" in await service.handle_unsubscribe("5")


@pytest.mark.asyncio
async def test_admin_cannot_unsubscribe(service):
    assert "cannot" in await service.handle_unsubscribe(ADMIN)
    assert service.registry.count() == 1


# Stats

@pytest.mark.asyncio
async def test_stats_admin_only(service):
    await service.handle_subscribe("5")

    assert await service.handle_stats("5") is None
    response = await service.handle_stats(ADMIN)
    assert "Subscribers: 2" in response
    assert "never" in response
