"""Integration tests: full check pipeline against a real database."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.callwatch.gateway.broadcast import BroadcastDispatcher
from src.callwatch.monitor.models import (
    Document,
    DocumentsChanged,
    MarkerRaised,
    NoChange,
    PersistedState,
    Snapshot,
    TextChanged,
)
from src.callwatch.monitor.pipeline import CheckPipeline, CheckStatus
from src.callwatch.monitor.scheduler import CheckScheduler
from src.callwatch.persistence.db import DatabaseManager, set_db_manager
from src.callwatch.persistence.state import load_state, save_state
from src.callwatch.persistence.subscribers import SubscriberRegistry
from src.callwatch.sources.base import SnapshotFetchError

ADMIN = "1000"
SOURCE_LINK = "https://example.org/listing"
CHECKED_AT = datetime(2025, 11, 20, 8, 0, tzinfo=timezone.utc)


def doc(key: str) -> Document:
    return Document(section="Bases", name=key, url=f"https://example.org/{key}.pdf", date="20/11/2025")


class ScriptedSource:
    """Returns queued snapshots (or raises queued exceptions) in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0

    async def fetch(self) -> Snapshot:
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
async def setup_database(tmp_path):
    db_manager = DatabaseManager(tmp_path / "test.db")
    await db_manager.init_db()
    set_db_manager(db_manager)
    yield db_manager
    await db_manager.close()


@pytest.fixture
async def registry(setup_database):
    registry = SubscriberRegistry(ADMIN)
    await registry.load()
    await registry.add("2000")
    return registry


@pytest.fixture
def transport():
    transport = AsyncMock()
    transport.send_text = AsyncMock(return_value=True)
    transport.send_image = AsyncMock(return_value=True)
    return transport


def make_pipeline(source, registry, transport, **kwargs):
    dispatcher = BroadcastDispatcher(registry, transport, **kwargs)
    return CheckPipeline(source, dispatcher, SOURCE_LINK, clock=lambda: CHECKED_AT)


@pytest.mark.asyncio
async def test_documents_changed_example(registry, transport):
    """{A,B} -> {A,C}: C added, B removed, state becomes {A,C}."""
    await save_state(PersistedState(documents=[doc("A"), doc("B")]))
    source = ScriptedSource(Snapshot(found=True, documents=[doc("A"), doc("C")]))

    outcome = await make_pipeline(source, registry, transport).run_check()

    assert outcome.status is CheckStatus.NOTIFIED
    assert outcome.event == DocumentsChanged(added=(doc("C"),), removed=(doc("B"),))
    assert outcome.report.delivered == [ADMIN, "2000"]
    state = await load_state()
    assert [d.url for d in state.documents] == [doc("A").url, doc("C").url]
    assert state.last_check == CHECKED_AT


@pytest.mark.asyncio
async def test_marker_raised_example(registry, transport):
    await save_state(PersistedState(has_marker=False, documents=[doc("A")]))
    source = ScriptedSource(Snapshot(found=True, has_marker=True, documents=[doc("A")]))

    outcome = await make_pipeline(source, registry, transport).run_check()

    assert outcome.event == MarkerRaised()
    assert transport.send_text.call_count == 2
    assert (await load_state()).has_marker is True


@pytest.mark.asyncio
async def test_unchanged_snapshot_is_idempotent(registry, transport):
    snapshot = Snapshot(found=True, has_marker=True, summary_text="CALL", documents=[doc("A")])
    pipeline = make_pipeline(ScriptedSource(snapshot, snapshot), registry, transport)

    first = await pipeline.run_check()
    sends_after_first = transport.send_text.call_count
    second = await pipeline.run_check()

    assert first.status is CheckStatus.NOTIFIED
    assert second.status is CheckStatus.NO_CHANGE
    assert second.event == NoChange()
    assert transport.send_text.call_count == sends_after_first


@pytest.mark.asyncio
async def test_free_text_source(registry, transport):
    await save_state(PersistedState(summary_text="CALL - pending"))
    source = ScriptedSource(Snapshot(found=True, summary_text="CALL - results published"))

    outcome = await make_pipeline(source, registry, transport).run_check()

    assert outcome.event == TextChanged(text="CALL - results published", has_marker=False)
    assert (await load_state()).summary_text == "CALL - results published"


@pytest.mark.asyncio
async def test_fetch_error_leaves_state_untouched(registry, transport):
    before = PersistedState(has_marker=True, documents=[doc("A")], last_check=CHECKED_AT)
    await save_state(before)
    source = ScriptedSource(SnapshotFetchError("net::ERR_TIMED_OUT"))

    outcome = await make_pipeline(source, registry, transport).run_check()

    assert outcome.status is CheckStatus.ERROR
    assert "ERR_TIMED_OUT" in outcome.error
    assert await load_state() == before
    transport.send_text.assert_not_called()


@pytest.mark.asyncio
async def test_not_found_leaves_state_untouched(registry, transport):
    before = PersistedState(summary_text="CALL", last_check=CHECKED_AT)
    await save_state(before)

    outcome = await make_pipeline(ScriptedSource(Snapshot(found=False)), registry, transport).run_check()

    assert outcome.status is CheckStatus.NOT_FOUND
    assert await load_state() == before
    transport.send_text.assert_not_called()


@pytest.mark.asyncio
async def test_fetch_timeout_is_an_error(registry, transport):
    class HangingSource:
        async def fetch(self):
            await asyncio.sleep(10)

    pipeline = make_pipeline(HangingSource(), registry, transport)
    pipeline.fetch_timeout_seconds = 0.05

    outcome = await pipeline.run_check()

    assert outcome.status is CheckStatus.ERROR
    assert await load_state() == PersistedState()


@pytest.mark.asyncio
async def test_delivery_failure_does_not_fail_check(registry, transport):
    transport.send_text = AsyncMock(side_effect=[RuntimeError("blocked"), True])
    source = ScriptedSource(Snapshot(found=True, has_marker=True, documents=[]))

    outcome = await make_pipeline(source, registry, transport).run_check()

    assert outcome.status is CheckStatus.NOTIFIED
    assert outcome.report.failed == [ADMIN]
    assert outcome.report.delivered == ["2000"]
    assert (await load_state()).has_marker is True


@pytest.mark.asyncio
async def test_secondary_failure_does_not_affect_primary(registry, transport):
    secondary = AsyncMock()
    secondary.publish.side_effect = RuntimeError("ntfy down")
    source = ScriptedSource(Snapshot(found=True, has_marker=True, documents=[]))
    pipeline = make_pipeline(source, registry, transport, secondary=secondary, secondary_topic="calls")

    outcome = await pipeline.run_check()

    assert outcome.report.delivered == [ADMIN, "2000"]
    assert outcome.report.secondary_ok is False
    assert (await load_state()).has_marker is True


@pytest.mark.asyncio
async def test_overlapping_scheduled_ticks_run_one_pipeline(registry, transport):
    gate = asyncio.Event()

    class SlowSource(ScriptedSource):
        async def fetch(self):
            await gate.wait()
            return await super().fetch()

    source = SlowSource(Snapshot(found=True, has_marker=True, documents=[]))
    scheduler = CheckScheduler(make_pipeline(source, registry, transport).run_check, interval_seconds=3600)

    first = asyncio.create_task(scheduler.tick())
    await asyncio.sleep(0)
    dropped = await scheduler.tick()
    gate.set()
    ran = await first

    assert ran is True
    assert dropped is False
    assert source.calls == 1
