"""Unit tests for persistence layer (database, migrations, state store)."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import aiosqlite
import pytest

from src.callwatch.monitor.models import Document, PersistedState
from src.callwatch.persistence.db import MIGRATIONS_DIR, DatabaseManager, set_db_manager
from src.callwatch.persistence.migrate import (
    apply_migrations,
    calculate_checksum,
    discover_migrations,
)
from src.callwatch.persistence.state import load_state, save_state


@pytest.fixture
async def setup_database(tmp_path):
    db_manager = DatabaseManager(tmp_path / "test.db")
    await db_manager.init_db()
    set_db_manager(db_manager)
    yield db_manager
    await db_manager.close()


# Database Connection Tests

@pytest.mark.asyncio
async def test_get_connection_wal_mode(tmp_path):
    """Verify WAL mode is enabled on database connection."""
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn = await db_manager.get_connection()
    cursor = await conn.execute("PRAGMA journal_mode")
    mode = await cursor.fetchone()
    await cursor.close()

    assert mode[0].lower() == "wal"
    await db_manager.close()


@pytest.mark.asyncio
async def test_connection_pooling(tmp_path):
    """Verify connection is reused."""
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn1 = await db_manager.get_connection()
    conn2 = await db_manager.get_connection()

    assert conn1 is conn2
    await db_manager.close()


# Migration Runner Tests

def test_discover_migrations_lexical_order(tmp_path):
    (tmp_path / "0002_b.sql").write_text("SELECT 1;")
    (tmp_path / "0001_a.sql").write_text("SELECT 1;")

    names = [name for name, _ in discover_migrations(tmp_path)]

    assert names == ["0001_a.sql", "0002_b.sql"]


def test_apply_migrations_idempotent(tmp_path):
    db_path = tmp_path / "test.db"

    assert apply_migrations(db_path, MIGRATIONS_DIR) == len(discover_migrations(MIGRATIONS_DIR))
    assert apply_migrations(db_path, MIGRATIONS_DIR) == 0


def test_apply_migrations_detects_tampering(tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    migration = migrations / "0001_test.sql"
    migration.write_text("CREATE TABLE t (id INTEGER PRIMARY KEY);")
    db_path = tmp_path / "test.db"
    apply_migrations(db_path, migrations)

    migration.write_text("CREATE TABLE t (id INTEGER PRIMARY KEY, x TEXT);")

    with pytest.raises(RuntimeError, match="tampered"):
        apply_migrations(db_path, migrations)


def test_calculate_checksum_sha256(tmp_path):
    import hashlib

    f = tmp_path / "m.sql"
    f.write_text("SELECT 1;")
    assert calculate_checksum(f) == hashlib.sha256(b"SELECT 1;").hexdigest()


# State Store Tests

@pytest.mark.asyncio
async def test_load_state_defaults_when_missing(setup_database):
    state = await load_state()
    assert state == PersistedState()


@pytest.mark.asyncio
async def test_save_then_load(setup_database):
    state = PersistedState(
        has_marker=True,
        summary_text="CONVOCATORIA",
        documents=[Document(section="S", name="A", url="https://example.org/a.pdf")],
        last_check=datetime(2025, 11, 20, tzinfo=timezone.utc),
    )

    assert await save_state(state) is True
    assert await load_state() == state


@pytest.mark.asyncio
async def test_save_overwrites_wholesale(setup_database):
    await save_state(PersistedState(documents=[Document(section="S", name="A", url="a")]))
    await save_state(PersistedState(documents=[Document(section="S", name="C", url="c")]))

    db = await setup_database.get_connection()
    cursor = await db.execute("SELECT COUNT(*) FROM monitor_state")
    count = (await cursor.fetchone())[0]
    await cursor.close()

    assert count == 1
    assert [d.url for d in (await load_state()).documents] == ["c"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    "{not json",
    "[1, 2, 3]",
    json.dumps({"documents": [{"name": "x"}]}),
    json.dumps({"documents": ["a"]}),
    json.dumps({"documents": [None]}),
    json.dumps({"documents": {"url": "x"}}),
    json.dumps({"last_check": 5}),
])
async def test_corrupt_state_treated_as_empty(setup_database, payload):
    db = await setup_database.get_connection()
    await db.execute(
        "INSERT INTO monitor_state (id, payload, updated_at) VALUES (1, ?, 0)",
        (payload,),
    )
    await db.commit()

    assert await load_state() == PersistedState()


@pytest.mark.asyncio
async def test_save_failure_is_logged_not_raised(setup_database):
    failing = AsyncMock()
    failing.execute.side_effect = aiosqlite.OperationalError("disk I/O error")

    with patch("src.callwatch.persistence.state.get_db", AsyncMock(return_value=failing)), \
            patch("src.callwatch.persistence.state.logger") as mock_logger:
        result = await save_state(PersistedState(has_marker=True))

    assert result is False
    mock_logger.error.assert_called_once()
