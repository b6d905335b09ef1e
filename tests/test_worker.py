from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

import kvstream.runner.worker as worker_mod
from kvstream.config.settings import Settings
from kvstream.runner.worker import StreamWorker
from tests.helpers.fakes import InMemoryKeyValueRepo, ListSource


def _session_factory():
    sessions = []

    @asynccontextmanager
    async def factory():
        session = AsyncMock()
        sessions.append(session)
        yield session

    return factory, sessions


@pytest.fixture
def kv(monkeypatch):
    repo = InMemoryKeyValueRepo()
    monkeypatch.setattr(worker_mod, "KeyValueRepo", lambda session: repo)
    return repo


@pytest.mark.asyncio
async def test_tick_processes_one_batch_in_fresh_session(kv):
    factory, sessions = _session_factory()
    seen = []

    async def handler(_ctx, item):
        seen.append(item)

    worker = StreamWorker(
        factory,
        source_factory=lambda session: ListSource("abcde"),
        handler=handler,
        cursor_key="films",
        batch_size=2,
    )

    assert await worker.tick() == 2
    assert await worker.tick() == 2

    assert seen == ["a", "b", "c", "d"]
    assert kv.rows["films"] == "2"
    assert len(sessions) == 2


@pytest.mark.asyncio
async def test_run_keeps_polling_after_errors_until_stopped(kv):
    factory, _ = _session_factory()
    seen = []
    worker = None

    async def handler(_ctx, item):
        seen.append(item)
        if len(seen) == 1:
            raise ValueError("first item fails")
        if item == "d":
            worker.stop()

    worker = StreamWorker(
        factory,
        source_factory=lambda session: ListSource("abcde"),
        handler=handler,
        cursor_key="films",
        batch_size=2,
        poll_interval=0.01,
    )

    await worker.run()

    # "b" was skipped: the cursor moved before the handler failed on "a"
    assert seen == ["a", "c", "d"]
    assert worker.ctx.cancelled


@pytest.mark.asyncio
async def test_run_backs_off_on_disconnect(kv, monkeypatch):
    factory, _ = _session_factory()
    worker = StreamWorker(
        factory,
        source_factory=lambda session: ListSource("abc"),
        handler=AsyncMock(),
        cursor_key="films",
        poll_interval=30,
        disconnect_backoff=0.01,
    )
    calls = 0

    async def flaky_tick():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise OperationalError("SELECT", {}, Exception("connection refused"))
        worker.stop()
        return 0

    monkeypatch.setattr(worker, "tick", flaky_tick)

    await worker.run()

    assert calls == 2


@pytest.mark.asyncio
async def test_defaults_come_from_settings(kv, monkeypatch):
    monkeypatch.setattr(
        worker_mod,
        "get_settings",
        lambda: Settings(_env_file=None, stream_batch_size=3, poll_interval=0.25),
    )
    factory, _ = _session_factory()
    worker = StreamWorker(
        factory,
        source_factory=lambda session: ListSource("abcdefg"),
        handler=AsyncMock(),
        cursor_key="films",
    )

    assert await worker.tick() == 3
    assert kv.rows["films"] == "1"
    assert worker._poll_interval == 0.25


def test_explicit_arguments_override_settings(monkeypatch):
    monkeypatch.setattr(
        worker_mod,
        "get_settings",
        lambda: Settings(_env_file=None, stream_batch_size=3, poll_interval=0.25),
    )
    worker = StreamWorker(
        AsyncMock(),
        source_factory=lambda session: ListSource("abc"),
        handler=AsyncMock(),
        cursor_key="films",
        batch_size=7,
        poll_interval=1.5,
    )

    assert worker._batch_size == 7
    assert worker._poll_interval == 1.5


def test_create_worker_uses_application_session_factory():
    from kvstream.db import async_session_factory
    from kvstream.runner.main import create_worker

    worker = create_worker(
        source_factory=lambda session: ListSource("abc"),
        handler=AsyncMock(),
        cursor_key="films",
        batch_size=4,
    )

    assert worker._session_factory is async_session_factory
    assert worker._batch_size == 4
