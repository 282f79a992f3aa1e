"""Session registry lifecycle and close policies."""

from __future__ import annotations

import asyncio

import pytest

from use_cases.terminal_pty import TerminalSpawnError
from use_cases.terminal_session import SessionRegistry, SessionState


@pytest.mark.asyncio()
async def test_create_session_registers_by_connection_id(registry, make_connection) -> None:
    connection = make_connection("abc")

    session = await registry.create_session(connection)

    assert registry.get_session("abc") is session
    assert registry.get_session_count() == 1


@pytest.mark.asyncio()
async def test_closing_one_connection_terminates_every_session(registry, make_connection) -> None:
    connection_a = make_connection("a")
    session_a = await registry.create_session(connection_a)
    session_b = await registry.create_session(make_connection("b"))

    connection_a.disconnect()
    await session_a.wait_terminated()

    assert session_a.process.kills == ["SIGHUP"]
    assert session_b.process.kills == ["SIGHUP"]
    assert len(registry) == 0


@pytest.mark.asyncio()
async def test_global_close_then_exit_reports_to_other_client(registry, make_connection) -> None:
    connection_a = make_connection("a")
    connection_b = make_connection("b")
    session_a = await registry.create_session(connection_a)
    session_b = await registry.create_session(connection_b)

    connection_a.disconnect()
    await session_a.wait_terminated()
    # The hung up shell of B now exits
    session_b.process.emit("exit", 129)
    await session_b.wait_terminated()

    assert connection_b.sent == [{"type": "terminalExit", "data": 129}]
    assert connection_b.close_calls == 1
    assert len(registry) == 0


@pytest.mark.asyncio()
async def test_session_policy_only_terminates_the_closing_session(scoped_registry, make_connection) -> None:
    connection_a = make_connection("a")
    session_a = await scoped_registry.create_session(connection_a)
    session_b = await scoped_registry.create_session(make_connection("b"))

    connection_a.disconnect()
    await session_a.wait_terminated()

    assert session_a.process.kills == ["SIGHUP"]
    assert session_b.process.kills == []
    assert "a" not in scoped_registry
    assert scoped_registry.get_session("b") is session_b
    assert session_b.state is SessionState.ACTIVE


@pytest.mark.asyncio()
async def test_close_after_registry_was_cleared_still_signals_own_process(registry, make_connection) -> None:
    connection_a = make_connection("a")
    session_a = await registry.create_session(connection_a)

    await registry.terminate_all()
    connection_a.disconnect()
    await session_a.wait_terminated()

    assert session_a.process.kills == ["SIGHUP", "SIGHUP"]


@pytest.mark.asyncio()
async def test_remove_session_is_a_noop_when_absent(registry, make_connection) -> None:
    session = await registry.create_session(make_connection("a"))

    assert await registry.remove_session("missing") is False
    assert await registry.remove_session("a") is True
    assert await registry.remove_session("a") is False
    assert session.process.kills == []


@pytest.mark.asyncio()
async def test_remove_session_keeps_a_replacement(registry, make_connection) -> None:
    first = await registry.create_session(make_connection("a"))
    second = await registry.create_session(make_connection("a"))

    assert first.process.kills == ["SIGHUP"]
    assert await registry.remove_session("a", first) is False
    assert registry.get_session("a") is second


@pytest.mark.asyncio()
async def test_terminate_all_on_empty_registry(registry) -> None:
    assert await registry.terminate_all() == []
    assert await registry.terminate_session("nobody") == []


@pytest.mark.asyncio()
async def test_concurrent_creation_keeps_every_session(registry, processes, make_connection) -> None:
    connections = [make_connection() for _ in range(25)]

    sessions = await asyncio.gather(*(registry.create_session(c) for c in connections))

    assert len(registry) == 25
    assert len(processes) == 25
    assert {s.connection_id for s in sessions} == {c.connection_id for c in connections}


@pytest.mark.asyncio()
async def test_spawn_failure_is_scoped_to_its_connection(process_factory, make_connection) -> None:
    calls = 0

    async def flaky_factory(**kwargs):
        nonlocal calls
        calls += 1
        if calls == 2:
            raise TerminalSpawnError("Error spawning /bin/nope: not found")
        return await process_factory(**kwargs)

    registry = SessionRegistry(process_factory=flaky_factory)
    healthy = await registry.create_session(make_connection("ok"))

    with pytest.raises(TerminalSpawnError):
        await registry.create_session(make_connection("broken"))

    assert "broken" not in registry
    assert registry.get_session("ok") is healthy
    assert healthy.state is SessionState.ACTIVE


@pytest.mark.asyncio()
async def test_cancelled_spawn_kills_the_orphaned_process(processes, process_factory, make_connection) -> None:
    release = asyncio.Event()

    async def slow_factory(**kwargs):
        await release.wait()
        return await process_factory(**kwargs)

    registry = SessionRegistry(process_factory=slow_factory)
    task = asyncio.create_task(registry.create_session(make_connection("late")))
    await asyncio.sleep(0)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    release.set()
    for _ in range(10):
        await asyncio.sleep(0)

    assert len(registry) == 0
    assert [p.kills for p in processes] == [["SIGHUP"]]


@pytest.mark.asyncio()
async def test_cancelled_while_waiting_for_lock_kills_the_process(registry, processes, make_connection) -> None:
    await registry._lock.acquire()
    try:
        task = asyncio.create_task(registry.create_session(make_connection("queued")))
        for _ in range(5):
            await asyncio.sleep(0)
        assert len(processes) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
    finally:
        registry._lock.release()

    assert len(registry) == 0
    assert processes[0].kills == ["SIGHUP"]
    assert processes[0].started is False
