"""Tests for the relay process supervisor."""

from __future__ import annotations

import asyncio
import sys
from unittest.mock import patch

import pytest

from camera_relay.supervisor import RelayState, RelayStatus, RelaySupervisor

SLEEPER = [sys.executable, "-c", "import time; time.sleep(30)"]
CRASHER = [sys.executable, "-c", "import sys; sys.exit(3)"]
QUITTER = [sys.executable, "-c", "pass"]


async def _wait_for_state(sup: RelaySupervisor, state: RelayState, timeout: float = 10.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while sup.status().state != state:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"supervisor never reached {state}: {sup.status()}")
        await asyncio.sleep(0.02)


class TestRelayStatus:
    def test_to_dict(self):
        status = RelayStatus("started", RelayState.RUNNING, pid=42)
        assert status.to_dict() == {
            "status": "started",
            "state": "running",
            "pid": 42,
            "exit_code": None,
        }
        assert status.ok

    def test_error_includes_message(self):
        status = RelayStatus("error", RelayState.STOPPED, error="boom")
        assert status.to_dict()["error"] == "boom"
        assert not status.ok


class TestRelaySupervisor:
    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            RelaySupervisor([])

    def test_initial_status(self):
        sup = RelaySupervisor(SLEEPER)
        status = sup.status()
        assert status.state == RelayState.STOPPED
        assert status.pid is None
        assert sup.status().state != RelayState.RUNNING

    @pytest.mark.asyncio
    async def test_start_then_stop(self):
        sup = RelaySupervisor(SLEEPER)
        started = await sup.start()
        try:
            assert started.status == "started"
            assert started.state == RelayState.RUNNING
            assert isinstance(started.pid, int)
            assert sup.status().pid == started.pid
        finally:
            stopped = await sup.stop()

        assert stopped.status == "stopped"
        assert stopped.pid == started.pid
        assert sup.status().state == RelayState.STOPPED
        assert sup.status().pid is None
        await sup.shutdown()

    @pytest.mark.asyncio
    async def test_second_start_reports_already_running(self):
        sup = RelaySupervisor(SLEEPER)
        with patch(
            "camera_relay.supervisor.asyncio.create_subprocess_exec",
            wraps=asyncio.create_subprocess_exec,
        ) as spawn:
            first = await sup.start()
            second = await sup.start()
        try:
            assert first.status == "started"
            assert second.status == "already_running"
            assert second.pid == first.pid
            assert spawn.call_count == 1
        finally:
            await sup.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_starts_spawn_once(self):
        sup = RelaySupervisor(SLEEPER)
        with patch(
            "camera_relay.supervisor.asyncio.create_subprocess_exec",
            wraps=asyncio.create_subprocess_exec,
        ) as spawn:
            results = await asyncio.gather(*(sup.start() for _ in range(5)))
        try:
            statuses = sorted(r.status for r in results)
            assert statuses == ["already_running"] * 4 + ["started"]
            assert len({r.pid for r in results}) == 1
            assert spawn.call_count == 1
        finally:
            await sup.shutdown()

    @pytest.mark.asyncio
    async def test_stop_when_never_started(self):
        sup = RelaySupervisor(SLEEPER)
        with patch("camera_relay.supervisor.asyncio.create_subprocess_exec") as spawn:
            result = await sup.stop()
        assert result.status == "not_running"
        assert result.pid is None
        spawn.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_twice(self):
        sup = RelaySupervisor(SLEEPER)
        await sup.start()
        first = await sup.stop()
        second = await sup.stop()
        assert first.status == "stopped"
        assert second.status == "not_running"
        await sup.shutdown()

    @pytest.mark.asyncio
    async def test_spawn_failure(self):
        sup = RelaySupervisor(["/nonexistent/relay-binary", "relay.yml"])
        result = await sup.start()
        assert result.status == "error"
        assert result.state == RelayState.STOPPED
        assert result.pid is None
        assert "relay-binary" in result.error
        assert sup.status().state == RelayState.STOPPED

    @pytest.mark.asyncio
    async def test_crash_is_detected(self):
        sup = RelaySupervisor(CRASHER)
        started = await sup.start()
        assert started.status == "started"

        await _wait_for_state(sup, RelayState.CRASHED)
        status = sup.status()
        assert status.pid is None
        assert status.exit_code == 3
        assert sup.status().state != RelayState.RUNNING

    @pytest.mark.asyncio
    async def test_clean_exit_returns_to_stopped(self):
        sup = RelaySupervisor(QUITTER)
        await sup.start()
        await _wait_for_state(sup, RelayState.STOPPED)
        assert sup.status().exit_code == 0
        assert (await sup.stop()).status == "not_running"

    @pytest.mark.asyncio
    async def test_restart_after_crash(self):
        sup = RelaySupervisor(CRASHER)
        first = await sup.start()
        await _wait_for_state(sup, RelayState.CRASHED)

        second = await sup.start()
        assert second.status == "started"
        assert second.pid != first.pid
        await _wait_for_state(sup, RelayState.CRASHED)

    @pytest.mark.asyncio
    async def test_stopped_process_exit_does_not_clobber_new_one(self):
        sup = RelaySupervisor(SLEEPER)
        first = await sup.start()
        await sup.stop()
        second = await sup.start()
        try:
            # Let the first process die and its watcher run
            await asyncio.sleep(0.3)
            status = sup.status()
            assert status.state == RelayState.RUNNING
            assert status.pid == second.pid != first.pid
        finally:
            await sup.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_reaps_process(self):
        sup = RelaySupervisor(SLEEPER)
        await sup.start()
        await sup.shutdown()
        assert sup.status().state == RelayState.STOPPED
