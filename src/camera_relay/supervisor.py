"""Single-slot supervisor for the external streaming relay process.

At most one relay runs at a time. ``start`` and ``stop`` are serialized by
a lock so two concurrent starts can never both spawn. A background watcher
per process notices when the relay exits on its own and clears the handle,
so ``status()`` never reports a dead process as running.

The relay reads its config file only at startup: rewrite the source first,
then (re)start.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from .exceptions import RelaySpawnError

logger = logging.getLogger("camera-relay")


class RelayState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    CRASHED = "crashed"


@dataclass
class RelayStatus:
    """Structured outcome of a supervisor call.

    ``status`` is what happened (``started``, ``already_running``,
    ``stopped``, ``not_running``, ``error``) or, for ``status()``, the
    current state name.
    """

    status: str
    state: RelayState
    pid: int | None = None
    exit_code: int | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "error"

    def to_dict(self) -> dict:
        data = {
            "status": self.status,
            "state": self.state.value,
            "pid": self.pid,
            "exit_code": self.exit_code,
        }
        if self.error:
            data["error"] = self.error
        return data


class RelaySupervisor:
    """Owns the relay process handle; nothing else may touch it.

    Args:
        command: Relay argv, e.g. ``["mediamtx", "/etc/mediamtx.yml"]``.
    """

    def __init__(self, command: list[str]):
        if not command:
            raise ValueError("Relay command must not be empty")
        self._command = list(command)
        self._process: asyncio.subprocess.Process | None = None
        self._state = RelayState.STOPPED
        self._exit_code: int | None = None
        self._lock = asyncio.Lock()
        self._watchers: set[asyncio.Task] = set()

    @property
    def command(self) -> list[str]:
        return list(self._command)

    # ── Public API ──────────────────────────────────────────────────────

    async def start(self) -> RelayStatus:
        """Spawn the relay unless one is already running."""
        async with self._lock:
            if self._state in (RelayState.RUNNING, RelayState.STARTING):
                return self._snapshot("already_running")

            self._state = RelayState.STARTING
            try:
                proc = await self._spawn()
            except RelaySpawnError as e:
                self._state = RelayState.STOPPED
                logger.error("Relay failed to start: %s", e)
                return RelayStatus("error", RelayState.STOPPED, error=str(e))

            self._process = proc
            self._exit_code = None
            self._state = RelayState.RUNNING

            watcher = asyncio.create_task(self._watch(proc))
            self._watchers.add(watcher)
            watcher.add_done_callback(self._watchers.discard)

            logger.info("Relay started (pid %s): %s", proc.pid, " ".join(self._command))
            return self._snapshot("started")

    async def stop(self) -> RelayStatus:
        """Ask the relay to terminate (SIGTERM) without waiting for it."""
        async with self._lock:
            proc = self._process
            if proc is None:
                return self._snapshot("not_running")

            try:
                proc.terminate()
            except ProcessLookupError:
                pass  # Exited on its own; the watcher reaps it
            self._process = None
            self._exit_code = None
            self._state = RelayState.STOPPED

            logger.info("Relay stop requested (pid %s)", proc.pid)
            return RelayStatus("stopped", RelayState.STOPPED, pid=proc.pid)

    def status(self) -> RelayStatus:
        """Current state and pid. No side effects."""
        return self._snapshot(self._state.value)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the relay and give watchers a chance to reap it."""
        await self.stop()
        if not self._watchers:
            return
        _, pending = await asyncio.wait(set(self._watchers), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ── Internal helpers ────────────────────────────────────────────────

    def _snapshot(self, status: str) -> RelayStatus:
        pid = self._process.pid if self._process is not None else None
        return RelayStatus(status, self._state, pid=pid, exit_code=self._exit_code)

    async def _spawn(self) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(*self._command)
        except OSError as e:
            raise RelaySpawnError(f"{self._command[0]}: {e}") from e

    async def _watch(self, proc: asyncio.subprocess.Process) -> None:
        """Wait for ``proc`` to exit and clear the handle if it is still ours."""
        returncode = await proc.wait()

        if self._process is not proc:
            logger.debug("Relay pid %s exited with %s after stop", proc.pid, returncode)
            return

        self._process = None
        self._exit_code = returncode
        if returncode == 0:
            self._state = RelayState.STOPPED
            logger.info("Relay (pid %s) exited", proc.pid)
        else:
            self._state = RelayState.CRASHED
            logger.warning("Relay (pid %s) exited unexpectedly with %s", proc.pid, returncode)
