"""Asynchronous process launching for `system.exec` and `system.exec_read`.

ManagedProcess:
    One shell command with a graceful stop (SIGTERM -> wait -> SIGKILL).

ProcessLauncher:
    Runs commands as asyncio tasks and queues `exec_read` completions so the
    engine delivers them on its next tick, never from inside the task.
"""

__all__ = ["ManagedProcess", "ProcessLauncher", "ProcessResult", "run_command"]

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .registry import CallbackHandle


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a finished command, as handed to the script."""

    status: bool
    output: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the mapping passed to `exec_read` callbacks."""
        return {"status": self.status, "output": self.output}


class ManagedProcess:
    """A subprocess with proper lifecycle handling.

    Usage:
        proc = ManagedProcess()
        await proc.start("uname -a", stdout=asyncio.subprocess.PIPE)
        output = await proc.read_output()
        await proc.wait()
    """

    def __init__(self, graceful_timeout: float = 1.0) -> None:
        """Initialize.

        Args:
            graceful_timeout: Seconds to wait after SIGTERM before SIGKILL
        """
        self._proc: asyncio.subprocess.Process | None = None
        self._graceful_timeout = graceful_timeout

    @property
    def pid(self) -> int | None:
        """Return PID if process exists, else None."""
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> int | None:
        """Return exit code if process exited, else None."""
        return self._proc.returncode if self._proc else None

    @property
    def is_alive(self) -> bool:
        """Check if process is currently running."""
        return self._proc is not None and self._proc.returncode is None

    async def start(self, command: str, **subprocess_kwargs: Any) -> None:  # noqa: ANN401
        """Start the process. Stops the current one first if it's running.

        Args:
            command: Shell command to run
            **subprocess_kwargs: Passed to create_subprocess_shell (e.g., stdout=PIPE)
        """
        if self.is_alive:
            await self.stop()
        self._proc = await asyncio.create_subprocess_shell(command, **subprocess_kwargs)

    async def read_output(self) -> str:
        """Read stdout until the process closes it.

        Raises:
            RuntimeError: If the process wasn't started with a stdout pipe
        """
        if self._proc is None or self._proc.stdout is None:
            msg = "No process or stdout not piped"
            raise RuntimeError(msg)
        stdout, _ = await self._proc.communicate()
        return stdout.decode(errors="replace") if stdout else ""

    async def wait(self) -> int:
        """Wait for process to exit and return exit code.

        Raises:
            RuntimeError: If no process is running
        """
        if self._proc is None:
            msg = "No process running"
            raise RuntimeError(msg)
        return await self._proc.wait()

    async def stop(self) -> int | None:
        """Stop the process gracefully.

        Returns:
            The process return code, or None if not running
        """
        if self._proc is None:
            return None
        if self._proc.returncode is not None:
            return self._proc.returncode

        with contextlib.suppress(ProcessLookupError):
            self._proc.terminate()
        try:
            await asyncio.wait_for(self._proc.wait(), timeout=self._graceful_timeout)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                self._proc.kill()
            await self._proc.wait()
        return self._proc.returncode


async def run_command(command: str, capture: bool, log: logging.Logger) -> ProcessResult:
    """Run `command` through the shell.

    Args:
        command: Shell command line
        capture: Collect stdout for the result
        log: Logger for launch failures

    Returns:
        Whether the command exited with status 0, and its output when captured
    """
    proc = ManagedProcess()
    try:
        await proc.start(
            command,
            stdout=asyncio.subprocess.PIPE if capture else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        log.error("Failed to start %s: %s", command, e)
        return ProcessResult(False)
    try:
        output = await proc.read_output() if capture else ""
        code = await proc.wait()
    except asyncio.CancelledError:
        if capture:
            await proc.stop()
        raise
    log.debug("%s exited with %s", command, code)
    return ProcessResult(code == 0, output)


Spawner = Callable[[str, bool], Awaitable[ProcessResult]]


class ProcessLauncher:
    """Runs script commands in the background."""

    def __init__(self, spawn: Spawner, log: logging.Logger) -> None:
        """Initialize.

        Args:
            spawn: Coroutine function running one command, usually the host's
            log: Logger for failures
        """
        self.spawn = spawn
        self.log = log
        self.completions: deque[tuple[CallbackHandle, ProcessResult]] = deque()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of commands still running."""
        return len(self._tasks)

    def _start(self, command: str, capture: bool, handle: CallbackHandle | None) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.log.error("Can't run %s: no event loop is running", command)
            if handle is not None:
                self.completions.append((handle, ProcessResult(False)))
            return False
        task = loop.create_task(self._run(command, capture, handle))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run(self, command: str, capture: bool, handle: CallbackHandle | None) -> None:
        try:
            result = await self.spawn(command, capture)
        except asyncio.CancelledError:
            raise
        except Exception:  # pylint: disable=broad-exception-caught
            self.log.exception("Running %s failed", command)
            result = ProcessResult(False)
        if handle is not None:
            self.completions.append((handle, result))

    def exec(self, command: str) -> bool:
        """Launch `command` and forget about it."""
        return self._start(command, False, None)

    def exec_read(self, command: str, handle: CallbackHandle) -> bool:
        """Launch `command`, its result is queued for `handle`."""
        return self._start(command, True, handle)

    def drain(self) -> list[tuple[CallbackHandle, ProcessResult]]:
        """Pop every queued completion, oldest first."""
        items = list(self.completions)
        self.completions.clear()
        return items

    async def shutdown(self) -> None:
        """Cancel the running commands and drop queued completions."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.completions.clear()
