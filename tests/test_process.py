"""Tests for command launching."""

import asyncio
from unittest.mock import Mock

import pytest

from anodium.models import TriggerKind
from anodium.process import ManagedProcess, ProcessLauncher, ProcessResult, run_command
from anodium.registry import CallbackHandle, Trigger


def _handle(num, command="cmd"):
    return CallbackHandle(num, Trigger(TriggerKind.PROCESS_EXIT, command))


class TestManagedProcess:
    """Tests for ManagedProcess."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        proc = ManagedProcess()
        assert not proc.is_alive
        assert proc.pid is None

        await proc.start("sleep 10")
        assert proc.is_alive
        assert proc.pid is not None

        returncode = await proc.stop()
        assert not proc.is_alive
        assert returncode is not None

    @pytest.mark.asyncio
    async def test_stop_not_started(self):
        assert await ManagedProcess().stop() is None

    @pytest.mark.asyncio
    async def test_read_output(self):
        proc = ManagedProcess()
        await proc.start("echo hello", stdout=asyncio.subprocess.PIPE)
        assert await proc.read_output() == "hello\n"
        assert await proc.wait() == 0

    @pytest.mark.asyncio
    async def test_read_output_without_pipe(self):
        proc = ManagedProcess()
        with pytest.raises(RuntimeError):
            await proc.read_output()
        with pytest.raises(RuntimeError):
            await proc.wait()


@pytest.mark.asyncio
async def test_run_command(test_logger):
    assert await run_command("echo captured", True, test_logger) == ProcessResult(True, "captured\n")
    assert await run_command("exit 3", False, test_logger) == ProcessResult(False, "")
    assert await run_command("echo ignored", False, test_logger) == ProcessResult(True, "")


def test_result_mapping():
    assert ProcessResult(True, "out").to_dict() == {"status": True, "output": "out"}


@pytest.mark.asyncio
async def test_launcher_queues_completions(test_logger):
    async def spawn(command, capture):
        await asyncio.sleep(0)
        return ProcessResult(True, command if capture else "")

    launcher = ProcessLauncher(spawn, test_logger)
    assert launcher.exec("fire and forget")
    assert launcher.exec_read("first", _handle(1))
    assert launcher.exec_read("second", _handle(2))
    assert launcher.pending == 3

    for _ in range(10):
        if not launcher.pending:
            break
        await asyncio.sleep(0.01)

    assert launcher.pending == 0
    assert launcher.drain() == [(_handle(1), ProcessResult(True, "first")), (_handle(2), ProcessResult(True, "second"))]
    assert launcher.drain() == []


@pytest.mark.asyncio
async def test_launcher_spawn_failure(test_logger):
    async def failing(command, capture):
        raise OSError("no shell")

    launcher = ProcessLauncher(failing, test_logger)
    launcher.exec_read("broken", _handle(1))
    await asyncio.sleep(0.01)

    assert launcher.drain() == [(_handle(1), ProcessResult(False))]
    test_logger.exception.assert_called_once()


def test_launcher_without_loop(test_logger):
    launcher = ProcessLauncher(Mock(), test_logger)
    assert not launcher.exec_read("orphan", _handle(4))
    assert launcher.drain() == [(_handle(4), ProcessResult(False))]
    test_logger.error.assert_called_once()


@pytest.mark.asyncio
async def test_launcher_shutdown(test_logger):
    started = asyncio.Event()

    async def spawn(command, capture):
        started.set()
        await asyncio.sleep(10)
        return ProcessResult(True)

    launcher = ProcessLauncher(spawn, test_logger)
    launcher.exec_read("slow", _handle(1))
    await started.wait()
    await launcher.shutdown()

    assert launcher.pending == 0
    assert launcher.drain() == []
