"""
Tests for the subprocess process manager.

These spawn the running Python interpreter as a portable child process.
"""

import asyncio
import sys
from unittest.mock import patch

import pytest

from fuchsia_remote.core.exceptions import CommandTimeoutError
from fuchsia_remote.infrastructure.ssh.process import ProcessManager, ProcessResult


class TestProcessManager:
    """Test running and starting external commands."""

    @pytest.mark.asyncio
    async def test_run_captures_output(self) -> None:
        manager = ProcessManager()
        script = "import sys; print('out'); print('err', file=sys.stderr)"

        result = await manager.run([sys.executable, "-c", script])

        assert result.succeeded
        assert result.exit_code == 0
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    @pytest.mark.asyncio
    async def test_run_nonzero_exit_is_not_raised(self) -> None:
        manager = ProcessManager()

        result = await manager.run([sys.executable, "-c", "raise SystemExit(3)"])

        assert not result.succeeded
        assert result.exit_code == 3

    @pytest.mark.asyncio
    async def test_run_timeout_kills_process(self) -> None:
        manager = ProcessManager()

        with pytest.raises(CommandTimeoutError) as exc_info:
            await manager.run([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.2)

        assert exc_info.value.timeout == 0.2

    @pytest.mark.asyncio
    async def test_cancelled_run_kills_process(self) -> None:
        manager = ProcessManager()
        spawned = []
        create_subprocess_exec = asyncio.create_subprocess_exec

        async def recording_exec(*args, **kwargs):
            process = await create_subprocess_exec(*args, **kwargs)
            spawned.append(process)
            return process

        with patch('fuchsia_remote.infrastructure.ssh.process.asyncio.create_subprocess_exec',
                   new=recording_exec):
            task = asyncio.create_task(
                manager.run([sys.executable, "-c", "import time; time.sleep(30)"], timeout=60))
            while not spawned:
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert spawned[0].returncode is not None

    @pytest.mark.asyncio
    async def test_start_and_terminate(self) -> None:
        manager = ProcessManager()
        process = await manager.start([sys.executable, "-c", "import time; time.sleep(30)"])
        assert process.returncode is None

        await ProcessManager.terminate(process)
        assert process.returncode is not None

        # Terminating an exited process is a no-op.
        await ProcessManager.terminate(process)

    def test_process_result_succeeded(self) -> None:
        assert ProcessResult(["true"], 0).succeeded
        assert not ProcessResult(["false"], 1).succeeded
