"""
Subprocess execution for SSH and SCP invocations.

All remote interaction goes through external ``ssh``/``scp`` executables. The
``ProcessManager`` is the single place that spawns them, which makes it the
seam for substituting a fake in tests.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from ...core.exceptions import CommandTimeoutError, format_command


@dataclass
class ProcessResult:
    """Outcome of one completed external command."""
    args: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class ProcessManager:
    """Runs external commands with asyncio subprocesses."""

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding

    async def run(self, args: List[str], timeout: Optional[float] = None) -> ProcessResult:
        """
        Run a command to completion and capture its output.

        Args:
            args: Argument vector, executable first
            timeout: Seconds to wait before killing the process (None waits forever)

        Returns:
            The captured result; a nonzero exit code is not an error here

        Raises:
            CommandTimeoutError: If the command outlives ``timeout``
            OSError: If the executable cannot be started
        """
        logger.debug(f"Running: {format_command(args)}")
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self.terminate(process)
            raise CommandTimeoutError(format_command(args), timeout or 0.0)
        except asyncio.CancelledError:
            logger.debug(f"Cancelled, killing: {format_command(args)}")
            await self.terminate(process)
            raise

        return ProcessResult(
            args=list(args),
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(self._encoding, errors="replace"),
            stderr=stderr.decode(self._encoding, errors="replace"),
        )

    async def start(self, args: List[str]) -> asyncio.subprocess.Process:
        """Start a long-running background command without capturing output."""
        logger.debug(f"Starting: {format_command(args)}")
        return await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )

    @staticmethod
    async def terminate(process: asyncio.subprocess.Process) -> None:
        """Kill a process if it is still alive and reap it."""
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                # Exited between the check and the kill.
                pass
        await process.wait()
