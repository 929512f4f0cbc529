"""
SSH port forwarder implementation.

Each forwarder owns one ``ssh -nNT -L`` subprocess that binds a local
ephemeral port to a service port on the remote device.
"""

import asyncio
import socket
from contextlib import suppress
from enum import Enum
from typing import List, Optional

from loguru import logger

from ...core.domain.address import IPV4_LOOPBACK, format_target, is_ipv6_address
from ...core.exceptions import CommandTimeoutError, ForwardingUnavailableError, format_command
from ...core.interfaces.forwarding import IPortForwarder
from .process import ProcessManager


class ForwarderState(Enum):
    """Lifecycle state of a forwarding tunnel."""
    UNSTARTED = "unstarted"
    RUNNING = "running"
    STOPPED = "stopped"


def potentially_available_port() -> int:
    """
    Ask the OS for a free port on the IPv4 loopback.

    The socket is closed before returning, so the port is only likely, not
    guaranteed, to still be free when ssh binds it. Returns 0 on failure.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((IPV4_LOOPBACK, 0))
            return sock.getsockname()[1]
    except OSError as e:
        logger.warning(f"Failed to reserve a local port: {e}")
        return 0


class SSHPortForwarder(IPortForwarder):
    """
    A running SSH tunnel from a local port to a VM service on the device.

    Use ``SSHPortForwarder.start`` to create one. After ``stop`` the
    forwarder is spent and must not be reused.
    """

    # Bound for the ``ssh -O cancel`` cleanup command.
    CANCEL_TIMEOUT = 10.0

    def __init__(
        self,
        address: str,
        remote_port: int,
        local_port: int,
        interface: str = "",
        ssh_config_path: Optional[str] = None,
        process_manager: Optional[ProcessManager] = None
    ):
        self._address = address
        self._remote_port = remote_port
        self._local_port = local_port
        self._interface = interface or ""
        self._ssh_config_path = ssh_config_path
        self._ipv6 = is_ipv6_address(address)
        self._process_manager = process_manager or ProcessManager()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._exit_watcher: Optional[asyncio.Task[None]] = None
        self._state = ForwarderState.UNSTARTED

    @classmethod
    async def start(
        cls,
        address: str,
        remote_port: int,
        interface: str = "",
        ssh_config_path: Optional[str] = None,
        process_manager: Optional[ProcessManager] = None
    ) -> 'SSHPortForwarder':
        """
        Start SSH forwarding to ``remote_port`` on ``address``.

        Raises:
            ForwardingUnavailableError: If no local port could be reserved
            OSError: If the ssh executable cannot be started
        """
        local_port = potentially_available_port()
        if local_port == 0:
            logger.warning(f"SSHPortForwarder failed to find a local port for {address}:{remote_port}")
            raise ForwardingUnavailableError(address, remote_port)

        forwarder = cls(address, remote_port, local_port, interface,
                        ssh_config_path, process_manager)
        await forwarder._launch()
        return forwarder

    @property
    def port(self) -> int:
        return self._local_port

    @property
    def local_port(self) -> int:
        return self._local_port

    @property
    def remote_port(self) -> int:
        return self._remote_port

    @property
    def address(self) -> str:
        return self._address

    @property
    def interface(self) -> str:
        return self._interface

    @property
    def ssh_config_path(self) -> Optional[str]:
        return self._ssh_config_path

    @property
    def is_ipv6(self) -> bool:
        return self._ipv6

    @property
    def state(self) -> ForwarderState:
        return self._state

    @property
    def forwarding_spec(self) -> str:
        # The device binds its services on the IPv4 loopback, so the
        # destination is always stated that way, even for IPv6 targets.
        return f"{self._local_port}:{IPV4_LOOPBACK}:{self._remote_port}"

    @property
    def target(self) -> str:
        return format_target(self._address, self._interface)

    def build_start_args(self) -> List[str]:
        """Build the argument vector of the tunnel process."""
        args = ["ssh"]
        if self._ipv6:
            args.append("-6")
        if self._ssh_config_path is not None:
            args.extend(["-F", self._ssh_config_path])
        args.extend(["-nNT", "-L", self.forwarding_spec, self.target])
        return args

    def build_cancel_args(self) -> List[str]:
        """Build the argument vector asking ssh to release the forwarding."""
        args = ["ssh"]
        if self._ssh_config_path is not None:
            args.extend(["-F", self._ssh_config_path])
        args.extend(["-O", "cancel", "-L", self.forwarding_spec, self.target])
        return args

    async def _launch(self) -> None:
        if self._state is not ForwarderState.UNSTARTED:
            raise RuntimeError(f"Forwarder for port {self._remote_port} was already started")

        args = self.build_start_args()
        self._process = await self._process_manager.start(args)
        self._state = ForwarderState.RUNNING
        self._exit_watcher = asyncio.create_task(self._watch_exit(args))
        logger.debug(f"Forwarding {self._local_port} to {self._address} port {self._remote_port}")

    async def _watch_exit(self, args: List[str]) -> None:
        if self._process is None:
            return
        exit_code = await self._process.wait()
        logger.info(f"'{format_command(args)}' exited with exit code {exit_code}")

    async def stop(self) -> None:
        """
        Kill the tunnel process, then run the ssh 'cancel' command.

        Killing the process alone may leave the forwarding registered with
        a shared ssh control master, so the cancel request is always sent.
        Failures of either step are logged and never raised. Calling ``stop``
        again is a no-op.
        """
        if self._state is ForwarderState.STOPPED:
            return
        self._state = ForwarderState.STOPPED

        if self._process is not None:
            await ProcessManager.terminate(self._process)

        # The process is reaped, so the watcher only has its exit code left to log.
        if self._exit_watcher is not None:
            with suppress(asyncio.CancelledError):
                await self._exit_watcher
        self._exit_watcher = None

        args = self.build_cancel_args()
        try:
            result = await self._process_manager.run(args, timeout=self.CANCEL_TIMEOUT)
        except (OSError, CommandTimeoutError) as e:
            logger.warning(f"Failed to cancel forwarding of port {self._local_port}: {e}")
            return

        logger.debug(format_command(args))
        if not result.succeeded:
            logger.warning(
                f"Command failed: {format_command(args)}\n"
                f"stdout: {result.stdout}\nstderr: {result.stderr}")
