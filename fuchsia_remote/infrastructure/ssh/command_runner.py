"""
SSH command runner for remote devices.

Each command is executed as a fresh ``ssh`` (or ``scp``) subprocess; no
session is kept open between calls.
"""

from typing import List, Optional

from loguru import logger

from ...core.domain.address import format_target, is_ipv6_address, validate_address
from ...core.exceptions import RemoteCommandError, format_command
from .process import ProcessManager, ProcessResult


class SSHCommandRunner:
    """
    Runs commands on a remote device over SSH.

    The address must be a literal IPv4 or IPv6 address. When connecting to a
    link-local IPv6 address (usually starting with fe80::) the outgoing
    interface of this machine should be supplied as ``interface``.
    """

    def __init__(
        self,
        address: str,
        interface: str = "",
        ssh_config_path: Optional[str] = None,
        process_manager: Optional[ProcessManager] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize the command runner.

        Args:
            address: IPv4 or IPv6 address of the device
            interface: Network interface for IPv6 connections, ignored for IPv4
            ssh_config_path: Path passed to ``ssh -F`` (optional)
            process_manager: Process manager used to spawn commands
            timeout: Per-command timeout in seconds (None disables it)

        Raises:
            InvalidAddressError: If ``address`` is neither IPv4 nor IPv6
        """
        validate_address(address)
        self.address = address
        self.interface = interface or ""
        self.ssh_config_path = ssh_config_path
        self.timeout = timeout
        self._process_manager = process_manager or ProcessManager()

    @property
    def is_ipv6(self) -> bool:
        return is_ipv6_address(self.address)

    @property
    def target(self) -> str:
        return format_target(self.address, self.interface)

    def build_ssh_args(self, command: str) -> List[str]:
        """Build the ``ssh`` argument vector for ``command``."""
        args = ["ssh"]
        if self.ssh_config_path is not None:
            args.extend(["-F", self.ssh_config_path])
        if self.is_ipv6:
            args.extend(["-6", self.target])
        else:
            args.append(self.address)
        args.append(command)
        return args

    def build_scp_args(self, source: str, dest: str) -> List[str]:
        """Build the recursive ``scp`` argument vector copying ``source`` to ``dest``."""
        args = ["scp"]
        if self.ssh_config_path is not None:
            args.extend(["-F", self.ssh_config_path])
        args.extend(["-r", source])
        if self.is_ipv6:
            args.extend(["-6", f"{self.target}:{dest}"])
        else:
            args.append(f"{self.address}:{dest}")
        return args

    async def run(self, command: str) -> List[str]:
        """
        Run a command on the device.

        Returns:
            Captured stdout split on newlines; the last element is an empty
            string when the output ends with a newline

        Raises:
            RemoteCommandError: If ssh exits with a nonzero status
            CommandTimeoutError: If the command outlives the runner's timeout
        """
        result = await self._process_manager.run(self.build_ssh_args(command), timeout=self.timeout)
        return self._split_output(command, result)

    async def copy(self, source: str, dest: str) -> List[str]:
        """
        Copy a local file or directory to ``dest`` on the device.

        Raises:
            RemoteCommandError: If scp exits with a nonzero status
            CommandTimeoutError: If the copy outlives the runner's timeout
        """
        args = self.build_scp_args(source, dest)
        logger.info(f"Copying {source} to {self.target}:{dest}")
        result = await self._process_manager.run(args, timeout=self.timeout)
        return self._split_output(format_command(args), result)

    @staticmethod
    def _split_output(command: str, result: ProcessResult) -> List[str]:
        if not result.succeeded:
            raise RemoteCommandError(command, result.exit_code, result.stdout, result.stderr)
        return result.stdout.split("\n")
