"""
Exception hierarchy for the Fuchsia remote connection package.

Every error raised by this package derives from ``FuchsiaRemoteError`` so that
callers (for example the CLI) can report failures uniformly.
"""

from typing import List, Optional


class FuchsiaRemoteError(Exception):
    """Base exception for all remote connection errors."""
    pass


class InvalidAddressError(FuchsiaRemoteError, ValueError):
    """Raised when an address is neither valid IPv4 nor valid IPv6."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f'"{address}" is neither valid IPv4 nor IPv6')


class RemoteCommandError(FuchsiaRemoteError):
    """
    Raised when an SSH or SCP subprocess exits with a nonzero status.

    This covers both connection failures and failures of the command on the
    remote device; the two are indistinguishable from the exit status alone.
    """

    def __init__(self, command: str, exit_code: Optional[int] = None,
                 stdout: str = "", stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Command failed: {command}\nstdout: {stdout}\nstderr: {stderr}")


class CommandTimeoutError(FuchsiaRemoteError):
    """Raised when an external command does not finish within its time bound."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout} seconds: {command}")


class ForwardingUnavailableError(FuchsiaRemoteError):
    """Raised when no local port could be reserved for a forwarding tunnel."""

    def __init__(self, address: str, remote_port: int):
        self.address = address
        self.remote_port = remote_port
        super().__init__(
            f"Failed to find a local port for {address}:{remote_port}")


class ServiceConnectionError(FuchsiaRemoteError):
    """Raised when a service handle cannot be established or a call fails."""

    def __init__(self, message: str, uri: Optional[str] = None):
        self.uri = uri
        super().__init__(message)


def format_command(args: List[str]) -> str:
    """Join an argument vector for display in logs and error messages."""
    return " ".join(args)
