"""
Fuchsia Remote - SSH port forwarding and VM service access for Fuchsia devices.

This package discovers the Dart VM service ports a device advertises, forwards
them to local ports over SSH, and exposes the Flutter views behind them.
"""

__version__ = "0.1.0"

# Public API exports
from .application.remote_connection import FuchsiaRemoteConnection
from .core.exceptions import (
    FuchsiaRemoteError, InvalidAddressError, RemoteCommandError,
    CommandTimeoutError, ForwardingUnavailableError, ServiceConnectionError
)
from .core.interfaces.forwarding import IPortForwarder, PortForwardingFunction
from .core.interfaces.service import FlutterView, IServiceConnection
from .infrastructure.ssh.command_runner import SSHCommandRunner
from .infrastructure.ssh.forwarder import SSHPortForwarder

__all__ = [
    "FuchsiaRemoteConnection",
    "FuchsiaRemoteError",
    "InvalidAddressError",
    "RemoteCommandError",
    "CommandTimeoutError",
    "ForwardingUnavailableError",
    "ServiceConnectionError",
    "IPortForwarder",
    "PortForwardingFunction",
    "FlutterView",
    "IServiceConnection",
    "SSHCommandRunner",
    "SSHPortForwarder",
]
