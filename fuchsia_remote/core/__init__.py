"""
Core module containing domain values, error types, and service interfaces.

This module defines the abstractions used by the connection manager,
independent of the SSH and VM service implementations behind them.
"""

from .domain.address import AddressFamily, classify, validate_address
from .exceptions import (
    FuchsiaRemoteError, InvalidAddressError, RemoteCommandError,
    CommandTimeoutError, ForwardingUnavailableError, ServiceConnectionError
)
from .interfaces.forwarding import IPortForwarder, PortForwardingFunction
from .interfaces.service import FlutterView, IServiceConnection, ServiceConnector

__all__ = [
    "AddressFamily",
    "classify",
    "validate_address",
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
    "ServiceConnector",
]
