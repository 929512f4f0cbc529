"""Dart VM service client used as the default service handle."""

from .client import VMServiceConnection, to_websocket_uri

__all__ = [
    "VMServiceConnection",
    "to_websocket_uri",
]
