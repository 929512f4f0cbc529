"""
Application layer: the remote connection manager used by device flows.
"""

from .remote_connection import FuchsiaRemoteConnection, parse_service_ports

__all__ = [
    "FuchsiaRemoteConnection",
    "parse_service_ports",
]
