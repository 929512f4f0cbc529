"""
Core interfaces defining the contracts between the connection manager and
the forwarding and service implementations it drives.
"""

from .lifecycle import IStoppable, IHealthCheckable
from .forwarding import IPortForwarder, PortForwardingFunction
from .service import FlutterView, IServiceConnection, ServiceConnector

__all__ = [
    "IStoppable",
    "IHealthCheckable",
    "IPortForwarder",
    "PortForwardingFunction",
    "FlutterView",
    "IServiceConnection",
    "ServiceConnector",
]
