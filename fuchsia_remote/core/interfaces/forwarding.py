"""
Port forwarding interfaces.

A port forwarder keeps a local port connected to a port on the remote device
for as long as it lives. The connection manager creates forwarders through a
``PortForwardingFunction`` so that the SSH implementation can be replaced,
for example by an in-process fake in tests.
"""

from abc import abstractmethod
from typing import Awaitable, Callable, Optional

from .lifecycle import IStoppable


class IPortForwarder(IStoppable):
    """
    Interface for a single forwarded port.

    When a forwarder is created it reserves a local port through which the
    remote port stays reachable over the lifetime of the object. It must be
    shut down with ``stop`` and must not be reused afterwards.
    """

    @property
    @abstractmethod
    def port(self) -> int:
        """The port being forwarded from the local machine."""
        pass

    @property
    @abstractmethod
    def remote_port(self) -> int:
        """The destination port on the other end of the tunnel."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Shut down and clean up port forwarding."""
        pass


# (address, remote_port, interface, ssh_config_path) -> forwarder
PortForwardingFunction = Callable[
    [str, int, str, Optional[str]], Awaitable[IPortForwarder]
]
