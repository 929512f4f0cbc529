"""
Service connection interfaces.

A service connection is an established handle to the Dart VM service of the
remote device, reached through a forwarded local port. The connection manager
treats it as an opaque capability: it can be opened from a URI, asked to
refresh its view list, and closed.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional


@dataclass(frozen=True)
class FlutterView:
    """A Flutter view hosted by a Dart VM on the device."""
    id: str
    type: str = "FlutterView"
    isolate_id: Optional[str] = None
    isolate_name: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'FlutterView':
        """Create a view from a ``_flutter.listViews`` entry."""
        isolate = data.get('isolate') or {}
        return cls(
            id=data['id'],
            type=data.get('type', 'FlutterView'),
            isolate_id=isolate.get('id'),
            isolate_name=isolate.get('name'),
        )


class IServiceConnection(ABC):
    """Interface for a connection to a remote VM service."""

    @property
    @abstractmethod
    def uri(self) -> str:
        """The URI the connection was opened with."""
        pass

    @property
    @abstractmethod
    def views(self) -> List[FlutterView]:
        """Views seen by the most recent ``refresh_views`` call."""
        pass

    @property
    @abstractmethod
    def done(self) -> 'asyncio.Future[None]':
        """Future resolved once the connection has closed."""
        pass

    @abstractmethod
    async def refresh_views(self) -> None:
        """Reload the list of views from the service."""
        pass

    @abstractmethod
    async def get_vm(self) -> Dict[str, Any]:
        """Return the VM description reported by the service."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and wait until it is done."""
        pass


ServiceConnector = Callable[[str], Awaitable[IServiceConnection]]
