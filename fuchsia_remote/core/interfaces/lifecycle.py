"""
Lifecycle interfaces for components that own external resources.

Forwarding tunnels and service connections hold subprocesses and sockets;
these interfaces give them a consistent shutdown and health reporting
contract.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class IStoppable(ABC):
    """Interface for components that can be stopped."""

    @abstractmethod
    async def stop(self) -> None:
        """
        Stop the component and release everything it owns.

        Implementations are best-effort: cleanup failures are logged, not
        raised, so that a failed step never leaks the remaining resources.
        """
        pass


class IHealthCheckable(ABC):
    """Interface for components that can report their health status."""

    @abstractmethod
    async def check_health(self) -> Dict[str, Any]:
        """
        Check the health status of the component.

        Returns:
            Dict containing health information with at least:
            - 'healthy': bool indicating if component is healthy
            - 'status': str describing current status
            - 'details': Dict with additional health details

        Example:
            {
                'healthy': True,
                'status': 'connected',
                'details': {
                    'address': '192.168.42.64',
                    'remote_service_ports': [31782],
                    'forwarded_ports': [{'local': 40215, 'remote': 31782}]
                }
            }
        """
        pass
