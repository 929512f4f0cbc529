"""
Remote connection manager for Fuchsia devices.

Discovers the Dart VM service ports advertised by a device, forwards a local
port to each of them over SSH, and keeps one lazily opened service
connection per forwarded port.
"""

import asyncio
from typing import Any, Awaitable, Dict, List, Optional

from loguru import logger

from ..core.domain.address import IPV4_LOOPBACK, IPV6_LOOPBACK, is_ipv6_address
from ..core.exceptions import ForwardingUnavailableError
from ..core.interfaces.forwarding import IPortForwarder, PortForwardingFunction
from ..core.interfaces.lifecycle import IHealthCheckable, IStoppable
from ..core.interfaces.service import FlutterView, IServiceConnection, ServiceConnector
from ..infrastructure.ssh.command_runner import SSHCommandRunner
from ..infrastructure.ssh.forwarder import SSHPortForwarder
from ..infrastructure.vmservice.client import VMServiceConnection

SERVICES_DIRECTORY = "/tmp/dart.services"


def parse_service_ports(lines: List[str]) -> List[int]:
    """
    Parse a listing of the services directory into port numbers.

    Each entry is trimmed and its last space-separated word is used, so both
    plain and long (``ls -l``) listings work. ``.``, ``..`` and anything that
    is not an integer are skipped. Order is preserved.
    """
    ports: List[int] = []
    for line in lines:
        last_word = line.strip().split(" ")[-1]
        if last_word in ("", ".", ".."):
            continue
        try:
            ports.append(int(last_word))
        except ValueError:
            logger.debug(f"Ignoring non-port entry in {SERVICES_DIRECTORY}: {last_word!r}")
    return ports


async def _collect_errors(step: Awaitable[None], errors: List[Exception]) -> None:
    try:
        await step
    except Exception as e:
        errors.append(e)


class FuchsiaRemoteConnection(IStoppable, IHealthCheckable):
    """
    Manages a remote connection to a Fuchsia device.

    Provides access to the Flutter views and VM services of every Dart VM
    running on the device. The connection keeps its tunnels and service
    connections open until ``stop`` is called; anything handed out before
    that (service handles in particular) is unusable afterwards.

    A single instance is not meant to be driven from several tasks at once,
    but ``stop``, ``refresh_forwarding`` and service handle creation are
    serialised with a lock so that the tunnel list and the handle cache are
    never mutated concurrently.
    """

    def __init__(
        self,
        command_runner: SSHCommandRunner,
        port_forwarding_function: Optional[PortForwardingFunction] = None,
        service_connector: Optional[ServiceConnector] = None
    ):
        """
        Initialize the connection without forwarding anything.

        Use ``connect`` or ``connect_with_command_runner`` instead, which
        also discover and forward the service ports.

        Args:
            command_runner: Runner bound to the device address
            port_forwarding_function: Creates one forwarder per service port,
                defaults to SSH forwarding
            service_connector: Opens a service handle from a URI, defaults to
                the VM service websocket client
        """
        self.remote_service_ports: List[int] = []
        self.forwarded_ports: List[IPortForwarder] = []

        self._command_runner = command_runner
        self._use_ipv6_loopback = is_ipv6_address(command_runner.address)
        self._port_forwarding_function = port_forwarding_function or SSHPortForwarder.start
        self._service_connector = service_connector or VMServiceConnection.connect

        # Keyed by local forwarded port.
        self._service_cache: Dict[int, IServiceConnection] = {}
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(
        cls,
        address: str,
        interface: str = "",
        ssh_config_path: Optional[str] = None,
        *,
        port_forwarding_function: Optional[PortForwardingFunction] = None,
        service_connector: Optional[ServiceConnector] = None,
        timeout: Optional[float] = None
    ) -> 'FuchsiaRemoteConnection':
        """
        Open a connection to a Fuchsia device.

        If ``address`` is IPv6 link-local (usually starting with fe80::),
        ``interface`` will probably need to be set: it names the outgoing
        interface of this machine, not the interface on the device.

        Args:
            address: IPv4 or IPv6 address of the device
            interface: Outgoing network interface for IPv6 link-local addresses
            ssh_config_path: ssh_config used for commands and forwarding
            port_forwarding_function: Forwarder factory, defaults to SSH
            service_connector: Service handle factory, defaults to the VM service client
            timeout: Bound in seconds for each remote command

        Raises:
            InvalidAddressError: If ``address`` is neither IPv4 nor IPv6
            RemoteCommandError: If the service ports cannot be listed
        """
        command_runner = SSHCommandRunner(
            address=address,
            interface=interface,
            ssh_config_path=ssh_config_path,
            timeout=timeout
        )
        return await cls.connect_with_command_runner(
            command_runner,
            port_forwarding_function=port_forwarding_function,
            service_connector=service_connector
        )

    @classmethod
    async def connect_with_command_runner(
        cls,
        command_runner: SSHCommandRunner,
        *,
        port_forwarding_function: Optional[PortForwardingFunction] = None,
        service_connector: Optional[ServiceConnector] = None
    ) -> 'FuchsiaRemoteConnection':
        """Same as ``connect`` with a provided command runner."""
        connection = cls(command_runner, port_forwarding_function, service_connector)
        await connection.refresh_forwarding()
        return connection

    async def __aenter__(self) -> 'FuchsiaRemoteConnection':
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.stop()

    @property
    def address(self) -> str:
        return self._command_runner.address

    @property
    def command_runner(self) -> SSHCommandRunner:
        return self._command_runner

    async def stop(self) -> None:
        """
        Close all service connections and forwarding tunnels.

        Each service connection is closed before its tunnel is torn down so
        that the device sees a clean shutdown. Never raises.
        """
        async with self._lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        errors: List[Exception] = []

        try:
            for forwarder in self.forwarded_ports:
                handle = self._service_cache.pop(forwarder.port, None)
                if handle is not None:
                    await _collect_errors(handle.close(), errors)
                await _collect_errors(forwarder.stop(), errors)

            for handle in self._service_cache.values():
                await _collect_errors(handle.close(), errors)
        finally:
            self._service_cache.clear()
            self.forwarded_ports.clear()
            self.remote_service_ports.clear()

        for error in errors:
            logger.warning(f"Error during connection teardown: {error!r}")

    @staticmethod
    async def _stop_forwarders(forwarders: List[IPortForwarder]) -> None:
        errors: List[Exception] = []
        for forwarder in forwarders:
            await _collect_errors(forwarder.stop(), errors)
        for error in errors:
            logger.warning(f"Error stopping forwarder: {error!r}")

    async def refresh_forwarding(self) -> None:
        """
        Rediscover service ports and forward a local port to each.

        All existing forwarding and service connections are reset first, as
        with ``stop``. Forwarders are started concurrently. A port for which
        no local port could be reserved is dropped from both
        ``remote_service_ports`` and ``forwarded_ports``, so the two lists
        always stay index-aligned.

        Raises:
            RemoteCommandError: If the service ports cannot be listed
            Exception: The first unexpected forwarder failure; forwarders
                that did start are stopped before it is raised
        """
        async with self._lock:
            await self._stop_locked()

            ports = await self.get_device_service_ports()
            runner = self._command_runner
            started: List[IPortForwarder] = []

            async def start_forwarder(port: int) -> Optional[IPortForwarder]:
                forwarder = await self._port_forwarding_function(
                    runner.address, port, runner.interface, runner.ssh_config_path)
                if forwarder is not None:
                    started.append(forwarder)
                return forwarder

            try:
                results = await asyncio.gather(
                    *(start_forwarder(port) for port in ports),
                    return_exceptions=True
                )
            except asyncio.CancelledError:
                logger.warning(f"Forwarding refresh cancelled, stopping {len(started)} started forwarders")
                await self._stop_forwarders(started)
                raise

            remote_ports: List[int] = []
            forwarders: List[IPortForwarder] = []
            failure: Optional[BaseException] = None

            for port, result in zip(ports, results):
                if result is None or isinstance(result, ForwardingUnavailableError):
                    logger.warning(f"Service port {port} could not be forwarded, skipping it")
                elif isinstance(result, BaseException):
                    logger.error(f"Failed to forward service port {port}: {result}")
                    if failure is None:
                        failure = result
                else:
                    remote_ports.append(port)
                    forwarders.append(result)

            if failure is not None:
                await self._stop_forwarders(forwarders)
                raise failure

            self.remote_service_ports.extend(remote_ports)
            self.forwarded_ports.extend(forwarders)
            logger.info(
                f"Forwarding {len(forwarders)} of {len(ports)} service ports on {runner.address}")

    async def get_device_service_ports(self) -> List[int]:
        """
        Get the open Dart VM service ports on the device.

        An empty list means no Dart VM instances were found.

        Raises:
            RemoteCommandError: If the listing command fails
        """
        lines = await self._command_runner.run(f"ls {SERVICES_DIRECTORY}")
        return parse_service_ports(lines)

    def _service_uri(self, local_port: int) -> str:
        # Connecting to the IPv4 loopback fails when the target is IPv6
        # link-local: ssh ends up bound on the IPv6 loopback in that case.
        if self._use_ipv6_loopback:
            return f"http://[{IPV6_LOOPBACK}]:{local_port}"
        return f"http://{IPV4_LOOPBACK}:{local_port}"

    async def get_service_handle(self, forwarder: IPortForwarder) -> IServiceConnection:
        """
        Return the service connection for a forwarded port.

        The connection is opened on first use and cached by local port.

        Raises:
            ServiceConnectionError: If the connection cannot be opened
        """
        local_port = forwarder.port
        async with self._lock:
            handle = self._service_cache.get(local_port)
            if handle is None:
                handle = await self._service_connector(self._service_uri(local_port))
                self._service_cache[local_port] = handle
        return handle

    async def get_vm_at_port(self, forwarder: IPortForwarder) -> IServiceConnection:
        """Return the VM service connection reachable through ``forwarder``."""
        return await self.get_service_handle(forwarder)

    async def get_flutter_views_at_port(self, forwarder: Optional[IPortForwarder]) -> List[FlutterView]:
        """Return the Flutter views of the VM behind ``forwarder``."""
        if forwarder is None:
            return []
        handle = await self.get_service_handle(forwarder)
        await handle.refresh_views()
        return list(handle.views)

    async def get_flutter_views(self) -> List[FlutterView]:
        """
        Return the Flutter views across every forwarded VM service.

        Results follow the order of ``forwarded_ports``.
        """
        views: List[FlutterView] = []
        if not self.forwarded_ports:
            return views
        for forwarder in list(self.forwarded_ports):
            views.extend(await self.get_flutter_views_at_port(forwarder))
        return views

    async def install_app(self, source: str, dest: str = "/tmp") -> List[str]:
        """Copy a build artifact (file or directory) to ``dest`` on the device."""
        output = await self._command_runner.copy(source, dest)
        logger.info(f"Installed {source} to {self.address}:{dest}")
        return output

    async def check_health(self) -> Dict[str, Any]:
        """Report the state of the forwarding tunnels and service connections."""
        return {
            'healthy': bool(self.forwarded_ports),
            'status': 'connected' if self.forwarded_ports else 'idle',
            'details': {
                'address': self.address,
                'remote_service_ports': list(self.remote_service_ports),
                'forwarded_ports': [
                    {'local': f.port, 'remote': f.remote_port}
                    for f in self.forwarded_ports
                ],
                'service_connections': sorted(self._service_cache),
            }
        }
