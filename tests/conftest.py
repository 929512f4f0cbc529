"""
Shared fakes for the remote connection tests.

Nothing here spawns real ssh processes or opens sockets to a device.
"""

import asyncio
import itertools
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import pytest

from fuchsia_remote.core.interfaces.forwarding import IPortForwarder
from fuchsia_remote.core.interfaces.service import FlutterView, IServiceConnection
from fuchsia_remote.infrastructure.ssh.process import ProcessResult


class FakeProcess:
    """Stands in for an ``asyncio.subprocess.Process``."""

    def __init__(self) -> None:
        self.returncode: Optional[int] = None
        self.kill_count = 0
        self._exited = asyncio.Event()

    def kill(self) -> None:
        self.kill_count += 1
        self.exit(-9)

    def exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


class FakeProcessManager:
    """Records argument vectors and answers ``run`` with canned results."""

    def __init__(self, handler: Optional[Callable[[List[str]], ProcessResult]] = None) -> None:
        self.handler = handler or (lambda args: ProcessResult(args, 0, "", ""))
        self.run_calls: List[Tuple[List[str], Optional[float]]] = []
        self.started: List[Tuple[List[str], FakeProcess]] = []

    async def run(self, args: List[str], timeout: Optional[float] = None) -> ProcessResult:
        self.run_calls.append((list(args), timeout))
        return self.handler(list(args))

    async def start(self, args: List[str]) -> FakeProcess:
        process = FakeProcess()
        self.started.append((list(args), process))
        return process


class FakeForwarder(IPortForwarder):
    """In-process forwarder that records when it is stopped."""

    def __init__(self, local_port: int, remote_port: int, events: List[Tuple[str, int]]) -> None:
        self._local_port = local_port
        self._remote_port = remote_port
        self._events = events
        self.stop_count = 0

    @property
    def port(self) -> int:
        return self._local_port

    @property
    def remote_port(self) -> int:
        return self._remote_port

    async def stop(self) -> None:
        self.stop_count += 1
        self._events.append(("stop", self._local_port))


class FakeForwardingFunction:
    """Forwarder factory handing out sequential local ports."""

    def __init__(self, events: List[Tuple[str, int]]) -> None:
        self.events = events
        self.calls: List[Tuple[str, int, str, Optional[str]]] = []
        self.created: List[FakeForwarder] = []
        self.failures: Dict[int, BaseException] = {}
        # Ports whose start returns None, and ports whose start waits on an event.
        self.unavailable: Set[int] = set()
        self.blocked: Dict[int, asyncio.Event] = {}
        self._ports = itertools.count(40000)

    async def __call__(self, address: str, remote_port: int, interface: str = "",
                       ssh_config_path: Optional[str] = None) -> Optional[IPortForwarder]:
        self.calls.append((address, remote_port, interface, ssh_config_path))
        await asyncio.sleep(0)
        if remote_port in self.blocked:
            await self.blocked[remote_port].wait()
        if remote_port in self.unavailable:
            return None
        if remote_port in self.failures:
            raise self.failures[remote_port]
        forwarder = FakeForwarder(next(self._ports), remote_port, self.events)
        self.created.append(forwarder)
        self.events.append(("start", forwarder.port))
        return forwarder


class FakeServiceConnection(IServiceConnection):
    """Service handle serving a fixed list of views."""

    def __init__(self, uri: str, views: List[FlutterView], events: List[Tuple[str, int]]) -> None:
        self._uri = uri
        self._available_views = views
        self._views: List[FlutterView] = []
        self._events = events
        self._done: 'asyncio.Future[None]' = asyncio.get_running_loop().create_future()
        self.refresh_count = 0

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def views(self) -> List[FlutterView]:
        return list(self._views)

    @property
    def done(self) -> 'asyncio.Future[None]':
        return self._done

    @property
    def local_port(self) -> int:
        return int(self._uri.rsplit(":", 1)[1])

    async def refresh_views(self) -> None:
        self.refresh_count += 1
        self._views = list(self._available_views)

    async def get_vm(self) -> Dict[str, Any]:
        return {"type": "VM", "name": "vm"}

    async def close(self) -> None:
        self._events.append(("close", self.local_port))
        if not self._done.done():
            self._done.set_result(None)


class FakeServiceConnector:
    """Service connector returning ``FakeServiceConnection`` objects."""

    def __init__(self, events: List[Tuple[str, int]]) -> None:
        self.events = events
        self.uris: List[str] = []
        self.views_by_port: Dict[int, List[FlutterView]] = {}
        self.created: List[FakeServiceConnection] = []

    async def __call__(self, uri: str) -> IServiceConnection:
        self.uris.append(uri)
        port = int(uri.rsplit(":", 1)[1])
        connection = FakeServiceConnection(uri, self.views_by_port.get(port, []), self.events)
        self.created.append(connection)
        return connection


def listing_handler(listings: List[str]) -> Callable[[List[str]], ProcessResult]:
    """Answer successive ``ls`` commands with successive listings."""
    remaining = list(listings)

    def handler(args: List[str]) -> ProcessResult:
        if args[-1].startswith("ls ") and remaining:
            return ProcessResult(args, 0, remaining.pop(0) if len(remaining) > 1 else remaining[0], "")
        return ProcessResult(args, 0, "", "")

    return handler


@pytest.fixture
def events() -> List[Tuple[str, int]]:
    return []


@pytest.fixture
def forwarding_function(events: List[Tuple[str, int]]) -> FakeForwardingFunction:
    return FakeForwardingFunction(events)


@pytest.fixture
def service_connector(events: List[Tuple[str, int]]) -> FakeServiceConnector:
    return FakeServiceConnector(events)


@pytest.fixture
def process_manager() -> FakeProcessManager:
    return FakeProcessManager()


@pytest.fixture
def make_listing() -> Callable[[List[str]], Callable[[List[str]], ProcessResult]]:
    return listing_handler
