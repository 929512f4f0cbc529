"""
Minimal Dart VM service client.

Speaks just enough JSON-RPC over the VM service websocket to list Flutter
views and describe the VM. It is the default service handle created by the
connection manager for each forwarded port.
"""

import asyncio
import itertools
import json
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from loguru import logger

from ...core.exceptions import ServiceConnectionError
from ...core.interfaces.service import FlutterView, IServiceConnection


def to_websocket_uri(uri: str) -> str:
    """Convert an ``http://host:port`` service URI into its ``ws://host:port/ws`` endpoint."""
    parts = urlsplit(uri)
    scheme = {"http": "ws", "https": "wss"}.get(parts.scheme, parts.scheme)
    path = parts.path.rstrip("/")
    if not path.endswith("/ws"):
        path = f"{path}/ws"
    return urlunsplit((scheme, parts.netloc, path, parts.query, ""))


class VMServiceConnection(IServiceConnection):
    """A JSON-RPC connection to one Dart VM service."""

    def __init__(self, uri: str, websocket: Any):
        self._uri = uri
        self._websocket = websocket
        self._ids = itertools.count(1)
        self._pending: Dict[str, 'asyncio.Future[Dict[str, Any]]'] = {}
        self._views: List[FlutterView] = []
        self._done: 'asyncio.Future[None]' = asyncio.get_running_loop().create_future()
        self._reader = asyncio.create_task(self._read_loop())

    @classmethod
    async def connect(cls, uri: str, open_timeout: Optional[float] = 10.0) -> 'VMServiceConnection':
        """
        Open a connection to the VM service at ``uri``.

        Raises:
            ServiceConnectionError: If the websocket cannot be opened
        """
        ws_uri = to_websocket_uri(uri)
        try:
            websocket = await websockets.connect(ws_uri, open_timeout=open_timeout, max_size=None)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise ServiceConnectionError(f"Failed to connect to {ws_uri}: {e}", uri=uri) from e

        logger.debug(f"Connected to VM service at {ws_uri}")
        return cls(uri, websocket)

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def views(self) -> List[FlutterView]:
        return list(self._views)

    @property
    def done(self) -> 'asyncio.Future[None]':
        return self._done

    async def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Invoke a VM service RPC and return its result.

        Raises:
            ServiceConnectionError: If the connection is closed or the service
                replies with an error
        """
        if self._done.done():
            raise ServiceConnectionError(f"Connection to {self._uri} is closed", uri=self._uri)

        request_id = str(next(self._ids))
        future: 'asyncio.Future[Dict[str, Any]]' = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        request = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}

        try:
            await self._websocket.send(json.dumps(request))
        except ConnectionClosed as e:
            self._pending.pop(request_id, None)
            raise ServiceConnectionError(f"Connection to {self._uri} closed: {e}", uri=self._uri) from e

        return await future

    async def refresh_views(self) -> None:
        result = await self.call("_flutter.listViews")
        self._views = [FlutterView.from_json(view) for view in result.get("views", [])]

    async def get_vm(self) -> Dict[str, Any]:
        return await self.call("getVM")

    async def close(self) -> None:
        """Close the socket; failures of the reader task are logged, not raised."""
        if not self._done.done():
            try:
                await self._websocket.close()
            except (OSError, WebSocketException) as e:
                logger.warning(f"Error closing VM service connection {self._uri}: {e}")
                self._reader.cancel()
        try:
            await self._reader
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"VM service reader for {self._uri} failed: {e}")
        if not self._done.done():
            self._done.set_result(None)
        await self._done

    async def _read_loop(self) -> None:
        try:
            async for message in self._websocket:
                self._dispatch(message)
        except ConnectionClosed as e:
            logger.debug(f"VM service connection {self._uri} closed: {e}")
        except Exception as e:
            logger.error(f"VM service reader for {self._uri} stopped: {e}")
        finally:
            error = ServiceConnectionError(f"Connection to {self._uri} closed", uri=self._uri)
            for future in self._pending.values():
                if not future.done():
                    future.set_exception(error)
            self._pending.clear()
            if not self._done.done():
                self._done.set_result(None)

    def _dispatch(self, message: Any) -> None:
        try:
            data = json.loads(message)
        except (TypeError, ValueError):
            data = None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed VM service message from {self._uri}")
            return

        # Stream notifications carry no id.
        future = self._pending.pop(str(data.get("id")), None) if "id" in data else None
        if future is None or future.done():
            return

        if "error" in data:
            future.set_exception(ServiceConnectionError(
                f"VM service error {_describe_error(data['error'])}", uri=self._uri))
            return

        result = data.get("result")
        if result is None or isinstance(result, dict):
            future.set_result(result or {})
        else:
            future.set_exception(ServiceConnectionError(
                f"Unexpected VM service result: {result!r}", uri=self._uri))


def _describe_error(error: Any) -> str:
    if isinstance(error, dict):
        return f"{error.get('code')}: {error.get('message')}"
    return str(error)
