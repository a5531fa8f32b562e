"""Client for external tool servers running as child processes.

Each :class:`ServerConnection` owns one child process and speaks
newline-delimited JSON-RPC 2.0 over its stdin/stdout. A background
reader task routes every response to the request with the same ``id``,
so a response that arrives after its request timed out is recognised
as stale and dropped instead of being handed to the next caller.

Usage::

    async with ToolServerClient(timeout=10) as client:
        await client.connect(ServerConfig(name="calc", command="calc-server"))
        result = await client.call_tool("calc", "add", {"a": 1, "b": 2})
"""
from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING, Any

from switchyard_core._version import __version__
from switchyard_core.errors import (
    EmptyResponseError,
    HandshakeFailedError,
    NotConnectedError,
    SpawnFailedError,
    ToolServerError,
    ToolTimeoutError,
)
from switchyard_core.logging import get_logger
from switchyard_core.types import ErrorKind, Result

from switchyard_tools.protocol import (
    DEFAULT_PROTOCOL_VERSION,
    METHOD_NOT_FOUND,
    build_error,
    build_notification,
    build_request,
    build_response,
    encode,
    error_from_response,
    extract_text,
    is_response,
    parse_message,
)
from switchyard_tools.types import ConnectionState, ToolInfo

if TYPE_CHECKING:
    from switchyard_core.config import ServerConfig

logger = get_logger("tools.client")

_STREAM_LIMIT = 16 * 1024 * 1024  # 16 MiB per line
_EXIT_GRACE_SECONDS = 5.0


class ServerConnection:
    """One child process and the request/response bookkeeping for it."""

    def __init__(self, config: ServerConfig, timeout: float) -> None:
        self.config = config
        self.timeout = config.timeout_seconds or timeout
        self.state = ConnectionState.UNCONNECTED
        self.tools: list[ToolInfo] = []
        self.server_info: dict[str, Any] = {}
        self._process: asyncio.subprocess.Process | None = None
        self._next_id = 0
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def ready(self) -> bool:
        return self.state is ConnectionState.READY

    # ── Lifecycle ───────────────────────────────────────────────────

    async def spawn(self) -> None:
        """Start the child process and its reader tasks.

        Raises:
            SpawnFailedError: If the executable cannot be started.
        """
        self.state = ConnectionState.CONNECTING
        env = {**os.environ, **self.config.env}
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.config.command,
                *self.config.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                limit=_STREAM_LIMIT,
            )
        except (OSError, ValueError) as exc:
            self.state = ConnectionState.DISCONNECTED
            msg = f"Could not start server '{self.name}' ({self.config.command}): {exc}"
            raise SpawnFailedError(msg) from exc

        logger.info("Spawned server %s (pid=%s)", self.name, self._process.pid)
        self._reader_task = asyncio.create_task(
            self._read_stdout(), name=f"tool-server-{self.name}-stdout"
        )
        self._stderr_task = asyncio.create_task(
            self._drain_stderr(), name=f"tool-server-{self.name}-stderr"
        )

    async def initialize(
        self, protocol_version: str, client_name: str, client_version: str
    ) -> None:
        """Run the ``initialize`` / ``initialized`` exchange.

        Raises:
            HandshakeFailedError: Wrapping whatever went wrong.
        """
        self.state = ConnectionState.INITIALIZING
        try:
            result = await self.request(
                "initialize",
                {
                    "protocolVersion": protocol_version,
                    "capabilities": {},
                    "clientInfo": {"name": client_name, "version": client_version},
                },
            )
            await self.notify("notifications/initialized")
        except ToolServerError as exc:
            msg = f"Handshake with server '{self.name}' failed: {exc}"
            raise HandshakeFailedError(msg) from exc

        if isinstance(result, dict):
            info = result.get("serverInfo")
            self.server_info = info if isinstance(info, dict) else {}
        if self.state is not ConnectionState.INITIALIZING:
            msg = f"Server '{self.name}' exited during the handshake"
            raise HandshakeFailedError(msg)
        self.state = ConnectionState.READY
        logger.info(
            "Server %s ready (%s)",
            self.name,
            self.server_info.get("name", "unknown server"),
        )

    async def fetch_tools(self) -> list[ToolInfo]:
        result = await self.request("tools/list", {})
        raw_tools = result.get("tools", []) if isinstance(result, dict) else []
        tools: list[ToolInfo] = []
        for raw in raw_tools:
            if isinstance(raw, dict) and raw.get("name"):
                tools.append(ToolInfo.from_mapping(raw))
            else:
                logger.warning("Server %s listed a malformed tool: %r", self.name, raw)
        self.tools = tools
        return tools

    async def close(self) -> None:
        """Close stdin, kill the process and stop the reader tasks."""
        self.state = ConnectionState.DISCONNECTED
        proc = self._process
        if proc is not None:
            if proc.stdin is not None and not proc.stdin.is_closing():
                try:
                    proc.stdin.close()
                except (OSError, RuntimeError):
                    pass
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=_EXIT_GRACE_SECONDS)
            except TimeoutError:
                logger.warning("Server %s did not exit after kill", self.name)

        tasks = [t for t in (self._reader_task, self._stderr_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._fail_pending(NotConnectedError(f"Server '{self.name}' disconnected"))
        logger.info("Disconnected server %s", self.name)

    # ── Messaging ───────────────────────────────────────────────────

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send one request and wait for the response with the same id.

        Only one request is outstanding per connection at a time.

        Raises:
            NotConnectedError: If the process is gone.
            ToolTimeoutError: If no response arrives in time.
            EmptyResponseError: On a blank line or closed output.
            ProtocolError: If the server answers with an error object.
        """
        async with self._lock:
            if self.state is ConnectionState.DISCONNECTED:
                msg = f"Server '{self.name}' is disconnected"
                raise NotConnectedError(msg)

            self._next_id += 1
            request_id = self._next_id
            future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            self._pending[request_id] = future
            try:
                await self._write(build_request(request_id, method, params))
                return await asyncio.wait_for(future, timeout=self.timeout)
            except TimeoutError as exc:
                msg = (
                    f"No response to '{method}' from server '{self.name}' "
                    f"within {self.timeout}s"
                )
                raise ToolTimeoutError(msg) from exc
            finally:
                self._pending.pop(request_id, None)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        await self._write(build_notification(method, params))

    async def _write(self, message: dict[str, Any]) -> None:
        proc = self._process
        if proc is None or proc.stdin is None or proc.stdin.is_closing():
            msg = f"Server '{self.name}' is not running"
            raise NotConnectedError(msg)
        try:
            proc.stdin.write(encode(message))
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            msg = f"Server '{self.name}' closed its input: {exc}"
            raise NotConnectedError(msg) from exc

    def _fail_pending(self, exc: ToolServerError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)

    async def _read_stdout(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        try:
            while True:
                try:
                    line = await stdout.readline()
                except ValueError:
                    logger.warning("Server %s sent an oversized line; dropped", self.name)
                    continue
                if not line:
                    break
                text = line.decode("utf-8", errors="replace").strip()
                if not text:
                    self._fail_pending(
                        EmptyResponseError(f"Server '{self.name}' sent an empty response")
                    )
                    continue
                try:
                    message = parse_message(text)
                except ToolServerError:
                    logger.debug("Server %s: ignoring non-JSON output: %s", self.name, text)
                    continue
                await self._dispatch(message)
        finally:
            self.state = ConnectionState.DISCONNECTED
            self._fail_pending(
                EmptyResponseError(f"Server '{self.name}' closed its output")
            )

    async def _dispatch(self, message: dict[str, Any]) -> None:
        if not is_response(message):
            method = message.get("method")
            if "id" not in message:
                logger.debug("Server %s notification: %s", self.name, method)
                return
            # Server-initiated request.
            if method == "ping":
                reply = build_response(message["id"], {})
            else:
                reply = build_error(
                    message["id"], METHOD_NOT_FOUND, f"Method not found: {method}"
                )
            try:
                await self._write(reply)
            except NotConnectedError:
                pass
            return

        request_id = message["id"]
        future = self._pending.get(request_id) if isinstance(request_id, int) else None
        if future is None or future.done():
            logger.debug(
                "Server %s: discarding stale response id=%r", self.name, request_id
            )
            return
        if "error" in message:
            future.set_exception(error_from_response(message))
        else:
            future.set_result(message.get("result"))

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stderr = self._process.stderr
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                continue
            if not line:
                return
            logger.debug(
                "[%s stderr] %s",
                self.name,
                line.decode("utf-8", errors="replace").rstrip(),
            )


class ToolServerClient:
    """Manages named connections to child-process tool servers.

    All protocol failures come back as :class:`Result` values. Use as
    an async context manager, or call :meth:`disconnect_all` at
    shutdown, so no child process outlives the client.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        client_name: str = "switchyard",
        client_version: str = __version__,
    ) -> None:
        self._timeout = timeout
        self._protocol_version = protocol_version
        self._client_name = client_name
        self._client_version = client_version
        self._connections: dict[str, ServerConnection] = {}

    async def __aenter__(self) -> ToolServerClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect_all()

    @property
    def connections(self) -> dict[str, ServerConnection]:
        return dict(self._connections)

    def get(self, name: str) -> ServerConnection | None:
        return self._connections.get(name)

    def state(self, name: str) -> ConnectionState:
        conn = self._connections.get(name)
        return conn.state if conn is not None else ConnectionState.UNCONNECTED

    def list_tools(self, name: str) -> list[ToolInfo]:
        conn = self._connections.get(name)
        return list(conn.tools) if conn is not None else []

    async def connect(self, config: ServerConfig) -> Result:
        """Spawn *config*'s server, handshake, and fetch its catalog.

        A failed catalog fetch leaves the connection ready with no
        tools; the result is still a success but carries the catalog
        error in ``error``.
        """
        existing = self._connections.get(config.name)
        if existing is not None:
            if existing.ready:
                return Result.fail(
                    f"Server '{config.name}' is already connected",
                    ErrorKind.DUPLICATE_NAME,
                )
            await self.disconnect(config.name)

        conn = ServerConnection(config, self._timeout)
        try:
            await conn.spawn()
            await conn.initialize(
                self._protocol_version, self._client_name, self._client_version
            )
        except ToolServerError as exc:
            logger.warning("Connecting to %s failed: %s", config.name, exc)
            await conn.close()
            return Result.from_error(exc)

        self._connections[config.name] = conn

        try:
            tools = await conn.fetch_tools()
        except ToolServerError as exc:
            logger.warning("Server %s: tools/list failed: %s", config.name, exc)
            return Result(
                success=True,
                output=f"Connected to '{config.name}' (tool catalog unavailable)",
                error=f"tools/list failed: {exc}",
                kind=exc.kind,
            )
        return Result.ok(f"Connected to '{config.name}' ({len(tools)} tools)")

    async def refresh_tools(self, name: str) -> Result:
        conn = self._connections.get(name)
        if conn is None or not conn.ready:
            return Result.fail(
                f"Server '{name}' is not connected", ErrorKind.NOT_CONNECTED
            )
        try:
            tools = await conn.fetch_tools()
        except ToolServerError as exc:
            return Result.from_error(exc)
        return Result.ok("\n".join(t.name for t in tools))

    async def call_tool(
        self,
        name: str,
        tool: str,
        arguments: dict[str, Any] | None = None,
    ) -> Result:
        """Invoke *tool* on server *name*.

        Text content items are joined into ``output``. A response with
        ``isError`` set becomes a ``TOOL_ERROR`` failure whose ``output``
        still holds the text.
        """
        conn = self._connections.get(name)
        if conn is None or not conn.ready:
            return Result.fail(
                f"Server '{name}' is not connected", ErrorKind.NOT_CONNECTED
            )

        try:
            result = await conn.request(
                "tools/call", {"name": tool, "arguments": arguments or {}}
            )
        except ToolServerError as exc:
            logger.warning("Tool %s.%s failed: %s", name, tool, exc)
            return Result.from_error(exc)

        text = extract_text(result)
        if isinstance(result, dict) and result.get("isError"):
            return Result.fail(
                text or f"Tool '{tool}' reported an error",
                ErrorKind.TOOL_ERROR,
                output=text,
            )
        return Result.ok(text)

    async def disconnect(self, name: str) -> None:
        """Tear down *name*'s connection. Never raises."""
        conn = self._connections.pop(name, None)
        if conn is None:
            return
        try:
            await conn.close()
        except Exception:
            logger.warning("Error while disconnecting %s", name, exc_info=True)

    async def disconnect_all(self) -> None:
        for name in list(self._connections):
            await self.disconnect(name)
