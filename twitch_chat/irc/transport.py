"""Line transports: priority send queue, background reader, auto-reconnect."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import itertools
import logging
from collections.abc import AsyncIterator, Callable
from enum import IntEnum
from typing import Any, Protocol

import websockets
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from websockets.exceptions import WebSocketException

from ..constants import (
    INITIAL_BACKOFF_SECONDS,
    MAX_BACKOFF_SECONDS,
    RECONNECT_MAX_ATTEMPTS,
    TRANSPORT_CONNECT_TIMEOUT_SECONDS,
    TRANSPORT_READ_LIMIT_BYTES,
)
from ..errors.internal import NetworkError
from ..logs.logger import logger


class Priority(IntEnum):
    CRITICAL = 0
    HIGH = 1
    MEDIUM = 2
    LOW = 3


ConnectedCallback = Callable[[], Any]
LineCallback = Callable[[str], Any]
DisconnectedCallback = Callable[[str], Any]


class LineTransport(Protocol):
    on_connected: ConnectedCallback | None
    on_line: LineCallback | None
    on_disconnected: DisconnectedCallback | None

    @property
    def is_connected(self) -> bool: ...

    async def connect(self, host: str, port: int) -> None: ...

    async def disconnect(self) -> None: ...

    def send_line(self, text: str, priority: Priority = Priority.MEDIUM) -> bool: ...

    def start_listening(self) -> None: ...


class QueuedLineTransport:
    """Shared plumbing for concrete transports.

    Outgoing lines go through a priority queue drained by a writer task, FIFO
    within one priority. Incoming lines are handed to ``on_line`` one at a
    time by the reader task, and the next line is not read until the callback
    (awaited when it returns an awaitable) has finished.
    """

    _open_errors: tuple[type[BaseException], ...] = (OSError, asyncio.TimeoutError)
    kind = "line"

    def __init__(
        self,
        *,
        auto_reconnect: bool = True,
        max_reconnect_attempts: int = RECONNECT_MAX_ATTEMPTS,
        connect_timeout: float = TRANSPORT_CONNECT_TIMEOUT_SECONDS,
    ) -> None:
        self.on_connected: ConnectedCallback | None = None
        self.on_line: LineCallback | None = None
        self.on_disconnected: DisconnectedCallback | None = None
        self.auto_reconnect = auto_reconnect
        self.max_reconnect_attempts = max_reconnect_attempts
        self.connect_timeout = connect_timeout
        self.host: str | None = None
        self.port: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.PriorityQueue[tuple[int, int, str]] | None = None
        self._seq = itertools.count()
        self._reader_task: asyncio.Task | None = None
        self._writer_task: asyncio.Task | None = None
        self._connected = False
        self._closing = False

    # --------------------------- Subclass hooks --------------------------- #
    async def _open(self, host: str, port: int) -> None:
        raise NotImplementedError

    async def _close(self) -> None:
        raise NotImplementedError

    def _read_lines(self) -> AsyncIterator[str]:
        raise NotImplementedError

    async def _write(self, text: str) -> None:
        raise NotImplementedError

    # --------------------------- Public API --------------------------- #
    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self, host: str, port: int) -> None:
        """Open the connection, start the writer and fire ``on_connected``.

        Raises:
            NetworkError: The connection could not be opened in time.
        """
        self._loop = asyncio.get_running_loop()
        self.host, self.port = host, port
        self._closing = False
        self._queue = asyncio.PriorityQueue()
        logger.log_event(
            "transport",
            "connecting",
            level=logging.DEBUG,
            kind=self.kind,
            host=host,
            port=port,
        )
        await self._open_with_timeout()
        self._mark_connected()
        await self._fire(self.on_connected)

    def start_listening(self) -> None:
        if self._reader_task is not None and not self._reader_task.done():
            return
        if self._loop is None:
            raise NetworkError("start_listening called before connect")
        self._reader_task = self._loop.create_task(self._read_loop())

    def send_line(self, text: str, priority: Priority = Priority.MEDIUM) -> bool:
        """Queue ``text`` for sending; callable from any thread, never blocks."""
        queue, loop = self._queue, self._loop
        if queue is None or loop is None or self._closing:
            logger.log_event(
                "transport",
                "send_dropped",
                level=logging.WARNING,
                kind=self.kind,
                priority=priority.name,
            )
            return False
        item = (int(priority), next(self._seq), text)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            queue.put_nowait(item)
        else:
            loop.call_soon_threadsafe(queue.put_nowait, item)
        return True

    async def disconnect(self) -> None:
        """Close the connection; safe to call from inside the reader task."""
        self._closing = True
        was_connected = self._connected
        self._connected = False
        await self._stop_tasks()
        self._drain_queue()
        await self._close_quietly()
        if was_connected:
            logger.log_event("transport", "disconnected", kind=self.kind, host=self.host)

    # --------------------------- Internals --------------------------- #
    async def _open_with_timeout(self) -> None:
        try:
            await asyncio.wait_for(
                self._open(self.host or "", self.port or 0), timeout=self.connect_timeout
            )
        except self._open_errors as e:
            logger.log_event(
                "transport",
                "connect_failed",
                level=logging.WARNING,
                kind=self.kind,
                host=self.host,
                port=self.port,
                error=str(e) or type(e).__name__,
            )
            raise NetworkError(
                f"Could not connect to {self.host}:{self.port}",
                data={"host": self.host, "port": self.port, "error": str(e)},
            ) from e

    def _mark_connected(self) -> None:
        self._connected = True
        if self._loop is not None:
            self._writer_task = self._loop.create_task(self._write_loop())
        logger.log_event(
            "transport", "connected", kind=self.kind, host=self.host, port=self.port
        )

    async def _stop_tasks(self) -> None:
        current = asyncio.current_task()
        pending = []
        for task in (self._writer_task, self._reader_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            pending.append(task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._writer_task = None
        if self._reader_task is not current:
            self._reader_task = None

    def _drain_queue(self) -> None:
        if self._queue is None:
            return
        while not self._queue.empty():
            self._queue.get_nowait()

    async def _close_quietly(self) -> None:
        try:
            await self._close()
        except Exception as e:  # noqa: BLE001
            logger.log_event(
                "transport", "close_error", level=logging.DEBUG, kind=self.kind, error=str(e)
            )

    async def _fire(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:  # noqa: BLE001
            logger.log_event(
                "transport",
                "callback_error",
                level=logging.ERROR,
                kind=self.kind,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _write_loop(self) -> None:
        queue = self._queue
        if queue is None:
            return
        while True:
            _priority, _seq, text = await queue.get()
            try:
                await self._write(text)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # noqa: BLE001
                logger.log_event(
                    "transport",
                    "write_failed",
                    level=logging.ERROR,
                    kind=self.kind,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def _read_loop(self) -> None:
        reason = "connection closed by server"
        try:
            async with contextlib.aclosing(self._read_lines()) as lines:
                async for line in lines:
                    if self._closing:
                        break
                    if line:
                        await self._fire(self.on_line, line)
                    if self._closing:
                        break
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            reason = str(e) or type(e).__name__
            logger.log_event(
                "transport", "read_error", level=logging.WARNING, kind=self.kind, error=reason
            )
        if not self._closing:
            await self._handle_connection_lost(reason)

    async def _handle_connection_lost(self, reason: str) -> None:
        self._connected = False
        await self._stop_tasks()
        await self._close_quietly()
        logger.log_event(
            "transport", "connection_lost", level=logging.WARNING, kind=self.kind, reason=reason
        )
        if not self.auto_reconnect:
            await self._fire(self.on_disconnected, reason)
            return
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_reconnect_attempts),
                wait=wait_exponential(
                    multiplier=INITIAL_BACKOFF_SECONDS, max=MAX_BACKOFF_SECONDS
                ),
                retry=retry_if_exception_type(NetworkError),
                reraise=True,
            ):
                with attempt:
                    if self._closing:
                        return
                    logger.log_event(
                        "transport",
                        "reconnect_attempt",
                        level=logging.WARNING,
                        kind=self.kind,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    await self._open_with_timeout()
        except NetworkError as e:
            logger.log_event(
                "transport",
                "reconnect_failed",
                level=logging.ERROR,
                kind=self.kind,
                attempts=self.max_reconnect_attempts,
                error=str(e),
            )
            await self._fire(self.on_disconnected, str(e))
            return
        if self._closing:
            await self._close_quietly()
            return
        self._reader_task = None
        self._mark_connected()
        logger.log_event("transport", "reconnected", kind=self.kind, host=self.host)
        await self._fire(self.on_connected)


class TcpLineTransport(QueuedLineTransport):
    """CRLF-framed lines over a plain (or TLS) TCP stream."""

    kind = "tcp"

    def __init__(self, *, ssl: bool = False, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.ssl = ssl
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    async def _open(self, host: str, port: int) -> None:
        self._reader, self._writer = await asyncio.open_connection(
            host, port, ssl=self.ssl or None, limit=TRANSPORT_READ_LIMIT_BYTES
        )

    async def _close(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        if writer is not None:
            writer.close()
            await writer.wait_closed()

    async def _read_lines(self) -> AsyncIterator[str]:
        reader = self._reader
        if reader is None:
            return
        while True:
            data = await reader.readline()
            if not data:
                return
            yield data.decode("utf-8", errors="replace").rstrip("\r\n")

    async def _write(self, text: str) -> None:
        if self._writer is None:
            raise NetworkError("send on a closed connection")
        self._writer.write(f"{text}\r\n".encode())
        await self._writer.drain()


class WebSocketLineTransport(QueuedLineTransport):
    """Lines over a WebSocket; one text frame may carry several lines."""

    kind = "websocket"
    _open_errors = (
        OSError,
        asyncio.TimeoutError,
        WebSocketException,
    )

    def __init__(self, *, secure: bool = True, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.secure = secure
        self._ws: Any = None

    def url_for(self, host: str, port: int) -> str:
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{host}:{port}"

    async def _open(self, host: str, port: int) -> None:
        self._ws = await websockets.connect(self.url_for(host, port))

    async def _close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def _read_lines(self) -> AsyncIterator[str]:
        ws = self._ws
        if ws is None:
            return
        async for frame in ws:
            if isinstance(frame, bytes):
                frame = frame.decode("utf-8", errors="replace")
            for line in frame.split("\r\n"):
                if line:
                    yield line

    async def _write(self, text: str) -> None:
        if self._ws is None:
            raise NetworkError("send on a closed connection")
        await self._ws.send(text)
