"""StreamClient — long-lived connection to the node's sign-request stream.

Connects to ``GET {base_url}/node/signer/stream`` with HTTP Basic auth and
reads an unbounded, newline-delimited body of (optionally ``data:``
prefixed) JSON records.

Handles:
- Reassembly of records split across chunk boundaries (``LineBuffer``)
- Sequential dispatch of each record to an async handler
- Reconnection after a fixed delay, forever (no backoff, no retry cap)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

logger = structlog.get_logger("data.stream_client")

_STREAM_PATH = "/node/signer/stream"
_DATA_PREFIX = "data:"

RecordHandler = Callable[[str], Awaitable[Any]]


class LineBuffer:
    """Accumulates text chunks and pops completed lines.

    The unterminated tail of each chunk is kept and prepended to the next
    one.  One buffer belongs to one connection.
    """

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        """Trailing fragment still waiting for its newline."""
        return self._pending

    def feed(self, chunk: str) -> list[str]:
        """Append *chunk* and return every line it completed."""
        *lines, self._pending = (self._pending + chunk).split("\n")
        return lines


def extract_record(line: str) -> str | None:
    """Strip framing from one line; ``None`` if it carries no record."""
    text = line.strip()
    if not text or text == _DATA_PREFIX or text.startswith(":"):
        # blank separator, bare marker, or SSE comment/keep-alive
        return None
    if text.startswith(_DATA_PREFIX):
        text = text[len(_DATA_PREFIX):].strip()
    return text or None


class StreamClient:
    """Consumes the sign-request stream and feeds records to *handler*.

    Parameters
    ----------
    base_url:
        Node base URL, e.g. ``https://nftnode.io``.
    username, password:
        HTTP Basic credentials.
    handler:
        ``async (record: str) -> Any``, awaited once per record, in order.
        Exceptions it raises are logged and do not affect the stream.
    reconnect_delay:
        Fixed pause in seconds before every reconnect (default 5).
    connect_timeout:
        Connect/write/pool timeout.  Reads never time out; a silent stream
        is only noticed when the transport errors.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        handler: RecordHandler,
        reconnect_delay: float = 5.0,
        connect_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + _STREAM_PATH
        self._username = username
        self._auth = httpx.BasicAuth(username, password)
        self._handler = handler
        self._reconnect_delay = reconnect_delay
        self._connect_timeout = connect_timeout
        self._transport = transport

        self._running = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._connected = False
        self._connections: int = 0
        self._reconnects: int = 0
        self._records_dispatched: int = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def connections(self) -> int:
        """Successful connections since start."""
        return self._connections

    @property
    def reconnects(self) -> int:
        return self._reconnects

    @property
    def records_dispatched(self) -> int:
        return self._records_dispatched

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Run :meth:`run` in a background task so start() returns immediately."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Stop the loop and cancel any in-flight read."""
        self.request_stop()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(
            "stream_client.stopped",
            records_dispatched=self._records_dispatched,
            reconnects=self._reconnects,
        )

    def request_stop(self) -> None:
        """Ask the loop to exit after the current record or wait."""
        self._running = False
        self._stop_event.set()

    async def run(self) -> None:
        """Connect and consume until stopped, reconnecting after every failure."""
        self._running = True
        self._stop_event.clear()
        logger.info("stream_client.starting", url=self._url, username=self._username)

        async with httpx.AsyncClient(
            auth=self._auth,
            timeout=httpx.Timeout(self._connect_timeout, read=None),
            transport=self._transport,
        ) as client:
            while self._running:
                try:
                    await self._consume(client)
                    if self._running:
                        logger.warning("stream_client.stream_ended")
                except asyncio.CancelledError:
                    raise
                except httpx.HTTPStatusError as exc:
                    logger.warning(
                        "stream_client.connection_refused",
                        status=exc.response.status_code,
                    )
                except Exception as exc:
                    logger.warning(
                        "stream_client.connection_error",
                        error=f"{type(exc).__name__}: {str(exc)[:200]}",
                    )

                if not self._running:
                    break
                self._reconnects += 1
                logger.info(
                    "stream_client.reconnecting",
                    attempt=self._reconnects,
                    delay=self._reconnect_delay,
                )
                await self._wait(self._reconnect_delay)

    # ── Internal ─────────────────────────────────────────────────

    async def _wait(self, delay: float) -> None:
        """Sleep *delay* seconds, returning early if a stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _consume(self, client: httpx.AsyncClient) -> None:
        """One connection: read chunks, frame records, dispatch in order."""
        logger.info("stream_client.connecting", url=self._url)
        buffer = LineBuffer()
        async with client.stream("GET", self._url) as response:
            response.raise_for_status()
            self._connected = True
            self._connections += 1
            logger.info("stream_client.connected", status=response.status_code)
            try:
                async for chunk in response.aiter_text():
                    for line in buffer.feed(chunk):
                        record = extract_record(line)
                        if record is None:
                            continue
                        await self._dispatch(record)
                        if not self._running:
                            return
            finally:
                self._connected = False
                if buffer.pending:
                    # never glued onto the next connection's first record
                    logger.debug(
                        "stream_client.partial_record_discarded",
                        size=len(buffer.pending),
                    )

    async def _dispatch(self, record: str) -> None:
        self._records_dispatched += 1
        try:
            await self._handler(record)
        except Exception as exc:
            logger.exception(
                "stream_client.handler_error",
                error=f"{type(exc).__name__}: {str(exc)[:200]}",
            )
