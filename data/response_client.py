"""ResponseClient — posts signatures back to the node.

``POST {base_url}/node/signer/response`` with HTTP Basic auth and a JSON body
``{"requestId": ..., "signature": ...}``.  Delivery is best effort: failures
are logged and reported as ``False``, never retried.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

logger = structlog.get_logger("data.response_client")

_RESPONSE_PATH = "/node/signer/response"


class ResponseClient:
    """Best-effort publisher of signed responses.

    Parameters
    ----------
    base_url:
        Node base URL, e.g. ``https://nftnode.io``.
    username, password:
        HTTP Basic credentials.
    http_timeout:
        Request timeout in seconds.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        http_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + _RESPONSE_PATH
        self._auth = httpx.BasicAuth(username, password)
        self._http_timeout = http_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._published: int = 0
        self._failed: int = 0

    @property
    def url(self) -> str:
        return self._url

    @property
    def published(self) -> int:
        """Responses acknowledged by the node since start."""
        return self._published

    @property
    def failed(self) -> int:
        return self._failed

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        """Open the HTTP client.  Idempotent."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=self._auth,
                timeout=httpx.Timeout(self._http_timeout),
                transport=self._transport,
            )
            logger.info("response_client.started", url=self._url)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(
                "response_client.stopped",
                published=self._published,
                failed=self._failed,
            )

    # ── Public API ───────────────────────────────────────────────

    async def publish(self, request_id: Any, signature: str) -> bool:
        """Send ``{requestId, signature}`` to the node.

        Returns
        -------
        bool
            True on a 2xx response.  Network errors and error statuses are
            logged and swallowed.
        """
        assert self._client is not None, "Call start() first"

        body = {"requestId": request_id, "signature": signature}
        try:
            resp = await self._client.post(
                self._url,
                json=body,
                headers={"Content-Type": "application/json"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._failed += 1
            logger.error(
                "response_client.rejected",
                request_id=request_id,
                status=exc.response.status_code,
                body=exc.response.text[:200],
            )
            return False
        except httpx.HTTPError as exc:
            self._failed += 1
            logger.error(
                "response_client.publish_failed",
                request_id=request_id,
                error=f"{type(exc).__name__}: {str(exc)[:200]}",
            )
            return False

        self._published += 1
        logger.info("response_client.signed", request_id=request_id)
        return True

    # ── Context manager ──────────────────────────────────────────

    async def __aenter__(self) -> ResponseClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
