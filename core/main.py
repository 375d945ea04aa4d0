"""Entrypoint — uvloop event-loop, stream consumer, graceful shutdown."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import NoReturn

import uvloop

from config.settings import ConfigurationError, Settings, load_settings
from core.logger import get_logger, setup_logging
from core.pipeline import RequestPipeline
from data.response_client import ResponseClient
from data.stream_client import StreamClient
from policy.validator import OrderPolicy
from web3_infra.eip712_signer import EIP712Signer

log = get_logger("core.main")


class GracefulShutdown:
    """Tracks shutdown signal and provides a flag for the main loop."""

    def __init__(self) -> None:
        self._should_stop = asyncio.Event()

    @property
    def should_stop(self) -> bool:
        return self._should_stop.is_set()

    def trigger(self) -> None:
        self._should_stop.set()

    async def wait(self) -> None:
        await self._should_stop.wait()


def _fatal(event: str, **kw: object) -> NoReturn:
    log.error(event, **kw)
    sys.exit(1)


def bootstrap() -> tuple[Settings, EIP712Signer, OrderPolicy]:
    """Load configuration and build the signing identity, or exit(1)."""
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        setup_logging()
        _fatal("missing_configuration", error=str(exc), fields=exc.fields)

    setup_logging(settings.LOG_LEVEL, settings.APP_ENV)

    try:
        signer = EIP712Signer(
            settings.PRIVATE_KEY.get_secret_value(),
            max_workers=settings.SIGNER_MAX_WORKERS,
        )
    except ValueError as exc:
        _fatal("invalid_private_key", error=str(exc))

    return settings, signer, OrderPolicy.from_settings(settings)


async def main() -> None:
    """Top-level orchestrator."""
    settings, signer, policy = bootstrap()
    allowed = policy.allowed_tokens
    log.info(
        "starting",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        host=settings.NFTNODE_HOST,
        username=settings.NFTNODE_USERNAME,
        signer=signer.address,
        max_bid_eth=str(settings.MAX_BID),
        allowed_tokens=sorted(allowed) if allowed else "any",
    )

    shutdown = GracefulShutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: _handle_signal(s, shutdown))

    username, password = settings.basic_auth
    publisher = ResponseClient(
        base_url=settings.NFTNODE_HOST,
        username=username,
        password=password,
        http_timeout=settings.HTTP_TIMEOUT_SECONDS,
    )

    async with signer, publisher:
        pipeline = RequestPipeline(policy=policy, signer=signer, publisher=publisher)
        stream = StreamClient(
            base_url=settings.NFTNODE_HOST,
            username=username,
            password=password,
            handler=pipeline.handle,
            reconnect_delay=settings.RECONNECT_DELAY_SECONDS,
            connect_timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        await stream.start()
        await shutdown.wait()
        await stream.stop()

    log.info("shutdown_complete", **pipeline.stats)


def _handle_signal(sig: signal.Signals, shutdown: GracefulShutdown) -> None:
    """Signal handler — sets the shutdown flag."""
    log.info("signal_received", signal=sig.name)
    shutdown.trigger()


def run() -> NoReturn:
    """CLI entry: run main() on a uvloop event loop."""
    uvloop.run(main())
    sys.exit(0)


if __name__ == "__main__":
    run()
