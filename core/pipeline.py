"""RequestPipeline — parse → validate → sign → publish for one stream record.

Every failure is contained to the record that caused it and reported as a
:class:`PipelineOutcome` naming the stage that stopped it.  Nothing raised
here should ever reach the stream loop.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from models.outcome import PipelineOutcome, PipelineStage
from models.sign_request import SignRequest, decode_record
from policy.validator import OrderPolicy

logger = structlog.get_logger("core.pipeline")


class Signer(Protocol):
    async def sign(
        self, domain: dict[str, Any], types: dict[str, Any], value: dict[str, Any]
    ) -> str: ...


class Publisher(Protocol):
    async def publish(self, request_id: Any, signature: str) -> bool: ...


@dataclass
class _InFlight:
    """Where the current record is; read when an unexpected fault escapes."""

    stage: PipelineStage = PipelineStage.PARSE
    request_id: Any = None


class RequestPipeline:
    """Processes sign requests one record at a time.

    Parameters
    ----------
    policy:
        Risk gate; a request is signed only if ``policy.evaluate`` accepts it.
    signer:
        Produces the typed-data signature.
    publisher:
        Sends ``{requestId, signature}`` back to the node.
    """

    def __init__(self, policy: OrderPolicy, signer: Signer, publisher: Publisher) -> None:
        self._policy = policy
        self._signer = signer
        self._publisher = publisher
        self._stats: Counter[str] = Counter()

    @property
    def stats(self) -> dict[str, int]:
        """Outcome counts keyed by ``signed``, ``dropped`` or the failing stage."""
        return dict(self._stats)

    async def handle(self, text: str) -> PipelineOutcome:
        """Run one record through the pipeline.  Never raises."""
        progress = _InFlight()
        try:
            outcome = await self._handle(text, progress)
        except Exception as exc:
            logger.exception(
                "pipeline.unexpected_error",
                stage=progress.stage.value,
                request_id=progress.request_id,
                error=str(exc)[:200],
            )
            outcome = PipelineOutcome.failed(
                progress.stage,
                f"unexpected: {type(exc).__name__}: {exc}"[:200],
                request_id=progress.request_id,
            )

        if outcome.ok:
            self._stats["signed"] += 1
        elif outcome.dropped:
            self._stats["dropped"] += 1
        else:
            self._stats[outcome.stage.value.lower()] += 1
        return outcome

    async def _handle(self, text: str, progress: _InFlight) -> PipelineOutcome:
        # ── Parse ──
        try:
            payload = decode_record(text)
        except json.JSONDecodeError as exc:
            logger.warning("pipeline.invalid_json", error=str(exc), raw=text[:200])
            return PipelineOutcome.failed(PipelineStage.PARSE, f"invalid JSON: {exc}")

        request = SignRequest.from_payload(payload)
        if request is None:
            # Not a sign request (keep-alives, acks): dropped without a reply.
            logger.debug("pipeline.dropped", raw=text[:200])
            return PipelineOutcome(
                stage=PipelineStage.PARSE,
                ok=False,
                reason="missing domain, types or value",
                dropped=True,
            )

        request_id = progress.request_id = request.request_id
        log = logger.bind(request_id=request_id)

        # ── Validate ──
        progress.stage = PipelineStage.VALIDATE
        decision = self._policy.evaluate(payload)
        if not decision.accepted:
            log.error(
                "pipeline.validation_failed",
                reason=decision.reason.value if decision.reason else None,
            )
            return PipelineOutcome.failed(
                PipelineStage.VALIDATE,
                decision.reason.value if decision.reason else "rejected",
                request_id=request_id,
            )

        # ── Sign ──
        progress.stage = PipelineStage.SIGN
        try:
            signature = await self._signer.sign(request.domain, request.types, request.value)
        except Exception as exc:
            log.error("pipeline.sign_failed", error=f"{type(exc).__name__}: {str(exc)[:200]}")
            return PipelineOutcome.failed(PipelineStage.SIGN, str(exc)[:200], request_id=request_id)

        # ── Publish ──
        progress.stage = PipelineStage.PUBLISH
        try:
            published = await self._publisher.publish(request_id, signature)
        except Exception as exc:
            log.error("pipeline.publish_failed", error=f"{type(exc).__name__}: {str(exc)[:200]}")
            published = False

        return PipelineOutcome(
            stage=PipelineStage.PUBLISH,
            ok=published,
            request_id=request_id,
            signature=signature,
            reason="" if published else "publish failed",
        )
