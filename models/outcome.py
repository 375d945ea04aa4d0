"""PipelineOutcome — where a record ended up in parse → validate → sign → publish."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class PipelineStage(str, Enum):
    """Stage at which processing of a record stopped (or PUBLISH on success)."""

    PARSE = "PARSE"
    VALIDATE = "VALIDATE"
    SIGN = "SIGN"
    PUBLISH = "PUBLISH"


@dataclass(frozen=True, slots=True)
class PipelineOutcome:
    """Result of handling a single stream record.

    ``ok`` is True only when a signature was produced and the node
    acknowledged it.  ``dropped`` marks records that were not sign
    requests at all (incomplete envelope); those are never answered.
    """

    stage: PipelineStage
    ok: bool
    request_id: Any = None
    signature: str | None = None
    reason: str = ""
    dropped: bool = False

    @classmethod
    def failed(cls, stage: PipelineStage, reason: str, request_id: Any = None) -> PipelineOutcome:
        return cls(stage=stage, ok=False, request_id=request_id, reason=reason)
