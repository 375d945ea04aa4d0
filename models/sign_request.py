"""SignRequest — one EIP-712 signing request read from the node stream."""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class SignRequest(BaseModel):
    """Seaport order awaiting a co-signature.

    Only the envelope is modelled; ``domain``, ``types`` and ``value`` are
    kept as the raw JSON objects because they are signed exactly as sent.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    request_id: Optional[Any] = Field(default=None, alias="requestId", description="Opaque correlation token")
    domain: dict[str, Any]
    types: dict[str, Any]
    value: dict[str, Any]

    @field_validator("domain", "types", "value")
    @classmethod
    def _non_empty(cls, v: dict[str, Any]) -> dict[str, Any]:
        if not v:
            raise ValueError("must be a non-empty object")
        return v

    @classmethod
    def from_payload(cls, payload: Any) -> Optional[SignRequest]:
        """Build from decoded JSON, or ``None`` if the envelope is incomplete."""
        if not isinstance(payload, dict):
            return None
        try:
            return cls.model_validate(payload)
        except ValidationError:
            return None


def decode_record(text: str) -> Any:
    """Decode one stream record.  Raises ``json.JSONDecodeError``."""
    return json.loads(text)
