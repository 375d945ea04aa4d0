"""OrderPolicy — risk gate run on every sign request before signing.

The request comes straight off the network, so evaluation is total: every
check short-circuits to a rejection and any unexpected fault is reported as
``INTERNAL_ERROR`` instead of propagating.

Checks, in order:

1. ``domain.verifyingContract`` present
2. contract is a recognised Seaport deployment
3. ``value.consideration`` is a non-empty list
4. at least one consideration token is allow-listed (if a list is set)
5. ERC20 ``startAmount`` total of ``value.offer`` is at most the max bid;
   ``itemType`` is read as the signer will encode it, so ``"1"`` counts

NOTE: (5) bounds the *offer* side, i.e. what the bidder pays, even though
upstream tooling calls it the "consideration amount".
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from web3 import Web3

from policy.contracts import ITEM_TYPE_ERC20, is_seaport
from web3_infra.eip712_signer import parse_int

if TYPE_CHECKING:
    from config.settings import Settings

logger = structlog.get_logger("policy.validator")

_DECIMAL_RE = re.compile(r"[0-9]+")
_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")


class RejectReason(str, Enum):
    """Why a request was refused."""

    MISSING_DOMAIN = "MISSING_DOMAIN"
    UNKNOWN_CONTRACT = "UNKNOWN_CONTRACT"
    INVALID_CONSIDERATION = "INVALID_CONSIDERATION"
    TOKEN_NOT_ALLOWED = "TOKEN_NOT_ALLOWED"
    MALFORMED_AMOUNT = "MALFORMED_AMOUNT"
    BID_TOO_HIGH = "BID_TOO_HIGH"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    """Outcome of :meth:`OrderPolicy.evaluate`."""

    accepted: bool
    reason: RejectReason | None = None
    offer_total_wei: int | None = None
    detail: str = ""

    @classmethod
    def reject(cls, reason: RejectReason, detail: str = "", **kw: Any) -> PolicyDecision:
        return cls(accepted=False, reason=reason, detail=detail, **kw)


class MalformedAmountError(ValueError):
    """An offer ``startAmount`` or ``itemType`` that cannot be read as an integer."""


def parse_amount(raw: Any) -> int:
    """Read an offer ``startAmount`` as an integer number of wei.

    Absent or empty amounts count as zero.  Decimal strings, ``0x`` hex
    strings and JSON integers are accepted; anything else (floats,
    booleans, negative or fractional values) raises
    :class:`MalformedAmountError`.
    """
    if raw is None:
        return 0
    if isinstance(raw, bool):
        raise MalformedAmountError(f"boolean amount {raw!r}")
    if isinstance(raw, int):
        if raw < 0:
            raise MalformedAmountError(f"negative amount {raw}")
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return 0
        if _DECIMAL_RE.fullmatch(text):
            return int(text, 10)
        if _HEX_RE.fullmatch(text):
            return int(text, 16)
        raise MalformedAmountError(f"unparseable amount {raw[:80]!r}")
    raise MalformedAmountError(f"unsupported amount type {type(raw).__name__}")


def parse_item_type(raw: Any) -> int:
    """Read an offer ``itemType`` with the same rule the signer encodes it.

    A JSON integer, or a string the signer would coerce to an integer
    (``"1"``, ``"0x01"``, ``" 1"``).  Anything else raises
    :class:`MalformedAmountError`, since the item's weight in the total
    cannot be decided.
    """
    if isinstance(raw, bool):
        raise MalformedAmountError(f"boolean itemType {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return parse_int(raw)
        except ValueError:
            raise MalformedAmountError(f"unparseable itemType {raw[:80]!r}") from None
    raise MalformedAmountError(f"unsupported itemType {type(raw).__name__}")


def _format_eth(wei: int) -> str:
    return f"{Web3.from_wei(wei, 'ether')}"


class OrderPolicy:
    """Bounds exposure and counterparty identity of a Seaport sign request.

    Parameters
    ----------
    max_bid_wei:
        Largest acceptable ERC20 offer total, in wei.  Equal is allowed.
    allowed_tokens:
        Consideration token addresses of which at least one must appear.
        ``None`` allows any token.  A list given without a single usable
        address raises ``ValueError`` rather than widening to any token.
    """

    def __init__(
        self,
        max_bid_wei: int,
        allowed_tokens: Iterable[str] | None = None,
    ) -> None:
        if max_bid_wei < 0:
            raise ValueError("max_bid_wei must be >= 0")
        self._max_bid_wei = max_bid_wei
        self._allowed_tokens: frozenset[str] | None = None
        if allowed_tokens is not None:
            tokens = frozenset(t.strip().lower() for t in allowed_tokens if t.strip())
            if not tokens:
                raise ValueError("allowed_tokens contains no token address")
            self._allowed_tokens = tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> OrderPolicy:
        return cls(
            max_bid_wei=settings.max_bid_wei,
            allowed_tokens=settings.consideration_addresses,
        )

    @property
    def max_bid_wei(self) -> int:
        return self._max_bid_wei

    @property
    def allowed_tokens(self) -> frozenset[str] | None:
        return self._allowed_tokens

    # ── Public API ───────────────────────────────────────────────

    def validate(self, request: Any) -> bool:
        """Return True only when every check passes.  Never raises."""
        return self.evaluate(request).accepted

    def evaluate(self, request: Any) -> PolicyDecision:
        """Run all checks and return the decision.  Never raises."""
        try:
            decision = self._evaluate(request)
        except Exception as exc:
            logger.exception("order_policy.error", error=str(exc)[:200])
            return PolicyDecision.reject(RejectReason.INTERNAL_ERROR, str(exc)[:200])

        if decision.accepted:
            logger.info(
                "order_policy.accepted",
                offer_total_eth=_format_eth(decision.offer_total_wei or 0),
            )
        else:
            logger.warning(
                "order_policy.rejected",
                reason=decision.reason.value if decision.reason else None,
                detail=decision.detail,
            )
        return decision

    # ── Checks ───────────────────────────────────────────────────

    def _evaluate(self, request: Any) -> PolicyDecision:
        if not isinstance(request, Mapping):
            return PolicyDecision.reject(RejectReason.MISSING_DOMAIN, "request is not an object")

        domain = request.get("domain")
        contract = domain.get("verifyingContract") if isinstance(domain, Mapping) else None
        if not contract or not isinstance(contract, str):
            return PolicyDecision.reject(
                RejectReason.MISSING_DOMAIN, "missing domain or verifying contract"
            )

        contract = contract.lower()
        if not is_seaport(contract):
            return PolicyDecision.reject(
                RejectReason.UNKNOWN_CONTRACT,
                f"contract {contract[:100]} is not a recognised Seaport deployment",
            )

        value = request.get("value")
        consideration = value.get("consideration") if isinstance(value, Mapping) else None
        if not isinstance(consideration, list) or not consideration:
            return PolicyDecision.reject(
                RejectReason.INVALID_CONSIDERATION, "missing or invalid consideration array"
            )

        if not self._has_allowed_token(consideration):
            assert self._allowed_tokens is not None
            return PolicyDecision.reject(
                RejectReason.TOKEN_NOT_ALLOWED,
                "no consideration item with valid token, expected one of: "
                + ", ".join(sorted(self._allowed_tokens)),
            )

        offer = value.get("offer")
        if not isinstance(offer, list):
            return PolicyDecision.reject(RejectReason.MALFORMED_AMOUNT, "missing or invalid offer array")

        try:
            total = self._offer_total_wei(offer)
        except MalformedAmountError as exc:
            return PolicyDecision.reject(RejectReason.MALFORMED_AMOUNT, str(exc))

        if total > self._max_bid_wei:
            return PolicyDecision.reject(
                RejectReason.BID_TOO_HIGH,
                f"offer total {_format_eth(total)} ETH exceeds maximum "
                f"{_format_eth(self._max_bid_wei)} ETH",
                offer_total_wei=total,
            )

        return PolicyDecision(accepted=True, offer_total_wei=total)

    def _has_allowed_token(self, consideration: list[Any]) -> bool:
        if self._allowed_tokens is None:
            return True
        for item in consideration:
            if not isinstance(item, Mapping):
                continue
            token = item.get("token")
            if isinstance(token, str) and token.lower() in self._allowed_tokens:
                return True
        return False

    @staticmethod
    def _offer_total_wei(offer: list[Any]) -> int:
        total = 0
        for item in offer:
            if not isinstance(item, Mapping):
                raise MalformedAmountError(f"offer item is {type(item).__name__}, not an object")
            if parse_item_type(item.get("itemType")) == ITEM_TYPE_ERC20:
                total += parse_amount(item.get("startAmount"))
        return total
