"""EIP712Signer — off-main-thread EIP-712 signing for the co-signer.

Signing is CPU-bound (elliptic-curve math), so we offload it to a
``ProcessPoolExecutor`` to avoid blocking the asyncio event loop while the
stream keeps delivering records.  The private key is handed to each worker
once, through the pool initializer, not with every request.
"""

from __future__ import annotations

import asyncio
import re
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from typing import Any

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount

logger = structlog.get_logger("web3_infra.eip712_signer")

_DOMAIN_TYPE = "EIP712Domain"
_INT_TYPE_RE = re.compile(r"u?int[0-9]*")
_BYTES_TYPE_RE = re.compile(r"bytes[0-9]*")
_HEX_RE = re.compile(r"0[xX](?:[0-9a-fA-F]{2})*")


class SigningError(Exception):
    """Raised when typed data cannot be encoded or signed."""


# ── Worker-side state and signing (must be picklable for multiprocessing) ──

_worker_account: LocalAccount | None = None


def _init_worker(private_key: str) -> None:
    global _worker_account
    _worker_account = Account.from_key(private_key)


def _sign_typed_data_sync(
    domain: dict[str, Any],
    types: dict[str, Any],
    value: dict[str, Any],
) -> str:
    """Synchronous signing function executed in a worker process."""
    if _worker_account is None:
        raise SigningError("signing worker has no key")
    message_types, message = prepare_typed_data(types, value)
    try:
        signed = _worker_account.sign_typed_data(
            domain_data=_coerce_domain(domain),
            message_types=message_types,
            message_data=message,
        )
    except SigningError:
        raise
    except Exception as exc:
        # only SigningError crosses the process boundary; eth_abi errors may not unpickle
        raise SigningError(f"{type(exc).__name__}: {str(exc)[:200]}") from None
    return "0x" + bytes(signed.signature).hex()


# ── Typed-data normalisation ────────────────────────────────────────


def prepare_typed_data(
    types: dict[str, Any],
    value: dict[str, Any],
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Drop ``EIP712Domain`` from *types* and coerce JSON strings.

    The node sends typed data shaped for ethers.js, which derives the domain
    type itself, accepts decimal strings for ``uint256`` fields and hex
    strings for ``bytes32`` fields.
    """
    if not isinstance(types, dict) or not isinstance(value, dict):
        raise SigningError("types and value must be objects")
    message_types = {name: fields for name, fields in types.items() if name != _DOMAIN_TYPE}
    primary = primary_type(message_types)
    return message_types, _coerce(message_types, primary, value)


def primary_type(types: dict[str, Any]) -> str:
    """Return the one struct type not referenced by any other struct."""
    referenced: set[str] = set()
    for name, fields in types.items():
        if not isinstance(fields, list):
            raise SigningError(f"type {name!r} must be a list of fields")
        for field in fields:
            if not isinstance(field, dict) or "name" not in field or "type" not in field:
                raise SigningError(f"malformed field in type {name!r}")
            referenced.add(_base_type(field["type"]))
    candidates = [name for name in types if name not in referenced]
    if len(candidates) != 1:
        raise SigningError(f"ambiguous or missing primary type: {candidates}")
    return candidates[0]


def _base_type(type_name: str) -> str:
    return type_name.split("[", 1)[0]


def _coerce(types: dict[str, Any], type_name: str, data: Any) -> Any:
    if type_name.endswith("]"):
        inner = type_name[: type_name.rindex("[")]
        if isinstance(data, list):
            return [_coerce(types, inner, item) for item in data]
        return data
    if type_name in types:
        if not isinstance(data, dict):
            return data
        field_types = {f["name"]: f["type"] for f in types[type_name]}
        return {
            key: _coerce(types, field_types[key], item) if key in field_types else item
            for key, item in data.items()
        }
    if _INT_TYPE_RE.fullmatch(type_name) and isinstance(data, str):
        return _to_int(data)
    if _BYTES_TYPE_RE.fullmatch(type_name) and isinstance(data, str) and _HEX_RE.fullmatch(data):
        return bytes.fromhex(data[2:])
    return data


def parse_int(text: str) -> int:
    """Read a JSON string the way integer fields are encoded for signing.

    Decimal or ``0x`` hex, surrounding whitespace ignored.  Raises
    ``ValueError`` for anything else.
    """
    stripped = text.strip()
    if stripped.lower().startswith(("0x", "-0x")):
        return int(stripped, 16)
    return int(stripped, 10)


def _to_int(text: str) -> Any:
    try:
        return parse_int(text)
    except ValueError:
        # left as-is so eth_account reports the offending field
        return text


def _coerce_domain(domain: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(domain, dict):
        raise SigningError("domain must be an object")
    coerced = dict(domain)
    if isinstance(coerced.get("chainId"), str):
        coerced["chainId"] = _to_int(coerced["chainId"])
    return coerced


# ── Async signer class ──────────────────────────────────────────────


class EIP712Signer:
    """Async-safe EIP-712 typed-data signer backed by a process pool.

    Parameters
    ----------
    private_key:
        Hex-encoded secp256k1 private key (``0x`` prefix optional).
    max_workers:
        Number of processes in the signing pool.  Defaults to 1; the
        stream is handled one record at a time.

    Raises
    ------
    ValueError
        If *private_key* is not a valid key.
    """

    def __init__(self, private_key: str, max_workers: int = 1) -> None:
        try:
            account = Account.from_key(private_key)
        except Exception as exc:
            raise ValueError("invalid signer private key") from exc
        self._private_key = private_key
        self._address: str = account.address
        self._max_workers = max_workers
        self._pool: ProcessPoolExecutor | None = None

    @property
    def address(self) -> str:
        """Checksummed address of the signing identity."""
        return self._address

    def __repr__(self) -> str:
        return f"EIP712Signer(address={self._address!r})"

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        """Start the process pool.  Idempotent."""
        if self._pool is None:
            self._pool = ProcessPoolExecutor(
                max_workers=self._max_workers,
                initializer=_init_worker,
                initargs=(self._private_key,),
            )
            logger.info(
                "eip712_signer.started",
                address=self._address,
                max_workers=self._max_workers,
            )

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the process pool."""
        if self._pool is not None:
            self._pool.shutdown(wait=wait)
            self._pool = None
            logger.info("eip712_signer.shutdown")

    # ── Signing ──────────────────────────────────────────────────

    async def sign(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        value: dict[str, Any],
    ) -> str:
        """Sign typed data asynchronously (offloaded to process pool).

        Returns
        -------
        str
            ``0x``-prefixed 65-byte signature (r, s, v).

        Raises
        ------
        RuntimeError
            If the signer has not been started.
        SigningError
            If the typed data is malformed or cannot be encoded.
        """
        if self._pool is None:
            raise RuntimeError(
                "EIP712Signer not started — call start() first"
            )

        loop = asyncio.get_running_loop()
        try:
            signature = await loop.run_in_executor(
                self._pool,
                _sign_typed_data_sync,
                domain,
                types,
                value,
            )
        except SigningError:
            raise
        except BrokenProcessPool as exc:
            logger.warning("eip712_signer.pool_broken", error=str(exc)[:200])
            self.shutdown(wait=False)
            self.start()
            raise SigningError("signing worker died") from exc
        except Exception as exc:
            raise SigningError(f"{type(exc).__name__}: {str(exc)[:200]}") from exc

        logger.debug("eip712_signer.signed", signature=signature[:18])
        return signature

    # ── Context manager ──────────────────────────────────────────

    async def __aenter__(self) -> EIP712Signer:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.shutdown(wait=True)
