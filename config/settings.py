"""Pydantic BaseSettings — bid limits as Decimal, never float."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3

DEFAULT_BASE_URL = "https://nftnode.io"

# parseEther precision: anything finer than 1 wei is not a valid bid
_ETHER_DECIMALS = 18


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])


class Settings(BaseSettings):
    """Central configuration loaded from env / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # ── Application ─────────────────────────────────────────────
    APP_ENV: Literal["dev", "prod"] = "dev"
    APP_NAME: str = "nftnode-signer"
    LOG_LEVEL: str = "INFO"

    # ── Signer identity (never logged) ──────────────────────────
    PRIVATE_KEY: SecretStr

    # ── Upstream node ───────────────────────────────────────────
    NFTNODE_HOST: str = DEFAULT_BASE_URL
    NFTNODE_USERNAME: str = Field(..., min_length=1)
    NFTNODE_PASSWORD: SecretStr

    # ── Policy ──────────────────────────────────────────────────
    MAX_BID: Decimal = Field(..., ge=0, description="Max aggregate ERC20 offer, in ETH")
    CONSIDERATION_ADDRESSES: str = ""

    # ── Timing / Network ────────────────────────────────────────
    RECONNECT_DELAY_SECONDS: float = Field(default=5.0, ge=0)
    HTTP_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    SIGNER_MAX_WORKERS: int = Field(default=1, ge=1)

    @field_validator("NFTNODE_HOST")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") or DEFAULT_BASE_URL

    @field_validator("MAX_BID")
    @classmethod
    def _check_wei_precision(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("MAX_BID must be a finite number")
        exponent = v.as_tuple().exponent
        if isinstance(exponent, int) and -exponent > _ETHER_DECIMALS:
            raise ValueError(f"MAX_BID has more than {_ETHER_DECIMALS} decimal places")
        return v

    @field_validator("CONSIDERATION_ADDRESSES")
    @classmethod
    def _allow_list_not_blank(cls, v: str) -> str:
        # set but blank ("," or " ") would otherwise read as "allow any token"
        if v and not any(a.strip() for a in v.split(",")):
            raise ValueError("set but contains no token address")
        return v

    @field_validator("PRIVATE_KEY", "NFTNODE_PASSWORD")
    @classmethod
    def _non_empty_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("must not be empty")
        return v

    # ── Derived values ──────────────────────────────────────────

    @property
    def max_bid_wei(self) -> int:
        """``MAX_BID`` converted to wei."""
        return int(Web3.to_wei(self.MAX_BID, "ether"))

    @property
    def consideration_addresses(self) -> frozenset[str] | None:
        """Lower-cased token allow-list, or ``None`` when any token is allowed."""
        entries = [a.strip().lower() for a in self.CONSIDERATION_ADDRESSES.split(",")]
        entries = [a for a in entries if a]
        return frozenset(entries) if entries else None

    @property
    def stream_url(self) -> str:
        return f"{self.NFTNODE_HOST}/node/signer/stream"

    @property
    def response_url(self) -> str:
        return f"{self.NFTNODE_HOST}/node/signer/response"

    @property
    def basic_auth(self) -> tuple[str, str]:
        return (self.NFTNODE_USERNAME, self.NFTNODE_PASSWORD.get_secret_value())


def load_settings(**overrides: object) -> Settings:
    """Build :class:`Settings` from the environment.

    Raises
    ------
    ConfigurationError
        Listing every missing or invalid variable.  Input values are
        never echoed, since some of them are secrets.
    """
    try:
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        problems: list[str] = []
        fields: list[str] = []
        for err in exc.errors():
            name = ".".join(str(p) for p in err["loc"]) or "<root>"
            fields.append(name)
            problems.append(f"{name}: {err['msg']}")
        raise ConfigurationError(
            "Missing or invalid environment configuration: " + "; ".join(problems),
            fields=fields,
        ) from None
