"""Tests for core/main.py — startup configuration and shutdown flag."""

from __future__ import annotations

import pytest

from conftest import TEST_ADDRESS, TEST_PRIVATE_KEY
from core.main import GracefulShutdown, bootstrap

_REQUIRED = ("PRIVATE_KEY", "NFTNODE_USERNAME", "NFTNODE_PASSWORD", "MAX_BID")


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> pytest.MonkeyPatch:
    # no stray .env from the working tree
    monkeypatch.chdir(tmp_path)
    for name in (*_REQUIRED, "NFTNODE_HOST", "CONSIDERATION_ADDRESSES", "APP_ENV", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PRIVATE_KEY", TEST_PRIVATE_KEY)
    monkeypatch.setenv("NFTNODE_USERNAME", "signer-bot")
    monkeypatch.setenv("NFTNODE_PASSWORD", "hunter2")
    monkeypatch.setenv("MAX_BID", "0.5")
    return monkeypatch


class TestBootstrap:

    def test_builds_signer_and_policy(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("CONSIDERATION_ADDRESSES", "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2")
        settings, signer, policy = bootstrap()
        assert settings.NFTNODE_USERNAME == "signer-bot"
        assert signer.address == TEST_ADDRESS
        assert policy.max_bid_wei == 500_000_000_000_000_000
        assert policy.allowed_tokens == frozenset({"0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"})

    @pytest.mark.parametrize("missing", _REQUIRED)
    def test_missing_variable_exits_nonzero(self, env: pytest.MonkeyPatch, missing: str) -> None:
        env.delenv(missing)
        with pytest.raises(SystemExit) as excinfo:
            bootstrap()
        assert excinfo.value.code == 1

    def test_invalid_max_bid_exits_nonzero(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("MAX_BID", "lots")
        with pytest.raises(SystemExit) as excinfo:
            bootstrap()
        assert excinfo.value.code == 1

    def test_blank_allow_list_exits_nonzero(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("CONSIDERATION_ADDRESSES", " , ")
        with pytest.raises(SystemExit) as excinfo:
            bootstrap()
        assert excinfo.value.code == 1

    def test_invalid_private_key_exits_nonzero(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("PRIVATE_KEY", "0x1234")
        with pytest.raises(SystemExit) as excinfo:
            bootstrap()
        assert excinfo.value.code == 1


class TestGracefulShutdown:

    @pytest.mark.asyncio
    async def test_trigger_releases_wait(self) -> None:
        shutdown = GracefulShutdown()
        assert not shutdown.should_stop
        shutdown.trigger()
        await shutdown.wait()
        assert shutdown.should_stop
