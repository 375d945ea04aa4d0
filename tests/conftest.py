"""Shared Seaport fixtures for the test suite."""

from __future__ import annotations

import copy
from typing import Any, Callable

import pytest

# Well-known development key (hardhat account #0); never funded on mainnet.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

SEAPORT_1_5 = "0x00000000000000adc04c56bf30ac9d3c0aaf14dc"
SEAPORT_1_6 = "0x0000000000000068f116a894984e2db1123eb395"
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
BAYC = "0xbc4ca0eda7647a8ab7c2061c2e118a18a936f13d"
FEE_RECIPIENT = "0x0000a26b00c1f0df003000390027140000faa719"
ZERO_BYTES32 = "0x" + "00" * 32

SEAPORT_TYPES: dict[str, Any] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "OrderComponents": [
        {"name": "offerer", "type": "address"},
        {"name": "zone", "type": "address"},
        {"name": "offer", "type": "OfferItem[]"},
        {"name": "consideration", "type": "ConsiderationItem[]"},
        {"name": "orderType", "type": "uint8"},
        {"name": "startTime", "type": "uint256"},
        {"name": "endTime", "type": "uint256"},
        {"name": "zoneHash", "type": "bytes32"},
        {"name": "salt", "type": "uint256"},
        {"name": "conduitKey", "type": "bytes32"},
        {"name": "counter", "type": "uint256"},
    ],
    "OfferItem": [
        {"name": "itemType", "type": "uint8"},
        {"name": "token", "type": "address"},
        {"name": "identifierOrCriteria", "type": "uint256"},
        {"name": "startAmount", "type": "uint256"},
        {"name": "endAmount", "type": "uint256"},
    ],
    "ConsiderationItem": [
        {"name": "itemType", "type": "uint8"},
        {"name": "token", "type": "address"},
        {"name": "identifierOrCriteria", "type": "uint256"},
        {"name": "startAmount", "type": "uint256"},
        {"name": "endAmount", "type": "uint256"},
        {"name": "recipient", "type": "address"},
    ],
}


def weth_offer(amount: str) -> dict[str, Any]:
    return {
        "itemType": 1,
        "token": WETH,
        "identifierOrCriteria": "0",
        "startAmount": amount,
        "endAmount": amount,
    }


def nft_consideration(token: str = BAYC, token_id: str = "1234") -> dict[str, Any]:
    return {
        "itemType": 2,
        "token": token,
        "identifierOrCriteria": token_id,
        "startAmount": "1",
        "endAmount": "1",
        "recipient": TEST_ADDRESS.lower(),
    }


def fee_consideration(amount: str = "12500000000000000") -> dict[str, Any]:
    return {
        "itemType": 1,
        "token": WETH,
        "identifierOrCriteria": "0",
        "startAmount": amount,
        "endAmount": amount,
        "recipient": FEE_RECIPIENT,
    }


def build_request(
    request_id: Any = "req-0001",
    verifying_contract: str = SEAPORT_1_6,
    offer: list[Any] | None = None,
    consideration: list[Any] | None = None,
) -> dict[str, Any]:
    """A complete Seaport bid sign request as the node sends it."""
    return {
        "requestId": request_id,
        "domain": {
            "name": "Seaport",
            "version": "1.6",
            "chainId": 1,
            "verifyingContract": verifying_contract,
        },
        "types": copy.deepcopy(SEAPORT_TYPES),
        "value": {
            "offerer": TEST_ADDRESS.lower(),
            "zone": "0x0000000000000000000000000000000000000000",
            "offer": offer if offer is not None else [weth_offer("500000000000000000")],
            "consideration": (
                consideration
                if consideration is not None
                else [nft_consideration(), fee_consideration()]
            ),
            "orderType": 0,
            "startTime": "1700000000",
            "endTime": "1800000000",
            "zoneHash": ZERO_BYTES32,
            "salt": "24446860302761739304752683030156737591518664810215442929802764137440340812032",
            "conduitKey": ZERO_BYTES32,
            "counter": "0",
        },
    }


@pytest.fixture
def make_request() -> Callable[..., dict[str, Any]]:
    return build_request
