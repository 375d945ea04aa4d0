"""Seaport deployments the signer is willing to co-sign for."""

from __future__ import annotations

SEAPORT_1_5 = "0x00000000000000ADc04C56Bf30aC9d3c0aAF14dC"
SEAPORT_1_6 = "0x0000000000000068F116a894984e2DB1123eB395"

# Compared against the lower-cased ``domain.verifyingContract``.
SEAPORT_ADDRESSES: frozenset[str] = frozenset(
    addr.lower() for addr in (SEAPORT_1_5, SEAPORT_1_6)
)

# Seaport ItemType enum: 0 NATIVE, 1 ERC20, 2 ERC721, 3 ERC1155, ...
ITEM_TYPE_ERC20 = 1


def is_seaport(address: str) -> bool:
    return address.lower() in SEAPORT_ADDRESSES
