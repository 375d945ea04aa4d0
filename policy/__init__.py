"""nftnode-signer — policy package.

- OrderPolicy: exposure and identity checks run before any signature
- SEAPORT_ADDRESSES: the verifying contracts we co-sign for
"""

from .contracts import ITEM_TYPE_ERC20, SEAPORT_ADDRESSES
from .validator import OrderPolicy, PolicyDecision, RejectReason, parse_amount, parse_item_type

__all__ = [
    "ITEM_TYPE_ERC20",
    "OrderPolicy",
    "PolicyDecision",
    "RejectReason",
    "SEAPORT_ADDRESSES",
    "parse_amount",
    "parse_item_type",
]
