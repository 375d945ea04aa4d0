"""nftnode-signer — web3_infra package.

- EIP712Signer: off-thread EIP-712 typed-data signing for Seaport orders
"""

from .eip712_signer import EIP712Signer, SigningError

__all__ = [
    "EIP712Signer",
    "SigningError",
]
