"""nftnode-signer — configuration."""
