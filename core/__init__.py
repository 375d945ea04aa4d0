"""nftnode-signer — core: pipeline, logging, entrypoint."""
