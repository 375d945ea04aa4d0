"""nftnode-signer — node I/O: sign-request stream and response publisher."""
