"""nftnode-signer — models package."""

from .outcome import PipelineOutcome, PipelineStage
from .sign_request import SignRequest, decode_record

__all__ = [
    "PipelineOutcome",
    "PipelineStage",
    "SignRequest",
    "decode_record",
]
