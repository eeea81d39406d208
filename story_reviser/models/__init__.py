from .generation import Generation, GenerationParams, GenerationStatus
from .proposal import (
    ClarificationProposal,
    EditProposal,
    FullProposal,
    ParagraphEdit,
    PatchProposal,
)

__all__ = [
    "Generation",
    "GenerationParams",
    "GenerationStatus",
    "ClarificationProposal",
    "EditProposal",
    "FullProposal",
    "ParagraphEdit",
    "PatchProposal",
]
