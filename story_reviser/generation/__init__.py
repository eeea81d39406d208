from .base import GenerationCollaborator, HistoryTurn, RevisionRequest
from .gemini import GeminiCollaborator

__all__ = [
    "GenerationCollaborator",
    "HistoryTurn",
    "RevisionRequest",
    "GeminiCollaborator",
]
