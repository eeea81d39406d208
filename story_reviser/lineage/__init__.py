from .lineage import RevisionLineage
from .store import BranchSnapshot, GenerationStore, InMemoryGenerationStore, JsonGenerationStore

__all__ = [
    "RevisionLineage",
    "BranchSnapshot",
    "GenerationStore",
    "InMemoryGenerationStore",
    "JsonGenerationStore",
]
