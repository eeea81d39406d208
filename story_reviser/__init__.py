"""Revision lineage and diff-review engine for AI-assisted story writing."""

from .errors import (
    ConcurrentUpdateError,
    EmptyRequestError,
    GenerationUnavailableError,
    InvalidTransitionError,
    MalformedProposalError,
    NotFoundError,
    PatchConflictError,
    StaleIndexError,
    StoryReviserError,
    ValidationError,
)
from .lineage import InMemoryGenerationStore, JsonGenerationStore, RevisionLineage
from .models import (
    ClarificationProposal,
    FullProposal,
    Generation,
    GenerationParams,
    GenerationStatus,
    ParagraphEdit,
    PatchProposal,
)
from .orchestrator import Review, RevisionOrchestrator
from .processing import DiffEngine, ParagraphIndexer, apply_proposal, parse_proposal
from .session import ContextSelection, ContextSelectionSession

__version__ = "0.1.0"

__all__ = [
    "ConcurrentUpdateError",
    "EmptyRequestError",
    "GenerationUnavailableError",
    "InvalidTransitionError",
    "MalformedProposalError",
    "NotFoundError",
    "PatchConflictError",
    "StaleIndexError",
    "StoryReviserError",
    "ValidationError",
    "InMemoryGenerationStore",
    "JsonGenerationStore",
    "RevisionLineage",
    "ClarificationProposal",
    "FullProposal",
    "Generation",
    "GenerationParams",
    "GenerationStatus",
    "ParagraphEdit",
    "PatchProposal",
    "Review",
    "RevisionOrchestrator",
    "DiffEngine",
    "ParagraphIndexer",
    "apply_proposal",
    "parse_proposal",
    "ContextSelection",
    "ContextSelectionSession",
]
