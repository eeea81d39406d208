"""Contract with the external text-generation collaborator."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..models.generation import Generation
from ..models.proposal import EditProposal
from ..session import ContextEntry


class HistoryTurn(BaseModel):
    """One ancestor of the generation under revision."""
    model_config = ConfigDict(frozen=True)

    generation_id: str
    prompt: Optional[str] = None
    iteration_feedback: Optional[str] = None
    is_accepted: bool = False
    created_at: datetime

    @classmethod
    def from_generation(cls, generation: Generation) -> "HistoryTurn":
        return cls(
            generation_id=generation.id,
            prompt=generation.prompt,
            iteration_feedback=generation.iteration_feedback,
            is_accepted=generation.is_accepted,
            created_at=generation.created_at,
        )


class RevisionRequest(BaseModel):
    """Everything the collaborator sees for one revision request."""
    model_config = ConfigDict(frozen=True)

    accepted_text: str
    user_request: str = ""
    selected_paragraphs: List[ContextEntry] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    context_window: List[ContextEntry] = Field(default_factory=list)
    prior_history: List[HistoryTurn] = Field(default_factory=list)
    generation_id: Optional[str] = None


class GenerationCollaborator(ABC):
    """
    Opaque text generator.

    Implementations may raise anything on failure; the orchestrator reports
    it as GenerationUnavailableError.
    """

    @abstractmethod
    def propose(self, request: RevisionRequest) -> Union[str, Dict[str, Any], EditProposal]:
        """Return an edit proposal, as a model, a decoded dict or raw JSON text."""

    @abstractmethod
    def draft(self, prompt: str) -> str:
        """Return freshly generated passage text for a fully assembled prompt."""
