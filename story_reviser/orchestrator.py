"""Request, review and commit revisions."""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from loguru import logger
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import RevisionConfig
from .errors import (
    RETRYABLE_ERRORS,
    EmptyRequestError,
    GenerationUnavailableError,
    StoryReviserError,
    ValidationError,
)
from .generation.base import GenerationCollaborator, HistoryTurn, RevisionRequest
from .lineage.lineage import RevisionLineage
from .models.generation import Generation, GenerationParams
from .models.proposal import ClarificationProposal, EditProposal
from .processing.diff import DiffEngine, DiffSegment, DiffStats, diff_stats
from .processing.paragraphs import ParagraphIndexer
from .processing.patch import apply_proposal, parse_proposal
from .prompts import build_draft_prompt, build_refinement_prompt
from .session import ContextEntry, ContextSelection, ContextSelectionSession


@dataclass(frozen=True)
class Review:
    """A proposal applied to a base text, ready for the accept/reject decision."""

    proposal: EditProposal
    base_text: str
    result_text: str
    segments: List[DiffSegment]
    stats: DiffStats

    @property
    def changed(self) -> bool:
        return self.stats.changed


class RevisionOrchestrator:
    """
    Builds revision requests for the collaborator and turns answers into reviews.

    Requesting and reviewing never touch the lineage; ``commit`` is the only
    step that stores anything.
    """

    def __init__(
        self,
        collaborator: GenerationCollaborator,
        lineage: Optional[RevisionLineage] = None,
        config: Optional[RevisionConfig] = None,
    ):
        self.collaborator = collaborator
        self.lineage = lineage
        self.config = config or RevisionConfig()
        self.indexer = ParagraphIndexer()
        self.diff_engine = DiffEngine(self.config.diff_granularity)

    def build_request(
        self,
        current_accepted_text: str,
        context_selection: ContextSelection,
        user_request: str,
        current_generation_id: Optional[str] = None,
    ) -> RevisionRequest:
        user_request = (user_request or "").strip()
        if not user_request and context_selection.is_empty:
            raise EmptyRequestError("Enter a request or select at least one paragraph")

        if (
            context_selection.generation_id is not None
            and current_generation_id is not None
            and context_selection.generation_id != current_generation_id
        ):
            raise ValidationError(
                f"Selection was made on generation {context_selection.generation_id}, "
                f"not on {current_generation_id}; select the paragraphs again"
            )

        history = []
        if self.lineage is not None and current_generation_id is not None:
            history = [HistoryTurn.from_generation(g) for g in self.lineage.history(current_generation_id)]

        return RevisionRequest(
            accepted_text=current_accepted_text,
            user_request=user_request,
            selected_paragraphs=list(context_selection.paragraphs),
            highlights=list(context_selection.highlights),
            context_window=self._context_window(current_accepted_text, context_selection),
            prior_history=history,
            generation_id=current_generation_id,
        )

    def _context_window(self, text: str, selection: ContextSelection) -> List[ContextEntry]:
        """Selected paragraphs plus their neighbours within ``context_radius``, in order."""
        if not selection.paragraphs:
            return []
        paragraphs = self.indexer.index(text)
        radius = self.config.context_radius
        wanted = set()
        for index in selection.indices:
            wanted.update(range(max(0, index - radius), min(len(paragraphs), index + radius + 1)))
        return [ContextEntry(index=i, text=paragraphs[i].text) for i in sorted(wanted)]

    def request_revision(
        self,
        current_accepted_text: str,
        context_selection: ContextSelection,
        user_request: str,
        current_generation_id: Optional[str] = None,
    ) -> EditProposal:
        """
        Ask the collaborator for a proposal against the accepted text.

        Raises:
            EmptyRequestError: before any collaborator call, if there is
                neither a request nor a selection.
            GenerationUnavailableError, MalformedProposalError: after the
                configured retries are exhausted.
        """
        request = self.build_request(
            current_accepted_text, context_selection, user_request, current_generation_id
        )
        logger.info(
            f"Requesting revision: {len(request.selected_paragraphs)} pinned paragraph(s), "
            f"{len(request.highlights)} highlight(s)"
        )

        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(min=self.config.backoff_min, max=self.config.backoff_max),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=lambda state: logger.warning(
                f"Revision attempt {state.attempt_number} failed: {state.outcome.exception()}. Retrying..."
            ),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                proposal = self._propose_once(request)

        logger.info(f"Received {proposal.mode} proposal")
        return proposal

    def _propose_once(self, request: RevisionRequest) -> EditProposal:
        try:
            raw = self.collaborator.propose(request)
        except StoryReviserError:
            raise
        except Exception as e:
            raise GenerationUnavailableError(f"Generation collaborator failed: {e}") from e
        return parse_proposal(raw)

    async def arequest_revision(
        self,
        current_accepted_text: str,
        context_selection: ContextSelection,
        user_request: str,
        current_generation_id: Optional[str] = None,
    ) -> EditProposal:
        """Async variant; cancelling the awaiting task abandons the request."""
        return await asyncio.to_thread(
            self.request_revision,
            current_accepted_text,
            context_selection,
            user_request,
            current_generation_id,
        )

    def request_from_session(
        self,
        session: ContextSelectionSession,
        current_accepted_text: str,
        user_request: str,
    ) -> EditProposal:
        """Request with the session's pins; they are cleared only once a proposal arrived."""
        proposal = self.request_revision(
            current_accepted_text, session.freeze(), user_request, session.generation_id
        )
        session.clear()
        return proposal

    async def arequest_from_session(
        self,
        session: ContextSelectionSession,
        current_accepted_text: str,
        user_request: str,
    ) -> EditProposal:
        proposal = await self.arequest_revision(
            current_accepted_text, session.freeze(), user_request, session.generation_id
        )
        session.clear()
        return proposal

    def review(self, proposal: EditProposal, base_text: str) -> Review:
        result = apply_proposal(proposal, base_text)
        segments = self.diff_engine.diff(base_text, result)
        return Review(
            proposal=proposal,
            base_text=base_text,
            result_text=result,
            segments=segments,
            stats=diff_stats(segments),
        )

    def _require_lineage(self) -> RevisionLineage:
        if self.lineage is None:
            raise ValidationError("This operation needs a revision lineage")
        return self.lineage

    def commit(
        self,
        parent_id: str,
        proposal: EditProposal,
        feedback: Optional[str] = None,
        accept: bool = False,
        prompt: Optional[str] = None,
    ) -> Generation:
        """
        Store a reviewed proposal as a child of ``parent_id``.

        The proposal is applied to the parent's own text again, so a patch
        computed against another snapshot fails here instead of being stored.
        """
        lineage = self._require_lineage()
        if isinstance(proposal, ClarificationProposal):
            raise ValidationError("A clarification carries no text to commit")

        parent = lineage.get(parent_id)
        result = apply_proposal(proposal, parent.generated_text)
        child = lineage.create_child(
            parent_id,
            GenerationParams(
                generated_text=result,
                iteration_feedback=feedback or proposal.explanation or None,
                prompt=prompt,
            ),
        )
        if accept:
            child = lineage.accept(child.id)
        return child

    def draft(self, params: GenerationParams) -> Generation:
        """Generate a new root passage through the collaborator."""
        lineage = self._require_lineage()
        if not params.synopsis or not params.synopsis.strip():
            raise ValidationError("A root generation requires a synopsis")
        prompt = build_draft_prompt(params)
        text = self._draft_text(prompt)
        return lineage.create_root(
            params.model_copy(update={"generated_text": text, "prompt": prompt})
        )

    def refine(self, parent_id: str, feedback: str) -> Generation:
        """Generate a full rewrite of ``parent_id`` guided by ``feedback``."""
        lineage = self._require_lineage()
        if not feedback or not feedback.strip():
            raise ValidationError("Refinement needs feedback")
        parent = lineage.get(parent_id)
        prompt = build_refinement_prompt(parent, feedback)
        text = self._draft_text(prompt)
        return lineage.create_child(
            parent_id,
            GenerationParams(generated_text=text, prompt=prompt, iteration_feedback=feedback.strip()),
        )

    def _draft_text(self, prompt: str) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(min=self.config.backoff_min, max=self.config.backoff_max),
            retry=retry_if_exception_type(GenerationUnavailableError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                try:
                    text = self.collaborator.draft(prompt)
                except StoryReviserError:
                    raise
                except Exception as e:
                    raise GenerationUnavailableError(f"Generation collaborator failed: {e}") from e
                if not text or not text.strip():
                    raise GenerationUnavailableError("Generation collaborator returned no text")
        return text.strip()
