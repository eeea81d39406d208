import asyncio
import json
import threading
from unittest.mock import MagicMock

import pytest

from story_reviser.config import RevisionConfig
from story_reviser.errors import (
    EmptyRequestError,
    GenerationUnavailableError,
    MalformedProposalError,
    PatchConflictError,
    ValidationError,
)
from story_reviser.generation.base import GenerationCollaborator
from story_reviser.models.generation import GenerationParams
from story_reviser.models.proposal import ClarificationProposal, FullProposal, PatchProposal
from story_reviser.orchestrator import RevisionOrchestrator
from story_reviser.processing.paragraphs import ParagraphIndexer
from story_reviser.session import ContextSelection, ContextSelectionSession


def _patch_json(index, old, new, explanation="Tightened the prose."):
    return json.dumps({
        "mode": "patch",
        "explanation": explanation,
        "edits": [{"paragraphIndex": index, "oldText": old, "newText": new}],
    })


@pytest.fixture
def collaborator():
    return MagicMock(spec=GenerationCollaborator)


@pytest.fixture
def orchestrator(collaborator, lineage):
    config = RevisionConfig(max_attempts=3, backoff_min=0, backoff_max=0, context_radius=1)
    return RevisionOrchestrator(collaborator, lineage, config)


@pytest.fixture
def paragraphs(sample_story):
    return ParagraphIndexer().index(sample_story)


def _select(generation_id, *paragraphs):
    session = ContextSelectionSession(generation_id)
    for p in paragraphs:
        session.add(p)
    return session


# ---------------------------------------------------------------------------
# Building requests
# ---------------------------------------------------------------------------

def test_empty_request_never_reaches_collaborator(orchestrator, collaborator, sample_story):
    with pytest.raises(EmptyRequestError):
        orchestrator.request_revision(sample_story, ContextSelection(), "   ")

    collaborator.propose.assert_not_called()


def test_selection_alone_is_enough(orchestrator, collaborator, root, paragraphs):
    collaborator.propose.return_value = _patch_json(1, paragraphs[1].text, "Sarah slipped inside.")
    selection = _select(root.id, paragraphs[1]).freeze()

    proposal = orchestrator.request_revision(root.generated_text, selection, "", root.id)

    assert isinstance(proposal, PatchProposal)
    request = collaborator.propose.call_args.args[0]
    assert request.user_request == ""
    assert [e.index for e in request.selected_paragraphs] == [1]


def test_request_carries_context_window_and_history(orchestrator, collaborator, lineage, root, paragraphs):
    child = lineage.create_child(
        root.id, GenerationParams(generated_text=root.generated_text, iteration_feedback="Warmer tone.")
    )
    collaborator.propose.return_value = {"mode": "clarification", "explanation": "Which part?"}
    selection = _select(child.id, paragraphs[2]).freeze()

    orchestrator.request_revision(child.generated_text, selection, "Shorter", child.id)

    request = collaborator.propose.call_args.args[0]
    assert request.user_request == "Shorter"
    assert [e.index for e in request.context_window] == [1, 2, 3]
    assert [t.generation_id for t in request.prior_history] == [root.id, child.id]
    assert request.prior_history[-1].iteration_feedback == "Warmer tone."


def test_context_window_is_clamped(orchestrator, paragraphs, sample_story):
    selection = _select(None, paragraphs[0]).freeze()

    request = orchestrator.build_request(sample_story, selection, "")

    assert [e.index for e in request.context_window] == [0, 1]


def test_selection_from_other_generation_is_refused(orchestrator, root, paragraphs):
    selection = _select("another-generation", paragraphs[0]).freeze()

    with pytest.raises(ValidationError):
        orchestrator.build_request(root.generated_text, selection, "Fix it", root.id)


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------

def test_malformed_answer_is_retried(orchestrator, collaborator, sample_story):
    collaborator.propose.side_effect = [
        "I think the story is lovely!",
        json.dumps({"mode": "full", "text": "New story.", "explanation": "Rewrote it."}),
    ]

    proposal = orchestrator.request_revision(sample_story, ContextSelection(), "Rewrite it")

    assert isinstance(proposal, FullProposal)
    assert collaborator.propose.call_count == 2


def test_collaborator_failure_is_reported_after_retries(orchestrator, collaborator, sample_story):
    collaborator.propose.side_effect = ConnectionError("network down")

    with pytest.raises(GenerationUnavailableError):
        orchestrator.request_revision(sample_story, ContextSelection(), "Rewrite it")

    assert collaborator.propose.call_count == 3


def test_persistent_malformed_answer(orchestrator, collaborator, sample_story):
    collaborator.propose.return_value = '{"mode": "patch", "edits": []}'

    with pytest.raises(MalformedProposalError):
        orchestrator.request_revision(sample_story, ContextSelection(), "Rewrite it")

    assert collaborator.propose.call_count == 3


def test_async_request(orchestrator, collaborator, sample_story):
    collaborator.propose.return_value = {"mode": "clarification", "explanation": "Which scene?"}

    proposal = asyncio.run(
        orchestrator.arequest_revision(sample_story, ContextSelection(), "Make it better")
    )

    assert isinstance(proposal, ClarificationProposal)


def test_cancelled_async_request_leaves_state_alone(orchestrator, collaborator, lineage, root, paragraphs):
    started = threading.Event()
    release = threading.Event()

    def blocking_propose(request):
        started.set()
        release.wait(5)
        return {"mode": "full", "text": "Too late.", "explanation": ""}

    collaborator.propose.side_effect = blocking_propose
    session = _select(root.id, paragraphs[1])
    session.add_highlight("oak door")

    async def cancel_while_pending():
        task = asyncio.ensure_future(
            orchestrator.arequest_from_session(session, root.generated_text, "Fix it")
        )
        await asyncio.to_thread(started.wait, 5)
        task.cancel()
        try:
            with pytest.raises(asyncio.CancelledError):
                await task
        finally:
            release.set()

    asyncio.run(cancel_while_pending())

    assert collaborator.propose.call_count == 1
    assert 1 in session
    assert session.highlights == ("oak door",)
    assert [g.id for g in lineage.recent()] == [root.id]
    assert not lineage.get(root.id).is_accepted


def test_async_session_request_clears_pins(orchestrator, collaborator, root, paragraphs):
    collaborator.propose.return_value = {"mode": "clarification", "explanation": "Which part?"}
    session = _select(root.id, paragraphs[0])

    asyncio.run(orchestrator.arequest_from_session(session, root.generated_text, "Fix"))

    assert session.is_empty


# ---------------------------------------------------------------------------
# Session handling
# ---------------------------------------------------------------------------

def test_session_cleared_after_success(orchestrator, collaborator, root, paragraphs):
    collaborator.propose.return_value = {"mode": "clarification", "explanation": "Which part?"}
    session = _select(root.id, paragraphs[0])

    orchestrator.request_from_session(session, root.generated_text, "Fix")

    assert session.is_empty


def test_session_kept_after_failure(orchestrator, collaborator, root, paragraphs):
    collaborator.propose.side_effect = RuntimeError("boom")
    session = _select(root.id, paragraphs[0])

    with pytest.raises(GenerationUnavailableError):
        orchestrator.request_from_session(session, root.generated_text, "Fix")

    assert 0 in session


# ---------------------------------------------------------------------------
# Review and commit
# ---------------------------------------------------------------------------

def test_review_does_not_store(orchestrator, lineage, root, paragraphs):
    proposal = PatchProposal.model_validate(
        json.loads(_patch_json(1, paragraphs[1].text, "Sarah slipped inside."))
    )

    review = orchestrator.review(proposal, root.generated_text)

    assert review.changed
    assert "Sarah slipped inside." in review.result_text
    assert len(lineage.recent()) == 1


def test_commit_creates_child(orchestrator, lineage, root, paragraphs):
    proposal = PatchProposal.model_validate(
        json.loads(_patch_json(1, paragraphs[1].text, "Sarah slipped inside."))
    )

    child = orchestrator.commit(root.id, proposal, feedback="Shorter second paragraph", accept=True)

    assert child.parent_id == root.id
    assert child.iteration_feedback == "Shorter second paragraph"
    assert ParagraphIndexer().index(child.generated_text)[1].text == "Sarah slipped inside."
    assert lineage.accepted(root.id).id == child.id


def test_commit_uses_explanation_as_feedback(orchestrator, root):
    child = orchestrator.commit(root.id, FullProposal(text="Short story.", explanation="Condensed."))

    assert child.iteration_feedback == "Condensed."
    assert not child.is_accepted


def test_commit_stale_patch_stores_nothing(orchestrator, lineage, root):
    proposal = PatchProposal.model_validate(json.loads(_patch_json(0, "Not the text.", "New.")))

    with pytest.raises(PatchConflictError):
        orchestrator.commit(root.id, proposal)

    assert lineage.children(root.id) == []


def test_commit_clarification_is_refused(orchestrator, root):
    with pytest.raises(ValidationError):
        orchestrator.commit(root.id, ClarificationProposal(explanation="Which part?"))


# ---------------------------------------------------------------------------
# Drafting
# ---------------------------------------------------------------------------

def test_draft_creates_root(orchestrator, collaborator):
    collaborator.draft.return_value = "  A fresh story.\n"

    generation = orchestrator.draft(GenerationParams(synopsis="A lighthouse keeper", requested_length=300))

    assert generation.is_root
    assert generation.generated_text == "A fresh story."
    assert "A lighthouse keeper" in generation.prompt
    assert "300 words" in generation.prompt


def test_draft_requires_synopsis(orchestrator, collaborator):
    with pytest.raises(ValidationError):
        orchestrator.draft(GenerationParams(synopsis=" "))

    collaborator.draft.assert_not_called()


def test_draft_retries_empty_text(orchestrator, collaborator):
    collaborator.draft.side_effect = ["", "Second try."]

    generation = orchestrator.draft(GenerationParams(synopsis="S"))

    assert generation.generated_text == "Second try."


def test_refine_creates_child(orchestrator, collaborator, root):
    collaborator.draft.return_value = "A refined story."

    child = orchestrator.refine(root.id, "  More dialogue. ")

    assert child.parent_id == root.id
    assert child.iteration_feedback == "More dialogue."
    assert root.generated_text in child.prompt
    assert child.synopsis == root.synopsis


def test_refine_requires_feedback(orchestrator, root):
    with pytest.raises(ValidationError):
        orchestrator.refine(root.id, "")
