import json

import pytest

from story_reviser.errors import MalformedProposalError, PatchConflictError, StaleIndexError
from story_reviser.models.proposal import (
    ClarificationProposal,
    FullProposal,
    ParagraphEdit,
    PatchProposal,
)
from story_reviser.processing.paragraphs import index_paragraphs, join
from story_reviser.processing.patch import apply_proposal, parse_proposal


def _patch(*edits):
    return PatchProposal(
        edits=[ParagraphEdit(paragraph_index=i, old_text=old, new_text=new) for i, old, new in edits]
    )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def test_patch_replaces_one_paragraph():
    result = apply_proposal(_patch((1, "Para two.", "Para two revised.")), "Para one.\n\nPara two.")

    assert result == "Para one.\n\nPara two revised."


def test_full_proposal_is_verbatim(sample_story):
    proposal = FullProposal(text="  Entirely new.\n")

    assert apply_proposal(proposal, sample_story) == "  Entirely new.\n"


def test_clarification_leaves_text_unchanged(sample_story):
    proposal = ClarificationProposal(explanation="Which paragraph do you mean?")

    assert apply_proposal(proposal, sample_story) == sample_story


def test_patch_keeps_original_separators():
    base = "Intro.\n\n\n\nMiddle.\n \nEnd.\n"
    result = apply_proposal(_patch((1, "Middle.", "Center.")), base)

    assert result == "Intro.\n\n\n\nCenter.\n \nEnd.\n"


def test_old_text_is_compared_trimmed():
    result = apply_proposal(_patch((0, "  Para one.\n", "First.")), "Para one.\n\nPara two.")

    assert result == "First.\n\nPara two."


def test_multiple_edits_apply_as_batch(sample_story):
    paragraphs = index_paragraphs(sample_story)
    proposal = _patch(
        (0, paragraphs[0].text, "The library was old."),
        (3, paragraphs[3].text, "Sarah smiled."),
    )
    result = index_paragraphs(apply_proposal(proposal, sample_story))

    assert [p.text for p in result] == [
        "The library was old.",
        paragraphs[1].text,
        paragraphs[2].text,
        "Sarah smiled.",
    ]


def test_empty_new_text_deletes_paragraph():
    base = "One.\n\nTwo.\n\nThree."

    assert apply_proposal(_patch((1, "Two.", "")), base) == "One.\n\nThree."
    assert apply_proposal(_patch((2, "Three.", "")), base) == "One.\n\nTwo."
    assert apply_proposal(_patch((0, "One.", "")), base) == "Two.\n\nThree."


def test_deleting_trailing_paragraphs_together():
    base = "One.\n\nTwo.\n\nThree."
    proposal = _patch((1, "Two.", ""), (2, "Three.", ""))

    assert apply_proposal(proposal, base) == "One."


def test_new_text_is_trimmed_and_separators_kept():
    base = "One.\n\n\nTwo.\n\nThree."

    result = apply_proposal(_patch((1, "Two.", "\n\n  Two, revised.  \n\n")), base)

    assert result == "One.\n\n\nTwo, revised.\n\nThree."


def test_blank_new_text_deletes_paragraph():
    assert apply_proposal(_patch((1, "Two.", "  \n ")), "One.\n\nTwo.") == "One."


def test_new_text_may_split_a_paragraph():
    result = apply_proposal(_patch((0, "One.", "One a.\n\nOne b.")), "One.\n\nTwo.")

    assert [p.text for p in index_paragraphs(result)] == ["One a.", "One b.", "Two."]


def test_round_trip_through_join(sample_story):
    normalised = join(index_paragraphs(sample_story))
    paragraphs = index_paragraphs(normalised)
    identity = _patch(*[(p.index, p.text, p.text) for p in paragraphs])

    assert apply_proposal(identity, normalised) == normalised


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------

def test_stale_old_text_fails_and_leaves_base_unchanged(sample_story):
    base = sample_story
    paragraphs = index_paragraphs(base)
    proposal = _patch(
        (0, paragraphs[0].text, "Changed first paragraph."),
        (2, "A version of paragraph two that no longer exists.", "Whatever."),
    )

    with pytest.raises(PatchConflictError) as excinfo:
        apply_proposal(proposal, base)

    assert excinfo.value.index == 2
    assert base == sample_story


def test_out_of_range_index():
    with pytest.raises(PatchConflictError) as excinfo:
        apply_proposal(_patch((5, "Ghost.", "Still a ghost.")), "Para one.\n\nPara two.")

    assert excinfo.value.index == 5
    assert isinstance(excinfo.value, StaleIndexError)
    assert "out of range" in excinfo.value.conflicts[0].reason


def test_first_conflict_is_named():
    proposal = _patch((1, "wrong", "x"), (0, "also wrong", "y"))

    with pytest.raises(PatchConflictError) as excinfo:
        apply_proposal(proposal, "Para one.\n\nPara two.")

    assert excinfo.value.index == 1
    assert [c.index for c in excinfo.value.conflicts] == [1, 0]


def test_duplicate_paragraph_edits_conflict():
    proposal = _patch((0, "Para one.", "A"), (0, "Para one.", "B"))

    with pytest.raises(PatchConflictError) as excinfo:
        apply_proposal(proposal, "Para one.\n\nPara two.")

    assert excinfo.value.index == 0


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_parse_camel_case_patch():
    proposal = parse_proposal({
        "mode": "patch",
        "explanation": "Tightened the prose.",
        "edits": [{"paragraphIndex": 1, "oldText": "Para two.", "newText": "Para two revised."}],
    })

    assert isinstance(proposal, PatchProposal)
    assert proposal.paragraph_indices == [1]
    assert proposal.edits[0].new_text == "Para two revised."


def test_parse_snake_case_patch():
    proposal = parse_proposal({
        "mode": "patch",
        "edits": [{"paragraph_index": 0, "old_text": "a", "new_text": "b"}],
    })

    assert proposal.edits[0].paragraph_index == 0


def test_parse_fenced_json_from_model_output():
    raw = 'Here you go:\n```json\n' + json.dumps({"mode": "full", "text": "New."}) + '\n```'
    proposal = parse_proposal(raw)

    assert isinstance(proposal, FullProposal)
    assert proposal.text == "New."


def test_parse_json_embedded_in_prose():
    proposal = parse_proposal('Sure. {"mode": "clarification", "explanation": "Which scene?"} Thanks')

    assert isinstance(proposal, ClarificationProposal)


def test_parse_passes_models_through():
    proposal = FullProposal(text="x")

    assert parse_proposal(proposal) is proposal


@pytest.mark.parametrize("payload", [
    {"text": "no mode"},
    {"mode": "replace_all", "text": "unknown mode"},
    {"mode": "full"},
    {"mode": "patch", "edits": []},
    {"mode": "patch", "edits": [{"paragraphIndex": -1, "oldText": "a", "newText": "b"}]},
    {"mode": "patch", "edits": [{"paragraphIndex": 0, "newText": "b"}]},
    {"mode": "clarification", "explanation": ""},
    "not json at all",
    "[1, 2, 3]",
])
def test_malformed_proposals(payload):
    with pytest.raises(MalformedProposalError):
        parse_proposal(payload)
