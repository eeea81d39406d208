"""Parse edit proposals and apply them to a base text."""

from typing import Any, Dict, List, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from ..errors import MalformedProposalError, PatchConflictError, StaleIndexError
from ..models.proposal import (
    ClarificationProposal,
    EditProposal,
    FullProposal,
    PatchProposal,
    ParagraphEdit,
    proposal_adapter,
)
from ..utils.json_response import parse_json_response
from .paragraphs import Paragraph, ParagraphIndexer

_indexer = ParagraphIndexer()


def parse_proposal(payload: Union[str, Dict[str, Any], EditProposal]) -> EditProposal:
    """
    Validate a collaborator response against the proposal variants.

    Args:
        payload: A proposal model, a decoded JSON dict, or raw model output
            containing a JSON object.

    Raises:
        MalformedProposalError: if the payload is not a full, patch or
            clarification proposal.
    """
    if isinstance(payload, (FullProposal, PatchProposal, ClarificationProposal)):
        return payload

    raw = payload if isinstance(payload, str) else None
    if isinstance(payload, str):
        try:
            payload = parse_json_response(payload)
        except ValueError as e:
            raise MalformedProposalError(str(e), raw=raw) from e

    if not isinstance(payload, dict):
        raise MalformedProposalError(
            f"Proposal must be a JSON object, got {type(payload).__name__}", raw=raw
        )

    try:
        return proposal_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise MalformedProposalError(f"Invalid edit proposal: {e}", raw=raw) from e


def check_edits(edits: List[ParagraphEdit], paragraphs: List[Paragraph]) -> List[StaleIndexError]:
    """Return every edit that does not match ``paragraphs``, in edit order."""
    conflicts = []
    seen = set()
    for edit in edits:
        i = edit.paragraph_index
        if i >= len(paragraphs):
            conflicts.append(
                StaleIndexError(i, f"out of range, text has {len(paragraphs)} paragraphs")
            )
        elif i in seen:
            conflicts.append(StaleIndexError(i, "targeted by more than one edit"))
        elif edit.old_text.strip() != paragraphs[i].text:
            conflicts.append(StaleIndexError(i, "old text does not match the current paragraph"))
        seen.add(i)
    return conflicts


def _apply_patch(proposal: PatchProposal, base_text: str) -> str:
    paragraphs = _indexer.index(base_text)
    conflicts = check_edits(proposal.edits, paragraphs)
    if conflicts:
        logger.warning(
            f"Refusing patch: {len(conflicts)} conflicting edit(s), first at paragraph {conflicts[0].index}"
        )
        raise PatchConflictError(conflicts)

    # new text is trimmed; the base text keeps its own separators
    replacements = {e.paragraph_index: e.new_text.strip() for e in proposal.edits}
    kept = []
    for p in paragraphs:
        content = replacements.get(p.index, p.text)
        if content:
            kept.append((p, content))
    if not kept:
        return ""

    # Original separators are reused: each kept paragraph keeps the one that followed it
    leading = base_text[:paragraphs[0].start]
    trailing = base_text[paragraphs[-1].end:]
    pieces = [leading]
    for position, (p, content) in enumerate(kept):
        pieces.append(content)
        if position + 1 < len(kept):
            pieces.append(base_text[p.end:paragraphs[p.index + 1].start])
    pieces.append(trailing)

    logger.debug(f"Applied {len(proposal.edits)} paragraph edit(s)")
    return "".join(pieces)


def apply_proposal(proposal: EditProposal, base_text: str) -> str:
    """
    Apply a proposal to ``base_text`` and return the resulting text.

    Pure: the base text is never modified. Patch edits are validated as one
    batch against paragraphs recomputed from ``base_text``.

    Raises:
        PatchConflictError: if any patch edit is out of range, duplicated,
            or its old text no longer matches.
    """
    if isinstance(proposal, FullProposal):
        return proposal.text
    if isinstance(proposal, ClarificationProposal):
        return base_text
    return _apply_patch(proposal, base_text)
