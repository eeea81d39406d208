"""Prompt assembly for drafting, refining and revising passages."""

from typing import Optional, Sequence

from .models.generation import Generation, GenerationParams

REVISION_SYSTEM_INSTRUCTION = """You are an expert writing assistant specializing in proposing edits based on user requests and provided context.

IMPORTANT: Respond ONLY with a valid JSON object. Do NOT include any text outside this JSON object.
The JSON object must have a "mode" field and an "explanation" field, and one of these shapes:
- {"mode": "patch", "explanation": "...", "edits": [{"paragraphIndex": N, "oldText": "...", "newText": "..."}]}
  Use this to change specific paragraphs. N is the number shown in [Paragraph N]; "oldText" must repeat that paragraph's current text exactly; an empty "newText" deletes the paragraph.
- {"mode": "full", "explanation": "...", "text": "..."}
  Use this only when the request rewrites the whole passage.
- {"mode": "clarification", "explanation": "..."}
  Use this if the request is unclear or ambiguous, or if no change is needed.

Guidelines:
- Prefer "patch" edits limited to the paragraphs marked [Paragraph N] when the user selected paragraphs.
- Keep the established voice and style of the passage.
"""

DRAFT_SYSTEM_INSTRUCTION = (
    "You are a skilled fiction writer. Write only the requested story text, "
    "without headings, commentary or notes."
)


def _quote(text: str) -> str:
    return '"' + text.replace('"', '\\"') + '"'


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    # Cut at the last paragraph break that fits
    cut = text.rfind("\n\n", 0, max_chars)
    if cut < max_chars // 2:
        cut = max_chars
    return text[:cut].rstrip() + "\n[...]"


def build_revision_prompt(request, max_story_chars: int = 20000) -> str:
    """User turn for a revision request: the request followed by its context blocks."""
    parts = [request.user_request.strip() or "Revise the selected paragraphs."]

    if request.prior_history:
        feedback = [t.iteration_feedback for t in request.prior_history if t.iteration_feedback]
        if feedback:
            parts.append(
                "Earlier revision requests for this passage, oldest first:\n"
                + "\n".join(f"- {f}" for f in feedback)
            )

    if request.selected_paragraphs:
        noun = "paragraph was" if len(request.selected_paragraphs) == 1 else "paragraphs were"
        parts.append(
            f"The following {noun} specifically selected for context (marked [Paragraph N]):\n"
            + "\n".join(f"[Paragraph {e.index}] {_quote(e.text)}" for e in request.selected_paragraphs)
        )

    selected = {e.index for e in request.selected_paragraphs}
    neighbours = [e for e in request.context_window if e.index not in selected]
    if neighbours:
        parts.append(
            "Surrounding paragraphs, for continuity only:\n"
            + "\n".join(f"[Paragraph {e.index}] {_quote(e.text)}" for e in neighbours)
        )

    if request.highlights:
        parts.append(
            "The user also highlighted the following text selection(s) for general context:\n"
            + "\n".join(f"- {_quote(h)}" for h in request.highlights)
        )

    if request.accepted_text:
        parts.append(
            "Full Story Context for reference:\n--- START STORY CONTEXT ---\n"
            + _truncate(request.accepted_text, max_story_chars)
            + "\n--- END STORY CONTEXT ---"
        )

    return "\n\n".join(parts)


def _placement(chapter_number: Optional[int], part_number: Optional[int]) -> str:
    if chapter_number and part_number:
        return f" This is part {part_number} of Chapter {chapter_number}."
    if chapter_number:
        return f" This is Chapter {chapter_number}."
    return ""


def build_draft_prompt(params: GenerationParams) -> str:
    """Prompt for a new passage from synopsis, style note and target length."""
    prompt = f"Write a story based on the following synopsis.\n\nSynopsis:\n{params.synopsis.strip()}"
    if params.style_note:
        prompt += f"\n\nStyle Note:\n{params.style_note.strip()}"
    placement = _placement(params.chapter_number, params.part_number)
    if placement:
        prompt += "\n\n" + placement.strip()
    if params.requested_length:
        prompt += f"\n\nAim for a length of approximately {params.requested_length} words."
    return prompt + "\n\nStory:"


def build_refinement_prompt(parent: Generation, feedback: str) -> str:
    """Prompt for a full rewrite of ``parent`` guided by feedback."""
    context = "Refine the previous story segment based on the following feedback."
    if parent.style_note:
        context += f" Maintain the established style (Style Note: {parent.style_note.strip()})."
    context += _placement(parent.chapter_number, parent.part_number)
    if parent.synopsis:
        context += f" Synopsis: {parent.synopsis.strip()}."
    if parent.requested_length:
        context += f" Aim for a length of approximately {parent.requested_length} words."
    return (
        f"{context}\n\nPrevious Story Segment:\n{parent.generated_text}"
        f"\n\nFeedback:\n{feedback.strip()}\n\nRefined Story Segment:"
    )


def describe_history(path: Sequence[Generation]) -> str:
    """One line per generation, root first, for display and logs."""
    lines = []
    for depth, g in enumerate(path):
        marker = "*" if g.is_accepted else " "
        note = g.iteration_feedback or g.synopsis or ""
        lines.append(f"{marker} {'  ' * depth}{g.id[:8]} [{g.status.value}] {note}".rstrip())
    return "\n".join(lines)
