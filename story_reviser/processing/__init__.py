from .paragraphs import Paragraph, ParagraphIndexer, index_paragraphs, join
from .diff import (
    ChangeKind,
    DiffEngine,
    DiffSegment,
    DiffStats,
    after_text,
    before_text,
    diff_stats,
    has_changes,
    render_unified,
)
from .patch import apply_proposal, parse_proposal

__all__ = [
    "Paragraph",
    "ParagraphIndexer",
    "index_paragraphs",
    "join",
    "ChangeKind",
    "DiffEngine",
    "DiffSegment",
    "DiffStats",
    "after_text",
    "before_text",
    "diff_stats",
    "has_changes",
    "render_unified",
    "apply_proposal",
    "parse_proposal",
]
