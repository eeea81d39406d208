"""Minimal edit scripts between two text versions for proposal review."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Sequence

from loguru import logger


class ChangeKind(str, Enum):
    UNCHANGED = "unchanged"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class DiffSegment:
    kind: ChangeKind
    content: str


@dataclass(frozen=True)
class DiffStats:
    added_chars: int = 0
    removed_chars: int = 0
    unchanged_chars: int = 0
    added_segments: int = 0
    removed_segments: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added_segments or self.removed_segments)


def _line_tokens(text: str) -> List[str]:
    return text.splitlines(keepends=True)


# Separators stay attached to the paragraph before them so tokens concatenate back losslessly
_PARAGRAPH_TOKEN = re.compile(r".*?(?:\r?\n(?:[ \t]*\r?\n)+|\Z)", re.DOTALL)
_WORD_TOKEN = re.compile(r"\s+|\S+")


def _paragraph_tokens(text: str) -> List[str]:
    return [t for t in _PARAGRAPH_TOKEN.findall(text) if t]


def _word_tokens(text: str) -> List[str]:
    return _WORD_TOKEN.findall(text)


TOKENIZERS: Dict[str, Callable[[str], List[str]]] = {
    "line": _line_tokens,
    "paragraph": _paragraph_tokens,
    "word": _word_tokens,
}


class DiffEngine:
    """LCS-based diff at a fixed token granularity.

    Within a change hunk removals always come before additions, and adjacent
    segments of the same kind are merged, so a given pair of texts always
    yields the same script.
    """

    def __init__(self, granularity: str = "line"):
        if granularity not in TOKENIZERS:
            raise ValueError(
                f"Unknown diff granularity {granularity!r}; expected one of {sorted(TOKENIZERS)}"
            )
        self.granularity = granularity
        self._tokenize = TOKENIZERS[granularity]

    def diff(self, before: str, after: str) -> List[DiffSegment]:
        a = self._tokenize(before)
        b = self._tokenize(after)

        # Common prefix and suffix never take part in the LCS table
        prefix = 0
        while prefix < len(a) and prefix < len(b) and a[prefix] == b[prefix]:
            prefix += 1
        suffix = 0
        while (
            suffix < len(a) - prefix
            and suffix < len(b) - prefix
            and a[len(a) - 1 - suffix] == b[len(b) - 1 - suffix]
        ):
            suffix += 1

        ops = [(ChangeKind.UNCHANGED, t) for t in a[:prefix]]
        ops.extend(self._lcs_script(a[prefix:len(a) - suffix], b[prefix:len(b) - suffix]))
        ops.extend((ChangeKind.UNCHANGED, t) for t in a[len(a) - suffix:])

        segments = _merge(ops)
        logger.debug(
            f"Diffed {len(a)} -> {len(b)} {self.granularity} tokens into {len(segments)} segments"
        )
        return segments

    @staticmethod
    def _lcs_script(a: Sequence[str], b: Sequence[str]):
        n, m = len(a), len(b)
        if n == 0:
            return [(ChangeKind.ADDED, t) for t in b]
        if m == 0:
            return [(ChangeKind.REMOVED, t) for t in a]

        # lengths[i][j] = LCS length of a[i:] and b[j:]
        lengths = [[0] * (m + 1) for _ in range(n + 1)]
        for i in range(n - 1, -1, -1):
            row, below = lengths[i], lengths[i + 1]
            for j in range(m - 1, -1, -1):
                if a[i] == b[j]:
                    row[j] = below[j + 1] + 1
                else:
                    row[j] = below[j] if below[j] >= row[j + 1] else row[j + 1]

        ops = []
        i = j = 0
        while i < n and j < m:
            if a[i] == b[j]:
                ops.append((ChangeKind.UNCHANGED, a[i]))
                i += 1
                j += 1
            elif lengths[i + 1][j] >= lengths[i][j + 1]:
                ops.append((ChangeKind.REMOVED, a[i]))
                i += 1
            else:
                ops.append((ChangeKind.ADDED, b[j]))
                j += 1
        ops.extend((ChangeKind.REMOVED, t) for t in a[i:])
        ops.extend((ChangeKind.ADDED, t) for t in b[j:])
        return _order_hunks(ops)


def _order_hunks(ops):
    """Within each run of changes, move removals ahead of additions."""
    ordered = []
    removed, added = [], []
    for kind, token in ops:
        if kind is ChangeKind.UNCHANGED:
            ordered.extend(removed)
            ordered.extend(added)
            removed, added = [], []
            ordered.append((kind, token))
        elif kind is ChangeKind.REMOVED:
            removed.append((kind, token))
        else:
            added.append((kind, token))
    ordered.extend(removed)
    ordered.extend(added)
    return ordered


def _merge(ops) -> List[DiffSegment]:
    segments: List[DiffSegment] = []
    for kind, token in ops:
        if segments and segments[-1].kind is kind:
            segments[-1] = DiffSegment(kind, segments[-1].content + token)
        else:
            segments.append(DiffSegment(kind, token))
    return segments


def before_text(segments: Sequence[DiffSegment]) -> str:
    return "".join(s.content for s in segments if s.kind is not ChangeKind.ADDED)


def after_text(segments: Sequence[DiffSegment]) -> str:
    return "".join(s.content for s in segments if s.kind is not ChangeKind.REMOVED)


def has_changes(segments: Sequence[DiffSegment]) -> bool:
    return any(s.kind is not ChangeKind.UNCHANGED for s in segments)


def diff_stats(segments: Sequence[DiffSegment]) -> DiffStats:
    counts = {kind: [0, 0] for kind in ChangeKind}
    for s in segments:
        counts[s.kind][0] += len(s.content)
        counts[s.kind][1] += 1
    return DiffStats(
        added_chars=counts[ChangeKind.ADDED][0],
        removed_chars=counts[ChangeKind.REMOVED][0],
        unchanged_chars=counts[ChangeKind.UNCHANGED][0],
        added_segments=counts[ChangeKind.ADDED][1],
        removed_segments=counts[ChangeKind.REMOVED][1],
    )


def render_unified(segments: Sequence[DiffSegment]) -> str:
    """Plain-text rendering: every line prefixed with '+', '-' or ' '."""
    prefixes = {ChangeKind.UNCHANGED: "  ", ChangeKind.ADDED: "+ ", ChangeKind.REMOVED: "- "}
    lines = []
    for s in segments:
        for line in s.content.splitlines():
            lines.append(prefixes[s.kind] + line)
    return "\n".join(lines)
