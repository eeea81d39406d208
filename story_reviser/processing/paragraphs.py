"""Blank-line paragraph indexing of a text snapshot."""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class Paragraph:
    """A trimmed paragraph of one text snapshot.

    ``start``/``end`` are character offsets of the trimmed text inside the
    snapshot, so ``snapshot[start:end] == text``.
    """

    index: int
    text: str
    start: int
    end: int


class ParagraphIndexer:
    """Split a document into blank-line separated, zero-indexed paragraphs."""

    # A line break followed by one or more whitespace-only lines
    SEPARATOR = re.compile(r"\r?\n(?:[ \t]*\r?\n)+")

    def index(self, text: str) -> List[Paragraph]:
        """
        Index a text snapshot.

        Total and idempotent: any string, including the empty string,
        yields the same list every time.
        """
        if not text:
            return []

        paragraphs = []
        cursor = 0
        for chunk_start, chunk_end in self._chunks(text):
            chunk = text[chunk_start:chunk_end]
            stripped = chunk.strip()
            if not stripped:
                continue
            start = chunk_start + (len(chunk) - len(chunk.lstrip()))
            end = start + len(stripped)
            paragraphs.append(Paragraph(index=cursor, text=stripped, start=start, end=end))
            cursor += 1
        return paragraphs

    def _chunks(self, text: str):
        position = 0
        for match in self.SEPARATOR.finditer(text):
            yield position, match.start()
            position = match.end()
        yield position, len(text)

    def paragraph_at(self, text: str, index: int) -> Optional[Paragraph]:
        paragraphs = self.index(text)
        if 0 <= index < len(paragraphs):
            return paragraphs[index]
        return None


def join(paragraphs: Iterable[Paragraph], separator: str = "\n\n") -> str:
    """Re-join paragraphs with a uniform separator."""
    return separator.join(p.text for p in paragraphs)


_default_indexer = ParagraphIndexer()


def index_paragraphs(text: str) -> List[Paragraph]:
    return _default_indexer.index(text)
