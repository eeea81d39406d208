"""Paragraphs and highlights pinned as context for the next revision request."""

from typing import Dict, List, Optional, Tuple, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .processing.paragraphs import Paragraph


class ContextEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    text: str


class ContextSelection(BaseModel):
    """Immutable selection value handed to the orchestrator."""
    model_config = ConfigDict(frozen=True)

    paragraphs: Tuple[ContextEntry, ...] = ()
    highlights: Tuple[str, ...] = ()
    generation_id: Optional[str] = None

    @field_validator("paragraphs")
    @classmethod
    def _sorted_unique(cls, value):
        by_index = {}
        for entry in value:
            by_index.setdefault(entry.index, entry)
        return tuple(by_index[i] for i in sorted(by_index))

    @property
    def is_empty(self) -> bool:
        return not self.paragraphs and not self.highlights

    @property
    def indices(self) -> List[int]:
        return [entry.index for entry in self.paragraphs]


class ContextSelectionSession:
    """
    Session-scoped pins, keyed by paragraph index.

    Indices only mean something for one text snapshot, so the selection is
    cleared whenever a different generation becomes active.
    """

    def __init__(self, generation_id: Optional[str] = None):
        self.generation_id = generation_id
        self._entries: Dict[int, ContextEntry] = {}
        self._highlights: List[str] = []

    def add(self, paragraph: Union[Paragraph, ContextEntry]) -> None:
        if paragraph.index in self._entries:
            return
        self._entries[paragraph.index] = ContextEntry(index=paragraph.index, text=paragraph.text)

    def remove(self, index: int) -> None:
        self._entries.pop(index, None)

    def toggle(self, paragraph: Union[Paragraph, ContextEntry]) -> bool:
        """Pin or unpin a paragraph; returns True if it is now pinned."""
        if paragraph.index in self._entries:
            self.remove(paragraph.index)
            return False
        self.add(paragraph)
        return True

    def add_highlight(self, text: str) -> None:
        text = text.strip()
        if text and text not in self._highlights:
            self._highlights.append(text)

    def clear(self) -> None:
        self._entries.clear()
        self._highlights.clear()

    def activate(self, generation_id: Optional[str]) -> None:
        if generation_id != self.generation_id:
            if not self.is_empty:
                logger.debug(
                    f"Active generation changed to {generation_id}, dropping {len(self._entries)} pinned paragraph(s)"
                )
            self.clear()
            self.generation_id = generation_id

    def snapshot(self) -> Tuple[ContextEntry, ...]:
        return tuple(self._entries[i] for i in sorted(self._entries))

    @property
    def highlights(self) -> Tuple[str, ...]:
        return tuple(self._highlights)

    @property
    def is_empty(self) -> bool:
        return not self._entries and not self._highlights

    def __contains__(self, index: int) -> bool:
        return index in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def freeze(self) -> ContextSelection:
        return ContextSelection(
            paragraphs=self.snapshot(),
            highlights=self.highlights,
            generation_id=self.generation_id,
        )

    def to_dict(self) -> dict:
        return self.freeze().model_dump()

    @classmethod
    def from_dict(cls, data: dict) -> "ContextSelectionSession":
        selection = ContextSelection.model_validate(data)
        session = cls(generation_id=selection.generation_id)
        for entry in selection.paragraphs:
            session.add(entry)
        for text in selection.highlights:
            session.add_highlight(text)
        return session
