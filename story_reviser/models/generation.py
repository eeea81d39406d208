"""Generation records: the nodes of the revision lineage."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class GenerationStatus(str, Enum):
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class GenerationParams(BaseModel):
    """Caller-supplied fields for a new generation.

    Structural ids are only checked for well-formedness; the story and
    chapter entities themselves live elsewhere.
    """

    generated_text: str = ""
    synopsis: Optional[str] = None
    style_note: Optional[str] = None
    requested_length: Optional[int] = Field(default=None, gt=0)
    story_id: Optional[uuid.UUID] = None
    chapter_number: Optional[int] = Field(default=None, ge=1)
    part_number: Optional[int] = Field(default=None, ge=1)
    prompt: Optional[str] = None
    iteration_feedback: Optional[str] = None


class Generation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    parent_id: Optional[str] = None
    root_id: str
    story_id: Optional[uuid.UUID] = None
    chapter_number: Optional[int] = None
    part_number: Optional[int] = None
    synopsis: Optional[str] = None
    style_note: Optional[str] = None
    requested_length: Optional[int] = None
    prompt: Optional[str] = None
    generated_text: str = ""
    iteration_feedback: Optional[str] = None
    status: GenerationStatus = GenerationStatus.PROPOSED
    is_accepted: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def summary(self, width: int = 60) -> str:
        text = " ".join(self.generated_text.split())
        return text if len(text) <= width else text[:width - 3] + "..."
