"""Edit proposals returned by the generation collaborator."""

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ParagraphEdit(BaseModel):
    """Replace the text of one paragraph of the base snapshot."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    paragraph_index: int = Field(..., ge=0, alias="paragraphIndex")
    old_text: str = Field(..., alias="oldText")
    # Trimmed on apply, like indexed paragraphs, so the separators around the
    # paragraph stay those of the base text. Empty or blank deletes the paragraph.
    new_text: str = Field(..., alias="newText")


class FullProposal(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["full"] = "full"
    text: str
    explanation: str = ""


class PatchProposal(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: Literal["patch"] = "patch"
    edits: List[ParagraphEdit] = Field(..., min_length=1)
    explanation: str = ""

    @property
    def paragraph_indices(self) -> List[int]:
        return [edit.paragraph_index for edit in self.edits]


class ClarificationProposal(BaseModel):
    """The collaborator asks a question or sees nothing to change."""
    model_config = ConfigDict(frozen=True)

    mode: Literal["clarification"] = "clarification"
    explanation: str = Field(..., min_length=1)


EditProposal = Annotated[
    Union[FullProposal, PatchProposal, ClarificationProposal],
    Field(discriminator="mode"),
]

proposal_adapter = TypeAdapter(EditProposal)
