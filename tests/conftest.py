"""Shared fixtures."""

import pytest

from story_reviser.lineage import InMemoryGenerationStore, RevisionLineage
from story_reviser.models.generation import GenerationParams


SAMPLE_STORY = """The old library stood at the corner of Elm Street, its weathered brick facade a testament to decades of quiet endurance.

Sarah pushed open the heavy oak door and stepped inside. The familiar scent of old paper greeted her like an old friend.

"Good morning, Sarah," called Mrs. Henderson from behind the circulation desk. "Looking for anything special today?"

"Just browsing," Sarah replied with a smile. But she had found something last week: a hidden room behind the reference section."""


@pytest.fixture
def sample_story():
    return SAMPLE_STORY


@pytest.fixture
def lineage():
    return RevisionLineage(InMemoryGenerationStore())


@pytest.fixture
def root(lineage, sample_story):
    return lineage.create_root(
        GenerationParams(
            generated_text=sample_story,
            synopsis="Sarah discovers a hidden room in the town library.",
            style_note="Quiet, observant third person.",
            requested_length=200,
        )
    )
