"""The append-only tree of generations and its acceptance rules."""

import sys
from typing import List, Optional

from loguru import logger

from ..errors import ConcurrentUpdateError, InvalidTransitionError, NotFoundError, ValidationError
from ..models.generation import Generation, GenerationParams, GenerationStatus
from ..utils.logger import generation_logger
from .store import BranchSnapshot, GenerationStore, InMemoryGenerationStore

# Parameters a child takes from its parent when the caller leaves them unset
INHERITED_FIELDS = (
    "synopsis",
    "style_note",
    "requested_length",
    "story_id",
    "chapter_number",
    "part_number",
)


class RevisionLineage:
    """
    Tree of generations with branch-exclusive acceptance.

    Every node of a tree (all nodes sharing a root) is one branch for the
    purpose of acceptance: at most one of them is live at a time.
    """

    def __init__(self, store: Optional[GenerationStore] = None, max_commit_attempts: int = 5):
        if max_commit_attempts < 1:
            raise ValueError(f"max_commit_attempts must be >= 1, got {max_commit_attempts}")
        self.store = store if store is not None else InMemoryGenerationStore()
        self.max_commit_attempts = max_commit_attempts

    def get(self, generation_id: str) -> Generation:
        generation = self.store.get(generation_id)
        if generation is None:
            raise NotFoundError(generation_id)
        return generation

    def create_root(self, params: GenerationParams) -> Generation:
        if not params.synopsis or not params.synopsis.strip():
            raise ValidationError("A root generation requires a synopsis")
        if params.iteration_feedback:
            raise ValidationError("Iteration feedback only applies to revisions of a generation")

        fields = params.model_dump()
        generation = Generation(root_id="", **fields)
        generation = generation.model_copy(update={"root_id": generation.id})
        self.store.add(generation)
        generation_logger(generation.id).info(f"Created root generation {generation.id}")
        return generation

    def create_child(self, parent_id: str, params: GenerationParams) -> Generation:
        parent = self.get(parent_id)

        fields = params.model_dump()
        for name in INHERITED_FIELDS:
            if fields[name] is None:
                fields[name] = getattr(parent, name)

        generation = Generation(parent_id=parent.id, root_id=parent.root_id, **fields)
        self.store.add(generation)
        generation_logger(generation.id).info(
            f"Created generation {generation.id} from {parent.id}"
        )
        return generation

    def accept(self, generation_id: str) -> Generation:
        """
        Make ``generation_id`` the live text of its tree.

        The target and every previously accepted node of the same root are
        updated in one compare-and-set commit; a concurrent change to the
        branch makes us re-read and try again.
        """
        for attempt in range(1, self.max_commit_attempts + 1):
            snapshot = self._snapshot_of(generation_id)
            target = self._member(snapshot, generation_id)
            if target.status is GenerationStatus.REJECTED:
                raise InvalidTransitionError(generation_id, target.status.value, "accept")

            updates = []
            for node in snapshot.generations:
                if node.id == target.id:
                    if not node.is_accepted or node.status is not GenerationStatus.ACCEPTED:
                        updates.append(
                            node.model_copy(
                                update={"is_accepted": True, "status": GenerationStatus.ACCEPTED}
                            )
                        )
                elif node.is_accepted:
                    updates.append(node.model_copy(update={"is_accepted": False}))

            if not updates:
                return target

            try:
                self.store.commit_branch(target.root_id, snapshot.version, updates)
            except ConcurrentUpdateError as e:
                logger.debug(f"Accept of {generation_id} raced (attempt {attempt}): {e}")
                continue

            superseded = [u.id for u in updates if u.id != target.id]
            generation_logger(generation_id).success(
                f"Accepted generation {generation_id}"
                + (f", superseding {', '.join(superseded)}" if superseded else "")
            )
            return self.get(generation_id)

        raise ConcurrentUpdateError(
            target.root_id, snapshot.version, self.store.branch(target.root_id).version
        )

    def reject(self, generation_id: str) -> Generation:
        for attempt in range(1, self.max_commit_attempts + 1):
            snapshot = self._snapshot_of(generation_id)
            target = self._member(snapshot, generation_id)
            if target.status is GenerationStatus.REJECTED:
                return target
            if target.status is GenerationStatus.ACCEPTED:
                raise InvalidTransitionError(generation_id, target.status.value, "reject")

            update = target.model_copy(
                update={"status": GenerationStatus.REJECTED, "is_accepted": False}
            )
            try:
                self.store.commit_branch(target.root_id, snapshot.version, [update])
            except ConcurrentUpdateError as e:
                logger.debug(f"Reject of {generation_id} raced (attempt {attempt}): {e}")
                continue

            generation_logger(generation_id).info(f"Rejected generation {generation_id}")
            return update

        raise ConcurrentUpdateError(
            target.root_id, snapshot.version, self.store.branch(target.root_id).version
        )

    def _snapshot_of(self, generation_id: str) -> BranchSnapshot:
        return self.store.branch(self.get(generation_id).root_id)

    @staticmethod
    def _member(snapshot: BranchSnapshot, generation_id: str) -> Generation:
        for node in snapshot.generations:
            if node.id == generation_id:
                return node
        raise NotFoundError(generation_id)

    def history(self, generation_id: str) -> List[Generation]:
        """Generations from the root down to ``generation_id``."""
        path = []
        current: Optional[Generation] = self.get(generation_id)
        while current is not None:
            path.append(current)
            if current.parent_id is None:
                break
            current = self.store.get(current.parent_id)
            if current is None:
                raise NotFoundError(path[-1].parent_id, what="Ancestor generation")
        path.reverse()
        return path

    def children(self, generation_id: str) -> List[Generation]:
        self.get(generation_id)
        return self.store.children(generation_id)

    def branch(self, root_id: str) -> List[Generation]:
        return list(self.store.branch(root_id).generations)

    def accepted(self, root_id: str) -> Optional[Generation]:
        for node in self.store.branch(root_id).generations:
            if node.is_accepted:
                return node
        return None

    def recent(self, limit: int = 20) -> List[Generation]:
        return self.store.recent(limit)

    def resolve(self, id_or_prefix: str) -> Generation:
        """Look a generation up by full id or by an unambiguous id prefix."""
        generation = self.store.get(id_or_prefix)
        if generation is not None:
            return generation
        matches = [g for g in self.store.recent(limit=sys.maxsize) if g.id.startswith(id_or_prefix)]
        if not matches:
            raise NotFoundError(id_or_prefix)
        if len(matches) > 1:
            raise ValidationError(
                f"Id prefix {id_or_prefix!r} matches {len(matches)} generations; use more characters"
            )
        return matches[0]
