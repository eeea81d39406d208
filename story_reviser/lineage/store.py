"""Persistence interface for generation records, with two reference stores."""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from filelock import FileLock
from loguru import logger

from ..errors import ConcurrentUpdateError, NotFoundError, ValidationError
from ..models.generation import Generation

# Fields a stored generation may never change; only status and is_accepted move
IMMUTABLE_FIELDS = (
    "parent_id",
    "root_id",
    "story_id",
    "chapter_number",
    "part_number",
    "synopsis",
    "style_note",
    "requested_length",
    "prompt",
    "generated_text",
    "iteration_feedback",
    "created_at",
)


@dataclass(frozen=True)
class BranchSnapshot:
    """All generations sharing one root, read together with the branch version."""

    root_id: str
    version: int
    generations: Tuple[Generation, ...]


class GenerationStore(ABC):
    """CRUD over generation records plus a versioned, branch-scoped commit."""

    @abstractmethod
    def get(self, generation_id: str) -> Optional[Generation]:
        ...

    @abstractmethod
    def add(self, generation: Generation) -> None:
        """Insert a new record. The branch version of its root is bumped."""

    @abstractmethod
    def branch(self, root_id: str) -> BranchSnapshot:
        ...

    @abstractmethod
    def commit_branch(
        self, root_id: str, expected_version: int, updates: Iterable[Generation]
    ) -> int:
        """
        Replace records of one branch if nobody changed it since ``expected_version``.

        Returns:
            The new branch version.

        Raises:
            ConcurrentUpdateError: if the branch version moved.
        """

    @abstractmethod
    def children(self, parent_id: str) -> List[Generation]:
        ...

    @abstractmethod
    def recent(self, limit: int = 20) -> List[Generation]:
        """Most recently created generations first."""


class InMemoryGenerationStore(GenerationStore):
    def __init__(self):
        self._records: Dict[str, Generation] = {}
        self._versions: Dict[str, int] = {}
        self._lock = threading.RLock()

    def get(self, generation_id: str) -> Optional[Generation]:
        with self._lock:
            return self._records.get(generation_id)

    def add(self, generation: Generation) -> None:
        with self._lock:
            if generation.id in self._records:
                raise ValidationError(f"Generation {generation.id} already exists")
            if generation.parent_id is not None and generation.parent_id not in self._records:
                raise NotFoundError(generation.parent_id, what="Parent generation")
            previous_version = self._versions.get(generation.root_id, 0)
            self._records[generation.id] = generation
            self._versions[generation.root_id] = previous_version + 1
            try:
                self._persist()
            except Exception:
                del self._records[generation.id]
                self._versions[generation.root_id] = previous_version
                raise

    def branch(self, root_id: str) -> BranchSnapshot:
        with self._lock:
            members = tuple(
                sorted(
                    (g for g in self._records.values() if g.root_id == root_id),
                    key=lambda g: g.created_at,
                )
            )
            return BranchSnapshot(root_id, self._versions.get(root_id, 0), members)

    def commit_branch(
        self, root_id: str, expected_version: int, updates: Iterable[Generation]
    ) -> int:
        updates = list(updates)
        with self._lock:
            actual = self._versions.get(root_id, 0)
            if actual != expected_version:
                raise ConcurrentUpdateError(root_id, expected_version, actual)

            for record in updates:
                current = self._records.get(record.id)
                if current is None:
                    raise NotFoundError(record.id)
                if current.root_id != root_id:
                    raise ValidationError(f"Generation {record.id} is not on branch {root_id}")
                for field in IMMUTABLE_FIELDS:
                    if getattr(current, field) != getattr(record, field):
                        raise ValidationError(
                            f"Generation {record.id}: field '{field}' is immutable"
                        )

            # Validated as a whole; now swap every record in one step
            previous = {record.id: self._records[record.id] for record in updates}
            for record in updates:
                self._records[record.id] = record
            self._versions[root_id] = actual + 1
            try:
                self._persist()
            except Exception:
                self._records.update(previous)
                self._versions[root_id] = actual
                raise
            return actual + 1

    def children(self, parent_id: str) -> List[Generation]:
        with self._lock:
            return sorted(
                (g for g in self._records.values() if g.parent_id == parent_id),
                key=lambda g: g.created_at,
            )

    def recent(self, limit: int = 20) -> List[Generation]:
        with self._lock:
            # Later insertions win timestamp ties
            newest_first = reversed(list(self._records.values()))
            ordered = sorted(newest_first, key=lambda g: g.created_at, reverse=True)
            return ordered[:limit]

    def _persist(self) -> None:
        """Hook for durable subclasses; called under the lock after each mutation."""




class JsonGenerationStore(InMemoryGenerationStore):
    """
    Keeps every record in one JSON file, rewritten atomically after each mutation.

    Several processes may share the file. Mutations hold an exclusive lock on
    ``<path>.lock`` and re-read the file first, so the branch version checked
    by ``commit_branch`` is the one on disk. Reads reload the file whenever
    it was replaced since the last load.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._file_lock = FileLock(f"{self.path}.lock")
        self._stamp: Optional[Tuple[int, int, int]] = None
        self._refresh()

    def _file_stamp(self) -> Optional[Tuple[int, int, int]]:
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            return None
        return stat.st_ino, stat.st_mtime_ns, stat.st_size

    def _refresh(self, force: bool = False) -> None:
        """Reload the file if another writer replaced it (always, with ``force``)."""
        stamp = self._file_stamp()
        if stamp is None or (stamp == self._stamp and not force):
            return
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        records = {}
        for item in data.get("generations", []):
            generation = Generation.model_validate(item)
            records[generation.id] = generation
        self._records = records
        self._versions = {k: int(v) for k, v in data.get("versions", {}).items()}
        self._stamp = stamp
        logger.debug(f"Loaded {len(self._records)} generations from {self.path}")

    @contextmanager
    def _exclusive(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, self._file_lock:
            # the stamp can miss a same-size rewrite; under the file lock read it for real
            self._refresh(force=True)
            yield

    def get(self, generation_id: str) -> Optional[Generation]:
        with self._lock:
            self._refresh()
            return super().get(generation_id)

    def branch(self, root_id: str) -> BranchSnapshot:
        with self._lock:
            self._refresh()
            return super().branch(root_id)

    def children(self, parent_id: str) -> List[Generation]:
        with self._lock:
            self._refresh()
            return super().children(parent_id)

    def recent(self, limit: int = 20) -> List[Generation]:
        with self._lock:
            self._refresh()
            return super().recent(limit)

    def add(self, generation: Generation) -> None:
        with self._exclusive():
            super().add(generation)

    def commit_branch(
        self, root_id: str, expected_version: int, updates: Iterable[Generation]
    ) -> int:
        with self._exclusive():
            return super().commit_branch(root_id, expected_version, updates)

    def _persist(self) -> None:
        data = {
            "generations": [
                g.model_dump(mode="json")
                for g in sorted(self._records.values(), key=lambda g: g.created_at)
            ],
            "versions": self._versions,
        }
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self._stamp = self._file_stamp()
