"""Error taxonomy for lineage, proposal and collaborator failures."""

from typing import List, Optional


class StoryReviserError(Exception):
    """Base class for every error raised by story_reviser."""


class ValidationError(StoryReviserError):
    """Malformed or missing required input. Correctable by the user, not retryable as-is."""


class InvalidTransitionError(ValidationError):
    """A generation's decision (accepted/rejected) cannot change that way."""

    def __init__(self, generation_id: str, status: str, action: str):
        self.generation_id = generation_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} generation {generation_id}: it is already {status}")


class EmptyRequestError(ValidationError):
    """A revision request carries neither a request text nor a selection."""


class NotFoundError(StoryReviserError):
    def __init__(self, generation_id: str, what: str = "Generation"):
        self.generation_id = generation_id
        super().__init__(f"{what} {generation_id} not found")


class StaleIndexError(StoryReviserError):
    """A paragraph edit no longer matches the text it is applied to."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Paragraph {index}: {reason}")


class PatchConflictError(StaleIndexError):
    """A patch batch was refused; ``index`` is the first conflicting paragraph."""

    def __init__(self, conflicts: List[StaleIndexError]):
        self.conflicts = list(conflicts)
        first = self.conflicts[0]
        self.index = first.index
        self.reason = first.reason
        Exception.__init__(
            self,
            f"Patch conflicts at paragraph {first.index} ({first.reason}); "
            f"{len(self.conflicts)} conflicting edit(s), nothing applied",
        )


class MalformedProposalError(StoryReviserError):
    """The collaborator answered with something that is not a valid edit proposal."""

    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message)


class GenerationUnavailableError(StoryReviserError):
    """The generation collaborator failed or could not be reached."""


class ConcurrentUpdateError(StoryReviserError):
    """A branch changed between read and commit."""

    def __init__(self, root_id: str, expected: int, actual: int):
        self.root_id = root_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Branch {root_id} changed concurrently (expected version {expected}, found {actual})"
        )


RETRYABLE_ERRORS = (MalformedProposalError, GenerationUnavailableError)
