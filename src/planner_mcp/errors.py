"""Error taxonomy for Planner operations."""

from typing import Optional


class PlannerError(Exception):
    """Base class for every error surfaced to a tool caller."""


class ValidationError(PlannerError):
    """A parameter is outside its declared bounds. Raised before any network call."""


class TransportError(PlannerError):
    """Non-2xx response or network failure from the Graph REST client."""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code


class TokenFetchError(PlannerError):
    """The ETag of a resource could not be read."""


class MutationConflictError(PlannerError):
    """
    A guarded write was rejected.

    Usually a 412 Precondition Failed because the resource changed between
    the ETag read and the write. Callers must re-read before reapplying.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConversationError(PlannerError):
    """A task comment could not be routed to a group conversation."""


class EmptyConversationError(ConversationError):
    """The task's conversation exists but has no threads."""
