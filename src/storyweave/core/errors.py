"""Error taxonomy for the voting engine.

Validation and conflict errors are raised before any state change and carry
enough context for the API layer to map them to a response. Storage errors
are transient: every engine operation recomputes from persisted vote lists,
so callers may retry the whole operation.
"""

from __future__ import annotations


class EngineError(RuntimeError):
    """Base exception for voting engine failures."""


class ValidationError(EngineError):
    """Raised when content, a vote kind, a weight or a position is malformed."""


class ConflictError(EngineError):
    """Raised when an operation conflicts with current engine state.

    Examples are self-voting, voting on a terminal session and submitting to
    a story position that has already been filled.
    """


class SessionNotFoundError(ConflictError):
    """Raised when a voting session id does not resolve to a stored session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Voting session {session_id} not found")
        self.session_id = session_id


class StorageError(EngineError):
    """Raised when the backing store fails; the operation is safe to retry."""
