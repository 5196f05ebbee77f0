"""
Exceptions raised by the service layer.

Routes map these to HTTP status codes; anything that is a ValueError and not
handled more specifically becomes a 400.
"""

from typing import List, Optional


class NotFoundError(ValueError):
    """Raised when a referenced record does not exist."""


class CapacityError(ValueError):
    """Raised when confirming a player would exceed an event's max_players."""


class EventLockedError(ValueError):
    """Raised when a mutation is attempted on a locked event."""

    def __init__(self, event_id: int, message: Optional[str] = None):
        self.event_id = event_id
        super().__init__(message or "Event is locked")


class CascadeStepError(RuntimeError):
    """Raised when one step of a multi-step event operation fails.

    Steps before `step` have already been committed.
    """

    def __init__(self, step: str, message: str):
        self.step = step
        self.message = message
        super().__init__(f"Failed at step '{step}': {message}")


class AggregateFetchError(RuntimeError):
    """Raised when any sub-fetch of a concurrent batch failed."""

    def __init__(self, failed_keys: List, errors: dict):
        self.failed_keys = failed_keys
        self.errors = errors
        super().__init__(f"Failed to load statistics for {len(failed_keys)} player(s): {failed_keys}")


class TransportUnavailableError(RuntimeError):
    """Raised by a message transport that is not configured or is disabled."""
