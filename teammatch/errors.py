"""
Exception hierarchy for TeamMatch.

The matching core never raises these; they come from the collaborators
(storage, transport, identity checks) and from the orchestration layer.
"""

from typing import List, Optional


class TeamMatchError(Exception):
    """Base class for all TeamMatch errors."""
    pass


class ConfigError(TeamMatchError):
    """Raised when an environment setting cannot be parsed."""
    pass


class CardNotFoundError(TeamMatchError):
    def __init__(self, card_id: str):
        super().__init__(f"Intent card not found: {card_id}")
        self.card_id = card_id


class RequestNotFoundError(TeamMatchError):
    def __init__(self, request_id: str):
        super().__init__(f"Connection request not found: {request_id}")
        self.request_id = request_id


class PermissionDeniedError(TeamMatchError):
    """The current identity is not allowed to act on the resource."""
    pass


class InvalidRequestStateError(TeamMatchError):
    """A connection request is not in a state that allows the transition."""
    pass


class CardValidationError(TeamMatchError):
    def __init__(self, errors: List[str]):
        super().__init__("Invalid intent card: " + "; ".join(errors))
        self.errors = errors


class BackendError(TeamMatchError):
    """Storage or transport failure in an external collaborator."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
