"""
Collaborator interfaces.

Responsibilities:
- Describe what the service needs from storage and identity.

Non-Responsibilities:
- No matching decisions.
- No ownership checks (the service does those before writing).

Invariant:
Repositories must not encode domain decisions.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import Connection, ConnectionRequest, Identity, IntentCard, RequestStatus


class CardRepository(ABC):

    @abstractmethod
    def list_public_cards(self, exclude_uid: Optional[str], max_cards: int) -> List[IntentCard]:
        """Public cards not owned by exclude_uid, at most max_cards of them."""

    @abstractmethod
    def get_card(self, card_id: str) -> Optional[IntentCard]:
        """The card, or None if it does not exist."""

    @abstractmethod
    def list_owned_cards(self, uid: str) -> List[IntentCard]:
        """Cards owned by uid, newest first."""

    @abstractmethod
    def create_card(self, card: IntentCard) -> IntentCard:
        """Persist a new card; the stored copy (with its id) is returned."""

    @abstractmethod
    def update_card(self, card_id: str, changes: Dict[str, Any]) -> IntentCard:
        """Apply camelCase field changes to an existing card."""

    @abstractmethod
    def delete_card(self, card_id: str) -> None:
        ...


class RequestRepository(ABC):

    @abstractmethod
    def create_request(self, request: ConnectionRequest) -> ConnectionRequest:
        """Persist a new request with status pending."""

    @abstractmethod
    def get_request(self, request_id: str) -> Optional[ConnectionRequest]:
        ...

    @abstractmethod
    def list_requests(self, from_uid: Optional[str] = None, to_uid: Optional[str] = None) -> List[ConnectionRequest]:
        """Requests filtered by sender and/or recipient, newest first."""

    @abstractmethod
    def update_status(self, request_id: str, status: RequestStatus) -> ConnectionRequest:
        ...

    @abstractmethod
    def create_connection(self, request: ConnectionRequest) -> Connection:
        """Record an accepted request as a connection between both owners."""

    @abstractmethod
    def list_connections(self, uid: str) -> List[Connection]:
        ...


class IdentityProvider(ABC):

    @abstractmethod
    def current_identity(self) -> Identity:
        ...


class StaticIdentityProvider(IdentityProvider):
    """Identity handed in from the command line or environment."""

    def __init__(self, identity: Identity):
        self._identity = identity

    def current_identity(self) -> Identity:
        return self._identity


# Fields a card owner may change after creation.
UPDATABLE_CARD_FIELDS = (
    "eventType",
    "eventName",
    "lookingForRoles",
    "requiredSkills",
    "availability",
    "hostelStatus",
    "commitmentLevel",
    "shortGoal",
    "isPublic",
)


def merge_card_changes(card: IntentCard, changes: Dict[str, Any]) -> IntentCard:
    """
    Apply camelCase changes to a card, ignoring fields owners cannot edit.

    Raises:
        ValueError: If a change holds an unknown enum value
    """
    data = card.to_dict()
    for key in UPDATABLE_CARD_FIELDS:
        if key in changes:
            data[key] = changes[key]
    return IntentCard.from_dict(data, card_id=card.id)
