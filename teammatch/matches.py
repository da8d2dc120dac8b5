"""
Match orchestration.

Responsibilities:
- Fetch the source card and the public pool from the card repository.
- Run filter -> score -> explain, then sort and truncate for display.
- Enforce card ownership and request state rules before writing.

Non-Responsibilities:
- No scoring rules of its own (see teammatch.matching).
- No storage details (see teammatch.repositories).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .config import Settings, get_settings
from .errors import (
    BackendError,
    CardNotFoundError,
    CardValidationError,
    InvalidRequestStateError,
    PermissionDeniedError,
    RequestNotFoundError,
)
from .logger import StructuredLogger, get_logger
from .matching import MatchScoreBreakdown, explain, score_match, select_candidates
from .models import Connection, ConnectionRequest, Identity, IntentCard, RequestStatus
from .repositories.base import UPDATABLE_CARD_FIELDS, CardRepository, RequestRepository
from .schema import validate_card


@dataclass
class MatchItem:
    card: IntentCard
    breakdown: MatchScoreBreakdown
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card": self.card.to_dict(),
            "score": self.breakdown.to_dict(),
            "reasons": list(self.reasons),
        }


class MatchService:
    """Ranking pipeline and connection-request workflow over injected repositories."""

    def __init__(
        self,
        cards: CardRepository,
        requests: RequestRepository,
        settings: Optional[Settings] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.cards = cards
        self.requests = requests
        self.settings = settings or get_settings()
        self.logger = logger or get_logger()

    # Matching

    def rank(
        self,
        source: IntentCard,
        pool: Iterable[IntentCard],
        viewer_uid: str,
        top_n: Optional[int] = None,
    ) -> List[MatchItem]:
        """Filter, score and explain a pool, then keep the top N by total score."""
        top_n = self.settings.top_matches if top_n is None else top_n
        if top_n < 0:
            raise ValueError(f"top_n must be >= 0, got {top_n}")
        items: List[MatchItem] = []

        for candidate, result in select_candidates(
            source, pool, viewer_uid, min_overlap_hours=self.settings.min_overlap_hours
        ):
            self.logger.record_candidate(result.ok, result.reason)
            if not result.ok:
                continue
            breakdown = score_match(source, candidate)
            items.append(MatchItem(card=candidate, breakdown=breakdown, reasons=explain(source, candidate, breakdown)))

        # Stable: equal totals keep pool order
        items.sort(key=lambda m: m.breakdown.total, reverse=True)
        return items[:top_n]

    def find_matches(self, card_id: str, viewer: Identity, top_n: Optional[int] = None) -> List[MatchItem]:
        """
        Ranked matches for one of the viewer's cards.

        Raises:
            CardNotFoundError: If the source card does not exist
            PermissionDeniedError: If the viewer does not own the source card
        """
        source = self._owned_card(card_id, viewer, "You can only view matches for your own intent cards.")
        self.logger.record_ranking()

        try:
            pool = self.cards.list_public_cards(exclude_uid=viewer.uid, max_cards=self.settings.match_pool_size)
        except BackendError as e:
            # A failed pool fetch shows no matches rather than a partial list
            self.logger.error("Failed to load candidate pool", card_id=card_id, error=str(e))
            return []

        matches = self.rank(source, pool, viewer.uid, top_n)
        self.logger.info(
            "Ranked matches",
            card_id=card_id,
            pool_size=len(pool),
            shown=len(matches),
        )
        return matches

    # Cards

    def _owned_card(self, card_id: str, viewer: Identity, denied_message: str) -> IntentCard:
        card = self.cards.get_card(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        if card.owner_uid != viewer.uid:
            raise PermissionDeniedError(denied_message)
        return card

    def create_card(self, viewer: Identity, data: Dict[str, Any]) -> IntentCard:
        """
        Validate form input and store a new card owned by the viewer.

        Raises:
            CardValidationError: If the input breaks any form rule
        """
        data = dict(data)
        data.setdefault("isPublic", True)
        errors = validate_card(data)
        if errors:
            raise CardValidationError(errors)

        data.update({
            "ownerUid": viewer.uid,
            "ownerName": viewer.display_name,
            "ownerEmail": viewer.email,
            "ownerPhotoURL": viewer.photo_url,
        })
        card = self.cards.create_card(IntentCard.from_dict(data, card_id=""))
        self.logger.info("Created intent card", card_id=card.id, owner=viewer.uid)
        return card

    def update_card(self, viewer: Identity, card_id: str, changes: Dict[str, Any]) -> IntentCard:
        current = self._owned_card(card_id, viewer, "You do not have permission to edit this card.")
        proposed = current.to_dict()
        proposed.update({k: changes[k] for k in UPDATABLE_CARD_FIELDS if k in changes})
        errors = validate_card(proposed)
        if errors:
            raise CardValidationError(errors)
        return self.cards.update_card(card_id, changes)

    def delete_card(self, viewer: Identity, card_id: str) -> None:
        self._owned_card(card_id, viewer, "You do not have permission to delete this card.")
        self.cards.delete_card(card_id)
        self.logger.info("Deleted intent card", card_id=card_id, owner=viewer.uid)

    def list_my_cards(self, uid: str) -> List[IntentCard]:
        return self.cards.list_owned_cards(uid)

    # Connection requests

    def send_request(self, viewer: Identity, source_card_id: str, target_card_id: str) -> ConnectionRequest:
        """
        Ask the owner of target_card_id to connect, on behalf of source_card_id.

        Raises:
            CardNotFoundError: If either card does not exist
            PermissionDeniedError: If the viewer does not own the source card,
                owns the target card, or the target card is private
            InvalidRequestStateError: If the same request is already pending
        """
        source = self._owned_card(source_card_id, viewer, "You can only send requests from your own intent cards.")
        target = self.cards.get_card(target_card_id)
        if target is None:
            raise CardNotFoundError(target_card_id)
        if target.owner_uid == viewer.uid:
            raise PermissionDeniedError("You cannot send a request to your own card.")
        if not target.is_public:
            raise PermissionDeniedError("This intent card is not public.")

        for existing in self.requests.list_requests(from_uid=viewer.uid, to_uid=target.owner_uid):
            if (
                existing.status == RequestStatus.PENDING
                and existing.from_intent_card_id == source.id
                and existing.to_intent_card_id == target.id
            ):
                raise InvalidRequestStateError("A request for this match is already pending.")

        request = self.requests.create_request(ConnectionRequest(
            id="",
            from_uid=viewer.uid,
            from_name=viewer.display_name,
            from_photo_url=viewer.photo_url,
            to_uid=target.owner_uid,
            to_name=target.owner_name,
            to_photo_url=target.owner_photo_url,
            from_intent_card_id=source.id,
            to_intent_card_id=target.id,
        ))
        self.logger.record_request_sent()
        self.logger.info("Sent connection request", request_id=request.id, to=target.owner_uid)
        return request

    def list_incoming(self, uid: str) -> List[ConnectionRequest]:
        return self.requests.list_requests(to_uid=uid)

    def list_outgoing(self, uid: str) -> List[ConnectionRequest]:
        return self.requests.list_requests(from_uid=uid)

    def respond(self, viewer: Identity, request_id: str, accept: bool) -> ConnectionRequest:
        """
        Accept or reject a pending request addressed to the viewer.
        Accepting also records a connection between both users.

        Raises:
            RequestNotFoundError: If the request does not exist
            PermissionDeniedError: If the viewer is not the recipient
            InvalidRequestStateError: If the request was already answered
        """
        request = self.requests.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        if request.to_uid != viewer.uid:
            raise PermissionDeniedError("Only the recipient can respond to this request.")
        if request.status != RequestStatus.PENDING:
            raise InvalidRequestStateError(f"Request already {request.status.value}.")

        status = RequestStatus.ACCEPTED if accept else RequestStatus.REJECTED
        updated = self.requests.update_status(request_id, status)
        if accept:
            connection = self.requests.create_connection(updated)
            self.logger.info("Connection created", connection_id=connection.id, request_id=request_id)
        else:
            self.logger.info("Request rejected", request_id=request_id)
        return updated

    def list_connections(self, uid: str) -> List[Connection]:
        return self.requests.list_connections(uid)
