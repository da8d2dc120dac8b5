"""
SQLite-backed repositories.

Responsibilities:
- CRUD for intent cards, connection requests and connections.
- Transaction-safe writes; SQLAlchemy failures surface as BackendError.

Non-Responsibilities:
- No matching, no ownership checks.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ..constants import OWNED_LIST_LIMIT
from ..database import ConnectionRequestRow, ConnectionRow, IntentCardRow, get_session_factory, init_database
from ..errors import BackendError, CardNotFoundError, RequestNotFoundError
from ..logger import StructuredLogger, get_logger
from ..models import (
    Availability,
    CommitmentLevel,
    Connection,
    ConnectionRequest,
    EventType,
    HostelStatus,
    IntentCard,
    RequestStatus,
)
from ..normalize import normalize_tag_set
from .base import CardRepository, RequestRepository, merge_card_changes


def _row_to_card(row: IntentCardRow) -> IntentCard:
    return IntentCard(
        id=row.id,
        owner_uid=row.owner_uid,
        owner_name=row.owner_name,
        owner_email=row.owner_email,
        owner_photo_url=row.owner_photo_url,
        event_type=EventType(row.event_type),
        event_name=row.event_name,
        looking_for_roles=list(row.looking_for_roles or []),
        required_skills=list(row.required_skills or []),
        availability=Availability.from_dict(row.availability),
        hostel_status=HostelStatus(row.hostel_status),
        commitment_level=CommitmentLevel(row.commitment_level),
        short_goal=row.short_goal,
        is_public=bool(row.is_public),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _write_card_fields(row: IntentCardRow, card: IntentCard) -> None:
    row.event_type = card.event_type.value
    row.event_name = card.event_name
    row.looking_for_roles = normalize_tag_set(card.looking_for_roles)
    row.required_skills = normalize_tag_set(card.required_skills)
    row.availability = card.availability.to_dict()
    row.hostel_status = card.hostel_status.value
    row.commitment_level = card.commitment_level.value
    row.short_goal = card.short_goal
    row.is_public = card.is_public


def _row_to_request(row: ConnectionRequestRow) -> ConnectionRequest:
    return ConnectionRequest(
        id=row.id,
        from_uid=row.from_uid,
        from_name=row.from_name,
        from_photo_url=row.from_photo_url,
        to_uid=row.to_uid,
        to_name=row.to_name,
        to_photo_url=row.to_photo_url,
        from_intent_card_id=row.from_intent_card_id,
        to_intent_card_id=row.to_intent_card_id,
        status=RequestStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_connection(row: ConnectionRow) -> Connection:
    return Connection(id=row.id, uids=(row.uid_a, row.uid_b), request_id=row.request_id, created_at=row.created_at)


class _SqlRepository:

    def __init__(self, db_path: Path, logger: Optional[StructuredLogger] = None):
        init_database(db_path)
        self.db_path = db_path
        self._session_factory = get_session_factory(db_path)
        self.logger = logger or get_logger()

    @contextmanager
    def _session(self):
        session = self._session_factory()
        self.logger.record_backend_call()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            self.logger.record_backend_failure(type(e).__name__)
            self.logger.error("Database operation failed", db=str(self.db_path), error=str(e))
            raise BackendError(f"Database error: {e}") from e
        finally:
            session.close()


class SqlCardRepository(_SqlRepository, CardRepository):

    def list_public_cards(self, exclude_uid: Optional[str], max_cards: int) -> List[IntentCard]:
        with self._session() as session:
            query = session.query(IntentCardRow).filter(IntentCardRow.is_public.is_(True))
            if exclude_uid:
                query = query.filter(IntentCardRow.owner_uid != exclude_uid)
            rows = query.order_by(IntentCardRow.created_at.desc()).limit(max_cards).all()
            return [_row_to_card(r) for r in rows]

    def get_card(self, card_id: str) -> Optional[IntentCard]:
        with self._session() as session:
            row = session.get(IntentCardRow, card_id)
            return _row_to_card(row) if row else None

    def list_owned_cards(self, uid: str) -> List[IntentCard]:
        with self._session() as session:
            rows = (
                session.query(IntentCardRow)
                .filter_by(owner_uid=uid)
                .order_by(IntentCardRow.created_at.desc())
                .limit(OWNED_LIST_LIMIT)
                .all()
            )
            return [_row_to_card(r) for r in rows]

    def create_card(self, card: IntentCard) -> IntentCard:
        with self._session() as session:
            row = IntentCardRow(
                owner_uid=card.owner_uid,
                owner_name=card.owner_name,
                owner_email=card.owner_email,
                owner_photo_url=card.owner_photo_url,
            )
            # Imported cards keep their ids and timestamps
            if card.id:
                row.id = card.id
            if card.created_at:
                row.created_at = card.created_at
                row.updated_at = card.updated_at or card.created_at
            _write_card_fields(row, card)
            session.add(row)
            session.flush()
            return _row_to_card(row)

    def update_card(self, card_id: str, changes: Dict[str, Any]) -> IntentCard:
        with self._session() as session:
            row = session.get(IntentCardRow, card_id)
            if row is None:
                raise CardNotFoundError(card_id)
            merged = merge_card_changes(_row_to_card(row), changes)
            _write_card_fields(row, merged)
            row.updated_at = datetime.now()
            session.flush()
            return _row_to_card(row)

    def delete_card(self, card_id: str) -> None:
        with self._session() as session:
            row = session.get(IntentCardRow, card_id)
            if row is None:
                raise CardNotFoundError(card_id)
            session.delete(row)


class SqlRequestRepository(_SqlRepository, RequestRepository):

    def create_request(self, request: ConnectionRequest) -> ConnectionRequest:
        with self._session() as session:
            row = ConnectionRequestRow(
                from_uid=request.from_uid,
                from_name=request.from_name,
                from_photo_url=request.from_photo_url,
                to_uid=request.to_uid,
                to_name=request.to_name,
                to_photo_url=request.to_photo_url,
                from_intent_card_id=request.from_intent_card_id,
                to_intent_card_id=request.to_intent_card_id,
                status=RequestStatus.PENDING.value,
            )
            session.add(row)
            session.flush()
            return _row_to_request(row)

    def get_request(self, request_id: str) -> Optional[ConnectionRequest]:
        with self._session() as session:
            row = session.get(ConnectionRequestRow, request_id)
            return _row_to_request(row) if row else None

    def list_requests(self, from_uid: Optional[str] = None, to_uid: Optional[str] = None) -> List[ConnectionRequest]:
        with self._session() as session:
            query = session.query(ConnectionRequestRow)
            if from_uid is not None:
                query = query.filter_by(from_uid=from_uid)
            if to_uid is not None:
                query = query.filter_by(to_uid=to_uid)
            rows = query.order_by(ConnectionRequestRow.created_at.desc()).limit(OWNED_LIST_LIMIT).all()
            return [_row_to_request(r) for r in rows]

    def update_status(self, request_id: str, status: RequestStatus) -> ConnectionRequest:
        with self._session() as session:
            row = session.get(ConnectionRequestRow, request_id)
            if row is None:
                raise RequestNotFoundError(request_id)
            row.status = RequestStatus(status).value
            row.updated_at = datetime.now()
            session.flush()
            return _row_to_request(row)

    def create_connection(self, request: ConnectionRequest) -> Connection:
        uid_a, uid_b = Connection.pair(request.from_uid, request.to_uid)
        with self._session() as session:
            row = ConnectionRow(uid_a=uid_a, uid_b=uid_b, request_id=request.id)
            session.add(row)
            session.flush()
            return _row_to_connection(row)

    def list_connections(self, uid: str) -> List[Connection]:
        with self._session() as session:
            rows = (
                session.query(ConnectionRow)
                .filter(or_(ConnectionRow.uid_a == uid, ConnectionRow.uid_b == uid))
                .order_by(ConnectionRow.created_at.desc())
                .all()
            )
            return [_row_to_connection(r) for r in rows]
