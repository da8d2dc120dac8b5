"""
Repositories backed by the hosted document store's REST API.

Documents are exchanged in the store's typed-value JSON encoding
({"stringValue": ...}, {"arrayValue": {"values": [...]}}, ...). Transient
failures are retried with exponential backoff; a circuit breaker stops
hammering a backend that keeps failing.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from ..constants import CARDS_COLLECTION, CONNECTIONS_COLLECTION, OWNED_LIST_LIMIT, REQUESTS_COLLECTION
from ..errors import BackendError, CardNotFoundError, PermissionDeniedError, RequestNotFoundError
from ..logger import StructuredLogger, get_logger
from ..models import Connection, ConnectionRequest, IntentCard, RequestStatus, newest_first
from ..retry import CircuitBreaker, RetryError, TransientBackendError, exponential_backoff, should_retry_http_status
from .base import UPDATABLE_CARD_FIELDS, CardRepository, RequestRepository, merge_card_changes

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"

# Backend timestamps carry nanoseconds; datetime keeps microseconds.
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def _format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.astimezone()
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(raw: str) -> datetime:
    return datetime.fromisoformat(_FRACTION_RE.sub(r".\1", raw).replace("Z", "+00:00"))


def encode_value(value: Any) -> Dict[str, Any]:
    """Python value -> typed REST value."""
    if isinstance(value, Enum):
        value = value.value
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": _format_timestamp(value)}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        if not value:
            return {"arrayValue": {}}
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Cannot encode {type(value).__name__} for the document store")


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: encode_value(v) for k, v in data.items()}


def decode_value(value: Dict[str, Any]) -> Any:
    """Typed REST value -> Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    # referenceValue, geoPointValue, bytesValue: pass through untouched
    return next(iter(value.values()), None)


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(v) for k, v in fields.items()}


def decode_document(document: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """Return (document id, decoded fields)."""
    doc_id = document.get("name", "").rsplit("/", 1)[-1]
    return doc_id, decode_fields(document.get("fields", {}))


def _field_filter(field_path: str, value: Any, op: str = "EQUAL") -> Dict[str, Any]:
    return {"fieldFilter": {"field": {"fieldPath": field_path}, "op": op, "value": encode_value(value)}}


def build_structured_query(
    collection: str,
    filters: Sequence[Tuple[str, str, Any]],
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build a runQuery body.

    Args:
        collection: Collection id
        filters: (field path, operator, value) triples, ANDed together
        limit: Optional maximum number of documents
    """
    query: Dict[str, Any] = {"from": [{"collectionId": collection}]}
    clauses = [_field_filter(path, value, op) for path, op, value in filters]
    if len(clauses) == 1:
        query["where"] = clauses[0]
    elif clauses:
        query["where"] = {"compositeFilter": {"op": "AND", "filters": clauses}}
    if limit is not None:
        query["limit"] = limit
    return {"structuredQuery": query}


def _error_message(resp: requests.Response) -> str:
    try:
        return resp.json().get("error", {}).get("message") or resp.reason
    except ValueError:
        return resp.reason or f"HTTP {resp.status_code}"


class FirestoreClient:
    """Thin REST transport for one project's default database."""

    def __init__(
        self,
        project_id: str,
        token: str = "",
        database: str = "(default)",
        session: Optional[requests.Session] = None,
        timeout: float = 15,
        max_retries: int = 3,
        base_delay: float = 0.5,
        breaker: Optional[CircuitBreaker] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        if not project_id:
            raise BackendError("Missing project id. Set TEAMMATCH_FIRESTORE_PROJECT.")
        self.project_id = project_id
        self.documents_url = f"{FIRESTORE_BASE_URL}/projects/{project_id}/databases/{database}/documents"
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker(expected_exception=TransientBackendError)
        self.logger = logger or get_logger()
        self._send = exponential_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            exceptions=(TransientBackendError,),
            on_retry=self._on_retry,
        )(self._send_once)

    def _on_retry(self, attempt: int, error: Exception, delay: float):
        self.logger.warning("Backend call failed, retrying", attempt=attempt, delay=delay, error=str(error))

    def _send_once(self, method: str, url: str, **kwargs) -> requests.Response:
        self.logger.record_backend_call()
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise TransientBackendError(f"Backend request timed out: {e}")
        except requests.exceptions.ConnectionError as e:
            raise TransientBackendError(f"Backend connection error: {e}")
        except requests.exceptions.RequestException as e:
            self.logger.record_backend_failure("RequestException")
            raise BackendError(f"Backend request error: {e}") from e

        if should_retry_http_status(resp.status_code):
            raise TransientBackendError(
                f"Backend returned {resp.status_code}: {_error_message(resp)}", status=resp.status_code
            )
        return resp

    def _request_with_retry(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            resp = self._send(method, url, **kwargs)
        except RetryError as e:
            cause = e.__cause__
            self.logger.record_backend_failure(type(cause).__name__ if cause else "RetryError")
            self.logger.error("Backend unavailable", method=method, url=url, error=str(cause))
            raise TransientBackendError(
                f"Backend unavailable after {e.attempts} attempts: {cause}",
                status=getattr(cause, "status", None),
            ) from e

        if resp.status_code == 404:
            return resp
        if resp.status_code in (401, 403):
            self.logger.record_backend_failure(f"HTTPError_{resp.status_code}")
            raise PermissionDeniedError(f"Backend denied access: {_error_message(resp)}")
        if not resp.ok:
            self.logger.record_backend_failure(f"HTTPError_{resp.status_code}")
            self.logger.error("Backend request failed", method=method, url=url, status=resp.status_code)
            raise BackendError(
                f"Backend request failed ({resp.status_code}): {_error_message(resp)}", status=resp.status_code
            )
        return resp

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send a request through retry and the circuit breaker.

        Returns:
            Response; 404 responses are returned for the caller to interpret

        Raises:
            BackendError: Transport failure, open circuit or non-404 error status
            PermissionDeniedError: 401/403 from the backend
        """
        return self.breaker.call(self._request_with_retry, method, url, **kwargs)

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        resp = self.request("GET", f"{self.documents_url}/{collection}/{doc_id}")
        if resp.status_code == 404:
            return None
        return decode_document(resp.json())[1]

    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        resp = self.request("POST", f"{self.documents_url}/{collection}", json={"fields": encode_fields(data)})
        return decode_document(resp.json())[0]

    def patch_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> bool:
        """Update only the given fields. Returns False if the document does not exist."""
        params = [("updateMask.fieldPaths", k) for k in data] + [("currentDocument.exists", "true")]
        resp = self.request(
            "PATCH",
            f"{self.documents_url}/{collection}/{doc_id}",
            params=params,
            json={"fields": encode_fields(data)},
        )
        return resp.status_code != 404

    def delete_document(self, collection: str, doc_id: str) -> bool:
        """Returns False if the document does not exist."""
        resp = self.request(
            "DELETE",
            f"{self.documents_url}/{collection}/{doc_id}",
            params={"currentDocument.exists": "true"},
        )
        return resp.status_code != 404

    def run_query(
        self,
        collection: str,
        filters: Sequence[Tuple[str, str, Any]],
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Dict[str, Any]]]:
        body = build_structured_query(collection, filters, limit)
        resp = self.request("POST", f"{self.documents_url}:runQuery", json=body)
        if resp.status_code == 404:
            return []
        # One entry per result; entries without "document" only carry readTime
        return [decode_document(entry["document"]) for entry in resp.json() if "document" in entry]


class FirestoreCardRepository(CardRepository):

    def __init__(self, client: FirestoreClient):
        self.client = client

    def _cards_from_docs(self, docs: List[Tuple[str, Dict[str, Any]]]) -> List[IntentCard]:
        """Parse query results, skipping documents with unknown enum values."""
        cards = []
        for doc_id, data in docs:
            try:
                cards.append(IntentCard.from_dict(data, card_id=doc_id))
            except ValueError as e:
                self.client.logger.record_backend_failure("InvalidDocument")
                self.client.logger.warning("Skipping unreadable intent card", card_id=doc_id, error=str(e))
        return cards

    def list_public_cards(self, exclude_uid: Optional[str], max_cards: int) -> List[IntentCard]:
        # Owner exclusion happens client-side to avoid composite indexes
        docs = self.client.run_query(CARDS_COLLECTION, [("isPublic", "EQUAL", True)], limit=max_cards)
        cards = self._cards_from_docs(docs)
        return [c for c in cards if c.owner_uid != exclude_uid]

    def get_card(self, card_id: str) -> Optional[IntentCard]:
        data = self.client.get_document(CARDS_COLLECTION, card_id)
        if data is None:
            return None
        try:
            return IntentCard.from_dict(data, card_id=card_id)
        except ValueError as e:
            self.client.logger.record_backend_failure("InvalidDocument")
            raise BackendError(f"Unreadable intent card {card_id}: {e}") from e

    def list_owned_cards(self, uid: str) -> List[IntentCard]:
        docs = self.client.run_query(CARDS_COLLECTION, [("ownerUid", "EQUAL", uid)], limit=OWNED_LIST_LIMIT)
        return newest_first(self._cards_from_docs(docs))

    def create_card(self, card: IntentCard) -> IntentCard:
        now = datetime.now(timezone.utc)
        data = card.to_dict(include_id=False)
        data["createdAt"] = card.created_at or now
        data["updatedAt"] = card.updated_at or now
        doc_id = self.client.create_document(CARDS_COLLECTION, data)
        return IntentCard.from_dict(data, card_id=doc_id)

    def update_card(self, card_id: str, changes: Dict[str, Any]) -> IntentCard:
        current = self.get_card(card_id)
        if current is None:
            raise CardNotFoundError(card_id)
        merged = merge_card_changes(current, changes)
        merged.updated_at = datetime.now(timezone.utc)

        full = merged.to_dict(include_id=False)
        patch = {k: full[k] for k in UPDATABLE_CARD_FIELDS if k in changes}
        patch["updatedAt"] = merged.updated_at
        if not self.client.patch_document(CARDS_COLLECTION, card_id, patch):
            raise CardNotFoundError(card_id)
        return merged

    def delete_card(self, card_id: str) -> None:
        if not self.client.delete_document(CARDS_COLLECTION, card_id):
            raise CardNotFoundError(card_id)


class FirestoreRequestRepository(RequestRepository):

    def __init__(self, client: FirestoreClient):
        self.client = client

    def create_request(self, request: ConnectionRequest) -> ConnectionRequest:
        now = datetime.now(timezone.utc)
        data = request.to_dict(include_id=False)
        data.update({"status": RequestStatus.PENDING.value, "createdAt": now, "updatedAt": now})
        doc_id = self.client.create_document(REQUESTS_COLLECTION, data)
        return ConnectionRequest.from_dict(data, request_id=doc_id)

    def get_request(self, request_id: str) -> Optional[ConnectionRequest]:
        data = self.client.get_document(REQUESTS_COLLECTION, request_id)
        return ConnectionRequest.from_dict(data, request_id=request_id) if data is not None else None

    def list_requests(self, from_uid: Optional[str] = None, to_uid: Optional[str] = None) -> List[ConnectionRequest]:
        filters = []
        if from_uid is not None:
            filters.append(("fromUid", "EQUAL", from_uid))
        if to_uid is not None:
            filters.append(("toUid", "EQUAL", to_uid))
        docs = self.client.run_query(REQUESTS_COLLECTION, filters, limit=OWNED_LIST_LIMIT)
        return newest_first([ConnectionRequest.from_dict(data, request_id=doc_id) for doc_id, data in docs])

    def update_status(self, request_id: str, status: RequestStatus) -> ConnectionRequest:
        current = self.get_request(request_id)
        if current is None:
            raise RequestNotFoundError(request_id)
        current.status = RequestStatus(status)
        current.updated_at = datetime.now(timezone.utc)
        patch = {"status": current.status.value, "updatedAt": current.updated_at}
        if not self.client.patch_document(REQUESTS_COLLECTION, request_id, patch):
            raise RequestNotFoundError(request_id)
        return current

    def create_connection(self, request: ConnectionRequest) -> Connection:
        uids = Connection.pair(request.from_uid, request.to_uid)
        now = datetime.now(timezone.utc)
        doc_id = self.client.create_document(
            CONNECTIONS_COLLECTION,
            {"uids": list(uids), "requestId": request.id, "createdAt": now},
        )
        return Connection(id=doc_id, uids=uids, request_id=request.id, created_at=now)

    def list_connections(self, uid: str) -> List[Connection]:
        docs = self.client.run_query(CONNECTIONS_COLLECTION, [("uids", "ARRAY_CONTAINS", uid)])
        connections = []
        for doc_id, data in docs:
            uids = data.get("uids") or []
            if len(uids) != 2:
                continue
            connections.append(Connection(
                id=doc_id,
                uids=(uids[0], uids[1]),
                request_id=str(data.get("requestId", "")),
                created_at=data.get("createdAt"),
            ))
        return newest_first(connections)
