"""
Tests for repositories/firestore.py - REST value codec, transport and repositories.

The HTTP session is replaced by a scripted fake; no network access.
"""

import json
import pytest
import requests
from datetime import datetime, timezone

from teammatch.config import Settings
from teammatch.errors import BackendError, CardNotFoundError, PermissionDeniedError
from teammatch.matches import MatchService
from teammatch.models import ConnectionRequest, Identity, RequestStatus
from teammatch.repositories import FirestoreCardRepository, FirestoreClient, FirestoreRequestRepository
from teammatch.repositories.firestore import (
    build_structured_query,
    decode_document,
    decode_value,
    encode_fields,
    encode_value,
)
from teammatch.retry import CircuitBreaker, TransientBackendError

DOCS = "https://firestore.googleapis.com/v1/projects/demo/databases/(default)/documents"


def make_response(status: int, payload=None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.reason = "Reason"
    resp._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
    return resp


def doc(collection: str, doc_id: str, data) -> dict:
    return {
        "name": f"projects/demo/databases/(default)/documents/{collection}/{doc_id}",
        "fields": encode_fields(data),
    }


class FakeSession:
    """Replays scripted responses (or raises scripted exceptions) in order."""

    def __init__(self, *responses):
        self.headers = {}
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def make_client(logger):
    def _make(*responses, **kwargs):
        session = FakeSession(*responses)
        kwargs.setdefault("base_delay", 0)
        client = FirestoreClient("demo", token="secret", session=session, logger=logger, **kwargs)
        return client, session
    return _make


class TestValueCodec:
    """Test typed-value encoding."""

    def test_scalars(self):
        assert encode_value(None) == {"nullValue": None}
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(3) == {"integerValue": "3"}
        assert encode_value(1.5) == {"doubleValue": 1.5}
        assert encode_value("hi") == {"stringValue": "hi"}

    def test_enum_encodes_as_value(self):
        assert encode_value(RequestStatus.PENDING) == {"stringValue": "pending"}

    def test_timestamp(self):
        ts = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert encode_value(ts) == {"timestampValue": "2024-01-01T10:00:00Z"}

    def test_arrays_and_maps(self):
        assert encode_value([]) == {"arrayValue": {}}
        assert encode_value(["a", 1]) == {
            "arrayValue": {"values": [{"stringValue": "a"}, {"integerValue": "1"}]}
        }
        assert encode_value({"weekends": False}) == {
            "mapValue": {"fields": {"weekends": {"booleanValue": False}}}
        }

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            encode_value(object())

    def test_decode(self):
        assert decode_value({"integerValue": "42"}) == 42
        assert decode_value({"arrayValue": {}}) == []
        assert decode_value({"mapValue": {}}) == {}
        assert decode_value({"referenceValue": "projects/x"}) == "projects/x"

    def test_decode_nanosecond_timestamp(self):
        ts = decode_value({"timestampValue": "2024-05-01T08:15:30.123456789Z"})
        assert ts == datetime(2024, 5, 1, 8, 15, 30, 123456, tzinfo=timezone.utc)

    def test_card_document_round_trip(self, make_card):
        card = make_card(owner_uid="alice", roles=["frontend", "ML"])
        doc_id, data = decode_document(doc("intentCards", "abc", card.to_dict(include_id=False)))
        assert doc_id == "abc"
        assert data["lookingForRoles"] == ["frontend", "ML"]
        assert data["availability"]["startTime"] == "18:00"
        assert data["createdAt"] is None


class TestStructuredQuery:

    def test_single_filter(self):
        body = build_structured_query("intentCards", [("isPublic", "EQUAL", True)], limit=200)
        query = body["structuredQuery"]
        assert query["from"] == [{"collectionId": "intentCards"}]
        assert query["where"] == {
            "fieldFilter": {"field": {"fieldPath": "isPublic"}, "op": "EQUAL", "value": {"booleanValue": True}}
        }
        assert query["limit"] == 200

    def test_composite_filter(self):
        body = build_structured_query("connectionRequests", [("fromUid", "EQUAL", "a"), ("toUid", "EQUAL", "b")])
        where = body["structuredQuery"]["where"]["compositeFilter"]
        assert where["op"] == "AND"
        assert len(where["filters"]) == 2
        assert "limit" not in body["structuredQuery"]

    def test_no_filters(self):
        assert "where" not in build_structured_query("connections", [])["structuredQuery"]


class TestFirestoreClient:
    """Test transport error handling, retry and the circuit breaker."""

    def test_requires_project(self, logger):
        with pytest.raises(BackendError):
            FirestoreClient("", session=FakeSession(), logger=logger)

    def test_sets_bearer_token(self, make_client):
        _, session = make_client()
        assert session.headers["Authorization"] == "Bearer secret"

    def test_get_document(self, make_client):
        client, session = make_client(make_response(200, doc("intentCards", "c1", {"eventName": "Hack"})))

        assert client.get_document("intentCards", "c1") == {"eventName": "Hack"}
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("GET", f"{DOCS}/intentCards/c1")
        assert kwargs["timeout"] == 15

    def test_missing_document(self, make_client):
        client, _ = make_client(make_response(404, {"error": {"message": "not found"}}))
        assert client.get_document("intentCards", "nope") is None

    def test_retries_transient_status(self, make_client, logger):
        client, session = make_client(
            make_response(503),
            make_response(200, doc("intentCards", "c1", {"eventName": "Hack"})),
        )

        assert client.get_document("intentCards", "c1") == {"eventName": "Hack"}
        assert len(session.calls) == 2
        assert logger.get_metrics()["backend_calls"] == 2

    def test_retries_connection_errors(self, make_client):
        client, session = make_client(
            requests.exceptions.ConnectionError("reset"),
            requests.exceptions.Timeout("slow"),
            make_response(200, doc("intentCards", "c1", {})),
        )

        assert client.get_document("intentCards", "c1") == {}
        assert len(session.calls) == 3

    def test_gives_up_after_retries(self, make_client, logger):
        client, session = make_client(*[make_response(500) for _ in range(3)], max_retries=2)

        with pytest.raises(TransientBackendError) as exc_info:
            client.get_document("intentCards", "c1")

        assert exc_info.value.status == 500
        assert len(session.calls) == 3
        assert logger.get_metrics()["errors_by_type"] == {"TransientBackendError": 1}

    def test_client_errors_not_retried(self, make_client):
        client, session = make_client(make_response(400, {"error": {"message": "Bad query"}}))

        with pytest.raises(BackendError, match="Bad query") as exc_info:
            client.run_query("intentCards", [])

        assert exc_info.value.status == 400
        assert len(session.calls) == 1

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors(self, make_client, status):
        client, _ = make_client(make_response(status, {"error": {"message": "Missing or insufficient permissions."}}))

        with pytest.raises(PermissionDeniedError):
            client.get_document("intentCards", "c1")

    def test_circuit_opens(self, make_client):
        breaker = CircuitBreaker(failure_threshold=1, expected_exception=TransientBackendError)
        client, session = make_client(make_response(503), max_retries=0, breaker=breaker)

        with pytest.raises(TransientBackendError):
            client.get_document("intentCards", "c1")
        with pytest.raises(BackendError, match="circuit open"):
            client.get_document("intentCards", "c1")

        assert len(session.calls) == 1

    def test_patch_document(self, make_client):
        client, session = make_client(make_response(200, {}), make_response(404))

        assert client.patch_document("intentCards", "c1", {"eventName": "New", "shortGoal": "Win"})
        assert not client.patch_document("intentCards", "gone", {"eventName": "New"})

        method, url, kwargs = session.calls[0]
        assert method == "PATCH"
        assert kwargs["params"] == [
            ("updateMask.fieldPaths", "eventName"),
            ("updateMask.fieldPaths", "shortGoal"),
            ("currentDocument.exists", "true"),
        ]
        assert kwargs["json"]["fields"]["eventName"] == {"stringValue": "New"}

    def test_run_query_skips_read_time_entries(self, make_client):
        client, session = make_client(make_response(200, [
            {"document": doc("intentCards", "c1", {"eventName": "A"})},
            {"readTime": "2024-01-01T00:00:00Z"},
        ]))

        assert client.run_query("intentCards", [("isPublic", "EQUAL", True)]) == [("c1", {"eventName": "A"})]
        method, url, _ = session.calls[0]
        assert (method, url) == ("POST", f"{DOCS}:runQuery")


class TestFirestoreCardRepository:
    """Test card operations over the REST client."""

    def test_list_public_cards_excludes_owner(self, make_client, make_card):
        mine = make_card(owner_uid="alice")
        theirs = make_card(owner_uid="bob")
        client, session = make_client(make_response(200, [
            {"document": doc("intentCards", "c1", mine.to_dict(include_id=False))},
            {"document": doc("intentCards", "c2", theirs.to_dict(include_id=False))},
        ]))

        cards = FirestoreCardRepository(client).list_public_cards(exclude_uid="alice", max_cards=200)

        assert [(c.id, c.owner_uid) for c in cards] == [("c2", "bob")]
        body = session.calls[0][2]["json"]["structuredQuery"]
        assert body["where"]["fieldFilter"]["field"]["fieldPath"] == "isPublic"
        assert body["limit"] == 200

    def test_list_public_cards_skips_unreadable_documents(self, make_client, make_card, logger):
        good = make_card(owner_uid="bob").to_dict(include_id=False)
        bad = dict(good, commitmentLevel="competitive")
        client, _ = make_client(make_response(200, [
            {"document": doc("intentCards", "bad", bad)},
            {"document": doc("intentCards", "good", good)},
        ]))

        cards = FirestoreCardRepository(client).list_public_cards(exclude_uid="alice", max_cards=200)

        assert [c.id for c in cards] == ["good"]
        assert logger.get_metrics()["errors_by_type"]["InvalidDocument"] == 1

    def test_list_owned_cards_skips_unreadable_documents(self, make_client, make_card):
        good = make_card(owner_uid="alice").to_dict(include_id=False)
        bad = dict(good, eventType="Bake sale")
        client, _ = make_client(make_response(200, [
            {"document": doc("intentCards", "good", good)},
            {"document": doc("intentCards", "bad", bad)},
        ]))

        cards = FirestoreCardRepository(client).list_owned_cards("alice")

        assert [c.id for c in cards] == ["good"]

    def test_get_unreadable_card_is_backend_error(self, make_client, make_card):
        bad = dict(make_card(owner_uid="alice").to_dict(include_id=False), hostelStatus="nomad")
        client, _ = make_client(make_response(200, doc("intentCards", "bad", bad)))

        with pytest.raises(BackendError):
            FirestoreCardRepository(client).get_card("bad")

    def test_find_matches_ignores_unreadable_pool_documents(self, make_client, make_card, logger):
        source = make_card(owner_uid="me").to_dict(include_id=False)
        good = make_card(owner_uid="bob").to_dict(include_id=False)
        bad = dict(good, commitmentLevel="competitive")
        client, _ = make_client(
            make_response(200, doc("intentCards", "src", source)),
            make_response(200, [
                {"document": doc("intentCards", "bad", bad)},
                {"document": doc("intentCards", "good", good)},
            ]),
        )
        service = MatchService(
            FirestoreCardRepository(client),
            FirestoreRequestRepository(client),
            settings=Settings(),
            logger=logger,
        )

        matches = service.find_matches("src", Identity(uid="me"))

        assert [m.card.id for m in matches] == ["good"]

    def test_create_card(self, make_client, make_card):
        client, session = make_client(make_response(200, {"name": f"{DOCS}/intentCards/new1"}))
        card = make_card(owner_uid="alice")

        stored = FirestoreCardRepository(client).create_card(card)

        assert stored.id == "new1"
        assert stored.created_at is not None
        fields = session.calls[0][2]["json"]["fields"]
        assert fields["ownerUid"] == {"stringValue": "alice"}
        assert "timestampValue" in fields["createdAt"]
        assert "id" not in fields

    def test_update_card_patches_changed_fields(self, make_client, make_card):
        current = make_card(owner_uid="alice")
        client, session = make_client(
            make_response(200, doc("intentCards", "c1", current.to_dict(include_id=False))),
            make_response(200, {}),
        )

        updated = FirestoreCardRepository(client).update_card("c1", {"shortGoal": "Win it", "ownerUid": "eve"})

        assert updated.short_goal == "Win it"
        assert updated.owner_uid == "alice"
        params = session.calls[1][2]["params"]
        assert [v for k, v in params if k == "updateMask.fieldPaths"] == ["shortGoal", "updatedAt"]

    def test_update_missing_card(self, make_client):
        client, _ = make_client(make_response(404))
        with pytest.raises(CardNotFoundError):
            FirestoreCardRepository(client).update_card("nope", {"shortGoal": "x"})

    def test_delete_missing_card(self, make_client):
        client, _ = make_client(make_response(404))
        with pytest.raises(CardNotFoundError):
            FirestoreCardRepository(client).delete_card("nope")


class TestFirestoreRequestRepository:
    """Test requests and connections over the REST client."""

    def make_request(self):
        return ConnectionRequest(
            id="", from_uid="zoe", from_name="Zoe", to_uid="adam", to_name="Adam",
            from_intent_card_id="c1", to_intent_card_id="c2",
        )

    def test_create_request(self, make_client):
        client, session = make_client(make_response(200, {"name": f"{DOCS}/connectionRequests/r1"}))

        stored = FirestoreRequestRepository(client).create_request(self.make_request())

        assert stored.id == "r1"
        assert stored.status == RequestStatus.PENDING
        assert session.calls[0][2]["json"]["fields"]["status"] == {"stringValue": "pending"}

    def test_list_requests_by_recipient(self, make_client):
        data = self.make_request().to_dict(include_id=False)
        client, session = make_client(make_response(200, [{"document": doc("connectionRequests", "r1", data)}]))

        requests_ = FirestoreRequestRepository(client).list_requests(to_uid="adam")

        assert [r.id for r in requests_] == ["r1"]
        where = session.calls[0][2]["json"]["structuredQuery"]["where"]
        assert where["fieldFilter"]["field"]["fieldPath"] == "toUid"

    def test_update_status(self, make_client):
        data = self.make_request().to_dict(include_id=False)
        client, session = make_client(
            make_response(200, doc("connectionRequests", "r1", data)),
            make_response(200, {}),
        )

        updated = FirestoreRequestRepository(client).update_status("r1", RequestStatus.REJECTED)

        assert updated.status == RequestStatus.REJECTED
        assert session.calls[1][2]["json"]["fields"]["status"] == {"stringValue": "rejected"}

    def test_create_connection_sorts_uids(self, make_client):
        client, session = make_client(make_response(200, {"name": f"{DOCS}/connections/k1"}))
        request = self.make_request()
        request.id = "r1"

        connection = FirestoreRequestRepository(client).create_connection(request)

        assert connection.id == "k1"
        assert connection.uids == ("adam", "zoe")
        uids = session.calls[0][2]["json"]["fields"]["uids"]["arrayValue"]["values"]
        assert uids == [{"stringValue": "adam"}, {"stringValue": "zoe"}]

    def test_list_connections(self, make_client):
        created = datetime(2024, 2, 1, tzinfo=timezone.utc)
        client, session = make_client(make_response(200, [
            {"document": doc("connections", "k1", {"uids": ["adam", "zoe"], "requestId": "r1", "createdAt": created})},
            {"document": doc("connections", "bad", {"uids": ["adam"]})},
        ]))

        connections = FirestoreRequestRepository(client).list_connections("adam")

        assert [(c.id, c.uids, c.created_at) for c in connections] == [("k1", ("adam", "zoe"), created)]
        op = session.calls[0][2]["json"]["structuredQuery"]["where"]["fieldFilter"]["op"]
        assert op == "ARRAY_CONTAINS"
