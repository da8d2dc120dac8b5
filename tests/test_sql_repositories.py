"""
Tests for repositories/sql.py - SQLite card and request storage.
"""

import pytest
from datetime import datetime, timedelta

from teammatch.errors import BackendError, CardNotFoundError, RequestNotFoundError
from teammatch.models import ConnectionRequest, RequestStatus
from teammatch.repositories import SqlCardRepository, SqlRequestRepository


@pytest.fixture
def card_repo(db_path, logger):
    return SqlCardRepository(db_path, logger=logger)


@pytest.fixture
def request_repo(db_path, logger):
    return SqlRequestRepository(db_path, logger=logger)


def make_request(from_uid="alice", to_uid="bob", from_card="c1", to_card="c2"):
    return ConnectionRequest(
        id="",
        from_uid=from_uid,
        from_name=from_uid.title(),
        to_uid=to_uid,
        to_name=to_uid.title(),
        from_intent_card_id=from_card,
        to_intent_card_id=to_card,
    )


class TestSqlCardRepository:
    """Test card CRUD."""

    def test_create_assigns_id_and_timestamps(self, card_repo, make_card):
        card = make_card(owner_uid="alice")
        card.id = ""

        stored = card_repo.create_card(card)

        assert stored.id
        assert stored.created_at is not None
        assert stored.owner_uid == "alice"
        assert card_repo.get_card(stored.id) == stored

    def test_create_keeps_imported_id(self, card_repo, make_card):
        created = datetime(2024, 1, 5, 9, 30)
        card = make_card(owner_uid="alice", card_id="imported-1")
        card.created_at = created

        stored = card_repo.create_card(card)

        assert stored.id == "imported-1"
        assert stored.created_at == created
        assert stored.updated_at == created

    def test_round_trip_fields(self, card_repo, make_card):
        card = make_card(owner_uid="alice", roles=["frontend", "ML"], skills=["React", "Python"],
                         weekdays=False, weekends=True, start="09:00", end="12:00",
                         hostel="day-scholar", commitment="win", is_public=False)

        stored = card_repo.get_card(card_repo.create_card(card).id)

        assert stored.looking_for_roles == ["frontend", "ML"]
        assert stored.required_skills == ["React", "Python"]
        assert stored.availability == card.availability
        assert stored.hostel_status.value == "day-scholar"
        assert stored.commitment_level.value == "win"
        assert stored.is_public is False

    def test_get_missing_card(self, card_repo):
        assert card_repo.get_card("nope") is None

    def test_list_public_cards(self, card_repo, make_card):
        base = datetime(2024, 3, 1, 12, 0)
        for i, (owner, public) in enumerate([("alice", True), ("bob", True), ("carol", False), ("dan", True)]):
            card = make_card(owner_uid=owner, is_public=public, card_id=f"c{i}")
            card.created_at = base + timedelta(minutes=i)
            card_repo.create_card(card)

        cards = card_repo.list_public_cards(exclude_uid="alice", max_cards=10)

        assert [c.owner_uid for c in cards] == ["dan", "bob"]

    def test_list_public_cards_limit(self, card_repo, make_card):
        for i in range(5):
            card_repo.create_card(make_card(owner_uid=f"u{i}"))

        assert len(card_repo.list_public_cards(exclude_uid=None, max_cards=3)) == 3

    def test_list_owned_cards_newest_first(self, card_repo, make_card):
        base = datetime(2024, 3, 1, 12, 0)
        for i in range(3):
            card = make_card(owner_uid="alice", card_id=f"a{i}", is_public=(i != 1))
            card.created_at = base + timedelta(hours=i)
            card_repo.create_card(card)
        card_repo.create_card(make_card(owner_uid="bob", card_id="b0"))

        assert [c.id for c in card_repo.list_owned_cards("alice")] == ["a2", "a1", "a0"]

    def test_update_card(self, card_repo, make_card):
        stored = card_repo.create_card(make_card(owner_uid="alice"))

        updated = card_repo.update_card(stored.id, {
            "eventName": "Renamed Hack",
            "requiredSkills": ["Go", "go", " SQL "],
            "ownerUid": "mallory",
        })

        assert updated.event_name == "Renamed Hack"
        assert updated.required_skills == ["Go", "SQL"]
        assert updated.owner_uid == "alice"
        assert card_repo.get_card(stored.id).event_name == "Renamed Hack"

    def test_update_missing_card(self, card_repo):
        with pytest.raises(CardNotFoundError):
            card_repo.update_card("nope", {"eventName": "x"})

    def test_delete_card(self, card_repo, make_card):
        stored = card_repo.create_card(make_card(owner_uid="alice"))

        card_repo.delete_card(stored.id)

        assert card_repo.get_card(stored.id) is None
        with pytest.raises(CardNotFoundError):
            card_repo.delete_card(stored.id)

    def test_records_backend_calls(self, card_repo, logger):
        before = logger.get_metrics()["backend_calls"]
        card_repo.get_card("nope")
        assert logger.get_metrics()["backend_calls"] == before + 1

    def test_database_errors_become_backend_errors(self, card_repo, make_card, logger):
        card_repo.create_card(make_card(owner_uid="alice", card_id="dup"))

        with pytest.raises(BackendError):
            card_repo.create_card(make_card(owner_uid="bob", card_id="dup"))

        assert logger.get_metrics()["backend_failures"] == 1


class TestSqlRequestRepository:
    """Test requests and connections."""

    def test_create_request_is_pending(self, request_repo):
        stored = request_repo.create_request(make_request())

        assert stored.id
        assert stored.status == RequestStatus.PENDING
        assert request_repo.get_request(stored.id) == stored

    def test_list_requests_filters(self, request_repo):
        request_repo.create_request(make_request("alice", "bob"))
        request_repo.create_request(make_request("carol", "bob"))
        request_repo.create_request(make_request("alice", "carol"))

        assert len(request_repo.list_requests(to_uid="bob")) == 2
        assert len(request_repo.list_requests(from_uid="alice")) == 2
        assert len(request_repo.list_requests(from_uid="alice", to_uid="bob")) == 1

    def test_update_status(self, request_repo):
        stored = request_repo.create_request(make_request())

        updated = request_repo.update_status(stored.id, RequestStatus.ACCEPTED)

        assert updated.status == RequestStatus.ACCEPTED
        assert request_repo.get_request(stored.id).status == RequestStatus.ACCEPTED

    def test_update_missing_request(self, request_repo):
        with pytest.raises(RequestNotFoundError):
            request_repo.update_status("nope", RequestStatus.REJECTED)

    def test_connections_store_sorted_pair(self, request_repo):
        stored = request_repo.create_request(make_request("zoe", "adam"))

        connection = request_repo.create_connection(stored)

        assert connection.uids == ("adam", "zoe")
        assert connection.request_id == stored.id

    def test_list_connections_either_side(self, request_repo):
        request_repo.create_connection(request_repo.create_request(make_request("alice", "bob")))
        request_repo.create_connection(request_repo.create_request(make_request("carol", "alice")))
        request_repo.create_connection(request_repo.create_request(make_request("bob", "carol")))

        assert len(request_repo.list_connections("alice")) == 2
        assert len(request_repo.list_connections("dan")) == 0
