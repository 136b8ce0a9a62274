"""Tests for the HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from deskrank.api import create_app
from deskrank.exceptions import PersistenceFailureError


@pytest.fixture
def client(context):
    return TestClient(create_app(context))


@pytest.fixture
def items(context):
    store = context.store
    return [
        store.create_item("Walnut desk", "alice", item_id="desk"),
        store.create_item("Standing desk", "carol", item_id="stand"),
        store.create_item("Corner setup", item_id="corner"),
    ]


def vote(client, voter, winner, loser):
    return client.post("/vote", json={"voterID": voter, "winnerID": winner, "loserID": loser})


class TestPair:
    def test_serves_two_distinct_items(self, client, items):
        response = client.get("/pair", params={"voter": "bob"})

        assert response.status_code == 200
        body = response.json()
        assert body["itemA"]["id"] != body["itemB"]["id"]
        assert set(body["itemA"]) == {
            "id",
            "title",
            "ownerID",
            "rating",
            "voteCount",
            "active",
            "votingOptOut",
            "createdAt",
        }

    def test_exhausted_after_every_pair(self, client, items):
        for _ in range(3):
            body = client.get("/pair", params={"voter": "bob"}).json()
            assert vote(client, "bob", body["itemA"]["id"], body["itemB"]["id"]).status_code == 200

        response = client.get("/pair", params={"voter": "bob"})

        assert response.status_code == 200
        assert response.json() == {"exhausted": True}

    def test_missing_voter_is_invalid_request(self, client, items):
        response = client.get("/pair")

        assert response.status_code == 422
        assert response.json()["kind"] == "InvalidRequest"


class TestVote:
    def test_records_vote(self, client, items):
        response = vote(client, "bob", "desk", "stand")

        assert response.status_code == 200
        body = response.json()
        assert body["winnerRating"] == pytest.approx(1216.0)
        assert body["loserRating"] == pytest.approx(1184.0)
        assert body["voteID"]

    def test_self_vote(self, client, items):
        response = vote(client, "bob", "desk", "desk")

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidVote"

    def test_inactive_item(self, client, items):
        client.patch("/items/stand", json={"active": False})

        response = vote(client, "bob", "desk", "stand")

        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidVote"

    def test_unknown_item(self, client, items):
        response = vote(client, "bob", "desk", "ghost")

        assert response.status_code == 404
        assert response.json() == {"kind": "NotFound", "message": "Item 'ghost' not found"}

    def test_duplicate(self, client, items):
        vote(client, "bob", "desk", "stand")

        response = vote(client, "bob", "stand", "desk")

        assert response.status_code == 409
        assert response.json()["kind"] == "DuplicateVote"

    def test_persistence_failure(self, client, context, items, monkeypatch):
        def unavailable(*_args):
            msg = "database is locked"
            raise PersistenceFailureError(msg)

        monkeypatch.setattr(context.store, "update_item_rating", unavailable)

        response = vote(client, "bob", "desk", "stand")

        assert response.status_code == 503
        assert response.json()["kind"] == "PersistenceFailure"

    def test_malformed_body(self, client, items):
        response = client.post("/vote", json={"voterID": "bob", "winnerID": "desk"})

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "InvalidRequest"
        assert "loserID" in body["message"]


class TestLeaderboard:
    def test_default_limit_and_order(self, client, context, items):
        for index in range(4):
            context.store.create_item(f"Extra {index}", item_id=f"extra-{index}")
        vote(client, "bob", "corner", "desk")

        body = client.get("/leaderboard").json()

        ids = [item["id"] for item in body["items"]]
        assert ids == ["corner", "stand", "extra-0", "extra-1", "extra-2"]
        assert body["items"][0]["voteCount"] == 1

    def test_explicit_limit(self, client, items):
        body = client.get("/leaderboard", params={"limit": 2}).json()

        assert [item["id"] for item in body["items"]] == ["desk", "stand"]

    def test_invalid_limit(self, client, items):
        assert client.get("/leaderboard", params={"limit": 0}).status_code == 422


class TestItems:
    def test_create_item(self, client):
        response = client.post("/items", json={"title": "Loft bed", "ownerID": "dan"})

        assert response.status_code == 201
        body = response.json()
        assert body["rating"] == 1200.0
        assert body["voteCount"] == 0
        assert body["ownerID"] == "dan"

    def test_upload_inherits_owner_opt_out(self, client, context):
        context.store.set_owner_opt_out("dan", opt_out=True)

        inherited = client.post("/items", json={"title": "Loft bed", "ownerID": "dan"}).json()
        explicit = client.post("/items", json={"ownerID": "dan", "votingOptOut": False}).json()

        assert inherited["votingOptOut"] is True
        assert explicit["votingOptOut"] is False

    def test_blank_title_becomes_none(self, client):
        body = client.post("/items", json={"title": "   "}).json()

        assert body["title"] is None

    def test_update_flags(self, client, items):
        response = client.patch("/items/desk", json={"votingOptOut": True})

        assert response.status_code == 200
        assert response.json()["votingOptOut"] is True
        assert response.json()["active"] is True

    def test_opted_out_items_leave_pairing(self, client, items):
        client.patch("/items/corner", json={"votingOptOut": True})

        body = client.get("/pair", params={"voter": "bob"}).json()

        assert {body["itemA"]["id"], body["itemB"]["id"]} == {"desk", "stand"}

    def test_update_missing_item(self, client):
        response = client.patch("/items/ghost", json={"active": False})

        assert response.status_code == 404

    def test_delete_item(self, client, context, items):
        assert client.delete("/items/desk").status_code == 204
        assert client.delete("/items/desk").status_code == 404
        assert context.store.count_items() == 2

    def test_health(self, client, items):
        vote(client, "bob", "desk", "stand")

        assert client.get("/health").json() == {"status": "ok", "items": 3, "votes": 1}
