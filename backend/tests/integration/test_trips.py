"""
tests/integration/test_trips.py — Trips, join codes, and membership.

Endpoints covered:
  POST   /trips, GET /trips, GET /trips/:id, DELETE /trips/:id
  POST   /trips/join
  DELETE /trips/:id/members/me

Rules verified:
  - The creator is the first member; join secrets are never returned
  - Joining is idempotent; wrong secret → 403 INVALID_JOIN_SECRET;
    unknown code → 404 TRIP_NOT_FOUND
  - Non-members get 403 FORBIDDEN, not 404
  - Only the creator may delete; deleting removes every row under the trip
"""

from __future__ import annotations

from unittest.mock import patch

from backend.app.extensions import db
from backend.app.models.bill import Bill
from backend.app.models.bill_item import BillItem
from backend.app.models.bill_participant import BillParticipant
from backend.app.models.item_claim import ItemClaim
from backend.app.models.membership import Membership
from backend.app.models.trip import Trip
from backend.app.models.user import User
from backend.app.services import trip_service

from .conftest import (
    JOIN_SECRET,
    auth_headers,
    count_rows,
    join_trip,
    make_bill,
    make_item,
    make_trip,
    me,
)


class TestCreateTrip:

    def test_creator_is_first_member(self, client):
        alice = me(client, "alice")
        trip = make_trip(client, "alice", "Lisbon")

        assert trip["name"] == "Lisbon"
        assert trip["created_by_user_id"] == alice["id"]
        assert [m["id"] for m in trip["members"]] == [alice["id"]]
        assert len(trip["join_code"]) == 8

    def test_secret_is_not_returned(self, client):
        trip = make_trip(client, "alice")
        assert "join_secret" not in trip
        assert "join_secret_hash" not in trip

    def test_join_codes_are_unique(self, client):
        codes = {make_trip(client, "alice", f"Trip {i}")["join_code"] for i in range(5)}
        assert len(codes) == 5

    def test_blank_name_rejected(self, client):
        resp = client.post(
            "/api/v1/trips/",
            json={"name": "  ", "join_secret": JOIN_SECRET},
            headers=auth_headers("alice"),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "name"

    def test_missing_secret_rejected(self, client):
        resp = client.post("/api/v1/trips/", json={"name": "Lisbon"}, headers=auth_headers("alice"))
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "MISSING_FIELD"


class TestListTrips:

    def test_lists_only_callers_trips_oldest_first(self, client):
        first = make_trip(client, "alice", "First")
        second = make_trip(client, "alice", "Second")
        make_trip(client, "bob", "Bob's")

        resp = client.get("/api/v1/trips/", headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert [t["id"] for t in resp.get_json()["data"]] == [first["id"], second["id"]]

    def test_new_user_has_no_trips(self, client):
        resp = client.get("/api/v1/trips/", headers=auth_headers("nobody"))
        assert resp.get_json()["data"] == []


class TestJoinTrip:

    def test_join_with_correct_secret(self, client):
        trip = make_trip(client, "alice")
        bob = me(client, "bob")

        resp = join_trip(client, "bob", trip)

        assert resp.status_code == 200
        assert bob["id"] in [m["id"] for m in resp.get_json()["data"]["members"]]

    def test_join_is_idempotent(self, client):
        trip = make_trip(client, "alice")

        first = join_trip(client, "bob", trip)
        second = join_trip(client, "bob", trip)

        assert first.status_code == second.status_code == 200
        assert len(second.get_json()["data"]["members"]) == 2

    def test_creator_joining_own_trip_is_noop(self, client):
        trip = make_trip(client, "alice")
        resp = join_trip(client, "alice", trip)
        assert len(resp.get_json()["data"]["members"]) == 1

    def test_wrong_secret_is_forbidden(self, client):
        trip = make_trip(client, "alice")

        resp = join_trip(client, "bob", trip, join_secret="wrong")

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "INVALID_JOIN_SECRET"

        # And bob really is not a member.
        assert client.get(f"/api/v1/trips/{trip['id']}", headers=auth_headers("bob")).status_code == 403

    def test_unknown_code_is_not_found(self, client):
        resp = join_trip(client, "bob", {"join_code": "deadbeef"})
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "TRIP_NOT_FOUND"


class TestGetTrip:

    def test_member_sees_members(self, client):
        trip = make_trip(client, "alice")
        join_trip(client, "bob", trip)

        resp = client.get(f"/api/v1/trips/{trip['id']}", headers=auth_headers("bob"))

        assert resp.status_code == 200
        names = [m["display_name"] for m in resp.get_json()["data"]["members"]]
        assert names == ["Alice", "Bob"]

    def test_non_member_is_forbidden(self, client):
        trip = make_trip(client, "alice")
        resp = client.get(f"/api/v1/trips/{trip['id']}", headers=auth_headers("mallory"))
        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_missing_trip_is_not_found(self, client):
        resp = client.get("/api/v1/trips/999999", headers=auth_headers("alice"))
        assert resp.status_code == 404


class TestLeaveTrip:

    def test_leave_removes_access(self, client):
        trip = make_trip(client, "alice")
        join_trip(client, "bob", trip)

        resp = client.delete(f"/api/v1/trips/{trip['id']}/members/me", headers=auth_headers("bob"))

        assert resp.status_code == 200
        assert client.get(f"/api/v1/trips/{trip['id']}", headers=auth_headers("bob")).status_code == 403

    def test_leave_twice_is_fine(self, client):
        trip = make_trip(client, "alice")
        url = f"/api/v1/trips/{trip['id']}/members/me"

        assert client.delete(url, headers=auth_headers("bob")).status_code == 200
        assert client.delete(url, headers=auth_headers("bob")).status_code == 200


class TestDeleteTrip:

    def test_creator_deletes_trip_and_bills(self, client):
        trip = make_trip(client, "alice")
        bill = make_bill(client, "alice", trip["id"], "10.00")

        resp = client.delete(f"/api/v1/trips/{trip['id']}", headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert client.get(f"/api/v1/trips/{trip['id']}", headers=auth_headers("alice")).status_code == 404
        assert client.get(f"/api/v1/bills/{bill['id']}", headers=auth_headers("alice")).status_code == 404

    def test_delete_populated_trip_leaves_no_orphans(self, app, client):
        trip = make_trip(client, "alice")
        join_trip(client, "bob", trip)
        even = make_bill(client, "alice", trip["id"], "40.00", bill_type="even")
        itemized = make_bill(client, "bob", trip["id"], "25.00")
        item = make_item(client, "bob", itemized["id"], "12.50", quantity=2)
        for sub in ("alice", "bob"):
            client.post(f"/api/v1/bills/{even['id']}/participants/me", headers=auth_headers(sub))
            client.post(f"/api/v1/items/{item['id']}/claims/me", headers=auth_headers(sub))

        resp = client.delete(f"/api/v1/trips/{trip['id']}", headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert count_rows(app, Trip, id=trip["id"]) == 0
        assert count_rows(app, Membership, trip_id=trip["id"]) == 0
        assert count_rows(app, Bill, trip_id=trip["id"]) == 0
        assert count_rows(app, BillParticipant, bill_id=even["id"]) == 0
        assert count_rows(app, BillItem, bill_id=itemized["id"]) == 0
        assert count_rows(app, ItemClaim, item_id=item["id"]) == 0
        # users outlive the trips they were in
        assert count_rows(app, User, external_ref="bob") == 1

    def test_member_cannot_delete(self, client):
        trip = make_trip(client, "alice")
        join_trip(client, "bob", trip)

        resp = client.delete(f"/api/v1/trips/{trip['id']}", headers=auth_headers("bob"))

        assert resp.status_code == 403
        assert client.get(f"/api/v1/trips/{trip['id']}", headers=auth_headers("alice")).status_code == 200

    def test_delete_missing_trip_is_noop(self, client):
        resp = client.delete("/api/v1/trips/999999", headers=auth_headers("alice"))
        assert resp.status_code == 200


class TestConcurrentMembershipInsert:

    def test_lost_insert_keeps_earlier_writes(self, app, client):
        trip = make_trip(client, "alice", name="Before")
        bob = me(client, "bob")
        join_trip(client, "bob", trip)
        lookup = trip_service._get_membership
        seen = []

        def miss_once(user_id, trip_id, session):
            # The first lookup misses, as if the other request had not committed yet.
            seen.append(user_id)
            return None if len(seen) == 1 else lookup(user_id, trip_id, session)

        with app.app_context():
            db.session.get(Trip, trip["id"]).name = "After"
            with patch.object(trip_service, "_get_membership", side_effect=miss_once):
                membership = trip_service.add_member(bob["id"], trip["id"], db.session)
            winner_id = membership.id
            db.session.commit()

        assert count_rows(app, Membership, id=winner_id, user_id=bob["id"]) == 1
        assert count_rows(app, Membership, trip_id=trip["id"], user_id=bob["id"]) == 1
        assert count_rows(app, Trip, id=trip["id"], name="After") == 1
