"""Integration tests for the HTTP API.

Run with: pytest tests/test_api.py -v
"""

import json
import uuid

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from rollcall import models


@pytest.fixture
def users(db):
    User = get_user_model()
    return {
        name: User.objects.create_user(username=name, password="pw")
        for name in ("creator", "helper", "alice", "bob")
    }


@pytest.fixture
def client_for(users):
    def _client(name: str) -> APIClient:
        client = APIClient()
        client.force_authenticate(users[name])
        return client

    return _client


@pytest.fixture
def event(users):
    row = models.Event.objects.create(
        name="Park cleanup",
        created_by=str(users["creator"].pk),
        capacity_mode=models.Event.CapacityMode.FIXED,
        max_seats=1,
    )
    models.OrganizerMembership.objects.create(event=row, user_id=str(users["helper"].pk))
    return row


def url(path: str) -> str:
    return f"/api/{path}"


def register(client: APIClient, event_id, body=None):
    return client.post(url(f"events/{event_id}/registrations"), body or {}, format="json")


@pytest.mark.django_db
class TestRegistrationEndpoints:
    """Tests for registration endpoints."""

    def test_register_returns_entry_credential(self, client_for, event):
        response = register(client_for("alice"), event.id, {"group_members": [{"name": "Sam"}]})

        assert response.status_code == 201
        body = response.json()
        assert body["registration"]["state"] == "REGISTERED"
        assert body["registration"]["group_members"] == [{"name": "Sam", "phone": "", "email": ""}]
        assert body["entry_credential"]["kind"] == "ENTRY"
        assert body["entry_credential"]["image"].startswith("data:image/png;base64,")
        assert body["exit_credential"] is None
        assert models.Event.objects.get(pk=event.id).occupant_count == 1

    def test_register_twice_conflicts(self, client_for, event):
        client = client_for("alice")
        register(client, event.id)
        response = register(client, event.id)
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_REGISTERED"

    def test_full_event_conflicts(self, client_for, event):
        register(client_for("alice"), event.id)
        response = register(client_for("bob"), event.id)
        assert response.status_code == 409
        assert response.json() == {"code": "NO_SEATS", "detail": "This event is full."}

    def test_invalid_event_id(self, client_for):
        response = register(client_for("alice"), "not-a-uuid")
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_IDENTIFIER"

    def test_unknown_event(self, client_for):
        response = register(client_for("alice"), uuid.uuid4())
        assert response.status_code == 404
        assert response.json()["code"] == "EVENT_NOT_FOUND"

    def test_malformed_body(self, client_for, event):
        response = register(client_for("alice"), event.id, {"group_members": [{"phone": "123"}]})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_requires_authentication(self, api_client, event):
        response = register(api_client, event.id)
        assert response.status_code in (401, 403)

    def test_check_me_and_withdraw(self, client_for, event):
        client = client_for("alice")
        assert client.get(url(f"events/{event.id}/registrations/check")).json() == {"registered": False}

        register(client, event.id)
        assert client.get(url(f"events/{event.id}/registrations/check")).json() == {"registered": True}
        me = client.get(url(f"events/{event.id}/registrations/me"))
        assert me.status_code == 200
        assert client.get(url("registrations/events")).json() == {"event_ids": [str(event.id)]}

        response = client.delete(url(f"events/{event.id}/registrations/me"))
        assert response.status_code == 204
        assert models.Event.objects.get(pk=event.id).occupant_count == 0
        assert client.get(url(f"events/{event.id}/registrations/me")).status_code == 404

    def test_volunteer_list_is_for_organizers(self, client_for, event):
        register(client_for("alice"), event.id)
        response = client_for("helper").get(url(f"events/{event.id}/volunteers"))
        assert response.status_code == 200
        assert len(response.json()) == 1
        assert client_for("alice").get(url(f"events/{event.id}/volunteers")).status_code == 403


@pytest.mark.django_db
class TestAttendanceEndpoints:
    """Tests for scanning and manual attendance."""

    def registered(self, client_for, event) -> dict:
        return register(client_for("alice"), event.id).json()

    def test_scan_in_and_out(self, client_for, event):
        body = self.registered(client_for, event)
        scanner = client_for("helper")
        entry_payload = body["entry_credential"]["payload"]

        # Scanners may send the JSON text they read off the code.
        checked_in = scanner.post(
            url("attendance/entry-scan"), {"qr_data": json.dumps(entry_payload)}, format="json"
        )
        assert checked_in.status_code == 200
        assert checked_in.json()["state"] == "CHECKED_IN"
        exit_payload = checked_in.json()["exit_credential"]["payload"]

        again = scanner.post(url("attendance/entry-scan"), {"qr_data": entry_payload}, format="json")
        assert again.status_code == 400
        assert again.json()["code"] == "INVALID_OR_EXPIRED"

        registration_id = body["registration"]["id"]
        refetched = client_for("alice").get(url(f"registrations/{registration_id}/exit-credential"))
        assert refetched.json()["payload"] == exit_payload

        checked_out = scanner.post(url("attendance/exit-scan"), {"qr_data": exit_payload}, format="json")
        assert checked_out.status_code == 200
        assert checked_out.json()["state"] == "CHECKED_OUT"
        assert checked_out.json()["already_recorded"] is False

        repeated = scanner.post(url("attendance/exit-scan"), {"qr_data": exit_payload}, format="json")
        assert repeated.status_code == 200
        assert repeated.json()["already_recorded"] is True

    def test_garbage_scan(self, client_for, event):
        self.registered(client_for, event)
        response = client_for("helper").post(
            url("attendance/exit-scan"), {"qr_data": "{not json"}, format="json"
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_OR_EXPIRED"

    def test_volunteer_cannot_scan(self, client_for, event):
        body = self.registered(client_for, event)
        response = client_for("bob").post(
            url("attendance/entry-scan"), {"qr_data": body["entry_credential"]["payload"]}, format="json"
        )
        assert response.status_code == 403

    def test_mark_attendance_and_edit_times(self, client_for, event):
        body = self.registered(client_for, event)
        registration_id = body["registration"]["id"]
        organizer = client_for("creator")

        marked = organizer.patch(
            url(f"registrations/{registration_id}/attendance"), {"has_attended": True}, format="json"
        )
        assert marked.status_code == 200
        assert marked.json()["registration"]["has_attended"] is True

        edited = organizer.patch(
            url(f"registrations/{registration_id}/times"),
            {"in_time": "2026-05-01T08:55:00Z"},
            format="json",
        )
        assert edited.status_code == 200
        assert edited.json()["in_time"].startswith("2026-05-01T08:55:00")

        undo = organizer.patch(
            url(f"registrations/{registration_id}/attendance"), {"has_attended": False}, format="json"
        )
        assert undo.status_code == 400
        assert undo.json()["code"] == "INVALID_TRANSITION"

    def test_exit_credential_before_check_in(self, client_for, event):
        body = self.registered(client_for, event)
        response = client_for("alice").get(url(f"registrations/{body['registration']['id']}/exit-credential"))
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TRANSITION"

    def test_attendance_report(self, client_for, event):
        body = self.registered(client_for, event)
        client_for("creator").patch(
            url(f"registrations/{body['registration']['id']}/attendance"), {"has_attended": True}, format="json"
        )
        report = client_for("helper").get(url(f"events/{event.id}/attendance-report")).json()
        assert report["total"] == 1
        assert report["attendance_rate"] == 100
        assert report["rows"][0]["status"] == "Present"


@pytest.mark.django_db
class TestCapacityEndpoints:
    """Tests for seating configuration and availability."""

    def test_configure_and_read_availability(self, client_for, event):
        response = client_for("creator").put(
            url(f"events/{event.id}/capacity"),
            {
                "capacity_mode": "FIXED",
                "max_seats": 3,
                "time_slots_enabled": True,
                "time_slots": [
                    {
                        "name": "Morning",
                        "start_time": "08:00",
                        "end_time": "12:00",
                        "categories": [{"name": "Setup", "max_occupants": 1}],
                    }
                ],
            },
            format="json",
        )
        assert response.status_code == 200
        slot = response.json()["timeSlots"][0]
        category = slot["categories"][0]
        assert category["available"] == 1

        selection = {"selected_time_slot": {"slot_id": slot["id"], "category_id": category["id"]}}
        assert register(client_for("alice"), event.id, selection).status_code == 201
        full = register(client_for("bob"), event.id, selection)
        assert full.status_code == 409
        assert full.json()["code"] == "CATEGORY_FULL"

        availability = client_for("bob").get(url(f"events/{event.id}/availability")).json()
        assert availability["availableSeats"] == 2
        assert availability["timeSlots"][0]["categories"][0]["available"] == 0

    def test_rejects_overlapping_slots(self, client_for, event):
        slot = {"start_time": "08:00", "end_time": "12:00", "categories": [{"name": "Setup"}]}
        response = client_for("creator").put(
            url(f"events/{event.id}/capacity"),
            {
                "capacity_mode": "FIXED",
                "max_seats": 3,
                "time_slots_enabled": True,
                "time_slots": [{"name": "A", **slot}, {"name": "B", **slot}],
            },
            format="json",
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CAPACITY_CONFIG"

    def test_volunteers_cannot_configure(self, client_for, event):
        response = client_for("alice").put(
            url(f"events/{event.id}/capacity"), {"capacity_mode": "UNLIMITED"}, format="json"
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestRosterEndpoints:
    """Tests for remove, ban and unban."""

    def test_ban_and_unban(self, client_for, users, event):
        register(client_for("alice"), event.id)
        alice_id = users["alice"].pk

        assert client_for("helper").post(url(f"events/{event.id}/volunteers/{alice_id}/ban")).status_code == 403
        assert client_for("creator").post(url(f"events/{event.id}/volunteers/{alice_id}/ban")).status_code == 204

        banned = register(client_for("alice"), event.id)
        assert banned.status_code == 403
        assert banned.json()["code"] == "BANNED"

        assert client_for("helper").post(url(f"events/{event.id}/volunteers/{alice_id}/unban")).status_code == 204
        assert register(client_for("alice"), event.id).status_code == 201

    def test_remove_frees_the_seat(self, client_for, users, event):
        register(client_for("alice"), event.id)
        response = client_for("helper").post(url(f"events/{event.id}/volunteers/{users['alice'].pk}/remove"))
        assert response.status_code == 204
        assert register(client_for("bob"), event.id).status_code == 201

    def test_unban_without_ban(self, client_for, users, event):
        response = client_for("creator").post(url(f"events/{event.id}/volunteers/{users['bob'].pk}/unban"))
        assert response.status_code == 400
        assert response.json()["code"] == "NOT_BANNED"
