"""API tests for attendance views and service bookings."""

from datetime import datetime, timezone

import pytest

from social_events_api.app.core.db import get_connection
from social_events_api.app.schemas.event import EventRead
from social_events_api.app.services.booking_service import event_time, split_by_time


BASE = "/api/v1/bookings"
HOST = "user_host"
GUEST = "user_guest"


def join(client, event_id, user=GUEST, **extra):
    response = client.post(f"/api/v1/events/{event_id}/join", json={"clerkUserId": user, **extra})
    assert response.status_code in (200, 201), response.text
    return response


def _event(**fields):
    data = {
        "id": 1,
        "title": "t",
        "creatorClerkId": HOST,
        "kind": "free",
        "location": {"lat": 0, "lng": 0, "countryCode": "DE", "city": "Berlin"},
    }
    data.update(fields)
    return EventRead.model_validate(data)


class TestEventTime:
    def test_starts_at_wins(self):
        event = _event(startsAt="2030-01-01T09:00:00Z", date="2031-01-01", time="10:00")
        assert event_time(event) == datetime(2030, 1, 1, 9, tzinfo=timezone.utc)

    def test_date_and_time(self):
        assert event_time(_event(date="2030-01-01", time="10:30")) == datetime(2030, 1, 1, 10, 30, tzinfo=timezone.utc)

    def test_date_only_is_noon(self):
        assert event_time(_event(date="2030-01-01")) == datetime(2030, 1, 1, 12, tzinfo=timezone.utc)

    def test_undated(self):
        assert event_time(_event()) is None

    def test_split(self):
        now = datetime(2030, 1, 1, 11, tzinfo=timezone.utc)
        past = _event(id=1, date="2030-01-01", time="10:00")
        noon = _event(id=2, date="2030-01-01")
        undated = _event(id=3)
        upcoming, gone = split_by_time([past, noon, undated], now)
        assert [e.id for e in upcoming] == [2, 3]
        assert [e.id for e in gone] == [1]


class TestMyBookings:
    def test_created_and_joined_split(self, client, make_event):
        future = make_event(title="Future")
        old = make_event(title="Old", startsAt="2001-01-01T10:00:00Z")
        joined_future = make_event(creator="user_other", title="Their future")
        joined_old = make_event(creator="user_other", title="Their old", startsAt="2001-05-05T10:00:00Z")
        join(client, joined_future["id"], user=HOST)
        join(client, joined_old["id"], user=HOST)

        body = client.get(f"{BASE}/my-bookings", params={"clerkUserId": HOST}).json()
        assert body["ok"] is True
        assert [e["id"] for e in body["createdEvents"]] == [old["id"], future["id"]]
        assert [e["title"] for e in body["createdUpcoming"]] == ["Future"]
        assert [e["title"] for e in body["createdPast"]] == ["Old"]
        assert [e["title"] for e in body["goingEvents"]] == ["Their future"]
        assert [e["title"] for e in body["pastEvents"]] == ["Their old"]

    def test_empty(self, client):
        body = client.get(f"{BASE}/my-bookings", params={"clerkUserId": "nobody"}).json()
        assert body["createdEvents"] == [] and body["goingEvents"] == []


class TestGoing:
    def test_ordered_by_start(self, client, make_event):
        later = make_event(title="Later", startsAt="2099-09-01T10:00:00Z")
        sooner = make_event(title="Sooner", startsAt="2099-03-01T10:00:00Z")
        make_event(title="Not joined")
        join(client, later["id"])
        join(client, sooner["id"])
        events = client.get(f"{BASE}/going", params={"clerkUserId": GUEST}).json()["goingEvents"]
        assert [e["title"] for e in events] == ["Sooner", "Later"]

    def test_limit_is_clamped(self, client, make_event):
        for title in ("a", "b"):
            join(client, make_event(title=title)["id"])
        events = client.get(f"{BASE}/going", params={"clerkUserId": GUEST, "limit": 0}).json()["goingEvents"]
        assert len(events) == 1
        events = client.get(f"{BASE}/going", params={"clerkUserId": GUEST, "limit": 5000}).json()["goingEvents"]
        assert len(events) == 2


class TestAttendees:
    def test_enriched_from_user_records(self, client, make_event):
        event = make_event()
        client.post("/api/v1/onboarding/name", json={"clerkUserId": GUEST, "firstName": "Grace", "lastName": "Hopper"})
        client.post(
            "/api/v1/webhooks/identity",
            json={
                "type": "user.updated",
                "data": {
                    "id": GUEST,
                    "email_addresses": [{"id": "e1", "email_address": "grace@navy.mil"}],
                    "primary_email_address_id": "e1",
                    "image_url": "https://img/grace.png",
                },
            },
            headers={"x-webhook-secret": "hook-secret"},
        )
        join(client, event["id"], name="G", email="old@example.com")
        join(client, event["id"], user="user_anon", name="Anon", email="anon@example.com")

        response = client.get(f"{BASE}/attendees", params={"eventId": event["id"], "creatorClerkId": HOST})
        assert response.status_code == 200
        attendees = response.json()["attendees"]
        assert attendees[0] == {
            "clerkId": GUEST,
            "name": "Grace Hopper",
            "email": "grace@navy.mil",
            "imageUrl": "https://img/grace.png",
        }
        assert attendees[1]["name"] == "Anon"
        assert attendees[1]["email"] == "anon@example.com"

    def test_creator_only(self, client, make_event):
        event = make_event()
        response = client.get(f"{BASE}/attendees", params={"eventId": event["id"], "creatorClerkId": GUEST})
        assert response.status_code == 403

    def test_event_id_required(self, client):
        response = client.get(f"{BASE}/attendees", params={"creatorClerkId": HOST})
        assert response.status_code == 400
        assert response.json()["field"] == "eventId"


class TestServiceBookings:
    @pytest.fixture
    def service(self, make_event):
        return make_event(kind="service", priceCents=5000, title="Haircut")

    def book(self, client, event_id, when="2099-06-02T10:00:00Z", user=GUEST, **extra):
        return client.post(
            f"{BASE}/service-bookings",
            json={"eventId": event_id, "clerkUserId": user, "whenISO": when, **extra},
        )

    def test_book_and_list(self, client, service):
        response = self.book(client, service["id"], when="2099-06-03T09:00:00+02:00", customerName=" Grace ")
        assert response.status_code == 201
        booking = response.json()["booking"]
        assert booking["whenISO"] == "2099-06-03T07:00:00+00:00"
        assert booking["customerClerkId"] == GUEST
        assert booking["customerName"] == "Grace"
        self.book(client, service["id"], when="2099-06-02T10:00:00Z", user="user_2")

        listed = client.get(
            f"{BASE}/service-bookings", params={"eventId": service["id"], "creatorClerkId": HOST}
        ).json()["bookings"]
        assert [b["customerClerkId"] for b in listed] == ["user_2", GUEST]

    def test_list_creator_only(self, client, service):
        response = client.get(f"{BASE}/service-bookings", params={"eventId": service["id"], "creatorClerkId": GUEST})
        assert response.status_code == 403

    def test_list_non_service(self, client, make_event):
        event = make_event()
        response = client.get(f"{BASE}/service-bookings", params={"eventId": event["id"], "creatorClerkId": HOST})
        assert response.status_code == 400
        assert response.json()["error"] == "Not a service event"

    def test_paused_service(self, client, service):
        client.patch(
            f"/api/v1/events/{service['id']}/service-status",
            json={"creatorClerkId": HOST, "enabled": False},
        )
        assert self.book(client, service["id"]).status_code == 400

    def test_free_event_not_bookable(self, client, make_event):
        assert self.book(client, make_event()["id"]).status_code == 400

    def test_missing_event(self, client):
        assert self.book(client, 12345).status_code == 404

    def test_invalid_when(self, client, service):
        response = self.book(client, service["id"], when="tomorrow")
        assert response.status_code == 400
        assert response.json()["field"] == "whenISO"

    def test_deleting_event_removes_bookings(self, client, service):
        self.book(client, service["id"])
        client.delete(f"/api/v1/events/{service['id']}", params={"creatorClerkId": HOST})
        conn = get_connection()
        try:
            count = conn.execute("SELECT COUNT(*) FROM service_bookings").fetchone()[0]
        finally:
            conn.close()
        assert count == 0
