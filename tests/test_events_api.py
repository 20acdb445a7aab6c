"""API tests for event CRUD, listing and joining."""

import pytest

from conftest import event_payload, location
from social_events_api.app.schemas.event import norm_key
from social_events_api.app.services.event_service import haversine_m


BASE = "/api/v1/events"


@pytest.mark.parametrize(
    "raw, key",
    [
        ("Berlin", "berlin"),
        ("  New   York ", "new-york"),
        ("São Paulo", "são-paulo"),
        ("St. John's", "st-johns"),
        ("Saint-Denis", "saint-denis"),
    ],
)
def test_norm_key(raw, key):
    assert norm_key(raw) == key


def test_haversine_berlin_to_paris():
    assert haversine_m(52.52, 13.405, 48.8566, 2.3522) == pytest.approx(878_000, rel=0.01)


class TestCreate:
    def test_free_event(self, client):
        response = client.post(f"{BASE}/", json=event_payload(attendees=[{"clerkId": "x"}]))
        assert response.status_code == 201
        body = response.json()
        event = body["event"]
        assert body["id"] == event["id"]
        assert event["creatorClerkId"] == "user_host"
        assert event["status"] == "active"
        assert event["attendees"] == []
        assert event["emoji"] == "📍"
        assert event["startsAt"].startswith("2099-06-01T18:00:00")
        loc = event["location"]
        assert loc["countryCode"] == "DE"
        assert loc["cityKey"] == "berlin"
        assert loc["geo"] == {"type": "Point", "coordinates": [13.405, 52.52]}

    def test_starts_at_from_date_and_time(self, client):
        payload = event_payload(date="2099-07-04", time="20:30")
        payload.pop("startsAt")
        event = client.post(f"{BASE}/", json=payload).json()["event"]
        assert event["startsAt"].startswith("2099-07-04T20:30:00")

    def test_no_start_time(self, client):
        payload = event_payload(date="2099-07-04")
        payload.pop("startsAt")
        event = client.post(f"{BASE}/", json=payload).json()["event"]
        assert event["startsAt"] is None

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"kind": "paid"}, "priceCents must be > 0 for paid/service"),
            ({"kind": "paid", "priceCents": 0}, "priceCents must be > 0 for paid/service"),
            ({"kind": "service", "priceCents": 500, "attendance": 10}, "attendance must be null for paid/service"),
            ({"kind": "free", "priceCents": 100}, "priceCents must be null for free events"),
        ],
    )
    def test_kind_rules(self, client, overrides, message):
        response = client.post(f"{BASE}/", json=event_payload(**overrides))
        assert response.status_code == 400
        assert response.json()["error"] == message

    def test_attendance_must_be_positive(self, client):
        response = client.post(f"{BASE}/", json=event_payload(attendance=0))
        assert response.status_code == 400
        assert response.json()["field"] == "attendance"

    def test_title_required(self, client):
        payload = event_payload()
        payload.pop("title")
        response = client.post(f"{BASE}/", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "title is required", "field": "title"}

    def test_bad_country_code(self, client):
        response = client.post(f"{BASE}/", json=event_payload(location=location(countryCode="DEU")))
        assert response.status_code == 400
        assert response.json()["field"] == "location"

    def test_legacy_clerk_user_id(self, client):
        payload = event_payload()
        payload["clerkUserId"] = payload.pop("creatorClerkId")
        assert client.post(f"{BASE}/", json=payload).status_code == 201


class TestRead:
    def test_get_missing(self, client):
        response = client.get(f"{BASE}/999")
        assert response.status_code == 404
        assert response.json() == {"error": "Event not found"}

    def test_get(self, client, make_event):
        event = make_event()
        response = client.get(f"{BASE}/{event['id']}")
        assert response.status_code == 200
        assert response.json()["event"]["title"] == "Sunday board games"

    def test_requires_client_auth(self, anon_client, make_event):
        event = make_event()
        assert anon_client.get(f"{BASE}/{event['id']}").status_code == 401

    def test_list_newest_first(self, client, make_event):
        first = make_event(title="First")
        second = make_event(title="Second")
        events = client.get(f"{BASE}/").json()["events"]
        assert [e["id"] for e in events] == [second["id"], first["id"]]

    def test_list_filters(self, client, make_event):
        make_event(title="Berlin free")
        make_event(title="Berlin paid", kind="paid", priceCents=1500)
        make_event(
            title="Munich",
            location=location(city="München", admin1="Bavaria", lat=48.137, lng=11.575),
        )
        make_event(creator="user_other", title="Lyon", location=location(countryCode="FR", city="Lyon", admin1="ARA"))

        def titles(**params):
            return sorted(e["title"] for e in client.get(f"{BASE}/", params=params).json()["events"])

        assert titles(country="de") == ["Berlin free", "Berlin paid", "Munich"]
        assert titles(city="  BERLIN ") == ["Berlin free", "Berlin paid"]
        assert titles(cityKey="münchen") == ["Munich"]
        assert titles(admin1="Bavaria") == ["Munich"]
        assert titles(kind="paid") == ["Berlin paid"]
        assert titles(creatorClerkId="user_other") == ["Lyon"]
        assert len(titles(country="de", limit=1)) == 1

    def test_list_limit_bounds(self, client):
        assert client.get(f"{BASE}/", params={"limit": 501}).status_code == 400
        assert client.get(f"{BASE}/", params={"limit": 0}).status_code == 400

    def test_list_near(self, client, make_event):
        make_event(title="Far", location=location(city="Hamburg", lat=53.55, lng=9.99))
        make_event(title="Near", location=location(lat=52.521, lng=13.41))
        events = client.get(f"{BASE}/", params={"nearLat": 52.52, "nearLng": 13.405}).json()["events"]
        assert [e["title"] for e in events] == ["Near", "Far"]
        assert events[0]["distanceM"] < events[1]["distanceM"]

        within = client.get(
            f"{BASE}/", params={"nearLat": 52.52, "nearLng": 13.405, "radiusM": 10_000}
        ).json()["events"]
        assert [e["title"] for e in within] == ["Near"]

    def test_near_needs_both_coordinates(self, client):
        response = client.get(f"{BASE}/", params={"nearLat": 52.52})
        assert response.status_code == 400


class TestUpdate:
    def test_partial_update(self, client, make_event):
        event = make_event()
        response = client.patch(
            f"{BASE}/{event['id']}", json={"creatorClerkId": "user_host", "title": "  Chess night "}
        )
        assert response.status_code == 200
        updated = response.json()["event"]
        assert updated["title"] == "Chess night"
        assert updated["location"] == event["location"]

    def test_not_creator(self, client, make_event):
        event = make_event()
        response = client.patch(f"{BASE}/{event['id']}", json={"creatorClerkId": "user_other", "title": "Mine"})
        assert response.status_code == 404
        assert response.json()["error"] == "Event not found or you are not the creator"

    def test_empty_patch(self, client, make_event):
        event = make_event()
        response = client.patch(f"{BASE}/{event['id']}", json={"creatorClerkId": "user_host"})
        assert response.status_code == 400
        assert response.json()["error"] == "No fields provided to update"

    def test_kind_alias_and_merged_rules(self, client, make_event):
        event = make_event()
        url = f"{BASE}/{event['id']}"
        response = client.patch(url, json={"creatorClerkId": "user_host", "kind": "event_paid"})
        assert response.status_code == 400

        response = client.patch(url, json={"creatorClerkId": "user_host", "kind": "event_paid", "priceCents": 900})
        assert response.status_code == 200
        assert response.json()["event"]["kind"] == "paid"

        response = client.patch(url, json={"creatorClerkId": "user_host", "kind": "free"})
        assert response.status_code == 200
        assert response.json()["event"]["priceCents"] is None

    def test_date_change_recomputes_start(self, client, make_event):
        event = make_event(date="2099-06-01", time="18:00")
        response = client.patch(
            f"{BASE}/{event['id']}", json={"creatorClerkId": "user_host", "date": "2099-08-15"}
        )
        assert response.json()["event"]["startsAt"].startswith("2099-08-15T18:00:00")

    def test_location_change_updates_filters(self, client, make_event):
        event = make_event()
        client.patch(
            f"{BASE}/{event['id']}",
            json={"creatorClerkId": "user_host", "location": location(city="Potsdam", admin1="Brandenburg")},
        )
        events = client.get(f"{BASE}/", params={"city": "Potsdam"}).json()["events"]
        assert [e["id"] for e in events] == [event["id"]]


class TestDelete:
    def test_delete_by_creator(self, client, make_event):
        event = make_event()
        response = client.delete(f"{BASE}/{event['id']}", params={"creatorClerkId": "user_host"})
        assert response.status_code == 200
        assert response.json() == {"ok": True, "deletedId": event["id"]}
        assert client.get(f"{BASE}/{event['id']}").status_code == 404

    def test_delete_by_other(self, client, make_event):
        event = make_event()
        response = client.delete(f"{BASE}/{event['id']}", params={"creatorClerkId": "user_other"})
        assert response.status_code == 404
        assert response.json()["error"] == "Event not found or not authorized"


class TestServiceToggle:
    def test_pause_and_resume(self, client, make_event):
        event = make_event(kind="service", priceCents=4000)
        url = f"{BASE}/{event['id']}/service-status"
        paused = client.patch(url, json={"creatorClerkId": "user_host", "enabled": False})
        assert paused.json()["event"]["status"] == "paused"
        resumed = client.patch(url, json={"creatorClerkId": "user_host", "enabled": True})
        assert resumed.json()["event"]["status"] == "active"

    def test_not_creator(self, client, make_event):
        event = make_event(kind="service", priceCents=4000)
        response = client.patch(
            f"{BASE}/{event['id']}/service-status", json={"creatorClerkId": "user_other", "enabled": False}
        )
        assert response.status_code == 403

    def test_not_a_service(self, client, make_event):
        event = make_event()
        response = client.patch(
            f"{BASE}/{event['id']}/service-status", json={"creatorClerkId": "user_host", "enabled": False}
        )
        assert response.status_code == 400


class TestJoin:
    def join(self, client, event_id, user="user_guest", **extra):
        return client.post(f"{BASE}/{event_id}/join", json={"clerkUserId": user, **extra})

    def test_join_then_rejoin(self, client, make_event):
        event = make_event()
        first = self.join(client, event["id"], name="Guest", email="guest@example.com")
        assert first.status_code == 201
        assert first.json()["alreadyJoined"] is False
        assert first.json()["attendee"]["name"] == "Guest"

        again = self.join(client, event["id"])
        assert again.status_code == 200
        assert again.json()["alreadyJoined"] is True
        assert again.json()["attendee"]["email"] == "guest@example.com"

        stored = client.get(f"{BASE}/{event['id']}").json()["event"]
        assert [a["clerkId"] for a in stored["attendees"]] == ["user_guest"]

    def test_attendance_limit(self, client, make_event):
        event = make_event(attendance=1)
        assert self.join(client, event["id"], user="a").status_code == 201
        response = self.join(client, event["id"], user="b")
        assert response.status_code == 409
        assert response.json()["error"] == "Event is full"

    def test_paid_requires_payment(self, client, make_event):
        event = make_event(kind="paid", priceCents=1000)
        response = self.join(client, event["id"])
        assert response.status_code == 400
        assert response.json()["error"].startswith("Payment required")

    def test_cancelled(self, client, make_event):
        event = make_event()
        client.patch(f"{BASE}/{event['id']}", json={"creatorClerkId": "user_host", "status": "cancelled"})
        assert self.join(client, event["id"]).status_code == 400

    def test_missing_event(self, client):
        assert self.join(client, 404).status_code == 404

    def test_joined_flag(self, client, make_event):
        event = make_event()
        url = f"{BASE}/{event['id']}/joined"
        assert client.get(url, params={"clerkUserId": "user_guest"}).json() == {"ok": True, "joined": False}
        self.join(client, event["id"])
        assert client.get(url, params={"clerkUserId": "user_guest"}).json() == {"ok": True, "joined": True}
