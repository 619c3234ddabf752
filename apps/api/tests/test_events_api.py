from __future__ import annotations

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _future(days: int = 3) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _create_event(client: TestClient, headers: dict[str, str], image: bool = True, **overrides):
    form = {
        "title": "Test Event",
        "description": "An event for tests",
        "location": "Amsterdam",
        "date": _future(),
        "capacity": "10",
        "category": "workshop",
    }
    form.update(overrides)
    files = {"image": ("cover.png", PNG_BYTES, "image/png")} if image else None
    return client.post("/api/events", data=form, files=files, headers=headers)


def test_create_event_returns_envelope(client: TestClient, auth_headers):
    resp = _create_event(client, auth_headers("org-1"))

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    event = body["data"]
    assert event["_id"]
    assert event["organizerId"] == "org-1"
    assert event["attendeeCount"] == 0
    assert event["attendees"] == []
    assert event["category"] == "workshop"
    assert event["image"].startswith("/assets/")


def test_uploaded_image_is_served(client: TestClient, auth_headers):
    event = _create_event(client, auth_headers("org-1")).json()["data"]

    resp = client.get(event["image"])

    assert resp.status_code == 200
    assert resp.content == PNG_BYTES


def test_create_event_without_image_is_validation_error(client: TestClient, auth_headers):
    resp = _create_event(client, auth_headers("org-1"), image=False)

    assert resp.status_code == 400
    assert resp.json() == {
        "success": False,
        "message": "Please upload an image",
        "code": "VALIDATION_ERROR",
    }


def test_create_event_without_date_is_validation_error(client: TestClient, auth_headers):
    form_headers = auth_headers("org-1")
    resp = client.post(
        "/api/events",
        data={"title": "No date", "description": "d", "location": "l", "capacity": "3"},
        files={"image": ("cover.png", PNG_BYTES, "image/png")},
        headers=form_headers,
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "date" in resp.json()["message"]


def test_create_event_requires_auth(client: TestClient):
    resp = _create_event(client, {})

    assert resp.status_code == 401
    assert resp.json()["success"] is False


def test_invalid_token_is_rejected(client: TestClient):
    resp = _create_event(client, {"Authorization": "Bearer not-a-jwt"})

    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHORIZED"


def test_token_cookie_is_accepted(client: TestClient, mint_token):
    client.cookies.set("token", mint_token("org-cookie"))
    resp = _create_event(client, {})

    assert resp.status_code == 201
    assert resp.json()["data"]["organizerId"] == "org-cookie"


def test_expired_token_is_rejected(client: TestClient, mint_token):
    token = mint_token("org-1", ttl_seconds=-60)

    resp = _create_event(client, {"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHORIZED"


def test_get_event_and_not_found(client: TestClient, auth_headers):
    event_id = _create_event(client, auth_headers("org-1")).json()["data"]["_id"]

    ok = client.get(f"/api/events/{event_id}")
    assert ok.status_code == 200
    assert ok.json()["data"]["_id"] == event_id

    missing = client.get(f"/api/events/{uuid.uuid4()}")
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "message": "Event not found", "code": "EVENT_NOT_FOUND"}

    malformed = client.get("/api/events/not-an-id")
    assert malformed.status_code == 404


def test_list_events_search_filter_and_paginate(client: TestClient, auth_headers):
    headers = auth_headers("org-1")
    _create_event(client, headers, title="Rust Workshop", category="workshop", date=_future(2))
    _create_event(client, headers, title="Python Meetup", category="meetup", date=_future(1))
    _create_event(client, headers, title="Python Conference", category="conference", date=_future(3))

    resp = client.get("/api/events", params={"search": "python", "limit": 1, "page": 2})
    body = resp.json()
    assert resp.status_code == 200
    assert [e["title"] for e in body["data"]] == ["Python Conference"]
    assert body["pagination"] == {"page": 2, "limit": 1, "total": 2, "pages": 2}

    by_category = client.get("/api/events", params={"category": "meetup"}).json()
    assert [e["title"] for e in by_category["data"]] == ["Python Meetup"]

    everything = client.get("/api/events", params={"category": "all"}).json()
    assert [e["title"] for e in everything["data"]] == [
        "Python Meetup",
        "Rust Workshop",
        "Python Conference",
    ]


def test_list_events_hides_past_events_unless_range_given(client: TestClient, auth_headers, store, make_event):
    event = make_event(organizer_id="org-1", title="Soon")
    past = datetime.now(timezone.utc) - timedelta(days=2)
    store.conditional_update(event.id, lambda e: True, lambda e: e.model_copy(update={"date": past}))

    default = client.get("/api/events").json()
    assert default["data"] == []

    day = past.date().isoformat()
    ranged = client.get("/api/events", params={"startDate": day, "endDate": day}).json()
    assert [e["title"] for e in ranged["data"]] == ["Soon"]


def test_list_events_rejects_bad_query_params(client: TestClient):
    assert client.get("/api/events", params={"page": 0}).status_code == 400
    assert client.get("/api/events", params={"startDate": "yesterday"}).status_code == 400


def test_unknown_category_filter_lists_nothing(client: TestClient, auth_headers):
    _create_event(client, auth_headers("org-1"), category="workshop")

    resp = client.get("/api/events", params={"category": "party"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"] == []
    assert body["pagination"]["total"] == 0


def test_update_event_by_organizer(client: TestClient, auth_headers):
    headers = auth_headers("org-1")
    event_id = _create_event(client, headers).json()["data"]["_id"]

    resp = client.put(f"/api/events/{event_id}", data={"title": "Updated Title", "location": ""}, headers=headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "Updated Title"
    assert data["location"] == "Amsterdam"


def test_update_event_by_other_user_is_forbidden(client: TestClient, auth_headers):
    event_id = _create_event(client, auth_headers("org-1")).json()["data"]["_id"]

    resp = client.put(f"/api/events/{event_id}", data={"title": "Blocked"}, headers=auth_headers("someone"))

    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


def test_capacity_shrink_guard_over_http(client: TestClient, auth_headers):
    headers = auth_headers("org-1")
    event_id = _create_event(client, headers, capacity="8").json()["data"]["_id"]
    for i in range(5):
        assert client.post(f"/api/events/{event_id}/rsvp", headers=auth_headers(f"user-{i}")).status_code == 200

    shrink = client.put(f"/api/events/{event_id}", data={"capacity": "3"}, headers=headers)
    assert shrink.status_code == 400
    assert "(5)" in shrink.json()["message"]

    exact = client.put(f"/api/events/{event_id}", data={"capacity": "5"}, headers=headers)
    assert exact.status_code == 200
    assert exact.json()["data"]["capacity"] == 5


def test_delete_event(client: TestClient, auth_headers):
    headers = auth_headers("org-1")
    event = _create_event(client, headers).json()["data"]

    forbidden = client.delete(f"/api/events/{event['_id']}", headers=auth_headers("someone"))
    assert forbidden.status_code == 403

    resp = client.delete(f"/api/events/{event['_id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Event deleted successfully"}

    assert client.get(f"/api/events/{event['_id']}").status_code == 404
    assert client.get(event["image"]).status_code == 404


def test_rsvp_round_trip(client: TestClient, auth_headers):
    event_id = _create_event(client, auth_headers("org-1"), capacity="1").json()["data"]["_id"]
    user_a = auth_headers("user-a")
    user_b = auth_headers("user-b")

    joined = client.post(f"/api/events/{event_id}/rsvp", headers=user_a)
    assert joined.status_code == 200
    assert joined.json()["message"] == "Successfully RSVPed to event"
    assert joined.json()["data"]["attendees"] == ["user-a"]

    full = client.post(f"/api/events/{event_id}/rsvp", headers=user_b)
    assert full.status_code == 409
    assert full.json()["code"] == "EVENT_FULL"

    again = client.post(f"/api/events/{event_id}/rsvp", headers=user_a)
    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_JOINED"

    left = client.delete(f"/api/events/{event_id}/rsvp", headers=user_a)
    assert left.status_code == 200
    assert left.json()["data"]["attendeeCount"] == 0

    not_attending = client.delete(f"/api/events/{event_id}/rsvp", headers=user_a)
    assert not_attending.status_code == 409
    assert not_attending.json()["code"] == "NOT_ATTENDING"

    assert client.post(f"/api/events/{event_id}/rsvp", headers=user_b).status_code == 200


def test_rsvp_requires_auth_and_existing_event(client: TestClient, auth_headers):
    assert client.post(f"/api/events/{uuid.uuid4()}/rsvp").status_code == 401

    resp = client.post(f"/api/events/{uuid.uuid4()}/rsvp", headers=auth_headers("user-a"))
    assert resp.status_code == 404


def test_my_events_and_my_rsvps(client: TestClient, auth_headers):
    org = auth_headers("org-1")
    first = _create_event(client, org, title="First", date=_future(5)).json()["data"]["_id"]
    second = _create_event(client, org, title="Second", date=_future(2)).json()["data"]["_id"]
    _create_event(client, auth_headers("org-2"), title="Other")

    mine = client.get("/api/events/user/my-events", headers=org).json()
    assert [e["title"] for e in mine["data"]] == ["Second", "First"]

    attendee = auth_headers("user-a")
    client.post(f"/api/events/{first}/rsvp", headers=attendee)
    client.post(f"/api/events/{second}/rsvp", headers=attendee)

    rsvps = client.get("/api/events/user/my-rsvps", headers=attendee).json()
    assert [e["title"] for e in rsvps["data"]] == ["Second", "First"]

    assert client.get("/api/events/user/my-rsvps").status_code == 401


def test_concurrent_rsvps_over_http_fill_exactly_to_capacity(app, client: TestClient, auth_headers, store):
    event_id = _create_event(client, auth_headers("org-1"), capacity="3").json()["data"]["_id"]
    users = [f"user-{i}" for i in range(12)]
    barrier = threading.Barrier(len(users))

    def _rsvp_call(user_id: str) -> int:
        local_client = TestClient(app)
        headers = auth_headers(user_id)
        barrier.wait()
        return local_client.post(f"/api/events/{event_id}/rsvp", headers=headers).status_code

    with ThreadPoolExecutor(max_workers=len(users)) as executor:
        statuses = list(executor.map(_rsvp_call, users))

    assert statuses.count(200) == 3
    assert statuses.count(409) == 9

    stored = store.find_by_id(uuid.UUID(event_id))
    assert stored.attendee_count == 3
    assert len(stored.attendees) == 3


def test_health_and_request_id(client: TestClient):
    resp = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == "req-123"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
