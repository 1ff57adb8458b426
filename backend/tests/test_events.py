from app.models import Event, Mapper, Transaction
from conftest import ABUJA, IKEJA, VI, auth_headers, rows


def _report(client, account, **fields):
    data = {
        "category": "ACCIDENT",
        "title": "Two-car collision",
        "description": "One lane blocked near the toll gate",
        "lat": str(VI[0]),
        "lon": str(VI[1]),
    }
    data.update(fields)
    return client.post("/api/events", data=data, headers=auth_headers(account))


def test_user_report_defaults(client, user, db):
    r = _report(client, user)
    assert r.status_code == 201
    event = r.json()["event"]
    assert event["severity"] == "MEDIUM"
    assert event["status"] == "ACTIVE"
    assert event["verified"] is False
    assert event["reporterRole"] == "user"
    assert event["location"] == {"lat": VI[0], "lon": VI[1], "address": None}

    assert rows(db, Transaction) == []


def test_mapper_report_is_verified_and_rewarded(client, mapper, db):
    r = _report(client, mapper, severity="HIGH")
    assert r.status_code == 201
    event = r.json()["event"]
    assert event["verified"] is True
    assert event["severity"] == "HIGH"

    refreshed = db(lambda s: s.get(Mapper, mapper.id))
    assert refreshed.total_earnings == 5
    assert refreshed.total_events == 1

    [tx] = rows(db, Transaction)
    assert tx.type == "EVENT_REPORT"
    assert tx.status == "COMPLETED"
    assert tx.amount == 5
    assert str(tx.event_id) == event["id"]


def test_report_requires_auth(client):
    r = client.post("/api/events", data={"category": "FLOOD", "title": "x", "description": "y", "lat": "1", "lon": "1"})
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_other_category_needs_custom_name(client, user):
    r = _report(client, user, category="OTHER")
    assert r.status_code == 400

    r = _report(client, user, category="OTHER", customCategory="Fallen billboard")
    assert r.status_code == 201
    assert r.json()["event"]["customCategory"] == "Fallen billboard"


def test_custom_name_dropped_for_regular_category(client, user):
    r = _report(client, user, category="FLOOD", customCategory="Ignored")
    assert r.status_code == 201
    assert r.json()["event"]["customCategory"] is None


def test_report_rejects_malformed_coordinates(client, user):
    r = _report(client, user, lat="north")
    assert r.status_code == 400
    assert "lat" in r.json()["error"]


def test_report_rejects_blank_title(client, user):
    r = _report(client, user, title="   ")
    assert r.status_code == 400


def test_report_stores_media(client, user, upload_dir):
    r = client.post(
        "/api/events",
        data={
            "category": "FIRE",
            "title": "Tanker fire",
            "description": "Black smoke on the expressway",
            "lat": "6.5",
            "lon": "3.4",
            "mediaSourceType": "CAPTURED",
        },
        files=[("media", ("fire.jpg", b"\xff\xd8jpeg", "image/jpeg"))],
        headers=auth_headers(user),
    )
    assert r.status_code == 201
    media = r.json()["event"]["media"]
    assert len(media) == 1
    assert media[0]["type"] == "image"
    assert media[0]["sourceType"] == "CAPTURED"
    assert media[0]["url"].startswith("/api/media/images/")
    assert (upload_dir / media[0]["key"]).read_bytes() == b"\xff\xd8jpeg"


def test_report_rejects_unsupported_file_type(client, user, upload_dir):
    r = client.post(
        "/api/events",
        data={"category": "FIRE", "title": "t", "description": "d", "lat": "6.5", "lon": "3.4"},
        files=[("media", ("notes.txt", b"hello", "text/plain"))],
        headers=auth_headers(user),
    )
    assert r.status_code == 400
    assert not list(upload_dir.rglob("*.txt"))


# ============================================================================
# Mapper updates
# ============================================================================

def test_mapper_update_appends_log_and_awards(client, mapper, user, make_event, db):
    event = make_event(user)
    r = client.post(
        f"/api/events/{event.id}/update",
        data={"status": "CLEARED", "comment": "Road is clear now"},
        headers=auth_headers(mapper),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Event marked as cleared successfully"
    assert body["event"]["status"] == "CLEARED"
    assert body["event"]["updatesCount"] == 1
    assert body["event"]["updates"][0]["comment"] == "Road is clear now"

    assert db(lambda s: s.get(Mapper, mapper.id)).total_earnings == 3


def test_update_checks_role_then_existence_then_input(client, mapper, user, make_event):
    event = make_event(user)
    missing = "00000000-0000-0000-0000-00000000abcd"

    r = client.post(f"/api/events/{event.id}/update", data={"status": "CLEARED", "comment": "ok"}, headers=auth_headers(user))
    assert r.status_code == 403

    r = client.post(f"/api/events/{missing}/update", data={"status": "CLOSED", "comment": "ok"}, headers=auth_headers(mapper))
    assert r.status_code == 404

    r = client.post(f"/api/events/{event.id}/update", data={"status": "CLOSED", "comment": "ok"}, headers=auth_headers(mapper))
    assert r.status_code == 400

    r = client.post(f"/api/events/{event.id}/update", data={"status": "UPDATED"}, headers=auth_headers(mapper))
    assert r.status_code == 400


# ============================================================================
# Reads
# ============================================================================

def test_radius_filter_runs_before_pagination(client, user, make_event):
    for _ in range(3):
        make_event(user, *ABUJA)
    for _ in range(3):
        make_event(user, *IKEJA)

    r = client.get("/api/events", params={"lat": IKEJA[0], "lon": IKEJA[1], "radius": 10, "limit": 2})
    assert r.status_code == 200
    body = r.json()
    assert len(body["events"]) == 2
    assert body["pagination"]["total"] == 3
    assert body["pagination"]["hasMore"] is True
    assert all(e["distance"] == 0 for e in body["events"])

    r = client.get("/api/events", params={"lat": IKEJA[0], "lon": IKEJA[1], "radius": 10, "limit": 2, "offset": 2})
    assert len(r.json()["events"]) == 1
    assert r.json()["pagination"]["hasMore"] is False


def test_list_rejects_malformed_radius(client):
    r = client.get("/api/events", params={"lat": "6.5", "lon": "3.4", "radius": "far"})
    assert r.status_code == 400


def test_list_filters_by_status_and_category(client, user, make_event):
    make_event(user, category="FLOOD")
    make_event(user, category="FLOOD", status="CLEARED")
    make_event(user, category="POLICE")

    r = client.get("/api/events", params={"category": "FLOOD", "status": "ACTIVE"})
    events = r.json()["events"]
    assert len(events) == 1
    assert events[0]["category"] == "FLOOD"
    assert events[0]["status"] == "ACTIVE"


def test_sort_by_severity(client, user, make_event):
    make_event(user, severity="LOW")
    make_event(user, severity="CRITICAL")
    make_event(user, severity="MEDIUM")

    r = client.get("/api/events", params={"sortBy": "severity", "order": "desc"})
    assert [e["severity"] for e in r.json()["events"]] == ["CRITICAL", "MEDIUM", "LOW"]


def test_active_events_near_point(client, user, make_event):
    make_event(user, *VI)
    make_event(user, *ABUJA)
    make_event(user, *VI, status="CLOSED")

    r = client.get("/api/events/active", params={"lat": VI[0], "lon": VI[1], "radius": 50})
    events = r.json()["events"]
    assert len(events) == 1
    assert events[0]["status"] == "ACTIVE"


def test_recent_events_have_time_ago(client, user, make_event):
    make_event(user)
    r = client.get("/api/events/recent")
    events = r.json()["events"]
    assert len(events) == 1
    assert events[0]["timeAgo"] == "just now"


def test_clusters(client, user, make_event):
    make_event(user, 6.51, 3.31, severity="LOW")
    make_event(user, 6.52, 3.32, severity="HIGH", category="FLOOD")
    make_event(user, *ABUJA)

    clusters = client.get("/api/events/clusters").json()["clusters"]
    assert [c["count"] for c in clusters] == [2, 1]
    assert clusters[0]["maxSeverity"] == "HIGH"
    assert clusters[0]["categories"] == ["FLOOD", "TRAFFIC"]


def test_get_event_counts_views(client, user, make_event):
    event = make_event(user)

    first = client.get(f"/api/events/{event.id}").json()["event"]
    second = client.get(f"/api/events/{event.id}").json()["event"]
    assert first["viewCount"] == 1
    assert second["viewCount"] == 2
    assert second["timeOfDay"] in {"Night", "Dawn", "Day", "Dusk"}


def test_get_unknown_event(client):
    r = client.get("/api/events/00000000-0000-0000-0000-000000000001")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Event not found"}


def test_unknown_route(client):
    r = client.get("/api/nowhere")
    assert r.status_code == 404
    assert r.json()["error"] == "Route not found"


def test_events_persist_reporter(client, mapper, db):
    _report(client, mapper)
    [event] = rows(db, Event)
    assert event.reporter_id == mapper.id
    assert event.reporter_name == mapper.name
