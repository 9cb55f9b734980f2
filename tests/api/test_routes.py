from __future__ import annotations

import pytest


def _event_body(event_id="E1", **kw):
    body = {
        "id": event_id,
        "name": "Orientation",
        "date": "2026-03-02T00:00:00.000Z",
        "startTime": "2026-03-02T08:00:00.000Z",
        "endTime": "2026-03-02T18:00:00.000Z",
    }
    body.update(kw)
    return body


def _attendance_body(user_id="U1", event_id="E1"):
    return {"eventId": event_id, "eventName": "Orientation", "userId": user_id, "userName": "Alice"}


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "OK"


def test_event_lifecycle(client):
    resp = client.post("/api/events", json=_event_body())
    assert resp.status_code == 201
    assert resp.get_json()["event"]["isActive"] is True

    dup = client.post("/api/events", json=_event_body())
    assert dup.status_code == 409
    assert dup.get_json()["event"]["id"] == "E1"

    upd = client.put("/api/events/E1", json={"name": "Renamed", "capacity": 10})
    assert upd.status_code == 200
    assert upd.get_json()["event"]["name"] == "Renamed"

    got = client.get("/api/events/E1").get_json()
    assert got["capacity"] == 10

    assert client.delete("/api/events/E1").get_json()["event"]["isActive"] is False
    assert client.get("/api/events/E1/qr").status_code == 404


@pytest.mark.parametrize(
    "path",
    ["/api/events/nope", "/api/events/nope/qr"],
)
def test_unknown_event_is_404(client, path):
    assert client.get(path).status_code == 404


def test_bad_event_body_is_400(client):
    resp = client.post("/api/events", json={"id": "E1"})
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith("Missing required fields")


def test_event_list_and_range(client):
    client.post("/api/events", json=_event_body("E1"))
    client.post("/api/events", json=_event_body("E2", date="2026-04-01T00:00:00.000Z"))

    listed = client.get("/api/events?limit=1").get_json()
    assert listed["totalCount"] == 2
    assert listed["hasMore"] is True
    assert [e["id"] for e in listed["events"]] == ["E2"]

    in_range = client.get("/api/events/range/2026-03-01T00:00:00Z/2026-03-31T00:00:00Z").get_json()
    assert [e["id"] for e in in_range] == ["E1"]

    assert client.get("/api/events?limit=abc").status_code == 400


def test_qr_png(client):
    client.post("/api/events", json=_event_body())

    resp = client.get("/api/events/E1/qr.png")

    assert resp.status_code == 200
    assert resp.mimetype == "image/png"
    assert resp.data[:8] == b"\x89PNG\r\n\x1a\n"


def test_attendance_status_codes(client):
    client.post("/api/events", json=_event_body(capacity=1))

    created = client.post("/api/attendance", json=_attendance_body("U1"))
    assert created.status_code == 201
    assert created.get_json()["message"] == "Attendance recorded successfully"

    dup = client.post("/api/attendance", json=_attendance_body("U1"))
    assert dup.status_code == 409
    assert dup.get_json()["attendance"]["userId"] == "U1"

    full = client.post("/api/attendance", json=_attendance_body("U2"))
    assert full.status_code == 400
    assert "capacity" in full.get_json()["error"]

    missing = client.post("/api/attendance", json=_attendance_body("U3", "ghost"))
    assert missing.status_code == 404

    assert client.post("/api/attendance", json={}).status_code == 400


def test_bulk_endpoint(client):
    client.post("/api/events", json=_event_body())

    body = client.post(
        "/api/attendance/bulk",
        json={"attendanceRecords": [_attendance_body("U1"), _attendance_body("U1")]},
    ).get_json()

    assert body["created"] == 1
    assert body["duplicates"] == 1

    assert client.post("/api/attendance/bulk", json={}).status_code == 400


def test_attendance_queries_and_profile(client):
    client.post("/api/events", json=_event_body())
    client.post("/api/attendance", json=_attendance_body("U1"))
    client.post("/api/attendance", json=_attendance_body("U2"))

    by_event = client.get("/api/attendance/event/E1").get_json()
    assert by_event["totalCount"] == 2
    assert by_event["hasMore"] is False

    by_user = client.get("/api/attendance/user/U1").get_json()
    assert [a["eventId"] for a in by_user["attendance"]] == ["E1"]

    stats = client.get("/api/attendance/user/U1/stats").get_json()
    assert stats["total"] == 1

    assert client.get("/api/attendance/range").status_code == 400
    ranged = client.get(
        "/api/attendance/range",
        query_string={"startDate": "2000-01-01T00:00:00Z", "endDate": "2100-01-01T00:00:00Z", "eventId": "E1"},
    ).get_json()
    assert len(ranged) == 2

    profile = client.get("/api/users/U2").get_json()
    assert profile["userId"] == "U2"
    assert profile["stats"]["total"] == 1
