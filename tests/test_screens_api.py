from datetime import datetime, timezone

from catfe_tv.models.screen import Screen
from catfe_tv.services.clock import to_cafe_naive
from catfe_tv.services.realtime import hub


def create(client, headers, **fields):
    payload = {"type": "EVENT", "title": "Trivia Night"}
    payload.update(fields)
    response = client.post("/screens", json=payload, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_create_and_get_screen(client, admin_headers):
    created = create(
        client,
        admin_headers,
        priority=4,
        scheduling_enabled=True,
        days_of_week=[5, 1, 3, 1],
        time_start="09:00",
        time_end="17:00",
    )
    assert created["days_of_week"] == [1, 3, 5]
    assert created["priority"] == 4

    fetched = client.get(f"/screens/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["time_start"] == "09:00"


def test_stored_days_are_csv(client, admin_headers, db):
    created = create(client, admin_headers, days_of_week=[6, 0])
    assert db.get(Screen, created["id"]).schedule_days == "0,6"


def test_offset_datetimes_are_stored_as_cafe_local(client, admin_headers, db):
    created = create(client, admin_headers, end_at="2030-12-31T00:00:00")
    response = client.put(
        f"/screens/{created['id']}",
        json={"start_at": "2030-06-01T09:00:00Z"},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text

    expected = to_cafe_naive(datetime(2030, 6, 1, 9, 0, tzinfo=timezone.utc))
    assert response.json()["start_at"] == expected.isoformat()
    stored = db.get(Screen, created["id"])
    assert stored.start_at == expected
    assert stored.start_at.tzinfo is None


def test_offset_end_before_start_is_rejected(client, admin_headers):
    created = create(client, admin_headers, start_at="2030-06-01T09:00:00")
    response = client.put(
        f"/screens/{created['id']}",
        json={"end_at": "2030-05-01T09:00:00+02:00"},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_admin_endpoints_require_key(client, admin_key):
    payload = {"type": "EVENT", "title": "Nope"}
    assert client.post("/screens", json=payload).status_code == 401
    assert client.post("/screens", json=payload, headers={"X-Admin-Key": "wrong"}).status_code == 403
    assert client.get("/screens").status_code == 401
    assert client.get("/screens/active").status_code == 200


def test_open_mode_without_configured_key(client):
    response = client.post("/screens", json={"type": "EVENT", "title": "Open"})
    assert response.status_code == 200


def test_validation_rejects_bad_values(client, admin_headers):
    bad = [
        {"type": "EVENT", "title": "x", "time_start": "24:00", "time_end": "25:00"},
        {"type": "EVENT", "title": "x", "days_of_week": [7]},
        {"type": "EVENT", "title": "x", "priority": 11},
        {"type": "EVENT", "title": "x", "duration_seconds": 0},
        {"type": "NOT_A_TYPE", "title": "x"},
        {"type": "EVENT", "title": ""},
    ]
    for payload in bad:
        assert client.post("/screens", json=payload, headers=admin_headers).status_code == 422, payload


def test_half_open_time_window_is_rejected(client, admin_headers):
    response = client.post(
        "/screens",
        json={"type": "EVENT", "title": "x", "time_start": "09:00"},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_update_is_partial_and_blanks_become_null(client, admin_headers):
    created = create(client, admin_headers, qr_url="https://example.com", subtitle="Keep me")
    response = client.put(
        f"/screens/{created['id']}",
        json={"qr_url": "", "priority": 7},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["qr_url"] is None
    assert body["priority"] == 7
    assert body["subtitle"] == "Keep me"
    assert body["title"] == "Trivia Night"


def test_update_and_delete_missing_screen(client, admin_headers):
    assert client.put("/screens/999", json={"title": "x"}, headers=admin_headers).status_code == 404
    assert client.delete("/screens/999", headers=admin_headers).status_code == 404
    assert client.get("/screens/999").status_code == 404


def test_protected_screen_cannot_be_deleted(client, admin_headers):
    created = create(client, admin_headers, type="SNAP_AND_PURR", title="Snap & Purr!", is_protected=True)
    assert client.delete(f"/screens/{created['id']}", headers=admin_headers).status_code == 403

    other = create(client, admin_headers)
    assert client.delete(f"/screens/{other['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/screens/{other['id']}").status_code == 404


def test_active_lists_only_active_in_priority_order(client, admin_headers):
    low = create(client, admin_headers, title="Low", priority=1)
    high = create(client, admin_headers, title="High", priority=9)
    create(client, admin_headers, title="Hidden", is_active=False)

    titles = [item["title"] for item in client.get("/screens/active").json()]
    assert titles == ["High", "Low"]
    assert {low["id"], high["id"]} == {item["id"] for item in client.get("/screens/active").json()}


def test_reorder(client, admin_headers):
    a = create(client, admin_headers, title="A")
    b = create(client, admin_headers, title="B")
    response = client.put(
        "/screens/order",
        json=[{"id": a["id"], "sort_order": 2}, {"id": b["id"], "sort_order": 1}],
        headers=admin_headers,
    )
    assert response.status_code == 200
    titles = [item["title"] for item in client.get("/screens/active").json()]
    assert titles == ["B", "A"]

    missing = client.put("/screens/order", json=[{"id": 999, "sort_order": 1}], headers=admin_headers)
    assert missing.status_code == 404


def test_playlist_endpoint_interleaves(client, admin_headers):
    for index in range(4):
        create(client, admin_headers, title=f"Slide {index}", sort_order=index)
    create(client, admin_headers, type="SNAP_AND_PURR", title="Snap", duration_seconds=12)
    client.put("/settings", json={"snap_and_purr_frequency": 2}, headers=admin_headers)

    body = client.get("/screens/playlist").json()
    titles = [item["title"] for item in body["items"]]
    assert titles == ["Slide 0", "Slide 1", "Snap", "Slide 2", "Slide 3", "Snap"]
    assert body["items"][2]["resolved_duration_seconds"] == 12


def test_adoption_count(client, admin_headers):
    create(client, admin_headers, type="ADOPTION", title="Mochi", is_adopted=True)
    create(client, admin_headers, type="ADOPTION", title="Pepper", is_adopted=True, is_active=False)
    create(client, admin_headers, type="ADOPTION", title="Biscuit")
    assert client.get("/screens/adoption-count").json() == {"count": 2}


def test_mutations_bump_realtime_revision(client, admin_headers):
    before = hub.revision
    playlist_before = hub.topic_revision("playlist")
    polls_before = hub.topic_revision("polls")
    create(client, admin_headers)
    assert hub.revision == before + 1
    assert hub.topic_revision("playlist") == playlist_before + 1
    assert hub.topic_revision("polls") == polls_before
    client.get("/screens/active")
    assert hub.revision == before + 1
