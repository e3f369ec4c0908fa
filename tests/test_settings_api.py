def test_defaults_created_on_first_read(client):
    body = client.get("/settings").json()
    assert body["location_name"] == "Catfé"
    assert body["default_duration_seconds"] == 10
    assert body["snap_and_purr_frequency"] == 5
    assert body["refresh_interval_seconds"] == 60
    assert body["fallback_mode"] == "LOOP_DEFAULT"


def test_update_settings(client, admin_headers):
    response = client.put(
        "/settings",
        json={"default_duration_seconds": 20, "snap_and_purr_frequency": 3, "wifi_name": "CatNet"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = client.get("/settings").json()
    assert body["default_duration_seconds"] == 20
    assert body["snap_and_purr_frequency"] == 3
    assert body["wifi_name"] == "CatNet"
    assert body["refresh_interval_seconds"] == 60


def test_update_settings_ranges(client, admin_headers):
    for payload in (
        {"default_duration_seconds": 0},
        {"default_duration_seconds": 301},
        {"snap_and_purr_frequency": 21},
        {"refresh_interval_seconds": 5},
        {"fallback_mode": "BLANK"},
    ):
        assert client.put("/settings", json=payload, headers=admin_headers).status_code == 422, payload


def test_update_settings_requires_admin(client, admin_key):
    assert client.put("/settings", json={"location_name": "x"}).status_code == 401
    assert client.get("/settings").status_code == 200
