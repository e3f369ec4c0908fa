import json
from datetime import datetime
from types import SimpleNamespace

from sqlalchemy.orm import Query

from catfe_tv.models.poll import Poll, PollVote
from catfe_tv.services.polls import PollRotation, decode_poll_options, tally

OPTIONS = [{"id": "a", "text": "Mochi"}, {"id": "b", "text": "Pepper"}, {"id": "c", "text": "Biscuit"}]


def create_poll(client, headers, question="Nap champion?", options=OPTIONS, activate=True):
    response = client.post("/polls", json={"question": question, "options": options}, headers=headers)
    assert response.status_code == 200, response.text
    poll = response.json()
    if activate:
        client.put(f"/polls/{poll['id']}", json={"status": "active"}, headers=headers)
    return poll


def test_decode_plain_and_double_encoded():
    raw = json.dumps(OPTIONS)
    assert decode_poll_options(raw).options == OPTIONS
    assert decode_poll_options(json.dumps(raw)).options == OPTIONS
    assert decode_poll_options(None).options == []


def test_decode_reports_errors_without_raising():
    for raw in ("{broken", json.dumps({"id": "a"}), json.dumps([{"text": "missing id"}]), json.dumps([1, 2])):
        decoded = decode_poll_options(raw)
        assert decoded.options == []
        assert decoded.error


def test_tally_rounds_percentages():
    results, total = tally(OPTIONS, {"a": 1, "b": 2})
    assert total == 3
    assert [r["percentage"] for r in results] == [33, 67, 0]
    assert tally(OPTIONS, {})[0][0]["percentage"] == 0


def test_create_defaults_to_draft_with_next_sort_order(client, admin_headers):
    first = create_poll(client, admin_headers, activate=False)
    second = create_poll(client, admin_headers, activate=False)
    assert first["status"] == "draft"
    assert second["sort_order"] == first["sort_order"] + 1


def test_create_validates_option_count(client, admin_headers):
    one = client.post("/polls", json={"question": "q", "options": OPTIONS[:1]}, headers=admin_headers)
    seven = client.post(
        "/polls",
        json={"question": "q", "options": [{"id": str(i), "text": str(i)} for i in range(7)]},
        headers=admin_headers,
    )
    dupes = client.post(
        "/polls", json={"question": "q", "options": [OPTIONS[0], OPTIONS[0]]}, headers=admin_headers
    )
    assert one.status_code == 422
    assert seven.status_code == 422
    assert dupes.status_code == 400


def test_current_poll_is_first_active(client, admin_headers):
    assert client.get("/polls/current").json() is None
    create_poll(client, admin_headers, question="Draft only", activate=False)
    active = create_poll(client, admin_headers, question="Live")
    assert client.get("/polls/current").json()["id"] == active["id"]


def test_vote_once_per_fingerprint(client, admin_headers):
    poll = create_poll(client, admin_headers)
    url = f"/polls/{poll['id']}/vote"
    assert client.post(url, json={"option_id": "b", "fingerprint": "fp1"}).json() == {"success": True}

    again = client.post(url, json={"option_id": "a", "fingerprint": "fp1"}).json()
    assert again == {"success": False, "error": "Already voted", "already_voted": True}

    client.post(url, json={"option_id": "b", "fingerprint": "fp2"})
    client.post(url, json={"option_id": "a", "fingerprint": "fp3"})

    results = client.get(f"/polls/{poll['id']}/results").json()
    assert results["total_votes"] == 3
    by_id = {option["id"]: option for option in results["options"]}
    assert by_id["b"]["vote_count"] == 2
    assert by_id["b"]["percentage"] == 67
    assert by_id["c"]["percentage"] == 0

    voted = client.get("/polls/voted", params={"poll_id": poll["id"], "fingerprint": "fp1"}).json()
    assert voted == {"has_voted": True, "option_id": "b"}
    assert client.get("/polls/voted", params={"poll_id": poll["id"], "fingerprint": "nobody"}).json()["has_voted"] is False


def test_vote_landing_between_check_and_insert_reports_already_voted(client, admin_headers, db, monkeypatch):
    poll = create_poll(client, admin_headers)
    db.add(PollVote(poll_id=poll["id"], option_id="a", voter_fingerprint="fp1"))
    db.commit()
    # the duplicate check misses, as it would for two requests arriving together
    monkeypatch.setattr(Query, "first", lambda self: None)

    response = client.post(f"/polls/{poll['id']}/vote", json={"option_id": "b", "fingerprint": "fp1"})

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "Already voted", "already_voted": True}
    monkeypatch.undo()
    assert client.post(f"/polls/{poll['id']}/vote", json={"option_id": "b", "fingerprint": "fp2"}).json() == {
        "success": True
    }


def test_vote_rejects_unknown_option_and_inactive_poll(client, admin_headers):
    poll = create_poll(client, admin_headers)
    assert client.post(f"/polls/{poll['id']}/vote", json={"option_id": "zzz", "fingerprint": "f"}).status_code == 400

    draft = create_poll(client, admin_headers, activate=False)
    assert client.post(f"/polls/{draft['id']}/vote", json={"option_id": "a", "fingerprint": "f"}).status_code == 400
    assert client.post("/polls/999/vote", json={"option_id": "a", "fingerprint": "f"}).status_code == 404


def test_reset_and_delete(client, admin_headers):
    poll = create_poll(client, admin_headers)
    client.post(f"/polls/{poll['id']}/vote", json={"option_id": "a", "fingerprint": "f"})

    reset = client.post(f"/polls/{poll['id']}/reset", headers=admin_headers)
    assert reset.json() == {"ok": True, "removed": 1}
    assert client.get(f"/polls/{poll['id']}/results").json()["total_votes"] == 0
    assert client.post(f"/polls/{poll['id']}/vote", json={"option_id": "a", "fingerprint": "f"}).json()["success"]

    assert client.delete(f"/polls/{poll['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/polls/{poll['id']}/results").status_code == 404


def test_corrupt_options_degrade_to_empty(client, db):
    poll = Poll(question="Broken?", options="{not json", status="active", sort_order=1)
    db.add(poll)
    db.commit()
    body = client.get(f"/polls/{poll.id}/results").json()
    assert body["options"] == []
    assert body["question"] == "Broken?"


def test_tv_poll_rotates_per_quarter_hour():
    rotation = PollRotation()
    a = SimpleNamespace(id=1, sort_order=1, last_shown_at=None)
    b = SimpleNamespace(id=2, sort_order=2, last_shown_at=None)
    shown = []

    def mark(poll, when):
        poll.last_shown_at = when
        shown.append(poll.id)

    t0 = datetime(2024, 1, 8, 10, 0)
    assert rotation.pick([a, b], t0, lambda p: mark(p, t0)).id == 1
    assert rotation.pick([a, b], t0.replace(minute=14), lambda p: mark(p, t0)).id == 1

    t1 = t0.replace(minute=15)
    assert rotation.pick([a, b], t1, lambda p: mark(p, t1)).id == 2
    t2 = t0.replace(minute=30)
    assert rotation.pick([a, b], t2, lambda p: mark(p, t2)).id == 1
    assert shown == [1, 2, 1]
    assert rotation.pick([], t2) is None


def test_tv_endpoint_records_last_shown(client, admin_headers, db):
    poll = create_poll(client, admin_headers)
    body = client.get("/polls/tv").json()
    assert body["id"] == poll["id"]
    assert db.get(Poll, poll["id"]).last_shown_at is not None


def test_admin_list_requires_key(client, admin_key):
    assert client.get("/polls").status_code == 401
    assert client.get("/polls/current").status_code == 200
