import datetime as dt

import pytest

from conftest import iso


def _event(client, admin, title, start_days, **extra):
    payload = {
        "title": title,
        "description": f"{title} session",
        "type": "WORKSHOP",
        "start_date": iso(dt.timedelta(days=start_days)),
        "end_date": iso(dt.timedelta(days=start_days, hours=2)),
        **extra,
    }
    resp = client.post("/events", json=payload, headers=admin.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_events_are_public_and_ordered_by_start(client, admin):
    _event(client, admin, "Later", 10)
    _event(client, admin, "Sooner", 2)
    titles = [e["title"] for e in client.get("/events").json()]
    assert titles == ["Sooner", "Later"]


def test_event_filters(client, admin):
    _event(client, admin, "Kickoff", 1)
    _event(client, admin, "Demo day", 20, type="networking")

    def titles(params):
        return [e["title"] for e in client.get("/events", params=params).json()]

    assert titles({"type": "NETWORKING"}) == ["Demo day"]
    assert titles({"from": iso(dt.timedelta(days=5))}) == ["Demo day"]
    assert titles({"to": iso(dt.timedelta(days=5))}) == ["Kickoff"]


def test_type_is_case_insensitive(client, admin):
    assert _event(client, admin, "AMA", 3, type="webinar")["type"] == "WEBINAR"


@pytest.mark.parametrize(
    "extra",
    [
        {"is_virtual": True},
        {"end_date": iso(dt.timedelta(days=-1))},
        {"type": "PARTY"},
    ],
)
def test_invalid_events_rejected(client, admin, extra):
    payload = {
        "title": "Broken",
        "description": "Broken",
        "start_date": iso(dt.timedelta(days=1)),
        "end_date": iso(dt.timedelta(days=2)),
        **extra,
    }
    assert client.post("/events", json=payload, headers=admin.headers).status_code == 422


def test_event_linked_to_unknown_call(client, admin):
    payload = {
        "title": "Orphan",
        "description": "Orphan",
        "start_date": iso(dt.timedelta(days=1)),
        "end_date": iso(dt.timedelta(days=2)),
        "startup_call_id": "missing",
    }
    assert client.post("/events", json=payload, headers=admin.headers).status_code == 400


def test_only_admin_schedules_events(client, entrepreneur):
    resp = client.post("/events", json={"title": "x"}, headers=entrepreneur.headers)
    assert resp.status_code == 403


def test_update_event(client, admin):
    event = _event(client, admin, "Office hours", 4)
    url = f"/events/{event['id']}"
    assert client.patch(url, json={"location": "Room 4"}, headers=admin.headers).json()["location"] == "Room 4"
    assert client.patch(url, json={"end_date": iso(dt.timedelta(days=1))}, headers=admin.headers).status_code == 400
    assert client.patch(url, json={"is_virtual": True}, headers=admin.headers).status_code == 400
    resp = client.patch(url, json={"is_virtual": True, "virtual_link": "https://meet.example.com/oh"},
                        headers=admin.headers)
    assert resp.json()["is_virtual"] is True


def test_delete_event(client, admin):
    event = _event(client, admin, "Cancelled", 4)
    assert client.delete(f"/events/{event['id']}", headers=admin.headers).status_code == 204
    assert client.get(f"/events/{event['id']}").status_code == 404
