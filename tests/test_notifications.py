from callhub.models import Role


def _titles(client, actor, **params):
    return [n["title"] for n in client.get("/notifications", params=params, headers=actor.headers).json()]


def test_notifications_are_private(client, admin, entrepreneur, create_call, submit_application):
    submit_application(create_call()["id"], entrepreneur)
    assert _titles(client, admin) == ["New application"]
    assert _titles(client, entrepreneur) == []


def test_mark_read(client, admin, make_user, entrepreneur, create_call, submit_application):
    submit_application(create_call()["id"], entrepreneur)
    note = client.get("/notifications", headers=admin.headers).json()[0]
    assert note["read"] is False

    other_admin = make_user(Role.ADMIN)
    assert client.post(f"/notifications/{note['id']}/read", headers=other_admin.headers).status_code == 404

    assert client.post(f"/notifications/{note['id']}/read", headers=admin.headers).json()["read"] is True
    assert _titles(client, admin, unread_only=True) == []


def test_mark_all_read(client, admin, make_user, create_call, submit_application):
    call = create_call()
    for _ in range(3):
        submit_application(call["id"], make_user(Role.ENTREPRENEUR))
    assert client.post("/notifications/read-all", headers=admin.headers).json() == {"updated": 3}
    assert _titles(client, admin, unread_only=True) == []
    assert len(_titles(client, admin)) == 3


def test_notifications_need_auth(client):
    assert client.get("/notifications").status_code == 401


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def _stats(client, actor):
    body = client.get("/dashboard/stats", headers=actor.headers).json()
    assert body["role"] == actor.role.value
    return body["stats"]


def test_entrepreneur_dashboard(client, entrepreneur, create_call, submit_application):
    call = create_call()
    create_call(title="Draft", status="DRAFT")
    submit_application(call["id"], entrepreneur)
    assert _stats(client, entrepreneur) == {
        "applications": 1,
        "in_review": 0,
        "approved": 0,
        "open_calls": 1,
        "reviews_received": 0,
    }


def test_reviewer_dashboard(client, admin, reviewer, entrepreneur, create_call, submit_application):
    application = submit_application(create_call()["id"], entrepreneur)
    client.post(f"/applications/{application['id']}/reviewers", json={"reviewer_id": reviewer.id},
                headers=admin.headers)
    assert _stats(client, reviewer) == {"assigned": 1, "completed": 0, "pending": 1, "average_score": None}

    client.post(f"/applications/{application['id']}/reviews", json={"score": 70, "feedback": "Fine"},
                headers=reviewer.headers)
    stats = _stats(client, reviewer)
    assert stats["completed"] == 1
    assert stats["average_score"] == 70


def test_admin_dashboard(client, admin, entrepreneur, create_call, submit_application):
    submit_application(create_call()["id"], entrepreneur)
    stats = _stats(client, admin)
    assert stats["users_by_role"] == {"ADMIN": 1, "ENTREPRENEUR": 1}
    assert stats["calls_by_status"] == {"PUBLISHED": 1}
    assert stats["applications_by_status"] == {"SUBMITTED": 1}
    assert stats["pending_expenses"] == 0


def test_sponsor_and_plain_user_dashboards(client, sponsor, make_user):
    assert _stats(client, sponsor) == {
        "applications": 0,
        "applications_by_status": {},
        "total_approved_amount": 0,
        "active_opportunities": 0,
    }
    assert _stats(client, make_user(Role.USER)) == {"open_calls": 0, "active_opportunities": 0}
