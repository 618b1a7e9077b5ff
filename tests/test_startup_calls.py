import datetime as dt

from callhub.models import Role

from conftest import APPLICATION, iso


def test_publishing_stamps_published_date(client, admin, create_call):
    draft = create_call(status="DRAFT")
    assert draft["published_date"] is None
    published = client.patch(f"/startup-calls/{draft['id']}", json={"status": "PUBLISHED"}, headers=admin.headers)
    assert published.json()["published_date"] is not None


def test_call_requires_fields(client, admin):
    resp = client.post("/startup-calls", json={"title": "Incomplete"}, headers=admin.headers)
    assert resp.status_code == 422


def test_only_admin_creates_calls(client, entrepreneur):
    resp = client.post("/startup-calls", json={"title": "x"}, headers=entrepreneur.headers)
    assert resp.status_code == 403


def test_listing_depends_on_role(client, admin, entrepreneur, sponsor, create_call):
    published = create_call(title="Open")
    closed = create_call(title="Closed", status="CLOSED")
    draft = create_call(title="Draft", status="DRAFT")

    ids = lambda resp: {c["id"] for c in resp.json()}  # noqa: E731
    assert ids(client.get("/startup-calls", headers=admin.headers)) == {published["id"], closed["id"], draft["id"]}
    assert ids(client.get("/startup-calls", headers=entrepreneur.headers)) == {published["id"], closed["id"]}
    assert ids(client.get("/startup-calls")) == {published["id"], closed["id"]}
    assert ids(client.get("/startup-calls", headers=sponsor.headers)) == {published["id"]}
    assert client.get(f"/startup-calls/{draft['id']}", headers=sponsor.headers).status_code == 404


def test_entrepreneur_sees_own_application_status(client, entrepreneur, create_call, submit_application):
    applied = create_call(title="Applied")
    create_call(title="Fresh")
    submit_application(applied["id"], entrepreneur)

    statuses = {c["title"]: c["application_status"] for c in client.get("/startup-calls", headers=entrepreneur.headers).json()}
    assert statuses == {"Applied": "SUBMITTED", "Fresh": "NOT_APPLIED"}
    detail = client.get(f"/startup-calls/{applied['id']}", headers=entrepreneur.headers).json()
    assert detail["application_status"] == "SUBMITTED"


def test_newest_calls_first(client, admin, create_call):
    create_call(title="first")
    create_call(title="second")
    titles = [c["title"] for c in client.get("/startup-calls", headers=admin.headers).json()]
    assert titles == ["second", "first"]


# ---------------------------------------------------------------------------
# Applying
# ---------------------------------------------------------------------------

def test_application_links_first_startup(client, entrepreneur, create_call, submit_application):
    startup = client.post("/startups", json={"name": "PayLater", "description": "BNPL"}, headers=entrepreneur.headers).json()
    application = submit_application(create_call()["id"], entrepreneur)
    assert application["startup_id"] == startup["id"]
    assert application["status"] == "SUBMITTED"
    assert application["reviews_total"] == 3


def test_cannot_apply_to_unpublished_call(client, entrepreneur, create_call):
    call = create_call(status="DRAFT")
    resp = client.post(f"/startup-calls/{call['id']}/applications", json=APPLICATION, headers=entrepreneur.headers)
    assert resp.status_code == 400


def test_cannot_apply_after_deadline(client, entrepreneur, create_call):
    call = create_call(application_deadline=iso(-dt.timedelta(days=1)))
    resp = client.post(f"/startup-calls/{call['id']}/applications", json=APPLICATION, headers=entrepreneur.headers)
    assert resp.status_code == 400
    assert "deadline" in resp.json()["detail"]


def test_one_application_per_user_and_call(client, entrepreneur, create_call, submit_application):
    call = create_call()
    submit_application(call["id"], entrepreneur)
    resp = client.post(f"/startup-calls/{call['id']}/applications", json=APPLICATION, headers=entrepreneur.headers)
    assert resp.status_code == 400


def test_only_entrepreneurs_apply(client, sponsor, create_call):
    resp = client.post(f"/startup-calls/{create_call()['id']}/applications", json=APPLICATION, headers=sponsor.headers)
    assert resp.status_code == 403


def test_application_missing_fields_rejected(client, entrepreneur, create_call):
    resp = client.post(f"/startup-calls/{create_call()['id']}/applications", json={"startup_name": "x"},
                       headers=entrepreneur.headers)
    assert resp.status_code == 422


def test_admins_are_notified_of_new_applications(client, admin, entrepreneur, create_call, submit_application):
    submit_application(create_call()["id"], entrepreneur)
    notes = client.get("/notifications", headers=admin.headers).json()
    assert [n["title"] for n in notes] == ["New application"]


def test_application_listing_permissions(client, admin, entrepreneur, make_user, sponsor, create_call, submit_application):
    call = create_call()
    other = make_user(Role.ENTREPRENEUR)
    submit_application(call["id"], entrepreneur)
    submit_application(call["id"], other)
    url = f"/startup-calls/{call['id']}/applications"
    assert len(client.get(url, headers=admin.headers).json()) == 2
    assert len(client.get(url, headers=entrepreneur.headers).json()) == 1
    assert client.get(url, headers=sponsor.headers).status_code == 403


def test_application_detail_permissions(client, admin, entrepreneur, make_user, create_call, submit_application):
    application = submit_application(create_call()["id"], entrepreneur)
    other = make_user(Role.ENTREPRENEUR)
    url = f"/applications/{application['id']}"
    assert client.get(url, headers=entrepreneur.headers).status_code == 200
    assert client.get(url, headers=admin.headers).status_code == 200
    assert client.get(url, headers=other.headers).status_code == 403


def test_withdraw(client, entrepreneur, make_user, create_call, submit_application):
    application = submit_application(create_call()["id"], entrepreneur)
    url = f"/applications/{application['id']}/withdraw"
    assert client.post(url, headers=make_user(Role.ENTREPRENEUR).headers).status_code == 403
    assert client.post(url, headers=entrepreneur.headers).json()["status"] == "WITHDRAWN"
    assert client.post(url, headers=entrepreneur.headers).status_code == 400


def test_status_change_notifies_applicant(client, admin, entrepreneur, create_call, submit_application):
    application = submit_application(create_call()["id"], entrepreneur)
    resp = client.patch(f"/applications/{application['id']}/status",
                        json={"status": "REJECTED", "comment": "Too early"}, headers=admin.headers)
    assert resp.json()["status"] == "REJECTED"
    note = client.get("/notifications", headers=entrepreneur.headers).json()[0]
    assert note["type"] == "ERROR"
    assert "Too early" in note["message"]


# ---------------------------------------------------------------------------
# Approval and default budget
# ---------------------------------------------------------------------------

def test_approval_creates_default_budget(client, admin, approved_call):
    call_id = approved_call["call"]["id"]
    budgets = client.get(f"/startup-calls/{call_id}/budgets", headers=admin.headers).json()
    assert len(budgets) == 1
    budget = budgets[0]
    assert budget["id"] == approved_call["budget_id"]
    assert budget["total_amount"] == 10000
    allocations = {c["name"]: c["allocated_amount"] for c in budget["categories"]}
    assert allocations == {"Operations": 4000, "Marketing": 3000, "Development": 2000, "Miscellaneous": 1000}


def test_second_approval_reuses_budget(client, admin, make_user, approved_call, submit_application):
    call_id = approved_call["call"]["id"]
    application = submit_application(call_id, make_user(Role.ENTREPRENEUR))
    resp = client.post(f"/applications/{application['id']}/approve", headers=admin.headers).json()
    assert resp["budget_created"] is False
    assert resp["budget_id"] == approved_call["budget_id"]
    assert resp["application"]["status"] == "APPROVED"


def test_approval_accepts_linked_startup(client, admin, entrepreneur, create_call, submit_application):
    startup = client.post("/startups", json={"name": "PayLater", "description": "BNPL"}, headers=entrepreneur.headers).json()
    application = submit_application(create_call()["id"], entrepreneur)
    client.post(f"/applications/{application['id']}/approve", headers=admin.headers)
    assert client.get(f"/startups/{startup['id']}").json()["status"] == "ACCEPTED"


def test_delete_call_refused_with_applications(client, admin, entrepreneur, create_call, submit_application):
    call = create_call()
    submit_application(call["id"], entrepreneur)
    assert client.delete(f"/startup-calls/{call['id']}", headers=admin.headers).status_code == 409

    empty = create_call(title="Empty")
    assert client.delete(f"/startup-calls/{empty['id']}", headers=admin.headers).status_code == 204
    assert client.get(f"/startup-calls/{empty['id']}", headers=admin.headers).status_code == 404
