import pytest

from callhub.models import Role

SCORES = {"score": 82, "innovation_score": 90, "market_score": 75, "feedback": "Strong team, thin moat"}


@pytest.fixture
def application(create_call, entrepreneur, submit_application):
    return submit_application(create_call()["id"], entrepreneur)


def _assign(client, admin, application_id, reviewer_id):
    return client.post(f"/applications/{application_id}/reviewers", json={"reviewer_id": reviewer_id},
                       headers=admin.headers)


def test_assignment_moves_application_under_review(client, admin, reviewer, entrepreneur, application):
    resp = _assign(client, admin, application["id"], reviewer.id)
    assert resp.status_code == 201
    assert resp.json()["status"] == "PENDING"

    assert client.get(f"/applications/{application['id']}", headers=entrepreneur.headers).json()["status"] == "UNDER_REVIEW"
    notes = client.get("/notifications", headers=reviewer.headers).json()
    assert [n["title"] for n in notes] == ["New review assignment"]


def test_only_reviewers_can_be_assigned(client, admin, sponsor, application):
    resp = _assign(client, admin, application["id"], sponsor.id)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User is not a reviewer"


def test_duplicate_assignment_is_409(client, admin, reviewer, application):
    _assign(client, admin, application["id"], reviewer.id)
    assert _assign(client, admin, application["id"], reviewer.id).status_code == 409


def test_cannot_assign_to_withdrawn_application(client, admin, reviewer, entrepreneur, application):
    client.post(f"/applications/{application['id']}/withdraw", headers=entrepreneur.headers)
    assert _assign(client, admin, application["id"], reviewer.id).status_code == 400


def test_assigned_reviewer_can_view_application(client, admin, reviewer, application):
    url = f"/applications/{application['id']}"
    assert client.get(url, headers=reviewer.headers).status_code == 403
    _assign(client, admin, application["id"], reviewer.id)
    assert client.get(url, headers=reviewer.headers).status_code == 200


def test_assignment_listing_and_start(client, admin, reviewer, make_user, application):
    review = _assign(client, admin, application["id"], reviewer.id).json()

    assignments = client.get("/reviewer/assignments", headers=reviewer.headers).json()
    assert len(assignments) == 1
    assert assignments[0]["startup_name"] == "PayLater"
    assert assignments[0]["application_status"] == "UNDER_REVIEW"

    other = make_user(Role.REVIEWER)
    url = f"/reviewer/assignments/{review['id']}/start"
    assert client.post(url, headers=other.headers).status_code == 403
    assert client.post(url, headers=reviewer.headers).json()["status"] == "IN_PROGRESS"
    assert client.post(url, headers=reviewer.headers).status_code == 400


def test_submit_review(client, admin, reviewer, entrepreneur, application):
    _assign(client, admin, application["id"], reviewer.id)
    resp = client.post(f"/applications/{application['id']}/reviews", json=SCORES, headers=reviewer.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "COMPLETED"
    assert body["score"] == 82
    assert body["completed_at"] is not None

    assert client.get(f"/applications/{application['id']}", headers=entrepreneur.headers).json()["reviews_completed"] == 1
    titles = [n["title"] for n in client.get("/notifications", headers=entrepreneur.headers).json()]
    assert "Review received" in titles


def test_review_cannot_be_submitted_twice(client, admin, reviewer, application):
    _assign(client, admin, application["id"], reviewer.id)
    url = f"/applications/{application['id']}/reviews"
    client.post(url, json=SCORES, headers=reviewer.headers)
    resp = client.post(url, json=SCORES, headers=reviewer.headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Review has already been submitted"


def test_unassigned_reviewer_is_403(client, reviewer, application):
    resp = client.post(f"/applications/{application['id']}/reviews", json=SCORES, headers=reviewer.headers)
    assert resp.status_code == 403


@pytest.mark.parametrize("payload", [dict(SCORES, score=101), dict(SCORES, market_score=-1), dict(SCORES, feedback="")])
def test_review_scores_are_validated(client, admin, reviewer, application, payload):
    _assign(client, admin, application["id"], reviewer.id)
    resp = client.post(f"/applications/{application['id']}/reviews", json=payload, headers=reviewer.headers)
    assert resp.status_code == 422


def test_admins_notified_when_all_reviews_are_in(client, admin, make_user, application):
    reviewers = [make_user(Role.REVIEWER) for _ in range(3)]
    for r in reviewers:
        _assign(client, admin, application["id"], r.id)

    def admin_titles():
        return [n["title"] for n in client.get("/notifications", headers=admin.headers).json()]

    for r in reviewers[:2]:
        client.post(f"/applications/{application['id']}/reviews", json=SCORES, headers=r.headers)
    assert "All reviews completed" not in admin_titles()

    client.post(f"/applications/{application['id']}/reviews", json=SCORES, headers=reviewers[2].headers)
    assert "All reviews completed" in admin_titles()


def test_applicant_sees_only_completed_reviews(client, admin, entrepreneur, make_user, application):
    done, pending = make_user(Role.REVIEWER), make_user(Role.REVIEWER)
    _assign(client, admin, application["id"], done.id)
    _assign(client, admin, application["id"], pending.id)
    client.post(f"/applications/{application['id']}/reviews", json=SCORES, headers=done.headers)

    url = f"/applications/{application['id']}/reviews"
    assert len(client.get(url, headers=admin.headers).json()) == 2
    visible = client.get(url, headers=entrepreneur.headers).json()
    assert [r["reviewer_id"] for r in visible] == [done.id]
    assert client.get(url, headers=make_user(Role.ENTREPRENEUR).headers).status_code == 403
