from callhub.seed import seed

from conftest import run


def test_seed_creates_one_user_per_role(client):
    tokens = run(seed())
    assert set(tokens) == {
        "admin@callhub.test",
        "entrepreneur@callhub.test",
        "reviewer@callhub.test",
        "sponsor@callhub.test",
        "user@callhub.test",
    }

    admin = {"Authorization": f"Bearer {tokens['admin@callhub.test']}"}
    assert client.get("/users/me", headers=admin).json()["role"] == "ADMIN"

    calls = client.get("/startup-calls").json()
    assert [c["title"] for c in calls] == ["Green Tech Accelerator 2026"]
    budgets = client.get(f"/startup-calls/{calls[0]['id']}/budgets", headers=admin).json()
    assert budgets[0]["allocated"] == budgets[0]["total_amount"]
    assert [o["slug"] for o in client.get("/sponsorship-opportunities").json()] == ["founding-sponsor"]
    assert len(client.get("/events").json()) == 1


def test_seed_is_idempotent():
    assert run(seed())
    assert run(seed()) == {}


def test_reset_reseeds():
    first = run(seed())
    second = run(seed(reset=True))
    assert set(first) == set(second)
    assert first != second
