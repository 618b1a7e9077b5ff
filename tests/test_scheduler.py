import asyncio
import datetime as dt

from callhub.models import utcnow
from callhub.scheduler import HousekeepingScheduler, get_scheduler, run_housekeeping

from conftest import iso, run


def test_housekeeping_closes_expired_items(client, admin, entrepreneur, create_call):
    open_call = create_call()
    draft = create_call(status="DRAFT")
    opportunity = client.post(
        "/sponsorship-opportunities",
        json={
            "title": "Early backer",
            "description": "Back the cohort before demo day",
            "benefits": ["Logo"],
            "min_amount": 100,
            "max_amount": 1000,
            "currency": "USD",
            "status": "ACTIVE",
            "deadline": iso(dt.timedelta(days=10)),
        },
        headers=admin.headers,
    ).json()
    startup = client.post("/startups", json={"name": "Late Co", "description": "Always late"},
                          headers=entrepreneur.headers).json()
    milestone = client.post(
        f"/startups/{startup['id']}/milestones",
        json={"title": "MVP", "description": "MVP", "due_date": iso(dt.timedelta(days=5))},
        headers=entrepreneur.headers,
    ).json()

    assert run(run_housekeeping()) == {"calls_closed": 0, "opportunities_closed": 0, "milestones_delayed": 0}

    later = utcnow() + dt.timedelta(days=40)
    assert run(run_housekeeping(now=later)) == {"calls_closed": 1, "opportunities_closed": 1, "milestones_delayed": 1}

    assert client.get(f"/startup-calls/{open_call['id']}", headers=admin.headers).json()["status"] == "CLOSED"
    assert client.get(f"/startup-calls/{draft['id']}", headers=admin.headers).json()["status"] == "DRAFT"
    assert client.get(f"/sponsorship-opportunities/{opportunity['id']}", headers=admin.headers).json()["status"] == "CLOSED"
    delayed = client.get(f"/startups/{startup['id']}/milestones/{milestone['id']}", headers=entrepreneur.headers)
    assert delayed.json()["status"] == "DELAYED"

    # a second pass has nothing left to do
    assert run(run_housekeeping(now=later)) == {"calls_closed": 0, "opportunities_closed": 0, "milestones_delayed": 0}


def test_scheduler_start_and_stop():
    async def go():
        scheduler = HousekeepingScheduler()
        scheduler.start(interval_minutes=5)
        running = scheduler.is_running
        scheduler.stop()
        await asyncio.sleep(0)
        return running, scheduler.is_running

    assert run(go()) == (True, False)


def test_scheduler_is_a_singleton():
    assert get_scheduler() is get_scheduler()
