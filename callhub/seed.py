"""
Seed the database with demo data.

Creates one user per role (printing their API tokens), a published startup
call with a budget, an active sponsorship opportunity and an upcoming event.

Usage:
    callhub-seed            # create schema + demo data
    callhub-seed --reset    # drop everything first
"""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt

from sqlalchemy import select

from callhub.auth import issue_token
from callhub.config import DEFAULT_BUDGET_AMOUNT, DEFAULT_BUDGET_SPLIT, DEFAULT_CURRENCY
from callhub.database import drop_db, init_db
from callhub.logger import setup_logging
from callhub.models import (
    Budget,
    BudgetCategory,
    CallStatus,
    Event,
    EventType,
    OpportunityStatus,
    Role,
    SponsorshipOpportunity,
    Startup,
    StartupCall,
    StartupStatus,
    User,
    utcnow,
)
from callhub.retry import db_retry, run_in_session

DEMO_DOMAIN = "callhub.test"


@db_retry
async def prepare_schema(reset: bool = False):
    if reset:
        await drop_db()
    await init_db()


async def seed(reset: bool = False) -> dict[str, str]:
    """Insert demo rows; returns ``{email: token}`` for the created users."""
    await prepare_schema(reset)

    async def work(session) -> dict[str, str]:
        existing = (await session.execute(select(User.id).limit(1))).scalar()
        if existing:
            return {}

        tokens: dict[str, str] = {}
        users: dict[Role, User] = {}
        for role in Role:
            token, token_hash = issue_token()
            email = f"{role.value.lower()}@{DEMO_DOMAIN}"
            users[role] = User(name=f"Demo {role.value.title()}", email=email, role=role, api_token_hash=token_hash)
            tokens[email] = token
        session.add_all(users.values())
        await session.flush()

        now = utcnow()
        admin = users[Role.ADMIN]
        call = StartupCall(
            title="Green Tech Accelerator 2026",
            description="Twelve-week program for climate and energy startups.",
            status=CallStatus.PUBLISHED,
            published_date=now,
            application_deadline=now + dt.timedelta(days=45),
            industry="CleanTech",
            location="Remote",
            funding_amount="Up to $50,000",
            requirements=["Working prototype", "At least two founders"],
            eligibility_criteria=["Incorporated less than 5 years ago"],
            selection_process=["Screening", "Reviewer scoring", "Demo day"],
            application_process="Submit the online application before the deadline.",
            created_by_id=admin.id,
        )
        session.add(call)
        await session.flush()

        session.add(Budget(
            startup_call_id=call.id,
            title=f"Budget for {call.title}",
            description="Program operating budget",
            total_amount=DEFAULT_BUDGET_AMOUNT,
            currency=DEFAULT_CURRENCY,
            fiscal_year=str(now.year),
            start_date=now,
            end_date=now + dt.timedelta(days=365),
            categories=[
                BudgetCategory(name=name, description=description, allocated_amount=DEFAULT_BUDGET_AMOUNT * share)
                for name, (description, share) in DEFAULT_BUDGET_SPLIT.items()
            ],
        ))
        session.add(Startup(
            name="SunGrid",
            description="Peer-to-peer solar energy trading.",
            pitch="Let neighbours sell surplus solar power to each other.",
            industry=["CleanTech", "Energy"],
            stage="MVP",
            founder_id=users[Role.ENTREPRENEUR].id,
            status=StartupStatus.SUBMITTED,
        ))
        session.add(SponsorshipOpportunity(
            startup_call_id=call.id,
            title="Founding sponsor",
            slug="founding-sponsor",
            description="Back the whole accelerator cohort and host the demo day.",
            benefits=["Logo on all program material", "Keynote slot at demo day"],
            min_amount=5000,
            max_amount=25000,
            currency=DEFAULT_CURRENCY,
            status=OpportunityStatus.ACTIVE,
            deadline=now + dt.timedelta(days=30),
            tags=["cleantech", "accelerator"],
            industry_focus="CleanTech",
            created_by_id=admin.id,
        ))
        session.add(Event(
            title="Application workshop",
            description="Walk-through of the application form with the program team.",
            type=EventType.WORKSHOP,
            start_date=now + dt.timedelta(days=7),
            end_date=now + dt.timedelta(days=7, hours=2),
            is_virtual=True,
            virtual_link="https://meet.example.com/callhub-workshop",
            startup_call_id=call.id,
        ))
        await session.commit()
        return tokens

    return await run_in_session(work)


def main():
    parser = argparse.ArgumentParser(description="Seed CallHub with demo data")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()

    setup_logging()
    tokens = asyncio.run(seed(reset=args.reset))
    if not tokens:
        print("Database already has users, nothing seeded.")
        return
    print("Demo users (keep these tokens, they are shown only once):")
    for email, token in tokens.items():
        print(f"  {email:<28} {token}")


if __name__ == "__main__":
    main()
