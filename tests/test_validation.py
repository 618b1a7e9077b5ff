import datetime as dt

import pydantic
import pytest

from callhub.models import OpportunityStatus, utcnow
from callhub.schemas import BudgetCreate, EventCreate, ExpenseCreate, OpportunityCreate, TaskCreate
from callhub.validation import (
    ValidationError,
    validate_amount,
    validate_date,
    validate_date_range,
    validate_future,
    validate_required_fields,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value, expected", [(10, 10.0), ("12.5", 12.5), (0.01, 0.01)])
def test_validate_amount_accepts_positive_numbers(value, expected):
    assert validate_amount(value) == expected


@pytest.mark.parametrize(
    "value, message",
    [
        (None, "Amount is required"),
        ("", "Amount is required"),
        ("abc", "Amount must be a valid number"),
        (True, "Amount must be a number"),
        (0, "Amount must be greater than zero"),
        (-5, "Amount must be greater than zero"),
    ],
)
def test_validate_amount_rejects(value, message):
    with pytest.raises(ValidationError) as exc:
        validate_amount(value)
    assert exc.value.message == message


def test_validate_date_parses_iso_strings_to_naive_utc():
    assert validate_date("2024-03-01") == dt.datetime(2024, 3, 1)
    assert validate_date("2024-03-01T12:00:00Z") == dt.datetime(2024, 3, 1, 12)
    assert validate_date("2024-03-01T14:00:00+02:00") == dt.datetime(2024, 3, 1, 12)
    assert validate_date(dt.date(2024, 3, 1)) == dt.datetime(2024, 3, 1)


def test_validate_date_rejects_missing_and_garbage():
    with pytest.raises(ValidationError, match="Date is required"):
        validate_date(None)
    with pytest.raises(ValidationError, match="Invalid date format"):
        validate_date("next tuesday")


def test_validate_date_range():
    start = dt.datetime(2024, 1, 1)
    validate_date_range(start, start)
    validate_date_range(start, start + dt.timedelta(days=1))
    with pytest.raises(ValidationError, match="End date cannot be before start date"):
        validate_date_range(start, start - dt.timedelta(seconds=1))


def test_validate_future():
    now = utcnow()
    validate_future(now + dt.timedelta(minutes=1), now)
    with pytest.raises(ValidationError):
        validate_future(now, now)


def test_validate_required_fields_lists_missing():
    with pytest.raises(ValidationError) as exc:
        validate_required_fields({"title": "x", "amount": ""}, ["title", "amount", "date"])
    assert exc.value.message == "Missing required fields: amount, date"
    assert exc.value.details["missing_fields"] == ["amount", "date"]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

def _opportunity(**overrides):
    data = {
        "title": "Gold sponsor",
        "description": "Support the whole cohort for a year",
        "benefits": ["Logo on website"],
        "min_amount": 1000,
        "max_amount": 5000,
        "currency": "USD",
    }
    data.update(overrides)
    return data


def test_opportunity_accepts_lower_case_status():
    opportunity = OpportunityCreate(**_opportunity(status="active"))
    assert opportunity.status == OpportunityStatus.ACTIVE


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_amount": 500},
        {"min_amount": -1},
        {"title": "ab"},
        {"description": "too short"},
        {"benefits": []},
        {"benefits": [""]},
        {"benefits": ["x" * 201]},
        {"status": "pending"},
        {"deadline": "2001-01-01T00:00:00"},
    ],
)
def test_opportunity_rejects_invalid_input(overrides):
    with pytest.raises(pydantic.ValidationError):
        OpportunityCreate(**_opportunity(**overrides))


def test_task_due_date_cannot_precede_start():
    with pytest.raises(pydantic.ValidationError, match="Due date cannot be before start date"):
        TaskCreate(title="t", description="d", start_date="2024-02-01T00:00:00", due_date="2024-01-01T00:00:00")


def test_task_start_date_defaults_to_now():
    task = TaskCreate(title="t", description="d", due_date=(utcnow() + dt.timedelta(days=1)).isoformat())
    assert task.start_date is not None
    assert task.start_date <= task.due_date


def test_timezone_aware_input_is_stored_as_naive_utc():
    task = TaskCreate(title="t", description="d", start_date="2024-01-01T10:00:00+02:00",
                      due_date="2024-01-02T00:00:00Z")
    assert task.start_date == dt.datetime(2024, 1, 1, 8)
    assert task.due_date.tzinfo is None


def test_virtual_event_needs_link():
    with pytest.raises(pydantic.ValidationError, match="virtual_link"):
        EventCreate(title="Webinar", description="Intro", type="webinar", is_virtual=True,
                    start_date="2024-01-01T10:00:00", end_date="2024-01-01T11:00:00")


def test_budget_categories_cannot_exceed_total():
    with pytest.raises(pydantic.ValidationError, match="exceed"):
        BudgetCreate(
            title="B", total_amount=100, start_date="2024-01-01", end_date="2024-12-31",
            categories=[{"name": "a", "allocated_amount": 60}, {"name": "b", "allocated_amount": 50}],
        )


def test_expense_amount_must_be_positive():
    with pytest.raises(pydantic.ValidationError, match="greater than zero"):
        ExpenseCreate(title="Ads", amount=-10, currency="USD", date="2024-01-01")
    assert ExpenseCreate(title="Ads", amount="10.5", currency="USD", date="2024-01-01").amount == 10.5
