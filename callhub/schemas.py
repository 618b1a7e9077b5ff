"""Pydantic schemas for FastAPI request / response models."""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

from callhub.models import (
    ApplicationStatus,
    CallStatus,
    EventType,
    ExpenseStatus,
    MilestoneStatus,
    OpportunityStatus,
    ReviewStatus,
    Role,
    SponsorshipStatus,
    StartupStatus,
    TaskPriority,
    TaskStatus,
    Visibility,
    utcnow,
)
from callhub.validation import to_naive_utc, validate_amount, validate_date_range, validate_future

# Every datetime entering the API is normalised to naive UTC
UTCDateTime = Annotated[dt.datetime, AfterValidator(to_naive_utc)]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _positive_amount(value):
    if value is None:
        return value
    return validate_amount(value)


def _upper(value):
    return value.upper() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserOut(BaseModel):
    id: str
    name: str = ""
    email: str
    role: Role
    is_disabled: bool = False
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    name: str = ""
    email: str = Field(pattern=EMAIL_PATTERN)
    role: Role = Role.USER


class UserWithToken(BaseModel):
    user: UserOut
    token: str


class RoleUpdate(BaseModel):
    role: Role


# ---------------------------------------------------------------------------
# Startups, milestones, tasks
# ---------------------------------------------------------------------------

class StartupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    pitch: str = ""
    industry: list[str] = Field(default_factory=list)
    stage: str = ""
    website: Optional[str] = None


class StartupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    pitch: Optional[str] = None
    industry: Optional[list[str]] = None
    stage: Optional[str] = None
    website: Optional[str] = None
    # admin only
    status: Optional[StartupStatus] = None
    score: Optional[float] = Field(default=None, ge=0, le=100)


class StartupOut(BaseModel):
    id: str
    name: str
    description: str
    pitch: str = ""
    industry: list[str] = []
    stage: str = ""
    website: Optional[str] = None
    founder_id: str
    status: StartupStatus
    score: Optional[float] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class MilestoneCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    due_date: UTCDateTime
    status: MilestoneStatus = MilestoneStatus.PENDING


class MilestoneUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    due_date: Optional[UTCDateTime] = None
    status: Optional[MilestoneStatus] = None


class MilestoneOut(BaseModel):
    id: str
    startup_id: str
    title: str
    description: str
    due_date: dt.datetime
    status: MilestoneStatus
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    due_date: UTCDateTime
    start_date: Optional[UTCDateTime] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    milestone_id: Optional[str] = None
    assignee_id: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date is None:
            self.start_date = utcnow()
        validate_date_range(self.start_date, self.due_date, "Due date cannot be before start date")
        return self


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    due_date: Optional[UTCDateTime] = None
    start_date: Optional[UTCDateTime] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    milestone_id: Optional[str] = None
    assignee_id: Optional[str] = None


class TaskOut(BaseModel):
    id: str
    startup_id: str
    milestone_id: Optional[str] = None
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    start_date: dt.datetime
    due_date: dt.datetime
    completed_date: Optional[dt.datetime] = None
    assignee_id: Optional[str] = None
    creator_id: str
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Startup calls, applications, reviews
# ---------------------------------------------------------------------------

class StartupCallCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    application_deadline: UTCDateTime
    industry: str = Field(min_length=1)
    location: str = Field(min_length=1)
    funding_amount: Optional[str] = None
    requirements: list[str] = Field(default_factory=list)
    eligibility_criteria: list[str] = Field(default_factory=list)
    selection_process: list[str] = Field(default_factory=list)
    about_sponsor: Optional[str] = None
    application_process: str = ""
    status: CallStatus = CallStatus.DRAFT


class StartupCallUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    application_deadline: Optional[UTCDateTime] = None
    industry: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = Field(default=None, min_length=1)
    funding_amount: Optional[str] = None
    requirements: Optional[list[str]] = None
    eligibility_criteria: Optional[list[str]] = None
    selection_process: Optional[list[str]] = None
    about_sponsor: Optional[str] = None
    application_process: Optional[str] = None
    status: Optional[CallStatus] = None


class StartupCallOut(BaseModel):
    id: str
    title: str
    description: str
    status: CallStatus
    application_deadline: dt.datetime
    published_date: Optional[dt.datetime] = None
    industry: str
    location: str
    funding_amount: Optional[str] = None
    requirements: list[str] = []
    eligibility_criteria: list[str] = []
    selection_process: list[str] = []
    about_sponsor: Optional[str] = None
    application_process: str = ""
    created_by_id: str
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    # entrepreneurs only: their own status for this call, NOT_APPLIED if none
    application_status: Optional[str] = None

    class Config:
        from_attributes = True


class ApplicationCreate(BaseModel):
    startup_name: str = Field(min_length=1)
    website: Optional[str] = None
    founding_date: UTCDateTime
    team_size: str = ""
    industry: str = Field(min_length=1)
    stage: str = Field(min_length=1)
    description: str = Field(min_length=1)
    problem: str = Field(min_length=1)
    solution: str = Field(min_length=1)
    traction: Optional[str] = None
    business_model: str = Field(min_length=1)
    funding: Optional[str] = None
    use_of_funds: str = Field(min_length=1)
    competitive_advantage: str = Field(min_length=1)
    founder_bio: str = Field(min_length=1)
    pitch_deck_url: Optional[str] = None
    financials_url: Optional[str] = None


class ApplicationOut(BaseModel):
    id: str
    call_id: str
    startup_id: Optional[str] = None
    user_id: str
    startup_name: str
    website: Optional[str] = None
    founding_date: dt.datetime
    team_size: str = ""
    industry: str
    stage: str
    description: str
    problem: str
    solution: str
    traction: Optional[str] = None
    business_model: str
    funding: Optional[str] = None
    use_of_funds: str
    competitive_advantage: str
    founder_bio: str
    pitch_deck_url: Optional[str] = None
    financials_url: Optional[str] = None
    status: ApplicationStatus
    reviews_completed: int = 0
    reviews_total: int = 3
    submitted_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    comment: Optional[str] = None


class ApprovalResponse(BaseModel):
    message: str
    application: ApplicationOut
    budget_id: str
    budget_created: bool


class ReviewerAssign(BaseModel):
    reviewer_id: str
    due_date: Optional[UTCDateTime] = None


class ReviewSubmit(BaseModel):
    score: float = Field(ge=0, le=100)
    innovation_score: Optional[float] = Field(default=None, ge=0, le=100)
    market_score: Optional[float] = Field(default=None, ge=0, le=100)
    team_score: Optional[float] = Field(default=None, ge=0, le=100)
    execution_score: Optional[float] = Field(default=None, ge=0, le=100)
    feedback: str = Field(min_length=1)


class ReviewOut(BaseModel):
    id: str
    application_id: str
    reviewer_id: str
    score: Optional[float] = None
    innovation_score: Optional[float] = None
    market_score: Optional[float] = None
    team_score: Optional[float] = None
    execution_score: Optional[float] = None
    feedback: Optional[str] = None
    status: ReviewStatus
    assigned_at: Optional[dt.datetime] = None
    due_date: Optional[dt.datetime] = None
    completed_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class AssignmentOut(ReviewOut):
    startup_name: str = ""
    call_id: str = ""
    application_status: Optional[ApplicationStatus] = None


# ---------------------------------------------------------------------------
# Budgets & expenses
# ---------------------------------------------------------------------------

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    allocated_amount: float = Field(ge=0)


class CategoryOut(BaseModel):
    id: str
    budget_id: str
    name: str
    description: Optional[str] = None
    allocated_amount: float
    spent: float = 0
    remaining: float = 0

    class Config:
        from_attributes = True


class BudgetCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    total_amount: float
    currency: Optional[str] = None
    fiscal_year: Optional[str] = None
    status: str = "active"
    start_date: UTCDateTime
    end_date: UTCDateTime
    startup_id: Optional[str] = None
    categories: list[CategoryCreate] = Field(default_factory=list)

    @field_validator("total_amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return _positive_amount(value)

    @model_validator(mode="after")
    def check_consistency(self):
        validate_date_range(self.start_date, self.end_date)
        allocated = sum(c.allocated_amount for c in self.categories)
        if allocated > self.total_amount:
            raise ValueError("Category allocations exceed the total budget amount")
        return self


class BudgetUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    fiscal_year: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[UTCDateTime] = None
    end_date: Optional[UTCDateTime] = None

    @field_validator("total_amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return _positive_amount(value)


class BudgetOut(BaseModel):
    id: str
    startup_call_id: str
    startup_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    total_amount: float
    currency: str
    fiscal_year: str = ""
    status: str = "active"
    start_date: dt.datetime
    end_date: dt.datetime
    created_at: Optional[dt.datetime] = None
    categories: list[CategoryOut] = []
    allocated: float = 0
    spent: float = 0
    remaining: float = 0
    utilization: float = 0


class ExpenseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    amount: float
    currency: str = Field(min_length=1)
    date: UTCDateTime
    category_id: Optional[str] = None
    milestone_id: Optional[str] = None
    receipt_url: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return _positive_amount(value)


class ExpenseUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = Field(default=None, min_length=1)
    date: Optional[UTCDateTime] = None
    category_id: Optional[str] = None
    receipt_url: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return _positive_amount(value)


class ExpenseOut(BaseModel):
    id: str
    budget_id: str
    category_id: Optional[str] = None
    milestone_id: Optional[str] = None
    user_id: str
    title: str
    description: Optional[str] = None
    amount: float
    currency: str
    date: dt.datetime
    receipt_url: Optional[str] = None
    status: ExpenseStatus
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class ExpenseStatusUpdate(BaseModel):
    status: ExpenseStatus
    comment: Optional[str] = None


class BudgetReportRequest(BaseModel):
    budget_id: Optional[str] = None
    date_from: Optional[UTCDateTime] = None
    date_to: Optional[UTCDateTime] = None


class CategoryReport(BaseModel):
    name: str
    allocated: float
    spent: float
    remaining: float
    utilization: float


class BudgetReportItem(BaseModel):
    id: str
    title: str
    currency: str
    fiscal_year: str = ""
    status: str = ""
    total_amount: float
    expenses: float
    remaining: float
    utilization: float
    categories: list[CategoryReport] = []
    expenses_by_status: dict[str, float] = {}


class BudgetReport(BaseModel):
    startup_call_id: str
    startup_call_title: str
    generated_at: dt.datetime
    date_from: Optional[dt.datetime] = None
    date_to: Optional[dt.datetime] = None
    total_budget: float
    total_expenses: float
    remaining: float
    utilization: float
    budgets: list[BudgetReportItem] = []


# ---------------------------------------------------------------------------
# Sponsorship
# ---------------------------------------------------------------------------

class OpportunityCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=2000)
    benefits: list[Annotated[str, Field(min_length=1, max_length=200)]] = Field(min_length=1)
    min_amount: float = Field(gt=0)
    max_amount: float = Field(gt=0)
    currency: str = Field(min_length=1)
    startup_call_id: Optional[str] = None
    status: OpportunityStatus = OpportunityStatus.DRAFT
    visibility: Visibility = Visibility.PUBLIC
    deadline: Optional[UTCDateTime] = None
    tags: list[str] = Field(default_factory=list)
    industry_focus: Optional[str] = None
    eligibility: Optional[str] = None

    @field_validator("status", "visibility", mode="before")
    @classmethod
    def normalise_case(cls, value):
        return _upper(value)

    @model_validator(mode="after")
    def check_consistency(self):
        if self.max_amount < self.min_amount:
            raise ValueError("Maximum amount must be greater than or equal to minimum amount")
        if self.deadline is not None:
            validate_future(self.deadline, utcnow(), "Deadline must be in the future")
        return self


class OpportunityUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10, max_length=2000)
    benefits: Optional[list[Annotated[str, Field(min_length=1, max_length=200)]]] = Field(default=None, min_length=1)
    min_amount: Optional[float] = Field(default=None, gt=0)
    max_amount: Optional[float] = Field(default=None, gt=0)
    currency: Optional[str] = Field(default=None, min_length=1)
    startup_call_id: Optional[str] = None
    status: Optional[OpportunityStatus] = None
    visibility: Optional[Visibility] = None
    deadline: Optional[UTCDateTime] = None
    tags: Optional[list[str]] = None
    industry_focus: Optional[str] = None
    eligibility: Optional[str] = None

    @field_validator("status", "visibility", mode="before")
    @classmethod
    def normalise_case(cls, value):
        return _upper(value)


class OpportunityOut(BaseModel):
    id: str
    startup_call_id: Optional[str] = None
    title: str
    slug: str
    description: str
    benefits: list[str] = []
    min_amount: float
    max_amount: float
    currency: str
    status: OpportunityStatus
    visibility: Visibility
    deadline: Optional[dt.datetime] = None
    tags: list[str] = []
    industry_focus: Optional[str] = None
    eligibility: Optional[str] = None
    views_count: int = 0
    share_count: int = 0
    created_by_id: str
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    applications_count: Optional[int] = None

    class Config:
        from_attributes = True


class SponsorshipApply(BaseModel):
    proposed_amount: float
    currency: Optional[str] = None
    message: Optional[str] = None
    sponsor_name: str = Field(min_length=1)
    contact_email: str = Field(pattern=EMAIL_PATTERN)
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    sponsorship_type: str = "FINANCIAL"

    @field_validator("proposed_amount", mode="before")
    @classmethod
    def check_amount(cls, value):
        return _positive_amount(value)


class SponsorshipApplicationOut(BaseModel):
    id: str
    opportunity_id: str
    sponsor_id: str
    sponsor_name: str
    contact_email: str
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    sponsorship_type: str
    proposed_amount: float
    currency: str
    message: Optional[str] = None
    status: SponsorshipStatus
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class SponsorshipStatusUpdate(BaseModel):
    status: SponsorshipStatus
    comment: Optional[str] = None


class ApplicationCheck(BaseModel):
    has_applied: bool
    application: Optional[SponsorshipApplicationOut] = None


# ---------------------------------------------------------------------------
# Events & notifications
# ---------------------------------------------------------------------------

class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    type: EventType = EventType.OTHER
    start_date: UTCDateTime
    end_date: UTCDateTime
    location: Optional[str] = None
    is_virtual: bool = False
    virtual_link: Optional[str] = None
    startup_call_id: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalise_case(cls, value):
        return _upper(value)

    @model_validator(mode="after")
    def check_consistency(self):
        validate_date_range(self.start_date, self.end_date)
        if self.is_virtual and not self.virtual_link:
            raise ValueError("Virtual events need a virtual_link")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    type: Optional[EventType] = None
    start_date: Optional[UTCDateTime] = None
    end_date: Optional[UTCDateTime] = None
    location: Optional[str] = None
    is_virtual: Optional[bool] = None
    virtual_link: Optional[str] = None
    startup_call_id: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalise_case(cls, value):
        return _upper(value)


class EventOut(BaseModel):
    id: str
    title: str
    description: str
    type: EventType
    start_date: dt.datetime
    end_date: dt.datetime
    location: Optional[str] = None
    is_virtual: bool = False
    virtual_link: Optional[str] = None
    startup_call_id: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class NotificationOut(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    type: str
    read: bool
    link: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

class DashboardStats(BaseModel):
    role: Role
    stats: dict
