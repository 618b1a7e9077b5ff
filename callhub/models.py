"""
SQLAlchemy ORM models -- relational schema for the startup-call platform.

Tables
------
users                        -- platform accounts with a role and API token hash
startups                     -- entrepreneur companies
milestones                   -- progress milestones of a startup
tasks                        -- work items of a startup, optionally under a milestone
startup_calls                -- admin-defined programs
startup_call_applications    -- entrepreneur applications to a call
application_reviews          -- reviewer assignments and submitted reviews
budgets / budget_categories  -- financial allocation per call
expenses                     -- spend against a budget, approved by admins
sponsorship_opportunities    -- funding offers sponsors can apply to
sponsorship_applications     -- sponsor applications to an opportunity
events                       -- calendar of workshops, deadlines, ...
notifications                -- per-user inbox
"""

from __future__ import annotations

import datetime as dt
import enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> dt.datetime:
    """Naive UTC now; every timestamp column stores naive UTC."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


def _enum(cls):
    # Stored as plain strings so SQLite and PostgreSQL share one schema
    return Enum(cls, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e])


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Role(str, enum.Enum):
    USER = "USER"
    ENTREPRENEUR = "ENTREPRENEUR"
    REVIEWER = "REVIEWER"
    SPONSOR = "SPONSOR"
    ADMIN = "ADMIN"


class StartupStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class MilestoneStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DELAYED = "DELAYED"


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    COMPLETED = "COMPLETED"


class TaskPriority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class CallStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class ApplicationStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class ReviewStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class ExpenseStatus(str, enum.Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class OpportunityStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class Visibility(str, enum.Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class SponsorshipStatus(str, enum.Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"
    COMPLETED = "COMPLETED"


class EventType(str, enum.Enum):
    WORKSHOP = "WORKSHOP"
    WEBINAR = "WEBINAR"
    DEADLINE = "DEADLINE"
    ANNOUNCEMENT = "ANNOUNCEMENT"
    NETWORKING = "NETWORKING"
    OTHER = "OTHER"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), default="")
    email = Column(String(320), unique=True, nullable=False, index=True)
    role = Column(_enum(Role), nullable=False, default=Role.USER)
    api_token_hash = Column(String(64), unique=True, nullable=True, index=True)
    is_disabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Startups, milestones, tasks
# ---------------------------------------------------------------------------

class Startup(Base):
    __tablename__ = "startups"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False)
    pitch = Column(Text, default="")
    industry = Column(JSON, default=list)
    stage = Column(String(64), default="")
    website = Column(String(512), nullable=True)
    founder_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(_enum(StartupStatus), nullable=False, default=StartupStatus.SUBMITTED, index=True)
    score = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(String(36), primary_key=True, default=_uuid)
    startup_id = Column(String(36), ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    due_date = Column(DateTime, nullable=False)
    status = Column(_enum(MilestoneStatus), nullable=False, default=MilestoneStatus.PENDING)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=_uuid)
    startup_id = Column(String(36), ForeignKey("startups.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id = Column(String(36), ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(_enum(TaskStatus), nullable=False, default=TaskStatus.TODO)
    priority = Column(_enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM)
    start_date = Column(DateTime, nullable=False, default=utcnow)
    due_date = Column(DateTime, nullable=False)
    completed_date = Column(DateTime, nullable=True)
    assignee_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    creator_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Startup calls, applications, reviews
# ---------------------------------------------------------------------------

class StartupCall(Base):
    __tablename__ = "startup_calls"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(_enum(CallStatus), nullable=False, default=CallStatus.DRAFT, index=True)
    application_deadline = Column(DateTime, nullable=False)
    published_date = Column(DateTime, nullable=True)
    industry = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    funding_amount = Column(String(255), nullable=True)
    requirements = Column(JSON, default=list)
    eligibility_criteria = Column(JSON, default=list)
    selection_process = Column(JSON, default=list)
    about_sponsor = Column(Text, nullable=True)
    application_process = Column(Text, default="")
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class StartupCallApplication(Base):
    __tablename__ = "startup_call_applications"

    id = Column(String(36), primary_key=True, default=_uuid)
    call_id = Column(String(36), ForeignKey("startup_calls.id"), nullable=False, index=True)
    startup_id = Column(String(36), ForeignKey("startups.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    startup_name = Column(String(255), nullable=False)
    website = Column(String(512), nullable=True)
    founding_date = Column(DateTime, nullable=False)
    team_size = Column(String(32), default="")
    industry = Column(String(255), nullable=False)
    stage = Column(String(64), nullable=False)
    description = Column(Text, nullable=False)
    problem = Column(Text, nullable=False)
    solution = Column(Text, nullable=False)
    traction = Column(Text, nullable=True)
    business_model = Column(Text, nullable=False)
    funding = Column(Text, nullable=True)
    use_of_funds = Column(Text, nullable=False)
    competitive_advantage = Column(Text, nullable=False)
    founder_bio = Column(Text, nullable=False)
    pitch_deck_url = Column(String(512), nullable=True)
    financials_url = Column(String(512), nullable=True)
    status = Column(_enum(ApplicationStatus), nullable=False, default=ApplicationStatus.SUBMITTED, index=True)
    reviews_completed = Column(Integer, nullable=False, default=0)
    reviews_total = Column(Integer, nullable=False, default=3)

    submitted_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("call_id", "user_id", name="uq_application_call_user"),
    )


class ApplicationReview(Base):
    __tablename__ = "application_reviews"

    id = Column(String(36), primary_key=True, default=_uuid)
    application_id = Column(
        String(36), ForeignKey("startup_call_applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reviewer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    score = Column(Float, nullable=True)
    innovation_score = Column(Float, nullable=True)
    market_score = Column(Float, nullable=True)
    team_score = Column(Float, nullable=True)
    execution_score = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    status = Column(_enum(ReviewStatus), nullable=False, default=ReviewStatus.PENDING)
    assigned_at = Column(DateTime, default=utcnow)
    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("application_id", "reviewer_id", name="uq_review_application_reviewer"),
    )


# ---------------------------------------------------------------------------
# Budgets & expenses
# ---------------------------------------------------------------------------

class Budget(Base):
    __tablename__ = "budgets"

    id = Column(String(36), primary_key=True, default=_uuid)
    startup_call_id = Column(String(36), ForeignKey("startup_calls.id"), nullable=False, index=True)
    startup_id = Column(String(36), ForeignKey("startups.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    total_amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    fiscal_year = Column(String(16), default="")
    status = Column(String(32), default="active")
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    categories = relationship(
        "BudgetCategory", back_populates="budget", order_by="BudgetCategory.name", cascade="all, delete-orphan"
    )
    expenses = relationship("Expense", back_populates="budget")


class BudgetCategory(Base):
    __tablename__ = "budget_categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    budget_id = Column(String(36), ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    allocated_amount = Column(Float, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    budget = relationship("Budget", back_populates="categories")


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=_uuid)
    budget_id = Column(String(36), ForeignKey("budgets.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("budget_categories.id", ondelete="SET NULL"), nullable=True, index=True)
    milestone_id = Column(String(36), ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    date = Column(DateTime, nullable=False)
    receipt_url = Column(String(512), nullable=True)
    status = Column(_enum(ExpenseStatus), nullable=False, default=ExpenseStatus.PENDING, index=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    budget = relationship("Budget", back_populates="expenses")
    category = relationship("BudgetCategory")

    __table_args__ = (
        Index("ix_expenses_category_status", "category_id", "status"),
    )


# ---------------------------------------------------------------------------
# Sponsorship
# ---------------------------------------------------------------------------

class SponsorshipOpportunity(Base):
    __tablename__ = "sponsorship_opportunities"

    id = Column(String(36), primary_key=True, default=_uuid)
    startup_call_id = Column(String(36), ForeignKey("startup_calls.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(100), nullable=False)
    slug = Column(String(160), unique=True, nullable=False)
    description = Column(Text, nullable=False)
    benefits = Column(JSON, default=list)
    min_amount = Column(Float, nullable=False)
    max_amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    status = Column(_enum(OpportunityStatus), nullable=False, default=OpportunityStatus.DRAFT, index=True)
    visibility = Column(_enum(Visibility), nullable=False, default=Visibility.PUBLIC, index=True)
    deadline = Column(DateTime, nullable=True)
    tags = Column(JSON, default=list)
    industry_focus = Column(String(255), nullable=True, index=True)
    eligibility = Column(Text, nullable=True)
    views_count = Column(Integer, nullable=False, default=0)
    share_count = Column(Integer, nullable=False, default=0)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class SponsorshipApplication(Base):
    __tablename__ = "sponsorship_applications"

    id = Column(String(36), primary_key=True, default=_uuid)
    opportunity_id = Column(String(36), ForeignKey("sponsorship_opportunities.id"), nullable=False, index=True)
    sponsor_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    sponsor_name = Column(String(255), nullable=False)
    contact_email = Column(String(320), nullable=False)
    contact_phone = Column(String(64), nullable=True)
    website = Column(String(512), nullable=True)
    sponsorship_type = Column(String(64), default="FINANCIAL")
    proposed_amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="USD")
    message = Column(Text, nullable=True)
    status = Column(_enum(SponsorshipStatus), nullable=False, default=SponsorshipStatus.PENDING)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("opportunity_id", "sponsor_id", name="uq_sponsorship_opportunity_sponsor"),
    )


# ---------------------------------------------------------------------------
# Events & notifications
# ---------------------------------------------------------------------------

class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    type = Column(_enum(EventType), nullable=False, default=EventType.OTHER)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False)
    location = Column(String(255), nullable=True)
    is_virtual = Column(Boolean, nullable=False, default=False)
    virtual_link = Column(String(512), nullable=True)
    startup_call_id = Column(String(36), ForeignKey("startup_calls.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(32), nullable=False, default="INFO")
    read = Column(Boolean, nullable=False, default=False)
    link = Column(String(512), nullable=True)

    created_at = Column(DateTime, default=utcnow)
