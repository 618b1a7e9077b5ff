"""
Budgets endpoint -- budgets, categories and expenses scoped to a startup call.

Spend is always the sum of *approved* expenses; pending and in-review
expenses do not count against a category until an admin approves them.
"""

from __future__ import annotations

import datetime as dt
import io
import logging
from typing import Optional

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from callhub.auth import get_current_user, require_admin
from callhub.config import DEFAULT_CURRENCY
from callhub.database import get_session
from callhub.models import (
    ApplicationStatus,
    Budget,
    BudgetCategory,
    Expense,
    ExpenseStatus,
    Milestone,
    Role,
    StartupCall,
    StartupCallApplication,
    User,
    utcnow,
)
from callhub.notifications import ERROR, INFO, SUCCESS, notify
from callhub.routes.common import get_or_404, reject_nulls, scalar, scalars
from callhub.schemas import (
    BudgetCreate,
    BudgetOut,
    BudgetReport,
    BudgetReportItem,
    BudgetReportRequest,
    BudgetUpdate,
    CategoryCreate,
    CategoryOut,
    CategoryReport,
    ExpenseCreate,
    ExpenseOut,
    ExpenseStatusUpdate,
    ExpenseUpdate,
)
from callhub.validation import ValidationError, validate_date, validate_date_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/startup-calls/{call_id}/budgets", tags=["budgets"])

CSV_COLUMNS = ["budget", "category", "title", "amount", "currency", "date", "status", "submitted_by"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _utilization(spent: float, total: float) -> float:
    return round(spent / total * 100, 2) if total else 0.0


def _approved_total(expenses) -> float:
    return sum(e.amount for e in expenses if e.status == ExpenseStatus.APPROVED)


def budget_summary(budget: Budget) -> BudgetOut:
    """Budget with categories and its approved-spend figures."""
    categories = []
    for category in budget.categories:
        spent = _approved_total(e for e in budget.expenses if e.category_id == category.id)
        categories.append(
            CategoryOut(
                id=category.id,
                budget_id=category.budget_id,
                name=category.name,
                description=category.description,
                allocated_amount=category.allocated_amount,
                spent=spent,
                remaining=category.allocated_amount - spent,
            )
        )
    spent = _approved_total(budget.expenses)
    return BudgetOut(
        id=budget.id,
        startup_call_id=budget.startup_call_id,
        startup_id=budget.startup_id,
        title=budget.title,
        description=budget.description,
        total_amount=budget.total_amount,
        currency=budget.currency,
        fiscal_year=budget.fiscal_year or "",
        status=budget.status or "",
        start_date=budget.start_date,
        end_date=budget.end_date,
        created_at=budget.created_at,
        categories=categories,
        allocated=sum(c.allocated_amount for c in budget.categories),
        spent=spent,
        remaining=budget.total_amount - spent,
        utilization=_utilization(spent, budget.total_amount),
    )


def _budgets_query(call_id: str):
    return (
        select(Budget)
        .where(Budget.startup_call_id == call_id)
        .options(selectinload(Budget.categories), selectinload(Budget.expenses))
        .execution_options(populate_existing=True)
    )


async def _load_budget(session: AsyncSession, call_id: str, budget_id: str) -> Budget:
    budget = await scalar(session, _budgets_query(call_id).where(Budget.id == budget_id))
    if budget is None:
        raise HTTPException(status_code=404, detail="Budget not found")
    return budget


async def _load_expense(session: AsyncSession, call_id: str, expense_id: str) -> Expense:
    stmt = (
        select(Expense)
        .join(Budget, Budget.id == Expense.budget_id)
        .where(Expense.id == expense_id, Budget.startup_call_id == call_id)
        .options(selectinload(Expense.category))
    )
    expense = await scalar(session, stmt)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")
    return expense


async def _require_participant(session: AsyncSession, call_id: str, user: User) -> None:
    """Admins, or entrepreneurs with an approved application to the call."""
    await get_or_404(session, StartupCall, call_id, "Startup call")
    if user.role == Role.ADMIN:
        return
    approved = await scalar(
        session,
        select(StartupCallApplication.id).where(
            StartupCallApplication.call_id == call_id,
            StartupCallApplication.user_id == user.id,
            StartupCallApplication.status == ApplicationStatus.APPROVED,
        ),
    )
    if not approved:
        raise HTTPException(status_code=403, detail="You don't have access to the budgets of this startup call")


async def _check_category(session: AsyncSession, budget_id: str, category_id: Optional[str]) -> None:
    if not category_id:
        return
    category = await session.get(BudgetCategory, category_id)
    if category is None or category.budget_id != budget_id:
        raise HTTPException(status_code=400, detail="Category does not belong to this budget")


async def _check_allocation(session: AsyncSession, expense: Expense, category: Optional[BudgetCategory],
                            amount: float, message: str) -> None:
    """Raise 400 when ``amount`` on ``category`` would overrun its allocation."""
    if category is None:
        return
    spent = await scalar(
        session,
        select(func.coalesce(func.sum(Expense.amount), 0.0)).where(
            Expense.category_id == category.id,
            Expense.status == ExpenseStatus.APPROVED,
            Expense.id != expense.id,
        ),
    )
    allocated = category.allocated_amount
    if spent + amount > allocated:
        raise HTTPException(
            status_code=400,
            detail={
                "message": message,
                "details": {
                    "category_name": category.name,
                    "allocated_amount": allocated,
                    "current_spent": spent,
                    "expense_amount": amount,
                    "remaining": allocated - spent,
                },
            },
        )


# ---------------------------------------------------------------------------
# Budgets
# ---------------------------------------------------------------------------

@router.get("", response_model=list[BudgetOut])
async def list_budgets(
    call_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_participant(session, call_id, user)
    budgets = await scalars(session, _budgets_query(call_id).order_by(Budget.created_at.desc()))
    return [budget_summary(b) for b in budgets]


@router.post("", response_model=BudgetOut, status_code=201)
async def create_budget(
    call_id: str,
    body: BudgetCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    await get_or_404(session, StartupCall, call_id, "Startup call")
    data = body.model_dump(exclude={"categories"})
    data["currency"] = data["currency"] or DEFAULT_CURRENCY
    data["fiscal_year"] = data["fiscal_year"] or str(body.start_date.year)
    budget = Budget(
        startup_call_id=call_id,
        categories=[BudgetCategory(**c.model_dump()) for c in body.categories],
        **data,
    )
    session.add(budget)
    await session.commit()
    logger.info("Budget %s created for call %s with %d categories", budget.id, call_id, len(body.categories))
    return budget_summary(await _load_budget(session, call_id, budget.id))


@router.post("/report", response_model=BudgetReport)
async def budget_report(
    call_id: str,
    body: BudgetReportRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    report, _ = await _build_report(session, call_id, body)
    return report


@router.get("/report.csv")
async def budget_report_csv(
    call_id: str,
    budget_id: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Report rows as CSV; dates may be plain YYYY-MM-DD."""
    request = BudgetReportRequest(
        budget_id=budget_id,
        date_from=validate_date(date_from) if date_from else None,
        date_to=validate_date(date_to) if date_to else None,
    )
    _, rows = await _build_report(session, call_id, request)
    buffer = io.StringIO()
    pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(buffer, index=False)
    buffer.seek(0)
    filename = f"budget-report-{call_id}.csv"
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def _build_report(session: AsyncSession, call_id: str, request: BudgetReportRequest):
    """Report model plus the flat expense rows used for CSV export."""
    call = await get_or_404(session, StartupCall, call_id, "Startup call")
    if request.date_from and request.date_to:
        try:
            validate_date_range(request.date_from, request.date_to)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=e.message)

    stmt = _budgets_query(call_id).order_by(Budget.created_at)
    if request.budget_id:
        stmt = stmt.where(Budget.id == request.budget_id)
    budgets = await scalars(session, stmt)
    if request.budget_id and not budgets:
        raise HTTPException(status_code=404, detail="Budget not found")

    def in_range(expense: Expense) -> bool:
        if request.date_from and expense.date < request.date_from:
            return False
        if request.date_to and expense.date > request.date_to:
            return False
        return True

    items, rows = [], []
    for budget in budgets:
        expenses = [e for e in budget.expenses if in_range(e)]
        names = {c.id: c.name for c in budget.categories}
        spent = _approved_total(expenses)
        by_status: dict[str, float] = {}
        for expense in expenses:
            by_status[expense.status.value] = by_status.get(expense.status.value, 0.0) + expense.amount
            rows.append({
                "budget": budget.title,
                "category": names.get(expense.category_id, ""),
                "title": expense.title,
                "amount": expense.amount,
                "currency": expense.currency,
                "date": expense.date.isoformat(),
                "status": expense.status.value,
                "submitted_by": expense.user_id,
            })
        categories = []
        for category in budget.categories:
            cat_spent = _approved_total(e for e in expenses if e.category_id == category.id)
            categories.append(CategoryReport(
                name=category.name,
                allocated=category.allocated_amount,
                spent=cat_spent,
                remaining=category.allocated_amount - cat_spent,
                utilization=_utilization(cat_spent, category.allocated_amount),
            ))
        items.append(BudgetReportItem(
            id=budget.id,
            title=budget.title,
            currency=budget.currency,
            fiscal_year=budget.fiscal_year or "",
            status=budget.status or "",
            total_amount=budget.total_amount,
            expenses=spent,
            remaining=budget.total_amount - spent,
            utilization=_utilization(spent, budget.total_amount),
            categories=categories,
            expenses_by_status=by_status,
        ))

    total_budget = sum(b.total_amount for b in budgets)
    total_expenses = sum(i.expenses for i in items)
    report = BudgetReport(
        startup_call_id=call.id,
        startup_call_title=call.title,
        generated_at=utcnow(),
        date_from=request.date_from,
        date_to=request.date_to,
        total_budget=total_budget,
        total_expenses=total_expenses,
        remaining=total_budget - total_expenses,
        utilization=_utilization(total_expenses, total_budget),
        budgets=items,
    )
    return report, rows


# ---------------------------------------------------------------------------
# Expenses addressed by id alone
# ---------------------------------------------------------------------------

@router.patch("/expenses/{expense_id}", response_model=ExpenseOut)
async def update_expense(
    call_id: str,
    expense_id: str,
    body: ExpenseUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    expense = await _load_expense(session, call_id, expense_id)
    if user.role != Role.ADMIN:
        if expense.user_id != user.id:
            raise HTTPException(status_code=403, detail="You can only edit your own expenses")
        if expense.status == ExpenseStatus.APPROVED:
            raise HTTPException(status_code=400, detail="Approved expenses cannot be modified")

    changes = body.model_dump(exclude_unset=True)
    reject_nulls(changes, ("title", "amount", "currency", "date"))
    if "category_id" in changes:
        await _check_category(session, expense.budget_id, changes["category_id"])
    if expense.status == ExpenseStatus.APPROVED and ("amount" in changes or "category_id" in changes):
        category = expense.category
        if "category_id" in changes:
            category = await session.get(BudgetCategory, changes["category_id"]) if changes["category_id"] else None
        await _check_allocation(session, expense, category, changes.get("amount", expense.amount),
                                "Updating this expense would exceed the category budget")
    for field, value in changes.items():
        setattr(expense, field, value)
    await session.commit()
    return expense


@router.delete("/expenses/{expense_id}", status_code=204)
async def delete_expense(
    call_id: str,
    expense_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    expense = await _load_expense(session, call_id, expense_id)
    if user.role != Role.ADMIN:
        if expense.user_id != user.id:
            raise HTTPException(status_code=403, detail="You can only delete your own expenses")
        if expense.status == ExpenseStatus.APPROVED:
            raise HTTPException(status_code=400, detail="Approved expenses cannot be deleted")
    await session.delete(expense)
    await session.commit()


@router.patch("/expenses/{expense_id}/status", response_model=ExpenseOut)
async def change_expense_status(
    call_id: str,
    expense_id: str,
    body: ExpenseStatusUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    expense = await _load_expense(session, call_id, expense_id)
    status = body.status

    if status == ExpenseStatus.APPROVED:
        await _check_allocation(session, expense, expense.category, expense.amount,
                                "Approving this expense would exceed the category budget")

    expense.status = status
    if body.comment:
        note = f"[Admin {status.value.upper()} comment: {body.comment}]"
        expense.description = f"{expense.description}\n\n{note}" if expense.description else note

    kind = {ExpenseStatus.APPROVED: SUCCESS, ExpenseStatus.REJECTED: ERROR}.get(status, INFO)
    message = f'Your expense "{expense.title}" has been {status.value}'
    message += f" with comment: {body.comment}." if body.comment else "."
    notify(session, expense.user_id, f"Expense {status.value.replace('_', ' ').capitalize()}", message, kind)
    await session.commit()
    logger.info("Expense %s set to %s by %s", expense.id, status.value, admin.id)
    return expense


# ---------------------------------------------------------------------------
# Single budget
# ---------------------------------------------------------------------------

@router.get("/{budget_id}", response_model=BudgetOut)
async def get_budget(
    call_id: str,
    budget_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_participant(session, call_id, user)
    return budget_summary(await _load_budget(session, call_id, budget_id))


@router.patch("/{budget_id}", response_model=BudgetOut)
async def update_budget(
    call_id: str,
    budget_id: str,
    body: BudgetUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    budget = await _load_budget(session, call_id, budget_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)

    try:
        validate_date_range(changes.get("start_date", budget.start_date), changes.get("end_date", budget.end_date))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    allocated = sum(c.allocated_amount for c in budget.categories)
    if changes.get("total_amount", budget.total_amount) < allocated:
        raise HTTPException(status_code=400, detail="Total amount cannot be less than the allocated categories")

    for field, value in changes.items():
        setattr(budget, field, value)
    await session.commit()
    return budget_summary(await _load_budget(session, call_id, budget_id))


@router.delete("/{budget_id}", status_code=204)
async def delete_budget(
    call_id: str,
    budget_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    budget = await _load_budget(session, call_id, budget_id)
    if budget.expenses:
        raise HTTPException(status_code=409, detail="Cannot delete a budget that has expenses")
    await session.delete(budget)
    await session.commit()
    logger.info("Budget %s deleted", budget_id)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

@router.get("/{budget_id}/categories", response_model=list[CategoryOut])
async def list_categories(
    call_id: str,
    budget_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_participant(session, call_id, user)
    return budget_summary(await _load_budget(session, call_id, budget_id)).categories


@router.post("/{budget_id}/categories", response_model=CategoryOut, status_code=201)
async def create_category(
    call_id: str,
    budget_id: str,
    body: CategoryCreate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    budget = await _load_budget(session, call_id, budget_id)
    unallocated = budget.total_amount - sum(c.allocated_amount for c in budget.categories)
    if body.allocated_amount > unallocated:
        raise HTTPException(
            status_code=400,
            detail=f"Allocated amount exceeds the remaining unallocated budget ({unallocated:.2f} {budget.currency})",
        )
    category = BudgetCategory(budget_id=budget.id, **body.model_dump())
    session.add(category)
    await session.commit()
    return CategoryOut(
        id=category.id,
        budget_id=category.budget_id,
        name=category.name,
        description=category.description,
        allocated_amount=category.allocated_amount,
        spent=0,
        remaining=category.allocated_amount,
    )


# ---------------------------------------------------------------------------
# Expenses under a budget
# ---------------------------------------------------------------------------

@router.get("/{budget_id}/expenses", response_model=list[ExpenseOut])
async def list_expenses(
    call_id: str,
    budget_id: str,
    status: Optional[ExpenseStatus] = None,
    category_id: Optional[str] = None,
    date_from: Optional[dt.datetime] = None,
    date_to: Optional[dt.datetime] = None,
    q: Optional[str] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_participant(session, call_id, user)
    await _load_budget(session, call_id, budget_id)
    filters = BudgetReportRequest(date_from=date_from, date_to=date_to)

    stmt = select(Expense).where(Expense.budget_id == budget_id).order_by(Expense.date.desc())
    if status is not None:
        stmt = stmt.where(Expense.status == status)
    if category_id:
        stmt = stmt.where(Expense.category_id == category_id)
    if filters.date_from:
        stmt = stmt.where(Expense.date >= filters.date_from)
    if filters.date_to:
        stmt = stmt.where(Expense.date <= filters.date_to)
    if q:
        stmt = stmt.where(Expense.title.ilike(f"%{q}%") | Expense.description.ilike(f"%{q}%"))
    return await scalars(session, stmt)


@router.post("/{budget_id}/expenses", response_model=ExpenseOut, status_code=201)
async def create_expense(
    call_id: str,
    budget_id: str,
    body: ExpenseCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await _require_participant(session, call_id, user)
    budget = await _load_budget(session, call_id, budget_id)
    await _check_category(session, budget.id, body.category_id)
    if body.milestone_id and await session.get(Milestone, body.milestone_id) is None:
        raise HTTPException(status_code=400, detail="Milestone not found")

    expense = Expense(budget_id=budget.id, user_id=user.id, status=ExpenseStatus.PENDING, **body.model_dump())
    session.add(expense)
    await session.commit()
    logger.info("Expense %s (%.2f %s) submitted to budget %s", expense.id, expense.amount, expense.currency, budget.id)
    return expense
