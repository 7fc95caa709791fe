"""
Loan management API endpoints.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.errors import http_error
from app.auth.dependencies import get_current_user, require_admin
from app.calculations.amortization import calculate_emi, generate_schedule, summarize_schedule
from app.exceptions import LoanTrackerError
from app.schemas import LoanAccount, Money, UserAccount
from app.services.dashboard import (
    DashboardStats,
    UpcomingPayment,
    compute_stats,
    upcoming_payments,
    visible_loans,
)
from app.services.notifications import get_notification_service
from app.sync.session import SyncSession, get_sync_session

router = APIRouter(prefix="/loans", tags=["loans"])


# === Pydantic Schemas ===

class LoanCreate(BaseModel):
    """Schema for issuing a loan."""

    user_name: str = Field(min_length=1)
    principal_amount: Decimal = Field(gt=0)
    start_date: date
    total_installments: int = 3


class LoanUpdate(BaseModel):
    """Schema for editing a loan. The schedule is regenerated."""

    user_name: Optional[str] = None
    principal_amount: Optional[Decimal] = Field(default=None, gt=0)
    start_date: Optional[date] = None
    total_installments: Optional[int] = None


class SchedulePreviewRequest(BaseModel):
    principal_amount: Decimal = Field(gt=0)
    start_date: date
    total_installments: int = 3


class ScheduleRow(BaseModel):
    period: int
    due_date: date
    amount: Money
    principal_part: Money
    interest_part: Money


class SchedulePreview(BaseModel):
    emi: Money
    monthly_rate: Decimal
    total_interest: Money
    total_payable: Money
    installments: List[ScheduleRow]


class ToggleResponse(BaseModel):
    loan: LoanAccount
    notification_link: Optional[str] = None


# === Endpoints ===

@router.get("", response_model=List[LoanAccount])
async def list_loans(
    user: Optional[str] = None,
    current_user: UserAccount = Depends(get_current_user),
    session: SyncSession = Depends(get_sync_session),
):
    """
    List loans visible to the caller.

    Admins may filter by borrower with ``?user=``; users only get their own.
    """
    return visible_loans(session.loans, current_user, user)


@router.get("/stats", response_model=DashboardStats)
async def loan_stats(
    user: Optional[str] = None,
    current_user: UserAccount = Depends(get_current_user),
    session: SyncSession = Depends(get_sync_session),
):
    """Totals over the loans visible to the caller."""
    return compute_stats(visible_loans(session.loans, current_user, user))


@router.get("/upcoming", response_model=List[UpcomingPayment])
async def list_upcoming(
    current_user: UserAccount = Depends(get_current_user),
    session: SyncSession = Depends(get_sync_session),
):
    """Next pending installment of each visible active loan."""
    return upcoming_payments(visible_loans(session.loans, current_user))


@router.get("/upcoming/{loan_id}/reminder")
async def reminder_link(
    loan_id: str,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """Messaging link reminding the borrower of their next installment."""
    payment = next((p for p in upcoming_payments(session.loans) if p.loan_id == loan_id), None)
    if payment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pending installment for this loan",
        )

    link = get_notification_service().due_reminder(
        payment.user_name, payment.loan_display_id, payment.amount, payment.due_date, session.users
    )
    if link is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The borrower has no phone number",
        )
    return {"link": link}


@router.post("/preview", response_model=SchedulePreview)
async def preview_schedule(
    request: SchedulePreviewRequest,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Compute a schedule without saving anything.
    """
    rate = session.settings.monthly_interest_rate
    try:
        schedule = generate_schedule(
            request.principal_amount, rate, request.total_installments, request.start_date
        )
        emi = calculate_emi(request.principal_amount, rate, request.total_installments)
    except LoanTrackerError as e:
        raise http_error(e)

    total_interest, total_payable = summarize_schedule(request.principal_amount, schedule)
    return SchedulePreview(
        emi=emi,
        monthly_rate=rate,
        total_interest=total_interest,
        total_payable=total_payable,
        installments=[
            ScheduleRow(
                period=e.period,
                due_date=e.due_date,
                amount=e.amount,
                principal_part=e.principal_part,
                interest_part=e.interest_part,
            )
            for e in schedule
        ],
    )


@router.post("", response_model=LoanAccount, status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: LoanCreate,
    background_tasks: BackgroundTasks,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Issue a new loan (admin only).
    """
    try:
        loan = session.create_loan(
            admin,
            request.user_name,
            request.principal_amount,
            request.start_date,
            request.total_installments,
        )
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.flush)
    return loan


@router.get("/{loan_id}", response_model=LoanAccount)
async def get_loan(
    loan_id: str,
    current_user: UserAccount = Depends(get_current_user),
    session: SyncSession = Depends(get_sync_session),
):
    """Get a single loan visible to the caller."""
    for loan in visible_loans(session.loans, current_user):
        if loan.id == loan_id:
            return loan

    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Loan not found",
    )


@router.put("/{loan_id}", response_model=LoanAccount)
async def update_loan(
    loan_id: str,
    request: LoanUpdate,
    background_tasks: BackgroundTasks,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Edit a loan (admin only).

    Installments keep their paid status by position in the new schedule.
    """
    try:
        loan = session.update_loan(
            admin,
            loan_id,
            user_name=request.user_name,
            principal=request.principal_amount,
            start_date=request.start_date,
            months=request.total_installments,
        )
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.flush)
    return loan


@router.delete("/{loan_id}")
async def delete_loan(
    loan_id: str,
    background_tasks: BackgroundTasks,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Delete a loan (admin only).
    """
    try:
        session.delete_loan(admin, loan_id)
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.flush)
    return {"message": "Loan deleted successfully"}


@router.post("/{loan_id}/installments/{installment_id}/toggle", response_model=ToggleResponse)
async def toggle_installment(
    loan_id: str,
    installment_id: str,
    background_tasks: BackgroundTasks,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Mark an installment paid, or back to pending (admin only).

    When it was marked paid the response carries a messaging link for the
    borrower: a payment confirmation, or a congratulation if the loan is now
    fully repaid.
    """
    try:
        loan = session.toggle_installment(admin, loan_id, installment_id)
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.flush)
    link = get_notification_service().after_toggle(loan, installment_id, session.users)
    return ToggleResponse(loan=loan, notification_link=link)
