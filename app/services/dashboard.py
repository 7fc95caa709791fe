"""
Portfolio statistics and upcoming-payment lists.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from pydantic import BaseModel

from app.schemas import InstallmentStatus, LoanAccount, LoanStatus, Money, UserAccount

ALL_USERS = "All"


class DashboardStats(BaseModel):
    total_loan_amount: Money = Decimal("0")
    total_paid: Money = Decimal("0")
    total_remaining: Money = Decimal("0")
    active_loans_count: int = 0


class UpcomingPayment(BaseModel):
    installment_id: str
    loan_id: str
    loan_display_id: str
    user_name: str
    due_date: date
    amount: Money
    is_due_soon: bool


def visible_loans(
    loans: Iterable[LoanAccount],
    viewer: UserAccount,
    filter_user: Optional[str] = ALL_USERS,
) -> List[LoanAccount]:
    """Admins see everything or one borrower; users only see their own loans."""
    if viewer.is_admin:
        if not filter_user or filter_user == ALL_USERS:
            return list(loans)
        owner = filter_user
    else:
        owner = viewer.name

    owner = owner.strip().lower()
    return [loan for loan in loans if loan.user_name.strip().lower() == owner]


def compute_stats(loans: Iterable[LoanAccount]) -> DashboardStats:
    stats = DashboardStats()
    for loan in loans:
        paid = loan.amount_paid
        stats.total_loan_amount += loan.total_payable
        stats.total_paid += paid
        stats.total_remaining += loan.total_payable - paid
        if loan.status == LoanStatus.active:
            stats.active_loans_count += 1
    return stats


def upcoming_payments(loans: Iterable[LoanAccount], today: Optional[date] = None) -> List[UpcomingPayment]:
    """
    Next pending installment of every active loan, soonest first.

    ``is_due_soon`` marks installments due tomorrow, the day reminders go out.
    """
    today = today or date.today()
    tomorrow = today + timedelta(days=1)

    upcoming = []
    for loan in loans:
        if loan.status != LoanStatus.active:
            continue
        pending = next(
            (i for i in loan.installments if i.status == InstallmentStatus.pending), None
        )
        if pending is None:
            continue
        upcoming.append(
            UpcomingPayment(
                installment_id=pending.id,
                loan_id=loan.id,
                loan_display_id=loan.loan_id,
                user_name=loan.user_name,
                due_date=pending.due_date,
                amount=pending.amount,
                is_due_soon=pending.due_date == tomorrow,
            )
        )

    return sorted(upcoming, key=lambda p: p.due_date)
