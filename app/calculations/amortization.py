"""
Loan Amortization Calculations

Equated monthly installment (EMI) schedules for fixed-rate micro-loans.
Amounts are exact decimals rounded half-up to cents; the final period takes
the whole remaining balance so every schedule pays the loan off to zero.
"""

import secrets
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from app.exceptions import ValidationError
from app.schemas import (
    Installment,
    InstallmentStatus,
    LoanAccount,
    LoanStatus,
)

CENTS = Decimal("0.01")
ZERO = Decimal("0")
# Keeps principal and totals within the Numeric(14, 2) money columns
MAX_PRINCIPAL = Decimal("10000000000.00")


@dataclass
class ScheduleEntry:
    """One computed period of an amortization schedule."""

    period: int
    due_date: date
    amount: Decimal
    principal_part: Decimal
    interest_part: Decimal
    ending_balance: Decimal


def round2(value) -> Decimal:
    """Round to cents, half away from zero."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    """Convert user input to Decimal, rejecting non-numeric values."""
    if isinstance(value, bool):
        raise ValidationError("Amount must be numeric", {"value": value})
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Amount must be numeric", {"value": value})
    if not result.is_finite():
        raise ValidationError("Amount must be numeric", {"value": value})
    return result


def validate_terms(principal, months) -> Tuple[Decimal, int]:
    """
    Validate loan parameters before any schedule is produced.

    Returns:
        (principal rounded to cents, months)
    """
    principal = to_decimal(principal)
    if principal > MAX_PRINCIPAL:
        raise ValidationError(
            "Principal exceeds the largest supported amount",
            {"principal": str(principal), "max": str(MAX_PRINCIPAL)},
        )
    if principal > ZERO:
        principal = round2(principal)
    if principal <= ZERO:
        raise ValidationError(
            "Principal must be greater than zero", {"principal": str(principal)}
        )
    if isinstance(months, bool) or not isinstance(months, int) or months <= 0:
        raise ValidationError(
            "Installment count must be a positive integer", {"months": months}
        )
    return principal, months


def calculate_emi(principal, monthly_rate, months: int) -> Decimal:
    """
    Calculate the equated monthly installment.

    Args:
        principal: Loan principal amount
        monthly_rate: Monthly interest rate as decimal (e.g., 0.0142 for 1.42%)
        months: Number of monthly installments

    Returns:
        Monthly payment rounded to cents
    """
    principal, months = validate_terms(principal, months)
    rate = to_decimal(monthly_rate)

    if rate == ZERO:
        return round2(principal / months)

    growth = (1 + rate) ** months
    return round2(principal * rate * growth / (growth - 1))


def generate_schedule(
    principal,
    monthly_rate,
    months: int,
    start_date: date,
) -> List[ScheduleEntry]:
    """
    Generate the installment schedule by amortizing a running balance.

    Interest for each period is charged on the outstanding balance; the
    principal part is the EMI minus that interest, except in the final
    period where it is the entire remaining balance.

    Args:
        principal: Loan principal amount
        monthly_rate: Monthly interest rate as decimal
        months: Number of monthly installments
        start_date: Disbursement date; installment i falls due i months later

    Returns:
        List of schedule entries, one per period
    """
    principal, months = validate_terms(principal, months)
    rate = to_decimal(monthly_rate)
    emi = calculate_emi(principal, rate, months)

    schedule = []
    balance = principal

    for period in range(1, months + 1):
        interest = round2(balance * rate)
        if period == months:
            principal_part = round2(balance)
        else:
            principal_part = round2(emi - interest)

        balance -= principal_part

        schedule.append(
            ScheduleEntry(
                period=period,
                due_date=start_date + relativedelta(months=period),
                amount=round2(principal_part + interest),
                principal_part=principal_part,
                interest_part=interest,
                ending_balance=balance,
            )
        )

    return schedule


def summarize_schedule(principal, schedule: List[ScheduleEntry]) -> Tuple[Decimal, Decimal]:
    """Return (total_interest, total_payable) for a schedule."""
    total_interest = round2(sum((e.interest_part for e in schedule), ZERO))
    total_payable = round2(round2(to_decimal(principal)) + total_interest)
    return total_interest, total_payable


def generate_id() -> str:
    return str(uuid.uuid4())


def generate_loan_id(prefix: str = "1100") -> str:
    """Human-facing loan number: prefix followed by 12 random digits."""
    return f"{prefix}{10 ** 11 + secrets.randbelow(9 * 10 ** 11)}"


def refresh_progress(loan: LoanAccount) -> LoanAccount:
    """
    Recompute the fields derived from installment statuses.

    Returns a new LoanAccount; the input is not modified.
    """
    paid = sum(1 for i in loan.installments if i.status == InstallmentStatus.paid)
    pending = [i for i in loan.installments if i.status == InstallmentStatus.pending]

    if pending:
        next_due = pending[0].due_date
    elif loan.installments:
        next_due = loan.installments[-1].due_date
    else:
        next_due = loan.start_date

    return loan.model_copy(
        update={
            "paid_installments": paid,
            "status": LoanStatus.paid if paid == loan.total_installments else LoanStatus.active,
            "next_due_date": next_due,
        }
    )


def build_loan(
    user_name: str,
    principal,
    start_date: date,
    months: int,
    monthly_rate,
    existing: Optional[LoanAccount] = None,
    loan_id_prefix: str = "1100",
) -> LoanAccount:
    """
    Build a loan account with a freshly computed schedule.

    When ``existing`` is given the loan is being edited: it keeps its ids, and
    installment k keeps the id and status of the existing installment k.
    Installments past the old term start Pending; installments past the new
    term are dropped along with their paid history.

    Args:
        user_name: Borrower name
        principal: Loan principal amount
        start_date: Disbursement date
        months: Number of monthly installments
        monthly_rate: Monthly interest rate as decimal
        existing: Loan being edited, if any
        loan_id_prefix: Prefix for newly generated display ids

    Returns:
        LoanAccount with installments, totals and progress fields populated
    """
    if not user_name or not user_name.strip():
        raise ValidationError("Borrower name is required")

    principal, months = validate_terms(principal, months)
    rate = to_decimal(monthly_rate)
    schedule = generate_schedule(principal, rate, months, start_date)
    total_interest, total_payable = summarize_schedule(principal, schedule)

    previous = existing.installments if existing else []
    installments = []
    for index, entry in enumerate(schedule):
        prior = previous[index] if index < len(previous) else None
        installments.append(
            Installment(
                id=prior.id if prior else generate_id(),
                due_date=entry.due_date,
                amount=entry.amount,
                principal_part=entry.principal_part,
                interest_part=entry.interest_part,
                status=prior.status if prior else InstallmentStatus.pending,
            )
        )

    loan = LoanAccount(
        id=existing.id if existing else generate_id(),
        loan_id=existing.loan_id if existing else generate_loan_id(loan_id_prefix),
        user_name=user_name.strip(),
        principal_amount=principal,
        total_payable=total_payable,
        interest_rate=rate,
        total_interest=total_interest,
        start_date=start_date,
        total_installments=months,
        next_due_date=schedule[0].due_date,
        installments=installments,
    )
    return refresh_progress(loan)
