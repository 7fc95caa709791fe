"""
Tests for the loan amortization engine.
"""

import pytest
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from app.calculations.amortization import (
    MAX_PRINCIPAL,
    build_loan,
    calculate_emi,
    generate_loan_id,
    generate_schedule,
    refresh_progress,
    summarize_schedule,
)
from app.exceptions import ValidationError
from app.schemas import InstallmentStatus, LoanStatus

RATE = Decimal("0.0142")


def expected_emi(principal, rate, months):
    principal, rate = Decimal(principal), Decimal(rate)
    growth = (1 + rate) ** months
    return (principal * rate * growth / (growth - 1)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class TestCalculateEMI:
    """Test equated monthly installment calculation."""

    def test_emi_matches_annuity_formula(self):
        emi = calculate_emi(10000, RATE, 3)
        assert emi == expected_emi(10000, RATE, 3)
        assert Decimal("3428") < emi < Decimal("3429")

    def test_emi_six_months(self):
        emi = calculate_emi(10000, RATE, 6)
        assert emi == expected_emi(10000, RATE, 6)
        assert emi.as_tuple().exponent == -2

    def test_zero_rate_divides_evenly(self):
        """Test that a zero rate falls back to principal / months."""
        assert calculate_emi(900, 0, 3) == Decimal("300.00")
        assert calculate_emi(1000, 0, 3) == Decimal("333.33")

    @pytest.mark.parametrize("principal", [0, -100, "abc", None, True, "1e30", Decimal("-1e40"), "0.001"])
    def test_rejects_bad_principal(self, principal):
        with pytest.raises(ValidationError):
            calculate_emi(principal, RATE, 3)

    def test_largest_principal_accepted(self):
        emi = calculate_emi(MAX_PRINCIPAL, RATE, 6)
        assert emi == expected_emi(MAX_PRINCIPAL, RATE, 6)

        with pytest.raises(ValidationError):
            calculate_emi(MAX_PRINCIPAL + Decimal("0.01"), RATE, 6)

    @pytest.mark.parametrize("months", [0, -3, 2.5, "3"])
    def test_rejects_bad_months(self, months):
        with pytest.raises(ValidationError):
            calculate_emi(10000, RATE, months)


class TestGenerateSchedule:
    """Test installment schedule generation."""

    @pytest.mark.parametrize("principal,months", [
        (10000, 3),
        (10000, 6),
        (1234.56, 6),
        (1, 3),
        (999999.99, 6),
    ])
    def test_principal_parts_sum_to_principal(self, principal, months):
        schedule = generate_schedule(principal, RATE, months, date(2025, 1, 1))
        total = sum(e.principal_part for e in schedule)
        assert total == Decimal(str(principal)).quantize(Decimal("0.01"))
        assert schedule[-1].ending_balance == 0

    @pytest.mark.parametrize("principal,months", [
        (10000, 3),
        (10000, 6),
        (1234.56, 6),
        (1, 3),
        (999999.99, 6),
        (MAX_PRINCIPAL, 3),
    ])
    def test_amounts_sum_to_total_payable(self, principal, months):
        schedule = generate_schedule(principal, RATE, months, date(2025, 1, 1))
        total_interest, total_payable = summarize_schedule(principal, schedule)

        assert sum(e.amount for e in schedule) == total_payable
        assert total_payable == Decimal(str(principal)).quantize(Decimal("0.01")) + total_interest
        for entry in schedule:
            assert entry.amount == entry.principal_part + entry.interest_part

    def test_interest_charged_on_running_balance(self):
        schedule = generate_schedule(10000, RATE, 3, date(2025, 1, 1))
        assert schedule[0].interest_part == Decimal("142.00")
        assert schedule[1].interest_part < schedule[0].interest_part
        assert schedule[2].interest_part < schedule[1].interest_part

    @pytest.mark.parametrize("months", [3, 6])
    def test_interest_never_increases(self, months):
        schedule = generate_schedule(50000, RATE, months, date(2025, 1, 1))
        interest = [e.interest_part for e in schedule]
        assert interest == sorted(interest, reverse=True)

    def test_reference_scenario(self):
        schedule = generate_schedule(10000, RATE, 3, date(2024, 1, 1))
        emi = expected_emi(10000, RATE, 3)

        assert [e.due_date for e in schedule] == [date(2024, 2, 1), date(2024, 3, 1), date(2024, 4, 1)]
        assert schedule[0].amount == emi
        assert schedule[1].amount == emi
        assert schedule[0].interest_part == Decimal("142.00")
        assert schedule[0].principal_part == emi - Decimal("142.00")

    def test_non_final_amounts_equal_emi(self):
        emi = calculate_emi(10000, RATE, 6)
        schedule = generate_schedule(10000, RATE, 6, date(2025, 1, 1))
        for entry in schedule[:-1]:
            assert entry.amount == emi
        assert abs(schedule[-1].amount - emi) <= Decimal("0.05")

    def test_due_dates_are_monthly_from_start(self):
        """Test that the first installment is due one month after the start."""
        schedule = generate_schedule(10000, RATE, 3, date(2025, 1, 15))
        assert [e.due_date for e in schedule] == [
            date(2025, 2, 15),
            date(2025, 3, 15),
            date(2025, 4, 15),
        ]

    def test_due_dates_clamp_at_month_end(self):
        schedule = generate_schedule(10000, RATE, 3, date(2025, 1, 31))
        assert [e.due_date for e in schedule] == [
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
        ]

    def test_due_dates_cross_year(self):
        schedule = generate_schedule(10000, RATE, 3, date(2025, 11, 10))
        assert schedule[-1].due_date == date(2026, 2, 10)

    def test_zero_rate_schedule(self):
        schedule = generate_schedule(1000, 0, 3, date(2025, 1, 1))
        assert [e.interest_part for e in schedule] == [Decimal("0.00")] * 3
        assert [e.amount for e in schedule] == [
            Decimal("333.33"),
            Decimal("333.33"),
            Decimal("333.34"),
        ]


class TestBuildLoan:
    """Test loan construction and editing."""

    def test_new_loan_fields(self):
        loan = build_loan("Rahim", 10000, date(2025, 1, 15), 3, RATE)

        assert loan.user_name == "Rahim"
        assert loan.principal_amount == Decimal("10000.00")
        assert loan.interest_rate == RATE
        assert loan.total_installments == 3
        assert loan.paid_installments == 0
        assert loan.status == LoanStatus.active
        assert loan.next_due_date == date(2025, 2, 15)
        assert len(loan.installments) == 3
        assert all(i.status == InstallmentStatus.pending for i in loan.installments)
        assert loan.total_payable == loan.principal_amount + loan.total_interest

    def test_ids_are_unique(self):
        loan = build_loan("Rahim", 10000, date(2025, 1, 15), 6, RATE)
        ids = {i.id for i in loan.installments} | {loan.id}
        assert len(ids) == 7

    def test_display_id_format(self):
        loan_id = generate_loan_id("1100")
        assert loan_id.startswith("1100")
        assert len(loan_id) == 16
        assert loan_id.isdigit()

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            build_loan("   ", 10000, date(2025, 1, 15), 3, RATE)

    def test_edit_keeps_ids_and_status_by_position(self):
        loan = build_loan("Rahim", 10000, date(2025, 1, 15), 3, RATE)
        first = loan.installments[0].model_copy(update={"status": InstallmentStatus.paid})
        loan = refresh_progress(loan.model_copy(update={"installments": [first] + loan.installments[1:]}))

        edited = build_loan("Rahim", 20000, date(2025, 1, 15), 6, RATE, existing=loan)

        assert edited.id == loan.id
        assert edited.loan_id == loan.loan_id
        assert [i.id for i in edited.installments[:3]] == [i.id for i in loan.installments]
        assert edited.installments[0].status == InstallmentStatus.paid
        assert all(i.status == InstallmentStatus.pending for i in edited.installments[1:])
        assert edited.paid_installments == 1
        assert edited.principal_amount == Decimal("20000.00")

    def test_edit_shrinking_term_drops_trailing_installments(self):
        loan = build_loan("Rahim", 10000, date(2025, 1, 15), 6, RATE)
        paid = [
            i.model_copy(update={"status": InstallmentStatus.paid}) if n in (1, 4) else i
            for n, i in enumerate(loan.installments)
        ]
        loan = refresh_progress(loan.model_copy(update={"installments": paid}))

        edited = build_loan("Rahim", 10000, date(2025, 1, 15), 3, RATE, existing=loan)
        assert [i.id for i in edited.installments] == [i.id for i in loan.installments[:3]]
        assert [i.status for i in edited.installments] == [
            InstallmentStatus.pending,
            InstallmentStatus.paid,
            InstallmentStatus.pending,
        ]
        assert edited.paid_installments == 1


class TestRefreshProgress:
    """Test derived loan progress fields."""

    def _pay(self, loan, count):
        installments = [
            i.model_copy(update={"status": InstallmentStatus.paid}) if n < count else i
            for n, i in enumerate(loan.installments)
        ]
        return refresh_progress(loan.model_copy(update={"installments": installments}))

    def test_partial_payment(self):
        loan = self._pay(build_loan("Rahim", 10000, date(2025, 1, 15), 3, RATE), 1)
        assert loan.paid_installments == 1
        assert loan.status == LoanStatus.active
        assert loan.next_due_date == date(2025, 3, 15)

    def test_fully_paid(self):
        loan = self._pay(build_loan("Rahim", 10000, date(2025, 1, 15), 3, RATE), 3)
        assert loan.paid_installments == 3
        assert loan.status == LoanStatus.paid
        assert loan.next_due_date == date(2025, 4, 15)
        assert loan.amount_paid == loan.total_payable
