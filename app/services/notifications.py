"""
Messaging deep links for borrowers.

Builds wa.me style links carrying a prefilled message. Nothing is sent from
here; the admin's device opens the link.
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional
from urllib.parse import quote

from app.config import get_settings
from app.schemas import Installment, InstallmentStatus, LoanAccount, UserAccount

logger = logging.getLogger(__name__)
settings = get_settings()


def format_currency(amount) -> str:
    return f"Tk {Decimal(amount):,.2f}"


def format_date(value) -> str:
    return value.strftime("%b %d, %Y")


class NotificationService:
    """Formats payment confirmations, completion notices and due reminders."""

    def __init__(self, base_url: Optional[str] = None, country_prefix: Optional[str] = None):
        self.base_url = (base_url or settings.notification_base_url).rstrip("/")
        self.country_prefix = settings.phone_country_prefix if country_prefix is None else country_prefix

    def normalize_phone(self, phone: str) -> str:
        """Strip formatting and add the country prefix to local numbers."""
        digits = "".join(ch for ch in phone if ch.isdigit())
        if digits.startswith("0"):
            return self.country_prefix + digits
        return digits

    def build_link(self, phone: str, message: str) -> str:
        return f"{self.base_url}/{self.normalize_phone(phone)}?text={quote(message, safe='')}"

    def _recipient(self, user_name: str, users: Iterable[UserAccount]) -> Optional[UserAccount]:
        for user in users:
            if user.matches(user_name) and user.phone:
                return user
        logger.info(f"No phone number on file for {user_name}")
        return None

    def payment_confirmation(
        self,
        loan: LoanAccount,
        installment: Installment,
        users: Iterable[UserAccount],
    ) -> Optional[str]:
        """
        Link confirming one installment was received.

        The remaining balance counts the given installment as paid.

        Returns:
            Link, or None when the borrower has no phone number
        """
        user = self._recipient(loan.user_name, users)
        if user is None:
            return None

        paid = sum(
            (
                i.amount
                for i in loan.installments
                if i.status == InstallmentStatus.paid or i.id == installment.id
            ),
            Decimal("0"),
        )
        remaining = max(loan.total_payable - paid, Decimal("0"))

        message = (
            "*Loan Payment Confirmation*\n\n"
            f"Dear {loan.user_name},\n"
            f"Your installment of {format_currency(installment.amount)} for loan ID "
            f"{loan.loan_id} has been received.\n\n"
            f"Remaining balance: {format_currency(remaining)}\n\n"
            "Thank you."
        )
        return self.build_link(user.phone, message)

    def loan_completed(self, loan: LoanAccount, users: Iterable[UserAccount]) -> Optional[str]:
        """Link congratulating the borrower on paying the loan off."""
        user = self._recipient(loan.user_name, users)
        if user is None:
            return None

        message = (
            "*Congratulations! Loan fully repaid*\n\n"
            f"Dear {loan.user_name},\n"
            f"Your loan ID {loan.loan_id} has been paid in full. "
            "Thank you for paying on time. We are here whenever you need us again."
        )
        return self.build_link(user.phone, message)

    def due_reminder(
        self,
        user_name: str,
        loan_id: str,
        amount,
        due_date,
        users: Iterable[UserAccount],
    ) -> Optional[str]:
        """Link reminding the borrower of tomorrow's installment."""
        user = self._recipient(user_name, users)
        if user is None:
            return None

        message = (
            f"Hello, your installment of {format_currency(amount)} for loan ID {loan_id} "
            f"is due tomorrow ({format_date(due_date)}). Please pay on time. Thank you."
        )
        return self.build_link(user.phone, message)

    def after_toggle(
        self,
        loan: LoanAccount,
        installment_id: str,
        users: Iterable[UserAccount],
    ) -> Optional[str]:
        """Link to offer after an installment toggle, or None if it was unmarked."""
        installment = loan.find_installment(installment_id)
        if installment is None or installment.status != InstallmentStatus.paid:
            return None
        if loan.paid_installments == loan.total_installments:
            return self.loan_completed(loan, users)
        return self.payment_confirmation(loan, installment, users)


# Singleton instance
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get the notification service singleton."""
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service
