"""
Pydantic models for loans, installments and user accounts.

These are the records held in application state, written to the local cache
and exchanged with the remote store.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer


# Serialized as a JSON number; kept exact in memory
Money = Annotated[
    Decimal,
    PlainSerializer(lambda value: float(value), return_type=float, when_used="json"),
]


class LoanStatus(str, enum.Enum):
    """Loan lifecycle status."""
    active = "Active"
    paid = "Paid"


class InstallmentStatus(str, enum.Enum):
    """Installment payment status."""
    pending = "Pending"
    paid = "Paid"


class UserRole(str, enum.Enum):
    """User role enumeration."""
    admin = "admin"
    user = "user"


class Installment(BaseModel):
    """One scheduled monthly payment."""

    id: str
    due_date: date
    amount: Money
    principal_part: Money
    interest_part: Money
    status: InstallmentStatus = InstallmentStatus.pending


class LoanAccount(BaseModel):
    """A borrower-owned loan and its full repayment schedule."""

    id: str
    loan_id: str
    user_name: str
    principal_amount: Money
    total_payable: Money
    interest_rate: Decimal
    total_interest: Money
    start_date: date
    total_installments: int
    paid_installments: int = 0
    status: LoanStatus = LoanStatus.active
    next_due_date: date
    installments: List[Installment] = Field(default_factory=list)

    def find_installment(self, installment_id: str) -> Optional[Installment]:
        for installment in self.installments:
            if installment.id == installment_id:
                return installment
        return None

    @property
    def amount_paid(self) -> Decimal:
        return sum(
            (i.amount for i in self.installments if i.status == InstallmentStatus.paid),
            Decimal("0"),
        )


class UserAccount(BaseModel):
    """An identity that can log in with a 4-digit PIN.

    The PIN is kept in cleartext so the admin can read it back.
    """

    name: str = Field(min_length=1)
    phone: str = ""
    pin: str = Field(pattern=r"^\d{4}$")
    role: UserRole = UserRole.user

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.strip().lower() == name.strip().lower()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


class RemoteConfig(BaseModel):
    """Remote store connection settings persisted on the device."""

    database_url: str
    last_sync: Optional[datetime] = None


class RemoteSnapshot(BaseModel):
    """Authoritative collections returned by a pull."""

    loans: List[LoanAccount] = Field(default_factory=list)
    users: List[UserAccount] = Field(default_factory=list)


class SyncResult(str, enum.Enum):
    """Outcome of the most recent remote call."""
    none = "none"
    success = "success"
    error = "error"


class SyncStatus(BaseModel):
    """Sync flags consulted by the session and shown to clients."""

    is_pulling: bool = False
    is_pushing: bool = False
    last_result: SyncResult = SyncResult.none
    message: Optional[str] = None
    last_sync: Optional[datetime] = None
    remote_configured: bool = False
