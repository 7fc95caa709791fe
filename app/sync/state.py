"""
Application state and the reducer that changes it.

Every change to loans or users is an action applied by ``reduce``, which
returns the new state plus the side effects the session must run: a cache
write, a push of both collections, or a remote loan deletion. ``reduce``
never modifies the state it is given.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from app.calculations.amortization import refresh_progress
from app.exceptions import LoanNotFoundError, UserNotFoundError, ValidationError
from app.schemas import (
    InstallmentStatus,
    LoanAccount,
    UserAccount,
    UserRole,
)


@dataclass(frozen=True)
class AppState:
    """In-memory working copy of the device's data."""

    loans: Tuple[LoanAccount, ...] = ()
    users: Tuple[UserAccount, ...] = ()
    loaded: bool = False

    @property
    def is_first_run(self) -> bool:
        return len(self.users) == 0

    def find_loan(self, loan_id: str) -> Optional[LoanAccount]:
        return next((loan for loan in self.loans if loan.id == loan_id), None)

    def find_user(self, name: str) -> Optional[UserAccount]:
        return next((user for user in self.users if user.matches(name)), None)


# === Actions ===

@dataclass(frozen=True)
class Action:
    requires_admin = True


@dataclass(frozen=True)
class SetupAdmin(Action):
    admin: UserAccount
    requires_admin = False


@dataclass(frozen=True)
class AddLoan(Action):
    loan: LoanAccount


@dataclass(frozen=True)
class UpdateLoan(Action):
    loan: LoanAccount


@dataclass(frozen=True)
class DeleteLoan(Action):
    loan_id: str


@dataclass(frozen=True)
class ToggleInstallment(Action):
    loan_id: str
    installment_id: str


@dataclass(frozen=True)
class AddUser(Action):
    user: UserAccount


@dataclass(frozen=True)
class DeleteUser(Action):
    name: str
    requested_by: str


@dataclass(frozen=True)
class ReplaceCollections(Action):
    """Result of a pull: wholesale replacement, no merge."""
    loans: Tuple[LoanAccount, ...]
    users: Tuple[UserAccount, ...]
    requires_admin = False


# === Effects ===

@dataclass(frozen=True)
class WriteCache:
    pass


@dataclass(frozen=True)
class PushCollections:
    pass


@dataclass(frozen=True)
class DeleteRemoteLoan:
    loan_id: str


@dataclass(frozen=True)
class Transition:
    state: AppState
    effects: List[object] = field(default_factory=list)


def _require_loan(state: AppState, loan_id: str) -> LoanAccount:
    loan = state.find_loan(loan_id)
    if loan is None:
        raise LoanNotFoundError(loan_id)
    return loan


def toggle_installment(loan: LoanAccount, installment_id: str) -> LoanAccount:
    """Flip one installment between Pending and Paid and refresh loan progress."""
    if loan.find_installment(installment_id) is None:
        raise LoanNotFoundError(loan.id, installment_id)

    installments = []
    for installment in loan.installments:
        if installment.id == installment_id:
            flipped = (
                InstallmentStatus.pending
                if installment.status == InstallmentStatus.paid
                else InstallmentStatus.paid
            )
            installment = installment.model_copy(update={"status": flipped})
        installments.append(installment)

    return refresh_progress(loan.model_copy(update={"installments": installments}))


def reduce(state: AppState, action: Action) -> Transition:
    """
    Apply one action.

    Raises:
        ValidationError: The action conflicts with current state
        NotFoundError: The action references a missing loan or user
    """
    local_and_remote = [WriteCache(), PushCollections()]

    if isinstance(action, SetupAdmin):
        if not state.is_first_run:
            raise ValidationError("An admin account already exists")
        if action.admin.role != UserRole.admin:
            raise ValidationError("First account must be an admin")
        return Transition(replace(state, users=(action.admin,)), local_and_remote)

    if isinstance(action, AddLoan):
        if state.find_loan(action.loan.id) is not None:
            raise ValidationError("Loan already exists", {"loan_id": action.loan.id})
        return Transition(replace(state, loans=(action.loan,) + state.loans), local_and_remote)

    if isinstance(action, UpdateLoan):
        _require_loan(state, action.loan.id)
        loans = tuple(action.loan if l.id == action.loan.id else l for l in state.loans)
        return Transition(replace(state, loans=loans), local_and_remote)

    if isinstance(action, DeleteLoan):
        _require_loan(state, action.loan_id)
        loans = tuple(l for l in state.loans if l.id != action.loan_id)
        return Transition(
            replace(state, loans=loans),
            [WriteCache(), DeleteRemoteLoan(action.loan_id), PushCollections()],
        )

    if isinstance(action, ToggleInstallment):
        updated = toggle_installment(_require_loan(state, action.loan_id), action.installment_id)
        loans = tuple(updated if l.id == updated.id else l for l in state.loans)
        return Transition(replace(state, loans=loans), local_and_remote)

    if isinstance(action, AddUser):
        if state.find_user(action.user.name) is not None:
            raise ValidationError("A user with this name already exists", {"name": action.user.name})
        return Transition(replace(state, users=state.users + (action.user,)), local_and_remote)

    if isinstance(action, DeleteUser):
        target = state.find_user(action.name)
        if target is None:
            raise UserNotFoundError(action.name)
        if target.matches(action.requested_by):
            raise ValidationError("Cannot delete your own account")
        users = tuple(u for u in state.users if u is not target)
        return Transition(replace(state, users=users), local_and_remote)

    if isinstance(action, ReplaceCollections):
        return Transition(
            replace(state, loans=tuple(action.loans), users=tuple(action.users)),
            [WriteCache()],
        )

    raise ValueError(f"Unknown action: {type(action).__name__}")
