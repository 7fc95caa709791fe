"""
Exception hierarchy shared by the engine, the sync layer and the API.
"""

from typing import Optional


class LoanTrackerError(Exception):
    """Base exception for all loan tracker errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ValidationError(LoanTrackerError):
    """Raised when loan or user input is malformed. Nothing is applied."""
    pass


class NotFoundError(LoanTrackerError):
    """Raised when a referenced record does not exist."""
    pass


class LoanNotFoundError(NotFoundError):
    """Raised when a loan or one of its installments cannot be found."""

    def __init__(self, loan_id: str, installment_id: Optional[str] = None):
        details = {"loan_id": loan_id}
        message = f"Loan '{loan_id}' not found"
        if installment_id:
            details["installment_id"] = installment_id
            message = f"Installment '{installment_id}' not found on loan '{loan_id}'"
        super().__init__(message, details)


class UserNotFoundError(NotFoundError):
    """Raised when a user account cannot be found."""

    def __init__(self, name: str):
        super().__init__(f"User '{name}' not found", {"name": name})


class AuthenticationError(LoanTrackerError):
    """Raised on failed login. Unknown user and wrong PIN look the same."""

    def __init__(self):
        super().__init__("Invalid user name or PIN")


class PermissionDeniedError(LoanTrackerError):
    """Raised when a non-admin caller attempts a mutation."""
    pass


class RemoteUnavailableError(LoanTrackerError):
    """Raised by remote stores on connection, credential or response failures.

    The sync session converts this into a status flag; it never reaches the
    caller of a local mutation.
    """
    pass
