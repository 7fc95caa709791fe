"""
Admin user management endpoints.
"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel

from app.api.errors import http_error
from app.auth.dependencies import require_admin
from app.exceptions import LoanTrackerError
from app.schemas import UserAccount
from app.sync.session import SyncSession, get_sync_session

router = APIRouter(prefix="/admin/users", tags=["admin"])


# === Pydantic Schemas ===

class UserListItem(BaseModel):
    name: str
    phone: str
    pin: str
    role: str


class AddUserRequest(BaseModel):
    name: str
    pin: str
    phone: str = ""


# === Endpoints ===

@router.get("", response_model=List[UserListItem])
async def list_users(
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    List all users with their PINs (admin only).
    """
    return [
        UserListItem(name=u.name, phone=u.phone, pin=u.pin, role=u.role.value)
        for u in session.users
    ]


@router.post("", response_model=UserListItem, status_code=201)
async def add_user(
    request: AddUserRequest,
    background_tasks: BackgroundTasks,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Add a borrower account (admin only).
    """
    try:
        user = session.add_user(admin, request.name, request.pin, request.phone)
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.flush)
    return UserListItem(name=user.name, phone=user.phone, pin=user.pin, role=user.role.value)


@router.delete("/{name}")
async def delete_user(
    name: str,
    background_tasks: BackgroundTasks,
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Delete a user (admin only). Admins cannot delete themselves.
    """
    try:
        session.delete_user(admin, name)
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.flush)
    return {"message": "User deleted successfully"}
