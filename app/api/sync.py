"""
Sync API endpoints: status, manual pull and push, remote settings.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.errors import http_error
from app.auth.dependencies import get_current_user, get_current_user_optional, require_admin
from app.exceptions import LoanTrackerError
from app.schemas import SyncStatus, UserAccount
from app.sync.session import SyncSession, get_sync_session

router = APIRouter(prefix="/sync", tags=["sync"])


class RemoteSettingsRequest(BaseModel):
    database_url: str


class SyncResponse(BaseModel):
    success: bool
    status: SyncStatus


@router.get("/status", response_model=SyncStatus)
async def sync_status(session: SyncSession = Depends(get_sync_session)):
    """Current sync flags and the outcome of the last remote call."""
    return session.status


@router.post("/pull", response_model=SyncResponse)
async def pull(
    current_user: UserAccount = Depends(get_current_user),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Refresh local data from the remote store.

    A pull already in progress makes this a no-op (success false).
    """
    success = await session.pull()
    return SyncResponse(success=success, status=session.status)


@router.post("/push", response_model=SyncResponse)
async def push(
    admin: UserAccount = Depends(require_admin),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Re-send all loans and users to the remote store (admin only).
    """
    try:
        success = await session.push(admin)
    except LoanTrackerError as e:
        raise http_error(e)
    return SyncResponse(success=success, status=session.status)


@router.put("/remote", response_model=SyncStatus)
async def configure_remote(
    request: RemoteSettingsRequest,
    current_user: Optional[UserAccount] = Depends(get_current_user_optional),
    session: SyncSession = Depends(get_sync_session),
):
    """
    Save remote connection settings on this device.

    Admins only, except on a fresh device where no account exists yet.
    """
    try:
        session.configure_remote(request.database_url, current_user)
    except LoanTrackerError as e:
        raise http_error(e)
    return session.status
