"""
Authentication API endpoints.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Response
from pydantic import BaseModel

from app.api.errors import http_error
from app.auth.dependencies import get_current_user
from app.auth.jwt import access_token_lifetime, issue_access_token
from app.config import get_settings
from app.exceptions import LoanTrackerError
from app.schemas import UserAccount
from app.sync.session import SyncSession, get_sync_session

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


# === Pydantic Schemas ===

class LoginRequest(BaseModel):
    name: str
    pin: str


class SetupRequest(BaseModel):
    name: str = "Admin"
    pin: str
    phone: str = ""


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


class RestoreResponse(BaseModel):
    success: bool
    message: str


class DeviceState(BaseModel):
    first_run: bool
    remote_configured: bool


# === Helper Functions ===

def set_auth_cookie(response: Response, access_token: str):
    """Set httpOnly cookie for the access token."""
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.app_env == "production",
        samesite="lax",
        max_age=int(access_token_lifetime().total_seconds()),
    )


def user_to_dict(user: UserAccount) -> dict:
    """Convert user to dict for response. The PIN is never echoed here."""
    return {
        "name": user.name,
        "phone": user.phone,
        "role": user.role.value,
    }


def issue_token(response: Response, user: UserAccount) -> LoginResponse:
    access_token = issue_access_token(user)
    set_auth_cookie(response, access_token)
    return LoginResponse(access_token=access_token, user=user_to_dict(user))


# === Endpoints ===

@router.get("/device", response_model=DeviceState)
async def device_state(session: SyncSession = Depends(get_sync_session)):
    """Whether this device still needs first-run setup."""
    return DeviceState(
        first_run=session.is_first_run,
        remote_configured=session.status.remote_configured,
    )


@router.post("/setup", response_model=LoginResponse)
async def setup_admin(
    request: SetupRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    session: SyncSession = Depends(get_sync_session),
):
    """
    Create the first admin account on a fresh device and log in as it.
    """
    try:
        admin = session.setup_admin(request.name, request.pin, request.phone)
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.flush)
    return issue_token(response, admin)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    session: SyncSession = Depends(get_sync_session),
):
    """
    Authenticate with name and PIN and return a JWT.

    Data is refreshed from the remote store after every login.
    """
    try:
        user = session.authenticate(request.name, request.pin)
    except LoanTrackerError as e:
        raise http_error(e)

    background_tasks.add_task(session.pull)
    return issue_token(response, user)


@router.post("/logout")
async def logout(response: Response):
    """Clear the auth cookie."""
    response.delete_cookie(key="access_token")
    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_me(current_user: UserAccount = Depends(get_current_user)):
    """Get current user info."""
    return user_to_dict(current_user)


@router.post("/restore", response_model=RestoreResponse)
async def restore(session: SyncSession = Depends(get_sync_session)):
    """
    Pull everything from the remote store onto this device.

    Works without logging in so a new device can fetch its accounts.
    """
    if await session.restore():
        return RestoreResponse(success=True, message="Data restored. You can now log in.")
    if not session.status.remote_configured:
        return RestoreResponse(success=False, message="Remote store is not configured.")
    if session.status.message:
        return RestoreResponse(success=False, message=session.status.message)
    return RestoreResponse(success=False, message="No data found on the server.")


@router.post("/reset")
async def reset_device(session: SyncSession = Depends(get_sync_session)):
    """
    Erase this device's local data. The remote store is not touched.
    """
    if session.status.is_pushing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A push is in progress",
        )
    session.reset_local()
    return {"message": "Local data cleared"}
