"""
FastAPI dependencies for authentication and authorization.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status, Request

from app.auth.jwt import token_subject
from app.schemas import UserAccount
from app.sync.session import SyncSession, get_sync_session


def get_token_from_request(request: Request) -> Optional[str]:
    """
    Extract JWT token from request.

    Checks in order:
    1. Authorization header (Bearer token)
    2. access_token cookie
    """
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]

    return request.cookies.get("access_token")


async def get_current_user_optional(
    request: Request,
    session: SyncSession = Depends(get_sync_session),
) -> Optional[UserAccount]:
    """
    Get the current user if authenticated, None otherwise.

    The token subject is resolved against current state, so accounts removed
    by a pull stop working immediately.
    """
    token = get_token_from_request(request)
    if not token:
        return None

    name = token_subject(token)
    if not name:
        return None

    return session.state.find_user(name)


async def get_current_user(
    user: Optional[UserAccount] = Depends(get_current_user_optional),
) -> UserAccount:
    """
    Get the current authenticated user.

    Raises HTTPException 401 if not authenticated.
    """
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def require_admin(
    current_user: UserAccount = Depends(get_current_user),
) -> UserAccount:
    """
    Require the current user to be an admin.

    Raises HTTPException 403 if user is not an admin.
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    return current_user
