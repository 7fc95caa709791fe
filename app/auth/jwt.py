"""
Session tokens for logged-in loan tracker accounts (python-jose).

A token only names the account and its role at login time. Requests resolve
the name against the current user list, so a token outlives neither the
account nor a pull that removes it.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from app.config import get_settings
from app.schemas import UserAccount

TOKEN_TYPE = "access"


def access_token_lifetime() -> timedelta:
    return timedelta(minutes=get_settings().jwt_access_token_expire_minutes)


def issue_access_token(
    user: UserAccount,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a session token for an account.

    Args:
        user: The account that just logged in or finished setup
        expires_delta: Override for the configured lifetime

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": user.name,
        "role": user.role.value,
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + (expires_delta or access_token_lifetime()),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def token_subject(token: str) -> Optional[str]:
    """
    Return the account name a session token was issued to.

    None for tokens that are expired, badly signed, of another type or
    missing a subject.
    """
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if claims.get("type") != TOKEN_TYPE:
        return None
    return claims.get("sub") or None
