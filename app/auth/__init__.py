"""
Authentication and authorization module.
"""

from app.auth.jwt import issue_access_token, token_subject
from app.auth.dependencies import (
    get_current_user,
    get_current_user_optional,
    require_admin,
)

__all__ = [
    "issue_access_token",
    "token_subject",
    "get_current_user",
    "get_current_user_optional",
    "require_admin",
]
