"""Shared API dependencies."""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from settlement.config import settings
from settlement.errors import Forbidden, Unauthorized, ValidationFailed
from settlement.services.auth import TokenClaims, decode_access_token
from settlement.utils.constants import VALID_STATUSES

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenClaims:
    """Validate the bearer JWT and return the caller's claims."""
    if credentials is None:
        raise Unauthorized()
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise Unauthorized("Invalid or expired token")
    return claims


def require_admin(user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
    if user.role != settings.admin_role:
        raise Forbidden()
    return user


def parse_status_filter(status: str | None) -> str | None:
    """Normalize a ``status`` query value; "all" or missing means no filter."""
    if status is None or status.lower() == "all":
        return None
    if status.upper() not in VALID_STATUSES:
        raise ValidationFailed("Invalid status filter")
    return status.upper()
