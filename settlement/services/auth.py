"""JWT verification for bearer tokens issued by the hosted auth service."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from settlement.config import settings


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    role: str | None = None


def _role_from_payload(payload: dict) -> str | None:
    # Supabase keeps custom roles under app_metadata; plain tokens use "role"
    app_metadata = payload.get("app_metadata") or {}
    if isinstance(app_metadata, dict) and app_metadata.get("role"):
        return app_metadata["role"]
    return payload.get("role")


def decode_access_token(token: str) -> TokenClaims | None:
    """Decode JWT and return its claims. Returns None on failure or missing subject."""
    options = {} if settings.jwt_audience else {"verify_aud": False}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None

    subject = payload.get("sub")
    if not subject:
        return None
    return TokenClaims(user_id=str(subject), role=_role_from_payload(payload))


def create_access_token(subject: str, role: str | None = None) -> str:
    """Mint a token the way the auth service would. Used by the dev CLI and tests."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {"sub": subject, "exp": expire}
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
