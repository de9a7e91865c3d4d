"""
Security utilities: JWT handling for bearer credentials.

Tokens are issued by the identity provider (Supabase Auth in production);
this service only verifies them and reads the owner id from ``sub``.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError

from app.config import get_settings


def create_access_token(user_id: str, extra_data: dict | None = None) -> str:
    """Create a signed access token. Used by local tooling and tests."""
    settings = get_settings()

    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_EXPIRY_MINUTES),
        "iat": datetime.now(timezone.utc),
    }
    if settings.JWT_AUDIENCE:
        payload["aud"] = settings.JWT_AUDIENCE
    if extra_data:
        payload.update(extra_data)

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT token. Returns payload or None if invalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE or None,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
        return payload
    except JWTError:
        return None
