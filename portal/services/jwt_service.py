"""
JWT Service — access and password-reset token generation / verification.

Access token:  1 hour     (configurable via JWT_ACCESS_EXPIRES)
Reset token:   30 minutes (configurable via JWT_RESET_EXPIRES)
Algorithm:     HS256

Token payload (access):
{
    "sub": "<user_id>",
    "username": "<username>",
    "role": "finance",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_ACCESS_EXPIRES = 3600
DEFAULT_RESET_EXPIRES = 1800
ALGORITHM = "HS256"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _encode(payload: dict, expires_in: int) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(payload, iat=now, exp=now + timedelta(seconds=expires_in), jti=str(uuid.uuid4()))
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def access_expires_in() -> int:
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user) -> str:
    """Generate an access token carrying the user's role."""
    return _encode(
        {"sub": str(user.id), "username": user.username, "role": user.role, "type": "access"},
        access_expires_in(),
    )


def generate_reset_token(user) -> str:
    """Generate a single-purpose password-reset token.

    The current password hash prefix is embedded so the token stops working
    once the password has been changed.
    """
    return _encode(
        {"sub": str(user.id), "type": "reset", "pwd": user.password_hash[-12:]},
        current_app.config.get("JWT_RESET_EXPIRES", DEFAULT_RESET_EXPIRES),
    )


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_token(token: str, expected_type: str = "access") -> dict:
    """
    Decode and verify a JWT token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])

    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {payload.get('type')}")

    return payload


def decode_access_token(token: str) -> dict:
    """Decode an access token — convenience wrapper."""
    return decode_token(token, expected_type="access")
