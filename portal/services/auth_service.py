"""
Pay-TV Back-Office Portal
Auth Service — credential checks, token issue and password reset.

Login works by e-mail (``/auth/login``) or by username (``/auth/demo-login``).
Both return the same payload: the user, a bearer access token and its
lifetime.  The password-reset flow never reveals whether an e-mail exists.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import jwt as pyjwt
from flask import current_app
from sqlalchemy import select

from portal.core.exceptions import AuthenticationRequired, ValidationError
from portal.models import db
from portal.models.auth import User
from portal.services.jwt_service import (
    access_expires_in,
    decode_token,
    generate_access_token,
    generate_reset_token,
)
from portal.utils.crypto import hash_password, needs_rehash, verify_password
from portal.utils.helpers import text

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _issue(user: User) -> dict:
    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Login succeeded", extra={"user": user.username})
    return {
        "user": user.to_dict(),
        "access_token": generate_access_token(user),
        "token_type": "Bearer",
        "expires_in": access_expires_in(),
    }


def _check(user: User | None, password: str, message: str) -> User:
    if not isinstance(password, str):
        raise ValidationError("password must be a string")
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.warning("Login failed")
        raise AuthenticationRequired(message)
    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("Password hash upgraded to bcrypt", extra={"user": user.username})
    return user


def login(data: dict) -> dict:
    email = text(data.get("email"), "email").lower()
    password = data.get("password") or ""
    if not email or not password:
        raise ValidationError("Email and password are required")
    user = db.session.execute(
        select(User).where(db.func.lower(User.email) == email)
    ).scalar_one_or_none()
    return _issue(_check(user, password, "Invalid email or password"))


def demo_login(data: dict) -> dict:
    username = text(data.get("username"), "username")
    password = data.get("password") or ""
    if not username or not password:
        raise ValidationError("Username and password are required")
    user = db.session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()
    return _issue(_check(user, password, "Invalid credentials"))


def forgot_password(data: dict) -> dict:
    """Issue a reset token when the e-mail is known; the reply is the same either way."""
    email = text(data.get("email"), "email").lower()
    if not email:
        raise ValidationError("Email is required")
    result = {"message": "Password reset instructions sent to your email"}
    user = db.session.execute(
        select(User).where(db.func.lower(User.email) == email)
    ).scalar_one_or_none()
    if user is not None and user.is_active:
        token = generate_reset_token(user)
        logger.info("Password reset token issued", extra={"user": user.username})
        # No mail transport outside production: hand the token back to the caller
        if current_app.debug or current_app.testing:
            result["reset_token"] = token
    return result


def reset_password(data: dict) -> dict:
    token = data.get("token")
    new_password = data.get("new_password")
    if not token or not new_password:
        raise ValidationError("Token and new password are required")
    if not isinstance(token, str) or not isinstance(new_password, str):
        raise ValidationError("Token and new password must be strings")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    try:
        payload = decode_token(token, expected_type="reset")
        user = db.session.get(User, int(payload["sub"]))
    except (pyjwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
        raise ValidationError("Invalid or expired reset token") from exc
    if user is None or user.password_hash[-12:] != payload.get("pwd"):
        raise ValidationError("Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    db.session.commit()
    logger.info("Password reset", extra={"user": user.username})
    return {"message": "Password reset successfully"}
