"""
JWT Auth Middleware — parses the bearer token and resolves the caller.

Sets, for every /api/v1/ request:
    g.current_user  →  User instance or None
    g.jwt_user_id   →  int or None
    g.jwt_role      →  role string or None

The middleware never rejects a request itself; endpoints that need a user
use the decorators in ``portal.middleware.role_required``.
"""

import logging

import jwt as pyjwt
from flask import g, request

from portal.models import db
from portal.models.auth import User
from portal.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/demo-login",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.jwt_user_id = None
        g.jwt_role = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.info("Invalid access token on %s", path)
            return

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            return

        g.current_user = user
        g.jwt_user_id = user.id
        g.jwt_role = user.role
