"""
Role Decorators — JWT-aware role gates for route protection.

Usage:
    @bp.route("/api/v1/adjustments", methods=["POST"])
    @require_auth
    def create_adjustment():
        ...

    @bp.route("/api/v1/adjustments/<int:adj_id>/approve", methods=["PATCH"])
    @require_roles(config_key="APPROVER_ROLES")
    def approve_adjustment(adj_id):
        ...

No user → 401. Authenticated user with a role outside the allowed set → 403
with ``required_roles`` listing what would have been accepted.
"""

import functools
import logging

from flask import current_app, g

from portal.core.exceptions import AuthenticationRequired, PermissionDenied

logger = logging.getLogger(__name__)


def current_user():
    """The authenticated User for this request, or None."""
    return getattr(g, "current_user", None)


def current_username(default: str = "system") -> str:
    user = current_user()
    return user.username if user is not None else default


def require_auth(f):
    """Decorator: require any authenticated user."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_user() is None:
            raise AuthenticationRequired()
        return f(*args, **kwargs)
    return decorated


def require_roles(*roles: str, config_key: str | None = None):
    """
    Decorator: require the JWT user to hold one of ``roles``.

    Args:
        roles: Allowed role names.
        config_key: Optional app-config key holding the allowed roles; read
            at request time so tests and deployments can change it.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = current_user()
            if user is None:
                raise AuthenticationRequired()

            allowed = tuple(roles)
            if config_key:
                allowed += tuple(current_app.config.get(config_key, ()))

            if user.role not in allowed:
                logger.warning(
                    "User %s (role=%s) denied: needs one of %s on %s",
                    user.username, user.role, allowed, f.__name__,
                )
                raise PermissionDenied(required_roles=allowed)

            return f(*args, **kwargs)
        return decorated
    return decorator
