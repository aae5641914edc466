"""
Auth Blueprint — JWT authentication endpoints.

Endpoints:
  POST /api/v1/auth/login            — Email + password → bearer token
  POST /api/v1/auth/demo-login       — Username + password → bearer token
  POST /api/v1/auth/logout           — Client-side logout acknowledgement
  GET  /api/v1/auth/me               — Current user profile
  POST /api/v1/auth/forgot-password  — Issue a password-reset token
  POST /api/v1/auth/reset-password   — Set a new password with a reset token
"""

from flask import Blueprint, jsonify, request

from portal.middleware.role_required import current_user, require_auth
from portal.services import auth_service

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    return jsonify(auth_service.login(data)), 200


@auth_bp.route("/demo-login", methods=["POST"])
def demo_login():
    """
    Authenticate with one of the seeded demo accounts.

    Body: { "username": "admin", "password": "admin123" }
    """
    data = request.get_json(silent=True) or {}
    return jsonify(auth_service.demo_login(data)), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    # Access tokens are stateless; the client discards its copy
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    return jsonify({"user": current_user().to_dict()}), 200


# ═══════════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    data = request.get_json(silent=True) or {}
    return jsonify(auth_service.forgot_password(data)), 200


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    """Body: { "token": "...", "new_password": "..." }"""
    data = request.get_json(silent=True) or {}
    return jsonify(auth_service.reset_password(data)), 200
