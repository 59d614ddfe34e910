from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from fieldrent.dependencies import get_store
from fieldrent.extensions import limiter
from fieldrent.routes.api.v1.payloads import user_payload
from fieldrent.services import AuthService

api_auth_bp = Blueprint("api_auth", __name__)


@api_auth_bp.post("/register")
@limiter.limit("15 per minute")
def api_register():
    payload = request.get_json(silent=True) or {}
    user = AuthService(get_store()).register_user(
        email=payload.get("email", ""),
        password=payload.get("password", ""),
        name=payload.get("name", ""),
    )
    login_user(user)
    return jsonify(user_payload(user)), 201


@api_auth_bp.post("/login")
@limiter.limit("30 per minute")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService(get_store()).authenticate_user(payload.get("email", ""), payload.get("password", ""))
    login_user(user)
    return jsonify(user_payload(user))


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})


@api_auth_bp.get("/me")
@login_required
def api_me():
    return jsonify(user_payload(current_user))
