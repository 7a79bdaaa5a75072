"""Signed bearer tokens and role checks for the HTTP layer."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .extensions import db
from .models import User


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")


def build_token(user: User) -> str:
    return _serializer().dumps({"user_id": user.user_id})


def current_user() -> User | None:
    """Return the user behind the ``Authorization: Bearer`` header, if valid."""
    if "current_user" in g:
        return g.current_user

    user = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        try:
            payload = _serializer().loads(token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
        except (BadSignature, SignatureExpired):
            payload = None
        if isinstance(payload, dict) and payload.get("user_id"):
            user = db.session.get(User, payload["user_id"])
    g.current_user = user
    return user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            return jsonify({"error": "unauthorized", "message": "Please log in first"}), 401
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = current_user()
        if user is None:
            return jsonify({"error": "unauthorized", "message": "Please log in first"}), 401
        if user.role != "admin":
            return jsonify({"error": "forbidden", "message": "Admin access required"}), 403
        return view(*args, **kwargs)

    return wrapper
