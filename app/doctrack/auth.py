from __future__ import annotations

import threading
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from app.doctrack.audit import record_event
from app.doctrack.errors import AuthenticationRequired, RateLimited, ValidationFailed
from app.doctrack.models import User
from app.doctrack.rbac import current_user, require_login
from app.doctrack.schemas import LoginRequest, RegisterRequest, UserOut, dump, load_json
from app.doctrack.store import current_store

bp = Blueprint("auth", __name__)


class LoginRateLimiter:
    """Per-IP sliding window of login attempts. One instance per app."""

    def __init__(self, limit: int = 5, window_seconds: int = 300) -> None:
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._attempts: dict[str, list[datetime]] = defaultdict(list)
        self._lock = threading.Lock()

    def is_limited(self, ip: str) -> bool:
        cutoff = datetime.utcnow() - self.window
        with self._lock:
            recent = [t for t in self._attempts.get(ip, ()) if t > cutoff]
            if not recent:
                self._attempts.pop(ip, None)
                return False
            self._attempts[ip] = recent
            return len(recent) >= self.limit

    def record(self, ip: str) -> None:
        with self._lock:
            self._attempts[ip].append(datetime.utcnow())

    def clear(self, ip: str) -> None:
        with self._lock:
            self._attempts.pop(ip, None)


def _limiter() -> LoginRateLimiter:
    return current_app.extensions["login_rate_limiter"]


def _start_session(user: User) -> None:
    # Fresh session on every login/registration (drops any pre-auth CSRF token too).
    session.clear()
    session.permanent = True
    session["user_id"] = user.id
    session["user_role"] = user.role


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(("/health", "/healthz")):
        return

    user_id = session.get("user_id")
    if not user_id:
        return

    try:
        user = current_store().get_user(int(user_id))
    except (TypeError, ValueError):
        user = None
    if not user or not user.is_active:
        session.pop("user_id", None)
        return
    g.current_user = user


@bp.post("/register")
def register():
    payload = load_json(RegisterRequest, message="Missing required fields")
    store = current_store()
    with store.transaction():
        if store.get_user_by_username(payload.username):
            raise ValidationFailed("Username already exists")
        user = store.create_user(
            User(
                username=payload.username,
                password_hash=generate_password_hash(payload.password),
                name=payload.name,
                email=payload.email,
                department=payload.department or None,
                role="user",
                is_active=True,
            )
        )
        record_event(store, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    _start_session(user)
    current_app.logger.info("User registered: %s (request_id=%s)", user.username, g.request_id)
    return jsonify(dump(UserOut, user)), 201


@bp.post("/login")
def login():
    ip = request.remote_addr or "unknown"
    limiter = _limiter()
    if limiter.is_limited(ip):
        raise RateLimited("Too many login attempts. Please wait 5 minutes.")
    payload = load_json(LoginRequest, message="Username and password are required")
    limiter.record(ip)

    store = current_store()
    user = store.get_user_by_username(payload.username)
    if not user or not user.is_active or not check_password_hash(user.password_hash, payload.password):
        with store.transaction():
            record_event(
                store,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=payload.username,
                reason="Invalid credentials",
                metadata={"username": payload.username},
            )
        current_app.logger.warning("Failed login for %r from %s", payload.username, ip)
        raise AuthenticationRequired("Invalid username or password")

    with store.transaction():
        record_event(store, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    limiter.clear(ip)
    _start_session(user)
    current_app.logger.info("User logged in: %s", user.username)
    return jsonify(dump(UserOut, user))


@bp.post("/logout")
@require_login
def logout():
    user = current_user()
    store = current_store()
    with store.transaction():
        record_event(store, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
    session.clear()
    return jsonify({"message": "Logged out successfully"})


@bp.get("/user")
@require_login
def me():
    return jsonify(dump(UserOut, current_user()))
