from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.doctrack.errors import AuthenticationRequired
from app.doctrack.models import User


def current_user() -> User:
    u: User | None = getattr(g, "current_user", None)
    if not u or not u.is_active:
        raise AuthenticationRequired()
    return u


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Reject the request with 401 unless the session carries an active user."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_user()
        return fn(*args, **kwargs)

    return wrapped
