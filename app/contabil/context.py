from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import wraps
from typing import Any

from flask import current_app, g, redirect, request, session, url_for
from sqlalchemy.orm import Session

from app.contabil.models import Profile, User

SESSION_USER_KEY = "user_id"


@dataclass
class AuthContext:
    """
    Who is calling. Built once per request and handed to every screen handler.

    Lifecycle: load() from the signed session, refresh() after the profile changes,
    clear() on sign-out or when the identity disappears.
    """

    user: User | None = None
    profile: Profile | None = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.user.is_active and self.profile is not None

    @property
    def profile_id(self) -> str:
        if self.profile is None:
            raise RuntimeError("No authenticated profile")
        return self.profile.id

    def load(self, s: Session, user_id: str | None) -> "AuthContext":
        self.user = None
        self.profile = None
        if not user_id:
            return self
        user = s.get(User, user_id)
        if not user or not user.is_active or user.profile is None:
            self.clear()
            return self
        self.user = user
        self.profile = user.profile
        return self

    def refresh(self, s: Session) -> "AuthContext":
        if self.user is None:
            return self
        s.refresh(self.user)
        profile = s.get(Profile, self.user.id)
        if profile is not None:
            s.refresh(profile)
        self.profile = profile
        return self

    def bind(self, user: User) -> "AuthContext":
        """Start a session for a freshly authenticated identity."""
        session.clear()
        session[SESSION_USER_KEY] = user.id
        self.user = user
        self.profile = user.profile
        return self

    def clear(self) -> None:
        session.pop(SESSION_USER_KEY, None)
        self.user = None
        self.profile = None


def load_auth_context() -> None:
    """
    before_request hook: g.auth for handlers and templates, g.request_id for log/audit correlation.
    """
    from app.contabil.db import db_session

    ctx = AuthContext()
    g.auth = ctx
    g.request_id = ctx.request_id
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return
    try:
        ctx.load(db_session(), session.get(SESSION_USER_KEY))
    except Exception as e:
        current_app.logger.error("load_auth_context DB error (clearing session): %s", e)
        ctx.clear()


def current_context() -> AuthContext:
    ctx = getattr(g, "auth", None)
    if ctx is None:
        ctx = AuthContext()
        g.auth = ctx
    return ctx


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Redirect anonymous callers to login; otherwise call fn(ctx, ...)."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        ctx = current_context()
        if not ctx.is_authenticated:
            nxt = request.full_path or request.path
            # Avoid trailing '?' from full_path when there is no query string.
            if nxt.endswith("?"):
                nxt = nxt[:-1]
            return redirect(url_for("auth.login_get", next=nxt))
        return fn(ctx, *args, **kwargs)

    return wrapped
