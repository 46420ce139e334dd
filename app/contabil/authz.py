"""
Row ownership guard.

Every client and task read or write goes through here. One rule per entity:
the caller's profile id must equal the row's owner reference (user_id).
"""
from __future__ import annotations

from typing import TypeVar

from flask import abort
from sqlalchemy.orm import Query, Session

from app.contabil.context import AuthContext
from app.contabil.models import Profile

T = TypeVar("T")


class OwnershipError(PermissionError):
    pass


def _owner_of(obj: object) -> str | None:
    if isinstance(obj, Profile):
        return obj.id
    return getattr(obj, "user_id", None)


def is_owner(obj: object, ctx: AuthContext) -> bool:
    if not ctx.is_authenticated:
        return False
    return _owner_of(obj) == ctx.profile_id


def ensure_owner(obj: object, ctx: AuthContext) -> None:
    if not is_owner(obj, ctx):
        raise OwnershipError(f"{type(obj).__name__} is not owned by the caller")


def owned(s: Session, model: type[T], ctx: AuthContext) -> Query:
    """Query for `model` restricted to the caller's rows."""
    if not ctx.is_authenticated:
        raise OwnershipError("Anonymous callers own nothing")
    return s.query(model).filter(model.user_id == ctx.profile_id)  # type: ignore[attr-defined]


def get_owned(s: Session, model: type[T], obj_id: str | None, ctx: AuthContext) -> T | None:
    """The row, or None when it does not exist or belongs to someone else."""
    if not obj_id:
        return None
    obj = s.get(model, obj_id)
    if obj is None or not is_owner(obj, ctx):
        return None
    return obj


def get_owned_or_404(s: Session, model: type[T], obj_id: str, ctx: AuthContext) -> T:
    # Foreign rows answer 404 like missing ones so existence is not leaked.
    obj = get_owned(s, model, obj_id, ctx)
    if obj is None:
        abort(404)
    return obj
