"""
Account lifecycle: sign-up (with profile provisioning), sign-in (with last-login
tracking), password reset/update, profile name changes and account deletion.

Provisioning and last-login tracking run synchronously inside the same
session/transaction as the identity change that triggers them. Callers commit.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.contabil.audit import record_event
from app.contabil.constants import (
    ACCOUNT_TYPES,
    DEFAULT_ACCOUNT_TYPE,
    MIN_PASSWORD,
    MIN_PROFILE_NAME,
)
from app.contabil.context import AuthContext
from app.contabil.models import Profile, User
from app.contabil.utils import clean, is_valid_email, normalize_email, utcnow

logger = logging.getLogger(__name__)

_RESET_SALT = "contabil.password-reset"


class AccountError(Exception):
    """Base for account failures that are shown to the user as-is."""


class SignUpError(AccountError):
    pass


class ProvisioningError(AccountError):
    pass


class InvalidCredentials(AccountError):
    pass


class PasswordError(AccountError):
    pass


# ---------- Validation ----------
def validate_signup_payload(payload: Mapping[str, Any]) -> list[str]:
    errors = []
    name = clean(payload.get("name"))
    if len(name) < MIN_PROFILE_NAME:
        errors.append(f"Nome deve ter no mínimo {MIN_PROFILE_NAME} caracteres.")
    if not is_valid_email(payload.get("email")):
        errors.append("E-mail inválido.")
    errors.extend(validate_new_password(payload.get("password") or "", payload.get("confirm_password") or ""))
    account_type = clean(payload.get("account_type"))
    if account_type and account_type not in ACCOUNT_TYPES:
        errors.append("Tipo de conta inválido.")
    return errors


def validate_new_password(password: str, confirm: str) -> list[str]:
    errors = []
    if len(password) < MIN_PASSWORD:
        errors.append(f"Senha deve ter no mínimo {MIN_PASSWORD} caracteres.")
    if password != confirm:
        errors.append("As senhas não conferem.")
    return errors


# ---------- Provisioning ----------
def provision_profile(s: Session, user: User, metadata: Mapping[str, Any] | None = None) -> Profile:
    """
    Create the one Profile for a new identity.

    name falls back to the email; account_type falls back to "contador" when
    missing or not a recognized category.
    """
    metadata = metadata or {}
    if s.get(Profile, user.id) is not None:
        raise ProvisioningError(f"Profile already exists for identity {user.id}")

    name = clean(metadata.get("name")) or user.email
    account_type = clean(metadata.get("account_type"))
    if account_type not in ACCOUNT_TYPES:
        account_type = DEFAULT_ACCOUNT_TYPE

    profile = Profile(id=user.id, name=name, email=user.email, account_type=account_type)
    s.add(profile)
    s.flush()
    return profile


def sign_up(
    s: Session,
    *,
    email: str,
    password: str,
    name: str | None = None,
    account_type: str | None = None,
) -> User:
    """
    Create an identity and its profile. Any failure (including provisioning)
    propagates so the caller rolls back the whole sign-up.
    """
    email = normalize_email(email)
    if not is_valid_email(email):
        raise SignUpError("E-mail inválido.")
    if len(password or "") < MIN_PASSWORD:
        raise SignUpError(f"Senha deve ter no mínimo {MIN_PASSWORD} caracteres.")
    if s.query(User).filter(User.email == email).one_or_none() is not None:
        raise SignUpError("Este e-mail já está cadastrado.")

    user = User(email=email, password_hash=generate_password_hash(password), is_active=True)
    s.add(user)
    try:
        s.flush()
    except IntegrityError as e:
        raise SignUpError("Este e-mail já está cadastrado.") from e

    profile = provision_profile(s, user, {"name": name, "account_type": account_type})
    user.profile = profile

    record_event(
        s,
        actor=user,
        action="auth.signup",
        entity_type="Profile",
        entity_id=profile.id,
        metadata={"account_type": profile.account_type},
    )
    logger.info("Signed up user_id=%s account_type=%s", user.id, profile.account_type)
    return user


# ---------- Sign-in / sign-out ----------
def touch_last_login(s: Session, user_id: str, now: datetime | None = None) -> Profile | None:
    """Overwrite Profile.last_login for the identity. No history is kept."""
    profile = s.get(Profile, user_id)
    if profile is None:
        return None
    profile.last_login = now or utcnow()
    return profile


def authenticate(s: Session, email: str, password: str) -> User:
    email = normalize_email(email)
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password or ""):
        raise InvalidCredentials("E-mail ou senha incorretos.")
    return user


def sign_in(s: Session, email: str, password: str, now: datetime | None = None) -> User:
    try:
        user = authenticate(s, email, password)
    except InvalidCredentials:
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=normalize_email(email),
            reason="Invalid credentials",
            metadata={"email": normalize_email(email)},
        )
        raise
    touch_last_login(s, user.id, now)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
    return user


def sign_out(s: Session, ctx: AuthContext) -> None:
    if ctx.user is not None:
        record_event(s, actor=ctx.user, action="auth.logout", entity_type="User", entity_id=ctx.user.id)
    ctx.clear()


# ---------- Passwords ----------
def _reset_serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=_RESET_SALT)


def _hash_fingerprint(user: User) -> str:
    # Changes whenever the password changes, which makes a token single-use.
    return user.password_hash[-16:]


def request_password_reset(s: Session, email: str, secret_key: str) -> tuple[User, str] | None:
    """
    Token for a known active account, None otherwise. Callers must not reveal which.
    """
    email = normalize_email(email)
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active:
        return None
    token = _reset_serializer(secret_key).dumps({"uid": user.id, "fp": _hash_fingerprint(user)})
    record_event(s, actor=user, action="auth.password_reset_requested", entity_type="User", entity_id=user.id)
    return user, token


def user_for_reset_token(s: Session, token: str, secret_key: str, max_age: int) -> User:
    try:
        data = _reset_serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired as e:
        raise PasswordError("O link de redefinição expirou.") from e
    except BadSignature as e:
        raise PasswordError("Link de redefinição inválido.") from e
    user = s.get(User, data.get("uid"))
    if not user or not user.is_active or data.get("fp") != _hash_fingerprint(user):
        raise PasswordError("Link de redefinição inválido.")
    return user


def reset_password(s: Session, token: str, new_password: str, *, secret_key: str, max_age: int) -> User:
    user = user_for_reset_token(s, token, secret_key, max_age)
    if len(new_password or "") < MIN_PASSWORD:
        raise PasswordError(f"Senha deve ter no mínimo {MIN_PASSWORD} caracteres.")
    user.password_hash = generate_password_hash(new_password)
    record_event(s, actor=user, action="auth.password_reset", entity_type="User", entity_id=user.id)
    return user


def update_password(s: Session, ctx: AuthContext, current_password: str, new_password: str) -> None:
    """Requires an active session and the current password."""
    if not ctx.is_authenticated or ctx.user is None:
        raise PasswordError("Sessão expirada. Entre novamente.")
    if not check_password_hash(ctx.user.password_hash, current_password or ""):
        raise PasswordError("Senha atual incorreta.")
    if len(new_password or "") < MIN_PASSWORD:
        raise PasswordError(f"Nova senha deve ter no mínimo {MIN_PASSWORD} caracteres.")
    ctx.user.password_hash = generate_password_hash(new_password)
    record_event(s, actor=ctx.user, action="auth.password_change", entity_type="User", entity_id=ctx.user.id)


# ---------- Profile ----------
def update_profile_name(s: Session, ctx: AuthContext, name: str) -> Profile:
    name = clean(name)
    if len(name) < MIN_PROFILE_NAME:
        raise AccountError(f"Nome deve ter no mínimo {MIN_PROFILE_NAME} caracteres.")
    profile = s.get(Profile, ctx.profile_id)
    if profile is None:
        raise AccountError("Perfil não encontrado.")
    old = profile.name
    profile.name = name
    record_event(
        s,
        actor=ctx.user,
        action="profile.edit",
        entity_type="Profile",
        entity_id=profile.id,
        metadata={"changes": {"name": {"old": old, "new": name}}},
    )
    return profile


def delete_account(s: Session, ctx: AuthContext, password: str) -> None:
    """
    Delete the identity. Profile, clients and tasks go with it (ON DELETE CASCADE).
    """
    user = ctx.user
    if not ctx.is_authenticated or user is None:
        raise AccountError("Sessão expirada. Entre novamente.")
    if not check_password_hash(user.password_hash, password or ""):
        raise PasswordError("Senha incorreta.")
    record_event(s, actor=None, action="account.delete", entity_type="User", entity_id=user.id, metadata={"email": user.email})
    s.delete(user)
    s.flush()
    ctx.clear()
