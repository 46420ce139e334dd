from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.contabil.accounts import (
    InvalidCredentials,
    PasswordError,
    SignUpError,
    request_password_reset,
    reset_password,
    sign_in,
    sign_out,
    sign_up,
    user_for_reset_token,
    validate_new_password,
    validate_signup_payload,
)
from app.contabil.constants import ACCOUNT_TYPE_LABELS, DEFAULT_ACCOUNT_TYPE
from app.contabil.context import current_context
from app.contabil.db import db_session
from app.contabil.utils import safe_next

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= current_app.config.get("LOGIN_RATE_LIMIT", 5)


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


# ---------- Login ----------
@bp.get("/login")
def login_get():
    if current_context().is_authenticated:
        return redirect(url_for("dashboard.index"))
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Muitas tentativas de login. Aguarde 5 minutos.", "danger")
        return redirect(url_for("auth.login_get"))

    _record_attempt(ip)

    s = db_session()
    try:
        user = sign_in(s, email, password)
    except InvalidCredentials as e:
        s.commit()
        flash(str(e), "danger")
        return redirect(url_for("auth.login_get", next=nxt or None))
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Login failed on DB error (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        flash("Ocorreu um erro ao fazer login.", "danger")
        return redirect(url_for("auth.login_get"))

    s.commit()
    current_context().bind(user)
    _login_attempts[ip].clear()
    flash("Bem-vindo! Login realizado com sucesso.", "success")
    return redirect(safe_next(nxt) or url_for("dashboard.index"))


@bp.get("/logout")
def logout():
    s = db_session()
    sign_out(s, current_context())
    s.commit()
    return redirect(url_for("routes.index"))


# ---------- Register ----------
@bp.get("/register")
def register_get():
    return render_template(
        "auth/register.html",
        form={"account_type": DEFAULT_ACCOUNT_TYPE},
        account_types=ACCOUNT_TYPE_LABELS,
    )


@bp.post("/register")
def register_post():
    payload = {
        "name": request.form.get("name"),
        "email": request.form.get("email"),
        "password": request.form.get("password"),
        "confirm_password": request.form.get("confirm_password"),
        "account_type": request.form.get("account_type"),
    }
    form = {k: v for k, v in payload.items() if "password" not in k}

    errors = validate_signup_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return render_template("auth/register.html", form=form, account_types=ACCOUNT_TYPE_LABELS)

    s = db_session()
    try:
        sign_up(
            s,
            email=payload["email"] or "",
            password=payload["password"] or "",
            name=payload["name"],
            account_type=payload["account_type"],
        )
        s.commit()
    except SignUpError as e:
        s.rollback()
        flash(str(e), "danger")
        return render_template("auth/register.html", form=form, account_types=ACCOUNT_TYPE_LABELS)
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Sign-up failed (request_id=%s)", getattr(g, "request_id", None))
        flash("Erro ao criar conta.", "danger")
        return render_template("auth/register.html", form=form, account_types=ACCOUNT_TYPE_LABELS)

    flash("Conta criada com sucesso! Entre com seu e-mail e senha.", "success")
    return redirect(url_for("auth.login_get"))


# ---------- Password reset ----------
@bp.get("/forgot-password")
def forgot_password_get():
    return render_template("auth/forgot_password.html", sent=False)


@bp.post("/forgot-password")
def forgot_password_post():
    email = (request.form.get("email") or "").strip().lower()
    s = db_session()
    try:
        result = request_password_reset(s, email, current_app.config["SECRET_KEY"])
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Password reset request failed (request_id=%s)", getattr(g, "request_id", None))
        flash("Ocorreu um erro ao enviar o e-mail.", "danger")
        return redirect(url_for("auth.forgot_password_get"))

    if result is not None:
        user, token = result
        link = url_for("auth.reset_password_get", token=token, _external=True)
        # Delivery is handled outside the app; the link is logged for the operator.
        current_app.logger.info("Password reset link for user_id=%s: %s", user.id, link)

    # Same answer either way so registered addresses are not disclosed.
    flash("Se o e-mail estiver cadastrado, você receberá um link de redefinição.", "success")
    return render_template("auth/forgot_password.html", sent=True)


@bp.get("/reset-password/<token>")
def reset_password_get(token: str):
    s = db_session()
    try:
        user_for_reset_token(s, token, current_app.config["SECRET_KEY"], current_app.config["PASSWORD_RESET_MAX_AGE"])
    except PasswordError as e:
        flash(str(e), "danger")
        return redirect(url_for("auth.forgot_password_get"))
    return render_template("auth/reset_password.html", token=token)


@bp.post("/reset-password/<token>")
def reset_password_post(token: str):
    password = request.form.get("password") or ""
    errors = validate_new_password(password, request.form.get("confirm_password") or "")
    if errors:
        for e in errors:
            flash(e, "danger")
        return render_template("auth/reset_password.html", token=token)

    s = db_session()
    try:
        reset_password(
            s,
            token,
            password,
            secret_key=current_app.config["SECRET_KEY"],
            max_age=current_app.config["PASSWORD_RESET_MAX_AGE"],
        )
        s.commit()
    except PasswordError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("auth.forgot_password_get"))
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Password reset failed (request_id=%s)", getattr(g, "request_id", None))
        flash("Erro ao alterar senha.", "danger")
        return render_template("auth/reset_password.html", token=token)

    flash("Senha alterada. Entre com a nova senha.", "success")
    return redirect(url_for("auth.login_get"))
