from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.contabil.accounts import AccountError, delete_account, update_password, update_profile_name
from app.contabil.constants import ACCOUNT_TYPE_LABELS
from app.contabil.context import AuthContext, require_login
from app.contabil.db import db_session

bp = Blueprint("profile", __name__)


@bp.get("/profile")
@require_login
def profile_get(ctx: AuthContext):
    return render_template(
        "profile/index.html",
        profile=ctx.profile,
        account_label=ACCOUNT_TYPE_LABELS.get(ctx.profile.account_type, ctx.profile.account_type),
    )


@bp.post("/profile")
@require_login
def profile_update(ctx: AuthContext):
    s = db_session()
    try:
        update_profile_name(s, ctx, request.form.get("name") or "")
        s.commit()
    except AccountError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("profile.profile_get"))
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error updating profile %s", ctx.profile_id)
        flash("Erro ao atualizar perfil.", "danger")
        return redirect(url_for("profile.profile_get"))

    ctx.refresh(s)
    flash("Perfil atualizado com sucesso.", "success")
    return redirect(url_for("profile.profile_get"))


@bp.post("/profile/password")
@require_login
def profile_password(ctx: AuthContext):
    s = db_session()
    new_password = request.form.get("new_password") or ""
    if new_password != (request.form.get("confirm_password") or ""):
        flash("As senhas não conferem.", "danger")
        return redirect(url_for("profile.profile_get"))
    try:
        update_password(s, ctx, request.form.get("current_password") or "", new_password)
        s.commit()
    except AccountError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("profile.profile_get"))
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error changing password for %s", ctx.profile_id)
        flash("Erro ao alterar senha.", "danger")
        return redirect(url_for("profile.profile_get"))

    flash("Senha alterada com sucesso.", "success")
    return redirect(url_for("profile.profile_get"))


@bp.post("/profile/delete")
@require_login
def profile_delete(ctx: AuthContext):
    s = db_session()
    profile_id = ctx.profile_id
    try:
        delete_account(s, ctx, request.form.get("password") or "")
        s.commit()
    except AccountError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("profile.profile_get"))
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error deleting account %s", profile_id)
        flash("Erro ao excluir conta.", "danger")
        return redirect(url_for("profile.profile_get"))

    current_app.logger.info("Account deleted profile_id=%s", profile_id)
    flash("Conta excluída.", "success")
    return redirect(url_for("routes.index"))
