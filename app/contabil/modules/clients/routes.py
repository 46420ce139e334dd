from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.contabil.authz import get_owned_or_404
from app.contabil.constants import PERSON_PF, PERSON_TYPE_LABELS
from app.contabil.context import AuthContext, require_login
from app.contabil.db import db_session
from app.contabil.modules.clients.models import Client
from app.contabil.modules.clients.service import (
    create_client,
    delete_client,
    payload_from_form,
    search_clients,
    update_client,
    validate_client_payload,
)

bp = Blueprint("clients", __name__)


def _render_form(form: dict, client: Client | None = None):
    return render_template(
        "clients/form.html",
        form=form,
        client=client,
        person_types=PERSON_TYPE_LABELS,
    )


# ---------- List ----------
@bp.get("/clients")
@require_login
def clients_list(ctx: AuthContext):
    s = db_session()
    search = (request.args.get("q") or "").strip()
    try:
        clients = search_clients(s, ctx, search)
    except SQLAlchemyError:
        current_app.logger.exception("Error fetching clients (profile_id=%s)", ctx.profile_id)
        flash("Erro ao carregar clientes.", "danger")
        clients = []
    return render_template(
        "clients/list.html",
        clients=clients,
        search=search,
        person_types=PERSON_TYPE_LABELS,
    )


# ---------- New ----------
@bp.get("/clients/new")
@require_login
def clients_new_get(ctx: AuthContext):
    return _render_form({"person_type": PERSON_PF})


@bp.post("/clients/new")
@require_login
def clients_new_post(ctx: AuthContext):
    s = db_session()
    payload = payload_from_form(request.form)

    errors = validate_client_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_form(payload)

    try:
        create_client(s, ctx, payload)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error saving client (profile_id=%s)", ctx.profile_id)
        flash("Erro ao salvar cliente.", "danger")
        return _render_form(payload)

    flash("Cliente cadastrado com sucesso.", "success")
    return redirect(url_for("clients.clients_list"))


# ---------- Edit ----------
@bp.get("/clients/<client_id>/edit")
@require_login
def client_edit_get(ctx: AuthContext, client_id: str):
    s = db_session()
    client = get_owned_or_404(s, Client, client_id, ctx)
    form = {
        "name": client.name,
        "cpf_cnpj": client.cpf_cnpj,
        "person_type": client.person_type,
        "email": client.email or "",
        "phone": client.phone or "",
    }
    return _render_form(form, client)


@bp.post("/clients/<client_id>/edit")
@require_login
def client_edit_post(ctx: AuthContext, client_id: str):
    s = db_session()
    client = get_owned_or_404(s, Client, client_id, ctx)
    payload = payload_from_form(request.form)

    errors = validate_client_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_form(payload, client)

    try:
        update_client(s, ctx, client, payload)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error updating client %s", client_id)
        flash("Erro ao salvar cliente.", "danger")
        return _render_form(payload, client)

    flash("Cliente atualizado com sucesso.", "success")
    return redirect(url_for("clients.clients_list"))


# ---------- Delete ----------
@bp.post("/clients/<client_id>/delete")
@require_login
def client_delete(ctx: AuthContext, client_id: str):
    s = db_session()
    client = get_owned_or_404(s, Client, client_id, ctx)
    try:
        delete_client(s, ctx, client)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error deleting client %s", client_id)
        flash("Erro ao excluir cliente.", "danger")
        return redirect(url_for("clients.clients_list"))

    flash("Cliente excluído com sucesso.", "success")
    return redirect(url_for("clients.clients_list"))
