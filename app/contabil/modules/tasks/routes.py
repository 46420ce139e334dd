from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.contabil.authz import get_owned_or_404
from app.contabil.constants import DEFAULT_TASK_TYPE, STATUS_CONCLUIDA, TASK_TYPE_LABELS
from app.contabil.context import AuthContext, require_login
from app.contabil.db import db_session
from app.contabil.modules.tasks.models import Task
from app.contabil.modules.tasks.service import (
    client_choices,
    create_task,
    delete_task,
    list_tasks,
    payload_from_form,
    toggle_task,
    update_task,
    validate_task_payload,
)
from app.contabil.status import FILTER_ALL, FILTER_LABELS, local_today, normalize_filter

bp = Blueprint("tasks", __name__)


def _today():
    return local_today(current_app.config.get("APP_TIMEZONE"))


def _render_form(ctx: AuthContext, form: dict, task: Task | None = None):
    s = db_session()
    return render_template(
        "tasks/form.html",
        form=form,
        task=task,
        clients=client_choices(s, ctx),
        task_types=TASK_TYPE_LABELS,
    )


# ---------- List ----------
@bp.get("/tasks")
@require_login
def tasks_list(ctx: AuthContext):
    s = db_session()
    status_filter = normalize_filter(request.args.get("status"))
    try:
        rows = list_tasks(s, ctx, _today(), status_filter)
    except SQLAlchemyError:
        current_app.logger.exception("Error fetching tasks (profile_id=%s)", ctx.profile_id)
        flash("Erro ao carregar tarefas.", "danger")
        rows = []
    return render_template(
        "tasks/list.html",
        rows=rows,
        status_filter=status_filter,
        filters=FILTER_LABELS,
        filtered=status_filter != FILTER_ALL,
        task_types=TASK_TYPE_LABELS,
    )


# ---------- New ----------
@bp.get("/tasks/new")
@require_login
def tasks_new_get(ctx: AuthContext):
    form = {"task_type": DEFAULT_TASK_TYPE, "client_id": (request.args.get("client_id") or "").strip()}
    return _render_form(ctx, form)


@bp.post("/tasks/new")
@require_login
def tasks_new_post(ctx: AuthContext):
    s = db_session()
    payload = payload_from_form(request.form)

    errors = validate_task_payload(s, ctx, payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_form(ctx, payload)

    try:
        create_task(s, ctx, payload)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error saving task (profile_id=%s)", ctx.profile_id)
        flash("Erro ao salvar tarefa.", "danger")
        return _render_form(ctx, payload)

    flash("Tarefa criada com sucesso.", "success")
    return redirect(url_for("tasks.tasks_list"))


# ---------- Edit ----------
@bp.get("/tasks/<task_id>/edit")
@require_login
def task_edit_get(ctx: AuthContext, task_id: str):
    s = db_session()
    task = get_owned_or_404(s, Task, task_id, ctx)
    form = {
        "title": task.title,
        "description": task.description or "",
        "task_type": task.task_type,
        "due_date": task.due_date.isoformat(),
        "client_id": task.client_id or "",
    }
    return _render_form(ctx, form, task)


@bp.post("/tasks/<task_id>/edit")
@require_login
def task_edit_post(ctx: AuthContext, task_id: str):
    s = db_session()
    task = get_owned_or_404(s, Task, task_id, ctx)
    payload = payload_from_form(request.form)

    errors = validate_task_payload(s, ctx, payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return _render_form(ctx, payload, task)

    try:
        update_task(s, ctx, task, payload)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error updating task %s", task_id)
        flash("Erro ao salvar tarefa.", "danger")
        return _render_form(ctx, payload, task)

    flash("Tarefa atualizada com sucesso.", "success")
    return redirect(url_for("tasks.tasks_list"))


# ---------- Toggle complete ----------
@bp.post("/tasks/<task_id>/toggle")
@require_login
def task_toggle(ctx: AuthContext, task_id: str):
    s = db_session()
    task = get_owned_or_404(s, Task, task_id, ctx)
    status_filter = normalize_filter(request.form.get("status_filter"))
    try:
        toggle_task(s, ctx, task)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error updating task %s", task_id)
        flash("Erro ao atualizar tarefa.", "danger")
        return redirect(url_for("tasks.tasks_list", status=status_filter))

    title = "Tarefa concluída!" if task.status == STATUS_CONCLUIDA else "Tarefa reaberta"
    flash(f"{title} {task.title}", "success")
    return redirect(url_for("tasks.tasks_list", status=status_filter))


# ---------- Delete ----------
@bp.post("/tasks/<task_id>/delete")
@require_login
def task_delete(ctx: AuthContext, task_id: str):
    s = db_session()
    task = get_owned_or_404(s, Task, task_id, ctx)
    try:
        delete_task(s, ctx, task)
        s.commit()
    except SQLAlchemyError:
        s.rollback()
        current_app.logger.exception("Error deleting task %s", task_id)
        flash("Erro ao excluir tarefa.", "danger")
        return redirect(url_for("tasks.tasks_list"))

    flash("Tarefa excluída.", "success")
    return redirect(url_for("tasks.tasks_list"))
