from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from flask import Blueprint, current_app, flash, render_template
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.contabil.authz import owned
from app.contabil.constants import OPEN_STATUSES, TASK_TYPE_LABELS
from app.contabil.context import AuthContext, require_login
from app.contabil.db import db_session
from app.contabil.modules.clients.service import count_clients
from app.contabil.modules.tasks.models import Task
from app.contabil.modules.tasks.service import TaskRow
from app.contabil.status import display_status, local_today, status_label

bp = Blueprint("dashboard", __name__)

UPCOMING_LIMIT = 5


@dataclass(frozen=True)
class DashboardStats:
    total_clients: int = 0
    pending_tasks: int = 0
    today_tasks: int = 0
    overdue_tasks: int = 0


def dashboard_stats(s: Session, ctx: AuthContext, today: date) -> DashboardStats:
    pending = owned(s, Task, ctx).filter(Task.status.in_(OPEN_STATUSES))
    return DashboardStats(
        total_clients=count_clients(s, ctx),
        pending_tasks=pending.count(),
        today_tasks=pending.filter(Task.due_date == today).count(),
        overdue_tasks=pending.filter(Task.due_date < today).count(),
    )


def upcoming_tasks(s: Session, ctx: AuthContext, today: date, limit: int = UPCOMING_LIMIT) -> list[TaskRow]:
    """Nearest tasks by due date (completed ones included, as on the task list)."""
    tasks = owned(s, Task, ctx).order_by(Task.due_date.asc(), Task.created_at.asc()).limit(limit).all()
    return [TaskRow(t, display_status(t.status, t.due_date, today), status_label(t.status, t.due_date, today)) for t in tasks]


@bp.get("/dashboard")
@require_login
def index(ctx: AuthContext):
    s = db_session()
    today = local_today(current_app.config.get("APP_TIMEZONE"))
    try:
        stats = dashboard_stats(s, ctx, today)
        rows = upcoming_tasks(s, ctx, today)
    except SQLAlchemyError:
        current_app.logger.exception("Error fetching dashboard data (profile_id=%s)", ctx.profile_id)
        flash("Erro ao carregar o painel.", "danger")
        stats, rows = DashboardStats(), []
    return render_template(
        "dashboard/index.html",
        profile=ctx.profile,
        stats=stats,
        rows=rows,
        task_types=TASK_TYPE_LABELS,
    )
