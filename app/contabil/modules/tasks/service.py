from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from app.contabil.audit import record_event
from app.contabil.authz import ensure_owner, get_owned, owned
from app.contabil.constants import DEFAULT_TASK_TYPE, MIN_TASK_TITLE, STATUS_PENDENTE, TASK_TYPES
from app.contabil.modules.clients.models import Client
from app.contabil.modules.tasks.models import Task
from app.contabil.status import display_status, matches_filter, status_label, toggle_status
from app.contabil.utils import clean, clean_or_none, parse_date

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.contabil.context import AuthContext


TASK_FIELDS = ("title", "description", "task_type", "due_date", "client_id")


@dataclass(frozen=True)
class TaskRow:
    """A task plus its derived status for one viewing date."""

    task: Task
    display_status: str
    label: str


def payload_from_form(form) -> dict:
    return {k: form.get(k) for k in TASK_FIELDS}


def validate_task_payload(s: "Session", ctx: "AuthContext", payload: dict) -> list[str]:
    """Validate task creation/update payload. Returns list of errors."""
    errors = []
    if len(clean(payload.get("title"))) < MIN_TASK_TITLE:
        errors.append(f"Título deve ter no mínimo {MIN_TASK_TITLE} caracteres.")
    task_type = clean(payload.get("task_type")) or DEFAULT_TASK_TYPE
    if task_type not in TASK_TYPES:
        errors.append(f"Tipo de tarefa inválido. Use um de: {', '.join(TASK_TYPES)}")
    raw_due = clean(payload.get("due_date"))
    if not raw_due:
        errors.append("Data de vencimento é obrigatória.")
    elif parse_date(raw_due) is None:
        errors.append("Data de vencimento inválida (use AAAA-MM-DD).")
    client_id = clean(payload.get("client_id"))
    if client_id and get_owned(s, Client, client_id, ctx) is None:
        errors.append("Cliente não encontrado.")
    return errors


def _values(payload: dict) -> dict:
    due = parse_date(payload.get("due_date"))
    if due is None:
        raise ValueError("due_date is required")
    return {
        "title": clean(payload.get("title")),
        "description": clean_or_none(payload.get("description")),
        "task_type": clean(payload.get("task_type")) or DEFAULT_TASK_TYPE,
        "due_date": due,
        "client_id": clean_or_none(payload.get("client_id")),
    }


def client_choices(s: "Session", ctx: "AuthContext") -> list[Client]:
    return owned(s, Client, ctx).order_by(Client.name.asc()).all()


def list_tasks(s: "Session", ctx: "AuthContext", today: date, status_filter: str = "all") -> list[TaskRow]:
    """
    Caller's tasks by due date, filtered in Python so "overdue" stays a derived predicate.
    """
    tasks = owned(s, Task, ctx).order_by(Task.due_date.asc(), Task.created_at.asc()).all()
    return [
        TaskRow(t, display_status(t.status, t.due_date, today), status_label(t.status, t.due_date, today))
        for t in tasks
        if matches_filter(t, status_filter, today)
    ]


def create_task(s: "Session", ctx: "AuthContext", payload: dict) -> Task:
    task = Task(user_id=ctx.profile_id, status=STATUS_PENDENTE, **_values(payload))
    s.add(task)
    s.flush()

    record_event(
        s,
        actor=ctx.user,
        action="task.create",
        entity_type="Task",
        entity_id=task.id,
        metadata={"title": task.title, "task_type": task.task_type, "due_date": task.due_date.isoformat()},
    )
    return task


def update_task(s: "Session", ctx: "AuthContext", task: Task, payload: dict) -> Task:
    """Edit task fields. Status is only changed through toggle_task."""
    ensure_owner(task, ctx)
    changes = {}
    for field, new in _values(payload).items():
        old = getattr(task, field)
        if new != old:
            changes[field] = {"old": str(old) if old is not None else None, "new": str(new) if new is not None else None}
            setattr(task, field, new)
    if "client_id" in changes:
        # keep the eagerly loaded relationship in step with the new FK
        s.expire(task, ["client"])

    record_event(
        s,
        actor=ctx.user,
        action="task.edit",
        entity_type="Task",
        entity_id=task.id,
        metadata={"title": task.title, "changes": changes},
    )
    return task


def toggle_task(s: "Session", ctx: "AuthContext", task: Task) -> Task:
    """pendente <-> concluida. Never writes "atrasada"."""
    ensure_owner(task, ctx)
    old = task.status
    task.status = toggle_status(old)
    record_event(
        s,
        actor=ctx.user,
        action="task.status",
        entity_type="Task",
        entity_id=task.id,
        metadata={"title": task.title, "changes": {"status": {"old": old, "new": task.status}}},
    )
    return task


def delete_task(s: "Session", ctx: "AuthContext", task: Task) -> None:
    ensure_owner(task, ctx)
    record_event(
        s,
        actor=ctx.user,
        action="task.delete",
        entity_type="Task",
        entity_id=task.id,
        metadata={"title": task.title},
    )
    s.delete(task)
    s.flush()
