"""
Derived task status rules shared by the task list and the dashboard.

The stored status only ever moves between "pendente" and "concluida". Overdue and
due-today are computed from the due date against the viewer's date at day
granularity; time of day never matters.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from app.contabil.constants import STATUS_CONCLUIDA, STATUS_PENDENTE

DISPLAY_CONCLUIDA = "concluida"
DISPLAY_ATRASADA = "atrasada"
DISPLAY_HOJE = "hoje"
DISPLAY_PENDENTE = "pendente"

STATUS_LABELS = {
    DISPLAY_CONCLUIDA: "Concluída",
    DISPLAY_ATRASADA: "Atrasada",
    DISPLAY_HOJE: "Hoje",
    DISPLAY_PENDENTE: "Pendente",
}

FILTER_ALL = "all"
FILTER_OVERDUE = "overdue"
STATUS_FILTERS = (FILTER_ALL, STATUS_PENDENTE, STATUS_CONCLUIDA, FILTER_OVERDUE)

FILTER_LABELS = {
    FILTER_ALL: "Todos",
    STATUS_PENDENTE: "Pendentes",
    STATUS_CONCLUIDA: "Concluídas",
    FILTER_OVERDUE: "Atrasadas",
}


class HasDueStatus(Protocol):
    status: str
    due_date: date


def local_today(tz_name: str | None = None) -> date:
    if tz_name:
        return datetime.now(ZoneInfo(tz_name)).date()
    return date.today()


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _is_open(status: str) -> bool:
    # A stored "atrasada" (never written by this app) still counts as open work.
    return status != STATUS_CONCLUIDA


def is_overdue(status: str, due: date | datetime, today: date) -> bool:
    return _is_open(status) and _as_date(due) < today


def is_due_today(status: str, due: date | datetime, today: date) -> bool:
    return _is_open(status) and _as_date(due) == today


def display_status(status: str, due: date | datetime, today: date) -> str:
    """Completed wins, then overdue, then due today, else pending."""
    if status == STATUS_CONCLUIDA:
        return DISPLAY_CONCLUIDA
    if is_overdue(status, due, today):
        return DISPLAY_ATRASADA
    if is_due_today(status, due, today):
        return DISPLAY_HOJE
    return DISPLAY_PENDENTE


def status_label(status: str, due: date | datetime, today: date) -> str:
    return STATUS_LABELS[display_status(status, due, today)]


def normalize_filter(value: str | None) -> str:
    value = (value or "").strip()
    return value if value in STATUS_FILTERS else FILTER_ALL


def matches_filter(task: HasDueStatus, status_filter: str, today: date) -> bool:
    if status_filter == FILTER_ALL:
        return True
    if status_filter == FILTER_OVERDUE:
        return is_overdue(task.status, task.due_date, today)
    if status_filter == STATUS_PENDENTE:
        return _is_open(task.status)
    return task.status == status_filter


def toggle_status(status: str) -> str:
    return STATUS_PENDENTE if status == STATUS_CONCLUIDA else STATUS_CONCLUIDA
