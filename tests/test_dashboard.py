from datetime import date, timedelta

import pytest

from app.contabil import create_app
from app.contabil.accounts import sign_up
from app.contabil.context import AuthContext
from app.contabil.dashboard import dashboard_stats, upcoming_tasks
from app.contabil.db import session_scope
from app.contabil.models import Base
from app.contabil.modules.clients.models import Client
from app.contabil.modules.tasks.models import Task

TODAY = date(2024, 4, 30)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "1000")
    monkeypatch.delenv("APP_TIMEZONE", raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        u = sign_up(s, email="u@example.com", password="secret1", name="Usuária U")
        v = sign_up(s, email="v@example.com", password="secret1", name="Usuário V")
        s.add(Client(user_id=u.id, name="Maria Souza", cpf_cnpj="12345678901"))
        s.add(Client(user_id=u.id, name="Padaria Central", cpf_cnpj="12345678000199", person_type="PJ"))
        s.add(Client(user_id=v.id, name="Cliente do V", cpf_cnpj="98765432100"))
    return app


def _ctx(s, email) -> AuthContext:
    from app.contabil.models import User

    ctx = AuthContext()
    ctx.load(s, s.query(User).filter(User.email == email).one().id)
    return ctx


def _add_tasks(s, user_id, base):
    rows = [
        ("Vencida 1", base - timedelta(days=5), "pendente"),
        ("Vencida 2", base - timedelta(days=1), "pendente"),
        ("Hoje", base, "pendente"),
        ("Futura", base + timedelta(days=7), "pendente"),
        ("Concluída antiga", base - timedelta(days=9), "concluida"),
        ("Legado atrasada", base - timedelta(days=2), "atrasada"),
    ]
    for title, due, status in rows:
        s.add(Task(user_id=user_id, title=title, due_date=due, status=status))


def test_dashboard_stats_counts_open_tasks_by_date(app):
    with session_scope(app) as s:
        ctx = _ctx(s, "u@example.com")
        _add_tasks(s, ctx.profile_id, TODAY)

    with session_scope(app) as s:
        stats = dashboard_stats(s, _ctx(s, "u@example.com"), TODAY)
        assert stats.total_clients == 2
        assert stats.pending_tasks == 5
        assert stats.today_tasks == 1
        assert stats.overdue_tasks == 3

        other = dashboard_stats(s, _ctx(s, "v@example.com"), TODAY)
        assert (other.total_clients, other.pending_tasks, other.today_tasks, other.overdue_tasks) == (1, 0, 0, 0)


def test_upcoming_tasks_are_the_nearest_five(app):
    with session_scope(app) as s:
        ctx = _ctx(s, "u@example.com")
        _add_tasks(s, ctx.profile_id, TODAY)

    with session_scope(app) as s:
        rows = upcoming_tasks(s, _ctx(s, "u@example.com"), TODAY)
        assert [r.task.title for r in rows] == ["Concluída antiga", "Vencida 1", "Legado atrasada", "Vencida 2", "Hoje"]
        assert [r.display_status for r in rows] == ["concluida", "atrasada", "atrasada", "atrasada", "hoje"]


def test_dashboard_page_shows_stat_cards(app):
    with session_scope(app) as s:
        ctx = _ctx(s, "u@example.com")
        _add_tasks(s, ctx.profile_id, date.today())

    client = app.test_client()
    client.post("/auth/login", data={"email": "u@example.com", "password": "secret1"})
    r = client.get("/dashboard")
    html = r.get_data(as_text=True)
    assert r.status_code == 200
    assert "Olá, Usuária!" in html
    assert '<div class="stat-card" id="stat-clients"><p>Total de Clientes</p><strong>2</strong></div>' in html
    assert '<div class="stat-card" id="stat-pending"><p>Tarefas Pendentes</p><strong>5</strong></div>' in html
    assert '<div class="stat-card" id="stat-today"><p>Vencem Hoje</p><strong>1</strong></div>' in html
    assert '<div class="stat-card" id="stat-overdue"><p>Atrasadas</p><strong>3</strong></div>' in html


def test_empty_dashboard(app):
    client = app.test_client()
    client.post("/auth/login", data={"email": "v@example.com", "password": "secret1"})
    html = client.get("/dashboard").get_data(as_text=True)
    assert "Nenhuma tarefa cadastrada" in html
    assert '<div class="stat-card" id="stat-overdue"><p>Atrasadas</p><strong>0</strong></div>' in html
