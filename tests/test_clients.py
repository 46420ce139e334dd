"""Client CRUD, search and per-user isolation."""
from datetime import date

import pytest

from app.contabil import create_app
from app.contabil.accounts import sign_up
from app.contabil.context import AuthContext
from app.contabil.db import session_scope
from app.contabil.models import Base
from app.contabil.modules.clients.models import Client
from app.contabil.modules.clients.service import create_client, search_clients, validate_client_payload
from app.contabil.modules.tasks.models import Task


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
        sign_up(s, email="u@example.com", password="secret1", name="Usuária U")
        sign_up(s, email="v@example.com", password="secret1", name="Usuário V")
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _csrf(client):
    with client.session_transaction() as sess:
        sess.setdefault("csrf_token", "test-csrf")
        return sess["csrf_token"]


def _login(client, email):
    r = client.post("/auth/login", data={"email": email, "password": "secret1"})
    assert r.status_code == 302
    return _csrf(client)


def _ctx(s, email) -> AuthContext:
    from app.contabil.models import User

    user = s.query(User).filter(User.email == email).one()
    ctx = AuthContext()
    ctx.load(s, user.id)
    return ctx


def _new_client(client, token, **overrides):
    data = {"csrf_token": token, "name": "Maria Souza", "cpf_cnpj": "12345678901", "person_type": "PF"}
    data.update(overrides)
    return client.post("/clients/new", data=data)


def test_create_and_list_client(app, client):
    token = _login(client, "u@example.com")
    r = _new_client(client, token, email="maria@example.com", phone="(11) 99999-0000")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/clients")

    r = client.get("/clients")
    html = r.get_data(as_text=True)
    assert "Maria Souza" in html
    assert "maria@example.com" in html

    with session_scope(app) as s:
        c = s.query(Client).one()
        assert c.person_type == "PF"
        assert c.owner.email == "u@example.com"


def test_client_validation(app, client):
    token = _login(client, "u@example.com")
    r = _new_client(client, token, name="M", cpf_cnpj="123", email="nope")
    html = r.get_data(as_text=True)
    assert r.status_code == 200
    assert "Nome deve ter no mínimo 2 caracteres." in html
    assert "CPF/CNPJ inválido." in html
    assert "E-mail inválido." in html
    with session_scope(app) as s:
        assert s.query(Client).count() == 0


def test_validate_client_payload_rejects_unknown_person_type():
    errors = validate_client_payload({"name": "Empresa X", "cpf_cnpj": "12345678000199", "person_type": "XX"})
    assert errors and errors[0].startswith("Tipo de pessoa inválido.")
    assert validate_client_payload({"name": "Empresa X", "cpf_cnpj": "12345678000199", "person_type": "PJ"}) == []


def test_search_by_name_or_document(app):
    with session_scope(app) as s:
        ctx = _ctx(s, "u@example.com")
        create_client(s, ctx, {"name": "Maria Souza", "cpf_cnpj": "111.222.333-44", "person_type": "PF"})
        create_client(s, ctx, {"name": "Padaria Pão Quente", "cpf_cnpj": "12.345.678/0001-99", "person_type": "PJ"})

    with session_scope(app) as s:
        ctx = _ctx(s, "u@example.com")
        assert [c.name for c in search_clients(s, ctx)] == ["Maria Souza", "Padaria Pão Quente"]
        assert [c.name for c in search_clients(s, ctx, "maria")] == ["Maria Souza"]
        assert [c.name for c in search_clients(s, ctx, "0001")] == ["Padaria Pão Quente"]
        assert search_clients(s, ctx, "zzz") == []


def test_search_folds_accented_names(app, client):
    with session_scope(app) as s:
        ctx = _ctx(s, "u@example.com")
        create_client(s, ctx, {"name": "JOÃO DA SILVA", "cpf_cnpj": "12345678901", "person_type": "PF"})
        create_client(s, ctx, {"name": "Ângela Ribeiro", "cpf_cnpj": "98765432100", "person_type": "PF"})

    with session_scope(app) as s:
        ctx = _ctx(s, "u@example.com")
        assert [c.name for c in search_clients(s, ctx, "joão")] == ["JOÃO DA SILVA"]
        assert [c.name for c in search_clients(s, ctx, "ÂNGELA")] == ["Ângela Ribeiro"]

    _login(client, "u@example.com")
    html = client.get("/clients?q=joão").get_data(as_text=True)
    assert "JOÃO DA SILVA" in html
    assert "Ângela Ribeiro" not in html


def test_search_route_shows_empty_state(app, client):
    _login(client, "u@example.com")
    r = client.get("/clients?q=ninguem")
    assert "Nenhum cliente encontrado" in r.get_data(as_text=True)


def test_edit_client(app, client):
    token = _login(client, "u@example.com")
    _new_client(client, token)
    with session_scope(app) as s:
        client_id = s.query(Client).one().id

    r = client.get(f"/clients/{client_id}/edit")
    assert r.status_code == 200
    r = client.post(
        f"/clients/{client_id}/edit",
        data={"csrf_token": token, "name": "Maria S. Lima", "cpf_cnpj": "12345678901", "person_type": "PF"},
    )
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.get(Client, client_id).name == "Maria S. Lima"


def test_users_cannot_see_or_touch_each_others_clients(app, client):
    token = _login(client, "u@example.com")
    _new_client(client, token, name="Cliente da U")
    with session_scope(app) as s:
        client_id = s.query(Client).one().id

    client.get("/auth/logout")
    token = _login(client, "v@example.com")

    assert "Cliente da U" not in client.get("/clients").get_data(as_text=True)
    assert client.get(f"/clients/{client_id}/edit").status_code == 404
    r = client.post(
        f"/clients/{client_id}/edit",
        data={"csrf_token": token, "name": "Sequestrado", "cpf_cnpj": "12345678901", "person_type": "PF"},
    )
    assert r.status_code == 404
    assert client.post(f"/clients/{client_id}/delete", data={"csrf_token": token}).status_code == 404

    with session_scope(app) as s:
        c = s.get(Client, client_id)
        assert c is not None
        assert c.name == "Cliente da U"


def test_delete_client_keeps_its_tasks(app, client):
    token = _login(client, "u@example.com")
    _new_client(client, token)
    with session_scope(app) as s:
        c = s.query(Client).one()
        s.add(Task(user_id=c.user_id, client_id=c.id, title="DCTF mensal", task_type="declaracao", due_date=date(2030, 1, 15)))
        client_id = c.id

    r = client.post(f"/clients/{client_id}/delete", data={"csrf_token": token})
    assert r.status_code == 302

    with session_scope(app) as s:
        assert s.get(Client, client_id) is None
        task = s.query(Task).one()
        assert task.title == "DCTF mensal"
        assert task.client_id is None
        assert task.client_name is None
