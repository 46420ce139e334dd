"""Tests for sign-up provisioning, last-login tracking and password flows."""
from datetime import datetime, timedelta

import pytest

from app.contabil import accounts, create_app
from app.contabil.accounts import (
    InvalidCredentials,
    ProvisioningError,
    SignUpError,
    provision_profile,
    request_password_reset,
    sign_in,
    sign_up,
)
from app.contabil.db import session_scope
from app.contabil.models import AuditEvent, Base, Profile, User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "1000")
    monkeypatch.delenv("APP_TIMEZONE", raising=False)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _csrf(client):
    with client.session_transaction() as sess:
        sess.setdefault("csrf_token", "test-csrf")
        return sess["csrf_token"]


def _profile(app, email) -> Profile:
    with session_scope(app) as s:
        return s.query(Profile).filter(Profile.email == email).one()


# ---------- Provisioning ----------
def test_signup_without_metadata_defaults_name_and_account_type(app):
    with session_scope(app) as s:
        sign_up(s, email="Sem.Nome@Example.com", password="secret1")

    profile = _profile(app, "sem.nome@example.com")
    assert profile.name == "sem.nome@example.com"
    assert profile.account_type == "contador"
    assert profile.last_login is not None


def test_signup_with_metadata(app):
    with session_scope(app) as s:
        user = sign_up(s, email="firma@example.com", password="secret1", name="Firma Contábil", account_type="escritorio")
        user_id = user.id

    profile = _profile(app, "firma@example.com")
    assert profile.id == user_id
    assert profile.name == "Firma Contábil"
    assert profile.account_type == "escritorio"


def test_unrecognized_account_type_falls_back_to_contador(app):
    with session_scope(app) as s:
        sign_up(s, email="x@example.com", password="secret1", name="Xavier", account_type="gerente")
    assert _profile(app, "x@example.com").account_type == "contador"


def test_exactly_one_profile_per_identity(app):
    with session_scope(app) as s:
        user = sign_up(s, email="one@example.com", password="secret1")
        with pytest.raises(ProvisioningError):
            provision_profile(s, user, {"name": "Again"})

    with session_scope(app) as s:
        assert s.query(Profile).count() == 1


def test_provisioning_failure_fails_signup(app, monkeypatch):
    def _boom(s, user, metadata=None):
        raise ProvisioningError("profile insert failed")

    monkeypatch.setattr(accounts, "provision_profile", _boom)

    with pytest.raises(ProvisioningError):
        with session_scope(app) as s:
            sign_up(s, email="fail@example.com", password="secret1", name="Falha")

    with session_scope(app) as s:
        assert s.query(User).count() == 0
        assert s.query(Profile).count() == 0


def test_duplicate_email_is_rejected(app):
    with session_scope(app) as s:
        sign_up(s, email="dup@example.com", password="secret1")
    with pytest.raises(SignUpError):
        with session_scope(app) as s:
            sign_up(s, email="DUP@example.com", password="secret1")


# ---------- Sign-in ----------
def test_last_login_tracks_most_recent_sign_in(app):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1", name="Ana Lima")

    first = datetime(2024, 1, 10, 9, 0)
    times = [first + timedelta(hours=h) for h in (0, 5, 30)]
    seen = []
    for t in times:
        with session_scope(app) as s:
            sign_in(s, "ana@example.com", "secret1", now=t)
        seen.append(_profile(app, "ana@example.com").last_login)

    assert seen == times
    assert seen == sorted(seen)


def test_sign_in_rejects_bad_credentials(app):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1")
    with session_scope(app) as s:
        with pytest.raises(InvalidCredentials):
            sign_in(s, "ana@example.com", "wrong-pw")
        with pytest.raises(InvalidCredentials):
            sign_in(s, "nobody@example.com", "secret1")

    with session_scope(app) as s:
        failed = s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").all()
        assert sorted(e.entity_id for e in failed) == ["ana@example.com", "nobody@example.com"]


def test_login_route_updates_last_login(app, client):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1")
        s.get(Profile, s.query(User).one().id).last_login = datetime(2000, 1, 1)

    r = client.post("/auth/login", data={"email": "ana@example.com", "password": "secret1"})
    assert r.status_code == 302
    assert _profile(app, "ana@example.com").last_login > datetime(2000, 1, 1)


def test_login_route_wrong_password_shows_message(app, client):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1")
    r = client.post("/auth/login", data={"email": "ana@example.com", "password": "nope123"}, follow_redirects=True)
    assert r.status_code == 200
    assert "E-mail ou senha incorretos." in r.get_data(as_text=True)


# ---------- Register route ----------
def test_register_route_creates_profile(app, client):
    r = client.post(
        "/auth/register",
        data={
            "name": "Escritório Silva",
            "email": "silva@example.com",
            "password": "secret1",
            "confirm_password": "secret1",
            "account_type": "escritorio",
        },
    )
    assert r.status_code == 302
    profile = _profile(app, "silva@example.com")
    assert profile.name == "Escritório Silva"
    assert profile.account_type == "escritorio"


def test_register_route_blocks_invalid_input(app, client):
    r = client.post(
        "/auth/register",
        data={"name": "Al", "email": "not-an-email", "password": "secret1", "confirm_password": "secret2"},
    )
    html = r.get_data(as_text=True)
    assert r.status_code == 200
    assert "Nome deve ter no mínimo 3 caracteres." in html
    assert "E-mail inválido." in html
    assert "As senhas não conferem." in html
    with session_scope(app) as s:
        assert s.query(User).count() == 0


# ---------- Passwords ----------
def test_password_reset_flow(app, client):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1")
    with session_scope(app) as s:
        _, token = request_password_reset(s, "ana@example.com", app.config["SECRET_KEY"])

    r = client.get(f"/auth/reset-password/{token}")
    assert r.status_code == 200

    r = client.post(f"/auth/reset-password/{token}", data={"password": "novasenha", "confirm_password": "novasenha"})
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    # Token is single-use: the password hash it was bound to is gone.
    r = client.get(f"/auth/reset-password/{token}")
    assert r.status_code == 302

    with session_scope(app) as s:
        with pytest.raises(InvalidCredentials):
            sign_in(s, "ana@example.com", "secret1")
        assert sign_in(s, "ana@example.com", "novasenha").email == "ana@example.com"


def test_forgot_password_does_not_disclose_accounts(app, client):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1")
    known = client.post("/auth/forgot-password", data={"email": "ana@example.com"})
    unknown = client.post("/auth/forgot-password", data={"email": "ghost@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert "Verifique sua caixa de entrada." in known.get_data(as_text=True)
    assert "Verifique sua caixa de entrada." in unknown.get_data(as_text=True)


def test_tampered_reset_token_is_rejected(app, client):
    r = client.get("/auth/reset-password/not-a-real-token", follow_redirects=True)
    assert "Link de redefinição inválido." in r.get_data(as_text=True)


def test_update_password_requires_current_password(app, client):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1", name="Ana Lima")
    client.post("/auth/login", data={"email": "ana@example.com", "password": "secret1"})

    token = _csrf(client)
    r = client.post(
        "/profile/password",
        data={"csrf_token": token, "current_password": "wrong11", "new_password": "outra123", "confirm_password": "outra123"},
        follow_redirects=True,
    )
    assert "Senha atual incorreta." in r.get_data(as_text=True)

    r = client.post(
        "/profile/password",
        data={"csrf_token": token, "current_password": "secret1", "new_password": "outra123", "confirm_password": "outra123"},
        follow_redirects=True,
    )
    assert "Senha alterada com sucesso." in r.get_data(as_text=True)
    with session_scope(app) as s:
        assert sign_in(s, "ana@example.com", "outra123").email == "ana@example.com"


def test_profile_name_update(app, client):
    with session_scope(app) as s:
        sign_up(s, email="ana@example.com", password="secret1", name="Ana Lima")
    client.post("/auth/login", data={"email": "ana@example.com", "password": "secret1"})

    r = client.post("/profile", data={"csrf_token": _csrf(client), "name": "Ana Beatriz Lima"}, follow_redirects=True)
    assert r.status_code == 200
    assert "Ana Beatriz Lima" in r.get_data(as_text=True)
    assert _profile(app, "ana@example.com").name == "Ana Beatriz Lima"

    r = client.post("/profile", data={"csrf_token": _csrf(client), "name": "Al"}, follow_redirects=True)
    assert "Nome deve ter no mínimo 3 caracteres." in r.get_data(as_text=True)
    assert _profile(app, "ana@example.com").name == "Ana Beatriz Lima"
