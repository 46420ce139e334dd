"""Demo seed and the shared script engine."""
from sqlalchemy import text

from app.contabil.models import Profile, User
from scripts._db_utils import create_script_engine, script_session
from scripts.init_db import seed_only


def _users(db_url):
    with script_session(db_url) as s:
        return [u.email for u in s.query(User).all()]


def test_seed_creates_demo_account_once(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    monkeypatch.setenv("ENV", "development")
    monkeypatch.delenv("DEMO_EMAIL", raising=False)
    monkeypatch.delenv("DEMO_PASSWORD", raising=False)

    assert seed_only(database_url=db_url, create_tables=True, with_sample_data=True) is True
    assert seed_only(database_url=db_url) is True
    assert _users(db_url) == ["demo@contabil.local"]

    with script_session(db_url) as s:
        profile = s.query(Profile).one()
        assert profile.account_type == "escritorio"
        assert len(profile.clients) == 2
        assert len(profile.tasks) == 4


def test_production_seed_requires_demo_password(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("DEMO_PASSWORD", raising=False)

    assert seed_only(database_url=db_url, create_tables=True) is False
    engine = create_script_engine(db_url)
    try:
        with engine.connect() as conn:
            tables = {row[0] for row in conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))}
    finally:
        engine.dispose()
    assert "users" not in tables

    monkeypatch.setenv("DEMO_PASSWORD", "a-real-secret")
    assert seed_only(database_url=db_url, create_tables=True) is True
    assert _users(db_url) == ["demo@contabil.local"]


def test_script_engine_enforces_foreign_keys(tmp_path):
    engine = create_script_engine(f"sqlite:///{tmp_path/'fk.db'}")
    try:
        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
    finally:
        engine.dispose()
