"""
Seed a demo accountant (idempotent).

Goes through the regular sign-up path so the profile is provisioned exactly as
for a real user. Does NOT overwrite an existing account's password.

Usage:
  python scripts/init_db.py [--create-tables] [--with-sample-data]
"""

import argparse
import os
import sys
from datetime import timedelta
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.contabil.accounts import sign_up  # noqa: E402
from app.contabil.models import Base, User  # noqa: E402
from app.contabil.modules.clients.models import Client  # noqa: E402
from app.contabil.modules.tasks.models import Task  # noqa: E402
from app.contabil.status import local_today  # noqa: E402
from scripts._db_utils import create_script_engine, database_url_from_env, script_session  # noqa: E402


def _seed_sample_data(s, user: User) -> None:
    if s.query(Client).filter(Client.user_id == user.id).first() is not None:
        return
    today = local_today(os.environ.get("APP_TIMEZONE"))
    acme = Client(user_id=user.id, name="Acme Comércio Ltda", cpf_cnpj="12.345.678/0001-90", person_type="PJ", email="fiscal@acme.com.br")
    maria = Client(user_id=user.id, name="Maria Souza", cpf_cnpj="123.456.789-09", person_type="PF", phone="(11) 99999-0000")
    s.add_all([acme, maria])
    s.flush()
    s.add_all(
        [
            Task(user_id=user.id, client_id=maria.id, title="IRPF 2024", task_type="declaracao", due_date=today - timedelta(days=1)),
            Task(user_id=user.id, client_id=acme.id, title="DAS Simples Nacional", task_type="imposto", due_date=today),
            Task(user_id=user.id, client_id=acme.id, title="Folha de pagamento", task_type="folha", due_date=today + timedelta(days=5)),
            Task(user_id=user.id, title="Revisar plano de contas", task_type="outro", due_date=today + timedelta(days=10), status="concluida"),
        ]
    )


def seed_only(*, database_url: str | None = None, create_tables: bool = False, with_sample_data: bool = False) -> bool:
    """Returns False when the seed was skipped."""
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and not os.environ.get("DEMO_PASSWORD"):
        print("Skipping demo account seed: DEMO_PASSWORD not set in production.")
        return False

    email = (os.environ.get("DEMO_EMAIL") or "demo@contabil.local").strip().lower()
    password = os.environ.get("DEMO_PASSWORD") or "change-me"
    name = (os.environ.get("DEMO_NAME") or "Conta Demonstração").strip()

    db_url = (database_url or database_url_from_env()).strip()

    if create_tables:
        engine = create_script_engine(db_url)
        Base.metadata.create_all(bind=engine)
        engine.dispose()

    with script_session(db_url) as s:
        user = s.query(User).filter(User.email == email).one_or_none()
        if user is None:
            user = sign_up(s, email=email, password=password, name=name, account_type="escritorio")
            print(f"Created demo account: {email}")
        else:
            print(f"Demo account already exists: {email} (password unchanged)")
        if with_sample_data:
            _seed_sample_data(s, user)

    print("Initialized database (seed_only).")
    print("Demo password: (from DEMO_PASSWORD)")
    return True


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--create-tables", action="store_true", help="Create tables directly (dev only; prod uses alembic)")
    parser.add_argument("--with-sample-data", action="store_true", help="Add sample clients and tasks to the demo account")
    args = parser.parse_args()
    seed_only(database_url=None, create_tables=args.create_tables, with_sample_data=args.with_sample_data)


if __name__ == "__main__":
    main()
