"""create users, profiles, clients, tasks and audit tables

Revision ID: 3f1a9c2b7d10
Revises:
Create Date: 2026-02-03 15:19:42.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

account_type = sa.Enum("contador", "escritorio", name="account_type")
person_type = sa.Enum("PF", "PJ", name="person_type")
task_type = sa.Enum("imposto", "folha", "declaracao", "outro", name="task_type")
task_status = sa.Enum("pendente", "concluida", "atrasada", name="task_status")


def upgrade() -> None:
    """Create the full schema (idempotent per table)."""
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "profiles" not in existing_tables:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("email", sa.Text(), nullable=False),
            sa.Column("account_type", account_type, nullable=False, server_default="contador"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("last_login", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        )

    if "clients" not in existing_tables:
        op.create_table(
            "clients",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("cpf_cnpj", sa.Text(), nullable=False),
            sa.Column("person_type", person_type, nullable=False, server_default="PF"),
            sa.Column("email", sa.Text(), nullable=True),
            sa.Column("phone", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_clients_user_id", "clients", ["user_id"])
        op.create_index("idx_clients_cpf_cnpj", "clients", ["cpf_cnpj"])

    if "tasks" not in existing_tables:
        op.create_table(
            "tasks",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
            sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
            sa.Column("title", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("task_type", task_type, nullable=False, server_default="outro"),
            sa.Column("due_date", sa.Date(), nullable=False),
            sa.Column("status", task_status, nullable=False, server_default="pendente"),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_tasks_user_id", "tasks", ["user_id"])
        op.create_index("idx_tasks_client_id", "tasks", ["client_id"])
        op.create_index("idx_tasks_status", "tasks", ["status"])
        op.create_index("idx_tasks_due_date", "tasks", ["due_date"])

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
        )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("idx_tasks_due_date", table_name="tasks")
    op.drop_index("idx_tasks_status", table_name="tasks")
    op.drop_index("idx_tasks_client_id", table_name="tasks")
    op.drop_index("idx_tasks_user_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("idx_clients_cpf_cnpj", table_name="clients")
    op.drop_index("idx_clients_user_id", table_name="clients")
    op.drop_table("clients")
    op.drop_table("profiles")
    op.drop_table("users")
    bind = op.get_bind()
    for enum in (task_status, task_type, person_type, account_type):
        enum.drop(bind, checkfirst=True)
