from __future__ import annotations

from typing import TYPE_CHECKING

from app.contabil.audit import record_event
from app.contabil.authz import ensure_owner, owned
from app.contabil.constants import MIN_CLIENT_NAME, MIN_CPF_CNPJ, PERSON_PF, PERSON_TYPES
from app.contabil.modules.clients.models import Client
from app.contabil.utils import clean, clean_or_none, is_valid_email

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.contabil.context import AuthContext


CLIENT_FIELDS = ("name", "cpf_cnpj", "person_type", "email", "phone")


def payload_from_form(form) -> dict:
    return {k: form.get(k) for k in CLIENT_FIELDS}


def validate_client_payload(payload: dict) -> list[str]:
    """Validate client creation/update payload. Returns list of errors."""
    errors = []
    if len(clean(payload.get("name"))) < MIN_CLIENT_NAME:
        errors.append(f"Nome deve ter no mínimo {MIN_CLIENT_NAME} caracteres.")
    if len(clean(payload.get("cpf_cnpj"))) < MIN_CPF_CNPJ:
        errors.append("CPF/CNPJ inválido.")
    person_type = clean(payload.get("person_type")) or PERSON_PF
    if person_type not in PERSON_TYPES:
        errors.append(f"Tipo de pessoa inválido. Use um de: {', '.join(PERSON_TYPES)}")
    email = clean(payload.get("email"))
    if email and not is_valid_email(email):
        errors.append("E-mail inválido.")
    return errors


def _values(payload: dict) -> dict:
    return {
        "name": clean(payload.get("name")),
        "cpf_cnpj": clean(payload.get("cpf_cnpj")),
        "person_type": clean(payload.get("person_type")) or PERSON_PF,
        "email": clean_or_none(payload.get("email")),
        "phone": clean_or_none(payload.get("phone")),
    }


def search_clients(s: "Session", ctx: "AuthContext", query: str | None = None) -> list[Client]:
    """
    Caller's clients ordered by name. `query` matches the name (case-insensitive)
    or any part of the CPF/CNPJ as typed.

    Matching runs in Python: SQLite's lower() only folds ASCII, so "JOÃO" would
    never match "joão" in SQL.
    """
    clients = owned(s, Client, ctx).order_by(Client.name.asc()).all()
    term = clean(query)
    if not term:
        return clients
    folded = term.casefold()
    return [c for c in clients if folded in c.name.casefold() or term in c.cpf_cnpj]


def count_clients(s: "Session", ctx: "AuthContext") -> int:
    return owned(s, Client, ctx).count()


def create_client(s: "Session", ctx: "AuthContext", payload: dict) -> Client:
    client = Client(user_id=ctx.profile_id, **_values(payload))
    s.add(client)
    s.flush()

    record_event(
        s,
        actor=ctx.user,
        action="client.create",
        entity_type="Client",
        entity_id=client.id,
        metadata={"name": client.name, "person_type": client.person_type},
    )
    return client


def update_client(s: "Session", ctx: "AuthContext", client: Client, payload: dict) -> Client:
    ensure_owner(client, ctx)
    changes = {}
    for field, new in _values(payload).items():
        old = getattr(client, field)
        if new != old:
            changes[field] = {"old": old, "new": new}
            setattr(client, field, new)

    record_event(
        s,
        actor=ctx.user,
        action="client.edit",
        entity_type="Client",
        entity_id=client.id,
        metadata={"name": client.name, "changes": changes},
    )
    return client


def delete_client(s: "Session", ctx: "AuthContext", client: Client) -> None:
    """Delete a client. Its tasks stay, with client_id cleared."""
    ensure_owner(client, ctx)
    # Loaded tasks get client_id nulled by the ORM on flush; the FK does the same in SQL.
    detached = len(client.tasks)
    record_event(
        s,
        actor=ctx.user,
        action="client.delete",
        entity_type="Client",
        entity_id=client.id,
        metadata={"name": client.name, "tasks_detached": detached},
    )
    s.delete(client)
    s.flush()
