from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.contabil.constants import PERSON_PF, PERSON_TYPES
from app.contabil.models import Base, new_id
from app.contabil.utils import utcnow

if TYPE_CHECKING:
    from app.contabil.models import Profile
    from app.contabil.modules.tasks.models import Task


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        Index("idx_clients_user_id", "user_id"),
        Index("idx_clients_cpf_cnpj", "cpf_cnpj"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    # CPF (PF) or CNPJ (PJ), stored as typed
    cpf_cnpj: Mapped[str] = mapped_column(Text, nullable=False)
    person_type: Mapped[str] = mapped_column(Enum(*PERSON_TYPES, name="person_type"), nullable=False, default=PERSON_PF)

    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    owner: Mapped["Profile"] = relationship("Profile", back_populates="clients")
    # Deleting a client clears Task.client_id (ON DELETE SET NULL); tasks survive.
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="client")
