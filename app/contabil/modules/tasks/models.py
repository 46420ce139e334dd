from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.contabil.constants import DEFAULT_TASK_TYPE, STATUS_PENDENTE, TASK_STATUSES, TASK_TYPES
from app.contabil.models import Base, new_id
from app.contabil.utils import utcnow

if TYPE_CHECKING:
    from app.contabil.models import Profile
    from app.contabil.modules.clients.models import Client


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_user_id", "user_id"),
        Index("idx_tasks_client_id", "client_id"),
        Index("idx_tasks_status", "status"),
        Index("idx_tasks_due_date", "due_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    client_id: Mapped[str | None] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    task_type: Mapped[str] = mapped_column(Enum(*TASK_TYPES, name="task_type"), nullable=False, default=DEFAULT_TASK_TYPE)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(Enum(*TASK_STATUSES, name="task_status"), nullable=False, default=STATUS_PENDENTE)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    owner: Mapped["Profile"] = relationship("Profile", back_populates="tasks")
    client: Mapped["Client | None"] = relationship("Client", back_populates="tasks", lazy="joined")

    @property
    def client_name(self) -> str | None:
        return self.client.name if self.client else None
