"""
Task definitions and per-account completions.

`TaskCompletion` carries UNIQUE (account_id, task_id); claiming inserts with
`ON CONFLICT DO NOTHING RETURNING` so a duplicate claim is detected by the
database, never by a prior read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from gigvault.core.database.base import Base, IdMixin, TimestampMixin


class TaskDefinition(Base, IdMixin, TimestampMixin):
    __tablename__ = "tasks"
    __table_args__ = (CheckConstraint("reward >= 0", name="reward_non_negative"),)

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    reward: Mapped[int] = mapped_column(BigInteger, nullable=False)

    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )

    def __repr__(self) -> str:
        return f"<TaskDefinition(id={self.id}, title={self.title!r}, reward={self.reward})>"


class TaskCompletion(Base, IdMixin):
    __tablename__ = "task_completions"
    __table_args__ = (
        UniqueConstraint("account_id", "task_id", name="uq_task_completion_account_task"),
    )

    account_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    task_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )

    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
