# File: civictrack/models/status_log.py
from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, func, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from civictrack.db.base import Base
from civictrack.models.issue import IssueStatus, StatusType

class StatusLog(Base):
    """One row per status an issue has held; never updated after insert."""
    __tablename__ = "issue_status_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[IssueStatus] = mapped_column(StatusType, nullable=False)
    comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor: Mapped["User"] = relationship(lazy="joined")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

Index("ix_issue_status_logs_issue_created", StatusLog.issue_id, StatusLog.created_at)
