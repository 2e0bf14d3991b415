# File: civictrack/models/flag.py
from __future__ import annotations
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import String, DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from civictrack.db.base import Base

class FlagReason(PyEnum):
    inappropriate = "inappropriate"
    spam = "spam"
    duplicate = "duplicate"
    other = "other"

class FlagReviewStatus(PyEnum):
    pending = "pending"
    valid = "valid"
    spam = "spam"

class Flag(Base):
    __tablename__ = "flags"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True, nullable=False)
    reason: Mapped[FlagReason] = mapped_column(Enum(FlagReason, name="flag_reason"), nullable=False)
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)

    review_status: Mapped[FlagReviewStatus] = mapped_column(
        Enum(FlagReviewStatus, name="flag_review_status"),
        default=FlagReviewStatus.pending,
        nullable=False,
        index=True,
    )
    admin_note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reviewed_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user: Mapped["User"] = relationship(foreign_keys=[user_id], lazy="joined")
    issue: Mapped["Issue"] = relationship(lazy="joined")

    __table_args__ = (UniqueConstraint("user_id", "issue_id", name="uq_flag_user_issue"),)
