# File: civictrack/models/issue.py
from __future__ import annotations
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import String, Float, Enum, Boolean, JSON, DateTime, ForeignKey, func, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from civictrack.db.base import Base


def _enum_values(enum_cls):
    return [m.value for m in enum_cls]


class IssueCategory(PyEnum):
    pothole = "pothole"
    garbage = "garbage"
    streetlight = "streetlight"
    traffic = "traffic"
    parks = "parks"
    other = "other"

class IssueStatus(PyEnum):
    pending = "pending"
    in_progress = "in-progress"
    resolved = "resolved"
    rejected = "rejected"

# stored by value so "in-progress" is what lands in the column
CategoryType = Enum(IssueCategory, name="issue_category", values_callable=_enum_values)
StatusType = Enum(IssueStatus, name="issue_status", values_callable=_enum_values)

class Issue(Base):
    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str] = mapped_column(String(1000))
    category: Mapped[IssueCategory] = mapped_column(CategoryType, nullable=False)
    status: Mapped[IssueStatus] = mapped_column(StatusType, default=IssueStatus.pending, nullable=False)

    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str] = mapped_column(String(300), nullable=False)

    photos: Mapped[list] = mapped_column(JSON, default=list)
    anonymous: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")

    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    creator: Mapped["User"] = relationship(lazy="joined")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

Index("ix_issues_lat_lng", Issue.lat, Issue.lng)
Index("ix_issues_status_category", Issue.status, Issue.category)
