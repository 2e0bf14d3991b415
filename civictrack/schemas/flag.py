# File: civictrack/schemas/flag.py
from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime

from civictrack.models.flag import FlagReason, FlagReviewStatus
from civictrack.schemas.issue import UserLite


class FlagCreate(BaseModel):
    reason: FlagReason
    description: Optional[str] = Field(default=None, max_length=200)


class FlagReview(BaseModel):
    outcome: Literal["valid", "spam"]
    admin_note: Optional[str] = Field(default=None, max_length=500)


class IssueRef(BaseModel):
    id: int
    title: str


class FlagOut(BaseModel):
    id: int
    issue_id: int
    reason: FlagReason
    description: Optional[str] = None
    review_status: FlagReviewStatus
    admin_note: Optional[str] = None
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    # admin listings only
    flagger: Optional[UserLite] = None
    issue: Optional[IssueRef] = None


class PaginatedFlagsOut(BaseModel):
    items: list[FlagOut]
    total: int
    offset: int
    limit: int
