# File: civictrack/schemas/issue.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from civictrack.models.issue import IssueCategory, IssueStatus

MAX_PHOTOS = 10


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: str = Field(min_length=1, max_length=300)

    @field_validator("address")
    @classmethod
    def _address_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Address is required")
        return v


class IssueCreate(BaseModel):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=10, max_length=1000)
    category: IssueCategory
    location: Location
    photos: List[str] = Field(default_factory=list, max_length=MAX_PHOTOS)
    anonymous: bool = False

    @field_validator("title", "description")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class UserLite(BaseModel):
    """Public view of an issue's author or a log entry's actor."""
    id: int
    name: str


class IssueOut(BaseModel):
    id: int
    title: str
    description: str
    category: IssueCategory
    status: IssueStatus
    location: Location
    photos: List[str] = []
    anonymous: bool = False

    # omitted for anonymous issues unless the viewer is an admin
    creator: Optional[UserLite] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    # only set when the query supplied a center point
    distance_km: Optional[float] = None


class StatusLogOut(BaseModel):
    id: int
    status: IssueStatus
    comment: Optional[str] = None
    actor: Optional[UserLite] = None
    created_at: datetime


class IssueDetailOut(BaseModel):
    issue: IssueOut
    timeline: List[StatusLogOut]


class IssueStatusPatch(BaseModel):
    status: IssueStatus
    comment: Optional[str] = Field(default=None, max_length=500)


class PaginatedIssuesOut(BaseModel):
    items: list[IssueOut]
    total: int
    offset: int
    limit: int


class PhotoUploadOut(BaseModel):
    urls: List[str]
