# File: civictrack/routers/issues.py
import logging
from typing import List, Optional

import requests
from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from sqlalchemy.orm import Session

from civictrack.core.config import settings
from civictrack.core.errors import AppError, InvalidArgument
from civictrack.core.ratelimit import limiter
from civictrack.core.security import get_current_user, get_optional_user
from civictrack.db.session import get_db
from civictrack.models.issue import IssueCategory, IssueStatus
from civictrack.models.user import User
from civictrack.schemas.flag import FlagCreate, FlagOut
from civictrack.schemas.issue import (
    IssueCreate,
    IssueDetailOut,
    IssueOut,
    IssueStatusPatch,
    PaginatedIssuesOut,
    PhotoUploadOut,
)
from civictrack.services import issues as issue_service
from civictrack.services import moderation
from civictrack.services.storage import ALLOWED, MAX_BYTES, MAX_FILES, make_object_key, upload_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issues", tags=["issues"])


def serialize_flag(flag) -> dict:
    return {
        "id": flag.id,
        "issue_id": flag.issue_id,
        "reason": flag.reason.value,
        "description": flag.description,
        "review_status": flag.review_status.value,
        "admin_note": flag.admin_note,
        "reviewed_by_id": flag.reviewed_by_id,
        "reviewed_at": flag.reviewed_at,
        "created_at": flag.created_at,
    }


@router.get("", response_model=PaginatedIssuesOut)
@limiter.limit("60/minute")
def list_issues(
    request: Request,
    db: Session = Depends(get_db),
    category: Optional[IssueCategory] = Query(default=None),
    status: Optional[IssueStatus] = Query(default=None),
    lat: Optional[float] = Query(default=None, ge=-90, le=90),
    lng: Optional[float] = Query(default=None, ge=-180, le=180),
    radius: Optional[float] = Query(default=None, ge=0, description="Kilometres, default 5"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    viewer: Optional[User] = Depends(get_optional_user),
):
    query = issue_service.IssueQuery(category=category, status=status, lat=lat, lng=lng, radius_km=radius)
    hits = issue_service.search_issues(db, query, viewer, default_radius_km=settings.default_radius_km)
    page = hits[offset:offset + limit]
    return {
        "items": [issue_service.serialize_issue(h.issue, viewer, h.distance_km) for h in page],
        "total": len(hits),
        "offset": offset,
        "limit": limit,
    }


@router.post("", response_model=IssueOut, status_code=201)
@limiter.limit("10/minute")
def create_issue(
    request: Request,
    body: IssueCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    issue = issue_service.create_issue(db, current_user, body)
    return issue_service.serialize_issue(issue, current_user)


@router.post("/photos", response_model=PhotoUploadOut, status_code=201)
@limiter.limit("10/minute")
def upload_photos(
    request: Request,
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
):
    if len(files) > MAX_FILES:
        raise InvalidArgument(f"Max {MAX_FILES} images")
    payloads = []
    for f in files:
        if f.content_type not in ALLOWED:
            raise InvalidArgument("Unsupported image type")
        data = f.file.read()
        if len(data) > MAX_BYTES:
            raise InvalidArgument("Image exceeds 2MB")
        payloads.append((f, data))

    urls = []
    for f, data in payloads:
        key = make_object_key(current_user.id, f.filename or "upload.jpg")
        try:
            urls.append(upload_image(data, f.content_type, key))
        except requests.RequestException as e:
            logger.error("Photo upload failed for user %s: %s", current_user.id, e, exc_info=True)
            raise AppError("Photo upload failed")
    return {"urls": urls}


@router.get("/user", response_model=PaginatedIssuesOut)
def my_issues(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    issues = issue_service.list_user_issues(db, current_user)
    return {
        "items": [issue_service.serialize_issue(i, current_user) for i in issues],
        "total": len(issues),
        "offset": 0,
        "limit": len(issues),
    }


@router.get("/{issue_id}", response_model=IssueDetailOut)
def get_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    viewer: Optional[User] = Depends(get_optional_user),
):
    issue = issue_service.get_issue(db, issue_id, viewer)
    return {
        "issue": issue_service.serialize_issue(issue, viewer),
        "timeline": [issue_service.serialize_log(e, issue, viewer) for e in issue_service.timeline(db, issue.id)],
    }


@router.post("/{issue_id}/flag", response_model=FlagOut, status_code=201)
@limiter.limit("20/minute")
def flag_issue(
    request: Request,
    issue_id: int,
    body: FlagCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    flag = moderation.file_flag(db, issue_id, current_user, body.reason, body.description)
    return serialize_flag(flag)


@router.patch("/{issue_id}/status", response_model=IssueOut)
def update_status(
    issue_id: int,
    body: IssueStatusPatch,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    issue = moderation.change_status(
        db, issue_id, body.status, current_user,
        comment=body.comment,
        strict=settings.strict_status_transitions,
    )
    return issue_service.serialize_issue(issue, current_user)


@router.delete("/{issue_id}")
def delete_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    moderation.delete_issue(db, issue_id, current_user)
    return {"ok": True, "message": "Issue deleted successfully"}
