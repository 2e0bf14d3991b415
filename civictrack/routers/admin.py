# File: civictrack/routers/admin.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from civictrack.core.config import settings
from civictrack.core.security import require_admin
from civictrack.db.session import get_db
from civictrack.models.flag import Flag, FlagReason, FlagReviewStatus
from civictrack.models.issue import Issue, IssueCategory, IssueStatus
from civictrack.models.user import User, UserRole
from civictrack.schemas.flag import FlagOut, FlagReview, PaginatedFlagsOut
from civictrack.schemas.issue import IssueOut, IssueStatusPatch, PaginatedIssuesOut
from civictrack.schemas.user import PaginatedUsersOut, UserOut
from civictrack.routers.issues import serialize_flag
from civictrack.services import issues as issue_service
from civictrack.services import moderation

router = APIRouter(prefix="/admin", tags=["admin"])


def range_to_dt(range_key: str):
    now = datetime.now(timezone.utc)
    if range_key == "today": return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if range_key == "7d": return now - timedelta(days=7)
    if range_key == "30d": return now - timedelta(days=30)
    if range_key == "90d": return now - timedelta(days=90)
    if range_key == "year": return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


def _counts(rows, enum_cls) -> dict[str, int]:
    out = {m.value: 0 for m in enum_cls}
    for key, n in rows:
        out[key.value if hasattr(key, "value") else str(key)] = n
    return out


def _admin_flag(flag: Flag) -> dict:
    data = serialize_flag(flag)
    data["flagger"] = {"id": flag.user.id, "name": flag.user.name} if flag.user else None
    data["issue"] = {"id": flag.issue.id, "title": flag.issue.title} if flag.issue else None
    return data


def _user_row(u: User, issue_count: int = 0) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role.value,
        "is_banned": u.is_banned,
        "created_at": u.created_at,
        "last_login": u.last_login,
        "issue_count": issue_count,
    }


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    by_status = _counts(db.query(Issue.status, func.count(Issue.id)).group_by(Issue.status).all(), IssueStatus)
    by_category = _counts(db.query(Issue.category, func.count(Issue.id)).group_by(Issue.category).all(), IssueCategory)
    by_reason = _counts(db.query(Flag.reason, func.count(Flag.id)).group_by(Flag.reason).all(), FlagReason)

    recent = db.query(Issue).order_by(Issue.created_at.desc(), Issue.id.desc()).limit(5).all()
    return {
        "issues": {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_category": by_category,
        },
        "users": {
            "total": db.query(func.count(User.id)).scalar(),
            "admins": db.query(func.count(User.id)).filter(User.role == UserRole.admin).scalar(),
            "banned": db.query(func.count(User.id)).filter(User.is_banned.is_(True)).scalar(),
        },
        "flags": {
            "total": sum(by_reason.values()),
            "pending": db.query(func.count(Flag.id)).filter(Flag.review_status == FlagReviewStatus.pending).scalar(),
            "by_reason": by_reason,
        },
        "recent_issues": [issue_service.serialize_issue(i, admin) for i in recent],
    }


@router.get("/analytics")
def analytics(
    period: str = Query("7d", pattern="^(today|7d|30d|90d|year|all)$"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    since = range_to_dt(period)
    issues_q = db.query(Issue)
    flags_q = db.query(Flag)
    if since:
        issues_q = issues_q.filter(Issue.created_at >= since)
        flags_q = flags_q.filter(Flag.created_at >= since)

    cat_q = db.query(Issue.category, func.count(Issue.id))
    if since:
        cat_q = cat_q.filter(Issue.created_at >= since)
    by_category = _counts(cat_q.group_by(Issue.category).all(), IssueCategory)

    return {
        "period": period,
        "since": since,
        "issues_created": issues_q.count(),
        "resolved": issues_q.filter(Issue.status == IssueStatus.resolved).count(),
        "rejected": issues_q.filter(Issue.status == IssueStatus.rejected).count(),
        "by_category": [
            {"category": c, "count": n}
            for c, n in sorted(by_category.items(), key=lambda x: x[1], reverse=True)
        ],
        "flags_filed": flags_q.count(),
    }


@router.get("/users", response_model=PaginatedUsersOut)
def list_users(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    search: Optional[str] = Query(default=None),
    banned: Optional[bool] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    q = db.query(User)
    if search:
        term = f"%{search}%"
        q = q.filter(or_(User.email.ilike(term), User.name.ilike(term)))
    if banned is not None:
        q = q.filter(User.is_banned.is_(banned))
    total = q.count()
    users = q.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit).all()

    counts: dict[int, int] = {}
    if users:
        rows = (
            db.query(Issue.created_by_id, func.count(Issue.id))
            .filter(Issue.created_by_id.in_([u.id for u in users]))
            .group_by(Issue.created_by_id)
            .all()
        )
        counts = {uid: n for uid, n in rows}
    return {
        "items": [_user_row(u, counts.get(u.id, 0)) for u in users],
        "total": total,
        "offset": offset,
        "limit": limit,
    }


@router.patch("/users/{user_id}/ban", response_model=UserOut)
def ban_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = moderation.set_banned(db, user_id, True, admin)
    return _user_row(user)


@router.patch("/users/{user_id}/unban", response_model=UserOut)
def unban_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = moderation.set_banned(db, user_id, False, admin)
    return _user_row(user)


@router.get("/issues", response_model=PaginatedIssuesOut)
def list_issues(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    status: Optional[IssueStatus] = Query(default=None),
    category: Optional[IssueCategory] = Query(default=None),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    q = db.query(Issue)
    if status:
        q = q.filter(Issue.status == status)
    if category:
        q = q.filter(Issue.category == category)
    if search:
        term = f"%{search}%"
        q = q.filter(
            Issue.title.ilike(term)
            | Issue.description.ilike(term)
            | Issue.address.ilike(term)
        )
    total = q.count()
    issues = q.order_by(Issue.created_at.desc(), Issue.id.desc()).offset(offset).limit(limit).all()
    return {
        "items": [issue_service.serialize_issue(i, admin) for i in issues],
        "total": total,
        "offset": offset,
        "limit": limit,
    }


@router.patch("/issues/{issue_id}/status", response_model=IssueOut)
def update_issue_status(
    issue_id: int,
    body: IssueStatusPatch,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    issue = moderation.change_status(
        db, issue_id, body.status, admin,
        comment=body.comment,
        strict=settings.strict_status_transitions,
    )
    return issue_service.serialize_issue(issue, admin)


@router.delete("/issues/{issue_id}")
def delete_issue(issue_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    moderation.delete_issue(db, issue_id, admin)
    return {"ok": True, "message": "Issue deleted successfully"}


@router.get("/flags", response_model=PaginatedFlagsOut)
def list_flags(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    review_status: Optional[FlagReviewStatus] = Query(default=None),
    reason: Optional[FlagReason] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    q = db.query(Flag)
    if review_status:
        q = q.filter(Flag.review_status == review_status)
    if reason:
        q = q.filter(Flag.reason == reason)
    total = q.count()
    flags = q.order_by(Flag.created_at.desc(), Flag.id.desc()).offset(offset).limit(limit).all()
    return {
        "items": [_admin_flag(f) for f in flags],
        "total": total,
        "offset": offset,
        "limit": limit,
    }


@router.patch("/flags/{flag_id}/review", response_model=FlagOut)
def review_flag(
    flag_id: int,
    body: FlagReview,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    flag = moderation.review_flag(db, flag_id, body.outcome, admin, admin_note=body.admin_note)
    return _admin_flag(flag)


@router.delete("/flags/{flag_id}")
def delete_flag(flag_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    moderation.delete_flag(db, flag_id, admin)
    return {"ok": True}
