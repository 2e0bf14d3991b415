# File: civictrack/services/issues.py
"""Issue store operations: creation, the geo query engine, and serialization.

Status changes and deletion live in ``civictrack.services.moderation``.
"""
import logging
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from civictrack.core.errors import Forbidden, InvalidArgument, NotFound
from civictrack.models.issue import Issue, IssueCategory, IssueStatus
from civictrack.models.status_log import StatusLog
from civictrack.models.user import User
from civictrack.schemas.issue import IssueCreate
from civictrack.services.geo import bounding_box, haversine_km

logger = logging.getLogger(__name__)


@dataclass
class IssueQuery:
    category: Optional[IssueCategory] = None
    status: Optional[IssueStatus] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: Optional[float] = None

    @property
    def has_center(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass
class IssueHit:
    issue: Issue
    distance_km: Optional[float] = None


def _is_admin(viewer: Optional[User]) -> bool:
    return bool(viewer and viewer.is_admin)


def visible_issues(db: Session, viewer: Optional[User]):
    """Base query of issues the viewer may see.

    Issues written by banned users are hidden from everyone but admins.
    """
    q = db.query(Issue)
    if not _is_admin(viewer):
        q = q.join(User, User.id == Issue.created_by_id).filter(User.is_banned.is_(False))
    return q


def get_issue(db: Session, issue_id: int, viewer: Optional[User] = None) -> Issue:
    issue = visible_issues(db, viewer).filter(Issue.id == issue_id).first()
    if not issue:
        raise NotFound("Issue not found")
    return issue


def search_issues(db: Session, query: IssueQuery, viewer: Optional[User] = None,
                  default_radius_km: float = 5.0) -> list[IssueHit]:
    """Filter issues by category/status and, when a center is given, by distance.

    Without a center the result is newest first. With a center, candidates are
    narrowed by a bounding box, kept when within the radius, and ordered
    nearest first (newest first among equal distances).
    """
    if (query.lat is None) != (query.lng is None):
        raise InvalidArgument("lat and lng must be supplied together")

    q = visible_issues(db, viewer)
    if query.category:
        q = q.filter(Issue.category == query.category)
    if query.status:
        q = q.filter(Issue.status == query.status)

    if not query.has_center:
        issues = q.order_by(Issue.created_at.desc(), Issue.id.desc()).all()
        return [IssueHit(i) for i in issues]

    radius = default_radius_km if query.radius_km is None else query.radius_km
    if radius < 0:
        raise InvalidArgument("radius must not be negative")

    box = bounding_box(query.lat, query.lng, radius)
    q = q.filter(Issue.lat >= box.min_lat, Issue.lat <= box.max_lat)
    if box.lng_ranges is not None:
        q = q.filter(or_(*[and_(Issue.lng >= lo, Issue.lng <= hi) for lo, hi in box.lng_ranges]))

    hits = []
    for issue in q.order_by(Issue.created_at.desc(), Issue.id.desc()).all():
        d = haversine_km(query.lat, query.lng, issue.lat, issue.lng)
        if d <= radius:
            hits.append(IssueHit(issue, d))
    # stable sort keeps newest-first among ties
    hits.sort(key=lambda h: h.distance_km)
    return hits


def list_user_issues(db: Session, user: User) -> list[Issue]:
    return (
        db.query(Issue)
        .filter(Issue.created_by_id == user.id)
        .order_by(Issue.created_at.desc(), Issue.id.desc())
        .all()
    )


def create_issue(db: Session, author: User, payload: IssueCreate) -> Issue:
    """Create an issue and its initial pending log entry in one transaction."""
    if author.is_banned:
        raise Forbidden("Your account has been banned")
    issue = Issue(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        status=IssueStatus.pending,
        lat=payload.location.lat,
        lng=payload.location.lng,
        address=payload.location.address,
        photos=list(payload.photos),
        anonymous=payload.anonymous,
        created_by_id=author.id,
    )
    try:
        db.add(issue)
        db.flush()
        db.add(StatusLog(issue_id=issue.id, status=IssueStatus.pending, actor_id=author.id,
                         created_at=datetime.now(timezone.utc)))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(issue)
    logger.info("Issue %s created by user %s (%s)", issue.id, author.id, issue.category.value)
    return issue


def timeline(db: Session, issue_id: int) -> list[StatusLog]:
    """Status log of an issue, newest first (log ids only grow)."""
    return (
        db.query(StatusLog)
        .filter(StatusLog.issue_id == issue_id)
        .order_by(StatusLog.id.desc())
        .all()
    )


def latest_log(db: Session, issue_id: int) -> Optional[StatusLog]:
    return (
        db.query(StatusLog)
        .filter(StatusLog.issue_id == issue_id)
        .order_by(StatusLog.id.desc())
        .first()
    )


# ---------- serialization ----------

def _user_lite(user: Optional[User]) -> Optional[dict]:
    if not user:
        return None
    return {"id": user.id, "name": user.name}


def _hide_author(issue: Issue, viewer: Optional[User]) -> bool:
    return issue.anonymous and not _is_admin(viewer)


def serialize_issue(issue: Issue, viewer: Optional[User] = None,
                    distance_km: Optional[float] = None) -> dict:
    return {
        "id": issue.id,
        "title": issue.title,
        "description": issue.description,
        "category": issue.category.value,
        "status": issue.status.value,
        "location": {"lat": issue.lat, "lng": issue.lng, "address": issue.address},
        "photos": list(issue.photos or []),
        "anonymous": issue.anonymous,
        "creator": None if _hide_author(issue, viewer) else _user_lite(issue.creator),
        "created_at": issue.created_at,
        "updated_at": issue.updated_at,
        "distance_km": round(distance_km, 3) if distance_km is not None else None,
    }


def serialize_log(entry: StatusLog, issue: Issue, viewer: Optional[User] = None) -> dict:
    actor = entry.actor
    # the author's own entries would reveal who filed an anonymous issue
    if actor and actor.id == issue.created_by_id and _hide_author(issue, viewer):
        actor = None
    return {
        "id": entry.id,
        "status": entry.status.value,
        "comment": entry.comment,
        "actor": _user_lite(actor),
        "created_at": entry.created_at,
    }
