# File: civictrack/services/moderation.py
"""Moderation state machine: status transitions, flags and issue removal.

Every operation that touches more than one table commits once, so a reader
never sees a status without its log entry or an issue without its cascade.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from civictrack.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from civictrack.models.flag import Flag, FlagReason, FlagReviewStatus
from civictrack.models.issue import Issue, IssueStatus
from civictrack.models.status_log import StatusLog
from civictrack.models.user import User
from civictrack.services.issues import get_issue

logger = logging.getLogger(__name__)

# Intended flow. Admins may step outside it unless strict mode is on.
EXPECTED_TRANSITIONS: dict[IssueStatus, frozenset[IssueStatus]] = {
    IssueStatus.pending: frozenset({IssueStatus.in_progress, IssueStatus.rejected}),
    IssueStatus.in_progress: frozenset({IssueStatus.resolved, IssueStatus.rejected}),
    IssueStatus.resolved: frozenset(),
    IssueStatus.rejected: frozenset(),
}


def is_expected_transition(current: IssueStatus, target: IssueStatus) -> bool:
    return target in EXPECTED_TRANSITIONS[current]


def _require_admin(actor: Optional[User]) -> None:
    if not actor or not actor.is_admin:
        raise Forbidden("Admin access required")


def _coerce_status(value) -> IssueStatus:
    if isinstance(value, IssueStatus):
        return value
    try:
        return IssueStatus(value)
    except ValueError:
        raise InvalidArgument(f"Invalid status: {value!r}")


def delete_flags_for_issue(db: Session, issue_id: int) -> int:
    """Remove every flag of an issue. Does not commit."""
    return (
        db.query(Flag)
        .filter(Flag.issue_id == issue_id)
        .delete(synchronize_session=False)
    )


def change_status(db: Session, issue_id: int, target, actor: User,
                  comment: Optional[str] = None, strict: bool = False) -> Issue:
    """Move an issue to ``target`` and append the matching log entry.

    Rejection also clears the issue's flags. With ``strict`` set, only the
    transitions in EXPECTED_TRANSITIONS are accepted.
    """
    _require_admin(actor)
    target = _coerce_status(target)
    issue = get_issue(db, issue_id, actor)
    current = issue.status

    if not is_expected_transition(current, target):
        if strict:
            raise InvalidArgument(
                f"Cannot change status from {current.value} to {target.value}"
            )
        logger.warning(
            "Admin %s overrode status of issue %s: %s -> %s",
            actor.id, issue.id, current.value, target.value,
        )

    comment = (comment or "").strip() or None
    now = datetime.now(timezone.utc)
    try:
        issue.status = target
        issue.updated_at = now
        db.add(StatusLog(issue_id=issue.id, status=target, comment=comment, actor_id=actor.id, created_at=now))
        removed = 0
        if target == IssueStatus.rejected:
            removed = delete_flags_for_issue(db, issue.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(issue)
    logger.info("Issue %s status %s -> %s by admin %s", issue.id, current.value, target.value, actor.id)
    if removed:
        logger.info("Removed %d flag(s) from rejected issue %s", removed, issue.id)
    return issue


def delete_issue(db: Session, issue_id: int, actor: User) -> None:
    """Delete an issue with its status log and flags. Author or admin only."""
    issue = get_issue(db, issue_id, actor)
    if issue.created_by_id != actor.id and not actor.is_admin:
        raise Forbidden("Not authorized to delete this issue")
    try:
        delete_flags_for_issue(db, issue.id)
        db.query(StatusLog).filter(StatusLog.issue_id == issue.id).delete(synchronize_session=False)
        db.delete(issue)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Issue %s deleted by user %s", issue_id, actor.id)


# ---------- flags ----------

def file_flag(db: Session, issue_id: int, flagger: User, reason,
              description: Optional[str] = None) -> Flag:
    """Record ``flagger``'s report against an issue.

    The (user, issue) unique constraint decides duplicates, so two
    concurrent attempts cannot both succeed. Other integrity failures are
    not reported as duplicates.
    """
    issue = get_issue(db, issue_id, flagger)
    flagger_id = flagger.id
    try:
        reason = reason if isinstance(reason, FlagReason) else FlagReason(reason)
    except ValueError:
        raise InvalidArgument(f"Invalid flag reason: {reason!r}")
    flag = Flag(
        user_id=flagger.id,
        issue_id=issue.id,
        reason=reason,
        description=(description or "").strip() or None,
        review_status=FlagReviewStatus.pending,
    )
    db.add(flag)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        duplicate = (
            db.query(Flag.id)
            .filter(Flag.user_id == flagger_id, Flag.issue_id == issue_id)
            .first()
        )
        if duplicate:
            raise Conflict("Issue already flagged by this user")
        # issue deleted between the lookup and the insert
        if not db.query(Issue.id).filter(Issue.id == issue_id).first():
            raise NotFound("Issue not found")
        raise
    db.refresh(flag)
    logger.info("User %s flagged issue %s (%s)", flagger.id, issue.id, reason.value)
    return flag


def get_flag(db: Session, flag_id: int) -> Flag:
    flag = db.query(Flag).filter(Flag.id == flag_id).first()
    if not flag:
        raise NotFound("Flag not found")
    return flag


def review_flag(db: Session, flag_id: int, outcome, admin: User,
                admin_note: Optional[str] = None) -> Flag:
    _require_admin(admin)
    try:
        outcome = outcome if isinstance(outcome, FlagReviewStatus) else FlagReviewStatus(outcome)
    except ValueError:
        raise InvalidArgument(f"Invalid review outcome: {outcome!r}")
    if outcome == FlagReviewStatus.pending:
        raise InvalidArgument("Review outcome must be valid or spam")

    flag = get_flag(db, flag_id)
    if flag.review_status != FlagReviewStatus.pending:
        raise Conflict("Flag has already been reviewed")

    flag.review_status = outcome
    flag.admin_note = (admin_note or "").strip() or None
    flag.reviewed_by_id = admin.id
    flag.reviewed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(flag)
    logger.info("Flag %s reviewed as %s by admin %s", flag.id, outcome.value, admin.id)
    return flag


def delete_flag(db: Session, flag_id: int, admin: User) -> None:
    _require_admin(admin)
    flag = get_flag(db, flag_id)
    db.delete(flag)
    db.commit()
    logger.info("Flag %s deleted by admin %s", flag_id, admin.id)


# ---------- users ----------

def set_banned(db: Session, user_id: int, banned: bool, admin: User) -> User:
    """Ban or unban a user. Admins cannot ban themselves or other admins."""
    _require_admin(admin)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    if banned:
        if user.id == admin.id:
            raise InvalidArgument("You cannot ban yourself")
        if user.is_admin:
            raise Forbidden("Administrators cannot be banned")
    user.is_banned = banned
    db.commit()
    db.refresh(user)
    logger.info("User %s %s by admin %s", user.id, "banned" if banned else "unbanned", admin.id)
    return user
