import logging
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_issue, make_user
from civictrack.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from civictrack.models.flag import Flag, FlagReason, FlagReviewStatus
from civictrack.models.issue import Issue, IssueStatus
from civictrack.models.status_log import StatusLog
from civictrack.models.user import UserRole
from civictrack.services import moderation
from civictrack.services.issues import latest_log, timeline


def test_status_change_appends_matching_log(db, alice, admin):
    issue = make_issue(db, alice)
    moderation.change_status(db, issue.id, IssueStatus.in_progress, admin, comment="  crew assigned ")
    updated = moderation.change_status(db, issue.id, "resolved", admin)

    assert updated.status == IssueStatus.resolved
    assert updated.updated_at is not None
    last = latest_log(db, issue.id)
    assert last.status == updated.status
    assert last.actor_id == admin.id
    entries = timeline(db, issue.id)
    assert [e.status for e in entries] == [IssueStatus.resolved, IssueStatus.in_progress, IssueStatus.pending]
    assert entries[1].comment == "crew assigned"


def test_same_status_still_logged(db, alice, admin):
    issue = make_issue(db, alice)
    moderation.change_status(db, issue.id, IssueStatus.pending, admin, comment="still looking")
    assert len(timeline(db, issue.id)) == 2
    assert latest_log(db, issue.id).comment == "still looking"


def test_override_off_expected_path_is_logged(db, alice, admin, caplog):
    issue = make_issue(db, alice)
    moderation.change_status(db, issue.id, IssueStatus.rejected, admin)
    with caplog.at_level(logging.WARNING, logger="civictrack.services.moderation"):
        reopened = moderation.change_status(db, issue.id, IssueStatus.pending, admin)
    assert reopened.status == IssueStatus.pending
    assert any("overrode" in r.getMessage() for r in caplog.records)


def test_strict_mode_rejects_unexpected_transition(db, alice, admin):
    issue = make_issue(db, alice)
    with pytest.raises(InvalidArgument):
        moderation.change_status(db, issue.id, IssueStatus.resolved, admin, strict=True)
    db.expire_all()
    assert db.get(Issue, issue.id).status == IssueStatus.pending
    assert len(timeline(db, issue.id)) == 1

    moderation.change_status(db, issue.id, IssueStatus.in_progress, admin, strict=True)
    moderation.change_status(db, issue.id, IssueStatus.resolved, admin, strict=True)
    assert latest_log(db, issue.id).status == IssueStatus.resolved


def test_expected_transitions_table():
    assert moderation.is_expected_transition(IssueStatus.pending, IssueStatus.in_progress)
    assert moderation.is_expected_transition(IssueStatus.in_progress, IssueStatus.rejected)
    assert not moderation.is_expected_transition(IssueStatus.resolved, IssueStatus.pending)
    assert not moderation.is_expected_transition(IssueStatus.rejected, IssueStatus.in_progress)


def test_non_admin_cannot_change_status(db, alice):
    issue = make_issue(db, alice)
    with pytest.raises(Forbidden):
        moderation.change_status(db, issue.id, IssueStatus.resolved, alice)


def test_unknown_status_value(db, alice, admin):
    issue = make_issue(db, alice)
    with pytest.raises(InvalidArgument):
        moderation.change_status(db, issue.id, "closed", admin)


def test_status_on_missing_issue(db, admin):
    with pytest.raises(NotFound):
        moderation.change_status(db, 12345, IssueStatus.resolved, admin)


def test_rejection_clears_flags(db, alice, bob, admin):
    issue = make_issue(db, alice)
    other = make_issue(db, alice)
    moderation.file_flag(db, issue.id, bob, FlagReason.spam)
    moderation.file_flag(db, issue.id, admin, "inappropriate", "offensive photo")
    moderation.file_flag(db, other.id, bob, FlagReason.duplicate)

    moderation.change_status(db, issue.id, IssueStatus.rejected, admin)

    assert db.query(Flag).filter(Flag.issue_id == issue.id).count() == 0
    assert db.query(Flag).filter(Flag.issue_id == other.id).count() == 1
    assert latest_log(db, issue.id).status == IssueStatus.rejected


def test_resolution_keeps_flags(db, alice, bob, admin):
    issue = make_issue(db, alice)
    moderation.file_flag(db, issue.id, bob, FlagReason.other)
    moderation.change_status(db, issue.id, IssueStatus.resolved, admin)
    assert db.query(Flag).filter(Flag.issue_id == issue.id).count() == 1


def test_delete_issue_cascades(db, alice, bob):
    issue = make_issue(db, alice)
    issue_id = issue.id
    moderation.file_flag(db, issue_id, bob, FlagReason.spam)

    moderation.delete_issue(db, issue_id, alice)

    assert db.query(Issue).filter(Issue.id == issue_id).count() == 0
    assert db.query(StatusLog).filter(StatusLog.issue_id == issue_id).count() == 0
    assert db.query(Flag).filter(Flag.issue_id == issue_id).count() == 0


def test_delete_issue_by_stranger_is_forbidden(db, alice, bob):
    issue = make_issue(db, alice)
    with pytest.raises(Forbidden):
        moderation.delete_issue(db, issue.id, bob)
    assert db.query(Issue).filter(Issue.id == issue.id).count() == 1


def test_admin_can_delete_any_issue(db, alice, admin):
    issue = make_issue(db, alice)
    moderation.delete_issue(db, issue.id, admin)
    assert db.query(Issue).count() == 0


def test_duplicate_flag_conflicts(db, alice, bob):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.spam, "  ad  ")
    assert flag.review_status == FlagReviewStatus.pending
    assert flag.description == "ad"
    with pytest.raises(Conflict):
        moderation.file_flag(db, issue.id, bob, FlagReason.other)
    assert db.query(Flag).count() == 1


def test_flag_missing_issue(db, bob):
    with pytest.raises(NotFound):
        moderation.file_flag(db, 404, bob, FlagReason.spam)


def test_review_is_terminal(db, alice, bob, admin):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.spam)

    reviewed = moderation.review_flag(db, flag.id, "valid", admin, admin_note="confirmed")
    assert reviewed.review_status == FlagReviewStatus.valid
    assert reviewed.admin_note == "confirmed"
    assert reviewed.reviewed_by_id == admin.id
    assert reviewed.reviewed_at is not None

    with pytest.raises(Conflict):
        moderation.review_flag(db, flag.id, "spam", admin)


def test_review_rejects_pending_outcome(db, alice, bob, admin):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.spam)
    with pytest.raises(InvalidArgument):
        moderation.review_flag(db, flag.id, FlagReviewStatus.pending, admin)
    with pytest.raises(InvalidArgument):
        moderation.review_flag(db, flag.id, "maybe", admin)


def test_review_requires_admin(db, alice, bob):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.spam)
    with pytest.raises(Forbidden):
        moderation.review_flag(db, flag.id, "valid", alice)


def test_delete_flag(db, alice, bob, admin):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.spam)
    moderation.delete_flag(db, flag.id, admin)
    with pytest.raises(NotFound):
        moderation.get_flag(db, flag.id)


def test_ban_and_unban(db, alice, admin):
    banned = moderation.set_banned(db, alice.id, True, admin)
    assert banned.is_banned is True
    unbanned = moderation.set_banned(db, alice.id, False, admin)
    assert unbanned.is_banned is False


def test_admin_cannot_ban_self_or_other_admin(db, admin):
    other_admin = make_user(db, "Root", "root@example.com", role=UserRole.admin)
    with pytest.raises(InvalidArgument):
        moderation.set_banned(db, admin.id, True, admin)
    with pytest.raises(Forbidden):
        moderation.set_banned(db, other_admin.id, True, admin)


def test_ban_missing_user(db, admin):
    with pytest.raises(NotFound):
        moderation.set_banned(db, 999, True, admin)


def test_log_order_survives_clock_skew(db, alice, admin):
    issue = make_issue(db, alice)
    moderation.change_status(db, issue.id, IssueStatus.in_progress, admin)
    # app clock behind the database clock
    newest = latest_log(db, issue.id)
    newest.created_at = newest.created_at - timedelta(hours=1)
    db.commit()

    db.expire_all()
    assert latest_log(db, issue.id).status == db.get(Issue, issue.id).status
    assert [e.status for e in timeline(db, issue.id)] == [IssueStatus.in_progress, IssueStatus.pending]


def _failing_commit(db, monkeypatch, before=None):
    real_commit = db.commit

    def commit():
        monkeypatch.setattr(db, "commit", real_commit)
        db.rollback()
        if before:
            before()
            real_commit()
        raise IntegrityError("INSERT INTO flags", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(db, "commit", commit)


def test_flag_on_issue_deleted_mid_request_is_not_found(db, alice, bob, monkeypatch):
    issue_id = make_issue(db, alice).id

    def remove_issue():
        db.query(StatusLog).filter(StatusLog.issue_id == issue_id).delete(synchronize_session=False)
        db.query(Issue).filter(Issue.id == issue_id).delete(synchronize_session=False)

    _failing_commit(db, monkeypatch, before=remove_issue)
    with pytest.raises(NotFound):
        moderation.file_flag(db, issue_id, bob, FlagReason.spam)
    assert db.query(Flag).count() == 0


def test_other_integrity_errors_are_not_conflicts(db, alice, bob, monkeypatch):
    issue_id = make_issue(db, alice).id
    _failing_commit(db, monkeypatch)
    with pytest.raises(IntegrityError):
        moderation.file_flag(db, issue_id, bob, FlagReason.spam)
    assert db.query(Flag).count() == 0
