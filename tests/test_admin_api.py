from conftest import auth_headers, make_issue, make_user
from civictrack.models.issue import IssueStatus
from civictrack.services import moderation
from civictrack.models.flag import FlagReason
from civictrack.models.user import UserRole


def test_admin_routes_require_admin(client, alice):
    assert client.get("/admin/dashboard").status_code == 401
    resp = client.get("/admin/dashboard", headers=auth_headers(alice))
    assert resp.status_code == 403
    assert resp.json() == {"code": "forbidden", "message": "Admin access required"}


def test_dashboard_counts(client, db, alice, bob, admin):
    first = make_issue(db, alice, category="garbage")
    make_issue(db, bob)
    moderation.change_status(db, first.id, IssueStatus.in_progress, admin)
    moderation.file_flag(db, first.id, bob, FlagReason.spam)
    make_user(db, "Carol", "carol@example.com", banned=True)

    body = client.get("/admin/dashboard", headers=auth_headers(admin)).json()
    assert body["issues"]["total"] == 2
    assert body["issues"]["by_status"] == {"pending": 1, "in-progress": 1, "resolved": 0, "rejected": 0}
    assert body["issues"]["by_category"]["garbage"] == 1
    assert body["issues"]["by_category"]["pothole"] == 1
    assert body["users"] == {"total": 4, "admins": 1, "banned": 1}
    assert body["flags"]["total"] == 1
    assert body["flags"]["pending"] == 1
    assert body["flags"]["by_reason"]["spam"] == 1
    assert len(body["recent_issues"]) == 2


def test_analytics_period(client, db, alice, admin):
    make_issue(db, alice)
    body = client.get("/admin/analytics", params={"period": "all"}, headers=auth_headers(admin)).json()
    assert body["period"] == "all"
    assert body["since"] is None
    assert body["issues_created"] == 1
    assert body["by_category"][0] == {"category": "pothole", "count": 1}

    bad = client.get("/admin/analytics", params={"period": "decade"}, headers=auth_headers(admin))
    assert bad.status_code == 400


def test_list_users_with_issue_counts(client, db, alice, bob, admin):
    make_issue(db, alice)
    make_issue(db, alice)
    body = client.get("/admin/users", params={"search": "ali"}, headers=auth_headers(admin)).json()
    assert body["total"] == 1
    row = body["items"][0]
    assert row["email"] == "alice@example.com"
    assert row["issue_count"] == 2
    assert row["role"] == "user"


def test_ban_blocks_user_and_hides_their_issues(client, db, alice, admin):
    issue = make_issue(db, alice)

    resp = client.patch(f"/admin/users/{alice.id}/ban", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["is_banned"] is True

    assert client.get("/auth/me", headers=auth_headers(alice)).status_code == 403
    assert client.get(f"/issues/{issue.id}").status_code == 404
    banned = client.get("/admin/users", params={"banned": True}, headers=auth_headers(admin)).json()
    assert [u["id"] for u in banned["items"]] == [alice.id]

    resp = client.patch(f"/admin/users/{alice.id}/unban", headers=auth_headers(admin))
    assert resp.json()["is_banned"] is False
    assert client.get("/auth/me", headers=auth_headers(alice)).status_code == 200
    assert client.get(f"/issues/{issue.id}").status_code == 200


def test_admin_cannot_ban_self_or_admins(client, db, admin):
    other = make_user(db, "Root", "root@example.com", role=UserRole.admin)
    assert client.patch(f"/admin/users/{admin.id}/ban", headers=auth_headers(admin)).status_code == 400
    assert client.patch(f"/admin/users/{other.id}/ban", headers=auth_headers(admin)).status_code == 403
    assert client.patch("/admin/users/999/ban", headers=auth_headers(admin)).status_code == 404


def test_admin_issue_listing_search(client, db, alice, admin):
    make_issue(db, alice, title="Broken streetlight on Elm", category="streetlight")
    make_issue(db, alice)
    body = client.get("/admin/issues", params={"search": "elm"}, headers=auth_headers(admin)).json()
    assert body["total"] == 1
    assert body["items"][0]["category"] == "streetlight"

    by_status = client.get("/admin/issues", params={"status": "pending"}, headers=auth_headers(admin)).json()
    assert by_status["total"] == 2


def test_admin_status_endpoint_rejects_and_clears_flags(client, db, alice, bob, admin):
    issue = make_issue(db, alice)
    moderation.file_flag(db, issue.id, bob, FlagReason.spam)

    resp = client.patch(
        f"/admin/issues/{issue.id}/status",
        json={"status": "rejected", "comment": "spam"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"

    flags = client.get("/admin/flags", headers=auth_headers(admin)).json()
    assert flags["total"] == 0


def test_admin_deletes_any_issue(client, db, alice, admin):
    issue = make_issue(db, alice)
    resp = client.delete(f"/admin/issues/{issue.id}", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["ok"] is True
    assert client.get(f"/issues/{issue.id}").status_code == 404


def test_flag_listing_and_review(client, db, alice, bob, admin):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.inappropriate, "rude words")

    listing = client.get("/admin/flags", params={"review_status": "pending"}, headers=auth_headers(admin)).json()
    assert listing["total"] == 1
    item = listing["items"][0]
    assert item["flagger"] == {"id": bob.id, "name": "Bob"}
    assert item["issue"] == {"id": issue.id, "title": issue.title}

    resp = client.patch(
        f"/admin/flags/{flag.id}/review",
        json={"outcome": "spam", "admin_note": "report was bogus"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    assert resp.json()["review_status"] == "spam"
    assert resp.json()["reviewed_by_id"] == admin.id

    again = client.patch(f"/admin/flags/{flag.id}/review", json={"outcome": "valid"}, headers=auth_headers(admin))
    assert again.status_code == 409

    remaining = client.get("/admin/flags", params={"review_status": "pending"}, headers=auth_headers(admin)).json()
    assert remaining["total"] == 0


def test_review_outcome_must_be_final(client, db, alice, bob, admin):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.spam)
    resp = client.patch(f"/admin/flags/{flag.id}/review", json={"outcome": "pending"}, headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "outcome"


def test_delete_flag(client, db, alice, bob, admin):
    issue = make_issue(db, alice)
    flag = moderation.file_flag(db, issue.id, bob, FlagReason.spam)
    assert client.delete(f"/admin/flags/{flag.id}", headers=auth_headers(admin)).status_code == 200
    assert client.delete(f"/admin/flags/{flag.id}", headers=auth_headers(admin)).status_code == 404
