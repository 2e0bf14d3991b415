# File: civictrack/models/__init__.py
# every model module is imported here so Base.metadata sees all tables
from civictrack.models.user import User, UserRole
from civictrack.models.issue import Issue, IssueCategory, IssueStatus
from civictrack.models.status_log import StatusLog
from civictrack.models.flag import Flag, FlagReason, FlagReviewStatus

__all__ = [
    "User", "UserRole",
    "Issue", "IssueCategory", "IssueStatus",
    "StatusLog",
    "Flag", "FlagReason", "FlagReviewStatus",
]
