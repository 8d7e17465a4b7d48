"""SQLAlchemy models for the UrbanFix application."""

from .issue import Issue, IssueReport
from .ngo import NgoApplication
from .user import User
from .vote import IssueVote

__all__ = [
    "Issue", "IssueReport",
    "IssueVote",
    "NgoApplication",
    "User",
]
