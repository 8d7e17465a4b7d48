# src/urbanfix/services/__init__.py
"""Business logic services for the UrbanFix application."""

from .duplicates import DuplicateResolver
from .lifecycle import IssueLifecycle
from .reports import ReportService
from .scoring import PriorityScoringEngine

__all__ = [
    "DuplicateResolver",
    "IssueLifecycle",
    "PriorityScoringEngine",
    "ReportService",
]
