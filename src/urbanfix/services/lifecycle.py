"""Issue lifecycle state machine: pending -> verified -> addressed."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from urbanfix.core.errors import Forbidden, InvalidTransition, NotFound
from urbanfix.core.security import Principal
from urbanfix.core.settings import settings
from urbanfix.db.time import utcnow
from urbanfix.models.issue import (
    ISSUE_STATUS_ADDRESSED,
    ISSUE_STATUS_PENDING,
    ISSUE_STATUS_VERIFIED,
    Issue,
)
from urbanfix.repositories.issue_repo import IssueRepository
from urbanfix.services.storage import storage_guard

logger = logging.getLogger(__name__)

# Forward-only; addressed is terminal.
ALLOWED_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        (ISSUE_STATUS_PENDING, ISSUE_STATUS_VERIFIED),
        (ISSUE_STATUS_VERIFIED, ISSUE_STATUS_ADDRESSED),
    }
)


def can_transition(current: str, target: str) -> bool:
    """Return True if ``current -> target`` is a legal lifecycle move."""
    return (current, target) in ALLOWED_TRANSITIONS


class IssueLifecycle:
    """Service handling lifecycle transitions for issues."""

    def __init__(self, crowd_verify_threshold: int | None = None) -> None:
        self._threshold = crowd_verify_threshold

    @property
    def crowd_verify_threshold(self) -> int:
        if self._threshold is not None:
            return self._threshold
        return settings.crowd_verify_threshold

    def evaluate_verification(self, issue: Issue, *, now: datetime | None = None) -> bool:
        """Promote a pending issue to verified if either signal is present.

        The caller owns the transaction; this only mutates ``issue``.

        Returns:
            True if the issue changed status.
        """
        if issue.status != ISSUE_STATUS_PENDING:
            return False
        crowd_verified = issue.users_reported >= self.crowd_verify_threshold
        if not (issue.ai_verified or crowd_verified):
            return False

        issue.status = ISSUE_STATUS_VERIFIED
        issue.updated_at = now or utcnow()
        logger.info(
            "Issue %s verified (%s)",
            issue.id,
            "ai" if issue.ai_verified else f"crowd, {issue.users_reported} reporters",
        )
        return True

    async def set_ai_verified(
        self,
        db: Session,
        principal: Principal,
        issue_id: str,
        verified: bool,
    ) -> Issue:
        """Record the external verifier's verdict on an issue.

        Only an ``admin`` principal (the verifier's service account) may call
        this. Clearing the flag never moves status backward.
        """
        if not principal.is_admin:
            raise Forbidden("Only the verification service may set the AI flag")

        with storage_guard(db, "set_ai_verified"):
            repo = IssueRepository(db)
            issue = repo.get_for_update(issue_id)
            if issue is None:
                raise NotFound("Issue not found")
            issue.ai_verified = verified
            if verified:
                self.evaluate_verification(issue)
            db.commit()
        db.refresh(issue)
        return issue

    async def mark_addressed(
        self,
        db: Session,
        principal: Principal,
        issue_id: str,
        *,
        now: datetime | None = None,
    ) -> Issue:
        """Move a verified issue to ``addressed``.

        Raises:
            Forbidden: If the principal is neither ``ngo`` nor ``admin``.
            NotFound: If the issue does not exist.
            InvalidTransition: If the issue is not currently ``verified``.
        """
        if not principal.can_triage:
            raise Forbidden("Only NGO or admin accounts can mark issues as addressed")

        with storage_guard(db, "mark_addressed"):
            repo = IssueRepository(db)
            issue = repo.get_for_update(issue_id)
            if issue is None:
                raise NotFound("Issue not found")
            if not can_transition(issue.status, ISSUE_STATUS_ADDRESSED):
                raise InvalidTransition(
                    f"Cannot mark a {issue.status} issue as addressed",
                    issue_id=issue.id,
                )

            moment = now or utcnow()
            issue.status = ISSUE_STATUS_ADDRESSED
            issue.addressed_at = moment
            issue.updated_at = moment
            db.commit()

        logger.info("Issue %s addressed by %s (%s)", issue_id, principal.user_id, principal.role)
        db.refresh(issue)
        return issue
