"""Priority scoring: the vote toggle state machine and score maintenance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from urbanfix.core.errors import Conflict, NotFound, ValidationError
from urbanfix.core.security import Principal
from urbanfix.core.settings import settings
from urbanfix.models.vote import VOTE_DOWNVOTE, VOTE_TYPES, VOTE_UPVOTE, IssueVote
from urbanfix.repositories.issue_repo import IssueRepository
from urbanfix.services.storage import storage_guard
from urbanfix.services.users import ensure_user

logger = logging.getLogger(__name__)

VoteState = Literal["upvote", "downvote", "none"]
VOTE_NONE: VoteState = "none"

_WEIGHT = {VOTE_UPVOTE: 1, VOTE_DOWNVOTE: -1}


def resolve_vote(current: str | None, requested: str) -> tuple[str | None, int]:
    """Return ``(new_vote, score_delta)`` for a vote request.

    - no vote -> create it (+1 / -1)
    - same direction -> retract it (inverse of the original delta)
    - opposite direction -> switch in place (+2 / -2)
    """
    if requested not in VOTE_TYPES:
        raise ValidationError(f"Unknown vote type {requested!r}")
    if current is None:
        return requested, _WEIGHT[requested]
    if current == requested:
        return None, -_WEIGHT[requested]
    return requested, _WEIGHT[requested] - _WEIGHT[current]


@dataclass(frozen=True)
class VoteOutcome:
    """Authoritative result of a vote, for clients to reconcile against."""

    issue_id: str
    priority_score: int
    user_vote: VoteState


class PriorityScoringEngine:
    """Service maintaining ``priority_score`` from community votes."""

    async def cast_vote(
        self,
        db: Session,
        principal: Principal,
        issue_id: str,
        vote_type: str,
    ) -> VoteOutcome:
        """Apply a vote with toggle/switch semantics and return the new score.

        The caller's vote row is read under a row lock and the delta is
        computed from that committed state, then added to the stored score in
        a single UPDATE. A lost race to insert the first vote is retried.

        Raises:
            ValidationError: If ``vote_type`` is not ``upvote``/``downvote``.
            NotFound: If the issue does not exist.
            Conflict: If every retry lost its insert race.
        """
        if vote_type not in VOTE_TYPES:
            raise ValidationError(f"Unknown vote type {vote_type!r}")

        attempts = settings.vote_retry_attempts
        for attempt in range(1, attempts + 1):
            with storage_guard(db, "cast_vote"):
                outcome = self._apply_vote(db, principal, issue_id, vote_type)
                if outcome is not None:
                    db.commit()
                    return self._reload(db, issue_id, outcome)
            logger.warning(
                "Vote insert race on issue %s for user %s (attempt %d/%d)",
                issue_id,
                principal.user_id,
                attempt,
                attempts,
            )
        raise Conflict("Vote could not be applied; please retry", issue_id=issue_id)

    def _apply_vote(
        self,
        db: Session,
        principal: Principal,
        issue_id: str,
        vote_type: str,
    ) -> VoteState | None:
        repo = IssueRepository(db)
        if repo.get(issue_id) is None:
            raise NotFound("Issue not found")
        ensure_user(db, principal)

        existing = db.execute(
            select(IssueVote)
            .where(IssueVote.issue_id == issue_id, IssueVote.user_id == principal.user_id)
            .with_for_update()
        ).scalars().first()

        new_vote, delta = resolve_vote(existing.vote_type if existing else None, vote_type)

        if existing is None:
            try:
                with db.begin_nested():
                    db.add(
                        IssueVote(issue_id=issue_id, user_id=principal.user_id, vote_type=vote_type)
                    )
            except IntegrityError:
                # A concurrent request by the same user created the row first.
                return None
        elif new_vote is None:
            db.delete(existing)
        else:
            existing.vote_type = new_vote

        repo.adjust_priority(issue_id, delta)
        return new_vote or VOTE_NONE

    @staticmethod
    def _reload(db: Session, issue_id: str, user_vote: VoteState) -> VoteOutcome:
        issue = IssueRepository(db).get(issue_id)
        if issue is None:  # pragma: no cover - deleted between commit and read
            raise NotFound("Issue not found")
        db.refresh(issue, ["priority_score"])
        return VoteOutcome(
            issue_id=issue_id,
            priority_score=issue.priority_score,
            user_vote=user_vote,
        )

    @staticmethod
    def current_vote(db: Session, issue_id: str, user_id: str) -> VoteState:
        """Return a user's current vote on an issue, or ``"none"``."""
        vote = db.get(IssueVote, (issue_id, user_id))
        if vote is None:
            return VOTE_NONE
        return vote.vote_type  # type: ignore[return-value]

    @staticmethod
    def votes_for_user(db: Session, user_id: str) -> dict[str, str]:
        """Return a mapping of issue id to the user's vote type."""
        rows = db.execute(
            select(IssueVote.issue_id, IssueVote.vote_type).where(IssueVote.user_id == user_id)
        )
        return {issue_id: vote_type for issue_id, vote_type in rows}