"""Duplicate resolution: decide whether a report merges into an open issue.

Proximity and recency are the only signals. Decisions for nearby reports are
serialized through geocell locks so that one cluster never yields two new
issues:

* in-process, one ``asyncio.Lock`` per cell, taken for the cell block around
  the report in sorted order;
* on PostgreSQL, ``pg_advisory_xact_lock`` on the same cell keys, released
  when the surrounding transaction ends.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.orm import Session

from urbanfix.core.settings import settings
from urbanfix.models.issue import Issue
from urbanfix.repositories.issue_repo import IssueRepository, NearbyIssue
from urbanfix.utils.geo import GeoPoint, cell_lock_key, covering_cells

logger = logging.getLogger(__name__)


class _CellLocks:
    """Reference-counted registry of per-cell asyncio locks."""

    def __init__(self) -> None:
        self._locks: dict[tuple[int, int], asyncio.Lock] = {}
        self._users: dict[tuple[int, int], int] = {}

    def _checkout(self, cell: tuple[int, int]) -> asyncio.Lock:
        lock = self._locks.get(cell)
        if lock is None:
            lock = self._locks[cell] = asyncio.Lock()
        self._users[cell] = self._users.get(cell, 0) + 1
        return lock

    def _checkin(self, cell: tuple[int, int]) -> None:
        remaining = self._users[cell] - 1
        if remaining:
            self._users[cell] = remaining
        else:
            del self._users[cell]
            del self._locks[cell]

    @asynccontextmanager
    async def hold(self, cells: list[tuple[int, int]]) -> AsyncIterator[None]:
        locks = [(cell, self._checkout(cell)) for cell in cells]
        acquired: list[asyncio.Lock] = []
        try:
            for _cell, lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for cell, _lock in locks:
                self._checkin(cell)

    def __len__(self) -> int:
        return len(self._locks)


_CELL_LOCKS = _CellLocks()


def _lock_cells_in_database(db: Session, cells: list[tuple[int, int]]) -> None:
    if db.get_bind().dialect.name != "postgresql":
        return
    for cell in cells:
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": cell_lock_key(cell)})


class DuplicateResolver:
    """Find the open issue, if any, that a new report duplicates."""

    def __init__(
        self,
        radius_meters: float | None = None,
        window_days: int | None = None,
    ) -> None:
        self._radius_meters = radius_meters
        self._window_days = window_days

    @property
    def radius_meters(self) -> float:
        if self._radius_meters is not None:
            return self._radius_meters
        return settings.duplicate_radius_meters

    @property
    def window_days(self) -> int:
        if self._window_days is not None:
            return self._window_days
        return settings.duplicate_window_days

    @asynccontextmanager
    async def cluster_lock(self, db: Session, point: GeoPoint) -> AsyncIterator[None]:
        """Serialize merge-or-create decisions around ``point``.

        Database locks are transaction-scoped, so the caller must commit or
        roll back inside this block.
        """
        cells = covering_cells(point, settings.geocell_size_degrees)
        async with _CELL_LOCKS.hold(cells):
            _lock_cells_in_database(db, cells)
            yield

    def candidates(self, db: Session, point: GeoPoint, submitted_at: datetime) -> list[NearbyIssue]:
        """Return open issues the report could merge into, best match first."""
        return IssueRepository(db).find_nearby(
            point, self.radius_meters, self.window_days, now=submitted_at
        )

    def find_match(self, db: Session, point: GeoPoint, submitted_at: datetime) -> Issue | None:
        """Return the locked issue a report should merge into, or None.

        Each candidate row is locked and re-checked; one that was addressed
        after the proximity query is skipped in favour of the next nearest.
        """
        repo = IssueRepository(db)
        for match in self.candidates(db, point, submitted_at):
            issue = repo.get_for_update(match.issue_id)
            if issue is not None and issue.is_open:
                logger.debug(
                    "Report at (%s, %s) matches issue %s at %.1fm",
                    point.latitude,
                    point.longitude,
                    issue.id,
                    match.distance_meters,
                )
                return issue
        return None
