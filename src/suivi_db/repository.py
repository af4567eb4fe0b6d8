"""Async CRUD repository for ReviewSession.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods flush, they never commit.

The repository stores whatever state the SDK hands it; lock-workflow rules
belong to ``suivi_engine``.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from suivi_db.models.enums import ReviewStatus
from suivi_db.models.review_session import ReviewSession


class ReviewSessionRepository:
    """Async read/write operations on the ``review_sessions`` table."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        dossier_id: str,
        state: dict[str, Any],
        declined: list[dict[str, Any]] | None = None,
        unclassified: list[dict[str, Any]] | None = None,
    ) -> ReviewSession:
        """Insert a new review session row and return it."""
        row = ReviewSession(
            user_id=user_id,
            session_id=session_id,
            dossier_id=dossier_id,
            state=state,
            declined=declined or [],
            unclassified=unclassified or [],
        )
        db.add(row)
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_user_and_session(
        self,
        db: AsyncSession,
        user_id: str,
        session_id: str,
        *,
        for_update: bool = False,
    ) -> ReviewSession | None:
        """Fetch a review session by the unique (user_id, session_id) pair.

        With ``for_update=True`` the row is locked until the transaction
        ends, serialising concurrent writers of the same session.
        """
        stmt = select(ReviewSession).where(
            ReviewSession.user_id == user_id,
            ReviewSession.session_id == session_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ReviewSession]:
        """List a user's review sessions, most recently updated first."""
        stmt = (
            select(ReviewSession)
            .where(ReviewSession.user_id == user_id)
            .order_by(ReviewSession.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def save_state(
        self,
        db: AsyncSession,
        row: ReviewSession,
        *,
        state: dict[str, Any],
        declined: list[dict[str, Any]],
        unclassified: list[dict[str, Any]] | None = None,
        changed: bool = True,
    ) -> ReviewSession:
        """Replace the coordinator state of a session.

        New objects are assigned (not mutated in place) so SQLAlchemy
        detects the change.  ``changed=True`` reopens a saved session.
        """
        row.state = dict(state)
        row.declined = list(declined)
        if unclassified is not None:
            row.unclassified = list(unclassified)
        if changed:
            row.status = ReviewStatus.OPEN
        row.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return row

    async def mark_saved(self, db: AsyncSession, row: ReviewSession) -> ReviewSession:
        """Record that the session's attempts were written back to the backend."""
        now = datetime.now(timezone.utc)
        row.status = ReviewStatus.SAVED
        row.saved_at = now
        row.updated_at = now
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_session(self, db: AsyncSession, row: ReviewSession) -> None:
        await db.delete(row)
        await db.flush()
