"""ReviewService — the lock workflow exposed over stateless HTTP calls.

Stateless engine pattern: each call loads the review-session row from the
database, rebuilds an :class:`AttemptLockCoordinator` from its persisted
state, applies one operation, persists the new state and returns a
:class:`ReviewSnapshot`.  No in-memory state is kept between calls.

The service accepts an ``AsyncSession`` from the caller so that the caller
(typically a FastAPI endpoint) controls transaction boundaries.

Rejected coordinator operations (editing a locked attempt, a fourth
attempt...) are not errors: the snapshot comes back with
``accepted=False`` and the state unchanged.  Unknown sessions and
out-of-range attempts raise ``ValueError``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from suivi_db.models.enums import ReviewStatus
from suivi_db.models.review_session import ReviewSession
from suivi_db.repository import ReviewSessionRepository

from suivi_engine.locking import AttemptLockCoordinator, LockSession
from suivi_engine.models.attempt import (
    Attempt,
    AttemptResult,
    CaseAttempts,
    ExamCategory,
)
from suivi_engine.models.review import CoordinatorState, ReviewSnapshot
from suivi_engine.status import status_label
from suivi_engine.tracker import SuiviTracker

logger = logging.getLogger(__name__)


class ReviewService:
    """Review sessions of dossier attempts, persisted between calls.

    Args:
        tracker: loads and saves attempts through the results source
    """

    def __init__(self, tracker: SuiviTracker) -> None:
        self._tracker = tracker
        self._repo = ReviewSessionRepository()

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    async def create_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        dossier_id: str,
    ) -> ReviewSnapshot:
        """Open a review of ``dossier_id``, loading its results from the backend.

        Categories already in a terminal state are locked silently.  The
        caller must ``await db.commit()`` to persist.
        """
        existing = await self._repo.get_by_user_and_session(db, user_id, session_id)
        if existing is not None:
            raise ValueError(f"Review session '{session_id}' already exists")

        case = await self._tracker.load_case_attempts(dossier_id)
        lock_session = LockSession()
        coordinator = AttemptLockCoordinator(dossier_id, lock_session)
        coordinator.load(case, fresh=True)
        coordinator.recompute()

        row = await self._repo.create_session(
            db,
            user_id=user_id,
            session_id=session_id,
            dossier_id=dossier_id,
            state=coordinator.to_state().model_dump(mode="json"),
            declined=lock_session.to_list(),
            unclassified=[u.model_dump(mode="json") for u in case.unclassified],
        )
        logger.info(
            "Review session %s/%s opened for dossier %s (%d unclassified record(s))",
            user_id, session_id, dossier_id, len(case.unclassified),
        )
        return self._to_snapshot(row, coordinator)

    async def get_session(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> ReviewSnapshot | None:
        """Snapshot of a review session.  Returns None if not found."""
        row = await self._repo.get_by_user_and_session(db, user_id, session_id)
        if row is None:
            return None
        return self._to_snapshot(row, self._rebuild(row))

    async def delete_session(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> None:
        row = await self._load_row(db, user_id, session_id)
        await self._repo.delete_session(db, row)
        logger.info("Review session %s/%s deleted", user_id, session_id)

    async def reload(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> ReviewSnapshot:
        """Replace the session's attempts with fresh data from the backend.

        Lock sets and the open prompt are discarded; declined prompts of the
        dossier may show again.
        """
        row = await self._load_row(db, user_id, session_id, for_update=True)
        case = await self._tracker.load_case_attempts(row.dossier_id)
        lock_session = LockSession.from_list(row.declined)
        coordinator = AttemptLockCoordinator(row.dossier_id, lock_session)
        coordinator.load(case, fresh=True)
        coordinator.recompute()
        await self._persist(
            db, row, coordinator,
            unclassified=[u.model_dump(mode="json") for u in case.unclassified],
        )
        return self._to_snapshot(row, coordinator)

    # ==================================================================
    # Attempt mutations
    # ==================================================================

    async def add_attempt(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        category: ExamCategory | str,
        result: AttemptResult | str,
        date: datetime | None = None,
        note: str = "",
    ) -> ReviewSnapshot:
        """Append an attempt to a category.

        The row is locked for the duration of the transaction, so two
        concurrent adds to the same session cannot both pass the cap.
        """
        category = ExamCategory(category)
        row = await self._load_row(db, user_id, session_id, for_update=True)
        coordinator = self._rebuild(row)
        attempt = Attempt(result=AttemptResult(result), date=date, note=note)
        accepted = coordinator.add_attempt(category, attempt)
        if accepted:
            await self._persist(db, row, coordinator)
        return self._to_snapshot(row, coordinator, accepted=accepted)

    async def update_attempt(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        category: ExamCategory | str,
        index: int,
        result: AttemptResult | str | None = None,
        date: datetime | None = None,
        note: str | None = None,
    ) -> ReviewSnapshot:
        """Edit an attempt; rejected when the attempt is locked."""
        category = ExamCategory(category)
        row = await self._load_row(db, user_id, session_id, for_update=True)
        coordinator = self._rebuild(row)
        self._check_index(coordinator, category, index)
        accepted = coordinator.update_attempt(
            category, index, result=result, date=date, note=note,
        )
        if accepted:
            await self._persist(db, row, coordinator)
        return self._to_snapshot(row, coordinator, accepted=accepted)

    async def toggle_lock(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        category: ExamCategory | str,
        index: int,
    ) -> ReviewSnapshot:
        """Flip the lock of one attempt."""
        category = ExamCategory(category)
        row = await self._load_row(db, user_id, session_id, for_update=True)
        coordinator = self._rebuild(row)
        self._check_index(coordinator, category, index)
        coordinator.toggle_lock(category, index)
        await self._persist(db, row, coordinator, changed=False)
        return self._to_snapshot(row, coordinator)

    # ==================================================================
    # Prompt workflow
    # ==================================================================

    async def confirm_prompt(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> ReviewSnapshot:
        """Accept the open prompt; the next qualifying prompt (if any) opens."""
        row = await self._load_row(db, user_id, session_id, for_update=True)
        coordinator = self._rebuild(row)
        if coordinator.prompt is None:
            raise ValueError(f"No open prompt in review session '{session_id}'")
        coordinator.confirm()
        await self._persist(db, row, coordinator, changed=False)
        return self._to_snapshot(row, coordinator)

    async def decline_prompt(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> ReviewSnapshot:
        """Dismiss the open prompt; it will not be raised again for this dossier."""
        row = await self._load_row(db, user_id, session_id, for_update=True)
        coordinator = self._rebuild(row)
        if coordinator.prompt is None:
            raise ValueError(f"No open prompt in review session '{session_id}'")
        coordinator.decline()
        await self._persist(db, row, coordinator, changed=False)
        return self._to_snapshot(row, coordinator)

    # ==================================================================
    # Write-back
    # ==================================================================

    async def save_results(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> ReviewSnapshot:
        """Write the session's attempts back through the results source."""
        row = await self._load_row(db, user_id, session_id, for_update=True)
        coordinator = self._rebuild(row)
        case = CaseAttempts(
            dossier_id=row.dossier_id,
            attempts={c: coordinator.attempts(c) for c in ExamCategory},
            notes=coordinator.notes,
        )
        await self._tracker.save_case_attempts(case)
        await self._repo.mark_saved(db, row)
        return self._to_snapshot(row, coordinator)

    # ==================================================================
    # Helpers
    # ==================================================================

    async def _load_row(
        self,
        db: AsyncSession,
        user_id: str,
        session_id: str,
        *,
        for_update: bool = False,
    ) -> ReviewSession:
        row = await self._repo.get_by_user_and_session(
            db, user_id, session_id, for_update=for_update,
        )
        if row is None:
            raise ValueError(f"Review session '{session_id}' not found")
        return row

    @staticmethod
    def _rebuild(row: ReviewSession) -> AttemptLockCoordinator:
        state = CoordinatorState.model_validate(row.state)
        return AttemptLockCoordinator.from_state(state, LockSession.from_list(row.declined))

    @staticmethod
    def _check_index(
        coordinator: AttemptLockCoordinator, category: ExamCategory, index: int
    ) -> None:
        count = len(coordinator.attempts(category))
        if not 0 <= index < count:
            raise ValueError(f"Attempt {index} of '{category.value}' not found")

    async def _persist(
        self,
        db: AsyncSession,
        row: ReviewSession,
        coordinator: AttemptLockCoordinator,
        *,
        unclassified: list[dict[str, Any]] | None = None,
        changed: bool = True,
    ) -> None:
        await self._repo.save_state(
            db,
            row,
            state=coordinator.to_state().model_dump(mode="json"),
            declined=coordinator.session.to_list(),
            unclassified=unclassified,
            changed=changed,
        )

    @staticmethod
    def _to_snapshot(
        row: ReviewSession,
        coordinator: AttemptLockCoordinator,
        *,
        accepted: bool = True,
    ) -> ReviewSnapshot:
        verdict = coordinator.verdict()
        return ReviewSnapshot(
            user_id=row.user_id,
            session_id=row.session_id,
            dossier_id=row.dossier_id,
            categories=coordinator.category_views(),
            verdict=verdict,
            verdict_label=status_label(verdict),
            prompt=coordinator.prompt,
            notes=coordinator.notes,
            unclassified_count=len(row.unclassified or []),
            saved=row.status == ReviewStatus.SAVED,
            accepted=accepted,
            updated_at=row.updated_at,
        )
