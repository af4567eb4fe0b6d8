"""In-memory ReviewSessionRepository replacement.

MockReviewRow has the same attributes as the ReviewSession ORM model
without SQLAlchemy; MockReviewRepository mirrors every repository method
the ReviewService calls, mutating rows in place like the real one.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from suivi_db.models.enums import ReviewStatus


@dataclass
class MockReviewRow:
    user_id: str = "user1"
    session_id: str = "sess1"
    dossier_id: str = "D1"
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    status: ReviewStatus = ReviewStatus.OPEN
    state: dict = field(default_factory=dict)
    declined: list = field(default_factory=list)
    unclassified: list = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    saved_at: datetime | None = None


class MockReviewRepository:
    """Stores MockReviewRow instances keyed by (user_id, session_id)."""

    def __init__(self):
        self._rows: dict[tuple[str, str], MockReviewRow] = {}
        # (user_id, session_id, for_update) per read
        self.reads: list[tuple[str, str, bool]] = []

    async def create_session(
        self, db, *, user_id, session_id, dossier_id, state, declined=None, unclassified=None,
    ):
        row = MockReviewRow(
            user_id=user_id,
            session_id=session_id,
            dossier_id=dossier_id,
            state=state,
            declined=declined or [],
            unclassified=unclassified or [],
        )
        self._rows[(user_id, session_id)] = row
        return row

    async def get_by_user_and_session(self, db, user_id, session_id, *, for_update=False):
        self.reads.append((user_id, session_id, for_update))
        return self._rows.get((user_id, session_id))

    async def save_state(
        self, db, row, *, state, declined, unclassified=None, changed=True,
    ):
        row.state = dict(state)
        row.declined = list(declined)
        if unclassified is not None:
            row.unclassified = list(unclassified)
        if changed:
            row.status = ReviewStatus.OPEN
        row.updated_at = datetime.now(timezone.utc)
        return row

    async def mark_saved(self, db, row):
        now = datetime.now(timezone.utc)
        row.status = ReviewStatus.SAVED
        row.saved_at = now
        row.updated_at = now
        return row

    async def delete_session(self, db, row):
        self._rows.pop((row.user_id, row.session_id), None)
