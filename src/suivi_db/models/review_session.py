"""ReviewSession ORM model — one row per (user, review session).

The row holds everything needed to rebuild an ``AttemptLockCoordinator``
on the next request: attempts, lock sets, previous statuses, the success
prompts still pending, the open prompt and the declined-prompt flags.
The coordinator state lives in a single JSONB document so a request reads
exactly one row.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Index, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from suivi_db.models.base import Base
from suivi_db.models.enums import ReviewStatus


class ReviewSession(Base):
    """One row per review session.

    A user may review many dossiers; each review is identified by the
    (user_id, session_id) pair.
    """

    __tablename__ = "review_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    # Portal user id, from the X-User-ID header
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(Text, nullable=False)
    dossier_id: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[ReviewStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ReviewStatus.OPEN,
    )

    # --- Coordinator state ---
    # CoordinatorState.model_dump(mode="json")
    state: Mapped[dict] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    # [{"dossier_id": ..., "category": ..., "trigger": ...}, ...]
    declined: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'[]'::jsonb"),
    )
    # Records that could not be mapped to a category at load time
    unclassified: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'[]'::jsonb"),
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    saved_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_review_user_session"),
        Index("ix_review_dossier", "dossier_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReviewSession(id={self.id!s}, user={self.user_id!r}, "
            f"session={self.session_id!r}, dossier={self.dossier_id!r}, "
            f"status={self.status!r})>"
        )
