"""Attempt endpoints — add, edit and lock/unlock exam attempts.

Rejected edits (locked attempt, fourth attempt, locked category) are not
HTTP errors: the snapshot is returned unchanged with ``accepted: false``.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from suivi_engine.models.attempt import AttemptResult, ExamCategory
from suivi_engine.models.review import ReviewSnapshot
from suivi_engine.review import ReviewService

from suivi_server.dependencies import get_db, get_review_service, get_user_id

router = APIRouter(tags=["attempts"])


class AddAttemptRequest(BaseModel):
    """Body for POST /reviews/{session_id}/attempts/{category}."""
    result: AttemptResult
    date: datetime | None = None
    note: str = ""


class UpdateAttemptRequest(BaseModel):
    """Body for PATCH .../attempts/{category}/{index}; omitted fields are kept."""
    result: AttemptResult | None = None
    date: datetime | None = None
    note: str | None = None


@router.post("/reviews/{session_id}/attempts/{category}")
async def add_attempt(
    session_id: str,
    category: ExamCategory,
    body: AddAttemptRequest,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    return await reviews.add_attempt(
        db,
        user_id=user_id,
        session_id=session_id,
        category=category,
        result=body.result,
        date=body.date,
        note=body.note,
    )


@router.patch("/reviews/{session_id}/attempts/{category}/{index}")
async def update_attempt(
    session_id: str,
    category: ExamCategory,
    body: UpdateAttemptRequest,
    index: int = Path(ge=0),
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    return await reviews.update_attempt(
        db,
        user_id=user_id,
        session_id=session_id,
        category=category,
        index=index,
        result=body.result,
        date=body.date,
        note=body.note,
    )


@router.post("/reviews/{session_id}/attempts/{category}/{index}/lock")
async def toggle_lock(
    session_id: str,
    category: ExamCategory,
    index: int = Path(ge=0),
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    """Flip the lock of one attempt."""
    return await reviews.toggle_lock(
        db, user_id=user_id, session_id=session_id, category=category, index=index,
    )
