"""Review session endpoints — open, read, reload, delete, prompts, save.

All endpoints require the ``X-User-ID`` header.  A review session is
identified by the (user_id, session_id) pair.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from suivi_engine.models.review import ReviewSnapshot
from suivi_engine.review import ReviewService

from suivi_server.dependencies import get_db, get_review_service, get_user_id

router = APIRouter(tags=["reviews"])


class CreateReviewRequest(BaseModel):
    """Body for POST /reviews."""
    session_id: str = Field(min_length=1)
    dossier_id: str = Field(min_length=1)


@router.post("/reviews", status_code=201)
async def create_review(
    body: CreateReviewRequest,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    """Open a review of a dossier's exam attempts.

    Returns 201, or 409 if the session id is already used by this user.
    """
    return await reviews.create_session(
        db, user_id=user_id, session_id=body.session_id, dossier_id=body.dossier_id,
    )


@router.get("/reviews/{session_id}")
async def get_review(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    snapshot = await reviews.get_session(db, user_id=user_id, session_id=session_id)
    if snapshot is None:
        raise ValueError(f"Review session not found: session_id={session_id}")
    return snapshot


@router.delete("/reviews/{session_id}", status_code=204)
async def delete_review(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> None:
    await reviews.delete_session(db, user_id=user_id, session_id=session_id)


@router.post("/reviews/{session_id}/reload")
async def reload_review(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    """Re-fetch the dossier's results; locks and declined prompts are reset."""
    return await reviews.reload(db, user_id=user_id, session_id=session_id)


@router.post("/reviews/{session_id}/prompt/confirm")
async def confirm_prompt(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    """Lock the category of the open prompt.  409 when no prompt is open."""
    return await reviews.confirm_prompt(db, user_id=user_id, session_id=session_id)


@router.post("/reviews/{session_id}/prompt/decline")
async def decline_prompt(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    """Dismiss the open prompt.  409 when no prompt is open."""
    return await reviews.decline_prompt(db, user_id=user_id, session_id=session_id)


@router.post("/reviews/{session_id}/save")
async def save_review(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewSnapshot:
    """Write the attempts back to the portal backend."""
    return await reviews.save_results(db, user_id=user_id, session_id=session_id)
