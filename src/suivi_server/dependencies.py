"""FastAPI dependency injection — DB sessions, SDK services and user identity.

``get_db()`` is the transaction boundary: the SDK and repository flush but
never commit.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from suivi_db.engine import get_session_factory
from suivi_engine.review import ReviewService
from suivi_engine.tracker import SuiviTracker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ------------------------------------------------------------------
# Services stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_tracker(request: Request) -> SuiviTracker:
    return request.app.state.tracker


def get_review_service(request: Request) -> ReviewService:
    return request.app.state.reviews


# ------------------------------------------------------------------
# User identity
# ------------------------------------------------------------------

async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Extract user identity from the ``X-User-ID`` header (401 if missing).

    When ``TRUSTED_PROXY_SECRET`` is configured, a matching
    ``X-Proxy-Secret`` header is required as well (403 otherwise).
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(status_code=403, detail="X-Proxy-Secret header is required")
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    return x_user_id
