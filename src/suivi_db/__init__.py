"""suivi_db — PostgreSQL persistence layer for exam review sessions.

A review session holds the lock-workflow state of one dossier being
reviewed by one user, so the stateless HTTP layer can rebuild the lock
coordinator on every request.  This package provides the ORM model, the
async engine factory and the repository.
"""

from suivi_db.engine import dispose_engine, get_engine, get_session_factory
from suivi_db.models.enums import ReviewStatus
from suivi_db.models.review_session import ReviewSession
from suivi_db.repository import ReviewSessionRepository

__all__ = [
    "ReviewSession",
    "ReviewStatus",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "ReviewSessionRepository",
]
