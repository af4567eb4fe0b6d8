"""ORM models for suivi_db."""

from suivi_db.models.base import Base
from suivi_db.models.enums import ReviewStatus
from suivi_db.models.review_session import ReviewSession

__all__ = ["Base", "ReviewStatus", "ReviewSession"]
