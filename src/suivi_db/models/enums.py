"""Database-level enumerations for review sessions."""

import enum


class ReviewStatus(str, enum.Enum):
    """Whether a review session has unsaved changes.

    Transitions:
        open -> saved  (attempts written back to the results API)
        saved -> open  (any later change to attempts)
    """

    OPEN = "open"
    SAVED = "saved"
