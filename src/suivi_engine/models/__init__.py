"""Public model re-exports for suivi_engine.

Consumers should import from ``suivi_engine.models`` rather than
reaching into sub-modules directly.
"""

# --- Attempts ---
from suivi_engine.models.attempt import (
    Attempt,
    AttemptResult,
    CaseAttempts,
    CategorizedResult,
    CategoryStatus,
    ClassifiedResult,
    ExamCategory,
    ResultRecord,
    UnclassifiedResult,
)

# --- Circuits / documents ---
from suivi_engine.models.circuit import (
    Circuit,
    Document,
    Piece,
    Stage,
    order_stages,
)

# --- Progress ---
from suivi_engine.models.progress import (
    PieceMatch,
    ProgressStatus,
    ProgressSummary,
    StageCompletion,
    StatusLabel,
)

# --- Review / locking ---
from suivi_engine.models.review import (
    CategoryView,
    CoordinatorState,
    LockPrompt,
    LockState,
    LockTrigger,
    ReviewSnapshot,
)

__all__ = [
    # Attempts
    "Attempt",
    "AttemptResult",
    "CaseAttempts",
    "CategorizedResult",
    "CategoryStatus",
    "ClassifiedResult",
    "ExamCategory",
    "ResultRecord",
    "UnclassifiedResult",
    # Circuits
    "Circuit",
    "Document",
    "Piece",
    "Stage",
    "order_stages",
    # Progress
    "PieceMatch",
    "ProgressStatus",
    "ProgressSummary",
    "StageCompletion",
    "StatusLabel",
    # Review
    "CategoryView",
    "CoordinatorState",
    "LockPrompt",
    "LockState",
    "LockTrigger",
    "ReviewSnapshot",
]
