"""Progress models — the contract between the calculator and API callers.

  - PieceMatch: which documents were matched for a piece, and by which
    resolver
  - StageCompletion: per-stage detail with its piece matches
  - ProgressSummary: the per-dossier progress row shown in case tables
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, Field

from .circuit import Document


class ProgressStatus(str, enum.Enum):
    """Derived progress status of a dossier through its circuit.

    ``blocked`` is part of the shape consumed by the presentation layer but
    is never derived by the calculator.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class StatusLabel(BaseModel):
    """Label/color pairing for presentation."""

    label: str
    color: str


class PieceMatch(BaseModel):
    """Documents matched for one required piece."""

    piece_id: str
    documents: list[Document] = Field(default_factory=list)
    # Name of the resolver that produced ``documents`` (None if nothing matched)
    resolver: str | None = None
    satisfied: bool = False


class StageCompletion(BaseModel):
    """Completion detail for one stage."""

    stage_id: str
    label: str
    complete: bool
    pieces: list[PieceMatch] = Field(default_factory=list)


class ProgressSummary(BaseModel):
    """Progress of one dossier through its circuit."""

    dossier_id: str
    progress_percent: int = 0
    current_stage_label: str | None = None
    documents_count: int = 0
    documents_validated: int = 0
    status: ProgressStatus = ProgressStatus.PENDING
    completed_stages: int = 0
    total_stages: int = 0

    @classmethod
    def default(cls, dossier_id: str) -> "ProgressSummary":
        """Zero-progress pending row used when nothing could be computed."""
        return cls(dossier_id=dossier_id)
