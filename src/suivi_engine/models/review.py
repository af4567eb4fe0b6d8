"""Review models — lock workflow state and the snapshot returned to callers.

Lock workflow per category:

    Unlocked ──► PendingSuccessConfirmation ──► Locked
        │                    │ (decline)
        │                    └──────────► Unlocked
        └──────► PendingFailureConfirmation ──► Locked

``CoordinatorState`` is the serialisable form of a coordinator, used to
persist it between HTTP calls.  ``ReviewSnapshot`` is the public view.
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field

from .attempt import Attempt, CategoryStatus, ExamCategory
from .progress import StatusLabel


class LockTrigger(str, enum.Enum):
    """Why a lock confirmation is requested."""

    SUCCESS = "success"
    FAILURE = "failure"


class LockState(str, enum.Enum):
    """Lock workflow state of one category."""

    UNLOCKED = "unlocked"
    PENDING_SUCCESS_CONFIRMATION = "pending_success_confirmation"
    PENDING_FAILURE_CONFIRMATION = "pending_failure_confirmation"
    LOCKED = "locked"


class LockPrompt(BaseModel):
    """The single open confirmation dialog."""

    category: ExamCategory
    trigger: LockTrigger
    # Status before the transition that raised the prompt
    previous_status: CategoryStatus | None = None


class CoordinatorState(BaseModel):
    """Serialisable state of an AttemptLockCoordinator."""

    dossier_id: str
    attempts: dict[ExamCategory, list[Attempt]] = Field(default_factory=dict)
    legacy: dict[ExamCategory, CategoryStatus] = Field(default_factory=dict)
    notes: str = ""
    locked: dict[ExamCategory, list[int]] = Field(default_factory=dict)
    previous: dict[ExamCategory, CategoryStatus] = Field(default_factory=dict)
    # Categories that became reussi and still await a success prompt,
    # mapped to the status they had before
    armed: dict[ExamCategory, CategoryStatus] = Field(default_factory=dict)
    prompt: LockPrompt | None = None


class CategoryView(BaseModel):
    """Public view of one exam category."""

    category: ExamCategory
    status: CategoryStatus
    status_label: StatusLabel
    state: LockState
    attempts: list[Attempt]
    locked_indices: list[int]
    can_add: bool


class ReviewSnapshot(BaseModel):
    """Public view of a review session for API consumers."""

    user_id: str
    session_id: str
    dossier_id: str
    categories: list[CategoryView]
    verdict: CategoryStatus
    verdict_label: StatusLabel
    prompt: LockPrompt | None = None
    notes: str = ""
    unclassified_count: int = 0
    saved: bool = False
    # False when the requested mutation was rejected (locked attempt, cap...)
    accepted: bool = True
    updated_at: datetime | None = None
