"""AttemptLockCoordinator — human-confirmed locking of exam attempts.

Wraps the status engine with the per-category lock workflow used by the
exam-entry screen:

  - When a category newly becomes ``reussi`` the coordinator opens a
    *success* prompt asking the user to lock its attempts.
  - When a category holds three attempts, all ``echoue``/``absent``, it
    opens a *failure* prompt asking the user to confirm the definitive
    failure.
  - Confirming locks every current attempt index.  Declining records a flag
    on the :class:`LockSession` so the same prompt is not shown again for
    that dossier/category/trigger during the session.

Locks are tracked per attempt index.  A category is *fully locked* when
every existing index is locked; a fully locked category rejects every
mutation until an index is unlocked through :meth:`toggle_lock`.

Only one prompt is open at a time.  Candidates are evaluated in
``ExamCategory`` order, success before failure; after each confirm or
decline the next qualifying prompt surfaces.

Data loaded already in a terminal state (a ``reussi`` category, or three
failed attempts) is locked silently at load time.

Rejected operations (editing a locked attempt, adding a fourth attempt,
adding while another add is in flight) are no-ops that return ``False``;
they never raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from suivi_engine.constants import MAX_ATTEMPTS
from suivi_engine.models.attempt import (
    Attempt,
    AttemptResult,
    CaseAttempts,
    CategoryStatus,
    ExamCategory,
)
from suivi_engine.models.review import (
    CategoryView,
    CoordinatorState,
    LockPrompt,
    LockState,
    LockTrigger,
)
from suivi_engine.status import (
    compute_case_verdict,
    compute_category_status,
    has_exhausted_attempts,
    status_label,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# LockSession
# ---------------------------------------------------------------------------

@dataclass
class LockSession:
    """Declined-prompt flags for one view of a case list.

    Created when the view opens and passed by reference to every
    coordinator of that view; dropped (or :meth:`reset`) when the user
    navigates away.
    """

    declined: set[tuple[str, ExamCategory, LockTrigger]] = field(default_factory=set)

    def has_declined(
        self, dossier_id: str, category: ExamCategory, trigger: LockTrigger
    ) -> bool:
        return (dossier_id, category, trigger) in self.declined

    def record_decline(
        self, dossier_id: str, category: ExamCategory, trigger: LockTrigger
    ) -> None:
        self.declined.add((dossier_id, category, trigger))

    def clear_decline(
        self, dossier_id: str, category: ExamCategory, trigger: LockTrigger
    ) -> None:
        self.declined.discard((dossier_id, category, trigger))

    def forget_dossier(self, dossier_id: str) -> None:
        """Drop every flag of one dossier (its data was reloaded fresh)."""
        self.declined = {entry for entry in self.declined if entry[0] != dossier_id}

    def reset(self) -> None:
        self.declined.clear()

    # --- Serialisation (persisted alongside the coordinator state) ---

    def to_list(self) -> list[dict]:
        return [
            {"dossier_id": d, "category": c.value, "trigger": t.value}
            for d, c, t in sorted(self.declined, key=lambda e: (e[0], e[1].value, e[2].value))
        ]

    @classmethod
    def from_list(cls, entries: list[dict] | None) -> "LockSession":
        session = cls()
        for entry in entries or []:
            session.record_decline(
                entry["dossier_id"],
                ExamCategory(entry["category"]),
                LockTrigger(entry["trigger"]),
            )
        return session


# ---------------------------------------------------------------------------
# AttemptLockCoordinator
# ---------------------------------------------------------------------------

class AttemptLockCoordinator:
    """Holds one dossier's attempts and lock sets, and runs the prompt workflow.

    Args:
        dossier_id: the dossier whose attempts are being reviewed
        session: per-view declined-prompt flags; a private session is
            created when omitted
    """

    def __init__(self, dossier_id: str, session: LockSession | None = None) -> None:
        self.dossier_id = dossier_id
        self.session = session if session is not None else LockSession()
        self.notes = ""

        self._attempts: dict[ExamCategory, list[Attempt]] = {c: [] for c in ExamCategory}
        self._legacy: dict[ExamCategory, CategoryStatus] = {}
        self._locked: dict[ExamCategory, set[int]] = {c: set() for c in ExamCategory}
        # Status observed at the last recomputation, per category
        self._previous: dict[ExamCategory, CategoryStatus] = {
            c: CategoryStatus.NON_SAISI for c in ExamCategory
        }
        # Categories awaiting a success prompt -> status before becoming reussi
        self._armed: dict[ExamCategory, CategoryStatus] = {}
        self._prompt: LockPrompt | None = None
        # Pending-operation markers for in-flight adds
        self._adding: set[ExamCategory] = set()

    # ==================================================================
    # Loading & serialisation
    # ==================================================================

    def load(self, case: CaseAttempts, *, fresh: bool = True) -> None:
        """Replace all attempts with freshly loaded data.

        Lock sets and any open prompt are discarded.  Categories already in
        a terminal state are locked silently.  With ``fresh=True`` the
        session's declined flags for this dossier are forgotten, so prompts
        may be shown again.
        """
        self.notes = case.notes
        self._legacy = dict(case.legacy)
        self._attempts = {
            c: list(case.for_category(c))[:MAX_ATTEMPTS] for c in ExamCategory
        }
        self._locked = {c: set() for c in ExamCategory}
        self._armed = {}
        self._prompt = None
        self._adding = set()
        if fresh:
            self.session.forget_dossier(self.dossier_id)

        for category in ExamCategory:
            attempts = self._attempts[category]
            status = self.status(category)
            if (status is CategoryStatus.REUSSI and attempts) or (
                status is CategoryStatus.ECHOUE and has_exhausted_attempts(attempts)
            ):
                self._locked[category] = set(range(len(attempts)))
                logger.debug(
                    "Dossier %s: %s loaded as %s, auto-locked %d attempt(s)",
                    self.dossier_id, category.value, status.value, len(attempts),
                )
            self._previous[category] = status

    @classmethod
    def from_state(
        cls, state: CoordinatorState, session: LockSession | None = None
    ) -> "AttemptLockCoordinator":
        """Rebuild a coordinator from its persisted state."""
        coordinator = cls(state.dossier_id, session)
        coordinator.notes = state.notes
        coordinator._legacy = dict(state.legacy)
        for category in ExamCategory:
            coordinator._attempts[category] = list(state.attempts.get(category, []))
            coordinator._locked[category] = set(state.locked.get(category, []))
            coordinator._previous[category] = state.previous.get(
                category, CategoryStatus.NON_SAISI
            )
        coordinator._armed = dict(state.armed)
        coordinator._prompt = state.prompt
        return coordinator

    def to_state(self) -> CoordinatorState:
        """Serialisable snapshot of the coordinator (in-flight adds excluded)."""
        return CoordinatorState(
            dossier_id=self.dossier_id,
            attempts={c: list(a) for c, a in self._attempts.items()},
            legacy=dict(self._legacy),
            notes=self.notes,
            locked={c: sorted(idx) for c, idx in self._locked.items()},
            previous=dict(self._previous),
            armed=dict(self._armed),
            prompt=self._prompt,
        )

    # ==================================================================
    # Queries
    # ==================================================================

    def attempts(self, category: ExamCategory) -> list[Attempt]:
        return list(self._attempts[category])

    def status(self, category: ExamCategory) -> CategoryStatus:
        return compute_category_status(self._attempts[category], self._legacy.get(category))

    def verdict(self) -> CategoryStatus:
        return compute_case_verdict(
            self.status(ExamCategory.CRENEAUX),
            self.status(ExamCategory.CODE_CONDUITE),
            self.status(ExamCategory.TOUR_VILLE),
        )

    def locked_indices(self, category: ExamCategory) -> frozenset[int]:
        return frozenset(self._locked[category])

    def is_attempt_locked(self, category: ExamCategory, index: int) -> bool:
        return index in self._locked[category]

    def is_fully_locked(self, category: ExamCategory) -> bool:
        """True when the category has attempts and every index is locked."""
        count = len(self._attempts[category])
        return count > 0 and all(i in self._locked[category] for i in range(count))

    def can_add(self, category: ExamCategory) -> bool:
        return (
            len(self._attempts[category]) < MAX_ATTEMPTS
            and category not in self._adding
            and not self.is_fully_locked(category)
        )

    @property
    def prompt(self) -> LockPrompt | None:
        """The currently open confirmation prompt, if any."""
        return self._prompt

    def state(self, category: ExamCategory) -> LockState:
        if self._prompt is not None and self._prompt.category is category:
            if self._prompt.trigger is LockTrigger.SUCCESS:
                return LockState.PENDING_SUCCESS_CONFIRMATION
            return LockState.PENDING_FAILURE_CONFIRMATION
        if self.is_fully_locked(category):
            return LockState.LOCKED
        return LockState.UNLOCKED

    def category_view(self, category: ExamCategory) -> CategoryView:
        status = self.status(category)
        return CategoryView(
            category=category,
            status=status,
            status_label=status_label(status),
            state=self.state(category),
            attempts=self.attempts(category),
            locked_indices=sorted(self._locked[category]),
            can_add=self.can_add(category),
        )

    def category_views(self) -> list[CategoryView]:
        return [self.category_view(c) for c in ExamCategory]

    # ==================================================================
    # Prompt workflow
    # ==================================================================

    def recompute(self) -> LockPrompt | None:
        """Re-evaluate statuses and return the open prompt, if any.

        Tracks ``reussi`` transitions since the previous evaluation, drops
        an open prompt that no longer qualifies, and opens the next
        qualifying prompt when none is open.
        """
        for category in ExamCategory:
            current = self.status(category)
            previous = self._previous[category]
            if current is CategoryStatus.REUSSI:
                if previous is not CategoryStatus.REUSSI:
                    self._armed[category] = previous
            else:
                self._armed.pop(category, None)
            self._previous[category] = current

        if self._prompt is not None and not self._qualifies(
            self._prompt.category, self._prompt.trigger
        ):
            logger.debug(
                "Dossier %s: %s %s prompt no longer applies",
                self.dossier_id, self._prompt.category.value, self._prompt.trigger.value,
            )
            self._prompt = None

        if self._prompt is None:
            self._prompt = self._next_prompt()
        return self._prompt

    def confirm(self) -> LockPrompt | None:
        """Accept the open prompt: lock every attempt of its category.

        Returns the next prompt to show (or None).
        """
        prompt = self._prompt
        if prompt is None:
            return None
        category = prompt.category
        self._locked[category] = set(range(len(self._attempts[category])))
        self._armed.pop(category, None)
        self.session.clear_decline(self.dossier_id, category, prompt.trigger)
        self._prompt = None
        logger.info(
            "Dossier %s: %s locked after %s confirmation",
            self.dossier_id, category.value, prompt.trigger.value,
        )
        return self.recompute()

    def decline(self) -> LockPrompt | None:
        """Dismiss the open prompt without locking.

        The decline is remembered on the session so the same prompt is not
        raised again for this dossier/category/trigger.  Returns the next
        prompt to show (or None).
        """
        prompt = self._prompt
        if prompt is None:
            return None
        self.session.record_decline(self.dossier_id, prompt.category, prompt.trigger)
        if prompt.trigger is LockTrigger.SUCCESS:
            self._armed.pop(prompt.category, None)
        self._prompt = None
        return self.recompute()

    def _qualifies(self, category: ExamCategory, trigger: LockTrigger) -> bool:
        if self.is_fully_locked(category):
            return False
        if self.session.has_declined(self.dossier_id, category, trigger):
            return False
        if trigger is LockTrigger.SUCCESS:
            return category in self._armed
        return (
            has_exhausted_attempts(self._attempts[category])
            and self.status(category) is CategoryStatus.ECHOUE
        )

    def _next_prompt(self) -> LockPrompt | None:
        for category in ExamCategory:
            if self._qualifies(category, LockTrigger.SUCCESS):
                return LockPrompt(
                    category=category,
                    trigger=LockTrigger.SUCCESS,
                    previous_status=self._armed[category],
                )
            if self._qualifies(category, LockTrigger.FAILURE):
                return LockPrompt(category=category, trigger=LockTrigger.FAILURE)
        return None

    # ==================================================================
    # Mutations
    # ==================================================================

    def begin_add(self, category: ExamCategory) -> bool:
        """Mark an add as in flight for ``category``.

        Returns False (and marks nothing) when the category is full, fully
        locked, or already has an add in flight.
        """
        if category in self._adding:
            logger.debug("Dossier %s: add to %s already in flight", self.dossier_id, category.value)
            return False
        if len(self._attempts[category]) >= MAX_ATTEMPTS:
            logger.debug("Dossier %s: %s already has %d attempts", self.dossier_id, category.value, MAX_ATTEMPTS)
            return False
        if self.is_fully_locked(category):
            logger.debug("Dossier %s: %s is locked", self.dossier_id, category.value)
            return False
        self._adding.add(category)
        return True

    def commit_add(self, category: ExamCategory, attempt: Attempt) -> bool:
        """Append ``attempt`` for an add started with :meth:`begin_add`."""
        if category not in self._adding:
            return False
        self._adding.discard(category)
        if len(self._attempts[category]) >= MAX_ATTEMPTS or self.is_fully_locked(category):
            return False
        self._attempts[category].append(attempt)
        self.recompute()
        return True

    def cancel_add(self, category: ExamCategory) -> None:
        self._adding.discard(category)

    def add_attempt(self, category: ExamCategory, attempt: Attempt) -> bool:
        """Append a new attempt; returns False when the add is rejected."""
        if not self.begin_add(category):
            return False
        return self.commit_add(category, attempt)

    def update_attempt(
        self,
        category: ExamCategory,
        index: int,
        *,
        result: AttemptResult | str | None = None,
        date: datetime | None = None,
        note: str | None = None,
    ) -> bool:
        """Edit fields of an existing attempt.

        Rejected (returns False) when ``index`` does not exist or is locked.
        """
        attempts = self._attempts[category]
        if not 0 <= index < len(attempts):
            logger.debug("Dossier %s: %s has no attempt #%d", self.dossier_id, category.value, index)
            return False
        if index in self._locked[category]:
            logger.debug("Dossier %s: %s attempt #%d is locked", self.dossier_id, category.value, index)
            return False

        update: dict = {}
        if result is not None:
            update["result"] = AttemptResult(result)
        if date is not None:
            update["date"] = date
        if note is not None:
            update["note"] = note
        attempts[index] = Attempt.model_validate({**attempts[index].model_dump(), **update})
        self.recompute()
        return True

    def toggle_lock(self, category: ExamCategory, index: int) -> bool | None:
        """Flip the lock of one attempt (privileged action).

        Returns the new lock state, or None when ``index`` does not exist.
        """
        if not 0 <= index < len(self._attempts[category]):
            return None
        locked = self._locked[category]
        if index in locked:
            locked.discard(index)
            now_locked = False
        else:
            locked.add(index)
            now_locked = True
        logger.info(
            "Dossier %s: %s attempt #%d %s",
            self.dossier_id, category.value, index, "locked" if now_locked else "unlocked",
        )
        self.recompute()
        return now_locked
