"""Attempt status engine — derives category statuses and the case verdict.

Both functions are pure: they read their arguments and never mutate them,
so recomputing on unchanged input always yields the same result.

Category status rules, checked in order:

  1. a legacy override other than ``non_saisi`` wins outright
  2. no attempts                         → non_saisi
  3. any attempt ``reussi``              → reussi
  4. MAX_ATTEMPTS attempts, none reussi  → echoue
  5. otherwise                           → result of the latest attempt

Case verdict precedence (first match wins):

  1. all three categories reussi → reussi
  2. any category echoue         → echoue
  3. any category absent         → absent
  4. otherwise                   → non_saisi
"""

from __future__ import annotations

from typing import Sequence

from suivi_engine.constants import MAX_ATTEMPTS, PROGRESS_COLORS, STATUS_LABELS
from suivi_engine.models.attempt import Attempt, AttemptResult, CategoryStatus
from suivi_engine.models.progress import ProgressStatus, StatusLabel


def compute_category_status(
    attempts: Sequence[Attempt] | None,
    legacy_override: CategoryStatus | str | None = None,
) -> CategoryStatus:
    """Derive the status of one exam category from its attempts.

    Args:
        attempts: attempts in chronological order (at most MAX_ATTEMPTS)
        legacy_override: status stored by records that predate per-attempt
            tracking; ignored when empty or ``non_saisi``
    """
    if legacy_override:
        legacy = CategoryStatus(legacy_override)
        if legacy is not CategoryStatus.NON_SAISI:
            return legacy

    if not attempts:
        return CategoryStatus.NON_SAISI

    if any(a.result is AttemptResult.REUSSI for a in attempts):
        return CategoryStatus.REUSSI

    if len(attempts) == MAX_ATTEMPTS:
        return CategoryStatus.ECHOUE

    return CategoryStatus(attempts[-1].result.value)


def compute_case_verdict(
    creneaux: CategoryStatus,
    code_conduite: CategoryStatus,
    tour_ville: CategoryStatus,
) -> CategoryStatus:
    """Aggregate the three category statuses into the case verdict."""
    statuses = (creneaux, code_conduite, tour_ville)

    if all(s is CategoryStatus.REUSSI for s in statuses):
        return CategoryStatus.REUSSI
    # A single definitive failure fails the whole case
    if any(s is CategoryStatus.ECHOUE for s in statuses):
        return CategoryStatus.ECHOUE
    if any(s is CategoryStatus.ABSENT for s in statuses):
        return CategoryStatus.ABSENT
    return CategoryStatus.NON_SAISI


def has_exhausted_attempts(attempts: Sequence[Attempt]) -> bool:
    """True when the category holds MAX_ATTEMPTS attempts, none of them reussi."""
    return len(attempts) == MAX_ATTEMPTS and all(
        a.result in (AttemptResult.ECHOUE, AttemptResult.ABSENT) for a in attempts
    )


def status_label(status: CategoryStatus | str) -> StatusLabel:
    """Presentation label and color for a category status or verdict."""
    label, color = STATUS_LABELS[CategoryStatus(status).value]
    return StatusLabel(label=label, color=color)


def progress_label(status: ProgressStatus | str) -> StatusLabel:
    """Presentation label and color for a circuit progress status."""
    status = ProgressStatus(status)
    return StatusLabel(label=status.value, color=PROGRESS_COLORS[status.value])
