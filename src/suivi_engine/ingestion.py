"""Result ingestion — turns raw result records into per-category attempts.

The results API returns free-text exam types (``"Creneaux"``,
``"code_conduite"``, ``"Tour de ville"``...).  This module is the single
place where that text is mapped to an :class:`ExamCategory`; everything
downstream works on the explicit tagged union produced here.

Processing order for :func:`group_results`:

  1. classify each record (unknown type / invalid status → unclassified)
  2. drop duplicates within a category, keyed on
     (exam type, UTC date truncated to the minute, status)
  3. sort each category chronologically (records without a date first)
  4. route records beyond MAX_ATTEMPTS to the unclassified bucket
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from suivi_engine.constants import EXAM_TYPE_KEYWORDS, MAX_ATTEMPTS
from suivi_engine.models.attempt import (
    Attempt,
    AttemptResult,
    CaseAttempts,
    CategorizedResult,
    ExamCategory,
    ResultRecord,
    UnclassifiedResult,
)

logger = logging.getLogger(__name__)


def classify_exam_type(exam_type: str | None) -> ExamCategory | None:
    """Map a free-text exam type to its category, or None if unrecognised.

    Matching is a case-insensitive substring test against the keywords in
    ``EXAM_TYPE_KEYWORDS``; the first keyword found wins.
    """
    text = (exam_type or "").lower().strip()
    if not text:
        return None
    for keyword, category in EXAM_TYPE_KEYWORDS:
        if keyword in text:
            return ExamCategory(category)
    return None


def classify_record(record: ResultRecord) -> CategorizedResult | UnclassifiedResult:
    """Classify a single record, without applying the attempt cap."""
    category = classify_exam_type(record.exam_type)
    if category is None:
        return UnclassifiedResult(reason="unknown_exam_type", record=record)

    try:
        result = AttemptResult(record.status.lower().strip())
    except ValueError:
        return UnclassifiedResult(
            reason="invalid_status", record=record, category=category,
        )

    attempt = Attempt(result=result, date=record.date, note=record.comment or "")
    return CategorizedResult(category=category, attempt=attempt)


def _dedup_key(record: ResultRecord) -> tuple[str, str, str]:
    minute = ""
    if record.date is not None:
        date = record.date
        # Naive dates are taken as UTC
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        minute = date.astimezone(timezone.utc).isoformat()[:16]
    return (record.exam_type, minute, record.status)


def _chronological_key(attempt: Attempt) -> float:
    if attempt.date is None:
        return 0.0
    date = attempt.date
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return date.timestamp()


def sort_attempts(attempts: list[Attempt]) -> list[Attempt]:
    """Return attempts in chronological order (undated attempts first)."""
    return sorted(attempts, key=_chronological_key)


def group_results(
    records: Iterable[ResultRecord], dossier_id: str | None = None
) -> CaseAttempts:
    """Build a dossier's per-category attempts from its raw result records."""
    grouped: dict[ExamCategory, list[tuple[ResultRecord, Attempt]]] = {
        category: [] for category in ExamCategory
    }
    seen: dict[ExamCategory, set[tuple[str, str, str]]] = {
        category: set() for category in ExamCategory
    }
    unclassified: list[UnclassifiedResult] = []
    notes = ""

    for record in records:
        # The first non-empty comment doubles as the dossier's shared notes
        if record.comment and not notes:
            notes = record.comment

        classified = classify_record(record)
        if classified.kind == "unclassified":
            logger.warning(
                "Unclassified result for dossier %s: reason=%s exam_type=%r status=%r",
                dossier_id, classified.reason, record.exam_type, record.status,
            )
            unclassified.append(classified)
            continue

        key = _dedup_key(record)
        if key in seen[classified.category]:
            continue
        seen[classified.category].add(key)
        grouped[classified.category].append((record, classified.attempt))

    attempts: dict[ExamCategory, list[Attempt]] = {}
    for category, entries in grouped.items():
        entries.sort(key=lambda entry: _chronological_key(entry[1]))
        kept, overflow = entries[:MAX_ATTEMPTS], entries[MAX_ATTEMPTS:]
        for record, _ in overflow:
            logger.warning(
                "Dossier %s has more than %d %s results; extra record dropped",
                dossier_id, MAX_ATTEMPTS, category.value,
            )
            unclassified.append(
                UnclassifiedResult(reason="over_cap", record=record, category=category)
            )
        attempts[category] = [attempt for _, attempt in kept]

    return CaseAttempts(
        dossier_id=dossier_id,
        attempts=attempts,
        notes=notes,
        unclassified=unclassified,
    )


def to_result_records(
    dossier_id: str,
    attempts: dict[ExamCategory, list[Attempt]],
    notes: str = "",
) -> list[ResultRecord]:
    """Export attempts as result records for ``POST /resultats``.

    Each attempt's own note is used when present; otherwise the dossier's
    shared notes are written.
    """
    records: list[ResultRecord] = []
    for category in ExamCategory:
        for attempt in attempts.get(category, []):
            records.append(
                ResultRecord(
                    case_id=dossier_id,
                    exam_type=category.value,
                    status=attempt.result.value,
                    date=attempt.date or datetime.now(timezone.utc),
                    comment=attempt.note or notes,
                )
            )
    return records
