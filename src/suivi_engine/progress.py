"""CircuitProgressCalculator — how far a dossier has advanced through its circuit.

A stage is complete when every piece it requires is satisfied (see
:mod:`suivi_engine.matcher`); a stage that requires nothing is complete.

    progress_percent = round(100 * completed_stages / total_stages)

rounded half up.  A missing circuit, or a circuit without stages, yields 0%
and ``pending``: no circuit metadata means nothing to show, never "done".

The current stage is the first stage, in circuit order, that is not
complete.  Status is ``completed`` at 100%, ``in_progress`` above 0%, and
``pending`` otherwise.  ``blocked`` is never derived here.

Document counts are always computed on the dossier's own documents.
"""

from __future__ import annotations

from typing import Sequence

from suivi_engine.matcher import DocumentPieceMatcher, filter_documents_for_dossier
from suivi_engine.models.circuit import Circuit, Document, Stage
from suivi_engine.models.progress import (
    ProgressStatus,
    ProgressSummary,
    StageCompletion,
)


def _round_percent(completed: int, total: int) -> int:
    # Integer round-half-up of 100 * completed / total
    return (200 * completed + total) // (2 * total)


def _status_for(percent: int) -> ProgressStatus:
    if percent == 100:
        return ProgressStatus.COMPLETED
    if percent > 0:
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.PENDING


class CircuitProgressCalculator:
    """Computes stage completion and the progress summary of a dossier.

    Args:
        matcher: piece matcher; defaults to the standard two-resolver matcher
    """

    def __init__(self, matcher: DocumentPieceMatcher | None = None) -> None:
        self._matcher = matcher or DocumentPieceMatcher()

    def stage_completion(self, stage: Stage, documents: Sequence[Document]) -> StageCompletion:
        """Completion detail of one stage against a dossier's documents."""
        matches = [self._matcher.match(piece, documents) for piece in stage.required_pieces]
        return StageCompletion(
            stage_id=stage.id,
            label=stage.label,
            complete=all(m.satisfied for m in matches),
            pieces=matches,
        )

    def stage_completions(
        self, circuit: Circuit | None, documents: Sequence[Document]
    ) -> list[StageCompletion]:
        """Completion detail of every stage, in circuit order."""
        if circuit is None or not circuit.stages:
            return []
        return [self.stage_completion(stage, documents) for stage in circuit.stages]

    def compute(
        self,
        dossier_id: str,
        circuit: Circuit | None,
        documents: Sequence[Document],
    ) -> ProgressSummary:
        """Progress summary of ``dossier_id``.

        ``documents`` may come from a shared collection; only those owned by
        the dossier are considered, both for matching and for the counts.
        """
        own_documents = filter_documents_for_dossier(documents, dossier_id)
        documents_count = len(own_documents)
        documents_validated = sum(1 for d in own_documents if d.valide)

        completions = self.stage_completions(circuit, own_documents)
        if not completions:
            return ProgressSummary(
                dossier_id=dossier_id,
                documents_count=documents_count,
                documents_validated=documents_validated,
            )

        total = len(completions)
        completed = sum(1 for c in completions if c.complete)
        percent = _round_percent(completed, total)
        current = next((c for c in completions if not c.complete), None)

        return ProgressSummary(
            dossier_id=dossier_id,
            progress_percent=percent,
            current_stage_label=current.label if current is not None else None,
            documents_count=documents_count,
            documents_validated=documents_validated,
            status=_status_for(percent),
            completed_stages=completed,
            total_stages=total,
        )
