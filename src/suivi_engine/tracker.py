"""SuiviTracker — feeds the engine from the data sources, for many dossiers.

The engine components are pure computations over already-fetched data.
The tracker is the asynchronous layer that fetches that data:

  - circuit resolution, once per request type, with lazy stage backfill
  - attempts of one dossier (404 → empty attempts, status ``non_saisi``)
  - verdicts for a list of dossiers
  - progress for a list of dossiers, in fixed-size batches

Progress batches issue every document fetch of the batch concurrently,
await them together, then pause before the next batch.  A failing dossier
never aborts its siblings: it is logged and recorded with the default
zero-progress row.

Results accumulate on a :class:`ProgressBoard`.  Each call to
:meth:`ProgressBoard.start` bumps the board's generation; a batch computed
for an older generation is discarded instead of being applied.

Usage::

    tracker = SuiviTracker(results=client, documents=client, circuits=client)
    circuit = await tracker.resolve_circuit(type_demande_name="Nouveau permis")

    board = ProgressBoard()
    rows = await tracker.load_progress(dossier_ids, circuit=circuit, board=board)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from suivi_engine.constants import (
    IGNORED_TYPE_DEMANDE_IDS,
    SUIVI_BATCH_PAUSE_SECONDS,
    SUIVI_BATCH_SIZE,
)
from suivi_engine.ingestion import group_results, to_result_records
from suivi_engine.interfaces import (
    CircuitSource,
    DataSourceError,
    DocumentSource,
    ResourceNotFound,
    ResultsSource,
)
from suivi_engine.matcher import filter_documents_for_dossier
from suivi_engine.models.attempt import CaseAttempts, CategoryStatus, ExamCategory
from suivi_engine.models.circuit import Circuit, order_stages
from suivi_engine.models.progress import ProgressSummary, StageCompletion
from suivi_engine.progress import CircuitProgressCalculator
from suivi_engine.status import compute_case_verdict, compute_category_status

logger = logging.getLogger(__name__)

BatchCallback = Callable[[dict[str, ProgressSummary]], Awaitable[None] | None]


# ---------------------------------------------------------------------------
# ProgressBoard
# ---------------------------------------------------------------------------

class ProgressBoard:
    """Accumulates progress rows for the case list currently displayed."""

    def __init__(self) -> None:
        self.generation = 0
        self.rows: dict[str, ProgressSummary] = {}

    def start(self) -> int:
        """Begin a new case list: clear the rows and return the new generation."""
        self.generation += 1
        self.rows = {}
        return self.generation

    def apply(self, generation: int, batch: dict[str, ProgressSummary]) -> bool:
        """Merge one batch of rows if it belongs to the current generation."""
        if generation != self.generation:
            logger.debug(
                "Discarding stale batch of %d row(s) (generation %d, current %d)",
                len(batch), generation, self.generation,
            )
            return False
        self.rows.update(batch)
        return True


# ---------------------------------------------------------------------------
# SuiviTracker
# ---------------------------------------------------------------------------

class SuiviTracker:
    """Loads attempts, verdicts and circuit progress through the data sources.

    Args:
        results: source of exam results
        documents: source of uploaded documents
        circuits: source of circuit definitions
        calculator: progress calculator; defaults to the standard one
        batch_size: dossiers fetched concurrently per batch
        batch_pause: seconds to wait between two batches
    """

    def __init__(
        self,
        *,
        results: ResultsSource,
        documents: DocumentSource,
        circuits: CircuitSource,
        calculator: CircuitProgressCalculator | None = None,
        batch_size: int = SUIVI_BATCH_SIZE,
        batch_pause: float = SUIVI_BATCH_PAUSE_SECONDS,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._results = results
        self._documents = documents
        self._circuits = circuits
        self._calculator = calculator or CircuitProgressCalculator()
        self._batch_size = batch_size
        self._batch_pause = batch_pause

    @property
    def calculator(self) -> CircuitProgressCalculator:
        return self._calculator

    # ==================================================================
    # Circuit resolution
    # ==================================================================

    async def resolve_circuit(
        self,
        type_demande_name: str | None = None,
        type_demande_id: str | None = None,
    ) -> Circuit | None:
        """Resolve the circuit of a request type, stages included.

        The name is preferred; when it is missing, the request-type id is
        resolved to a name first.  Placeholder ids (``non_specifie``...) are
        never looked up.  Lookup failures are logged and yield None, which
        the calculator treats as an empty circuit.
        """
        name = (type_demande_name or "").strip()
        if not name and type_demande_id and type_demande_id not in IGNORED_TYPE_DEMANDE_IDS:
            try:
                name = (await self._circuits.get_type_demande_name(type_demande_id) or "").strip()
            except DataSourceError as exc:
                logger.warning("Could not resolve request type %s: %s", type_demande_id, exc)
                return None
        if not name:
            return None

        try:
            circuit = await self._circuits.get_circuit(name)
        except DataSourceError as exc:
            logger.warning("Could not fetch circuit for %r: %s", name, exc)
            return None
        if circuit is None:
            logger.info("No circuit configured for request type %r", name)
            return None

        return await self.ensure_stages(circuit)

    async def ensure_stages(self, circuit: Circuit) -> Circuit:
        """Return ``circuit`` with an ordered stage list, backfilling it if needed."""
        if not circuit.needs_stage_backfill:
            return circuit.model_copy(update={"stages": order_stages(circuit.stages or [])})
        try:
            stages = await self._circuits.get_stages(circuit.id)
        except DataSourceError as exc:
            logger.warning("Could not backfill stages of circuit %s: %s", circuit.id, exc)
            return circuit.model_copy(update={"stages": []})
        return circuit.model_copy(update={"stages": order_stages(stages)})

    # ==================================================================
    # Attempts & verdicts
    # ==================================================================

    async def load_case_attempts(self, dossier_id: str) -> CaseAttempts:
        """Fetch and group the results of one dossier.

        A 404 is the normal "nothing recorded yet" state and yields empty
        attempts.  Other data-source errors propagate.  Legacy per-category
        statuses stored on the dossier are attached to the result; failing to
        read them is logged and leaves ``legacy`` empty.
        """
        try:
            records = await self._results.list_results(dossier_id)
        except ResourceNotFound:
            logger.debug("No results recorded for dossier %s", dossier_id)
            case = CaseAttempts(dossier_id=dossier_id)
        else:
            case = group_results(records, dossier_id=dossier_id)
        case.legacy = await self._load_legacy(dossier_id)
        return case

    async def _load_legacy(self, dossier_id: str) -> dict[ExamCategory, CategoryStatus]:
        try:
            return await self._results.get_legacy_statuses(dossier_id)
        except ResourceNotFound:
            return {}
        except DataSourceError as exc:
            logger.warning("Could not read legacy statuses of dossier %s: %s", dossier_id, exc)
            return {}

    async def save_case_attempts(self, case: CaseAttempts) -> int:
        """Persist every attempt of ``case`` as a result record; returns the count."""
        records = to_result_records(case.dossier_id, case.attempts, notes=case.notes)
        for record in records:
            await self._results.save_result(record)
        logger.info("Saved %d result(s) for dossier %s", len(records), case.dossier_id)
        return len(records)

    async def load_verdict(self, dossier_id: str) -> CategoryStatus:
        """Case verdict of one dossier; any failure yields ``non_saisi``."""
        try:
            case = await self.load_case_attempts(dossier_id)
        except DataSourceError as exc:
            logger.warning("Could not load results of dossier %s: %s", dossier_id, exc)
            return CategoryStatus.NON_SAISI
        statuses = {
            c: compute_category_status(case.for_category(c), case.legacy.get(c))
            for c in ExamCategory
        }
        return compute_case_verdict(
            statuses[ExamCategory.CRENEAUX],
            statuses[ExamCategory.CODE_CONDUITE],
            statuses[ExamCategory.TOUR_VILLE],
        )

    async def load_verdicts(self, dossier_ids: Sequence[str]) -> dict[str, CategoryStatus]:
        """Verdicts for a list of dossiers, fetched in batches."""
        verdicts: dict[str, CategoryStatus] = {}
        for batch in self._batches(dossier_ids):
            values = await asyncio.gather(*(self.load_verdict(d) for d in batch))
            verdicts.update(zip(batch, values))
        return verdicts

    # ==================================================================
    # Progress
    # ==================================================================

    async def load_case_progress(
        self, dossier_id: str, circuit: Circuit | None
    ) -> ProgressSummary:
        """Progress of one dossier; data-source errors propagate."""
        documents = await self._documents.list_documents(dossier_id)
        return self._calculator.compute(dossier_id, circuit, documents)

    async def load_stage_details(
        self, dossier_id: str, circuit: Circuit | None
    ) -> list[StageCompletion]:
        """Per-stage completion detail of one dossier."""
        documents = await self._documents.list_documents(dossier_id)
        own_documents = filter_documents_for_dossier(documents, dossier_id)
        return self._calculator.stage_completions(circuit, own_documents)

    async def _safe_case_progress(
        self, dossier_id: str, circuit: Circuit | None
    ) -> ProgressSummary:
        try:
            return await self.load_case_progress(dossier_id, circuit)
        except Exception:
            logger.warning(
                "Progress of dossier %s could not be computed, defaulting to pending",
                dossier_id, exc_info=True,
            )
            return ProgressSummary.default(dossier_id)

    async def load_progress(
        self,
        dossier_ids: Sequence[str],
        *,
        circuit: Circuit | None,
        board: ProgressBoard | None = None,
        on_batch: BatchCallback | None = None,
    ) -> dict[str, ProgressSummary]:
        """Progress rows for a list of dossiers sharing one circuit.

        ``circuit`` is resolved once by the caller and reused for every
        dossier.  After each batch the rows are applied to ``board`` and
        ``on_batch`` is called with the batch's rows, so partial results
        can be shown before the whole list is done.  When the board moves
        on to a newer generation mid-load, the remaining batches are skipped.

        Returns the rows of this load (one per dossier id).
        """
        board = board if board is not None else ProgressBoard()
        generation = board.start()
        rows: dict[str, ProgressSummary] = {}

        batches = self._batches(dossier_ids)
        for number, batch in enumerate(batches, start=1):
            values = await asyncio.gather(
                *(self._safe_case_progress(d, circuit) for d in batch)
            )
            batch_rows = dict(zip(batch, values))
            rows.update(batch_rows)

            if not board.apply(generation, batch_rows):
                break
            logger.info(
                "Progress batch %d/%d applied (%d dossier(s))",
                number, len(batches), len(batch_rows),
            )
            if on_batch is not None:
                outcome = on_batch(batch_rows)
                if asyncio.iscoroutine(outcome):
                    await outcome

            if number < len(batches) and self._batch_pause > 0:
                await asyncio.sleep(self._batch_pause)

        return rows

    def _batches(self, dossier_ids: Sequence[str]) -> list[list[str]]:
        ids = list(dict.fromkeys(dossier_ids))
        return [ids[i:i + self._batch_size] for i in range(0, len(ids), self._batch_size)]
