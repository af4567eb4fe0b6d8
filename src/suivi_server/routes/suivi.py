"""Case-table endpoints — verdicts and circuit progress for many dossiers.

These endpoints do not touch the database; they read the portal backend
through the tracker.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from suivi_engine.models.attempt import CategoryStatus
from suivi_engine.models.progress import ProgressSummary, StageCompletion, StatusLabel
from suivi_engine.status import progress_label, status_label
from suivi_engine.tracker import ProgressBoard, SuiviTracker

from suivi_server.config import MAX_DOSSIERS_PER_REQUEST
from suivi_server.dependencies import get_tracker, get_user_id

router = APIRouter(prefix="/suivi", tags=["suivi"])


class DossierListRequest(BaseModel):
    dossier_ids: list[str] = Field(min_length=1, max_length=MAX_DOSSIERS_PER_REQUEST)


class ProgressRequest(DossierListRequest):
    """Dossiers sharing one request type; the circuit is resolved once."""
    type_demande_name: str | None = None
    type_demande_id: str | None = None


class VerdictRow(BaseModel):
    dossier_id: str
    verdict: CategoryStatus
    label: StatusLabel


class ProgressRow(ProgressSummary):
    label: StatusLabel


class StageDetailResponse(BaseModel):
    dossier_id: str
    circuit_label: str | None = None
    stages: list[StageCompletion]


@router.post("/verdicts")
async def load_verdicts(
    body: DossierListRequest,
    user_id: str = Depends(get_user_id),
    tracker: SuiviTracker = Depends(get_tracker),
) -> list[VerdictRow]:
    """Case verdict of each dossier (``non_saisi`` when nothing is recorded)."""
    verdicts = await tracker.load_verdicts(body.dossier_ids)
    return [
        VerdictRow(dossier_id=d, verdict=v, label=status_label(v))
        for d, v in verdicts.items()
    ]


@router.post("/progress")
async def load_progress(
    body: ProgressRequest,
    user_id: str = Depends(get_user_id),
    tracker: SuiviTracker = Depends(get_tracker),
) -> list[ProgressRow]:
    """Circuit progress of each dossier, computed in batches."""
    circuit = await tracker.resolve_circuit(
        type_demande_name=body.type_demande_name,
        type_demande_id=body.type_demande_id,
    )
    rows = await tracker.load_progress(body.dossier_ids, circuit=circuit, board=ProgressBoard())
    return [
        ProgressRow(**row.model_dump(), label=progress_label(row.status))
        for row in rows.values()
    ]


@router.get("/dossiers/{dossier_id}/stages")
async def stage_details(
    dossier_id: str,
    type_demande_name: str | None = Query(None),
    type_demande_id: str | None = Query(None),
    user_id: str = Depends(get_user_id),
    tracker: SuiviTracker = Depends(get_tracker),
) -> StageDetailResponse:
    """Per-stage completion of one dossier, with the documents matched per piece."""
    circuit = await tracker.resolve_circuit(
        type_demande_name=type_demande_name,
        type_demande_id=type_demande_id,
    )
    stages = await tracker.load_stage_details(dossier_id, circuit)
    return StageDetailResponse(
        dossier_id=dossier_id,
        circuit_label=circuit.label if circuit is not None else None,
        stages=stages,
    )
