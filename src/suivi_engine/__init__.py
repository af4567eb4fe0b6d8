"""suivi_engine — exam-attempt status and circuit-progress SDK.

Public API:
    AttemptLockCoordinator   — per-dossier attempts, lock sets and prompts
    LockSession              — declined-prompt flags for one case-list view
    DocumentPieceMatcher     — correlates documents with required pieces
    CircuitProgressCalculator — stage completion and progress summary
    SuiviTracker             — batched loading through the data sources
    ProgressBoard            — generation-guarded accumulator of progress rows
    ReviewService            — lock workflow persisted across HTTP calls
    CircuitStore             — circuits loaded from YAML

Pure status functions:
    compute_category_status  — status of one exam category
    compute_case_verdict     — aggregate verdict of the three categories

Data-source interfaces:
    ResultsSource, DocumentSource, CircuitSource
    DataSourceError, ResourceNotFound
"""

from suivi_engine.ingestion import classify_exam_type, group_results, to_result_records
from suivi_engine.interfaces import (
    CircuitSource,
    DataSourceError,
    DocumentSource,
    ResourceNotFound,
    ResultsSource,
)
from suivi_engine.locking import AttemptLockCoordinator, LockSession
from suivi_engine.matcher import (
    DocumentPieceMatcher,
    PieceJustificationResolver,
    PieceResolver,
    TypeDocumentResolver,
    filter_documents_for_dossier,
)
from suivi_engine.progress import CircuitProgressCalculator
from suivi_engine.review import ReviewService
from suivi_engine.status import (
    compute_case_verdict,
    compute_category_status,
    progress_label,
    status_label,
)
from suivi_engine.store import CircuitStore
from suivi_engine.tracker import ProgressBoard, SuiviTracker

__all__ = [
    # Engine components
    "AttemptLockCoordinator",
    "LockSession",
    "DocumentPieceMatcher",
    "PieceResolver",
    "PieceJustificationResolver",
    "TypeDocumentResolver",
    "CircuitProgressCalculator",
    # Orchestration
    "SuiviTracker",
    "ProgressBoard",
    "ReviewService",
    "CircuitStore",
    # Pure functions
    "compute_category_status",
    "compute_case_verdict",
    "status_label",
    "progress_label",
    "classify_exam_type",
    "group_results",
    "to_result_records",
    "filter_documents_for_dossier",
    # Data sources
    "ResultsSource",
    "DocumentSource",
    "CircuitSource",
    "DataSourceError",
    "ResourceNotFound",
]
