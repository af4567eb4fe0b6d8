"""Constants shared across the suivi SDK.

These values are referenced by the status engine, the lock coordinator,
the ingestion layer and the batched tracker.

Operational knobs (batch size, inter-batch pause, circuit cache TTL) can be
overridden via environment variables so that deployments can tune the load
placed on the backend API without code changes.  The attempt cap is an
invariant of the exam rules and is not configurable.
"""

import os

# Maximum number of attempts per exam category.
MAX_ATTEMPTS = 3

# Substring keywords used to classify free-text exam types, checked in
# order; first match wins.  Matching is case-insensitive.
EXAM_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("creneau", "creneaux"),
    ("code", "codeConduite"),
    ("ville", "tourVille"),
)

# Number of dossiers whose documents are fetched concurrently per batch.
# Overridable via SUIVI_BATCH_SIZE env var.
SUIVI_BATCH_SIZE = int(os.getenv("SUIVI_BATCH_SIZE", "5"))

# Pause (seconds) between two batches of document fetches.
# Overridable via SUIVI_BATCH_PAUSE_SECONDS env var.
SUIVI_BATCH_PAUSE_SECONDS = float(os.getenv("SUIVI_BATCH_PAUSE_SECONDS", "0.1"))

# How long a resolved circuit stays cached in the REST client (seconds).
# Overridable via CIRCUIT_CACHE_TTL_SECONDS env var.
CIRCUIT_CACHE_TTL_SECONDS = float(os.getenv("CIRCUIT_CACHE_TTL_SECONDS", "300"))

# Request-type ids sent by the portal when no request type is selected.
# These are never looked up.
IGNORED_TYPE_DEMANDE_IDS: set[str] = {"non_specifie", "null", "undefined"}

# Human-readable labels and UI colors for category statuses / verdicts.
STATUS_LABELS: dict[str, tuple[str, str]] = {
    "reussi": ("Validé", "success"),
    "echoue": ("Échoué", "error"),
    "absent": ("Absent", "warning"),
    "non_saisi": ("Non saisi", "default"),
}

# UI colors for circuit progress statuses.
PROGRESS_COLORS: dict[str, str] = {
    "completed": "success",
    "in_progress": "primary",
    "blocked": "error",
    "pending": "warning",
}
