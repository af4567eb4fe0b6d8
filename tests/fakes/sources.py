"""In-memory data sources.

Each fake implements one suivi_engine source interface over plain dicts
and records the calls it receives, so tests can assert how often the
backend would have been hit.
"""

from suivi_engine.interfaces import (
    CircuitSource,
    DataSourceError,
    DocumentSource,
    ResourceNotFound,
    ResultsSource,
)
from suivi_engine.models import Circuit, Document, ResultRecord, Stage


class FakeResults(ResultsSource):
    """Results keyed by dossier id.  Missing dossiers answer 404."""

    def __init__(self, results: dict[str, list[ResultRecord]] | None = None):
        self.results = results or {}
        self.failing: set[str] = set()
        self.saved: list[ResultRecord] = []
        self.calls: list[str] = []
        self.legacy: dict[str, dict] = {}
        self.legacy_failing: set[str] = set()

    async def list_results(self, dossier_id):
        self.calls.append(dossier_id)
        if dossier_id in self.failing:
            raise DataSourceError(f"results of {dossier_id}: 500")
        if dossier_id not in self.results:
            raise ResourceNotFound(f"results of {dossier_id}")
        return list(self.results[dossier_id])

    async def save_result(self, record):
        self.saved.append(record)

    async def get_legacy_statuses(self, dossier_id):
        if dossier_id in self.legacy_failing:
            raise DataSourceError(f"dossier {dossier_id}: 502")
        return dict(self.legacy.get(dossier_id, {}))


class FakeDocuments(DocumentSource):
    """A shared document collection, returned unfiltered like the real API may."""

    def __init__(self, documents: list[Document] | None = None):
        self.documents = documents or []
        self.failing: set[str] = set()
        self.calls: list[str] = []

    async def list_documents(self, dossier_id):
        self.calls.append(dossier_id)
        if dossier_id in self.failing:
            raise DataSourceError(f"documents of {dossier_id}: timeout")
        return list(self.documents)


class FakeCircuits(CircuitSource):
    """Circuits keyed by upper-cased entity name; stages keyed by circuit id."""

    def __init__(self):
        self.circuits: dict[str, Circuit] = {}
        self.stages: dict[str, list[Stage]] = {}
        self.type_demandes: dict[str, str] = {}
        self.circuit_calls: list[str] = []
        self.stage_calls: list[str] = []
        self.type_calls: list[str] = []

    async def get_circuit(self, entity_name):
        self.circuit_calls.append(entity_name)
        return self.circuits.get(entity_name.upper())

    async def get_stages(self, circuit_id):
        self.stage_calls.append(circuit_id)
        if circuit_id not in self.stages:
            raise DataSourceError(f"stages of {circuit_id}: 500")
        return list(self.stages[circuit_id])

    async def get_type_demande_name(self, type_demande_id):
        self.type_calls.append(type_demande_id)
        return self.type_demandes.get(type_demande_id)
