"""Abstract data sources feeding the engine.

The engine never talks to the backend itself.  These ABCs define the
contract that data collaborators must fulfil; the SDK ships two
implementations:

  - ``suivi_client.BackendClient`` — the portal's REST API over httpx
  - ``suivi_engine.store.CircuitStore`` — circuits defined in YAML

Typical integration flow::

    client = BackendClient(base_url="https://api.example.org/api")
    tracker = SuiviTracker(results=client, documents=client, circuits=client)

    circuit = await tracker.resolve_circuit(type_demande_name="NOUVEAU PERMIS")
    progress = await tracker.load_progress(dossier_ids, circuit=circuit)
"""

from abc import ABC, abstractmethod

from suivi_engine.models.attempt import CategoryStatus, ExamCategory, ResultRecord
from suivi_engine.models.circuit import Circuit, Document, Stage


class DataSourceError(Exception):
    """A data source could not serve a request."""


class ResourceNotFound(DataSourceError):
    """The data source answered 404 for the requested resource."""


class ResultsSource(ABC):
    """Exam results of dossiers."""

    @abstractmethod
    async def list_results(self, dossier_id: str) -> list[ResultRecord]:
        """Return every result record of ``dossier_id``.

        Raises
        ------
        ResourceNotFound
            When the backend has no results for the dossier.
        DataSourceError
            On any other failure.
        """
        ...

    @abstractmethod
    async def save_result(self, record: ResultRecord) -> None:
        """Persist one result record."""
        ...

    async def get_legacy_statuses(
        self, dossier_id: str
    ) -> dict[ExamCategory, CategoryStatus]:
        """Return the per-category statuses stored on the dossier itself.

        Dossiers created before per-attempt results carry one status per
        category.  Only statuses other than ``non_saisi`` are returned.
        Sources without such records keep this default and return ``{}``.
        """
        return {}


class DocumentSource(ABC):
    """Uploaded documents of dossiers."""

    @abstractmethod
    async def list_documents(self, dossier_id: str) -> list[Document]:
        """Return the documents fetched for ``dossier_id``.

        The returned collection is not guaranteed to be restricted to the
        dossier; callers filter on ``documentable_id``.
        """
        ...


class CircuitSource(ABC):
    """Circuit definitions, resolved by request type."""

    @abstractmethod
    async def get_circuit(self, entity_name: str) -> Circuit | None:
        """Return the circuit whose entity name matches (case-insensitive)."""
        ...

    @abstractmethod
    async def get_stages(self, circuit_id: str) -> list[Stage]:
        """Return the ordered stages of a circuit, pieces included."""
        ...

    @abstractmethod
    async def get_type_demande_name(self, type_demande_id: str) -> str | None:
        """Resolve a request-type id to its name (the circuit entity name)."""
        ...
