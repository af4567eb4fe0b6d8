"""BackendClient — httpx implementation of the suivi data sources.

Endpoints used (relative to the API base URL):

    GET  /resultats?dossier_id=...                      results of a dossier
    POST /resultats                                     save one result
    GET  /documents?documentable_id=...&documentable_type=App\\Models\\Dossier
    GET  /workflow/circuits?nom_entite=...              circuits by entity name
    GET  /workflow/etapes?circuit_id=...                stages of a circuit
    GET  /type-demandes/{id}                            request type
    GET  /dossiers/{id}                                 dossier (legacy ``epreuves`` statuses)

List endpoints answer in one of three shapes, all accepted: a bare list,
``{"data": [...]}`` or ``{"success": true, "data": [...]}``.

A 404 raises :class:`ResourceNotFound`; any other HTTP or transport error,
or a payload that does not fit the models, raises :class:`DataSourceError`.
A malformed item in the circuit list is skipped.  Circuit and stage lookups
are cached for ``CIRCUIT_CACHE_TTL_SECONDS``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError

from suivi_engine.constants import CIRCUIT_CACHE_TTL_SECONDS
from suivi_engine.interfaces import (
    CircuitSource,
    DataSourceError,
    DocumentSource,
    ResourceNotFound,
    ResultsSource,
)
from suivi_engine.models.attempt import CategoryStatus, ExamCategory, ResultRecord
from suivi_engine.models.circuit import Circuit, Document, Stage, order_stages

logger = logging.getLogger(__name__)

DOSSIER_DOCUMENTABLE_TYPE = "App\\Models\\Dossier"


def unwrap_list(payload: Any) -> list[dict]:
    """Extract the item list from any of the backend's response shapes."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, list):
            return data
        # Single object wrapped in {"success": true, "data": {...}}
        if isinstance(data, dict):
            return [data]
    return []


class BackendClient(ResultsSource, DocumentSource, CircuitSource):
    """Async client for the portal backend.

    Args:
        base_url: API root, e.g. ``https://portal.example.org/api``
        token: bearer token sent with every request
        timeout: per-request timeout in seconds
        cache_ttl: lifetime of cached circuits and stages, in seconds
        transport: optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        cache_ttl: float = CIRCUIT_CACHE_TTL_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._cache_ttl = cache_ttl
        # Upper-cased entity name / circuit id -> (stored at, value)
        self._circuit_cache: dict[str, tuple[float, Circuit | None]] = {}
        self._stage_cache: dict[str, tuple[float, list[Stage]]] = {}

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def clear_cache(self) -> None:
        """Forget every cached circuit and stage list."""
        self._circuit_cache.clear()
        self._stage_cache.clear()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise DataSourceError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404:
            raise ResourceNotFound(f"{method} {path}: not found")
        if response.is_error:
            raise DataSourceError(
                f"{method} {path} answered {response.status_code}: {_error_message(response)}"
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DataSourceError(f"{method} {path} returned invalid JSON") from exc

    def _cached(self, cache: dict[str, tuple[float, Any]], key: str) -> tuple[bool, Any]:
        entry = cache.get(key)
        if entry is None:
            return False, None
        stored_at, value = entry
        if time.monotonic() - stored_at >= self._cache_ttl:
            del cache[key]
            return False, None
        return True, value

    # ------------------------------------------------------------------
    # ResultsSource
    # ------------------------------------------------------------------

    async def list_results(self, dossier_id: str) -> list[ResultRecord]:
        payload = await self._request("GET", "/resultats", params={"dossier_id": dossier_id})
        records = _validate_all(ResultRecord, unwrap_list(payload), "GET /resultats")
        # The endpoint may ignore the filter; keep records of this dossier only
        return [r for r in records if r.case_id in (None, str(dossier_id))]

    async def save_result(self, record: ResultRecord) -> None:
        await self._request("POST", "/resultats", json=record.to_payload())

    async def get_legacy_statuses(
        self, dossier_id: str
    ) -> dict[ExamCategory, CategoryStatus]:
        payload = await self._request("GET", f"/dossiers/{dossier_id}")
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        epreuves = payload.get("epreuves") if isinstance(payload, dict) else None
        if not isinstance(epreuves, dict):
            return {}

        statuses: dict[ExamCategory, CategoryStatus] = {}
        for category in ExamCategory:
            raw = epreuves.get(category.value)
            if not raw:
                continue
            try:
                status = CategoryStatus(str(raw).strip().lower())
            except ValueError:
                logger.warning(
                    "Dossier %s: ignoring legacy %s status %r", dossier_id, category.value, raw,
                )
                continue
            if status is not CategoryStatus.NON_SAISI:
                statuses[category] = status
        return statuses

    # ------------------------------------------------------------------
    # DocumentSource
    # ------------------------------------------------------------------

    async def list_documents(self, dossier_id: str) -> list[Document]:
        payload = await self._request(
            "GET",
            "/documents",
            params={
                "documentable_id": dossier_id,
                "documentable_type": DOSSIER_DOCUMENTABLE_TYPE,
            },
        )
        return _validate_all(Document, unwrap_list(payload), "GET /documents")

    # ------------------------------------------------------------------
    # CircuitSource
    # ------------------------------------------------------------------

    async def get_circuit(self, entity_name: str) -> Circuit | None:
        key = entity_name.strip().upper()
        hit, cached = self._cached(self._circuit_cache, key)
        if hit:
            return cached

        payload = await self._request(
            "GET", "/workflow/circuits", params={"nom_entite": entity_name.strip()},
        )
        circuit = None
        for item in unwrap_list(payload):
            try:
                candidate = Circuit.model_validate(item)
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed circuit %r: %d error(s)",
                    item.get("id") if isinstance(item, dict) else item, exc.error_count(),
                )
                continue
            if candidate.entity_name.strip().upper() == key:
                circuit = candidate
                break
        if circuit is None:
            logger.debug("No circuit matches entity name %r", entity_name)
        self._circuit_cache[key] = (time.monotonic(), circuit)
        return circuit

    async def get_stages(self, circuit_id: str) -> list[Stage]:
        key = str(circuit_id)
        hit, cached = self._cached(self._stage_cache, key)
        if hit:
            return list(cached)

        payload = await self._request("GET", "/workflow/etapes", params={"circuit_id": key})
        stages = order_stages(_validate_all(Stage, unwrap_list(payload), "GET /workflow/etapes"))
        self._stage_cache[key] = (time.monotonic(), stages)
        logger.debug("Fetched %d stage(s) for circuit %s", len(stages), key)
        return list(stages)

    async def get_type_demande_name(self, type_demande_id: str) -> str | None:
        payload = await self._request("GET", f"/type-demandes/{type_demande_id}")
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        if not isinstance(payload, dict):
            return None
        name = payload.get("name") or payload.get("nom")
        return str(name) if name else None


def _validate_all(model, items: list[Any], source: str) -> list:
    try:
        return [model.model_validate(item) for item in items]
    except ValidationError as exc:
        raise DataSourceError(f"{source} returned a malformed {model.__name__}: {exc}") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase
