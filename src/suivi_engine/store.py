"""CircuitStore — circuit definitions loaded from YAML files.

An offline :class:`CircuitSource`: every ``*.yaml`` file of the circuit
directory is parsed at :meth:`CircuitStore.load` time.  A file holds a list
of circuits and, optionally, the request types that point to them::

    circuits:
      - id: "7"
        libelle: Circuit permis B
        nom_entite: NOUVEAU PERMIS
        etapes:
          - id: "71"
            code: DEPOT
            libelle: Dépôt du dossier
            ordre: 1
            pieces:
              - piece_id: "3"
                libelle: Pièce d'identité
    type_demandes:
      "12": NOUVEAU PERMIS

Usage::

    store = CircuitStore()          # defaults to circuits/ at the repo root
    store.load()

    circuit = await store.get_circuit("nouveau permis")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from suivi_engine.interfaces import CircuitSource, ResourceNotFound
from suivi_engine.models.circuit import Circuit, Stage, order_stages

logger = logging.getLogger(__name__)


def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class CircuitStore(CircuitSource):
    """Loads circuit YAML files and serves them as a circuit source.

    Attributes populated after :meth:`load`:

        circuits      — dict[entity_name.lower(), Circuit]
        type_demandes — dict[type_demande_id, entity_name]
    """

    def __init__(self, circuit_dir: str | Path | None = None) -> None:
        if circuit_dir is None:
            circuit_dir = find_repo_root() / "circuits"
        self._base = Path(circuit_dir)

        self.circuits: dict[str, Circuit] = {}
        self.type_demandes: dict[str, str] = {}
        self._by_id: dict[str, Circuit] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse every YAML file of the circuit directory.

        Raises ``FileNotFoundError`` when the directory does not exist and
        ``ValueError`` on a duplicate entity name or circuit id.
        """
        if not self._base.is_dir():
            raise FileNotFoundError(f"Missing circuit directory: {self._base}")

        for path in sorted(self._base.glob("*.yaml")):
            self._load_file(path)
        logger.info(
            "CircuitStore loaded: %d circuits, %d request types",
            len(self.circuits), len(self.type_demandes),
        )

    def _load_file(self, path: Path) -> None:
        raw = load_yaml(path) or {}
        for item in raw.get("circuits") or []:
            circuit = Circuit.model_validate(item)
            key = circuit.entity_name.strip().lower()
            if not key:
                raise ValueError(f"Circuit without entity name in {path.name}")
            if key in self.circuits:
                raise ValueError(f"Circuit for '{circuit.entity_name}' already exists ({path.name})")
            if circuit.id is not None and circuit.id in self._by_id:
                raise ValueError(f"Circuit id '{circuit.id}' already exists ({path.name})")
            if circuit.stages:
                circuit = circuit.model_copy(update={"stages": order_stages(circuit.stages)})
            self.circuits[key] = circuit
            if circuit.id is not None:
                self._by_id[circuit.id] = circuit

        for type_id, entity_name in (raw.get("type_demandes") or {}).items():
            self.type_demandes[str(type_id)] = str(entity_name)

    # ------------------------------------------------------------------
    # CircuitSource
    # ------------------------------------------------------------------

    async def get_circuit(self, entity_name: str) -> Circuit | None:
        circuit = self.circuits.get(entity_name.strip().lower())
        if circuit is None or not circuit.active:
            return None
        return circuit

    async def get_stages(self, circuit_id: str) -> list[Stage]:
        circuit = self._by_id.get(circuit_id)
        if circuit is None:
            raise ResourceNotFound(f"Circuit '{circuit_id}' not found")
        return list(circuit.stages or [])

    async def get_type_demande_name(self, type_demande_id: str) -> str | None:
        return self.type_demandes.get(str(type_demande_id))
