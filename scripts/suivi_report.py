#!/usr/bin/env python3
"""Print the exam verdict and circuit progress of a list of dossiers.

Calls the SDK directly against the portal backend (no suivi server, no
database): results and documents come from the backend API, circuits from
the backend or from a local YAML directory.

Usage::

    # Install deps (first time only)
    uv pip install -e .

    uv run python scripts/suivi_report.py 101 102 103 --type-demande "NOUVEAU PERMIS"

    # Circuits from YAML, backend token from the environment
    SERVER_BACKEND_TOKEN=... uv run python scripts/suivi_report.py 101 102 \\
        --type-demande "NOUVEAU PERMIS" --circuit-dir circuits
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from rich.console import Console
from rich.table import Table

from suivi_client import BackendClient
from suivi_engine import CircuitStore, ProgressBoard, SuiviTracker
from suivi_engine.interfaces import CircuitSource
from suivi_engine.models import ProgressSummary
from suivi_engine.status import progress_label, status_label

# rich style per label color
_STYLES = {
    "success": "green",
    "error": "red",
    "warning": "yellow",
    "primary": "cyan",
    "default": "dim",
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Exam verdict and circuit progress of dossiers.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("dossier_ids", nargs="+", help="Dossier ids to report on")
    parser.add_argument(
        "--backend-url",
        default=os.getenv("SERVER_BACKEND_URL", "http://localhost:8000/api"),
        help="Portal backend API root (default: $SERVER_BACKEND_URL)",
    )
    parser.add_argument(
        "--type-demande",
        default=None,
        help="Request-type name shared by the dossiers (selects the circuit)",
    )
    parser.add_argument(
        "--type-demande-id",
        default=None,
        help="Request-type id, used when --type-demande is not given",
    )
    parser.add_argument(
        "--circuit-dir",
        default=None,
        help="Read circuits from YAML files in this directory",
    )
    parser.add_argument(
        "--timeout",
        type=float, default=10.0,
        help="HTTP request timeout in seconds (default: 10)",
    )
    return parser.parse_args()


def _styled(label: str, color: str) -> str:
    style = _STYLES.get(color, "")
    return f"[{style}]{label}[/]" if style else label


async def main() -> None:
    args = parse_args()
    console = Console()

    async with BackendClient(
        args.backend_url,
        token=os.getenv("SERVER_BACKEND_TOKEN") or None,
        timeout=args.timeout,
    ) as client:
        circuits: CircuitSource = client
        if args.circuit_dir:
            store = CircuitStore(args.circuit_dir)
            store.load()
            circuits = store

        tracker = SuiviTracker(results=client, documents=client, circuits=circuits)
        circuit = await tracker.resolve_circuit(
            type_demande_name=args.type_demande,
            type_demande_id=args.type_demande_id,
        )
        if circuit is None:
            console.print("[yellow]No circuit resolved: progress will be 0%[/]")
        else:
            console.print(
                f"[bold]Circuit:[/] {circuit.label} ({len(circuit.stages or [])} stages)"
            )

        def on_batch(rows: dict[str, ProgressSummary]) -> None:
            console.print(f"[dim]  progress loaded for {', '.join(rows)}[/]")

        board = ProgressBoard()
        progress = await tracker.load_progress(
            args.dossier_ids, circuit=circuit, board=board, on_batch=on_batch,
        )
        verdicts = await tracker.load_verdicts(args.dossier_ids)

    table = Table(title="Dossier suivi", show_lines=True)
    table.add_column("Dossier", style="bold")
    table.add_column("Examens", width=12)
    table.add_column("Progression", justify="right", width=11)
    table.add_column("Étape en cours", min_width=20)
    table.add_column("Documents", justify="right", width=10)
    table.add_column("Statut", width=12)

    for dossier_id in dict.fromkeys(args.dossier_ids):
        verdict = status_label(verdicts[dossier_id])
        row = progress[dossier_id]
        p_label = progress_label(row.status)
        table.add_row(
            dossier_id,
            _styled(verdict.label, verdict.color),
            f"{row.progress_percent}%",
            row.current_stage_label or "-",
            f"{row.documents_validated}/{row.documents_count}",
            _styled(p_label.label, p_label.color),
        )

    console.print(table)

    if any(r.status.value == "pending" for r in progress.values()):
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
