"""Per-node outcomes and per-cycle deployment summaries."""

from dataclasses import dataclass, field
from enum import Enum
import json
import logging
from pathlib import Path
from typing import Any

import numpy as np

from fleet_batcher.scheduling.operations import OPERATION_SPECS, OperationKind, Ratio, ThreadPlan
from fleet_batcher.scheduling.ratio import ProductionEstimate

logger = logging.getLogger(__name__)


class NodeStatus(str, Enum):
    DEPLOYED = "deployed"
    PLANNED = "planned"  # Dry run
    SKIPPED = "skipped"
    NO_ACCESS = "no_access"


@dataclass
class NodeOutcome:
    """What happened to one node during a deploy cycle."""

    node: str
    status: NodeStatus
    plan: ThreadPlan | None = None
    free_capacity: float = 0.0
    reason: str = ""

    @property
    def counts_as_deployed(self) -> bool:
        return self.status in (NodeStatus.DEPLOYED, NodeStatus.PLANNED)


@dataclass
class CycleSummary:
    """Aggregated result of one deploy cycle."""

    cycle: int
    target: str
    ratio: Ratio | None = None
    fleet_capacity: float = 0.0
    newly_accessed: int = 0
    dry_run: bool = False
    outcomes: list[NodeOutcome] = field(default_factory=list)
    production: ProductionEstimate | None = None

    def add(self, outcome: NodeOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def deployed(self) -> list[NodeOutcome]:
        return [o for o in self.outcomes if o.counts_as_deployed]

    @property
    def skipped(self) -> list[NodeOutcome]:
        return [o for o in self.outcomes if not o.counts_as_deployed]

    def thread_totals(self) -> np.ndarray:
        """Threads per kind across every deployed node."""
        totals = np.zeros(len(OperationKind), dtype=np.int64)
        for outcome in self.deployed:
            if outcome.plan is not None:
                totals += outcome.plan.as_array()
        return totals

    @property
    def total_threads(self) -> int:
        return int(np.sum(self.thread_totals()))

    def thread_shares(self) -> dict[str, float]:
        """Percent of fleet threads per kind."""
        totals = self.thread_totals()
        total = int(np.sum(totals))
        return {
            OPERATION_SPECS[kind].label: (100.0 * totals[kind] / total if total else 0.0)
            for kind in OperationKind
        }

    def summary(self) -> dict[str, Any]:
        totals = self.thread_totals()
        data: dict[str, Any] = {
            "cycle": self.cycle,
            "target": self.target,
            "dry_run": self.dry_run,
            "fleet_capacity": self.fleet_capacity,
            "newly_accessed": self.newly_accessed,
            "deployed": len(self.deployed),
            "skipped": len(self.skipped),
            "threads": {
                OPERATION_SPECS[kind].label.lower(): totals[kind] for kind in OperationKind
            },
            "total_threads": int(np.sum(totals)),
            "skips": {o.node: o.reason for o in self.skipped},
        }
        if self.ratio is not None:
            data["ratio"] = {
                "extract": self.ratio.extract,
                "replenish": self.ratio.replenish,
                "stabilize": self.ratio.stabilize,
                "batch_window": self.ratio.batch_window,
                "precise": self.ratio.precise,
            }
        if self.production is not None:
            data["production"] = {
                "batches_per_minute": self.production.batches_per_minute,
                "per_second": self.production.per_second,
                "per_hour": self.production.per_hour,
            }
        return data


def log_summary(summary: CycleSummary) -> None:
    """Emit the end-of-cycle summary."""
    totals = summary.thread_totals()
    logger.info(
        "[Cycle %d] %s: %d deployed, %d skipped, %d newly accessed | e%d/r%d/s%d (%d threads)",
        summary.cycle,
        summary.target,
        len(summary.deployed),
        len(summary.skipped),
        summary.newly_accessed,
        totals[OperationKind.EXTRACT],
        totals[OperationKind.REPLENISH],
        totals[OperationKind.STABILIZE],
        summary.total_threads,
    )
    for outcome in summary.skipped:
        if outcome.status == NodeStatus.SKIPPED:
            logger.warning("  skipped %s", outcome.reason)


def save_summary(summary: CycleSummary, path: str | Path) -> None:
    """Write a cycle summary as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(summary.summary(), f, indent=2, default=_json_serializer)


def load_summary(path: str | Path) -> dict[str, Any]:
    with open(path) as f:
        return json.load(f)


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for numpy types."""
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
