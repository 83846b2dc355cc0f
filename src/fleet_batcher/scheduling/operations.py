"""Operation kinds and the value types passed between scheduling stages."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator

import numpy as np


class OperationKind(IntEnum):
    """The three timed operations run against a target.

    Ordered the way thread counts are stored in every per-kind vector.
    """

    EXTRACT = 0  # Removes resource, raises risk
    REPLENISH = 1  # Restores resource, raises risk
    STABILIZE = 2  # Lowers risk


@dataclass(frozen=True)
class OperationSpec:
    """Static description of an operation kind."""

    artifact: str  # Executable copied to and launched on worker nodes
    label: str


OPERATION_SPECS: dict[OperationKind, OperationSpec] = {
    OperationKind.EXTRACT: OperationSpec(artifact="ops/extract.script", label="Extract"),
    OperationKind.REPLENISH: OperationSpec(artifact="ops/replenish.script", label="Replenish"),
    OperationKind.STABILIZE: OperationSpec(artifact="ops/stabilize.script", label="Stabilize"),
}

ARTIFACTS: tuple[str, ...] = tuple(OPERATION_SPECS[k].artifact for k in OperationKind)

# Launch order on a node: risk reduction first, extraction last
LAUNCH_ORDER: tuple[OperationKind, ...] = (
    OperationKind.STABILIZE,
    OperationKind.REPLENISH,
    OperationKind.EXTRACT,
)


def kind_for_artifact(artifact: str) -> OperationKind | None:
    """Map an artifact name back to its operation kind."""
    for kind, spec in OPERATION_SPECS.items():
        if spec.artifact == artifact:
            return kind
    return None


@dataclass(frozen=True)
class Durations:
    """Duration in seconds of one operation of each kind against a target."""

    extract: float
    replenish: float
    stabilize: float

    def __iter__(self) -> Iterator[float]:
        return iter((self.extract, self.replenish, self.stabilize))

    def as_dict(self) -> dict[str, float]:
        return {"extract": self.extract, "replenish": self.replenish, "stabilize": self.stabilize}

    @property
    def batch_window(self) -> float:
        """Longest of the three durations."""
        return max(self)

    @property
    def is_valid(self) -> bool:
        return all(np.isfinite(d) and d > 0 for d in self)


@dataclass(frozen=True)
class OperationCosts:
    """Memory cost of a single thread of each kind on a given node."""

    extract: float
    replenish: float
    stabilize: float

    def __iter__(self) -> Iterator[float]:
        return iter((self.extract, self.replenish, self.stabilize))

    def as_array(self) -> np.ndarray:
        return np.array(list(self), dtype=np.float64)

    @property
    def is_valid(self) -> bool:
        return all(np.isfinite(c) and c > 0 for c in self)


@dataclass(frozen=True)
class Ratio:
    """Integer base ratio of the three operation kinds for one batch.

    The stabilize count offsets the risk added by the extract and replenish
    counts, rounded up.
    """

    extract: int
    replenish: int
    stabilize: int
    batch_window: float = 0.0  # Longest operation duration, seconds
    precise: bool = False  # True when replenish came from the oracle
    timing_efficiency: float = 0.0  # batch_window / sum of durations

    def as_array(self) -> np.ndarray:
        return np.array([self.extract, self.replenish, self.stabilize], dtype=np.int64)

    def count(self, kind: OperationKind) -> int:
        return int(self.as_array()[kind])

    @property
    def total(self) -> int:
        return self.extract + self.replenish + self.stabilize

    @property
    def fractions(self) -> dict[OperationKind, float]:
        """Counts normalized to sum 1, for diagnostics."""
        total = self.total
        if total == 0:
            return {kind: 0.0 for kind in OperationKind}
        return {kind: self.count(kind) / total for kind in OperationKind}

    def unit_cost(self, costs: OperationCosts) -> float:
        """Memory needed by one copy of the base ratio."""
        return float(np.dot(self.as_array(), costs.as_array()))


@dataclass
class ThreadPlan:
    """Thread counts of each kind to launch on one node."""

    extract: int
    replenish: int
    stabilize: int
    costs: OperationCosts = field(repr=False)

    def as_array(self) -> np.ndarray:
        return np.array([self.extract, self.replenish, self.stabilize], dtype=np.int64)

    def count(self, kind: OperationKind) -> int:
        return int(self.as_array()[kind])

    def memory_by_kind(self) -> np.ndarray:
        return self.as_array() * self.costs.as_array()

    @property
    def total_cost(self) -> float:
        return float(np.sum(self.memory_by_kind()))

    @property
    def total_threads(self) -> int:
        return self.extract + self.replenish + self.stabilize
