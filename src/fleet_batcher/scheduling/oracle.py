"""Timing oracle interfaces, target snapshots and timing overrides."""

from dataclasses import dataclass
import json
import logging
import math
from pathlib import Path
from typing import Protocol, runtime_checkable

from fleet_batcher.scheduling.operations import Durations

logger = logging.getLogger(__name__)


class TimingOracle(Protocol):
    """Protocol for sources of target timing, risk and resource state."""

    def target_exists(self, target: str) -> bool: ...

    def durations(self, target: str) -> Durations:
        """Seconds for one Extract, Replenish and Stabilize operation."""
        ...

    def risk_state(self, target: str) -> tuple[float, float]:
        """Return (current, floor) risk level."""
        ...

    def resource_state(self, target: str) -> tuple[float, float]:
        """Return (current, max) resource."""
        ...

    def extract_fraction(self, target: str) -> float:
        """Fraction of max resource one Extract thread removes, in (0, 1]."""
        ...

    def regeneration_rate(self, target: str) -> float:
        """Target's regeneration rate; 100 is nominal."""
        ...


@runtime_checkable
class PreciseTimingOracle(Protocol):
    """Higher-fidelity oracle able to size Replenish exactly."""

    def replenish_threads_needed(self, target: str, amount_removed: float) -> int: ...


def is_precise(oracle: object) -> bool:
    """True if the oracle can compute exact Replenish thread counts.

    Checked through getattr so delegating wrappers are recognised too.
    """
    return callable(getattr(oracle, "replenish_threads_needed", None))


@dataclass(frozen=True)
class TargetState:
    """Snapshot of a target taken at the start of one scheduling decision."""

    name: str
    durations: Durations
    risk: float
    risk_floor: float
    resource: float
    max_resource: float

    @classmethod
    def capture(cls, oracle: TimingOracle, target: str) -> "TargetState":
        risk, risk_floor = oracle.risk_state(target)
        resource, max_resource = oracle.resource_state(target)
        return cls(
            name=target,
            durations=oracle.durations(target),
            risk=risk,
            risk_floor=risk_floor,
            resource=resource,
            max_resource=max_resource,
        )

    @property
    def risk_excess(self) -> float:
        return max(0.0, self.risk - self.risk_floor)

    @property
    def resource_fill(self) -> float:
        """Fraction of max resource currently available."""
        if self.max_resource <= 0:
            return 0.0
        return self.resource / self.max_resource

    @property
    def is_prepared(self) -> bool:
        """At max resource and floor risk, where the ratio is exact."""
        return self.risk_excess < 1e-9 and self.resource_fill >= 1.0 - 1e-9


# Timing overrides: {node: {"extract": s, "replenish": s, "stabilize": s}}

def load_timing_overrides(path: str | Path) -> dict[str, Durations]:
    """Load per-node timing overrides from a JSON file.

    Entries with missing or non-finite values are skipped.
    """
    with open(path) as f:
        raw = json.load(f)

    overrides: dict[str, Durations] = {}
    for node, entry in raw.items():
        try:
            durations = Durations(
                extract=float(entry["extract"]),
                replenish=float(entry["replenish"]),
                stabilize=float(entry["stabilize"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping timing override for %s: %s", node, e)
            continue
        if not all(math.isfinite(d) for d in durations):
            logger.warning("Skipping timing override for %s: non-finite value(s)", node)
            continue
        overrides[node] = durations
    return overrides


def save_timing_overrides(path: str | Path, overrides: dict[str, Durations]) -> None:
    """Write per-node timing overrides as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump({node: d.as_dict() for node, d in overrides.items()}, f, indent=2)


class OverrideTimingOracle:
    """Oracle wrapper serving overridden durations for selected targets.

    Everything other than durations is delegated to the wrapped oracle, which
    keeps the precise Replenish path available when the inner oracle has it.
    """

    def __init__(self, inner: TimingOracle, overrides: dict[str, Durations]):
        self._inner = inner
        self._overrides = dict(overrides)

    def __getattr__(self, name: str):
        # Unset while copy or pickle rebuilds the instance
        if name == "_inner":
            raise AttributeError(name)
        return getattr(self._inner, name)

    def target_exists(self, target: str) -> bool:
        return self._inner.target_exists(target)

    def durations(self, target: str) -> Durations:
        if target in self._overrides:
            return self._overrides[target]
        return self._inner.durations(target)

    def risk_state(self, target: str) -> tuple[float, float]:
        return self._inner.risk_state(target)

    def resource_state(self, target: str) -> tuple[float, float]:
        return self._inner.resource_state(target)

    def extract_fraction(self, target: str) -> float:
        return self._inner.extract_fraction(target)

    def regeneration_rate(self, target: str) -> float:
        return self._inner.regeneration_rate(target)
