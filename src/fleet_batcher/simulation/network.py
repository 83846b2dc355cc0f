"""In-process simulated network for driving the manager end to end.

A single SimulatedNetwork implements the timing oracle, node access and
execution environment protocols. Worker threads run until terminated;
advance() evolves target resource and risk under whatever is running.
"""

from dataclasses import dataclass, field
import math
from typing import Iterable

import numpy as np

from fleet_batcher.config import DEFAULT_HOST, RiskConstants
from fleet_batcher.execution.environment import RunningProcess
from fleet_batcher.scheduling.operations import (
    ARTIFACTS,
    OPERATION_SPECS,
    Durations,
    OperationKind,
)

DEFAULT_CAPABILITIES = ("ssh", "ftp", "smtp", "http", "sql")


def _default_artifact_costs() -> dict[str, float]:
    return {
        OPERATION_SPECS[OperationKind.EXTRACT].artifact: 1.7,
        OPERATION_SPECS[OperationKind.REPLENISH].artifact: 1.75,
        OPERATION_SPECS[OperationKind.STABILIZE].artifact: 1.75,
    }


@dataclass
class SimulationConfig:
    """Configuration of the simulated operator and its tooling."""

    capabilities: tuple[str, ...] = DEFAULT_CAPABILITIES[:2]  # Unlock tools owned
    operator_level: int = 50
    precise: bool = False  # Offer exact Replenish sizing
    artifact_costs: dict[str, float] = field(default_factory=_default_artifact_costs)
    cost_jitter: float = 0.0  # Max relative per-node cost variance
    growth_per_thread: float = 0.00005  # Resource growth per Replenish thread, per rate unit
    risk: RiskConstants = field(default_factory=RiskConstants)


@dataclass
class SimulatedNode:
    """A node of the simulated network."""

    name: str
    max_capacity: float
    has_access: bool = False
    required_capabilities: int = 0
    required_level: int = 1
    reserved: float = 0.0  # Memory used by unrelated workloads
    cost_scale: float = 1.0
    opened: set[str] = field(default_factory=set)
    artifacts: set[str] = field(default_factory=set)


@dataclass
class SimulatedTarget:
    """Resource-bearing target; durations stretch as risk rises above its floor."""

    name: str
    max_resource: float
    resource: float
    risk_floor: float
    risk: float
    base_durations: Durations = field(default_factory=lambda: Durations(10.0, 32.0, 40.0))
    regeneration_rate: float = 100.0
    extract_fraction: float = 0.002  # Per Extract thread

    def durations(self) -> Durations:
        factor = 1.0 + (self.risk - self.risk_floor) / max(self.risk_floor, 1.0)
        return Durations(*(d * factor for d in self.base_durations))


@dataclass
class _Process:
    artifact: str
    node: str
    threads: int
    handle: int
    args: tuple = ()


class SimulatedNetwork:
    """Simulated nodes, targets and running workers."""

    def __init__(
        self,
        nodes: Iterable[SimulatedNode],
        links: Iterable[tuple[str, str]],
        targets: Iterable[SimulatedTarget],
        config: SimulationConfig | None = None,
        host: str = DEFAULT_HOST,
        seed: int | None = None,
    ):
        self.config = config or SimulationConfig()
        self.host = host
        self.np_random = np.random.default_rng(seed)

        self._nodes: dict[str, SimulatedNode] = {}
        self._links: dict[str, set[str]] = {}
        for node in nodes:
            self._add(node)
        for a, b in links:
            self.connect(a, b)
        self._targets = {t.name: t for t in targets}

        home = self._nodes[host]
        home.has_access = True
        home.artifacts.update(ARTIFACTS)

        self._processes: dict[int, _Process] = {}
        self._next_handle = 1
        self.copy_failures: set[str] = set()  # Nodes refusing artifact copies
        self.unreachable: set[str] = set()  # Nodes whose neighbor query fails
        self.total_extracted: float = 0.0
        self.sim_time: float = 0.0

    def _add(self, node: SimulatedNode) -> None:
        if self.config.cost_jitter > 0:
            jitter = self.np_random.uniform(-self.config.cost_jitter, self.config.cost_jitter)
            node.cost_scale = 1.0 + float(jitter)
        self._nodes[node.name] = node
        self._links.setdefault(node.name, set())

    def connect(self, a: str, b: str) -> None:
        self._links[a].add(b)
        self._links[b].add(a)

    def node(self, name: str) -> SimulatedNode:
        return self._nodes[name]

    def target(self, name: str) -> SimulatedTarget:
        return self._targets[name]

    @property
    def node_names(self) -> list[str]:
        return list(self._nodes)

    # ─── Fleet churn ───────────────────────────────────────────────────

    def add_node(self, node: SimulatedNode, neighbors: Iterable[str]) -> None:
        self._add(node)
        for neighbor in neighbors:
            self.connect(node.name, neighbor)

    def remove_node(self, name: str) -> None:
        self.crash(name)
        for neighbor in self._links.pop(name, set()):
            self._links[neighbor].discard(name)
        del self._nodes[name]

    def upgrade(self, name: str, max_capacity: float) -> None:
        self._nodes[name].max_capacity = max_capacity

    def crash(self, name: str) -> int:
        """Kill every worker on a node; returns how many died."""
        dead = [h for h, p in self._processes.items() if p.node == name]
        for handle in dead:
            del self._processes[handle]
        return len(dead)

    def grant_capability(self, capability: str) -> None:
        if capability not in self.config.capabilities:
            self.config.capabilities = (*self.config.capabilities, capability)

    # ─── NodeAccess ────────────────────────────────────────────────────

    def neighbors(self, node: str) -> list[str]:
        if node in self.unreachable:
            raise ConnectionError(f"scan of {node} failed")
        return sorted(self._links[node])

    def has_access(self, node: str) -> bool:
        return self._nodes[node].has_access

    def attempt_access(self, node: str) -> bool:
        n = self._nodes[node]
        if (
            len(n.opened) >= n.required_capabilities
            and n.required_level <= self.config.operator_level
        ):
            n.has_access = True
        return n.has_access

    def max_capacity(self, node: str) -> float:
        return self._nodes[node].max_capacity

    def used_capacity(self, node: str) -> float:
        used = self._nodes[node].reserved
        for proc in self._processes.values():
            if proc.node == node:
                used += proc.threads * self.artifact_cost(proc.artifact, node)
        return used

    def available_capabilities(self) -> list[str]:
        return list(self.config.capabilities)

    def apply_capability(self, capability: str, node: str) -> None:
        if capability in self.config.capabilities:
            self._nodes[node].opened.add(capability)

    def required_capabilities(self, node: str) -> int:
        return self._nodes[node].required_capabilities

    def required_level(self, node: str) -> int:
        return self._nodes[node].required_level

    def operator_level(self) -> int:
        return self.config.operator_level

    # ─── TimingOracle ──────────────────────────────────────────────────

    def target_exists(self, target: str) -> bool:
        return target in self._targets

    def durations(self, target: str) -> Durations:
        return self._targets[target].durations()

    def risk_state(self, target: str) -> tuple[float, float]:
        t = self._targets[target]
        return t.risk, t.risk_floor

    def resource_state(self, target: str) -> tuple[float, float]:
        t = self._targets[target]
        return t.resource, t.max_resource

    def extract_fraction(self, target: str) -> float:
        return self._targets[target].extract_fraction

    def regeneration_rate(self, target: str) -> float:
        return self._targets[target].regeneration_rate

    def _growth_per_thread(self, target: SimulatedTarget) -> float:
        return 1.0 + self.config.growth_per_thread * target.regeneration_rate

    # ─── ExecutionEnvironment ──────────────────────────────────────────

    def artifact_exists(self, artifact: str, node: str) -> bool:
        return artifact in self._nodes[node].artifacts

    def copy_artifact(self, artifact: str, source: str, dest: str) -> bool:
        if dest in self.copy_failures or dest not in self._nodes:
            return False
        if artifact not in self._nodes[source].artifacts:
            return False
        self._nodes[dest].artifacts.add(artifact)
        return True

    def artifact_cost(self, artifact: str, node: str) -> float:
        base = self.config.artifact_costs.get(artifact, 0.0)
        return base * self._nodes[node].cost_scale

    def launch(self, artifact: str, node: str, threads: int, *args) -> int:
        n = self._nodes.get(node)
        if n is None or not n.has_access or threads < 1:
            return 0
        if artifact not in n.artifacts:
            return 0
        needed = threads * self.artifact_cost(artifact, node)
        if needed > n.max_capacity - self.used_capacity(node) + 1e-9:
            return 0
        handle = self._next_handle
        self._next_handle += 1
        self._processes[handle] = _Process(artifact, node, threads, handle, tuple(args))
        return handle

    def list_running(self, node: str) -> list[RunningProcess]:
        return [
            RunningProcess(p.artifact, p.threads, p.handle, p.args)
            for p in self._processes.values()
            if p.node == node
        ]

    def terminate(self, handle: int) -> bool:
        return self._processes.pop(handle, None) is not None

    # ─── Dynamics ──────────────────────────────────────────────────────

    def threads_against(self, target: str) -> np.ndarray:
        """Running threads per operation kind aimed at ``target``."""
        threads = np.zeros(len(OperationKind), dtype=np.int64)
        for proc in self._processes.values():
            if not proc.args or proc.args[0] != target:
                continue
            for kind in OperationKind:
                if OPERATION_SPECS[kind].artifact == proc.artifact:
                    threads[kind] += proc.threads
        return threads

    def advance(self, seconds: float) -> float:
        """Advance every target by ``seconds``; returns resource extracted."""
        extracted_total = 0.0
        risk = self.config.risk
        for target in self._targets.values():
            threads = self.threads_against(target.name)
            if not threads.any():
                continue
            durations = np.array(list(target.durations()), dtype=np.float64)
            runs = threads * (seconds / durations)

            extracted = min(
                target.resource,
                runs[OperationKind.EXTRACT] * target.extract_fraction * target.max_resource,
            )
            target.resource -= extracted
            growth = self._growth_per_thread(target) ** runs[OperationKind.REPLENISH]
            target.resource = min(target.max_resource, max(target.resource, 1.0) * growth)

            target.risk += (
                runs[OperationKind.EXTRACT] * risk.extract_increment
                + runs[OperationKind.REPLENISH] * risk.replenish_increment
                - runs[OperationKind.STABILIZE] * risk.stabilize_effect
            )
            target.risk = max(target.risk_floor, target.risk)
            extracted_total += extracted

        self.sim_time += seconds
        self.total_extracted += extracted_total
        return extracted_total


class PreciseSimulatedNetwork(SimulatedNetwork):
    """Simulated network whose oracle sizes Replenish exactly."""

    def replenish_threads_needed(self, target: str, amount_removed: float) -> int:
        t = self._targets[target]
        remaining = max(1.0, t.max_resource - amount_removed)
        multiplier = t.max_resource / remaining
        if multiplier <= 1.0:
            return 0
        return math.ceil(math.log(multiplier) / math.log(self._growth_per_thread(t)))
