"""Start and stop operation threads on worker nodes."""

from dataclasses import dataclass, field
import logging
from typing import Iterable

import numpy as np

from fleet_batcher.errors import ArtifactMissing, LaunchRejected
from fleet_batcher.execution.environment import ExecutionEnvironment
from fleet_batcher.scheduling.operations import (
    ARTIFACTS,
    LAUNCH_ORDER,
    OPERATION_SPECS,
    OperationCosts,
    OperationKind,
    ThreadPlan,
    kind_for_artifact,
)

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    """Threads currently running on one node on behalf of the manager."""

    node: str
    target: str
    threads: dict[OperationKind, int] = field(default_factory=dict)
    memory: float = 0.0
    handles: list[int] = field(default_factory=list)

    @property
    def total_threads(self) -> int:
        return sum(self.threads.values())


class ExecutionHandle:
    """Wraps an ExecutionEnvironment with artifact and teardown bookkeeping."""

    def __init__(self, environment: ExecutionEnvironment, source: str):
        self._env = environment
        self.source = source  # Node the artifacts are copied from

    def ensure_artifacts(self, node: str) -> None:
        """Copy any missing operation artifact to ``node``.

        Raises:
            ArtifactMissing: A copy failed.
        """
        for artifact in ARTIFACTS:
            if self._env.artifact_exists(artifact, node):
                continue
            if not self._env.copy_artifact(artifact, self.source, node):
                raise ArtifactMissing(node, artifact)
            logger.debug("Copied %s -> %s", artifact, node)

    def operation_costs(self, node: str) -> OperationCosts:
        """Per-thread memory cost of each kind as reported by ``node``.

        Raises:
            ArtifactMissing: A cost is missing, zero or non-finite.
        """
        values = []
        for kind in OperationKind:
            artifact = OPERATION_SPECS[kind].artifact
            cost = self._env.artifact_cost(artifact, node)
            if cost is None or not np.isfinite(cost) or cost <= 0:
                raise ArtifactMissing(node, artifact, detail=f"cost unavailable ({cost!r})")
            values.append(float(cost))
        return OperationCosts(*values)

    def _own_processes(self, node: str):
        return [p for p in self._env.list_running(node) if kind_for_artifact(p.artifact) is not None]

    def reclaimable_capacity(self, node: str) -> float:
        """Memory held on ``node`` by running operation artifacts."""
        total = 0.0
        for proc in self._own_processes(node):
            total += proc.threads * self._env.artifact_cost(proc.artifact, node)
        return total

    def teardown(self, node: str) -> int:
        """Terminate every running operation artifact on ``node``."""
        terminated = 0
        for proc in self._own_processes(node):
            if self._env.terminate(proc.handle):
                terminated += 1
        return terminated

    def launch(
        self,
        node: str,
        plan: ThreadPlan,
        target: str,
        free_capacity: float | None = None,
    ) -> Deployment:
        """Start every kind in ``plan`` on ``node``.

        Raises:
            LaunchRejected: The environment refused a launch. Handles started
                by this call are terminated first.
        """
        deployment = Deployment(node=node, target=target)
        for kind in LAUNCH_ORDER:
            threads = plan.count(kind)
            if threads <= 0:
                continue
            artifact = OPERATION_SPECS[kind].artifact
            handle = self._env.launch(artifact, node, threads, target)
            if handle == 0:
                for started in deployment.handles:
                    self._env.terminate(started)
                raise LaunchRejected(
                    node,
                    artifact,
                    threads,
                    free_capacity=free_capacity if free_capacity is not None else float("nan"),
                    needed_capacity=plan.total_cost,
                )
            deployment.handles.append(handle)
            deployment.threads[kind] = threads
            logger.debug("Started %s on %s (%d threads, handle %d)", artifact, node, threads, handle)

        deployment.memory = plan.total_cost
        return deployment

    def is_alive(self, deployment: Deployment) -> bool:
        """True while every handle of ``deployment`` is still running."""
        running = {p.handle for p in self._env.list_running(deployment.node)}
        return all(h in running for h in deployment.handles)

    def teardown_fleet(self, nodes: Iterable[str]) -> int:
        """Teardown on every node; per-node failures are logged and skipped."""
        terminated = 0
        for node in nodes:
            try:
                terminated += self.teardown(node)
            except Exception:
                logger.warning("Teardown on %s failed", node, exc_info=True)
        logger.info("Terminated %d operation process(es)", terminated)
        return terminated
