"""Tests for the execution handle: artifacts, launches and teardown."""

import pytest

from fleet_batcher.errors import ArtifactMissing, LaunchRejected
from fleet_batcher.execution.environment import RunningProcess
from fleet_batcher.execution.handle import ExecutionHandle
from fleet_batcher.scheduling.operations import (
    ARTIFACTS,
    OPERATION_SPECS,
    OperationCosts,
    OperationKind,
    ThreadPlan,
)

EXTRACT = OPERATION_SPECS[OperationKind.EXTRACT].artifact
REPLENISH = OPERATION_SPECS[OperationKind.REPLENISH].artifact
STABILIZE = OPERATION_SPECS[OperationKind.STABILIZE].artifact


class RejectingEnvironment:
    """In-memory environment refusing launches of selected artifacts."""

    def __init__(self, reject: set[str] | None = None, costs: dict[str, float] | None = None):
        self.reject = reject or set()
        self.costs = costs or {EXTRACT: 1.7, REPLENISH: 1.75, STABILIZE: 1.75}
        self.running: dict[int, tuple[str, str, int]] = {}
        self.terminated: list[int] = []
        self._next = 1

    def artifact_exists(self, artifact, node):
        return True

    def copy_artifact(self, artifact, source, dest):
        return True

    def artifact_cost(self, artifact, node):
        return self.costs.get(artifact)

    def launch(self, artifact, node, threads, *args):
        if artifact in self.reject:
            return 0
        handle = self._next
        self._next += 1
        self.running[handle] = (artifact, node, threads)
        return handle

    def list_running(self, node):
        return [
            RunningProcess(artifact, threads, handle)
            for handle, (artifact, n, threads) in self.running.items()
            if n == node
        ]

    def terminate(self, handle):
        self.terminated.append(handle)
        return self.running.pop(handle, None) is not None


@pytest.fixture
def plan():
    return ThreadPlan(1, 20, 2, costs=OperationCosts(1.7, 1.75, 1.75))


class TestEnsureArtifacts:
    """Tests for artifact copying."""

    def test_copies_missing_artifacts(self, network):
        handle = ExecutionHandle(network, source="home")
        handle.ensure_artifacts("A")
        assert all(network.artifact_exists(a, "A") for a in ARTIFACTS)

    def test_copy_failure(self, network):
        network.copy_failures.add("B")
        with pytest.raises(ArtifactMissing) as exc_info:
            ExecutionHandle(network, source="home").ensure_artifacts("B")
        assert exc_info.value.node == "B"
        assert exc_info.value.artifact in ARTIFACTS


class TestOperationCosts:
    """Tests for cost queries."""

    def test_costs_from_environment(self, network):
        costs = ExecutionHandle(network, source="home").operation_costs("A")
        assert costs == OperationCosts(1.7, 1.75, 1.75)

    @pytest.mark.parametrize("bad", [None, 0.0, float("nan")])
    def test_unusable_cost(self, bad):
        env = RejectingEnvironment(costs={EXTRACT: 1.7, REPLENISH: bad, STABILIZE: 1.75})
        with pytest.raises(ArtifactMissing, match="cost unavailable"):
            ExecutionHandle(env, source="home").operation_costs("A")


class TestLaunch:
    """Tests for launching and tearing down plans."""

    def test_launch_records_deployment(self, network, plan):
        handle = ExecutionHandle(network, source="home")
        handle.ensure_artifacts("A")
        deployment = handle.launch("A", plan, "joesguns")
        assert deployment.threads[OperationKind.REPLENISH] == 20
        assert deployment.total_threads == 23
        assert deployment.memory == pytest.approx(40.2)
        assert len(deployment.handles) == 3
        assert handle.is_alive(deployment)
        assert network.used_capacity("A") == pytest.approx(40.2)

    def test_launch_order(self, plan):
        env = RejectingEnvironment()
        ExecutionHandle(env, source="home").launch("A", plan, "joesguns")
        launched = [env.running[h][0] for h in sorted(env.running)]
        assert launched == [STABILIZE, REPLENISH, EXTRACT]

    def test_rejection_rolls_back(self, plan):
        env = RejectingEnvironment(reject={EXTRACT})
        with pytest.raises(LaunchRejected) as exc_info:
            ExecutionHandle(env, source="home").launch("A", plan, "joesguns", free_capacity=50.0)
        assert exc_info.value.artifact == EXTRACT
        assert exc_info.value.free_capacity == 50.0
        assert env.terminated == [1, 2]
        assert env.running == {}

    def test_rejection_without_artifacts(self, network, plan):
        with pytest.raises(LaunchRejected):
            ExecutionHandle(network, source="home").launch("B", plan, "joesguns")

    def test_zero_counts_skipped(self):
        env = RejectingEnvironment()
        plan = ThreadPlan(1, 0, 1, costs=OperationCosts(1.7, 1.75, 1.75))
        deployment = ExecutionHandle(env, source="home").launch("A", plan, "joesguns")
        assert OperationKind.REPLENISH not in deployment.threads
        assert len(env.running) == 2

    def test_teardown_and_reclaim(self, network, plan):
        handle = ExecutionHandle(network, source="home")
        handle.ensure_artifacts("A")
        handle.launch("A", plan, "joesguns")
        network.node("A").reserved = 10.0
        assert handle.reclaimable_capacity("A") == pytest.approx(40.2)
        assert handle.teardown("A") == 3
        assert handle.reclaimable_capacity("A") == 0.0
        assert network.used_capacity("A") == pytest.approx(10.0)

    def test_foreign_processes_untouched(self, plan):
        env = RejectingEnvironment(costs={EXTRACT: 1.7, REPLENISH: 1.75, STABILIZE: 1.75, "other.script": 4.0})
        foreign = env.launch("other.script", "A", 2)
        handle = ExecutionHandle(env, source="home")
        handle.launch("A", plan, "joesguns")
        assert handle.reclaimable_capacity("A") == pytest.approx(40.2)
        assert handle.teardown("A") == 3
        assert foreign not in env.terminated
        assert list(env.running) == [foreign]

    def test_crash_detected(self, network, plan):
        handle = ExecutionHandle(network, source="home")
        handle.ensure_artifacts("A")
        deployment = handle.launch("A", plan, "joesguns")
        network.crash("A")
        assert not handle.is_alive(deployment)

    def test_teardown_fleet(self, network, plan):
        handle = ExecutionHandle(network, source="home")
        for node in ("A", "B"):
            handle.ensure_artifacts(node)
            handle.launch(node, plan, "joesguns")
        assert handle.teardown_fleet(["home", "A", "B", "missing"]) == 6
