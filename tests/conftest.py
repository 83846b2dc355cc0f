"""Shared fixtures: a small hand-built network around one target.

Topology: home -> {A, B}, A -> {B, C}. With the default batcher config the
target yields the ratio e1/r20/s2 (unit cost 40.2 at default artifact costs)
and a 40s batch window.
"""

import pytest

from fleet_batcher.config import BatcherConfig, ManagerConfig
from fleet_batcher.orchestration.orchestrator import DeploymentOrchestrator
from fleet_batcher.scheduling.operations import Durations
from fleet_batcher.simulation.network import (
    PreciseSimulatedNetwork,
    SimulatedNetwork,
    SimulatedNode,
    SimulatedTarget,
)


def make_target(**overrides) -> SimulatedTarget:
    params = dict(
        name="joesguns",
        max_resource=1e6,
        resource=1e6,
        risk_floor=5.0,
        risk=5.0,
        base_durations=Durations(10.0, 32.0, 40.0),
        regeneration_rate=100.0,
        extract_fraction=0.002,
    )
    params.update(overrides)
    return SimulatedTarget(**params)


def make_network(precise: bool = False, **node_overrides) -> SimulatedNetwork:
    capacities = {"home": 64.0, "A": 128.0, "B": 64.0, "C": 32.0}
    capacities.update(node_overrides)
    cls = PreciseSimulatedNetwork if precise else SimulatedNetwork
    return cls(
        nodes=[
            SimulatedNode(name=name, max_capacity=cap, has_access=True)
            for name, cap in capacities.items()
        ],
        links=[("home", "A"), ("home", "B"), ("A", "B"), ("A", "C")],
        targets=[make_target()],
        seed=0,
    )


class FakeSleep:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def network():
    return make_network()


@pytest.fixture
def precise_network():
    return make_network(precise=True)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def make_orchestrator(fake_sleep):
    """Factory building an orchestrator over a network with a fake sleep."""

    def _make(net, batcher_config=None, manager_config=None):
        return DeploymentOrchestrator(
            net,
            net,
            net,
            batcher_config=batcher_config or BatcherConfig(),
            manager_config=manager_config or ManagerConfig(deploy_pause=0.0),
            sleep=fake_sleep,
        )

    return _make
