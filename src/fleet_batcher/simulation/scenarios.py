"""Preset simulated networks.

Three presets covering the stages a fleet goes through:
1. Starter - small network, few unlock tools, estimated replenish sizing
2. Formulas - same network with exact replenish sizing
3. Growing Fleet - larger nodes, every unlock tool, cost variance per node
"""

from dataclasses import dataclass, field

from fleet_batcher.config import DEFAULT_HOST
from fleet_batcher.scheduling.operations import Durations
from fleet_batcher.simulation.network import (
    DEFAULT_CAPABILITIES,
    PreciseSimulatedNetwork,
    SimulatedNetwork,
    SimulatedNode,
    SimulatedTarget,
    SimulationConfig,
)


@dataclass
class ScenarioConfig:
    """Configuration for a simulated network preset."""

    name: str
    description: str
    sim_config: SimulationConfig
    node_count: int = 12  # Worker nodes besides the host
    capacity_exponents: tuple[int, int] = (2, 6)  # Capacities 2**lo .. 2**hi
    host_capacity: float = 64.0
    targets: list[SimulatedTarget] = field(default_factory=list)

    def create_network(self, seed: int | None = None) -> SimulatedNetwork:
        """Create a network instance for this scenario."""
        return create_scenario_network(self, seed=seed)


def _default_targets() -> list[SimulatedTarget]:
    return [
        SimulatedTarget(
            name="n00dles",
            max_resource=1.75e6,
            resource=1.75e6,
            risk_floor=1.0,
            risk=1.0,
            base_durations=Durations(3.0, 9.6, 12.0),
            regeneration_rate=3000.0,
            extract_fraction=0.004,
        ),
        SimulatedTarget(
            name="joesguns",
            max_resource=6.25e7,
            resource=6.25e7,
            risk_floor=5.0,
            risk=5.0,
            base_durations=Durations(10.0, 32.0, 40.0),
            regeneration_rate=100.0,
            extract_fraction=0.002,
        ),
    ]


def _create_starter() -> ScenarioConfig:
    return ScenarioConfig(
        name="starter",
        description="Small network, two unlock tools, estimated ratios",
        sim_config=SimulationConfig(capabilities=DEFAULT_CAPABILITIES[:2]),
        node_count=12,
        capacity_exponents=(3, 7),
        targets=_default_targets(),
    )


def _create_formulas() -> ScenarioConfig:
    return ScenarioConfig(
        name="formulas",
        description="Small network with exact replenish sizing",
        sim_config=SimulationConfig(capabilities=DEFAULT_CAPABILITIES[:2], precise=True),
        node_count=12,
        capacity_exponents=(3, 7),
        targets=_default_targets(),
    )


def _create_growing_fleet() -> ScenarioConfig:
    return ScenarioConfig(
        name="growing_fleet",
        description="Larger nodes, all unlock tools, per-node cost variance",
        sim_config=SimulationConfig(
            capabilities=DEFAULT_CAPABILITIES,
            operator_level=500,
            precise=True,
            cost_jitter=0.02,
        ),
        node_count=30,
        capacity_exponents=(4, 9),
        host_capacity=256.0,
        targets=_default_targets(),
    )


SCENARIOS: dict[str, ScenarioConfig] = {
    "starter": _create_starter(),
    "formulas": _create_formulas(),
    "growing_fleet": _create_growing_fleet(),
}


def get_scenario(name: str) -> ScenarioConfig:
    """Get scenario by name."""
    if name not in SCENARIOS:
        available = ", ".join(SCENARIOS.keys())
        raise ValueError(f"Unknown scenario '{name}'. Available: {available}")
    return SCENARIOS[name]


def list_scenarios() -> list[str]:
    return list(SCENARIOS.keys())


def create_scenario_network(
    scenario: ScenarioConfig,
    seed: int | None = None,
    host: str = DEFAULT_HOST,
) -> SimulatedNetwork:
    """Build a random tree-shaped network for ``scenario``.

    Targets are attached as nodes too, since they are part of the network.
    """
    cls = PreciseSimulatedNetwork if scenario.sim_config.precise else SimulatedNetwork
    # Each network gets its own copy of the mutable config and targets
    sim_config = SimulationConfig(
        capabilities=tuple(scenario.sim_config.capabilities),
        operator_level=scenario.sim_config.operator_level,
        precise=scenario.sim_config.precise,
        artifact_costs=dict(scenario.sim_config.artifact_costs),
        cost_jitter=scenario.sim_config.cost_jitter,
        growth_per_thread=scenario.sim_config.growth_per_thread,
        risk=scenario.sim_config.risk,
    )
    targets = [
        SimulatedTarget(
            name=t.name,
            max_resource=t.max_resource,
            resource=t.resource,
            risk_floor=t.risk_floor,
            risk=t.risk,
            base_durations=t.base_durations,
            regeneration_rate=t.regeneration_rate,
            extract_fraction=t.extract_fraction,
        )
        for t in scenario.targets
    ]

    network = cls(
        nodes=[SimulatedNode(name=host, max_capacity=scenario.host_capacity)],
        links=[],
        targets=targets,
        config=sim_config,
        host=host,
        seed=seed,
    )
    rng = network.np_random
    lo, hi = scenario.capacity_exponents
    names = [host]

    worker_names = [f"node-{i:02d}" for i in range(scenario.node_count)]
    worker_names += [t.name for t in targets]
    for name in worker_names:
        parent = names[int(rng.integers(0, len(names)))]
        required = int(rng.integers(0, len(DEFAULT_CAPABILITIES) + 1))
        node = SimulatedNode(
            name=name,
            max_capacity=float(2 ** int(rng.integers(lo, hi + 1))),
            required_capabilities=required,
            required_level=int(rng.integers(1, 100 * (required + 1))),
        )
        network.add_node(node, neighbors=[parent])
        names.append(name)

    return network
