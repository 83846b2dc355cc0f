"""Simulated network implementing every collaborator interface."""

from fleet_batcher.simulation.network import (
    SimulationConfig,
    SimulatedNode,
    SimulatedTarget,
    SimulatedNetwork,
    PreciseSimulatedNetwork,
)
from fleet_batcher.simulation.scenarios import (
    ScenarioConfig,
    SCENARIOS,
    create_scenario_network,
    get_scenario,
    list_scenarios,
)

__all__ = [
    "SimulationConfig",
    "SimulatedNode",
    "SimulatedTarget",
    "SimulatedNetwork",
    "PreciseSimulatedNetwork",
    "ScenarioConfig",
    "SCENARIOS",
    "create_scenario_network",
    "get_scenario",
    "list_scenarios",
]
