"""Manager loop states and the explicit loop context."""

from dataclasses import dataclass, field
from enum import Enum

from fleet_batcher.execution.handle import Deployment
from fleet_batcher.network.nodes import FleetSnapshot
from fleet_batcher.scheduling.operations import Ratio


class ManagerState(str, Enum):
    """States of the deployment manager.

    INITIALIZING -> DEPLOYING -> MONITORING <-> SCANNING, with DEPLOYING
    re-entered whenever the fleet changes. There is no terminal state.
    """

    INITIALIZING = "initializing"
    SCANNING = "scanning"
    DEPLOYING = "deploying"
    MONITORING = "monitoring"


@dataclass
class ManagerContext:
    """Mutable state carried between manager cycles.

    Only the orchestrator writes to it.
    """

    state: ManagerState = ManagerState.INITIALIZING
    cycle: int = 0
    snapshot: FleetSnapshot | None = None  # Latest poll
    deployed_snapshot: FleetSnapshot | None = None  # At last deployment
    deployments: dict[str, Deployment] = field(default_factory=dict)
    poll_interval: float = 0.0
    ratio: Ratio | None = None
    initial_deployment_done: bool = False
    deploy_cycles: int = 0
    pending_newly_accessed: int = 0  # Reported by the next summary

    @property
    def live_threads(self) -> int:
        return sum(d.total_threads for d in self.deployments.values())
