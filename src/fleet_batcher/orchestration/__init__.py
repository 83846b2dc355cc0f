"""Deployment manager loop, its state and per-cycle results."""

from fleet_batcher.orchestration.orchestrator import DeploymentOrchestrator
from fleet_batcher.orchestration.results import (
    CycleSummary,
    NodeOutcome,
    NodeStatus,
    save_summary,
    load_summary,
)
from fleet_batcher.orchestration.state import ManagerContext, ManagerState

__all__ = [
    "DeploymentOrchestrator",
    "CycleSummary",
    "NodeOutcome",
    "NodeStatus",
    "save_summary",
    "load_summary",
    "ManagerContext",
    "ManagerState",
]
