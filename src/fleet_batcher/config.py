"""Configuration for ratio calculation, deployment and the manager loop."""

from dataclasses import dataclass


# Seed node of the reachability graph; it runs the manager and is excluded
# from deployments unless include_home is set.
DEFAULT_HOST = "home"


@dataclass(frozen=True)
class RiskConstants:
    """Risk effect of a single thread of each operation kind.

    Grounded in the simulation's fixed mechanics:
    - Extract raises risk by 0.002 per thread
    - Replenish raises risk by 0.004 per thread
    - Stabilize lowers risk by 0.05 per thread
    """

    extract_increment: float = 0.002
    replenish_increment: float = 0.004
    stabilize_effect: float = 0.05


@dataclass
class BatcherConfig:
    """Configuration for one deployment pass against a target."""

    target: str = "joesguns"
    extract_fraction: float | None = 0.05  # None: ask the oracle
    include_home: bool = False  # Deploy on the host node too
    dry_run: bool = False  # Plan and report only


@dataclass
class ManagerConfig:
    """Configuration for the periodic manager loop."""

    host_node: str = DEFAULT_HOST
    poll_multiplier: float = 1.25  # Safety factor over the batch window
    min_poll_interval: float = 2.0  # Seconds
    rescan_every: int = 10  # Cycles between full access/topology scans
    enable_access: bool = True  # Try to acquire access on new nodes
    deploy_pause: float = 0.04  # Seconds to wait after each node
    default_duration: float = 10.0  # Fallback duration before first ratio
    heartbeat_long_interval: float = 60.0  # Heartbeat every cycle above this
    heartbeat_every: int = 5  # Otherwise heartbeat every N cycles
