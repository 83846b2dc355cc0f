"""Node discovery, capacity queries and access acquisition."""

from fleet_batcher.network.nodes import Node, FleetSnapshot, NodeAccess
from fleet_batcher.network.inventory import NodeInventory
from fleet_batcher.network.access import AccessAcquirer, AccessReport

__all__ = [
    "Node",
    "FleetSnapshot",
    "NodeAccess",
    "NodeInventory",
    "AccessAcquirer",
    "AccessReport",
]
