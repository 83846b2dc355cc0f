"""Discovery and capacity queries over the reachability graph."""

from collections import deque
import logging
from typing import Iterable

from fleet_batcher.network.nodes import FleetSnapshot, Node, NodeAccess

logger = logging.getLogger(__name__)


class NodeInventory:
    """Breadth-first view of the network reachable from a seed node.

    Discovery holds no state between calls, so every scan reflects the current
    topology. A failing query on one node is logged and skipped.
    """

    def __init__(self, access: NodeAccess):
        self._access = access

    def discover_nodes(self, seed: str) -> list[str]:
        """Return every node reachable from ``seed`` in BFS order, seed first."""
        visited: set[str] = {seed}
        queue: deque[str] = deque([seed])
        order: list[str] = []

        while queue:
            node = queue.popleft()
            order.append(node)
            try:
                neighbors = list(self._access.neighbors(node))
            except Exception:
                logger.warning("Could not list neighbors of %s; treating as leaf", node, exc_info=True)
                continue
            for neighbor in neighbors:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        return order

    def has_access(self, node: str) -> bool:
        return self._access.has_access(node)

    def total_capacity(self, node: str) -> float:
        return self._access.max_capacity(node)

    def free_capacity(self, node: str) -> float:
        return max(0.0, self._access.max_capacity(node) - self._access.used_capacity(node))

    def describe(self, node: str) -> Node:
        """Read a node's current capacity and access flag."""
        return Node(
            name=node,
            max_capacity=self._access.max_capacity(node),
            used_capacity=self._access.used_capacity(node),
            has_access=self._access.has_access(node),
        )

    def snapshot_nodes(self, names: Iterable[str]) -> list[Node]:
        """Describe each node, skipping any whose query fails."""
        nodes = []
        for name in names:
            try:
                nodes.append(self.describe(name))
            except Exception:
                logger.warning("Skipping %s: node query failed", name, exc_info=True)
        return nodes

    def accessible_nodes(self, seed: str) -> list[Node]:
        return [n for n in self.snapshot_nodes(self.discover_nodes(seed)) if n.has_access]

    def fleet_snapshot(self, seed: str) -> FleetSnapshot:
        """Total capacity over every accessible node, seed included."""
        nodes = self.accessible_nodes(seed)
        return FleetSnapshot(
            total_capacity=float(sum(n.max_capacity for n in nodes)),
            accessible_nodes=len(nodes),
        )
