"""Worker node records and the node access interface."""

from dataclasses import dataclass
from typing import Iterable, Protocol


@dataclass(frozen=True)
class Node:
    """A worker in the reachability graph.

    Attributes:
        name: Node identity
        max_capacity: Total memory
        used_capacity: Memory currently in use
        has_access: Whether workers can be launched here (never reverts)
    """
    name: str
    max_capacity: float
    used_capacity: float = 0.0
    has_access: bool = False

    @property
    def free_capacity(self) -> float:
        return max(0.0, self.max_capacity - self.used_capacity)


@dataclass(frozen=True)
class FleetSnapshot:
    """Aggregate capacity of the accessible fleet at one point in time."""
    total_capacity: float
    accessible_nodes: int

    def differs_from(self, other: "FleetSnapshot | None") -> bool:
        """True if capacity changed; node count alone does not count."""
        if other is None:
            return True
        return abs(self.total_capacity - other.total_capacity) > 1e-9


class NodeAccess(Protocol):
    """Protocol for querying and unlocking nodes of the network."""

    def neighbors(self, node: str) -> Iterable[str]: ...

    def has_access(self, node: str) -> bool: ...

    def attempt_access(self, node: str) -> bool:
        """Best-effort, idempotent access attempt."""
        ...

    def max_capacity(self, node: str) -> float: ...

    def used_capacity(self, node: str) -> float: ...

    def available_capabilities(self) -> Iterable[str]:
        """Names of the unlock capabilities the operator owns."""
        ...

    def apply_capability(self, capability: str, node: str) -> None: ...

    def required_capabilities(self, node: str) -> int:
        """Number of unlock capabilities needed before access can succeed."""
        ...

    def required_level(self, node: str) -> int: ...

    def operator_level(self) -> int: ...
