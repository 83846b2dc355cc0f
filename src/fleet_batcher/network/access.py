"""Access acquisition using the operator's set of unlock capabilities."""

from dataclasses import dataclass, field
import logging
from typing import Iterable

from fleet_batcher.network.nodes import NodeAccess

logger = logging.getLogger(__name__)


@dataclass
class AccessReport:
    """Result of one access-acquisition pass."""

    newly_accessed: list[str] = field(default_factory=list)
    total_accessed: int = 0
    failed: list[str] = field(default_factory=list)  # Query raised

    @property
    def newly_count(self) -> int:
        return len(self.newly_accessed)


class AccessAcquirer:
    """Applies every available unlock capability uniformly, then attempts access.

    Nodes that need more capabilities than the operator owns, or a higher
    operator level, are left alone until a later pass.
    """

    def __init__(self, access: NodeAccess):
        self._access = access

    def capabilities(self) -> list[str]:
        return sorted(self._access.available_capabilities())

    def can_attempt(self, node: str, capabilities: list[str]) -> bool:
        if self._access.required_capabilities(node) > len(capabilities):
            return False
        return self._access.required_level(node) <= self._access.operator_level()

    def acquire(self, node: str, capabilities: list[str] | None = None) -> bool:
        """Try to gain access to ``node``. Returns the resulting access flag."""
        if self._access.has_access(node):
            return True
        if capabilities is None:
            capabilities = self.capabilities()
        if not self.can_attempt(node, capabilities):
            return False
        for capability in capabilities:
            self._access.apply_capability(capability, node)
        self._access.attempt_access(node)
        return self._access.has_access(node)

    def acquire_all(self, nodes: Iterable[str], seed: str) -> AccessReport:
        """Run one pass over ``nodes``; the seed is never attempted or counted."""
        report = AccessReport()
        capabilities = self.capabilities()

        for node in nodes:
            if node == seed:
                continue
            try:
                if self._access.has_access(node):
                    report.total_accessed += 1
                    continue
                if self.acquire(node, capabilities):
                    logger.info("Access acquired: %s", node)
                    report.newly_accessed.append(node)
                    report.total_accessed += 1
            except Exception:
                logger.warning("Access attempt on %s failed", node, exc_info=True)
                report.failed.append(node)

        if report.newly_accessed:
            logger.info("Access pass complete: %d new node(s)", report.newly_count)
        return report
