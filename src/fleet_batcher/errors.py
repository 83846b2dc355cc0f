"""Error taxonomy for scheduling and deployment.

Per-node errors (InsufficientCapacity, ArtifactMissing, LaunchRejected) are
caught by the orchestrator and turned into skipped-node outcomes. The others
either skip a whole deploy cycle (TimingUnavailable) or abort the run.
"""


class BatcherError(Exception):
    """Base class for every error raised by fleet_batcher."""


class TimingUnavailable(BatcherError):
    """The timing oracle returned a non-finite or non-positive duration."""

    def __init__(self, target: str, durations: dict[str, float]):
        self.target = target
        self.durations = durations
        shown = ", ".join(f"{k}={v!r}" for k, v in durations.items())
        super().__init__(f"timing unavailable for {target}: {shown}")


class DegenerateTarget(BatcherError):
    """The target cannot be worked (extract fraction is zero or invalid)."""

    def __init__(self, target: str, extract_fraction: float):
        self.target = target
        self.extract_fraction = extract_fraction
        super().__init__(
            f"degenerate target {target}: extract fraction {extract_fraction!r} must be > 0"
        )


class InsufficientCapacity(BatcherError):
    """A node cannot host even the minimum plan."""

    def __init__(
        self,
        needed: float,
        available: float,
        node: str | None = None,
    ):
        self.needed = needed
        self.available = available
        self.node = node
        where = f"{node}: " if node else ""
        super().__init__(
            f"{where}insufficient capacity (need {needed:.2f}, have {available:.2f}, "
            f"short {self.shortfall:.2f})"
        )

    @property
    def shortfall(self) -> float:
        return self.needed - self.available

    def for_node(self, node: str) -> "InsufficientCapacity":
        """Return a copy of this error attributed to ``node``."""
        return InsufficientCapacity(self.needed, self.available, node=node)


class ArtifactMissing(BatcherError):
    """An operation artifact is missing or unusable on a node."""

    def __init__(self, node: str, artifact: str, detail: str = "copy failed"):
        self.node = node
        self.artifact = artifact
        self.detail = detail
        super().__init__(f"{node}: artifact {artifact} unavailable ({detail})")


class LaunchRejected(BatcherError):
    """The execution environment refused to start an operation."""

    def __init__(
        self,
        node: str,
        artifact: str,
        threads: int,
        free_capacity: float,
        needed_capacity: float,
    ):
        self.node = node
        self.artifact = artifact
        self.threads = threads
        self.free_capacity = free_capacity
        self.needed_capacity = needed_capacity
        super().__init__(
            f"{node}: launch of {artifact} x{threads} rejected "
            f"(free={free_capacity:.2f}, needed={needed_capacity:.2f})"
        )


class InvalidTarget(BatcherError):
    """The target identity is empty or unknown to the oracle."""


class NoReachableNodes(BatcherError):
    """Discovery found no node that could ever host a deployment."""
