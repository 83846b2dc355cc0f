"""Interface to the environment that runs operation artifacts on nodes."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class RunningProcess:
    """One running artifact instance on a node."""
    artifact: str
    threads: int
    handle: int
    args: tuple = ()


class ExecutionEnvironment(Protocol):
    """Protocol for copying, launching and terminating artifacts.

    Launches are fire-and-forget: the returned handle identifies remote work
    that runs for its own duration; 0 signals the launch was refused.
    """

    def artifact_exists(self, artifact: str, node: str) -> bool: ...

    def copy_artifact(self, artifact: str, source: str, dest: str) -> bool: ...

    def artifact_cost(self, artifact: str, node: str) -> float:
        """Memory cost of one thread of ``artifact`` on ``node``."""
        ...

    def launch(self, artifact: str, node: str, threads: int, *args) -> int: ...

    def list_running(self, node: str) -> list[RunningProcess]: ...

    def terminate(self, handle: int) -> bool: ...
