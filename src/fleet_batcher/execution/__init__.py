"""Launching and tearing down operation threads on worker nodes."""

from fleet_batcher.execution.environment import ExecutionEnvironment, RunningProcess
from fleet_batcher.execution.handle import Deployment, ExecutionHandle

__all__ = ["ExecutionEnvironment", "RunningProcess", "Deployment", "ExecutionHandle"]
