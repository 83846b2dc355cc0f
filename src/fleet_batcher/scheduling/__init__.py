"""Ratio calculation and capacity packing for operation batches."""

from fleet_batcher.scheduling.operations import (
    OperationKind,
    OperationCosts,
    Durations,
    Ratio,
    ThreadPlan,
)
from fleet_batcher.scheduling.packer import pack
from fleet_batcher.scheduling.ratio import compute_ratio, poll_interval

__all__ = [
    "OperationKind",
    "OperationCosts",
    "Durations",
    "Ratio",
    "ThreadPlan",
    "pack",
    "compute_ratio",
    "poll_interval",
]
