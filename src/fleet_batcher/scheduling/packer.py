"""Fit integer thread counts into a node's free memory under a Ratio."""

import math

import numpy as np

from fleet_batcher.errors import InsufficientCapacity
from fleet_batcher.scheduling.operations import OperationCosts, Ratio, ThreadPlan

# Tolerance for comparing memory totals against the budget
_EPSILON = 1e-9


def pack(ratio: Ratio, free_capacity: float, costs: OperationCosts) -> ThreadPlan:
    """Compute the largest ratio-shaped plan that fits ``free_capacity``.

    Each count is ``scale * ratio`` floored and forced to at least 1. If that
    overshoots the budget, the kind consuming the most memory is trimmed one
    thread at a time until the plan fits.

    Args:
        ratio: Base ratio to scale.
        free_capacity: Memory available on the node.
        costs: Per-thread memory cost of each kind on the node.

    Returns:
        ThreadPlan with every count >= 1 and total cost <= free_capacity.

    Raises:
        InsufficientCapacity: Not even one copy of the plan fits.
        ValueError: Costs are non-positive or non-finite, or the ratio is empty.
    """
    if not costs.is_valid:
        raise ValueError(f"operation costs must be finite and positive: {costs}")
    if ratio.total <= 0:
        raise ValueError("ratio has no threads")

    cost_vec = costs.as_array()
    unit_cost = ratio.unit_cost(costs)
    free_capacity = max(0.0, float(free_capacity))

    scale = math.floor(free_capacity / unit_cost + _EPSILON)
    if scale < 1:
        raise InsufficientCapacity(needed=unit_cost, available=free_capacity)

    counts = np.maximum(1, np.floor(scale * ratio.as_array())).astype(np.int64)
    total = float(np.dot(counts, cost_vec))

    # Bounded by sum(counts): every pass removes one thread
    while total > free_capacity + _EPSILON and np.any(counts > 1):
        memory = np.where(counts > 1, counts * cost_vec, -np.inf)
        counts[int(np.argmax(memory))] -= 1
        total = float(np.dot(counts, cost_vec))

    if total > free_capacity + _EPSILON:
        raise InsufficientCapacity(needed=total, available=free_capacity)

    return ThreadPlan(
        extract=int(counts[0]),
        replenish=int(counts[1]),
        stabilize=int(counts[2]),
        costs=costs,
    )
