"""Ratio calculation from target timing and risk dynamics.

One Extract thread defines the batch scale. Replenish is sized to restore
what that thread removes, and Stabilize to cancel the risk both add.

Replenish sizing has two paths:
- Precise: the oracle computes the thread count directly.
- Approximate: ceil(max(2, 1/f) * 100 / rate). This overestimates for fast
  regenerating targets and underestimates for large extract fractions on
  slow ones; the Ratio records which path produced it.
"""

from dataclasses import dataclass
import logging
import math

from fleet_batcher.config import RiskConstants
from fleet_batcher.errors import DegenerateTarget, TimingUnavailable
from fleet_batcher.scheduling.operations import Durations, Ratio
from fleet_batcher.scheduling.oracle import TargetState, TimingOracle, is_precise

logger = logging.getLogger(__name__)

# Nominal regeneration rate the approximate Replenish formula is scaled to
REFERENCE_REGENERATION_RATE = 100.0

# Float slack for ceilings and floors over exact multiples
_EPSILON = 1e-9

DEFAULT_POLL_MULTIPLIER = 1.25


def validate_durations(target: str, durations: Durations) -> None:
    """Raise TimingUnavailable unless every duration is finite and positive."""
    if not durations.is_valid:
        raise TimingUnavailable(target, durations.as_dict())


def estimate_replenish_count(extract_fraction: float, regeneration_rate: float) -> int:
    """Approximate Replenish threads needed per Extract thread."""
    growth_multiplier = max(2.0, 1.0 / extract_fraction) * (
        REFERENCE_REGENERATION_RATE / max(1.0, regeneration_rate)
    )
    return math.ceil(growth_multiplier - _EPSILON)


def stabilize_count_for(risk: float, stabilize_effect: float) -> int:
    """Smallest Stabilize count whose effect covers ``risk``."""
    if risk <= 0:
        return 0
    count = math.ceil(risk / stabilize_effect - _EPSILON)
    # Float slack must never under-correct
    while count * stabilize_effect < risk - 1e-12:
        count += 1
    return count


def compute_ratio(
    oracle: TimingOracle,
    target: str,
    constants: RiskConstants | None = None,
    extract_fraction: float | None = None,
) -> Ratio:
    """Compute the integer base ratio for ``target``.

    Args:
        oracle: Source of target timing and state.
        target: Target identity.
        constants: Per-thread risk effects (defaults to RiskConstants()).
        extract_fraction: Per-batch fraction driving the approximate
            Replenish formula; when None the oracle's value is used. The
            precise path always sizes for one Extract operation.

    Returns:
        Ratio with the batch window and the Replenish path used.

    Raises:
        TimingUnavailable: A duration is non-finite or non-positive.
        DegenerateTarget: The extract fraction is not positive.
    """
    constants = constants or RiskConstants()
    state = TargetState.capture(oracle, target)
    validate_durations(target, state.durations)

    if extract_fraction is None:
        extract_fraction = oracle.extract_fraction(target)
    if not math.isfinite(extract_fraction) or extract_fraction <= 0:
        raise DegenerateTarget(target, extract_fraction)
    extract_fraction = min(1.0, extract_fraction)

    if not state.is_prepared:
        logger.info(
            "%s: resource at %.0f%%, risk %.2f above floor; ratio assumes a prepared target",
            target,
            100 * state.resource_fill,
            state.risk_excess,
        )

    extract_count = 1
    precise = is_precise(oracle)
    if precise:
        # Sized for what one Extract operation removes, not the batch fraction
        per_operation = oracle.extract_fraction(target)
        if not math.isfinite(per_operation) or per_operation <= 0:
            raise DegenerateTarget(target, per_operation)
        amount_removed = extract_count * state.max_resource * min(1.0, per_operation)
        replenish_count = max(1, int(math.ceil(
            oracle.replenish_threads_needed(target, amount_removed)
        )))
    else:
        replenish_count = estimate_replenish_count(
            extract_fraction, oracle.regeneration_rate(target)
        )
        logger.warning(
            "%s: no precise replenish sizing available, using estimate (%d per extract)",
            target,
            replenish_count,
        )

    risk = (
        extract_count * constants.extract_increment
        + replenish_count * constants.replenish_increment
    )
    stabilize_count = stabilize_count_for(risk, constants.stabilize_effect)

    window = state.durations.batch_window
    ratio = Ratio(
        extract=extract_count,
        replenish=replenish_count,
        stabilize=stabilize_count,
        batch_window=window,
        precise=precise,
        timing_efficiency=window / sum(state.durations),
    )
    logger.info(
        "%s: ratio e%d/r%d/s%d, window %.2fs (%s)",
        target,
        ratio.extract,
        ratio.replenish,
        ratio.stabilize,
        window,
        "precise" if precise else "estimated",
    )
    return ratio


def poll_interval(
    batch_window: float,
    multiplier: float = DEFAULT_POLL_MULTIPLIER,
    minimum: float = 2.0,
) -> float:
    """Seconds between manager polls for a given batch window."""
    if not math.isfinite(multiplier) or multiplier <= 0:
        multiplier = DEFAULT_POLL_MULTIPLIER
    return max(minimum, batch_window * multiplier)


@dataclass(frozen=True)
class ProductionEstimate:
    """Expected yield once the target is at max resource and floor risk."""

    batches_per_minute: float
    per_second: float

    @property
    def per_minute(self) -> float:
        return self.per_second * 60

    @property
    def per_hour(self) -> float:
        return self.per_second * 3600


def estimate_production(
    ratio: Ratio,
    extract_threads: int,
    resource_per_thread: float,
    multiplier: float = DEFAULT_POLL_MULTIPLIER,
) -> ProductionEstimate:
    """Estimate resource yield of ``extract_threads`` cycling every batch.

    Args:
        ratio: Ratio providing the batch window.
        extract_threads: Extract threads deployed across the fleet.
        resource_per_thread: Resource one Extract thread removes per batch.
        multiplier: Safety multiplier applied to the batch window.
    """
    cycle = ratio.batch_window * multiplier
    if cycle <= 0:
        return ProductionEstimate(batches_per_minute=0.0, per_second=0.0)
    return ProductionEstimate(
        batches_per_minute=60.0 / cycle,
        per_second=extract_threads * resource_per_thread / cycle,
    )
