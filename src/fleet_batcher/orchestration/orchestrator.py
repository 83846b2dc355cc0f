"""Deployment orchestrator: the periodic scan/deploy/monitor loop.

The orchestrator owns every Deployment it creates. Per-node failures become
skipped outcomes in the cycle summary; only an unknown target, a degenerate
target or an empty network abort the run.
"""

import logging
import time
from typing import Callable

from fleet_batcher.config import BatcherConfig, ManagerConfig, RiskConstants
from fleet_batcher.errors import (
    ArtifactMissing,
    InsufficientCapacity,
    InvalidTarget,
    LaunchRejected,
    NoReachableNodes,
    TimingUnavailable,
)
from fleet_batcher.execution.environment import ExecutionEnvironment
from fleet_batcher.execution.handle import ExecutionHandle
from fleet_batcher.network.access import AccessAcquirer
from fleet_batcher.network.inventory import NodeInventory
from fleet_batcher.network.nodes import NodeAccess
from fleet_batcher.orchestration.results import (
    CycleSummary,
    NodeOutcome,
    NodeStatus,
    log_summary,
)
from fleet_batcher.orchestration.state import ManagerContext, ManagerState
from fleet_batcher.scheduling.operations import Ratio
from fleet_batcher.scheduling.oracle import TimingOracle
from fleet_batcher.scheduling.packer import pack
from fleet_batcher.scheduling.ratio import (
    ProductionEstimate,
    compute_ratio,
    estimate_production,
    poll_interval,
    validate_durations,
)

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    """Drives the manager state machine against one target.

    Each call to step() performs the work of the current state and moves to
    the next one. run() repeats step() until stopped from outside.
    """

    def __init__(
        self,
        oracle: TimingOracle,
        access: NodeAccess,
        environment: ExecutionEnvironment,
        batcher_config: BatcherConfig | None = None,
        manager_config: ManagerConfig | None = None,
        constants: RiskConstants | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.batcher_config = batcher_config or BatcherConfig()
        self.manager_config = manager_config or ManagerConfig()
        self.constants = constants or RiskConstants()
        self._oracle = oracle
        self._sleep = sleep

        self.inventory = NodeInventory(access)
        self.acquirer = AccessAcquirer(access)
        self.executor = ExecutionHandle(environment, source=self.manager_config.host_node)

        self.context = ManagerContext()
        self.last_summary: CycleSummary | None = None

    @property
    def target(self) -> str:
        return self.batcher_config.target

    @property
    def seed(self) -> str:
        return self.manager_config.host_node

    @property
    def state(self) -> ManagerState:
        return self.context.state

    # ─── Loop ──────────────────────────────────────────────────────────

    def step(self) -> ManagerState:
        """Perform the current state's work and transition."""
        handlers = {
            ManagerState.INITIALIZING: self._initialize,
            ManagerState.DEPLOYING: self._deploy,
            ManagerState.MONITORING: self._monitor,
            ManagerState.SCANNING: self._scan,
        }
        self.context.state = handlers[self.context.state]()
        return self.context.state

    def run(
        self,
        max_cycles: int | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> ManagerContext:
        """Run until interrupted, ``should_stop`` returns True, or the cycle cap.

        The cap is only honoured in MONITORING so a started deploy finishes.
        """
        try:
            while True:
                if should_stop is not None and should_stop():
                    break
                if (
                    max_cycles is not None
                    and self.context.cycle >= max_cycles
                    and self.context.state == ManagerState.MONITORING
                ):
                    break
                self.step()
        except KeyboardInterrupt:
            logger.info("Stopped after %d cycle(s)", self.context.cycle)
        return self.context

    def deploy_once(self) -> CycleSummary | None:
        """Single-shot variant: initialize if needed and deploy one time."""
        if self.context.state == ManagerState.INITIALIZING:
            self.step()
        summary = self.deploy_cycle()
        self.context.state = ManagerState.MONITORING
        return summary

    # ─── States ────────────────────────────────────────────────────────

    def _initialize(self) -> ManagerState:
        self._validate_target()

        nodes = self.inventory.discover_nodes(self.seed)
        if self.manager_config.enable_access:
            logger.info("Running initial access scan...")
            report = self.acquirer.acquire_all(nodes, self.seed)
            self.context.pending_newly_accessed += report.newly_count
            logger.info(
                "Initial scan complete: %d node(s) accessible (%d new)",
                report.total_accessed,
                report.newly_count,
            )
        if len(nodes) <= 1 and not self.batcher_config.include_home:
            raise NoReachableNodes(f"no worker nodes reachable from {self.seed}")

        self.context.snapshot = self.inventory.fleet_snapshot(self.seed)
        self.context.poll_interval = self._initial_poll_interval()
        logger.info(
            "Target: %s | Host: %s | Interval: %.2fs | Fleet capacity: %.0f across %d node(s)",
            self.target,
            self.seed,
            self.context.poll_interval,
            self.context.snapshot.total_capacity,
            self.context.snapshot.accessible_nodes,
        )
        return ManagerState.DEPLOYING

    def _deploy(self) -> ManagerState:
        self.deploy_cycle()
        if self.context.initial_deployment_done and self.context.deploy_cycles == 1:
            logger.info(
                "Initial deployment complete. Monitoring every %.0fs, scan every %d cycles",
                self.context.poll_interval,
                self.manager_config.rescan_every,
            )
        return ManagerState.MONITORING

    def _monitor(self) -> ManagerState:
        ctx = self.context
        self._sleep(ctx.poll_interval)
        ctx.cycle += 1

        try:
            snapshot = self.inventory.fleet_snapshot(self.seed)
        except Exception:
            logger.warning("Capacity poll failed; keeping previous snapshot", exc_info=True)
            snapshot = ctx.snapshot
        ctx.snapshot = snapshot

        if self._rescan_due():
            return ManagerState.SCANNING

        if self._capacity_changed():
            previous = ctx.deployed_snapshot.total_capacity if ctx.deployed_snapshot else 0.0
            logger.info(
                "Fleet capacity changed: %.0f -> %.0f",
                previous,
                snapshot.total_capacity if snapshot else 0.0,
            )
            return ManagerState.DEPLOYING

        self._heartbeat()
        return ManagerState.MONITORING

    def _scan(self) -> ManagerState:
        ctx = self.context
        logger.info("[Cycle %d] Running fleet scan...", ctx.cycle)
        newly = 0
        lost = 0
        try:
            nodes = self.inventory.discover_nodes(self.seed)
            if self.manager_config.enable_access:
                newly = self.acquirer.acquire_all(nodes, self.seed).newly_count
            lost = self._prune_deployments(nodes)
            ctx.snapshot = self.inventory.fleet_snapshot(self.seed)
        except Exception:
            logger.warning("Fleet scan failed; keeping previous snapshot", exc_info=True)

        ctx.pending_newly_accessed += newly
        logger.info("[Cycle %d] Scan complete: %d new, %d lost deployment(s)", ctx.cycle, newly, lost)

        if newly or lost or self._capacity_changed():
            return ManagerState.DEPLOYING
        return ManagerState.MONITORING

    # ─── Deployment ────────────────────────────────────────────────────

    def deploy_cycle(self) -> CycleSummary | None:
        """Deploy the current ratio on every eligible node.

        Returns None when the target's timing is unavailable; the next poll
        retries. The skipped cycle still reports newly accessed nodes through
        ``last_summary``.
        """
        ctx = self.context
        try:
            ratio = compute_ratio(
                self._oracle,
                self.target,
                self.constants,
                self.batcher_config.extract_fraction,
            )
        except TimingUnavailable as e:
            logger.warning("Deploy cycle skipped: %s", e)
            ctx.deployed_snapshot = None
            summary = CycleSummary(
                cycle=ctx.cycle,
                target=self.target,
                fleet_capacity=ctx.snapshot.total_capacity if ctx.snapshot else 0.0,
                newly_accessed=ctx.pending_newly_accessed,
                dry_run=self.batcher_config.dry_run,
            )
            ctx.pending_newly_accessed = 0
            self.last_summary = summary
            log_summary(summary)
            return None

        ctx.ratio = ratio
        ctx.poll_interval = poll_interval(
            ratio.batch_window,
            self.manager_config.poll_multiplier,
            self.manager_config.min_poll_interval,
        )

        summary = CycleSummary(
            cycle=ctx.cycle,
            target=self.target,
            ratio=ratio,
            newly_accessed=ctx.pending_newly_accessed,
            dry_run=self.batcher_config.dry_run,
        )
        ctx.pending_newly_accessed = 0

        nodes = self.inventory.discover_nodes(self.seed)
        self._prune_deployments(nodes)
        for node in nodes:
            if node == self.seed and not self.batcher_config.include_home:
                continue
            outcome = self._deploy_node(node, ratio)
            summary.add(outcome)
            if outcome.status == NodeStatus.DEPLOYED:
                self._sleep(self.manager_config.deploy_pause)

        snapshot = self.inventory.fleet_snapshot(self.seed)
        ctx.snapshot = snapshot
        ctx.deployed_snapshot = snapshot
        summary.fleet_capacity = snapshot.total_capacity
        summary.production = self._production(ratio, summary)

        ctx.initial_deployment_done = True
        ctx.deploy_cycles += 1
        self.last_summary = summary
        log_summary(summary)
        return summary

    def _deploy_node(self, node: str, ratio: Ratio) -> NodeOutcome:
        dry_run = self.batcher_config.dry_run
        try:
            if not self.inventory.has_access(node):
                logger.debug("%s: no access (skipped)", node)
                return NodeOutcome(node, NodeStatus.NO_ACCESS, reason=f"{node}: no access")

            if not dry_run:
                self.executor.ensure_artifacts(node)
            costs = self.executor.operation_costs(node)

            # Capacity held by our previous threads is freed by the teardown
            budget = self.inventory.free_capacity(node) + self.executor.reclaimable_capacity(node)
            plan = pack(ratio, budget, costs)

            if dry_run:
                logger.info(
                    "DRY: %s: %.2f free => e%d/r%d/s%d",
                    node, budget, plan.extract, plan.replenish, plan.stabilize,
                )
                return NodeOutcome(node, NodeStatus.PLANNED, plan=plan, free_capacity=budget)

            self._teardown_node(node)
            deployment = self.executor.launch(node, plan, self.target, free_capacity=budget)
            self.context.deployments[node] = deployment
            logger.info(
                "%s: %.2f free => %d threads => e%d/r%d/s%d",
                node, budget, plan.total_threads, plan.extract, plan.replenish, plan.stabilize,
            )
            return NodeOutcome(node, NodeStatus.DEPLOYED, plan=plan, free_capacity=budget)

        except InsufficientCapacity as e:
            return NodeOutcome(
                node, NodeStatus.SKIPPED, free_capacity=e.available, reason=str(e.for_node(node))
            )
        except (ArtifactMissing, LaunchRejected) as e:
            return NodeOutcome(node, NodeStatus.SKIPPED, reason=str(e))
        except Exception as e:
            logger.exception("Unexpected failure deploying to %s", node)
            return NodeOutcome(node, NodeStatus.SKIPPED, reason=f"{node}: unexpected error: {e}")

    def _teardown_node(self, node: str) -> None:
        self.executor.teardown(node)
        self.context.deployments.pop(node, None)

    def teardown_all(self) -> int:
        """Stop every operation thread across the reachable fleet."""
        terminated = self.executor.teardown_fleet(self.inventory.discover_nodes(self.seed))
        self.context.deployments.clear()
        return terminated

    # ─── Helpers ───────────────────────────────────────────────────────

    def _validate_target(self) -> None:
        if not isinstance(self.target, str) or not self.target.strip():
            raise InvalidTarget(f"malformed target identity: {self.target!r}")
        if not self._oracle.target_exists(self.target):
            raise InvalidTarget(f"target {self.target!r} does not exist")

    def _initial_poll_interval(self) -> float:
        try:
            durations = self._oracle.durations(self.target)
            validate_durations(self.target, durations)
            window = durations.batch_window
        except TimingUnavailable as e:
            logger.warning("%s; using %.1fs until a ratio is computed", e, self.manager_config.default_duration)
            window = self.manager_config.default_duration
        return poll_interval(
            window,
            self.manager_config.poll_multiplier,
            self.manager_config.min_poll_interval,
        )

    def _rescan_due(self) -> bool:
        every = self.manager_config.rescan_every
        return every > 0 and self.context.cycle % every == 0

    def _capacity_changed(self) -> bool:
        snapshot = self.context.snapshot
        if snapshot is None:
            return False
        return snapshot.differs_from(self.context.deployed_snapshot)

    def _heartbeat(self) -> None:
        ctx = self.context
        mc = self.manager_config
        frequency = 1 if ctx.poll_interval > mc.heartbeat_long_interval else mc.heartbeat_every
        if frequency > 0 and ctx.cycle % frequency == 0:
            if mc.rescan_every > 0:
                next_scan = mc.rescan_every - ctx.cycle % mc.rescan_every
                logger.info(
                    "[Cycle %d] Waiting... (%d live threads, next scan in %d cycle(s))",
                    ctx.cycle,
                    ctx.live_threads,
                    next_scan,
                )
            else:
                logger.info("[Cycle %d] Waiting... (%d live threads)", ctx.cycle, ctx.live_threads)

    def _prune_deployments(self, nodes: list[str]) -> int:
        """Drop deployments whose node vanished or whose workers stopped."""
        present = set(nodes)
        lost = 0
        for node, deployment in list(self.context.deployments.items()):
            if node not in present:
                logger.warning("%s left the network; dropping its deployment", node)
                del self.context.deployments[node]
                lost += 1
                continue
            try:
                alive = self.executor.is_alive(deployment)
            except Exception:
                logger.warning("Could not check workers on %s", node, exc_info=True)
                continue
            if not alive:
                logger.warning("Workers on %s stopped; scheduling redeploy", node)
                del self.context.deployments[node]
                lost += 1
        return lost

    def _production(self, ratio: Ratio, summary: CycleSummary) -> ProductionEstimate | None:
        try:
            _, max_resource = self._oracle.resource_state(self.target)
            per_thread = max_resource * self._oracle.extract_fraction(self.target)
        except Exception:
            logger.debug("Production estimate unavailable", exc_info=True)
            return None
        extract_threads = int(summary.thread_totals()[0])
        return estimate_production(ratio, extract_threads, per_thread, self.manager_config.poll_multiplier)
