"""Tests for node outcomes and cycle summaries."""

import logging

import numpy as np
import pytest

from fleet_batcher.orchestration.results import (
    CycleSummary,
    NodeOutcome,
    NodeStatus,
    load_summary,
    log_summary,
    save_summary,
)
from fleet_batcher.scheduling.operations import OperationCosts, Ratio, ThreadPlan
from fleet_batcher.scheduling.ratio import ProductionEstimate

COSTS = OperationCosts(1.7, 1.75, 1.75)


@pytest.fixture
def summary():
    summary = CycleSummary(
        cycle=3,
        target="joesguns",
        ratio=Ratio(1, 9, 3, batch_window=40.0, precise=True),
        fleet_capacity=288.0,
        newly_accessed=1,
        production=ProductionEstimate(batches_per_minute=1.2, per_second=160.0),
    )
    summary.add(NodeOutcome("A", NodeStatus.DEPLOYED, plan=ThreadPlan(4, 36, 12, COSTS), free_capacity=100.0))
    summary.add(NodeOutcome("B", NodeStatus.DEPLOYED, plan=ThreadPlan(1, 9, 3, COSTS), free_capacity=30.0))
    summary.add(NodeOutcome("C", NodeStatus.SKIPPED, free_capacity=8.0, reason="C: insufficient capacity"))
    summary.add(NodeOutcome("D", NodeStatus.NO_ACCESS, reason="D: no access"))
    return summary


class TestNodeOutcome:
    """Tests for NodeOutcome."""

    @pytest.mark.parametrize(
        "status,expected",
        [
            (NodeStatus.DEPLOYED, True),
            (NodeStatus.PLANNED, True),
            (NodeStatus.SKIPPED, False),
            (NodeStatus.NO_ACCESS, False),
        ],
    )
    def test_counts_as_deployed(self, status, expected):
        assert NodeOutcome("A", status).counts_as_deployed is expected


class TestCycleSummary:
    """Tests for CycleSummary aggregation."""

    def test_partition(self, summary):
        assert [o.node for o in summary.deployed] == ["A", "B"]
        assert [o.node for o in summary.skipped] == ["C", "D"]

    def test_thread_totals(self, summary):
        np.testing.assert_array_equal(summary.thread_totals(), [5, 45, 15])
        assert summary.total_threads == 65

    def test_thread_shares(self, summary):
        shares = summary.thread_shares()
        assert sum(shares.values()) == pytest.approx(100.0)
        assert shares["Replenish"] == pytest.approx(100.0 * 45 / 65)

    def test_empty_shares(self):
        shares = CycleSummary(cycle=0, target="t").thread_shares()
        assert all(v == 0.0 for v in shares.values())

    def test_summary_dict(self, summary):
        data = summary.summary()
        assert data["deployed"] == 2
        assert data["skipped"] == 2
        assert data["threads"] == {"extract": 5, "replenish": 45, "stabilize": 15}
        assert data["skips"] == {"C": "C: insufficient capacity", "D": "D: no access"}
        assert data["ratio"]["replenish"] == 9
        assert data["production"]["per_hour"] == pytest.approx(576000.0)

    def test_save_and_load(self, summary, tmp_path):
        path = tmp_path / "out" / "summary.json"
        save_summary(summary, path)
        loaded = load_summary(path)
        assert loaded["threads"]["replenish"] == 45
        assert loaded["total_threads"] == 65
        assert loaded["ratio"]["precise"] is True


class TestLogSummary:
    """Tests for summary logging."""

    def test_warns_only_for_skipped(self, summary, caplog):
        with caplog.at_level(logging.INFO, logger="fleet_batcher"):
            log_summary(summary)
        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings == ["  skipped C: insufficient capacity"]
        assert "[Cycle 3] joesguns: 2 deployed, 2 skipped" in caplog.text
