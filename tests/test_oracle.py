"""Tests for oracle helpers, target snapshots and timing overrides."""

import copy

import pytest

from fleet_batcher.scheduling.operations import Durations
from fleet_batcher.scheduling.oracle import (
    OverrideTimingOracle,
    TargetState,
    is_precise,
    load_timing_overrides,
    save_timing_overrides,
)
from fleet_batcher.scheduling.ratio import compute_ratio


class TestIsPrecise:
    """Tests for precise-oracle detection."""

    def test_plain_network(self, network):
        assert not is_precise(network)

    def test_precise_network(self, precise_network):
        assert is_precise(precise_network)

    def test_through_override_wrapper(self, network, precise_network):
        assert is_precise(OverrideTimingOracle(precise_network, {}))
        assert not is_precise(OverrideTimingOracle(network, {}))


class TestTargetState:
    """Tests for TargetState.capture."""

    def test_prepared_target(self, network):
        state = TargetState.capture(network, "joesguns")
        assert state.durations == Durations(10.0, 32.0, 40.0)
        assert state.is_prepared
        assert state.risk_excess == 0.0

    def test_worked_target(self, network):
        target = network.target("joesguns")
        target.risk = 7.5
        target.resource = 2.5e5
        state = TargetState.capture(network, "joesguns")
        assert state.risk_excess == pytest.approx(2.5)
        assert state.resource_fill == pytest.approx(0.25)
        assert not state.is_prepared


class TestTimingOverrides:
    """Tests for loading, saving and applying timing overrides."""

    def test_roundtrip(self, tmp_path):
        path = tmp_path / "overrides" / "timing.json"
        overrides = {"joesguns": Durations(5.0, 16.0, 20.0)}
        save_timing_overrides(path, overrides)
        assert load_timing_overrides(path) == overrides

    def test_bad_entries_skipped(self, tmp_path, caplog):
        path = tmp_path / "timing.json"
        path.write_text(
            '{"good": {"extract": 1, "replenish": 2, "stabilize": 3},'
            ' "missing": {"extract": 1, "replenish": 2},'
            ' "text": {"extract": "fast", "replenish": 2, "stabilize": 3},'
            ' "nan": {"extract": NaN, "replenish": 2, "stabilize": 3}}'
        )
        overrides = load_timing_overrides(path)
        assert list(overrides) == ["good"]
        assert caplog.text.count("Skipping timing override") == 3

    def test_override_changes_window(self, network):
        oracle = OverrideTimingOracle(network, {"joesguns": Durations(5.0, 16.0, 20.0)})
        ratio = compute_ratio(oracle, "joesguns", extract_fraction=0.05)
        assert ratio.batch_window == 20.0
        assert (ratio.extract, ratio.replenish, ratio.stabilize) == (1, 20, 2)

    def test_delegates_everything_else(self, network):
        oracle = OverrideTimingOracle(network, {"other": Durations(1.0, 1.0, 1.0)})
        assert oracle.durations("joesguns") == network.durations("joesguns")
        assert oracle.target_exists("joesguns")
        assert oracle.resource_state("joesguns") == (1e6, 1e6)
        assert oracle.node_names == network.node_names

    def test_copy_keeps_overrides(self, network):
        oracle = OverrideTimingOracle(network, {"joesguns": Durations(5.0, 16.0, 20.0)})
        clone = copy.copy(oracle)
        assert clone.durations("joesguns") == Durations(5.0, 16.0, 20.0)
        assert clone.regeneration_rate("joesguns") == network.regeneration_rate("joesguns")

    def test_missing_attribute_on_bare_instance(self):
        bare = OverrideTimingOracle.__new__(OverrideTimingOracle)
        with pytest.raises(AttributeError):
            bare.durations_of_nothing
