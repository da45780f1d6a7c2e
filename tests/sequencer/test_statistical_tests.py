"""
Tests for the SP 800-22 battery and its per-token aggregation.
"""

from typing import List

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st

from tokenscope.sequencer.tests import (
    RandomnessTest,
    RandomnessTestType,
    RandomnessVerdict,
    StatisticalTestSuite,
    TestResult as BatteryResult,
    median_p_value,
)


binary_sequence = st.lists(st.sampled_from([0, 1]), min_size=100, max_size=2000)


def pseudo_random_bits(n: int, seed: int = 7) -> np.ndarray:
    return np.random.default_rng(seed).integers(0, 2, size=n, dtype=np.uint8)


class TestIndividualTests:
    """Statistic and applicability of each test."""

    def setup_method(self):
        self.tester = RandomnessTest(significance_level=0.01)

    def test_monobit_all_zeros_is_applicable_failure(self):
        result = self.tester.frequency_test([0] * 1000)
        assert result.applicable
        assert not result.passed
        assert result.p_value < 1e-10

    def test_monobit_short_sequence_not_applicable(self):
        result = self.tester.frequency_test([0, 1] * 10)
        assert not result.applicable
        assert result.p_value == 1.0
        assert "reason" in result.details

    def test_lists_and_arrays_are_equivalent(self):
        bits = pseudo_random_bits(1200)
        from_array = self.tester.run_battery(bits)
        from_list = self.tester.run_battery([int(b) for b in bits])
        assert [r.p_value for r in from_array] == [r.p_value for r in from_list]

    def test_runs_pretest_rejects_biased_input(self):
        result = self.tester.runs_test([1] * 900 + [0] * 100)
        assert not result.applicable

    def test_runs_detects_alternation(self):
        result = self.tester.runs_test([0, 1] * 500)
        assert result.applicable
        assert not result.passed

    def test_block_frequency_needs_one_block(self):
        assert not self.tester.block_frequency_test([0, 1] * 100, 256).applicable
        assert self.tester.block_frequency_test([0, 1] * 128, 256).applicable

    def test_serial_and_cusum_minimum_length(self):
        bits = pseudo_random_bits(999)
        assert not self.tester.serial_test(bits).applicable
        assert not self.tester.cumulative_sums_test(bits).applicable
        bits = pseudo_random_bits(1000)
        assert self.tester.serial_test(bits).applicable
        assert self.tester.cumulative_sums_test(bits).applicable

    def test_serial_reports_both_p_values(self):
        result = self.tester.serial_test(pseudo_random_bits(4096))
        assert result.p_value == min(result.details["p_value1"], result.details["p_value2"])

    def test_approximate_entropy_minimum_length(self):
        assert not self.tester.approximate_entropy_test(pseudo_random_bits(9999)).applicable
        assert self.tester.approximate_entropy_test(pseudo_random_bits(10000)).applicable

    def test_cusum_on_constant_sequence_fails(self):
        result = self.tester.cumulative_sums_test([1] * 2000)
        assert result.applicable
        assert not result.passed

    def test_pseudo_random_sequence_passes(self):
        results = self.tester.run_battery(pseudo_random_bits(20000))
        assert all(r.applicable for r in results)
        assert sum(r.passed for r in results) >= 5

    def test_non_binary_input_rejected(self):
        with pytest.raises(ValueError):
            self.tester.frequency_test([0, 1, 2] * 50)

    def test_invalid_significance_level(self):
        with pytest.raises(ValueError):
            RandomnessTest(significance_level=1.5)

    def test_battery_order_and_names(self):
        results = self.tester.run_battery(pseudo_random_bits(256))
        assert [r.name for r in results] == [
            "Frequency (Monobit)",
            "Runs",
            "Block Frequency (M=256)",
            "Serial (m=2)",
            "Approximate Entropy (m=2)",
            "Cumulative Sums (for/back)",
        ]

    @settings(max_examples=100, deadline=None)
    @given(bits=binary_sequence)
    def test_p_values_in_unit_interval(self, bits: List[int]):
        for result in self.tester.run_battery(bits):
            assert 0.0 <= result.p_value <= 1.0
            if not result.applicable:
                assert result.passed and result.p_value == 1.0


class TestAggregation:
    """Per-token aggregation across a sample."""

    def test_median_is_upper_median(self):
        assert median_p_value([0.1, 0.4, 0.2, 0.3]) == 0.3
        assert median_p_value([]) == 1.0

    def test_no_applicable_results_pass(self):
        suite = StatisticalTestSuite()
        results = [
            BatteryResult(RandomnessTestType.SERIAL, 1.0, applicable=False, passed=True)
            for _ in range(3)
        ]
        aggregated = suite.aggregate(RandomnessTestType.SERIAL, results)
        assert aggregated.applicable_count == 0
        assert aggregated.pass_rate == 1.0
        assert aggregated.median_p == 1.0
        assert aggregated.notes

    def test_inapplicable_results_excluded(self):
        suite = StatisticalTestSuite(significance_level=0.01)
        results = [
            BatteryResult(RandomnessTestType.RUNS, 0.5, applicable=True, passed=True),
            BatteryResult(RandomnessTestType.RUNS, 0.001, applicable=True, passed=False),
            BatteryResult(RandomnessTestType.RUNS, 1.0, applicable=False, passed=True),
        ]
        aggregated = suite.aggregate(RandomnessTestType.RUNS, results)
        assert aggregated.applicable_count == 2
        assert aggregated.pass_rate == 0.5
        assert aggregated.p_values == [0.5, 0.001, None]

    def test_short_tokens_run_on_raw_text(self, token_factory):
        report = StatisticalTestSuite().run(token_factory(10))
        assert report.basis == "raw_string"
        monobit = report.get(RandomnessTestType.FREQUENCY)
        # 32 characters give 256 bits per token
        assert monobit.applicable_count == 10
        serial = report.get(RandomnessTestType.SERIAL)
        assert serial.applicable_count == 0
        assert serial.pass_rate == 1.0

    def test_threaded_run_matches_serial_run(self, token_factory):
        tokens = token_factory(40)
        serial = StatisticalTestSuite(max_workers=1).run(tokens)
        threaded = StatisticalTestSuite(max_workers=4).run(tokens)
        assert [t.p_values for t in serial.tests] == [t.p_values for t in threaded.tests]

    def test_verdict(self):
        constant = StatisticalTestSuite().run(["\x00" * 40] * 5)
        assert constant.overall_pass_rate == 0.0
        assert constant.verdict == RandomnessVerdict.SHOWS_PATTERNS

        nothing_applicable = StatisticalTestSuite().run(["short", "tokens"])
        assert nothing_applicable.overall_pass_rate == 1.0
        assert nothing_applicable.verdict == RandomnessVerdict.LOOKS_RANDOM
