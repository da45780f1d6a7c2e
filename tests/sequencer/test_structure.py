"""
Tests for collision analysis, LZ78 structure estimates and per-token bit checks.
"""

import numpy as np
import pytest

from tokenscope.sequencer.decoding import bytes_to_bits
from tokenscope.sequencer.structure import (
    CollisionAnalyzer,
    chi_squared_bits,
    hamming_distance,
    lz78_entropy_rate,
    lz_estimate,
    per_token_bit_checks,
    serial_correlation,
)
from tokenscope.sequencer.tests import RandomnessTest


class TestHamming:
    def test_equal_length(self):
        assert hamming_distance("abcd", "abce") == 1
        assert hamming_distance("abcd", "abcd") == 0

    def test_unequal_length_is_maximal(self):
        assert hamming_distance("abc", "abcdef") == 6


class TestCollisionAnalyzer:
    def test_exact_and_near_duplicates(self):
        result = CollisionAnalyzer().analyze(["aaaa", "aaaa", "aaab", "zzzz"])
        assert result.exact_duplicates == 1
        # aaaa/aaab twice; identical pairs are not near duplicates
        assert result.near_duplicates == 2
        assert result.comparisons == 6

    def test_systematic_sample_bounds_comparisons(self, token_factory):
        tokens = token_factory(250)
        result = CollisionAnalyzer(sample_size=50).analyze(tokens)
        # stride = ceil(250 / 50) = 5
        assert result.sampled_tokens == 50
        assert result.comparisons == 50 * 49 // 2

    def test_random_tokens_are_far_apart(self, token_factory):
        result = CollisionAnalyzer().analyze(token_factory(100))
        assert result.near_duplicates == 0
        # 32 hex characters differ with probability 15/16
        assert result.average_hamming_distance == pytest.approx(30.0, abs=1.0)

    def test_small_samples(self):
        assert CollisionAnalyzer().analyze(["only"]).comparisons == 0

    def test_sample_size_validated(self):
        with pytest.raises(ValueError):
            CollisionAnalyzer(sample_size=1)


class TestLZ78:
    def test_short_input_not_evaluated(self):
        bits = np.zeros(50, dtype=np.uint8)
        assert lz78_entropy_rate(bits) == 0.0
        estimate = lz_estimate(bits, 1.0)
        assert not estimate.applicable
        assert estimate.compression_ratio == 1.0

    def test_constant_stream_compresses(self):
        bits = np.zeros(4096, dtype=np.uint8)
        assert lz78_entropy_rate(bits) < 0.3

    def test_random_stream_does_not_compress(self):
        bits = np.random.default_rng(1).integers(0, 2, size=8192, dtype=np.uint8)
        estimate = lz_estimate(bits, 1.0)
        assert estimate.applicable
        assert estimate.compression_ratio > 0.8

    def test_zero_shannon_gives_unit_ratio(self):
        estimate = lz_estimate(np.zeros(200, dtype=np.uint8), 0.0)
        assert estimate.compression_ratio == 1.0


class TestBitChecks:
    def test_chi_squared(self):
        assert chi_squared_bits(np.array([0, 1] * 100, dtype=np.uint8)) == pytest.approx(1.0)
        assert chi_squared_bits(np.zeros(200, dtype=np.uint8)) < 1e-10
        assert chi_squared_bits(np.zeros(10, dtype=np.uint8)) == 1.0

    def test_serial_correlation(self):
        alternating = np.array([0, 1] * 100, dtype=np.uint8)
        assert serial_correlation(alternating) == pytest.approx(-1.0)
        blocks = np.array(([0] * 20 + [1] * 20) * 5, dtype=np.uint8)
        assert serial_correlation(blocks) > 0.8
        assert serial_correlation(np.zeros(100, dtype=np.uint8)) == 0.0

    def test_per_token_checks(self, token_factory):
        byte_tokens = [bytes.fromhex(t) for t in token_factory(200)]
        checks = per_token_bit_checks(byte_tokens, RandomnessTest())
        assert checks.tokens_tested == 200
        assert checks.chi_squared_p_value > 0.05
        assert checks.runs_p_value > 0.05
        assert checks.serial_correlation < 0.2

    def test_short_tokens_are_skipped(self):
        checks = per_token_bit_checks([b"\x00\x01"] * 10, RandomnessTest())
        assert checks.tokens_tested == 0
        assert checks.chi_squared_p_value == 1.0
        assert checks.runs_p_value == 1.0

    def test_biased_tokens(self):
        checks = per_token_bit_checks([b"\x00" * 16] * 5, RandomnessTest())
        assert checks.chi_squared_p_value < 0.001
        # all-zero tokens fail the runs pre-test
        assert checks.runs_p_value == 1.0
        assert len(bytes_to_bits(b"\x00" * 16)) == 128
