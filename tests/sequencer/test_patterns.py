"""
Tests for sequential, timestamp and prefix/suffix detection.
"""

import pytest
from hypothesis import given, settings, strategies as st

from tokenscope.sequencer.patterns import (
    Pattern,
    PatternDetector,
    PatternType,
    predictability_score,
)


@pytest.fixture
def detector() -> PatternDetector:
    return PatternDetector()


class TestSequentialDetection:
    def test_counter_tokens(self, detector):
        result = detector.detect_sequential(["1", "2", "3", "4", "5"])
        assert result.is_sequential
        assert result.count == 4

    def test_counter_tokens_score_includes_sequential_weight(self, detector):
        tokens = ["1", "2", "3", "4", "5"]
        sequential = detector.detect_sequential(tokens)
        prefix, _ = detector.find_common_prefix_suffix(tokens)
        score = predictability_score(sequential.is_sequential, False, 0.0, prefix)
        assert score >= 40

    def test_half_the_pairs_is_not_enough(self, detector):
        # 2 of 4 pairs increment
        assert not detector.detect_sequential(["1", "2", "7", "8", "20"]).is_sequential

    def test_non_numeric_tokens(self, detector):
        assert not detector.detect_sequential(["a1", "a2", "a3"]).is_sequential

    def test_signed_integers(self, detector):
        assert detector.detect_sequential(["-2", "-1", "0", "+1"]).is_sequential

    def test_integers_beyond_conversion_limit(self, detector):
        tokens = ["7" * 5000, "8" * 5000, "9" * 5000]
        result = detector.detect_sequential(tokens)
        assert not result.is_sequential
        assert result.count == 0

    def test_single_token(self, detector):
        result = detector.detect_sequential(["42"])
        assert not result.is_sequential
        assert result.count == 0

    @settings(max_examples=100)
    @given(start=st.integers(min_value=-10**6, max_value=10**6), n=st.integers(min_value=2, max_value=30))
    def test_any_counter_is_sequential(self, start: int, n: int):
        tokens = [str(start + i) for i in range(n)]
        assert PatternDetector().detect_sequential(tokens).is_sequential


class TestTimestampDetection:
    def test_unix_seconds(self, detector):
        tokens = [str(1700000000 + i * 37) for i in range(10)]
        assert detector.detect_timestamps(tokens)

    def test_range_bounds_are_inclusive(self, detector):
        assert detector.count_timestamps(["946684800", "4102444800"]) == 2
        assert detector.count_timestamps(["946684799", "4102444801"]) == 0

    def test_threshold(self, detector):
        tokens = ["1700000000", "1700000001", "abc", "def", "ghi", "jkl", "mno"]
        # 2 of 7 is below 30%
        assert not detector.detect_timestamps(tokens)
        assert detector.detect_timestamps(tokens[:5])

    def test_empty(self, detector):
        assert not detector.detect_timestamps([])


class TestPrefixSuffix:
    def test_shared_affixes(self, detector):
        prefix, suffix = detector.find_common_prefix_suffix(["sess_abc_v1", "sess_xyz_v1"])
        assert prefix == "sess_"
        assert suffix == "_v1"

    def test_no_shared_affixes(self, detector):
        assert detector.find_common_prefix_suffix(["abc", "xyz"]) == ("", "")

    def test_score_components(self):
        assert predictability_score(True, True, 11.0, "abcd") == 100
        assert predictability_score(False, False, 10.0, "abc") == 0


class TestPatternReport:
    def test_detect_patterns(self, detector):
        tokens = ["tok_%d" % i for i in range(1, 6)]
        patterns = detector.detect_patterns(tokens)
        assert [p.pattern_type for p in patterns] == [PatternType.COMMON_PREFIX]

        patterns = detector.detect_patterns([str(1700000000 + i) for i in range(5)])
        types = {p.pattern_type for p in patterns}
        assert PatternType.SEQUENTIAL in types
        assert PatternType.TIMESTAMP in types

    def test_pattern_validation(self):
        with pytest.raises(ValueError):
            Pattern(PatternType.SEQUENTIAL, "bad", "high", [], confidence=1.5)
        with pytest.raises(ValueError):
            Pattern(PatternType.SEQUENTIAL, "bad", "extreme", [], confidence=0.5)


class TestCharacterAnalysis:
    def test_hex_charset(self, detector):
        analysis = detector.analyze_characters(["deadbeef", "c0ffee"])
        assert analysis.hexadecimal
        assert analysis.base64
        assert analysis.numeric == 1
        assert analysis.alphabetic == 13

    def test_special_characters(self, detector):
        analysis = detector.analyze_characters(["a-b_c"])
        assert analysis.special == 2
        assert not analysis.hexadecimal
        assert not analysis.base64
