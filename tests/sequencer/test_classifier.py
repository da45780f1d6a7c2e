"""
Tests for the severity classification rules.
"""

from dataclasses import replace

import pytest

from tokenscope.sequencer.classifier import SecurityRating, SecuritySignals, SeverityClassifier


@pytest.fixture
def strong_signals() -> SecuritySignals:
    """Measurements of a healthy 128-bit token sample."""
    return SecuritySignals(
        sample_size=1000,
        effective_security_bits=130.0,
        min_entropy_per_bit=0.99,
        shannon_char_entropy=5.9,
        total_bits=128000,
        chi_squared_p_value=0.48,
        serial_correlation=0.01,
        runs_p_value=0.52,
        lz_compression_ratio=1.02,
        near_duplicates=0,
        duplicate_percentage=0.0,
        is_sequential=False,
        has_timestamps=False,
        predictability_score=0,
    )


@pytest.fixture
def classifier() -> SeverityClassifier:
    return SeverityClassifier()


class TestRating:
    def test_strong_sample_is_excellent(self, classifier, strong_signals):
        verdict = classifier.classify(strong_signals)
        assert verdict.overall_rating == SecurityRating.EXCELLENT
        assert not verdict.issues
        assert not verdict.warnings
        assert verdict.effective_bits == 130.0
        assert verdict.recommended_minimum == 128

    def test_few_bits_is_critical(self, classifier, strong_signals):
        verdict = classifier.classify(replace(strong_signals, effective_security_bits=40.0))
        assert verdict.overall_rating == SecurityRating.CRITICAL
        assert verdict.issues[0].startswith("CRITICAL: Effective security is only 40.0 bits")

    def test_weak_bits_with_severe_failure_is_critical(self, classifier, strong_signals):
        signals = replace(strong_signals, effective_security_bits=70.0, serial_correlation=0.6)
        assert classifier.classify(signals).overall_rating == SecurityRating.CRITICAL

    def test_weak_bits_alone_is_warning(self, classifier, strong_signals):
        verdict = classifier.classify(replace(strong_signals, effective_security_bits=70.0))
        assert verdict.overall_rating == SecurityRating.WARNING
        assert any("brute-force" in issue for issue in verdict.issues)

    def test_below_recommended_is_warning(self, classifier, strong_signals):
        verdict = classifier.classify(replace(strong_signals, effective_security_bits=110.0))
        assert verdict.overall_rating == SecurityRating.WARNING
        assert any("below the recommended" in w for w in verdict.warnings)

    def test_severe_failure_with_enough_bits_is_warning(self, classifier, strong_signals):
        signals = replace(strong_signals, chi_squared_p_value=0.0001)
        verdict = classifier.classify(signals)
        assert verdict.overall_rating == SecurityRating.WARNING
        assert any("Chi-squared test failed" in issue for issue in verdict.issues)

    def test_neutral_values_raise_no_warnings(self, classifier, strong_signals):
        signals = replace(
            strong_signals,
            min_entropy_per_bit=0.9,
            shannon_char_entropy=4.0,
            near_duplicates=5,
            duplicate_percentage=3.0,
        )
        verdict = classifier.classify(signals)
        # near-duplicates at 0.5% of the sample raise no warning
        assert not verdict.warnings
        assert verdict.overall_rating == SecurityRating.EXCELLENT

    def test_extra_warnings_downgrade(self, classifier, strong_signals):
        verdict = classifier.classify(strong_signals, ["2 of 10 requests failed"])
        assert verdict.warnings[-1] == "2 of 10 requests failed"
        assert verdict.overall_rating == SecurityRating.WARNING


class TestRules:
    def test_small_bit_totals_still_report_strengths(self, classifier, strong_signals):
        signals = replace(
            strong_signals, total_bits=64, chi_squared_p_value=0.0, runs_p_value=0.0,
            lz_compression_ratio=3.0,
        )
        verdict = classifier.classify(signals)
        assert any("Chi-squared test passed" in s for s in verdict.strengths)
        assert any("Runs test passed" in s for s in verdict.strengths)
        assert any("LZ compression ratio" in s for s in verdict.strengths)
        assert not signals.severe_test_failure

    def test_serial_correlation_thresholds(self, classifier, strong_signals):
        moderate = classifier.classify(replace(strong_signals, serial_correlation=-0.3))
        assert any("Moderate serial correlation" in w for w in moderate.warnings)
        high = classifier.classify(replace(strong_signals, serial_correlation=0.7))
        assert any("High serial correlation" in i for i in high.issues)

    def test_lz_thresholds(self, classifier, strong_signals):
        elevated = classifier.classify(replace(strong_signals, lz_compression_ratio=1.2))
        assert any("Elevated LZ" in w for w in elevated.warnings)
        high = classifier.classify(replace(strong_signals, lz_compression_ratio=1.6))
        assert any("High LZ" in i for i in high.issues)

    def test_entropy_thresholds(self, classifier, strong_signals):
        verdict = classifier.classify(
            replace(strong_signals, min_entropy_per_bit=0.4, shannon_char_entropy=2.0)
        )
        assert any("Very low min-entropy" in i for i in verdict.issues)
        assert any("Low Shannon entropy" in w for w in verdict.warnings)

    def test_duplicate_thresholds(self, classifier, strong_signals):
        many = classifier.classify(replace(strong_signals, duplicate_percentage=12.0))
        assert any("exact duplicate tokens. Poor randomness" in i for i in many.issues)
        some = classifier.classify(replace(strong_signals, duplicate_percentage=6.0))
        assert any("exact duplicate" in w for w in some.warnings)

    def test_near_duplicate_warning(self, classifier, strong_signals):
        verdict = classifier.classify(replace(strong_signals, near_duplicates=11))
        assert any("near-duplicate" in w for w in verdict.warnings)

    def test_patterns(self, classifier, strong_signals):
        signals = replace(
            strong_signals, is_sequential=True, has_timestamps=True, predictability_score=70
        )
        verdict = classifier.classify(signals)
        assert "Sequential pattern detected. Tokens are predictable." in verdict.issues
        assert "Timestamp-based tokens detected. Highly predictable." in verdict.issues
        assert "High predictability score (70/100)." in verdict.issues

    def test_custom_minimum(self, strong_signals):
        verdict = SeverityClassifier(recommended_minimum=256).classify(strong_signals)
        assert verdict.overall_rating == SecurityRating.WARNING
        assert verdict.recommended_minimum == 256


class TestQuickRating:
    @pytest.mark.parametrize(
        "dup,sequential,timestamps,score,expected",
        [
            (0.0, False, False, 0, SecurityRating.GOOD),
            (11.0, False, False, 20, SecurityRating.CRITICAL),
            (0.0, True, False, 40, SecurityRating.CRITICAL),
            (0.0, False, True, 30, SecurityRating.CRITICAL),
            (6.0, False, False, 0, SecurityRating.WARNING),
            (0.0, False, False, 30, SecurityRating.WARNING),
        ],
    )
    def test_quick_rating(self, classifier, dup, sequential, timestamps, score, expected):
        verdict = classifier.classify_quick(dup, sequential, timestamps, score)
        assert verdict.overall_rating == expected
