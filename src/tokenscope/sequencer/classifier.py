"""
Security Severity Classification

Rule engine that turns entropy, statistical and structural measurements into
an overall rating with categorized issues, warnings and strengths.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence


RECOMMENDED_MINIMUM_BITS = 128
CRITICAL_BITS = 64
WEAK_BITS = 80

FAIL_P = 0.01
SEVERE_P = 0.001


class SecurityRating(str, Enum):
    """Overall token security rating."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    GOOD = "GOOD"
    EXCELLENT = "EXCELLENT"


@dataclass
class SecurityVerdict:
    """Outcome of the severity classification."""

    overall_rating: SecurityRating
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    effective_bits: float = 0.0
    recommended_minimum: int = RECOMMENDED_MINIMUM_BITS


@dataclass
class SecuritySignals:
    """Every measurement the classifier consumes."""

    sample_size: int
    effective_security_bits: float
    min_entropy_per_bit: float
    shannon_char_entropy: float
    total_bits: int
    chi_squared_p_value: float
    serial_correlation: float
    runs_p_value: float
    lz_compression_ratio: float
    near_duplicates: int
    duplicate_percentage: float
    is_sequential: bool
    has_timestamps: bool
    predictability_score: int

    @property
    def sufficient_bits(self) -> bool:
        return self.total_bits >= 100

    @property
    def severe_test_failure(self) -> bool:
        return self.sufficient_bits and (
            abs(self.serial_correlation) > 0.5
            or self.chi_squared_p_value < SEVERE_P
            or self.runs_p_value < SEVERE_P
        )


class SeverityClassifier:
    """
    Deterministic rule evaluation.

    Each rule appends at most one message to ``issues``, ``warnings`` or
    ``strengths``. The overall rating is decided in the fixed order CRITICAL,
    WARNING, EXCELLENT, GOOD because the conditions overlap.
    """

    def __init__(
        self,
        pooled_significance_level: float = 0.05,
        recommended_minimum: int = RECOMMENDED_MINIMUM_BITS,
    ):
        self.pooled_significance_level = pooled_significance_level
        self.recommended_minimum = recommended_minimum

    def classify(self, signals: SecuritySignals, extra_warnings: Sequence[str] = ()) -> SecurityVerdict:
        """
        Evaluate every rule and derive the overall rating.

        Args:
            signals: Measurements from the full analysis path
            extra_warnings: Warnings raised outside the rule set (collection failures)

        Returns:
            SecurityVerdict
        """
        verdict = SecurityVerdict(
            overall_rating=SecurityRating.GOOD,
            effective_bits=signals.effective_security_bits,
            recommended_minimum=self.recommended_minimum,
        )

        self._rate_effective_bits(signals, verdict)
        self._rate_entropy(signals, verdict)
        self._rate_bit_checks(signals, verdict)
        self._rate_collisions(signals, verdict)
        self._rate_patterns(signals, verdict)
        verdict.warnings.extend(extra_warnings)

        verdict.overall_rating = self._overall_rating(signals, verdict)
        return verdict

    def classify_quick(
        self,
        duplicate_percentage: float,
        is_sequential: bool,
        has_timestamps: bool,
        predictability_score: int,
        extra_warnings: Sequence[str] = (),
    ) -> SecurityVerdict:
        """Duplicate and pattern based rating used when the full analysis is skipped."""
        if duplicate_percentage > 10 or is_sequential or has_timestamps:
            rating = SecurityRating.CRITICAL
        elif duplicate_percentage > 5 or predictability_score > 20:
            rating = SecurityRating.WARNING
        else:
            rating = SecurityRating.GOOD

        return SecurityVerdict(
            overall_rating=rating,
            warnings=list(extra_warnings),
            recommended_minimum=self.recommended_minimum,
        )

    def _rate_effective_bits(self, s: SecuritySignals, v: SecurityVerdict) -> None:
        bits = s.effective_security_bits
        if bits < CRITICAL_BITS:
            v.issues.append(
                f"CRITICAL: Effective security is only {bits:.1f} bits "
                f"(minimum {self.recommended_minimum} bits recommended). Tokens are easily guessable."
            )
        elif bits < WEAK_BITS:
            v.issues.append(
                f"Effective security is {bits:.1f} bits, within reach of brute-force attacks "
                f"({self.recommended_minimum}+ bits recommended)."
            )
        elif bits < self.recommended_minimum:
            v.warnings.append(
                f"Effective security is {bits:.1f} bits, below the recommended "
                f"{self.recommended_minimum} bits for session tokens."
            )
        else:
            v.strengths.append(
                f"Strong effective security: {bits:.1f} bits "
                f"(meets the {self.recommended_minimum}-bit minimum)."
            )

    def _rate_entropy(self, s: SecuritySignals, v: SecurityVerdict) -> None:
        if s.min_entropy_per_bit < 0.5:
            v.issues.append(
                f"Very low min-entropy per bit ({s.min_entropy_per_bit:.3f}). Bits are heavily biased."
            )
        elif s.min_entropy_per_bit < 0.8:
            v.warnings.append(
                f"Low min-entropy per bit ({s.min_entropy_per_bit:.3f}). Some bit bias present."
            )
        elif s.min_entropy_per_bit > 0.95:
            v.strengths.append(f"Excellent min-entropy per bit ({s.min_entropy_per_bit:.3f}).")

        if s.shannon_char_entropy < 3.0:
            v.warnings.append(
                f"Low Shannon entropy ({s.shannon_char_entropy:.2f} bits/char). "
                "The character set may be limited."
            )
        elif s.shannon_char_entropy >= 4.5:
            v.strengths.append(f"Good Shannon entropy ({s.shannon_char_entropy:.2f} bits/char).")

    def _rate_bit_checks(self, s: SecuritySignals, v: SecurityVerdict) -> None:
        alpha = self.pooled_significance_level

        chi_p = s.chi_squared_p_value
        if s.sufficient_bits and chi_p < FAIL_P:
            v.issues.append(f"Chi-squared test failed (p={chi_p:.4f}). Bit distribution is non-uniform.")
        elif s.sufficient_bits and chi_p < alpha:
            v.warnings.append(f"Chi-squared test marginal (p={chi_p:.4f}). Slight non-uniformity.")
        else:
            v.strengths.append(f"Chi-squared test passed (p={chi_p:.4f}). Uniform bit distribution.")

        corr = abs(s.serial_correlation)
        if corr > 0.5:
            v.issues.append(
                f"High serial correlation ({s.serial_correlation:.3f}). Consecutive bits are dependent."
            )
        elif corr > 0.2:
            v.warnings.append(
                f"Moderate serial correlation ({s.serial_correlation:.3f}). Some bit dependencies."
            )
        else:
            v.strengths.append(f"Low serial correlation ({s.serial_correlation:.3f}).")

        runs_p = s.runs_p_value
        if s.sufficient_bits and runs_p < FAIL_P:
            v.issues.append(f"Runs test failed (p={runs_p:.4f}). Non-random run lengths.")
        elif s.sufficient_bits and runs_p < alpha:
            v.warnings.append(f"Runs test marginal (p={runs_p:.4f}).")
        else:
            v.strengths.append(f"Runs test passed (p={runs_p:.4f}).")

        ratio = s.lz_compression_ratio
        if s.sufficient_bits and ratio > 1.5:
            v.issues.append(f"High LZ compression ratio ({ratio:.2f}). Structure detected in data.")
        elif s.sufficient_bits and ratio > 1.10:
            v.warnings.append(f"Elevated LZ compression ratio ({ratio:.2f}). Some structure present.")
        else:
            v.strengths.append(f"Good LZ compression ratio ({ratio:.2f}). Minimal structure.")

    def _rate_collisions(self, s: SecuritySignals, v: SecurityVerdict) -> None:
        if s.near_duplicates > s.sample_size * 0.01:
            v.warnings.append(
                f"{s.near_duplicates} near-duplicate token pairs found (Hamming distance <= 2)."
            )
        elif s.near_duplicates == 0:
            v.strengths.append("No near-duplicate tokens (Hamming distance > 2).")

        dup = s.duplicate_percentage
        if dup > 10:
            v.issues.append(f"{dup:.1f}% exact duplicate tokens. Poor randomness.")
        elif dup > 5:
            v.warnings.append(f"{dup:.1f}% exact duplicate tokens.")
        elif dup < 2:
            v.strengths.append(f"Very few exact duplicates ({dup:.1f}%).")

    def _rate_patterns(self, s: SecuritySignals, v: SecurityVerdict) -> None:
        if s.is_sequential:
            v.issues.append("Sequential pattern detected. Tokens are predictable.")
        else:
            v.strengths.append("No sequential patterns detected.")

        if s.has_timestamps:
            v.issues.append("Timestamp-based tokens detected. Highly predictable.")

        score = s.predictability_score
        if score > 50:
            v.issues.append(f"High predictability score ({score}/100).")
        elif score > 20:
            v.warnings.append(f"Moderate predictability score ({score}/100).")
        else:
            v.strengths.append(f"Low predictability score ({score}/100).")

    def _overall_rating(self, s: SecuritySignals, v: SecurityVerdict) -> SecurityRating:
        bits = s.effective_security_bits
        severe = s.severe_test_failure
        if bits < CRITICAL_BITS or (bits < WEAK_BITS and severe):
            return SecurityRating.CRITICAL
        if v.warnings or bits < self.recommended_minimum or severe:
            return SecurityRating.WARNING
        if len(v.strengths) >= 3:
            return SecurityRating.EXCELLENT
        return SecurityRating.GOOD
