"""
Token Analyzer

Main interface for session token analysis and randomness testing.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..core.config import AnalysisConfig, get_config
from ..core.logging import get_logger, log_structured
from ..core.models import CaptureStatus, TokenCapture
from .classifier import SecurityRating, SecuritySignals, SecurityVerdict, SeverityClassifier
from .decoding import ByteDecoder, DecodedToken
from .entropy import (
    BitStatistics,
    PositionEntropy,
    bit_statistics,
    min_entropy_per_bit,
    min_entropy_whole_token,
    per_position_char_entropy,
    per_position_min_entropy,
    shannon_bit_entropy,
    shannon_char_entropy,
)
from .patterns import CharacterAnalysis, Pattern, PatternDetector, predictability_score
from .structure import CollisionAnalysis, CollisionAnalyzer, lz_estimate, per_token_bit_checks
from .tests import StatisticalTestsReport, StatisticalTestSuite


logger = get_logger(__name__)

TokenInput = Union[TokenCapture, str]


@dataclass
class SampleSummary:
    total_samples: int
    unique_values: int = 0
    duplicate_count: int = 0
    duplicate_percentage: float = 0.0
    entropy: float = 0.0
    average_length: float = 0.0
    min_length: int = 0
    max_length: int = 0


@dataclass
class PatternSummary:
    sequential: bool = False
    sequential_count: int = 0
    has_timestamps: bool = False
    common_prefix: str = ""
    common_suffix: str = ""
    predictability_score: int = 0


@dataclass
class EntropyAnalysis:
    """Decoded-byte entropy estimates and per-token bit checks."""

    shannon_entropy_per_bit: float = 0.0
    min_entropy_per_bit: float = 0.0
    per_position_min_entropy: float = 0.0
    effective_security_bits: float = 0.0
    chi_squared_p_value: float = 1.0
    serial_correlation: float = 0.0
    runs_test_p_value: float = 1.0
    lz_compression_ratio: float = 1.0
    estimated_entropy_rate: float = 0.0
    lz_applicable: bool = False
    bit_checks_tokens_tested: int = 0
    per_position_informational: bool = False
    per_position_data: Optional[List[PositionEntropy]] = None
    per_position_raw_data: Optional[List[PositionEntropy]] = None


@dataclass
class AnalysisResult:
    """
    Complete analysis of a token sample.

    ``statistical_tests`` is only populated on the full (security analysis) path.
    """

    summary: SampleSummary
    patterns: PatternSummary
    character_analysis: CharacterAnalysis
    bit_analysis: BitStatistics
    entropy_analysis: EntropyAnalysis
    collision_analysis: CollisionAnalysis
    security: SecurityVerdict
    statistical_tests: Optional[StatisticalTestsReport] = None
    detected_patterns: List[Pattern] = field(default_factory=list)
    encodings: Dict[str, int] = field(default_factory=dict)

    @property
    def overall_rating(self) -> SecurityRating:
        return self.security.overall_rating

    def to_dict(self) -> Dict[str, Any]:
        """Nested dict with camelCase keys, suitable for JSON export."""
        data = _to_camel_dict(self)
        data["detectedPatterns"] = [
            {
                "type": p.pattern_type.value,
                "description": p.description,
                "severity": p.severity,
                "evidence": list(p.evidence),
                "confidence": p.confidence,
            }
            for p in self.detected_patterns
        ]
        if self.statistical_tests is not None:
            data["statisticalTests"].update(
                overallPassRate=self.statistical_tests.overall_pass_rate,
                overallMedianP=self.statistical_tests.overall_median_p,
                verdict=self.statistical_tests.verdict.value,
            )
        return data


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _to_camel_dict(value: Any) -> Any:
    if is_dataclass(value):
        return {
            _camel(f.name): _to_camel_dict(getattr(value, f.name))
            for f in fields(value)
            if not f.name.startswith("_")
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _to_camel_dict(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_camel_dict(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def _as_capture(item: TokenInput) -> TokenCapture:
    if isinstance(item, TokenCapture):
        return item
    return TokenCapture(token=item)


class TokenAnalyzer:
    """
    Main token analysis engine.

    Performs comprehensive analysis of session tokens including:
    - Byte decoding (hex, base64, base64url, JWT-style segments)
    - Entropy estimation (Shannon, min-entropy, per-position min-entropy)
    - Statistical randomness testing (NIST SP 800-22 subset, per token)
    - Structural detection (collisions, LZ78 structure, sequences, timestamps)
    - Severity classification
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """
        Initialize token analyzer.

        Args:
            config: Analysis settings; defaults to the global configuration
        """
        self.config = config or get_config().analysis
        self.decoder = ByteDecoder()
        self.pattern_detector = PatternDetector()
        self.collision_analyzer = CollisionAnalyzer(sample_size=max(2, self.config.collision_sample_size))
        self.test_suite = StatisticalTestSuite(
            significance_level=self.config.significance_level,
            max_workers=self.config.max_workers,
        )
        self.classifier = SeverityClassifier(
            pooled_significance_level=self.config.pooled_significance_level,
            recommended_minimum=self.config.recommended_minimum_bits,
        )

    def analyze(
        self, captures: Iterable[TokenInput], security_analysis: bool = True
    ) -> AnalysisResult:
        """
        Analyze a snapshot of captured tokens.

        Args:
            captures: Token captures (or bare token strings) from the collector
            security_analysis: Run decoding, entropy estimation and statistical
                tests. When False only summary statistics, pattern detectors and
                a duplicate-based rating are computed.

        Returns:
            AnalysisResult. An empty or all-failed sample yields a degraded result
            whose first issue is tagged PARAMETER_NOT_FOUND:, REQUEST_FAILED: or
            ERROR:.
        """
        snapshot: Tuple[TokenCapture, ...] = tuple(_as_capture(c) for c in captures)
        tokens = [c.token for c in snapshot if c.is_valid]
        failed = sum(
            1
            for c in snapshot
            if c.status in (CaptureStatus.REQUEST_FAILED, CaptureStatus.PARSE_ERROR)
        )

        if not tokens:
            result = self._degraded_result(snapshot, failed)
            logger.info("No valid tokens in %d captures: %s", len(snapshot), result.security.issues[0])
            return result

        partial_failures = []
        if failed:
            success_rate = len(tokens) / len(snapshot) * 100
            partial_failures.append(
                f"{failed} of {len(snapshot)} requests failed ({success_rate:.1f}% success rate). "
                "Results may not be statistically reliable."
            )

        summary = self._summarize(tokens)
        sequential = self.pattern_detector.detect_sequential(tokens)
        has_timestamps = self.pattern_detector.detect_timestamps(tokens)
        prefix, suffix = self.pattern_detector.find_common_prefix_suffix(tokens)
        pattern_summary = PatternSummary(
            sequential=sequential.is_sequential,
            sequential_count=sequential.count,
            has_timestamps=has_timestamps,
            common_prefix=prefix,
            common_suffix=suffix,
            predictability_score=predictability_score(
                sequential.is_sequential, has_timestamps, summary.duplicate_percentage, prefix
            ),
        )
        character_analysis = self.pattern_detector.analyze_characters(tokens)
        detected_patterns = self.pattern_detector.detect_patterns(tokens)

        if not security_analysis:
            security = self.classifier.classify_quick(
                summary.duplicate_percentage,
                sequential.is_sequential,
                has_timestamps,
                pattern_summary.predictability_score,
                partial_failures,
            )
            result = AnalysisResult(
                summary=summary,
                patterns=pattern_summary,
                character_analysis=character_analysis,
                bit_analysis=BitStatistics(0, 0, 0, 0.0),
                entropy_analysis=EntropyAnalysis(),
                collision_analysis=CollisionAnalysis(0, 0, 0.0),
                security=security,
                detected_patterns=detected_patterns,
            )
            self._log_result(result, security_analysis)
            return result

        decoded = [self.decoder.decode(token) for token in tokens]
        entropy_analysis, bit_analysis = self._entropy_analysis(tokens, decoded, summary)
        collision_analysis = self.collision_analyzer.analyze(tokens)
        statistical_tests = self.test_suite.run(tokens)

        signals = SecuritySignals(
            sample_size=len(tokens),
            effective_security_bits=entropy_analysis.effective_security_bits,
            min_entropy_per_bit=entropy_analysis.min_entropy_per_bit,
            shannon_char_entropy=summary.entropy,
            total_bits=bit_analysis.total_bits,
            chi_squared_p_value=entropy_analysis.chi_squared_p_value,
            serial_correlation=entropy_analysis.serial_correlation,
            runs_p_value=entropy_analysis.runs_test_p_value,
            lz_compression_ratio=entropy_analysis.lz_compression_ratio,
            near_duplicates=collision_analysis.near_duplicates,
            duplicate_percentage=summary.duplicate_percentage,
            is_sequential=sequential.is_sequential,
            has_timestamps=has_timestamps,
            predictability_score=pattern_summary.predictability_score,
        )
        security = self.classifier.classify(signals, partial_failures)

        encodings: Dict[str, int] = {}
        for item in decoded:
            encodings[item.encoding.value] = encodings.get(item.encoding.value, 0) + 1

        result = AnalysisResult(
            summary=summary,
            patterns=pattern_summary,
            character_analysis=character_analysis,
            bit_analysis=bit_analysis,
            entropy_analysis=entropy_analysis,
            collision_analysis=collision_analysis,
            security=security,
            statistical_tests=statistical_tests,
            detected_patterns=detected_patterns,
            encodings=encodings,
        )
        self._log_result(result, security_analysis)
        return result

    def _summarize(self, tokens: Sequence[str]) -> SampleSummary:
        counts = Counter(tokens)
        unique_values = len(counts)
        duplicate_count = len(tokens) - unique_values
        # share of samples whose value occurs more than once
        colliding = sum(c for c in counts.values() if c > 1)
        lengths = [len(token) for token in tokens]
        return SampleSummary(
            total_samples=len(tokens),
            unique_values=unique_values,
            duplicate_count=duplicate_count,
            duplicate_percentage=colliding / len(tokens) * 100,
            entropy=shannon_char_entropy(tokens),
            average_length=sum(lengths) / len(lengths),
            min_length=min(lengths),
            max_length=max(lengths),
        )

    def _entropy_analysis(
        self,
        tokens: Sequence[str],
        decoded: Sequence[DecodedToken],
        summary: SampleSummary,
    ) -> Tuple[EntropyAnalysis, BitStatistics]:
        """Decoded-byte estimators, effective security bits and per-token bit checks."""
        byte_tokens = [item.data for item in decoded]
        all_bits = (
            np.concatenate([item.bits for item in decoded])
            if byte_tokens
            else np.zeros(0, dtype=np.uint8)
        )
        bit_analysis = bit_statistics(byte_tokens)
        total_bits = len(all_bits)
        avg_bits_per_token = total_bits / len(tokens)

        shannon_per_bit = shannon_bit_entropy(all_bits)
        bias_min_entropy = min_entropy_per_bit(all_bits)
        per_position = per_position_min_entropy(byte_tokens)

        estimators = [bias_min_entropy * avg_bits_per_token]
        if per_position.fixed_length:
            estimators.append(per_position.total_entropy)
        if summary.duplicate_count > 0:
            estimators.append(min_entropy_whole_token(tokens))
        effective_bits = max(0.0, min(estimators))

        checks = per_token_bit_checks(byte_tokens, self.test_suite.randomness_test)
        lz = lz_estimate(all_bits, shannon_per_bit)

        analysis = EntropyAnalysis(
            shannon_entropy_per_bit=shannon_per_bit,
            min_entropy_per_bit=bias_min_entropy,
            per_position_min_entropy=(
                per_position.total_entropy / avg_bits_per_token if avg_bits_per_token else 0.0
            ),
            effective_security_bits=effective_bits,
            chi_squared_p_value=checks.chi_squared_p_value,
            serial_correlation=checks.serial_correlation,
            runs_test_p_value=checks.runs_p_value,
            bit_checks_tokens_tested=checks.tokens_tested,
            lz_compression_ratio=lz.compression_ratio,
            estimated_entropy_rate=lz.entropy_rate,
            lz_applicable=lz.applicable,
            per_position_informational=per_position.informational,
            per_position_data=per_position.positions,
            per_position_raw_data=per_position_char_entropy(tokens),
        )
        return analysis, bit_analysis

    def _degraded_result(self, snapshot: Sequence[TokenCapture], failed: int) -> AnalysisResult:
        not_found = sum(1 for c in snapshot if c.status == CaptureStatus.NOT_FOUND)

        if not_found == len(snapshot):
            tag = "PARAMETER_NOT_FOUND"
            message = (
                f"Parameter not found in any of the {len(snapshot)} responses. "
                "Please verify the parameter name is correct."
            )
        elif failed:
            tag = "REQUEST_FAILED"
            message = (
                f"All {failed} requests failed. Check network connectivity and request "
                "configuration (host/port, TLS errors, server not responding)."
            )
        else:
            tag = "ERROR"
            message = "No valid tokens could be extracted from responses."

        return AnalysisResult(
            summary=SampleSummary(total_samples=len(snapshot)),
            patterns=PatternSummary(),
            character_analysis=CharacterAnalysis("", 0, 0, 0, False, False),
            bit_analysis=BitStatistics(0, 0, 0, 0.0),
            entropy_analysis=EntropyAnalysis(
                chi_squared_p_value=0.0,
                runs_test_p_value=0.0,
                lz_compression_ratio=0.0,
                per_position_data=[],
            ),
            collision_analysis=CollisionAnalysis(0, 0, 0.0),
            security=SecurityVerdict(
                overall_rating=SecurityRating.CRITICAL,
                issues=[f"{tag}:{message}"],
                recommended_minimum=self.config.recommended_minimum_bits,
            ),
        )

    def _log_result(self, result: AnalysisResult, security_analysis: bool) -> None:
        log_structured(
            logger,
            logging.DEBUG,
            "Token analysis complete",
            samples=result.summary.total_samples,
            unique=result.summary.unique_values,
            rating=result.security.overall_rating.value,
            effective_bits=round(result.entropy_analysis.effective_security_bits, 2),
            security_analysis=security_analysis,
        )


def analyze(captures: Iterable[TokenInput], security_analysis: bool = True) -> AnalysisResult:
    """Analyze captures with a TokenAnalyzer built from the global configuration."""
    return TokenAnalyzer().analyze(captures, security_analysis=security_analysis)
