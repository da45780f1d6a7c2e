"""
Token Analysis Reporting and Export

Generates human-readable reports and CSV/JSON exports of captured tokens and
their analysis.
"""

import csv
import io
import json
import math
from datetime import datetime, UTC
from typing import List, Optional, Sequence

from ..core.exceptions import ExportError
from ..core.logging import get_logger
from ..core.models import TokenCapture
from .analyzer import AnalysisResult, TokenAnalyzer
from .classifier import SecurityRating


logger = get_logger(__name__)

CSV_HEADERS = ["Index", "Token", "Length", "Extracted From", "Request Sent", "Response Received"]

# Guesses per second assumed for the brute-force estimate
GUESS_RATE = 1e9


class ReportGenerator:
    """
    Generates token analysis reports and capture exports.

    Produces a plain text report for terminals, a JSON document combining the
    raw captures with their analysis, and a CSV listing of the captures.
    """

    def __init__(self, analyzer: Optional[TokenAnalyzer] = None):
        """
        Initialize report generator.

        Args:
            analyzer: Analyzer used when an export needs a fresh analysis
        """
        self._analyzer = analyzer

    @property
    def analyzer(self) -> TokenAnalyzer:
        if self._analyzer is None:
            self._analyzer = TokenAnalyzer()
        return self._analyzer

    def export_csv(self, captures: Sequence[TokenCapture]) -> str:
        """
        Export captures as CSV.

        Every cell is quoted with embedded quotes doubled and rows are joined
        with a bare newline. No captures yields an empty string.
        """
        if not captures:
            return ""

        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for index, capture in enumerate(captures, 1):
            writer.writerow(
                [
                    index,
                    capture.token,
                    len(capture.token),
                    capture.extracted_from,
                    capture.request_sent,
                    capture.response_received,
                ]
            )
        # no terminator after the last row
        return output.getvalue()[:-1]

    def export_json(
        self,
        captures: Sequence[TokenCapture],
        analysis: Optional[AnalysisResult] = None,
    ) -> str:
        """
        Export captures together with their full analysis.

        Args:
            captures: Captured tokens
            analysis: Precomputed analysis; computed from ``captures`` when omitted

        Returns:
            Indented JSON document with ``timestamp``, ``tokenCaptures`` and ``analysis``
        """
        if analysis is None:
            analysis = self.analyzer.analyze(captures, security_analysis=True)

        document = {
            "timestamp": datetime.now(UTC).isoformat(),
            "tokenCaptures": [capture.to_export_dict() for capture in captures],
            "analysis": analysis.to_dict(),
        }
        logger.debug("Exporting %d captures as JSON", len(captures))
        try:
            return json.dumps(document, indent=2)
        except (TypeError, ValueError) as e:
            raise ExportError("Failed to serialize analysis", details={"error": str(e)}) from e

    def generate_json_report(self, result: AnalysisResult) -> str:
        """Machine-readable analysis without the captures."""
        report = {"generated_at": datetime.now(UTC).isoformat(), **result.to_dict()}
        return json.dumps(report, indent=2)

    def generate_text_report(self, result: AnalysisResult) -> str:
        """
        Generate a human-readable text report.

        Args:
            result: AnalysisResult to format

        Returns:
            Formatted text report
        """
        summary = result.summary
        security = result.security

        lines = []
        lines.append("=" * 80)
        lines.append("TOKEN RANDOMNESS ANALYSIS REPORT")
        lines.append("=" * 80)
        lines.append(
            f"Generated: {datetime.now(UTC).strftime('%Y-%m-%d %H:%M:%S UTC')}"
        )
        lines.append(f"Tokens Analyzed: {summary.total_samples}")
        lines.append("")

        lines.append("-" * 80)
        lines.append("OVERALL ASSESSMENT")
        lines.append("-" * 80)
        lines.append(f"Security Rating: {security.overall_rating.value}")
        if result.statistical_tests is not None:
            lines.append(
                f"Effective Security: {security.effective_bits:.1f} bits "
                f"(recommended minimum {security.recommended_minimum})"
            )
            lines.append(
                f"Brute-force Estimate: {self._format_time(self._brute_force_seconds(security.effective_bits))}"
                f" at {GUESS_RATE:.0e} guesses/s"
            )
        lines.append("")

        lines.append("-" * 80)
        lines.append("SAMPLE SUMMARY")
        lines.append("-" * 80)
        lines.append(f"Unique Tokens: {summary.unique_values}/{summary.total_samples}")
        lines.append(
            f"Duplicates: {summary.duplicate_count} ({summary.duplicate_percentage:.1f}%)"
        )
        lines.append(f"Shannon Entropy: {summary.entropy:.4f} bits/char")
        lines.append(
            f"Length: avg {summary.average_length:.1f}, min {summary.min_length}, max {summary.max_length}"
        )
        if result.encodings:
            encodings = ", ".join(f"{k}={v}" for k, v in sorted(result.encodings.items()))
            lines.append(f"Encodings: {encodings}")
        lines.append("")

        if result.statistical_tests is not None:
            entropy = result.entropy_analysis
            lines.append("-" * 80)
            lines.append("ENTROPY METRICS")
            lines.append("-" * 80)
            lines.append(f"Shannon Entropy per Bit: {entropy.shannon_entropy_per_bit:.4f}")
            lines.append(f"Min-Entropy per Bit: {entropy.min_entropy_per_bit:.4f}")
            lines.append(f"Per-Position Min-Entropy per Bit: {entropy.per_position_min_entropy:.4f}")
            if entropy.per_position_informational:
                lines.append("  (variable token lengths, per-position value is informational)")
            lines.append(
                f"Chi-Squared p-value: {entropy.chi_squared_p_value:.4f} "
                f"({entropy.bit_checks_tokens_tested} token(s) with 100+ bits)"
            )
            lines.append(f"Serial Correlation: {entropy.serial_correlation:.4f}")
            lines.append(f"Runs p-value: {entropy.runs_test_p_value:.4f}")
            if entropy.lz_applicable:
                lines.append(f"LZ Compression Ratio: {entropy.lz_compression_ratio:.4f}")
            else:
                lines.append("LZ Compression Ratio: N/A (fewer than 100 bits)")
            lines.append(
                f"Near Duplicates: {result.collision_analysis.near_duplicates} "
                f"(avg Hamming distance {result.collision_analysis.average_hamming_distance:.2f})"
            )
            lines.append("")

            tests = result.statistical_tests
            lines.append("-" * 80)
            lines.append("STATISTICAL TESTS (NIST SP 800-22, per token)")
            lines.append("-" * 80)
            lines.append(
                f"Verdict: {tests.verdict.value} "
                f"(pass rate {tests.overall_pass_rate:.1%}, median p {tests.overall_median_p:.4f})"
            )
            for test in tests.tests:
                if test.applicable_count == 0:
                    lines.append(f"  [N/A ] {test.name}")
                    continue
                threshold = self._minimum_pass_rate(tests.alpha, test.applicable_count)
                status = "PASS" if test.pass_rate >= threshold else "FAIL"
                lines.append(
                    f"  [{status}] {test.name}: {test.pass_count}/{test.applicable_count} passed, "
                    f"median p {test.median_p:.4f}"
                )
            lines.append("")

        lines.append("-" * 80)
        lines.append("PATTERNS DETECTED")
        lines.append("-" * 80)
        if result.detected_patterns:
            for i, pattern in enumerate(result.detected_patterns, 1):
                lines.append(
                    f"  Pattern {i}: {pattern.pattern_type.value.replace('_', ' ').title()}"
                )
                lines.append(f"    Severity: {pattern.severity.upper()}")
                lines.append(f"    Description: {pattern.description}")
                if pattern.evidence:
                    lines.append("    Evidence:")
                    for evidence in pattern.evidence[:3]:
                        lines.append(f"      - {evidence}")
        else:
            lines.append("No patterns detected.")
        lines.append(f"Predictability Score: {result.patterns.predictability_score}/100")
        lines.append("")

        for title, items in (
            ("ISSUES", security.issues),
            ("WARNINGS", security.warnings),
            ("STRENGTHS", security.strengths),
        ):
            if not items:
                continue
            lines.append("-" * 80)
            lines.append(title)
            lines.append("-" * 80)
            for i, item in enumerate(items, 1):
                lines.append(f"{i}. {item}")
            lines.append("")

        lines.append("=" * 80)
        return "\n".join(lines)

    def summary_line(self, result: AnalysisResult) -> str:
        """One-line verdict for log output."""
        parts: List[str] = [
            f"{result.security.overall_rating.value}",
            f"{result.summary.total_samples} tokens",
        ]
        if result.overall_rating == SecurityRating.CRITICAL and result.security.issues:
            parts.append(result.security.issues[0])
        elif result.statistical_tests is not None:
            parts.append(f"{result.security.effective_bits:.1f} effective bits")
        return " | ".join(parts)

    @staticmethod
    def _minimum_pass_rate(alpha: float, count: int) -> float:
        """Lower bound of the SP 800-22 proportion-of-passes confidence interval."""
        p_hat = 1 - alpha
        return p_hat - 3 * math.sqrt(p_hat * alpha / count)

    def _brute_force_seconds(self, bits: float) -> float:
        """Expected time to guess a token: half the keyspace at GUESS_RATE."""
        if bits >= 1000:
            return float("inf")
        return (2 ** bits) / 2 / GUESS_RATE

    def _format_time(self, seconds: float) -> str:
        """Format time duration in human-readable format."""
        if seconds == float("inf"):
            return "Infinite"
        elif seconds < 1:
            return f"{seconds*1000:.2f} milliseconds"
        elif seconds < 60:
            return f"{seconds:.2f} seconds"
        elif seconds < 3600:
            return f"{seconds/60:.2f} minutes"
        elif seconds < 86400:
            return f"{seconds/3600:.2f} hours"
        elif seconds < 31536000:
            return f"{seconds/86400:.2f} days"
        else:
            return f"{seconds/31536000:.2e} years"
