"""
Statistical Randomness Tests

Implements a subset of the NIST SP 800-22 test suite, run independently on
each token and aggregated across the sample.
"""

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .decoding import raw_string_bits
from .special import chi_square_upper_tail, erfc, gammainc_upper, normal_cdf


# 0/1 values, as a list or a numpy array
BitSequence = Union[Sequence[int], np.ndarray]


class RandomnessTestType(str, Enum):
    """Tests of the per-token SP 800-22 battery."""

    FREQUENCY = "Frequency (Monobit)"
    RUNS = "Runs"
    BLOCK_FREQUENCY = "Block Frequency (M=256)"
    SERIAL = "Serial (m=2)"
    APPROXIMATE_ENTROPY = "Approximate Entropy (m=2)"
    CUMULATIVE_SUMS = "Cumulative Sums (for/back)"


class RandomnessVerdict(str, Enum):
    """Summary verdict over the aggregated battery."""

    LOOKS_RANDOM = "Looks Random"
    MOSTLY_RANDOM = "Mostly Random"
    SHOWS_PATTERNS = "Shows Patterns"


@dataclass
class TestResult:
    """Result of a randomness test on one bit sequence."""

    test_type: RandomnessTestType
    p_value: float
    applicable: bool
    passed: bool
    statistic: float = 0.0
    details: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate test result."""
        if not 0 <= self.p_value <= 1:
            raise ValueError(f"p_value must be between 0 and 1, got {self.p_value}")

    @property
    def name(self) -> str:
        return self.test_type.value


@dataclass
class AggregatedTest:
    """Per-test summary across the token sample."""

    name: str
    applicable_count: int
    pass_count: int
    pass_rate: float
    median_p: float
    p_values: List[Optional[float]] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class StatisticalTestsReport:
    """The aggregated SP 800-22 battery."""

    basis: str
    alpha: float
    tests: List[AggregatedTest]

    def get(self, test_type: RandomnessTestType) -> Optional[AggregatedTest]:
        for test in self.tests:
            if test.name == test_type.value:
                return test
        return None

    @property
    def overall_pass_rate(self) -> float:
        """Pass rate over every applicable per-token result."""
        applicable = sum(t.applicable_count for t in self.tests)
        if applicable == 0:
            return 1.0
        return sum(t.pass_count for t in self.tests) / applicable

    @property
    def overall_median_p(self) -> float:
        p_values = [p for t in self.tests for p in t.p_values if p is not None]
        return median_p_value(p_values)

    @property
    def verdict(self) -> RandomnessVerdict:
        pass_rate = self.overall_pass_rate
        median = self.overall_median_p
        if pass_rate >= 0.95 and median >= 0.05:
            return RandomnessVerdict.LOOKS_RANDOM
        if pass_rate >= 0.80 and median >= 0.01:
            return RandomnessVerdict.MOSTLY_RANDOM
        return RandomnessVerdict.SHOWS_PATTERNS


def median_p_value(p_values: Sequence[float]) -> float:
    """Upper median (sorted[n // 2]); 1.0 for an empty list."""
    if not p_values:
        return 1.0
    ordered = sorted(p_values)
    return ordered[len(ordered) // 2]


def _clamp(p: float) -> float:
    return min(1.0, max(0.0, p))


class RandomnessTest:
    """
    Statistical randomness testing framework.

    Each test returns a TestResult carrying an applicability flag: results whose
    preconditions (minimum length, tolerable bit bias) are not met report
    ``applicable=False`` and ``p_value=1.0`` instead of a failure.
    """

    def __init__(self, significance_level: float = 0.01):
        """
        Initialize randomness test framework.

        Args:
            significance_level: Significance level for hypothesis testing (default 0.01)
        """
        if not 0 < significance_level < 1:
            raise ValueError("Significance level must be between 0 and 1")
        self.significance_level = significance_level

    def _as_bits(self, bits: BitSequence) -> np.ndarray:
        arr = np.asarray(bits, dtype=np.int64).ravel()
        if arr.size and not np.isin(arr, (0, 1)).all():
            raise ValueError("Bits must be 0 or 1")
        return arr

    def _result(
        self, test_type: RandomnessTestType, p_value: float, statistic: float, **details
    ) -> TestResult:
        p_value = _clamp(p_value)
        return TestResult(
            test_type=test_type,
            p_value=p_value,
            applicable=True,
            passed=p_value >= self.significance_level,
            statistic=statistic,
            details=details,
        )

    def _not_applicable(self, test_type: RandomnessTestType, reason: str, **details) -> TestResult:
        return TestResult(
            test_type=test_type,
            p_value=1.0,
            applicable=False,
            passed=True,
            details={"reason": reason, **details},
        )

    def frequency_test(self, bits: BitSequence) -> TestResult:
        """
        Frequency (Monobit) Test.

        Tests whether the number of ones and zeros in a sequence are approximately
        equal. Requires at least 100 bits.
        """
        x = self._as_bits(bits)
        n = len(x)
        if n < 100:
            return self._not_applicable(
                RandomnessTestType.FREQUENCY, "Sequence too short (minimum 100 bits)", n=n
            )

        ones = int(x.sum())
        s_obs = abs(2 * ones - n) / math.sqrt(n)
        p_value = erfc(s_obs / math.sqrt(2))

        return self._result(
            RandomnessTestType.FREQUENCY,
            p_value,
            s_obs,
            ones=ones,
            zeros=n - ones,
            n=n,
        )

    def runs_test(self, bits: BitSequence) -> TestResult:
        """
        Runs Test.

        Tests whether the number of runs (uninterrupted sequences of identical
        bits) is as expected for a random sequence. Not applicable when the
        proportion of ones fails the NIST pre-test |pi - 0.5| < 2 / sqrt(n).
        """
        x = self._as_bits(bits)
        n = len(x)
        if n < 100:
            return self._not_applicable(
                RandomnessTestType.RUNS, "Sequence too short (minimum 100 bits)", n=n
            )

        n1 = int(x.sum())
        n0 = n - n1
        pi = n1 / n
        tau = 2 / math.sqrt(n)
        if abs(pi - 0.5) >= tau:
            return self._not_applicable(
                RandomnessTestType.RUNS,
                "Failed pre-test: proportion of ones too far from 0.5",
                pi=pi,
                tau=tau,
            )

        runs = 1 + int(np.count_nonzero(x[1:] != x[:-1]))
        expected_runs = 2 * n0 * n1 / n + 1
        variance = (2 * n0 * n1 * (2 * n0 * n1 - n)) / (n * n * (n - 1))
        if variance <= 0:
            return self._not_applicable(
                RandomnessTestType.RUNS, "Zero variance in run count", n=n
            )

        z = (runs - expected_runs) / math.sqrt(variance)
        p_value = 2 * (1 - normal_cdf(abs(z)))

        return self._result(
            RandomnessTestType.RUNS,
            p_value,
            z,
            runs=runs,
            expected_runs=expected_runs,
            pi=pi,
            n=n,
        )

    def block_frequency_test(self, bits: BitSequence, block_size: int = 256) -> TestResult:
        """
        Block Frequency Test.

        Tests whether the proportion of ones within M-bit blocks is close to M/2.
        Requires at least one full block.
        """
        x = self._as_bits(bits)
        n = len(x)
        num_blocks = n // block_size
        if num_blocks < 1:
            return self._not_applicable(
                RandomnessTestType.BLOCK_FREQUENCY,
                f"Sequence too short (minimum {block_size} bits)",
                n=n,
            )

        blocks = x[: num_blocks * block_size].reshape(num_blocks, block_size)
        proportions = blocks.sum(axis=1) / block_size
        chi_square = float(4 * block_size * np.sum((proportions - 0.5) ** 2))
        p_value = gammainc_upper(num_blocks / 2, chi_square / 2)

        return self._result(
            RandomnessTestType.BLOCK_FREQUENCY,
            p_value,
            chi_square,
            num_blocks=num_blocks,
            block_size=block_size,
        )

    @staticmethod
    def _pattern_counts(x: np.ndarray, m: int) -> np.ndarray:
        """Frequencies of overlapping m-bit patterns with cyclic wrap-around."""
        n = len(x)
        extended = np.concatenate([x, x[: m - 1]]) if m > 1 else x
        patterns = np.zeros(n, dtype=np.int64)
        for i in range(m):
            patterns = (patterns << 1) | extended[i : i + n]
        return np.bincount(patterns, minlength=1 << m)

    def _psi_squared(self, x: np.ndarray, m: int) -> float:
        if m <= 0:
            return 0.0
        n = len(x)
        counts = self._pattern_counts(x, m).astype(np.float64)
        return float((1 << m) * np.sum(counts * counts) / n - n)

    def serial_test(self, bits: BitSequence, m: int = 2) -> TestResult:
        """
        Serial Test.

        Compares overlapping m-bit pattern frequencies against the (m-1)- and
        (m-2)-bit levels. Two p-values are computed; the reported p-value is
        their minimum. Requires at least 1000 bits.
        """
        x = self._as_bits(bits)
        n = len(x)
        if n < 1000:
            return self._not_applicable(
                RandomnessTestType.SERIAL, "Sequence too short (minimum 1000 bits)", n=n
            )

        psi_m = self._psi_squared(x, m)
        psi_m1 = self._psi_squared(x, m - 1)
        psi_m2 = self._psi_squared(x, m - 2)
        delta1 = psi_m - psi_m1
        delta2 = psi_m - 2 * psi_m1 + psi_m2

        p1 = _clamp(chi_square_upper_tail(delta1, 1 << (m - 1)))
        p2 = _clamp(chi_square_upper_tail(delta2, 1 << (m - 2)))

        return self._result(
            RandomnessTestType.SERIAL,
            min(p1, p2),
            delta1,
            p_value1=p1,
            p_value2=p2,
            delta1=delta1,
            delta2=delta2,
            n=n,
        )

    def approximate_entropy_test(self, bits: BitSequence, m: int = 2) -> TestResult:
        """
        Approximate Entropy Test.

        Compares the frequencies of overlapping m- and (m+1)-bit patterns.
        Requires at least 10000 bits.
        """
        x = self._as_bits(bits)
        n = len(x)
        if n < 10000:
            return self._not_applicable(
                RandomnessTestType.APPROXIMATE_ENTROPY,
                "Sequence too short (minimum 10000 bits)",
                n=n,
            )

        def phi(block: int) -> float:
            counts = self._pattern_counts(x, block)
            probabilities = counts[counts > 0] / n
            return float(np.sum(probabilities * np.log(probabilities)))

        ap_en = phi(m) - phi(m + 1)
        chi_square = 2 * n * (math.log(2) - ap_en)
        p_value = gammainc_upper(1 << (m - 1), chi_square / 2)

        return self._result(
            RandomnessTestType.APPROXIMATE_ENTROPY,
            p_value,
            chi_square,
            ap_en=ap_en,
            n=n,
        )

    @staticmethod
    def _cusum_p_value(z: int, n: int) -> float:
        if z == 0:
            return 1.0
        sqrt_n = math.sqrt(n)
        sum1 = 0.0
        for k in range(math.floor((-n / z + 1) / 4), math.floor((n / z - 1) / 4) + 1):
            sum1 += normal_cdf((4 * k + 1) * z / sqrt_n) - normal_cdf((4 * k - 1) * z / sqrt_n)
        sum2 = 0.0
        for k in range(math.floor((-n / z - 3) / 4), math.floor((n / z - 1) / 4) + 1):
            sum2 += normal_cdf((4 * k + 3) * z / sqrt_n) - normal_cdf((4 * k + 1) * z / sqrt_n)
        return _clamp(1 - sum1 + sum2)

    def cumulative_sums_test(self, bits: BitSequence) -> TestResult:
        """
        Cumulative Sums Test, forward and backward.

        Reports the smaller of the two directional p-values. Requires at least
        1000 bits.
        """
        x = self._as_bits(bits)
        n = len(x)
        if n < 1000:
            return self._not_applicable(
                RandomnessTestType.CUMULATIVE_SUMS,
                "Sequence too short (minimum 1000 bits)",
                n=n,
            )

        signs = 2 * x - 1
        z_forward = int(np.max(np.abs(np.cumsum(signs))))
        z_backward = int(np.max(np.abs(np.cumsum(signs[::-1]))))
        p_forward = self._cusum_p_value(z_forward, n)
        p_backward = self._cusum_p_value(z_backward, n)

        return self._result(
            RandomnessTestType.CUMULATIVE_SUMS,
            min(p_forward, p_backward),
            float(max(z_forward, z_backward)),
            z_forward=z_forward,
            z_backward=z_backward,
            p_forward=p_forward,
            p_backward=p_backward,
        )

    def run_battery(self, bits: BitSequence) -> List[TestResult]:
        """Run all six tests on one bit sequence, in report order."""
        return [
            self.frequency_test(bits),
            self.runs_test(bits),
            self.block_frequency_test(bits, 256),
            self.serial_test(bits, 2),
            self.approximate_entropy_test(bits, 2),
            self.cumulative_sums_test(bits),
        ]


class StatisticalTestSuite:
    """
    Runs the SP 800-22 battery on every token and aggregates the results.

    Tests run on the printable token text (8 bits per character), not on the
    decoded bytes used by the entropy estimators.
    """

    def __init__(self, significance_level: float = 0.01, max_workers: int = 1):
        self.randomness_test = RandomnessTest(significance_level=significance_level)
        self.max_workers = max_workers

    @property
    def alpha(self) -> float:
        return self.randomness_test.significance_level

    def _token_results(self, token: str) -> List[TestResult]:
        return self.randomness_test.run_battery(raw_string_bits(token))

    def run(self, tokens: Sequence[str]) -> StatisticalTestsReport:
        """
        Run the battery on each token and aggregate per test.

        Args:
            tokens: Valid token strings

        Returns:
            StatisticalTestsReport with one AggregatedTest per test type
        """
        if self.max_workers > 1 and len(tokens) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                per_token = list(pool.map(self._token_results, tokens))
        else:
            per_token = [self._token_results(token) for token in tokens]

        by_test: Dict[RandomnessTestType, List[TestResult]] = {t: [] for t in RandomnessTestType}
        for results in per_token:
            for result in results:
                by_test[result.test_type].append(result)

        return StatisticalTestsReport(
            basis="raw_string",
            alpha=self.alpha,
            tests=[self.aggregate(test_type, by_test[test_type]) for test_type in RandomnessTestType],
        )

    def aggregate(self, test_type: RandomnessTestType, results: Sequence[TestResult]) -> AggregatedTest:
        """
        Combine per-token results of one test.

        Inapplicable results are excluded from both numerator and denominator.
        With nothing applicable the test reports pass_rate=1.0 and median_p=1.0.
        """
        applicable = [r.p_value for r in results if r.applicable]
        passes = sum(1 for p in applicable if p >= self.alpha)
        pass_rate = passes / len(applicable) if applicable else 1.0

        notes = None
        if not applicable:
            notes = "No token met the test's minimum length or bias preconditions"

        return AggregatedTest(
            name=test_type.value,
            applicable_count=len(applicable),
            pass_count=passes,
            pass_rate=pass_rate,
            median_p=median_p_value(applicable),
            p_values=[r.p_value if r.applicable else None for r in results],
            notes=notes,
        )
