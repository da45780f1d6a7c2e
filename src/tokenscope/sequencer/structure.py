"""
Structural Detectors

Collision and Hamming-distance analysis, the LZ78 structure estimate, and the
per-token bit checks (chi-squared, serial correlation, runs) on decoded bytes.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .decoding import bytes_to_bits
from .special import erfc
from .tests import RandomnessTest, median_p_value


MIN_BITS = 100


@dataclass
class CollisionAnalysis:
    """Duplicate and near-duplicate statistics."""

    exact_duplicates: int
    near_duplicates: int
    average_hamming_distance: float
    sampled_tokens: int = 0
    comparisons: int = 0


@dataclass
class LZEstimate:
    """LZ78 compressibility of the pooled bit stream."""

    entropy_rate: float
    compression_ratio: float
    applicable: bool


@dataclass
class BitChecks:
    """Per-token bit checks on decoded bytes, aggregated over the sample."""

    chi_squared_p_value: float
    serial_correlation: float
    runs_p_value: float
    tokens_tested: int


def hamming_distance(first: str, second: str) -> int:
    """
    Number of differing positions between equal-length strings.

    Strings of different lengths are treated as maximally distant.
    """
    if len(first) != len(second):
        return max(len(first), len(second))
    return sum(1 for a, b in zip(first, second) if a != b)


class CollisionAnalyzer:
    """
    Exact and near-duplicate detection.

    Pairwise distances are computed on a systematic sample (every k-th token,
    k = ceil(n / sample_size)) so cost stays bounded for large captures. For
    very large samples the near-duplicate count and mean distance are therefore
    estimates.
    """

    def __init__(self, sample_size: int = 1000):
        if sample_size < 2:
            raise ValueError("sample_size must be at least 2")
        self.sample_size = sample_size

    def analyze(self, tokens: Sequence[str]) -> CollisionAnalysis:
        if len(tokens) < 2:
            return CollisionAnalysis(0, 0, 0.0)

        seen = set()
        exact_duplicates = 0
        for token in tokens:
            if token in seen:
                exact_duplicates += 1
            seen.add(token)

        stride = max(1, math.ceil(len(tokens) / self.sample_size))
        sample = tokens[::stride]

        near_duplicates = 0
        total_distance = 0
        comparisons = 0
        for i, first in enumerate(sample):
            for second in sample[i + 1 :]:
                distance = hamming_distance(first, second)
                total_distance += distance
                comparisons += 1
                if 0 < distance <= 2:
                    near_duplicates += 1

        return CollisionAnalysis(
            exact_duplicates=exact_duplicates,
            near_duplicates=near_duplicates,
            average_hamming_distance=total_distance / comparisons if comparisons else 0.0,
            sampled_tokens=len(sample),
            comparisons=comparisons,
        )


def lz78_entropy_rate(bits: np.ndarray) -> float:
    """
    Compressed bits per input bit under a greedy LZ78 parse.

    Each new phrase costs ceil(log2(dictionary size)) bits. Inputs shorter
    than 100 bits are not evaluated and return 0.
    """
    if len(bits) < MIN_BITS:
        return 0.0

    dictionary = set()
    dictionary_size = 1
    compressed_length = 0
    current = ""
    for bit in "".join("1" if b else "0" for b in bits.tolist()):
        phrase = current + bit
        if phrase in dictionary:
            current = phrase
        else:
            dictionary.add(phrase)
            dictionary_size += 1
            compressed_length += math.ceil(math.log2(dictionary_size))
            current = bit
    return compressed_length / len(bits)


def lz_estimate(bits: np.ndarray, shannon_per_bit: float) -> LZEstimate:
    """LZ78 entropy rate and its ratio to the measured Shannon bit entropy."""
    if len(bits) < MIN_BITS:
        return LZEstimate(0.0, 1.0, False)
    rate = lz78_entropy_rate(bits)
    ratio = rate / shannon_per_bit if shannon_per_bit > 1e-9 else 1.0
    return LZEstimate(rate, ratio, True)


def chi_squared_bits(bits: np.ndarray) -> float:
    """Chi-squared p-value for a 50/50 split of ones and zeros (1 df)."""
    n = len(bits)
    if n < MIN_BITS:
        return 1.0
    ones = int(np.count_nonzero(bits))
    expected = n / 2
    chi_square = ((n - ones - expected) ** 2 + (ones - expected) ** 2) / expected
    return min(1.0, max(0.0, erfc(math.sqrt(chi_square / 2))))


def serial_correlation(bits: np.ndarray) -> float:
    """Lag-1 correlation coefficient of a bit sequence."""
    if len(bits) < 2:
        return 0.0
    x = np.asarray(bits, dtype=np.float64)
    first, second = x[:-1], x[1:]
    mean1, mean2 = first.mean(), second.mean()
    covariance = float(np.mean(first * second) - mean1 * mean2)
    std = math.sqrt(float(np.mean((first - mean1) ** 2) * np.mean((second - mean2) ** 2)))
    return covariance / std if std > 0 else 0.0


def per_token_bit_checks(byte_tokens: Sequence[bytes], runs: RandomnessTest) -> BitChecks:
    """
    Run the bit checks token by token instead of on a concatenated stream.

    Chi-squared and runs p-values are aggregated by median over tokens with at
    least 100 bits (runs only where applicable). Serial correlation is the
    bit-length weighted average of per-token absolute coefficients.
    """
    chi_p_values = []
    runs_p_values = []
    weighted_corr = 0.0
    corr_bits = 0
    tested = 0

    for data in byte_tokens:
        bits = bytes_to_bits(data)
        if len(bits) >= 2:
            weighted_corr += abs(serial_correlation(bits)) * len(bits)
            corr_bits += len(bits)
        if len(bits) < MIN_BITS:
            continue
        tested += 1
        chi_p_values.append(chi_squared_bits(bits))
        result = runs.runs_test(bits)
        if result.applicable:
            runs_p_values.append(result.p_value)

    return BitChecks(
        chi_squared_p_value=median_p_value(chi_p_values),
        serial_correlation=weighted_corr / corr_bits if corr_bits else 0.0,
        runs_p_value=median_p_value(runs_p_values),
        tokens_tested=tested,
    )
