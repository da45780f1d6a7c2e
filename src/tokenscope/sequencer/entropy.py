"""
Entropy Estimators

Shannon and min-entropy estimators over token characters, decoded bytes and
pooled bit streams.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np


@dataclass
class BitStatistics:
    """Bit counts over decoded bytes."""

    total_bits: int
    ones_count: int
    zeros_count: int
    bit_entropy: float


@dataclass
class PositionEntropy:
    """Min-entropy of a single token position."""

    position: int
    entropy: float
    most_common: str
    frequency: float
    coverage: float
    normalized_entropy: Optional[float] = None


@dataclass
class PerPositionResult:
    """Per-position min-entropy across decoded tokens."""

    total_entropy: float
    positions: List[PositionEntropy] = field(default_factory=list)
    fixed_length: bool = True

    @property
    def informational(self) -> bool:
        """Variable-length samples only give a lower bound."""
        return not self.fixed_length


def _binary_entropy(p_one: float) -> float:
    p_zero = 1.0 - p_one
    if p_one <= 0.0 or p_zero <= 0.0:
        return 0.0
    return -(p_one * math.log2(p_one) + p_zero * math.log2(p_zero))


def shannon_char_entropy(tokens: Sequence[str]) -> float:
    """
    Shannon entropy over all characters of all tokens.

    Returns:
        Entropy in bits per character
    """
    counts = Counter()
    for token in tokens:
        counts.update(token)
    total = sum(counts.values())
    if total == 0:
        return 0.0
    return -sum((c / total) * math.log2(c / total) for c in counts.values())


def shannon_bit_entropy(bits: np.ndarray) -> float:
    """Shannon entropy per bit of a pooled bit stream."""
    if len(bits) == 0:
        return 0.0
    return _binary_entropy(float(np.count_nonzero(bits)) / len(bits))


def min_entropy_whole_token(tokens: Sequence[str]) -> float:
    """
    Min-entropy of the token distribution, -log2(max count / n).

    Only bounded by log2(n), so it is meaningless when every token is unique.
    """
    if not tokens:
        return 0.0
    max_count = max(Counter(tokens).values())
    return -math.log2(max_count / len(tokens))


def min_entropy_per_bit(bits: np.ndarray) -> float:
    """Bit-bias min-entropy, -log2(max(p0, p1))."""
    if len(bits) == 0:
        return 0.0
    p_one = float(np.count_nonzero(bits)) / len(bits)
    return -math.log2(max(p_one, 1.0 - p_one))


def bit_statistics(byte_tokens: Sequence[bytes]) -> BitStatistics:
    """Count ones and zeros across all decoded tokens."""
    total_bits = 8 * sum(len(data) for data in byte_tokens)
    if total_bits == 0:
        return BitStatistics(0, 0, 0, 0.0)

    ones = sum(
        int(np.unpackbits(np.frombuffer(data, dtype=np.uint8)).sum())
        for data in byte_tokens
        if data
    )
    return BitStatistics(
        total_bits=total_bits,
        ones_count=ones,
        zeros_count=total_bits - ones,
        bit_entropy=_binary_entropy(ones / total_bits),
    )


def per_position_min_entropy(byte_tokens: Sequence[bytes]) -> PerPositionResult:
    """
    Per-position min-entropy over decoded bytes.

    Every byte offset up to the longest token is scored using only the tokens
    that reach it; ``coverage`` records that fraction. The sum is a total
    entropy estimate for fixed-length tokens and a conservative, informational
    bound otherwise.
    """
    if not byte_tokens:
        return PerPositionResult(0.0)

    lengths = {len(data) for data in byte_tokens}
    max_len = max(lengths)
    result = PerPositionResult(0.0, fixed_length=len(lengths) == 1)

    for pos in range(max_len):
        counts = Counter(data[pos] for data in byte_tokens if len(data) > pos)
        contributors = sum(counts.values())
        if contributors == 0:
            continue
        value, max_count = counts.most_common(1)[0]
        max_prob = max_count / contributors
        entropy = -math.log2(max_prob)
        result.positions.append(
            PositionEntropy(
                position=pos,
                entropy=entropy,
                most_common=f"{value:02x}",
                frequency=max_prob,
                coverage=contributors / len(byte_tokens),
            )
        )
        result.total_entropy += entropy

    return result


def per_position_char_entropy(tokens: Sequence[str]) -> List[PositionEntropy]:
    """
    Per-position min-entropy on raw token characters, with no decoding.

    ``normalized_entropy`` divides by the best achievable value,
    log2(min(contributors, alphabet size at that position)).
    """
    if not tokens:
        return []

    max_len = max(len(token) for token in tokens)
    positions = []
    for pos in range(max_len):
        counts = Counter(token[pos] for token in tokens if len(token) > pos)
        contributors = sum(counts.values())
        if contributors == 0:
            continue
        char, max_count = counts.most_common(1)[0]
        max_prob = max_count / contributors
        entropy = -math.log2(max_prob)
        max_achievable = math.log2(min(contributors, max(1, len(counts))))
        normalized = (
            min(1.0, max(0.0, entropy / max_achievable)) if max_achievable > 0 else 0.0
        )
        positions.append(
            PositionEntropy(
                position=pos,
                entropy=entropy,
                most_common=char,
                frequency=max_prob,
                coverage=contributors / len(tokens),
                normalized_entropy=normalized,
            )
        )
    return positions
