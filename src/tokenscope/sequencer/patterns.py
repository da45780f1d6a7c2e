"""
Token Pattern Detection

Detects sequential counters, timestamps, shared prefixes/suffixes and
character-set properties in token sequences.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple


INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
TIMESTAMP_PATTERN = re.compile(r"^\d{10,13}$")
HEX_CHARSET = re.compile(r"^[0-9a-fA-F]+$")
BASE64_CHARSET = re.compile(r"^[A-Za-z0-9+/=]+$")

# Unix seconds for 2000-01-01 and 2100-01-01
TIMESTAMP_MIN = 946684800
TIMESTAMP_MAX = 4102444800

SEQUENTIAL_THRESHOLD = 0.5
TIMESTAMP_THRESHOLD = 0.3


class PatternType(str, Enum):
    """Types of patterns that can be detected."""

    SEQUENTIAL = "sequential"
    TIMESTAMP = "timestamp"
    COMMON_PREFIX = "common_prefix"
    COMMON_SUFFIX = "common_suffix"


@dataclass
class Pattern:
    """Detected pattern in token sequence."""

    pattern_type: PatternType
    description: str
    severity: str  # "high", "medium", "low"
    evidence: List[str]
    confidence: float  # 0.0 to 1.0

    def __post_init__(self):
        """Validate pattern."""
        if not 0 <= self.confidence <= 1:
            raise ValueError(
                f"Confidence must be between 0 and 1, got {self.confidence}"
            )
        if self.severity not in ("high", "medium", "low"):
            raise ValueError(
                f"Severity must be high, medium, or low, got {self.severity}"
            )


@dataclass
class SequentialResult:
    is_sequential: bool
    count: int


@dataclass
class CharacterAnalysis:
    """Character-set composition of the sample."""

    charset: str
    alphabetic: int
    numeric: int
    special: int
    hexadecimal: bool
    base64: bool


def _parse_int(token: str) -> Optional[int]:
    if not INTEGER_PATTERN.fullmatch(token):
        return None
    try:
        return int(token)
    except ValueError:
        # longer than the interpreter's int string conversion limit
        return None


def predictability_score(
    is_sequential: bool,
    has_timestamps: bool,
    duplicate_percentage: float,
    common_prefix: str,
) -> int:
    """
    Heuristic 0-100 score, higher is more predictable.

    +40 sequential, +30 timestamps, +20 when more than 10% of tokens are exact
    duplicates, +10 for a shared prefix longer than three characters.
    """
    score = 0
    if is_sequential:
        score += 40
    if has_timestamps:
        score += 30
    if duplicate_percentage > 10:
        score += 20
    if len(common_prefix) > 3:
        score += 10
    return score


class PatternDetector:
    """
    Detects structural weaknesses in token sequences.

    Each detector is a cheap single pass and is used on both the quick and the
    full analysis paths.
    """

    def detect_patterns(self, tokens: Sequence[str]) -> List[Pattern]:
        """
        Detect all patterns in token sequence.

        Args:
            tokens: List of token strings

        Returns:
            List of detected patterns
        """
        if not tokens:
            return []

        patterns = []

        sequential = self.detect_sequential(tokens)
        if sequential.is_sequential:
            pairs = len(tokens) - 1
            patterns.append(
                Pattern(
                    pattern_type=PatternType.SEQUENTIAL,
                    description=f"Tokens contain sequential numeric values ({sequential.count}/{pairs} sequential)",
                    severity="high",
                    evidence=[
                        f"{tokens[i]} -> {tokens[i + 1]}" for i in range(min(3, pairs))
                    ],
                    confidence=min(1.0, sequential.count / pairs),
                )
            )

        timestamp_count = self.count_timestamps(tokens)
        if timestamp_count > len(tokens) * TIMESTAMP_THRESHOLD:
            patterns.append(
                Pattern(
                    pattern_type=PatternType.TIMESTAMP,
                    description=f"Tokens appear to be Unix timestamps ({timestamp_count}/{len(tokens)} match)",
                    severity="high",
                    evidence=list(tokens[:3]),
                    confidence=timestamp_count / len(tokens),
                )
            )

        prefix, suffix = self.find_common_prefix_suffix(tokens)
        if len(prefix) > 3:
            patterns.append(
                Pattern(
                    pattern_type=PatternType.COMMON_PREFIX,
                    description=f"All tokens share the prefix '{prefix}'",
                    severity="low",
                    evidence=[prefix],
                    confidence=1.0,
                )
            )
        if len(suffix) > 3:
            patterns.append(
                Pattern(
                    pattern_type=PatternType.COMMON_SUFFIX,
                    description=f"All tokens share the suffix '{suffix}'",
                    severity="low",
                    evidence=[suffix],
                    confidence=1.0,
                )
            )

        return patterns

    def detect_sequential(self, tokens: Sequence[str]) -> SequentialResult:
        """
        Count adjacent integer tokens where the next equals the previous plus one.

        Flags the sample when such pairs exceed half of the n-1 adjacent pairs.
        """
        if len(tokens) < 2:
            return SequentialResult(False, 0)

        values = [_parse_int(token) for token in tokens]
        count = sum(
            1
            for prev, curr in zip(values, values[1:])
            if prev is not None and curr is not None and curr == prev + 1
        )
        return SequentialResult(count > (len(tokens) - 1) * SEQUENTIAL_THRESHOLD, count)

    def count_timestamps(self, tokens: Sequence[str]) -> int:
        """Number of tokens that look like Unix timestamps between 2000 and 2100."""
        return sum(
            1
            for token in tokens
            if TIMESTAMP_PATTERN.fullmatch(token)
            and TIMESTAMP_MIN <= int(token) <= TIMESTAMP_MAX
        )

    def detect_timestamps(self, tokens: Sequence[str]) -> bool:
        """True when more than 30% of tokens are plausible Unix timestamps."""
        if not tokens:
            return False
        return self.count_timestamps(tokens) > len(tokens) * TIMESTAMP_THRESHOLD

    def find_common_prefix_suffix(self, tokens: Sequence[str]) -> Tuple[str, str]:
        """Longest prefix and suffix shared by every token."""
        if not tokens:
            return "", ""

        prefix = tokens[0]
        for token in tokens:
            i = 0
            while i < len(prefix) and i < len(token) and prefix[i] == token[i]:
                i += 1
            prefix = prefix[:i]
            if not prefix:
                break

        suffix = tokens[0]
        for token in tokens:
            i = 0
            while (
                i < len(suffix)
                and i < len(token)
                and suffix[len(suffix) - 1 - i] == token[len(token) - 1 - i]
            ):
                i += 1
            suffix = suffix[len(suffix) - i :]
            if not suffix:
                break

        return prefix, suffix

    def analyze_characters(self, tokens: Sequence[str]) -> CharacterAnalysis:
        """Character-set composition, for display."""
        chars = set()
        alphabetic = numeric = special = 0
        for token in tokens:
            for char in token:
                chars.add(char)
                if char.isascii() and char.isalpha():
                    alphabetic += 1
                elif char.isascii() and char.isdigit():
                    numeric += 1
                else:
                    special += 1

        charset = "".join(sorted(chars))
        return CharacterAnalysis(
            charset=charset,
            alphabetic=alphabetic,
            numeric=numeric,
            special=special,
            hexadecimal=bool(HEX_CHARSET.fullmatch(charset)),
            base64=bool(BASE64_CHARSET.fullmatch(charset)),
        )
