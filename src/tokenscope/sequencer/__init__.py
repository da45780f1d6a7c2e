"""
Token randomness analysis.

Decodes captured tokens, estimates their entropy, runs the SP 800-22 battery
and structural detectors, and rates the result.
"""

from .analyzer import AnalysisResult, TokenAnalyzer, analyze
from .classifier import SecurityRating, SecurityVerdict, SeverityClassifier
from .decoding import ByteDecoder, DecodedToken, TokenEncoding, decode_token
from .patterns import Pattern, PatternDetector, PatternType
from .reporting import ReportGenerator
from .tests import RandomnessTest, RandomnessTestType, StatisticalTestSuite, TestResult

__all__ = [
    "AnalysisResult",
    "TokenAnalyzer",
    "analyze",
    "SecurityRating",
    "SecurityVerdict",
    "SeverityClassifier",
    "ByteDecoder",
    "DecodedToken",
    "TokenEncoding",
    "decode_token",
    "Pattern",
    "PatternDetector",
    "PatternType",
    "ReportGenerator",
    "RandomnessTest",
    "RandomnessTestType",
    "StatisticalTestSuite",
    "TestResult",
]
