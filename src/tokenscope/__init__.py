"""
tokenscope - Session Token Randomness Analysis

Estimates the cryptographic quality of session IDs, CSRF tokens and API keys
captured from repeated HTTP responses.
"""

__version__ = "0.1.0"

from .core.models import TokenCapture, CaptureStatus
from .sequencer import TokenAnalyzer, AnalysisResult, analyze

__all__ = [
    "__version__",
    "TokenCapture",
    "CaptureStatus",
    "TokenAnalyzer",
    "AnalysisResult",
    "analyze",
]
