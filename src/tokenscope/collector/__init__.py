"""
Collector interface.

Token extraction from HTTP responses and the capture session that feeds the
analysis engine.
"""

from .extraction import ExtractionResult, Found, NotFound, extract_token
from .request import RequestTemplate, parse_raw_request
from .session import CaptureSession

__all__ = [
    "ExtractionResult",
    "Found",
    "NotFound",
    "extract_token",
    "RequestTemplate",
    "parse_raw_request",
    "CaptureSession",
]
