"""
Capture Session Management

Accumulates token captures from a collection run and hands immutable snapshots
to the analysis engine.
"""

import threading
import uuid
from typing import Iterable, List, Mapping, Optional, Tuple

from ..core.exceptions import CollectionError
from ..core.logging import get_logger
from ..core.models import CaptureStatus, REQUEST_FAILED_SENTINEL, TokenCapture
from ..sequencer.analyzer import AnalysisResult, TokenAnalyzer
from .extraction import Found, HeaderValue, extract_token
from .request import RequestTemplate, parse_raw_request


logger = get_logger(__name__)


class CaptureSession:
    """
    Thread-safe store of captures for one collection run.

    The collector appends from its own thread while readers take snapshots at
    any time. Snapshots are tuples, so an analysis never observes a capture
    list that is still growing.
    """

    def __init__(
        self,
        parameter_name: str,
        raw_request: Optional[str] = None,
        analyzer: Optional[TokenAnalyzer] = None,
    ):
        """
        Initialize capture session.

        Args:
            parameter_name: Name of the token parameter being collected
            raw_request: Raw HTTP request replayed by the collector
            analyzer: Analyzer used by ``analyze``; built from config when omitted

        Raises:
            ValidationError: If ``raw_request`` cannot be parsed
        """
        self.id = str(uuid.uuid4())
        self.parameter_name = parameter_name
        self.template: Optional[RequestTemplate] = (
            parse_raw_request(raw_request) if raw_request is not None else None
        )
        self._analyzer = analyzer
        self._captures: List[TokenCapture] = []
        self._cancelled = False
        self._lock = threading.Lock()

    def add(self, capture: TokenCapture) -> None:
        """
        Append a capture.

        Raises:
            CollectionError: If the session has been cancelled
        """
        with self._lock:
            if self._cancelled:
                raise CollectionError(
                    "Cannot add captures to a cancelled session",
                    details={"session_id": self.id},
                )
            self._captures.append(capture)

    def extend(self, captures: Iterable[TokenCapture]) -> None:
        for capture in captures:
            self.add(capture)

    def record_response(
        self,
        body: str,
        headers: Optional[Mapping[str, HeaderValue]] = None,
        request_sent: str = "",
    ) -> TokenCapture:
        """
        Extract the session's parameter from a response and store the capture.

        Returns:
            The stored capture, with status NOT_FOUND when extraction failed
        """
        result = extract_token(body, headers, self.parameter_name)
        request_text = request_sent or (self.template.raw if self.template else "")
        if isinstance(result, Found):
            capture = TokenCapture.from_token(
                result.value,
                request_sent=request_text,
                response_received=body,
                extracted_from=result.source,
                response_headers=dict(headers) if headers else None,
            )
        else:
            capture = TokenCapture(
                token="",
                status=CaptureStatus.NOT_FOUND,
                request_sent=request_text,
                response_received=body,
                extracted_from=result.source,
                response_headers=dict(headers) if headers else None,
            )
        self.add(capture)
        return capture

    def record_failure(self, error: str, request_sent: str = "") -> TokenCapture:
        """Store a capture for a request that produced no response."""
        capture = TokenCapture(
            token=f"{REQUEST_FAILED_SENTINEL}: {error}",
            status=CaptureStatus.REQUEST_FAILED,
            request_sent=request_sent or (self.template.raw if self.template else ""),
            extracted_from="Error",
        )
        self.add(capture)
        logger.debug("Request failed in session %s: %s", self.id, error)
        return capture

    def snapshot(self) -> Tuple[TokenCapture, ...]:
        """Immutable copy of the captures collected so far."""
        with self._lock:
            return tuple(self._captures)

    def clear(self) -> None:
        with self._lock:
            self._captures.clear()
            self._cancelled = False

    def cancel(self) -> None:
        """Stop accepting captures; already collected captures are kept."""
        with self._lock:
            self._cancelled = True
        logger.info("Capture session %s cancelled", self.id)

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def __len__(self) -> int:
        with self._lock:
            return len(self._captures)

    def analyze(self, security_analysis: bool = True) -> AnalysisResult:
        """Analyze a snapshot of the current captures."""
        if self._analyzer is None:
            self._analyzer = TokenAnalyzer()
        return self._analyzer.analyze(self.snapshot(), security_analysis=security_analysis)
