"""
tokenscope Core Data Models

Defines the capture records exchanged between a collector and the analysis engine.
"""

from datetime import datetime, UTC
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


NOT_FOUND_SENTINEL = "Not found"
REQUEST_FAILED_SENTINEL = "Request failed"
PARSE_ERROR_PREFIX = "Parse Error"


class CaptureStatus(str, Enum):
    """Outcome of a single collection attempt."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    REQUEST_FAILED = "request_failed"
    PARSE_ERROR = "parse_error"


def status_from_token(token: str) -> CaptureStatus:
    """Classify a legacy capture whose outcome is encoded in the token text."""
    if not token or token == NOT_FOUND_SENTINEL:
        return CaptureStatus.NOT_FOUND
    if token.startswith(REQUEST_FAILED_SENTINEL):
        return CaptureStatus.REQUEST_FAILED
    if token.startswith(PARSE_ERROR_PREFIX):
        return CaptureStatus.PARSE_ERROR
    return CaptureStatus.FOUND


class TokenCapture(BaseModel):
    """
    A token captured from one HTTP response.

    ``status`` is authoritative when given. When omitted it is derived from the
    sentinel strings older collectors write into ``token``.
    """

    token: str = Field(description="Captured token value or failure sentinel")
    request_sent: str = Field(default="", description="Raw request that was sent")
    response_received: str = Field(
        default="", description="Response body (possibly truncated)"
    )
    extracted_from: str = Field(default="", description="Where the token was found")
    response_headers: Optional[Dict[str, Union[str, List[str]]]] = Field(
        default=None, description="Response headers"
    )
    status: Optional[CaptureStatus] = Field(default=None, description="Capture outcome")
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Capture timestamp"
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def derive_status(cls, data):
        if isinstance(data, dict) and data.get("status") is None:
            data = dict(data)
            data["status"] = status_from_token(str(data.get("token", "")))
        return data

    @property
    def is_valid(self) -> bool:
        """True when the capture carries a real token."""
        return self.status == CaptureStatus.FOUND and bool(self.token)

    @classmethod
    def from_token(cls, token: str, **kwargs) -> "TokenCapture":
        """Build a capture for a token that is known to be genuine."""
        return cls(token=token, status=CaptureStatus.FOUND, **kwargs)

    def to_export_dict(self) -> Dict[str, object]:
        """Serialize with the camelCase keys used in JSON exports."""
        data: Dict[str, object] = {
            "token": self.token,
            "requestSent": self.request_sent,
            "responseReceived": self.response_received,
            "extractedFrom": self.extracted_from,
            "status": self.status.value if self.status else None,
        }
        if self.response_headers is not None:
            data["responseHeaders"] = self.response_headers
        return data
