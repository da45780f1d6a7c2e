"""
Raw Request Templates

Parses the raw HTTP request a collector replays for every sample.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class RequestTemplate:
    """A parsed raw HTTP request."""

    method: str
    path: str
    host: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    raw: str = ""

    @property
    def url(self) -> str:
        scheme = "http" if self.host.endswith(":80") else "https"
        return f"{scheme}://{self.host}{self.path}"


def parse_raw_request(raw: str) -> RequestTemplate:
    """
    Parse a raw HTTP request string.

    Header names are stored lower-cased. A missing Host header falls back to
    ``localhost``.

    Raises:
        ValidationError: If the request or its request line is empty
    """
    if not raw or not raw.strip():
        raise ValidationError("Invalid HTTP request: empty request")

    lines = raw.split("\n")
    request_line = lines[0].strip()
    if not request_line:
        raise ValidationError("Invalid HTTP request: missing request line")

    parts = request_line.split(" ")
    method = parts[0].upper() or "GET"
    path = parts[1] if len(parts) > 1 and parts[1] else "/"

    headers: Dict[str, str] = {}
    body_start = len(lines)
    for i, line in enumerate(lines[1:], start=1):
        line = line.strip()
        if not line:
            body_start = i + 1
            break
        if ":" not in line:
            continue
        name, value = line.split(":", 1)
        headers[name.strip().lower()] = value.strip()

    body = "\n".join(lines[body_start:]) if body_start < len(lines) else None

    return RequestTemplate(
        method=method,
        path=path,
        host=headers.get("host", "localhost"),
        headers=headers,
        body=body or None,
        raw=raw,
    )
