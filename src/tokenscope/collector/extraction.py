"""
Token Extraction

Locates a named parameter in an HTTP response: cookies, headers, JSON bodies,
URL-encoded bodies, HTML forms and inline scripts.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union
from urllib.parse import unquote

from ..core.models import NOT_FOUND_SENTINEL


HeaderValue = Union[str, List[str]]


@dataclass(frozen=True)
class Found:
    """A token value and a description of where it was found."""

    value: str
    source: str


@dataclass(frozen=True)
class NotFound:
    """The parameter does not occur in the response."""

    source: str = NOT_FOUND_SENTINEL


ExtractionResult = Union[Found, NotFound]


def _header(headers: Mapping[str, HeaderValue], name: str) -> Optional[HeaderValue]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def _json_string(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _from_headers(headers: Mapping[str, HeaderValue], name: str) -> Optional[Found]:
    cookies = _header(headers, "set-cookie")
    if cookies:
        pattern = re.compile(rf"{re.escape(name)}=([^;\s]+)", re.IGNORECASE)
        for cookie in cookies if isinstance(cookies, list) else [cookies]:
            match = pattern.search(cookie)
            if match:
                return Found(unquote(match.group(1)), "Set-Cookie header")

    for header_name, header_value in headers.items():
        if isinstance(header_value, str) and name.lower() in header_name.lower():
            return Found(header_value, f"{header_name} header")
    return None


def _from_json(body: str, name: str) -> Optional[Found]:
    try:
        data = json.loads(body)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None

    if data.get(name):
        return Found(_json_string(data[name]), "JSON response")

    for key, value in data.items():
        if isinstance(value, dict) and value.get(name):
            return Found(_json_string(value[name]), f"JSON response ({key}.{name})")
    return None


def _body_patterns(name: str) -> List[tuple]:
    n = re.escape(name)
    return [
        # a quoted value is an HTML attribute, not a form pair
        (rf"{n}=([^&\n\r\"'][^&\n\r]*)", "URL-encoded response", unquote),
        (
            rf"<input[^>]*name=[\"']{n}[\"'][^>]*value=[\"']([^\"']+)[\"']",
            "HTML input field",
            None,
        ),
        (
            rf"<meta[^>]*name=[\"']{n}[\"'][^>]*content=[\"']([^\"']+)[\"']",
            "HTML meta tag",
            None,
        ),
        (rf"data-{n}=[\"']([^\"']+)[\"']", "HTML data attribute", None),
        (
            rf"(?:var|let|const)\s+{n}\s*=\s*[\"']([^\"']+)[\"']",
            "JavaScript variable",
            None,
        ),
    ]


def extract_token(
    body: str,
    headers: Optional[Mapping[str, HeaderValue]],
    parameter_name: str,
) -> ExtractionResult:
    """
    Find ``parameter_name`` in a response.

    Sources are tried in order: Set-Cookie, any header whose name contains the
    parameter, a top-level JSON key, a JSON key one level down, ``name=value``
    URL-encoded pairs, HTML ``<input>`` values, ``<meta>`` content, ``data-``
    attributes and JavaScript ``var``/``let``/``const`` assignments. Name
    matching is case-insensitive except for JSON keys.

    Args:
        body: Response body text
        headers: Response headers; list values hold repeated headers
        parameter_name: Name of the token parameter

    Returns:
        Found with the value and its source, or NotFound
    """
    if not parameter_name:
        return NotFound()

    if headers:
        found = _from_headers(headers, parameter_name)
        if found:
            return found

    found = _from_json(body, parameter_name)
    if found:
        return found

    for pattern, source, transform in _body_patterns(parameter_name):
        match = re.search(pattern, body, re.IGNORECASE)
        if match and match.group(1):
            value = match.group(1)
            return Found(transform(value) if transform else value, source)

    return NotFound()
