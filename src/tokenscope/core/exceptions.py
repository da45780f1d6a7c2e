"""
tokenscope Exception Hierarchy

Defines the exceptions raised for library misuse. Analysis itself never raises
for well-formed input: degraded results are reported in-band instead.
"""

from typing import Any, Dict, Optional


class TokenscopeException(Exception):
    """Base exception for all tokenscope errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(TokenscopeException):
    """Configuration-related errors."""

    pass


class ValidationError(TokenscopeException):
    """Invalid input handed to a public API."""

    pass


class CollectionError(TokenscopeException):
    """Capture session errors (cancelled or closed sessions)."""

    pass


class ExportError(TokenscopeException):
    """Report or export generation errors."""

    pass
