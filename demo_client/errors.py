"""Demo client error hierarchy and exceptions."""

from __future__ import annotations


class DemoClientError(Exception):
    """Base exception for all demo client errors."""
    
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
    
    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(DemoClientError):
    """Raised when configuration is invalid or conflicting."""
    pass


class InitializationError(DemoClientError):
    """Raised when the exporter or resource cannot be constructed."""
    pass


class ExportError(DemoClientError):
    """Raised when span export fails."""
    pass


class RequestError(DemoClientError):
    """Raised when an outbound request fails and fail-fast is enabled."""
    pass
