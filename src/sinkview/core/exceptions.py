"""Custom exceptions for sinkview."""

from typing import Any


class SinkViewError(Exception):
    """Base exception for all sinkview errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigurationError(SinkViewError):
    """Invalid or incomplete provider setup. Fatal at startup."""

    pass


class DuplicateProviderName(ConfigurationError):
    """A provider with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"Provider '{name}' is already registered", {"provider": name})
        self.name = name


class ValidationError(SinkViewError):
    """Input validation errors."""

    pass


class ProviderNotFound(SinkViewError):
    """Dispatch to a provider name that was never registered."""

    def __init__(self, name: str, available: list[str] | None = None):
        super().__init__(
            f"Provider '{name}' not found",
            {"available": available} if available else None,
        )
        self.name = name


class ProviderUnavailable(SinkViewError):
    """Backend could not be reached. Transient, callers may retry."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.provider = provider


class QueryExecutionError(SinkViewError):
    """Backend rejected or failed to complete a generated query."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        query: Any = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.provider = provider
        self.query = query


class MalformedContent(SinkViewError):
    """Text that looks structured failed to parse. Never user-facing."""

    def __init__(self, message: str, content_type: str):
        super().__init__(message)
        self.content_type = content_type
