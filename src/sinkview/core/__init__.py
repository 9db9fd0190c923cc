"""Core utilities and shared components for sinkview."""

# Note: Import context lazily to avoid circular imports
# Use: from sinkview.core.context import SinkViewContext, pass_context
from sinkview.core.exceptions import (
    ConfigurationError,
    ProviderNotFound,
    ProviderUnavailable,
    QueryExecutionError,
    SinkViewError,
    ValidationError,
)
from sinkview.core.output import OutputFormatter

__all__ = [
    "SinkViewError",
    "ConfigurationError",
    "ValidationError",
    "ProviderNotFound",
    "ProviderUnavailable",
    "QueryExecutionError",
    "OutputFormatter",
]
