"""Click context object for sharing state across commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from sinkview.config import SinkViewConfig, get_default_config
from sinkview.core.logging import LogLevel, StructuredLogger, setup_logging
from sinkview.core.output import OutputFormat, OutputFormatter

if TYPE_CHECKING:
    from sinkview.logs.registry import ProviderRegistry


class SinkViewContext:
    """Shared context object for sinkview commands.

    This object is passed through Click's context mechanism and provides
    access to configuration, the provider registry, and output helpers.
    """

    def __init__(
        self,
        config: SinkViewConfig | None = None,
        output_format: OutputFormat | None = None,
        verbose: int = 0,
        quiet: bool = False,
        color: bool = True,
    ):
        self._config = config or get_default_config()

        # Output settings (CLI overrides config)
        self._output_format = output_format or self._config.global_settings.output_format
        self._verbose = verbose
        self._quiet = quiet
        self._color = color and self._config.global_settings.color != "never"

        if verbose >= 2:
            log_level = LogLevel.DEBUG
        elif verbose == 1:
            log_level = LogLevel.INFO
        elif quiet:
            log_level = LogLevel.ERROR
        else:
            log_level = self._config.global_settings.verbosity

        setup_logging(log_level, rich_output=self._color)
        self._logger = StructuredLogger("context")

        self._output = OutputFormatter(
            format=self._output_format,
            color=self._color,
            quiet=quiet,
        )

        self._registry: ProviderRegistry | None = None

    @property
    def config(self) -> SinkViewConfig:
        """Get the loaded configuration."""
        return self._config

    @property
    def output(self) -> OutputFormatter:
        """Get the output formatter."""
        return self._output

    @property
    def output_format(self) -> OutputFormat:
        return self._output_format

    @property
    def verbose(self) -> int:
        return self._verbose

    @property
    def quiet(self) -> bool:
        return self._quiet

    @property
    def color(self) -> bool:
        return self._color

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def registry(self) -> "ProviderRegistry":
        """Get or build the provider registry from the configured registrations.

        Raises:
            ConfigurationError: If any registration cannot be turned into a provider
        """
        if self._registry is None:
            from sinkview.logs.registry import ProviderRegistry

            self._registry = ProviderRegistry.from_registrations(self._config.providers)
            self._logger.debug("Provider registry ready", providers=len(self._registry))
        return self._registry

    def close(self) -> None:
        """Release provider resources."""
        if self._registry is not None:
            self._registry.close()
            self._registry = None


# Click decorator for passing context
pass_context = click.make_pass_decorator(SinkViewContext, ensure=True)
