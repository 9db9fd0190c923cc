"""Configuration management for sinkview using Pydantic."""

from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from sinkview.core.exceptions import ConfigurationError
from sinkview.core.logging import LogLevel
from sinkview.core.output import OutputFormat
from sinkview.logs.query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from sinkview.logs.registry import ProviderRegistration


class GlobalConfig(BaseModel):
    """Global settings."""

    output_format: OutputFormat = OutputFormat.TABLE
    color: str = "auto"  # auto, always, never
    verbosity: LogLevel = LogLevel.WARNING
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        if v not in ("auto", "always", "never"):
            raise ValueError("color must be 'auto', 'always', or 'never'")
        return v

    @field_validator("default_page_size", "max_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("page sizes must be positive")
        return v

    @model_validator(mode="after")
    def validate_page_bounds(self) -> "GlobalConfig":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size must not exceed max_page_size")
        return self


class SinkViewConfig(BaseModel):
    """Main configuration model."""

    model_config = {"populate_by_name": True}

    version: str = "1"
    global_settings: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    providers: list[ProviderRegistration] = Field(default_factory=list)


class ConfigLoader:
    """Loads and merges configuration from multiple sources."""

    CONFIG_FILENAMES = ["sinkview.yaml", "sinkview.yml", ".sinkview.yaml", ".sinkview.yml"]

    def __init__(self):
        self._config: SinkViewConfig | None = None

    def load(self, config_file: str | Path | None = None) -> SinkViewConfig:
        """Load configuration from files.

        Priority (highest to lowest):
        1. Explicitly specified config file
        2. Project config (./sinkview.yaml)
        3. User config (~/.sinkview/config.yaml)

        Mappings are merged key by key. Provider lists are concatenated so
        user-level providers stay available inside a project.

        Args:
            config_file: Optional explicit config file path

        Returns:
            Merged configuration
        """
        configs: list[dict[str, Any]] = []

        user_config_path = Path.home() / ".sinkview" / "config.yaml"
        if user_config_path.exists():
            configs.append(self._load_yaml_file(user_config_path))

        project_config = self._find_project_config()
        if project_config:
            configs.append(self._load_yaml_file(project_config))

        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigurationError(f"Config file not found: {config_file}")
            configs.append(self._load_yaml_file(config_path))

        merged = self._merge_configs(configs)

        try:
            self._config = SinkViewConfig(**merged)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {_describe(e)}")
        return self._config

    def _find_project_config(self) -> Path | None:
        """Find project config file in current or parent directories."""
        current = Path.cwd()

        while current != current.parent:
            for filename in self.CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    return config_path
            current = current.parent

        return None

    def _load_yaml_file(self, path: Path) -> dict[str, Any]:
        """Load a YAML config file."""
        try:
            with open(path) as f:
                content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read {path}: {e}")

        if not isinstance(content, dict):
            raise ConfigurationError(f"Top level of {path} must be a mapping")
        return content

    def _merge_configs(self, configs: list[dict[str, Any]]) -> dict[str, Any]:
        """Deep merge multiple configuration dictionaries."""
        result: dict[str, Any] = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            elif key == "providers" and isinstance(result.get(key), list) and isinstance(value, list):
                result[key] = result[key] + value
            else:
                result[key] = value
        return result


def _describe(error: pydantic.ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


# Global config loader instance
_config_loader = ConfigLoader()


def load_config(config_file: str | Path | None = None) -> SinkViewConfig:
    """Load sinkview configuration.

    Args:
        config_file: Optional explicit config file path

    Returns:
        Loaded configuration
    """
    return _config_loader.load(config_file)


def get_default_config() -> SinkViewConfig:
    """Get default configuration without loading from files."""
    return SinkViewConfig()
