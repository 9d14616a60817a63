"""Configuration loading for the Kroki preprocessor.

Settings come from up to three layers, later layers winning:

1. A YAML file (explicit path, or the MDKROKI_CONFIG env var)
2. The [preprocessor.kroki-preprocessor] table of book.toml, as passed by mdBook
3. Command-line options

Example book.toml:

    [preprocessor.kroki-preprocessor]
    endpoint = "http://localhost:8000"

Example YAML file:

    endpoint: http://localhost:8000
    timeout: 60
    renderers: [html]
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mdkroki.errors import ConfigError

# Name of the preprocessor table in book.toml
PREPROCESSOR_NAME = "kroki-preprocessor"

# Public Kroki instance used when no endpoint is configured
DEFAULT_ENDPOINT = "https://kroki.io/"

# Env var naming a YAML config file
CONFIG_ENV_VAR = "MDKROKI_CONFIG"


def normalize_endpoint(url: str) -> str:
    """Append a trailing slash to an endpoint URL if it lacks one."""
    return url if url.endswith("/") else url + "/"


class KrokiConfig(BaseModel):
    """Preprocessor settings."""

    model_config = ConfigDict(extra="ignore")

    endpoint: str = Field(
        default=DEFAULT_ENDPOINT,
        description="Kroki base URL; requests are POSTed here",
    )
    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    renderers: list[str] = Field(
        default_factory=lambda: ["html"],
        description="mdBook renderers this preprocessor supports",
    )
    output_format: Literal["svg"] = Field(
        default="svg",
        description="Output format requested from Kroki (only svg is spliced)",
    )

    @field_validator("endpoint", mode="before")
    @classmethod
    def endpoint_is_url_string(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("endpoint must be a string")
        return normalize_endpoint(value)

    def supports_renderer(self, renderer: str) -> bool:
        """Check whether output for the given mdBook renderer can be produced."""
        return renderer in self.renderers


def _resolve_config_path(config_path: Path | str | None) -> Path | None:
    """Resolve config path from explicit path or env var.

    Returns:
        Resolved Path or None if no config file is configured.
    """
    if config_path is not None:
        return Path(config_path)

    env_config = os.getenv(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config)

    return None


def _load_yaml_file(config_path: Path) -> dict[str, Any]:
    """Load and parse a YAML config file.

    Raises:
        ConfigError: If the file is missing, unreadable or not a mapping.
    """
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with config_path.open() as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading {config_path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return raw_data


def load_config(
    config_path: Path | str | None = None,
    *overrides: Mapping[str, Any] | None,
) -> KrokiConfig:
    """Load the preprocessor configuration.

    Args:
        config_path: YAML config file (falls back to MDKROKI_CONFIG).
        *overrides: Mappings applied in order over the file values. Keys
            whose value is None are skipped.

    Returns:
        Validated KrokiConfig

    Raises:
        ConfigError: If any layer is invalid
    """
    resolved_path = _resolve_config_path(config_path)

    data: dict[str, Any] = {}
    source = "defaults"
    if resolved_path is not None:
        logger.debug(f"Loading config from {resolved_path}")
        data.update(_load_yaml_file(resolved_path))
        source = str(resolved_path)

    for layer in overrides:
        if layer:
            data.update({k: v for k, v in layer.items() if v is not None})

    try:
        config = KrokiConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration ({source}): {e}") from e

    logger.debug(f"Using Kroki endpoint {config.endpoint}")
    return config


def preprocessor_table(context: Mapping[str, Any]) -> dict[str, Any]:
    """Extract this preprocessor's table from an mdBook context payload."""
    table = context.get("config", {}).get("preprocessor", {}).get(PREPROCESSOR_NAME)
    if table is None:
        return {}
    if not isinstance(table, dict):
        raise ConfigError(f"[preprocessor.{PREPROCESSOR_NAME}] must be a table")
    return table
