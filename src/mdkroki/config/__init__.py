"""Configuration for the Kroki preprocessor.

Usage:
    from mdkroki.config import load_config

    config = load_config()
    print(config.endpoint)
"""

from mdkroki.config.loader import (
    DEFAULT_ENDPOINT,
    PREPROCESSOR_NAME,
    KrokiConfig,
    load_config,
    normalize_endpoint,
    preprocessor_table,
)

__all__ = [
    "DEFAULT_ENDPOINT",
    "PREPROCESSOR_NAME",
    "KrokiConfig",
    "load_config",
    "normalize_endpoint",
    "preprocessor_table",
]
