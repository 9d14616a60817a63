"""Structured logging for the preprocessor.

All output goes to stderr through loguru; stdout is reserved for the book
JSON handed back to mdBook.
"""

from __future__ import annotations

import os
import sys
import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from loguru import logger

# Env var overriding the default log level
LOG_LEVEL_ENV_VAR = "MDKROKI_LOG_LEVEL"

LOG_FORMAT = "<level>{level: <8}</level> | <cyan>{name}</cyan> - {message}"


def _stderr_sink(message: str) -> None:
    sys.stderr.write(message)


def configure_logging(level: str | None = None) -> None:
    """Route loguru output to a single stderr sink.

    Args:
        level: Log level name; defaults to MDKROKI_LOG_LEVEL or INFO.
    """
    level = level or os.getenv(LOG_LEVEL_ENV_VAR) or "INFO"
    logger.remove()
    logger.add(_stderr_sink, level=level.upper(), format=LOG_FORMAT)


class LogSpan:
    """A structured logging span with timing and attributes."""

    def __init__(self, name: str, **attrs: Any) -> None:
        """Initialize a log span.

        Args:
            name: Span name (e.g., "kroki.render")
            **attrs: Initial attributes to log
        """
        self.name = name
        self.attrs: dict[str, Any] = dict(attrs)
        self.start_time = time.time()
        self.error: str | None = None

    def add(self, key: str | None = None, value: Any = None, **attrs: Any) -> LogSpan:
        """Add attributes to the span.

        Returns:
            Self for method chaining
        """
        if key is not None:
            self.attrs[key] = value
        self.attrs.update(attrs)
        return self

    @property
    def elapsed_ms(self) -> float:
        return round((time.time() - self.start_time) * 1000, 2)

    def _emit(self) -> None:
        entry = " ".join(f"{k}={v}" for k, v in self.attrs.items())
        bound = logger.bind(span=self.name, elapsed_ms=self.elapsed_ms, **self.attrs)
        if self.error:
            bound.warning(f"{self.name} failed after {self.elapsed_ms}ms {entry} error={self.error}")
        else:
            bound.debug(f"{self.name} {self.elapsed_ms}ms {entry}")


@contextmanager
def log(name: str, **attrs: Any) -> Generator[LogSpan, None, None]:
    """Context manager for structured logging.

    Example:
        >>> with log("kroki.render", diagram_type="mermaid") as span:
        ...     svg = render(source)
        ...     span.add(size=len(svg))
    """
    span = LogSpan(name, **attrs)
    try:
        yield span
    except Exception as e:
        span.error = f"{type(e).__name__}: {e}"
        raise
    finally:
        span._emit()
