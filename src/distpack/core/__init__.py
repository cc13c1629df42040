"""
distpack.core - ambient primitives shared by every distpack module.

- :mod:`distpack.core.logging` — structlog configuration and ``get_logger``
- :mod:`distpack.core.errors` — ``DistpackError`` hierarchy
"""

from distpack.core.errors import (
    ArtifactNotFoundError,
    ConfigError,
    DistpackError,
    ErrorCategory,
    FatalBuildError,
    ManifestError,
    ManifestNotFoundError,
    RuntimeInvocationError,
    is_retryable,
)
from distpack.core.logging import LogContext, configure_logging, get_logger

__all__ = [
    "ArtifactNotFoundError",
    "ConfigError",
    "DistpackError",
    "ErrorCategory",
    "FatalBuildError",
    "LogContext",
    "ManifestError",
    "ManifestNotFoundError",
    "RuntimeInvocationError",
    "configure_logging",
    "get_logger",
    "is_retryable",
]
