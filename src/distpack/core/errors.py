"""
Structured error types for distpack.

Every error raised by distpack extends :class:`DistpackError`, which carries
a category, a retryable flag, free-form context and an optional chained
cause. The build pipeline converts these into typed stage results at its
seams; only fatal conditions surface to the CLI as a non-zero exit.

Architecture:
    ::

        DistpackError  (category, retryable, context, cause)
          ├── ConfigError               CONFIG
          ├── ManifestError             MANIFEST
          │     └── ManifestNotFoundError
          ├── RuntimeInvocationError    RUNTIME   (retryable)
          ├── FatalBuildError           BUILD
          └── ArtifactNotFoundError     ARTIFACT

Examples:
    >>> error = RuntimeInvocationError("docker run timed out")
    >>> error.retryable
    True
    >>> error.with_context(runtime="docker").context["runtime"]
    'docker'

Tags:
    exception, error-hierarchy, retry-logic, error-context
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"
    MANIFEST = "MANIFEST"
    RUNTIME = "RUNTIME"
    BUILD = "BUILD"
    ARTIFACT = "ARTIFACT"
    INTERNAL = "INTERNAL"


class DistpackError(Exception):
    """Base exception for all distpack errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    callers only pass a message in the common case.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DistpackError:
        """Add context to this error (fluent API).

        Usage:
            raise ManifestError("bad field").with_context(path="PKGBUILD")
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigError(DistpackError):
    """Invalid or missing packaging configuration."""

    default_category = ErrorCategory.CONFIG


class ManifestError(DistpackError):
    """A packaging manifest could not be read or understood."""

    default_category = ErrorCategory.MANIFEST


class ManifestNotFoundError(ManifestError):
    """The manifest file does not exist."""


class RuntimeInvocationError(DistpackError):
    """A container runtime could not run the build script.

    Retryable: the next strategy in the fallback chain may use another
    runtime or a relaxed flag set.
    """

    default_category = ErrorCategory.RUNTIME
    default_retryable = True


class FatalBuildError(DistpackError):
    """A build attempt failed in a way no other strategy can recover from."""

    default_category = ErrorCategory.BUILD


class ArtifactNotFoundError(DistpackError):
    """No package file was found after the build."""

    default_category = ErrorCategory.ARTIFACT


def is_retryable(error: Exception) -> bool:
    """Return True if ``error`` is a retryable :class:`DistpackError`."""
    return isinstance(error, DistpackError) and error.retryable


__all__ = [
    "ErrorCategory",
    "DistpackError",
    "ConfigError",
    "ManifestError",
    "ManifestNotFoundError",
    "RuntimeInvocationError",
    "FatalBuildError",
    "ArtifactNotFoundError",
    "is_retryable",
]
