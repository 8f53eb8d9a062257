"""Pipeline exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each error type carries the process exit code the CLI reports for it.
"""

from __future__ import annotations

from core.constants import (
    EXIT_DEPENDENCY_UNAVAILABLE,
    EXIT_GENERAL_ERROR,
    EXIT_INVALID_ARGUMENTS,
)


class OdmError(Exception):
    """Base exception for all pipeline failures."""

    exit_code = EXIT_GENERAL_ERROR


class OdmConfigError(OdmError):
    """Raised for invalid runtime configuration."""

    exit_code = EXIT_INVALID_ARGUMENTS


class OdmValidationError(OdmError):
    """Raised for out-of-domain arguments before any I/O happens."""

    exit_code = EXIT_INVALID_ARGUMENTS


class OdmInputError(OdmError):
    """Raised for unreadable sources, bad files, and malformed records."""


class OdmResourceError(OdmError):
    """Raised when the staging store or local disk cannot be used."""


class OdmNetworkError(OdmError):
    """Raised when a remote endpoint fails after the retry budget."""

    exit_code = EXIT_DEPENDENCY_UNAVAILABLE


class OdmRefinementUnavailableError(OdmNetworkError):
    """Raised when the refinement backend cannot produce a schema."""


class OdmDependencyError(OdmError):
    """Raised when an optional runtime dependency is missing."""

    exit_code = EXIT_DEPENDENCY_UNAVAILABLE


class OdmConfigDriftError(OdmError):
    """Raised when a resumed run does not match its checkpoint configuration."""

    exit_code = EXIT_INVALID_ARGUMENTS


class OdmStageDependencyError(OdmError):
    """Raised when a requested stage needs output that no stage provides."""

    exit_code = EXIT_INVALID_ARGUMENTS


class OdmCancelledError(OdmError):
    """Raised when a run stops at a cancellation boundary."""


class OdmStageError(OdmError):
    """Raised when a pipeline stage fails, wrapping the underlying cause."""

    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(f"Stage '{stage}' failed: {cause}")
        self.stage = stage
        self.cause = cause

    @property  # type: ignore[override]
    def exit_code(self) -> int:
        return int(getattr(self.cause, "exit_code", EXIT_GENERAL_ERROR))
