"""Runtime configuration model for the pipeline.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_DATA_ROOT,
    DEFAULT_LLM_MODEL,
    DEFAULT_MAX_WORKERS,
    DEFAULT_NETWORK_RETRIES,
    DEFAULT_NETWORK_TIMEOUT_SECONDS,
)
from core.errors import OdmConfigError


@dataclass(frozen=True)
class OdmConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for staging data, checkpoints, and exports.
        max_workers: Upper bound on concurrent parsing and inference workers.
        network_timeout_seconds: Timeout applied to every remote call.
        network_retries: Retries allowed for transient remote failures.
        llm_url: Base URL of the refinement model server, or ``None`` when disabled.
        llm_model: Model name requested from the refinement server.
        s3_region: Optional default AWS region for S3 operations.
        s3_profile: Optional AWS profile for boto3 session initialization.
    """

    data_root: Path
    max_workers: int = DEFAULT_MAX_WORKERS
    network_timeout_seconds: float = DEFAULT_NETWORK_TIMEOUT_SECONDS
    network_retries: int = DEFAULT_NETWORK_RETRIES
    llm_url: str | None = None
    llm_model: str = DEFAULT_LLM_MODEL
    s3_region: str | None = None
    s3_profile: str | None = None

    @classmethod
    def from_env(cls) -> "OdmConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            OdmConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("ODM_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        max_workers = _parse_int(
            "ODM_MAX_WORKERS", os.getenv("ODM_MAX_WORKERS", str(DEFAULT_MAX_WORKERS)), minimum=1
        )
        network_retries = _parse_int(
            "ODM_NETWORK_RETRIES",
            os.getenv("ODM_NETWORK_RETRIES", str(DEFAULT_NETWORK_RETRIES)),
            minimum=0,
        )
        network_timeout = _parse_timeout(
            os.getenv("ODM_NETWORK_TIMEOUT", str(DEFAULT_NETWORK_TIMEOUT_SECONDS))
        )
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            max_workers=max_workers,
            network_timeout_seconds=network_timeout,
            network_retries=network_retries,
            llm_url=os.getenv("ODM_LLM_URL") or None,
            llm_model=os.getenv("ODM_LLM_MODEL", DEFAULT_LLM_MODEL),
            s3_region=os.getenv("ODM_S3_REGION"),
            s3_profile=os.getenv("ODM_S3_PROFILE"),
        )


def _parse_int(variable_name: str, raw_value: str, minimum: int) -> int:
    """Parse an integer environment value with a lower bound.

    Args:
        variable_name: Environment variable name for error context.
        raw_value: Raw string from environment.
        minimum: Smallest accepted value.

    Returns:
        Parsed integer.

    Raises:
        OdmConfigError: If value is not an integer or is below ``minimum``.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise OdmConfigError(
            f"Invalid {variable_name} value: expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a numeric value."
        ) from error
    if value < minimum:
        raise OdmConfigError(
            f"Invalid {variable_name} value: expected at least {minimum}, got {value}. "
            f"Set {variable_name} to a larger value."
        )
    return value


def _parse_timeout(raw_value: str) -> float:
    """Parse the network timeout in seconds."""
    try:
        value = float(raw_value)
    except ValueError as error:
        raise OdmConfigError(
            f"Invalid ODM_NETWORK_TIMEOUT value: expected seconds, got '{raw_value}'. "
            "Set ODM_NETWORK_TIMEOUT to a positive number."
        ) from error
    if value <= 0:
        raise OdmConfigError(
            f"Invalid ODM_NETWORK_TIMEOUT value: expected a positive number, got {value}. "
            "Set ODM_NETWORK_TIMEOUT to a positive number."
        )
    return value
