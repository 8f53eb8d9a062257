"""boto3 client creation and transient-failure classification.

This module is shared by S3 source discovery and the S3 catalog sink.
Retries are owned by ``core.retry`` so botocore's own retry loop is off.
"""

from __future__ import annotations

from typing import Any

from core.config import OdmConfig
from core.errors import OdmDependencyError

_THROTTLING_CODES = frozenset(
    {"Throttling", "ThrottlingException", "SlowDown", "RequestTimeout", "RequestLimitExceeded"}
)


def create_s3_client(config: OdmConfig) -> Any:
    """Create a boto3 S3 client with the configured timeouts.

    Args:
        config: Runtime config with optional session settings.

    Returns:
        Boto3 S3 client.

    Raises:
        OdmDependencyError: If boto3 is missing.
    """
    try:
        import boto3
        from botocore.config import Config
    except ImportError as error:
        raise OdmDependencyError(
            "S3 access requires boto3, but it is not installed. "
            "Install boto3 to use s3:// sources or destinations."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    client_config = Config(
        connect_timeout=config.network_timeout_seconds,
        read_timeout=config.network_timeout_seconds,
        retries={"max_attempts": 0},
    )
    return session.client("s3", config=client_config)


def is_transient_s3_error(error: Exception) -> bool:
    """Return whether an S3 failure may succeed on retry.

    Connection failures, throttling, and 5xx responses are transient.
    Authorization and missing-object errors are not.
    """
    try:
        from botocore.exceptions import ClientError, HTTPClientError
    except ImportError:
        return False
    if isinstance(error, HTTPClientError):
        return True
    if not isinstance(error, ClientError):
        return False
    response = error.response
    code = str(response.get("Error", {}).get("Code", ""))
    status = int(response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0))
    return status >= 500 or status == 429 or code in _THROTTLING_CODES
