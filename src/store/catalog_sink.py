"""Catalog sinks for exported pipeline artifacts.

A sink publishes named text artifacts (schemas, mapping reports,
transform scripts) to a local directory or an S3 prefix.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import time
from typing import Any, Callable, Protocol, Sequence

from core.config import OdmConfig
from core.errors import OdmNetworkError, OdmResourceError, OdmValidationError
from core.logging_config import get_logger
from core.retry import call_with_retries
from core.s3_uri import S3Location, is_s3_uri, parse_s3_uri
from store.s3_client import create_s3_client, is_transient_s3_error

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ExportArtifact:
    """Named text artifact produced by the export stage."""

    name: str
    content: str


class CatalogSink(Protocol):
    """Destination for exported artifacts."""

    def publish(self, artifacts: Sequence[ExportArtifact]) -> list[str]: ...


class LocalDirectorySink:
    """Write artifacts as files in a local directory."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def publish(self, artifacts: Sequence[ExportArtifact]) -> list[str]:
        """Write each artifact and return the written paths.

        Raises:
            OdmResourceError: If a file cannot be written.
        """
        locations: list[str] = []
        for artifact in artifacts:
            target = self._directory / artifact.name
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(artifact.content, encoding="utf-8")
            except OSError as error:
                raise OdmResourceError(
                    f"Failed to write export artifact {target}: {error}. "
                    "Check write permissions for the output directory."
                ) from error
            locations.append(str(target))
        _LOGGER.info("artifacts_published", destination=str(self._directory), count=len(locations))
        return locations


class S3CatalogSink:
    """Upload artifacts as objects under an S3 prefix."""

    def __init__(
        self,
        location: S3Location,
        config: OdmConfig,
        client: Any | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._location = location
        self._config = config
        self._client = client
        self._sleep = sleep

    def publish(self, artifacts: Sequence[ExportArtifact]) -> list[str]:
        """Upload each artifact and return the object URIs.

        Raises:
            OdmNetworkError: If an upload still fails after retries.
        """
        if self._client is None:
            self._client = create_s3_client(self._config)
        locations: list[str] = []
        for artifact in artifacts:
            key = self._location.child_key(artifact.name)
            body = artifact.content.encode("utf-8")
            try:
                call_with_retries(
                    lambda: self._client.put_object(
                        Bucket=self._location.bucket, Key=key, Body=body
                    ),
                    is_transient=is_transient_s3_error,
                    retries=self._config.network_retries,
                    description="s3_put_object",
                    sleep=self._sleep,
                )
            except Exception as error:
                raise OdmNetworkError(
                    f"Failed to publish {artifact.name} to "
                    f"{self._location.uri_for(key)}: {error}. "
                    "Check AWS credentials and retry export."
                ) from error
            locations.append(self._location.uri_for(key))
        _LOGGER.info(
            "artifacts_published",
            destination=self._location.uri,
            count=len(locations),
        )
        return locations


def build_sink(destination: str, config: OdmConfig) -> CatalogSink:
    """Return the sink for an output destination.

    Args:
        destination: Local directory or ``s3://bucket/prefix``.
        config: Runtime config for S3 session settings.

    Raises:
        OdmValidationError: If an S3 destination is malformed.
    """
    if is_s3_uri(destination):
        return S3CatalogSink(parse_s3_uri(destination, OdmValidationError), config)
    return LocalDirectorySink(Path(destination).expanduser())
