"""S3 locations for sources and export destinations."""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import OdmError, OdmInputError

S3_SCHEME = "s3://"


@dataclass(frozen=True)
class S3Location:
    """Bucket plus object key or key prefix."""

    bucket: str
    prefix: str

    @property
    def uri(self) -> str:
        return self.uri_for(self.prefix)

    def uri_for(self, key: str) -> str:
        """Return the ``s3://`` URI of an object key in this bucket."""
        return f"{S3_SCHEME}{self.bucket}/{key}"

    def child_key(self, name: str) -> str:
        """Object key for ``name`` placed under this prefix."""
        return f"{self.prefix.rstrip('/')}/{name}"


def is_s3_uri(uri: str) -> bool:
    return uri.startswith(S3_SCHEME)


def parse_s3_uri(uri: str, error_type: type[OdmError] = OdmInputError) -> S3Location:
    """Split an ``s3://bucket/key`` URI.

    Sources report malformed URIs as input errors; callers validating an
    export destination pass ``OdmValidationError`` instead.

    Raises:
        OdmError: ``error_type`` when the scheme, bucket, or key is missing.
    """
    bucket, _, prefix = uri.removeprefix(S3_SCHEME).partition("/")
    if not is_s3_uri(uri) or not bucket or not prefix:
        raise error_type(
            f"Invalid S3 location '{uri}': expected s3://<bucket>/<key or prefix> "
            "with both parts present."
        )
    return S3Location(bucket=bucket, prefix=prefix)
