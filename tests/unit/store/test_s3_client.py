"""Unit tests for S3 failure classification."""

from __future__ import annotations

from botocore.exceptions import ClientError

from store.s3_client import is_transient_s3_error


def _client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "GetObject",
    )


def test_server_errors_are_transient() -> None:
    """5xx responses may succeed on retry."""
    assert is_transient_s3_error(_client_error("InternalError", 500)) is True


def test_throttling_is_transient() -> None:
    """Throttling codes are retried regardless of status."""
    assert is_transient_s3_error(_client_error("SlowDown", 400)) is True


def test_access_denied_is_permanent() -> None:
    """Authorization failures are not retried."""
    assert is_transient_s3_error(_client_error("AccessDenied", 403)) is False


def test_other_exceptions_are_permanent() -> None:
    """Non-botocore failures are not retried."""
    assert is_transient_s3_error(ValueError("bad")) is False
