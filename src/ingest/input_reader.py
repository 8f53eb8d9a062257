"""Source file readers for ingestion.

This module loads raw bytes from local paths or S3 objects and parses
them as a single JSON document or as JSON lines.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path, PurePosixPath
import time
from typing import Any, Callable

from core.config import OdmConfig
from core.constants import JSON_LINES_EXTENSIONS
from core.errors import OdmInputError
from core.retry import call_with_retries
from core.s3_uri import is_s3_uri, parse_s3_uri
from core.types import FileIngestError
from ingest.deduplication import fingerprint_content
from store.s3_client import is_transient_s3_error


@dataclass(frozen=True)
class ParsedSourceFile:
    """Records parsed from one source file.

    Attributes:
        path: File path or URI.
        fingerprint: Content hash of the raw bytes.
        size_bytes: Raw byte count.
        values: Decoded records in file order.
        errors: Record-level errors for malformed lines.
    """

    path: str
    fingerprint: str
    size_bytes: int
    values: tuple[Any, ...]
    errors: tuple[FileIngestError, ...] = ()


def read_source_bytes(
    path: str,
    config: OdmConfig,
    s3_client: Any | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bytes:
    """Read the raw bytes of a local file or S3 object.

    Args:
        path: Local path or ``s3://`` URI.
        config: Runtime config for retries.
        s3_client: Client used for S3 reads.
        sleep: Sleep function used between retries.

    Returns:
        File content.

    Raises:
        OdmInputError: If the file or object cannot be read.
    """
    if not is_s3_uri(path):
        try:
            return Path(path).read_bytes()
        except OSError as error:
            raise OdmInputError(
                f"Failed to read source file {path}: {error}. Check the file permissions."
            ) from error
    if s3_client is None:
        raise OdmInputError(f"Cannot read {path} without an S3 client.")
    location = parse_s3_uri(path)
    try:
        return call_with_retries(
            lambda: s3_client.get_object(Bucket=location.bucket, Key=location.prefix)[
                "Body"
            ].read(),
            is_transient=is_transient_s3_error,
            retries=config.network_retries,
            description="s3_get_object",
            sleep=sleep,
        )
    except Exception as error:
        raise OdmInputError(
            f"Failed to download source object {path}: {error}. "
            "Check AWS credentials and that the object exists."
        ) from error


def parse_source_file(path: str, payload: bytes) -> ParsedSourceFile:
    """Parse raw source bytes into records.

    ``.jsonl``/``.ndjson`` files hold one value per line; a malformed line
    becomes a record-level error. ``.json`` files hold one document, and a
    top-level array yields one record per element. Other extensions are
    sniffed: a document that parses as a whole is a document, otherwise
    the content is read as JSON lines.

    Args:
        path: File path or URI, for suffix detection and error context.
        payload: Raw file bytes.

    Returns:
        Parsed file with records and record-level errors.

    Raises:
        OdmInputError: If the file is not UTF-8 or not parseable at all.
    """
    try:
        text = payload.decode("utf-8-sig")
    except UnicodeDecodeError as error:
        raise OdmInputError(
            f"Failed to decode {path} as UTF-8: {error}. Convert the file to UTF-8."
        ) from error
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in JSON_LINES_EXTENSIONS:
        values, errors = _parse_json_lines(path, text)
    elif suffix == ".json":
        values, errors = _parse_document(path, text), []
    else:
        values, errors = _sniff(path, text)
    if not values and errors:
        raise OdmInputError(
            f"Failed to parse {path}: none of its {len(errors)} lines is valid JSON. "
            "Fix the file or remove it from the source."
        )
    return ParsedSourceFile(
        path=path,
        fingerprint=fingerprint_content(payload),
        size_bytes=len(payload),
        values=tuple(values),
        errors=tuple(errors),
    )


def _parse_document(path: str, text: str) -> list[Any]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as error:
        raise OdmInputError(
            f"Failed to parse {path} as JSON: {error.msg} at line {error.lineno}. "
            "Fix the JSON syntax and retry ingest."
        ) from error
    if isinstance(document, list):
        return document
    return [document]


def _parse_json_lines(path: str, text: str) -> tuple[list[Any], list[FileIngestError]]:
    values: list[Any] = []
    errors: list[FileIngestError] = []
    for line_number, line in enumerate(text.splitlines(), 1):
        if not line.strip():
            continue
        try:
            values.append(json.loads(line))
        except json.JSONDecodeError as error:
            errors.append(
                FileIngestError(
                    path=path,
                    message=f"Malformed JSON line: {error.msg}.",
                    line_number=line_number,
                )
            )
    return values, errors


def _sniff(path: str, text: str) -> tuple[list[Any], list[FileIngestError]]:
    try:
        return _parse_document(path, text), []
    except OdmInputError:
        if len([line for line in text.splitlines() if line.strip()]) < 2:
            raise
    return _parse_json_lines(path, text)
