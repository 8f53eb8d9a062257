"""Source file discovery for local paths and S3 prefixes.

Discovery is a restartable iterable: every iteration lists the source
again and yields candidate paths in sorted order.
"""

from __future__ import annotations

import fnmatch
from pathlib import Path, PurePosixPath
import time
from typing import Any, Callable, Iterator

from core.config import OdmConfig
from core.errors import OdmInputError, OdmNetworkError
from core.retry import call_with_retries
from core.s3_uri import S3Location, is_s3_uri, parse_s3_uri
from store.s3_client import create_s3_client, is_transient_s3_error


class SourceDiscovery:
    """Lazy, restartable listing of candidate source files.

    Args:
        source: Local file, local directory, or ``s3://bucket/prefix``.
        pattern: Glob pattern applied under a directory source.
        config: Runtime config for S3 sessions and retries.
        s3_client: Optional preconfigured S3 client.
        sleep: Sleep function used between retries.
    """

    def __init__(
        self,
        source: str,
        pattern: str,
        config: OdmConfig,
        s3_client: Any | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = source
        self._pattern = pattern
        self._config = config
        self._s3_client = s3_client
        self._sleep = sleep

    def __iter__(self) -> Iterator[str]:
        if is_s3_uri(self._source):
            return self._iter_s3()
        return self._iter_local()

    def _iter_local(self) -> Iterator[str]:
        source_path = Path(self._source).expanduser()
        if not source_path.exists():
            raise OdmInputError(
                f"Failed to read source at {source_path}: path does not exist. "
                "Provide an existing file or directory."
            )
        if source_path.is_file():
            yield str(source_path)
            return
        try:
            matches = sorted(path for path in source_path.glob(self._pattern) if path.is_file())
        except (OSError, ValueError) as error:
            raise OdmInputError(
                f"Failed to list source directory {source_path} with pattern "
                f"'{self._pattern}': {error}. Check the directory and pattern."
            ) from error
        for path in matches:
            yield str(path)

    def _iter_s3(self) -> Iterator[str]:
        location = parse_s3_uri(self._source)
        if self._s3_client is None:
            self._s3_client = create_s3_client(self._config)
        keys = self._list_keys(location)
        name_pattern = PurePosixPath(self._pattern).name or "*"
        for key in sorted(keys):
            if fnmatch.fnmatch(PurePosixPath(key).name, name_pattern):
                yield location.uri_for(key)

    def _list_keys(self, location: S3Location) -> list[str]:
        paginator = self._s3_client.get_paginator("list_objects_v2")

        def list_pages() -> list[dict[str, Any]]:
            return list(paginator.paginate(Bucket=location.bucket, Prefix=location.prefix))

        try:
            pages = call_with_retries(
                list_pages,
                is_transient=is_transient_s3_error,
                retries=self._config.network_retries,
                description="s3_list_objects",
                sleep=self._sleep,
            )
        except Exception as error:
            raise OdmNetworkError(
                f"Failed to list {location.uri}: {error}. "
                "Check AWS credentials and network access."
            ) from error
        return [
            item["Key"]
            for page in pages
            for item in page.get("Contents", [])
            if not item["Key"].endswith("/")
        ]
