"""Batch ingestion of discovered source files.

Files are parsed by a bounded worker pool in chunks of ``batch_size``
files. Each chunk becomes one staging batch; batch writes and commits
are serialized by a lock, so batches commit in completion order.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from itertools import islice
import threading
from typing import Any, Iterable, Iterator

from core.cancellation import CancellationToken
from core.config import OdmConfig
from core.errors import OdmError, OdmInputError, OdmValidationError
from core.logging_config import get_logger
from core.s3_uri import is_s3_uri
from core.types import FileIngestError, IngestOptions, IngestReport, RecordDraft
from ingest.deduplication import DedupFilter, parse_dedup_strategy
from ingest.discovery import SourceDiscovery
from ingest.input_reader import ParsedSourceFile, parse_source_file, read_source_bytes
from store.s3_client import create_s3_client
from store.staging_store import StagingStore

_LOGGER = get_logger(__name__)


@dataclass
class _ChunkOutcome:
    files_ingested: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    records_ingested: int = 0
    record_errors: int = 0
    errors: list[FileIngestError] = field(default_factory=list)


class Ingestor:
    """Stage source files into a staging store.

    Args:
        store: Staging store receiving batches.
        config: Runtime config for worker count and S3 access.
        cancel_token: Token checked after each batch commit.
        s3_client: Optional preconfigured S3 client.
    """

    def __init__(
        self,
        store: StagingStore,
        config: OdmConfig,
        cancel_token: CancellationToken | None = None,
        s3_client: Any | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._cancel_token = cancel_token or CancellationToken()
        self._s3_client = s3_client
        self._commit_lock = threading.Lock()

    def discover(self, source: str, pattern: str) -> SourceDiscovery:
        """Return a restartable iterable of candidate paths under ``source``."""
        if is_s3_uri(source) and self._s3_client is None:
            self._s3_client = create_s3_client(self._config)
        return SourceDiscovery(source, pattern, self._config, s3_client=self._s3_client)

    def ingest(self, options: IngestOptions, run_id: str) -> IngestReport:
        """Ingest every discovered file not skipped by resume or dedup.

        Args:
            options: Source, pattern, partition, batch size, and dedup strategy.
            run_id: Pipeline run owning the new batches.

        Returns:
            Ingest summary with per-file error detail.

        Raises:
            OdmValidationError: If options are out of range.
            OdmInputError: If every file of a batch fails.
            OdmResourceError: If the staging store cannot be written.
            OdmCancelledError: If cancellation is requested.
        """
        _validate_ingest_options(options)
        strategy = parse_dedup_strategy(options.dedup)
        recovered = self._store.recover_pending()
        resumed_files = self._store.committed_files(run_id)
        dedup = DedupFilter(
            strategy,
            known_paths=self._store.known_paths(),
            known_fingerprints=self._store.known_fingerprints(),
        )
        discovered = 0
        resumed_skips = 0
        dedup_skips = 0
        candidates: list[str] = []
        for path in self.discover(options.source, options.pattern):
            discovered += 1
            if path in resumed_files:
                resumed_skips += 1
            elif dedup.path_seen(path):
                dedup_skips += 1
            else:
                candidates.append(path)
        commit_order: list[int] = []
        total = _ChunkOutcome(files_skipped=resumed_skips + dedup_skips)
        with ThreadPoolExecutor(max_workers=self._config.max_workers) as pool:
            futures = [
                pool.submit(self._ingest_chunk, chunk, options, run_id, dedup, commit_order)
                for chunk in _chunked(candidates, options.batch_size)
            ]
            for outcome in _completed_outcomes(futures):
                _accumulate(total, outcome)
        report = IngestReport(
            run_id=run_id,
            files_discovered=discovered,
            files_ingested=total.files_ingested,
            files_skipped=total.files_skipped,
            files_failed=total.files_failed,
            records_ingested=total.records_ingested,
            record_errors=total.record_errors,
            batch_ids=tuple(commit_order),
            recovered_batch_ids=tuple(recovered),
            errors=tuple(total.errors),
        )
        _LOGGER.info(
            "ingest_completed",
            run_id=run_id,
            files_discovered=report.files_discovered,
            files_ingested=report.files_ingested,
            files_skipped=report.files_skipped,
            files_failed=report.files_failed,
            records_ingested=report.records_ingested,
            batches=len(report.batch_ids),
        )
        return report

    def _ingest_chunk(
        self,
        paths: list[str],
        options: IngestOptions,
        run_id: str,
        dedup: DedupFilter,
        commit_order: list[int],
    ) -> _ChunkOutcome:
        self._cancel_token.raise_if_cancelled("ingest batch start")
        outcome = _ChunkOutcome()
        parsed_files: list[ParsedSourceFile] = []
        for path in paths:
            try:
                payload = read_source_bytes(path, self._config, s3_client=self._s3_client)
                parsed_files.append(parse_source_file(path, payload))
            except OdmInputError as error:
                outcome.files_failed += 1
                outcome.errors.append(FileIngestError(path=path, message=str(error)))
                _LOGGER.warning("source_file_failed", path=path, error=str(error))
        if paths and outcome.files_failed == len(paths):
            raise OdmInputError(
                f"Every file in a batch of {len(paths)} failed to parse; "
                f"first failure: {outcome.errors[0].message}"
            )
        with self._commit_lock:
            accepted = [
                parsed for parsed in parsed_files if dedup.accept(parsed.path, parsed.fingerprint)
            ]
            outcome.files_skipped += len(parsed_files) - len(accepted)
            if accepted:
                self._commit_files(accepted, options.partition_key, run_id, commit_order)
        for parsed in accepted:
            outcome.files_ingested += 1
            outcome.records_ingested += len(parsed.values)
            outcome.record_errors += len(parsed.errors)
            outcome.errors.extend(parsed.errors)
        if accepted:
            self._cancel_token.raise_if_cancelled(f"batch {commit_order[-1]} commit")
        return outcome

    def _commit_files(
        self,
        accepted: list[ParsedSourceFile],
        partition_key: str,
        run_id: str,
        commit_order: list[int],
    ) -> None:
        batch = self._store.begin_batch(partition_key, run_id, [item.path for item in accepted])
        try:
            drafts = [
                RecordDraft(
                    source_path=parsed.path,
                    record_index=index,
                    content_fingerprint=parsed.fingerprint,
                    value=value,
                )
                for parsed in accepted
                for index, value in enumerate(parsed.values)
            ]
            self._store.append_records(batch.batch_id, drafts)
            for parsed in accepted:
                self._store.record_file_hash(parsed.path, parsed.fingerprint, batch.batch_id)
            self._store.commit_batch(batch.batch_id)
        except OdmError as error:
            self._store.fail_batch(batch.batch_id, f"Batch {batch.batch_id}: {error}")
            raise
        commit_order.append(batch.batch_id)


def _validate_ingest_options(options: IngestOptions) -> None:
    if not options.source:
        raise OdmValidationError("Missing ingest source. Provide a file, directory, or s3:// URI.")
    if options.batch_size < 1:
        raise OdmValidationError(
            f"Invalid batch size {options.batch_size}: expected at least 1."
        )
    if not options.partition_key:
        raise OdmValidationError("Missing partition key. Provide a non-empty partition label.")


def _chunked(paths: Iterable[str], size: int) -> Iterator[list[str]]:
    iterator = iter(paths)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


def _completed_outcomes(futures: list[Future[_ChunkOutcome]]) -> Iterator[_ChunkOutcome]:
    try:
        for future in as_completed(futures):
            yield future.result()
    except BaseException:
        for future in futures:
            future.cancel()
        raise


def _accumulate(total: _ChunkOutcome, outcome: _ChunkOutcome) -> None:
    total.files_ingested += outcome.files_ingested
    total.files_skipped += outcome.files_skipped
    total.files_failed += outcome.files_failed
    total.records_ingested += outcome.records_ingested
    total.record_errors += outcome.record_errors
    total.errors.extend(outcome.errors)
