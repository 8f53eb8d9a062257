"""Python SDK for pipeline operations.

This module exposes one client that builds the staging store, the
refinement backend, and the orchestrator from runtime config, plus
direct entry points for the individual stages.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any
import uuid

from core.cancellation import CancellationToken
from core.config import OdmConfig
from core.schema import Schema
from core.types import Batch, BatchStatus, InferenceOptions, IngestOptions, IngestReport
from inference.engine import InferenceResult, infer_schema
from ingest.ingestor import Ingestor
from mapping.matcher import map_schemas
from mapping.types import MappingOptions, MappingResult
from pipeline.options import PipelineOptions
from pipeline.orchestrator import PipelineOrchestrator, PipelineReport
from pipeline.pipeline_spec import load_pipeline_spec
from refine.adapter import SchemaRefiner
from refine.ollama_client import OllamaRefiner
from store.staging_store import FileStagingStore


class OdmClient:
    """Primary SDK entry point."""

    def __init__(
        self,
        config: OdmConfig | None = None,
        refiner: SchemaRefiner | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            refiner: Refinement backend; defaults to the configured LLM server.
            cancel_token: Token shared by every run started from this client.
        """
        self._config = config or OdmConfig.from_env()
        self._store = FileStagingStore(self._config.data_root)
        self._refiner = refiner or _default_refiner(self._config)
        self._cancel_token = cancel_token or CancellationToken()

    @property
    def config(self) -> OdmConfig:
        return self._config

    @property
    def store(self) -> FileStagingStore:
        return self._store

    def with_data_root(self, data_root: str) -> "OdmClient":
        """Return a client bound to another data root.

        Args:
            data_root: Data root directory path.

        Returns:
            New client instance.
        """
        updated = replace(self._config, data_root=Path(data_root).expanduser().resolve())
        return OdmClient(updated, refiner=self._refiner, cancel_token=self._cancel_token)

    def run(
        self,
        options: PipelineOptions,
        stages: list[str] | tuple[str, ...] | None = None,
        resume: bool = False,
        override_drift: bool = False,
        dry_run: bool = False,
    ) -> PipelineReport:
        """Run pipeline stages against this client's staging store.

        Args:
            options: Pipeline options.
            stages: Stage names to run; ``None`` runs every stage.
            resume: Continue the pipeline's checkpointed run.
            override_drift: Discard a checkpoint whose config differs.
            dry_run: Validate and plan only.

        Returns:
            Pipeline report.
        """
        orchestrator = PipelineOrchestrator(
            options,
            self._config,
            self._store,
            refiner=self._refiner,
            cancel_token=self._cancel_token,
        )
        return orchestrator.run(
            stages, resume=resume, override_drift=override_drift, dry_run=dry_run
        )

    def run_pipeline_file(
        self,
        spec_path: str,
        resume: bool = False,
        override_drift: bool = False,
        dry_run: bool = False,
    ) -> PipelineReport:
        """Run the pipeline described by a YAML pipeline file.

        Args:
            spec_path: Pipeline file path.
            resume: Continue the pipeline's checkpointed run.
            override_drift: Discard a checkpoint whose config differs.
            dry_run: Validate and plan only.

        Returns:
            Pipeline report.
        """
        spec = load_pipeline_spec(spec_path)
        return self.run(
            spec.options,
            spec.stages,
            resume=resume,
            override_drift=override_drift,
            dry_run=dry_run,
        )

    def ingest(self, options: IngestOptions, run_id: str | None = None) -> IngestReport:
        """Ingest a source into the staging store outside a pipeline run.

        Args:
            options: Ingest options.
            run_id: Optional run id owning the batches.

        Returns:
            Ingest report.
        """
        ingestor = Ingestor(self._store, self._config, cancel_token=self._cancel_token)
        return ingestor.ingest(options, run_id or uuid.uuid4().hex)

    def infer(
        self, options: InferenceOptions, partition_key: str | None = None
    ) -> InferenceResult:
        """Infer a schema from committed staging records.

        Args:
            options: Inference options.
            partition_key: Restrict inference to one partition.

        Returns:
            Inference result.
        """
        records = self._store.read_records(partition_key=partition_key)
        return infer_schema(
            (record.value for record in records), options, self._config.max_workers
        )

    def map(
        self, source: Schema, target: Schema, options: MappingOptions | None = None
    ) -> MappingResult:
        """Map a source schema onto a target schema."""
        return map_schemas(source, target, options)

    def list_batches(self, status: BatchStatus | None = None) -> list[Batch]:
        return self._store.list_batches(status)

    def query(self, statement: str) -> list[dict[str, Any]]:
        """Run a read-only filter over committed staging records."""
        return self._store.query(statement)

    def partition_counts(self) -> dict[str, int]:
        return self._store.partition_counts()


def _default_refiner(config: OdmConfig) -> SchemaRefiner | None:
    if config.llm_url is None:
        return None
    return OllamaRefiner(
        config.llm_url,
        config.llm_model,
        timeout_seconds=config.network_timeout_seconds,
        retries=config.network_retries,
    )
