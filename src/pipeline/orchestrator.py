"""Pipeline orchestration.

The orchestrator drives ingest, infer, refine, map, and export over an
explicit staging store handle. It validates the request, checks config
drift and stage dependencies before doing any work, runs each stage as
one atomic unit, and persists a checkpoint after every stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from pathlib import Path
import time
from typing import Any, Callable
import uuid

from core.cancellation import CancellationToken
from core.config import OdmConfig
from core.constants import EXPORT_DIR_NAME
from core.errors import (
    OdmConfigDriftError,
    OdmError,
    OdmInputError,
    OdmNetworkError,
    OdmStageDependencyError,
    OdmStageError,
    OdmValidationError,
)
from core.logging_config import get_logger
from core.schema import Schema
from core.types import IngestReport
from inference.engine import infer_schema
from ingest.ingestor import Ingestor
from mapping.matcher import map_schemas
from mapping.transform_codegen import render_transform, transform_file_name
from mapping.types import MappingResult
from pipeline.artifacts import RunArtifacts
from pipeline.checkpoint import STAGE_STATES, Checkpoint, CheckpointStore, StageRecord
from pipeline.options import (
    STAGE_NAMES,
    PipelineOptions,
    config_fingerprint,
    parse_stage_names,
    validate_pipeline_options,
)
from refine.adapter import SchemaRefiner
from schema_io.document import dump_document, mapping_result_to_document
from schema_io.schema_files import load_schema_file, render_schema, schema_file_name
from store.catalog_sink import CatalogSink, ExportArtifact, build_sink
from store.staging_store import StagingStore

_LOGGER = get_logger(__name__)
_REFINEMENT_SAMPLE_COUNT = 5


@dataclass(frozen=True)
class StagePlan:
    """Planned action for one stage: ``run``, ``skip``, or ``done``."""

    stage: str
    action: str
    reason: str | None = None


@dataclass(frozen=True)
class PipelineReport:
    """Outcome of a pipeline invocation.

    Attributes:
        run_id: Run identifier, ``None`` for dry runs without a checkpoint.
        pipeline_name: Pipeline name.
        state: Final pipeline state.
        plan: Planned action per stage.
        dry_run: Whether only validation ran.
        resumed: Whether the run continued from a checkpoint.
        stage_records: Stage outcomes recorded in the checkpoint.
        ingest: Ingest summary when the ingest stage ran.
        schema: Final schema, refined when refinement succeeded.
        mapping: Mapping result when the map stage ran.
        exported: Published artifact locations.
        warnings: Non-fatal problems, such as degraded refinement.
    """

    run_id: str | None
    pipeline_name: str
    state: str
    plan: tuple[StagePlan, ...]
    dry_run: bool = False
    resumed: bool = False
    stage_records: tuple[StageRecord, ...] = ()
    ingest: IngestReport | None = None
    schema: Schema | None = None
    mapping: MappingResult | None = None
    exported: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass
class _RunContext:
    run_id: str
    target: Schema | None
    ingest: IngestReport | None = None
    schema: Schema | None = None
    refined: Schema | None = None
    mapping: MappingResult | None = None
    exported: tuple[str, ...] = ()
    warnings: list[str] = field(default_factory=list)

    @property
    def current_schema(self) -> Schema | None:
        return self.refined or self.schema


class PipelineOrchestrator:
    """Run pipeline stages with checkpointed, resumable state.

    Args:
        options: Pipeline options.
        config: Runtime config.
        store: Staging store handle shared by all stages.
        refiner: Refinement backend; the refine stage is skipped without one.
        sink: Export sink; defaults to the configured output destination.
        cancel_token: Token checked at stage boundaries and batch commits.
    """

    def __init__(
        self,
        options: PipelineOptions,
        config: OdmConfig,
        store: StagingStore,
        refiner: SchemaRefiner | None = None,
        sink: CatalogSink | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self._options = options
        self._config = config
        self._store = store
        self._refiner = refiner
        self._sink = sink
        self._cancel_token = cancel_token or CancellationToken()
        self._checkpoints = CheckpointStore(config.data_root, options.name)
        self._artifacts = RunArtifacts(self._checkpoints.run_dir)

    def run(
        self,
        stages: list[str] | tuple[str, ...] | None = None,
        resume: bool = False,
        override_drift: bool = False,
        dry_run: bool = False,
    ) -> PipelineReport:
        """Execute the requested stages.

        Resuming a completed run returns its report unless a requested stage
        never ran there; that stage then runs under the same run id. A failed
        run is only marked completed after a stage has run again.

        Args:
            stages: Stage names to run; ``None`` runs every stage.
            resume: Continue the pipeline's checkpointed run.
            override_drift: Discard a checkpoint whose fingerprint differs.
            dry_run: Validate and plan without writes or network calls.

        Returns:
            Pipeline report.

        Raises:
            OdmValidationError: If options or stage names are invalid.
            OdmConfigDriftError: If resuming a checkpoint with a different config.
            OdmStageDependencyError: If a requested stage lacks its input.
            OdmStageError: If a stage fails; the cause is attached.
        """
        requested = parse_stage_names(stages)
        validate_pipeline_options(self._options, requested)
        fingerprint = config_fingerprint(self._options)
        checkpoint = self._resolve_checkpoint(resume, override_drift, fingerprint, dry_run)
        plan = self._build_plan(requested, checkpoint)
        pending = any(step.action == "run" for step in plan)
        if checkpoint is not None and checkpoint.state == "completed" and not pending:
            _LOGGER.info("pipeline_already_completed", run_id=checkpoint.run_id)
            return self._completed_report(checkpoint)
        self._check_dependencies(plan, checkpoint)
        target = self._load_target(plan)
        if dry_run:
            _LOGGER.info("pipeline_dry_run", pipeline=self._options.name, plan=_plan_log(plan))
            return PipelineReport(
                run_id=checkpoint.run_id if checkpoint else None,
                pipeline_name=self._options.name,
                state=checkpoint.state if checkpoint else "not_started",
                plan=plan,
                dry_run=True,
                resumed=checkpoint is not None,
            )
        resumed = checkpoint is not None
        if checkpoint is None:
            now = _utc_now()
            checkpoint = Checkpoint(
                run_id=uuid.uuid4().hex,
                pipeline_name=self._options.name,
                config_fingerprint=fingerprint,
                created_at=now,
                updated_at=now,
            )
            self._checkpoints.save(checkpoint)
        elif checkpoint.state == "completed":
            checkpoint = checkpoint.reopen(_utc_now())
            self._checkpoints.save(checkpoint)
            _LOGGER.info("pipeline_reopened", run_id=checkpoint.run_id, plan=_plan_log(plan))
        context = _RunContext(run_id=checkpoint.run_id, target=target)
        self._restore_artifacts(context, checkpoint)
        _LOGGER.info(
            "pipeline_started",
            pipeline=self._options.name,
            run_id=checkpoint.run_id,
            resumed=resumed,
            plan=_plan_log(plan),
        )
        for step in plan:
            if step.action == "done":
                continue
            self._cancel_token.raise_if_cancelled(f"the start of stage '{step.stage}'")
            if step.action == "skip":
                checkpoint = self._record_skip(checkpoint, step)
                continue
            checkpoint = self._execute_stage(checkpoint, step.stage, context)
        if checkpoint.state == "failed":
            _LOGGER.warning(
                "pipeline_still_failed",
                pipeline=self._options.name,
                run_id=checkpoint.run_id,
                error=checkpoint.error,
            )
        else:
            checkpoint = checkpoint.transition("completed", _utc_now())
            self._checkpoints.save(checkpoint)
            _LOGGER.info(
                "pipeline_completed", pipeline=self._options.name, run_id=checkpoint.run_id
            )
        return PipelineReport(
            run_id=checkpoint.run_id,
            pipeline_name=self._options.name,
            state=checkpoint.state,
            plan=plan,
            resumed=resumed,
            stage_records=checkpoint.stage_records,
            ingest=context.ingest,
            schema=context.current_schema,
            mapping=context.mapping,
            exported=context.exported,
            warnings=tuple(context.warnings),
        )

    def _resolve_checkpoint(
        self, resume: bool, override_drift: bool, fingerprint: str, dry_run: bool
    ) -> Checkpoint | None:
        if not resume:
            return None
        checkpoint = self._checkpoints.load()
        if checkpoint is None:
            _LOGGER.info("resume_without_checkpoint", pipeline=self._options.name)
            return None
        if checkpoint.config_fingerprint == fingerprint:
            return checkpoint
        if not override_drift:
            raise OdmConfigDriftError(
                f"Checkpoint for pipeline '{self._options.name}' (run {checkpoint.run_id}) was "
                "created with a different configuration. Re-run with the original options, "
                "pass --override-drift to discard the checkpoint, or run without --resume."
            )
        _LOGGER.warning(
            "checkpoint_discarded_for_drift",
            pipeline=self._options.name,
            run_id=checkpoint.run_id,
        )
        if not dry_run:
            self._checkpoints.clear()
        return None

    def _build_plan(
        self, requested: tuple[str, ...], checkpoint: Checkpoint | None
    ) -> tuple[StagePlan, ...]:
        plan: list[StagePlan] = []
        for stage in STAGE_NAMES:
            if checkpoint is not None and checkpoint.has_completed(stage):
                plan.append(StagePlan(stage, "done"))
            elif stage not in requested:
                plan.append(StagePlan(stage, "skip", "not requested"))
            elif stage == "refine" and self._refiner is None:
                plan.append(StagePlan(stage, "skip", "no refinement backend configured"))
            elif stage == "map" and not self._options.target_schema:
                plan.append(StagePlan(stage, "skip", "no target schema provided"))
            else:
                plan.append(StagePlan(stage, "run"))
        return tuple(plan)

    def _check_dependencies(
        self, plan: tuple[StagePlan, ...], checkpoint: Checkpoint | None
    ) -> None:
        actions = {step.stage: step.action for step in plan}
        schema_available = actions["infer"] in ("run", "done")
        if actions["infer"] == "done" and checkpoint is not None:
            schema_available = self._artifacts.load_schema("schema") is not None
        for stage in ("refine", "map", "export"):
            if actions[stage] == "run" and not schema_available:
                raise OdmStageDependencyError(
                    f"Stage '{stage}' needs the inferred schema, but the infer stage is "
                    "neither requested nor completed in a resumable checkpoint. "
                    "Add the infer stage to the run."
                )

    def _load_target(self, plan: tuple[StagePlan, ...]) -> Schema | None:
        map_step = next(step for step in plan if step.stage == "map")
        if map_step.action != "run" or not self._options.target_schema:
            return None
        target = load_schema_file(self._options.target_schema)
        if target.is_empty():
            raise OdmValidationError(
                f"Target schema {self._options.target_schema} has no fields. "
                "Provide a target schema with at least one field."
            )
        return target

    def _restore_artifacts(self, context: _RunContext, checkpoint: Checkpoint) -> None:
        if checkpoint.has_completed("infer"):
            context.schema = self._artifacts.load_schema("schema")
        if checkpoint.has_completed("refine"):
            context.refined = self._artifacts.load_schema("refined_schema")
        if checkpoint.has_completed("map"):
            context.mapping = self._artifacts.load_mapping()

    def _record_skip(self, checkpoint: Checkpoint, step: StagePlan) -> Checkpoint:
        now = _utc_now()
        record = StageRecord(
            stage=step.stage,
            status="skipped",
            started_at=now,
            finished_at=now,
            duration_seconds=0.0,
            outcome="skipped",
            summary={"reason": step.reason},
        )
        _LOGGER.info("stage_skipped", stage=step.stage, reason=step.reason)
        checkpoint = checkpoint.with_stage_record(record)
        self._checkpoints.save(checkpoint)
        return checkpoint

    def _execute_stage(
        self, checkpoint: Checkpoint, stage: str, context: _RunContext
    ) -> Checkpoint:
        started_at = _utc_now()
        checkpoint = checkpoint.transition(STAGE_STATES[stage], started_at)
        self._checkpoints.save(checkpoint)
        _LOGGER.info("stage_started", stage=stage, run_id=context.run_id)
        clock = time.monotonic()
        runners: dict[str, Callable[[_RunContext], tuple[str, dict[str, Any]]]] = {
            "ingest": self._run_ingest,
            "infer": self._run_infer,
            "refine": self._run_refine,
            "map": self._run_map,
            "export": self._run_export,
        }
        try:
            outcome, summary = runners[stage](context)
        except Exception as error:
            record = StageRecord(
                stage=stage,
                status="failed",
                started_at=started_at,
                finished_at=_utc_now(),
                duration_seconds=round(time.monotonic() - clock, 6),
                outcome="failed",
                error=str(error),
            )
            self._checkpoints.save(checkpoint.with_failure(record))
            _LOGGER.error("stage_failed", stage=stage, run_id=context.run_id, error=str(error))
            if isinstance(error, OdmError):
                raise OdmStageError(stage, error) from error
            raise
        record = StageRecord(
            stage=stage,
            status="completed",
            started_at=started_at,
            finished_at=_utc_now(),
            duration_seconds=round(time.monotonic() - clock, 6),
            outcome=outcome,
            summary=summary,
        )
        checkpoint = checkpoint.with_stage_record(record)
        self._checkpoints.save(checkpoint)
        _LOGGER.info(
            "stage_completed",
            stage=stage,
            run_id=context.run_id,
            outcome=outcome,
            duration_seconds=record.duration_seconds,
        )
        return checkpoint

    def _run_ingest(self, context: _RunContext) -> tuple[str, dict[str, Any]]:
        ingestor = Ingestor(self._store, self._config, cancel_token=self._cancel_token)
        report = ingestor.ingest(self._options.ingest_options(), context.run_id)
        context.ingest = report
        outcome = "partial" if report.files_failed or report.record_errors else "ok"
        return outcome, {
            "files_discovered": report.files_discovered,
            "files_ingested": report.files_ingested,
            "files_skipped": report.files_skipped,
            "files_failed": report.files_failed,
            "records_ingested": report.records_ingested,
            "record_errors": report.record_errors,
            "batch_ids": list(report.batch_ids),
            "recovered_batch_ids": list(report.recovered_batch_ids),
        }

    def _run_infer(self, context: _RunContext) -> tuple[str, dict[str, Any]]:
        records = (
            record.value
            for record in self._store.read_records(partition_key=self._options.partition_key)
        )
        result = infer_schema(
            records, self._options.inference_options(), max_workers=self._config.max_workers
        )
        self._artifacts.save_schema("schema", result.schema)
        context.schema = result.schema
        context.refined = None
        return "ok", {
            "field_count": len(result.schema.fields),
            "records_sampled": result.records_sampled,
            "records_skipped": result.records_skipped,
            "sample_shortfall": result.sample_shortfall,
            "max_depth_seen": result.max_depth_seen,
            "kind_distribution": dict(result.kind_distribution),
        }

    def _run_refine(self, context: _RunContext) -> tuple[str, dict[str, Any]]:
        if self._refiner is None or context.schema is None:
            return "skipped", {"reason": "no refinement backend configured"}
        doc_context = _read_doc_context(self._options.doc_context_path)
        samples = [
            record.value
            for record in islice(
                self._store.read_records(partition_key=self._options.partition_key),
                _REFINEMENT_SAMPLE_COUNT,
            )
        ]
        try:
            refined = self._refiner.refine(
                context.schema,
                doc_context=doc_context,
                temperature=self._options.temperature,
                samples=samples,
            )
        except OdmNetworkError as error:
            warning = f"Refinement unavailable, continuing with the inferred schema: {error}"
            context.warnings.append(warning)
            _LOGGER.warning("refinement_degraded", run_id=context.run_id, error=str(error))
            return "degraded", {"error": str(error)}
        self._artifacts.save_schema("refined_schema", refined.schema)
        context.refined = refined.schema
        context.warnings.extend(refined.warnings)
        return "ok", {"model": refined.model, "warnings": list(refined.warnings)}

    def _run_map(self, context: _RunContext) -> tuple[str, dict[str, Any]]:
        source = context.current_schema
        if source is None or context.target is None:
            raise OdmStageDependencyError("The map stage needs both a source and a target schema.")
        result = map_schemas(source, context.target, self._options.mapping_options())
        self._artifacts.save_mapping(result)
        context.mapping = result
        return "ok", {
            "compatibility_score": round(result.compatibility_score, 6),
            "matched": len(result.matched),
            "gaps": len(result.gaps),
            "extras": len(result.extras),
            "is_complete": result.is_complete,
        }

    def _run_export(self, context: _RunContext) -> tuple[str, dict[str, Any]]:
        schema = context.current_schema
        if schema is None:
            raise OdmStageDependencyError("The export stage needs an inferred schema.")
        output_format = self._options.output_format
        artifacts = [
            ExportArtifact(schema_file_name(output_format), render_schema(schema, output_format))
        ]
        if context.mapping is not None:
            document_format = "yaml" if output_format == "yaml" else "json"
            artifacts.append(
                ExportArtifact(
                    f"mapping.{document_format}",
                    dump_document(mapping_result_to_document(context.mapping), document_format),
                )
            )
            kind = self._options.transform_kind
            target_name = Path(self._options.target_schema or "target").name.split(".")[0]
            artifacts.append(
                ExportArtifact(
                    transform_file_name(kind),
                    render_transform(
                        context.mapping,
                        kind,
                        source_name=self._options.partition_key,
                        target_name=target_name,
                    ),
                )
            )
        sink = self._sink or build_sink(self._default_output(), self._config)
        context.exported = tuple(sink.publish(artifacts))
        return "ok", {"artifacts": list(context.exported)}

    def _default_output(self) -> str:
        if self._options.output:
            return self._options.output
        return str(self._config.data_root / EXPORT_DIR_NAME / self._options.name)

    def _completed_report(self, checkpoint: Checkpoint) -> PipelineReport:
        schema = None
        if checkpoint.has_completed("refine"):
            schema = self._artifacts.load_schema("refined_schema")
        if schema is None and checkpoint.has_completed("infer"):
            schema = self._artifacts.load_schema("schema")
        mapping = self._artifacts.load_mapping() if checkpoint.has_completed("map") else None
        plan = tuple(
            StagePlan(stage, "done" if checkpoint.has_completed(stage) else "skip")
            for stage in STAGE_NAMES
        )
        exported: tuple[str, ...] = ()
        for record in checkpoint.stage_records:
            if record.stage == "export" and record.status == "completed":
                exported = tuple(record.summary.get("artifacts", ()))
        return PipelineReport(
            run_id=checkpoint.run_id,
            pipeline_name=checkpoint.pipeline_name,
            state=checkpoint.state,
            plan=plan,
            resumed=True,
            stage_records=checkpoint.stage_records,
            schema=schema,
            mapping=mapping,
            exported=exported,
        )


def _read_doc_context(doc_path: str | None) -> str | None:
    if not doc_path:
        return None
    path = Path(doc_path).expanduser()
    try:
        return path.read_text(encoding="utf-8")
    except OSError as error:
        raise OdmInputError(
            f"Failed to read documentation context at {path}: {error}. "
            "Provide a readable text or markdown file."
        ) from error


def _plan_log(plan: tuple[StagePlan, ...]) -> dict[str, str]:
    return {step.stage: step.action for step in plan}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
