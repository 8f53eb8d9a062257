"""Plain-text rendering of pipeline reports for the CLI."""

from __future__ import annotations

from pipeline.orchestrator import PipelineReport


def print_pipeline_report(report: PipelineReport) -> None:
    """Print a pipeline report as ``key=value`` lines."""
    print(f"pipeline={report.pipeline_name}")
    print(f"run_id={report.run_id or '-'}")
    print(f"state={report.state}")
    print(f"dry_run={str(report.dry_run).lower()}")
    for step in report.plan:
        reason = f" ({step.reason})" if step.reason else ""
        print(f"plan.{step.stage}={step.action}{reason}")
    for record in report.stage_records:
        print(f"stage.{record.stage}={record.status}:{record.outcome}")
    if report.ingest is not None:
        print(f"records_ingested={report.ingest.records_ingested}")
        print(f"files_failed={report.ingest.files_failed}")
    if report.schema is not None:
        print(f"schema_fields={len(report.schema.fields)}")
    if report.mapping is not None:
        print(f"compatibility_score={report.mapping.compatibility_score:.4f}")
        print(f"mapping_complete={str(report.mapping.is_complete).lower()}")
    for location in report.exported:
        print(f"exported={location}")
    for warning in report.warnings:
        print(f"warning={warning}")
