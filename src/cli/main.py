"""odm CLI entry points.

This module exposes the pipeline run command and the single-stage tools.
It maps argparse commands onto SDK calls and error types onto exit codes.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
from pathlib import Path
import sys
from typing import Any, Sequence

from cli.pipeline_file_command import add_pipeline_file_command, run_pipeline_file_command
from cli.report_output import print_pipeline_report
from core.config import OdmConfig
from core.constants import (
    DEFAULT_DEDUP_STRATEGY,
    DEFAULT_INGEST_BATCH_SIZE,
    DEFAULT_LLM_TEMPERATURE,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_EXAMPLES,
    DEFAULT_MIN_FREQUENCY,
    DEFAULT_MIN_SIMILARITY,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_PARTITION_KEY,
    DEFAULT_PIPELINE_NAME,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SOURCE_PATTERN,
    DEFAULT_TRANSFORM_KIND,
    EXIT_OK,
)
from core.errors import OdmError
from core.logging_config import get_logger
from core.types import (
    SUPPORTED_DEDUP_STRATEGIES,
    SUPPORTED_OUTPUT_FORMATS,
    SUPPORTED_TRANSFORM_KINDS,
    InferenceOptions,
    IngestOptions,
)
from mapping.transform_codegen import render_transform
from mapping.types import MappingOptions
from pipeline.client import OdmClient
from pipeline.options import STAGE_NAMES, PipelineOptions
from schema_io.document import dump_document, mapping_result_to_document
from schema_io.schema_files import load_schema_file, render_schema

_LOGGER = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="odm", description="JSON onboarding pipeline CLI")
    parser.add_argument("--data-root", help="Override ODM_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_run_command(subparsers)
    add_pipeline_file_command(subparsers)
    _add_ingest_command(subparsers)
    _add_infer_command(subparsers)
    _add_map_command(subparsers)
    _add_batches_command(subparsers)
    _add_query_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the odm CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = _build_client(args.data_root)
        return _dispatch(client, args)
    except OdmError as error:
        _LOGGER.error("command_failed", command=args.command, error=str(error))
        print(f"error: {error}", file=sys.stderr)
        return error.exit_code


def _dispatch(client: OdmClient, args: argparse.Namespace) -> int:
    if args.command == "run":
        return _run_pipeline_command(client, args)
    if args.command == "run-file":
        return run_pipeline_file_command(client, args)
    if args.command == "ingest":
        return _run_ingest_command(client, args)
    if args.command == "infer":
        return _run_infer_command(client, args)
    if args.command == "map":
        return _run_map_command(client, args)
    if args.command == "batches":
        return _run_batches_command(client, args)
    return _run_query_command(client, args)


def _build_client(data_root: str | None) -> OdmClient:
    """Build SDK client with optional data-root override.

    Args:
        data_root: Optional override path.

    Returns:
        Configured SDK client.
    """
    config = OdmConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return OdmClient(config)


def _run_pipeline_command(client: OdmClient, args: argparse.Namespace) -> int:
    """Handle run command.

    Args:
        client: SDK client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    options = PipelineOptions(
        name=args.name,
        source=args.source,
        pattern=args.pattern,
        partition_key=args.partition_key,
        batch_size=args.batch_size,
        dedup=args.dedup,
        sample_size=args.sample_size,
        min_frequency=args.min_frequency,
        max_depth=args.max_depth,
        detect_formats=not args.no_formats,
        max_examples=args.max_examples,
        target_schema=args.target_schema,
        fuzzy=not args.no_fuzzy,
        min_similarity=args.min_similarity,
        case_insensitive=args.case_insensitive,
        doc_context_path=args.doc_context,
        temperature=args.temperature,
        transform_kind=args.transform,
        output_format=args.output_format,
        output=args.output,
    )
    stages = args.stages.split(",") if args.stages else None
    report = client.run(
        options,
        stages,
        resume=args.resume,
        override_drift=args.override_drift,
        dry_run=args.dry_run,
    )
    print_pipeline_report(report)
    return EXIT_OK


def _run_ingest_command(client: OdmClient, args: argparse.Namespace) -> int:
    """Handle ingest command."""
    options = IngestOptions(
        source=args.source,
        pattern=args.pattern,
        partition_key=args.partition_key,
        batch_size=args.batch_size,
        dedup=args.dedup,
    )
    report = client.ingest(options)
    print(f"run_id={report.run_id}")
    print(f"files_discovered={report.files_discovered}")
    print(f"files_ingested={report.files_ingested}")
    print(f"files_skipped={report.files_skipped}")
    print(f"files_failed={report.files_failed}")
    print(f"records_ingested={report.records_ingested}")
    print(f"record_errors={report.record_errors}")
    for error in report.errors:
        print(f"error={error.path}: {error.message}", file=sys.stderr)
    return EXIT_OK


def _run_infer_command(client: OdmClient, args: argparse.Namespace) -> int:
    """Handle infer command."""
    options = InferenceOptions(
        sample_size=args.sample_size,
        min_frequency=args.min_frequency,
        max_depth=args.max_depth,
        detect_formats=not args.no_formats,
        max_examples=args.max_examples,
    )
    result = client.infer(options, partition_key=args.partition_key)
    _emit(render_schema(result.schema, args.output_format), args.output)
    return EXIT_OK


def _run_map_command(client: OdmClient, args: argparse.Namespace) -> int:
    """Handle map command."""
    source = load_schema_file(args.source_schema)
    target = load_schema_file(args.target_schema)
    options = MappingOptions(
        fuzzy=not args.no_fuzzy,
        min_similarity=args.min_similarity,
        case_insensitive=args.case_insensitive,
    )
    result = client.map(source, target, options)
    document_format = "yaml" if args.output_format == "yaml" else "json"
    _emit(dump_document(mapping_result_to_document(result), document_format), args.output)
    if args.transform_output:
        _emit(render_transform(result, args.transform), args.transform_output)
    return EXIT_OK


def _run_batches_command(client: OdmClient, args: argparse.Namespace) -> int:
    """Handle batches command."""
    for batch in client.list_batches(args.status):
        print(
            f"{batch.batch_id}\t"
            f"{batch.status}\t"
            f"{batch.partition_key}\t"
            f"{len(batch.files)}\t"
            f"{batch.record_count}\t"
            f"{batch.updated_at.isoformat()}"
        )
    return EXIT_OK


def _run_query_command(client: OdmClient, args: argparse.Namespace) -> int:
    """Handle query command."""
    if args.partitions:
        for partition_key, count in sorted(client.partition_counts().items()):
            print(f"{partition_key}\t{count}")
        return EXIT_OK
    for row in client.query(args.filter):
        print(json.dumps(row, sort_keys=True, default=str))
    return EXIT_OK


def _emit(text: str, output_path: str | None) -> None:
    if output_path is None:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
        return
    path = Path(output_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    print(path)


def _add_run_command(subparsers: Any) -> None:
    """Register run subcommand."""
    parser = subparsers.add_parser("run", help="Run pipeline stages with checkpoints")
    parser.add_argument("source", nargs="?", help="Source file, directory, or s3://bucket/prefix")
    parser.add_argument("--name", default=DEFAULT_PIPELINE_NAME, help="Pipeline name")
    parser.add_argument(
        "--stages",
        help=f"Comma-separated stages to run; any of {','.join(STAGE_NAMES)}",
    )
    parser.add_argument("--resume", action="store_true", help="Resume from the checkpoint")
    parser.add_argument(
        "--override-drift",
        action="store_true",
        help="Discard a checkpoint whose configuration differs",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate and print the plan")
    _add_ingest_arguments(parser)
    _add_inference_arguments(parser)
    _add_mapping_arguments(parser)
    parser.add_argument("--target-schema", help="Target schema file for the map stage")
    parser.add_argument("--doc-context", help="Documentation file given to refinement")
    parser.add_argument(
        "--temperature",
        type=float,
        default=DEFAULT_LLM_TEMPERATURE,
        help="Refinement sampling temperature",
    )
    parser.add_argument("--output", help="Export directory or s3://bucket/prefix")


def _add_ingest_command(subparsers: Any) -> None:
    """Register ingest subcommand."""
    parser = subparsers.add_parser("ingest", help="Ingest a local path or S3 prefix")
    parser.add_argument("source", help="Source file, directory, or s3://bucket/prefix")
    _add_ingest_arguments(parser)


def _add_infer_command(subparsers: Any) -> None:
    """Register infer subcommand."""
    parser = subparsers.add_parser("infer", help="Infer a schema from staged records")
    parser.add_argument("--partition-key", help="Only sample this partition")
    _add_inference_arguments(parser)
    parser.add_argument(
        "--output-format",
        default=DEFAULT_OUTPUT_FORMAT,
        choices=SUPPORTED_OUTPUT_FORMATS,
        help="Schema output format",
    )
    parser.add_argument("--output", help="Write the schema to this file")


def _add_map_command(subparsers: Any) -> None:
    """Register map subcommand."""
    parser = subparsers.add_parser("map", help="Map a source schema onto a target schema")
    parser.add_argument("source_schema", help="Source schema file")
    parser.add_argument("target_schema", help="Target schema file")
    _add_mapping_arguments(parser)
    parser.add_argument("--output", help="Write the mapping document to this file")
    parser.add_argument("--transform-output", help="Write the transform script to this file")


def _add_batches_command(subparsers: Any) -> None:
    """Register batches subcommand."""
    parser = subparsers.add_parser("batches", help="List staging batches")
    parser.add_argument(
        "--status",
        choices=("pending", "committed", "failed"),
        help="Only list batches with this status",
    )


def _add_query_command(subparsers: Any) -> None:
    """Register query subcommand."""
    parser = subparsers.add_parser("query", help="Filter committed staging records")
    parser.add_argument("filter", nargs="?", default="", help="Lance filter expression")
    parser.add_argument(
        "--partitions",
        action="store_true",
        help="Print committed record counts per partition instead",
    )


def _add_ingest_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--pattern", default=DEFAULT_SOURCE_PATTERN, help="Glob under source")
    parser.add_argument(
        "--partition-key",
        default=DEFAULT_PARTITION_KEY,
        help="Partition label for staged records",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_INGEST_BATCH_SIZE,
        help="Files per staging batch",
    )
    parser.add_argument(
        "--dedup",
        default=DEFAULT_DEDUP_STRATEGY,
        choices=SUPPORTED_DEDUP_STRATEGIES,
        help="File-level deduplication strategy",
    )


def _add_inference_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--sample-size",
        type=int,
        default=DEFAULT_SAMPLE_SIZE,
        help="Records sampled for inference; 0 samples all",
    )
    parser.add_argument(
        "--min-frequency",
        type=float,
        default=DEFAULT_MIN_FREQUENCY,
        help="Presence ratio at which a field becomes required",
    )
    parser.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, help="Deepest path")
    parser.add_argument(
        "--max-examples",
        type=int,
        default=DEFAULT_MAX_EXAMPLES,
        help="Example values kept per field",
    )
    parser.add_argument("--no-formats", action="store_true", help="Skip string format detection")


def _add_mapping_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--min-similarity",
        type=float,
        default=DEFAULT_MIN_SIMILARITY,
        help="Lowest name similarity accepted for fuzzy matches",
    )
    parser.add_argument("--no-fuzzy", action="store_true", help="Only match names exactly")
    parser.add_argument(
        "--case-insensitive",
        action="store_true",
        help="Ignore case when matching names exactly",
    )
    parser.add_argument(
        "--transform",
        default=DEFAULT_TRANSFORM_KIND,
        choices=SUPPORTED_TRANSFORM_KINDS,
        help="Transform script kind",
    )
    parser.add_argument(
        "--output-format",
        default=DEFAULT_OUTPUT_FORMAT,
        choices=SUPPORTED_OUTPUT_FORMATS,
        help="Schema and mapping output format",
    )
