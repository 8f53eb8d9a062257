"""Pipeline-file CLI command wiring.

This module registers the run-file subcommand and delegates execution to
the SDK client, which shares the pipeline-file loader with Python callers.
"""

from __future__ import annotations

import argparse
from typing import Any

from cli.report_output import print_pipeline_report
from core.constants import EXIT_OK
from pipeline.client import OdmClient


def add_pipeline_file_command(subparsers: Any) -> None:
    """Register run-file subcommand."""
    parser = subparsers.add_parser(
        "run-file",
        help="Run a pipeline described by a YAML pipeline file",
    )
    parser.add_argument("spec_file", help="Path to YAML pipeline file")
    parser.add_argument("--resume", action="store_true", help="Resume from the checkpoint")
    parser.add_argument(
        "--override-drift",
        action="store_true",
        help="Discard a checkpoint whose configuration differs",
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate and print the plan")


def run_pipeline_file_command(client: OdmClient, args: argparse.Namespace) -> int:
    """Handle run-file command invocation."""
    report = client.run_pipeline_file(
        args.spec_file,
        resume=args.resume,
        override_drift=args.override_drift,
        dry_run=args.dry_run,
    )
    print_pipeline_report(report)
    return EXIT_OK
