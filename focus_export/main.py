"""
focus-export: monthly FOCUS billing exports for HPC compute and storage.

    focus-export slurm  --period 2025-01
    focus-export isilon --period 2025-01 --whatif
    focus-export slurm  --period 2025-01 --sacct-file sacct-2025-01.txt
"""

import argparse
import sys
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import structlog
from pydantic import ValidationError

from focus_export.schemas.billing import RunSummary, UsageKind
from focus_export.services.adapters.factory import AdapterFactory
from focus_export.services.costs.accumulator import RunAccumulator
from focus_export.services.costs.aggregator import BillingAggregator
from focus_export.services.costs.config_loader import load_metadata, load_rate_config
from focus_export.services.costs.metadata import MetadataResolver
from focus_export.services.costs.period import BillingPeriod
from focus_export.services.export.analysis import render_analysis_json
from focus_export.services.export.focus_csv import render_focus_csv
from focus_export.services.export.summary import SummaryFormat, render_summary
from focus_export.services.export.writer import artifact_path, write_artifact
from focus_export.shared.core.config import Settings, get_settings
from focus_export.shared.core.exceptions import AdapterError, ConfigurationError
from focus_export.shared.core.logging import bind_run_context, setup_logging

logger = structlog.get_logger()

SOURCES = {
    "slurm": UsageKind.COMPUTE,
    "isilon": UsageKind.STORAGE,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focus-export",
        description="Export monthly HPC usage as FOCUS billing records.",
    )
    subparsers = parser.add_subparsers(dest="source", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--period", help="Billing period YYYY-MM (default: previous month)")
    common.add_argument("--config-dir", help="Directory holding the pricing and metadata JSON files")
    common.add_argument("--output-dir", help="Directory the artifact is written to")
    common.add_argument(
        "--whatif",
        action="store_true",
        help="Write a JSON cost analysis instead of the FOCUS CSV",
    )
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    common.add_argument(
        "--summary-format",
        choices=[f.value for f in SummaryFormat],
        default=SummaryFormat.TEXT.value,
        help="Format of the run summary printed to stderr",
    )

    slurm = subparsers.add_parser("slurm", parents=[common], help="Slurm compute usage (sacct)")
    slurm.add_argument(
        "--sacct-file",
        dest="source_file",
        help="Captured `sacct --parsable2 --noheader` output instead of running sacct",
    )

    isilon = subparsers.add_parser("isilon", parents=[common], help="Isilon storage quotas (isi)")
    isilon.add_argument(
        "--quota-file",
        dest="source_file",
        help="Captured `isi quota quotas list --format=json` output instead of running isi",
    )
    return parser


def run_export(args: argparse.Namespace, settings: Settings) -> Tuple[Path, RunSummary]:
    """One billing pass: config, usage, aggregation, artifact."""
    kind = SOURCES[args.source]
    period = BillingPeriod.parse(args.period) if args.period else BillingPeriod.previous()
    config_dir = Path(args.config_dir or settings.CONFIG_DIR)
    output_dir = Path(args.output_dir or settings.OUTPUT_DIR)

    bind_run_context(run_id=uuid.uuid4().hex[:12], usage_kind=kind.value, period=period.label)
    logger.info("billing_export_started", source=args.source, whatif=args.whatif)

    # All configuration is validated before any usage is read
    rate_config = load_rate_config(kind, config_dir)
    resolver = MetadataResolver(load_metadata(kind, config_dir))

    adapter = AdapterFactory.get_adapter(kind, settings, source_file=args.source_file)
    adapter.verify_dependencies()

    accumulator = RunAccumulator()
    usage_records = adapter.collect(period, rate_config, accumulator)

    result = BillingAggregator(rate_config, resolver, period).run(usage_records, accumulator)

    if args.whatif:
        text = render_analysis_json(result, period, kind)
    else:
        text = render_focus_csv(result.records)

    path = write_artifact(artifact_path(output_dir, args.source, period, args.whatif), text)
    logger.info(
        "billing_export_complete",
        artifact=str(path),
        records=result.summary.record_count,
        warnings=len(result.summary.warnings),
    )
    return path, result.summary


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"Invalid environment configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(verbose=args.verbose)

    try:
        path, summary = run_export(args, settings)
    except (ConfigurationError, AdapterError) as e:
        logger.error("billing_export_failed", error=e.message, code=e.code, details=e.details)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(render_summary(summary, SummaryFormat(args.summary_format), artifact=path), file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
