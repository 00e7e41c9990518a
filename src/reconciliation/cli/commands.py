"""
CLI command implementations.

Each command returns the process exit code:
0 when every table finished without differences, 1 when differences
were found, 2 when a table aborted or the configuration is invalid.
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from ..checkpoint import CheckpointStore
from ..config import load_config
from ..driver import open_driver
from ..errors import ConfigurationError
from ..report import (
    JsonLinesReportSink,
    ReportStatus,
    export_report_csv,
    export_report_json,
    format_report_console,
    generate_report,
)
from ..scheduler import ReconciliationScheduler, compare_all_job

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DIFFERENCES = 1
EXIT_ERROR = 2


def exit_code_for(report: dict[str, Any]) -> int:
    if report["status"] == ReportStatus.ERROR:
        return EXIT_ERROR
    if report["status"] == ReportStatus.FAIL:
        return EXIT_DIFFERENCES
    return EXIT_OK


def _split_tables(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [name.strip() for name in value.split(',') if name.strip()]


def _checkpoints(args: argparse.Namespace) -> CheckpointStore | None:
    if args.resume and not args.state_dir:
        raise ConfigurationError("--resume needs --state-dir")
    return CheckpointStore(args.state_dir) if args.state_dir else None


def write_report(report: dict[str, Any], output_format: str, output: str | None) -> None:
    """Print or save a report in the requested format."""
    if output_format == "console":
        text = format_report_console(report)
        if output:
            Path(output).write_text(text + "\n")
            logger.info(f"Report saved to {output}")
        else:
            print(text)
        return

    if not output:
        raise ConfigurationError(f"--output is required for {output_format} format")

    Path(output).parent.mkdir(parents=True, exist_ok=True)
    if output_format == "json":
        export_report_json(report, output)
    else:
        export_report_csv(report, output)
    logger.info(f"Report saved to {output}")


def _run(args: argparse.Namespace, tables: list[str] | None, single: bool) -> int:
    config = load_config(args.config)
    checkpoints = _checkpoints(args)
    extra_sinks = [JsonLinesReportSink(args.differences_file)] if args.differences_file else []

    with open_driver(config, extra_sinks, checkpoints, args.resume) as (driver, collector):
        if single:
            results = [driver.compare_table(tables[0])]
        else:
            results = driver.compare_all(tables)
        report = generate_report(results, collector.records)

    write_report(report, args.format, args.output)

    code = exit_code_for(report)
    if code == EXIT_DIFFERENCES:
        logger.warning(f"Reconciliation found {report['total_differences']} difference(s)")
    elif code == EXIT_ERROR:
        logger.error(f"Reconciliation failed for {report['tables_failed']} table(s)")
    else:
        logger.info("Reconciliation completed successfully")
    return code


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare one table."""
    logger.info(f"Starting reconciliation of table {args.table}")
    return _run(args, [args.table], single=True)


def cmd_compare_all(args: argparse.Namespace) -> int:
    """Compare all configured tables (or the --tables subset)."""
    logger.info("Starting reconciliation of all configured tables")
    return _run(args, _split_tables(args.tables), single=False)


def cmd_schedule(args: argparse.Namespace) -> int:
    """Schedule periodic compare-all runs; blocks until interrupted."""
    # Fail on a broken configuration now rather than at the first fire time
    load_config(args.config)
    _checkpoints(args)

    Path(args.output_dir).mkdir(parents=True, exist_ok=True)
    job_kwargs = {
        "config_path": args.config,
        "output_dir": args.output_dir,
        "tables": _split_tables(args.tables),
        "differences_file": args.differences_file,
        "state_dir": args.state_dir,
        "resume": args.resume,
    }

    scheduler = ReconciliationScheduler()
    if args.cron:
        scheduler.add_cron_job(compare_all_job, args.cron, "reconciliation_job", **job_kwargs)
    else:
        scheduler.add_interval_job(
            compare_all_job, args.interval, "reconciliation_job", **job_kwargs
        )

    logger.info("Starting scheduler (press Ctrl+C to stop)")
    scheduler.start()
    return EXIT_OK


def cmd_report(args: argparse.Namespace) -> int:
    """Render a previously saved JSON report."""
    logger.info(f"Loading reconciliation report from {args.input}")

    try:
        with open(args.input) as f:
            report = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read report {args.input}: {e}")
        return EXIT_ERROR

    write_report(report, args.format, args.output)
    return exit_code_for(report)
