"""
Scheduled job: compare every configured table and save a timestamped report.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from ..checkpoint import CheckpointStore
from ..config import load_config
from ..driver import open_driver
from ..report import JsonLinesReportSink, export_report_json, generate_report

logger = logging.getLogger(__name__)


def compare_all_job(
    config_path: str,
    output_dir: str,
    tables: list[str] | None = None,
    differences_file: str | None = None,
    state_dir: str | None = None,
    resume: bool = False,
) -> Path:
    """
    Run one compare-all pass and write its report.

    The configuration is reloaded on every run so edits to the table list
    apply from the next fire time.

    Args:
        config_path: YAML configuration file
        output_dir: Directory receiving ``reconcile_<timestamp>.json`` reports
        tables: Subset of configured tables (default: all)
        differences_file: Optional JSON-lines file each difference is appended to
        state_dir: Checkpoint directory; None disables checkpoints
        resume: Continue aborted tables from their checkpoint

    Returns:
        Path of the written report
    """
    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    output_path = Path(output_dir) / f"reconcile_{timestamp}.json"
    Path(output_dir).mkdir(parents=True, exist_ok=True)

    logger.info(f"Starting scheduled reconciliation at {timestamp}")

    try:
        config = load_config(config_path)
        extra_sinks = [JsonLinesReportSink(differences_file)] if differences_file else []
        checkpoints = CheckpointStore(state_dir) if state_dir else None

        with open_driver(config, extra_sinks, checkpoints, resume) as (driver, collector):
            results = driver.compare_all(tables)
            report = generate_report(results, collector.records)

        export_report_json(report, str(output_path))

    except Exception as e:
        logger.error(f"Scheduled reconciliation failed: {e}", exc_info=True)
        raise

    logger.info(f"Reconciliation complete. Report saved to {output_path}")
    logger.info(
        f"Status: {report['status']} ({report['tables_matched']} matched, "
        f"{report['tables_mismatched']} mismatched, {report['tables_failed']} failed)"
    )
    return output_path
