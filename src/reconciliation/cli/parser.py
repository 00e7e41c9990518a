"""
Command-line argument parser configuration.

This module sets up the argument parser for the reconcile CLI tool,
defining all commands and their options.
"""

import argparse


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--config',
        required=True,
        help='YAML configuration file (sources, tables, dialects)'
    )
    parser.add_argument(
        '--differences-file',
        help='Append every difference as a JSON line to this file'
    )
    parser.add_argument(
        '--state-dir',
        help='Directory for per-table checkpoints (enables checkpointing)'
    )
    parser.add_argument(
        '--resume',
        action='store_true',
        help='Start each table after its last checkpointed page (needs --state-dir)'
    )
    parser.add_argument(
        '--metrics-port',
        type=int,
        help='Expose Prometheus metrics on this port while running'
    )


def _add_output_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--format',
        choices=['console', 'json', 'csv'],
        default='console',
        help='Report format (default: console)'
    )
    parser.add_argument(
        '--output',
        help='Output file path for the report (required for json and csv)'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='reconcile',
        description="Page-by-page reconciliation of tables between a primary and a secondary database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Compare one table and print the report
  reconcile compare --config reconcile.yaml --table player

  # Compare every configured table, saving a JSON report and every difference
  reconcile compare-all --config reconcile.yaml --format json --output report.json \\
      --differences-file differences.jsonl

  # Resume tables that aborted part-way through
  reconcile compare-all --config reconcile.yaml --state-dir ./state --resume

  # Compare all tables every 6 hours
  reconcile schedule --config reconcile.yaml --cron "0 */6 * * *" --output-dir ./reports

  # Render a saved report as CSV
  reconcile report --input report.json --format csv --output differences.csv

Exit codes: 0 = no differences, 1 = differences found, 2 = a table failed or bad configuration
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: LOG_LEVEL or INFO)'
    )
    parser.add_argument(
        '--log-json',
        action='store_true',
        help='Emit JSON log lines'
    )
    parser.add_argument(
        '--log-file',
        help='Also log to this file (rotated)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========== Compare command ==========
    compare_parser = subparsers.add_parser('compare', help='Compare one table')
    compare_parser.add_argument(
        '--table',
        required=True,
        help='Configured table name'
    )
    _add_common_options(compare_parser)
    _add_output_options(compare_parser)

    # ========== Compare-all command ==========
    compare_all_parser = subparsers.add_parser(
        'compare-all', help='Compare all configured tables in parallel'
    )
    compare_all_parser.add_argument(
        '--tables',
        help='Comma-separated subset of configured tables (default: all)'
    )
    _add_common_options(compare_all_parser)
    _add_output_options(compare_all_parser)

    # ========== Schedule command ==========
    schedule_parser = subparsers.add_parser(
        'schedule', help='Run compare-all periodically'
    )
    trigger = schedule_parser.add_mutually_exclusive_group(required=True)
    trigger.add_argument(
        '--cron',
        help='Cron expression (e.g., "0 */6 * * *" for every 6 hours)'
    )
    trigger.add_argument(
        '--interval',
        type=int,
        help='Interval in seconds'
    )
    schedule_parser.add_argument(
        '--tables',
        help='Comma-separated subset of configured tables (default: all)'
    )
    schedule_parser.add_argument(
        '--output-dir',
        default='./reconciliation_reports',
        help='Directory to save reports (default: ./reconciliation_reports)'
    )
    _add_common_options(schedule_parser)

    # ========== Report command ==========
    report_parser = subparsers.add_parser('report', help='Render a saved JSON report')
    report_parser.add_argument(
        '--input',
        required=True,
        help='Input JSON report file'
    )
    _add_output_options(report_parser)

    return parser
