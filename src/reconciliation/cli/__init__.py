"""
Command-line interface for paged table reconciliation.

Available commands:
- compare: Compare one configured table
- compare-all: Compare every configured table in parallel
- schedule: Run compare-all on a cron or interval schedule
- report: Render a saved JSON report
"""

import logging
import sys

from utils.logging import configure_from_env, setup_logging
from utils.metrics import MetricsPublisher
from utils.tracing import initialize_tracing, shutdown_tracing

from ..errors import ConfigurationError
from .commands import (
    EXIT_ERROR,
    cmd_compare,
    cmd_compare_all,
    cmd_report,
    cmd_schedule,
    write_report,
)
from .parser import create_parser

logger = logging.getLogger(__name__)

COMMANDS = {
    'compare': cmd_compare,
    'compare-all': cmd_compare_all,
    'schedule': cmd_schedule,
    'report': cmd_report,
}


def _setup_logging(args) -> None:
    if args.log_level or args.log_json or args.log_file:
        setup_logging(
            level=args.log_level or "INFO",
            log_file=args.log_file,
            json_format=args.log_json,
        )
    else:
        configure_from_env()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the reconcile CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_ERROR

    _setup_logging(args)

    if getattr(args, 'metrics_port', None):
        try:
            MetricsPublisher(port=args.metrics_port).start()
        except RuntimeError as e:
            logger.error(str(e))
            return EXIT_ERROR

    initialize_tracing()
    try:
        return COMMANDS[args.command](args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR
    finally:
        shutdown_tracing()


__all__ = [
    'main',
    'create_parser',
    'cmd_compare',
    'cmd_compare_all',
    'cmd_schedule',
    'cmd_report',
    'write_report',
]


if __name__ == '__main__':
    sys.exit(main())
