"""
Reconciliation scheduler module

Cron or interval scheduling of compare-all runs using APScheduler.
"""

from .jobs import compare_all_job
from .scheduler import ReconciliationScheduler, parse_cron_expression

__all__ = [
    'ReconciliationScheduler',
    'compare_all_job',
    'parse_cron_expression',
]
