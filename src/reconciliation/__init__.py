"""
Paged table reconciliation between a primary and a secondary database

Components:
- paged: dialect resolution, page fetching, indexing, diffing and the page loop
- driver: compare one table or all configured tables
- config: YAML configuration (sources, tables, dialect overrides)
- sources: pooled connection provider for both sides
- report: difference sinks and run reports
- parallel: bounded thread pool for compare-all runs
- checkpoint: resume state per table
- scheduler: cron/interval compare-all runs
- cli: the ``reconcile`` command

Usage:
    from reconciliation.config import load_config
    from reconciliation.driver import open_driver

    config = load_config("reconcile.yaml")
    with open_driver(config) as (driver, collector):
        result = driver.compare_table("player")
"""

__version__ = "1.0.0"
__all__ = [
    "paged",
    "driver",
    "config",
    "sources",
    "report",
    "parallel",
    "checkpoint",
    "scheduler",
    "cli",
]
