"""
Run configuration: sources, dialect overrides and per-table settings.
"""

from .loader import (
    ReconcileConfig,
    SecretResolver,
    SourceConfig,
    load_config,
    parse_config,
)

__all__ = [
    "ReconcileConfig",
    "SourceConfig",
    "SecretResolver",
    "load_config",
    "parse_config",
]
