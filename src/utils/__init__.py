"""
Utility modules for the paged table reconciler

Provides:
- logging: structured/console logging setup
- tracing: OpenTelemetry spans around runs and page fetches
- metrics: Prometheus metric registration and publishing
- db_pool: per-side database connection pools
- retry: exponential backoff for transient database errors
- vault_client: HashiCorp Vault integration for source credentials
"""

__version__ = "1.0.0"
__all__ = ["logging", "tracing", "metrics", "db_pool", "retry", "vault_client"]
