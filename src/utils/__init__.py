"""
Utility modules for split-update

Provides:
- db_pool: thread-safe MySQL connection pooling
- logging: console/JSON logging setup and context logger
- tracing: OpenTelemetry spans
- sql_safety: MySQL identifier validation and quoting
- vault_client: HashiCorp Vault integration for credentials
"""

__version__ = "1.0.0"
__all__ = ["db_pool", "logging", "tracing", "sql_safety", "vault_client"]
