"""
Prometheus metrics for split-update execution.

This module defines metrics to track range transaction throughput,
failures and retries.
"""

import logging

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

try:
    TRANSACTIONS_PROCESSED = Counter(
        "split_update_transactions_total",
        "Range transactions executed",
        ["table", "status"],  # succeeded, failed, dryrun
        registry=REGISTRY
    )
except ValueError:
    # Metric already registered, get existing one
    TRANSACTIONS_PROCESSED = REGISTRY._names_to_collectors.get("split_update_transactions_total")

try:
    ROWS_AFFECTED = Counter(
        "split_update_rows_affected_total",
        "Rows changed by committed range transactions",
        ["table"],
        registry=REGISTRY
    )
except ValueError:
    ROWS_AFFECTED = REGISTRY._names_to_collectors.get("split_update_rows_affected_total")

try:
    RETRY_ATTEMPTS = Counter(
        "split_update_retry_attempts_total",
        "Retry passes over failed ranges",
        ["table"],
        registry=REGISTRY
    )
except ValueError:
    RETRY_ATTEMPTS = REGISTRY._names_to_collectors.get("split_update_retry_attempts_total")

try:
    TRANSACTION_TIME = Histogram(
        "split_update_transaction_seconds",
        "Time to execute and commit one range transaction",
        ["table"],
        buckets=[0.01, 0.05, 0.1, 0.5, 1, 5, 10, 30, 60, 300],
        registry=REGISTRY
    )
except ValueError:
    TRANSACTION_TIME = REGISTRY._names_to_collectors.get("split_update_transaction_seconds")

try:
    ACTIVE_WORKERS = Gauge(
        "split_update_active_workers",
        "Range transactions currently executing",
        registry=REGISTRY
    )
except ValueError:
    ACTIVE_WORKERS = REGISTRY._names_to_collectors.get("split_update_active_workers")


def start_metrics_server(port: int) -> None:
    """Expose the default registry over HTTP on the given port."""
    start_http_server(port)
    logger.info(f"Prometheus metrics available on :{port}/metrics")
