"""
Prometheus metrics for kubeclean
"""

from prometheus_client import Counter, start_http_server

from kubeclean.logger import get_logger

logger = get_logger(__name__)

PODS_DELETED = Counter(
    "kubeclean_pods_deleted_total",
    "Total number of pods deleted",
    ["rule"],
)

PODS_DRY_RUN = Counter(
    "kubeclean_pods_dry_run_total",
    "Total number of pods that would have been deleted in dry-run mode",
    ["rule"],
)

POD_DELETE_FAILURES = Counter(
    "kubeclean_pod_delete_failures_total",
    "Total number of failed pod deletions",
    ["rule"],
)

CONFIG_RELOADS = Counter(
    "kubeclean_config_reloads_total",
    "Cleanup config reload attempts",
    ["result"],
)

CLEANUP_RUNS = Counter(
    "kubeclean_cleanup_runs_total",
    "Total number of cleanup runs started",
)


def start_metrics_server(port: int) -> bool:
    """Expose metrics over HTTP; a port of 0 disables the exporter"""
    if port <= 0:
        logger.info("Metrics exporter disabled")
        return False

    start_http_server(port)
    logger.info("Metrics exporter started", port=port)
    return True
