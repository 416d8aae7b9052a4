#!/usr/bin/env python3
"""
kubeclean - Main Application
"""

import signal
import sys
from threading import Event

from kubeclean.cleanup_config import ConfigStore, load_config_from_file
from kubeclean.config_watcher import ConfigWatcher
from kubeclean.errors import KubecleanError
from kubeclean.kubernetes_client import KubernetesClient
from kubeclean.logger import get_logger, setup_logging
from kubeclean.metrics import start_metrics_server
from kubeclean.pod_cleaner import PodCleaner
from kubeclean.scheduler import RunContext, run_pod_clean_job
from kubeclean.settings import Settings


def install_signal_handlers(stop_event):
    def handle(signum, frame):
        get_logger("main").info("Received shutdown signal", signal=signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def main():
    """Main application entry point"""
    settings = Settings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("main")

    logger.info("kubeclean starting...", config_path=settings.cleanup_config_path)

    if settings.mock_mode:
        logger.info("Running in MOCK MODE - no actual Kubernetes operations")

    try:
        config_store = ConfigStore(load_config_from_file(settings.cleanup_config_path))
        k8s_client = KubernetesClient(use_mock=settings.mock_mode, kube_config_path=settings.kube_config_path)
    except KubecleanError as e:
        logger.error("Application failed to start", error=str(e))
        return 1

    cleaner = PodCleaner(k8s_client, config_store)
    logger.info("Pod cleaner initialized successfully")

    # Test mode - run once and exit (for local testing)
    if settings.test_mode:
        logger.info("Running in test mode - single execution")
        cleaner.run_cleanup(RunContext(timeout=settings.run_timeout_seconds))
        return 0

    start_metrics_server(settings.metrics_port)

    stop_event = Event()
    install_signal_handlers(stop_event)

    watcher = ConfigWatcher(
        settings.cleanup_config_path,
        config_store,
        settings.config_watch_interval_seconds,
        stop_event,
    )
    watcher_thread = watcher.start()

    run_pod_clean_job(
        cleaner,
        settings.run_interval_seconds,
        stop_event,
        run_timeout=settings.run_timeout_seconds,
    )

    watcher_thread.join(timeout=5)
    logger.info("kubeclean stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
