"""
Hot reload of the cleanup rule file
"""

import os
import threading

from kubeclean import metrics
from kubeclean.cleanup_config import load_config_from_file
from kubeclean.errors import CleanupConfigError
from kubeclean.logger import get_logger

logger = get_logger(__name__)


class ConfigWatcher:
    """Polls the config file and swaps in a new config when it changes.

    A changed file that fails to load leaves the current config in place and
    is retried on every poll until it loads.
    """

    def __init__(self, path, config_store, interval, stop_event):
        self.path = path
        self.config_store = config_store
        self.interval = interval
        self.stop_event = stop_event
        self.last_mtime = self._stat_mtime()

    def _stat_mtime(self):
        try:
            return os.stat(self.path).st_mtime_ns
        except OSError:
            return None

    def poll(self):
        """Check the file once; returns True if the config was replaced"""
        try:
            mtime = os.stat(self.path).st_mtime_ns
        except OSError as e:
            logger.error("Failed to stat config file", path=self.path, error=str(e))
            return False

        if self.last_mtime is not None and mtime <= self.last_mtime:
            return False

        logger.info("Configuration file changed, reloading...", path=self.path)
        try:
            new_config = load_config_from_file(self.path)
        except CleanupConfigError as e:
            logger.error("Failed to reload config file", path=self.path, error=str(e))
            metrics.CONFIG_RELOADS.labels(result="failure").inc()
            return False

        self.config_store.replace(new_config)
        self.last_mtime = mtime
        metrics.CONFIG_RELOADS.labels(result="success").inc()
        logger.info("Configuration reloaded successfully", path=self.path)
        return True

    def run(self):
        logger.info("Watching config file", path=self.path, interval_seconds=self.interval)
        while not self.stop_event.wait(self.interval):
            try:
                self.poll()
            except Exception as e:
                logger.error("Config watcher poll failed", path=self.path, error=str(e), exc_info=True)
        logger.info("Config watcher stopped", path=self.path)

    def start(self):
        """Run the watcher on a background thread"""
        thread = threading.Thread(target=self.run, name="config-watcher", daemon=True)
        thread.start()
        return thread
