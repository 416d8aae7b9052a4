"""
Process settings for kubeclean
"""

import os
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


@dataclass
class Settings:
    """Settings that control how the controller runs (not what it cleans)"""

    # Cleanup rules file, hot-reloaded while running
    cleanup_config_path: str = "/etc/kubeclean/config.yaml"

    # Kubernetes configuration
    kube_config_path: Optional[str] = None

    # Scheduling configuration
    run_interval_seconds: int = 600
    config_watch_interval_seconds: int = 30
    run_timeout_seconds: int = 600

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"

    # Execution control
    mock_mode: bool = False
    test_mode: bool = False
    metrics_port: int = 0

    def __post_init__(self):
        """Override defaults with environment variables if present"""
        self.cleanup_config_path = os.getenv("CLEANUP_CONFIG_PATH", self.cleanup_config_path)
        self.kube_config_path = os.getenv("KUBE_CONFIG_PATH", self.kube_config_path)
        self.run_interval_seconds = int(os.getenv("RUN_INTERVAL_SECONDS", self.run_interval_seconds))
        self.config_watch_interval_seconds = int(
            os.getenv("CONFIG_WATCH_INTERVAL_SECONDS", self.config_watch_interval_seconds)
        )
        self.run_timeout_seconds = int(os.getenv("RUN_TIMEOUT_SECONDS", self.run_timeout_seconds))
        self.log_level = os.getenv("LOG_LEVEL", self.log_level)
        self.log_format = os.getenv("LOG_FORMAT", self.log_format)
        self.mock_mode = _env_bool("MOCK_MODE", self.mock_mode)
        self.test_mode = _env_bool("TEST_MODE", self.test_mode)
        self.metrics_port = int(os.getenv("METRICS_PORT", self.metrics_port))
