"""
Tests for config hot reload
"""

import os
from threading import Event

import pytest
from structlog.testing import capture_logs

from kubeclean.cleanup_config import ConfigStore, load_config_from_file
from kubeclean.config_watcher import ConfigWatcher

VALID_CONFIG = """
dryRun: {dry_run}
batchSize: {batch_size}
podCleanupConfig:
  enabled: true
  rules:
    - name: succeeded
      enabled: true
      phase: Succeeded
      ttl: 1h
"""

INVALID_CONFIG = """
podCleanupConfig:
  enabled: true
  rules:
    - enabled: true
      ttl: 1h
"""


def write_config(path, content, mtime_ns):
    """Write content and pin the file's mtime so polls are deterministic"""
    path.write_text(content)
    os.utime(path, ns=(mtime_ns, mtime_ns))


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    write_config(path, VALID_CONFIG.format(dry_run="false", batch_size=5), 1_000_000_000_000)
    return path


@pytest.fixture
def store(config_path):
    return ConfigStore(load_config_from_file(str(config_path)))


@pytest.fixture
def watcher(config_path, store):
    return ConfigWatcher(str(config_path), store, interval=0.01, stop_event=Event())


def test_unchanged_file_is_not_reloaded(watcher, store):
    before = store.current

    assert watcher.poll() is False
    assert store.current is before


def test_valid_change_is_applied(config_path, watcher, store):
    write_config(config_path, VALID_CONFIG.format(dry_run="true", batch_size=20), 2_000_000_000_000)

    with capture_logs() as logs:
        assert watcher.poll() is True

    assert store.current.dry_run is True
    assert store.current.batch_size == 20
    assert watcher.last_mtime == 2_000_000_000_000
    assert any(entry["event"] == "Configuration reloaded successfully" for entry in logs)


def test_invalid_change_keeps_previous_config_and_retries(config_path, watcher, store):
    before = store.current
    write_config(config_path, INVALID_CONFIG, 2_000_000_000_000)

    with capture_logs() as logs:
        assert watcher.poll() is False
        assert watcher.poll() is False
        assert watcher.poll() is False

    assert store.current is before
    assert store.current.batch_size == 5
    assert watcher.last_mtime == 1_000_000_000_000
    assert len([entry for entry in logs if entry["event"] == "Failed to reload config file"]) == 3

    write_config(config_path, VALID_CONFIG.format(dry_run="true", batch_size=7), 3_000_000_000_000)
    assert watcher.poll() is True
    assert store.current.batch_size == 7


def test_missing_file_keeps_config(config_path, watcher, store):
    before = store.current
    config_path.unlink()

    with capture_logs() as logs:
        assert watcher.poll() is False

    assert store.current is before
    assert [entry["event"] for entry in logs] == ["Failed to stat config file"]


def test_file_created_after_start_is_loaded(tmp_path, store):
    path = tmp_path / "late.yaml"
    watcher = ConfigWatcher(str(path), store, interval=0.01, stop_event=Event())
    assert watcher.last_mtime is None

    write_config(path, VALID_CONFIG.format(dry_run="true", batch_size=3), 1_000_000_000_000)

    assert watcher.poll() is True
    assert store.current.batch_size == 3


def test_run_exits_when_stopped(watcher):
    thread = watcher.start()
    watcher.stop_event.set()
    thread.join(timeout=2)

    assert not thread.is_alive()


def test_run_polls_until_stopped(config_path, store):
    stop_event = Event()
    watcher = ConfigWatcher(str(config_path), store, interval=0.01, stop_event=stop_event)
    write_config(config_path, VALID_CONFIG.format(dry_run="true", batch_size=9), 2_000_000_000_000)

    thread = watcher.start()
    try:
        for _ in range(200):
            if store.current.batch_size == 9:
                break
            stop_event.wait(0.01)
    finally:
        stop_event.set()
        thread.join(timeout=2)

    assert store.current.batch_size == 9


def test_out_of_range_ttl_change_is_rejected_and_retried(config_path, watcher, store):
    before = store.current
    write_config(
        config_path,
        VALID_CONFIG.format(dry_run="false", batch_size=5).replace("ttl: 1h", "ttl: 99999999999h"),
        2_000_000_000_000,
    )

    assert watcher.poll() is False
    assert watcher.poll() is False
    assert store.current is before
    assert watcher.last_mtime == 1_000_000_000_000


def test_run_keeps_polling_after_unexpected_error(config_path, store, monkeypatch):
    stop_event = Event()
    watcher = ConfigWatcher(str(config_path), store, interval=0.01, stop_event=stop_event)
    calls = []

    def failing_poll():
        calls.append(1)
        if len(calls) >= 3:
            stop_event.set()
        raise RuntimeError("boom")

    monkeypatch.setattr(watcher, "poll", failing_poll)

    with capture_logs() as logs:
        thread = watcher.start()
        thread.join(timeout=2)

    assert not thread.is_alive()
    assert len(calls) == 3
    assert len([entry for entry in logs if entry["event"] == "Config watcher poll failed"]) == 3
