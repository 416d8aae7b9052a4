"""
Shared fixtures for kubeclean tests
"""

from datetime import datetime, timedelta, timezone

import pytest
from kubernetes import client

from kubeclean.cleanup_config import (
    ALL_NAMESPACES,
    CleanupConfig,
    ConfigStore,
    LabelSelector,
    PodCleanRule,
    PodCleanupConfig,
)
from kubeclean.pod_cleaner import PodMatcher

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_pod(name, namespace="default", phase="Succeeded", age=timedelta(hours=2),
             labels=None, annotations=None, now=NOW):
    """Build a V1Pod created `age` before `now`"""
    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=labels if labels is not None else {"app": "test"},
            annotations=annotations,
            creation_timestamp=now - age if age is not None else None,
        ),
        status=client.V1PodStatus(phase=phase),
    )


def make_rule(name="test-rule", phase="Succeeded", ttl=timedelta(hours=1),
              match_labels=None, namespaces=None, enabled=True):
    return PodCleanRule(
        name=name,
        enabled=enabled,
        selector=LabelSelector(match_labels=match_labels if match_labels is not None else {"app": "test"}),
        phase=phase,
        ttl=ttl,
        namespaces=namespaces or [],
    )


def make_config(*rules, dry_run=False, batch_size=10, enabled=True):
    return CleanupConfig(
        dry_run=dry_run,
        batch_size=batch_size,
        pod_cleanup_config=PodCleanupConfig(enabled=enabled, rules=list(rules)),
    )


class FakeKubernetesClient:
    """In-memory stand-in for KubernetesClient"""

    def __init__(self, pods=None, fail_namespaces=(), fail_deletes=()):
        self.pods = list(pods or [])
        self.fail_namespaces = set(fail_namespaces)
        self.fail_deletes = set(fail_deletes)
        self.list_calls = []
        self.delete_calls = []
        self.delete_timeouts = []

    @staticmethod
    def _matches(pod, label_selector):
        if not label_selector:
            return True
        labels = pod.metadata.labels or {}
        for requirement in label_selector.split(","):
            key, _, value = requirement.partition("=")
            if labels.get(key) != value:
                return False
        return True

    def list_pods(self, namespace=ALL_NAMESPACES, label_selector="", timeout=None):
        self.list_calls.append((namespace, label_selector))
        if namespace in self.fail_namespaces:
            raise RuntimeError(f"cannot list pods in {namespace}")
        return [
            pod for pod in self.pods
            if (namespace == ALL_NAMESPACES or pod.metadata.namespace == namespace)
            and self._matches(pod, label_selector)
        ]

    def delete_pod(self, name, namespace, timeout=None):
        self.delete_calls.append((namespace, name))
        self.delete_timeouts.append(timeout)
        if name in self.fail_deletes:
            raise RuntimeError(f"cannot delete {namespace}/{name}")
        self.pods = [
            pod for pod in self.pods
            if not (pod.metadata.name == name and pod.metadata.namespace == namespace)
        ]

    def pod_names(self):
        return [pod.metadata.name for pod in self.pods]


@pytest.fixture
def fake_client():
    return FakeKubernetesClient()


@pytest.fixture
def matcher(fake_client):
    return PodMatcher(fake_client, clock=lambda: NOW)


@pytest.fixture
def config_store():
    return ConfigStore(make_config(make_rule()))
