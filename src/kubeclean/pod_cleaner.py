import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import List

from kubeclean import metrics
from kubeclean.cleanup_config import ALL_NAMESPACES
from kubeclean.duration import format_duration, parse_duration
from kubeclean.errors import InvalidSelectorError
from kubeclean.logger import get_logger
from kubeclean.scheduler import RunContext

logger = get_logger(__name__)

DISABLED_ANNOTATION = "kubeclean/disabled"
TTL_ANNOTATION = "kubeclean/ttl"

# Pause between deletion batches to bound the request rate
BATCH_PAUSE_SECONDS = 0.1

_NAME_PART = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_DNS_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


def utcnow():
    return datetime.now(timezone.utc)


def _validate_label_key(key):
    prefix, sep, name = key.rpartition("/")
    if sep:
        if not prefix or len(prefix) > 253 or not _DNS_SUBDOMAIN.match(prefix):
            raise InvalidSelectorError(f"invalid label selector: key {key!r} has an invalid prefix")
    if not name or len(name) > 63 or not _NAME_PART.match(name):
        raise InvalidSelectorError(f"invalid label selector: key {key!r} is not a valid label name")


def _validate_label_value(key, value):
    if value == "":
        return
    if len(value) > 63 or not _NAME_PART.match(value):
        raise InvalidSelectorError(f"invalid label selector: value {value!r} for key {key!r} is not a valid label value")


def build_label_selector(match_labels):
    """Turn a matchLabels mapping into a Kubernetes label selector string.

    All pairs are ANDed; an empty mapping selects everything.
    """
    for key, value in match_labels.items():
        _validate_label_key(key)
        _validate_label_value(key, value)
    return ",".join(f"{key}={value}" for key, value in match_labels.items())


def pod_age(pod, now):
    created = pod.metadata.creation_timestamp
    if created is None:
        return None
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return now - created


class PodMatcher:
    def __init__(self, k8s_client, clock=utcnow):
        self.k8s_client = k8s_client
        self.clock = clock

    def find_pods_to_cleanup(self, rule, ctx=None):
        """Collect pods eligible for cleanup under rule, in discovery order.

        Raises InvalidSelectorError if the rule's selector is invalid. Listing
        failures only skip the affected namespace.
        """
        label_selector = build_label_selector(rule.selector.match_labels)
        namespaces = rule.namespaces or [ALL_NAMESPACES]
        now = self.clock()

        pods_to_cleanup = []
        for namespace in namespaces:
            if ctx is not None and ctx.done():
                logger.warning("Run finished before all namespaces were listed", rule=rule.name, namespace=namespace)
                break

            try:
                pods = self.k8s_client.list_pods(
                    namespace=namespace,
                    label_selector=label_selector,
                    timeout=ctx.remaining() if ctx is not None else None,
                )
            except Exception as e:
                logger.error("Failed to list pods", rule=rule.name, namespace=namespace or "*", error=str(e))
                continue

            for pod in pods:
                if self.should_cleanup_pod(pod, rule, now):
                    pods_to_cleanup.append(pod)

        return pods_to_cleanup

    def should_cleanup_pod(self, pod, rule, now=None):
        """Check phase, opt-out annotation and TTL of a single pod"""
        if rule.phase and pod.status.phase != rule.phase:
            return False

        annotations = pod.metadata.annotations or {}
        if annotations.get(DISABLED_ANNOTATION) == "true":
            logger.debug("Pod cleanup disabled by annotation", pod=pod.metadata.name, namespace=pod.metadata.namespace)
            return False

        ttl = self.effective_ttl(pod, rule)

        age = pod_age(pod, now or self.clock())
        if age is None:
            return False
        return age > ttl

    def effective_ttl(self, pod, rule):
        """Per-pod TTL annotation if it parses, otherwise the rule TTL"""
        annotations = pod.metadata.annotations or {}
        ttl_str = annotations.get(TTL_ANNOTATION)
        if ttl_str is None:
            return rule.ttl

        try:
            return parse_duration(ttl_str)
        except ValueError as e:
            logger.info(
                "Invalid TTL annotation; using rule TTL",
                pod=pod.metadata.name,
                namespace=pod.metadata.namespace,
                rule_ttl=format_duration(rule.ttl),
                error=str(e),
            )
            return rule.ttl


@dataclass
class BatchResult:
    """Outcome of deleting one rule's matched pods"""

    rule: str = ""
    batches: int = 0
    deleted: List[str] = field(default_factory=list)
    would_delete: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def has_failures(self):
        return bool(self.failed)


def _pod_key(pod):
    return f"{pod.metadata.namespace}/{pod.metadata.name}"


def batch_delete_pods(k8s_client, pods, batch_size, dry_run, ctx=None, rule="", pause=BATCH_PAUSE_SECONDS):
    """Delete pods in consecutive batches, continuing past individual failures.

    A batch_size of zero or less deletes everything as one batch.
    """
    result = BatchResult(rule=rule)
    total = len(pods)
    if batch_size <= 0:
        batch_size = max(total, 1)

    for start in range(0, total, batch_size):
        if ctx is not None and ctx.done():
            logger.warning("Run finished before all batches were processed", rule=rule, remaining=total - start)
            break

        end = min(start + batch_size, total)
        result.batches += 1
        logger.info("Processing batch", rule=rule, range=f"{start + 1}-{end}", total=total)

        for pod in pods[start:end]:
            name, namespace = pod.metadata.name, pod.metadata.namespace

            if dry_run:
                logger.info("DRY RUN: Would delete pod", rule=rule, pod=name, namespace=namespace)
                result.would_delete.append(_pod_key(pod))
                metrics.PODS_DRY_RUN.labels(rule=rule).inc()
                continue

            logger.info("Deleting pod", rule=rule, pod=name, namespace=namespace)
            try:
                k8s_client.delete_pod(
                    name=name,
                    namespace=namespace,
                    timeout=ctx.remaining() if ctx is not None else None,
                )
            except Exception as e:
                logger.error("Failed to delete pod", rule=rule, pod=name, namespace=namespace, error=str(e))
                result.failed.append(_pod_key(pod))
                metrics.POD_DELETE_FAILURES.labels(rule=rule).inc()
                continue

            result.deleted.append(_pod_key(pod))
            metrics.PODS_DELETED.labels(rule=rule).inc()

        if end < total:
            if ctx is not None:
                ctx.wait(pause)
            else:
                time.sleep(pause)

    return result


class PodCleaner:
    def __init__(self, k8s_client, config_store, matcher=None):
        self.k8s_client = k8s_client
        self.config_store = config_store
        self.matcher = matcher or PodMatcher(k8s_client)
        self.lock = Lock()
        self.is_running = False

    def run_cleanup(self, ctx=None) -> List[BatchResult]:
        """Run one cleanup cycle over every enabled rule"""
        with self.lock:
            if self.is_running:
                logger.info("Previous run still in progress, skipping...")
                return []
            self.is_running = True

        try:
            return self._run(ctx or RunContext())
        finally:
            with self.lock:
                self.is_running = False

    def _run(self, ctx):
        config = self.config_store.current
        if not config.pod_cleanup_config.enabled:
            logger.debug("Pod cleanup disabled, nothing to do")
            return []

        start_time = time.time()
        logger.info("Starting pod cleanup", dry_run=config.dry_run, batch_size=config.batch_size)

        results = []
        for rule in config.pod_cleanup_config.rules:
            if not rule.enabled:
                continue

            if ctx.done():
                logger.warning("Pod cleanup interrupted", cancelled=ctx.cancelled(), rule=rule.name)
                break

            result = self.process_rule(rule, config, ctx)
            if result is not None:
                results.append(result)

        logger.info("Pod cleanup completed", rules=len(results), execution_time=round(time.time() - start_time, 2))
        return results

    def process_rule(self, rule, config, ctx):
        logger.info("Processing cleanup rule", rule=rule.name)

        try:
            pods = self.matcher.find_pods_to_cleanup(rule, ctx)
        except InvalidSelectorError as e:
            logger.error("Failed to find pods", rule=rule.name, error=str(e))
            return None
        except Exception as e:
            logger.error("Failed to find pods", rule=rule.name, error=str(e), exc_info=True)
            return None

        if not pods:
            logger.debug("No pods to cleanup for rule", rule=rule.name)
            return BatchResult(rule=rule.name)

        logger.info("Found pods to cleanup", rule=rule.name, count=len(pods))

        result = batch_delete_pods(
            self.k8s_client, pods, config.batch_size, config.dry_run, ctx=ctx, rule=rule.name
        )
        if result.has_failures:
            logger.error("Failed to batch delete pods", rule=rule.name, failed=len(result.failed), pods=result.failed)
        else:
            logger.info("Completed cleanup for rule", rule=rule.name, processed=len(pods), dry_run=config.dry_run)
        return result
