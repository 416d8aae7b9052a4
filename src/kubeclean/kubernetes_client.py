import os
from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from kubeclean.cleanup_config import ALL_NAMESPACES
from kubeclean.errors import KubernetesConfigError
from kubeclean.logger import get_logger

logger = get_logger(__name__)

FALLBACK_KUBECONFIG_PATHS = [
    os.path.expanduser("~/.kube/config"),
    "/etc/kubernetes/admin.conf",
    "/etc/rancher/k3s/k3s.yaml",
]


class KubernetesClient:
    def __init__(self, use_mock=False, kube_config_path=None):
        self.v1 = None

        if use_mock:
            logger.info("Using mock mode - no real Kubernetes connection")
            return

        self._load_config(kube_config_path or os.getenv("KUBECONFIG"))
        self.v1 = client.CoreV1Api()

        if self.test_connection():
            logger.info("Kubernetes client initialized successfully")
        else:
            logger.warning("Kubernetes connection test failed, continuing with limited functionality")

    def _load_config(self, kubeconfig_path):
        """Load client configuration, trying the usual locations in order"""
        if kubeconfig_path and os.path.exists(kubeconfig_path):
            logger.info("Loading kubeconfig", path=kubeconfig_path)
            config.load_kube_config(config_file=kubeconfig_path)
            return

        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
            return
        except ConfigException:
            pass

        try:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")
            return
        except (ConfigException, OSError):
            pass

        for kube_path in FALLBACK_KUBECONFIG_PATHS:
            if os.path.exists(kube_path):
                logger.info("Loading kubeconfig", path=kube_path)
                config.load_kube_config(config_file=kube_path)
                return

        raise KubernetesConfigError(
            "Could not load Kubernetes configuration. "
            "Set KUBE_CONFIG_PATH or KUBECONFIG, run in-cluster, "
            "or run with MOCK_MODE=true for testing"
        )

    def list_pods(self, namespace=ALL_NAMESPACES, label_selector="", timeout=None):
        """List pods in a namespace (or all namespaces) matching a label selector.

        API errors are raised to the caller.
        """
        if not self.v1:
            logger.debug("Mock mode - returning empty pod list", namespace=namespace)
            return []

        kwargs = {"watch": False, "label_selector": label_selector}
        if timeout is not None:
            kwargs["_request_timeout"] = timeout

        if namespace == ALL_NAMESPACES:
            pods = self.v1.list_pod_for_all_namespaces(**kwargs)
        else:
            pods = self.v1.list_namespaced_pod(namespace, **kwargs)
        return pods.items

    def delete_pod(self, name, namespace, timeout=None):
        """Delete a pod; API errors are raised to the caller"""
        if not self.v1:
            logger.info("Mock mode - would delete pod", pod=name, namespace=namespace)
            return

        kwargs = {}
        if timeout is not None:
            kwargs["_request_timeout"] = timeout

        self.v1.delete_namespaced_pod(
            name=name,
            namespace=namespace,
            body=client.V1DeleteOptions(propagation_policy="Background"),
            **kwargs,
        )

    def test_connection(self):
        """Test Kubernetes connection"""
        if not self.v1:
            return False
        try:
            self.v1.get_api_resources()
            return True
        except Exception:
            return False
