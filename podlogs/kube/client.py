"""Kubernetes API client bootstrap."""

from __future__ import annotations

import structlog
from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from ..config import KubernetesConfig
from ..errors import DiscoveryError

logger = structlog.get_logger(__name__)


def load_core_api(kube_config: KubernetesConfig) -> client.CoreV1Api:
    """Build a CoreV1Api from a kubeconfig, falling back to in-cluster config."""
    try:
        if kube_config.in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster kubernetes configuration")
        else:
            try:
                config.load_kube_config(
                    config_file=kube_config.kubeconfig,
                    context=kube_config.context,
                )
                logger.info(
                    "Loaded kubeconfig",
                    kubeconfig=kube_config.kubeconfig or "default",
                    context=kube_config.context or "current",
                )
            except ConfigException:
                logger.warning("No usable kubeconfig, trying in-cluster configuration")
                config.load_incluster_config()
    except ConfigException as e:
        raise DiscoveryError(f"Could not load kubernetes configuration: {e}") from e

    return client.CoreV1Api()
