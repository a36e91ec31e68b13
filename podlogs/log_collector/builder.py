"""Expansion of discovered pods into per-container log requests."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from ..errors import DiscoveryError
from ..kube.pods import Pod, PodFinder
from ..kube.resources import Resource
from .options import LogRequestOptions
from .requests import LogRequest, LogRequestSpec, StreamSource

if TYPE_CHECKING:
    from ..config import ArchiverConfig

logger = structlog.get_logger(__name__)


class LogRequestBuilder:
    """Builds one LogRequest per container of every discovered pod."""

    def __init__(self, source: StreamSource, pod_finder: PodFinder):
        self.source = source
        self.pod_finder = pod_finder

    @classmethod
    def default(cls, config: ArchiverConfig) -> LogRequestBuilder:
        """Builder wired to the cluster described by ``config``."""
        from ..kube.client import load_core_api
        from ..kube.log_source import KubernetesLogSource
        from ..kube.pods import LabelPodFinder

        core_api = load_core_api(config.kubernetes)
        return cls(
            source=KubernetesLogSource(core_api),
            pod_finder=LabelPodFinder(core_api, default_namespace=config.kubernetes.default_namespace),
        )

    def build_for_pod(self, pod: Pod, options: LogRequestOptions | None = None) -> list[LogRequest]:
        """Requests for a pod: standard containers first, then init containers."""
        options = options or LogRequestOptions()
        requests = []
        groups = ((pod.containers, False), (pod.init_containers, True))
        for containers, is_init in groups:
            for container in containers:
                spec = LogRequestSpec(
                    namespace=pod.namespace,
                    pod_name=pod.name,
                    container_name=container,
                    options=options,
                )
                requests.append(
                    LogRequest(self.source, spec, pod_labels=pod.labels, init_container=is_init)
                )
        return requests

    def build_for_pods(
        self, pods: Iterable[Pod], options: LogRequestOptions | None = None
    ) -> list[LogRequest]:
        requests = []
        for pod in pods:
            requests.extend(self.build_for_pod(pod, options))
        return requests

    async def from_resources(
        self, resources: Iterable[Resource], options: LogRequestOptions | None = None
    ) -> list[LogRequest]:
        """Discover the pods of ``resources`` and build their log requests.

        Raises:
            DiscoveryError: the pod finder failed; no requests are returned.
        """
        try:
            pods = await self.pod_finder.find_pods(resources)
        except DiscoveryError:
            raise
        except Exception as e:
            raise DiscoveryError(f"Pod discovery failed: {e}") from e

        requests = self.build_for_pods(pods, options)
        logger.info("Built log requests", pods=len(pods), requests=len(requests))
        return requests
