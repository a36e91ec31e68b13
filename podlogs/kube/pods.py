"""Pod discovery for a set of workload resources."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..errors import DiscoveryError
from .resources import Resource

logger = structlog.get_logger(__name__)

# Kinds whose pods are selected by spec.selector as a LabelSelector
SELECTOR_KINDS = {"Deployment", "StatefulSet", "DaemonSet", "ReplicaSet", "Job"}


@dataclass(frozen=True)
class Pod:
    """Snapshot of a discovered pod, taken when it was listed."""

    namespace: str
    name: str
    labels: Mapping[str, str] = field(default_factory=dict)
    containers: tuple[str, ...] = ()
    init_containers: tuple[str, ...] = ()

    @classmethod
    def from_api(cls, pod: client.V1Pod) -> Pod:
        spec = pod.spec
        return cls(
            namespace=pod.metadata.namespace,
            name=pod.metadata.name,
            labels=dict(pod.metadata.labels or {}),
            containers=tuple(c.name for c in (spec.containers or [])) if spec else (),
            init_containers=tuple(c.name for c in (spec.init_containers or [])) if spec else (),
        )


class PodFinder(Protocol):
    async def find_pods(self, resources: Iterable[Resource]) -> list[Pod]:
        ...


def label_selector(selector: Mapping[str, Any] | None) -> str:
    """Render a LabelSelector (matchLabels + matchExpressions) as a query string."""
    if not selector:
        return ""

    terms = [f"{k}={v}" for k, v in sorted((selector.get("matchLabels") or {}).items())]
    for expr in selector.get("matchExpressions") or []:
        key = expr.get("key")
        operator = expr.get("operator")
        values = ",".join(expr.get("values") or [])
        if operator == "In":
            terms.append(f"{key} in ({values})")
        elif operator == "NotIn":
            terms.append(f"{key} notin ({values})")
        elif operator == "Exists":
            terms.append(key)
        elif operator == "DoesNotExist":
            terms.append(f"!{key}")
        else:
            raise DiscoveryError(f"Unsupported selector operator {operator!r} for key {key!r}")
    return ",".join(terms)


def selector_for(resource: Resource) -> str | None:
    """Label selector matching the pods of a resource, or None if it has none."""
    spec = resource.spec
    if resource.kind in SELECTOR_KINDS:
        return label_selector(spec.get("selector")) or None
    if resource.kind == "ReplicationController":
        # equality-based map rather than a LabelSelector
        return label_selector({"matchLabels": spec.get("selector") or {}}) or None
    if resource.kind == "CronJob":
        template = (((spec.get("jobTemplate") or {}).get("spec") or {}).get("template") or {})
        labels = (template.get("metadata") or {}).get("labels") or {}
        return label_selector({"matchLabels": labels}) or None
    return None


class LabelPodFinder:
    """Finds the pods of workload resources through their label selectors."""

    def __init__(self, core_api: client.CoreV1Api, default_namespace: str = "default"):
        self.core_api = core_api
        self.default_namespace = default_namespace

    async def find_pods(self, resources: Iterable[Resource]) -> list[Pod]:
        resources = list(resources)
        per_resource = await asyncio.gather(
            *(asyncio.to_thread(self._pods_for_resource, resource) for resource in resources)
        )
        pods = [pod for found in per_resource for pod in found]
        logger.info("Discovered pods", resources=len(resources), pods=len(pods))
        return pods

    def _pods_for_resource(self, resource: Resource) -> list[Pod]:
        namespace = resource.namespace or self.default_namespace

        if resource.kind == "Pod":
            try:
                pod = self.core_api.read_namespaced_pod(resource.name, namespace)
            except ApiException as e:
                if e.status == 404:
                    logger.warning("Pod not found", namespace=namespace, pod=resource.name)
                    return []
                raise DiscoveryError(
                    f"Failed to read pod {namespace}/{resource.name}: {e.status} {e.reason}"
                ) from e
            return [Pod.from_api(pod)]

        selector = selector_for(resource)
        if selector is None:
            logger.debug("Skipping resource without pods", kind=resource.kind, name=resource.name)
            return []

        try:
            pod_list = self.core_api.list_namespaced_pod(namespace, label_selector=selector)
        except ApiException as e:
            raise DiscoveryError(
                f"Failed to list pods for {resource.kind} {namespace}/{resource.name}: {e.status} {e.reason}"
            ) from e

        pods = [Pod.from_api(item) for item in pod_list.items or []]
        logger.debug(
            "Matched pods",
            kind=resource.kind,
            name=resource.name,
            selector=selector,
            count=len(pods),
        )
        return pods
