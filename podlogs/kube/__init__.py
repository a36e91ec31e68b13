"""Kubernetes collaborators: pod discovery, manifests and log streams."""

from .pods import LabelPodFinder, Pod, PodFinder
from .resources import ManifestResolver, Manifests, Resource, YamlManifestResolver
from .log_source import KubernetesLogSource, KubernetesLogStream
from .client import load_core_api

__all__ = [
    "Pod",
    "PodFinder",
    "LabelPodFinder",
    "Resource",
    "Manifests",
    "ManifestResolver",
    "YamlManifestResolver",
    "KubernetesLogSource",
    "KubernetesLogStream",
    "load_core_api",
]
