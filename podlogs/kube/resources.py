"""Workload resources and manifest resolution."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog
import yaml

from ..errors import ManifestError

logger = structlog.get_logger(__name__)

# A manifest set is one or more YAML texts, each possibly multi-document.
Manifests = Sequence[str]


@dataclass(frozen=True)
class Resource:
    """An unstructured Kubernetes object as read from a manifest."""

    kind: str
    name: str
    namespace: str | None = None
    api_version: str = ""
    body: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> Resource:
        if not isinstance(obj, Mapping):
            raise ManifestError(f"Expected a mapping, got {type(obj).__name__}")
        kind = obj.get("kind")
        metadata = obj.get("metadata") if isinstance(obj.get("metadata"), Mapping) else {}
        name = metadata.get("name")
        if not kind or not name:
            raise ManifestError(f"Resource is missing kind or metadata.name: {dict(obj)!r:.200}")
        return cls(
            kind=str(kind),
            name=str(name),
            namespace=metadata.get("namespace"),
            api_version=str(obj.get("apiVersion") or ""),
            body=obj,
        )

    @property
    def spec(self) -> Mapping[str, Any]:
        spec = self.body.get("spec")
        return spec if isinstance(spec, Mapping) else {}


class ManifestResolver(Protocol):
    def resources(self, manifests: Manifests) -> list[Resource]:
        ...


class YamlManifestResolver:
    """Turns rendered YAML manifests into a flat resource list."""

    def resources(self, manifests: Manifests) -> list[Resource]:
        if isinstance(manifests, str):
            manifests = [manifests]

        result: list[Resource] = []
        for index, text in enumerate(manifests):
            try:
                documents = list(yaml.safe_load_all(text))
            except yaml.YAMLError as e:
                raise ManifestError(f"Manifest {index} is not valid YAML: {e}") from e
            result.extend(self._flatten(documents))

        logger.debug("Resolved manifests", manifests=len(manifests), resources=len(result))
        return result

    def _flatten(self, documents: Iterable[Any]) -> list[Resource]:
        resources = []
        for doc in documents:
            if not doc:
                continue
            if isinstance(doc, Mapping) and doc.get("kind") == "List":
                resources.extend(self._flatten(doc.get("items") or []))
                continue
            resources.append(Resource.from_dict(doc))
        return resources
