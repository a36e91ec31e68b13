"""Per-container log requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Protocol

from ..storage.base import LogStream
from .options import LogRequestOptions


@dataclass(frozen=True)
class LogRequestSpec:
    """Everything a stream source needs to open one container's logs."""

    namespace: str
    pod_name: str
    container_name: str
    options: LogRequestOptions = field(default_factory=LogRequestOptions)


class StreamSource(Protocol):
    async def open_log_stream(self, spec: LogRequestSpec) -> LogStream:
        ...


def resource_id(namespace: str, pod_name: str, container_name: str) -> str:
    """Archive name for a container's logs.

    Kubernetes object names never contain ``_``, which keeps the id unique
    per (namespace, pod, container).
    """
    return f"{namespace}_{pod_name}_{container_name}"


class LogRequest:
    """One pending log retrieval for exactly one container.

    Pod metadata is a snapshot taken at discovery time. The stream is not
    opened until :meth:`open` is awaited. A request is consumed by its first
    :meth:`open`; opening it again raises ``RuntimeError``.
    """

    def __init__(
        self,
        source: StreamSource,
        spec: LogRequestSpec,
        pod_labels: Mapping[str, str] | None = None,
        init_container: bool = False,
    ):
        self._source = source
        self.spec = spec
        self.pod_labels = MappingProxyType(dict(pod_labels or {}))
        self.init_container = init_container
        self._opened = False

    @property
    def pod_namespace(self) -> str:
        return self.spec.namespace

    @property
    def pod_name(self) -> str:
        return self.spec.pod_name

    @property
    def container_name(self) -> str:
        return self.spec.container_name

    @property
    def options(self) -> LogRequestOptions:
        return self.spec.options

    @property
    def resource_id(self) -> str:
        return resource_id(self.spec.namespace, self.spec.pod_name, self.spec.container_name)

    @property
    def opened(self) -> bool:
        return self._opened

    async def open(self) -> LogStream:
        if self._opened:
            raise RuntimeError(f"Log request {self.resource_id} was already opened")
        self._opened = True
        return await self._source.open_log_stream(self.spec)

    def __repr__(self) -> str:
        return f"LogRequest({self.resource_id!r}, init_container={self.init_container})"
