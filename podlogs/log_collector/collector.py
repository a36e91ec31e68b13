"""Front door for log collection: resources or manifests in, archived logs out."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

import structlog

from ..kube.resources import ManifestResolver, Manifests, Resource, YamlManifestResolver
from ..storage.base import StorageClient
from .archiver import ArchiveReport, ConcurrentArchiver
from .builder import LogRequestBuilder
from .options import LogRequestOptions
from .requests import LogRequest

if TYPE_CHECKING:
    from ..config import ArchiverConfig

logger = structlog.get_logger(__name__)


class LogCollector:
    """Finds the containers of a resource set and archives their logs."""

    def __init__(
        self,
        builder: LogRequestBuilder,
        options: LogRequestOptions | None = None,
        archiver: ConcurrentArchiver | None = None,
        manifest_resolver: ManifestResolver | None = None,
    ):
        self.builder = builder
        self.options = options or LogRequestOptions()
        self.archiver = archiver or ConcurrentArchiver()
        self.manifest_resolver = manifest_resolver or YamlManifestResolver()

    @classmethod
    def default(cls, config: ArchiverConfig) -> LogCollector:
        return cls(
            builder=LogRequestBuilder.default(config),
            options=config.log_options.to_options(),
            archiver=ConcurrentArchiver(max_concurrency=config.max_concurrency),
        )

    async def requests_from_manifests(self, manifests: Manifests) -> list[LogRequest]:
        resources = self.manifest_resolver.resources(manifests)
        return await self.requests_from_resources(resources)

    async def requests_from_resources(self, resources: Iterable[Resource]) -> list[LogRequest]:
        return await self.builder.from_resources(resources, self.options)

    async def collect_and_save(
        self,
        storage: StorageClient,
        location: str,
        requests: Sequence[LogRequest],
        *,
        timeout: float | None = None,
    ) -> ArchiveReport:
        return await self.archiver.save_all(storage, location, requests, timeout=timeout)

    async def collect(
        self,
        storage: StorageClient,
        location: str,
        resources: Iterable[Resource],
        *,
        timeout: float | None = None,
    ) -> ArchiveReport:
        """Discover, build and archive in one call."""
        requests = await self.requests_from_resources(resources)
        logger.info("Collecting logs", location=location, requests=len(requests))
        return await self.collect_and_save(storage, location, requests, timeout=timeout)
