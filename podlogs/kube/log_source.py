"""Container log streams read from the Kubernetes API."""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from functools import partial
from typing import Any

import structlog
import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from ..errors import StreamOpenError
from ..log_collector.options import LogRequestOptions
from ..log_collector.requests import LogRequestSpec, resource_id

logger = structlog.get_logger(__name__)


def log_request_kwargs(spec: LogRequestSpec, now: datetime | None = None) -> dict[str, Any]:
    """Keyword arguments for ``read_namespaced_pod_log`` matching a spec.

    The Python client has no ``sinceTime`` parameter, so ``since`` is sent as
    ``since_seconds``, rounded up and never below one second. A ``since``
    later than ``now`` raises ``ValueError``: no window of whole seconds
    excludes every line emitted before it.
    """
    options: LogRequestOptions = spec.options
    kwargs: dict[str, Any] = {"container": spec.container_name}

    if options.follow:
        kwargs["follow"] = True
    if options.previous:
        kwargs["previous"] = True
    if options.timestamps:
        kwargs["timestamps"] = True
    if options.tail_lines is not None:
        kwargs["tail_lines"] = options.tail_lines
    if options.limit_bytes is not None:
        kwargs["limit_bytes"] = options.limit_bytes
    if options.since is not None:
        now = now or datetime.now(timezone.utc)
        elapsed = (now - options.since).total_seconds()
        if elapsed < 0:
            raise ValueError(f"since {options.since.isoformat()} is in the future")
        kwargs["since_seconds"] = max(1, math.ceil(elapsed))

    return kwargs


def _release_abandoned(name: str, future: asyncio.Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    response = future.result()
    response.close()
    response.release_conn()
    logger.debug("Released log stream opened after cancellation", name=name)


class KubernetesLogStream:
    """Async wrapper around an unread urllib3 log response."""

    def __init__(self, response: urllib3.HTTPResponse, name: str):
        self._response = response
        self.name = name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, n: int = -1) -> bytes:
        if self._closed:
            raise ValueError(f"Log stream {self.name} is closed")
        amt = None if n is None or n < 0 else n
        return await asyncio.to_thread(self._response.read, amt)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._response.close()
        self._response.release_conn()
        logger.debug("Closed log stream", name=self.name)


class KubernetesLogSource:
    """Opens container log streams through ``CoreV1Api``."""

    def __init__(self, core_api: client.CoreV1Api):
        self.core_api = core_api

    async def open_log_stream(self, spec: LogRequestSpec) -> KubernetesLogStream:
        name = resource_id(spec.namespace, spec.pod_name, spec.container_name)
        try:
            kwargs = log_request_kwargs(spec)
        except ValueError as e:
            raise StreamOpenError(name, str(e)) from e

        logger.debug("Opening log stream", name=name, **kwargs)
        future = asyncio.ensure_future(
            asyncio.to_thread(
                self.core_api.read_namespaced_pod_log,
                spec.pod_name,
                spec.namespace,
                _preload_content=False,
                **kwargs,
            )
        )
        try:
            response = await asyncio.shield(future)
        except asyncio.CancelledError:
            # The worker thread keeps running; close whatever it hands back
            future.add_done_callback(partial(_release_abandoned, name))
            raise
        except ApiException as e:
            raise StreamOpenError(name, f"API returned {e.status} {e.reason}") from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StreamOpenError(name, f"{type(e).__name__}: {e}") from e

        return KubernetesLogStream(response, name)
