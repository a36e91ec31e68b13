"""Concurrent archival of container log streams.

Every request runs as its own asyncio task:

    PENDING -> STREAM_OPENING -> STREAM_OPEN_FAILED
                              -> STREAMING -> SAVED | SAVE_FAILED

A failing request never cancels its siblings. The batch returns once every
task is terminal, with one outcome per request. Tasks still running when the
deadline passes are cancelled and reported as CANCELLED.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import structlog

from ..errors import (
    ArchiveError,
    CollectionCancelledError,
    RequestError,
    SaveError,
    StreamOpenError,
)
from ..storage.base import LogStream, StorageClient, StorageObject
from .requests import LogRequest

logger = structlog.get_logger(__name__)


class RequestState(str, Enum):
    PENDING = "pending"
    STREAM_OPENING = "stream_opening"
    STREAM_OPEN_FAILED = "stream_open_failed"
    STREAMING = "streaming"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"
    CANCELLED = "cancelled"


def _request_error(cls: type[RequestError], rid: str, cause: Exception) -> RequestError:
    error = cls(rid, f"{type(cause).__name__}: {cause}")
    error.__cause__ = cause
    return error


async def _close_quietly(stream: LogStream, rid: str) -> None:
    try:
        await stream.aclose()
    except Exception as e:
        logger.warning("Failed to close log stream", resource_id=rid, error=str(e))


@dataclass
class RequestOutcome:
    """Terminal result of one log request."""

    resource_id: str
    state: RequestState
    error: RequestError | None = None

    @property
    def ok(self) -> bool:
        return self.state == RequestState.SAVED

    def to_dict(self) -> dict[str, str | None]:
        return {
            "resource_id": self.resource_id,
            "state": self.state.value,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class ArchiveReport:
    """Per-request outcomes of a batch, in request order."""

    location: str
    outcomes: list[RequestOutcome] = field(default_factory=list)

    @property
    def saved(self) -> list[RequestOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[RequestOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def saved_ids(self) -> list[str]:
        return [o.resource_id for o in self.saved]

    @property
    def failed_ids(self) -> list[str]:
        return [o.resource_id for o in self.failed]

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "location": self.location,
            "total": len(self.outcomes),
            "saved": len(self.saved),
            "failed": len(self.failed),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class ConcurrentArchiver:
    """Streams every request to a storage client in parallel."""

    def __init__(self, max_concurrency: int | None = None):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency

    async def save_all(
        self,
        storage: StorageClient,
        location: str,
        requests: Sequence[LogRequest],
        *,
        timeout: float | None = None,
    ) -> ArchiveReport:
        """Archive every request's log stream at ``location``.

        Args:
            storage: Client that persists each stream; called concurrently.
            location: Where the storage client puts the artifacts.
            requests: Requests to run. Each is consumed exactly once.
            timeout: Deadline in seconds for the whole batch. Unfinished
                requests are cancelled when it passes.

        Returns:
            The report, when every request was saved.

        Raises:
            ArchiveError: one or more requests failed or were cancelled. The
                full report is attached.
        """
        report = ArchiveReport(location=location)
        if not requests:
            return report

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        states = [RequestState.PENDING] * len(requests)

        async def _run(index: int, request: LogRequest) -> RequestOutcome:
            if semaphore is None:
                return await self._archive_one(storage, location, request, states, index)
            async with semaphore:
                return await self._archive_one(storage, location, request, states, index)

        logger.info(
            "Archiving log streams",
            location=location,
            requests=len(requests),
            max_concurrency=self.max_concurrency,
            timeout=timeout,
        )

        tasks = [asyncio.create_task(_run(i, r)) for i, r in enumerate(requests)]
        pending: set[asyncio.Task[RequestOutcome]] = set(tasks)
        try:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            # Runs on deadline expiry and when the caller is cancelled
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for index, (request, task) in enumerate(zip(requests, tasks)):
            if task.cancelled():
                error = CollectionCancelledError(
                    request.resource_id, f"cancelled while {states[index].value}"
                )
                logger.warning("Log request cancelled", resource_id=request.resource_id, state=states[index].value)
                report.outcomes.append(RequestOutcome(request.resource_id, RequestState.CANCELLED, error))
            else:
                report.outcomes.append(task.result())

        if report.failed:
            logger.error(
                "Log archival finished with failures",
                location=location,
                saved=len(report.saved),
                failed=len(report.failed),
                failed_ids=report.failed_ids,
            )
            raise ArchiveError(report)

        logger.info("Archived all log streams", location=location, saved=len(report.saved))
        return report

    async def _archive_one(
        self,
        storage: StorageClient,
        location: str,
        request: LogRequest,
        states: list[RequestState],
        index: int,
    ) -> RequestOutcome:
        rid = request.resource_id

        states[index] = RequestState.STREAM_OPENING
        try:
            stream = await request.open()
        except Exception as e:
            error = e if isinstance(e, StreamOpenError) else _request_error(StreamOpenError, rid, e)
            states[index] = RequestState.STREAM_OPEN_FAILED
            logger.warning("Failed to open log stream", resource_id=rid, error=str(error))
            return RequestOutcome(rid, RequestState.STREAM_OPEN_FAILED, error)

        states[index] = RequestState.STREAMING
        try:
            await storage.save(location, StorageObject(name=rid, resource=stream))
        except Exception as e:
            error = e if isinstance(e, SaveError) else _request_error(SaveError, rid, e)
            states[index] = RequestState.SAVE_FAILED
            logger.warning("Failed to save log stream", resource_id=rid, error=str(error))
            return RequestOutcome(rid, RequestState.SAVE_FAILED, error)
        finally:
            await _close_quietly(stream, rid)

        states[index] = RequestState.SAVED
        logger.debug("Saved log stream", resource_id=rid, location=location)
        return RequestOutcome(rid, RequestState.SAVED)
