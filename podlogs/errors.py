"""Error kinds raised by the log collection pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .log_collector.archiver import ArchiveReport


class PodLogsError(Exception):
    """Base class for every error raised by podlogs."""


class DiscoveryError(PodLogsError):
    """Resolving resources to pods failed. Always fatal to the whole call."""


class ManifestError(PodLogsError):
    """A manifest could not be turned into a resource list."""


class RequestError(PodLogsError):
    """A failure recorded against a single log request."""

    def __init__(self, resource_id: str, message: str):
        super().__init__(f"{resource_id}: {message}")
        self.resource_id = resource_id


class StreamOpenError(RequestError):
    """Opening a container log stream failed."""


class SaveError(RequestError):
    """The storage client could not persist a log stream."""


class CollectionCancelledError(RequestError):
    """The request was cancelled before it reached a terminal state."""


class ArchiveError(PodLogsError):
    """One or more requests of a parallel batch failed.

    Carries the full per-request report, so callers can tell which
    containers were archived and which were not.
    """

    def __init__(self, report: ArchiveReport):
        self.report = report
        self.failures = report.failed
        failed_ids = ", ".join(outcome.resource_id for outcome in self.failures)
        super().__init__(
            f"{len(self.failures)} of {len(report.outcomes)} log requests failed: {failed_ids}"
        )

    @property
    def errors(self) -> list[RequestError]:
        return [outcome.error for outcome in self.failures if outcome.error is not None]

    @property
    def first_error(self) -> RequestError | None:
        errors = self.errors
        return errors[0] if errors else None
