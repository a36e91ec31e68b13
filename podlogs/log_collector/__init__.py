"""Log collection: request building, concurrent archival and orchestration."""

from .options import LogRequestOptions, follow, previous, since, tail, timestamps
from .requests import LogRequest, LogRequestSpec, StreamSource, resource_id
from .builder import LogRequestBuilder
from .archiver import ArchiveReport, ConcurrentArchiver, RequestOutcome, RequestState
from .collector import LogCollector

__all__ = [
    "LogRequestOptions",
    "follow",
    "previous",
    "since",
    "tail",
    "timestamps",
    "LogRequest",
    "LogRequestSpec",
    "StreamSource",
    "resource_id",
    "LogRequestBuilder",
    "ConcurrentArchiver",
    "ArchiveReport",
    "RequestOutcome",
    "RequestState",
    "LogCollector",
]
